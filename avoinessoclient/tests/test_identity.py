from unittest.mock import Mock

from django.test import SimpleTestCase

from avoinessoclient.hooks import HookRegistry
from avoinessoclient.identity import IdentityResolver, RemoteIdentity, RemoteProfile

IDENTITY = {'id': 'abc123', 'idp': 'saml', 'local_id': 'u-42'}


class RemoteIdentityTestCase(SimpleTestCase):
    def test_from_result(self):
        identity = RemoteIdentity.from_result(IDENTITY)
        self.assertEqual(identity, RemoteIdentity(id='abc123', idp='saml', local_id='u-42'))

    def test_numeric_fields_become_strings(self):
        identity = RemoteIdentity.from_result({'id': 1, 'idp': 'saml', 'local_id': 42})
        self.assertEqual(identity.local_id, '42')

    def test_missing_or_empty_fields(self):
        self.assertIsNone(RemoteIdentity.from_result({'id': 'abc123', 'idp': 'saml'}))
        self.assertIsNone(RemoteIdentity.from_result({'id': 'abc123', 'idp': '', 'local_id': 'u-42'}))
        self.assertIsNone(RemoteIdentity.from_result(True))


class RemoteProfileTestCase(SimpleTestCase):
    def test_attribute(self):
        profile = RemoteProfile.from_result({'saml.firstname': 'Ada', 'saml.lastname': ''})
        self.assertEqual(profile.attribute('saml', 'firstname'), 'Ada')
        self.assertIsNone(profile.attribute('saml', 'lastname'))
        self.assertIsNone(profile.attribute('saml', 'email_address'))

    def test_empty_object_is_a_profile(self):
        self.assertEqual(len(RemoteProfile.from_result({})), 0)

    def test_not_an_object(self):
        self.assertIsNone(RemoteProfile.from_result('nope'))


class IdentityResolverTestCase(SimpleTestCase):
    def setUp(self):
        self.rpc = Mock()
        self.hooks = HookRegistry()
        self.resolver = IdentityResolver(self.rpc, self.hooks)

    def test_validate_skips_rpc_for_blank_ids(self):
        for raw_id in (None, '', '   ', '\t\n'):
            self.assertIsNone(self.resolver.validate(raw_id))
        self.rpc.call.assert_not_called()

    def test_validate(self):
        self.rpc.call.return_value = IDENTITY
        identity = self.resolver.validate(' abc123 ')
        self.rpc.call.assert_called_once_with('abc123', 'GetUser')
        self.assertEqual(identity.local_id, 'u-42')

    def test_validate_failure_propagates(self):
        self.rpc.call.return_value = None
        self.assertIsNone(self.resolver.validate('abc123'))

    def test_validate_incomplete_identity(self):
        self.rpc.call.return_value = {'id': 'abc123'}
        self.assertIsNone(self.resolver.validate('abc123'))

    def test_fetch_profile(self):
        self.rpc.call.return_value = {'saml.firstname': 'Ada'}
        profile = self.resolver.fetch_profile('abc123')
        self.rpc.call.assert_called_once_with('abc123', 'GetUserData')
        self.assertEqual(profile['saml.firstname'], 'Ada')

    def test_mapping_key_defaults_to_local_id(self):
        self.rpc.call.return_value = {}
        identity = RemoteIdentity(**IDENTITY)
        self.assertEqual(self.resolver.resolve_mapping_key(identity), 'u-42')
        self.assertEqual(self.resolver.resolve_mapping_key(RemoteIdentity('other', 'saml', 'u-42')), 'u-42')

    def test_mapping_key_without_profile(self):
        self.rpc.call.return_value = None
        self.assertIsNone(self.resolver.resolve_mapping_key(RemoteIdentity(**IDENTITY)))

    def test_mapping_key_filter(self):
        self.hooks.add_filter('avoine_sso_login.user.mapping_id',
                              lambda key, identity, profile: f'{identity.idp}:{key}')
        profile = RemoteProfile({})
        self.assertEqual(self.resolver.resolve_mapping_key(RemoteIdentity(**IDENTITY), profile), 'saml:u-42')
        self.rpc.call.assert_not_called()

    def test_empty_mapping_key_is_a_failure(self):
        self.hooks.add_filter('avoine_sso_user_mapping_id', lambda key, identity, profile: '')
        self.assertIsNone(self.resolver.resolve_mapping_key(RemoteIdentity(**IDENTITY), RemoteProfile({})))
