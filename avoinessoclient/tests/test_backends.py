from unittest.mock import Mock

from django.contrib import auth
from django.contrib.auth.models import User
from django.test import TestCase

from avoinessoclient import shortcuts
from avoinessoclient.models import UserMeta
from avoinessoclient.signals import sso_password_login_prevented


class AvoineSsoModelBackendTestCase(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username='ada', password='secret')

    def test_local_user_can_use_password(self):
        self.assertEqual(auth.authenticate(username='ada', password='secret'), self.user)

    def test_sso_user_cannot_use_password(self):
        prevented = Mock()
        sso_password_login_prevented.connect(prevented)
        self.addCleanup(sso_password_login_prevented.disconnect, prevented)
        UserMeta.objects.set_value(self.user, 'sso_idp', 'saml')

        self.assertIsNone(auth.authenticate(username='ada', password='secret'))
        self.assertEqual(prevented.call_args[1]['user'], self.user)


class ShortcutsTestCase(TestCase):
    def test_urls(self):
        self.assertEqual(shortcuts.get_logout_url(), 'https://tunnistus.avoine.fi/sso-logout/')
        self.assertEqual(shortcuts.get_login_url('/x'),
                         'https://tunnistus.avoine.fi/sso-login/?service=example-service&return=%2Fx')

    def test_is_sso_user_by_primary_key(self):
        user = User.objects.create_user(username='ada')
        self.assertFalse(shortcuts.is_sso_user(user.pk))
        UserMeta.objects.set_value(user, 'sso_idp', 'saml')
        self.assertTrue(shortcuts.is_sso_user(user.pk))
        self.assertFalse(shortcuts.is_sso_user(user.pk + 1))

    def test_is_sso_user_active_for_local_user(self):
        self.assertFalse(shortcuts.is_sso_user_active(User.objects.create_user(username='local')))
