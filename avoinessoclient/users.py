import logging
import time

from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError, transaction

from avoinessoclient.hooks import hooks as default_hooks
from avoinessoclient.identity import IdentityResolver
from avoinessoclient.models import MAPPING_ID_KEY, UserMeta
from avoinessoclient.signals import notify, sso_user_created

logger = logging.getLogger(__name__)

IDP_KEY = 'sso_idp'
DISPLAY_NAME_KEY = 'sso_display_name'


def ssoid_key(idp):
    return f'sso_{idp}_ssoid'


def local_id_key(idp):
    return f'sso_{idp}_local_id'


def is_sso_user(user):
    # Every user logged in through SSO has the idp stored.
    if user is None or not getattr(user, 'pk', None):
        return False
    return bool(UserMeta.objects.get_value(user, IDP_KEY))


def apply_user_data(user, data):
    field_names = {field.name for field in user._meta.concrete_fields}
    for name, value in data.items():
        if name in ('password', 'display_name', user._meta.pk.name):
            continue
        if name in field_names:
            setattr(user, name, value)
        else:
            logger.debug('Ignoring user data %s, %s has no such field', name, user._meta.label)


class UserProvisioner:
    """Finds or creates the local user bound to a remote identity."""

    def __init__(self, resolver=None, hooks=None, site_host='localhost'):
        self.resolver = resolver or IdentityResolver()
        self.hooks = default_hooks if hooks is None else hooks
        self.site_host = site_host

    def find_user(self, mapping_key):
        return UserMeta.objects.find_user(MAPPING_ID_KEY, mapping_key)

    def resolve_or_create(self, identity, site_host=None, profile=None):
        if profile is None:
            profile = self.resolver.fetch_profile(identity.id)
        if profile is None:
            return None

        mapping_key = self.resolver.resolve_mapping_key(identity, profile)
        if not mapping_key:
            return None

        user = self.find_user(mapping_key)
        if user is not None:
            return user
        return self.create_user(identity, profile, mapping_key, site_host)

    def build_user_data(self, identity, profile):
        data = {}
        idp = identity.idp

        use_original_email = self.hooks.apply_filters(
            'avoine_sso_login.user.create.user_email.use_original', False, identity, profile)
        email = profile.attribute(idp, 'email_address')
        if use_original_email and email:
            data['email'] = email

        first_name = profile.attribute(idp, 'firstname')
        last_name = profile.attribute(idp, 'lastname')
        if first_name:
            data['first_name'] = first_name
            data['display_name'] = first_name
        if last_name:
            data['last_name'] = last_name
        if first_name and last_name:
            data['display_name'] = f'{first_name} {last_name[0]}.'

        return self.hooks.apply_filters('avoine_sso_login.user.data', data, identity, profile)

    def create_user(self, identity, profile, mapping_key, site_host=None):
        data = self.build_user_data(identity, profile)
        if data is None:
            return None
        data = dict(data)

        # Timestamp prefix in case local ids from different providers collide.
        unique = f'{int(time.time())}{identity.local_id}'
        data['username'] = self.hooks.apply_filters(
            'avoine_sso_login.user.create.user_login', unique, identity, profile)
        if 'email' not in data:
            data['email'] = f'{unique}@{site_host or self.site_host}'

        data = self.hooks.apply_filters('avoine_sso_login.user.create', data, identity, profile)
        if not data:
            return None

        user = get_user_model()()
        apply_user_data(user, data)
        user.set_unusable_password()

        try:
            with transaction.atomic():
                user.save()
                self.save_meta(user, identity, data.get('display_name'), mapping_key)
        except DatabaseError as e:
            existing = self.find_user(mapping_key) if isinstance(e, IntegrityError) else None
            if existing is not None:
                logger.info('User for mapping id %s was provisioned concurrently', mapping_key)
                return existing
            logger.warning('Could not create user for mapping id %s: %s', mapping_key, e)
            return None

        logger.info('Provisioned user %s for mapping id %s', user.pk, mapping_key)
        notify(sso_user_created, sender=self.__class__, user=user, identity=identity, profile=profile)
        return user

    def update_user(self, user, identity, profile):
        data = self.build_user_data(identity, profile)
        if data is None:
            return False

        apply_user_data(user, data)
        try:
            with transaction.atomic():
                user.save()
                self.save_meta(user, identity, data.get('display_name'))
        except DatabaseError as e:
            logger.warning('Could not update user %s: %s', user.pk, e)
            return False
        return True

    def save_meta(self, user, identity, display_name=None, mapping_key=None):
        if mapping_key is not None:
            UserMeta.objects.set_value(user, MAPPING_ID_KEY, mapping_key)
        UserMeta.objects.set_value(user, IDP_KEY, identity.idp)
        UserMeta.objects.set_value(user, ssoid_key(identity.idp), identity.id)
        UserMeta.objects.set_value(user, local_id_key(identity.idp), identity.local_id)
        if display_name:
            UserMeta.objects.set_value(user, DISPLAY_NAME_KEY, display_name)
