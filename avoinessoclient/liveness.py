import logging

from django.conf import settings

from avoinessoclient.conf import SsoConfig
from avoinessoclient.hooks import hooks as default_hooks
from avoinessoclient.identity import IdentityResolver
from avoinessoclient.models import UserMeta
from avoinessoclient.signals import notify, sso_user_is_active_checked
from avoinessoclient.users import IDP_KEY, ssoid_key

logger = logging.getLogger(__name__)

ACTIVE = 'active'
NOT_ACTIVE = 'not-active'


def cache_key(user_id):
    return f'avoine_sso_login:user_activity:{user_id}'


class LivenessChecker:
    """Asks the SSO service whether a user's remote session is still valid.

    The remote service is the authority. Its silence means active; any
    failure to reach it means not active.
    """

    def __init__(self, resolver=None, hooks=None, cache=None):
        self.resolver = resolver or IdentityResolver()
        self.hooks = default_hooks if hooks is None else hooks
        self.cache = cache if cache is not None else SsoConfig(self.hooks).cache()

    def is_active(self, user):
        if user is None or not getattr(user, 'pk', None):
            return False

        # Both answers are trusted until the entry expires.
        cached = self.cache.get(cache_key(user.pk))
        if cached == ACTIVE:
            return True
        if cached == NOT_ACTIVE:
            return False

        idp = UserMeta.objects.get_value(user, IDP_KEY)
        if not idp:
            return False

        ssoid = UserMeta.objects.get_value(user, ssoid_key(idp))
        if not ssoid:
            return False

        profile = self.resolver.fetch_profile(ssoid)
        if profile is None:
            logger.info('Could not fetch SSO profile for user %s, treating as not active', user.pk)
            return False

        active = bool(self.hooks.apply_filters('avoine_sso_login.user.is_active', True, user, ssoid, profile))
        notify(sso_user_is_active_checked, sender=self.__class__, user=user, identity=None, active=active)

        self.cache.set(cache_key(user.pk), ACTIVE if active else NOT_ACTIVE, self.expiration(user))
        return active

    def is_remote_user_active(self, identity, profile=None):
        if identity is None:
            return False

        if profile is None:
            profile = self.resolver.fetch_profile(identity.id)
        if profile is None:
            return False

        active = bool(self.hooks.apply_filters('avoine_sso_login.login.user_is_active', True, identity, profile))
        notify(sso_user_is_active_checked, sender=self.__class__, user=None, identity=identity, active=active)
        return active

    def mark_active(self, user):
        self.cache.set(cache_key(user.pk), ACTIVE, self.expiration(user))

    def expiration(self, user):
        return self.hooks.apply_filters('avoine_sso_login.user.is_active.expiration',
                                        settings.SESSION_COOKIE_AGE, user)
