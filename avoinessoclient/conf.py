import logging
import os
import urllib.parse

from django.conf import settings
from django.core.cache import caches
from django.shortcuts import resolve_url
from django.utils.http import url_has_allowed_host_and_scheme

from avoinessoclient.hooks import hooks as default_hooks

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_DOMAIN = 'tunnistus.avoine.fi'
DEFAULT_API_TIMEOUT = 10


class SsoConfig:
    """Effective SSO configuration.

    Values are read on every access so settings overrides take effect
    immediately. Django settings win over environment variables, and every
    value is passed through its filter before use.
    """

    def __init__(self, hooks=None):
        self.hooks = default_hooks if hooks is None else hooks

    def setting(self, name, default=None):
        value = getattr(settings, name, None)
        if value is None or value == '':
            value = os.environ.get(name)
        if value is None or value == '':
            return default
        return value

    def service_id(self):
        return self.hooks.apply_filters('avoine_sso_login.service.id',
                                        self.setting('AVOINE_SSO_SERVICE_ID'))

    def service_domain(self):
        return self.hooks.apply_filters('avoine_sso_login.service.domain',
                                        self.setting('AVOINE_SSO_SERVICE_DOMAIN', DEFAULT_SERVICE_DOMAIN))

    def api_key(self):
        return self.hooks.apply_filters('avoine_sso_login.api.key', self.setting('AVOINE_SSO_KEY'))

    def api_url(self):
        domain = self.service_domain()
        url = f'https://{domain}/mmserver' if domain else None
        return self.hooks.apply_filters('avoine_sso_login.api.url', url)

    def api_timeout(self):
        value = self.setting('AVOINE_SSO_API_TIMEOUT', DEFAULT_API_TIMEOUT)
        try:
            return float(value)
        except (TypeError, ValueError):
            logger.warning('Invalid AVOINE_SSO_API_TIMEOUT %r, using %s seconds', value, DEFAULT_API_TIMEOUT)
            return float(DEFAULT_API_TIMEOUT)

    def home_url(self):
        return self.setting('AVOINE_SSO_HOME_URL', '/')

    def check_activity(self):
        value = getattr(settings, 'AVOINE_SSO_CHECK_ACTIVITY', True)
        if isinstance(value, str):
            return value.lower() not in ('0', 'false', 'no', 'off', '')
        return bool(value)

    def cache(self):
        return caches[getattr(settings, 'AVOINE_SSO_CACHE', 'default')]

    def session_backend(self):
        return getattr(settings, 'AVOINE_SSO_AUTH_BACKEND', None) or settings.AUTHENTICATION_BACKENDS[0]

    def login_url(self, return_url=None, request=None):
        domain = self.service_domain()
        service_id = self.service_id()
        if not domain or not service_id:
            return None

        if not return_url:
            return_url = self.home_url()
            if request is not None:
                return_url = request.build_absolute_uri(return_url)
        return_url = self.hooks.apply_filters('avoine_sso_login.login.return_url', return_url)
        return_url = urllib.parse.quote_plus(return_url)
        return f'https://{domain}/sso-login/?service={service_id}&return={return_url}'

    def logout_url(self):
        domain = self.service_domain()
        if not domain:
            return None
        return self.hooks.apply_filters('avoine_sso_login.logout.url', f'https://{domain}/sso-logout/')

    def login_failed_redirect_url(self):
        return self.hooks.apply_filters('avoine_sso_login.failed.redirect_url', resolve_url(settings.LOGIN_URL))

    def allowed_redirect_hosts(self, request=None):
        hosts = {host for host in settings.ALLOWED_HOSTS if host and '*' not in host and not host.startswith('.')}
        if request is not None:
            hosts.add(request.get_host())
        domain = self.service_domain()
        if domain:
            hosts.add(domain)
        return hosts

    def safe_redirect_url(self, request, url, fallback):
        if url and url_has_allowed_host_and_scheme(
                url, allowed_hosts=self.allowed_redirect_hosts(request), require_https=request.is_secure()):
            return url
        return fallback
