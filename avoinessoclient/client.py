import logging

from django.conf import settings
from django.contrib import auth
from django.contrib.auth.signals import user_login_failed
from django.http import HttpResponse, HttpResponseRedirect
from django.shortcuts import resolve_url
from django.utils.html import format_html

from avoinessoclient.conf import SsoConfig
from avoinessoclient.hooks import hooks as default_hooks
from avoinessoclient.identity import IdentityResolver
from avoinessoclient.liveness import LivenessChecker
from avoinessoclient.rpc import RpcClient
from avoinessoclient.signals import (
    notify, sso_login_after, sso_login_before, sso_login_failed, sso_logout_after)
from avoinessoclient.users import UserProvisioner, is_sso_user

logger = logging.getLogger(__name__)

LOGOUT_PATH = 'sso-logout'

# Request attributes used to coordinate with the user_logged_out receiver.
SKIP_REMOTE_LOGOUT = 'avoine_sso_skip_remote_logout'
REMOTE_LOGOUT_URL = 'avoine_sso_remote_logout_url'


def is_logout_path(path):
    return path.strip('/') == LOGOUT_PATH


def logout_locally(request):
    # End the local session without bouncing the browser to the SSO logout.
    setattr(request, SKIP_REMOTE_LOGOUT, True)
    auth.logout(request)


def redirect_sso_user_to_remote_logout(sender, request=None, user=None, **kwargs):
    """Receiver for user_logged_out.

    A logout started by the site also has to end the SSO session, so the
    middleware swaps the response for a redirect to the SSO logout page.
    """
    if request is None or getattr(request, SKIP_REMOTE_LOGOUT, False):
        return
    if not is_sso_user(user):
        return
    url = SsoConfig().logout_url()
    if url:
        setattr(request, REMOTE_LOGOUT_URL, url)


class AvoineSsoClientMiddleware:
    class LoginFailed(Exception):
        pass

    def __init__(self, get_response, config=None, hooks=None, rpc=None, cache=None):
        self.get_response = get_response
        self.hooks = default_hooks if hooks is None else hooks
        self.config = config or SsoConfig(self.hooks)
        self.resolver = IdentityResolver(rpc or RpcClient(self.config), self.hooks)
        self.liveness = LivenessChecker(self.resolver, self.hooks, cache)
        self.provisioner = UserProvisioner(self.resolver, self.hooks)

    def __call__(self, request):
        if request.method == 'POST' and 'ssoid' in request.POST:
            return self.sso_login(request)
        elif is_logout_path(request.path):
            response = self.sso_logout(request)
            if response is not None:
                return response
        return self.sso_passthru(request)

    def sso_login(self, request):
        try:
            self.login_sso_user(request, request.POST.get('ssoid'))
        except AvoineSsoClientMiddleware.LoginFailed as e:
            return self.handle_failed_login(request, str(e))

        # Redirect so the page the SSO service posted to is loaded with GET.
        url = self.hooks.apply_filters('avoine_sso_login.login.redirect_url',
                                       request.get_full_path(), request, request.user)
        return HttpResponseRedirect(self.config.safe_redirect_url(request, url, self.config.home_url()))

    def login_sso_user(self, request, ssoid):
        identity = self.resolver.validate(ssoid)
        if identity is None:
            raise AvoineSsoClientMiddleware.LoginFailed('invalid_ssoid')

        # A failed fetch is not retried further down.
        profile = self.resolver.fetch_profile(identity.id)
        if profile is None or not self.liveness.is_remote_user_active(identity, profile):
            raise AvoineSsoClientMiddleware.LoginFailed('inactive_sso_user')

        user = self.provisioner.resolve_or_create(identity, site_host=request.get_host().split(':')[0],
                                                  profile=profile)
        if user is None:
            raise AvoineSsoClientMiddleware.LoginFailed('no_local_user')

        if not self.provisioner.update_user(user, identity, profile):
            raise AvoineSsoClientMiddleware.LoginFailed('user_update_failed')

        notify(sso_login_before, sender=self.__class__, user=user, identity=identity)

        auth.login(request, user, backend=self.config.session_backend())
        # Same as "remember me": the session outlives the browser.
        request.session.set_expiry(settings.SESSION_COOKIE_AGE)
        # Overwrite a "not-active" left over from an earlier session.
        self.liveness.mark_active(user)

        notify(sso_login_after, sender=self.__class__, user=user, identity=identity)
        logger.info('User %s logged in via SSO (idp %s)', user.pk, identity.idp)
        return user

    def handle_failed_login(self, request, reason):
        logger.warning('SSO login failed: %s', reason)
        user_login_failed.send(sender=__name__, credentials={}, request=request)
        logout_locally(request)
        notify(sso_login_failed, sender=self.__class__, request=request, reason=reason)

        fallback = resolve_url(settings.LOGIN_URL)
        url = self.config.safe_redirect_url(request, self.config.login_failed_redirect_url(), fallback)
        return HttpResponseRedirect(url)

    def sso_logout(self, request):
        # Requested from a hidden iframe on the SSO logout page.
        if not request.user.is_authenticated:
            return None

        if not is_sso_user(request.user):
            return HttpResponseRedirect(self.config.home_url())

        user = request.user
        logout_locally(request)
        notify(sso_logout_after, sender=self.__class__, user=user)
        logger.info('User %s logged out by the SSO service', user.pk)

        message = format_html('You have been logged out. <a href="{}">Back to the site.</a>',
                              self.config.home_url())
        message = self.hooks.apply_filters('avoine_sso_login.logout.message', message)

        # The iframe only needs a 200, whatever the body says.
        response = HttpResponse(message, status=200)
        response.xframe_options_exempt = True
        return response

    # Lets the request proceed, but logs out SSO users whose remote session has ended.
    def sso_passthru(self, request):
        user = getattr(request, 'user', None)
        if (self.config.check_activity() and user is not None and user.is_authenticated
                and is_sso_user(user) and not self.liveness.is_active(user)):
            logger.info('SSO session of user %s is no longer active', user.pk)
            logout_locally(request)

        response = self.get_response(request)

        url = getattr(request, REMOTE_LOGOUT_URL, None)
        if url:
            url = self.config.safe_redirect_url(request, url, None)
            if url:
                return HttpResponseRedirect(url)
        return response
