"""Helpers for templates and other apps."""
from django.contrib.auth import get_user_model

from avoinessoclient import users
from avoinessoclient.conf import SsoConfig
from avoinessoclient.liveness import LivenessChecker


def get_login_url(return_url=None, request=None):
    """SSO login URL that brings the user back to ``return_url`` (the home page by default)."""
    return SsoConfig().login_url(return_url, request)


def get_logout_url():
    return SsoConfig().logout_url()


def _get_user(user):
    if user is None or hasattr(user, 'pk'):
        return user
    return get_user_model().objects.filter(pk=user).first()


def is_sso_user(user):
    """True if ``user`` (an instance or a primary key) logged in through SSO."""
    return users.is_sso_user(_get_user(user))


def is_sso_user_active(user):
    """True if the SSO service still considers the user's session valid."""
    return LivenessChecker().is_active(_get_user(user))
