from django.contrib.auth.backends import ModelBackend

from avoinessoclient.signals import notify, sso_password_login_prevented
from avoinessoclient.users import is_sso_user


class AvoineSsoModelBackend(ModelBackend):
    """ModelBackend that refuses password logins for SSO users.

    SSO users may only log in through the SSO service. Session lookups are
    unaffected, so this backend can also be the one SSO sessions are bound to.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        user = super().authenticate(request, username=username, password=password, **kwargs)
        if user is not None and is_sso_user(user):
            notify(sso_password_login_prevented, sender=self.__class__, user=user)
            return None
        return user
