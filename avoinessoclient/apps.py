from django.apps import AppConfig
from django.conf import settings


class AvoineSsoClientConfig(AppConfig):
    name = 'avoinessoclient'
    verbose_name = 'Avoine SSO client'
    default_auto_field = 'django.db.models.AutoField'

    def ready(self):
        from django.contrib.auth.signals import user_logged_out

        from avoinessoclient.client import redirect_sso_user_to_remote_logout
        from avoinessoclient.hooks import hooks

        hooks.load_from_settings(getattr(settings, 'AVOINE_SSO_FILTERS', {}))
        user_logged_out.connect(redirect_sso_user_to_remote_logout,
                                dispatch_uid='avoinessoclient.remote_logout')
