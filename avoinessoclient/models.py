from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import models

MAPPING_ID_KEY = 'sso_mapping_id'


class UserMetaManager(models.Manager):
    def get_value(self, user, key, default=None):
        if user is None or user.pk is None:
            return default
        meta = self.filter(user=user, key=key).first()
        return default if meta is None else meta.value

    def set_value(self, user, key, value):
        meta, _ = self.update_or_create(user=user, key=key, defaults={'value': value})
        return meta

    def find_user(self, key, value):
        return get_user_model().objects.filter(sso_meta__key=key, sso_meta__value=value).first()


# Key/value metadata attached to a local user by the SSO login.
class UserMeta(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='sso_meta')
    key = models.CharField(max_length=191)
    value = models.CharField(max_length=255, blank=True, default='')
    created_on = models.DateTimeField(auto_now_add=True)
    updated_on = models.DateTimeField(auto_now=True)

    objects = UserMetaManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['user', 'key'], name='avoinessoclient_unique_user_key'),
            # One local user per mapping id, even when logins race.
            models.UniqueConstraint(fields=['value'], condition=models.Q(key=MAPPING_ID_KEY),
                                    name='avoinessoclient_unique_mapping_id'),
        ]

    def __str__(self):
        return f'{self.user_id}:{self.key}'
