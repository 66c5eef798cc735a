import logging
from collections import defaultdict

from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

# Filter names used by earlier releases. They are still applied, but before
# the current name so the current name has the last word.
LEGACY_FILTERS = {
    'avoine_sso_login.service.id': ['avoine_sso_service_id'],
    'avoine_sso_login.service.domain': ['avoine_sso_service_domain'],
    'avoine_sso_login.api.key': ['avoine_sso_communications_key'],
    'avoine_sso_login.login.return_url': ['avoine_sso_login_return_url'],
    'avoine_sso_login.logout.url': ['avoine_sso_logout_url'],
    'avoine_sso_login.logout.message': ['avoine_sso_logout_message'],
    'avoine_sso_login.failed.redirect_url': ['avoine_sso_login_redirect_failed'],
    'avoine_sso_login.login.user_is_active': ['avoine_sso_login_check_is_user_active'],
    'avoine_sso_login.user.is_active': ['avoine_sso_is_user_active'],
    'avoine_sso_login.user.is_active.expiration': ['avoine_sso_is_user_active_expiration'],
    'avoine_sso_login.user.mapping_id': ['avoine_sso_user_mapping_id'],
    'avoine_sso_login.user.create': ['avoine_sso_create_userdata'],
}


class HookRegistry:
    """Named extension points that let a site override computed values.

    Every callback registered for a name receives the current value followed
    by the context arguments of that extension point, and returns the value
    handed to the next callback. Callbacks run by ascending priority, ties
    in registration order.
    """

    def __init__(self, aliases=None):
        self.aliases = LEGACY_FILTERS if aliases is None else aliases
        self._filters = defaultdict(list)
        self._added = 0
        self._loaded = set()

    def add_filter(self, name, callback, priority=10):
        self._filters[name].append((priority, self._added, callback))
        self._filters[name].sort(key=lambda entry: entry[:2])
        self._added += 1
        return callback

    def remove_filter(self, name, callback):
        before = len(self._filters[name])
        self._filters[name] = [e for e in self._filters[name] if e[2] != callback]
        return len(self._filters[name]) != before

    def has_filter(self, name):
        return bool(self._filters.get(name))

    def filter(self, name, priority=10):
        """Decorator form of add_filter."""
        def decorator(callback):
            return self.add_filter(name, callback, priority)
        return decorator

    def apply_filters(self, name, value, *args):
        for legacy_name in self.aliases.get(name, ()):
            value = self._run(legacy_name, value, args)
        return self._run(name, value, args)

    def _run(self, name, value, args):
        for _, _, callback in self._filters.get(name, ()):
            value = callback(value, *args)
        return value

    def load_from_settings(self, filters):
        # {'filter.name': ['dotted.path.to.callable', ...]}
        for name, paths in filters.items():
            if isinstance(paths, str):
                paths = [paths]
            for path in paths:
                if (name, path) in self._loaded:
                    continue
                self._loaded.add((name, path))
                self.add_filter(name, import_string(path))
                logger.debug('Registered filter %s for %s', path, name)

    def clear(self):
        self._filters.clear()
        self._loaded.clear()


hooks = HookRegistry()
