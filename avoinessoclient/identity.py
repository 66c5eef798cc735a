import logging
from collections.abc import Mapping
from dataclasses import dataclass

from avoinessoclient.hooks import hooks as default_hooks
from avoinessoclient.rpc import METHOD_GET_USER, METHOD_GET_USER_DATA, RpcClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteIdentity:
    # SSO session id, identity provider tag and the provider's subject id.
    id: str
    idp: str
    local_id: str

    @classmethod
    def from_result(cls, result):
        if not isinstance(result, dict):
            return None
        values = {}
        for name in ('id', 'idp', 'local_id'):
            value = result.get(name)
            if value is None or value == '':
                return None
            values[name] = str(value)
        return cls(**values)


class RemoteProfile(Mapping):
    """Read-only view of the attributes returned by GetUserData.

    Attribute names are qualified by the identity provider, e.g.
    ``saml.firstname``.
    """

    def __init__(self, data):
        self._data = dict(data)

    @classmethod
    def from_result(cls, result):
        if not isinstance(result, dict):
            return None
        return cls(result)

    def __getitem__(self, key):
        return self._data[key]

    def __iter__(self):
        return iter(self._data)

    def __len__(self):
        return len(self._data)

    def __repr__(self):
        return f'RemoteProfile({self._data!r})'

    def attribute(self, idp, name):
        value = self._data.get(f'{idp}.{name}')
        if value is None or value == '':
            return None
        return value


class IdentityResolver:
    def __init__(self, rpc=None, hooks=None):
        self.rpc = rpc or RpcClient()
        self.hooks = default_hooks if hooks is None else hooks

    def validate(self, raw_id):
        raw_id = (raw_id or '').strip()
        if not raw_id:
            return None

        result = self.rpc.call(raw_id, METHOD_GET_USER)
        if result is None:
            return None

        identity = RemoteIdentity.from_result(result)
        if identity is None:
            logger.warning('GetUser result is missing identity fields')
        return identity

    def fetch_profile(self, remote_id):
        if not remote_id:
            return None

        result = self.rpc.call(remote_id, METHOD_GET_USER_DATA)
        if result is None:
            return None

        profile = RemoteProfile.from_result(result)
        if profile is None:
            logger.warning('GetUserData result is not an attribute object')
        return profile

    def resolve_mapping_key(self, identity, profile=None):
        """Return the key that joins ``identity`` to exactly one local user.

        Filters on ``avoine_sso_login.user.mapping_id`` must be pure functions
        of the identity and profile, otherwise returning users will not be
        recognised.
        """
        if profile is None:
            profile = self.fetch_profile(identity.id)
        if profile is None:
            return None

        mapping_key = self.hooks.apply_filters('avoine_sso_login.user.mapping_id',
                                               identity.local_id, identity, profile)
        if not mapping_key:
            return None
        return str(mapping_key)
