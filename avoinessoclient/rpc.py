import logging
import uuid

import requests

from avoinessoclient.conf import SsoConfig

logger = logging.getLogger(__name__)

METHOD_GET_USER = 'GetUser'
METHOD_GET_USER_DATA = 'GetUserData'


class RpcClient:
    """JSON-RPC client for the Avoine SSO service.

    Every failure is reported as ``None``; nothing is raised to the caller
    and nothing is retried.
    """

    def __init__(self, config=None, session=None):
        self.config = config or SsoConfig()
        self.session = session or requests.Session()

    def build_envelope(self, remote_id, method):
        return {
            'id': str(uuid.uuid4()),
            'method': method,
            'params': [self.config.api_key(), remote_id],
            'jsonrpc': '2.0',
        }

    def call(self, remote_id=None, method=METHOD_GET_USER):
        api_url = self.config.api_url()
        if not self.config.api_key() or not api_url:
            logger.error('Avoine SSO API key or URL is not configured')
            return None

        try:
            response = self.session.post(api_url, json=self.build_envelope(remote_id, method),
                                         timeout=self.config.api_timeout())
        except requests.RequestException as e:
            logger.warning('%s call to %s failed: %s', method, api_url, e)
            return None

        if response.status_code != 200:
            logger.warning('%s call returned HTTP %s', method, response.status_code)
            return None

        if not response.content:
            logger.warning('%s call returned an empty body', method)
            return None

        try:
            envelope = response.json()
        except ValueError:
            logger.warning('%s call returned a body that is not JSON', method)
            return None

        if not isinstance(envelope, dict) or envelope.get('id') is None:
            logger.warning('%s response has no request id', method)
            return None

        if envelope.get('result') is None:
            logger.warning('%s response has no result', method)
            return None

        return envelope['result']
