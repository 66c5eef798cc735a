import json
import os
from unittest.mock import Mock, patch

import requests
from django.test import SimpleTestCase, override_settings

from avoinessoclient.conf import SsoConfig
from avoinessoclient.hooks import HookRegistry
from avoinessoclient.rpc import METHOD_GET_USER_DATA, RpcClient


def make_response(body, status_code=200):
    response = requests.Response()
    response.status_code = status_code
    if not isinstance(body, bytes):
        body = json.dumps(body).encode('utf-8')
    response._content = body
    response.encoding = 'utf-8'
    return response


class RpcClientTestCase(SimpleTestCase):
    def setUp(self):
        self.session = Mock()
        self.client = RpcClient(SsoConfig(HookRegistry()), session=self.session)

    def call_with(self, response):
        if isinstance(response, Exception):
            self.session.post.side_effect = response
        else:
            self.session.post.return_value = response
        return self.client.call('abc123', METHOD_GET_USER_DATA)

    def test_envelope(self):
        result = self.call_with(make_response({'id': 'x', 'result': {'saml.firstname': 'Ada'}}))
        self.assertEqual(result, {'saml.firstname': 'Ada'})

        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], 'https://tunnistus.avoine.fi/mmserver')
        envelope = kwargs['json']
        self.assertEqual(envelope['method'], 'GetUserData')
        self.assertEqual(envelope['params'], ['b54cc7b3e42b215d1792c300487f1cb1', 'abc123'])
        self.assertEqual(envelope['jsonrpc'], '2.0')
        self.assertEqual(len(envelope['id']), 36)
        self.assertEqual(kwargs['timeout'], 10.0)

    def test_request_ids_are_unique(self):
        self.assertNotEqual(self.client.build_envelope(None, 'GetUser')['id'],
                            self.client.build_envelope(None, 'GetUser')['id'])

    def test_null_remote_id_is_sent(self):
        self.session.post.return_value = make_response({'id': 'x', 'result': True})
        self.client.call(None, 'GetUser')
        self.assertEqual(self.session.post.call_args[1]['json']['params'][1], None)

    def test_transport_error(self):
        self.assertIsNone(self.call_with(requests.ConnectionError('down')))

    def test_timeout(self):
        self.assertIsNone(self.call_with(requests.Timeout('slow')))

    def test_non_200_status(self):
        self.assertIsNone(self.call_with(make_response({'id': 'x', 'result': {}}, status_code=500)))

    def test_empty_body(self):
        self.assertIsNone(self.call_with(make_response(b'')))

    def test_malformed_json(self):
        self.assertIsNone(self.call_with(make_response(b'{"id": "x", "result": ')))

    def test_body_not_an_object(self):
        self.assertIsNone(self.call_with(make_response(['id', 'result'])))

    def test_missing_id(self):
        self.assertIsNone(self.call_with(make_response({'result': {}})))

    def test_missing_result(self):
        self.assertIsNone(self.call_with(make_response({'id': 'x', 'error': 'nope'})))

    @override_settings(AVOINE_SSO_KEY='')
    @patch.dict(os.environ, {'AVOINE_SSO_KEY': ''})
    def test_no_request_without_key(self):
        self.assertIsNone(self.client.call('abc123'))
        self.session.post.assert_not_called()
