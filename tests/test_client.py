import unittest
import sys
import os
from unittest import mock

import requests
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import ProgressionClient, SyncClient
from errors import SyncFailure

class SyncClientTest(unittest.TestCase):
    def setUp(self) -> None:
        self.client = SyncClient('https://sync.example/', token='abc', timeout=5)

    def response(self, ok=True, body=None):
        resp = mock.Mock()
        resp.ok = ok
        if body is None:
            resp.json.side_effect = ValueError('no json')
        else:
            resp.json.return_value = body
        return resp

    def test_submit_batch_posts_events(self) -> None:
        with mock.patch('client.requests.post', return_value=self.response(body={'ok': True})) as post:
            self.assertTrue(self.client.submit_batch([{'id': '1'}]))
        args, kwargs = post.call_args
        self.assertEqual(args[0], 'https://sync.example/sync/batch')
        self.assertEqual(kwargs['json'], {'events': [{'id': '1'}]})
        self.assertEqual(kwargs['headers'], {'Authorization': 'Bearer abc'})
        self.assertEqual(kwargs['timeout'], 5)

    def test_rejections(self) -> None:
        with mock.patch('client.requests.post', return_value=self.response(ok=False)):
            self.assertFalse(self.client.submit_batch([]))
        with mock.patch('client.requests.post', return_value=self.response(body={'ok': False})):
            self.assertFalse(self.client.submit_batch([]))
        with mock.patch('client.requests.post', return_value=self.response()):
            self.assertTrue(self.client.submit_batch([]))

    def test_network_error_raises_sync_failure(self) -> None:
        with mock.patch('client.requests.post', side_effect=requests.ConnectionError('down')):
            with self.assertRaises(SyncFailure):
                self.client.submit_batch([])

class ProgressionClientTest(unittest.TestCase):
    def test_log_session(self) -> None:
        resp = mock.Mock()
        resp.json.return_value = {'streak': 1}
        with mock.patch('client.requests.post', return_value=resp) as post:
            body = ProgressionClient('http://testserver').log_session('m1', 'YES', date='2024-01-01')
        self.assertEqual(body, {'streak': 1})
        args, kwargs = post.call_args
        self.assertEqual(args[0], 'http://testserver/machines/m1/sessions')
        self.assertEqual(kwargs['params']['date'], '2024-01-01')
        resp.raise_for_status.assert_called_once()

if __name__ == '__main__':
    unittest.main()
