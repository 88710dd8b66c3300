"""Tests for host resolution and shared HTTP helpers"""

import pytest

from lvBridge.api.common import (
    to_lvapi_host, base_headers, parse_json, error_message, AGENT, DEFAULT_HOST
)
from lvBridge.core.exceptions import APIConnectionError, ProtocolError

from .conftest import FakeResponse


class TestHostResolution:

    @pytest.mark.parametrize('server,expected', [
        ('US', 'api-us.libreview.io'),
        ('eu', 'api-eu.libreview.io'),
        ('Ca', 'api-ca.libreview.io'),
    ])
    def test_region_codes(self, server, expected):
        assert to_lvapi_host(server) == expected

    def test_explicit_hostname_kept(self):
        assert to_lvapi_host('api-ap.libreview.io') == 'api-ap.libreview.io'

    def test_unknown_or_missing_falls_back(self):
        assert to_lvapi_host(None) == DEFAULT_HOST
        assert to_lvapi_host('') == DEFAULT_HOST
        assert to_lvapi_host('mars') == DEFAULT_HOST


class TestHeaders:

    def test_bearer_only_with_token(self):
        assert 'Authorization' not in base_headers()
        headers = base_headers('abc')
        assert headers['Authorization'] == 'Bearer abc'
        assert headers['User-Agent'] == AGENT


class TestParseJson:

    def test_server_error_is_transient(self):
        with pytest.raises(APIConnectionError) as exc_info:
            parse_json(FakeResponse({'status': 0}, status_code=502), 'login')
        assert exc_info.value.retryable
        assert exc_info.value.stage == 'login'

    def test_non_json_body(self):
        with pytest.raises(ProtocolError):
            parse_json(FakeResponse(text='<html>maintenance</html>'), 'login')

    def test_non_object_body(self):
        with pytest.raises(ProtocolError):
            parse_json(FakeResponse([1, 2]), 'login')

    def test_error_message(self):
        assert error_message({'error': {'message': 'NotAuthenticated'}}) == 'NotAuthenticated'
        assert error_message({'error': 'boom'}) == 'boom'
        assert error_message({'data': {}}) is None
