"""Shared fixtures: a scripted stand-in for requests.Session."""

import json

import arrow
import pytest
import requests
from requests.structures import CaseInsensitiveDict

from lvBridge.core.config import BridgeConfig, LoginConfig, NightscoutConfig
from lvBridge.core.session import SessionState, Identity, Subject, DataSource


class FakeResponse:
    """Minimal requests.Response look-alike."""

    def __init__(self, json_data=None, status_code=200, text=None, headers=None):
        self._json = json_data
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers or {})
        if text is None and json_data is not None:
            text = json.dumps(json_data)
        self.text = text or ''

    def json(self):
        if self._json is None:
            return json.loads(self.text)
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)


class FakeHttp:
    """Replays queued responses in order and records every request."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []

    def queue(self, *responses):
        self.responses.extend(responses)

    def request(self, method, url, **kwargs):
        self.calls.append({'method': method, 'url': url, **kwargs})
        if not self.responses:
            raise AssertionError(f"unexpected request: {method} {url}")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def probe_ok():
    return FakeResponse(headers={'lvapi': '1.2.3'}, text='')


def login_ok(user_id='user-1', account_type='pat', token='token-1', duration=3600000):
    return FakeResponse({
        'status': 0,
        'data': {
            'user': {'id': user_id, 'accountType': account_type},
            'authTicket': {'token': token, 'duration': duration},
        }
    })


def report_settings(sources=None):
    sources = sources if sources is not None else {
        'dev-a': {'type': 40068, 'firmwareVersion': '2.4.5', 'daysData': [0, 1]},
    }
    return FakeResponse({'status': 0, 'data': {'dataSources': sources}})


def report_html(data):
    return FakeResponse(
        text=f'<html><script>window.DataForLibreDailyLog = {json.dumps({"Data": data})};</script></html>'
    )


@pytest.fixture
def http():
    return FakeHttp()


@pytest.fixture
def state():
    return SessionState(server='api.libreview.io')


@pytest.fixture
def authed_state():
    """A state with a valid token and a bound self-monitoring patient."""
    s = SessionState(server='api.libreview.io')
    s.auth_token = 'token-1'
    s.token_expires = arrow.utcnow().shift(hours=1)
    s.identity = Identity(id='user-1', account_type='pat')
    s.subject = Subject(id='user-1')
    return s


@pytest.fixture
def primary_state(authed_state):
    source = DataSource(id='dev-a', type_id=40068, firmware_version='2.4.5', days_data=[0, 1])
    authed_state.subject.data_sources = {'dev-a': source}
    authed_state.subject.primary_device = source
    return authed_state


@pytest.fixture
def login_config():
    return LoginConfig(account_name='me@example.com', password='secret', trusted_device_token='device-token')


@pytest.fixture
def config(login_config):
    stored = []
    cfg = BridgeConfig(
        login=login_config,
        time_offset_minutes=0,
        store=stored.append,
    )
    cfg.stored = stored
    return cfg


@pytest.fixture
def endpoint_config(login_config):
    return BridgeConfig(
        login=login_config,
        nightscout=NightscoutConfig(endpoint='https://ns.example.com', api_secret='a-long-api-secret'),
        time_offset_minutes=0,
    )


ENV_NAMES = [
    'LVBRIDGE_USER_NAME', 'LVBRIDGE_PRO_USER_NAME', 'LVBRIDGE_PASSWORD', 'LVBRIDGE_PRO_PASSWORD',
    'LVBRIDGE_TRUSTED_DEVICE_TOKEN', 'LVBRIDGE_PRO_TRUSTED_DEVICE_TOKEN', 'LVBRIDGE_PATIENT_ID',
    'LVBRIDGE_PRO_CREDENTIALS_URL', 'LVBRIDGE_PRO_CREDENTIALS_KEY', 'LVBRIDGE_SERVER', 'API_SECRET',
    'LVBRIDGE_LOG_LEVEL', 'LVBRIDGE_INTERVAL', 'LVBRIDGE_MAX_FAILURES', 'LVBRIDGE_FIRST_FULL_DAYS',
    'LVBRIDGE_TIME_OFFSET', 'LVBRIDGE_TIMEOUT', 'LVBRIDGE_DEBUG', 'NS', 'WEBSITE_HOSTNAME',
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Unset every bridge variable; returns a .env path that does not exist"""
    from lvBridge.utils.env_utils import HOST_PREFIX

    # setenv first so monkeypatch also removes whatever a loaded .env adds
    for name in ENV_NAMES:
        for candidate in (name, name.lower(), HOST_PREFIX + name, HOST_PREFIX + name.lower()):
            monkeypatch.setenv(candidate, '')
            monkeypatch.delenv(candidate)
    return tmp_path / 'missing.env'
