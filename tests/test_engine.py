"""End-to-end tests of the sync engine against scripted HTTP responses"""

import arrow
import pytest

from lvBridge.core.engine import BridgeEngine
from lvBridge.core.exceptions import LoginRejected, UploadError
from lvBridge.io.nightscout import hash_secret
from lvBridge.io.sinks import NOTHING_TO_UPLOAD
from lvBridge.utils.time_utils import initial_watermark

from .conftest import FakeResponse, FakeHttp, probe_ok, login_ok, report_settings, report_html

REPORT_URLS = ['u0', 'u1', 'u2', 'u3', 'u4', 'https://reports.example.com/daily']

GLUCOSE = {'Days': [
    {'Glucose': [{'Timestamp': 1632846647, 'Value': 14.8}]},
    {'Glucose': [{'Timestamp': 1632846947, 'Value': 5.0}]},
]}


def report_responses(data=GLUCOSE):
    return [
        FakeResponse({'status': 0, 'data': {'url': 'https://poll.example.com/p'}}),
        FakeResponse({'data': {'lp': 'https://channel.example.com/lp'}}),
        FakeResponse({'op': 'started'}),
        FakeResponse({'op': 'update', 'args': {'urls': REPORT_URLS}}),
        report_html(data),
    ]


def make_engine(config, http):
    sleeps = []
    engine = BridgeEngine(config, http=http, sleep=sleeps.append)
    engine.sleeps = sleeps
    return engine


class TestSync:

    def test_full_run_through_store(self, config):
        http = FakeHttp([probe_ok(), login_ok(), report_settings()] + report_responses())
        engine = make_engine(config, http)
        engine.state.watermark = 1632800000

        assert engine.run() is None

        assert http.calls[3]['json']['StartDates'] == [1632800001]
        entries = config.stored[0]
        assert [e['sgv'] for e in entries] == [267, 90]
        assert [e['date'] for e in entries] == [1632846647000, 1632846947000]
        assert entries[0]['device'] == 'lvBridge/1.0.0/40068/2.4.5'
        assert engine.state.watermark == 1632846947
        assert http.responses == []

    def test_full_run_through_nightscout(self, endpoint_config):
        http = FakeHttp([
            probe_ok(), login_ok(), report_settings(),
            FakeResponse([{'date': 1632840000000}]),
        ] + report_responses() + [FakeResponse([{'ok': 1}])])
        engine = make_engine(endpoint_config, http)

        assert engine.run() == [{'ok': 1}]

        report_request = http.calls[4]
        assert report_request['json']['StartDates'] == [1632840000 + 1]
        upload = http.calls[-1]
        assert upload['method'] == 'POST'
        assert upload['url'] == 'https://ns.example.com/api/v1/entries.json'
        assert upload['headers']['api-secret'] == hash_secret('a-long-api-secret')
        assert len(upload['json']) == 2

    def test_first_run_starts_at_midnight_minus_days(self, config):
        http = FakeHttp([probe_ok(), login_ok(), report_settings()] + report_responses({'Days': []}))
        engine = make_engine(config, http)
        expected = initial_watermark(config.first_full_days)

        assert engine.sync() == NOTHING_TO_UPLOAD

        assert http.calls[3]['json']['StartDates'] == [expected + 1]
        assert engine.state.watermark == expected
        assert config.stored == []

    def test_token_is_reused_between_runs(self, config):
        http = FakeHttp([probe_ok(), login_ok(), report_settings()] + report_responses())
        engine = make_engine(config, http)
        engine.run()

        http.queue(report_settings(), *report_responses({'Days': []}))
        engine.run()

        methods = [c['method'] for c in http.calls]
        assert methods.count('OPTIONS') == 1
        assert http.responses == []

    def test_redirect_is_retried_on_new_host(self, config):
        redirect = FakeResponse({'status': 0, 'data': {'redirect': True, 'region': 'eu'}})
        http = FakeHttp([probe_ok(), redirect, probe_ok(), login_ok(), report_settings()] + report_responses())
        engine = make_engine(config, http)

        engine.sync()

        assert http.calls[2]['url'] == 'https://api-eu.libreview.io/auth/login'
        assert engine.sleeps[0] == pytest.approx(BridgeEngine.AUTH_MIN_DELAY)
        assert len(config.stored[0]) == 2

    def test_rejected_login_is_not_retried(self, config):
        refused = FakeResponse({'status': 2, 'error': {'message': 'NotAuthenticated'}})
        http = FakeHttp([probe_ok(), refused])
        engine = make_engine(config, http)

        with pytest.raises(LoginRejected):
            engine.fetch()
        assert len(http.calls) == 2
        assert engine.sleeps == []

    def test_run_swallows_failures(self, config):
        http = FakeHttp([FakeResponse(text='')])
        engine = make_engine(config, http)
        assert engine.run() is None


class TestWatermarkSafety:

    def test_failed_upload_restores_watermark(self, login_config):
        from lvBridge.core.config import BridgeConfig

        def failing_store(entries):
            raise UploadError("dashboard unavailable")

        config = BridgeConfig(login=login_config, time_offset_minutes=0, store=failing_store)
        http = FakeHttp([probe_ok(), login_ok(), report_settings()] + report_responses())
        engine = make_engine(config, http)
        engine.state.watermark = 1632800000

        with pytest.raises(UploadError):
            engine.sync()

        assert engine.state.watermark == 1632800000

    def test_overlapping_run_is_skipped(self, config):
        http = FakeHttp()
        engine = make_engine(config, http)

        engine._lock.acquire()
        try:
            assert engine.run() is None
        finally:
            engine._lock.release()
        assert http.calls == []


class TestLogin:

    def test_login_only(self, config):
        http = FakeHttp([probe_ok(), login_ok()])
        engine = make_engine(config, http)

        state = engine.login()

        assert state.auth_token == 'token-1'
        assert state.token_expires > arrow.utcnow()
        assert len(http.calls) == 2


class TestCredentialBundle:

    BUNDLE_URL = 'https://creds.example.com/bundle.json'

    @pytest.fixture
    def bundle_config(self):
        from lvBridge.core.config import BridgeConfig, LoginConfig

        stored = []
        config = BridgeConfig(
            login=LoginConfig(
                account_name='old@example.com',
                password='old',
                trusted_device_token='device-token',
                credentials_url=self.BUNDLE_URL,
                credentials_key='clinic-1'
            ),
            time_offset_minutes=0,
            store=stored.append,
        )
        config.stored = stored
        return config

    def refused(self):
        return FakeResponse({'status': 2, 'error': {'message': 'NotAuthenticated'}})

    def test_rejected_login_retried_with_rotated_credentials(self, bundle_config):
        bundle = FakeResponse({'clinic-1': {'accountName': 'new@example.com', 'password': 'new'}})
        http = FakeHttp(
            [probe_ok(), self.refused(), bundle, probe_ok(), login_ok(), report_settings()] + report_responses()
        )
        engine = make_engine(bundle_config, http)
        engine.state.watermark = 1632800000

        engine.sync()

        assert http.calls[2]['url'] == self.BUNDLE_URL
        assert http.calls[4]['json']['email'] == 'new@example.com'
        assert http.calls[4]['json']['password'] == 'new'
        assert engine.sleeps[0] == pytest.approx(BridgeEngine.AUTH_MIN_DELAY)
        assert len(bundle_config.stored[0]) == 2

    def test_cached_bundle_token_skips_login(self, bundle_config):
        expires = arrow.utcnow().shift(hours=2).int_timestamp * 1000
        bundle = FakeResponse({'clinic-1': {
            'authToken': 'cached-token',
            'tokenExpires': expires,
            'userId': 'user-1',
            'accountType': 'pat',
        }})
        http = FakeHttp([probe_ok(), self.refused(), bundle, report_settings()] + report_responses())
        engine = make_engine(bundle_config, http)
        engine.state.watermark = 1632800000

        engine.sync()

        after_bundle = http.calls[3:]
        assert not any(c['method'] == 'OPTIONS' for c in after_bundle)
        assert not any(c['url'].endswith('/auth/login') for c in after_bundle)
        assert http.calls[3]['headers']['Authorization'] == 'Bearer cached-token'
        assert engine.state.subject.id == 'user-1'
        assert len(bundle_config.stored[0]) == 2

    def test_rejections_exhaust_attempts(self, bundle_config):
        bundle = FakeResponse({'clinic-1': {'password': 'still-wrong'}})
        http = FakeHttp([
            probe_ok(), self.refused(),
            bundle, probe_ok(), self.refused(),
            bundle, probe_ok(), self.refused(),
        ])
        engine = make_engine(bundle_config, http)

        with pytest.raises(LoginRejected):
            engine.fetch()

        assert len(engine.sleeps) == bundle_config.max_failures - 1
        assert http.responses == []
