"""Tests for the periodic runner and the hosted-plugin adapter"""

import threading
from unittest.mock import Mock, patch

import pytest

from lvBridge.sync.scheduler import PeriodicRunner
from lvBridge.sync.plugin import (
    LvBridgePlugin, init, is_configured, make_store, make_find_last_record
)


@pytest.fixture
def settings():
    return {
        'userName': 'me@example.com',
        'password': 'secret',
        'trustedDeviceToken': 'device',
        'interval': 900000,
        'maxFailures': 4,
    }


class TestPeriodicRunner:

    def test_runs_until_stopped(self):
        engine = Mock()
        runner = PeriodicRunner(engine, interval=0)

        def run():
            if runner.runs >= 2:
                runner.stop()

        engine.run.side_effect = run
        runner.run_forever()

        assert engine.run.call_count == 3
        assert runner.runs == 3

    def test_interval_defaults_to_config(self):
        engine = Mock()
        engine.config.interval = 1800
        assert PeriodicRunner(engine).interval == 1800

    def test_background_thread(self):
        ran = threading.Event()
        engine = Mock()
        engine.run.side_effect = ran.set
        runner = PeriodicRunner(engine, interval=60).start()
        assert ran.wait(5)
        runner.stop(timeout=5)
        assert not runner.running
        engine.run.assert_called_once_with()


class TestPlugin:

    def test_disabled_without_credentials(self):
        assert init(None) is None
        assert init({'userName': 'x'}) is None

    def test_pro_settings_count(self):
        assert is_configured({'proUserName': 'a', 'proPassword': 'b', 'proTrustedDeviceToken': 'c'})

    def test_build_config(self, settings):
        entries = Mock()
        config = init(settings).build_config(entries)

        assert config.login.account_name == 'me@example.com'
        assert config.interval == 900
        assert config.max_failures == 4
        assert config.store is not None
        config.validate_for_upload()

    def test_store_writes_to_entries(self):
        entries = Mock()
        make_store(entries)([{'sgv': 90}])
        entries.create.assert_called_once_with([{'sgv': 90}])

    def test_find_last_record(self):
        entries = Mock()
        entries.list.return_value = [{'date': 1632846647000}]

        assert make_find_last_record(entries)() == 1632846647000
        query = entries.list.call_args[0][0]
        assert query['find']['device']['$regex'] == 'lvBridge'
        assert query['count'] == 1

    def test_find_last_record_empty(self):
        entries = Mock()
        entries.list.return_value = []
        assert make_find_last_record(entries)() is None

    def test_start_registers_teardown(self, settings):
        bus = Mock()
        plugin = LvBridgePlugin(settings, bus)

        with patch('lvBridge.sync.plugin.BridgeEngine') as engine_cls, \
                patch('lvBridge.sync.plugin.PeriodicRunner') as runner_cls:
            runner_cls.return_value.start.return_value = runner_cls.return_value
            plugin.start_engine(Mock())

        engine_cls.assert_called_once()
        bus.on.assert_called_once_with('teardown', plugin.stop)
        plugin.stop()
        runner_cls.return_value.stop.assert_called_once_with()

    def test_second_start_reuses_running_runner(self, settings):
        bus = Mock()
        plugin = LvBridgePlugin(settings, bus)

        with patch('lvBridge.sync.plugin.BridgeEngine') as engine_cls:
            engine_cls.return_value.config.interval = 60
            first = plugin.start_engine(Mock())
            second = plugin.start_engine(Mock())

            assert second is first
            engine_cls.assert_called_once()
            bus.on.assert_called_once_with('teardown', plugin.stop)

            plugin.stop()

        assert not first.running

    def test_restart_after_stop(self, settings):
        bus = Mock()
        plugin = LvBridgePlugin(settings, bus)

        with patch('lvBridge.sync.plugin.BridgeEngine') as engine_cls:
            engine_cls.return_value.config.interval = 60
            first = plugin.start_engine(Mock())
            plugin.stop()
            second = plugin.start_engine(Mock())
            plugin.stop()

        assert second is not first
        assert engine_cls.call_count == 2
        bus.on.assert_called_once_with('teardown', plugin.stop)
