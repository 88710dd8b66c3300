"""
Adapter for running the bridge inside a hosting dashboard process

The host hands over its settings and, once started, an ``entries`` store
with ``create(records)`` and ``list(query)``. A host event bus with
``on("teardown", callback)`` stops the timer.
"""

import logging
from typing import Dict, Any, Optional, List

from ..api.common import AGENT_NAME
from ..core.config import BridgeConfig, LoginConfig
from ..core.engine import BridgeEngine
from .scheduler import PeriodicRunner

logger = logging.getLogger(__name__)


def _setting(settings: Dict[str, Any], name: str) -> Any:
    # Practice ("pro") accounts use pro-prefixed names
    pro_name = 'pro' + name[0].upper() + name[1:]
    return settings.get(name) or settings.get(pro_name)


def is_configured(settings: Optional[Dict[str, Any]]) -> bool:
    return bool(
        settings
        and _setting(settings, 'userName')
        and _setting(settings, 'password')
        and _setting(settings, 'trustedDeviceToken')
    )


def make_store(entries):
    """Store function writing records into the host's entries collection"""
    def store(records: List[Dict[str, Any]]):
        try:
            return entries.create(records)
        except Exception as e:
            logger.error(f"lvBridge storage error: {e}")
            raise
    return store


def make_find_last_record(entries):
    """Lookup of the newest entry this bridge stored, as epoch milliseconds"""
    def find_last_record():
        records = entries.list({
            'find': {'device': {'$regex': AGENT_NAME}},
            'count': 1,
        })
        if not records:
            return None
        return records[0].get('date')
    return find_last_record


class LvBridgePlugin:
    """Host-side handle: start_engine(entries) starts periodic syncing"""

    def __init__(self, settings: Dict[str, Any], bus=None):
        self.settings = settings
        self.bus = bus
        self.runner: Optional[PeriodicRunner] = None
        self._teardown_registered = False

    def build_config(self, entries) -> BridgeConfig:
        s = self.settings
        # Host interval settings are milliseconds
        interval = s.get('interval')
        return BridgeConfig(
            login=LoginConfig(
                account_name=_setting(s, 'userName'),
                password=_setting(s, 'password'),
                trusted_device_token=_setting(s, 'trustedDeviceToken'),
                patient_id=s.get('patientId'),
                credentials_url=s.get('proCredentialsUrl'),
                credentials_key=s.get('proCredentialsKey')
            ),
            interval=int(interval) // 1000 if interval else None,
            max_failures=int(s.get('maxFailures') or 3),
            first_full_days=int(s.get('firstFullDays') or 1),
            time_offset_minutes=s.get('timeOffsetMinutes'),
            store=make_store(entries),
            find_last_record=make_find_last_record(entries)
        )

    def start_engine(self, entries) -> PeriodicRunner:
        """Start syncing; a runner that is already running is returned as is"""
        if self.runner is not None and self.runner.running:
            logger.warning("LibreView bridge is already running")
            return self.runner

        engine = BridgeEngine(self.build_config(entries))
        self.runner = PeriodicRunner(engine).start()
        if self.bus is not None and not self._teardown_registered:
            self.bus.on('teardown', self.stop)
            self._teardown_registered = True
        return self.runner

    def stop(self, *args):
        if self.runner is not None:
            self.runner.stop()


def init(settings: Optional[Dict[str, Any]], bus=None) -> Optional[LvBridgePlugin]:
    """
    Create the plugin if the host settings carry usable credentials

    Returns:
        LvBridgePlugin, or None when the bridge is disabled or misconfigured
    """
    if not is_configured(settings):
        logger.info("LibreView bridge is not enabled, or misconfigured.")
        return None
    return LvBridgePlugin(settings, bus)
