"""
Configuration classes for credentials, timing and upload targets
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Any, Callable
import logging

from .exceptions import ConfigurationError
from .session import DEFAULT_SERVER, DEFAULT_FETCH_TIMEOUT_MS

logger = logging.getLogger(__name__)

MIN_SECRET_LENGTH = 12

# Scheduling interval bounds, in seconds
MIN_INTERVAL = 5 * 60
MAX_INTERVAL = 8 * 60 * 60
DEFAULT_INTERVAL = 60 * 60

DEFAULT_MAX_FAILURES = 3
DEFAULT_FIRST_FULL_DAYS = 1
DEFAULT_REPORT_POLL_DELAY = 1.0

StoreFunction = Callable[[List[Dict[str, Any]]], Any]
FindLastRecordFunction = Callable[[], Optional[int]]


@dataclass
class LoginConfig:
    """Configuration for LibreView authentication"""
    account_name: Optional[str] = None
    password: Optional[str] = None
    trusted_device_token: Optional[str] = None
    patient_id: Optional[str] = None
    credentials_url: Optional[str] = None
    credentials_key: Optional[str] = None

    def is_valid(self) -> bool:
        """Check if credentials are present"""
        return bool(self.account_name and self.password)

    def has_credential_bundle(self) -> bool:
        """True when credentials are managed through a remote bundle"""
        return bool(self.credentials_url and self.credentials_key)


@dataclass
class NightscoutConfig:
    """Configuration for the Nightscout REST endpoint"""
    endpoint: Optional[str] = None
    api_secret: Optional[str] = None

    def is_configured(self) -> bool:
        return bool(self.endpoint)


@dataclass
class BridgeConfig:
    """
    Everything the sync engine reads from its host

    ``store`` and ``find_last_record`` are optional hooks supplied by a
    hosting dashboard process; without ``store`` entries are posted to the
    Nightscout endpoint.
    """
    login: LoginConfig = field(default_factory=LoginConfig)
    nightscout: NightscoutConfig = field(default_factory=NightscoutConfig)
    server: str = DEFAULT_SERVER
    interval: int = DEFAULT_INTERVAL
    max_failures: int = DEFAULT_MAX_FAILURES
    first_full_days: int = DEFAULT_FIRST_FULL_DAYS
    time_offset_minutes: Optional[int] = None
    fetch_timeout_ms: int = DEFAULT_FETCH_TIMEOUT_MS
    report_poll_delay: float = DEFAULT_REPORT_POLL_DELAY
    debug: bool = False
    store: Optional[StoreFunction] = None
    find_last_record: Optional[FindLastRecordFunction] = None

    def __post_init__(self):
        self.interval = normalize_interval(self.interval)
        if self.max_failures < 1:
            logger.warning(f"max_failures must be at least 1, got {self.max_failures}; using 1")
            self.max_failures = 1

    def validate_for_upload(self):
        """
        Check that entries can be delivered somewhere

        Raises:
            ConfigurationError: If neither a store function nor an endpoint is
                configured, or the endpoint's API secret is too short
        """
        if self.store is not None:
            return
        if not self.nightscout.is_configured():
            raise ConfigurationError("neither store function, nor endpoint specified", stage='config')
        secret = self.nightscout.api_secret or ''
        if len(secret) < MIN_SECRET_LENGTH:
            raise ConfigurationError(
                f"API_SECRET should be at least {MIN_SECRET_LENGTH} characters long", stage='config'
            )

    def select_sink(self, http=None):
        """
        Pick the upload sink once, at configuration time

        Returns:
            CallbackSink when a store function is set, HttpEndpointSink when a
            Nightscout endpoint is set, otherwise None
        """
        from ..io.sinks import CallbackSink, HttpEndpointSink
        from ..io.nightscout import NightscoutClient

        if self.store is not None:
            return CallbackSink(self.store)
        if self.nightscout.is_configured():
            client = NightscoutClient(
                self.nightscout.endpoint,
                self.nightscout.api_secret,
                http=http,
                timeout=self.fetch_timeout_ms / 1000.0
            )
            return HttpEndpointSink(client)
        return None


def normalize_interval(interval: Optional[int]) -> int:
    """Clamp the scheduling interval to 5 minutes .. 8 hours, else 1 hour"""
    if interval is None:
        return DEFAULT_INTERVAL
    if MIN_INTERVAL <= interval <= MAX_INTERVAL:
        return int(interval)
    logger.warning(f"Interval {interval}s is outside {MIN_INTERVAL}..{MAX_INTERVAL}s, using {DEFAULT_INTERVAL}s")
    return DEFAULT_INTERVAL


def load_config_from_env(env_file: Optional[Path] = None, **overrides) -> BridgeConfig:
    """
    Load bridge configuration from environment variables

    Args:
        env_file: Optional .env file to load first
        **overrides: BridgeConfig fields that take precedence over the environment

    Returns:
        BridgeConfig: Configuration built from the environment
    """
    from ..utils.env_utils import get_env_config

    env_config = get_env_config(env_file)

    login = LoginConfig(
        account_name=env_config.get('account_name'),
        password=env_config.get('password'),
        trusted_device_token=env_config.get('trusted_device_token'),
        patient_id=env_config.get('patient_id'),
        credentials_url=env_config.get('credentials_url'),
        credentials_key=env_config.get('credentials_key')
    )
    nightscout = NightscoutConfig(
        endpoint=env_config.get('endpoint'),
        api_secret=env_config.get('api_secret')
    )

    from ..api.common import to_lvapi_host

    values = dict(
        login=login,
        nightscout=nightscout,
        server=to_lvapi_host(env_config.get('server', DEFAULT_SERVER)),
        interval=env_config.get('interval', DEFAULT_INTERVAL),
        max_failures=env_config.get('max_failures', DEFAULT_MAX_FAILURES),
        first_full_days=env_config.get('first_full_days', DEFAULT_FIRST_FULL_DAYS),
        time_offset_minutes=env_config.get('time_offset_minutes'),
        fetch_timeout_ms=env_config.get('fetch_timeout_ms', DEFAULT_FETCH_TIMEOUT_MS),
        debug=env_config.get('debug', False)
    )
    values.update(overrides)
    return BridgeConfig(**values)
