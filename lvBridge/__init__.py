"""
lvBridge: LibreView to Nightscout glucose synchronization

Periodically logs in to LibreView, requests a DailyLog report with the
readings newer than the last synced one, converts them to Nightscout
entries and uploads them.

Usage:
    from lvBridge import BridgeEngine, load_config_from_env

    # Configuration from environment variables (.env file)
    config = load_config_from_env()

    # One sync run; failures are logged, never raised
    engine = BridgeEngine(config)
    engine.run()

    # Or keep syncing every config.interval seconds
    from lvBridge import PeriodicRunner
    PeriodicRunner(engine).start()
"""

from .core import (
    BridgeEngine,
    SessionState,
    BridgeConfig,
    LoginConfig,
    NightscoutConfig,
    load_config_from_env,
    LvBridgeError,
    ConfigurationError,
    MissingSubjectId,
    CredentialFetchError,
    ProtocolError,
    NotAVendorServer,
    LoginRejected,
    NoReportSettings,
    NoPrimaryDevice,
    ReportRequestFailed,
    NoChannelAvailable,
    ReportPollFailed,
    NoDataReceived,
    ReportParseError,
    TransientError,
    RedirectReceived,
    ReportStillGenerating,
    APIConnectionError,
    UploadError
)

from .api import (
    AGENT_VERSION,
    RetryPolicy,
    Authenticator,
    CredentialResolver,
    ReportPipeline,
    to_lvapi_host
)
from .data import GlucoseTransformer
from .io import CallbackSink, HttpEndpointSink, NightscoutClient, upload_entries
from .sync import PeriodicRunner, init_plugin
from .cli.main import main as cli_main

__version__ = AGENT_VERSION

__all__ = [
    # Core components
    'BridgeEngine',
    'SessionState',
    'BridgeConfig',
    'LoginConfig',
    'NightscoutConfig',
    'load_config_from_env',

    # API components
    'RetryPolicy',
    'Authenticator',
    'CredentialResolver',
    'ReportPipeline',
    'to_lvapi_host',

    # Conversion and upload
    'GlucoseTransformer',
    'CallbackSink',
    'HttpEndpointSink',
    'NightscoutClient',
    'upload_entries',

    # Scheduling and hosting
    'PeriodicRunner',
    'init_plugin',

    # CLI
    'cli_main',

    # Exceptions
    'LvBridgeError',
    'ConfigurationError',
    'MissingSubjectId',
    'CredentialFetchError',
    'ProtocolError',
    'NotAVendorServer',
    'LoginRejected',
    'NoReportSettings',
    'NoPrimaryDevice',
    'ReportRequestFailed',
    'NoChannelAvailable',
    'ReportPollFailed',
    'NoDataReceived',
    'ReportParseError',
    'TransientError',
    'RedirectReceived',
    'ReportStillGenerating',
    'APIConnectionError',
    'UploadError'
]
