"""
Core components for lvBridge synchronization
"""

from .engine import BridgeEngine
from .session import SessionState, Identity, Subject, DataSource
from .config import (
    BridgeConfig,
    LoginConfig,
    NightscoutConfig,
    load_config_from_env,
    normalize_interval
)
from .exceptions import (
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

__all__ = [
    'BridgeEngine',
    'SessionState',
    'Identity',
    'Subject',
    'DataSource',
    'BridgeConfig',
    'LoginConfig',
    'NightscoutConfig',
    'load_config_from_env',
    'normalize_interval',
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
