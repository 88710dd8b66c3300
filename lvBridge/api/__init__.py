"""
API module for LibreView integration
"""

from .common import AGENT, AGENT_NAME, AGENT_VERSION, to_lvapi_host, base_headers, base_session
from .retry import RetryPolicy, Success, Retryable, Fatal, classify, attempt
from .auth import Authenticator, LoginState
from .credentials import CredentialResolver
from .reports import ReportPipeline

__all__ = [
    'AGENT',
    'AGENT_NAME',
    'AGENT_VERSION',
    'to_lvapi_host',
    'base_headers',
    'base_session',
    'RetryPolicy',
    'Success',
    'Retryable',
    'Fatal',
    'classify',
    'attempt',
    'Authenticator',
    'LoginState',
    'CredentialResolver',
    'ReportPipeline'
]
