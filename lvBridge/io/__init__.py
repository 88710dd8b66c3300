"""
lvBridge IO Module

Nightscout access, upload sinks and development-mode session files.
"""

from .nightscout import NightscoutClient, hash_secret
from .sinks import CallbackSink, HttpEndpointSink, upload_entries, NOTHING_TO_UPLOAD
from .session_store import save_session, restore_session, save_report

__all__ = [
    'NightscoutClient',
    'hash_secret',
    'CallbackSink',
    'HttpEndpointSink',
    'upload_entries',
    'NOTHING_TO_UPLOAD',
    'save_session',
    'restore_session',
    'save_report',
]
