"""
Utility modules for lvBridge
"""

from .env_utils import (
    load_env_file,
    read_env,
    read_env_int,
    read_env_bool,
    get_env_config,
    create_env_template,
    get_env_file_locations
)
from .logging_utils import setup_logger, get_logger, set_log_level, resolve_level, mask_secrets
from .time_utils import (
    system_utc_offset_minutes,
    local_offset_seconds,
    initial_watermark,
    now_seconds,
    to_iso_utc
)

__all__ = [
    'load_env_file',
    'read_env',
    'read_env_int',
    'read_env_bool',
    'get_env_config',
    'create_env_template',
    'get_env_file_locations',
    'setup_logger',
    'get_logger',
    'set_log_level',
    'resolve_level',
    'mask_secrets',
    'system_utc_offset_minutes',
    'local_offset_seconds',
    'initial_watermark',
    'now_seconds',
    'to_iso_utc',
]
