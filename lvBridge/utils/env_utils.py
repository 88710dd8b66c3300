"""
Environment variable utilities for lvBridge
"""

import os
from pathlib import Path
from typing import Optional, Any, Dict
from dotenv import load_dotenv
import logging

logger = logging.getLogger(__name__)

# Prefix some hosting platforms put in front of connection-string settings
HOST_PREFIX = 'CUSTOMCONNSTR_'


def get_env_file_locations() -> list[Path]:
    """
    Get list of locations where .env files are searched

    Returns:
        list[Path]: List of search paths
    """
    current_dir = Path.cwd()
    project_root = Path(__file__).parent.parent.parent
    home_dir = Path.home()

    return [
        current_dir / '.env',
        project_root / '.env',
        home_dir / '.env',
        home_dir / '.config' / 'lvBridge' / '.env'
    ]


def load_env_file(env_file: Optional[Path] = None) -> bool:
    """
    Load environment variables from .env file

    Args:
        env_file: Optional path to .env file. If not provided, searches
                  the locations from get_env_file_locations()

    Returns:
        bool: True if .env file was found and loaded, False otherwise
    """
    search_paths = [Path(env_file)] if env_file else get_env_file_locations()

    for path in search_paths:
        if path.exists():
            logger.debug(f"Loading .env file from: {path}")
            load_dotenv(path)
            return True

    logger.debug(f"No .env file found in search paths: {[str(p) for p in search_paths]}")
    return False


def read_env(name: str, default: Any = None) -> Any:
    """
    Read an environment variable, honouring host-prefixed and lowercase variants

    Lookup order: CUSTOMCONNSTR_NAME, CUSTOMCONNSTR_name, NAME, name.
    Empty values count as unset.

    Args:
        name: Variable name in upper case
        default: Value returned when no variant is set

    Returns:
        The first non-empty value found, or default
    """
    for candidate in (HOST_PREFIX + name, HOST_PREFIX + name.lower(), name, name.lower()):
        value = os.environ.get(candidate)
        if value:
            return value
    return default


def read_env_int(name: str, default: Optional[int] = None) -> Optional[int]:
    """Read an integer environment variable, falling back to default on bad input"""
    value = read_env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer value for {name}: {value!r}")
        return default


def read_env_bool(name: str, default: bool = False) -> bool:
    """Read a boolean environment variable"""
    value = read_env(name)
    if value is None:
        return default
    return value.lower() in ('true', '1', 'yes', 'on')


def get_env_config(env_file: Optional[Path] = None) -> Dict[str, Any]:
    """
    Get all lvBridge-related environment variables

    Returns:
        dict: Configuration dictionary with environment variables; unset
              variables are omitted
    """
    load_env_file(env_file)

    config = {}

    # Credentials, with the practice ("pro") account variants as fallback
    for key, names in {
        'account_name': ('LVBRIDGE_USER_NAME', 'LVBRIDGE_PRO_USER_NAME'),
        'password': ('LVBRIDGE_PASSWORD', 'LVBRIDGE_PRO_PASSWORD'),
        'trusted_device_token': ('LVBRIDGE_TRUSTED_DEVICE_TOKEN', 'LVBRIDGE_PRO_TRUSTED_DEVICE_TOKEN'),
    }.items():
        value = read_env(names[0]) or read_env(names[1])
        if value:
            config[key] = value

    for key, name in {
        'patient_id': 'LVBRIDGE_PATIENT_ID',
        'credentials_url': 'LVBRIDGE_PRO_CREDENTIALS_URL',
        'credentials_key': 'LVBRIDGE_PRO_CREDENTIALS_KEY',
        'server': 'LVBRIDGE_SERVER',
        'api_secret': 'API_SECRET',
        'log_level': 'LVBRIDGE_LOG_LEVEL',
    }.items():
        value = read_env(name)
        if value:
            config[key] = value

    for key, name in {
        'interval': 'LVBRIDGE_INTERVAL',
        'max_failures': 'LVBRIDGE_MAX_FAILURES',
        'first_full_days': 'LVBRIDGE_FIRST_FULL_DAYS',
        'time_offset_minutes': 'LVBRIDGE_TIME_OFFSET',
        'fetch_timeout_ms': 'LVBRIDGE_TIMEOUT',
    }.items():
        value = read_env_int(name)
        if value is not None:
            config[key] = value

    config['debug'] = read_env_bool('LVBRIDGE_DEBUG')

    # Nightscout endpoint, or the site's own hostname when hosted alongside it
    endpoint = read_env('NS')
    if not endpoint and read_env('WEBSITE_HOSTNAME'):
        endpoint = 'https://' + read_env('WEBSITE_HOSTNAME')
    if endpoint:
        config['endpoint'] = endpoint.rstrip('/')

    return config


def create_env_template(output_path: Optional[Path] = None) -> Path:
    """
    Create a template .env file

    Args:
        output_path: Path where to create the .env file (default: current directory)

    Returns:
        Path: Path to the created .env file
    """
    if not output_path:
        output_path = Path.cwd() / '.env'

    template_content = """# lvBridge Configuration
# Copy this file to .env and fill in your credentials

# LibreView credentials (Required)
LVBRIDGE_USER_NAME=your@email.com
LVBRIDGE_PASSWORD=your_password
LVBRIDGE_TRUSTED_DEVICE_TOKEN=your_trusted_device_token

# Practice accounts must name the patient to sync
# LVBRIDGE_PATIENT_ID=00000000-0000-0000-0000-000000000000

# Centrally managed credentials (optional)
# LVBRIDGE_PRO_CREDENTIALS_URL=https://example.com/credentials.json
# LVBRIDGE_PRO_CREDENTIALS_KEY=clinic-1

# Server: US, EU, CA or a full hostname
LVBRIDGE_SERVER=api.libreview.io

# Nightscout
NS=https://your-nightscout.example.com
API_SECRET=at_least_12_characters

# Timing (seconds / attempts / days / minutes / milliseconds)
LVBRIDGE_INTERVAL=3600
LVBRIDGE_MAX_FAILURES=3
LVBRIDGE_FIRST_FULL_DAYS=1
# LVBRIDGE_TIME_OFFSET=0
LVBRIDGE_TIMEOUT=30000

LVBRIDGE_LOG_LEVEL=INFO
"""

    with open(output_path, 'w') as f:
        f.write(template_content)

    logger.info(f"Created .env template at: {output_path}")
    return output_path
