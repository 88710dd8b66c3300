"""
Shared HTTP helpers for the LibreView API
"""

import logging
from typing import Optional, Dict, Any

import requests

from ..core.exceptions import APIConnectionError, ProtocolError

logger = logging.getLogger(__name__)

AGENT_NAME = 'lvBridge'
AGENT_VERSION = '1.0.0'
AGENT = f'{AGENT_NAME}/{AGENT_VERSION}'

DEFAULT_HOST = 'api.libreview.io'
REGION_HOSTS = {
    'US': 'api-us.libreview.io',
    'EU': 'api-eu.libreview.io',
    'CA': 'api-ca.libreview.io',
}


def to_lvapi_host(server: Optional[str]) -> str:
    """
    Resolve a region code or hostname to a LibreView API host

    Args:
        server: "US", "EU", "CA" (any case), a hostname, or None

    Returns:
        Hostname; explicit hostnames (anything with a dot) are kept as given
    """
    if not server:
        return DEFAULT_HOST
    region = server.strip().upper()
    if region in REGION_HOSTS:
        return REGION_HOSTS[region]
    if '.' in server:
        return server.strip()
    return DEFAULT_HOST


def base_headers(token: Optional[str] = None, accept: str = 'application/json') -> Dict[str, str]:
    """Headers sent with every vendor request, plus the bearer token when given"""
    headers = {
        'User-Agent': AGENT,
        'Accept': accept,
    }
    if token:
        headers['Authorization'] = f'Bearer {token}'
    return headers


def base_session() -> requests.Session:
    """A requests session with TLS verification on and the bridge user agent"""
    s = requests.Session()
    s.verify = True
    s.headers.update({'User-Agent': AGENT})
    return s


def parse_json(response, stage: str) -> Dict[str, Any]:
    """
    Decode a JSON response body

    Args:
        response: requests.Response (or compatible)
        stage: Pipeline stage, used in error messages

    Returns:
        The decoded body; always a dict

    Raises:
        APIConnectionError: On 5xx responses
        ProtocolError: If the body is not a JSON object
    """
    status = getattr(response, 'status_code', 200)
    if status >= 500:
        raise APIConnectionError(f"server error {status}", stage=stage)
    try:
        body = response.json()
    except ValueError:
        raise ProtocolError(f"unknown response (status {status}), check connection parameters", stage=stage)
    if not isinstance(body, dict):
        raise ProtocolError("unknown response, check connection parameters", stage=stage)
    return body


def error_message(body: Dict[str, Any]) -> Optional[str]:
    """Extract the vendor's ``{"error": {"message": ...}}`` text, if any"""
    error = body.get('error')
    if not error:
        return None
    if isinstance(error, dict):
        return error.get('message') or str(error)
    return str(error)
