"""
Remote credential bundle support for centrally managed deployments
"""

import logging
from typing import Dict, Any

import arrow

from .common import base_headers, to_lvapi_host
from ..core.config import LoginConfig
from ..core.session import SessionState, Identity
from ..core.exceptions import CredentialFetchError

logger = logging.getLogger(__name__)


class CredentialResolver:
    """
    Refreshes login credentials from a remote bundle before retried logins

    The bundle is a JSON object keyed by deployment; each entry may carry
    ``accountName``, ``password``, ``trustedDeviceToken``, ``patientId``,
    ``server``, ``debug`` and a cached ``authToken`` with ``tokenExpires``
    (epoch milliseconds), optionally with the ``userId`` and ``accountType``
    the token was issued to.
    """

    def __init__(self, login: LoginConfig, state: SessionState, http, authenticator=None):
        self.login = login
        self.state = state
        self.http = http
        self.authenticator = authenticator

    def resolve(self, attempt: int) -> str:
        """
        Make sure the login descriptor is current for this attempt

        Args:
            attempt: 1-based attempt number within the current run

        Returns:
            "configured" when the existing credentials are used as they are,
            "refreshed" when the bundle replaced them, "token-adopted" when the
            bundle's cached token was taken over and the patient rebound

        Raises:
            CredentialFetchError: If the bundle is malformed or lacks our key
        """
        if attempt <= 1 or not self.login.has_credential_bundle():
            return 'configured'

        logger.info(f"Fetching credentials for '{self.login.credentials_key}' (attempt {attempt})")
        entry = self._fetch_entry()

        self.login.account_name = entry.get('accountName', self.login.account_name)
        self.login.password = entry.get('password', self.login.password)
        self.login.trusted_device_token = entry.get('trustedDeviceToken', self.login.trusted_device_token)
        if entry.get('patientId'):
            self.login.patient_id = entry['patientId']
        if entry.get('server'):
            self.state.server = to_lvapi_host(entry['server'])
        if 'debug' in entry:
            self.state.debug = bool(entry['debug'])

        if self._adopt_token(entry):
            logger.info("Adopted cached token from credential bundle")
            if self.authenticator is not None:
                self.authenticator.bind_subject()
            return 'token-adopted'

        return 'refreshed'

    def _fetch_entry(self) -> Dict[str, Any]:
        response = self.http.request(
            'GET',
            self.login.credentials_url,
            headers=base_headers(),
            timeout=self.state.request_timeout
        )
        try:
            body = response.json()
        except ValueError:
            raise CredentialFetchError("credential bundle is not valid JSON", stage='credentials')

        if not isinstance(body, dict):
            raise CredentialFetchError("credential bundle is not a JSON object", stage='credentials')

        entry = body.get(self.login.credentials_key)
        if not isinstance(entry, dict):
            raise CredentialFetchError(
                f"credential bundle has no entry for '{self.login.credentials_key}'", stage='credentials'
            )
        return entry

    def _adopt_token(self, entry: Dict[str, Any]) -> bool:
        token = entry.get('authToken')
        expires = entry.get('tokenExpires')
        if not token or not expires:
            return False

        try:
            expires_at = arrow.get(int(expires) / 1000.0)
        except (TypeError, ValueError):
            raise CredentialFetchError(
                f"credential bundle has a malformed tokenExpires: {expires!r}", stage='credentials'
            )
        if expires_at <= arrow.utcnow():
            logger.debug(f"Cached token in credential bundle expired at {expires_at}")
            return False

        self.state.auth_token = token
        self.state.token_expires = expires_at
        if entry.get('userId'):
            self.state.identity = Identity(id=entry['userId'], account_type=entry.get('accountType'))
        return True
