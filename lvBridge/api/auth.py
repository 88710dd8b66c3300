"""
LibreView authentication and patient binding

The login flow is an explicit state machine:

    PROBE_CAPABILITY -> AUTHENTICATE -> [FETCH_IDENTITY] -> BIND_SUBJECT -> DONE

A region redirect from the server updates the session's host and raises
RedirectReceived, which the outer retry loop treats as a soft failure.
"""

import logging
from enum import Enum
from typing import Optional, Dict, Any, Callable

from .common import base_headers, parse_json, error_message, to_lvapi_host
from ..core.config import LoginConfig
from ..core.session import SessionState, Identity, Subject
from ..core.exceptions import (
    NotAVendorServer, LoginRejected, RedirectReceived, MissingSubjectId
)

logger = logging.getLogger(__name__)

# Header LibreView API servers answer the capability probe with
VENDOR_MARKER_HEADER = 'lvapi'

# Account type of a patient account, as opposed to a practice account
PATIENT_ACCOUNT_TYPE = 'pat'


class LoginState(Enum):
    PROBE_CAPABILITY = 'probe_capability'
    AUTHENTICATE = 'authenticate'
    FETCH_IDENTITY = 'fetch_identity'
    BIND_SUBJECT = 'bind_subject'
    DONE = 'done'


class Authenticator:
    """
    Handles authentication and session management for the LibreView API
    """

    def __init__(self, login: LoginConfig, state: SessionState, http):
        """
        Initialize the authenticator

        Args:
            login: Login descriptor; the credential resolver may update it in place
            state: Shared session state
            http: requests.Session (or compatible) used for all calls
        """
        self.login = login
        self.state = state
        self.http = http
        self._handlers: Dict[LoginState, Callable[[], LoginState]] = {
            LoginState.PROBE_CAPABILITY: self._probe_capability,
            LoginState.AUTHENTICATE: self._authenticate,
            LoginState.FETCH_IDENTITY: self._fetch_identity,
            LoginState.BIND_SUBJECT: self._bind_subject,
        }

    def authorize(self) -> str:
        """
        Make sure the session holds a valid token bound to a patient

        Returns:
            "valid" if the cached token was reused, "renewed" after a login

        Raises:
            NotAVendorServer: If the host fails the capability probe
            RedirectReceived: If the server redirected us to another region
            LoginRejected: If credentials were refused or the answer was unusable
            MissingSubjectId: If a practice account has no patient configured
        """
        if self.state.token_valid():
            logger.debug(f"Current token is valid until {self.state.token_expires}")
            return 'valid'

        state = LoginState.PROBE_CAPABILITY
        while state is not LoginState.DONE:
            logger.debug(f"Login state: {state.value}")
            state = self._handlers[state]()

        return 'renewed'

    def bind_subject(self) -> str:
        """Resolve the patient context for the current identity"""
        self._bind_subject()
        return 'renewed'

    def _url(self, path: str) -> str:
        return f"https://{self.state.server}{path}"

    def _probe_capability(self) -> LoginState:
        response = self.http.request(
            'OPTIONS',
            self._url('/auth/login'),
            headers={'Accept': '*/*'},
            timeout=self.state.request_timeout
        )
        version = response.headers.get(VENDOR_MARKER_HEADER)
        if not version:
            raise NotAVendorServer(
                f"{self.state.server} doesn't appear to be a legitimate LibreView API server",
                stage='checkLvapi'
            )
        logger.debug(f"{self.state.server} runs LibreView API {version}")
        return LoginState.AUTHENTICATE

    def _authenticate(self) -> LoginState:
        response = self.http.request(
            'POST',
            self._url('/auth/login'),
            headers=base_headers(),
            json={
                'email': self.login.account_name,
                'password': self.login.password,
                'fingerprint': self.login.trusted_device_token,
            },
            timeout=self.state.request_timeout
        )
        body = parse_json(response, 'login')
        data = self._login_data(body, 'login')

        if data.get('redirect'):
            self._follow_redirect(data, 'login')

        if not data.get('user'):
            raise LoginRejected("unknown response, check connection parameters", stage='login')

        self._store_ticket(data.get('authTicket'), 'login')

        user = data['user']
        if user.get('id'):
            self.state.identity = Identity(id=user['id'], account_type=user.get('accountType'))
            logger.info(f"Login successful: {self.state.identity.id}")
            return LoginState.BIND_SUBJECT

        return LoginState.FETCH_IDENTITY

    def _fetch_identity(self) -> LoginState:
        response = self.http.request(
            'GET',
            self._url('/user'),
            headers=base_headers(self.state.auth_token),
            timeout=self.state.request_timeout
        )
        body = parse_json(response, 'user')
        data = self._login_data(body, 'user')

        if data.get('redirect'):
            self._follow_redirect(data, 'user')

        user = data.get('user')
        if not user or not user.get('id'):
            raise LoginRejected("unknown response, check connection parameters", stage='user')

        self.state.identity = Identity(id=user['id'], account_type=user.get('accountType'))
        if data.get('authTicket'):
            self._store_ticket(data['authTicket'], 'user')

        logger.info(f"Login successful: {self.state.identity.id}")
        return LoginState.BIND_SUBJECT

    def _bind_subject(self) -> LoginState:
        identity = self.state.identity
        patient_id = self.login.patient_id

        if identity and (identity.id == patient_id or identity.account_type == PATIENT_ACCOUNT_TYPE):
            logger.info("Patient is the user")
            self.state.subject = Subject(id=identity.id)
            self.state.uri_prefix = ''
            return LoginState.DONE

        if patient_id:
            logger.info("Patient is not the user")
            self._fetch_patient(patient_id)
            return LoginState.DONE

        raise MissingSubjectId("no patient ID specified for practice account", stage='authorize')

    def _fetch_patient(self, patient_id: str):
        response = self.http.request(
            'GET',
            self._url(f'/patients/{patient_id}'),
            headers=base_headers(self.state.auth_token),
            timeout=self.state.request_timeout
        )
        body = parse_json(response, 'getPatientData')
        self.state.absorb_ticket(body.get('ticket'))

        data = body.get('data')
        if data is None:
            message = error_message(body)
            if message:
                raise LoginRejected(f"failed getting patient details: {message}", stage='getPatientData')
            raise LoginRejected("unknown response, check connection parameters", stage='getPatientData')

        patient = data.get('patient') or {}
        self.state.subject = Subject(id=patient.get('id') or patient_id)
        self.state.uri_prefix = f'/patients/{patient_id}'
        logger.info(f"Received patient details: {self.state.subject.id}")

    def _login_data(self, body: Dict[str, Any], stage: str) -> Dict[str, Any]:
        data = body.get('data')
        if data:
            return data
        message = error_message(body)
        if message:
            raise LoginRejected(f"check credentials. Error: {message}", stage=stage)
        raise LoginRejected("unknown response, check connection parameters", stage=stage)

    def _follow_redirect(self, data: Dict[str, Any], stage: str):
        # e.g. {"country": "CA", "redirect": true, "region": "eu", "uiLanguage": "en-US"}
        self.state.server = to_lvapi_host(data.get('region'))
        logger.info(f"Redirected to: {self.state.server}")
        raise RedirectReceived(self.state.server, stage=stage)

    def _store_ticket(self, ticket: Optional[Dict[str, Any]], stage: str):
        if not ticket or not ticket.get('token'):
            raise LoginRejected("login response carried no auth ticket", stage=stage)
        self.state.absorb_ticket(ticket)
