"""
Session state shared by the stages of a sync run

One SessionState lives as long as its engine; it keeps the auth token and
the watermark between scheduled runs.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Any

import arrow

DEFAULT_SERVER = 'api.libreview.io'
DEFAULT_FETCH_TIMEOUT_MS = 30000


@dataclass
class Identity:
    """The authenticated principal"""
    id: str
    account_type: Optional[str] = None


@dataclass
class DataSource:
    """A device listed in the patient's report settings"""
    id: str
    type_id: Optional[int] = None
    firmware_version: Optional[str] = None
    days_data: List[int] = field(default_factory=list)

    @classmethod
    def from_api(cls, device_id: str, source: Dict[str, Any]) -> 'DataSource':
        return cls(
            id=device_id,
            type_id=source.get('type'),
            firmware_version=source.get('firmwareVersion'),
            days_data=list(source.get('daysData') or [])
        )


@dataclass
class Subject:
    """The monitored patient whose glucose data is synced"""
    id: Optional[str] = None
    data_sources: Dict[str, DataSource] = field(default_factory=dict)
    primary_device: Optional[DataSource] = None
    secondary_device_ids: List[str] = field(default_factory=list)


@dataclass
class SessionState:
    """Mutable state of the bridge between and across sync runs"""
    server: str = DEFAULT_SERVER
    uri_prefix: str = ''
    auth_token: Optional[str] = None
    token_expires: Optional[arrow.Arrow] = None
    identity: Optional[Identity] = None
    subject: Subject = field(default_factory=Subject)
    watermark: Optional[int] = None
    fetch_timeout_ms: int = DEFAULT_FETCH_TIMEOUT_MS
    debug: bool = False

    def token_valid(self, now: Optional[arrow.Arrow] = None) -> bool:
        """True while a token exists and has not expired"""
        if not self.auth_token or self.token_expires is None:
            return False
        now = now or arrow.utcnow()
        return now < self.token_expires

    def set_token(self, token: str, duration_ms: int):
        """Store a freshly issued token valid for duration_ms milliseconds"""
        self.auth_token = token
        self.token_expires = arrow.utcnow().shift(seconds=int(duration_ms) / 1000.0)

    def absorb_ticket(self, ticket: Optional[Dict[str, Any]]) -> bool:
        """
        Adopt a refreshed auth ticket if the response carried one

        Args:
            ticket: ``{"token": ..., "duration": ms}`` or None

        Returns:
            True if the token was replaced
        """
        if not ticket or not ticket.get('token'):
            return False
        self.set_token(ticket['token'], ticket.get('duration') or 0)
        return True

    def clear_token(self):
        self.auth_token = None
        self.token_expires = None

    def advance_watermark(self, timestamp: int) -> int:
        """Move the watermark forward to timestamp; never moves it back"""
        if self.watermark is None or timestamp > self.watermark:
            self.watermark = timestamp
        return self.watermark

    @property
    def request_timeout(self) -> float:
        """Per-request timeout in seconds, as requests expects it"""
        return self.fetch_timeout_ms / 1000.0

    def base_url(self) -> str:
        return f"https://{self.server}"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['token_expires'] = self.token_expires.isoformat() if self.token_expires else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SessionState':
        subject_data = dict(data.get('subject') or {})
        sources = {
            device_id: DataSource(**source)
            for device_id, source in (subject_data.get('data_sources') or {}).items()
        }
        primary = subject_data.get('primary_device')
        subject = Subject(
            id=subject_data.get('id'),
            data_sources=sources,
            primary_device=DataSource(**primary) if primary else None,
            secondary_device_ids=list(subject_data.get('secondary_device_ids') or [])
        )
        identity = data.get('identity')
        expires = data.get('token_expires')
        return cls(
            server=data.get('server') or DEFAULT_SERVER,
            uri_prefix=data.get('uri_prefix') or '',
            auth_token=data.get('auth_token'),
            token_expires=arrow.get(expires) if expires else None,
            identity=Identity(**identity) if identity else None,
            subject=subject,
            watermark=data.get('watermark'),
            fetch_timeout_ms=data.get('fetch_timeout_ms') or DEFAULT_FETCH_TIMEOUT_MS,
            debug=bool(data.get('debug'))
        )
