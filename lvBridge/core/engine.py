"""
Top-level sync engine sequencing one LibreView -> Nightscout run
"""

import time
import logging
import threading
from typing import Dict, List, Optional, Any, Callable

from .config import BridgeConfig
from .session import SessionState
from .exceptions import LoginRejected
from ..api.common import base_session
from ..api.retry import RetryPolicy, Outcome, Success, Retryable, classify
from ..api.auth import Authenticator
from ..api.credentials import CredentialResolver
from ..api.reports import ReportPipeline
from ..data.transformer import GlucoseTransformer
from ..io.nightscout import NightscoutClient
from ..io.sinks import upload_entries
from ..utils.time_utils import local_offset_seconds, initial_watermark
from ..utils.logging_utils import get_logger, set_log_level

logger = get_logger(__name__)


class BridgeEngine:
    """
    Main engine: credentials -> login -> report -> convert -> upload

    One engine owns one SessionState, so the auth token and the watermark
    carry over between runs. Runs never overlap: a run started while
    another is in flight is skipped.
    """

    # Outer authenticate-and-fetch retry
    AUTH_MIN_DELAY = 3.0
    AUTH_BACKOFF_FACTOR = 1.5
    # Report completion poll retry
    POLL_BACKOFF_FACTOR = 1.2

    def __init__(self,
                 config: BridgeConfig,
                 state: Optional[SessionState] = None,
                 http=None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize the engine

        Args:
            config: Bridge configuration
            state: Session state to continue from (a fresh one by default)
            http: requests.Session (or compatible) used for every call
            sleep: Sleep function used between retries
        """
        self.config = config
        self.state = state or SessionState(
            server=config.server,
            fetch_timeout_ms=config.fetch_timeout_ms,
            debug=config.debug
        )
        self.http = http or base_session()
        self.sleep = sleep
        if self.state.debug:
            set_log_level(logging.DEBUG)
        self.offset_seconds = local_offset_seconds(config.time_offset_minutes)

        self.sink = config.select_sink(self.http)
        self.nightscout = None
        if config.nightscout.is_configured():
            self.nightscout = NightscoutClient(
                config.nightscout.endpoint,
                config.nightscout.api_secret,
                http=self.http,
                timeout=config.fetch_timeout_ms / 1000.0
            )

        self.authenticator = Authenticator(config.login, self.state, self.http)
        self.credentials = CredentialResolver(config.login, self.state, self.http, self.authenticator)
        self._lock = threading.Lock()

        logger.info(f"Initialized BridgeEngine for {self.state.server}")

    def _auth_policy(self) -> RetryPolicy:
        return RetryPolicy(
            min_delay=self.AUTH_MIN_DELAY,
            max_attempts=self.config.max_failures,
            backoff_factor=self.AUTH_BACKOFF_FACTOR,
            sleep=self.sleep,
            name='lvBridge'
        )

    def _poll_policy(self) -> RetryPolicy:
        return RetryPolicy(
            min_delay=self.config.report_poll_delay,
            max_attempts=self.config.max_failures,
            backoff_factor=self.POLL_BACKOFF_FACTOR,
            sleep=self.sleep,
            name='report poll'
        )

    def _pipeline(self) -> ReportPipeline:
        return ReportPipeline(
            self.state,
            self.http,
            self.offset_seconds,
            poll_policy=self._poll_policy(),
            find_last_record=self.config.find_last_record,
            nightscout=self.nightscout
        )

    def _prepare_run(self):
        # The UTC offset can change between runs (daylight saving time)
        self.offset_seconds = local_offset_seconds(self.config.time_offset_minutes)
        logger.debug(f"Local UTC offset: {self.offset_seconds}s")

        if self.state.watermark is None:
            self.state.watermark = initial_watermark(self.config.first_full_days)
            logger.info(f"First run, fetching from {self.state.watermark}")

    def _classify(self, error: Exception) -> Outcome:
        # Rotated credentials can fix a rejected login on the next attempt
        if isinstance(error, LoginRejected) and self.config.login.has_credential_bundle():
            return Retryable(error)
        return classify(error)

    def _attempt(self, attempt: int, fetch: bool) -> Outcome:
        logger.debug(f"Attempt #{attempt} to login{', fetch' if fetch else ''}")
        try:
            self.credentials.resolve(attempt)
            self.authenticator.authorize()
            if not fetch:
                return Success(self.state)
            return Success(self._pipeline().fetch())
        except Exception as e:
            return self._classify(e)

    def login(self) -> SessionState:
        """Authorize with retries; raises on failure"""
        return self._auth_policy().run(lambda n: self._attempt(n, fetch=False))

    def fetch(self) -> Dict[str, Any]:
        """Authorize and fetch the report data with retries; raises on failure"""
        self._prepare_run()
        return self._auth_policy().run(lambda n: self._attempt(n, fetch=True))

    def convert(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        return GlucoseTransformer(self.state, self.offset_seconds).convert_all(payload)

    def sync(self, on_payload: Optional[Callable[[Dict[str, Any]], Any]] = None) -> Any:
        """
        Run the whole chain once

        Args:
            on_payload: Called with the raw report data before conversion

        Returns:
            The upload result

        Raises:
            Whatever stage failed; the watermark is left as it was before
            conversion if the upload fails
        """
        payload = self.fetch()
        if on_payload is not None:
            on_payload(payload)
        watermark_before = self.state.watermark
        entries = self.convert(payload)
        try:
            return upload_entries(self.sink, entries)
        except Exception:
            self.state.watermark = watermark_before
            raise

    def run(self) -> Optional[Any]:
        """
        Run one sync, logging and swallowing any failure

        Returns:
            The upload result, or None if the run failed or was skipped
        """
        if not self._lock.acquire(blocking=False):
            logger.warning("A sync run is already in progress, skipping")
            return None

        try:
            result = self.sync()
            logger.info(f"Sync run finished: {result}")
            return result
        except Exception as e:
            stage = getattr(e, 'stage', None) or type(e).__name__
            logger.error(f"Sync run failed at {stage}: {e}")
            return None
        finally:
            self._lock.release()
