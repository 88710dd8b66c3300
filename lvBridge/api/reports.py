"""
Report pipeline: generate, poll and download a DailyLog report
"""

import re
import json
import logging
from typing import List, Dict, Any, Optional, Callable

from .common import base_headers, parse_json, error_message
from .retry import RetryPolicy
from ..core.session import SessionState, DataSource
from ..core.exceptions import (
    NoReportSettings, NoPrimaryDevice, ReportRequestFailed, NoChannelAvailable,
    ReportStillGenerating, ReportPollFailed, NoDataReceived, ReportParseError
)
from ..utils.time_utils import now_seconds

logger = logging.getLogger(__name__)

# Report ids are offset from the primary device's type id
REPORT_ID_BASE = 500000
DAILY_LOG_CLIENT_REPORT_ID = 5
# Position of the rendered report in the channel's URL list
REPORT_URL_INDEX = 5

DAILY_LOG_PATTERN = re.compile(r'DataForLibreDailyLog\s*=\s*({.*})')


class ReportPipeline:
    """
    Fetches the glucose history newer than the watermark

    The vendor generates reports asynchronously: a job is requested, its
    channel is polled until the job finishes, then the rendered HTML report
    is downloaded and the embedded JSON extracted.
    """

    def __init__(self,
                 state: SessionState,
                 http,
                 offset_seconds: int,
                 poll_policy: Optional[RetryPolicy] = None,
                 find_last_record: Optional[Callable[[], Optional[int]]] = None,
                 nightscout=None):
        """
        Initialize the pipeline

        Args:
            state: Shared session state
            http: requests.Session (or compatible)
            offset_seconds: Local UTC offset applied to vendor timestamps
            poll_policy: Retry policy for the completion poll
            find_last_record: Host hook returning the newest stored entry date (epoch ms)
            nightscout: NightscoutClient used for watermark discovery when no hook is given
        """
        self.state = state
        self.http = http
        self.offset_seconds = offset_seconds
        self.poll_policy = poll_policy or RetryPolicy(min_delay=1.0, max_attempts=3, backoff_factor=1.2,
                                                      name='poll')
        self.find_last_record = find_last_record
        self.nightscout = nightscout

    def fetch(self) -> Dict[str, Any]:
        """
        Run the whole pipeline

        Returns:
            The report's ``Data`` object, ``{"Days": [{"Glucose": [...]}, ...]}``
        """
        self.discover_data_sources()
        self.determine_watermark()
        self.select_primary_device()
        poll_url = self.request_report()
        channel_url = self.open_channel(poll_url)
        report_url = self.poll_completion(channel_url)
        return self.download_report(report_url)

    def discover_data_sources(self) -> Dict[str, DataSource]:
        response = self.http.request(
            'GET',
            f"https://{self.state.server}{self.state.uri_prefix}/reportSettings",
            headers=base_headers(self.state.auth_token),
            timeout=self.state.request_timeout
        )
        body = parse_json(response, 'getDataSources')
        self.state.absorb_ticket(body.get('ticket'))

        data = body.get('data')
        if data is None:
            message = error_message(body)
            if message:
                raise NoReportSettings(f"failed getting reportSettings: {message}", stage='getDataSources')
            if body.get('message'):
                raise NoReportSettings(f"cannot get data sources, received message: '{body['message']}'",
                                       stage='getDataSources')
            raise NoReportSettings("unknown response, check connection parameters", stage='getDataSources')

        sources = data.get('dataSources')
        if sources:
            self.state.subject.data_sources = {
                device_id: DataSource.from_api(device_id, source)
                for device_id, source in sources.items()
            }
        logger.debug(f"Data sources: {list(self.state.subject.data_sources)}")
        return self.state.subject.data_sources

    def determine_watermark(self) -> Optional[int]:
        """
        Ask the dashboard for the newest entry already stored

        Returns:
            The watermark in epoch seconds, or None if nothing could be found
        """
        last_date = None
        if self.find_last_record is not None:
            last_date = self.find_last_record()
        elif self.nightscout is not None:
            last_date = self.nightscout.latest_entry_date()

        if last_date is not None:
            self.state.watermark = int(last_date) // 1000
            logger.info(f"Last synced record at {self.state.watermark}")
        return self.state.watermark

    def select_primary_device(self) -> DataSource:
        """
        Choose the device with the most recent data as primary

        The device whose smallest ``daysData`` value is lowest wins, first seen
        on ties; a device without ``daysData`` only wins if no other has any.
        """
        sources = self.state.subject.data_sources
        if not sources:
            raise NoPrimaryDevice("no recent data for patient", stage='generateReports')

        def recency(source: DataSource) -> float:
            return min(source.days_data) if source.days_data else float('inf')

        primary = min(sources.values(), key=recency)
        self.state.subject.primary_device = primary
        self.state.subject.secondary_device_ids = [
            device_id for device_id in sources if device_id != primary.id
        ]
        logger.debug(f"Primary device {primary.id}, secondary {self.state.subject.secondary_device_ids}")
        return primary

    def request_report(self) -> str:
        primary = self.state.subject.primary_device
        watermark = self.state.watermark or 0
        payload = {
            'PrimaryDeviceId': primary.id,
            'PrimaryDeviceTypeId': primary.type_id,
            'SecondaryDeviceIds': self.state.subject.secondary_device_ids,
            'PrintReportsWithPatientInformation': False,
            'ReportIds': [REPORT_ID_BASE + (primary.type_id or 0)],
            'ClientReportIDs': [DAILY_LOG_CLIENT_REPORT_ID],
            # Lower bound is exclusive of the watermark record itself
            'StartDates': [watermark - self.offset_seconds + 1],
            'EndDate': now_seconds(),
            'PatientId': self.state.subject.id,
            'CultureCode': 'en-US',
        }
        logger.debug(f"Requesting report: {payload}")

        response = self.http.request(
            'POST',
            f"https://{self.state.server}/reports",
            headers=base_headers(self.state.auth_token),
            json=payload,
            timeout=self.state.request_timeout
        )
        body = parse_json(response, 'generateReports')
        self.state.absorb_ticket(body.get('ticket'))

        data = body.get('data')
        if data is None:
            message = error_message(body)
            if message:
                raise ReportRequestFailed(f"failed request for reports: {message}", stage='generateReports')
            raise ReportRequestFailed("unknown response, check connection parameters", stage='generateReports')
        if not data.get('url'):
            raise ReportRequestFailed("no URL for channels returned", stage='generateReports')
        return data['url']

    def open_channel(self, poll_url: str) -> str:
        response = self.http.request(
            'GET',
            poll_url,
            headers=base_headers(self.state.auth_token),
            timeout=self.state.request_timeout
        )
        body = parse_json(response, 'getChannels')
        data = body.get('data')
        if not data:
            raise NoChannelAvailable("unknown response, check connection parameters", stage='getChannels')
        if not data.get('lp'):
            raise NoChannelAvailable("no http channel available", stage='getChannels')
        return data['lp']

    def poll_completion(self, channel_url: str) -> str:
        """Poll the channel until the report is rendered; returns the report URL"""
        return self.poll_policy.call(self._poll_once, channel_url)

    def _poll_once(self, channel_url: str) -> str:
        response = self.http.request(
            'GET',
            channel_url,
            headers=base_headers(),
            timeout=self.state.request_timeout
        )
        body = parse_json(response, 'getReportUrl')
        operation = body.get('op')

        if operation == 'started':
            raise ReportStillGenerating("report is still being generated", stage='getReportUrl')

        if operation == 'update':
            urls = (body.get('args') or {}).get('urls') or []
            if len(urls) > REPORT_URL_INDEX and urls[REPORT_URL_INDEX]:
                return urls[REPORT_URL_INDEX]
            raise ReportPollFailed("no report URL provided", stage='getReportUrl', operation=operation)

        raise ReportPollFailed(f"unexpected channel operation '{operation}'", stage='getReportUrl',
                               operation=operation)

    def download_report(self, report_url: str) -> Dict[str, Any]:
        # This endpoint takes the token as a query parameter, not a bearer header
        response = self.http.request(
            'GET',
            report_url,
            params={'session': self.state.auth_token},
            headers=base_headers(accept='text/html'),
            timeout=self.state.request_timeout
        )
        found = DAILY_LOG_PATTERN.search(response.text or '')
        if not found:
            raise NoDataReceived("no data received", stage='downloadReport')

        try:
            report = json.loads(found.group(1))
        except ValueError as e:
            raise ReportParseError(f"embedded report is not valid JSON: {e}", stage='downloadReport')

        data = report.get('Data') if isinstance(report, dict) else None
        if data is None:
            raise NoDataReceived("report carries no Data object", stage='downloadReport')
        days = data.get('Days') or []
        logger.info(f"Downloaded report with {len(days)} days")
        return data
