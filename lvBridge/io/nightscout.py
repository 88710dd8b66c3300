"""
Nightscout REST client for entry lookup and upload
"""

import hashlib
import logging
from typing import List, Dict, Any, Optional

from ..api.common import AGENT, AGENT_NAME, base_session
from ..core.exceptions import UploadError, ProtocolError

logger = logging.getLogger(__name__)

ENTRIES_PATH = '/api/v1/entries.json'


def hash_secret(api_secret: str) -> str:
    """Nightscout expects the SHA-1 hex digest of API_SECRET in the api-secret header"""
    return hashlib.sha1(api_secret.encode('utf-8')).hexdigest()


class NightscoutClient:
    """Talks to a Nightscout instance's entries API"""

    def __init__(self, endpoint: str, api_secret: Optional[str] = None, http=None, timeout: float = 30.0):
        self.endpoint = endpoint.rstrip('/')
        self.api_secret = api_secret
        self.http = http or base_session()
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        headers = {
            'User-Agent': AGENT,
            'Accept': 'application/json',
        }
        if self.api_secret:
            headers['api-secret'] = hash_secret(self.api_secret)
        return headers

    def latest_entry_date(self, device_pattern: str = AGENT_NAME) -> Optional[int]:
        """
        Date of the newest entry uploaded by this bridge

        Args:
            device_pattern: Regex matched against the entries' device field

        Returns:
            Epoch milliseconds, or None if there is no such entry
        """
        response = self.http.request(
            'GET',
            self.endpoint + ENTRIES_PATH,
            params={'find[device][$regex]': device_pattern, 'count': 1},
            headers=self._headers(),
            timeout=self.timeout
        )
        response.raise_for_status()
        records = response.json()
        if not isinstance(records, list):
            raise ProtocolError("entries lookup did not return a list", stage='determineWatermark')
        if not records:
            logger.debug("No entries from this bridge found in Nightscout")
            return None
        return records[0].get('date')

    def post_entries(self, entries: List[Dict[str, Any]]) -> Any:
        """
        Upload entries

        Returns:
            The decoded Nightscout response (or its text if not JSON)

        Raises:
            UploadError: If Nightscout refused the upload
        """
        logger.debug(f"Uploading to Nightscout: {self.endpoint}")
        response = self.http.request(
            'POST',
            self.endpoint + ENTRIES_PATH,
            json=entries,
            headers=self._headers(),
            timeout=self.timeout
        )
        if response.status_code // 100 != 2:
            raise UploadError(f"Nightscout returned {response.status_code}: {response.text}",
                              stage='uploadToNightscout')
        try:
            return response.json()
        except ValueError:
            return response.text
