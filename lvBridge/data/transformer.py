"""
Conversion of LibreView glucose records into Nightscout entries
"""

import math
import logging
from typing import List, Dict, Any, Iterable, Iterator

from ..api.common import AGENT
from ..core.session import SessionState
from ..utils.time_utils import to_iso_utc

logger = logging.getLogger(__name__)

MMOL_TO_MGDL = 18.018


def to_mgdl(value: float) -> int:
    """Convert mmol/L to mg/dL, rounding halves up"""
    return int(math.floor(value * MMOL_TO_MGDL + 0.5))


def flatten(items: Iterable[Any]) -> Iterator[Any]:
    """Yield leaves of arbitrarily nested lists, in order"""
    for item in items:
        if isinstance(item, (list, tuple)):
            yield from flatten(item)
        else:
            yield item


class GlucoseTransformer:
    """
    Converts DailyLog glucose records to Nightscout ``sgv`` entries
    """

    def __init__(self, state: SessionState, offset_seconds: int, agent: str = AGENT):
        """
        Args:
            state: Session state; its watermark is advanced as records convert
            offset_seconds: Local UTC offset added to vendor timestamps
            agent: Agent identifier used in the entry's device string
        """
        self.state = state
        self.offset_seconds = offset_seconds
        self.agent = agent

    @property
    def device(self) -> str:
        primary = self.state.subject.primary_device
        type_id = primary.type_id if primary else None
        firmware = primary.firmware_version if primary else None
        return f"{self.agent}/{type_id}/{firmware}"

    def convert_one_glucose(self, glucose: Dict[str, Any]) -> Dict[str, Any]:
        """
        Convert a single glucose record

        Args:
            glucose: ``{"Timestamp": 1632846647, "Value": 14.8, "IsTimeChange": false}``

        Returns:
            Nightscout entry record
        """
        timestamp = int(glucose['Timestamp']) + self.offset_seconds
        self.state.advance_watermark(timestamp)

        return {
            'sgv': to_mgdl(float(glucose['Value'])),
            'date': timestamp * 1000,
            'dateString': to_iso_utc(timestamp),
            'device': self.device,
            'type': 'sgv',
        }

    def convert_all(self, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Convert every glucose record of a report, day by day

        Args:
            payload: Report data, ``{"Days": [{"Glucose": [...]}, ...]}``

        Returns:
            Entries in source order (day order, then within-day order)
        """
        entries = []
        for day in payload.get('Days') or []:
            for glucose in flatten(day.get('Glucose') or []):
                entries.append(self.convert_one_glucose(glucose))

        logger.info(f"Converted {len(entries)} glucose records, watermark {self.state.watermark}")
        return entries
