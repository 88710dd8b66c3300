"""
Upload sinks: a host-supplied store function or the Nightscout endpoint
"""

import logging
from dataclasses import dataclass
from typing import List, Dict, Any, Optional, Union, Callable

from .nightscout import NightscoutClient
from ..core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

NOTHING_TO_UPLOAD = {'upload': 'zero entries fetched, nothing to upload'}


@dataclass
class CallbackSink:
    """Hands entries to a store function owned by the hosting process"""
    store: Callable[[List[Dict[str, Any]]], Any]

    def upload(self, entries: List[Dict[str, Any]]) -> Any:
        logger.debug(f"Storing {len(entries)} entries through host callback")
        return self.store(entries)


@dataclass
class HttpEndpointSink:
    """Posts entries to the Nightscout REST API"""
    client: NightscoutClient

    def upload(self, entries: List[Dict[str, Any]]) -> Any:
        return self.client.post_entries(entries)


UploadSink = Union[CallbackSink, HttpEndpointSink]


def upload_entries(sink: Optional[UploadSink], entries: List[Dict[str, Any]]) -> Any:
    """
    Deliver converted entries

    An empty batch is a no-op and never touches the network.

    Raises:
        ConfigurationError: If there are entries but no sink
    """
    if not entries:
        logger.info("Zero entries fetched, nothing to upload")
        return dict(NOTHING_TO_UPLOAD)

    if sink is None:
        raise ConfigurationError("neither store function, nor endpoint specified", stage='uploadToNightscout')

    result = sink.upload(entries)
    logger.info(f"Uploaded {len(entries)} entries")
    return result
