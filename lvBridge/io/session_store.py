"""
Development-mode persistence of session state and fetched reports

Used by the CLI so that consecutive ``login`` / ``fetch`` / ``run`` invocations
can reuse the token and watermark of the previous one.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional

from ..core.session import SessionState

logger = logging.getLogger(__name__)

DEFAULT_SESSION_FILE = Path('session.json')
DEFAULT_REPORT_FILE = Path('fetched.json')


def save_session(state: SessionState, session_file: Path = DEFAULT_SESSION_FILE):
    """Save session state to a JSON file"""
    try:
        with open(session_file, 'w') as f:
            json.dump(state.to_dict(), f, indent=2, default=str)
        logger.debug(f"Saved session to {session_file}")
    except OSError as e:
        logger.error(f"Could not save session: {e}")


def restore_session(session_file: Path = DEFAULT_SESSION_FILE) -> Optional[SessionState]:
    """
    Load session state saved by save_session()

    Returns:
        The restored state, or None if there is no usable file
    """
    session_file = Path(session_file)
    if not session_file.exists():
        return None

    try:
        with open(session_file, 'r') as f:
            data = json.load(f)
        logger.debug(f"Reading stored session from {session_file}")
        return SessionState.from_dict(data)
    except (OSError, ValueError, TypeError) as e:
        logger.warning(f"Could not load session: {e}")
        return None


def save_report(data: Any, report_file: Path = DEFAULT_REPORT_FILE) -> Any:
    """Save fetched report data to a JSON file and pass it through"""
    try:
        with open(report_file, 'w') as f:
            json.dump(data, f, indent=2)
        logger.debug(f"Saved fetched data to {report_file}")
    except OSError as e:
        logger.error(f"Could not save fetched data: {e}")
    return data
