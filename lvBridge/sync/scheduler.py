"""
Periodic runner driving repeated sync runs
"""

import logging
import threading
from typing import Optional

from ..core.engine import BridgeEngine

logger = logging.getLogger(__name__)


class PeriodicRunner:
    """
    Runs the engine immediately and then every ``interval`` seconds

    Each run is awaited before the next wait starts, so runs never overlap.
    """

    def __init__(self, engine: BridgeEngine, interval: Optional[float] = None):
        """
        Args:
            engine: Engine to run
            interval: Seconds between runs (defaults to the engine config's interval)
        """
        self.engine = engine
        self.interval = interval if interval is not None else engine.config.interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.runs = 0

    def run_forever(self):
        """Run in the calling thread until stop() is called"""
        while not self._stop.is_set():
            logger.info("Fetching LibreView data...")
            self.engine.run()
            self.runs += 1
            self._stop.wait(self.interval)

    def start(self) -> 'PeriodicRunner':
        """Run on a background daemon thread"""
        if self._thread and self._thread.is_alive():
            return self
        self._stop.clear()
        self._thread = threading.Thread(target=self.run_forever, name='lvBridge-runner', daemon=True)
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = None):
        """Stop scheduling; a run already in flight completes first"""
        self._stop.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        logger.info("Periodic runner stopped")

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())
