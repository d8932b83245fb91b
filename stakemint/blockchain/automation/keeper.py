import logging
import threading
from typing import Optional

from ...protocol.types.common import ProtocolError
from ..core.engine import StakeMint
from ..snapshot.types import Snapshot

logger = logging.getLogger(__name__)

class Keeper:
    """
    External automation trigger: polls check_upkeep and calls perform_upkeep
    when a checkpoint is due. A failed attempt is retried on the next poll.
    """

    def __init__(self, engine: StakeMint, poll_interval: float = 30.0):
        self.engine = engine
        self.poll_interval = poll_interval
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def start(self):
        self.running = True
        self._stop.clear()
        self.thread = threading.Thread(target=self._run_loop, daemon=True)
        self.thread.start()
        logger.info(f"Keeper started (poll every {self.poll_interval}s)")

    def stop(self):
        self.running = False
        self._stop.set()
        if self.thread:
            self.thread.join()

    def run_once(self) -> Optional[Snapshot]:
        """One poll. Returns the appended snapshot, or None if nothing was due."""
        upkeep_needed, perform_data = self.engine.check_upkeep()
        if not upkeep_needed:
            return None
        snapshot = self.engine.perform_upkeep(perform_data)
        logger.info(f"Keeper appended snapshot #{snapshot.index}")
        return snapshot

    def _run_loop(self):
        while self.running:
            try:
                self.run_once()
            except ProtocolError as e:
                logger.warning(f"Upkeep rejected: {type(e).__name__}: {e}")
            except Exception as e:
                logger.error(f"Error in keeper loop: {e}")

            self._stop.wait(self.poll_interval)
