from __future__ import annotations

import logging
import threading
from typing import Optional

from gate.session.store import SessionStore

logger = logging.getLogger(__name__)


class SessionPruner:
    """
    Background thread that periodically deletes expired sessions.

    Reads already ignore expired records; this only keeps the store from growing.
    """

    def __init__(self, store: SessionStore, interval_seconds: int) -> None:
        self._store = store
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def prune_once(self) -> int:
        try:
            removed = self._store.prune_expired()
        except Exception as e:
            logger.warning("Session prune failed: %s", str(e))
            return 0
        if removed:
            logger.info("Pruned %d expired session(s)", removed)
        return removed

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self.prune_once()

    def start(self) -> None:
        if self._interval <= 0 or self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="session-pruner", daemon=True)
        self._thread.start()
        logger.debug("Session pruner started (interval=%ds)", self._interval)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
