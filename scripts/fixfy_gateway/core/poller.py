"""Fixed-interval job polling for asynchronous providers."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, FrozenSet, Optional

logger = logging.getLogger(__name__)

IN_PROGRESS_STATUSES: FrozenSet[str] = frozenset({"starting", "processing", "queued", "pending"})


@dataclass
class TerminalJobState:
    """Where a poll loop stopped.

    ``reason`` is one of ``finished`` (the job left the in-progress states),
    ``http_error`` (a status fetch returned non-2xx), ``exhausted`` (the
    attempt ceiling was reached) or ``cancelled``.
    """

    reason: str
    status: str
    raw: Any
    attempts: int

    @property
    def finished(self) -> bool:
        return self.reason == "finished"


class JobPoller:
    def __init__(
        self,
        *,
        interval: float,
        max_attempts: int,
        sleep: Callable[[float], None] = time.sleep,
        in_progress: FrozenSet[str] = IN_PROGRESS_STATUSES,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.interval = max(0.0, interval)
        self.max_attempts = max_attempts
        self._sleep = sleep
        self._in_progress = in_progress

    def _pause(self, cancel: Optional[threading.Event]) -> bool:
        """Wait one interval; return True when cancellation was requested."""
        if cancel is None:
            self._sleep(self.interval)
            return False
        return cancel.wait(self.interval)

    def wait(
        self,
        initial: Any,
        *,
        status_of: Callable[[Any], str],
        fetch: Callable[[], Any],
        is_ok: Callable[[Any], bool],
        cancel: Optional[threading.Event] = None,
    ) -> TerminalJobState:
        """Re-fetch job status until it leaves the in-progress states.

        ``initial`` is the submit response; when it already reports a terminal
        status no fetch is made.
        """
        raw = initial
        status = (status_of(raw) or "").lower()
        attempts = 0
        while status in self._in_progress:
            if attempts >= self.max_attempts:
                logger.warning("Job still %s after %d poll attempts; giving up", status, attempts)
                return TerminalJobState(reason="exhausted", status=status, raw=raw, attempts=attempts)
            if (cancel is not None and cancel.is_set()) or self._pause(cancel):
                return TerminalJobState(reason="cancelled", status=status, raw=raw, attempts=attempts)
            attempts += 1
            raw = fetch()
            if not is_ok(raw):
                return TerminalJobState(reason="http_error", status=status, raw=raw, attempts=attempts)
            status = (status_of(raw) or "").lower()
            logger.debug("Poll attempt %d: status=%s", attempts, status)
        return TerminalJobState(reason="finished", status=status, raw=raw, attempts=attempts)
