"""Lookup sequencing: only the most recently issued lookup may update what is shown."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from .api import fetch_train_status, parse_train_status
from .models import JourneyView, TrainStatus, _now
from .reconcile import reconcile

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, str], dict[str, Any]]


class LookupSequencer:
    """Hands out increasing sequence numbers; only the last one issued is current."""

    def __init__(self):
        self._lock = threading.Lock()
        self._latest = 0

    def issue(self) -> int:
        with self._lock:
            self._latest += 1
            return self._latest

    def is_latest(self, seq: int) -> bool:
        with self._lock:
            return seq == self._latest

    @property
    def latest(self) -> int:
        with self._lock:
            return self._latest


@dataclass(frozen=True)
class LookupResult:
    seq: int
    status: TrainStatus | None = None
    view: JourneyView | None = None
    error: str | None = None
    error_code: str | None = None
    fetched_at: datetime | None = None

    @property
    def is_not_found(self) -> bool:
        return "NOT_FOUND" in (self.error_code or "").upper() or self.error == "HTTP 404"


class LookupSession:
    """
    Runs lookups and keeps the result of the newest one.

    Each lookup takes a sequence number before fetching. When it finishes, its
    result is committed only if no newer lookup has been issued in the meantime,
    so a slow response can never replace a fresher one.
    """

    def __init__(self, fetcher: Fetcher = fetch_train_status, include_passing: bool = False):
        self.fetcher = fetcher
        self.include_passing = include_passing
        self.sequencer = LookupSequencer()
        self._lock = threading.Lock()
        self.current: LookupResult | None = None
        self.last_successful: LookupResult | None = None

    def lookup(self, train_number: str, journey_date: str) -> LookupResult:
        seq = self.sequencer.issue()
        data = self.fetcher(train_number, journey_date)

        if data is None or "error" in data:
            error = data.get("error") if data else "No data returned"
            code = data.get("code") if data else None
            result = LookupResult(seq=seq, error=error, error_code=code, fetched_at=_now())
        else:
            status = parse_train_status(data, journey_date, include_passing=self.include_passing)
            view = reconcile(status.itinerary, status.live_feed)
            result = LookupResult(seq=seq, status=status, view=view, fetched_at=_now())

        self.commit(result)
        return result

    def commit(self, result: LookupResult) -> bool:
        """Store a finished lookup unless a newer one has been issued. Returns True if stored."""
        with self._lock:
            if not self.sequencer.is_latest(result.seq):
                logger.info(
                    "Discarding stale lookup #%d (latest is #%d)",
                    result.seq, self.sequencer.latest,
                )
                return False
            self.current = result
            if result.error is None:
                self.last_successful = result
            return True
