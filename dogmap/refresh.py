"""Discovery refresh coordination.

Every refresh gets a ticket with an increasing sequence number. Only the
outcome of the most recently issued ticket is applied, whatever order the
cycles finish in; older outcomes are discarded. A failed cycle keeps the
previously displayed results and records a retryable error.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future, wait
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from .errors import DataSourceError
from .models import DiscoverableEntity, DiscoveryQuery, ViewerLocation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveryFailed:
    reason: str
    retryable: bool = True


@dataclass(frozen=True)
class RefreshTicket:
    seq: int
    viewer: ViewerLocation
    query: DiscoveryQuery


@dataclass(frozen=True)
class DiscoveryState:
    results: Tuple[DiscoverableEntity, ...] = ()
    error: Optional[DiscoveryFailed] = None
    loading: bool = False
    last_success_at: Optional[datetime] = None
    generation: int = 0


FetchCycle = Callable[[ViewerLocation, DiscoveryQuery], Sequence[DiscoverableEntity]]
Listener = Callable[[DiscoveryState], None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


class RefreshCoordinator:
    def __init__(self, fetch_cycle: FetchCycle, executor: Optional[Executor] = None) -> None:
        self._fetch_cycle = fetch_cycle
        self._executor = executor
        self._lock = threading.Lock()
        self._seq = 0
        self._latest: Optional[RefreshTicket] = None
        self._pending: Set[int] = set()
        self._futures: Dict[int, Future] = {}
        self._state = DiscoveryState()
        self._listeners: List[Listener] = []

    @property
    def state(self) -> DiscoveryState:
        return self._state

    @property
    def latest(self) -> Optional[RefreshTicket]:
        return self._latest

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def issue(self, viewer: ViewerLocation, query: DiscoveryQuery) -> RefreshTicket:
        ticket, _ = self._issue(viewer, query)
        return ticket

    def run(self, ticket: RefreshTicket) -> bool:
        """Execute the cycle for ``ticket``; return whether its outcome was applied."""
        try:
            results = self._fetch_cycle(ticket.viewer, ticket.query)
        except DataSourceError as exc:
            return self._apply(ticket, None, DiscoveryFailed(str(exc) or "discovery_failed"))
        except Exception:
            self._apply(ticket, None, DiscoveryFailed("internal_error", retryable=False))
            raise
        return self._apply(ticket, list(results), None)

    def refresh(self, viewer: ViewerLocation, query: DiscoveryQuery) -> RefreshTicket:
        ticket, created = self._issue(viewer, query)
        if not created:
            logger.debug("Refresh #%s already in flight; not duplicating", ticket.seq)
            return ticket
        if self._executor is None:
            self.run(ticket)
            return ticket
        future = self._executor.submit(self.run, ticket)
        with self._lock:
            self._futures[ticket.seq] = future
        future.add_done_callback(lambda _f, seq=ticket.seq: self._forget_future(seq))
        return ticket

    def retry(self) -> Optional[RefreshTicket]:
        latest = self._latest
        if latest is None:
            return None
        return self.refresh(latest.viewer, latest.query)

    def wait(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            futures = list(self._futures.values())
        if futures:
            wait(futures, timeout=timeout)

    def _issue(self, viewer: ViewerLocation, query: DiscoveryQuery) -> Tuple[RefreshTicket, bool]:
        with self._lock:
            latest = self._latest
            if (
                latest is not None
                and latest.seq in self._pending
                and latest.viewer == viewer
                and latest.query == query
            ):
                return latest, False
            self._seq += 1
            ticket = RefreshTicket(self._seq, viewer, query)
            self._latest = ticket
            self._pending.add(ticket.seq)
            self._state = replace(self._state, loading=True)
            state = self._state
        self._notify(state)
        return ticket, True

    def _apply(
        self,
        ticket: RefreshTicket,
        results: Optional[List[DiscoverableEntity]],
        error: Optional[DiscoveryFailed],
    ) -> bool:
        with self._lock:
            self._pending.discard(ticket.seq)
            latest_seq = self._latest.seq if self._latest is not None else None
            if ticket.seq != latest_seq:
                logger.debug(
                    "Discarding stale outcome of refresh #%s (latest #%s)", ticket.seq, latest_seq
                )
                return False
            if error is not None:
                logger.warning("Discovery refresh #%s failed: %s", ticket.seq, error.reason)
                self._state = replace(self._state, error=error, loading=False)
            else:
                self._state = DiscoveryState(
                    results=tuple(results or ()),
                    error=None,
                    loading=False,
                    last_success_at=utc_now(),
                    generation=ticket.seq,
                )
                logger.info(
                    "Discovery refresh #%s applied: %s results", ticket.seq, len(self._state.results)
                )
            state = self._state
        self._notify(state)
        return True

    def _forget_future(self, seq: int) -> None:
        with self._lock:
            self._futures.pop(seq, None)

    def _notify(self, state: DiscoveryState) -> None:
        for listener in list(self._listeners):
            listener(state)
