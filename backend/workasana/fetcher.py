"""Concurrent resource fetching with per-resource failure policy.

A screen describes its data needs as a batch of named ResourceRequests.
``fetch_all`` issues them together and waits for every one to settle;
``apply_policy`` then decides, per resource role, whether a failure is
surfaced or replaced by a default:

  PRIMARY    → recorded in BatchOutcome.errors, screen shows retry
  AUXILIARY  → degrades to an empty collection, logged only
  REPORT     → degrades to the request's documented zero value

SessionExpired is never absorbed by the policy; it always propagates.

Re-fetches overlap (a filter changes while the previous batch is still in
flight), so ScreenLoader tags each batch with a sequence number and drops
results older than the most recently applied batch.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from workasana.errors import RequestFailed, SessionExpired, WorkasanaError

logger = logging.getLogger(__name__)


class ResourceRole(str, Enum):
    PRIMARY = "primary"
    AUXILIARY = "auxiliary"
    REPORT = "report"


@dataclass
class ResourceRequest:
    """One named remote read. ``call`` is re-invoked on every retry."""

    name: str
    call: Callable[[], Awaitable[Any]]
    role: ResourceRole = ResourceRole.PRIMARY
    default: Any = None  # REPORT zero value; AUXILIARY falls back to []

    def fallback(self) -> Any:
        if self.default is None:
            return []
        return copy.deepcopy(self.default)


@dataclass
class FetchResult:
    """Settled outcome of a single request: data or error, never both."""

    name: str
    data: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DegradedResult:
    """Marker for a resource that intentionally fell back to its default."""

    name: str
    cause: BaseException
    default: Any


@dataclass
class BatchOutcome:
    """Policy-applied batch: usable data plus what failed or degraded."""

    data: dict[str, Any] = field(default_factory=dict)
    errors: dict[str, WorkasanaError] = field(default_factory=dict)
    degraded: dict[str, DegradedResult] = field(default_factory=dict)
    sequence: int = 0

    @property
    def retryable(self) -> bool:
        """A primary resource failed; the screen should offer a retry."""
        return bool(self.errors)

    @property
    def error_message(self) -> str:
        return " ".join(f"Failed to load {name}." for name in self.errors)

    def get(self, name: str, default: Any = None) -> Any:
        return self.data.get(name, default)


async def _settle(request: ResourceRequest) -> Any:
    return await request.call()


async def fetch_all(requests: Sequence[ResourceRequest]) -> dict[str, FetchResult]:
    """Issue every request concurrently and wait for all of them to settle.

    Returns:
        Mapping of request name → FetchResult. One failing request never
        prevents the others' results from being delivered.
    """
    names = [r.name for r in requests]
    if len(set(names)) != len(names):
        raise ValueError(f"Duplicate resource names in batch: {names}")
    if not requests:
        return {}

    settled = await asyncio.gather(*(_settle(r) for r in requests), return_exceptions=True)

    results: dict[str, FetchResult] = {}
    for name, value in zip(names, settled):
        if isinstance(value, BaseException):
            if not isinstance(value, Exception):
                raise value
            logger.debug("Resource '%s' failed: %r", name, value)
            results[name] = FetchResult(name=name, error=value)
        else:
            results[name] = FetchResult(name=name, data=value)
    return results


def apply_policy(
    requests: Sequence[ResourceRequest],
    results: dict[str, FetchResult],
) -> BatchOutcome:
    """Resolve settled results into a BatchOutcome using each request's role.

    Raises:
        SessionExpired: any resource in the batch hit an authorization failure.
    """
    for r in requests:
        res = results.get(r.name)
        if res is not None and isinstance(res.error, SessionExpired):
            raise res.error

    outcome = BatchOutcome()
    for r in requests:
        res = results.get(r.name)
        if res is None:
            continue
        if res.ok:
            outcome.data[r.name] = res.data
            continue

        err = res.error
        if r.role is ResourceRole.PRIMARY:
            if not isinstance(err, WorkasanaError):
                logger.error("Resource '%s' raised unexpectedly", r.name, exc_info=err)
                err = RequestFailed(str(err) or type(err).__name__, cause=err)
            logger.warning("Primary resource '%s' failed: %s", r.name, err)
            outcome.errors[r.name] = err
        else:
            default = r.fallback()
            logger.warning("Resource '%s' degraded to default: %s", r.name, err)
            outcome.data[r.name] = default
            outcome.degraded[r.name] = DegradedResult(name=r.name, cause=err, default=default)
    return outcome


class BatchSequencer:
    """Monotonic batch tags with last-write-wins by completion order."""

    def __init__(self) -> None:
        self._issued = 0
        self._applied = 0
        self._closed = False

    @property
    def last_issued(self) -> int:
        return self._issued

    @property
    def last_applied(self) -> int:
        return self._applied

    @property
    def closed(self) -> bool:
        return self._closed

    def issue(self) -> int:
        self._issued += 1
        return self._issued

    def accept(self, seq: int) -> bool:
        """Whether a completed batch may be applied; records it if so."""
        if self._closed or seq <= self._applied:
            return False
        self._applied = seq
        return True

    def close(self) -> None:
        """Discard every result that completes from now on."""
        self._closed = True


class ScreenLoader:
    """Runs a screen's batch and keeps only the freshest applied outcome.

    Usage:
        loader = ScreenLoader(lambda: dashboard_requests(client))
        outcome = await loader.load()
        if loader.state and loader.state.retryable:
            await loader.retry()
    """

    def __init__(self, requests_factory: Callable[[], Sequence[ResourceRequest]]) -> None:
        self._factory = requests_factory
        self.sequencer = BatchSequencer()
        self.state: BatchOutcome | None = None

    async def load(
        self,
        requests_factory: Callable[[], Sequence[ResourceRequest]] | None = None,
    ) -> BatchOutcome | None:
        """Fetch a fresh batch; returns the outcome, or None if it went stale.

        Passing ``requests_factory`` replaces the screen's batch (e.g. a new
        date range); later retries re-issue the replacement.
        """
        if requests_factory is not None:
            self._factory = requests_factory
        seq = self.sequencer.issue()
        requests = list(self._factory())
        results = await fetch_all(requests)
        outcome = apply_policy(requests, results)
        outcome.sequence = seq

        if not self.sequencer.accept(seq):
            logger.debug("Discarding stale batch #%d (applied #%d)", seq, self.sequencer.last_applied)
            return None
        self.state = outcome
        logger.debug(
            "Applied batch #%d: %d ok, %d failed, %d degraded",
            seq, len(outcome.data) - len(outcome.degraded), len(outcome.errors), len(outcome.degraded),
        )
        return outcome

    async def retry(self) -> BatchOutcome | None:
        """Re-issue the current batch under a fresh sequence number."""
        return await self.load()

    def close(self) -> None:
        self.sequencer.close()
