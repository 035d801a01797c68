"""Endpoint state and the rule that classifies each new observation."""

from __future__ import annotations

import datetime as _dt
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional

from .http_probe import is_reachable

NEVER_OBSERVED = 0


class Transition(Enum):
    """How a new status code relates to the endpoint's previous one."""

    UNCHANGED = "unchanged"
    REACHABLE = "reachable"
    RECOVERED = "recovered"
    DOWN = "down"

    @property
    def label(self) -> Optional[str]:
        return {
            Transition.REACHABLE: "UP",
            Transition.RECOVERED: "BACK UP",
            Transition.DOWN: "DOWN",
        }.get(self)

    @property
    def severity(self) -> Optional[str]:
        return {
            Transition.REACHABLE: "INFO",
            Transition.RECOVERED: "NOTICE",
            Transition.DOWN: "ALERT",
        }.get(self)

    @property
    def should_log(self) -> bool:
        return self is not Transition.UNCHANGED

    @property
    def should_notify(self) -> bool:
        # First success of a new endpoint stays quiet, first failure alerts.
        return self in (Transition.RECOVERED, Transition.DOWN)


def classify(previous: int, current: int) -> Transition:
    """Classify ``current`` against ``previous`` (``NEVER_OBSERVED`` allowed)."""

    if current == previous:
        return Transition.UNCHANGED
    if is_reachable(current) and not is_reachable(previous):
        return Transition.RECOVERED
    if not is_reachable(current):
        return Transition.DOWN
    return Transition.REACHABLE


@dataclass(eq=False)
class Endpoint:
    """One monitored URL and the last status code observed for it.

    ``lock`` must be held across a probe and the following ``observe`` call so
    that the read-compare-write of ``last_status`` is never interleaved with
    another check of the same endpoint. ``in_flight`` marks an endpoint whose
    job is queued or running; the scheduler uses it to skip a tick instead of
    queueing a second job.
    """

    url: str
    last_status: int = NEVER_OBSERVED
    in_flight: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock,
                                 repr=False)
    _claim_lock: threading.Lock = field(default_factory=threading.Lock,
                                        repr=False)

    def observe(self, status: int) -> Transition:
        transition = classify(self.last_status, status)
        self.last_status = status
        return transition

    def claim(self) -> bool:
        with self._claim_lock:
            if self.in_flight:
                return False
            self.in_flight = True
            return True

    def release(self) -> None:
        with self._claim_lock:
            self.in_flight = False


def build_endpoints(urls: Iterable[str]) -> List[Endpoint]:
    return [Endpoint(url=url) for url in urls]


@dataclass(frozen=True)
class MonitorEvent:
    """Outcome of one completed check."""

    url: str
    previous_status: int
    status: int
    transition: Transition
    occurred_at: _dt.datetime
    notified: bool = False

    @property
    def is_status_change(self) -> bool:
        return self.transition is not Transition.UNCHANGED
