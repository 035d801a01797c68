# -*- codeing = utf-8 -*-
# @Create: 2023-02-16 3:37 p.m.
# @Update: 2026-10-18 10:31 a.m.
# @Author: John Zhao
"""Implementation of the monitoring orchestration layer."""

from __future__ import annotations

import datetime as _dt
import functools
import logging
import queue
import threading
import time
from typing import Callable, Iterable, List, Optional

from configuration import MonitorConfig

from . import http_probe
from . import send_email
from .log_recorder import EventRecorder
from .state_machine import Endpoint, MonitorEvent, Transition, build_endpoints

LOGGER = logging.getLogger(__name__)

Probe = Callable[[str], int]
Notifier = Callable[[str, str, int, _dt.datetime], None]


def realign_tick(tick: int, started: float, now: float, wait: float) -> int:
    """Return the tick to fire next, collapsing ticks missed during a stall.

    Only the most recent overdue tick is kept, so a producer that was blocked
    on a full queue fires once on resuming instead of replaying every tick.
    """

    return max(tick, int((now - started) // wait))


class MonitorScheduler:
    """Feed endpoint checks to a pool of worker threads on a fixed interval.

    One producer thread enqueues every endpoint at start and then at each
    multiple of ``wait`` seconds. ``workers`` threads take jobs from a queue of
    ``queue_size`` slots, probe the endpoint, classify the result and write the
    log line and alert the transition calls for.

    An endpoint whose previous job is still queued or running is skipped for
    that tick, so at most one job per endpoint exists at any time. Ticks
    missed while the producer was blocked on a full queue collapse into one.
    """

    def __init__(
        self,
        endpoints: Iterable[Endpoint],
        *,
        wait: float,
        probe: Probe,
        recorder: EventRecorder,
        notifier: Optional[Notifier] = None,
        workers: int = 4,
        queue_size: int = 100,
        clock: Optional[Callable[[], _dt.datetime]] = None,
        event_handler: Optional[Callable[[MonitorEvent], None]] = None,
        poll_interval: float = 0.5,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        if wait <= 0:
            raise ValueError("wait must be positive")

        self.endpoints: List[Endpoint] = list(endpoints)
        self._wait = float(wait)
        self._probe = probe
        self._recorder = recorder
        self._notifier = notifier or (lambda url, label, status, at: None)
        self._worker_count = workers
        self._jobs: "queue.Queue[Endpoint]" = queue.Queue(maxsize=queue_size)
        self._clock = clock or _dt.datetime.now
        self._event_handler = event_handler or (lambda event: None)
        self._poll_interval = poll_interval
        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []

    @classmethod
    def from_config(
        cls,
        config: MonitorConfig,
        *,
        recorder: Optional[EventRecorder] = None,
        event_handler: Optional[Callable[[MonitorEvent], None]] = None,
    ) -> "MonitorScheduler":
        probe = functools.partial(
            http_probe.check_http_status,
            timeout=config.timeout,
            retry=config.retry,
        )
        notifier = functools.partial(send_email.send_notification,
                                     settings=config.mail)
        return cls(
            build_endpoints(config.sites),
            wait=config.wait,
            probe=probe,
            recorder=recorder or EventRecorder(config.log_file_path),
            notifier=notifier,
            workers=config.workers,
            queue_size=config.queue_size,
            event_handler=event_handler,
        )

    @property
    def recorder(self) -> EventRecorder:
        return self._recorder

    @property
    def is_running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def start(self) -> None:
        if self._threads:
            raise RuntimeError("Scheduler is already running")

        self._stop_event.clear()
        for worker_id in range(1, self._worker_count + 1):
            self._spawn(f"worker-{worker_id}", self._work, worker_id)
        self._spawn("scheduler", self._produce)
        LOGGER.info("monitor.scheduler.started endpoints=%d workers=%d wait=%s",
                    len(self.endpoints), self._worker_count, self._wait)

    def stop(self) -> None:
        self._stop_event.set()
        self.join()
        self._threads.clear()
        self._drain()
        LOGGER.info("monitor.scheduler.stopped")

    def join(self, timeout: Optional[float] = None) -> None:
        for thread in self._threads:
            thread.join(timeout)

    def run_single_check(self, endpoint: Endpoint) -> MonitorEvent:
        """Check ``endpoint`` once on the calling thread.

        The same logging and notification policy as the workers applies.
        """

        return self._process(endpoint, "manual")

    def _spawn(self, name: str, target, *args) -> None:
        thread = threading.Thread(name=name, target=target, args=args,
                                  daemon=True)
        thread.start()
        self._threads.append(thread)

    def _produce(self) -> None:
        started = time.monotonic()
        tick = 0
        while not self._stop_event.is_set():
            self._submit_tick(tick)
            next_tick = realign_tick(tick + 1, started, time.monotonic(),
                                     self._wait)
            if next_tick > tick + 1:
                LOGGER.debug("monitor.scheduler.ticks_missed count=%d",
                             next_tick - tick - 1)
            tick = next_tick
            delay = started + tick * self._wait - time.monotonic()
            if self._stop_event.wait(max(delay, 0.0)):
                break

    def _submit_tick(self, tick: int) -> None:
        for endpoint in self.endpoints:
            if not endpoint.claim():
                LOGGER.debug("monitor.scheduler.skip tick=%d url=%s", tick,
                             endpoint.url)
                continue
            if not self._enqueue(endpoint):
                endpoint.release()
                return

    def _enqueue(self, endpoint: Endpoint) -> bool:
        # Blocks while the queue is full; gives up only on stop.
        while not self._stop_event.is_set():
            try:
                self._jobs.put(endpoint, timeout=self._poll_interval)
                return True
            except queue.Full:
                continue
        return False

    def _drain(self) -> None:
        # Jobs never picked up must not stay claimed across a restart.
        while True:
            try:
                endpoint = self._jobs.get_nowait()
            except queue.Empty:
                return
            endpoint.release()
            self._jobs.task_done()

    def _work(self, worker_id: int) -> None:
        while not self._stop_event.is_set():
            try:
                endpoint = self._jobs.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
            try:
                self._process(endpoint, worker_id)
            except Exception as exc:  # pragma: no cover - defensive safeguard
                LOGGER.exception(
                    "monitor.scheduler.worker_error worker=%s url=%s error=%s",
                    worker_id, endpoint.url, exc)
            finally:
                endpoint.release()
                self._jobs.task_done()

    def _process(self, endpoint: Endpoint, worker_id) -> MonitorEvent:
        with endpoint.lock:
            status = self._run_probe(endpoint)
            previous = endpoint.last_status
            transition = endpoint.observe(status)
            occurred_at = self._clock()

            notified = False
            if transition.should_log:
                LOGGER.info(
                    "monitor.scheduler.transition worker=%s url=%s state=%s status=%s",
                    worker_id, endpoint.url, transition.label, status)
                self._write_log(endpoint.url, transition)
            if transition.should_notify:
                notified = self._dispatch_notification(
                    endpoint.url, transition, status, occurred_at)

        event = MonitorEvent(
            url=endpoint.url,
            previous_status=previous,
            status=status,
            transition=transition,
            occurred_at=occurred_at,
            notified=notified,
        )
        try:
            self._event_handler(event)
        except Exception as exc:  # pragma: no cover - defensive safeguard
            LOGGER.exception(
                "monitor.scheduler.event_handler_error url=%s state=%s error=%s",
                event.url, transition.name, exc)
        return event

    def _run_probe(self, endpoint: Endpoint) -> int:
        try:
            return int(self._probe(endpoint.url))
        except Exception as exc:
            LOGGER.exception("monitor.scheduler.probe_error url=%s error=%s",
                             endpoint.url, exc)
            return http_probe.REQUEST_TIMEOUT_STATUS

    def _write_log(self, url: str, transition: Transition) -> None:
        try:
            self._recorder.record_transition(url, transition)
        except Exception as exc:
            LOGGER.exception("monitor.scheduler.log_error url=%s state=%s error=%s",
                             url, transition.name, exc)

    def _dispatch_notification(self, url: str, transition: Transition,
                               status: int, occurred_at: _dt.datetime) -> bool:
        try:
            self._notifier(url, transition.label, status, occurred_at)
        except Exception as exc:
            LOGGER.exception(
                "monitor.scheduler.notification_error url=%s state=%s status=%s error=%s",
                url, transition.name, status, exc)
            return False
        return True
