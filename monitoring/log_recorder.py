# -*- codeing = utf-8 -*-
# @Create: 2023-02-16 3:37 p.m.
# @Update: 2026-10-18 10:05 a.m.
# @Author: John Zhao
import datetime
import logging
import sys
import threading
from pathlib import Path
from typing import Callable, Optional, TextIO

from .state_machine import Transition

LOGGER = logging.getLogger(__name__)

LINE_TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M:%S"


def format_entry(severity: str, url: str, label: str) -> str:
    return f"{severity}:  {url} is {label}"


class EventRecorder:
    """Append status-change lines to the monitor's log file.

    When the file cannot be opened the recorder keeps working and writes to
    ``fallback`` (standard error by default) instead.
    """

    def __init__(
        self,
        log_file_path,
        *,
        fallback: Optional[TextIO] = None,
        clock: Optional[Callable[[], datetime.datetime]] = None,
    ) -> None:
        self._path = Path(log_file_path)
        self._clock = clock or datetime.datetime.now
        self._lock = threading.Lock()
        self._owns_stream = False
        self.degraded = False

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._stream = self._path.open("a", encoding="utf-8")
            self._owns_stream = True
        except OSError as exc:
            LOGGER.warning("monitor.log_sink.fallback path=%s error=%s",
                           self._path, exc)
            self._stream = fallback if fallback is not None else sys.stderr
            self.degraded = True

    @property
    def path(self) -> Path:
        return self._path

    def record(self, severity: str, url: str, label: str) -> str:
        entry = format_entry(severity, url, label)
        timestamp = self._clock().strftime(LINE_TIMESTAMP_FORMAT)
        with self._lock:
            self._stream.write(f"{timestamp} {entry}\n")
            self._stream.flush()
        return entry

    def record_transition(self, url: str, transition: Transition) -> Optional[str]:
        if not transition.should_log:
            return None
        return self.record(transition.severity, url, transition.label)

    def close(self) -> None:
        with self._lock:
            if self._owns_stream:
                self._stream.close()
                self._owns_stream = False
