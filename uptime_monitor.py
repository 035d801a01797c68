# -*- codeing = utf-8 -*-
# @Create: 2026-10-18 11:02 a.m.
# @Update: 2026-10-18 11:02 a.m.
# @Author: John Zhao
"""Watch a list of sites and mail an alert when one goes down or comes back."""
from __future__ import annotations

import argparse
import logging
import signal
import threading
from typing import Optional, Sequence

import configuration
from monitoring import MonitorScheduler

LOGGER = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="uptime-monitor",
                                     description=__doc__)
    parser.add_argument(
        "-c",
        "--config",
        metavar="FILE",
        required=True,
        help="Load configuration from FILE",
    )
    return parser


def _install_signal_handlers(stop_requested: threading.Event) -> None:

    def _handle(signum, _frame):
        LOGGER.info("monitor.signal received=%s", signal.Signals(signum).name)
        stop_requested.set()

    for signum in (signal.SIGINT, signal.SIGTERM):
        signal.signal(signum, _handle)


def run(config: configuration.MonitorConfig,
        stop_requested: threading.Event) -> None:
    """Run the scheduler until ``stop_requested`` is set."""

    scheduler = MonitorScheduler.from_config(config)
    if scheduler.recorder.degraded:
        LOGGER.warning("monitor.log_sink.degraded path=%s",
                       scheduler.recorder.path)
    scheduler.start()
    try:
        while not stop_requested.wait(1.0):
            pass
    finally:
        scheduler.stop()
        scheduler.recorder.close()


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    configuration.configure_logging()

    try:
        config = configuration.load_config(args.config)
    except configuration.ConfigurationError as exc:
        raise SystemExit(f"uptime-monitor: {exc}") from exc

    configuration.configure_logging(config.log_level)

    stop_requested = threading.Event()
    _install_signal_handlers(stop_requested)
    run(config, stop_requested)


if __name__ == "__main__":
    main()
