# -*- codeing = utf-8 -*-
# @Create: 2023-03-29 3:23 p.m.
# @Update: 2026-10-18 10:31 a.m.
# @Author: John Zhao
"""Components related to the monitoring scheduler."""

from . import http_probe, log_recorder, send_email
from .log_recorder import EventRecorder
from .service import MonitorScheduler
from .state_machine import Endpoint, MonitorEvent, Transition, build_endpoints, classify

__all__ = [
    "Endpoint",
    "EventRecorder",
    "MonitorEvent",
    "MonitorScheduler",
    "Transition",
    "build_endpoints",
    "classify",
    "http_probe",
    "log_recorder",
    "send_email",
]
