# -*- codeing = utf-8 -*-
# @Create: 2023-03-29 3:23 p.m.
# @Update: 2026-10-18 9:40 a.m.
# @Author: John Zhao
"""HTTP probing helper functions."""

import logging

import requests

LOGGER = logging.getLogger(__name__)

# Reported for every network-level failure (timeout, refused, DNS, TLS).
REQUEST_TIMEOUT_STATUS = 408
REACHABLE_STATUS_LIMIT = 399


def is_reachable(status: int) -> bool:
    return status <= REACHABLE_STATUS_LIMIT


def _head_status(url: str, timeout: float) -> int:
    response = requests.head(url, timeout=timeout, allow_redirects=True)
    try:
        return response.status_code
    finally:
        response.close()


def check_http_status(url: str, timeout: float, *, retry: bool = False) -> int:
    """Send one HEAD request to ``url`` and return its status code.

    Network failures never raise; they are reported as
    ``REQUEST_TIMEOUT_STATUS``. With ``retry`` set, a second attempt is made
    after a network failure only.
    """

    attempts = 2 if retry else 1
    for attempt in range(1, attempts + 1):
        try:
            status = _head_status(url, timeout)
        except requests.RequestException as exc:
            LOGGER.warning(
                "monitor.http.error url=%s attempt=%d/%d error=%s",
                url,
                attempt,
                attempts,
                exc,
            )
            continue

        if is_reachable(status):
            LOGGER.info("monitor.http.success url=%s status=%s", url, status)
        else:
            LOGGER.warning("monitor.http.failure url=%s status=%s", url,
                           status)
        return status

    return REQUEST_TIMEOUT_STATUS
