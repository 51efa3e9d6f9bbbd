"""Retrying a send with exponential backoff."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from ferrview.client import ClientError

log = logging.getLogger(__name__)

T = TypeVar("T")


def send_with_retry(
    func: Callable[[], T],
    max_retries: int,
    sleep: Callable[[float], object] = time.sleep,
) -> T:
    """Call func until it succeeds, at most max_retries times.

    Between attempts waits 1, 2, 4, ... seconds. A ClientError from the last
    attempt is re-raised.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            result = func()
        except ClientError as exc:
            if attempt >= max_retries:
                log.warning("Failed to send after %d attempts: %s", max_retries, exc)
                raise
            backoff = 2 ** (attempt - 1)
            log.warning(
                "Attempt %d/%d failed: %s. Retrying in %ds", attempt, max_retries, exc, backoff
            )
            sleep(backoff)
        else:
            if attempt > 1:
                log.debug("Successfully sent after %d attempts", attempt)
            return result