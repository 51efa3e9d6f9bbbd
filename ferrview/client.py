"""HTTP client that posts probe batches to the collector."""

from __future__ import annotations

import logging
import urllib.error
import urllib.request
from collections.abc import Iterable
from http import HTTPStatus

from ferrview.models import ProbeDataBatch, ProbeDataPoint

log = logging.getLogger(__name__)

_PROBE_PATH = "/api/v1/probe"


def _status_text(status: int) -> str:
    try:
        return f"{status} {HTTPStatus(status).phrase}"
    except ValueError:
        return str(status)


class ClientError(Exception):
    """Sending to the collector failed.

    status holds the HTTP status when the collector answered with an
    unexpected one, and is None for transport or serialization failures.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class HttpClient:
    """Posts probe batches as JSON to the collector's probe endpoint."""

    def __init__(self, collector_addr: str, timeout: float | None = None) -> None:
        if collector_addr.startswith(("http://", "https://")):
            self.collector_url = f"{collector_addr}{_PROBE_PATH}"
        else:
            self.collector_url = f"http://{collector_addr}{_PROBE_PATH}"
        self.timeout = timeout
        log.debug("HTTP client initialized for: %s", self.collector_url)

    def send_batch(self, data: Iterable[ProbeDataPoint]) -> None:
        """Send one batch; raise ClientError unless the collector answers 200 or 202."""
        batch = ProbeDataBatch(list(data))
        log.debug("Sending batch of %d probe data points", len(batch.data))

        try:
            body = batch.to_json().encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise ClientError(f"Serialization error: {exc}") from exc

        request = urllib.request.Request(
            self.collector_url,
            data=body,
            method="POST",
            headers={"Content-Type": "application/json"},
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                status = response.status
        except urllib.error.HTTPError as exc:
            status = exc.code
            exc.close()
        except (urllib.error.URLError, OSError, ValueError) as exc:
            raise ClientError(f"HTTP error: {exc}") from exc

        if status not in (HTTPStatus.OK, HTTPStatus.ACCEPTED):
            log.error("Collector returned error status: %s", _status_text(status))
            raise ClientError(f"Invalid response status: {_status_text(status)}", status)

        log.debug("Batch sent successfully, status: %s", _status_text(status))