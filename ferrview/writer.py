"""Single writer that serialises inserts and rotates the database at UTC midnight."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from ferrview.db import Database, StoreError, current_utc_date, insert_batch
from ferrview.models import ProbeDataPoint

log = logging.getLogger(__name__)

CHANNEL_BUFFER_SIZE = 1000

_SEND_POLL_SECONDS = 0.1


@dataclass(frozen=True)
class _InsertBatch:
    data: list[ProbeDataPoint]


class _Shutdown:
    pass


_SHUTDOWN = _Shutdown()


class _Channel:
    def __init__(self) -> None:
        self.queue: queue.Queue[_InsertBatch | _Shutdown] = queue.Queue(
            maxsize=CHANNEL_BUFFER_SIZE
        )
        self.closed = threading.Event()


class WriterHandle:
    """Sends write commands to a running WriterService; safe to share between threads."""

    def __init__(self, channel: _Channel) -> None:
        self._channel = channel

    def _send(self, command: _InsertBatch | _Shutdown) -> None:
        while True:
            if self._channel.closed.is_set():
                raise StoreError("Database not initialized")
            try:
                self._channel.queue.put(command, timeout=_SEND_POLL_SECONDS)
                return
            except queue.Full:
                continue

    def insert_batch(self, data: Iterable[ProbeDataPoint]) -> None:
        """Queue a batch of points to be written."""
        self._send(_InsertBatch(list(data)))

    def shutdown(self) -> None:
        """Ask the writer to stop after what is already queued."""
        self._send(_SHUTDOWN)


class WriterService:
    """Owns the database connection and processes queued write commands."""

    def __init__(
        self, data_dir: str | Path, date_source: Callable[[], str] = current_utc_date
    ) -> None:
        self.data_dir = str(data_dir)
        self._today = date_source
        self.current_date = date_source()
        self._db = Database.open_for_date(self.data_dir, self.current_date)
        self._channel = _Channel()
        self.handle = WriterHandle(self._channel)

    def run(self) -> None:
        """Process commands until shutdown, drain what remains, then close the database."""
        log.info("Starting database writer service")
        try:
            while True:
                command = self._channel.queue.get()
                if isinstance(command, _Shutdown):
                    log.info("Received shutdown command")
                    break
                try:
                    self._handle_insert_batch(command.data)
                except StoreError as exc:
                    log.error("Failed to insert batch: %s", exc)
            self._drain_remaining_commands()
        finally:
            self._channel.closed.set()
            try:
                self._db.close()
            except StoreError as exc:
                log.error("Error closing database: %s", exc)
        log.info("Database writer service stopped")

    def _handle_insert_batch(self, data: list[ProbeDataPoint]) -> None:
        log.debug("Processing insert batch of %d items", len(data))
        today = self._today()
        if today != self.current_date:
            log.info("Date changed: %s -> %s, rotating database", self.current_date, today)
            self._rotate_database(today)

        inserted = insert_batch(self._db.conn, data)
        if inserted != len(data):
            log.warning("Expected to insert %d items but inserted %d", len(data), inserted)

    def _rotate_database(self, new_date: str) -> None:
        log.info("Closing database for date: %s", self.current_date)
        new_db = Database.open_for_date(self.data_dir, new_date)
        old_db, self._db = self._db, new_db
        try:
            old_db.close()
        except StoreError as exc:
            log.warning("Error closing old database: %s", exc)
        self.current_date = new_date
        log.info("Database rotation complete, now using: %s", new_date)

    def _drain_remaining_commands(self) -> None:
        drained = 0
        while True:
            try:
                command = self._channel.queue.get_nowait()
            except queue.Empty:
                break
            if isinstance(command, _Shutdown):
                break
            try:
                self._handle_insert_batch(command.data)
            except StoreError as exc:
                log.error("Failed to insert batch during drain: %s", exc)
            drained += 1
        if drained:
            log.info("Drained %d remaining commands before shutdown", drained)


def create_writer(data_dir: str | Path) -> tuple[WriterService, WriterHandle]:
    """Open today's database and return the writer service with its handle."""
    service = WriterService(data_dir)
    return service, service.handle