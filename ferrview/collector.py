"""The collector: receives probe batches, stores them and serves the web UI."""

from __future__ import annotations

import argparse
import logging
import os
import sys
import threading
import time
from collections.abc import Sequence

from ferrview.db import StoreError
from ferrview.reader import ReaderPool
from ferrview.server import HttpServer
from ferrview.writer import create_writer

log = logging.getLogger(__name__)

DEFAULT_HOST = "localhost"
DEFAULT_PORT = "8080"
DEFAULT_DATA_DIR = "data"
_POLL_SECONDS = 0.5


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse the command line; "help" as the first word shows the help."""
    args = list(sys.argv[1:] if argv is None else argv)
    if args[:1] == ["help"]:
        args[0] = "--help"
    parser = argparse.ArgumentParser(
        prog="ferrview-collector", description="Ferrview metrics collector"
    )
    parser.add_argument("-l", "--host", default=DEFAULT_HOST, help="hostname or ip")
    parser.add_argument("-p", "--port", default=DEFAULT_PORT, help="port")
    parser.add_argument("-d", "--data-dir", default=DEFAULT_DATA_DIR, help="data directory")
    return parser.parse_args(args)


def _setup_logging() -> None:
    root = logging.getLogger()
    if root.handlers:
        return
    name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = logging.getLevelNamesMapping().get(name, logging.INFO)
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%Y-%m-%dT%H:%M:%SZ"
    )
    formatter.converter = time.gmtime
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(level)


def _serve(server: HttpServer) -> None:
    try:
        server.run()
    except StoreError as exc:
        log.error("HTTP server error: %s", exc)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the collector until interrupted; return 1 if it cannot start."""
    _setup_logging()
    log.info("Starting ferrview-collector")

    args = parse_args(argv)
    log.debug("Args: %s", args)

    try:
        service, handle = create_writer(args.data_dir)
    except StoreError as exc:
        log.error("Failed to initialize database: %s", exc)
        return 1

    writer_thread = threading.Thread(target=service.run, name="ferrview-writer")
    writer_thread.start()

    reader: ReaderPool | None = None
    server: HttpServer | None = None
    try:
        try:
            reader = ReaderPool(args.data_dir)
        except StoreError as exc:
            log.error("Failed to initialize reader pool: %s", exc)
            return 1
        log.info("Reader pool initialized")

        try:
            server = HttpServer(args.host, args.port, handle, reader, args.data_dir)
        except StoreError as exc:
            log.error("Failed to create HTTP server: %s", exc)
            return 1
        log.info("Listening on %s:%s", args.host, args.port)
        log.info("Data directory: %s", args.data_dir)

        server_thread = threading.Thread(
            target=_serve, args=(server,), name="ferrview-http", daemon=True
        )
        server_thread.start()
        try:
            while server_thread.is_alive():
                server_thread.join(_POLL_SECONDS)
            log.info("Server task completed")
        except KeyboardInterrupt:
            log.info("Received shutdown signal")
        return 0
    finally:
        log.info("Shutting down...")
        if server is not None:
            server.shutdown()
        try:
            handle.shutdown()
        except StoreError as exc:
            log.error("Error shutting down writer: %s", exc)
        writer_thread.join()
        if reader is not None:
            reader.close()
        log.info("Shutdown complete")


if __name__ == "__main__":
    raise SystemExit(main())