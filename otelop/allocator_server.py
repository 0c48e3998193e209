"""HTTP service exposing the target allocation, and the command that runs it."""

from __future__ import annotations

import argparse
import json
import logging
import os
import signal
import threading
from dataclasses import dataclass
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs, unquote, urlsplit

from otelop.allocator import Allocator
from otelop.allocator_config import ConfigError, load
from otelop.discovery import DiscoveryManager
from otelop.targets import (
    group_by_collector_and_job,
    targets_by_collector_and_job,
    targets_by_job,
)

CONFIG_FILE_NAME = "targetallocator.yaml"

_setup_log = logging.getLogger("otelop.setup")


def _parse_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid listen address: {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    number = int(port)
    if number > 65535:
        raise ValueError(f"invalid port in listen address: {address!r}")
    return host, number


class _Handler(BaseHTTPRequestHandler):
    server: _HTTPServer

    def _route(self) -> tuple[str, str | None] | None:
        parts = urlsplit(self.path)
        segments = parts.path.split("/")
        if segments == ["", "jobs"]:
            return "jobs", None
        if len(segments) == 4 and segments[:2] == ["", "jobs"] and segments[3] == "targets":
            if segments[2]:
                return "targets", unquote(segments[2])
        return None

    def _send_json(self, data: Any) -> None:
        body = (json.dumps(data) + "\n").encode("utf-8")
        self.send_response(HTTPStatus.OK)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def _send_status(self, status: HTTPStatus) -> None:
        body = f"{status.phrase}\n".encode()
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def do_GET(self) -> None:  # noqa: N802
        route = self._route()
        if route is None:
            self._send_status(HTTPStatus.NOT_FOUND)
            return
        name, job_id = route
        app = self.server.app
        if name == "jobs":
            self._send_json(app.jobs())
            return
        query = parse_qs(urlsplit(self.path).query, keep_blank_values=True)
        collector_ids = query.get("collector_id")
        collector_id = collector_ids[0] if collector_ids else None
        self._send_json(app.targets(job_id or "", collector_id))

    def _method_not_allowed(self) -> None:
        if self._route() is None:
            self._send_status(HTTPStatus.NOT_FOUND)
        else:
            self._send_status(HTTPStatus.METHOD_NOT_ALLOWED)

    do_POST = do_PUT = do_DELETE = do_PATCH = _method_not_allowed  # noqa: N815

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        self.server.app.logger.debug("%s - " + format, self.address_string(), *args)


class _HTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: tuple[str, int], app: AllocatorServer) -> None:
        self.app = app
        super().__init__(address, _Handler)


class AllocatorServer:
    """Serves /jobs and /jobs/{job_id}/targets from an allocator."""

    def __init__(self, allocator: Allocator, address: str = ":8080") -> None:
        self.allocator = allocator
        self.address = address
        self._bind = _parse_address(address)
        self.logger = logging.getLogger("otelop.allocator-server")
        self._httpd: _HTTPServer | None = None
        self._thread: threading.Thread | None = None

    def jobs(self) -> dict[str, dict[str, str]]:
        """Every job that has targets, with the link to its targets."""
        return {
            item.job_name: {"_link": item.link}
            for item in list(self.allocator.target_items.values())
        }

    def targets(self, job_id: str, collector_id: str | None = None) -> Any:
        """Targets of a job, per collector, or for one collector when given."""
        compare_map = group_by_collector_and_job(self.allocator)
        if collector_id is None:
            return targets_by_job(job_id, compare_map, self.allocator)
        return targets_by_collector_and_job(collector_id, job_id, compare_map, self.allocator)

    @property
    def bound_address(self) -> tuple[str, int]:
        """The host and port the server listens on once started."""
        if self._httpd is None:
            raise RuntimeError("server is not running")
        host, port = self._httpd.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        """Start serving in a background thread."""
        if self._httpd is not None:
            raise RuntimeError("server is already running")
        _setup_log.info("Starting server...")
        self._httpd = _HTTPServer(self._bind, self)
        self._thread = threading.Thread(
            target=self._httpd.serve_forever, name="otelop-allocator-http", daemon=True
        )
        self._thread.start()

    def shutdown(self) -> None:
        """Stop serving; does nothing when not running."""
        httpd, self._httpd = self._httpd, None
        thread, self._thread = self._thread, None
        if httpd is None:
            return
        self.logger.info("Shutting down server...")
        httpd.shutdown()
        httpd.server_close()
        if thread is not None:
            thread.join()


@dataclass
class _Service:
    discovery: DiscoveryManager
    server: AllocatorServer

    def shutdown(self) -> None:
        self.discovery.close()
        self.server.shutdown()


def _start_service(
    config_path: Path, address: str, collectors: list[str], logger: logging.Logger
) -> _Service:
    cfg = load(config_path)
    allocator = Allocator(logger)
    allocator.set_collectors(collectors)
    discovery = DiscoveryManager(logger)

    def on_targets(targets):
        allocator.set_waiting_targets(targets)
        allocator.allocate_targets()

    discovery.watch(on_targets)
    server = AllocatorServer(allocator, address)
    try:
        discovery.apply_config(cfg)
        server.start()
    except Exception:
        discovery.close()
        raise
    return _Service(discovery=discovery, server=server)


def _snapshot(directory: Path) -> dict[str, int]:
    try:
        with os.scandir(directory) as entries:
            return {entry.name: entry.stat().st_mtime_ns for entry in entries}
    except OSError:
        return {}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="otel-allocator", description="Target allocator.")
    parser.add_argument(
        "--listen-addr", default=":8080", help="The address where this service serves."
    )
    parser.add_argument(
        "--config-dir", default="/conf/", help="The directory for the config file."
    )
    parser.add_argument(
        "--collectors",
        default="",
        help="Comma-separated names of the collectors to allocate targets to.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the target allocator until interrupted."""
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger("otelop.allocator")
    logger.info("Starting the Target Allocator")

    config_dir = Path(args.config_dir)
    config_path = config_dir / CONFIG_FILE_NAME
    collectors = [name.strip() for name in args.collectors.split(",") if name.strip()]

    try:
        service: _Service | None = _start_service(
            config_path, args.listen_addr, collectors, logger
        )
    except (OSError, ConfigError, ValueError) as err:
        _setup_log.error("Can't start the server: %s", err)
        return 1

    stop = threading.Event()
    previous_handlers = {}
    if threading.current_thread() is threading.main_thread():
        for sig in (signal.SIGINT, signal.SIGTERM):
            previous_handlers[sig] = signal.signal(sig, lambda *_: stop.set())

    last = _snapshot(config_dir)
    try:
        while not stop.wait(1.0):
            current = _snapshot(config_dir)
            if current == last:
                continue
            last = current
            _setup_log.info("ConfigMap updated!")
            if service is not None:
                service.shutdown()
            try:
                service = _start_service(config_path, args.listen_addr, collectors, logger)
            except (OSError, ConfigError, ValueError) as err:
                _setup_log.error("Error restarting the server with new config: %s", err)
                service = None
    finally:
        for sig, handler in previous_handlers.items():
            signal.signal(sig, handler)
        if service is not None:
            service.shutdown()
    return 0