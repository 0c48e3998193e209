"""Discovery of scrape targets from static and file-based configurations."""

from __future__ import annotations

import glob
import json
import logging
import os
import threading
from collections.abc import Callable
from typing import Any

import yaml

from otelop.allocator import TargetItem
from otelop.allocator_config import (
    ADDRESS_LABEL,
    AllocatorConfig,
    FileSDConfig,
    ScrapeConfig,
    TargetGroup,
)

FILE_PATH_LABEL = "__meta_filepath"

Watcher = Callable[[list[TargetItem]], None]


class _FileSDError(ValueError):
    """A service discovery file holds no valid target groups."""


def _label_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise _FileSDError(f"label value must be a scalar, got {type(value).__name__}")


def _parse_file_groups(path: str, text: str) -> list[TargetGroup]:
    try:
        if path.lower().endswith(".json"):
            document = json.loads(text)
        else:
            document = yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as err:
        raise _FileSDError(f"cannot parse {path}: {err}") from err
    if document is None:
        return []
    if not isinstance(document, list):
        raise _FileSDError(f"{path} must hold a list of target groups")

    groups = []
    for index, entry in enumerate(document):
        if not isinstance(entry, dict):
            raise _FileSDError(f"{path}: target group {index} must be a mapping")
        unknown = set(entry) - {"targets", "labels"}
        if unknown:
            raise _FileSDError(f"{path}: unknown field {sorted(map(str, unknown))[0]}")
        raw_targets = entry.get("targets") or []
        if not isinstance(raw_targets, list):
            raise _FileSDError(f"{path}: targets must be a list")
        raw_labels = entry.get("labels") or {}
        if not isinstance(raw_labels, dict):
            raise _FileSDError(f"{path}: labels must be a mapping")
        labels = {str(name): _label_value(value) for name, value in raw_labels.items()}
        labels[FILE_PATH_LABEL] = path
        groups.append(
            TargetGroup(
                targets=[{ADDRESS_LABEL: _label_value(t)} for t in raw_targets],
                labels=labels,
                source=f"{path}:{index}",
            )
        )
    return groups


class DiscoveryManager:
    """Turns scrape configurations into target lists and hands them to watchers."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("otelop.discovery")
        self._lock = threading.Lock()
        self._jobs: list[ScrapeConfig] = []
        self._watchers: list[Watcher] = []
        self._file_cache: dict[str, list[TargetGroup]] = {}
        self._interval: float | None = None
        self._closed = threading.Event()
        self._thread: threading.Thread | None = None

    def apply_config(self, config: AllocatorConfig) -> list[TargetItem]:
        """Replace the scrape jobs, run discovery and return the targets found."""
        intervals = [
            file_sd.refresh_interval
            for job in config.scrape_configs
            for file_sd in job.file_sd_configs
            if file_sd.refresh_interval > 0
        ]
        with self._lock:
            self._jobs = list(config.scrape_configs)
            self._interval = min(intervals) if intervals else None
        targets = self.refresh()
        self._ensure_refresher()
        return targets

    def refresh(self) -> list[TargetItem]:
        """Discover the targets of every job now and notify the watchers."""
        with self._lock:
            jobs = list(self._jobs)
            watchers = list(self._watchers)

        targets = [
            TargetItem(
                job_name=job.job_name,
                target_url=target.get(ADDRESS_LABEL, ""),
                label=dict(group.labels),
            )
            for job in jobs
            for group in self._target_groups(job)
            for target in group.targets
        ]

        if not self._closed.is_set():
            for watcher in watchers:
                try:
                    watcher(list(targets))
                except Exception:
                    self._logger.exception("target watcher failed")
        return targets

    def watch(self, fn: Watcher) -> None:
        """Call ``fn`` with the full target list every time discovery runs."""
        with self._lock:
            self._watchers.append(fn)

    def close(self) -> None:
        """Stop notifying watchers and stop periodic refreshes."""
        self._closed.set()
        self._logger.info("Service Discovery watch event stopped: discovery manager closed")
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _target_groups(self, job: ScrapeConfig) -> list[TargetGroup]:
        groups = list(job.static_configs)
        for file_sd in job.file_sd_configs:
            groups.extend(self._file_groups(file_sd))
        return groups

    def _file_groups(self, file_sd: FileSDConfig) -> list[TargetGroup]:
        groups: list[TargetGroup] = []
        for pattern in file_sd.files:
            for path in sorted(glob.glob(pattern)):
                groups.extend(self._read_file(path))
        return groups

    def _read_file(self, path: str) -> list[TargetGroup]:
        try:
            with open(path, encoding="utf-8") as handle:
                parsed = _parse_file_groups(path, handle.read())
        except (OSError, _FileSDError) as err:
            # Keep serving what the file last held.
            self._logger.error("error reading file %s: %s", path, err)
            with self._lock:
                return list(self._file_cache.get(path, []))
        with self._lock:
            self._file_cache[path] = parsed
        return parsed

    def _ensure_refresher(self) -> None:
        with self._lock:
            if self._interval is None or self._closed.is_set():
                return
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(
                target=self._periodic_refresh, name="otelop-discovery", daemon=True
            )
            self._thread.start()

    def _periodic_refresh(self) -> None:
        while True:
            with self._lock:
                interval = self._interval
            if interval is None or self._closed.wait(interval):
                return
            try:
                self.refresh()
            except Exception:
                self._logger.exception("periodic discovery failed")


__all__ = ["DiscoveryManager", "FILE_PATH_LABEL"]


def _exists(path: str) -> bool:
    return os.path.exists(path)