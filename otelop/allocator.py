"""Least-loaded distribution of scrape targets among collectors."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from operator import attrgetter


@dataclass
class Collector:
    """A collector instance and how many targets it currently holds."""

    name: str
    num_targets: int = 0


@dataclass
class TargetItem:
    """A scrape target for one job, optionally assigned to a collector."""

    job_name: str
    target_url: str
    label: dict[str, str] = field(default_factory=dict)
    link: str = ""
    collector: Collector | None = None

    @property
    def key(self) -> str:
        return self.job_name + self.target_url


class Allocator:
    """Assigns each target to the collector with the fewest targets."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._lock = threading.Lock()
        self._targets_waiting: dict[str, TargetItem] = {}
        self.collectors: dict[str, Collector] = {}
        self.target_items: dict[str, TargetItem] = {}
        self._logger = logger or logging.getLogger("otelop.allocator")

    def find_next_collector(self) -> Collector | None:
        """Return the collector holding the fewest targets, or None without collectors."""
        return min(self.collectors.values(), key=attrgetter("num_targets"), default=None)

    def set_waiting_targets(self, targets: Iterable[TargetItem]) -> None:
        """Replace the targets that the next allocation works from."""
        with self._lock:
            self._targets_waiting = {target.key: target for target in targets}

    def set_collectors(self, collectors: Iterable[str]) -> None:
        """Replace the set of collectors; an empty set is ignored."""
        names = list(collectors)
        with self._lock:
            if not names:
                self._logger.info("No collector instances present")
                return
            self.collectors.clear()
            for name in names:
                self.collectors[name] = Collector(name=name)

    def allocate_targets(self) -> None:
        """Drop targets that are gone and assign the new ones."""
        with self._lock:
            self._remove_outdated_targets()
            self._process_waiting_targets()

    def reallocate_collectors(self) -> None:
        """Assign all waiting targets afresh among the current collectors."""
        with self._lock:
            self.target_items = {}
            self._process_waiting_targets()

    def _remove_outdated_targets(self) -> None:
        for key in [k for k in self.target_items if k not in self._targets_waiting]:
            item = self.target_items.pop(key)
            holder = self.collectors.get(item.collector.name) if item.collector else None
            if holder is not None:
                holder.num_targets -= 1

    def _process_waiting_targets(self) -> None:
        for key, waiting in self._targets_waiting.items():
            if key in self.target_items:
                continue
            collector = self.find_next_collector()
            if collector is None:
                raise RuntimeError("no collectors available to allocate targets to")
            collector.num_targets += 1
            self.target_items[key] = TargetItem(
                job_name=waiting.job_name,
                target_url=waiting.target_url,
                label=dict(waiting.label),
                link=f"/jobs/{waiting.job_name}/targets",
                collector=collector,
            )