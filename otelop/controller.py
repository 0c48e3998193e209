"""Reconciliation of OpenTelemetryCollector resources."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Protocol

from otelop.api import OpenTelemetryCollector
from otelop.config import Config


class NotFoundError(LookupError):
    """The requested resource does not exist."""


class CollectorClient(Protocol):
    """Fetches OpenTelemetryCollector resources from the cluster."""

    def get(self, namespace: str, name: str) -> OpenTelemetryCollector:
        """Return the resource, or raise NotFoundError."""
        ...


@dataclass
class ReconcileParams:
    """Everything a reconciliation task works from."""

    config: Config | None = None
    client: CollectorClient | None = None
    instance: OpenTelemetryCollector | None = None
    logger: logging.Logger | None = None


@dataclass
class Task:
    """A single reconciliation step."""

    name: str
    do: Callable[[ReconcileParams], None]
    bail_on_error: bool = False


class Reconciler:
    """Brings the cluster in line with an OpenTelemetryCollector resource."""

    def __init__(
        self,
        client: CollectorClient | None = None,
        config: Config | None = None,
        tasks: Iterable[Task] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.tasks = list(tasks or ())
        self.logger = logger or logging.getLogger("otelop.controllers.OpenTelemetryCollector")

    def reconcile(self, namespace: str, name: str) -> None:
        """Reconcile the named resource; a missing resource is silently skipped."""
        if self.client is None:
            raise RuntimeError("reconciler has no client")
        try:
            instance = self.client.get(namespace, name)
        except NotFoundError:
            # Deleted resources show up here; a requeue would not help.
            return
        except Exception:
            self.logger.exception("unable to fetch OpenTelemetryCollector %s/%s", namespace, name)
            raise

        params = ReconcileParams(
            config=self.config,
            client=self.client,
            instance=instance,
            logger=self.logger,
        )
        self.run_tasks(params)

    def run_tasks(self, params: ReconcileParams) -> None:
        """Run every task in order, stopping at the first failing task that bails."""
        for task in self.tasks:
            try:
                task.do(params)
            except Exception:
                self.logger.exception("failed to reconcile %s", task.name)
                if task.bail_on_error:
                    raise