"""Admission webhook that lets pod mutators rewrite pods before they are created."""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Protocol

from otelop.config import Config


@dataclass
class AdmissionRequest:
    """An admission request for a pod: its namespace and the raw pod JSON."""

    namespace: str = ""
    object: bytes = b""


@dataclass
class AdmissionResponse:
    """The answer to an admission request."""

    allowed: bool
    patches: list[dict[str, Any]] = field(default_factory=list)
    status_code: int | None = None
    message: str = ""

    @property
    def patch_type(self) -> str | None:
        return "JSONPatch" if self.patches else None

    @classmethod
    def errored(cls, status: HTTPStatus, error: object) -> AdmissionResponse:
        return cls(allowed=False, status_code=int(status), message=str(error))


class PodMutator(Protocol):
    """Changes a pod that is about to be admitted."""

    def mutate(self, namespace: dict[str, Any], pod: dict[str, Any]) -> dict[str, Any]:
        """Return the mutated pod."""
        ...


class NamespaceClient(Protocol):
    """Fetches namespaces from the cluster."""

    def get_namespace(self, name: str) -> dict[str, Any]:
        """Return the namespace object, or raise when it cannot be fetched."""
        ...


def _escape(key: str) -> str:
    return key.replace("~", "~0").replace("/", "~1")


def _diff(original: Any, modified: Any, path: str) -> Iterator[dict[str, Any]]:
    if isinstance(original, dict) and isinstance(modified, dict):
        for key in sorted(original.keys() - modified.keys()):
            yield {"op": "remove", "path": f"{path}/{_escape(key)}"}
        for key in sorted(modified):
            child = f"{path}/{_escape(key)}"
            if key not in original:
                yield {"op": "add", "path": child, "value": modified[key]}
            else:
                yield from _diff(original[key], modified[key], child)
        return
    if type(original) is not type(modified) or original != modified:
        yield {"op": "replace", "path": path, "value": modified}


def json_patch(original: Any, modified: Any) -> list[dict[str, Any]]:
    """Return the JSON patch operations that turn ``original`` into ``modified``."""
    return list(_diff(original, modified, ""))


class WebhookHandler:
    """Decodes pods from admission requests, runs the mutators and answers with a patch."""

    def __init__(
        self,
        config: Config | None = None,
        client: NamespaceClient | None = None,
        mutators: Iterable[PodMutator] = (),
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.mutators = list(mutators)
        self.logger = logger or logging.getLogger("otelop.pod-webhook")

    def handle(self, request: AdmissionRequest) -> AdmissionResponse:
        """Answer one admission request."""
        try:
            original = json.loads(request.object)
        except (ValueError, TypeError) as err:
            return AdmissionResponse.errored(HTTPStatus.BAD_REQUEST, err)
        if not isinstance(original, dict):
            return AdmissionResponse.errored(HTTPStatus.BAD_REQUEST, "pod must be a JSON object")
        pod = copy.deepcopy(original)

        if self.client is None:
            return AdmissionResponse.errored(
                HTTPStatus.INTERNAL_SERVER_ERROR, "no client to fetch the namespace"
            )
        # The request's namespace is used, as the pod may not have been created yet.
        try:
            namespace = self.client.get_namespace(request.namespace)
        except Exception as err:
            self.logger.debug("cannot fetch namespace %s: %s", request.namespace, err)
            return AdmissionResponse.errored(HTTPStatus.INTERNAL_SERVER_ERROR, err)

        for mutator in self.mutators:
            try:
                pod = mutator.mutate(namespace, pod)
            except Exception as err:
                self.logger.debug("pod mutation failed: %s", err)
                return AdmissionResponse.errored(HTTPStatus.INTERNAL_SERVER_ERROR, err)

        try:
            modified = json.loads(json.dumps(pod))
        except (TypeError, ValueError) as err:
            return AdmissionResponse.errored(HTTPStatus.INTERNAL_SERVER_ERROR, err)
        return AdmissionResponse(allowed=True, patches=json_patch(original, modified))