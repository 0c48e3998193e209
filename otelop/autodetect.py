"""Detect traits of the cluster the operator runs on."""

from __future__ import annotations

import json
import urllib.error
import urllib.parse
import urllib.request
from enum import Enum

OPENSHIFT_ROUTE_GROUP = "route.openshift.io"


class Platform(str, Enum):
    """The kind of cluster the operator runs on."""

    UNKNOWN = "Unknown"
    KUBERNETES = "Kubernetes"
    OPENSHIFT = "OpenShift"


class AutoDetectError(RuntimeError):
    """The cluster could not be queried."""


class AutoDetect:
    """Queries the cluster's API server for the API groups it serves."""

    def __init__(self, host: str, timeout: float = 10.0) -> None:
        parts = urllib.parse.urlsplit(host)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise AutoDetectError(f"invalid API server address: {host!r}")
        self._base = host.rstrip("/")
        self._timeout = timeout

    def server_groups(self) -> list[str]:
        """Return the names of the API groups the server serves."""
        request = urllib.request.Request(
            f"{self._base}/apis", headers={"Accept": "application/json"}
        )
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                payload = json.loads(response.read().decode("utf-8") or "{}")
        except urllib.error.HTTPError as err:
            raise AutoDetectError(f"API server answered with status {err.code}") from err
        except (urllib.error.URLError, OSError) as err:
            raise AutoDetectError(f"cannot reach the API server: {err}") from err
        except ValueError as err:
            raise AutoDetectError(f"malformed API group list: {err}") from err

        if not isinstance(payload, dict):
            raise AutoDetectError("malformed API group list")
        return [group.get("name", "") for group in payload.get("groups") or []]

    def platform(self) -> Platform:
        """Return OpenShift when the route API group is served, else Kubernetes."""
        if OPENSHIFT_ROUTE_GROUP in self.server_groups():
            return Platform.OPENSHIFT
        return Platform.KUBERNETES