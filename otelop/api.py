"""Resource definitions for the opentelemetry.io/v1alpha1 API group."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

GROUP = "opentelemetry.io"
VERSION = "v1alpha1"
API_VERSION = f"{GROUP}/{VERSION}"


class Mode(str, Enum):
    """How the collector is deployed."""

    DAEMON_SET = "daemonset"
    DEPLOYMENT = "deployment"
    SIDECAR = "sidecar"
    STATEFUL_SET = "statefulset"


class Propagator(str, Enum):
    """Inter-process context propagation type."""

    TRACE_CONTEXT = "tracecontext"
    BAGGAGE = "baggage"
    B3 = "b3"
    B3_MULTI = "b3multi"
    JAEGER = "jaeger"
    XRAY = "xray"
    OT_TRACE = "ottrace"
    NONE = "none"


class SamplerType(str, Enum):
    """Trace sampler type."""

    ALWAYS_ON = "always_on"
    ALWAYS_OFF = "always_off"
    TRACE_ID_RATIO = "traceidratio"
    PARENT_BASED_ALWAYS_ON = "parentbased_always_on"
    PARENT_BASED_ALWAYS_OFF = "parentbased_always_off"
    PARENT_BASED_TRACE_ID_RATIO = "parentbased_traceidratio"
    JAEGER_REMOTE = "jaeger_remote"
    XRAY = "xray"


class UpgradeStrategy(str, Enum):
    """How the operator handles upgrades of a resource."""

    AUTOMATIC = "automatic"
    NONE = "none"


def _is_empty(value: Any) -> bool:
    if value is None or value is False:
        return True
    return isinstance(value, (str, list, dict)) and not value


def _omit_empty(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if not _is_empty(value)}


def _enum_value(value: Enum | None) -> str | None:
    return value.value if value is not None else None


def _optional_enum(enum_cls: type[Enum], raw: Any) -> Any:
    if raw is None or raw == "":
        return None
    return enum_cls(raw)


@dataclass
class EnvVar:
    """An environment variable for a container."""

    name: str
    value: str = ""
    value_from: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, **_omit_empty({"value": self.value, "valueFrom": self.value_from})}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EnvVar:
        return cls(
            name=data.get("name", ""),
            value=data.get("value", ""),
            value_from=data.get("valueFrom"),
        )


def _envs_to_list(envs: list[EnvVar]) -> list[dict[str, Any]]:
    return [env.to_dict() for env in envs]


def _envs_from_list(raw: list[dict[str, Any]] | None) -> list[EnvVar]:
    return [EnvVar.from_dict(item) for item in raw or []]


@dataclass
class ObjectMeta:
    """Object metadata: name, namespace, labels and annotations."""

    name: str = ""
    namespace: str = ""
    labels: dict[str, str] | None = None
    annotations: dict[str, str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return _omit_empty(
            {
                "name": self.name,
                "namespace": self.namespace,
                "labels": dict(self.labels) if self.labels else None,
                "annotations": dict(self.annotations) if self.annotations else None,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ObjectMeta:
        data = data or {}
        labels = data.get("labels")
        annotations = data.get("annotations")
        return cls(
            name=data.get("name", ""),
            namespace=data.get("namespace", ""),
            labels=dict(labels) if labels is not None else None,
            annotations=dict(annotations) if annotations is not None else None,
        )


@dataclass
class Exporter:
    """OTLP exporter configuration."""

    endpoint: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _omit_empty({"endpoint": self.endpoint})

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Exporter:
        return cls(endpoint=(data or {}).get("endpoint", ""))


@dataclass
class Resource:
    """Resource attribute configuration."""

    attributes: dict[str, str] = field(default_factory=dict)
    add_k8s_uid_attributes: bool = False

    def to_dict(self) -> dict[str, Any]:
        return _omit_empty(
            {
                "resourceAttributes": dict(self.attributes),
                "addK8sUIDAttributes": self.add_k8s_uid_attributes,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Resource:
        data = data or {}
        return cls(
            attributes=dict(data.get("resourceAttributes") or {}),
            add_k8s_uid_attributes=bool(data.get("addK8sUIDAttributes", False)),
        )


@dataclass
class Sampler:
    """Sampling configuration."""

    type: SamplerType | None = None
    argument: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _omit_empty({"type": _enum_value(self.type), "argument": self.argument})

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Sampler:
        data = data or {}
        return cls(
            type=_optional_enum(SamplerType, data.get("type")),
            argument=data.get("argument", ""),
        )


@dataclass
class _LanguageConfig:
    image: str = ""
    env: list[EnvVar] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return _omit_empty({"image": self.image, "env": _envs_to_list(self.env)})

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None):
        data = data or {}
        return cls(image=data.get("image", ""), env=_envs_from_list(data.get("env")))


@dataclass
class Java(_LanguageConfig):
    """Java SDK and auto-instrumentation configuration."""


@dataclass
class NodeJS(_LanguageConfig):
    """NodeJS SDK and auto-instrumentation configuration."""


@dataclass
class Python(_LanguageConfig):
    """Python SDK and auto-instrumentation configuration."""


@dataclass
class InstrumentationSpec:
    """Desired state of the SDK and auto-instrumentation."""

    exporter: Exporter = field(default_factory=Exporter)
    resource: Resource = field(default_factory=Resource)
    propagators: list[Propagator] = field(default_factory=list)
    sampler: Sampler = field(default_factory=Sampler)
    env: list[EnvVar] = field(default_factory=list)
    java: Java = field(default_factory=Java)
    nodejs: NodeJS = field(default_factory=NodeJS)
    python: Python = field(default_factory=Python)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "exporter": self.exporter.to_dict(),
            "resource": self.resource.to_dict(),
            "sampler": self.sampler.to_dict(),
            "java": self.java.to_dict(),
            "nodejs": self.nodejs.to_dict(),
            "python": self.python.to_dict(),
        }
        result.update(
            _omit_empty(
                {
                    "propagators": [p.value for p in self.propagators],
                    "env": _envs_to_list(self.env),
                }
            )
        )
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> InstrumentationSpec:
        data = data or {}
        return cls(
            exporter=Exporter.from_dict(data.get("exporter")),
            resource=Resource.from_dict(data.get("resource")),
            propagators=[Propagator(p) for p in data.get("propagators") or []],
            sampler=Sampler.from_dict(data.get("sampler")),
            env=_envs_from_list(data.get("env")),
            java=Java.from_dict(data.get("java")),
            nodejs=NodeJS.from_dict(data.get("nodejs")),
            python=Python.from_dict(data.get("python")),
        )


@dataclass
class Instrumentation:
    """The Instrumentation resource."""

    KIND = "Instrumentation"

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: InstrumentationSpec = field(default_factory=InstrumentationSpec)

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": self.KIND,
            "metadata": self.metadata.to_dict(),
            "spec": self.spec.to_dict(),
            "status": {},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Instrumentation:
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=InstrumentationSpec.from_dict(data.get("spec")),
        )


@dataclass
class OpenTelemetryTargetAllocator:
    """Prometheus target allocator settings."""

    enabled: bool = False
    image: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _omit_empty({"enabled": self.enabled, "image": self.image})

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> OpenTelemetryTargetAllocator:
        data = data or {}
        return cls(enabled=bool(data.get("enabled", False)), image=data.get("image", ""))


@dataclass
class OpenTelemetryCollectorSpec:
    """Desired state of an OpenTelemetry Collector."""

    config: str = ""
    upgrade_strategy: UpgradeStrategy | None = None
    args: dict[str, str] = field(default_factory=dict)
    replicas: int | None = None
    max_replicas: int | None = None
    image_pull_policy: str = ""
    image: str = ""
    target_allocator: OpenTelemetryTargetAllocator = field(
        default_factory=OpenTelemetryTargetAllocator
    )
    mode: Mode | None = None
    service_account: str = ""
    security_context: dict[str, Any] | None = None
    pod_security_context: dict[str, Any] | None = None
    host_network: bool = False
    volume_claim_templates: list[dict[str, Any]] = field(default_factory=list)
    volume_mounts: list[dict[str, Any]] = field(default_factory=list)
    volumes: list[dict[str, Any]] = field(default_factory=list)
    ports: list[dict[str, Any]] = field(default_factory=list)
    env: list[EnvVar] = field(default_factory=list)
    env_from: list[dict[str, Any]] = field(default_factory=list)
    resources: dict[str, Any] = field(default_factory=dict)
    tolerations: list[dict[str, Any]] = field(default_factory=list)
    pod_annotations: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result = _omit_empty(
            {
                "config": self.config,
                "args": dict(self.args),
                "imagePullPolicy": self.image_pull_policy,
                "image": self.image,
                "mode": _enum_value(self.mode),
                "serviceAccount": self.service_account,
                "securityContext": self.security_context,
                "podSecurityContext": self.pod_security_context,
                "hostNetwork": self.host_network,
                "volumeClaimTemplates": list(self.volume_claim_templates),
                "volumeMounts": list(self.volume_mounts),
                "volumes": list(self.volumes),
                "ports": list(self.ports),
                "env": _envs_to_list(self.env),
                "envFrom": list(self.env_from),
                "tolerations": list(self.tolerations),
                "podAnnotations": dict(self.pod_annotations),
            }
        )
        # upgradeStrategy is always emitted, even when unset.
        result["upgradeStrategy"] = _enum_value(self.upgrade_strategy) or ""
        if self.replicas is not None:
            result["replicas"] = self.replicas
        if self.max_replicas is not None:
            result["maxReplicas"] = self.max_replicas
        result["targetAllocator"] = self.target_allocator.to_dict()
        result["resources"] = dict(self.resources)
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> OpenTelemetryCollectorSpec:
        data = data or {}
        return cls(
            config=data.get("config", ""),
            upgrade_strategy=_optional_enum(UpgradeStrategy, data.get("upgradeStrategy")),
            args=dict(data.get("args") or {}),
            replicas=data.get("replicas"),
            max_replicas=data.get("maxReplicas"),
            image_pull_policy=data.get("imagePullPolicy", ""),
            image=data.get("image", ""),
            target_allocator=OpenTelemetryTargetAllocator.from_dict(data.get("targetAllocator")),
            mode=_optional_enum(Mode, data.get("mode")),
            service_account=data.get("serviceAccount", ""),
            security_context=data.get("securityContext"),
            pod_security_context=data.get("podSecurityContext"),
            host_network=bool(data.get("hostNetwork", False)),
            volume_claim_templates=list(data.get("volumeClaimTemplates") or []),
            volume_mounts=list(data.get("volumeMounts") or []),
            volumes=list(data.get("volumes") or []),
            ports=list(data.get("ports") or []),
            env=_envs_from_list(data.get("env")),
            env_from=list(data.get("envFrom") or []),
            resources=dict(data.get("resources") or {}),
            tolerations=list(data.get("tolerations") or []),
            pod_annotations=dict(data.get("podAnnotations") or {}),
        )


@dataclass
class OpenTelemetryCollectorStatus:
    """Observed state of an OpenTelemetry Collector."""

    replicas: int = 0
    version: str = ""
    messages: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        result = _omit_empty({"version": self.version, "messages": list(self.messages)})
        if self.replicas:
            result["replicas"] = self.replicas
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> OpenTelemetryCollectorStatus:
        data = data or {}
        return cls(
            replicas=int(data.get("replicas", 0)),
            version=data.get("version", ""),
            messages=list(data.get("messages") or []),
        )


@dataclass
class OpenTelemetryCollector:
    """The OpenTelemetryCollector resource."""

    KIND = "OpenTelemetryCollector"

    metadata: ObjectMeta = field(default_factory=ObjectMeta)
    spec: OpenTelemetryCollectorSpec = field(default_factory=OpenTelemetryCollectorSpec)
    status: OpenTelemetryCollectorStatus = field(default_factory=OpenTelemetryCollectorStatus)

    def to_dict(self) -> dict[str, Any]:
        return {
            "apiVersion": API_VERSION,
            "kind": self.KIND,
            "metadata": self.metadata.to_dict(),
            "spec": self.spec.to_dict(),
            "status": self.status.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OpenTelemetryCollector:
        return cls(
            metadata=ObjectMeta.from_dict(data.get("metadata")),
            spec=OpenTelemetryCollectorSpec.from_dict(data.get("spec")),
            status=OpenTelemetryCollectorStatus.from_dict(data.get("status")),
        )