"""Defaulting and validation rules for Instrumentation and OpenTelemetryCollector resources."""

from __future__ import annotations

import logging

import yaml

from otelop.api import (
    EnvVar,
    Instrumentation,
    Mode,
    ObjectMeta,
    OpenTelemetryCollector,
    SamplerType,
    UpgradeStrategy,
)

ANNOTATION_DEFAULT_AUTO_INSTRUMENTATION_JAVA = (
    "instrumentation.opentelemetry.io/default-auto-instrumentation-java-image"
)
ANNOTATION_DEFAULT_AUTO_INSTRUMENTATION_NODEJS = (
    "instrumentation.opentelemetry.io/default-auto-instrumentation-nodejs-image"
)
ANNOTATION_DEFAULT_AUTO_INSTRUMENTATION_PYTHON = (
    "instrumentation.opentelemetry.io/default-auto-instrumentation-python-image"
)

MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "opentelemetry-operator"

_ENV_PREFIXES = ("OTEL_", "SPLUNK_")
_RATIO_SAMPLERS = (SamplerType.TRACE_ID_RATIO, SamplerType.PARENT_BASED_TRACE_ID_RATIO)

_instrumentation_log = logging.getLogger("otelop.instrumentation-resource")
_collector_log = logging.getLogger("otelop.opentelemetrycollector-resource")


class ValidationError(ValueError):
    """A resource does not pass validation."""


def _ensure_managed_by(metadata: ObjectMeta) -> None:
    if metadata.labels is None:
        metadata.labels = {}
    if not metadata.labels.get(MANAGED_BY_LABEL):
        metadata.labels[MANAGED_BY_LABEL] = MANAGED_BY_VALUE


def default_instrumentation(inst: Instrumentation) -> Instrumentation:
    """Fill in defaults on an Instrumentation in place and return it."""
    _instrumentation_log.info("default name=%s", inst.metadata.name)
    _ensure_managed_by(inst.metadata)

    annotations = inst.metadata.annotations or {}
    for language, key in (
        (inst.spec.java, ANNOTATION_DEFAULT_AUTO_INSTRUMENTATION_JAVA),
        (inst.spec.nodejs, ANNOTATION_DEFAULT_AUTO_INSTRUMENTATION_NODEJS),
        (inst.spec.python, ANNOTATION_DEFAULT_AUTO_INSTRUMENTATION_PYTHON),
    ):
        if not language.image and key in annotations:
            language.image = annotations[key]
    return inst


def _parse_float(text: str) -> float:
    if text != text.strip() or "_" in text:
        raise ValueError(text)
    return float(text)


def _validate_env(envs: list[EnvVar]) -> None:
    for env in envs:
        if not env.name.startswith(_ENV_PREFIXES):
            raise ValidationError(
                f'env name should start with "OTEL_" or "SPLUNK_": {env.name}'
            )


def validate_instrumentation(inst: Instrumentation) -> None:
    """Raise ValidationError if the Instrumentation is invalid."""
    _instrumentation_log.info("validate name=%s", inst.metadata.name)
    sampler = inst.spec.sampler
    if sampler.type in _RATIO_SAMPLERS and sampler.argument:
        try:
            rate = _parse_float(sampler.argument)
        except ValueError:
            raise ValidationError(
                f"spec.sampler.argument is not a number: {sampler.argument}"
            ) from None
        if rate < 0 or rate > 1:
            raise ValidationError(
                f"spec.sampler.argument should be in rage [0..1]: {sampler.argument}"
            )

    for envs in (inst.spec.env, inst.spec.java.env, inst.spec.nodejs.env, inst.spec.python.env):
        _validate_env(envs)


def default_collector(collector: OpenTelemetryCollector) -> OpenTelemetryCollector:
    """Fill in defaults on an OpenTelemetryCollector in place and return it."""
    if collector.spec.mode is None:
        collector.spec.mode = Mode.DEPLOYMENT
    if collector.spec.upgrade_strategy is None:
        collector.spec.upgrade_strategy = UpgradeStrategy.AUTOMATIC
    _ensure_managed_by(collector.metadata)
    _collector_log.info("default name=%s", collector.metadata.name)
    return collector


def validate_collector(collector: OpenTelemetryCollector) -> None:
    """Raise ValidationError if the OpenTelemetryCollector spec is invalid."""
    _collector_log.info("validate name=%s", collector.metadata.name)
    spec = collector.spec
    mode = spec.mode.value if spec.mode is not None else ""

    if spec.mode is not Mode.STATEFUL_SET and spec.volume_claim_templates:
        raise ValidationError(
            f"the OpenTelemetry Collector mode is set to {mode}, which does not support "
            "the attribute 'volumeClaimTemplates'"
        )

    if spec.mode in (Mode.SIDECAR, Mode.DAEMON_SET) and spec.replicas is not None:
        raise ValidationError(
            f"the OpenTelemetry Collector mode is set to {mode}, which does not support "
            "the attribute 'replicas'"
        )

    if spec.mode is Mode.SIDECAR and spec.tolerations:
        raise ValidationError(
            f"the OpenTelemetry Collector mode is set to {mode}, which does not support "
            "the attribute 'tolerations'"
        )

    if spec.target_allocator.enabled and spec.mode is not Mode.STATEFUL_SET:
        raise ValidationError(
            f"the OpenTelemetry Collector mode is set to {mode}, which does not support "
            "the target allocation deployment"
        )

    if spec.target_allocator.enabled:
        try:
            yaml.safe_load(spec.config)
        except yaml.YAMLError as err:
            raise ValidationError(
                f"the OpenTelemetry Spec Prometheus configuration is incorrect, {err}"
            ) from err

    if spec.max_replicas is not None:
        if spec.max_replicas < 1:
            raise ValidationError(
                "the OpenTelemetry Spec autoscale configuration is incorrect, "
                "maxReplicas should be defined and more than one"
            )
        if spec.replicas is not None and spec.replicas > spec.max_replicas:
            raise ValidationError(
                "the OpenTelemetry Spec autoscale configuration is incorrect, "
                "replicas must not be greater than maxReplicas"
            )