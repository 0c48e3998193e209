"""Operator version and versions of the components it deploys."""

from __future__ import annotations

import platform
from dataclasses import dataclass

_FALLBACK = "0.0.0"


@dataclass(frozen=True)
class BuildInfo:
    """Version values stamped in at build time; empty when not set."""

    version: str = ""
    build_date: str = ""
    otel_col: str = ""
    target_allocator: str = ""
    auto_instrumentation_java: str = ""
    auto_instrumentation_nodejs: str = ""
    auto_instrumentation_python: str = ""


_BUILD = BuildInfo()


@dataclass(frozen=True)
class Version:
    """The operator's version and the versions of the components it uses."""

    operator: str
    build_date: str
    opentelemetry_collector: str
    runtime: str
    target_allocator: str
    auto_instrumentation_java: str
    auto_instrumentation_nodejs: str
    auto_instrumentation_python: str

    def to_dict(self) -> dict[str, str]:
        return {
            "opentelemetry-operator": self.operator,
            "build-date": self.build_date,
            "opentelemetry-collector-version": self.opentelemetry_collector,
            "runtime-version": self.runtime,
            "target-allocator-version": self.target_allocator,
            "auto-instrumentation-java": self.auto_instrumentation_java,
            "auto-instrumentation-nodejs": self.auto_instrumentation_nodejs,
            "auto-instrumentation-python": self.auto_instrumentation_python,
        }

    def __str__(self) -> str:
        return (
            f"Version(Operator='{self.operator}', BuildDate='{self.build_date}', "
            f"OpenTelemetryCollector='{self.opentelemetry_collector}', Runtime='{self.runtime}', "
            f"TargetAllocator='{self.target_allocator}', "
            f"AutoInstrumentationJava='{self.auto_instrumentation_java}', "
            f"AutoInstrumentationNodeJS='{self.auto_instrumentation_nodejs}', "
            f"AutoInstrumentationPython='{self.auto_instrumentation_python}')"
        )


def _or_fallback(value: str) -> str:
    return value or _FALLBACK


def opentelemetry_collector(build: BuildInfo | None = None) -> str:
    """Default collector version, "0.0.0" when not set at build time."""
    return _or_fallback((build or _BUILD).otel_col)


def target_allocator(build: BuildInfo | None = None) -> str:
    """Default target allocator version, "0.0.0" when not set at build time."""
    return _or_fallback((build or _BUILD).target_allocator)


def auto_instrumentation_java(build: BuildInfo | None = None) -> str:
    """Default Java auto-instrumentation version."""
    return _or_fallback((build or _BUILD).auto_instrumentation_java)


def auto_instrumentation_nodejs(build: BuildInfo | None = None) -> str:
    """Default NodeJS auto-instrumentation version."""
    return _or_fallback((build or _BUILD).auto_instrumentation_nodejs)


def auto_instrumentation_python(build: BuildInfo | None = None) -> str:
    """Default Python auto-instrumentation version."""
    return _or_fallback((build or _BUILD).auto_instrumentation_python)


def get(build: BuildInfo | None = None) -> Version:
    """Return the Version for the given build information."""
    build = build or _BUILD
    return Version(
        operator=build.version,
        build_date=build.build_date,
        opentelemetry_collector=opentelemetry_collector(build),
        runtime=platform.python_version(),
        target_allocator=target_allocator(build),
        auto_instrumentation_java=auto_instrumentation_java(build),
        auto_instrumentation_nodejs=auto_instrumentation_nodejs(build),
        auto_instrumentation_python=auto_instrumentation_python(build),
    )