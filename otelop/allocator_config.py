"""Configuration of the target allocator: collector selector and scrape jobs."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Any

import yaml

DEFAULT_CONFIG_FILE = "/conf/targetallocator.yaml"
DEFAULT_REFRESH_INTERVAL = 300.0
ADDRESS_LABEL = "__address__"

_TOP_LEVEL_KEYS = frozenset({"label_selector", "config"})
_PROMETHEUS_KEYS = frozenset(
    {"global", "alerting", "rule_files", "scrape_configs", "remote_write", "remote_read"}
)
_TARGET_GROUP_KEYS = frozenset({"targets", "labels"})
_FILE_SD_KEYS = frozenset({"files", "refresh_interval"})
_LABEL_NAME = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")
_FILE_SD_NAME = re.compile(r"^[^*]*(\*[^/]*)?\.(json|yml|yaml|JSON|YML|YAML)$")
_DURATION = re.compile(
    r"^(?:(\d+)y)?(?:(\d+)w)?(?:(\d+)d)?(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s)?(?:(\d+)ms)?$"
)
_DURATION_UNITS = (365 * 86400, 7 * 86400, 86400, 3600, 60, 1, 0.001)


class ConfigError(ValueError):
    """The configuration file could not be parsed."""


@dataclass
class TargetGroup:
    """A set of targets sharing the same labels."""

    targets: list[dict[str, str]] = field(default_factory=list)
    labels: dict[str, str] = field(default_factory=dict)
    source: str = ""


@dataclass
class FileSDConfig:
    """File-based service discovery: target groups read from files."""

    files: list[str] = field(default_factory=list)
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL


@dataclass
class ScrapeConfig:
    """One scrape job and the ways its targets are discovered."""

    job_name: str
    static_configs: list[TargetGroup] = field(default_factory=list)
    file_sd_configs: list[FileSDConfig] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class AllocatorConfig:
    """The collector label selector and the scrape jobs to distribute."""

    label_selector: dict[str, str] = field(default_factory=dict)
    scrape_configs: list[ScrapeConfig] = field(default_factory=list)


def _scalar(value: Any, what: str) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise ConfigError(f"{what} must be a scalar, got {type(value).__name__}")


def _mapping(value: Any, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{what} must be a mapping")
    return value


def _sequence(value: Any, what: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{what} must be a list")
    return value


def _reject_unknown(data: dict[str, Any], allowed: frozenset[str], what: str) -> None:
    unknown = sorted(str(key) for key in data if key not in allowed)
    if unknown:
        raise ConfigError(f"field {unknown[0]} not found in {what}")


def _parse_duration(text: Any) -> float:
    raw = _scalar(text, "duration")
    if raw == "0":
        return 0.0
    match = _DURATION.match(raw)
    if not raw or match is None:
        raise ConfigError(f"not a valid duration string: {raw!r}")
    return sum(int(part) * unit for part, unit in zip(match.groups(), _DURATION_UNITS) if part)


def _parse_labels(raw: Any) -> dict[str, str]:
    labels = {}
    for name, value in _mapping(raw, "labels").items():
        name = _scalar(name, "label name")
        if not _LABEL_NAME.match(name):
            raise ConfigError(f"{name!r} is not a valid label name")
        labels[name] = _scalar(value, "label value")
    return labels


def _parse_target_group(raw: Any, index: int) -> TargetGroup:
    data = _mapping(raw, "static config")
    _reject_unknown(data, _TARGET_GROUP_KEYS, "target group")
    targets = [
        {ADDRESS_LABEL: _scalar(t, "target")} for t in _sequence(data.get("targets"), "targets")
    ]
    return TargetGroup(targets=targets, labels=_parse_labels(data.get("labels")), source=str(index))


def _parse_file_sd(raw: Any) -> FileSDConfig:
    data = _mapping(raw, "file_sd_config")
    _reject_unknown(data, _FILE_SD_KEYS, "file_sd_config")
    files = [_scalar(f, "file name") for f in _sequence(data.get("files"), "files")]
    if not files:
        raise ConfigError("file service discovery config must contain at least one path name")
    for name in files:
        if not _FILE_SD_NAME.match(name):
            raise ConfigError(f"path name {name!r} is not valid for file discovery")
    interval = data.get("refresh_interval")
    return FileSDConfig(
        files=files,
        refresh_interval=DEFAULT_REFRESH_INTERVAL if interval is None else _parse_duration(interval),
    )


def _parse_scrape_config(raw: Any) -> ScrapeConfig:
    data = dict(_mapping(raw, "scrape config"))
    job_name = _scalar(data.pop("job_name", ""), "job_name")
    if not job_name:
        raise ConfigError("job_name is empty")
    static = _sequence(data.pop("static_configs", None), "static_configs")
    file_sd = _sequence(data.pop("file_sd_configs", None), "file_sd_configs")
    return ScrapeConfig(
        job_name=job_name,
        static_configs=[_parse_target_group(g, i) for i, g in enumerate(static)],
        file_sd_configs=[_parse_file_sd(f) for f in file_sd],
        options=data,
    )


def _parse(text: str) -> AllocatorConfig:
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as err:
        raise ConfigError(f"error unmarshaling YAML: {err}") from err
    try:
        data = _mapping(document, "configuration")
        _reject_unknown(data, _TOP_LEVEL_KEYS, "configuration")
        selector = {
            _scalar(k, "label name"): _scalar(v, "label value")
            for k, v in _mapping(data.get("label_selector"), "label_selector").items()
        }
        prometheus = _mapping(data.get("config"), "config")
        _reject_unknown(prometheus, _PROMETHEUS_KEYS, "config")
        scrape_configs = [
            _parse_scrape_config(s)
            for s in _sequence(prometheus.get("scrape_configs"), "scrape_configs")
        ]
        seen: set[str] = set()
        for scrape in scrape_configs:
            if scrape.job_name in seen:
                raise ConfigError(f"found multiple scrape configs with job name {scrape.job_name!r}")
            seen.add(scrape.job_name)
    except ConfigError as err:
        raise ConfigError(f"error unmarshaling YAML: {err}") from err
    return AllocatorConfig(label_selector=selector, scrape_configs=scrape_configs)


def load(path: str | os.PathLike[str] | None = None) -> AllocatorConfig:
    """Read the configuration file, by default /conf/targetallocator.yaml."""
    with open(path or DEFAULT_CONFIG_FILE, encoding="utf-8") as handle:
        return _parse(handle.read())