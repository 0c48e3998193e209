"""Views of the allocation as served over HTTP."""

from __future__ import annotations

from typing import Any

from otelop.allocator import Allocator, TargetItem

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
}


def _quote(text: str) -> str:
    out = []
    for ch in text:
        code = ord(ch)
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ch.isprintable():
            out.append(ch)
        elif code < 0x80:
            out.append(f"\\x{code:02x}")
        elif code <= 0xFFFF:
            out.append(f"\\u{code:04x}")
        else:
            out.append(f"\\U{code:08x}")
    return '"' + "".join(out) + '"'


def label_set_string(labels: dict[str, str]) -> str:
    """Render a label set as ``{name="value", ...}``, sorted."""
    parts = sorted(f"{name}={_quote(value)}" for name, value in labels.items())
    return "{" + ", ".join(parts) + "}"


def group_by_collector_and_job(allocator: Allocator) -> dict[str, list[TargetItem]]:
    """Group the allocated targets by collector name followed by job name."""
    grouped: dict[str, list[TargetItem]] = {}
    for item in list(allocator.target_items.values()):
        grouped.setdefault(item.collector.name + item.job_name, []).append(item)
    return grouped


def targets_by_job(
    job: str, compare_map: dict[str, list[TargetItem]], allocator: Allocator
) -> dict[str, dict[str, Any]]:
    """Per collector, the link and label-grouped targets of one job."""
    result: dict[str, dict[str, Any]] = {}
    for item in list(allocator.target_items.values()):
        if item.job_name != job or item.collector.name in result:
            continue
        collector_name = item.collector.name
        groups: dict[str, list[TargetItem]] = {}
        for target in compare_map.get(collector_name + item.job_name, []):
            groups.setdefault(target.job_name + label_set_string(target.label), []).append(target)
        result[collector_name] = {
            "_link": f"/jobs/{item.job_name}/targets?collector_id={collector_name}",
            "targets": [
                {"targets": [t.target_url for t in group], "labels": dict(group[0].label)}
                for group in groups.values()
            ],
        }
    return result


def targets_by_collector_and_job(
    collector: str, job: str, compare_map: dict[str, list[TargetItem]], allocator: Allocator
) -> list[dict[str, Any]]:
    """Label-grouped targets of one job held by one collector."""
    if collector not in allocator.collectors:
        return []
    groups: dict[str, list[str]] = {}
    labels: dict[str, dict[str, str]] = {}
    for items in compare_map.values():
        for item in items:
            if item.collector.name == collector and item.job_name == job:
                groups.setdefault(label_set_string(item.label), []).append(item.target_url)
                labels[item.target_url] = item.label
    return [{"targets": urls, "labels": dict(labels[urls[0]])} for urls in groups.values()]