import json
import threading

import pytest

from otelop.allocator_config import (
    ADDRESS_LABEL,
    AllocatorConfig,
    FileSDConfig,
    ScrapeConfig,
    TargetGroup,
    load,
)
from otelop.discovery import FILE_PATH_LABEL, DiscoveryManager


def _write_file_sd(path, targets=("promfile.domain:1001", "promfile.domain:3000")):
    path.write_text(
        json.dumps([{"targets": list(targets), "labels": {"my": "label"}}]), encoding="utf-8"
    )


def _write_config(tmp_path, file_sd_path):
    config_path = tmp_path / "test.yaml"
    config_path.write_text(
        "label_selector:\n"
        "  app.kubernetes.io/instance: default.test\n"
        "  app.kubernetes.io/managed-by: opentelemetry-operator\n"
        "config:\n"
        "  scrape_configs:\n"
        "  - job_name: prometheus\n"
        "    file_sd_configs:\n"
        f"    - files: ['{file_sd_path}']\n"
        "    static_configs:\n"
        "    - targets: ['prom.domain:9001', 'prom.domain:9002', 'prom.domain:9003']\n"
        "      labels:\n"
        "        my: label\n",
        encoding="utf-8",
    )
    return config_path


@pytest.fixture
def config(tmp_path):
    file_sd = tmp_path / "file_sd_test.json"
    _write_file_sd(file_sd)
    return load(_write_config(tmp_path, file_sd))


@pytest.fixture
def manager():
    m = DiscoveryManager()
    yield m
    m.close()


def _collect(manager):
    results = []
    manager.watch(lambda targets: results.append(sorted(t.target_url for t in targets)))
    return results


def test_target_discovery(manager, config):
    results = _collect(manager)
    manager.apply_config(config)
    assert results[-1] == [
        "prom.domain:9001",
        "prom.domain:9002",
        "prom.domain:9003",
        "promfile.domain:1001",
        "promfile.domain:3000",
    ]


def test_target_update(manager, config):
    results = _collect(manager)
    manager.apply_config(config)
    config.scrape_configs[0].static_configs[0] = TargetGroup(
        targets=[{ADDRESS_LABEL: "prom.domain:9004"}, {ADDRESS_LABEL: "prom.domain:9005"}],
        labels={"my": "label"},
        source="0",
    )
    manager.apply_config(config)
    assert results[-1] == [
        "prom.domain:9004",
        "prom.domain:9005",
        "promfile.domain:1001",
        "promfile.domain:3000",
    ]


def test_targets_carry_job_and_group_labels(manager, config):
    targets = manager.apply_config(config)
    assert {t.job_name for t in targets} == {"prometheus"}
    static = [t for t in targets if t.target_url.startswith("prom.domain")]
    assert all(t.label == {"my": "label"} for t in static)
    from_file = [t for t in targets if t.target_url.startswith("promfile")]
    assert all(t.label["my"] == "label" for t in from_file)
    assert all(t.label[FILE_PATH_LABEL].endswith("file_sd_test.json") for t in from_file)


def test_refresh_picks_up_file_changes(manager, config, tmp_path):
    manager.apply_config(config)
    _write_file_sd(tmp_path / "file_sd_test.json", targets=["promfile.domain:4000"])
    urls = sorted(t.target_url for t in manager.refresh())
    assert urls == ["prom.domain:9001", "prom.domain:9002", "prom.domain:9003", "promfile.domain:4000"]


def test_broken_file_keeps_previous_targets(manager, config, tmp_path):
    first = sorted(t.target_url for t in manager.apply_config(config))
    (tmp_path / "file_sd_test.json").write_text("{not json", encoding="utf-8")
    second = sorted(t.target_url for t in manager.refresh())
    assert second == first


def test_yaml_file_and_glob(manager, tmp_path):
    (tmp_path / "a.yaml").write_text("- targets: ['a:1']\n", encoding="utf-8")
    (tmp_path / "b.yml").write_text("- targets: ['b:2']\n  labels: {env: dev}\n", encoding="utf-8")
    cfg = AllocatorConfig(
        scrape_configs=[
            ScrapeConfig(
                job_name="job",
                file_sd_configs=[FileSDConfig(files=[str(tmp_path / "*.y*ml")], refresh_interval=0)],
            )
        ]
    )
    targets = manager.apply_config(cfg)
    assert [t.target_url for t in targets] == ["a:1", "b:2"]
    assert targets[1].label["env"] == "dev"


def test_close_stops_notifications(config):
    m = DiscoveryManager()
    results = _collect(m)
    m.close()
    targets = m.apply_config(config)
    assert results == []
    assert len(targets) == 5


def test_failing_watcher_does_not_stop_others(manager, config):
    def broken(_targets):
        raise RuntimeError("boom")

    manager.watch(broken)
    results = _collect(manager)
    manager.apply_config(config)
    assert len(results) == 1
    assert len(results[0]) == 5


def test_periodic_refresh(tmp_path):
    file_sd = tmp_path / "sd.json"
    _write_file_sd(file_sd, targets=["x:1"])
    cfg = AllocatorConfig(
        scrape_configs=[
            ScrapeConfig(
                job_name="job",
                file_sd_configs=[FileSDConfig(files=[str(file_sd)], refresh_interval=0.05)],
            )
        ]
    )
    seen = threading.Event()

    def watcher(targets):
        if [t.target_url for t in targets] == ["y:2"]:
            seen.set()

    m = DiscoveryManager()
    m.watch(watcher)
    try:
        initial = m.apply_config(cfg)
        assert [t.target_url for t in initial] == ["x:1"]
        _write_file_sd(file_sd, targets=["y:2"])
        assert seen.wait(5)
        assert [t.target_url for t in m.refresh()] == ["y:2"]
    finally:
        m.close()