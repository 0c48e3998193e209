import json
import urllib.error
import urllib.request
from http import HTTPStatus

import pytest

from otelop.allocator import Allocator, TargetItem
from otelop.allocator_server import AllocatorServer, main


def _allocator():
    allocator = Allocator()
    allocator.set_collectors(["col-1", "col-2"])
    allocator.set_waiting_targets(
        [
            TargetItem(job_name="sample-name", target_url=f"prometheus:100{i}", label={"my": "label"})
            for i in range(4)
        ]
    )
    allocator.allocate_targets()
    return allocator


@pytest.fixture
def running():
    server = AllocatorServer(_allocator(), "127.0.0.1:0")
    server.start()
    yield server
    server.shutdown()


def _get(server, path):
    host, port = server.bound_address
    with urllib.request.urlopen(f"http://{host}:{port}{path}", timeout=5) as response:
        return response.headers["Content-Type"], json.loads(response.read())


def _status(server, path, method="GET", data=None):
    host, port = server.bound_address
    request = urllib.request.Request(f"http://{host}:{port}{path}", data=data, method=method)
    try:
        with urllib.request.urlopen(request, timeout=5) as response:
            return response.status, response.read()
    except urllib.error.HTTPError as err:
        return err.code, err.read()


def test_jobs_lists_job_links():
    server = AllocatorServer(_allocator(), "127.0.0.1:0")
    assert server.jobs() == {"sample-name": {"_link": "/jobs/sample-name/targets"}}


def test_targets_by_job_covers_every_target():
    allocator = _allocator()
    server = AllocatorServer(allocator, "127.0.0.1:0")
    result = server.targets("sample-name")
    assert set(result) == {"col-1", "col-2"}
    urls = sorted(u for entry in result.values() for g in entry["targets"] for u in g["targets"])
    assert urls == sorted(item.target_url for item in allocator.target_items.values())
    for name, entry in result.items():
        assert entry["_link"] == f"/jobs/sample-name/targets?collector_id={name}"


def test_targets_for_one_collector():
    allocator = _allocator()
    server = AllocatorServer(allocator, "127.0.0.1:0")
    groups = server.targets("sample-name", "col-1")
    expected = sorted(
        item.target_url
        for item in allocator.target_items.values()
        if item.collector.name == "col-1"
    )
    assert sorted(u for g in groups for u in g["targets"]) == expected
    assert all(g["labels"] == {"my": "label"} for g in groups)


def test_targets_for_unknown_collector_or_job_is_empty():
    server = AllocatorServer(_allocator(), "127.0.0.1:0")
    assert server.targets("sample-name", "missing") == []
    assert server.targets("other-job") == {}


def test_invalid_address_rejected():
    with pytest.raises(ValueError):
        AllocatorServer(Allocator(), "no-port")


def test_http_jobs(running):
    content_type, body = _get(running, "/jobs")
    assert content_type == "application/json"
    assert body == running.jobs()


def test_http_targets_with_and_without_collector(running):
    _, by_job = _get(running, "/jobs/sample-name/targets")
    assert by_job == running.targets("sample-name")
    _, by_collector = _get(running, "/jobs/sample-name/targets?collector_id=col-2")
    assert by_collector == running.targets("sample-name", "col-2")


def test_http_unknown_path_is_not_found(running):
    code, body = _status(running, "/unknown")
    assert code == HTTPStatus.NOT_FOUND
    assert body == b"Not Found\n"


def test_http_post_not_allowed(running):
    code, body = _status(running, "/jobs", method="POST", data=b"{}")
    assert code == HTTPStatus.METHOD_NOT_ALLOWED
    assert body == b"Method Not Allowed\n"


def test_start_twice_rejected(running):
    with pytest.raises(RuntimeError):
        running.start()


def test_shutdown_stops_serving():
    server = AllocatorServer(_allocator(), "127.0.0.1:0")
    server.start()
    host, port = server.bound_address
    assert host == "127.0.0.1"
    assert port > 0
    _, body = _get(server, "/jobs")
    assert body == {"sample-name": {"_link": "/jobs/sample-name/targets"}}
    server.shutdown()
    with pytest.raises(RuntimeError, match="not running"):
        server.bound_address


def test_main_fails_without_config(tmp_path):
    assert main(["--config-dir", str(tmp_path), "--listen-addr", "127.0.0.1:0"]) == 1