import pytest

from otelop.allocator import Allocator, TargetItem
from otelop.targets import (
    group_by_collector_and_job,
    label_set_string,
    targets_by_collector_and_job,
    targets_by_job,
)

JOB_A = {
    "a:1": {"zone": "east"},
    "a:2": {"zone": "east"},
    "a:3": {"zone": "west"},
    "a:4": {"zone": "west"},
    "a:5": {},
}
JOB_B = {"b:1": {"zone": "east"}, "b:2": {}}


def _items():
    items = [TargetItem(job_name="job-a", target_url=u, label=l) for u, l in JOB_A.items()]
    items += [TargetItem(job_name="job-b", target_url=u, label=l) for u, l in JOB_B.items()]
    return items


@pytest.fixture
def allocator():
    s = Allocator()
    s.set_collectors(["col-1", "col-2"])
    s.set_waiting_targets(_items())
    s.allocate_targets()
    return s


def test_label_set_string_pins():
    assert label_set_string({}) == "{}"
    assert label_set_string({"my": "label"}) == '{my="label"}'
    assert label_set_string({"a": 'x"y'}) == '{a="x\\"y"}'


def test_label_set_string_ignores_insertion_order():
    first = {"b": "2", "a": "1"}
    second = {"a": "1", "b": "2"}
    assert label_set_string(first) == label_set_string(second)
    assert label_set_string(first) != label_set_string({"a": "1", "b": "3"})


def test_group_by_collector_and_job(allocator):
    grouped = group_by_collector_and_job(allocator)
    assert sum(len(v) for v in grouped.values()) == len(allocator.target_items)
    for key, items in grouped.items():
        for item in items:
            assert key == item.collector.name + item.job_name


def test_targets_by_job_covers_all_targets_of_job(allocator):
    grouped = group_by_collector_and_job(allocator)
    result = targets_by_job("job-a", grouped, allocator)

    assert set(result) <= set(allocator.collectors)
    urls = [u for data in result.values() for group in data["targets"] for u in group["targets"]]
    assert sorted(urls) == sorted(JOB_A)
    for name, data in result.items():
        assert data["_link"] == f"/jobs/job-a/targets?collector_id={name}"
        for group in data["targets"]:
            for url in group["targets"]:
                assert JOB_A[url] == group["labels"]


def test_targets_by_job_unknown_job(allocator):
    assert targets_by_job("missing", group_by_collector_and_job(allocator), allocator) == {}


def test_targets_by_collector_and_job_matches_allocation(allocator):
    grouped = group_by_collector_and_job(allocator)
    all_urls = []
    for name in allocator.collectors:
        for group in targets_by_collector_and_job(name, "job-b", grouped, allocator):
            for url in group["targets"]:
                assert allocator.target_items["job-b" + url].collector.name == name
                assert JOB_B[url] == group["labels"]
            all_urls.extend(group["targets"])
    assert sorted(all_urls) == sorted(JOB_B)


def test_targets_by_unknown_collector(allocator):
    grouped = group_by_collector_and_job(allocator)
    assert targets_by_collector_and_job("nope", "job-a", grouped, allocator) == []


def test_single_collector_groups_by_label():
    s = Allocator()
    s.set_collectors(["only"])
    s.set_waiting_targets([TargetItem(job_name="job-a", target_url=u, label=l) for u, l in JOB_A.items()])
    s.allocate_targets()
    grouped = group_by_collector_and_job(s)

    groups = targets_by_collector_and_job("only", "job-a", grouped, s)
    expected = {
        frozenset(u for u, l in JOB_A.items() if l == labels)
        for labels in ({"zone": "east"}, {"zone": "west"}, {})
    }
    assert {frozenset(g["targets"]) for g in groups} == expected

    by_job = targets_by_job("job-a", grouped, s)
    assert {frozenset(g["targets"]) for g in by_job["only"]["targets"]} == expected