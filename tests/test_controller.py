import pytest

from otelop.api import Mode, ObjectMeta, OpenTelemetryCollector, OpenTelemetryCollectorSpec
from otelop.config import Config
from otelop.controller import NotFoundError, ReconcileParams, Reconciler, Task


class FakeClient:
    def __init__(self, *instances):
        self.items = {(i.metadata.namespace, i.metadata.name): i for i in instances}

    def get(self, namespace, name):
        try:
            return self.items[(namespace, name)]
        except KeyError:
            raise NotFoundError(f"{namespace}/{name}") from None


class BrokenClient:
    def get(self, namespace, name):
        raise ConnectionError("api server down")


def _collector(name="my-instance", namespace="default"):
    return OpenTelemetryCollector(
        metadata=ObjectMeta(name=name, namespace=namespace),
        spec=OpenTelemetryCollectorSpec(mode=Mode.DEPLOYMENT),
    )


def test_continue_on_recoverable_failure():
    called = []

    def fail(params):
        raise RuntimeError("should fail!")

    reconciler = Reconciler(
        tasks=[
            Task(name="should-fail", do=fail, bail_on_error=False),
            Task(name="should-be-called", do=lambda params: called.append(True)),
        ]
    )
    reconciler.run_tasks(ReconcileParams())
    assert called == [True]


def test_break_on_unrecoverable_error():
    called = []
    not_called = []
    expected = RuntimeError("should fail!")

    def fail(params):
        called.append(True)
        raise expected

    reconciler = Reconciler(
        client=FakeClient(_collector()),
        config=Config(),
        tasks=[
            Task(name="should-fail", do=fail, bail_on_error=True),
            Task(name="should-not-be-called", do=lambda params: not_called.append(True)),
        ],
    )
    with pytest.raises(RuntimeError) as info:
        reconciler.reconcile("default", "my-instance")
    assert info.value is expected
    assert called == [True]
    assert not_called == []


def test_skip_when_instance_does_not_exist():
    not_called = []
    reconciler = Reconciler(
        client=FakeClient(),
        config=Config(),
        tasks=[Task(name="should-not-be-called", do=lambda params: not_called.append(True))],
    )
    assert reconciler.reconcile("default", "non-existing-my-instance") is None
    assert not_called == []


def test_tasks_receive_instance_and_config():
    seen = []
    cfg = Config(collector_image="default-collector")
    instance = _collector()
    reconciler = Reconciler(
        client=FakeClient(instance),
        config=cfg,
        tasks=[Task(name="record", do=seen.append)],
    )
    reconciler.reconcile("default", "my-instance")
    assert len(seen) == 1
    assert seen[0].instance is instance
    assert seen[0].config.collector_image == "default-collector"


def test_tasks_run_in_order():
    order = []
    reconciler = Reconciler(
        client=FakeClient(_collector()),
        tasks=[
            Task(name="first", do=lambda p: order.append("first")),
            Task(name="second", do=lambda p: order.append("second")),
        ],
    )
    reconciler.reconcile("default", "my-instance")
    assert order == ["first", "second"]


def test_client_errors_other_than_not_found_propagate():
    reconciler = Reconciler(client=BrokenClient(), tasks=[])
    with pytest.raises(ConnectionError, match="api server down"):
        reconciler.reconcile("default", "my-instance")