# otelop

Building blocks for running OpenTelemetry collectors on a Kubernetes-style platform, and a small
service that spreads Prometheus scrape targets over collector instances.

## Modules

- `otelop.api`: the `OpenTelemetryCollector` and `Instrumentation` resources with their specs
  (`OpenTelemetryCollectorSpec`, `InstrumentationSpec`, `Sampler`, `Exporter`, `Resource`, `Java`,
  `NodeJS`, `Python`, `EnvVar`, `ObjectMeta`, ...) and the enumerations `Mode`, `Propagator`,
  `SamplerType` and `UpgradeStrategy`. Both resources convert to and from plain dictionaries with
  `to_dict()` and `from_dict()`.
- `otelop.webhooks`: `default_collector`, `validate_collector`, `default_instrumentation` and
  `validate_instrumentation`. The defaulting functions change the resource in place (mode
  `deployment`, upgrade strategy `automatic`, the `app.kubernetes.io/managed-by` label, and language
  images taken from the default-image annotations). The validating functions raise
  `ValidationError`.
- `otelop.version`: `get()` returns a `Version` built from a `BuildInfo`; component versions fall
  back to `"0.0.0"` when not set.
- `otelop.autodetect`: `AutoDetect(host)` asks an API server for its API groups at `/apis` and
  reports `Platform.OPENSHIFT` when `route.openshift.io` is served, otherwise
  `Platform.KUBERNETES`. Failures raise `AutoDetectError`.
- `otelop.config`: `Config` holds the default images and config-map entry names and the detected
  platform. `detect()` runs detection once and calls the `on_change` callbacks when the platform
  changed; `start_auto_detect()` also keeps detecting in a background thread until `stop()`.
- `otelop.controller`: `Reconciler` fetches a collector through a `CollectorClient` and runs its
  `Task`s in order. A task with `bail_on_error=True` stops the run and re-raises its error; others
  are logged and skipped. A missing resource (`NotFoundError`) is ignored.
- `otelop.webhookhandler`: `WebhookHandler.handle()` decodes the pod in an `AdmissionRequest`,
  fetches its namespace through a `NamespaceClient`, passes the pod through each `PodMutator` and
  answers with an `AdmissionResponse` holding a JSON patch (`json_patch()`). Undecodable pods give
  status 400, other failures 500.
- `otelop.allocator`: `Allocator` assigns each `TargetItem` to the `Collector` with the fewest
  targets.
- `otelop.targets`: the per-job and per-collector views of an allocation that the service serves.
- `otelop.allocator_config`: `load()` reads the allocator configuration file; errors raise
  `ConfigError`.
- `otelop.discovery`: `DiscoveryManager` turns the scrape jobs into target lists and hands them to
  watchers.
- `otelop.allocator_server`: `AllocatorServer` and the `otelop-allocator` command.

## Validating a collector resource

```python
from otelop.api import OpenTelemetryCollector
from otelop.webhooks import ValidationError, default_collector, validate_collector

collector = OpenTelemetryCollector.from_dict({
    "metadata": {"name": "my-instance", "namespace": "default"},
    "spec": {"mode": "daemonset", "replicas": 3},
})
default_collector(collector)
try:
    validate_collector(collector)
except ValidationError as err:
    print(err)  # daemonset mode does not support 'replicas'
```

## Allocating targets

```python
from otelop.allocator import Allocator, TargetItem

allocator = Allocator()
allocator.set_collectors(["col-1", "col-2", "col-3"])
allocator.set_waiting_targets([
    TargetItem(job_name="prometheus", target_url=f"prometheus:{port}", label={})
    for port in range(1000, 1006)
])
allocator.allocate_targets()
```

Targets that are no longer reported are removed on the next `allocate_targets()` call. When the set
of collectors changes, call `set_collectors()` and then `reallocate_collectors()` to spread the
targets again. An empty list of collectors is ignored.

## Running the target allocator service

```
otelop-allocator --listen-addr :8080 --config-dir /conf/ --collectors col-1,col-2
```

The service reads `targetallocator.yaml` from the configuration directory. The file holds a
`label_selector` and a Prometheus-style `config` whose `scrape_configs` may use `static_configs`
and `file_sd_configs`; files named by `file_sd_configs` are read again at their refresh interval.
It serves:

- `GET /jobs`: a link for every job that has targets.
- `GET /jobs/<job_id>/targets`: the targets of a job grouped by collector. With
  `?collector_id=<name>`, only the target groups held by that collector (an empty list if none).

The configuration directory is checked once a second; when its contents change, the service is
started again with the new configuration. SIGINT or SIGTERM stops it.

## What the package does not do

- It does not connect to a cluster to watch collector pods: the allocator service distributes
  targets over the collectors named with `--collectors`, and the `label_selector` is read but not
  used to find them.
- Service discovery covers static and file-based configurations only; other discovery mechanisms
  in a scrape job are ignored.
- `Reconciler` has no built-in tasks and creates no deployments, services or config maps by itself;
  it runs the tasks it is given.
- `WebhookHandler` comes with no pod mutators; sidecar or instrumentation injection has to be
  supplied as a `PodMutator`.
- With the target allocator enabled, `validate_collector` only checks that the collector
  configuration is valid YAML.