"""Resource models, webhooks, reconciliation and a Prometheus target allocator for OpenTelemetry collectors."""

__version__ = "0.1.0"