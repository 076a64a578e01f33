"""Prometheus metrics for the KIT Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "kit_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "kit_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

# Sub-controller stage metrics
stage_duration_seconds = Histogram(
    "kit_operator_stage_duration_seconds",
    "Duration of a sub-controller stage in seconds",
    ["kind", "stage", "phase"],
    buckets=[0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

requeue_total = Counter(
    "kit_operator_requeue_total",
    "Total number of requeues for unmet preconditions",
    ["kind", "stage"],
)

error_total = Counter(
    "kit_operator_error_total",
    "Total number of failed reconcile or finalize passes",
    ["kind", "phase"],
)

resource_status_total = Counter(
    "kit_operator_resource_status_total",
    "Phase transitions written to resource status",
    ["kind", "phase"],
)

# API call metrics
api_call_total = Counter(
    "kit_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "kit_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

# Artifact sync metrics
artifact_uploads_total = Counter(
    "kit_operator_artifact_uploads_total",
    "Total number of artifact files uploaded to the object store",
    ["result"],
)
