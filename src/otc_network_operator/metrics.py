"""Prometheus metrics for the OTC Network Operator."""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "otc_network_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "otc_network_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 300.0],
)

error_total = Counter(
    "otc_network_operator_error_total",
    "Total number of reconciliation errors",
    ["kind", "error_type"],
)

# OTC operation metrics
provider_operations_total = Counter(
    "otc_network_operator_provider_operations_total",
    "Total number of OTC API operations",
    ["operation", "result"],
)

provider_cache_total = Counter(
    "otc_network_operator_provider_cache_total",
    "Provider client cache lookups and invalidations",
    ["result"],
)

# Lifecycle metrics
drift_detected_total = Counter(
    "otc_network_operator_drift_detected_total",
    "Total number of configuration drift detections",
    ["kind"],
)

deletion_blocked_total = Counter(
    "otc_network_operator_deletion_blocked_total",
    "Total number of deletions blocked by dependent resources",
    ["kind"],
)

# API call metrics
api_call_total = Counter(
    "otc_network_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "otc_network_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "otc_network_operator_rate_limit_hits_total",
    "Total number of rate limit hits",
    ["api_type"],
)
