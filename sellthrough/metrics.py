"""
Prometheus metrics shared across the catalog, ingestion and snapshot code.
"""

from prometheus_client import Counter, Histogram

CATALOG_REQUESTS = Counter(
    "sellthrough_catalog_requests_total",
    "Catalog API requests by endpoint and HTTP status",
    ["endpoint", "status"],
)

CATALOG_RETRIES = Counter(
    "sellthrough_catalog_retries_total",
    "Catalog API requests retried after HTTP 429",
    ["endpoint"],
)

CATALOG_REQUEST_TIME = Histogram(
    "sellthrough_catalog_request_seconds",
    "Time spent waiting on a single catalog API response",
    ["endpoint"],
)

EVENTS_INGESTED = Counter(
    "sellthrough_events_ingested_total",
    "Inbound events processed",
    ["event_type", "status"],
)

SNAPSHOT_ROWS = Counter(
    "sellthrough_snapshot_rows_total",
    "Season snapshot rows written",
    ["outcome"],
)
