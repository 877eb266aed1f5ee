# backend/app/metrics.py
import logging
from prometheus_client import Counter

logger = logging.getLogger(__name__)

# Define counters for the widget bridge
GATEWAY_CALLS = Counter(
    "gateway_calls_total",
    "Count of gateway CLI calls by method and outcome",
    ["method", "outcome"]
)
SUMMARY_REQUESTS = Counter(
    "widget_summary_requests_total",
    "Count of widget summary requests by outcome",
    ["outcome"]
)

logger.info("Prometheus counters (GATEWAY_CALLS, SUMMARY_REQUESTS) defined.")
