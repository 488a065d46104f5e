"""Prometheus metrics for quote extraction and review.

Exposes key metrics for monitoring:
- Emails parsed by resulting overall confidence
- Per-field extraction outcomes (found / missing)
- Human corrections by field
- Status transitions

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import Counter, generate_latest
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST

# Extraction metrics
quote_emails_parsed_total = Counter(
    "quote_emails_parsed_total",
    "Total supplier emails parsed into quotes",
    ["overall_confidence"],
)

quote_field_extractions_total = Counter(
    "quote_field_extractions_total",
    "Field extraction outcomes",
    ["field", "outcome"],  # found, missing
)

# Review metrics
quote_field_corrections_total = Counter(
    "quote_field_corrections_total",
    "Total human corrections applied to quote fields",
    ["field"],
)

quote_status_transitions_total = Counter(
    "quote_status_transitions_total",
    "Total quote status transitions",
    ["from_status", "to_status"],
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
