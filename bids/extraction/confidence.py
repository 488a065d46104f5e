"""Confidence scoring for extracted quote fields.

Two pure functions:
- score_match: rates a single extraction from the text its rule matched
- calculate_overall_confidence: reduces the primary field confidences of a
  quote to one aggregate level

The aggregate is recomputed on every correction, so it must stay a pure
function of the field confidences.
"""

from collections.abc import Iterable
from typing import Any

from bids.extraction.schema import ConfidenceLevel, ParsedQuote

# Matched text shorter than this carries too little context to trust
MIN_CONTEXT_LENGTH = 5
# Matched text longer than this is more likely to be ambiguous
MAX_CONTEXT_LENGTH = 100

CONFIDENCE_SCORES: dict[ConfidenceLevel, int] = {
    ConfidenceLevel.HIGH: 3,
    ConfidenceLevel.MANUAL: 3,
    ConfidenceLevel.MEDIUM: 2,
    ConfidenceLevel.LOW: 1,
}

# Tooling costs are one-time charges and stay out of the aggregate
PRIMARY_FIELDS = ("unit_cost", "moq", "lead_time_days", "payment_terms")


def score_match(value: Any, rule_index: int | None, matched_text: str) -> ConfidenceLevel:
    """Rate an extraction using only the text its rule matched.

    Args:
        value: Extracted value, None if nothing was extracted
        rule_index: Position of the rule that matched, None if no rule matched
        matched_text: Substring the rule matched

    Returns:
        LOW for missing values or short matches, MEDIUM for long matches,
        HIGH otherwise
    """
    if value is None:
        return ConfidenceLevel.LOW
    if rule_index is None:
        return ConfidenceLevel.LOW

    length = len(matched_text.strip())
    if length < MIN_CONTEXT_LENGTH:
        return ConfidenceLevel.LOW
    if length > MAX_CONTEXT_LENGTH:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.HIGH


def aggregate_confidence(levels: Iterable[ConfidenceLevel | None]) -> ConfidenceLevel:
    """Average ordinal scores of the given levels and threshold the mean.

    None entries are skipped. An empty input yields LOW.
    """
    scores = [CONFIDENCE_SCORES[level] for level in levels if level is not None]
    if not scores:
        return ConfidenceLevel.LOW

    average = sum(scores) / len(scores)
    if average >= 2.5:
        return ConfidenceLevel.HIGH
    if average >= 1.5:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def calculate_overall_confidence(quote: ParsedQuote) -> ConfidenceLevel:
    """Aggregate confidence of a quote's unit cost, MOQ, lead time and payment terms."""
    return aggregate_confidence(getattr(quote, name).confidence for name in PRIMARY_FIELDS)
