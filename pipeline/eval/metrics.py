"""Evaluation metrics for quote extraction.

Computes precision, recall, and F1 scores for extracted quote fields.
Based on standard information extraction evaluation methodologies.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from pydantic import BaseModel

from bids.extraction.schema import ParsedQuote

EVALUATED_FIELDS = (
    "unit_cost",
    "moq",
    "lead_time_days",
    "tooling_total",
    "payment_terms",
    "currency",
    "supplier_name",
)


class ExpectedQuote(BaseModel):
    """Ground-truth values for one labelled email. None means 'not in the email'."""

    unit_cost: Decimal | None = None
    moq: int | None = None
    lead_time_days: int | None = None
    tooling_total: Decimal | None = None
    payment_terms: str | None = None
    currency: str | None = None
    supplier_name: str | None = None


@dataclass
class FieldMetrics:
    """Metrics for a single field."""

    precision: float
    recall: float
    f1: float
    support: int  # Number of samples


@dataclass
class EvaluationReport:
    """Complete evaluation report."""

    field_metrics: dict[str, FieldMetrics]
    macro_f1: float
    total_samples: int


def flatten_quote(quote: ParsedQuote) -> dict[str, Any]:
    """Reduce a parsed quote to the plain values that are evaluated."""
    tooling = quote.tooling_costs.value
    terms = quote.payment_terms.value
    return {
        "unit_cost": quote.unit_cost.value,
        "moq": quote.moq.value,
        "lead_time_days": quote.lead_time_days.value,
        "tooling_total": tooling.total if tooling is not None else None,
        "payment_terms": terms.type if terms is not None else None,
        "currency": quote.currency,
        "supplier_name": quote.supplier_name,
    }


def calculate_field_match(expected: Any, predicted: Any) -> bool:
    """Check if extracted field matches expected value.

    Args:
        expected: Ground truth value
        predicted: Extracted value

    Returns:
        True if values match (with tolerance for numeric fields)
    """
    # Both None
    if expected is None and predicted is None:
        return True

    # One is None
    if expected is None or predicted is None:
        return False

    # Numeric comparison (with small tolerance for floating point)
    if isinstance(expected, int | float | Decimal) and isinstance(predicted, int | float | Decimal):
        return abs(float(expected) - float(predicted)) < 0.01

    # String comparison (case-insensitive, whitespace collapsed)
    if isinstance(expected, str) and isinstance(predicted, str):
        return " ".join(expected.lower().split()) == " ".join(predicted.lower().split())

    return bool(expected == predicted)


def evaluate_extraction(
    expected: list[ExpectedQuote], predicted: list[ParsedQuote]
) -> EvaluationReport:
    """Evaluate extraction accuracy against ground truth.

    Args:
        expected: Ground truth per email
        predicted: Parsed quotes, in the same order

    Returns:
        Evaluation report with per-field and overall metrics
    """
    if len(expected) != len(predicted):
        raise ValueError("Expected and predicted lists must have same length")

    flattened = [flatten_quote(quote) for quote in predicted]
    field_metrics: dict[str, FieldMetrics] = {}

    for field in EVALUATED_FIELDS:
        true_positives = 0
        false_positives = 0
        false_negatives = 0

        for exp, pred in zip(expected, flattened, strict=True):
            exp_value = getattr(exp, field)
            pred_value = pred[field]

            if exp_value is not None and pred_value is not None:
                if calculate_field_match(exp_value, pred_value):
                    true_positives += 1
                else:
                    false_positives += 1  # Predicted wrong value
                    false_negatives += 1  # Missed correct value
            elif exp_value is not None:
                false_negatives += 1
            elif pred_value is not None:
                false_positives += 1

        precision = (
            true_positives / (true_positives + false_positives)
            if (true_positives + false_positives) > 0
            else 0.0
        )
        recall = (
            true_positives / (true_positives + false_negatives)
            if (true_positives + false_negatives) > 0
            else 0.0
        )
        f1 = 2 * (precision * recall) / (precision + recall) if (precision + recall) > 0 else 0.0

        field_metrics[field] = FieldMetrics(
            precision=precision,
            recall=recall,
            f1=f1,
            support=len(expected),
        )

    macro_f1 = sum(m.f1 for m in field_metrics.values()) / len(field_metrics)

    return EvaluationReport(
        field_metrics=field_metrics,
        macro_f1=macro_f1,
        total_samples=len(expected),
    )
