"""Typed corrections for provenance-tracked quote fields.

Each correctable field has its own coercion rule, so the field's invariants
(non-negative amounts, whole-number quantities, tooling totals equal to the
sum of their components) are enforced before a value is written.
"""

from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, assert_never

from pydantic import ValidationError

from bids.extraction.extractors import annotate_payment_terms
from bids.extraction.schema import PaymentTerms, ToolingCost
from bids.store.errors import InvalidFieldValueError


class QuoteField(str, Enum):
    """Quote fields a reviewer can override."""

    UNIT_COST = "unit_cost"
    MOQ = "moq"
    LEAD_TIME_DAYS = "lead_time_days"
    TOOLING_COSTS = "tooling_costs"
    PAYMENT_TERMS = "payment_terms"


def _to_decimal(field: QuoteField, value: Any) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, int | float | str | Decimal):
        raise InvalidFieldValueError(f"{field.value} must be a number, got {value!r}")
    try:
        number = Decimal(str(value).replace(",", "").strip())
    except (InvalidOperation, ValueError) as e:
        raise InvalidFieldValueError(f"{field.value} must be a number") from e
    if not number.is_finite():
        raise InvalidFieldValueError(f"{field.value} must be finite, got {value!r}")
    if number < 0:
        raise InvalidFieldValueError(f"{field.value} must not be negative, got {value!r}")
    return number


def _to_count(field: QuoteField, value: Any) -> int:
    number = _to_decimal(field, value)
    if number != number.to_integral_value():
        raise InvalidFieldValueError(f"{field.value} must be a whole number, got {value!r}")
    return int(number)


def _to_tooling_cost(value: Any) -> ToolingCost:
    if isinstance(value, dict):
        try:
            value = ToolingCost.model_validate(value)
        except ValidationError as e:
            raise InvalidFieldValueError(f"Invalid tooling costs: {e}") from e
    if not isinstance(value, ToolingCost):
        raise InvalidFieldValueError(f"tooling_costs must be a ToolingCost, got {value!r}")
    return value.with_computed_total()


def _to_payment_terms(value: Any) -> PaymentTerms:
    if isinstance(value, str):
        if not value.strip():
            raise InvalidFieldValueError("payment_terms must not be empty")
        return annotate_payment_terms(value)
    if isinstance(value, dict):
        try:
            return PaymentTerms.model_validate(value)
        except ValidationError as e:
            raise InvalidFieldValueError(f"Invalid payment terms: {e}") from e
    if not isinstance(value, PaymentTerms):
        raise InvalidFieldValueError(f"payment_terms must be PaymentTerms, got {value!r}")
    return value


def coerce_correction(field: QuoteField, value: Any) -> Any:
    """Validate and normalise a corrected value for the given field.

    Args:
        field: Field being corrected
        value: Value supplied by the reviewer

    Returns:
        Value of the field's native type

    Raises:
        InvalidFieldValueError: If the value is absent or cannot be accepted
    """
    if value is None:
        raise InvalidFieldValueError(f"A correction for {field.value} must carry a value")

    if field is QuoteField.UNIT_COST:
        return _to_decimal(field, value)
    elif field is QuoteField.MOQ or field is QuoteField.LEAD_TIME_DAYS:
        return _to_count(field, value)
    elif field is QuoteField.TOOLING_COSTS:
        return _to_tooling_cost(value)
    elif field is QuoteField.PAYMENT_TERMS:
        return _to_payment_terms(value)
    else:
        assert_never(field)
