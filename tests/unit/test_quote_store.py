"""Unit tests for the in-memory quote store.

Tests cover:
- Importing emails into stored quotes
- Queries (by id, status, search term, supplier) and stats
- Human corrections with provenance and confidence recomputation
- Status lifecycle, strict and permissive
- Detail edits and deletion
- Concurrent corrections and review on one quote
"""

import itertools
import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from bids.extraction.confidence import calculate_overall_confidence
from bids.extraction.schema import ConfidenceLevel, EmailInput, PaymentTerms, QuoteStatus
from bids.shared.config import Settings
from bids.store.corrections import QuoteField
from bids.store.errors import InvalidFieldValueError, InvalidTransitionError, QuoteNotFoundError
from bids.store.service import QuoteStore

START = datetime(2026, 1, 23, 10, 0, tzinfo=UTC)


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Clock that advances one minute per call."""
    ticks = itertools.count()
    return lambda: START + timedelta(minutes=next(ticks))


@pytest.fixture
def store(clock: Callable[[], datetime]) -> QuoteStore:
    """Create a store with deterministic ids and timestamps."""
    ids = itertools.count(1)
    return QuoteStore(
        Settings(_env_file=None),
        clock=clock,
        id_factory=lambda: f"quote-{next(ids)}",
    )


@pytest.fixture
def full_email() -> EmailInput:
    return EmailInput(
        subject="RE: Quote Request - Lacrosse Head",
        body=(
            "Unit price: $4.50 USD per piece\n"
            "MOQ: 5,000 units\n"
            "Lead time: 45 days\n"
            "Mold cost: $3,500\n"
            "Payment terms: Net 30"
        ),
        sender="Wang Wei <sales@manufacturer.cn>",
        received_at="2026-01-23T10:00:00Z",
    )


@pytest.fixture
def partial_email() -> EmailInput:
    return EmailInput(
        subject="Pricing for enclosures",
        body="Price per unit: $12.80. Let us know.",
        sender="linda@precisioncast.com",
    )


# Import


def test_import_from_email(store: QuoteStore, full_email: EmailInput) -> None:
    """Test that an imported email becomes a stored, parsed quote."""
    quote = store.import_from_email(full_email)

    assert quote.id == "quote-1"
    assert quote.status == QuoteStatus.PARSED
    assert quote.supplier_name == "Manufacturer"
    assert quote.unit_cost.value == Decimal("4.50")
    assert quote.created_at == START
    assert quote.updated_at == START
    assert quote.notes == ""
    assert store.get_quote("quote-1") == quote


def test_import_keeps_warnings_in_notes(store: QuoteStore, partial_email: EmailInput) -> None:
    """Test that parse warnings are preserved on the stored quote."""
    quote = store.import_from_email(partial_email)

    assert quote.notes == (
        "Parsing warnings:\n"
        "Could not extract MOQ from email\n"
        "Could not extract lead time from email"
    )


def test_import_uses_default_supplier_name(store: QuoteStore) -> None:
    """Test the fallback name for emails without a usable sender."""
    quote = store.import_from_email(EmailInput(subject="Quote", body="MOQ: 100"))

    assert quote.supplier_name == "Unknown Supplier"


def test_import_logs_parse_errors(store: QuoteStore, caplog: pytest.LogCaptureFixture) -> None:
    """Test that empty extractions are still stored but logged."""
    with caplog.at_level(logging.WARNING, logger="bids.store.service"):
        quote = store.import_from_email(EmailInput(subject="Hi", sender="bob@example.org"))

    assert store.get_quote(quote.id) is not None
    assert "parse error" in caplog.text


def test_import_many(
    store: QuoteStore, full_email: EmailInput, partial_email: EmailInput
) -> None:
    quotes = store.import_many([full_email, partial_email])

    assert [q.id for q in quotes] == ["quote-1", "quote-2"]
    assert len(store.list_quotes()) == 2


# Queries


def test_get_unknown_quote_returns_none(store: QuoteStore) -> None:
    assert store.get_quote("missing") is None


def test_list_quotes_filters(
    store: QuoteStore, full_email: EmailInput, partial_email: EmailInput
) -> None:
    """Test filtering by status and case-insensitive search."""
    first, second = store.import_many([full_email, partial_email])
    store.mark_reviewed(first.id, "alice")

    assert [q.id for q in store.list_quotes(status=QuoteStatus.REVIEWED)] == [first.id]
    assert [q.id for q in store.list_quotes(search="PRECISION")] == [second.id]
    assert [q.id for q in store.list_quotes(search="lacrosse")] == [first.id]
    assert store.list_quotes(status=QuoteStatus.PARSED, search="lacrosse") == []


def test_quotes_by_supplier(store: QuoteStore, full_email: EmailInput) -> None:
    quote = store.import_from_email(full_email)
    store.update_details(quote.id, supplier_id="sup-7")

    assert [q.id for q in store.quotes_by_supplier("sup-7")] == [quote.id]
    assert store.quotes_by_supplier("sup-8") == []


def test_stats(store: QuoteStore, full_email: EmailInput, partial_email: EmailInput) -> None:
    """Test counts per status and average overall confidence."""
    first, _ = store.import_many([full_email, partial_email])
    store.mark_reviewed(first.id, "alice")

    stats = store.stats()

    assert stats.total == 2
    assert stats.by_status[QuoteStatus.REVIEWED] == 1
    assert stats.by_status[QuoteStatus.PARSED] == 1
    assert stats.by_status[QuoteStatus.ACCEPTED] == 0
    # high (3) and medium (2)
    assert stats.average_confidence == 2.5


def test_stats_empty_store(store: QuoteStore) -> None:
    stats = store.stats()

    assert stats.total == 0
    assert stats.average_confidence == 0.0


# Corrections


def test_update_field_marks_manual(store: QuoteStore, partial_email: EmailInput) -> None:
    """Test that a correction is manual, human-edited and keeps its source text."""
    quote = store.import_from_email(partial_email)
    original_source = quote.unit_cost.source_text

    updated = store.update_field(quote.id, QuoteField.UNIT_COST, 12.50)

    assert updated.unit_cost.value == Decimal("12.5")
    assert updated.unit_cost.confidence == ConfidenceLevel.MANUAL
    assert updated.unit_cost.human_edited is True
    assert updated.unit_cost.source_text == original_source
    assert updated.updated_at > quote.updated_at
    assert store.get_quote(quote.id) == updated


def test_update_field_recomputes_overall_confidence(
    store: QuoteStore, partial_email: EmailInput
) -> None:
    """Test that the aggregate reflects the correction immediately."""
    quote = store.import_from_email(partial_email)
    # unit cost high, the other three absent: (3+1+1+1)/4
    assert quote.overall_confidence == ConfidenceLevel.MEDIUM

    store.update_field(quote.id, "moq", 2000)
    updated = store.update_field(quote.id, "lead_time_days", 30)

    # unit cost high, MOQ and lead time manual, payment terms absent: (3+3+3+1)/4
    assert updated.overall_confidence == ConfidenceLevel.HIGH


def test_update_field_fills_absent_field(store: QuoteStore, partial_email: EmailInput) -> None:
    """Test correcting a field that extraction never found."""
    quote = store.import_from_email(partial_email)

    updated = store.update_field(quote.id, QuoteField.PAYMENT_TERMS, "30% deposit, 70% on delivery")

    assert updated.payment_terms.value == PaymentTerms(
        type="30% deposit, 70% on delivery", deposit_percent=30
    )
    assert updated.payment_terms.source_text == ""


def test_update_field_tooling_total(store: QuoteStore, full_email: EmailInput) -> None:
    quote = store.import_from_email(full_email)

    updated = store.update_field(
        quote.id, QuoteField.TOOLING_COSTS, {"mold_cost": "3000", "setup_cost": "400"}
    )

    assert updated.tooling_costs.value is not None
    assert updated.tooling_costs.value.total == Decimal("3400")


def test_update_field_rejects_unknown_field(store: QuoteStore, full_email: EmailInput) -> None:
    quote = store.import_from_email(full_email)

    with pytest.raises(InvalidFieldValueError, match="Unknown correctable field"):
        store.update_field(quote.id, "currency", "EUR")


def test_update_field_rejects_invalid_value(store: QuoteStore, full_email: EmailInput) -> None:
    """Test that a rejected value leaves the stored quote untouched."""
    quote = store.import_from_email(full_email)

    with pytest.raises(InvalidFieldValueError):
        store.update_field(quote.id, QuoteField.MOQ, -10)

    assert store.get_quote(quote.id) == quote


def test_update_field_payment_terms_with_oversized_numbers(
    store: QuoteStore, full_email: EmailInput
) -> None:
    """Test that long digit runs in terms text are kept as text only."""
    quote = store.import_from_email(full_email)
    text = "9" * 5000 + "% deposit"

    updated = store.update_field(quote.id, QuoteField.PAYMENT_TERMS, text)

    assert updated.payment_terms.value == PaymentTerms(type=text)

    with pytest.raises(InvalidFieldValueError):
        store.update_field(quote.id, QuoteField.MOQ, 10**5000)


def test_update_field_unknown_quote(store: QuoteStore) -> None:
    with pytest.raises(QuoteNotFoundError):
        store.update_field("missing", QuoteField.MOQ, 10)


# Details and deletion


def test_update_details(store: QuoteStore, full_email: EmailInput) -> None:
    quote = store.import_from_email(full_email)

    updated = store.update_details(quote.id, supplier_name="Manufacturer Ltd", notes="Call back")

    assert updated.supplier_name == "Manufacturer Ltd"
    assert updated.notes == "Call back"
    assert updated.unit_cost == quote.unit_cost


def test_update_details_rejects_provenance_fields(
    store: QuoteStore, full_email: EmailInput
) -> None:
    quote = store.import_from_email(full_email)

    with pytest.raises(InvalidFieldValueError, match="not editable"):
        store.update_details(quote.id, unit_cost=Decimal("1"))


def test_update_details_rejects_wrong_type(store: QuoteStore, full_email: EmailInput) -> None:
    quote = store.import_from_email(full_email)

    with pytest.raises(InvalidFieldValueError):
        store.update_details(quote.id, supplier_name=None)


def test_delete_quote(store: QuoteStore, full_email: EmailInput) -> None:
    quote = store.import_from_email(full_email)

    store.delete_quote(quote.id)

    assert store.get_quote(quote.id) is None
    with pytest.raises(QuoteNotFoundError):
        store.delete_quote(quote.id)


# Status lifecycle


def test_mark_reviewed_records_reviewer(store: QuoteStore, full_email: EmailInput) -> None:
    quote = store.import_from_email(full_email)

    reviewed = store.mark_reviewed(quote.id, "alice")

    assert reviewed.status == QuoteStatus.REVIEWED
    assert reviewed.reviewed_by == "alice"
    assert reviewed.reviewed_at is not None
    assert reviewed.reviewed_at == reviewed.updated_at


def test_accept_after_review(store: QuoteStore, full_email: EmailInput) -> None:
    quote = store.import_from_email(full_email)
    store.mark_reviewed(quote.id, "alice")

    assert store.accept(quote.id).status == QuoteStatus.ACCEPTED


def test_reject_appends_reason(store: QuoteStore, partial_email: EmailInput) -> None:
    """Test that the rejection reason is appended after existing notes."""
    quote = store.import_from_email(partial_email)
    store.mark_reviewed(quote.id, "alice")

    rejected = store.reject(quote.id, "Price too high")

    assert rejected.status == QuoteStatus.REJECTED
    assert rejected.notes.startswith("Parsing warnings:\n")
    assert rejected.notes.endswith("\n\nRejection reason: Price too high")


def test_reject_without_notes(store: QuoteStore, full_email: EmailInput) -> None:
    quote = store.import_from_email(full_email)
    store.mark_reviewed(quote.id, "alice")

    assert store.reject(quote.id, "Lead time").notes == "Rejection reason: Lead time"


def test_reject_without_reason_keeps_notes(store: QuoteStore, full_email: EmailInput) -> None:
    quote = store.import_from_email(full_email)
    store.mark_reviewed(quote.id, "alice")

    assert store.reject(quote.id).notes == ""


def test_expire_from_parsed(store: QuoteStore, full_email: EmailInput) -> None:
    quote = store.import_from_email(full_email)

    assert store.expire(quote.id).status == QuoteStatus.EXPIRED


def test_strict_transitions_reject_skipping_review(
    store: QuoteStore, full_email: EmailInput
) -> None:
    """Test that accepting an unreviewed quote is refused and nothing changes."""
    quote = store.import_from_email(full_email)

    with pytest.raises(InvalidTransitionError) as exc_info:
        store.accept(quote.id)

    assert exc_info.value.current == "parsed"
    assert exc_info.value.target == "accepted"
    assert store.get_quote(quote.id) == quote


def test_strict_transitions_terminal_status(store: QuoteStore, full_email: EmailInput) -> None:
    quote = store.import_from_email(full_email)
    store.mark_reviewed(quote.id, "alice")
    store.accept(quote.id)

    with pytest.raises(InvalidTransitionError):
        store.reject(quote.id, "Changed our mind")


def test_permissive_transitions(
    clock: Callable[[], datetime], full_email: EmailInput, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that illegal transitions are applied and logged when not enforced."""
    store = QuoteStore(Settings(_env_file=None, enforce_status_transitions=False), clock=clock)
    quote = store.import_from_email(full_email)

    with caplog.at_level(logging.WARNING, logger="bids.store.service"):
        accepted = store.accept(quote.id)

    assert accepted.status == QuoteStatus.ACCEPTED
    assert "illegal transition parsed -> accepted" in caplog.text


def test_transition_unknown_quote(store: QuoteStore) -> None:
    with pytest.raises(QuoteNotFoundError):
        store.mark_reviewed("missing", "alice")


def test_quote_not_found_is_key_error(store: QuoteStore) -> None:
    """Test that a missing quote can be caught as KeyError."""
    with pytest.raises(KeyError):
        store.expire("missing")


# Concurrency


def test_concurrent_corrections_and_review(full_email: EmailInput) -> None:
    """Test that parallel corrections to different fields are all kept."""
    store = QuoteStore(Settings(_env_file=None))
    quote = store.import_from_email(full_email)
    corrections = {
        QuoteField.UNIT_COST: "4.25",
        QuoteField.MOQ: 6000,
        QuoteField.LEAD_TIME_DAYS: 40,
        QuoteField.TOOLING_COSTS: {"mold_cost": "3000"},
        QuoteField.PAYMENT_TERMS: "Net 60",
    }
    rounds = 50
    barrier = threading.Barrier(len(corrections) + 1)

    def correct(field: QuoteField) -> None:
        barrier.wait()
        for _ in range(rounds):
            store.update_field(quote.id, field, corrections[field])

    def review() -> None:
        barrier.wait()
        store.mark_reviewed(quote.id, "alice")

    with ThreadPoolExecutor(max_workers=len(corrections) + 1) as pool:
        futures = [pool.submit(correct, field) for field in corrections]
        futures.append(pool.submit(review))
        for future in futures:
            future.result()

    final = store.get_quote(quote.id)
    assert final is not None
    for field in QuoteField:
        corrected = getattr(final, field.value)
        assert corrected.confidence == ConfidenceLevel.MANUAL
        assert corrected.human_edited is True
    assert final.status == QuoteStatus.REVIEWED
    assert final.reviewed_by == "alice"
    assert final.overall_confidence == calculate_overall_confidence(final)
    assert final.unit_cost.value == Decimal("4.25")
    assert final.moq.value == 6000
    assert final.lead_time_days.value == 40
    assert final.tooling_costs.value.total == Decimal("3000")
    assert final.payment_terms.value == PaymentTerms(type="Net 60", net_days=60)
