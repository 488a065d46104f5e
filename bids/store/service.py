"""In-memory quote store with human corrections and status lifecycle.

The store is a table of ManufacturerQuote records keyed by id. Records are
immutable: every mutation reads the current record, builds a new one and
swaps it into the table inside a lock, so readers never observe a
half-updated quote. Loading and saving the table belongs to the caller.
"""

import logging
import threading
import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from bids.extraction import metrics
from bids.extraction.confidence import CONFIDENCE_SCORES, calculate_overall_confidence
from bids.extraction.schema import (
    ConfidenceLevel,
    EmailInput,
    ManufacturerQuote,
    ProvenanceField,
    QuoteStatus,
)
from bids.extraction.service import QuoteEmailParser
from bids.shared.config import Settings
from bids.store.corrections import QuoteField, coerce_correction
from bids.store.errors import InvalidFieldValueError, InvalidTransitionError, QuoteNotFoundError
from bids.store.lifecycle import can_transition

logger = logging.getLogger(__name__)

# Metadata a reviewer may edit directly; commercial terms go through update_field
EDITABLE_DETAILS = frozenset(
    {
        "supplier_id",
        "supplier_name",
        "supplier_email",
        "currency",
        "product_description",
        "valid_until",
        "notes",
    }
)


class QuoteStats(BaseModel):
    """Summary of the quotes currently in the store.

    Attributes:
        total: Number of quotes
        by_status: Quote count per status (every status present)
        average_confidence: Mean overall-confidence score (high/manual=3, medium=2, low=1)
    """

    total: int
    by_status: dict[QuoteStatus, int]
    average_confidence: float


def _new_quote_id() -> str:
    return f"quote-{uuid.uuid4().hex}"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class QuoteStore:
    """Mutable collection of manufacturer quotes.

    Attributes:
        settings: Application settings
        parser: Parser used to import emails
    """

    def __init__(
        self,
        settings: Settings,
        parser: QuoteEmailParser | None = None,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = _new_quote_id,
    ) -> None:
        """Initialize an empty store.

        Args:
            settings: Application settings
            parser: Email parser (defaults to one built from settings)
            clock: Source of audit timestamps
            id_factory: Source of new quote ids
        """
        self.settings = settings
        self.parser = parser or QuoteEmailParser(settings)
        self._clock = clock
        self._id_factory = id_factory
        self._quotes: dict[str, ManufacturerQuote] = {}
        self._lock = threading.RLock()

    # Creation

    def add_quote(self, quote: ManufacturerQuote) -> ManufacturerQuote:
        """Insert or replace a quote as-is (e.g. one loaded from persistence)."""
        with self._lock:
            self._quotes[quote.id] = quote
        return quote

    def import_from_email(self, email: EmailInput) -> ManufacturerQuote:
        """Parse an email and store the resulting quote.

        Parse warnings are kept in the quote's notes.

        Returns:
            The stored quote
        """
        result = self.parser.parse(email)
        now = self._clock()

        fields = dict(result.quote)
        fields.update(
            id=self._id_factory(),
            supplier_name=result.quote.supplier_name or self.settings.default_supplier_name,
            supplier_email=result.quote.supplier_email or email.sender,
            notes=(
                "Parsing warnings:\n" + "\n".join(result.warnings) if result.warnings else ""
            ),
            created_at=now,
            updated_at=now,
        )
        quote = ManufacturerQuote(**fields)

        for error in result.errors:
            logger.warning(f"Imported quote {quote.id} with parse error: {error}")
        logger.info(
            f"Imported quote {quote.id} from {quote.supplier_name} "
            f"(overall confidence {quote.overall_confidence.value})"
        )
        return self.add_quote(quote)

    def import_many(self, emails: Iterable[EmailInput]) -> list[ManufacturerQuote]:
        """Import several emails, returning the stored quotes in order."""
        return [self.import_from_email(email) for email in emails]

    # Queries

    def get_quote(self, quote_id: str) -> ManufacturerQuote | None:
        with self._lock:
            return self._quotes.get(quote_id)

    def list_quotes(
        self, status: QuoteStatus | None = None, search: str | None = None
    ) -> list[ManufacturerQuote]:
        """List quotes, optionally filtered by status and a case-insensitive search term.

        The search term is matched against supplier name, supplier email,
        product description and email subject.
        """
        with self._lock:
            quotes = list(self._quotes.values())

        if status is not None:
            quotes = [quote for quote in quotes if quote.status == status]

        if search:
            term = search.lower()
            quotes = [
                quote
                for quote in quotes
                if term in quote.supplier_name.lower()
                or term in quote.supplier_email.lower()
                or term in quote.product_description.lower()
                or term in quote.email_subject.lower()
            ]
        return quotes

    def quotes_by_supplier(self, supplier_id: str) -> list[ManufacturerQuote]:
        with self._lock:
            return [quote for quote in self._quotes.values() if quote.supplier_id == supplier_id]

    def stats(self) -> QuoteStats:
        """Count quotes per status and average their overall confidence."""
        with self._lock:
            quotes = list(self._quotes.values())

        by_status = {status: 0 for status in QuoteStatus}
        for quote in quotes:
            by_status[quote.status] += 1

        scores = [CONFIDENCE_SCORES[quote.overall_confidence] for quote in quotes]
        return QuoteStats(
            total=len(quotes),
            by_status=by_status,
            average_confidence=sum(scores) / len(scores) if scores else 0.0,
        )

    # Corrections

    def update_field(
        self, quote_id: str, field: QuoteField | str, value: Any
    ) -> ManufacturerQuote:
        """Override a commercial field with a human-entered value.

        The field becomes manual and human-edited, keeps its previous source
        text for audit, and the quote's overall confidence is recomputed.

        Args:
            quote_id: Quote to correct
            field: Field to override
            value: New value (coerced to the field's type)

        Returns:
            The updated quote

        Raises:
            QuoteNotFoundError: If the quote does not exist
            InvalidFieldValueError: If the field is unknown or the value is invalid
        """
        try:
            field = QuoteField(field)
        except ValueError as e:
            raise InvalidFieldValueError(f"Unknown correctable field: {field!r}") from e
        new_value = coerce_correction(field, value)

        def apply(current: ManufacturerQuote) -> ManufacturerQuote:
            prior: ProvenanceField[Any] = getattr(current, field.value)
            corrected = type(prior)(
                value=new_value,
                confidence=ConfidenceLevel.MANUAL,
                source_text=prior.source_text,
                human_edited=True,
            )
            updated = current.model_copy(update={field.value: corrected, "updated_at": self._clock()})
            return updated.model_copy(
                update={"overall_confidence": calculate_overall_confidence(updated)}
            )

        quote = self._replace(quote_id, apply)
        metrics.quote_field_corrections_total.labels(field=field.value).inc()
        logger.info(
            f"Corrected {field.value} on quote {quote_id}; "
            f"overall confidence now {quote.overall_confidence.value}"
        )
        return quote

    def update_details(self, quote_id: str, **changes: Any) -> ManufacturerQuote:
        """Edit non-provenance metadata such as supplier details or notes.

        Raises:
            QuoteNotFoundError: If the quote does not exist
            InvalidFieldValueError: If a key is not editable or a value has the wrong type
        """
        unknown = set(changes) - EDITABLE_DETAILS
        if unknown:
            raise InvalidFieldValueError(f"Fields not editable as details: {sorted(unknown)}")

        def apply(current: ManufacturerQuote) -> ManufacturerQuote:
            try:
                return ManufacturerQuote.model_validate(
                    {**dict(current), **changes, "updated_at": self._clock()}
                )
            except ValidationError as e:
                raise InvalidFieldValueError(f"Invalid quote details: {e}") from e

        return self._replace(quote_id, apply)

    def delete_quote(self, quote_id: str) -> None:
        with self._lock:
            if quote_id not in self._quotes:
                raise QuoteNotFoundError(quote_id)
            del self._quotes[quote_id]
        logger.info(f"Deleted quote {quote_id}")

    # Status lifecycle

    def mark_reviewed(self, quote_id: str, reviewer: str) -> ManufacturerQuote:
        """Mark a quote reviewed, recording who reviewed it and when."""
        return self._transition(
            quote_id,
            QuoteStatus.REVIEWED,
            lambda current, now: {"reviewed_by": reviewer, "reviewed_at": now},
        )

    def accept(self, quote_id: str) -> ManufacturerQuote:
        return self._transition(quote_id, QuoteStatus.ACCEPTED)

    def reject(self, quote_id: str, reason: str | None = None) -> ManufacturerQuote:
        """Reject a quote, appending the reason (if any) to its notes."""

        def notes_with_reason(current: ManufacturerQuote, now: datetime) -> dict[str, Any]:
            if not reason:
                return {}
            prefix = f"{current.notes}\n\n" if current.notes else ""
            return {"notes": f"{prefix}Rejection reason: {reason}"}

        return self._transition(quote_id, QuoteStatus.REJECTED, notes_with_reason)

    def expire(self, quote_id: str) -> ManufacturerQuote:
        return self._transition(quote_id, QuoteStatus.EXPIRED)

    # Internals

    def _replace(
        self, quote_id: str, apply: Callable[[ManufacturerQuote], ManufacturerQuote]
    ) -> ManufacturerQuote:
        """Atomically read a quote, compute its successor and swap it in."""
        with self._lock:
            current = self._quotes.get(quote_id)
            if current is None:
                raise QuoteNotFoundError(quote_id)
            updated = apply(current)
            self._quotes[quote_id] = updated
            return updated

    def _transition(
        self,
        quote_id: str,
        target: QuoteStatus,
        extra: Callable[[ManufacturerQuote, datetime], dict[str, Any]] | None = None,
    ) -> ManufacturerQuote:
        previous: list[QuoteStatus] = []

        def apply(current: ManufacturerQuote) -> ManufacturerQuote:
            if not can_transition(current.status, target):
                if self.settings.enforce_status_transitions:
                    raise InvalidTransitionError(quote_id, current.status.value, target.value)
                logger.warning(
                    f"Applying illegal transition {current.status.value} -> {target.value} "
                    f"on quote {quote_id}"
                )
            now = self._clock()
            changes: dict[str, Any] = {"status": target, "updated_at": now}
            if extra is not None:
                changes.update(extra(current, now))
            previous.append(current.status)
            return current.model_copy(update=changes)

        quote = self._replace(quote_id, apply)
        metrics.quote_status_transitions_total.labels(
            from_status=previous[0].value, to_status=target.value
        ).inc()
        logger.info(f"Quote {quote_id} moved {previous[0].value} -> {target.value}")
        return quote
