"""Quote assembly from supplier emails.

Runs every field extractor over one email and assembles a ParsedQuote with
status 'parsed', an overall confidence and a warning for every primary field
that could not be found. Parsing never raises for malformed or empty input.
"""

import logging
from collections.abc import Iterable

from bids.extraction import extractors, metrics
from bids.extraction.confidence import calculate_overall_confidence
from bids.extraction.schema import (
    EmailInput,
    ParsedQuote,
    ParsedQuoteWithTiers,
    ParseResult,
    QuoteStatus,
)
from bids.shared.config import Settings

logger = logging.getLogger(__name__)

EMPTY_EXTRACTION_ERROR = "No commercial terms could be extracted from email"

# Primary fields that produce a warning when absent, with their display names
WARNED_FIELDS: dict[str, str] = {
    "unit_cost": "unit cost",
    "moq": "MOQ",
    "lead_time_days": "lead time",
}

COMMERCIAL_FIELDS = ("unit_cost", "moq", "lead_time_days", "tooling_costs", "payment_terms")


def combine_text(email: EmailInput) -> str:
    """Subject and body joined by a blank line, so subject terms can match too."""
    return f"{email.subject}\n\n{email.body}"


class QuoteEmailParser:
    """Turns supplier emails into provenance-tracked quotes.

    Stateless apart from settings: parsing the same email twice yields equal
    quotes, and emails can be parsed independently in any order.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize parser with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    def parse(self, email: EmailInput) -> ParseResult:
        """Extract quote terms from one email.

        Args:
            email: Supplier email

        Returns:
            ParseResult with the assembled quote, errors and warnings
        """
        text = combine_text(email)
        logger.debug(f"Parsing email from {email.sender!r} ({len(text)} characters)")

        quote = ParsedQuote(
            supplier_name=extractors.extract_supplier_name(email.sender),
            supplier_email=extractors.extract_supplier_email(email.sender),
            unit_cost=extractors.extract_unit_cost(text),
            moq=extractors.extract_moq(text),
            lead_time_days=extractors.extract_lead_time(text),
            tooling_costs=extractors.extract_tooling_costs(text),
            payment_terms=extractors.extract_payment_terms(text),
            currency=extractors.extract_currency(text),
            product_description=email.subject,
            email_subject=email.subject,
            email_body=email.body,
            email_received_at=email.received_at,
            email_from=email.sender,
            status=QuoteStatus.PARSED,
        )
        quote = quote.model_copy(
            update={"overall_confidence": calculate_overall_confidence(quote)}
        )

        warnings = [
            f"Could not extract {label} from email"
            for name, label in WARNED_FIELDS.items()
            if not getattr(quote, name).is_present
        ]

        errors: list[str] = []
        found = [name for name in COMMERCIAL_FIELDS if getattr(quote, name).is_present]
        if not found and self.settings.report_empty_extraction:
            errors.append(EMPTY_EXTRACTION_ERROR)

        self._record_metrics(quote)
        logger.info(
            f"Parsed quote from {quote.supplier_name}: "
            f"{len(found)}/{len(COMMERCIAL_FIELDS)} fields, "
            f"overall confidence {quote.overall_confidence.value}"
        )

        return ParseResult(
            success=not errors,
            quote=quote,
            errors=errors,
            warnings=warnings,
        )

    def parse_with_tiers(self, email: EmailInput) -> ParseResult:
        """Parse an email and additionally extract volume pricing tiers.

        Returns:
            ParseResult whose quote is a ParsedQuoteWithTiers
        """
        result = self.parse(email)
        tiers = extractors.extract_pricing_tier_field(combine_text(email))
        quote = ParsedQuoteWithTiers(**dict(result.quote), pricing_tiers=tiers)
        return result.model_copy(update={"quote": quote})

    def parse_many(self, emails: Iterable[EmailInput]) -> list[ParseResult]:
        """Parse several emails independently, preserving order."""
        return [self.parse(email) for email in emails]

    def _record_metrics(self, quote: ParsedQuote) -> None:
        metrics.quote_emails_parsed_total.labels(
            overall_confidence=quote.overall_confidence.value
        ).inc()
        for name in COMMERCIAL_FIELDS:
            outcome = "found" if getattr(quote, name).is_present else "missing"
            metrics.quote_field_extractions_total.labels(field=name, outcome=outcome).inc()
