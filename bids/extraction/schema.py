"""Quote data models for structured extraction from supplier correspondence.

Every commercial attribute is wrapped in a ProvenanceField that records how
confident the extraction was, the literal text it came from and whether a
human has since overridden it.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, model_validator

T = TypeVar("T")


class ConfidenceLevel(str, Enum):
    """Ordinal trust rating for an extracted value.

    MANUAL is human-asserted and is never produced by extraction.
    """

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    MANUAL = "manual"


class QuoteStatus(str, Enum):
    """Workflow state of a manufacturer quote."""

    DRAFT = "draft"
    PARSED = "parsed"
    REVIEWED = "reviewed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


STATUS_LABELS: dict[QuoteStatus, str] = {
    QuoteStatus.DRAFT: "Draft",
    QuoteStatus.PARSED: "Parsed",
    QuoteStatus.REVIEWED: "Reviewed",
    QuoteStatus.ACCEPTED: "Accepted",
    QuoteStatus.REJECTED: "Rejected",
    QuoteStatus.EXPIRED: "Expired",
}

CONFIDENCE_LABELS: dict[ConfidenceLevel, str] = {
    ConfidenceLevel.HIGH: "High Confidence",
    ConfidenceLevel.MEDIUM: "Medium Confidence",
    ConfidenceLevel.LOW: "Low Confidence",
    ConfidenceLevel.MANUAL: "Manually Entered",
}


class ProvenanceField(BaseModel, Generic[T]):
    """A value together with the confidence and source text it was derived from.

    Instances are immutable. A correction replaces the whole wrapper so value,
    confidence, source text and the edit flag never drift apart.

    Attributes:
        value: Extracted or human-entered value, None when absent
        confidence: How much the value can be trusted
        source_text: Literal text the value was derived from
        human_edited: Whether a reviewer has overridden the value
    """

    model_config = ConfigDict(frozen=True)

    value: T | None = None
    confidence: ConfidenceLevel = ConfidenceLevel.LOW
    source_text: str = ""
    human_edited: bool = False

    @model_validator(mode="after")
    def _check_provenance(self) -> "ProvenanceField[T]":
        if self.human_edited:
            if self.confidence != ConfidenceLevel.MANUAL:
                raise ValueError("Human-edited fields must have manual confidence")
            if self.value is None:
                raise ValueError("Human-edited fields must carry a value")
            return self

        if self.confidence == ConfidenceLevel.MANUAL:
            raise ValueError("Manual confidence is reserved for human-edited fields")
        if self.value is None and (self.confidence != ConfidenceLevel.LOW or self.source_text):
            raise ValueError("Absent fields must have low confidence and no source text")
        return self

    @classmethod
    def absent(cls) -> "ProvenanceField[T]":
        """Create an empty field (no value, low confidence, no source text)."""
        return cls()

    @property
    def is_present(self) -> bool:
        return self.value is not None


class ToolingCost(BaseModel):
    """One-time tooling charges quoted by a manufacturer.

    The model does not validate that total is the sum of its components;
    writers normalise it with with_computed_total() before storing.
    """

    model_config = ConfigDict(frozen=True)

    mold_cost: Decimal = Field(Decimal("0"), ge=0, description="Mold/mould/die cost")
    setup_cost: Decimal = Field(Decimal("0"), ge=0, description="Setup/set-up cost")
    other_costs: Decimal = Field(Decimal("0"), ge=0, description="Unclassified tooling cost")
    total: Decimal = Field(Decimal("0"), ge=0, description="Sum of all components")

    @property
    def component_sum(self) -> Decimal:
        return self.mold_cost + self.setup_cost + self.other_costs

    @property
    def is_consistent(self) -> bool:
        return self.total == self.component_sum

    def with_computed_total(self) -> "ToolingCost":
        """Return a copy whose total is recomputed from its components."""
        return self.model_copy(update={"total": self.component_sum})


class PaymentTerms(BaseModel):
    """Payment terms text plus best-effort numeric annotations.

    Attributes:
        type: Terms as written, e.g. "Net 30" or "50% deposit, 50% on shipment"
        deposit_percent: Up-front deposit percentage if stated
        net_days: Net payment days if stated
        notes: Free-text notes
    """

    model_config = ConfigDict(frozen=True)

    type: str
    deposit_percent: int | None = Field(None, ge=0, le=100)
    net_days: int | None = Field(None, ge=0)
    notes: str | None = None


class PricingTier(BaseModel):
    """Unit price applying from a minimum quantity (optionally up to a maximum)."""

    model_config = ConfigDict(frozen=True)

    min_quantity: int = Field(ge=0)
    max_quantity: int | None = None
    unit_price: Decimal = Field(ge=0)

    @model_validator(mode="after")
    def _check_range(self) -> "PricingTier":
        if self.max_quantity is not None and self.max_quantity < self.min_quantity:
            raise ValueError("max_quantity must be greater than or equal to min_quantity")
        return self


DEFAULT_TOOLING_COST = ToolingCost()
DEFAULT_PAYMENT_TERMS = PaymentTerms(type="Net 30", net_days=30)


class EmailInput(BaseModel):
    """Supplier email as delivered by the inbox collaborator.

    The sender is exposed as `sender` but accepts the wire name "from".
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    subject: str = ""
    body: str = ""
    sender: str = Field("", alias="from")
    received_at: str = Field("", description="ISO-8601 timestamp string")


class ParsedQuote(BaseModel):
    """Quote terms assembled from a single email, before it is stored.

    Commercial attributes are provenance-wrapped; everything else is literal
    email metadata or workflow state.
    """

    model_config = ConfigDict(frozen=True)

    supplier_name: str
    supplier_email: str

    # Provenance-tracked commercial terms
    unit_cost: ProvenanceField[Decimal] = Field(default_factory=ProvenanceField[Decimal])
    moq: ProvenanceField[int] = Field(default_factory=ProvenanceField[int])
    lead_time_days: ProvenanceField[int] = Field(default_factory=ProvenanceField[int])
    tooling_costs: ProvenanceField[ToolingCost] = Field(
        default_factory=ProvenanceField[ToolingCost]
    )
    payment_terms: ProvenanceField[PaymentTerms] = Field(
        default_factory=ProvenanceField[PaymentTerms]
    )

    currency: str = "USD"
    product_description: str = ""
    valid_until: str | None = None

    # Original email data
    email_subject: str = ""
    email_body: str = ""
    email_received_at: str = ""
    email_from: str = ""

    status: QuoteStatus = QuoteStatus.PARSED
    overall_confidence: ConfidenceLevel = ConfidenceLevel.LOW
    notes: str = ""

    def unresolved_fields(self) -> list[str]:
        """Names of primary commercial fields that still have no value."""
        primary = ("unit_cost", "moq", "lead_time_days", "payment_terms")
        return [name for name in primary if not getattr(self, name).is_present]

    def is_resolved(self) -> bool:
        """Whether the quote is ready for cost comparison across vendors."""
        return not self.unresolved_fields()


class ParsedQuoteWithTiers(ParsedQuote):
    """Parsed quote extended with volume pricing tiers."""

    pricing_tiers: ProvenanceField[tuple[PricingTier, ...]] = Field(
        default_factory=ProvenanceField[tuple[PricingTier, ...]]
    )


class ManufacturerQuote(ParsedQuote):
    """Stored quote: parsed terms plus identity and audit metadata."""

    id: str
    supplier_id: str | None = None
    created_at: datetime
    updated_at: datetime
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None


class ParseResult(BaseModel):
    """Result of parsing one email.

    Attributes:
        success: False only when errors were reported
        quote: Assembled quote (always present, possibly all-absent)
        errors: Structural problems with the email
        warnings: Human-readable notes about fields that could not be extracted
    """

    success: bool
    quote: SerializeAsAny[ParsedQuote]
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
