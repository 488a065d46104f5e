"""Field extractors for supplier quote emails.

Each extractor runs its ordered rules from bids.extraction.patterns against
the combined subject and body text and returns a ProvenanceField. Nothing in
here raises for odd input: a miss is an absent field.

Scalar fields (unit cost, MOQ, lead time) are first-match: the first rule
whose captured number parses and passes the field's sanity bound wins; an
out-of-bounds match is discarded and the next rule is tried. Tooling costs
and pricing tiers accumulate every match instead.
"""

import logging
from decimal import Decimal, InvalidOperation

from bids.extraction import patterns
from bids.extraction.confidence import score_match
from bids.extraction.patterns import ExtractionRule
from bids.extraction.schema import (
    ConfidenceLevel,
    PaymentTerms,
    PricingTier,
    ProvenanceField,
    ToolingCost,
)

logger = logging.getLogger(__name__)

# Exclusive upper sanity bounds (lower bound is 0, also exclusive)
MAX_UNIT_COST = Decimal("10000")
MAX_MOQ = Decimal("10000000")
MAX_LEAD_TIME_DAYS = Decimal("365")


def parse_number(text: str) -> Decimal | None:
    """Parse a number, ignoring thousands separators.

    Returns:
        Decimal value, or None if the text is not a finite number
    """
    cleaned = text.replace(",", "").strip()
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def _first_in_bounds(
    text: str, rules: tuple[ExtractionRule, ...], upper: Decimal
) -> tuple[Decimal, int, str] | None:
    """Return (value, rule index, matched text) for the first acceptable match."""
    for index, rule in enumerate(rules):
        match = rule.pattern.search(text)
        if match is None:
            continue
        value = parse_number(match.group(1))
        if value is None:
            continue
        value *= rule.multiplier
        if not 0 < value < upper:
            logger.debug(f"Discarding out-of-bounds value {value} from rule {index}")
            continue
        return value, index, match.group(0)
    return None


def extract_unit_cost(text: str) -> ProvenanceField[Decimal]:
    """Extract the per-unit price, e.g. "Unit price: $4.75" or "$4.75/unit"."""
    found = _first_in_bounds(text, patterns.UNIT_COST_RULES, MAX_UNIT_COST)
    if found is None:
        return ProvenanceField[Decimal].absent()

    value, index, matched_text = found
    return ProvenanceField[Decimal](
        value=value,
        confidence=score_match(value, index, matched_text),
        source_text=matched_text,
    )


def extract_moq(text: str) -> ProvenanceField[int]:
    """Extract the minimum order quantity."""
    found = _first_in_bounds(text, patterns.MOQ_RULES, MAX_MOQ)
    if found is None:
        return ProvenanceField[int].absent()

    value, index, matched_text = found
    return ProvenanceField[int](
        value=int(value),
        confidence=score_match(value, index, matched_text),
        source_text=matched_text,
    )


def extract_lead_time(text: str) -> ProvenanceField[int]:
    """Extract the lead time in days; week phrasings are converted to days."""
    found = _first_in_bounds(text, patterns.LEAD_TIME_RULES, MAX_LEAD_TIME_DAYS)
    if found is None:
        return ProvenanceField[int].absent()

    value, index, matched_text = found
    return ProvenanceField[int](
        value=int(value),
        confidence=score_match(value, index, matched_text),
        source_text=matched_text,
    )


def extract_tooling_costs(text: str) -> ProvenanceField[ToolingCost]:
    """Sum every tooling-like charge in the text into mold/setup/other buckets.

    Overlapping matches from different rules are counted once.
    """
    mold = setup = other = Decimal("0")
    matched_texts: list[str] = []
    taken: list[tuple[int, int]] = []

    for rule in patterns.TOOLING_RULES:
        for match in rule.pattern.finditer(text):
            start, end = match.span()
            if any(start < t_end and t_start < end for t_start, t_end in taken):
                continue
            value = parse_number(match.group(1))
            if value is None or value < 0:
                continue

            matched_text = match.group(0)
            taken.append((start, end))
            matched_texts.append(matched_text)

            if patterns.MOLD_KEYWORD_PATTERN.search(matched_text):
                mold += value
            elif patterns.SETUP_KEYWORD_PATTERN.search(matched_text):
                setup += value
            else:
                other += value

    if not matched_texts:
        return ProvenanceField[ToolingCost].absent()

    costs = ToolingCost(mold_cost=mold, setup_cost=setup, other_costs=other).with_computed_total()
    return ProvenanceField[ToolingCost](
        value=costs,
        confidence=ConfidenceLevel.MEDIUM if costs.total > 0 else ConfidenceLevel.LOW,
        source_text="; ".join(matched_texts),
    )


def annotate_payment_terms(terms_text: str) -> PaymentTerms:
    """Build PaymentTerms from terms text, pulling out net days and deposit percent."""
    terms_text = terms_text.strip()
    net_days = None
    deposit_percent = None

    net_match = patterns.NET_DAYS_PATTERN.search(terms_text)
    if net_match:
        net_days = int(net_match.group(1))

    deposit_match = patterns.DEPOSIT_PATTERN.search(terms_text)
    if deposit_match and int(deposit_match.group(1)) <= 100:
        deposit_percent = int(deposit_match.group(1))

    return PaymentTerms(type=terms_text, net_days=net_days, deposit_percent=deposit_percent)


def extract_payment_terms(text: str) -> ProvenanceField[PaymentTerms]:
    """Extract payment terms such as "Net 30" or "30% deposit, 70% on shipment"."""
    for rule in patterns.PAYMENT_TERMS_RULES:
        match = rule.pattern.search(text)
        if match is None or not match.group(1).strip():
            continue

        terms = annotate_payment_terms(match.group(1))
        annotated = terms.net_days is not None or terms.deposit_percent is not None
        return ProvenanceField[PaymentTerms](
            value=terms,
            confidence=ConfidenceLevel.HIGH if annotated else ConfidenceLevel.MEDIUM,
            source_text=match.group(0),
        )
    return ProvenanceField[PaymentTerms].absent()


def extract_currency(text: str) -> str:
    """Detect the quote currency as an ISO code, defaulting to USD."""
    code_match = patterns.CURRENCY_CODE_PATTERN.search(text)
    if code_match:
        code = code_match.group(1).upper()
        return patterns.CURRENCY_ALIASES.get(code, code)

    symbol_match = patterns.CURRENCY_SYMBOL_PATTERN.search(text)
    if symbol_match:
        symbol = symbol_match.group(1)
        if symbol in patterns.YEN_SYMBOLS:
            return "CNY" if patterns.CHINESE_CURRENCY_PATTERN.search(text) else "JPY"
        return patterns.CURRENCY_SYMBOLS[symbol]

    return patterns.DEFAULT_CURRENCY


def _parse_quantity(text: str) -> int | None:
    value = parse_number(text)
    if value is None or value != value.to_integral_value():
        return None
    return int(value)


def find_pricing_tiers(text: str) -> list[tuple[PricingTier, str]]:
    """Find volume pricing tiers with the text each one was matched from.

    Bounded ranges ("1000-4999: $1.50") and open-ended ranges ("5000+: $1.25")
    are both collected. Inverted ranges are dropped and only the first tier
    for a given minimum quantity is kept. Result is sorted by minimum quantity.
    """
    candidates: list[tuple[int | None, int | None, Decimal | None, str]] = []

    for match in patterns.TIER_RANGE_PATTERN.finditer(text):
        max_qty = _parse_quantity(match.group(2))
        if max_qty is None:
            continue
        candidates.append(
            (
                _parse_quantity(match.group(1)),
                max_qty,
                parse_number(match.group(3).rstrip(".")),
                match.group(0),
            )
        )
    for match in patterns.TIER_OPEN_PATTERN.finditer(text):
        candidates.append(
            (
                _parse_quantity(match.group(1)),
                None,
                parse_number(match.group(2).rstrip(".")),
                match.group(0),
            )
        )

    tiers: list[tuple[PricingTier, str]] = []
    seen: set[int] = set()
    for min_qty, max_qty, price, matched_text in candidates:
        if min_qty is None or price is None or price < 0 or min_qty in seen:
            continue
        if max_qty is not None and max_qty < min_qty:
            logger.debug(f"Dropping inverted pricing tier: {matched_text!r}")
            continue
        seen.add(min_qty)
        tier = PricingTier(min_quantity=min_qty, max_quantity=max_qty, unit_price=price)
        tiers.append((tier, matched_text))

    return sorted(tiers, key=lambda item: item[0].min_quantity)


def extract_pricing_tiers(text: str) -> list[PricingTier]:
    """Extract volume pricing tiers sorted ascending by minimum quantity."""
    return [tier for tier, _ in find_pricing_tiers(text)]


def extract_pricing_tier_field(text: str) -> ProvenanceField[tuple[PricingTier, ...]]:
    """Pricing tiers wrapped with provenance; MEDIUM when any tier was found."""
    found = find_pricing_tiers(text)
    if not found:
        return ProvenanceField[tuple[PricingTier, ...]].absent()

    return ProvenanceField[tuple[PricingTier, ...]](
        value=tuple(tier for tier, _ in found),
        confidence=ConfidenceLevel.MEDIUM,
        source_text="; ".join(matched_text for _, matched_text in found),
    )


def extract_supplier_name(sender: str) -> str:
    """Derive a supplier name from the sender.

    Prefers the capitalised domain label ("sales@acme.cn" -> "Acme"), then the
    display name of "Name <addr>", then the raw sender.
    """
    domain_match = patterns.SENDER_DOMAIN_PATTERN.search(sender)
    if domain_match:
        label = domain_match.group(1)
        return label[0].upper() + label[1:]

    name_match = patterns.SENDER_DISPLAY_NAME_PATTERN.search(sender)
    if name_match and name_match.group(1).strip():
        return name_match.group(1).strip()

    return sender


def extract_supplier_email(sender: str) -> str:
    """Pull the email address out of a sender string, falling back to the raw sender."""
    for pattern in patterns.SENDER_ADDRESS_PATTERNS:
        match = pattern.search(sender)
        if match:
            return match.group(1)
    return sender
