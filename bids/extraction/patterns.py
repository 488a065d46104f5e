"""Text-matching rules for quote extraction.

Rules are ordered most-specific first; scalar extractors take the first rule
that yields an in-bounds value. The tables are compiled once at import and
never modified.

Number captures use possessive quantifiers and rules that start with a
number only start at the beginning of a digit run, so every search is
linear in the length of the text.
"""

import re
from typing import NamedTuple

_IGNORECASE = re.IGNORECASE

_PER_UNIT = r"(?:\/?\s*(?:unit|pc|pcs|piece|ea|each))"
_LEAD_LABEL = r"(?:lead\s*time|delivery\s*time|production\s*time|turnaround)"
_LEAD_SUFFIX = r"(?:lead\s*time|delivery|turnaround|production(?:\s*time)?)"

# Not preceded by part of another number
_RUN_START = r"(?<![\d,.])"
# "1,250.00", "4.75", "5000"
_AMOUNT = r"(\d[\d,]*+(?:\.\d++)?)"
# "5,000"
_QUANTITY = r"(\d[\d,]*+)"
_TOOLING_WORD = r"\b(?:tooling|mold|mould|die)\b"
_SETUP_WORD = r"\b(?:setup|set-up)\b"


class ExtractionRule(NamedTuple):
    """A compiled pattern whose first group captures the value.

    Attributes:
        pattern: Compiled regular expression
        multiplier: Factor applied to the captured number (7 for weeks)
    """

    pattern: re.Pattern[str]
    multiplier: int = 1


def _rule(pattern: str, multiplier: int = 1) -> ExtractionRule:
    return ExtractionRule(re.compile(pattern, _IGNORECASE), multiplier)


# "Unit price: $1.50", "$1.50/unit", "USD 1.50/pc", "1.50 USD each"
UNIT_COST_RULES: tuple[ExtractionRule, ...] = (
    _rule(
        r"(?:unit\s*(?:price|cost)|price\s*per\s*unit|cost\s*per\s*unit|ppu)"
        rf"\s*[:=]?\s*\$?\s*{_AMOUNT}\s*(?:USD)?"
    ),
    _rule(rf"\$\s*{_AMOUNT}\s*{_PER_UNIT}"),
    _rule(rf"USD\s*{_AMOUNT}\s*{_PER_UNIT}"),
    _rule(rf"{_RUN_START}{_AMOUNT}\s*USD\s*{_PER_UNIT}"),
)

# "MOQ: 1000", "minimum order: 1,000 units", "min qty 1000", "500 pcs minimum"
MOQ_RULES: tuple[ExtractionRule, ...] = (
    _rule(
        r"(?:moq|minimum\s*order\s*(?:quantity|qty)?|min\.?\s*(?:order|qty|quantity))"
        rf"\s*[:=]?\s*(?:is\s*)?{_QUANTITY}\s*(?:units?|pcs?|pieces?)?"
    ),
    _rule(rf"(?:minimum|min\.?)\s*[:=]?\s*(?:is\s*)?{_QUANTITY}\s*(?:units?|pcs?|pieces?)"),
    _rule(rf"{_RUN_START}{_QUANTITY}\s*(?:units?|pcs?|pieces?)\s*(?:minimum|min\.?)"),
)

# "lead time: 30 days", "delivery time: 4-6 weeks", "5 weeks production time"
LEAD_TIME_RULES: tuple[ExtractionRule, ...] = (
    _rule(rf"{_LEAD_LABEL}\s*[:=]?\s*(\d++)(?:\s*-\s*\d++)?\s*(?:days?|d\b)"),
    _rule(rf"{_LEAD_LABEL}\s*[:=]?\s*(\d++)(?:\s*-\s*\d++)?\s*(?:weeks?|wks?)", multiplier=7),
    _rule(rf"{_RUN_START}(\d++)(?:\s*-\s*\d++)?\s*(?:days?|d)\s*{_LEAD_SUFFIX}"),
    _rule(
        rf"{_RUN_START}(\d++)(?:\s*-\s*\d++)?\s*(?:weeks?|wks?)\s*{_LEAD_SUFFIX}",
        multiplier=7,
    ),
)

# "tooling: $5,000", "mold cost: $5000", "$800 die", "setup fee: $500"
TOOLING_RULES: tuple[ExtractionRule, ...] = (
    _rule(rf"{_TOOLING_WORD}\s*(?:cost|fee|charge|price)?\s*[:=]?\s*\$?\s*{_AMOUNT}"),
    _rule(rf"\$\s*{_AMOUNT}\s*{_TOOLING_WORD}"),
    _rule(rf"{_SETUP_WORD}\s*(?:cost|fee|charge)?\s*[:=]?\s*\$?\s*{_AMOUNT}"),
)
MOLD_KEYWORD_PATTERN = re.compile(r"\b(?:mold|mould|die)\b", _IGNORECASE)
SETUP_KEYWORD_PATTERN = re.compile(_SETUP_WORD, _IGNORECASE)

# "Net 30", "50% deposit, 50% on shipment", "T/T 30 days", "Terms: LC at sight"
# Net days and deposit percent are at most 4 and 3 digits
PAYMENT_TERMS_RULES: tuple[ExtractionRule, ...] = (
    _rule(r"(?:payment\s*terms?|terms?)\s*[:=]?\s*((?:net|n)\s*\d{1,4}(?!\d))"),
    _rule(
        r"(?<!\d)(\d{1,3}%?\s*(?:deposit|down|upfront)"
        r"(?:\s*,?\s*\d{1,3}%?\s*(?:on|upon|at)\s*(?:shipment|delivery|completion))?)"
    ),
    _rule(r"(T\/T\s*\d++\s*days?)"),
    _rule(r"(?:payment\s*terms?|terms?)\s*[:=]?\s*([^.\n]{5,50})"),
)
NET_DAYS_PATTERN = re.compile(r"(?:net|n)\s*(\d{1,4})(?!\d)", _IGNORECASE)
DEPOSIT_PATTERN = re.compile(r"(?<!\d)(\d{1,3})%?\s*(?:deposit|down|upfront)", _IGNORECASE)

# Currency code first, then symbol
CURRENCY_CODE_PATTERN = re.compile(r"\b(USD|EUR|GBP|CNY|RMB|JPY)\b", _IGNORECASE)
CURRENCY_SYMBOL_PATTERN = re.compile(r"(\$|€|£|¥|￥)")
CHINESE_CURRENCY_PATTERN = re.compile(r"CNY|RMB", _IGNORECASE)
CURRENCY_SYMBOLS: dict[str, str] = {"$": "USD", "€": "EUR", "£": "GBP"}
YEN_SYMBOLS = ("¥", "￥")
CURRENCY_ALIASES: dict[str, str] = {"RMB": "CNY"}
DEFAULT_CURRENCY = "USD"

# "1000-4999: $1.50", "1,000 to 4,999 pcs @ 1.50"
TIER_RANGE_PATTERN = re.compile(
    rf"{_RUN_START}{_QUANTITY}\s*(?:-|to)\s*{_QUANTITY}"
    r"\s*(?:units?|pcs?)?\s*[:=@]?\s*\$?\s*([\d.]++)",
    _IGNORECASE,
)
# "5000+: $1.25"
TIER_OPEN_PATTERN = re.compile(
    rf"{_RUN_START}{_QUANTITY}\s*\+\s*(?:units?|pcs?)?\s*[:=@]?\s*\$?\s*([\d.]++)",
    _IGNORECASE,
)

# Sender identity
SENDER_DOMAIN_PATTERN = re.compile(r"@([^.]+)\.")
SENDER_DISPLAY_NAME_PATTERN = re.compile(r"^([^<]+)<")
SENDER_ADDRESS_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"<([^>]+@[^>]+)>"),
    re.compile(r"([a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,})"),
)
