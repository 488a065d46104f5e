"""Quote status lifecycle.

draft -> parsed -> reviewed -> accepted | rejected, with expired reachable
from every non-terminal status. Re-reviewing a reviewed quote is allowed so
the reviewer and review time can be updated.

expired is terminal alongside accepted and rejected: a lapsed quote is
re-requested from the supplier, not revived.
"""

from collections.abc import Mapping

from bids.extraction.schema import QuoteStatus

ALLOWED_TRANSITIONS: Mapping[QuoteStatus, frozenset[QuoteStatus]] = {
    QuoteStatus.DRAFT: frozenset({QuoteStatus.PARSED, QuoteStatus.REVIEWED, QuoteStatus.EXPIRED}),
    QuoteStatus.PARSED: frozenset({QuoteStatus.REVIEWED, QuoteStatus.EXPIRED}),
    QuoteStatus.REVIEWED: frozenset(
        {
            QuoteStatus.REVIEWED,
            QuoteStatus.ACCEPTED,
            QuoteStatus.REJECTED,
            QuoteStatus.EXPIRED,
        }
    ),
    QuoteStatus.ACCEPTED: frozenset(),
    QuoteStatus.REJECTED: frozenset(),
    QuoteStatus.EXPIRED: frozenset(),
}

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def is_terminal(status: QuoteStatus) -> bool:
    return status in TERMINAL_STATUSES


def can_transition(current: QuoteStatus, target: QuoteStatus) -> bool:
    """Whether a quote in `current` status may move to `target`."""
    return target in ALLOWED_TRANSITIONS[current]
