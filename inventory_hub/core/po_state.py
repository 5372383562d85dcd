# inventory_hub/core/po_state.py
"""Purchase order lifecycle rules.

Pure functions only: which transitions are allowed, which ones move stock
into or out of ``on_order``, and the status a PO should take after a batch
of receipts.
"""
import re
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from inventory_hub.exceptions import StateTransitionError, ValidationError
from inventory_hub.models import PurchaseOrderStatus as S

VALID_TRANSITIONS: Dict[S, FrozenSet[S]] = {
    S.DRAFT: frozenset({S.PENDING, S.SENT, S.CANCELLED}),
    S.PENDING: frozenset({S.APPROVED, S.SENT, S.CANCELLED}),
    S.APPROVED: frozenset({S.SENT, S.CANCELLED}),
    S.SENT: frozenset({S.CONFIRMED, S.PARTIAL, S.RECEIVED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.PARTIAL, S.RECEIVED, S.CANCELLED}),
    S.PARTIAL: frozenset({S.RECEIVED, S.CANCELLED}),
    S.RECEIVED: frozenset(),
    S.CANCELLED: frozenset({S.DRAFT}),
}

# Outstanding quantities of a PO in one of these states are counted in on_order
ON_ORDER_STATES = frozenset({S.SENT, S.CONFIRMED, S.PARTIAL, S.RECEIVED})

# Entering one of these from outside ON_ORDER_STATES commits stock to on_order
COMMIT_STATES = frozenset({S.SENT, S.CONFIRMED})

# Cancelling from one of these releases the outstanding on_order
CANCEL_RELEASE_STATES = frozenset({S.SENT, S.CONFIRMED, S.PARTIAL})

CLOSING_STATES = frozenset({S.CANCELLED, S.RECEIVED})

RECEIVABLE_STATES = CANCEL_RELEASE_STATES

DELETABLE_STATES = frozenset({S.DRAFT, S.CANCELLED})

EDITABLE_ITEM_STATES = frozenset({S.DRAFT})

PO_PREFIX = 'PO-'
SEQUENCE_WIDTH = 4
_PO_NUMBER_RE = re.compile(r'^PO-(\d{4})(\d{2})(\d{4,})$')


def parse_status(value) -> S:
    """Parse a status string, raising ValidationError for unknown values."""
    try:
        return S.from_string(value)
    except ValueError as e:
        raise ValidationError(str(e), details={'status': str(value)})


def can_transition(current, target) -> bool:
    return parse_status(target) in VALID_TRANSITIONS[parse_status(current)]


def validate_transition(current, target) -> Tuple[S, S]:
    """Check a status change against the transition table.

    Returns:
        Tuple of (current, target) as enum members

    Raises:
        StateTransitionError if the change is not allowed
    """
    current, target = parse_status(current), parse_status(target)
    if target not in VALID_TRANSITIONS[current]:
        raise StateTransitionError(current.value, target.value)
    return current, target


def commits_on_order(current, target) -> bool:
    """True when moving current -> target should add outstanding qty to on_order."""
    return parse_status(target) in COMMIT_STATES and parse_status(current) not in ON_ORDER_STATES


def releases_on_order(current, target) -> bool:
    """True when moving current -> target should release outstanding on_order.

    Closing a PO as received by hand releases whatever was never delivered,
    the same as cancelling it.
    """
    return parse_status(target) in CLOSING_STATES and parse_status(current) in CANCEL_RELEASE_STATES


def is_deletable(status) -> bool:
    return parse_status(status) in DELETABLE_STATES


def is_receivable(status) -> bool:
    return parse_status(status) in RECEIVABLE_STATES


def derive_status(items: Iterable, current) -> Optional[S]:
    """Status a PO should take after receipts were applied.

    Args:
        items: Line items exposing quantity_ordered and quantity_received
        current: Status before the receipts

    Returns:
        RECEIVED when every item is complete, PARTIAL when something is
        still outstanding and the PO was not already partial/received,
        otherwise None (no change)
    """
    current = parse_status(current)
    items = list(items)

    all_complete = all(
        (item.quantity_received or 0) >= item.quantity_ordered for item in items
    )
    if all_complete:
        return None if current == S.RECEIVED else S.RECEIVED

    if current not in (S.PARTIAL, S.RECEIVED):
        return S.PARTIAL
    return None


def format_po_number(prefix: str, sequence: int) -> str:
    """``PO-202501`` + 7 -> ``PO-2025010007``."""
    return f"{prefix}{sequence:0{SEQUENCE_WIDTH}d}"


def parse_po_sequence(po_number: str) -> Optional[int]:
    """Sequence part of a PO number, or None when it does not match the format."""
    match = _PO_NUMBER_RE.match(po_number or '')
    if not match:
        return None
    return int(match.group(3))
