# Overview: Service-layer rules for the order lifecycle; the transition table.

"""
Order Lifecycle Transition Table

================================================================================
PURPOSE: Single source of truth for which status changes exist at all
================================================================================

STATE MACHINE:
    NEW -> IN_REVIEW -> (PENDING_APPROVAL) -> APPROVED -> ORDERED
        -> ORDER_CONFIRMED -> IN_TRANSIT -> DELIVERED -> (NOTIFIED)
        -> (INVOICE_VERIFIED) -> COMPLETED

    Side exits: REJECTED (before approval), CANCELLED (after approval),
    ON_HOLD (parked during review, resumes into IN_REVIEW).

RULES:
1. The table is role-agnostic. Who may drive an edge is decided by
   permission_service; both checks must pass.
2. COMPLETED, REJECTED and CANCELLED are terminal: no outgoing edges.
3. Same-state moves are not edges.

The creation-time routing NEW -> PENDING_APPROVAL is performed by the
order engine itself and is deliberately not an edge here: staff cannot
push an order into PENDING_APPROVAL straight from NEW.
================================================================================
"""

from __future__ import annotations

from ..errors import ValidationError
from ..models import OrderStatus


ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.NEW: frozenset({
        OrderStatus.IN_REVIEW,
        OrderStatus.REJECTED,
    }),
    OrderStatus.IN_REVIEW: frozenset({
        OrderStatus.PENDING_APPROVAL,
        OrderStatus.APPROVED,
        OrderStatus.ON_HOLD,
        OrderStatus.REJECTED,
    }),
    OrderStatus.PENDING_APPROVAL: frozenset({
        OrderStatus.APPROVED,
        OrderStatus.REJECTED,
        OrderStatus.ON_HOLD,
    }),
    OrderStatus.APPROVED: frozenset({
        OrderStatus.ORDERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.ORDERED: frozenset({
        OrderStatus.ORDER_CONFIRMED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.ORDER_CONFIRMED: frozenset({
        OrderStatus.IN_TRANSIT,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.IN_TRANSIT: frozenset({
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.DELIVERED: frozenset({
        OrderStatus.NOTIFIED,
        OrderStatus.COMPLETED,
    }),
    OrderStatus.NOTIFIED: frozenset({
        OrderStatus.INVOICE_VERIFIED,
        OrderStatus.COMPLETED,
    }),
    OrderStatus.INVOICE_VERIFIED: frozenset({
        OrderStatus.COMPLETED,
    }),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.ON_HOLD: frozenset({
        OrderStatus.IN_REVIEW,
        OrderStatus.CANCELLED,
    }),
}

_missing = set(OrderStatus) - set(ALLOWED_TRANSITIONS)
if _missing:
    raise RuntimeError(f"Transition table missing statuses: {sorted(s.value for s in _missing)}")

TERMINAL_STATUSES = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)

# German UI labels
STATUS_LABELS: dict[OrderStatus, str] = {
    OrderStatus.NEW: "Neu",
    OrderStatus.IN_REVIEW: "In Prüfung",
    OrderStatus.PENDING_APPROVAL: "Wartet auf Genehmigung",
    OrderStatus.APPROVED: "Genehmigt",
    OrderStatus.ORDERED: "Bestellt",
    OrderStatus.ORDER_CONFIRMED: "Bestellung bestätigt",
    OrderStatus.IN_TRANSIT: "Unterwegs",
    OrderStatus.DELIVERED: "Zugestellt",
    OrderStatus.NOTIFIED: "Benachrichtigt",
    OrderStatus.INVOICE_VERIFIED: "Rechnung geprüft",
    OrderStatus.COMPLETED: "Abgeschlossen",
    OrderStatus.REJECTED: "Abgelehnt",
    OrderStatus.CANCELLED: "Storniert",
    OrderStatus.ON_HOLD: "Pausiert",
}


def get_status(value) -> OrderStatus:
    """
    Coerce a status identifier (enum or string) into an OrderStatus.

    Raises:
        ValidationError: If the value is not a known status
    """
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value).strip().upper())
    except ValueError:
        raise ValidationError(
            f"Invalid status '{value}'. Must be one of: {', '.join(s.value for s in OrderStatus)}"
        )


def is_legal_transition(from_status, to_status) -> bool:
    """
    Return True if to_status is directly reachable from from_status.

    Unknown status identifiers are never legal; use get_status() where an
    unknown value should be reported as a ValidationError.
    """
    try:
        source = get_status(from_status)
        target = get_status(to_status)
    except ValidationError:
        return False
    return target in ALLOWED_TRANSITIONS[source]


def allowed_targets(from_status) -> frozenset[OrderStatus]:
    return ALLOWED_TRANSITIONS[get_status(from_status)]


def is_terminal(status) -> bool:
    return get_status(status) in TERMINAL_STATUSES


def describe_statuses() -> list[dict]:
    """Status metadata for clients: label, terminal flag and outgoing edges."""
    return [
        {
            "status": status.value,
            "label": STATUS_LABELS[status],
            "terminal": status in TERMINAL_STATUSES,
            "transitions": sorted(target.value for target in ALLOWED_TRANSITIONS[status]),
        }
        for status in OrderStatus
    ]
