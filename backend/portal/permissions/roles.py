# Overview: Role permission matrix for order transitions.
# Maps each role to the statuses it may drive an order INTO.

from ..models import OrderStatus, Role


# Operational desks run fulfilment but never approve
OPERATIONAL_TARGETS = frozenset({
    OrderStatus.IN_REVIEW,
    OrderStatus.ORDERED,
    OrderStatus.ORDER_CONFIRMED,
    OrderStatus.IN_TRANSIT,
    OrderStatus.DELIVERED,
    OrderStatus.NOTIFIED,
    OrderStatus.INVOICE_VERIFIED,
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
    OrderStatus.ON_HOLD,
})

ROLE_TARGET_STATUSES: dict[Role, frozenset[OrderStatus]] = {
    Role.REQUESTER: frozenset(),
    Role.IT_SUPPORT: OPERATIONAL_TARGETS,
    Role.EMPFANG: OPERATIONAL_TARGETS,
    Role.APPROVER: frozenset({OrderStatus.APPROVED, OrderStatus.REJECTED}),
    Role.ADMIN: frozenset(OrderStatus),
}

# Roles allowed to write comments hidden from requesters
INTERNAL_COMMENT_ROLES = frozenset({
    Role.IT_SUPPORT,
    Role.EMPFANG,
    Role.APPROVER,
    Role.ADMIN,
})

# Roles that see every order, not only their own
STAFF_ROLES = INTERNAL_COMMENT_ROLES

_missing = set(Role) - set(ROLE_TARGET_STATUSES)
if _missing:
    raise RuntimeError(f"Role permission matrix missing roles: {sorted(r.value for r in _missing)}")
