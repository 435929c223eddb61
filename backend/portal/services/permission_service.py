# Overview: Service-layer operations for permission; role gating and security event logging.

"""
Transition Authorization and Security Event Logging

WHY: A transition is accepted only when the edge exists (lifecycle_service)
AND the acting role may drive orders into the target (role matrix).
The two failures are reported differently: a missing edge is a workflow
contract violation (400), a missing permission is access denied (403).

DESIGN PRINCIPLES:
- Fail closed: unknown roles and statuses are rejected, never defaulted
- Log denials only: successful transitions are already in status_history
- No downgrades: a denied target is never swapped for a permitted one
"""

from __future__ import annotations

from ..errors import IllegalTransitionError, UnauthorizedTransitionError
from ..extensions import db
from ..models import SecurityEvent
from ..permissions import ROLE_TARGET_STATUSES, INTERNAL_COMMENT_ROLES, get_role
from ..time_utils import utcnow
from .lifecycle_service import get_status, is_legal_transition, allowed_targets


def is_authorized(role, target_status) -> bool:
    """Return True if role may move an order into target_status."""
    return get_status(target_status) in ROLE_TARGET_STATUSES[get_role(role)]


def can_user_transition(role, from_status, to_status) -> bool:
    """Both the edge and the role permission must hold."""
    return is_legal_transition(from_status, to_status) and is_authorized(role, to_status)


def available_transitions(role, from_status) -> list:
    """Targets the role may choose from the given status, sorted by name."""
    permitted = ROLE_TARGET_STATUSES[get_role(role)]
    return sorted(
        (target for target in allowed_targets(from_status) if target in permitted),
        key=lambda s: s.value,
    )


def require_transition(role, from_status, to_status) -> None:
    """
    Raise unless role may move an order from from_status to to_status.

    Legality is checked first, so terminal statuses always answer with
    IllegalTransitionError whatever the caller's role.

    Raises:
        IllegalTransitionError: The edge does not exist
        UnauthorizedTransitionError: The edge exists but role lacks permission
    """
    from_status = get_status(from_status)
    to_status = get_status(to_status)
    if not is_legal_transition(from_status, to_status):
        raise IllegalTransitionError(from_status, to_status)
    if not is_authorized(role, to_status):
        raise UnauthorizedTransitionError(get_role(role), to_status)


def can_write_internal_comment(role) -> bool:
    return get_role(role) in INTERNAL_COMMENT_ROLES


def log_security_event(
    user_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    *,
    session=None,
) -> SecurityEvent:
    """
    Log security event to audit trail.

    WHY: Immutable audit log for denied transitions and logins.
    Commits immediately so the record survives the caller's error path.

    event_type examples:
    - TRANSITION_DENIED
    - COMMENT_DENIED
    - LOGIN
    - LOGIN_FAILED
    - LOGOUT
    """
    session = session or db.session
    event = SecurityEvent(
        user_id=user_id,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        occurred_at=utcnow(),
    )

    session.add(event)
    session.commit()

    return event
