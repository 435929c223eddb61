# Overview: Approver lookups consumed by the order workflow.

"""
Approver Directory

Approvals are routed by department: every active APPROVER in the
requester's department gets a pending approval. When the department has
none and fallback is enabled, active ADMIN users take the approval.
The requester is excluded before that decision, so a department's only
approver ordering for themselves falls through to the ADMIN users.
An empty result means nobody can approve; the caller must not proceed
as if approval were granted.
"""

from __future__ import annotations

from ..models import Role, User


def _active(session, role: Role, exclude_user_id: int | None):
    query = session.query(User).filter(User.role == role, User.is_active.is_(True))
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query


def find_department_approvers(
    session, department: str | None, *, exclude_user_id: int | None = None
) -> list[User]:
    if not department:
        return []
    return (
        _active(session, Role.APPROVER, exclude_user_id)
        .filter(User.department == department)
        .order_by(User.id)
        .all()
    )


def find_fallback_approvers(session, *, exclude_user_id: int | None = None) -> list[User]:
    return _active(session, Role.ADMIN, exclude_user_id).order_by(User.id).all()


def find_approvers(
    session,
    department: str | None,
    *,
    fallback_to_admin: bool = True,
    exclude_user_id: int | None = None,
) -> list[User]:
    approvers = find_department_approvers(session, department, exclude_user_id=exclude_user_id)
    if not approvers and fallback_to_admin:
        approvers = find_fallback_approvers(session, exclude_user_id=exclude_user_id)
    return approvers
