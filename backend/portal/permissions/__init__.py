# Overview: Permission system package.
# Re-exports all public APIs for shorter imports.

from .roles import (
    ROLE_TARGET_STATUSES,
    OPERATIONAL_TARGETS,
    INTERNAL_COMMENT_ROLES,
    STAFF_ROLES,
)
from .helpers import (
    get_role,
    get_target_statuses,
    validate_role,
)

__all__ = [
    "ROLE_TARGET_STATUSES",
    "OPERATIONAL_TARGETS",
    "INTERNAL_COMMENT_ROLES",
    "STAFF_ROLES",
    "get_role",
    "get_target_statuses",
    "validate_role",
]
