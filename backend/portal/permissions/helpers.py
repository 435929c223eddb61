# Overview: Utility functions for role lookups and validation.

from ..errors import ValidationError
from ..models import Role
from .roles import ROLE_TARGET_STATUSES


def get_role(value) -> Role:
    """Coerce a role identifier (enum or string) into a Role."""
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().upper())
    except ValueError:
        raise ValidationError(
            f"Invalid role '{value}'. Must be one of: {', '.join(r.value for r in Role)}"
        )


def get_target_statuses(role):
    """Get the set of statuses a role may move orders into."""
    return ROLE_TARGET_STATUSES[get_role(role)]


def validate_role(value) -> bool:
    """Check if a role identifier is valid."""
    try:
        get_role(value)
    except ValidationError:
        return False
    return True
