from __future__ import annotations

import enum

from ..extensions import db
from ..time_utils import to_utc_z


class Role(str, enum.Enum):
    """Access-control category of the acting user."""
    REQUESTER = "REQUESTER"
    IT_SUPPORT = "IT_SUPPORT"
    EMPFANG = "EMPFANG"  # reception desk
    APPROVER = "APPROVER"
    ADMIN = "ADMIN"


class User(db.Model):
    """
    Portal users (requesters and staff).

    WHY: Every transition, decision and comment is attributed to a user.
    Identity is resolved at the boundary; the workflow core only reads
    role and department from here.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_department", "role", "department"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)

    role = db.Column(
        db.Enum(Role, name="user_role", native_enum=False, length=32, create_constraint=True),
        nullable=False,
        default=Role.REQUESTER,
    )

    # Approver routing key
    department = db.Column(db.String(128), nullable=True)
    cost_center = db.Column(db.String(64), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
            "department": self.department,
            "cost_center": self.cost_center,
            "is_active": self.is_active,
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Opaque bearer tokens issued at login.

    Only the SHA-256 hash of the token is stored; the plaintext is returned
    to the client once.
    """
    __tablename__ = "session_tokens"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    token_hash = db.Column(db.String(64), nullable=False, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    is_revoked = db.Column(db.Boolean, nullable=False, default=False)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))
