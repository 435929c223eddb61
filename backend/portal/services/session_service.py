# Overview: Service-layer operations for session; bearer tokens for portal users.

"""
Session Token Management Service

WHY: The workflow core needs an authenticated identity (user id, role,
department) for every call. Sign-in itself is email-only for now,
standing in for the organisation's directory login.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout (SESSION_TTL_HOURS, default 24)
- Revocable on logout
- Inactive users cannot log in and their live tokens stop validating
"""

import hashlib
import secrets
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow


DEFAULT_SESSION_TTL = timedelta(hours=24)


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """Hash token for database storage using SHA-256."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def find_user_by_email(email: str | None) -> User | None:
    email = (email or "").strip().lower()
    if not email:
        return None
    return db.session.query(User).filter(db.func.lower(User.email) == email).first()


def create_session(user: User, ttl: timedelta = DEFAULT_SESSION_TTL) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.

    Raises ValueError if the user is inactive.
    """
    if not user.is_active:
        raise ValueError("User account is disabled")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        expires_at=now + ttl,
        is_revoked=False,
    )
    user.last_login_at = now

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str | None) -> User | None:
    """
    Resolve a plaintext token to its active user.

    Returns None for unknown, revoked or expired tokens and for
    deactivated users.
    """
    if not token:
        return None

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token)
    ).first()

    if session is None or session.is_revoked:
        return None

    if session.expires_at <= utcnow():
        return None

    user = session.user
    if user is None or not user.is_active:
        return None

    return user


def revoke_session(token: str) -> bool:
    """Revoke a session. Returns False if the token is unknown."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token)
    ).first()

    if session is None:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()
    return True
