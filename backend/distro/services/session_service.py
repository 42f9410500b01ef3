# Overview: Service-layer operations for bearer session tokens.

"""
Session Token Management

- Cryptographically secure random tokens (32 bytes)
- Only the SHA-256 hash is stored
- Absolute expiry from SESSION_TTL_HOURS
- Revocable on logout
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Returns (session_record, plaintext_token).
    The plaintext token is returned once and never stored.
    """
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise ValueError("User not found or not active")

    plaintext_token = generate_token()
    now = utcnow()
    ttl = timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + ttl,
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def validate_session(token: str) -> User | None:
    """
    Resolve a bearer token to its active user, or None when the token is
    unknown, revoked, expired, or belongs to a user who is no longer active.
    """
    now = utcnow()
    session = (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.revoked_at.is_(None))
        .first()
    )
    if session is None or session.expires_at < now:
        return None

    user = session.user
    if user is None or not user.is_active:
        session.revoked_at = now
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return user


def revoke_session(token: str) -> bool:
    session = (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.revoked_at.is_(None))
        .first()
    )
    if session is None:
        return False
    session.revoked_at = utcnow()
    db.session.commit()
    return True
