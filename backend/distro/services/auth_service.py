# Overview: Service-layer operations for auth; password hashing and user bootstrap.

"""
Authentication Service

Passwords are hashed with bcrypt (cost factor 12). Session tokens are handled
separately in session_service.py.
"""

import bcrypt
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ValidationError
from ..models import User
from ..permissions import USER_STATUSES, VALID_ROLES
from ..time_utils import utcnow
from ..validation import require_choice


MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Not a bcrypt hash
        return False


def create_user(
    *,
    name: str,
    email: str,
    password: str,
    role: str,
    status: str = "active",
    phone: str | None = None,
    area: str | None = None,
) -> User:
    require_choice(role, "role", VALID_ROLES)
    require_choice(status, "status", USER_STATUSES)

    user = User(
        name=name,
        email=email.strip().lower(),
        password_hash=hash_password(password),
        role=role,
        status=status,
        phone=phone,
        area=area,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValidationError(f"Email {email!r} is already registered")
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Return the active user for these credentials, or None.

    Updates last_login_at on success.
    """
    user = db.session.query(User).filter_by(email=email.strip().lower()).first()
    if user is None or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
