# Overview: Service-layer operations for users and password authentication.

"""
Authentication Service

WHY: Every payment, reset and approval is attributed to a user.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, at least one letter and one digit
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from sqlalchemy import or_

from ..errors import ValidationError
from ..models import User
from gemledger.time_utils import utcnow


BCRYPT_ROUNDS = 12


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")
    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")
    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    validate_password_strength(password)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """bcrypt.checkpw is timing-safe; malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    session,
    username: str,
    password: str,
    email: str | None = None,
    display_name: str | None = None,
    rounds: int = BCRYPT_ROUNDS,
) -> User:
    """
    Create a back-office user.

    Raises:
        ValidationError: missing username, taken username, or weak password
    """
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")

    existing = session.query(User).filter(
        or_(User.username == username, User.email == (email or username))
    ).first()
    if existing:
        raise ValidationError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        display_name=display_name,
        password_hash=hash_password(password, rounds=rounds),
        is_active=True,
    )
    session.add(user)
    session.commit()
    return user


def authenticate(session, username: str, password: str) -> User | None:
    """
    Return the active user matching username (or email) and password.

    Updates last_login_at on success.
    """
    user = session.query(User).filter(
        or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    ).first()
    if not user or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    session.commit()
    return user
