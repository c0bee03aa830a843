# Overview: Service-layer operations for session tokens; issue, validate and revoke.

"""
Session Token Management Service

WHY: Back-office routes are bearer-token protected. Tokens are
cryptographically random, stored only as a hash, and time-limited.

SECURITY FEATURES:
- 32 random bytes per token, sent to the client once
- SHA-256 hash at rest (tokens are high-entropy, bcrypt is unnecessary)
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from ..models import SessionToken, User
from gemledger.time_utils import utcnow


SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def generate_token() -> str:
    """64 hex characters (32 bytes of entropy); the plaintext is never stored."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    session,
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Create a session for an active user.

    Returns (session_record, plaintext_token). Raises ValueError for an
    unknown or deactivated user.
    """
    user = session.get(User, user_id)
    if not user or not user.is_active:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()
    record = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False,
    )
    session.add(record)
    session.commit()
    return record, plaintext_token


def _revoke(record: SessionToken, reason: str) -> None:
    record.is_revoked = True
    record.revoked_at = utcnow()
    record.revoked_reason = reason


def validate_session(session, token: str) -> SessionContext | None:
    """
    Return the SessionContext for a live token, or None.

    Idle sessions and sessions of deactivated users are revoked on sight.
    A successful validation refreshes last_used_at.
    """
    record = session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not record:
        return None

    now = utcnow()
    if record.expires_at < now:
        return None

    if now - record.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(record, "Idle timeout")
        session.commit()
        return None

    user = record.user
    if not user or not user.is_active:
        _revoke(record, "User account deactivated")
        session.commit()
        return None

    record.last_used_at = now
    session.commit()
    return SessionContext(user=user, session=record)


def revoke_session(session, token: str, reason: str = "User logout") -> bool:
    """Returns True if a live session was revoked."""
    record = session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()
    if not record:
        return False

    _revoke(record, reason)
    session.commit()
    return True
