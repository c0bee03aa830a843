"""
Password and session token tests.

Verifies:
- password strength rules and bcrypt verification
- login by username or email
- idle timeout, absolute expiry and deactivated users end a session
- logout revokes the token
"""

from datetime import timedelta

import pytest

from gemledger.errors import ValidationError
from gemledger.models import SessionToken
from gemledger.services import auth_service, session_service
from gemledger.services.auth_service import PasswordValidationError
from gemledger.time_utils import utcnow


class TestPasswords:

    @pytest.mark.parametrize("weak", ["short1", "allletters", "12345678"])
    def test_weak_passwords_rejected(self, weak):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(weak)

    def test_hash_and_verify(self):
        hashed = auth_service.hash_password("Password123", rounds=4)
        assert hashed != "Password123"
        assert auth_service.verify_password("Password123", hashed)
        assert not auth_service.verify_password("Password124", hashed)

    def test_garbage_hash_does_not_verify(self):
        assert auth_service.verify_password("Password123", "not-a-bcrypt-hash") is False

    def test_duplicate_user(self, db_session, user):
        with pytest.raises(ValidationError):
            auth_service.create_user(db_session, "owner", "Password123", rounds=4)

    def test_authenticate_by_email(self, db_session, user):
        assert auth_service.authenticate(db_session, "owner@gems.local", "Password123").id == user.id
        assert auth_service.authenticate(db_session, "owner", "wrong-pass1") is None


class TestSessions:

    def test_validate_refreshes_last_used(self, db_session, user):
        record, token = session_service.create_session(db_session, user.id)
        record.last_used_at = utcnow() - timedelta(minutes=30)
        db_session.commit()

        context = session_service.validate_session(db_session, token)

        assert context.user.id == user.id
        assert utcnow() - record.last_used_at < timedelta(minutes=1)

    def test_only_hash_is_stored(self, db_session, user):
        record, token = session_service.create_session(db_session, user.id)
        assert record.token_hash == session_service.hash_token(token)
        assert db_session.query(SessionToken).filter_by(token_hash=token).count() == 0

    def test_idle_timeout_revokes(self, db_session, user):
        record, token = session_service.create_session(db_session, user.id)
        record.last_used_at = utcnow() - session_service.SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
        db_session.commit()

        assert session_service.validate_session(db_session, token) is None
        assert record.is_revoked is True
        assert record.revoked_reason == "Idle timeout"

    def test_absolute_expiry(self, db_session, user):
        record, token = session_service.create_session(db_session, user.id)
        record.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()
        assert session_service.validate_session(db_session, token) is None

    def test_deactivated_user(self, db_session, user):
        _, token = session_service.create_session(db_session, user.id)
        user.is_active = False
        db_session.commit()
        assert session_service.validate_session(db_session, token) is None

    def test_revoke(self, db_session, user):
        _, token = session_service.create_session(db_session, user.id)
        assert session_service.revoke_session(db_session, token) is True
        assert session_service.revoke_session(db_session, token) is False
        assert session_service.validate_session(db_session, token) is None

    def test_unknown_user(self, db_session):
        with pytest.raises(ValueError):
            session_service.create_session(db_session, 424242)
