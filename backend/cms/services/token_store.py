"""
Email-verification and password-reset token lifecycle.

Raw tokens are 32 random bytes, hex encoded, and only ever leave this module to
be handed to the notifier. The database stores their SHA-256 digest.

Verification tokens live on the account row, one at a time: issuing a new one
overwrites the previous digest, which invalidates the old token. Reset tokens
are append-only rows that are marked used on redemption and never deleted.

Reset redemption checks, in order: existence, used flag, expiry.
"""

import hashlib
import logging
import secrets
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cms.core.config import AuthConfig
from cms.core.errors import AlreadyUsed, Expired, NotFound, PersistenceFailure
from cms.core.security import check_password_policy, hash_password
from cms.models.password_reset import PasswordResetToken
from cms.models.user import User

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def digest_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class EphemeralTokenStore:
    def __init__(self, db: Session, config: AuthConfig):
        self.db = db
        self.config = config

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    # ─── Verification tokens ───

    def assign_verification_token(self, user: User) -> str:
        """
        Overwrite the account's outstanding verification token with a fresh one.

        Does not commit; the caller decides the transaction boundary.
        """
        raw_token = generate_token()
        user.verification_token_hash = digest_token(raw_token)
        user.verification_token_expires = self._now() + self.config.verification_token_ttl
        return raw_token

    def issue_verification_token(self, account_id: int) -> str:
        user = self.db.get(User, account_id)
        if user is None:
            raise NotFound("User not found")
        raw_token = self.assign_verification_token(user)
        self.db.commit()
        logger.info("Verification token issued for user id=%d", account_id)
        return raw_token

    def redeem_verification_token(self, token: str) -> int:
        if not token:
            raise NotFound("Invalid or expired verification token")

        user = (
            self.db.query(User)
            .filter(User.verification_token_hash == digest_token(token))
            .first()
        )
        if user is None:
            raise NotFound("Invalid or expired verification token")

        expires = user.verification_token_expires
        if expires is None or _as_utc(expires) < self._now():
            raise Expired("Verification token has expired")

        user.is_verified = True
        user.verification_token_hash = None
        user.verification_token_expires = None
        self.db.commit()
        logger.info("Email verified for user id=%d", user.id)
        return user.id

    # ─── Password reset tokens ───

    def issue_reset_token(self, account_id: int) -> str:
        if self.db.get(User, account_id) is None:
            raise NotFound("User not found")

        raw_token = generate_token()
        self.db.add(PasswordResetToken(
            user_id=account_id,
            token_hash=digest_token(raw_token),
            expires_at=self._now() + self.config.reset_token_ttl,
        ))
        self.db.commit()
        logger.info("Password reset token issued for user id=%d", account_id)
        return raw_token

    def redeem_reset_token(self, token: str, new_password: str) -> int:
        if not token:
            raise NotFound("Invalid or expired reset token")

        record = (
            self.db.query(PasswordResetToken)
            .filter(PasswordResetToken.token_hash == digest_token(token))
            .first()
        )
        if record is None:
            raise NotFound("Invalid or expired reset token")
        if record.used:
            raise AlreadyUsed("Reset token has already been used")
        now = self._now()
        if _as_utc(record.expires_at) < now:
            raise Expired("Reset token has expired")

        check_password_policy(new_password)

        user_id = record.user_id
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("Invalid or expired reset token")

        password_hash = hash_password(new_password)

        # Password change and token consumption commit together or not at all
        try:
            user.password_hash = password_hash
            self.db.flush()
            record.mark_used(now)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error("Password reset rolled back for user id=%d: %s", user_id, e)
            raise PersistenceFailure("Failed to reset password") from e
        except Exception:
            self.db.rollback()
            logger.error("Password reset rolled back for user id=%d", user_id)
            raise

        logger.info("Password reset completed for user id=%d", user_id)
        return user_id
