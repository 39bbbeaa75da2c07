"""
Auth gateway: the request-level entry points of the auth core.

Every operation either returns a value or raises a subclass of
``cms.core.errors.AuthError``; the API layer maps those to responses.
Identity is returned from ``authenticate`` and passed on explicitly.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cms.core.config import AuthConfig
from cms.core.errors import (
    AccountDeactivated,
    AccountNotFound,
    ConflictAccountExists,
    Forbidden,
    InvalidCredentials,
    Unauthenticated,
)
from cms.core.roles import Role, authorize, authorize_min_role, parse_role
from cms.core.security import check_password_policy, hash_password, verify_password
from cms.core.tokens import Identity, TokenService
from cms.models.user import User
from cms.services.email import Notifier
from cms.services.token_store import EphemeralTokenStore

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class AuthGateway:
    def __init__(
        self,
        db: Session,
        config: AuthConfig,
        notifier: Notifier,
        tokens: TokenService | None = None,
    ):
        self.db = db
        self.config = config
        self.notifier = notifier
        self.tokens = tokens or TokenService(config)
        self.store = EphemeralTokenStore(db, config)

    # ─── Per-request enforcement ───

    def authenticate(self, authorization: str | None) -> Identity:
        if not authorization or not authorization.startswith(BEARER_PREFIX):
            raise Unauthenticated()
        token = authorization[len(BEARER_PREFIX):].strip()
        if not token:
            raise Unauthenticated()
        return self.tokens.verify(token)

    def require_roles(self, identity: Identity, allowed_roles: Iterable) -> None:
        allowed = [r.value if isinstance(r, Role) else str(r) for r in allowed_roles]
        if not authorize(identity.role, allowed):
            raise Forbidden(
                f"This action requires one of the following roles: {', '.join(allowed)}"
            )

    def require_min_role(self, identity: Identity, min_role) -> None:
        if not authorize_min_role(identity.role, min_role):
            name = min_role.value if isinstance(min_role, Role) else str(min_role)
            raise Forbidden(f"This action requires at least {name} role")

    # ─── Credentials ───

    def login(self, email: str, password: str) -> tuple[str, User]:
        user = self.db.query(User).filter(User.email == normalize_email(email)).first()
        if user is None:
            raise InvalidCredentials()

        if not user.is_active:
            logger.warning("Login rejected for deactivated user id=%d", user.id)
            raise AccountDeactivated()

        if not verify_password(password, user.password_hash):
            raise InvalidCredentials()

        user.last_login = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(user)

        logger.info("User %s logged in", user.username)
        return self.tokens.issue(Identity.from_account(user)), user

    def register(
        self,
        username: str,
        email: str,
        password: str,
        role=Role.GUEST,
    ) -> tuple[str, User]:
        role = parse_role(role)
        check_password_policy(password)
        username = (username or "").strip()
        email = normalize_email(email)

        existing = (
            self.db.query(User.id)
            .filter(or_(User.email == email, User.username == username))
            .first()
        )
        if existing is not None:
            raise ConflictAccountExists()

        user = User(
            username=username,
            email=email,
            password_hash=hash_password(password),
            role=role,
            is_active=True,
            is_verified=False,
        )
        verification_token = self.store.assign_verification_token(user)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent registration for the same email/username
            self.db.rollback()
            raise ConflictAccountExists() from e
        self.db.refresh(user)

        logger.info("Registered user %s (id=%d, role=%s)", user.username, user.id, user.role)
        self._notify(self.notifier.send_verification_email, user.email, verification_token, user.username)

        return self.tokens.issue(Identity.from_account(user)), user

    def get_profile(self, identity: Identity) -> User:
        user = self.db.get(User, identity.id)
        if user is None:
            raise AccountNotFound()
        return user

    # ─── Email verification and password reset ───

    def request_verification(self, email: str) -> None:
        """Send a fresh verification link. Silent for unknown or verified accounts."""
        user = self.db.query(User).filter(User.email == normalize_email(email)).first()
        if user is None or user.is_verified:
            return

        token = self.store.issue_verification_token(user.id)
        self._notify(self.notifier.send_verification_email, user.email, token, user.username)

    def verify_email(self, token: str) -> User:
        user = self.db.get(User, self.store.redeem_verification_token(token))
        self._notify(self.notifier.send_welcome_email, user.email, user.username)
        return user

    def request_password_reset(self, email: str) -> None:
        """Send a reset link. Silent for unknown accounts."""
        user = self.db.query(User).filter(User.email == normalize_email(email)).first()
        if user is None:
            return

        token = self.store.issue_reset_token(user.id)
        self._notify(self.notifier.send_password_reset_email, user.email, token, user.username)
        logger.info("Password reset requested for user %s", user.username)

    def reset_password(self, token: str, new_password: str) -> User:
        return self.db.get(User, self.store.redeem_reset_token(token, new_password))

    def _notify(self, send, *args) -> None:
        # Delivery problems must never fail the operation that triggered them
        try:
            send(*args)
        except Exception as e:
            logger.warning("Could not send %s: %s", getattr(send, "__name__", "email"), e)
