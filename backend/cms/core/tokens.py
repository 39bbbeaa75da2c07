from dataclasses import dataclass
from datetime import datetime, timezone

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from cms.core.config import AuthConfig
from cms.core.errors import InvalidToken, TokenExpired

REQUIRED_CLAIMS = ("sub", "username", "email", "role", "exp")


@dataclass(frozen=True)
class Identity:
    """Authenticated caller, as carried in a session token."""

    id: int
    username: str
    email: str
    role: str

    @classmethod
    def from_account(cls, account) -> "Identity":
        return cls(
            id=account.id,
            username=account.username,
            email=account.email,
            role=account.role,
        )


class TokenService:
    """
    Issues and verifies signed session tokens.

    Tokens are self-contained and never revoked server-side; expiry is the
    only way a token stops being valid.
    """

    def __init__(self, config: AuthConfig):
        self.config = config

    def issue(self, identity: Identity) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": str(identity.id),
            "username": identity.username,
            "email": identity.email,
            "role": identity.role,
            "iat": int(now.timestamp()),
            "exp": int((now + self.config.access_token_ttl).timestamp()),
        }
        return jwt.encode(payload, self.config.secret_key, algorithm=self.config.algorithm)

    def verify(self, token: str) -> Identity:
        try:
            payload = jwt.decode(
                token,
                self.config.secret_key,
                algorithms=[self.config.algorithm],
            )
        except ExpiredSignatureError as e:
            raise TokenExpired() from e
        except JWTError as e:
            raise InvalidToken() from e

        if any(payload.get(claim) in (None, "") for claim in REQUIRED_CLAIMS):
            raise InvalidToken()
        try:
            account_id = int(payload["sub"])
        except (TypeError, ValueError) as e:
            raise InvalidToken() from e

        return Identity(
            id=account_id,
            username=str(payload["username"]),
            email=str(payload["email"]),
            role=str(payload["role"]),
        )
