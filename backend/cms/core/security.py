import bcrypt

from cms.core.errors import HashingFailure, InvalidPassword

BCRYPT_ROUNDS = 10

# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72

MIN_PASSWORD_LENGTH = 6


def check_password_policy(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidPassword()


def _encode(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    try:
        digest = bcrypt.hashpw(_encode(password), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    except (ValueError, TypeError) as e:
        raise HashingFailure() from e
    return digest.decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False
