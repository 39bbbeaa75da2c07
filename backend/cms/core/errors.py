"""
Auth error taxonomy.

Every failure the auth core can produce is a subclass of ``AuthError`` with a
stable ``code`` tag and the HTTP status the API layer maps it to. Nothing here
depends on FastAPI; ``main.py`` registers a single handler for the base class.
"""


class AuthError(Exception):
    code = "auth_error"
    status_code = 400
    default_message = "Authentication error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(AuthError):
    code = "unauthenticated"
    status_code = 401
    default_message = "No token provided"


class InvalidToken(AuthError):
    code = "invalid_token"
    status_code = 401
    default_message = "Invalid token"


class TokenExpired(AuthError):
    code = "token_expired"
    status_code = 401
    default_message = "Token expired"


class Forbidden(AuthError):
    code = "forbidden"
    status_code = 403
    default_message = "Access denied"


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid email or password"


class AccountDeactivated(AuthError):
    code = "account_deactivated"
    status_code = 403
    default_message = "Account is deactivated"


class InvalidRole(AuthError):
    code = "invalid_role"
    status_code = 400
    default_message = "Invalid role. Must be one of: admin, operator, user, guest"


class ConflictAccountExists(AuthError):
    code = "account_exists"
    status_code = 409
    default_message = "User with this email or username already exists"


class InvalidPassword(AuthError):
    code = "invalid_password"
    status_code = 400
    default_message = "Password must be at least 6 characters long"


class NotFound(AuthError):
    code = "not_found"
    status_code = 400
    default_message = "Invalid or expired token"


class Expired(AuthError):
    code = "expired"
    status_code = 400
    default_message = "Token has expired"


class AlreadyUsed(AuthError):
    code = "already_used"
    status_code = 400
    default_message = "Token has already been used"


class AccountNotFound(AuthError):
    code = "account_not_found"
    status_code = 404
    default_message = "User not found"


class HashingFailure(AuthError):
    code = "hashing_failure"
    status_code = 500
    default_message = "Failed to process password"


class InvalidRequest(AuthError):
    code = "invalid_request"
    status_code = 400
    default_message = "Invalid request"


class PersistenceFailure(AuthError):
    code = "persistence_failure"
    status_code = 500
    default_message = "Failed to save changes"
