from fastapi import Depends, Header
from sqlalchemy.orm import Session

from cms.core.config import AuthConfig, get_auth_config
from cms.core.database import get_db
from cms.core.roles import Role
from cms.core.tokens import Identity
from cms.services.auth_gateway import AuthGateway
from cms.services.email import Notifier, get_notifier


def get_auth_gateway(
    db: Session = Depends(get_db),
    config: AuthConfig = Depends(get_auth_config),
    notifier: Notifier = Depends(get_notifier),
) -> AuthGateway:
    return AuthGateway(db, config, notifier)


def get_current_identity(
    authorization: str | None = Header(None, alias="Authorization"),
    gateway: AuthGateway = Depends(get_auth_gateway),
) -> Identity:
    return gateway.authenticate(authorization)


def require_roles(*allowed_roles):
    """Dependency that only admits callers whose role is in ``allowed_roles``."""

    def dependency(
        identity: Identity = Depends(get_current_identity),
        gateway: AuthGateway = Depends(get_auth_gateway),
    ) -> Identity:
        gateway.require_roles(identity, allowed_roles)
        return identity

    return dependency


def require_min_role(min_role):
    """Dependency that admits callers at or above ``min_role`` in the hierarchy."""

    def dependency(
        identity: Identity = Depends(get_current_identity),
        gateway: AuthGateway = Depends(get_auth_gateway),
    ) -> Identity:
        gateway.require_min_role(identity, min_role)
        return identity

    return dependency


require_admin = require_roles(Role.ADMIN)
