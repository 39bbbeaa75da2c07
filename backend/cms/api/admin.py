import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cms.core.auth import require_admin, require_min_role
from cms.core.database import get_db
from cms.core.errors import AccountNotFound, ConflictAccountExists, InvalidRequest
from cms.core.roles import Role, VALID_ROLES, parse_role
from cms.core.security import check_password_policy, hash_password
from cms.core.tokens import Identity
from cms.models.password_reset import PasswordResetToken
from cms.models.user import User
from cms.schemas.admin import DashboardStats, UserCreate, UserListResponse, UserUpdate
from cms.schemas.auth import MessageResponse, UserResponse
from cms.services.auth_gateway import normalize_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise AccountNotFound()
    return user


def _ensure_unique(db: Session, username: str | None, email: str | None, exclude_id: int | None = None):
    clauses = []
    if username is not None:
        clauses.append(User.username == username)
    if email is not None:
        clauses.append(User.email == email)
    if not clauses:
        return

    query = db.query(User.id).filter(or_(*clauses))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first() is not None:
        raise ConflictAccountExists()


def _commit_account(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictAccountExists() from e


# ─── Dashboard (operator and above) ───
@router.get("/stats", response_model=DashboardStats)
def get_dashboard_stats(
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_min_role(Role.OPERATOR)),
):
    by_role = dict(db.query(User.role, func.count(User.id)).group_by(User.role).all())
    return DashboardStats(
        total_users=db.query(User).count(),
        active_users=db.query(User).filter(User.is_active.is_(True)).count(),
        verified_users=db.query(User).filter(User.is_verified.is_(True)).count(),
        users_by_role={role: by_role.get(role, 0) for role in VALID_ROLES},
    )


# ─── User management (admin only) ───
@router.get("/users", response_model=UserListResponse)
def list_users(
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return UserListResponse(
        users=[UserResponse.model_validate(u) for u in users],
        total=len(users),
    )


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    username = payload.username.strip()
    email = normalize_email(payload.email)
    if not username or not email or not payload.password:
        raise InvalidRequest("Username, email, and password are required")

    role = parse_role(payload.role)
    check_password_policy(payload.password)
    _ensure_unique(db, username, email)

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(payload.password),
        role=role.value,
        is_active=payload.is_active,
        is_verified=payload.is_verified,
    )
    db.add(user)
    _commit_account(db)
    db.refresh(user)

    logger.info("Admin %s created user %s (id=%d, role=%s)",
                admin.username, user.username, user.id, user.role)
    return user


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    return _get_user_or_404(db, user_id)


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    user = _get_user_or_404(db, user_id)
    changes = payload.model_dump(exclude_none=True)
    if not changes.get("password"):
        changes.pop("password", None)
    if not changes:
        raise InvalidRequest("No fields to update")

    if "username" in changes:
        changes["username"] = changes["username"].strip()
        if not changes["username"]:
            raise InvalidRequest("Username cannot be empty")
    if "email" in changes:
        changes["email"] = normalize_email(changes["email"])
        if not changes["email"]:
            raise InvalidRequest("Email cannot be empty")
    if "role" in changes:
        changes["role"] = parse_role(changes["role"]).value
    if "password" in changes:
        check_password_policy(changes["password"])
    _ensure_unique(db, changes.get("username"), changes.get("email"), exclude_id=user.id)

    if "password" in changes:
        user.password_hash = hash_password(changes.pop("password"))
    for field, value in changes.items():
        setattr(user, field, value)
    _commit_account(db)
    db.refresh(user)

    logger.info("Admin %s updated user %s (fields=%s)",
                admin.username, user.username, ", ".join(sorted(payload.model_dump(exclude_none=True))))
    return user


@router.delete("/users/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    if user_id == admin.id:
        raise InvalidRequest("Cannot delete your own account")

    user = _get_user_or_404(db, user_id)
    username = user.username

    db.query(PasswordResetToken).filter(
        PasswordResetToken.user_id == user_id
    ).delete(synchronize_session=False)
    db.delete(user)
    db.commit()

    logger.info("Admin %s deleted user %s (id=%d)", admin.username, username, user_id)
    return MessageResponse(message="User deleted successfully")
