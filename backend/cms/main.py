import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Configure root logger to show INFO for our application modules
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
# Suppress noisy third-party loggers
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

from cms.core.config import settings, get_auth_config
from cms.core.database import engine, Base
from cms.core.errors import AuthError
from cms.api import admin, auth, health

# Import all models so Base.metadata knows about them
from cms.models import user, password_reset  # noqa: F401

logger = logging.getLogger(__name__)

# Fails fast when no signing secret is configured outside development
get_auth_config()

# Create all tables
Base.metadata.create_all(bind=engine)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
)

# CORS: production uses FRONTEND_URL env var; dev adds localhost origins
_cors_origins = [settings.FRONTEND_URL]
if settings.DEBUG:
    _cors_origins += ["http://localhost:5173", "http://127.0.0.1:5173"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "message": exc.message},
        headers=headers,
    )


# Routes
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(admin.router)


def _seed_admin_user():
    """Create an initial admin from ADMIN_* env vars if the database has no users."""
    from cms.core.database import SessionLocal
    from cms.core.roles import Role
    from cms.core.security import hash_password
    from cms.models.user import User

    email = os.environ.get("ADMIN_EMAIL", "").strip().lower()
    password = os.environ.get("ADMIN_PASSWORD", "")
    if not email or not password:
        return

    db = SessionLocal()
    try:
        if db.query(User).count() > 0:
            return  # users already exist, nothing to do
        admin_user = User(
            username=os.environ.get("ADMIN_USERNAME", "admin"),
            email=email,
            password_hash=hash_password(password),
            role=Role.ADMIN,
            is_active=True,
            is_verified=True,
        )
        db.add(admin_user)
        db.commit()
        logger.info("Initial admin user '%s' created", admin_user.username)
    except Exception as e:
        db.rollback()
        logger.error("Failed to seed admin user: %s", e)
    finally:
        db.close()


_seed_admin_user()
