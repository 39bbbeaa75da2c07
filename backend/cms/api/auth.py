from fastapi import APIRouter, Depends, status

from cms.core.auth import get_auth_gateway, get_current_identity
from cms.core.tokens import Identity
from cms.schemas.auth import (
    AuthResponse, EmailRequest, LoginRequest, MessageResponse,
    PasswordResetConfirm, ProfileResponse, RegisterRequest, TokenRequest,
    UserResponse,
)
from cms.services.auth_gateway import AuthGateway

router = APIRouter(prefix="/api/auth", tags=["auth"])

# Identical for known and unknown addresses so responses can't be used to probe accounts
VERIFICATION_REQUESTED = "If the email exists, a verification link has been sent"
RESET_REQUESTED = "If the email exists, a password reset link has been sent"


# ─── Register ───
@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, gateway: AuthGateway = Depends(get_auth_gateway)):
    token, user = gateway.register(data.username, data.email, data.password, data.role)
    return AuthResponse(
        message="User registered successfully. Please check your email to verify your account.",
        token=token,
        user=UserResponse.model_validate(user),
    )


# ─── Login ───
@router.post("/login", response_model=AuthResponse)
def login(data: LoginRequest, gateway: AuthGateway = Depends(get_auth_gateway)):
    token, user = gateway.login(data.email, data.password)
    return AuthResponse(
        message="Login successful",
        token=token,
        user=UserResponse.model_validate(user),
    )


# ─── Current user ───
@router.get("/profile", response_model=ProfileResponse)
def get_profile(
    identity: Identity = Depends(get_current_identity),
    gateway: AuthGateway = Depends(get_auth_gateway),
):
    return ProfileResponse(user=UserResponse.model_validate(gateway.get_profile(identity)))


# ─── Email verification ───
@router.post("/request-verification", response_model=MessageResponse)
def request_verification(payload: EmailRequest, gateway: AuthGateway = Depends(get_auth_gateway)):
    gateway.request_verification(payload.email)
    return MessageResponse(message=VERIFICATION_REQUESTED)


@router.post("/verify-email", response_model=MessageResponse)
def verify_email(payload: TokenRequest, gateway: AuthGateway = Depends(get_auth_gateway)):
    gateway.verify_email(payload.token)
    return MessageResponse(message="Email verified successfully")


# ─── Password reset (public, no auth required) ───
@router.post("/request-password-reset", response_model=MessageResponse)
def request_password_reset(payload: EmailRequest, gateway: AuthGateway = Depends(get_auth_gateway)):
    gateway.request_password_reset(payload.email)
    return MessageResponse(message=RESET_REQUESTED)


@router.post("/reset-password", response_model=MessageResponse)
def reset_password(payload: PasswordResetConfirm, gateway: AuthGateway = Depends(get_auth_gateway)):
    gateway.reset_password(payload.token, payload.new_password)
    return MessageResponse(message="Password reset successfully")
