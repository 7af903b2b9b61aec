# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/app/routes/auth.py
"""
Authentication API routes

Stateless JWT auth:
- POST /login returns an access token and a refresh token
- POST /refresh trades a refresh token for a new access token
- Logout is client-side (tokens are not stored server-side)
"""

from flask import Blueprint, request, g, current_app

from ..services import auth_service, token_service
from ..services.errors import AuthenticationError
from ..validation import EMAIL_RE, ValidationError
from ..decorators import require_auth
from ..responses import ok, fail, error_response


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate by email and password.

    Returns {user, accessToken, refreshToken}.
    """
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip()
    password = data.get("password") or ""

    if not EMAIL_RE.match(email):
        return fail("Valid email is required", 400)
    if len(password) < auth_service.MIN_PASSWORD_LENGTH:
        return fail(f"Password must be at least {auth_service.MIN_PASSWORD_LENGTH} characters", 400)

    try:
        user = auth_service.authenticate(email, password)
    except AuthenticationError as e:
        current_app.logger.info("Failed login for %s: %s", email, e)
        return error_response(e)

    tokens = token_service.generate_tokens(user)
    return ok(
        {"user": user.to_dict(), **tokens},
        message="Login successful",
    )


@auth_bp.post("/refresh")
def refresh_route():
    data = request.get_json(silent=True) or {}
    refresh_token = data.get("refreshToken")
    if not refresh_token:
        return fail("Refresh token is required", 401)

    access_token = token_service.refresh_access_token(refresh_token)
    if not access_token:
        return fail("Invalid refresh token or user inactive", 401)

    return ok({"accessToken": access_token}, message="Token refreshed successfully")


@auth_bp.post("/change-password")
@require_auth
def change_password_route():
    data = request.get_json(silent=True) or {}
    try:
        auth_service.change_password(
            user=g.current_user,
            current_password=data.get("currentPassword") or "",
            new_password=data.get("newPassword") or "",
            confirm_password=data.get("confirmPassword") or "",
        )
    except ValidationError as e:
        return error_response(e)

    return ok(message="Password changed successfully")


@auth_bp.get("/me")
@require_auth
def me_route():
    return ok(auth_service.get_profile(g.current_user))


@auth_bp.post("/logout")
@require_auth
def logout_route():
    """Nothing to revoke server-side; the client drops its tokens."""
    return ok(message="Logout successful")
