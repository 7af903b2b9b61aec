# Overview: Flask API routes for user administration; parses input and returns JSON responses.

# backend/app/routes/users.py
"""
User management routes.

Admins manage every account. Any authenticated user may read and edit
their own profile (HR fields stay admin-only).
"""

from flask import Blueprint, request, g

from ..services import user_service
from ..services.errors import ServiceError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth, require_admin
from ..responses import ok, created, error_response, page_args, paginated

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_admin
def list_users():
    """
    Query params:
    - search: matches full_name, email or username
    - role: admin | sales_staff
    - page, limit
    """
    page, limit = page_args()
    try:
        items, total = user_service.list_users(
            page=page,
            limit=limit,
            search=request.args.get("search"),
            role=request.args.get("role") or None,
        )
    except ValidationError as e:
        return error_response(e)
    return paginated("users", items, page=page, limit=limit, total=total)


@users_bp.get("/sales-staff/list")
@require_auth
@require_admin
def list_sales_staff():
    return ok(user_service.list_sales_staff())


@users_bp.get("/<int:user_id>")
@require_auth
def get_user(user_id: int):
    try:
        return ok(user_service.get_user_detail(user_id=user_id, actor=g.current_user))
    except ServiceError as e:
        return error_response(e)


@users_bp.post("")
@require_auth
@require_admin
def create_user():
    try:
        user = user_service.create_user(request.get_json(silent=True) or {})
    except (ValidationError, ConflictError) as e:
        return error_response(e)
    return created(user.to_dict(), message="User created successfully")


@users_bp.put("/<int:user_id>")
@require_auth
def update_user(user_id: int):
    try:
        user = user_service.update_user(
            user_id=user_id,
            payload=request.get_json(silent=True) or {},
            actor=g.current_user,
        )
    except (ValidationError, ConflictError, ServiceError) as e:
        return error_response(e)
    return ok(user.to_dict(), message="User updated successfully")


@users_bp.delete("/<int:user_id>")
@require_auth
@require_admin
def deactivate_user(user_id: int):
    try:
        user = user_service.deactivate_user(user_id=user_id, actor=g.current_user)
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    return ok(user.to_dict(), message="User deactivated successfully")


@users_bp.post("/<int:user_id>/activate")
@require_auth
@require_admin
def activate_user(user_id: int):
    try:
        user = user_service.activate_user(user_id=user_id)
    except ServiceError as e:
        return error_response(e)
    return ok(user.to_dict(), message="User activated successfully")
