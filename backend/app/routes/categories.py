# Overview: Flask API routes for product categories; parses input and returns JSON responses.

from flask import Blueprint, request

from ..services import category_service
from ..services.errors import ServiceError
from ..validation import ValidationError, ConflictError, to_bool
from ..decorators import require_auth, require_admin
from ..responses import ok, created, error_response, page_args, paginated

categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")

CATEGORY_PAGE_SIZE = 50


@categories_bp.get("")
@require_auth
def list_categories():
    page, limit = page_args(default_limit=CATEGORY_PAGE_SIZE)
    raw_active = request.args.get("is_active")
    items, total = category_service.list_categories(
        page=page,
        limit=limit,
        search=request.args.get("search"),
        is_active=to_bool(raw_active) if raw_active not in (None, "") else None,
        include_stats=to_bool(request.args.get("include_stats", "false")),
    )
    return paginated("categories", items, page=page, limit=limit, total=total)


@categories_bp.get("/stats/summary")
@require_auth
def category_summary():
    return ok(category_service.category_summary())


@categories_bp.get("/<int:category_id>")
@require_auth
def get_category(category_id: int):
    try:
        return ok(category_service.get_category_detail(category_id))
    except ServiceError as e:
        return error_response(e)


@categories_bp.post("")
@require_auth
@require_admin
def create_category():
    try:
        category = category_service.create_category(request.get_json(silent=True) or {})
    except (ValidationError, ConflictError) as e:
        return error_response(e)
    return created(category.to_dict(), message="Category created successfully")


@categories_bp.put("/reorder")
@require_auth
@require_admin
def reorder_categories():
    data = request.get_json(silent=True) or {}
    try:
        count = category_service.reorder_categories(data.get("categoryOrders"))
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    return ok({"updated": count}, message="Categories reordered successfully")


@categories_bp.put("/<int:category_id>")
@require_auth
@require_admin
def update_category(category_id: int):
    try:
        category, renamed = category_service.update_category(
            category_id=category_id,
            payload=request.get_json(silent=True) or {},
        )
    except (ValidationError, ConflictError, ServiceError) as e:
        return error_response(e)

    message = "Category updated successfully"
    if renamed:
        message += f". {renamed} products updated with new category name."
    return ok(category.to_dict(), message=message)


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_admin
def delete_category(category_id: int):
    try:
        name = category_service.delete_category(category_id)
    except ServiceError as e:
        return error_response(e)
    return ok(message=f'Category "{name}" deleted successfully')


@categories_bp.patch("/<int:category_id>/toggle-status")
@require_auth
@require_admin
def toggle_category_status(category_id: int):
    try:
        category = category_service.toggle_category_status(category_id)
    except ServiceError as e:
        return error_response(e)
    state = "activated" if category.is_active else "deactivated"
    return ok(category.to_dict(), message=f"Category {state} successfully")
