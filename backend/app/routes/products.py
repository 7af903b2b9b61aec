# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/app/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Reads are open to every authenticated user
- Writes (create, update, activate/deactivate, delete, bulk import) are admin-only
"""
from flask import Blueprint, request

from ..services import products_service
from ..services.errors import ServiceError
from ..validation import ValidationError, ConflictError, to_bool
from ..decorators import require_auth, require_admin
from ..responses import ok, created, error_response, page_args, paginated

products_bp = Blueprint("products", __name__, url_prefix="/api/products")

TOP_SELLING_DEFAULT_LIMIT = 10


@products_bp.get("")
@require_auth
def list_products():
    """
    List products with sales figures.

    Query params:
    - search: name, code or description
    - category
    - is_active: true | false
    - page, limit
    """
    page, limit = page_args()
    raw_active = request.args.get("is_active")
    items, total = products_service.list_products(
        page=page,
        limit=limit,
        search=request.args.get("search"),
        category=request.args.get("category"),
        is_active=to_bool(raw_active) if raw_active not in (None, "") else None,
    )
    return paginated("products", items, page=page, limit=limit, total=total)


@products_bp.get("/categories/list")
@require_auth
def list_product_categories():
    return ok(products_service.list_product_categories())


@products_bp.get("/search/suggestions")
@require_auth
def search_suggestions():
    return ok(products_service.search_suggestions(request.args.get("q")))


@products_bp.get("/analytics/summary")
@require_auth
def analytics_summary():
    return ok(products_service.analytics_summary())


@products_bp.get("/analytics/top-selling")
@require_auth
def top_selling():
    limit = request.args.get("limit", type=int) or TOP_SELLING_DEFAULT_LIMIT
    try:
        rows = products_service.top_selling(
            limit=min(max(limit, 1), 100),
            period=request.args.get("period", "all"),
        )
    except ValidationError as e:
        return error_response(e)
    return ok(rows)


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    try:
        return ok(products_service.get_product_detail(product_id))
    except ServiceError as e:
        return error_response(e)


@products_bp.post("")
@require_auth
@require_admin
def create_product():
    try:
        product = products_service.create_product(request.get_json(silent=True) or {})
    except (ValidationError, ConflictError) as e:
        return error_response(e)
    return created(product.to_dict(), message="Product created successfully")


@products_bp.post("/bulk-import")
@require_auth
@require_admin
def bulk_import():
    data = request.get_json(silent=True) or {}
    try:
        results = products_service.bulk_import(data.get("products"))
    except ValidationError as e:
        return error_response(e)
    return ok(
        results,
        message=f"Bulk import completed. {results['successful']} successful, {results['failed']} failed.",
    )


@products_bp.put("/<int:product_id>")
@require_auth
@require_admin
def update_product(product_id: int):
    try:
        product = products_service.update_product(
            product_id=product_id,
            payload=request.get_json(silent=True) or {},
        )
    except (ValidationError, ConflictError, ServiceError) as e:
        return error_response(e)
    return ok(product.to_dict(), message="Product updated successfully")


@products_bp.patch("/<int:product_id>/deactivate")
@require_auth
@require_admin
def deactivate_product(product_id: int):
    try:
        product = products_service.set_product_active(product_id=product_id, active=False)
    except ServiceError as e:
        return error_response(e)
    return ok(product.to_dict(), message="Product deactivated successfully")


@products_bp.post("/<int:product_id>/activate")
@require_auth
@require_admin
def activate_product(product_id: int):
    try:
        product = products_service.set_product_active(product_id=product_id, active=True)
    except ServiceError as e:
        return error_response(e)
    return ok(product.to_dict(), message="Product activated successfully")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_admin
def delete_product(product_id: int):
    try:
        name = products_service.delete_product(product_id)
    except ServiceError as e:
        return error_response(e)
    return ok(message=f'Product "{name}" deleted successfully')
