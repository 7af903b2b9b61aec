# Overview: Service-layer operations for product categories.

"""
Category Service

Categories are linked to products by name (Product.category is free text).
A rename therefore rewrites the matching products in the same transaction,
and a category cannot be deleted while any product still carries its name.
"""
from __future__ import annotations

from ..extensions import db
from ..models import Category, Product, Invoice, InvoiceItem
from ..formatting import to_float, to_int
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    ConflictError,
    validate_payload,
    enforce_rules_category,
    to_int as coerce_int,
)
from app.time_utils import to_utc_z
from .errors import NotFoundError, ServiceError

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"category_name", "description", "display_order", "is_active"},
    required_on_create={"category_name"},
)


class CategoryInUseError(ServiceError):
    """Raised when deleting a category that products still reference."""


def get_category_or_404(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Category.category_id).filter(
        db.func.lower(Category.category_name) == name.lower()
    )
    if exclude_id is not None:
        query = query.filter(Category.category_id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Category name already exists")


def _product_stats_by_name(names: list[str]) -> dict[str, dict]:
    if not names:
        return {}
    rows = (
        db.session.query(
            Product.category,
            db.func.count(Product.product_id),
            db.func.coalesce(db.func.sum(db.case((Product.is_active.is_(True), 1), else_=0)), 0),
            db.func.avg(Product.unit_price),
        )
        .filter(Product.category.in_(names))
        .group_by(Product.category)
        .all()
    )
    return {
        name: {
            "total_products_count": to_int(total),
            "active_products_count": to_int(active),
            "avg_product_price": round(to_float(avg), 2) if avg is not None else None,
        }
        for name, total, active, avg in rows
    }


def list_categories(
    *,
    page: int,
    limit: int,
    search: str | None = None,
    is_active: bool | None = None,
    include_stats: bool = False,
) -> tuple[list[dict], int]:
    query = db.session.query(Category)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Category.category_name.ilike(pattern),
            Category.description.ilike(pattern),
        ))
    if is_active is not None:
        query = query.filter(Category.is_active.is_(is_active))

    total = query.count()
    categories = (
        query.order_by(Category.display_order.asc(), Category.category_name.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    items = [c.to_dict() for c in categories]
    if include_stats:
        empty = {"total_products_count": 0, "active_products_count": 0, "avg_product_price": None}
        stats = _product_stats_by_name([c.category_name for c in categories])
        for item in items:
            item.update(stats.get(item["category_name"], empty))
    return items, total


def get_category_detail(category_id: int) -> dict:
    category = get_category_or_404(category_id)
    data = category.to_dict()
    data.update(
        _product_stats_by_name([category.category_name]).get(
            category.category_name,
            {"total_products_count": 0, "active_products_count": 0, "avg_product_price": None},
        )
    )
    revenue = (
        db.session.query(db.func.coalesce(db.func.sum(InvoiceItem.line_total), 0))
        .join(Product, Product.product_id == InvoiceItem.product_id)
        .join(Invoice, Invoice.invoice_id == InvoiceItem.invoice_id)
        .filter(Product.category == category.category_name, Invoice.status != "cancelled")
        .scalar()
    )
    data["total_revenue"] = to_float(revenue)
    return data


def create_category(payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    enforce_rules_category(patch)
    _ensure_unique_name(patch["category_name"])

    if patch.get("display_order") is None:
        current_max = db.session.query(db.func.max(Category.display_order)).scalar()
        patch["display_order"] = (current_max or 0) + 1

    category = Category(**patch)
    db.session.add(category)
    db.session.commit()
    return category


def update_category(*, category_id: int, payload: dict) -> tuple[Category, int]:
    """
    Update a category. On rename, products carrying the old name are moved
    to the new one in the same transaction.

    Returns (category, number_of_products_renamed).
    """
    category = get_category_or_404(category_id)
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    if not patch:
        raise ValidationError("No fields to update")
    enforce_rules_category(patch)

    renamed = 0
    new_name = patch.get("category_name")
    old_name = category.category_name
    if new_name and new_name != old_name:
        _ensure_unique_name(new_name, exclude_id=category_id)
        renamed = (
            db.session.query(Product)
            .filter(Product.category == old_name)
            .update({"category": new_name}, synchronize_session="fetch")
        )

    for key, value in patch.items():
        setattr(category, key, value)

    db.session.commit()
    return category, renamed


def delete_category(category_id: int) -> str:
    category = get_category_or_404(category_id)
    product_count = (
        db.session.query(db.func.count(Product.product_id))
        .filter(Product.category == category.category_name)
        .scalar()
    ) or 0
    if product_count:
        raise CategoryInUseError(
            f"Cannot delete category. {product_count} products are using this category. "
            "Please reassign products to another category first.",
            data={"productCount": product_count},
        )
    name = category.category_name
    db.session.delete(category)
    db.session.commit()
    return name


def toggle_category_status(category_id: int) -> Category:
    category = get_category_or_404(category_id)
    category.is_active = not category.is_active
    db.session.commit()
    return category


def reorder_categories(category_orders) -> int:
    """Apply [{category_id, display_order}, ...] in one transaction."""
    if not isinstance(category_orders, list) or not category_orders:
        raise ValidationError("Category orders array is required")

    updates = []
    for entry in category_orders:
        if not isinstance(entry, dict):
            raise ValidationError("Each entry needs category_id and display_order")
        category_id = coerce_int(entry.get("category_id"), "category_id")
        display_order = coerce_int(entry.get("display_order"), "display_order")
        updates.append((category_id, display_order))

    for category_id, display_order in updates:
        category = get_category_or_404(category_id)
        category.display_order = display_order
    db.session.commit()
    return len(updates)


def category_summary() -> dict:
    total = db.session.query(db.func.count(Category.category_id)).scalar() or 0
    active = (
        db.session.query(db.func.count(Category.category_id))
        .filter(Category.is_active.is_(True))
        .scalar()
    ) or 0
    with_products = (
        db.session.query(db.func.count(db.distinct(Category.category_id)))
        .join(Product, Product.category == Category.category_name)
        .scalar()
    ) or 0
    latest = (
        db.session.query(Category)
        .order_by(Category.created_at.desc(), Category.category_id.desc())
        .first()
    )
    return {
        "total_categories": total,
        "active_categories": active,
        "inactive_categories": total - active,
        "categories_with_products": with_products,
        "latest_category": latest.category_name if latest else None,
        "latest_category_created_at": to_utc_z(latest.created_at) if latest else None,
    }
