# Overview: Service-layer operations for products; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import Product, Invoice, InvoiceItem, Distributor
from ..formatting import to_float, to_int
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    ConflictError,
    validate_payload,
    enforce_rules_product,
)
from app.time_utils import period_start, to_iso_date
from .errors import NotFoundError, ServiceError

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_name", "product_code", "description", "unit_price",
        "unit_of_measure", "category", "tax_rate", "image_url", "is_active",
    },
    required_on_create={"product_name", "unit_price"},
)

SUGGESTION_LIMIT = 10
RECENT_SALES_LIMIT = 10
TOP_SELLING_PERIODS = ("all", "today", "week", "month", "year")


class ProductInUseError(ServiceError):
    """Raised when hard-deleting a product referenced by invoice items."""


def get_product_or_404(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


def _ensure_unique_code(code: str | None, exclude_id: int | None = None) -> None:
    if not code:
        return
    query = db.session.query(Product.product_id).filter(Product.product_code == code)
    if exclude_id is not None:
        query = query.filter(Product.product_id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Product code already exists")


def _sales_stats_subquery(since=None):
    query = (
        db.session.query(
            InvoiceItem.product_id.label("product_id"),
            db.func.count(db.distinct(InvoiceItem.invoice_id)).label("times_sold"),
            db.func.coalesce(db.func.sum(InvoiceItem.quantity), 0).label("total_quantity_sold"),
            db.func.coalesce(db.func.sum(InvoiceItem.line_total), 0).label("total_revenue"),
        )
        .join(Invoice, Invoice.invoice_id == InvoiceItem.invoice_id)
        .filter(Invoice.status != "cancelled")
    )
    if since is not None:
        query = query.filter(Invoice.invoice_date >= since)
    return query.group_by(InvoiceItem.product_id).subquery()


def _with_stats(product: Product, times_sold, quantity, revenue) -> dict:
    data = product.to_dict()
    data["times_sold"] = to_int(times_sold)
    data["total_quantity_sold"] = to_float(quantity or 0)
    data["total_revenue"] = to_float(revenue or 0)
    return data


def list_products(
    *,
    page: int,
    limit: int,
    search: str | None = None,
    category: str | None = None,
    is_active: bool | None = None,
) -> tuple[list[dict], int]:
    stats = _sales_stats_subquery()
    query = (
        db.session.query(Product, stats.c.times_sold, stats.c.total_quantity_sold, stats.c.total_revenue)
        .outerjoin(stats, stats.c.product_id == Product.product_id)
    )
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Product.product_name.ilike(pattern),
            Product.product_code.ilike(pattern),
            Product.description.ilike(pattern),
        ))
    if category:
        query = query.filter(Product.category.ilike(f"%{category.strip()}%"))
    if is_active is not None:
        query = query.filter(Product.is_active.is_(is_active))

    total = query.count()
    rows = (
        query.order_by(Product.created_at.desc(), Product.product_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [_with_stats(*row) for row in rows], total


def get_product_detail(product_id: int) -> dict:
    product = get_product_or_404(product_id)
    stats = _sales_stats_subquery()
    row = (
        db.session.query(stats.c.times_sold, stats.c.total_quantity_sold, stats.c.total_revenue)
        .filter(stats.c.product_id == product_id)
        .first()
    )
    data = _with_stats(product, *(row or (0, 0, 0)))

    recent = (
        db.session.query(InvoiceItem, Invoice, Distributor)
        .join(Invoice, Invoice.invoice_id == InvoiceItem.invoice_id)
        .join(Distributor, Distributor.distributor_id == Invoice.distributor_id)
        .filter(InvoiceItem.product_id == product_id, Invoice.status != "cancelled")
        .order_by(Invoice.invoice_date.desc(), Invoice.invoice_id.desc())
        .limit(RECENT_SALES_LIMIT)
        .all()
    )
    data["recent_sales"] = [
        {
            "invoice_id": invoice.invoice_id,
            "invoice_number": invoice.invoice_number,
            "invoice_date": to_iso_date(invoice.invoice_date),
            "distributor_name": distributor.distributor_name,
            "quantity": to_float(item.quantity),
            "unit_price": to_float(item.unit_price),
            "line_total": to_float(item.line_total),
        }
        for item, invoice, distributor in recent
    ]
    return data


def create_product(payload: dict) -> Product:
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    _ensure_unique_code(patch.get("product_code"))

    if not patch.get("unit_of_measure"):
        patch["unit_of_measure"] = "piece"
    if patch.get("tax_rate") is None:
        patch["tax_rate"] = 0

    product = Product(**patch)
    db.session.add(product)
    db.session.commit()
    return product


def update_product(*, product_id: int, payload: dict) -> Product:
    product = get_product_or_404(product_id)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    if not patch:
        raise ValidationError("No fields to update")
    enforce_rules_product(patch)
    if "product_code" in patch:
        _ensure_unique_code(patch["product_code"], exclude_id=product_id)

    for key, value in patch.items():
        setattr(product, key, value)
    db.session.commit()
    return product


def set_product_active(*, product_id: int, active: bool) -> Product:
    product = get_product_or_404(product_id)
    product.is_active = active
    db.session.commit()
    return product


def delete_product(product_id: int) -> str:
    """Hard delete; refused while any invoice references the product."""
    product = get_product_or_404(product_id)
    invoice_count = (
        db.session.query(db.func.count(db.distinct(InvoiceItem.invoice_id)))
        .filter(InvoiceItem.product_id == product_id)
        .scalar()
    ) or 0
    if invoice_count:
        raise ProductInUseError(
            f'Cannot delete product "{product.product_name}". It is used in '
            f"{invoice_count} invoice(s). Consider deactivating instead.",
            data={"invoiceCount": invoice_count},
        )
    name = product.product_name
    db.session.delete(product)
    db.session.commit()
    return name


def list_product_categories() -> list[dict]:
    rows = (
        db.session.query(Product.category, db.func.count(Product.product_id))
        .filter(Product.category.isnot(None), Product.category != "", Product.is_active.is_(True))
        .group_by(Product.category)
        .order_by(Product.category.asc())
        .all()
    )
    return [{"category": name, "product_count": to_int(count)} for name, count in rows]


def search_suggestions(q: str | None) -> list[dict]:
    term = (q or "").strip()
    if len(term) < 2:
        return []
    pattern = f"%{term}%"
    rows = (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            db.or_(Product.product_name.ilike(pattern), Product.product_code.ilike(pattern)),
        )
        .order_by(Product.product_name.asc())
        .limit(SUGGESTION_LIMIT)
        .all()
    )
    return [
        {
            "product_id": p.product_id,
            "product_name": p.product_name,
            "product_code": p.product_code,
            "unit_price": to_float(p.unit_price),
            "unit_of_measure": p.unit_of_measure,
            "tax_rate": to_float(p.tax_rate),
            "category": p.category,
        }
        for p in rows
    ]


def bulk_import(products) -> dict:
    """
    Import many products. Each row is committed on its own so one bad row
    does not discard the others.
    """
    if not isinstance(products, list) or not products:
        raise ValidationError("Products array is required")

    results = {"successful": 0, "failed": 0, "errors": []}
    for index, raw in enumerate(products, start=1):
        try:
            if not isinstance(raw, dict):
                raise ValidationError("Row must be an object")
            create_product(raw)
            results["successful"] += 1
        except ConflictError:
            db.session.rollback()
            results["failed"] += 1
            results["errors"].append({
                "row": index,
                "error": f"Product code '{raw.get('product_code')}' already exists",
            })
        except ValidationError as e:
            db.session.rollback()
            results["failed"] += 1
            results["errors"].append({"row": index, "error": str(e)})
    return results


def analytics_summary() -> dict:
    counts = db.session.query(
        db.func.count(Product.product_id),
        db.func.coalesce(db.func.sum(db.case((Product.is_active.is_(True), 1), else_=0)), 0),
        db.func.count(db.distinct(Product.category)),
        db.func.avg(Product.unit_price),
        db.func.min(Product.unit_price),
        db.func.max(Product.unit_price),
    ).one()
    total, active, categories, avg_price, min_price, max_price = counts

    sold = (
        db.session.query(
            db.func.count(db.distinct(InvoiceItem.product_id)),
            db.func.coalesce(db.func.sum(InvoiceItem.quantity), 0),
            db.func.coalesce(db.func.sum(InvoiceItem.line_total), 0),
        )
        .join(Invoice, Invoice.invoice_id == InvoiceItem.invoice_id)
        .filter(Invoice.status != "cancelled")
        .one()
    )

    top = top_selling(limit=1, period="all")
    return {
        "total_products": to_int(total),
        "active_products": to_int(active),
        "inactive_products": to_int(total) - to_int(active),
        "total_categories": to_int(categories),
        "average_price": round(to_float(avg_price), 2) if avg_price is not None else None,
        "min_price": to_float(min_price),
        "max_price": to_float(max_price),
        "products_with_sales": to_int(sold[0]),
        "total_quantity_sold": to_float(sold[1]),
        "total_revenue": to_float(sold[2]),
        "top_selling_product": top[0]["product_name"] if top else None,
    }


def top_selling(*, limit: int = 10, period: str = "all") -> list[dict]:
    if period not in TOP_SELLING_PERIODS:
        raise ValidationError(f"period must be one of: {', '.join(TOP_SELLING_PERIODS)}")

    stats = _sales_stats_subquery(since=period_start(period))
    rows = (
        db.session.query(Product, stats.c.times_sold, stats.c.total_quantity_sold, stats.c.total_revenue)
        .join(stats, stats.c.product_id == Product.product_id)
        .order_by(stats.c.total_quantity_sold.desc(), stats.c.total_revenue.desc())
        .limit(limit)
        .all()
    )
    return [_with_stats(*row) for row in rows]
