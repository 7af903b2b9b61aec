# Overview: Service-layer operations for invoices; lifecycle, numbering and reporting.

"""
Invoice Service

Lifecycle: draft -> sent -> partial_paid / overdue -> paid, or cancelled
from draft/sent while nothing has been paid. Only drafts are editable.

paid_amount and the payment-driven status moves belong to the database
trigger on payments; this module never writes paid_amount. The overdue
sweep (mark_overdue_invoices) is the one status write outside the
draft/sent/cancelled transitions.

Sales staff only ever see and act on invoices they issued.
"""
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    User,
    Distributor,
    Product,
    Invoice,
    InvoiceItem,
    INVOICE_STATUSES,
    OPEN_STATUSES,
)
from ..formatting import to_float, to_int
from ..validation import (
    CENT,
    ValidationError,
    money,
    require_range,
    to_decimal,
    to_int as coerce_int,
)
from app.time_utils import parse_iso_date, today
from .access_service import require_distributor_access
from .concurrency import run_with_retry
from .distributor_service import get_distributor_or_404
from .errors import NotFoundError
from .invoice_math import InvoiceTotals, compute_totals, totals_from

INVOICE_NOT_FOUND = "Invoice not found or access denied"
NOT_EDITABLE = "Invoice not found, not editable, or access denied"
NOT_CANCELLABLE = "Invoice not found, cannot be cancelled, or access denied"
NOT_SENDABLE = "Invoice not found, already sent, or access denied"
SOURCE_NOT_FOUND = "Source invoice not found or access denied"

DEFAULT_DUE_DAYS = 30
NOTES_MAX_LENGTH = 1000
# invoice_items.quantity is Numeric(10,2)
QUANTITY_LIMIT = Decimal("1e8")
OVERDUE_LIST_LIMIT = 50


# ---------------------------------------------------------------------------
# Lookup and scoping
# ---------------------------------------------------------------------------

def _scoped(query, actor: User):
    if not actor.is_admin:
        query = query.filter(Invoice.sales_staff_id == actor.user_id)
    return query


def get_scoped_invoice(
    invoice_id: int,
    actor: User,
    *,
    message: str = INVOICE_NOT_FOUND,
    statuses: tuple[str, ...] | None = None,
) -> Invoice:
    query = _scoped(db.session.query(Invoice).filter(Invoice.invoice_id == invoice_id), actor)
    if statuses:
        query = query.filter(Invoice.status.in_(statuses))
    invoice = query.first()
    if invoice is None:
        raise NotFoundError(message)
    return invoice


def next_invoice_number(on: date | None = None) -> str:
    """INV-YYYYMM-NNNN, sequence restarting each month."""
    on = on or today()
    prefix = f"INV-{on:%Y%m}-"
    latest = (
        db.session.query(Invoice.invoice_number)
        .filter(Invoice.invoice_number.like(f"{prefix}%"))
        .order_by(db.func.length(Invoice.invoice_number).desc(), Invoice.invoice_number.desc())
        .first()
    )
    sequence = 1
    if latest is not None:
        tail = latest[0][len(prefix):]
        sequence = int(tail) + 1 if tail.isdigit() else 1
    return f"{prefix}{sequence:04d}"


# ---------------------------------------------------------------------------
# Input parsing
# ---------------------------------------------------------------------------

def parse_date(value, field: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError(f"{field} must be a valid date (YYYY-MM-DD)")


def _parse_percentage(value, field: str) -> Decimal | None:
    if value is None or value == "":
        return None
    pct = to_decimal(value, field)
    require_range(pct, field, low=0, high=100)
    return pct


def _parse_items(raw_items) -> list[dict]:
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("At least one item is required")

    lines = []
    for index, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {index} must be an object")
        if raw.get("product_id") in (None, ""):
            raise ValidationError(f"Item {index}: product_id is required")
        product_id = coerce_int(raw["product_id"], "product_id")
        require_range(product_id, "product_id", low=1)

        quantity = to_decimal(raw.get("quantity"), "quantity")
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")
        if quantity >= QUANTITY_LIMIT:
            raise ValidationError("quantity is out of range")

        unit_price = None
        if raw.get("unit_price") not in (None, ""):
            unit_price = to_decimal(raw["unit_price"], "unit_price")
            require_range(unit_price, "unit_price", low=0)
            unit_price = money(unit_price)

        lines.append({
            "product_id": product_id,
            "quantity": quantity.quantize(CENT, rounding=ROUND_HALF_UP),
            "unit_price": unit_price,
            "discount_percentage": _parse_percentage(raw.get("discount_percentage"), "discount_percentage")
            or Decimal("0"),
            "tax_rate": _parse_percentage(raw.get("tax_rate"), "tax_rate"),
        })
    return lines


def _resolve_lines(lines: list[dict]) -> list[dict]:
    """Fill unit price and tax rate from the product where the line left them out."""
    product_ids = {line["product_id"] for line in lines}
    products = {
        p.product_id: p
        for p in db.session.query(Product)
        .filter(Product.product_id.in_(product_ids), Product.is_active.is_(True))
        .all()
    }
    resolved = []
    for line in lines:
        product = products.get(line["product_id"])
        if product is None:
            raise ValidationError(f"Product ID {line['product_id']} not found or inactive")
        resolved.append({
            **line,
            "unit_price": line["unit_price"] if line["unit_price"] is not None else product.unit_price,
            "tax_rate": line["tax_rate"] if line["tax_rate"] is not None else product.tax_rate,
        })
    return resolved


def _parse_discount(value) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    discount = to_decimal(value, "discount_amount")
    if discount < 0:
        raise ValidationError("Discount amount must be a positive number")
    return money(discount)


def _parse_notes(value) -> str | None:
    if value is None:
        return None
    notes = str(value).strip()
    if len(notes) > NOTES_MAX_LENGTH:
        raise ValidationError(f"Notes must not exceed {NOTES_MAX_LENGTH} characters")
    return notes or None


def _build_items(resolved: list[dict], totals: InvoiceTotals) -> list[InvoiceItem]:
    return [
        InvoiceItem(
            product_id=line["product_id"],
            quantity=line["quantity"],
            unit_price=line["unit_price"],
            discount_percentage=line["discount_percentage"],
            tax_rate=line["tax_rate"],
            line_total=amounts.total,
        )
        for line, amounts in zip(resolved, totals.lines)
    ]


def _apply_totals(invoice: Invoice, totals: InvoiceTotals) -> None:
    invoice.subtotal = totals.subtotal
    invoice.tax_amount = totals.tax_amount
    invoice.discount_amount = totals.discount_amount
    invoice.total_amount = totals.total_amount


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def _listing_query():
    item_counts = (
        db.session.query(
            InvoiceItem.invoice_id.label("invoice_id"),
            db.func.count(InvoiceItem.item_id).label("item_count"),
        )
        .group_by(InvoiceItem.invoice_id)
        .subquery()
    )
    return (
        db.session.query(Invoice, Distributor.distributor_name, User.full_name, item_counts.c.item_count)
        .join(Distributor, Distributor.distributor_id == Invoice.distributor_id)
        .join(User, User.user_id == Invoice.sales_staff_id)
        .outerjoin(item_counts, item_counts.c.invoice_id == Invoice.invoice_id)
    )


def _listing_row(invoice: Invoice, distributor_name, staff_name, item_count) -> dict:
    data = invoice.to_dict()
    data["distributor_name"] = distributor_name
    data["sales_staff_name"] = staff_name
    data["item_count"] = to_int(item_count)
    data["days_overdue"] = invoice.days_overdue
    return data


def _paginate(query, *, page: int, limit: int) -> tuple[list[dict], int]:
    total = query.count()
    rows = (
        query.order_by(Invoice.created_at.desc(), Invoice.invoice_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [_listing_row(*row) for row in rows], total


def _validate_status(status: str | None) -> None:
    if status and status not in INVOICE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(INVOICE_STATUSES)}")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def list_invoices(
    *,
    actor: User,
    page: int,
    limit: int,
    search: str | None = None,
    status: str | None = None,
    distributor_id: int | None = None,
    start_date=None,
    end_date=None,
) -> tuple[list[dict], int]:
    _validate_status(status)
    query = _scoped(_listing_query(), actor)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Invoice.invoice_number.ilike(pattern),
            Distributor.distributor_name.ilike(pattern),
        ))
    if status:
        query = query.filter(Invoice.status == status)
    if distributor_id is not None:
        query = query.filter(Invoice.distributor_id == distributor_id)
    start = parse_date(start_date, "start_date")
    if start:
        query = query.filter(Invoice.invoice_date >= start)
    end = parse_date(end_date, "end_date")
    if end:
        query = query.filter(Invoice.invoice_date <= end)

    return _paginate(query, page=page, limit=limit)


def list_distributor_invoices(
    *,
    distributor_id: int,
    actor: User,
    page: int,
    limit: int,
    status: str | None = None,
) -> tuple[list[dict], int]:
    """All invoices of one distributor, for anyone allowed to see that distributor."""
    get_distributor_or_404(distributor_id)
    require_distributor_access(actor, distributor_id)
    _validate_status(status)

    query = _listing_query().filter(Invoice.distributor_id == distributor_id)
    if status:
        query = query.filter(Invoice.status == status)
    return _paginate(query, page=page, limit=limit)


def get_invoice_detail(*, invoice_id: int, actor: User) -> dict:
    invoice = get_scoped_invoice(invoice_id, actor)
    distributor = invoice.distributor
    data = invoice.to_dict()
    data.update({
        "distributor_name": distributor.distributor_name,
        "distributor_address": distributor.address,
        "distributor_city": distributor.city,
        "distributor_ntn_number": distributor.ntn_number,
        "primary_contact_person": distributor.primary_contact_person,
        "primary_whatsapp_number": distributor.primary_whatsapp_number,
        "sales_staff_name": invoice.sales_staff.full_name,
        "days_overdue": invoice.days_overdue,
        "items": [item.to_dict() for item in invoice.items],
        "payments": [payment.to_dict() for payment in invoice.payments],
    })
    return data


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def create_invoice(*, payload: dict, actor: User) -> Invoice:
    payload = payload or {}
    if payload.get("distributor_id") in (None, ""):
        raise ValidationError("Valid distributor ID is required")
    distributor_id = coerce_int(payload["distributor_id"], "distributor_id")
    require_range(distributor_id, "distributor_id", low=1)

    lines = _parse_items(payload.get("items"))
    discount = _parse_discount(payload.get("discount_amount"))
    due_date = parse_date(payload.get("due_date"), "due_date")
    notes = _parse_notes(payload.get("notes"))

    require_distributor_access(actor, distributor_id)
    distributor = get_distributor_or_404(distributor_id)
    if not distributor.is_active:
        raise ValidationError("Distributor is inactive")

    resolved = _resolve_lines(lines)
    totals = compute_totals(resolved, discount)
    invoice_date = today()
    staff_id = actor.user_id

    def insert_invoice():
        invoice = Invoice(
            invoice_number=next_invoice_number(invoice_date),
            distributor_id=distributor_id,
            sales_staff_id=staff_id,
            invoice_date=invoice_date,
            due_date=due_date or invoice_date + timedelta(days=DEFAULT_DUE_DAYS),
            status="draft",
            notes=notes,
        )
        _apply_totals(invoice, totals)
        invoice.items = _build_items(resolved, totals)
        db.session.add(invoice)
        db.session.commit()
        return invoice

    return run_with_retry(insert_invoice, retry_on=(IntegrityError,))


def update_invoice(*, invoice_id: int, payload: dict, actor: User) -> Invoice:
    """
    Edit a draft. New items replace the old ones and recompute every total;
    a discount-only change recomputes total_amount from the stored sums.
    """
    invoice = get_scoped_invoice(invoice_id, actor, message=NOT_EDITABLE, statuses=("draft",))
    payload = payload or {}

    if payload.get("due_date") not in (None, ""):
        invoice.due_date = parse_date(payload["due_date"], "due_date")
    if "notes" in payload:
        invoice.notes = _parse_notes(payload["notes"])

    if payload.get("items") is not None:
        discount = (
            _parse_discount(payload["discount_amount"])
            if "discount_amount" in payload
            else invoice.discount_amount
        )
        resolved = _resolve_lines(_parse_items(payload["items"]))
        totals = compute_totals(resolved, discount)
        invoice.items = _build_items(resolved, totals)
        _apply_totals(invoice, totals)
    elif "discount_amount" in payload:
        _apply_totals(invoice, totals_from(
            subtotal=invoice.subtotal,
            tax_amount=invoice.tax_amount,
            discount_amount=_parse_discount(payload["discount_amount"]),
        ))

    db.session.commit()
    return invoice


def cancel_invoice(*, invoice_id: int, actor: User) -> Invoice:
    invoice = get_scoped_invoice(invoice_id, actor, message=NOT_CANCELLABLE, statuses=("draft", "sent"))
    if money(invoice.paid_amount or 0) != 0:
        raise NotFoundError(NOT_CANCELLABLE)
    invoice.status = "cancelled"
    db.session.commit()
    return invoice


def send_invoice(*, invoice_id: int, actor: User) -> Invoice:
    # TODO: deliver the invoice to the distributor (email or WhatsApp) once PDF rendering exists.
    invoice = get_scoped_invoice(invoice_id, actor, message=NOT_SENDABLE, statuses=("draft",))
    invoice.status = "sent"
    db.session.commit()
    return invoice


def duplicate_invoice(*, invoice_id: int, actor: User) -> Invoice:
    """
    Copy an invoice into a new draft owned by `actor`, dated today.

    Lines keep their recorded prices. The due date keeps the source's
    payment term (due_date - invoice_date) counted from today.
    """
    source = get_scoped_invoice(invoice_id, actor, message=SOURCE_NOT_FOUND)

    lines = [
        {
            "product_id": item.product_id,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "discount_percentage": item.discount_percentage,
            "tax_rate": item.tax_rate,
        }
        for item in source.items
    ]
    totals = compute_totals(lines, source.discount_amount)

    term = timedelta(days=DEFAULT_DUE_DAYS)
    if source.due_date and source.invoice_date:
        term = max(source.due_date - source.invoice_date, timedelta(0))

    invoice_date = today()
    distributor_id = source.distributor_id
    notes = source.notes
    staff_id = actor.user_id

    def insert_copy():
        copy = Invoice(
            invoice_number=next_invoice_number(invoice_date),
            distributor_id=distributor_id,
            sales_staff_id=staff_id,
            invoice_date=invoice_date,
            due_date=invoice_date + term,
            status="draft",
            notes=notes,
        )
        _apply_totals(copy, totals)
        copy.items = _build_items(lines, totals)
        db.session.add(copy)
        db.session.commit()
        return copy

    return run_with_retry(insert_copy, retry_on=(IntegrityError,))


def mark_overdue_invoices(on: date | None = None) -> int:
    """Flip sent/partial_paid invoices whose due date has passed to overdue."""
    on = on or today()
    count = (
        db.session.query(Invoice)
        .filter(
            Invoice.status.in_(("sent", "partial_paid")),
            Invoice.due_date.isnot(None),
            Invoice.due_date < on,
        )
        .update({"status": "overdue"}, synchronize_session=False)
    )
    db.session.commit()
    return count


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------

def _status_count(status: str):
    return db.func.coalesce(db.func.sum(db.case((Invoice.status == status, 1), else_=0)), 0)


def invoice_summary(*, actor: User) -> dict:
    counts = _scoped(
        db.session.query(
            db.func.count(Invoice.invoice_id),
            *[_status_count(status) for status in INVOICE_STATUSES],
        ),
        actor,
    ).one()
    total_invoices, *per_status = counts

    amounts = _scoped(
        db.session.query(
            db.func.coalesce(db.func.sum(Invoice.total_amount), 0),
            db.func.coalesce(db.func.sum(Invoice.paid_amount), 0),
            db.func.avg(Invoice.total_amount),
        ).filter(Invoice.status != "cancelled"),
        actor,
    ).one()
    total_amount, total_paid, average = amounts

    todays = _scoped(
        db.session.query(
            db.func.count(Invoice.invoice_id),
            db.func.coalesce(db.func.sum(Invoice.total_amount), 0),
        ).filter(Invoice.invoice_date == today(), Invoice.status != "cancelled"),
        actor,
    ).one()

    data = {"total_invoices": to_int(total_invoices)}
    for status, count in zip(INVOICE_STATUSES, per_status):
        data[f"{status}_invoices"] = to_int(count)
    data.update({
        "total_amount": to_float(total_amount),
        "total_paid": to_float(total_paid),
        "total_outstanding": to_float(money(Decimal(total_amount) - Decimal(total_paid))),
        "average_invoice_amount": to_float(money(average)) if average is not None else 0.0,
        "today_invoices": to_int(todays[0]),
        "today_amount": to_float(todays[1]),
    })
    return data


def overdue_invoices(*, actor: User, limit: int = OVERDUE_LIST_LIMIT) -> list[dict]:
    """Open invoices past their due date, longest overdue first."""
    rows = (
        _scoped(
            db.session.query(Invoice, Distributor, User.full_name)
            .join(Distributor, Distributor.distributor_id == Invoice.distributor_id)
            .join(User, User.user_id == Invoice.sales_staff_id)
            .filter(
                Invoice.status.in_(OPEN_STATUSES),
                Invoice.due_date.isnot(None),
                Invoice.due_date < today(),
            ),
            actor,
        )
        .order_by(Invoice.due_date.asc(), Invoice.invoice_id.asc())
        .limit(limit)
        .all()
    )
    result = []
    for invoice, distributor, staff_name in rows:
        data = invoice.to_dict()
        data.update({
            "distributor_name": distributor.distributor_name,
            "primary_contact_person": distributor.primary_contact_person,
            "primary_whatsapp_number": distributor.primary_whatsapp_number,
            "sales_staff_name": staff_name,
            "days_overdue": invoice.days_overdue,
        })
        result.append(data)
    return result
