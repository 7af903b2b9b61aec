# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Collection Service

Payments are money collected against an invoice by a staff member.

DESIGN PRINCIPLES:
- Many payments per invoice (partial collections are normal)
- invoices.paid_amount and invoices.status are recomputed by the database
  trigger on payments; this module only validates and writes payment rows
- A payment can never push paid_amount above total_amount (checked here,
  under a row lock on the invoice)
- Sales staff collect on their own invoices or on invoices of distributors
  assigned to them, and only edit what they collected themselves
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import joinedload

from ..extensions import db
from ..models import User, Distributor, Invoice, Payment
from ..formatting import to_float, to_int
from ..validation import (
    CENT,
    PAYMENT_METHODS,
    ModelValidationPolicy,
    ValidationError,
    ConflictError,
    money,
    require_range,
    to_decimal,
    to_int as coerce_int,
    validate_payload,
)
from app.time_utils import period_start, today
from .access_service import assigned_distributor_ids_query
from .concurrency import lock_for_update
from .errors import NotFoundError, ServiceError
from .invoice_service import parse_date


PAYMENT_NOT_FOUND = "Payment not found or access denied"
INVOICE_NOT_PAYABLE = "Invoice not found, already paid, cancelled, or access denied"
INVOICE_NOT_FOUND = "Invoice not found or access denied"

NOTES_MAX_LENGTH = 1000
PENDING_LIMIT = 50
RECENT_LIMIT = 10
METHOD_PERIODS = ("today", "week", "month", "year", "all")

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "payment_date", "amount", "payment_method", "check_number", "bank_name",
        "transaction_reference", "receipt_image_url", "notes",
    },
    required_on_create={"amount", "payment_method"},
)


# =============================================================================
# ACCESS
# =============================================================================

def _with_invoice_access(query, actor: User):
    """Staff: invoices they issued or invoices of their assigned distributors."""
    if actor.is_admin:
        return query
    return query.filter(db.or_(
        Invoice.sales_staff_id == actor.user_id,
        Invoice.distributor_id.in_(assigned_distributor_ids_query(actor.user_id)),
    ))


def _collected_by_actor(query, actor: User):
    if not actor.is_admin:
        query = query.filter(Payment.collected_by == actor.user_id)
    return query


def _payable_invoice(invoice_id: int, actor: User, *, lock: bool = False) -> Invoice:
    query = _with_invoice_access(
        db.session.query(Invoice).filter(
            Invoice.invoice_id == invoice_id,
            Invoice.status.notin_(("cancelled", "paid")),
        ),
        actor,
    )
    if lock:
        query = lock_for_update(query).populate_existing()
    invoice = query.first()
    if invoice is None:
        raise NotFoundError(INVOICE_NOT_PAYABLE)
    return invoice


def get_scoped_payment(payment_id: int, actor: User) -> Payment:
    payment = _collected_by_actor(
        db.session.query(Payment).filter(Payment.payment_id == payment_id),
        actor,
    ).first()
    if payment is None:
        raise NotFoundError(PAYMENT_NOT_FOUND)
    return payment


# =============================================================================
# VALIDATION
# =============================================================================

def _enforce_payment_rules(patch: dict) -> None:
    if "amount" in patch:
        if patch["amount"] is None or patch["amount"] < CENT:
            raise ValidationError("Payment amount must be greater than 0")
        patch["amount"] = money(patch["amount"])
    if "payment_method" in patch and patch["payment_method"] not in PAYMENT_METHODS:
        raise ValidationError("Valid payment method is required")
    if patch.get("notes") and len(patch["notes"]) > NOTES_MAX_LENGTH:
        raise ValidationError("Notes too long")
    # Column is NOT NULL with a Python-side default of today.
    if "payment_date" in patch and patch["payment_date"] is None:
        patch.pop("payment_date")


def _remaining_balance(invoice: Invoice) -> Decimal:
    return money((invoice.total_amount or 0) - (invoice.paid_amount or 0))


# =============================================================================
# SERIALIZATION
# =============================================================================

def payment_detail(payment: Payment) -> dict:
    """Payment plus the invoice it settles, as stored after the trigger ran."""
    invoice = payment.invoice
    data = payment.to_dict()
    data["invoice_number"] = invoice.invoice_number
    data["distributor_id"] = invoice.distributor_id
    data["distributor_name"] = invoice.distributor.distributor_name
    data["invoice"] = invoice.to_dict()
    return data


def _listing_row(payment: Payment, invoice: Invoice, distributor: Distributor) -> dict:
    data = payment.to_dict()
    data.update({
        "invoice_number": invoice.invoice_number,
        "invoice_total": to_float(invoice.total_amount),
        "invoice_paid_amount": to_float(invoice.paid_amount),
        "invoice_status": invoice.status,
        "remaining_balance": to_float(invoice.balance_amount),
        "distributor_id": distributor.distributor_id,
        "distributor_name": distributor.distributor_name,
        "city": distributor.city,
    })
    return data


def _listing_query():
    return (
        db.session.query(Payment, Invoice, Distributor)
        .join(Invoice, Invoice.invoice_id == Payment.invoice_id)
        .join(Distributor, Distributor.distributor_id == Invoice.distributor_id)
        .options(joinedload(Payment.collector))
    )


# =============================================================================
# QUERIES
# =============================================================================

def list_payments(
    *,
    actor: User,
    page: int,
    limit: int,
    search: str | None = None,
    payment_method: str | None = None,
    invoice_id: int | None = None,
    start_date=None,
    end_date=None,
) -> tuple[list[dict], int]:
    query = _collected_by_actor(_listing_query(), actor)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Invoice.invoice_number.ilike(pattern),
            Distributor.distributor_name.ilike(pattern),
            Payment.check_number.ilike(pattern),
            Payment.transaction_reference.ilike(pattern),
        ))
    if payment_method:
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")
        query = query.filter(Payment.payment_method == payment_method)
    if invoice_id is not None:
        query = query.filter(Payment.invoice_id == invoice_id)
    start = parse_date(start_date, "start_date")
    if start:
        query = query.filter(Payment.payment_date >= start)
    end = parse_date(end_date, "end_date")
    if end:
        query = query.filter(Payment.payment_date <= end)

    total = query.count()
    rows = (
        query.order_by(Payment.created_at.desc(), Payment.payment_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return [_listing_row(*row) for row in rows], total


def get_payment_detail(*, payment_id: int, actor: User) -> dict:
    return payment_detail(get_scoped_payment(payment_id, actor))


def pending_invoices(
    *,
    actor: User,
    limit: int = PENDING_LIMIT,
    distributor_id: int | None = None,
) -> list[dict]:
    """Invoices still owing money; overdue ones first, then by due date."""
    payment_counts = (
        db.session.query(
            Payment.invoice_id.label("invoice_id"),
            db.func.count(Payment.payment_id).label("payment_count"),
        )
        .group_by(Payment.invoice_id)
        .subquery()
    )
    query = _with_invoice_access(
        db.session.query(Invoice, Distributor, User.full_name, payment_counts.c.payment_count)
        .join(Distributor, Distributor.distributor_id == Invoice.distributor_id)
        .outerjoin(User, User.user_id == Invoice.sales_staff_id)
        .outerjoin(payment_counts, payment_counts.c.invoice_id == Invoice.invoice_id)
        .filter(
            Invoice.status.notin_(("cancelled", "paid")),
            Invoice.total_amount - Invoice.paid_amount > 0,
        ),
        actor,
    )
    if distributor_id is not None:
        query = query.filter(Invoice.distributor_id == distributor_id)

    rows = (
        query.order_by(
            db.case((Invoice.status == "overdue", 1), else_=2),
            Invoice.due_date.asc(),
            Invoice.invoice_id.asc(),
        )
        .limit(limit)
        .all()
    )
    result = []
    for invoice, distributor, staff_name, payment_count in rows:
        data = invoice.to_dict()
        data.update({
            "days_overdue": invoice.days_overdue if invoice.status == "overdue" else 0,
            "distributor_name": distributor.distributor_name,
            "city": distributor.city,
            "primary_contact_person": distributor.primary_contact_person,
            "primary_whatsapp_number": distributor.primary_whatsapp_number,
            "sales_staff_name": staff_name,
            "payment_count": to_int(payment_count),
        })
        result.append(data)
    return result


def invoice_payments(*, invoice_id: int, actor: User) -> dict:
    invoice = _with_invoice_access(
        db.session.query(Invoice).filter(Invoice.invoice_id == invoice_id),
        actor,
    ).first()
    if invoice is None:
        raise NotFoundError(INVOICE_NOT_FOUND)

    payments = (
        db.session.query(Payment)
        .options(joinedload(Payment.collector))
        .filter(Payment.invoice_id == invoice_id)
        .order_by(Payment.payment_date.desc(), Payment.payment_id.desc())
        .all()
    )
    return {
        "invoice": invoice.to_dict(),
        "payments": [p.to_dict() for p in payments],
    }


# =============================================================================
# COMMANDS
# =============================================================================

def create_payment(*, payload: dict, actor: User) -> Payment:
    """
    Record a payment against an open invoice.

    The invoice row is locked while the remaining balance is checked so two
    concurrent collections cannot both fit into the same balance. After
    commit the invoice carries the trigger's paid_amount and status.

    Raises:
        ValidationError: bad input or amount above the remaining balance
        NotFoundError: invoice missing, paid, cancelled or not accessible
    """
    payload = payload or {}
    if payload.get("invoice_id") in (None, ""):
        raise ValidationError("Valid invoice ID is required")
    invoice_id = coerce_int(payload["invoice_id"], "invoice_id")
    require_range(invoice_id, "invoice_id", low=1)

    patch = validate_payload(model=Payment, payload=payload, policy=PAYMENT_POLICY, partial=False)
    _enforce_payment_rules(patch)

    invoice = _payable_invoice(invoice_id, actor, lock=True)
    remaining = _remaining_balance(invoice)
    if patch["amount"] > remaining:
        raise ValidationError(
            f"Payment amount (${patch['amount']}) exceeds remaining balance (${remaining:.2f})"
        )

    payment = Payment(invoice_id=invoice_id, collected_by=actor.user_id, **patch)
    db.session.add(payment)
    db.session.commit()
    return payment


def update_payment(*, payment_id: int, payload: dict, actor: User) -> Payment:
    payment = get_scoped_payment(payment_id, actor)
    patch = validate_payload(model=Payment, payload=payload, policy=PAYMENT_POLICY, partial=True)
    if not patch:
        raise ValidationError("No fields to update")
    _enforce_payment_rules(patch)

    if "amount" in patch:
        invoice = (
            lock_for_update(db.session.query(Invoice).filter(Invoice.invoice_id == payment.invoice_id))
            .populate_existing()
            .one()
        )
        other_payments = money((invoice.paid_amount or 0) - payment.amount)
        if other_payments + patch["amount"] > invoice.total_amount:
            raise ValidationError("Updated payment amount would exceed invoice total")

    for key, value in patch.items():
        setattr(payment, key, value)
    db.session.commit()
    return payment


def delete_payment(*, payment_id: int, actor: User) -> int:
    """Hard delete; the trigger recomputes the invoice. Returns the invoice id."""
    payment = get_scoped_payment(payment_id, actor)
    invoice_id = payment.invoice_id
    db.session.delete(payment)
    db.session.commit()
    return invoice_id


def bulk_create(*, payments, actor: User) -> dict:
    """
    Record many payments. Each one commits on its own, so one bad entry
    does not discard the others. Errors are reported by zero-based index.
    """
    if not isinstance(payments, list) or not payments:
        raise ValidationError("Payments array is required")

    results = {"successful": 0, "failed": 0, "errors": [], "payments": []}
    for index, raw in enumerate(payments):
        try:
            if not isinstance(raw, dict) or not all(
                raw.get(key) not in (None, "") for key in ("invoice_id", "amount", "payment_method")
            ):
                raise ValidationError("Invoice ID, amount, and payment method are required")
            payment = create_payment(payload=raw, actor=actor)
            results["successful"] += 1
            results["payments"].append(payment.to_dict())
        except (ValidationError, ConflictError, ServiceError) as e:
            db.session.rollback()
            results["failed"] += 1
            results["errors"].append({"index": index, "error": str(e)})
    return results


# =============================================================================
# REPORTING
# =============================================================================

def _sum_when(condition, value):
    return db.func.coalesce(db.func.sum(db.case((condition, value), else_=0)), 0)


def payment_summary(*, actor: User) -> dict:
    current = today()
    week_start = period_start("week", current)
    month_start = period_start("month", current)

    row = _collected_by_actor(
        db.session.query(
            db.func.count(Payment.payment_id),
            db.func.coalesce(db.func.sum(Payment.amount), 0),
            *[_sum_when(Payment.payment_method == method, 1) for method in PAYMENT_METHODS],
            _sum_when(Payment.payment_date == current, Payment.amount),
            _sum_when(Payment.payment_date == current, 1),
            _sum_when(Payment.payment_date >= week_start, Payment.amount),
            _sum_when(Payment.payment_date >= month_start, Payment.amount),
            db.func.avg(Payment.amount),
        ),
        actor,
    ).one()

    total, collected, *method_counts, today_amount, today_count, week_amount, month_amount, average = row
    data = {
        "total_payments": to_int(total),
        "total_amount_collected": to_float(collected),
    }
    for method, count in zip(PAYMENT_METHODS, method_counts):
        data[f"{method}_payments"] = to_int(count)
    data.update({
        "today_collections": to_float(today_amount),
        "today_payment_count": to_int(today_count),
        "week_collections": to_float(week_amount),
        "month_collections": to_float(month_amount),
        "average_payment_amount": to_float(money(average)) if average is not None else 0.0,
    })
    return data


def method_summary(*, actor: User, period: str = "month") -> list[dict]:
    if period not in METHOD_PERIODS:
        raise ValidationError(f"period must be one of: {', '.join(METHOD_PERIODS)}")

    query = _collected_by_actor(
        db.session.query(
            Payment.payment_method,
            db.func.count(Payment.payment_id),
            db.func.coalesce(db.func.sum(Payment.amount), 0),
            db.func.avg(Payment.amount),
        ),
        actor,
    )
    since = period_start(period)
    if since is not None:
        query = query.filter(Payment.payment_date >= since)
    rows = query.group_by(Payment.payment_method).all()

    grand_count = sum(to_int(count) for _, count, _, _ in rows)
    result = [
        {
            "payment_method": method,
            "payment_count": to_int(count),
            "total_amount": to_float(amount),
            "average_amount": to_float(money(avg)) if avg is not None else 0.0,
            "percentage_of_payments": round(to_int(count) * 100 / grand_count, 2) if grand_count else 0.0,
        }
        for method, count, amount, avg in rows
    ]
    result.sort(key=lambda r: r["total_amount"], reverse=True)
    return result


def recent_payments(*, actor: User, limit: int = RECENT_LIMIT) -> list[dict]:
    rows = (
        _collected_by_actor(_listing_query(), actor)
        .order_by(Payment.created_at.desc(), Payment.payment_id.desc())
        .limit(limit)
        .all()
    )
    return [_listing_row(*row) for row in rows]


def validate_amount(*, payload: dict, actor: User) -> dict:
    """Dry-run a payment amount against an invoice's remaining balance."""
    payload = payload or {}
    if payload.get("invoice_id") in (None, "") or payload.get("amount") in (None, ""):
        raise ValidationError("Invoice ID and amount are required")
    invoice_id = coerce_int(payload["invoice_id"], "invoice_id")
    amount = money(to_decimal(payload["amount"], "amount"))

    invoice = _payable_invoice(invoice_id, actor)
    remaining = _remaining_balance(invoice)
    return {
        "invoice": invoice.to_dict(),
        "validation": {
            "valid": Decimal("0") < amount <= remaining,
            "remaining_balance": to_float(remaining),
            "payment_amount": to_float(amount),
            "will_be_fully_paid": amount == remaining,
            "excess_amount": to_float(amount - remaining) if amount > remaining else 0.0,
        },
    }
