# Overview: Flask API routes for payments operations; parses input and returns JSON responses.

# backend/app/routes/payments.py
"""
Payment collection API routes.

Recording, editing or deleting a payment fires the paid-amount trigger, so
every response that carries an invoice shows the recomputed paid_amount
and status.
"""

from flask import Blueprint, request, g

from ..services import payment_service
from ..services.errors import ServiceError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth
from ..responses import ok, created, error_response, page_args, paginated

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.get("")
@require_auth
def list_payments():
    """
    Query params:
    - search: invoice number, distributor name, check number or reference
    - payment_method: cash | check | bank_transfer | online
    - invoice_id
    - start_date, end_date: payment_date range (inclusive)
    - page, limit
    """
    page, limit = page_args()
    try:
        items, total = payment_service.list_payments(
            actor=g.current_user,
            page=page,
            limit=limit,
            search=request.args.get("search"),
            payment_method=request.args.get("payment_method") or None,
            invoice_id=request.args.get("invoice_id", type=int),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        )
    except ValidationError as e:
        return error_response(e)
    return paginated("payments", items, page=page, limit=limit, total=total)


@payments_bp.get("/pending/invoices")
@require_auth
def pending_invoices():
    limit = request.args.get("limit", type=int) or payment_service.PENDING_LIMIT
    return ok(payment_service.pending_invoices(
        actor=g.current_user,
        limit=min(max(limit, 1), 500),
        distributor_id=request.args.get("distributor_id", type=int),
    ))


@payments_bp.get("/stats/summary")
@require_auth
def payment_summary():
    return ok(payment_service.payment_summary(actor=g.current_user))


@payments_bp.get("/methods/summary")
@require_auth
def method_summary():
    try:
        return ok(payment_service.method_summary(
            actor=g.current_user,
            period=request.args.get("period", "month"),
        ))
    except ValidationError as e:
        return error_response(e)


@payments_bp.get("/recent")
@require_auth
def recent_payments():
    limit = request.args.get("limit", type=int) or payment_service.RECENT_LIMIT
    return ok(payment_service.recent_payments(actor=g.current_user, limit=min(max(limit, 1), 100)))


@payments_bp.get("/invoice/<int:invoice_id>")
@require_auth
def invoice_payments(invoice_id: int):
    try:
        return ok(payment_service.invoice_payments(invoice_id=invoice_id, actor=g.current_user))
    except ServiceError as e:
        return error_response(e)


@payments_bp.post("/validate-amount")
@require_auth
def validate_amount():
    try:
        return ok(payment_service.validate_amount(
            payload=request.get_json(silent=True) or {},
            actor=g.current_user,
        ))
    except (ValidationError, ServiceError) as e:
        return error_response(e)


@payments_bp.get("/<int:payment_id>")
@require_auth
def get_payment(payment_id: int):
    try:
        return ok(payment_service.get_payment_detail(payment_id=payment_id, actor=g.current_user))
    except ServiceError as e:
        return error_response(e)


@payments_bp.post("")
@require_auth
def create_payment():
    try:
        payment = payment_service.create_payment(
            payload=request.get_json(silent=True) or {},
            actor=g.current_user,
        )
    except (ValidationError, ConflictError, ServiceError) as e:
        return error_response(e)
    return created(payment_service.payment_detail(payment), message="Payment recorded successfully")


@payments_bp.post("/bulk")
@require_auth
def bulk_create():
    data = request.get_json(silent=True) or {}
    try:
        results = payment_service.bulk_create(payments=data.get("payments"), actor=g.current_user)
    except ValidationError as e:
        return error_response(e)
    return ok(
        results,
        message=f"Bulk payment completed. {results['successful']} successful, {results['failed']} failed.",
    )


@payments_bp.put("/<int:payment_id>")
@require_auth
def update_payment(payment_id: int):
    try:
        payment = payment_service.update_payment(
            payment_id=payment_id,
            payload=request.get_json(silent=True) or {},
            actor=g.current_user,
        )
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    return ok(payment_service.payment_detail(payment), message="Payment updated successfully")


@payments_bp.delete("/<int:payment_id>")
@require_auth
def delete_payment(payment_id: int):
    try:
        payment_service.delete_payment(payment_id=payment_id, actor=g.current_user)
    except ServiceError as e:
        return error_response(e)
    return ok(message="Payment cancelled successfully")
