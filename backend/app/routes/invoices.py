# Overview: Flask API routes for invoices; parses input and returns JSON responses.

# backend/app/routes/invoices.py
"""
Invoice routes.

Sales staff work only with invoices they issued; admins see everything.
Edits are limited to drafts, cancellation to unpaid draft/sent invoices.
"""

from flask import Blueprint, request, g

from ..services import invoice_service
from ..services.errors import ServiceError
from ..validation import ValidationError, ConflictError
from ..decorators import require_auth
from ..responses import ok, created, error_response, page_args, paginated

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _summary(invoice) -> dict:
    return {
        "invoice_id": invoice.invoice_id,
        "invoice_number": invoice.invoice_number,
        "status": invoice.status,
    }


@invoices_bp.get("")
@require_auth
def list_invoices():
    """
    Query params:
    - search: invoice number or distributor name
    - status, distributor_id
    - start_date, end_date: invoice_date range (YYYY-MM-DD, inclusive)
    - page, limit
    """
    page, limit = page_args()
    try:
        items, total = invoice_service.list_invoices(
            actor=g.current_user,
            page=page,
            limit=limit,
            search=request.args.get("search"),
            status=request.args.get("status") or None,
            distributor_id=request.args.get("distributor_id", type=int),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        )
    except ValidationError as e:
        return error_response(e)
    return paginated("invoices", items, page=page, limit=limit, total=total)


@invoices_bp.get("/number/next")
@require_auth
def next_number():
    return ok({"next_invoice_number": invoice_service.next_invoice_number()})


@invoices_bp.get("/stats/summary")
@require_auth
def invoice_summary():
    return ok(invoice_service.invoice_summary(actor=g.current_user))


@invoices_bp.get("/overdue/list")
@require_auth
def overdue_list():
    limit = request.args.get("limit", type=int) or invoice_service.OVERDUE_LIST_LIMIT
    return ok(invoice_service.overdue_invoices(actor=g.current_user, limit=min(max(limit, 1), 500)))


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice(invoice_id: int):
    try:
        return ok(invoice_service.get_invoice_detail(invoice_id=invoice_id, actor=g.current_user))
    except ServiceError as e:
        return error_response(e)


@invoices_bp.post("")
@require_auth
def create_invoice():
    try:
        invoice = invoice_service.create_invoice(
            payload=request.get_json(silent=True) or {},
            actor=g.current_user,
        )
    except (ValidationError, ConflictError, ServiceError) as e:
        return error_response(e)
    return created(
        invoice_service.get_invoice_detail(invoice_id=invoice.invoice_id, actor=g.current_user),
        message="Invoice created successfully",
    )


@invoices_bp.put("/<int:invoice_id>")
@require_auth
def update_invoice(invoice_id: int):
    try:
        invoice = invoice_service.update_invoice(
            invoice_id=invoice_id,
            payload=request.get_json(silent=True) or {},
            actor=g.current_user,
        )
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    return ok(invoice.to_dict(), message="Invoice updated successfully")


@invoices_bp.delete("/<int:invoice_id>")
@require_auth
def cancel_invoice(invoice_id: int):
    try:
        invoice = invoice_service.cancel_invoice(invoice_id=invoice_id, actor=g.current_user)
    except ServiceError as e:
        return error_response(e)
    return ok(_summary(invoice), message="Invoice cancelled successfully")


@invoices_bp.post("/<int:invoice_id>/send")
@require_auth
def send_invoice(invoice_id: int):
    try:
        invoice = invoice_service.send_invoice(invoice_id=invoice_id, actor=g.current_user)
    except ServiceError as e:
        return error_response(e)
    return ok(_summary(invoice), message="Invoice sent successfully")


@invoices_bp.get("/<int:invoice_id>/pdf")
@require_auth
def invoice_pdf(invoice_id: int):
    try:
        invoice = invoice_service.get_scoped_invoice(invoice_id, g.current_user)
    except ServiceError as e:
        return error_response(e)
    return ok(_summary(invoice), message="PDF generation is under development")


@invoices_bp.post("/<int:invoice_id>/duplicate")
@require_auth
def duplicate_invoice(invoice_id: int):
    try:
        invoice = invoice_service.duplicate_invoice(invoice_id=invoice_id, actor=g.current_user)
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    return created(invoice.to_dict(), message="Invoice duplicated successfully")
