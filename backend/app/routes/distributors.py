# Overview: Flask API routes for distributors operations; parses input and returns JSON responses.

# backend/app/routes/distributors.py
"""
Distributor routes.

Reads are open to every authenticated user but sales staff only see the
distributors assigned to them. Writes (distributor, contacts, staff
assignments) are admin-only.
"""

from flask import Blueprint, request, g

from ..services import distributor_service, invoice_service
from ..services.errors import ServiceError
from ..validation import ValidationError, ConflictError, to_bool
from ..decorators import require_auth, require_admin
from ..responses import ok, created, error_response, page_args, paginated

distributors_bp = Blueprint("distributors", __name__, url_prefix="/api/distributors")


def _optional_bool(name: str) -> bool | None:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return to_bool(raw)


@distributors_bp.get("")
@require_auth
def list_distributors():
    """
    Query params:
    - search: distributor name or primary contact
    - city
    - is_active: true | false
    - page, limit
    """
    page, limit = page_args()
    items, total = distributor_service.list_distributors(
        actor=g.current_user,
        page=page,
        limit=limit,
        search=request.args.get("search"),
        city=request.args.get("city"),
        is_active=_optional_bool("is_active"),
    )
    return paginated("distributors", items, page=page, limit=limit, total=total)


@distributors_bp.get("/search/suggestions")
@require_auth
def search_suggestions():
    return ok(distributor_service.search_suggestions(q=request.args.get("q"), actor=g.current_user))


@distributors_bp.get("/<int:distributor_id>")
@require_auth
def get_distributor(distributor_id: int):
    try:
        return ok(distributor_service.get_distributor_detail(
            distributor_id=distributor_id, actor=g.current_user,
        ))
    except ServiceError as e:
        return error_response(e)


@distributors_bp.post("")
@require_auth
@require_admin
def create_distributor():
    try:
        distributor = distributor_service.create_distributor(
            payload=request.get_json(silent=True) or {},
            actor=g.current_user,
        )
    except (ValidationError, ConflictError, ServiceError) as e:
        return error_response(e)
    return created(
        distributor_service.get_distributor_detail(
            distributor_id=distributor.distributor_id, actor=g.current_user,
        ),
        message="Distributor created successfully",
    )


@distributors_bp.put("/<int:distributor_id>")
@require_auth
@require_admin
def update_distributor(distributor_id: int):
    try:
        distributor = distributor_service.update_distributor(
            distributor_id=distributor_id,
            payload=request.get_json(silent=True) or {},
        )
    except (ValidationError, ConflictError, ServiceError) as e:
        return error_response(e)
    return ok(
        distributor_service.get_distributor_detail(
            distributor_id=distributor.distributor_id, actor=g.current_user,
        ),
        message="Distributor updated successfully",
    )


@distributors_bp.delete("/<int:distributor_id>")
@require_auth
@require_admin
def deactivate_distributor(distributor_id: int):
    try:
        distributor = distributor_service.set_distributor_active(distributor_id=distributor_id, active=False)
    except ServiceError as e:
        return error_response(e)
    return ok(distributor.to_dict(), message="Distributor deactivated successfully")


@distributors_bp.post("/<int:distributor_id>/activate")
@require_auth
@require_admin
def activate_distributor(distributor_id: int):
    try:
        distributor = distributor_service.set_distributor_active(distributor_id=distributor_id, active=True)
    except ServiceError as e:
        return error_response(e)
    return ok(distributor.to_dict(), message="Distributor activated successfully")


@distributors_bp.get("/<int:distributor_id>/invoices")
@require_auth
def list_distributor_invoices(distributor_id: int):
    page, limit = page_args()
    try:
        items, total = invoice_service.list_distributor_invoices(
            distributor_id=distributor_id,
            actor=g.current_user,
            page=page,
            limit=limit,
            status=request.args.get("status") or None,
        )
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    return paginated("invoices", items, page=page, limit=limit, total=total)


@distributors_bp.get("/<int:distributor_id>/stats")
@require_auth
def distributor_stats(distributor_id: int):
    try:
        return ok(distributor_service.get_distributor_stats(
            distributor_id=distributor_id, actor=g.current_user,
        ))
    except ServiceError as e:
        return error_response(e)


# =============================================================================
# CONTACTS
# =============================================================================

@distributors_bp.get("/<int:distributor_id>/contacts")
@require_auth
def list_contacts(distributor_id: int):
    try:
        return ok(distributor_service.list_contacts(distributor_id=distributor_id, actor=g.current_user))
    except ServiceError as e:
        return error_response(e)


@distributors_bp.post("/<int:distributor_id>/contacts")
@require_auth
@require_admin
def add_contact(distributor_id: int):
    try:
        contact = distributor_service.add_contact(
            distributor_id=distributor_id,
            payload=request.get_json(silent=True) or {},
        )
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    return created(contact.to_dict(), message="Contact added successfully")


@distributors_bp.put("/<int:distributor_id>/contacts/<int:contact_id>")
@require_auth
@require_admin
def update_contact(distributor_id: int, contact_id: int):
    try:
        contact = distributor_service.update_contact(
            distributor_id=distributor_id,
            contact_id=contact_id,
            payload=request.get_json(silent=True) or {},
        )
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    return ok(contact.to_dict(), message="Contact updated successfully")


@distributors_bp.delete("/<int:distributor_id>/contacts/<int:contact_id>")
@require_auth
@require_admin
def delete_contact(distributor_id: int, contact_id: int):
    try:
        distributor_service.delete_contact(distributor_id=distributor_id, contact_id=contact_id)
    except ServiceError as e:
        return error_response(e)
    return ok(message="Contact deleted successfully")


# =============================================================================
# STAFF ASSIGNMENTS
# =============================================================================

@distributors_bp.get("/<int:distributor_id>/staff")
@require_auth
def list_staff(distributor_id: int):
    try:
        return ok(distributor_service.list_staff(distributor_id=distributor_id, actor=g.current_user))
    except ServiceError as e:
        return error_response(e)


@distributors_bp.post("/<int:distributor_id>/staff")
@require_auth
@require_admin
def assign_staff(distributor_id: int):
    data = request.get_json(silent=True) or {}
    try:
        staff = distributor_service.assign_staff(distributor_id=distributor_id, staff_ids=data.get("staff_ids"))
    except (ValidationError, ServiceError) as e:
        return error_response(e)
    return ok(staff, message="Staff assigned successfully")


@distributors_bp.delete("/<int:distributor_id>/staff/<int:staff_id>")
@require_auth
@require_admin
def unassign_staff(distributor_id: int, staff_id: int):
    try:
        distributor_service.unassign_staff(distributor_id=distributor_id, staff_id=staff_id)
    except ServiceError as e:
        return error_response(e)
    return ok(message="Staff unassigned successfully")
