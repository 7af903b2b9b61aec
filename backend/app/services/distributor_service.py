# Overview: Service-layer operations for distributors; encapsulates business logic and database work.

"""
Distributor Service

Distributors are the customers invoices are issued to. Each one carries a
list of contacts and a set of sales staff assignments.

DESIGN:
- Soft delete only (is_active); invoices keep pointing at deactivated rows
- Sales staff reads are scoped to their active assignments
- Replacing contacts / assigned staff happens in the same transaction as
  the distributor update
"""
from __future__ import annotations

from ..extensions import db
from ..models import (
    Distributor,
    DistributorContact,
    SalesStaffDistributor,
    User,
    Invoice,
    OPEN_STATUSES,
)
from ..formatting import to_float, to_int
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    validate_payload,
    enforce_rules_contact,
    to_int as coerce_int,
)
from app.time_utils import today
from .access_service import assigned_distributor_ids_query, require_distributor_access
from .errors import NotFoundError

DISTRIBUTOR_POLICY = ModelValidationPolicy(
    writable_fields={
        "distributor_name", "address", "city", "state", "postal_code",
        "ntn_number", "primary_contact_person", "primary_whatsapp_number",
    },
    required_on_create={"distributor_name", "primary_contact_person"},
)

CONTACT_POLICY = ModelValidationPolicy(
    writable_fields={
        "contact_person_name", "whatsapp_number", "phone_number",
        "email", "designation", "is_primary",
    },
    required_on_create={"contact_person_name"},
)

SUGGESTION_LIMIT = 10


class DistributorNotFoundError(NotFoundError):
    """Raised when a distributor is not found."""

    def __init__(self, message: str = "Distributor not found"):
        super().__init__(message)


def get_distributor_or_404(distributor_id: int) -> Distributor:
    distributor = db.session.get(Distributor, distributor_id)
    if not distributor:
        raise DistributorNotFoundError()
    return distributor


def _scoped_query(actor: User):
    query = db.session.query(Distributor)
    if not actor.is_admin:
        query = query.filter(
            Distributor.distributor_id.in_(assigned_distributor_ids_query(actor.user_id))
        )
    return query


def _invoice_stats(distributor_id: int) -> dict:
    row = (
        db.session.query(
            db.func.count(Invoice.invoice_id),
            db.func.coalesce(db.func.sum(Invoice.total_amount), 0),
            db.func.coalesce(db.func.sum(Invoice.paid_amount), 0),
            db.func.coalesce(
                db.func.sum(db.case((Invoice.status.in_(OPEN_STATUSES), 1), else_=0)), 0
            ),
        )
        .filter(Invoice.distributor_id == distributor_id, Invoice.status != "cancelled")
        .one()
    )
    total_amount = to_float(row[1])
    paid_amount = to_float(row[2])
    return {
        "total_invoices": to_int(row[0]),
        "total_amount": total_amount,
        "paid_amount": paid_amount,
        "outstanding_amount": round(total_amount - paid_amount, 2),
        "pending_invoices": to_int(row[3]),
    }


def _assigned_staff(distributor_id: int, *, active_only: bool = True) -> list[dict]:
    query = (
        db.session.query(SalesStaffDistributor, User)
        .join(User, User.user_id == SalesStaffDistributor.sales_staff_id)
        .filter(SalesStaffDistributor.distributor_id == distributor_id)
    )
    if active_only:
        query = query.filter(SalesStaffDistributor.is_active.is_(True))
    rows = query.order_by(User.full_name.asc()).all()
    return [
        {
            "sales_staff_id": user.user_id,
            "full_name": user.full_name,
            "email": user.email,
            "phone_number": user.phone_number,
            "assigned_date": assignment.to_dict()["assigned_date"],
            "is_active": assignment.is_active,
        }
        for assignment, user in rows
    ]


def list_distributors(
    *,
    actor: User,
    page: int,
    limit: int,
    search: str | None = None,
    city: str | None = None,
    is_active: bool | None = None,
) -> tuple[list[dict], int]:
    query = _scoped_query(actor)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Distributor.distributor_name.ilike(pattern),
            Distributor.primary_contact_person.ilike(pattern),
        ))
    if city:
        query = query.filter(Distributor.city.ilike(f"%{city.strip()}%"))
    if is_active is not None:
        query = query.filter(Distributor.is_active.is_(is_active))

    total = query.count()
    distributors = (
        query.order_by(Distributor.created_at.desc(), Distributor.distributor_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    ids = [d.distributor_id for d in distributors]
    contact_counts = dict(
        db.session.query(DistributorContact.distributor_id, db.func.count(DistributorContact.contact_id))
        .filter(DistributorContact.distributor_id.in_(ids))
        .group_by(DistributorContact.distributor_id)
        .all()
    ) if ids else {}
    staff_counts = dict(
        db.session.query(SalesStaffDistributor.distributor_id, db.func.count(SalesStaffDistributor.assignment_id))
        .filter(
            SalesStaffDistributor.distributor_id.in_(ids),
            SalesStaffDistributor.is_active.is_(True),
        )
        .group_by(SalesStaffDistributor.distributor_id)
        .all()
    ) if ids else {}

    items = []
    for d in distributors:
        data = d.to_dict()
        data["created_by_name"] = d.creator.full_name if d.creator else None
        data["contacts_count"] = to_int(contact_counts.get(d.distributor_id))
        data["assigned_staff_count"] = to_int(staff_counts.get(d.distributor_id))
        items.append(data)
    return items, total


def get_distributor_detail(*, distributor_id: int, actor: User) -> dict:
    distributor = get_distributor_or_404(distributor_id)
    require_distributor_access(actor, distributor_id)

    data = distributor.to_dict()
    data["created_by_name"] = distributor.creator.full_name if distributor.creator else None
    data["contacts"] = [c.to_dict() for c in distributor.contacts]
    data["assigned_staff"] = _assigned_staff(distributor_id)
    data.update(_invoice_stats(distributor_id))
    return data


def _build_contacts(raw_contacts) -> list[DistributorContact]:
    if raw_contacts is None:
        return []
    if not isinstance(raw_contacts, list):
        raise ValidationError("contacts must be a list")
    contacts = []
    for raw in raw_contacts:
        patch = validate_payload(model=DistributorContact, payload=raw, policy=CONTACT_POLICY, partial=False)
        enforce_rules_contact(patch)
        contacts.append(DistributorContact(**patch))
    return contacts


def _validated_staff_ids(raw_ids) -> list[int]:
    if raw_ids is None:
        return []
    if not isinstance(raw_ids, list):
        raise ValidationError("assigned_staff must be a list of user ids")
    staff_ids = []
    for raw in raw_ids:
        staff_id = coerce_int(raw, "assigned_staff")
        if staff_id not in staff_ids:
            staff_ids.append(staff_id)
    if not staff_ids:
        return []

    found = {
        row[0]
        for row in db.session.query(User.user_id).filter(
            User.user_id.in_(staff_ids),
            User.role == "sales_staff",
            User.is_active.is_(True),
        )
    }
    missing = [i for i in staff_ids if i not in found]
    if missing:
        raise ValidationError(
            f"Invalid sales staff id(s): {', '.join(str(i) for i in missing)}"
        )
    return staff_ids


def _activate_assignment(distributor_id: int, staff_id: int) -> SalesStaffDistributor:
    """Upsert an assignment as active with today's date."""
    assignment = (
        db.session.query(SalesStaffDistributor)
        .filter_by(sales_staff_id=staff_id, distributor_id=distributor_id)
        .first()
    )
    if assignment is None:
        assignment = SalesStaffDistributor(sales_staff_id=staff_id, distributor_id=distributor_id)
        db.session.add(assignment)
    assignment.is_active = True
    assignment.assigned_date = today()
    return assignment


def create_distributor(*, payload: dict, actor: User) -> Distributor:
    """
    Create a distributor together with its contacts and staff assignments.

    All rows are written in one transaction.
    """
    patch = validate_payload(model=Distributor, payload=payload, policy=DISTRIBUTOR_POLICY, partial=False)
    contacts = _build_contacts(payload.get("contacts"))
    staff_ids = _validated_staff_ids(payload.get("assigned_staff"))

    distributor = Distributor(created_by=actor.user_id, **patch)
    distributor.contacts = contacts
    db.session.add(distributor)
    db.session.flush()

    for staff_id in staff_ids:
        _activate_assignment(distributor.distributor_id, staff_id)

    db.session.commit()
    return distributor


def update_distributor(*, distributor_id: int, payload: dict) -> Distributor:
    """
    Partial update. ``contacts`` replaces every contact; ``assigned_staff``
    deactivates all current assignments and re-activates the listed ones.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    distributor = get_distributor_or_404(distributor_id)

    patch = validate_payload(model=Distributor, payload=payload, policy=DISTRIBUTOR_POLICY, partial=True)
    has_contacts = "contacts" in payload
    has_staff = "assigned_staff" in payload
    if not patch and not has_contacts and not has_staff:
        raise ValidationError("No fields to update")

    contacts = _build_contacts(payload.get("contacts")) if has_contacts else None
    staff_ids = _validated_staff_ids(payload.get("assigned_staff")) if has_staff else None

    for key, value in patch.items():
        setattr(distributor, key, value)

    if contacts is not None:
        distributor.contacts = contacts

    if staff_ids is not None:
        (
            db.session.query(SalesStaffDistributor)
            .filter_by(distributor_id=distributor_id)
            .update({"is_active": False}, synchronize_session="fetch")
        )
        for staff_id in staff_ids:
            _activate_assignment(distributor_id, staff_id)

    db.session.commit()
    return distributor


def set_distributor_active(*, distributor_id: int, active: bool) -> Distributor:
    distributor = get_distributor_or_404(distributor_id)
    distributor.is_active = active
    db.session.commit()
    return distributor


# =============================================================================
# CONTACTS
# =============================================================================

def list_contacts(*, distributor_id: int, actor: User) -> list[dict]:
    distributor = get_distributor_or_404(distributor_id)
    require_distributor_access(actor, distributor_id)
    return [c.to_dict() for c in distributor.contacts]


def _clear_other_primaries(distributor_id: int, keep_contact_id: int | None) -> None:
    query = db.session.query(DistributorContact).filter(
        DistributorContact.distributor_id == distributor_id,
        DistributorContact.is_primary.is_(True),
    )
    if keep_contact_id is not None:
        query = query.filter(DistributorContact.contact_id != keep_contact_id)
    for contact in query.all():
        contact.is_primary = False


def add_contact(*, distributor_id: int, payload: dict) -> DistributorContact:
    get_distributor_or_404(distributor_id)
    patch = validate_payload(model=DistributorContact, payload=payload, policy=CONTACT_POLICY, partial=False)
    enforce_rules_contact(patch)

    contact = DistributorContact(distributor_id=distributor_id, **patch)
    db.session.add(contact)
    db.session.flush()
    if contact.is_primary:
        _clear_other_primaries(distributor_id, contact.contact_id)
    db.session.commit()
    return contact


def _get_contact_or_404(distributor_id: int, contact_id: int) -> DistributorContact:
    contact = (
        db.session.query(DistributorContact)
        .filter_by(distributor_id=distributor_id, contact_id=contact_id)
        .first()
    )
    if not contact:
        raise NotFoundError("Contact not found")
    return contact


def update_contact(*, distributor_id: int, contact_id: int, payload: dict) -> DistributorContact:
    contact = _get_contact_or_404(distributor_id, contact_id)
    patch = validate_payload(model=DistributorContact, payload=payload, policy=CONTACT_POLICY, partial=True)
    if not patch:
        raise ValidationError("No fields to update")
    enforce_rules_contact(patch)

    for key, value in patch.items():
        setattr(contact, key, value)
    if patch.get("is_primary"):
        _clear_other_primaries(distributor_id, contact.contact_id)
    db.session.commit()
    return contact


def delete_contact(*, distributor_id: int, contact_id: int) -> None:
    contact = _get_contact_or_404(distributor_id, contact_id)
    db.session.delete(contact)
    db.session.commit()


# =============================================================================
# STAFF ASSIGNMENTS
# =============================================================================

def list_staff(*, distributor_id: int, actor: User) -> list[dict]:
    get_distributor_or_404(distributor_id)
    require_distributor_access(actor, distributor_id)
    return _assigned_staff(distributor_id)


def assign_staff(*, distributor_id: int, staff_ids) -> list[dict]:
    """Add assignments without touching existing ones."""
    get_distributor_or_404(distributor_id)
    ids = _validated_staff_ids(staff_ids)
    if not ids:
        raise ValidationError("staff_ids must be a non-empty list")
    for staff_id in ids:
        _activate_assignment(distributor_id, staff_id)
    db.session.commit()
    return _assigned_staff(distributor_id)


def unassign_staff(*, distributor_id: int, staff_id: int) -> None:
    assignment = (
        db.session.query(SalesStaffDistributor)
        .filter_by(distributor_id=distributor_id, sales_staff_id=staff_id, is_active=True)
        .first()
    )
    if not assignment:
        raise NotFoundError("Assignment not found")
    assignment.is_active = False
    db.session.commit()


# =============================================================================
# STATS & SEARCH
# =============================================================================

def get_distributor_stats(*, distributor_id: int, actor: User) -> dict:
    get_distributor_or_404(distributor_id)
    require_distributor_access(actor, distributor_id)

    stats = _invoice_stats(distributor_id)
    last_invoice = (
        db.session.query(db.func.max(Invoice.invoice_date))
        .filter(Invoice.distributor_id == distributor_id)
        .scalar()
    )
    overdue = (
        db.session.query(db.func.count(Invoice.invoice_id))
        .filter(
            Invoice.distributor_id == distributor_id,
            Invoice.status.in_(OPEN_STATUSES),
            Invoice.due_date < today(),
        )
        .scalar()
    )
    stats["overdue_invoices"] = to_int(overdue)
    stats["last_invoice_date"] = last_invoice.isoformat() if last_invoice else None
    return stats


def search_suggestions(*, q: str | None, actor: User) -> list[dict]:
    term = (q or "").strip()
    if len(term) < 2:
        return []
    rows = (
        _scoped_query(actor)
        .filter(
            Distributor.is_active.is_(True),
            db.or_(
                Distributor.distributor_name.ilike(f"%{term}%"),
                Distributor.primary_contact_person.ilike(f"%{term}%"),
            ),
        )
        .order_by(Distributor.distributor_name.asc())
        .limit(SUGGESTION_LIMIT)
        .all()
    )
    return [
        {
            "distributor_id": d.distributor_id,
            "distributor_name": d.distributor_name,
            "city": d.city,
            "primary_contact_person": d.primary_contact_person,
        }
        for d in rows
    ]
