from __future__ import annotations

from ..extensions import db
from ..models import User, SalesStaffDistributor
from .errors import AccessDeniedError

DISTRIBUTOR_NOT_ASSIGNED = "Access denied: Distributor not assigned to you"


def assigned_distributor_ids_query(user_id: int):
    """SELECT of distributor ids actively assigned to a sales staff user (usable in IN)."""
    return db.select(SalesStaffDistributor.distributor_id).where(
        SalesStaffDistributor.sales_staff_id == user_id,
        SalesStaffDistributor.is_active.is_(True),
    )


def user_can_access_distributor(user: User, distributor_id: int | None) -> bool:
    """Admins see every distributor; sales staff only their active assignments."""
    if distributor_id is None:
        return False
    if user.is_admin:
        return True
    return (
        db.session.query(SalesStaffDistributor.assignment_id)
        .filter_by(sales_staff_id=user.user_id, distributor_id=distributor_id, is_active=True)
        .first()
        is not None
    )


def require_distributor_access(user: User, distributor_id: int) -> None:
    if not user_can_access_distributor(user, distributor_id):
        raise AccessDeniedError(DISTRIBUTOR_NOT_ASSIGNED)
