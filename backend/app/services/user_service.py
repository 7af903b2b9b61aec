# Overview: Service-layer operations for user administration.

"""
User administration.

Users are never deleted: deactivation flips is_active, which also blocks
login and invalidates outstanding tokens (require_auth rejects inactive users).
"""
from __future__ import annotations

from ..extensions import db
from ..models import User, SalesStaffDistributor, Distributor
from ..validation import (
    USER_ROLES,
    ModelValidationPolicy,
    ValidationError,
    ConflictError,
    validate_payload,
    enforce_rules_user,
)
from .auth_service import hash_password
from .errors import NotFoundError, AccessDeniedError

PROFILE_FIELDS = {
    "username", "email", "full_name", "phone_number", "address",
    "id_card_number", "date_of_birth", "profile_image_url",
}
ADMIN_ONLY_FIELDS = {"hire_date", "salary", "commission_rate", "role"}

USER_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=PROFILE_FIELDS | ADMIN_ONLY_FIELDS,
    required_on_create={"username", "email", "full_name", "role"},
)


def _assignment_count_subquery():
    return (
        db.session.query(
            SalesStaffDistributor.sales_staff_id.label("staff_id"),
            db.func.count(SalesStaffDistributor.assignment_id).label("assigned_count"),
        )
        .filter(SalesStaffDistributor.is_active.is_(True))
        .group_by(SalesStaffDistributor.sales_staff_id)
        .subquery()
    )


def _ensure_unique(*, username: str | None, email: str | None, exclude_id: int | None = None) -> None:
    conditions = []
    if username:
        conditions.append(User.username == username)
    if email:
        conditions.append(db.func.lower(User.email) == email.lower())
    if not conditions:
        return
    query = db.session.query(User.user_id).filter(db.or_(*conditions))
    if exclude_id is not None:
        query = query.filter(User.user_id != exclude_id)
    if query.first() is not None:
        raise ConflictError("Username or email already exists")


def get_user_or_404(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users(
    *,
    page: int,
    limit: int,
    search: str | None = None,
    role: str | None = None,
) -> tuple[list[dict], int]:
    if role and role not in USER_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(USER_ROLES)}")

    counts = _assignment_count_subquery()
    query = (
        db.session.query(User, db.func.coalesce(counts.c.assigned_count, 0))
        .outerjoin(counts, counts.c.staff_id == User.user_id)
    )

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            User.full_name.ilike(pattern),
            User.email.ilike(pattern),
            User.username.ilike(pattern),
        ))
    if role:
        query = query.filter(User.role == role)

    total = query.count()
    rows = (
        query.order_by(User.created_at.desc(), User.user_id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    items = []
    for user, assigned in rows:
        data = user.to_dict()
        data["assigned_distributors_count"] = int(assigned or 0)
        items.append(data)
    return items, total


def get_user_detail(*, user_id: int, actor: User) -> dict:
    if not actor.is_admin and actor.user_id != user_id:
        raise AccessDeniedError("Access denied")

    user = get_user_or_404(user_id)
    data = user.to_dict()

    assignments = (
        db.session.query(SalesStaffDistributor, Distributor)
        .join(Distributor, Distributor.distributor_id == SalesStaffDistributor.distributor_id)
        .filter(
            SalesStaffDistributor.sales_staff_id == user_id,
            SalesStaffDistributor.is_active.is_(True),
        )
        .order_by(Distributor.distributor_name.asc())
        .all()
    )
    data["assigned_distributors"] = [
        {
            "distributor_id": d.distributor_id,
            "distributor_name": d.distributor_name,
            "city": d.city,
            "assigned_date": a.to_dict()["assigned_date"],
        }
        for a, d in assignments
    ]
    return data


def create_user(payload: dict) -> User:
    """
    Create a user from an API payload (admin only).

    Raises ValidationError on bad input and ConflictError when username or
    email is taken.
    """
    patch = validate_payload(model=User, payload=payload, policy=USER_CREATE_POLICY, partial=False)
    enforce_rules_user(patch, creating=True)

    password = payload.get("password")
    password_hash = hash_password(password or "")

    _ensure_unique(username=patch["username"], email=patch["email"])

    user = User(password_hash=password_hash, **patch)
    if user.commission_rate is None:
        user.commission_rate = 0
    db.session.add(user)
    db.session.commit()
    return user


def update_user(*, user_id: int, payload: dict, actor: User) -> User:
    """
    Update a profile. Admins may update anyone (including HR fields);
    other users only themselves and only profile fields.
    """
    if not actor.is_admin and actor.user_id != user_id:
        raise AccessDeniedError("Access denied")

    allowed = PROFILE_FIELDS | (ADMIN_ONLY_FIELDS if actor.is_admin else set())
    policy = ModelValidationPolicy(writable_fields=allowed)
    patch = validate_payload(model=User, payload=payload, policy=policy, partial=True)
    if not patch:
        raise ValidationError("No fields to update")
    enforce_rules_user(patch, creating=False)

    user = get_user_or_404(user_id)
    _ensure_unique(username=patch.get("username"), email=patch.get("email"), exclude_id=user.user_id)

    for key, value in patch.items():
        setattr(user, key, value)
    db.session.commit()
    return user


def deactivate_user(*, user_id: int, actor: User) -> User:
    if actor.user_id == user_id:
        raise ValidationError("Cannot deactivate your own account")
    user = get_user_or_404(user_id)
    user.is_active = False
    db.session.commit()
    return user


def activate_user(*, user_id: int) -> User:
    user = get_user_or_404(user_id)
    user.is_active = True
    db.session.commit()
    return user


def list_sales_staff() -> list[dict]:
    counts = _assignment_count_subquery()
    rows = (
        db.session.query(User, db.func.coalesce(counts.c.assigned_count, 0))
        .outerjoin(counts, counts.c.staff_id == User.user_id)
        .filter(User.role == "sales_staff", User.is_active.is_(True))
        .order_by(User.full_name.asc())
        .all()
    )
    return [
        {
            "user_id": u.user_id,
            "username": u.username,
            "full_name": u.full_name,
            "email": u.email,
            "phone_number": u.phone_number,
            "assigned_count": int(assigned or 0),
        }
        for u, assigned in rows
    ]
