from __future__ import annotations

from ..extensions import db
from app.formatting import to_float
from app.time_utils import to_utc_z, to_iso_date


class User(db.Model):
    """
    User accounts for authentication and attribution.

    Two roles exist: ``admin`` (full access) and ``sales_staff`` (restricted to
    the distributors assigned to them through SalesStaffDistributor).
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_active", "role", "is_active"),
        {"sqlite_autoincrement": True},
    )

    user_id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(50), nullable=False, unique=True)
    email = db.Column(db.String(255), nullable=False, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.String(20), nullable=False, default="sales_staff")
    full_name = db.Column(db.String(100), nullable=False)
    phone_number = db.Column(db.String(20), nullable=True)
    address = db.Column(db.Text, nullable=True)
    id_card_number = db.Column(db.String(20), nullable=True)
    date_of_birth = db.Column(db.Date, nullable=True)
    profile_image_url = db.Column(db.String(500), nullable=True)

    # HR fields, admin-writable only
    hire_date = db.Column(db.Date, nullable=True)
    salary = db.Column(db.Numeric(12, 2), nullable=True)
    commission_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "username": self.username,
            "email": self.email,
            "role": self.role,
            "full_name": self.full_name,
            "phone_number": self.phone_number,
            "address": self.address,
            "id_card_number": self.id_card_number,
            "date_of_birth": to_iso_date(self.date_of_birth),
            "profile_image_url": self.profile_image_url,
            "hire_date": to_iso_date(self.hire_date),
            "salary": to_float(self.salary),
            "commission_rate": to_float(self.commission_rate),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<User {self.username} ({self.role})>"
