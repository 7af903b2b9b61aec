from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date, today


class Distributor(db.Model):
    """
    A business customer that receives invoices.

    Soft-deleted via is_active. Sales staff only see distributors assigned to
    them (see SalesStaffDistributor).
    """
    __tablename__ = "distributors"
    __table_args__ = (
        db.Index("ix_distributors_name", "distributor_name"),
        db.Index("ix_distributors_city_active", "city", "is_active"),
        {"sqlite_autoincrement": True},
    )

    distributor_id = db.Column(db.Integer, primary_key=True)
    distributor_name = db.Column(db.String(200), nullable=False)

    address = db.Column(db.String(500), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(100), nullable=True)
    postal_code = db.Column(db.String(20), nullable=True)

    # National Tax Number
    ntn_number = db.Column(db.String(50), nullable=True)

    primary_contact_person = db.Column(db.String(100), nullable=False)
    primary_whatsapp_number = db.Column(db.String(20), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    creator = db.relationship("User", foreign_keys=[created_by])
    contacts = db.relationship(
        "DistributorContact",
        backref="distributor",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="[DistributorContact.is_primary.desc(), DistributorContact.contact_id]",
    )

    def to_dict(self) -> dict:
        return {
            "distributor_id": self.distributor_id,
            "distributor_name": self.distributor_name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "ntn_number": self.ntn_number,
            "primary_contact_person": self.primary_contact_person,
            "primary_whatsapp_number": self.primary_whatsapp_number,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class DistributorContact(db.Model):
    """Additional contact people for a distributor (hard delete)."""
    __tablename__ = "distributor_contacts"
    __table_args__ = {"sqlite_autoincrement": True}

    contact_id = db.Column(db.Integer, primary_key=True)
    distributor_id = db.Column(
        db.Integer,
        db.ForeignKey("distributors.distributor_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    contact_person_name = db.Column(db.String(100), nullable=False)
    whatsapp_number = db.Column(db.String(20), nullable=True)
    phone_number = db.Column(db.String(20), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    designation = db.Column(db.String(100), nullable=True)
    is_primary = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "contact_id": self.contact_id,
            "distributor_id": self.distributor_id,
            "contact_person_name": self.contact_person_name,
            "whatsapp_number": self.whatsapp_number,
            "phone_number": self.phone_number,
            "email": self.email,
            "designation": self.designation,
            "is_primary": self.is_primary,
        }


class SalesStaffDistributor(db.Model):
    """
    Assignment of a sales staff user to a distributor.

    Rows are never deleted by reassignment; they are deactivated and
    re-activated so the assignment history survives.
    """
    __tablename__ = "sales_staff_distributors"
    __table_args__ = (
        db.UniqueConstraint("sales_staff_id", "distributor_id", name="uq_staff_distributor"),
        db.Index("ix_staff_distributor_active", "sales_staff_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    assignment_id = db.Column(db.Integer, primary_key=True)
    sales_staff_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    distributor_id = db.Column(db.Integer, db.ForeignKey("distributors.distributor_id"), nullable=False, index=True)
    assigned_date = db.Column(db.Date, nullable=False, default=today)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    sales_staff = db.relationship("User", backref=db.backref("assignments", lazy=True))
    distributor = db.relationship("Distributor", backref=db.backref("assignments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "assignment_id": self.assignment_id,
            "sales_staff_id": self.sales_staff_id,
            "distributor_id": self.distributor_id,
            "assigned_date": to_iso_date(self.assigned_date),
            "is_active": self.is_active,
        }
