from __future__ import annotations

from ..extensions import db
from app.formatting import to_float
from app.time_utils import to_utc_z, to_iso_date, today


INVOICE_STATUSES = ("draft", "sent", "partial_paid", "paid", "overdue", "cancelled")

# Statuses that still expect money from the distributor
OPEN_STATUSES = ("sent", "partial_paid", "overdue")


class Invoice(db.Model):
    """
    Invoice document issued to a distributor by a sales staff member.

    paid_amount and status are maintained by database triggers on the
    payments table (see models/triggers.py); application code reads them
    but never writes them after creation.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_status_due", "status", "due_date"),
        db.Index("ix_invoices_staff_date", "sales_staff_id", "invoice_date"),
        db.Index("ix_invoices_distributor", "distributor_id"),
        {"sqlite_autoincrement": True},
    )

    invoice_id = db.Column(db.Integer, primary_key=True)

    # Human-readable number, e.g. "INV-202601-0001"
    invoice_number = db.Column(db.String(50), nullable=False, unique=True)

    distributor_id = db.Column(db.Integer, db.ForeignKey("distributors.distributor_id"), nullable=False)
    sales_staff_id = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)

    invoice_date = db.Column(db.Date, nullable=False, default=today)
    due_date = db.Column(db.Date, nullable=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0, server_default="0")

    status = db.Column(db.String(20), nullable=False, default="draft")
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    distributor = db.relationship("Distributor", backref=db.backref("invoices", lazy="dynamic"))
    sales_staff = db.relationship("User", backref=db.backref("invoices", lazy="dynamic"))
    items = db.relationship(
        "InvoiceItem",
        backref="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InvoiceItem.item_id",
    )

    @property
    def balance_amount(self):
        return (self.total_amount or 0) - (self.paid_amount or 0)

    @property
    def days_overdue(self) -> int:
        if self.status not in OPEN_STATUSES or self.due_date is None:
            return 0
        return max((today() - self.due_date).days, 0)

    def to_dict(self) -> dict:
        return {
            "invoice_id": self.invoice_id,
            "invoice_number": self.invoice_number,
            "distributor_id": self.distributor_id,
            "sales_staff_id": self.sales_staff_id,
            "invoice_date": to_iso_date(self.invoice_date),
            "due_date": to_iso_date(self.due_date),
            "subtotal": to_float(self.subtotal),
            "tax_amount": to_float(self.tax_amount),
            "discount_amount": to_float(self.discount_amount),
            "total_amount": to_float(self.total_amount),
            "paid_amount": to_float(self.paid_amount),
            "balance_amount": to_float(self.balance_amount),
            "status": self.status,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InvoiceItem(db.Model):
    """Invoice line. line_total is computed at insert time and never re-derived."""
    __tablename__ = "invoice_items"
    __table_args__ = {"sqlite_autoincrement": True}

    item_id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(
        db.Integer,
        db.ForeignKey("invoices.invoice_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.product_id"), nullable=False, index=True)

    quantity = db.Column(db.Numeric(10, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        product = self.product
        return {
            "item_id": self.item_id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "product_name": product.product_name if product else None,
            "product_code": product.product_code if product else None,
            "unit_of_measure": product.unit_of_measure if product else None,
            "quantity": to_float(self.quantity),
            "unit_price": to_float(self.unit_price),
            "discount_percentage": to_float(self.discount_percentage),
            "tax_rate": to_float(self.tax_rate),
            "line_total": to_float(self.line_total),
        }


class Payment(db.Model):
    """
    Money collected against an invoice.

    Inserting, updating or deleting a payment fires the paid-amount trigger
    which recomputes invoices.paid_amount and invoices.status.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_invoice", "invoice_id"),
        db.Index("ix_payments_collector_date", "collected_by", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    payment_id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.invoice_id"), nullable=False)

    payment_date = db.Column(db.Date, nullable=False, default=today)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    # cash, check, bank_transfer, online
    payment_method = db.Column(db.String(20), nullable=False)
    check_number = db.Column(db.String(50), nullable=True)
    bank_name = db.Column(db.String(100), nullable=True)
    transaction_reference = db.Column(db.String(100), nullable=True)
    receipt_image_url = db.Column(db.String(500), nullable=True)

    collected_by = db.Column(db.Integer, db.ForeignKey("users.user_id"), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    invoice = db.relationship("Invoice", backref=db.backref("payments", lazy=True, order_by="Payment.payment_id"))
    collector = db.relationship("User", foreign_keys=[collected_by])

    def to_dict(self) -> dict:
        return {
            "payment_id": self.payment_id,
            "invoice_id": self.invoice_id,
            "payment_date": to_iso_date(self.payment_date),
            "amount": to_float(self.amount),
            "payment_method": self.payment_method,
            "check_number": self.check_number,
            "bank_name": self.bank_name,
            "transaction_reference": self.transaction_reference,
            "receipt_image_url": self.receipt_image_url,
            "collected_by": self.collected_by,
            "collected_by_name": self.collector.full_name if self.collector else None,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
