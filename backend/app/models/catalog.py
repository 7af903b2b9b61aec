from __future__ import annotations

from ..extensions import db
from app.formatting import to_float
from app.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master with default price and tax rate.

    ``category`` is free text. It is kept in step with Category.category_name
    by the category service (renames update matching products in the same
    transaction); there is no foreign key.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_name", "product_name"),
        db.Index("ix_products_category_active", "category", "is_active"),
        {"sqlite_autoincrement": True},
    )

    product_id = db.Column(db.Integer, primary_key=True)
    product_name = db.Column(db.String(200), nullable=False)
    product_code = db.Column(db.String(50), nullable=True, unique=True)
    description = db.Column(db.Text, nullable=True)

    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    unit_of_measure = db.Column(db.String(50), nullable=False, default="piece")
    category = db.Column(db.String(100), nullable=True)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    image_url = db.Column(db.String(500), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "product_code": self.product_code,
            "description": self.description,
            "unit_price": to_float(self.unit_price),
            "unit_of_measure": self.unit_of_measure,
            "category": self.category,
            "tax_rate": to_float(self.tax_rate),
            "image_url": self.image_url,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Category(db.Model):
    """Product categories, ordered for display. Hard delete when unused."""
    __tablename__ = "categories"
    __table_args__ = (
        db.Index("ix_categories_display_order", "display_order", "category_name"),
        {"sqlite_autoincrement": True},
    )

    category_id = db.Column(db.Integer, primary_key=True)
    category_name = db.Column(db.String(100), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "category_id": self.category_id,
            "category_name": self.category_name,
            "description": self.description,
            "display_order": self.display_order,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
