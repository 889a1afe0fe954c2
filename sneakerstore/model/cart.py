# sneakerstore/model/cart.py
from __future__ import annotations
from sqlalchemy.sql import func
from ..extensions import db


class Cart(db.Model):
    __tablename__ = "cart"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), unique=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    items = db.relationship(
        "CartItem",
        backref="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CartItem.id.asc()"
    )

    def total_amount(self) -> int:
        return sum(i.line_total() for i in self.items)

    def total_items(self) -> int:
        return sum(int(i.quantity or 0) for i in self.items)

    def as_api(self):
        return {
            "id": self.id,
            "user": self.user_id,
            "items": [i.as_api() for i in self.items],
            "totalAmount": self.total_amount(),
            "totalItems": self.total_items(),
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


class CartItem(db.Model):
    __tablename__ = "cart_item"

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("cart.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    variant_id = db.Column(db.Integer, db.ForeignKey("product_variant.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Integer, nullable=False, default=0)   # unit price when added

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    product = db.relationship("Product", lazy="joined")
    variant = db.relationship("ProductVariant", lazy="joined")

    def line_total(self) -> int:
        return int(self.price or 0) * int(self.quantity or 0)

    def as_api(self):
        name = self.product.name if self.product else None
        if self.variant:
            name = f"{name} - {self.variant.label}"
        return {
            "id": self.id,
            "product": self.product_id,
            "variant": self.variant_id,
            "name": name,
            "price": self.price,
            "quantity": self.quantity,
            "lineTotal": self.line_total(),
            "image": self.product.primary_image if self.product else None,
            "stock": self.variant.stock if self.variant else None,
        }
