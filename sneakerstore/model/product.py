# sneakerstore/model/product.py
from sqlalchemy.sql import func
from ..extensions import db


class Size(db.Model):
    __tablename__ = "size"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    value = db.Column(db.String(64), nullable=False)
    sort_order = db.Column(db.Integer, default=0)

    def as_dict(self):
        return {"id": self.id, "name": self.name, "value": self.value}


class Color(db.Model):
    __tablename__ = "color"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True)
    code = db.Column(db.String(16))          # hex, e.g. "#000000"

    def as_dict(self):
        return {"id": self.id, "name": self.name, "code": self.code}


class Product(db.Model):
    __tablename__ = "product"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    slug = db.Column(db.String(255), unique=True, index=True)

    base_price = db.Column(db.Integer, nullable=False, default=0)
    sale_price = db.Column(db.Integer, nullable=False, default=0)
    total_stock = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), default="active")   # draft | active | out_of_stock

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    images = db.relationship(
        "ProductImage",
        backref="product",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductImage.id.asc()",
    )
    variants = db.relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProductVariant.id.asc()",
    )

    @property
    def primary_image(self):
        for img in self.images:
            if img.is_primary:
                return img.image_path
        return self.images[0].image_path if self.images else None

    def effective_price(self) -> int:
        sale = int(self.sale_price or 0)
        base = int(self.base_price or 0)
        if 0 < sale < base:
            return sale
        return base

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "basePrice": self.base_price,
            "salePrice": self.sale_price,
            "totalStock": self.total_stock,
            "status": self.status,
            "primaryImage": self.primary_image,
        }


class ProductImage(db.Model):
    __tablename__ = "product_image"
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    image_path = db.Column(db.String(512), nullable=False)
    is_primary = db.Column(db.Boolean, default=False)


class ProductVariant(db.Model):
    __tablename__ = "product_variant"
    __table_args__ = (
        db.UniqueConstraint("product_id", "size_id", "color_id", name="uq_variant_product_size_color"),
        db.CheckConstraint("stock >= 0", name="ck_variant_stock_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    size_id = db.Column(db.Integer, db.ForeignKey("size.id"), nullable=False)
    color_id = db.Column(db.Integer, db.ForeignKey("color.id"), nullable=False)

    sku = db.Column(db.String(64), unique=True, nullable=False, index=True)
    additional_price = db.Column(db.Integer, nullable=False, default=0)
    stock = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), default="active")   # active | inactive | out_of_stock

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    product = db.relationship("Product", back_populates="variants")
    size = db.relationship("Size", lazy="joined")
    color = db.relationship("Color", lazy="joined")

    @property
    def label(self) -> str:
        size = self.size.name if self.size else "?"
        color = self.color.name if self.color else "?"
        return f"{size}, {color}"

    def unit_price(self) -> int:
        return self.product.effective_price() + int(self.additional_price or 0)

    def sync_status(self):
        if self.status != "inactive":
            self.status = "active" if (self.stock or 0) > 0 else "out_of_stock"

    def as_api(self):
        return {
            "id": self.id,
            "product": self.product_id,
            "sku": self.sku,
            "size": self.size.as_dict() if self.size else None,
            "color": self.color.as_dict() if self.color else None,
            "additionalPrice": self.additional_price,
            "price": self.unit_price(),
            "stock": self.stock,
            "status": self.status,
        }
