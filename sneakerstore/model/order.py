# sneakerstore/model/order.py
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.clock import utcnow, iso

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled", "refunded")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")
PAYMENT_METHODS = ("cod", "bank_transfer", "credit_card", "momo", "zalopay", "vnpay")


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), unique=True, index=True, nullable=False)  # e.g. "SP250617123456"
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=True, index=True)
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)

    # Money snapshot (VND)
    subtotal = db.Column(db.Integer, nullable=False, default=0)
    shipping_fee = db.Column(db.Integer, nullable=False, default=0)
    discount = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False, default=0)
    coupon_id = db.Column(db.Integer, db.ForeignKey("coupon.id"), nullable=True)

    payment_method = db.Column(db.String(20), nullable=False, default="cod")
    payment_status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    notes = db.Column(db.Text)

    # Shipping snapshot
    ship_full_name = db.Column(db.String(120), nullable=False)
    ship_email = db.Column(db.String(255), nullable=False)
    ship_phone = db.Column(db.String(32), nullable=False)
    ship_address = db.Column(db.String(500), nullable=False)
    ship_city = db.Column(db.String(120), nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    user = db.relationship("User", lazy="joined")
    coupon = db.relationship("Coupon", lazy="joined")
    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id.asc()",
    )
    status_history = db.relationship(
        "OrderStatusEvent",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderStatusEvent.id.asc()",
    )

    def record_status(self, status, note=None):
        self.status_history.append(OrderStatusEvent(status=status, note=note, timestamp=utcnow()))

    def owned_by(self, user) -> bool:
        return user is not None and self.user_id == user.id

    def as_summary(self):
        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "total": self.total,
            "status": self.status,
            "paymentStatus": self.payment_status,
            "createdAt": iso(self.created_at),
            "items": [i.as_api() for i in self.items],
        }

    def as_api(self):
        return {
            "id": self.id,
            "orderNumber": self.order_number,
            "user": self.user.as_dict() if self.user else None,
            "items": [i.as_api() for i in self.items],
            "subtotal": self.subtotal,
            "shippingFee": self.shipping_fee,
            "discount": self.discount,
            "total": self.total,
            "coupon": self.coupon.code if self.coupon else None,
            "status": self.status,
            "paymentMethod": self.payment_method,
            "paymentStatus": self.payment_status,
            "notes": self.notes,
            "shippingAddress": {
                "fullName": self.ship_full_name,
                "email": self.ship_email,
                "phone": self.ship_phone,
                "address": self.ship_address,
                "city": self.ship_city,
            },
            "statusHistory": [e.as_api() for e in self.status_history],
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    # Plain references: the snapshot below must survive catalog edits
    product_id = db.Column(db.Integer, nullable=False, index=True)
    variant_id = db.Column(db.Integer, nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    image = db.Column(db.String(512), nullable=False, default="")
    price = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    def line_total(self) -> int:
        return int(self.price) * int(self.quantity)

    def as_api(self):
        return {
            "product": self.product_id,
            "productVariant": self.variant_id,
            "name": self.name,
            "image": self.image,
            "price": self.price,
            "quantity": self.quantity,
            "lineTotal": self.line_total(),
        }


class OrderStatusEvent(db.Model):
    __tablename__ = "order_status_history"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False)
    timestamp = db.Column(db.DateTime, nullable=False, default=utcnow)
    note = db.Column(db.String(500))

    def as_api(self):
        return {
            "status": self.status,
            "timestamp": iso(self.timestamp),
            "note": self.note,
        }
