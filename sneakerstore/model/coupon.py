# --- sneakerstore/model/coupon.py ---
from datetime import datetime

from ..extensions import db
from sqlalchemy.sql import func
from ..utils.clock import utcnow, iso

COUPON_TYPES = ("percentage", "fixed")


class Coupon(db.Model):
    __tablename__ = "coupon"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)   # stored upper-case

    # "percentage" or "fixed"
    type = db.Column(db.String(16), nullable=False, default="percentage")
    value = db.Column(db.Integer, nullable=False, default=0)
    max_discount = db.Column(db.Integer, nullable=False, default=0)          # 0 = no cap (percentage only)
    min_order_amount = db.Column(db.Integer, nullable=False, default=0)

    max_usage = db.Column(db.Integer, nullable=False, default=0)             # 0 = unlimited
    usage_count = db.Column(db.Integer, nullable=False, default=0)

    start_date = db.Column(db.DateTime, nullable=False, default=utcnow)     # naive UTC
    end_date = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    @staticmethod
    def normalize_code(code) -> str:
        return (code or "").strip().upper()

    def has_usage_left(self) -> bool:
        return self.max_usage == 0 or self.usage_count < self.max_usage

    def is_valid_at(self, now: datetime) -> bool:
        return bool(
            self.is_active
            and self.start_date <= now <= self.end_date
            and self.has_usage_left()
        )

    @property
    def is_valid(self) -> bool:
        return self.is_valid_at(utcnow())

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "type": self.type,
            "value": self.value,
            "maxDiscount": self.max_discount,
            "minOrderAmount": self.min_order_amount,
            "maxUsage": self.max_usage,
            "usageCount": self.usage_count,
            "startDate": iso(self.start_date),
            "endDate": iso(self.end_date),
            "isActive": self.is_active,
            "isValid": self.is_valid,
            "createdAt": iso(self.created_at),
        }
