# sneakerstore/services/coupon_service.py
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import update, or_, case

from ..errors import BadRequest, Conflict, CouponError
from ..extensions import db
from ..model import Coupon
from ..model.coupon import COUPON_TYPES
from ..utils.clock import utcnow, parse_iso8601
from ..utils.money import D, round_vnd, parse_amount, format_vnd


def find_coupon(code) -> Coupon | None:
    code = Coupon.normalize_code(code)
    if not code:
        return None
    return Coupon.query.filter(Coupon.code == code).first()


def check_coupon(coupon: Coupon | None, order_amount=None, now: datetime | None = None) -> Coupon:
    """
    Validate a coupon, failing on the first broken rule:
      1) exists  2) active  3) usage left  4) started  5) not expired
      6) order amount reaches `min_order_amount` (only when an amount is given)
    """
    now = now or utcnow()
    if coupon is None:
        raise CouponError("Mã giảm giá không tồn tại")
    if not coupon.is_active:
        raise CouponError("Mã giảm giá không còn hiệu lực")
    if not coupon.has_usage_left():
        raise CouponError("Mã giảm giá đã hết lượt sử dụng")
    if now < coupon.start_date:
        raise CouponError("Mã giảm giá chưa có hiệu lực")
    if now > coupon.end_date:
        raise CouponError("Mã giảm giá đã hết hạn")
    if order_amount is not None:
        check_min_order(coupon, order_amount)
    return coupon


def check_min_order(coupon: Coupon, order_amount) -> None:
    if coupon.min_order_amount and D(order_amount) < D(coupon.min_order_amount):
        raise CouponError(
            f"Mã giảm giá chỉ áp dụng cho đơn hàng từ {format_vnd(coupon.min_order_amount)}"
        )


def compute_discount(coupon: Coupon, order_amount) -> int:
    """Discount in whole VND, never more than `order_amount`."""
    amount = D(order_amount)
    if amount <= 0:
        return 0
    value = D(coupon.value)
    if coupon.type == "percentage":
        discount = amount * value / Decimal(100)
        if coupon.max_discount and coupon.max_discount > 0:
            discount = min(discount, D(coupon.max_discount))
    elif coupon.type == "fixed":
        discount = value
    else:
        return 0
    return round_vnd(max(Decimal(0), min(discount, amount)))


def _expire_usage(coupon: Coupon):
    if coupon in db.session:
        db.session.expire(coupon, ["usage_count", "is_active"])


def consume_coupon(coupon: Coupon) -> None:
    """Count one use, atomically refusing once the cap is reached."""
    stmt = (
        update(Coupon)
        .where(Coupon.id == coupon.id)
        .where(or_(Coupon.max_usage == 0, Coupon.usage_count < Coupon.max_usage))
        .values(usage_count=Coupon.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    res = db.session.execute(stmt)
    _expire_usage(coupon)
    if res.rowcount != 1:
        raise CouponError("Mã giảm giá đã hết lượt sử dụng")
    current_app.logger.info("coupon %s consumed", coupon.code)


def release_coupon(coupon: Coupon) -> None:
    stmt = (
        update(Coupon)
        .where(Coupon.id == coupon.id)
        .values(usage_count=case((Coupon.usage_count > 0, Coupon.usage_count - 1), else_=0))
        .execution_options(synchronize_session=False)
    )
    db.session.execute(stmt)
    _expire_usage(coupon)
    current_app.logger.info("coupon %s released", coupon.code)


# ---- admin payloads ---------------------------------------------------------

def _parse_bool(v, default=True):
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def _apply_payload(c: Coupon, data: dict, creating: bool):
    if creating or "code" in data:
        code = Coupon.normalize_code(data.get("code"))
        if not code:
            raise BadRequest("Mã giảm giá không được để trống")
        dup = Coupon.query.filter(Coupon.code == code)
        if c.id is not None:
            dup = dup.filter(Coupon.id != c.id)
        if dup.first():
            raise Conflict("Mã giảm giá này đã tồn tại")
        c.code = code

    if creating or "type" in data:
        ctype = (data.get("type") or "percentage").strip().lower()
        if ctype not in COUPON_TYPES:
            raise BadRequest("Loại mã giảm giá phải là 'percentage' hoặc 'fixed'")
        c.type = ctype

    if creating or "value" in data:
        value = parse_amount(data.get("value"))
        if not value:
            raise BadRequest("Giá trị mã giảm giá phải lớn hơn 0")
        c.value = value
    if c.type == "percentage" and c.value > 100:
        raise BadRequest("Mã giảm giá theo phần trăm không được vượt quá 100")

    for key, attr in (("maxDiscount", "max_discount"),
                      ("minOrderAmount", "min_order_amount"),
                      ("maxUsage", "max_usage")):
        if creating or key in data:
            amount = parse_amount(data.get(key), default=None)
            if amount is None and data.get(key) not in (None, ""):
                raise BadRequest(f"{key} không hợp lệ")
            setattr(c, attr, amount or 0)

    if creating or "startDate" in data:
        start = parse_iso8601(data.get("startDate"))
        if data.get("startDate") and not start:
            raise BadRequest("Ngày bắt đầu không hợp lệ")
        c.start_date = start or utcnow()
    if creating or "endDate" in data:
        end = parse_iso8601(data.get("endDate"))
        if not end:
            raise BadRequest("Ngày kết thúc không hợp lệ")
        c.end_date = end
    if c.end_date <= c.start_date:
        raise BadRequest("Ngày kết thúc phải sau ngày bắt đầu")

    if creating or "isActive" in data:
        c.is_active = _parse_bool(data.get("isActive"), default=True)


def create_coupon_from_payload(data: dict) -> Coupon:
    c = Coupon(usage_count=0)
    _apply_payload(c, data, creating=True)
    db.session.add(c)
    db.session.commit()
    current_app.logger.info("coupon %s created", c.code)
    return c


def update_coupon_from_payload(c: Coupon, data: dict) -> Coupon:
    _apply_payload(c, data, creating=False)
    db.session.commit()
    return c
