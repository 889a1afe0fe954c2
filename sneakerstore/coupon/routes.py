# sneakerstore/coupon/routes.py
from __future__ import annotations
from flask import request
from sqlalchemy import asc, desc

from ..errors import BadRequest, Conflict, NotFound
from ..extensions import db
from ..model import Coupon, Order
from ..services import coupon_service
from ..utils.api import ok, page_args, page_meta
from ..utils.decorators import login_required, admin_required
from ..utils.money import parse_amount
from . import bp

SORT_FIELDS = {
    "createdAt": Coupon.created_at,
    "code": Coupon.code,
    "value": Coupon.value,
    "endDate": Coupon.end_date,
    "usageCount": Coupon.usage_count,
}


def _get_or_404(coupon_id: int) -> Coupon:
    c = db.session.get(Coupon, coupon_id)
    if not c:
        raise NotFound("Không tìm thấy mã giảm giá")
    return c


def _find_or_404(code: str) -> Coupon:
    c = coupon_service.find_coupon(code)
    if not c:
        raise NotFound("Mã giảm giá không tồn tại")
    return c


# ---- public / customer ------------------------------------------------------

@bp.get("/validate/<code>")
def validate_coupon(code: str):
    """Query: orderAmount (optional) -> also checks minimum amount and returns the discount."""
    coupon = _find_or_404(code)
    raw_amount = request.args.get("orderAmount")
    order_amount = parse_amount(raw_amount)
    if raw_amount not in (None, "") and order_amount is None:
        raise BadRequest("Giá trị đơn hàng không hợp lệ")

    coupon_service.check_coupon(coupon, order_amount)
    data = coupon.as_api()
    data["discountAmount"] = coupon_service.compute_discount(coupon, order_amount) if order_amount else 0
    return ok("Mã giảm giá hợp lệ", data)


@bp.post("/apply/<code>")
@login_required
def apply_coupon(code: str):
    coupon = coupon_service.check_coupon(_find_or_404(code))
    try:
        coupon_service.consume_coupon(coupon)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return ok("Áp dụng mã giảm giá thành công", coupon.as_api())


# ---- admin --------------------------------------------------------------

@bp.get("")
@admin_required
def list_coupons():
    """
    page, limit
    sort     -> createdAt, code, value, endDate, usageCount
    order    -> asc | desc
    isActive -> true | false
    code     -> substring match
    """
    q = Coupon.query
    is_active = request.args.get("isActive")
    if is_active is not None:
        q = q.filter(Coupon.is_active == (is_active.lower() == "true"))
    code = (request.args.get("code") or "").strip()
    if code:
        q = q.filter(Coupon.code.ilike(f"%{code}%"))

    col = SORT_FIELDS.get(request.args.get("sort") or "createdAt", Coupon.created_at)
    direction = asc if (request.args.get("order") or "desc").lower() == "asc" else desc
    q = q.order_by(direction(col), direction(Coupon.id))

    page, limit = page_args(request.args)
    paged = q.paginate(page=page, per_page=limit, error_out=False)
    return ok("Lấy danh sách mã giảm giá thành công",
              [c.as_api() for c in paged.items],
              meta=page_meta(paged, page, limit))


@bp.get("/<int:coupon_id>")
@admin_required
def get_coupon(coupon_id: int):
    return ok("Lấy thông tin mã giảm giá thành công", _get_or_404(coupon_id).as_api())


@bp.post("")
@admin_required
def create_coupon():
    data = request.get_json(silent=True) or {}
    c = coupon_service.create_coupon_from_payload(data)
    return ok("Tạo mã giảm giá thành công", c.as_api(), status=201)


@bp.put("/<int:coupon_id>")
@bp.patch("/<int:coupon_id>")
@admin_required
def update_coupon(coupon_id: int):
    data = request.get_json(silent=True) or {}
    c = coupon_service.update_coupon_from_payload(_get_or_404(coupon_id), data)
    return ok("Cập nhật mã giảm giá thành công", c.as_api())


@bp.delete("/<int:coupon_id>")
@admin_required
def delete_coupon(coupon_id: int):
    c = _get_or_404(coupon_id)
    if Order.query.filter(Order.coupon_id == c.id).first():
        raise Conflict("Mã giảm giá đã được dùng trong đơn hàng, hãy vô hiệu hóa thay vì xóa")
    db.session.delete(c)
    db.session.commit()
    return ok("Xóa mã giảm giá thành công")
