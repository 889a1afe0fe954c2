# sneakerstore/order/routes.py
from flask import request
from sqlalchemy import asc, desc

from ..errors import NotFound
from ..model import Order
from ..model.order import ORDER_STATUSES, PAYMENT_STATUSES
from ..services import order_service
from ..utils.api import ok, page_args, page_meta
from ..utils.decorators import current_user, login_required, admin_required
from . import bp

SORT_FIELDS = {
    "createdAt": Order.created_at,
    "updatedAt": Order.updated_at,
    "total": Order.total,
    "orderNumber": Order.order_number,
    "status": Order.status,
}


@bp.post("")
@login_required
def create_order():
    """
    Body:
      shippingDetails: {fullName, email, phoneNumber, address, ward?, district?, city}
      items: [{product, variant?, quantity, price?, cartItemId?}]
      paymentMethod, notes, shippingFee, coupon
    """
    payload = request.get_json(silent=True) or {}
    order = order_service.create_order(current_user(), payload)
    resp = ok("Tạo đơn hàng thành công", order.as_api(), status=201)
    resp.headers["X-Order-Number"] = order.order_number
    return resp


@bp.get("")
@admin_required
def list_orders():
    """
    Query params:
      - page, limit
      - status=pending|processing|shipped|delivered|cancelled|refunded
      - paymentStatus=pending|paid|failed|refunded
      - sortBy=createdAt|updatedAt|total|orderNumber|status
      - sortOrder=asc|desc
    """
    q = Order.query

    status = request.args.get("status")
    payment_status = request.args.get("paymentStatus")
    if status in ORDER_STATUSES: q = q.filter(Order.status == status)
    if payment_status in PAYMENT_STATUSES: q = q.filter(Order.payment_status == payment_status)

    col = SORT_FIELDS.get(request.args.get("sortBy") or "createdAt", Order.created_at)
    direction = asc if (request.args.get("sortOrder") or "desc").lower() == "asc" else desc
    q = q.order_by(direction(col), direction(Order.id))

    page, limit = page_args(request.args)
    paged = q.paginate(page=page, per_page=limit, error_out=False)
    return ok("Lấy danh sách đơn hàng thành công",
              [o.as_api() for o in paged.items],
              meta=page_meta(paged, page, limit))


@bp.get("/mine")
@bp.get("/user")
@login_required
def my_orders():
    user = current_user()
    q = Order.query.filter(Order.user_id == user.id)
    status = request.args.get("status")
    if status in ORDER_STATUSES:
        q = q.filter(Order.status == status)
    q = q.order_by(Order.created_at.desc(), Order.id.desc())

    page, limit = page_args(request.args)
    paged = q.paginate(page=page, per_page=limit, error_out=False)
    return ok("Lấy danh sách đơn hàng thành công",
              [o.as_summary() for o in paged.items],
              meta=page_meta(paged, page, limit))


@bp.get("/statistics")
@admin_required
def statistics():
    return ok("Lấy thống kê đơn hàng thành công", order_service.order_statistics())


@bp.get("/number/<order_number>")
@login_required
def get_order_by_number(order_number: str):
    order = Order.query.filter(Order.order_number == order_number.strip().upper()).first()
    if not order:
        raise NotFound("Không tìm thấy đơn hàng")
    order_service.ensure_can_view(order, current_user(), allow_guest_orders=True)
    return ok("Lấy thông tin đơn hàng thành công", order.as_api())


@bp.get("/<int:order_id>")
@login_required
def get_order(order_id: int):
    order = order_service.get_order_or_404(order_id)
    order_service.ensure_can_view(order, current_user())
    return ok("Lấy thông tin đơn hàng thành công", order.as_api())


@bp.patch("/<int:order_id>/status")
@bp.put("/<int:order_id>/status")
@admin_required
def update_status(order_id: int):
    """Body: { "status": str, "note"?: str }"""
    data = request.get_json(silent=True) or {}
    order = order_service.get_order_or_404(order_id)
    order_service.transition_order(order, data.get("status"), data.get("note"))
    return ok("Cập nhật trạng thái đơn hàng thành công", order.as_api())


@bp.patch("/<int:order_id>/cancel")
@bp.put("/<int:order_id>/cancel")
@login_required
def cancel(order_id: int):
    """Body: { "reason"?: str }"""
    data = request.get_json(silent=True) or {}
    order = order_service.get_order_or_404(order_id)
    order_service.cancel_order(order, current_user(), data.get("reason"))
    return ok("Hủy đơn hàng thành công", order.as_api())
