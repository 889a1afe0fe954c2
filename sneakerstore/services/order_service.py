# sneakerstore/services/order_service.py
"""
Order lifecycle: checkout, status transitions, cancellation, statistics.

Checkout runs as one database transaction:
  1) validate payload + coupon
  2) resolve products/variants, check stock, build line-item snapshots
  3) persist order (+ initial history entry)
  4) decrement stock (conditional), consume coupon (conditional)
  5) drop checked-out cart items, commit
A failure at any step rolls everything back.
"""
import secrets
from collections import defaultdict
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy import func, select, update

from ..errors import BadRequest, NotFound, Unauthorized, InvalidTransition
from ..extensions import db
from ..model import Cart, CartItem, Order, OrderItem, Product, ProductVariant
from ..model.order import ORDER_STATUSES, PAYMENT_METHODS
from ..utils.clock import utcnow
from ..utils.money import parse_amount
from . import coupon_service, inventory_service

ALLOWED_TRANSITIONS = {
    "pending": ("processing", "cancelled"),
    "processing": ("shipped", "cancelled"),
    "shipped": ("delivered", "cancelled"),
    "delivered": ("refunded",),
    "cancelled": (),
    "refunded": (),
}

# Self-service cancellation stops once the parcel has left the warehouse
CANCELLABLE_STATUSES = ("pending", "processing")

REQUIRED_SHIPPING_FIELDS = ("fullName", "email", "phoneNumber", "address", "city")


def can_transition(current: str, requested: str) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, ())


# ---- helpers ----------------------------------------------------------------

def _parse_id(v):
    if v is None or isinstance(v, bool):
        return None
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def _parse_qty(v):
    if isinstance(v, bool):
        return None
    try:
        qty = int(v)
    except (TypeError, ValueError):
        return None
    if isinstance(v, float) and v != qty:
        return None
    return qty if qty >= 1 else None


def generate_order_number(now: datetime | None = None) -> str:
    now = now or utcnow()
    prefix = current_app.config.get("ORDER_NUMBER_PREFIX", "SP")
    for _ in range(10):
        number = f"{prefix}{now:%y%m%d}{100000 + secrets.randbelow(900000)}"
        if not Order.query.filter(Order.order_number == number).first():
            return number
    raise RuntimeError("could not allocate a unique order number")


def _shipping_snapshot(details: dict) -> dict:
    details = details or {}
    missing = [k for k in REQUIRED_SHIPPING_FIELDS if not str(details.get(k) or "").strip()]
    if missing:
        raise BadRequest("Thông tin giao hàng không đầy đủ", errors={"missing": missing})
    parts = [str(details.get(k) or "").strip() for k in ("address", "ward", "district")]
    return {
        "ship_full_name": str(details["fullName"]).strip(),
        "ship_email": str(details["email"]).strip().lower(),
        "ship_phone": str(details["phoneNumber"]).strip(),
        "ship_address": ", ".join(p for p in parts if p),
        "ship_city": str(details["city"]).strip(),
    }


def _line_price(raw: dict, product: Product, variant: ProductVariant | None) -> int:
    if current_app.config.get("TRUST_CLIENT_PRICES"):
        price = parse_amount(raw.get("price"))
        if price is None:
            raise BadRequest("Giá sản phẩm không hợp lệ")
        return price
    return variant.unit_price() if variant else product.effective_price()


def build_line_items(raw_items) -> list[OrderItem]:
    """Resolve catalog rows, check stock and freeze display data into snapshots."""
    snapshots = []
    requested = defaultdict(int)
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise BadRequest("Dữ liệu sản phẩm không hợp lệ")
        qty = _parse_qty(raw.get("quantity"))
        if qty is None:
            raise BadRequest("Số lượng sản phẩm phải là số nguyên lớn hơn 0")

        pid = _parse_id(raw.get("product"))
        product = db.session.get(Product, pid) if pid else None
        if not product:
            raise NotFound("Sản phẩm không tồn tại")

        variant = None
        if raw.get("variant") not in (None, ""):
            vid = _parse_id(raw.get("variant"))
            variant = db.session.get(ProductVariant, vid) if vid else None
            if not variant or variant.product_id != product.id:
                raise NotFound("Biến thể sản phẩm không tồn tại")
            requested[("variant", variant.id)] += qty
            inventory_service.check_stock(variant, requested[("variant", variant.id)])
        else:
            if product.variants:
                raise BadRequest("Vui lòng chọn biến thể sản phẩm")
            requested[("product", product.id)] += qty
            inventory_service.check_product_stock(product, requested[("product", product.id)])

        name = product.name + (f" - {variant.label}" if variant else "")
        snapshots.append(OrderItem(
            product_id=product.id,
            variant_id=variant.id if variant else None,
            name=name,
            image=product.primary_image or "",
            price=_line_price(raw, product, variant),
            quantity=qty,
        ))
    return snapshots


def _remove_cart_items(user, raw_items):
    ids = {_parse_id(raw.get("cartItemId")) for raw in raw_items if isinstance(raw, dict)}
    ids.discard(None)
    if not user or not ids:
        return
    rows = (CartItem.query.join(Cart, Cart.id == CartItem.cart_id)
            .filter(Cart.user_id == user.id, CartItem.id.in_(ids))
            .all())
    for ci in rows:
        db.session.delete(ci)


# ---- checkout -----------------------------------------------------------------

def create_order(user, payload: dict, now: datetime | None = None) -> Order:
    payload = payload or {}
    now = now or utcnow()
    raw_items = payload.get("items") or []
    if not isinstance(raw_items, list) or not raw_items:
        raise BadRequest("Không có sản phẩm nào trong đơn hàng")

    shipping = _shipping_snapshot(payload.get("shippingDetails"))

    payment_method = str(payload.get("paymentMethod") or "cod").strip().lower()
    if payment_method not in PAYMENT_METHODS:
        raise BadRequest("Phương thức thanh toán không hợp lệ")

    shipping_fee = parse_amount(payload.get("shippingFee"), default=None)
    if shipping_fee is None:
        if payload.get("shippingFee") not in (None, ""):
            raise BadRequest("Phí vận chuyển không hợp lệ")
        shipping_fee = 0

    try:
        coupon = None
        if payload.get("coupon"):
            coupon = coupon_service.check_coupon(coupon_service.find_coupon(payload["coupon"]), now=now)

        items = build_line_items(raw_items)
        subtotal = sum(it.line_total() for it in items)

        discount = 0
        if coupon:
            order_amount = subtotal + shipping_fee
            coupon_service.check_min_order(coupon, order_amount)
            discount = coupon_service.compute_discount(coupon, order_amount)

        order = Order(
            order_number=generate_order_number(now),
            user_id=user.id if user else None,
            status="pending",
            subtotal=subtotal,
            shipping_fee=shipping_fee,
            discount=discount,
            total=subtotal + shipping_fee - discount,
            coupon_id=coupon.id if coupon else None,
            payment_method=payment_method,
            payment_status="pending",
            notes=(payload.get("notes") or None),
            created_at=now,
            **shipping,
        )
        order.items = items
        order.record_status("pending", "Đơn hàng đã được tạo")
        db.session.add(order)
        db.session.flush()

        inventory_service.reserve_stock(order.items)
        if coupon:
            coupon_service.consume_coupon(coupon)
        _remove_cart_items(user, raw_items)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "order %s created (user=%s, items=%d, total=%d)",
        order.order_number, order.user_id, len(order.items), order.total,
    )
    return order


# ---- status machine -------------------------------------------------------

def transition_order(order: Order, status, note: str | None = None) -> Order:
    status = str(status or "").strip().lower()
    if status not in ORDER_STATUSES:
        raise BadRequest("Trạng thái đơn hàng không hợp lệ")
    if not can_transition(order.status, status):
        raise InvalidTransition(order.status, status)

    previous = order.status
    try:
        # Zero rows matched: another request moved the order since it was read
        res = db.session.execute(
            update(Order)
            .where(Order.id == order.id, Order.status == previous)
            .values(status=status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            actual = db.session.scalar(select(Order.status).where(Order.id == order.id))
            raise InvalidTransition(actual, status)
        db.session.expire(order, ["status", "updated_at"])
        order.record_status(status, note or f"Đã cập nhật trạng thái đơn hàng sang {status}")

        if status == "delivered" and order.payment_method == "cod":
            order.payment_status = "paid"
        if status in ("cancelled", "refunded"):
            inventory_service.restock(order.items)
        if status == "cancelled" and order.coupon is not None:
            coupon_service.release_coupon(order.coupon)
        if status == "refunded" and order.payment_status == "paid":
            order.payment_status = "refunded"

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("order %s: %s -> %s", order.order_number, previous, status)
    return order


def cancel_order(order: Order, user, reason: str | None = None) -> Order:
    if not (user.is_admin or order.owned_by(user)):
        raise Unauthorized("Bạn không có quyền hủy đơn hàng này")
    if order.status not in CANCELLABLE_STATUSES:
        raise BadRequest("Không thể hủy đơn hàng ở trạng thái này")
    return transition_order(order, "cancelled", reason or "Đơn hàng đã bị hủy")


# ---- lookups --------------------------------------------------------------

def get_order_or_404(order_id) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFound("Không tìm thấy đơn hàng")
    return order


def ensure_can_view(order: Order, user, allow_guest_orders=False) -> Order:
    if user.is_admin or order.owned_by(user):
        return order
    if allow_guest_orders and order.user_id is None:
        return order
    raise Unauthorized("Bạn không có quyền xem đơn hàng này")


# ---- statistics -----------------------------------------------------------

def _revenue(*filters) -> int:
    q = (db.session.query(func.coalesce(func.sum(Order.total), 0))
         .filter(Order.status == "delivered", Order.payment_status == "paid", *filters))
    return int(q.scalar() or 0)


def _count(*filters) -> int:
    return db.session.query(func.count(Order.id)).filter(*filters).scalar() or 0


def order_statistics(now: datetime | None = None) -> dict:
    """Day and month windows follow the shop's local calendar (`SHOP_UTC_OFFSET_HOURS`)."""
    now = now or utcnow()
    offset = timedelta(hours=current_app.config.get("SHOP_UTC_OFFSET_HOURS", 0))
    local_day = (now + offset).replace(hour=0, minute=0, second=0, microsecond=0)
    local_month = local_day.replace(day=1)
    # back to naive UTC for comparison with stored timestamps
    start_of_day = local_day - offset
    end_of_day = start_of_day + timedelta(days=1)
    start_of_month = local_month - offset
    end_of_month = (local_month + timedelta(days=32)).replace(day=1) - offset

    rows = (db.session.query(Order.status, func.count(Order.id), func.coalesce(func.sum(Order.total), 0))
            .group_by(Order.status)
            .all())

    today = (Order.created_at >= start_of_day, Order.created_at < end_of_day)
    month = (Order.created_at >= start_of_month, Order.created_at < end_of_month)
    return {
        "ordersByStatus": {status: {"count": count, "total": int(total)} for status, count, total in rows},
        "totalOrders": _count(),
        "totalRevenue": _revenue(),
        "ordersToday": _count(*today),
        "revenueToday": _revenue(*today),
        "ordersThisMonth": _count(*month),
        "revenueThisMonth": _revenue(*month),
    }
