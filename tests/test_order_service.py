"""Tests for checkout, the status machine and cancellation."""

import itertools
from datetime import datetime

import pytest

from sneakerstore.errors import (
    BadRequest, CouponError, InsufficientStock, InvalidTransition, NotFound, Unauthorized,
)
from sneakerstore.extensions import db
from sneakerstore.model import Cart, CartItem, Order
from sneakerstore.model.order import ORDER_STATUSES
from sneakerstore.services import coupon_service, order_service

EXPECTED_EDGES = {
    ("pending", "processing"), ("pending", "cancelled"),
    ("processing", "shipped"), ("processing", "cancelled"),
    ("shipped", "delivered"), ("shipped", "cancelled"),
    ("delivered", "refunded"),
}


@pytest.mark.parametrize("current,requested", list(itertools.product(ORDER_STATUSES, repeat=2)))
def test_transition_table(current, requested):
    assert order_service.can_transition(current, requested) == ((current, requested) in EXPECTED_EDGES)


class TestCreateOrder:
    def test_builds_snapshot_and_totals(self, customer, product, variant_43, place_order):
        order = place_order(customer, variant_43, quantity=2, shippingFee=30_000)

        item = order.items[0]
        assert item.name == "Air Force 1 - 43, Đen"
        assert item.price == 950_000
        assert item.image == "/uploads/af1.jpg"
        assert order.subtotal == 1_900_000
        assert order.total == 1_930_000
        assert order.status == "pending"
        assert order.payment_status == "pending"
        assert order.order_number.startswith("SP")
        assert len(order.order_number) == 14
        assert order.ship_address == "12 Lê Lợi, Bến Nghé, Quận 1"
        assert [e.status for e in order.status_history] == ["pending"]

    def test_reserves_stock(self, customer, product, variant, place_order):
        place_order(customer, variant, quantity=2)
        assert variant.stock == 3
        assert product.total_stock == 8

    def test_client_prices_ignored_by_default(self, customer, variant, order_payload):
        payload = order_payload((variant, 1))
        payload["items"][0]["price"] = 1
        order = order_service.create_order(customer, payload)
        assert order.items[0].price == 900_000

    def test_client_prices_when_trusted(self, app, customer, variant, order_payload):
        app.config["TRUST_CLIENT_PRICES"] = True
        payload = order_payload((variant, 1))
        payload["items"][0]["price"] = 123_000
        order = order_service.create_order(customer, payload)
        assert order.items[0].price == 123_000

    def test_coupon_discount_on_subtotal_plus_shipping(self, customer, variant, make_coupon, place_order):
        coupon = make_coupon("FIX20K", type="fixed", value=20_000)
        order = place_order(customer, variant, quantity=1, coupon="fix20k", shippingFee=30_000)
        assert order.discount == 20_000
        assert order.total == 900_000 + 30_000 - 20_000
        assert order.coupon_id == coupon.id
        assert coupon.usage_count == 1

    def test_percentage_coupon_capped(self, customer, variant, make_coupon, place_order):
        coupon = make_coupon("SALE10", value=10, max_discount=100_000)
        order = place_order(customer, variant, quantity=2, coupon="SALE10")
        assert order.discount == 100_000
        assert order.total == 1_800_000 - 100_000
        assert coupon.usage_count == 1

    def test_unknown_coupon(self, customer, variant, place_order):
        with pytest.raises(CouponError, match="không tồn tại"):
            place_order(customer, variant, coupon="NOPE")
        assert Order.query.count() == 0

    def test_coupon_min_order(self, customer, variant, make_coupon, place_order):
        make_coupon(min_order_amount=5_000_000)
        with pytest.raises(CouponError):
            place_order(customer, variant, quantity=1, coupon="SALE10")
        assert variant.stock == 5

    def test_insufficient_stock(self, customer, variant, place_order):
        with pytest.raises(InsufficientStock, match="chỉ còn 5"):
            place_order(customer, variant, quantity=6)
        assert Order.query.count() == 0

    def test_repeated_lines_are_checked_together(self, customer, variant, order_payload):
        with pytest.raises(InsufficientStock):
            order_service.create_order(customer, order_payload((variant, 3), (variant, 3)))

    def test_failure_after_reserve_rolls_everything_back(self, customer, product, variant, make_coupon,
                                                          place_order, monkeypatch):
        coupon = make_coupon(max_usage=1)

        def exhausted(c):
            raise CouponError("Mã giảm giá đã hết lượt sử dụng")
        monkeypatch.setattr(coupon_service, "consume_coupon", exhausted)

        with pytest.raises(CouponError):
            place_order(customer, variant, quantity=2, coupon="SALE10")
        assert Order.query.count() == 0
        assert variant.stock == 5
        assert product.total_stock == 10
        assert coupon.usage_count == 0

    def test_missing_product(self, customer, order_payload):
        payload = order_payload()
        payload["items"] = [{"product": 999, "quantity": 1}]
        with pytest.raises(NotFound):
            order_service.create_order(customer, payload)

    def test_variant_of_another_product(self, customer, variant, order_payload):
        payload = order_payload((variant, 1))
        payload["items"][0]["product"] = 999
        with pytest.raises(NotFound):
            order_service.create_order(customer, payload)

    @pytest.mark.parametrize("qty", [0, -1, 1.5, "two", True])
    def test_bad_quantity(self, customer, variant, order_payload, qty):
        with pytest.raises(BadRequest):
            order_service.create_order(customer, order_payload((variant, qty)))

    def test_empty_items(self, customer, order_payload):
        with pytest.raises(BadRequest, match="Không có sản phẩm"):
            order_service.create_order(customer, order_payload())

    def test_missing_shipping_fields(self, customer, variant, order_payload):
        payload = order_payload((variant, 1))
        del payload["shippingDetails"]["phoneNumber"]
        payload["shippingDetails"]["city"] = "  "
        with pytest.raises(BadRequest) as exc:
            order_service.create_order(customer, payload)
        assert exc.value.errors == {"missing": ["phoneNumber", "city"]}

    def test_bad_payment_method(self, customer, variant, place_order):
        with pytest.raises(BadRequest, match="thanh toán"):
            place_order(customer, variant, paymentMethod="bitcoin")

    def test_negative_shipping_fee(self, customer, variant, place_order):
        with pytest.raises(BadRequest, match="vận chuyển"):
            place_order(customer, variant, shippingFee=-1)

    def test_checked_out_cart_items_are_removed(self, customer, product, variant, variant_43, order_payload):
        cart = Cart(user_id=customer.id)
        cart.items.append(CartItem(product_id=product.id, variant_id=variant.id, quantity=1, price=900_000))
        cart.items.append(CartItem(product_id=product.id, variant_id=variant_43.id, quantity=1, price=950_000))
        db.session.add(cart)
        db.session.commit()
        kept = cart.items[1]

        payload = order_payload((variant, 1))
        payload["items"][0]["cartItemId"] = cart.items[0].id
        order_service.create_order(customer, payload)

        db.session.expire(cart)
        assert [i.id for i in cart.items] == [kept.id]

    def test_plain_product_cancel_restores_exact_stock(self, customer, plain_product, order_payload):
        payload = order_payload()
        payload["items"] = [{"product": plain_product.id, "quantity": 2}]
        order = order_service.create_order(customer, payload)
        assert order.items[0].name == "Vớ thể thao"
        assert plain_product.total_stock == 0

        order_service.cancel_order(order, customer)
        assert plain_product.total_stock == 2

    def test_plain_product_without_stock(self, customer, plain_product, order_payload):
        plain_product.total_stock = 0
        db.session.commit()
        payload = order_payload()
        payload["items"] = [{"product": plain_product.id, "quantity": 2}]
        with pytest.raises(InsufficientStock, match="Vớ thể thao chỉ còn 0"):
            order_service.create_order(customer, payload)
        assert Order.query.count() == 0
        assert plain_product.total_stock == 0

    def test_product_with_variants_needs_a_variant(self, customer, product, order_payload):
        payload = order_payload()
        payload["items"] = [{"product": product.id, "quantity": 1}]
        with pytest.raises(BadRequest, match="biến thể"):
            order_service.create_order(customer, payload)
        assert product.total_stock == 10


class TestTransitions:
    def test_happy_path_cod(self, customer, variant, place_order):
        order = place_order(customer, variant)
        for status in ("processing", "shipped", "delivered"):
            order_service.transition_order(order, status)

        assert order.status == "delivered"
        assert order.payment_status == "paid"
        assert [e.status for e in order.status_history] == ["pending", "processing", "shipped", "delivered"]
        assert order.status_history[-1].note == "Đã cập nhật trạng thái đơn hàng sang delivered"

    def test_delivered_non_cod_keeps_payment_status(self, customer, variant, place_order):
        order = place_order(customer, variant, paymentMethod="momo")
        for status in ("processing", "shipped", "delivered"):
            order_service.transition_order(order, status)
        assert order.payment_status == "pending"

    def test_illegal_transition(self, customer, variant, place_order):
        order = place_order(customer, variant)
        with pytest.raises(InvalidTransition) as exc:
            order_service.transition_order(order, "delivered")
        assert exc.value.message == "Không thể chuyển từ trạng thái pending sang delivered"
        db.session.rollback()
        assert order.status == "pending"
        assert len(order.status_history) == 1

    def test_terminal_states_are_final(self, customer, variant, place_order):
        order = place_order(customer, variant)
        order_service.transition_order(order, "cancelled")
        with pytest.raises(InvalidTransition):
            order_service.transition_order(order, "pending")

    def test_unknown_status(self, customer, variant, place_order):
        order = place_order(customer, variant)
        with pytest.raises(BadRequest, match="không hợp lệ"):
            order_service.transition_order(order, "lost")

    def test_cancel_restocks_and_releases_coupon(self, customer, product, variant, make_coupon, place_order):
        coupon = make_coupon(max_usage=1)
        order = place_order(customer, variant, quantity=2, coupon="SALE10")
        assert variant.stock == 3
        assert coupon.usage_count == 1

        order_service.transition_order(order, "cancelled", "Khách đổi ý")
        assert variant.stock == 5
        assert product.total_stock == 10
        assert coupon.usage_count == 0
        assert coupon.is_valid
        assert order.status_history[-1].note == "Khách đổi ý"

    def test_shipped_can_be_cancelled_by_admin_path(self, customer, variant, place_order):
        order = place_order(customer, variant)
        order_service.transition_order(order, "processing")
        order_service.transition_order(order, "shipped")
        order_service.transition_order(order, "cancelled")
        assert variant.stock == 5

    def test_refund_restocks_and_refunds_payment(self, customer, variant, make_coupon, place_order):
        coupon = make_coupon()
        order = place_order(customer, variant, coupon="SALE10")
        for status in ("processing", "shipped", "delivered", "refunded"):
            order_service.transition_order(order, status)
        assert order.payment_status == "refunded"
        assert variant.stock == 5
        # a refund does not hand the coupon use back
        assert coupon.usage_count == 1


class TestCancelOrder:
    def test_owner_cancels(self, customer, variant, place_order):
        order = place_order(customer, variant)
        order_service.cancel_order(order, customer)
        assert order.status == "cancelled"
        assert order.status_history[-1].note == "Đơn hàng đã bị hủy"
        assert variant.stock == 5

    def test_admin_cancels_any_order(self, admin, customer, variant, place_order):
        order = place_order(customer, variant)
        order_service.cancel_order(order, admin, "Hết hàng tại kho")
        assert order.status == "cancelled"

    def test_stranger_cannot_cancel(self, customer, other_customer, variant, place_order):
        order = place_order(customer, variant)
        with pytest.raises(Unauthorized):
            order_service.cancel_order(order, other_customer)
        assert order.status == "pending"

    @pytest.mark.parametrize("path", [
        ("processing", "shipped"),
        ("processing", "shipped", "delivered"),
        ("cancelled",),
        ("processing", "shipped", "delivered", "refunded"),
    ], ids=["shipped", "delivered", "cancelled", "refunded"])
    def test_cannot_cancel_past_processing(self, customer, variant, place_order, path):
        order = place_order(customer, variant, quantity=2)
        for status in path:
            order_service.transition_order(order, status)
        stock = variant.stock
        history = [e.status for e in order.status_history]

        with pytest.raises(BadRequest, match="Không thể hủy"):
            order_service.cancel_order(order, customer)
        db.session.rollback()
        assert order.status == path[-1]
        assert variant.stock == stock
        assert [e.status for e in order.status_history] == history

    def test_stale_copy_cannot_cancel_twice(self, app, customer, product, variant, make_coupon, place_order):
        coupon = make_coupon(max_usage=5)
        order = place_order(customer, variant, quantity=2, coupon="SALE10")
        assert order.status == "pending"

        # a second request (own app context, own session) cancels first
        with app.app_context():
            fresh = db.session.get(Order, order.id)
            order_service.cancel_order(fresh, fresh.user)

        with pytest.raises(InvalidTransition, match="cancelled sang cancelled"):
            order_service.cancel_order(order, customer)
        assert order.status == "cancelled"
        assert variant.stock == 5
        assert product.total_stock == 10
        assert coupon.usage_count == 0
        assert [e.status for e in order.status_history] == ["pending", "cancelled"]


class TestStatistics:
    def test_counts_and_revenue(self, customer, variant, variant_43, place_order):
        delivered = place_order(customer, variant, quantity=1)
        for status in ("processing", "shipped", "delivered"):
            order_service.transition_order(delivered, status)
        place_order(customer, variant_43, quantity=1)

        stats = order_service.order_statistics()
        assert stats["totalOrders"] == 2
        assert stats["ordersToday"] == 2
        assert stats["ordersThisMonth"] == 2
        assert stats["totalRevenue"] == 900_000
        assert stats["revenueToday"] == 900_000
        assert stats["ordersByStatus"]["delivered"] == {"count": 1, "total": 900_000}
        assert stats["ordersByStatus"]["pending"] == {"count": 1, "total": 950_000}

    def test_windows_follow_shop_local_calendar(self, customer, variant, order_payload):
        # UTC+7: 2026-10-17 01:00 UTC is 08:00 on the 17th in Hồ Chí Minh
        placed = {
            "today_local": datetime(2026, 10, 16, 18, 0),      # 01:00 on the 17th
            "yesterday_local": datetime(2026, 10, 16, 16, 0),  # 23:00 on the 16th
            "month_start_local": datetime(2026, 9, 30, 17, 30),  # 00:30 on Oct 1st
            "last_month_local": datetime(2026, 9, 30, 16, 30),   # 23:30 on Sep 30th
        }
        for when in placed.values():
            order_service.create_order(customer, order_payload((variant, 1)), now=when)

        stats = order_service.order_statistics(now=datetime(2026, 10, 17, 1, 0))
        assert stats["totalOrders"] == 4
        assert stats["ordersToday"] == 1
        assert stats["ordersThisMonth"] == 3
