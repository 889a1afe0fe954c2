"""Pytest fixtures for sneakerstore tests."""

from datetime import timedelta

import pytest
from flask_jwt_extended import create_access_token

from sneakerstore import create_app
from sneakerstore.config import TestConfig
from sneakerstore.extensions import db
from sneakerstore.model import Color, Coupon, Product, ProductImage, ProductVariant, Size, User
from sneakerstore.services import order_service
from sneakerstore.utils.clock import utcnow


@pytest.fixture
def app():
    """App on an in-memory database, with its context pushed for the whole test."""
    app = create_app(TestConfig)
    ctx = app.app_context()
    ctx.push()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app):
    return app.test_client()


def _user(email, name, role="user"):
    u = User(email=email, name=name, role=role)
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def admin(app):
    return _user("admin@sneaker.vn", "Quản trị", role="admin")


@pytest.fixture
def customer(app):
    return _user("an@example.com", "Nguyễn Văn An")


@pytest.fixture
def other_customer(app):
    return _user("binh@example.com", "Trần Thị Bình")


@pytest.fixture
def auth_headers():
    def make(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}
    return make


@pytest.fixture
def product(app):
    """Air Force 1 at 900.000₫ (sale) with two variants of 5 pairs each."""
    black = Color(name="Đen", code="#000000")
    s42 = Size(name="42", value="42")
    s43 = Size(name="43", value="43")
    db.session.add_all([black, s42, s43])
    db.session.flush()

    p = Product(name="Air Force 1", slug="air-force-1",
                base_price=1_000_000, sale_price=900_000, total_stock=10, status="active")
    p.images.append(ProductImage(image_path="/uploads/af1.jpg", is_primary=True))
    p.variants.append(ProductVariant(sku="AF1-42-BLK", size_id=s42.id, color_id=black.id,
                                     additional_price=0, stock=5, status="active"))
    p.variants.append(ProductVariant(sku="AF1-43-BLK", size_id=s43.id, color_id=black.id,
                                     additional_price=50_000, stock=5, status="active"))
    db.session.add(p)
    db.session.commit()
    return p


@pytest.fixture
def plain_product(app):
    """Socks sold without size/color variants, 2 pairs on hand."""
    p = Product(name="Vớ thể thao", slug="vo-the-thao",
                base_price=50_000, sale_price=0, total_stock=2, status="active")
    db.session.add(p)
    db.session.commit()
    return p


@pytest.fixture
def variant(product):
    return product.variants[0]


@pytest.fixture
def variant_43(product):
    return product.variants[1]


@pytest.fixture
def make_coupon(app):
    def make(code="SALE10", **kw):
        now = utcnow()
        fields = dict(
            type="percentage", value=10, max_discount=0, min_order_amount=0,
            max_usage=0, usage_count=0, is_active=True,
            start_date=now - timedelta(days=1), end_date=now + timedelta(days=30),
        )
        fields.update(kw)
        c = Coupon(code=code, **fields)
        db.session.add(c)
        db.session.commit()
        return c
    return make


SHIPPING = {
    "fullName": "Nguyễn Văn An",
    "email": "an@example.com",
    "phoneNumber": "0901234567",
    "address": "12 Lê Lợi",
    "ward": "Bến Nghé",
    "district": "Quận 1",
    "city": "Hồ Chí Minh",
}


@pytest.fixture
def order_payload():
    def make(*lines, **extra):
        payload = {
            "shippingDetails": dict(SHIPPING),
            "items": [
                {"product": v.product_id, "variant": v.id, "quantity": q}
                for v, q in lines
            ],
            "paymentMethod": "cod",
        }
        payload.update(extra)
        return payload
    return make


@pytest.fixture
def place_order(order_payload):
    def make(user, variant, quantity=2, **extra):
        return order_service.create_order(user, order_payload((variant, quantity), **extra))
    return make
