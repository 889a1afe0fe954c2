# sneakerstore/cart/routes.py
from __future__ import annotations
from flask import request

from ..errors import BadRequest, Conflict, NotFound
from ..extensions import db
from ..model import Cart, CartItem, Product, ProductVariant
from ..utils.api import ok
from ..utils.decorators import current_user, login_required
from . import bp


# ---- helpers ---------------------------------------------------------------

def _resolve_cart() -> Cart:
    user = current_user()
    cart = Cart.query.filter_by(user_id=user.id).first()
    if not cart:
        cart = Cart(user_id=user.id)
        db.session.add(cart)
        db.session.commit()
    return cart


def _to_int(v, default=None):
    if isinstance(v, bool):
        return default
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _normalized_qty(variant: ProductVariant | None, requested_qty: int) -> int:
    """Cap a requested quantity to what the variant has on hand."""
    if variant is not None and requested_qty > int(variant.stock or 0):
        return int(variant.stock or 0)
    return requested_qty


def _find_item(cart: Cart, item_id: int) -> CartItem:
    item = next((i for i in cart.items if i.id == item_id), None)
    if not item:
        raise NotFound("Không tìm thấy sản phẩm trong giỏ hàng")
    return item


# ---- endpoints -------------------------------------------------------------

@bp.get("")
@login_required
def get_cart():
    return ok("Lấy giỏ hàng thành công", _resolve_cart().as_api())


@bp.post("/items")
@login_required
def add_item():
    """
    Body: { "product": int, "variant"?: int, "quantity": int }
    Quantity is capped to the variant's stock.
    """
    cart = _resolve_cart()
    data = request.get_json(silent=True) or {}
    qty = _to_int(data.get("quantity", 1))
    if qty is None or qty < 1:
        raise BadRequest("Số lượng phải lớn hơn 0")

    product = db.session.get(Product, _to_int(data.get("product"), 0))
    if not product or product.status != "active":
        raise NotFound("Sản phẩm không tồn tại hoặc đã ngừng bán")

    variant = None
    if data.get("variant") not in (None, ""):
        variant = db.session.get(ProductVariant, _to_int(data.get("variant"), 0))
        if not variant or variant.product_id != product.id or variant.status == "inactive":
            raise NotFound("Biến thể sản phẩm không tồn tại")
        if int(variant.stock or 0) <= 0:
            raise Conflict("Sản phẩm đã hết hàng")

    price = variant.unit_price() if variant else product.effective_price()
    item = next((i for i in cart.items
                 if i.product_id == product.id and i.variant_id == (variant.id if variant else None)), None)
    if item:
        item.quantity = _normalized_qty(variant, item.quantity + qty)
        item.price = price
    else:
        cart.items.append(CartItem(
            product_id=product.id,
            variant_id=variant.id if variant else None,
            quantity=_normalized_qty(variant, qty),
            price=price,
        ))

    db.session.commit()
    return ok("Đã thêm sản phẩm vào giỏ hàng", cart.as_api(), status=201)


@bp.put("/items/<int:item_id>")
@bp.patch("/items/<int:item_id>")
@login_required
def update_item(item_id: int):
    """Body: { "quantity": int }"""
    cart = _resolve_cart()
    item = _find_item(cart, item_id)

    data = request.get_json(silent=True) or {}
    qty = _to_int(data.get("quantity"))
    if qty is None or qty < 1:
        raise BadRequest("Số lượng phải lớn hơn 0")

    qty = _normalized_qty(item.variant, qty)
    if qty < 1:
        raise Conflict("Sản phẩm đã hết hàng")
    item.quantity = qty
    db.session.commit()
    return ok("Đã cập nhật giỏ hàng", cart.as_api())


@bp.delete("/items/<int:item_id>")
@login_required
def remove_item(item_id: int):
    cart = _resolve_cart()
    cart.items.remove(_find_item(cart, item_id))
    db.session.commit()
    return ok("Đã xóa sản phẩm khỏi giỏ hàng", cart.as_api())


@bp.delete("/items")
@login_required
def clear_cart_items():
    cart = _resolve_cart()
    # cascade="all, delete-orphan": clearing the list deletes rows
    cart.items.clear()
    db.session.commit()
    return ok("Đã xóa toàn bộ giỏ hàng", cart.as_api())
