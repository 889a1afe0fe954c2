# sneakerstore/services/inventory_service.py
from flask import current_app
from sqlalchemy import case, func, select, update
from sqlalchemy.orm.util import identity_key

from ..errors import InsufficientStock
from ..extensions import db
from ..model import Product, ProductVariant


def insufficient_stock(variant: ProductVariant, available=None) -> InsufficientStock:
    available = variant.stock if available is None else available
    return InsufficientStock(
        f"Biến thể sản phẩm {variant.label} chỉ còn {available} sản phẩm",
        variant_id=variant.id,
        available=available,
    )


def check_stock(variant: ProductVariant, quantity: int) -> None:
    if int(variant.stock or 0) < int(quantity):
        raise insufficient_stock(variant)


def _status_after(new_stock):
    # SET expressions see the pre-update row, so `new_stock` is written in terms of it
    return case(
        (ProductVariant.status == "inactive", "inactive"),
        (new_stock <= 0, "out_of_stock"),
        else_="active",
    )


def _expire(model, pk, *attrs):
    obj = db.session.identity_map.get(identity_key(model, pk))
    if obj is not None:
        db.session.expire(obj, list(attrs) or None)


def decrement_variant(variant_id: int, quantity: int) -> None:
    """Take `quantity` units, only if that many are still on hand."""
    new_stock = ProductVariant.stock - quantity
    stmt = (
        update(ProductVariant)
        .where(ProductVariant.id == variant_id)
        .where(ProductVariant.stock >= quantity)
        .values(stock=new_stock, status=_status_after(new_stock))
        .execution_options(synchronize_session=False)
    )
    res = db.session.execute(stmt)
    _expire(ProductVariant, variant_id, "stock", "status")
    if res.rowcount != 1:
        variant = db.session.get(ProductVariant, variant_id)
        current_app.logger.warning("stock exhausted for variant %s (wanted %s)", variant_id, quantity)
        raise insufficient_stock(variant)


def increment_variant(variant_id: int, quantity: int) -> None:
    new_stock = ProductVariant.stock + quantity
    stmt = (
        update(ProductVariant)
        .where(ProductVariant.id == variant_id)
        .values(stock=new_stock, status=_status_after(new_stock))
        .execution_options(synchronize_session=False)
    )
    db.session.execute(stmt)
    _expire(ProductVariant, variant_id, "stock", "status")

def insufficient_product_stock(product: Product, available=None) -> InsufficientStock:
    available = product.total_stock if available is None else available
    return InsufficientStock(
        f"Sản phẩm {product.name} chỉ còn {available} sản phẩm",
        available=available,
    )


def check_product_stock(product: Product, quantity: int) -> None:
    if int(product.total_stock or 0) < int(quantity):
        raise insufficient_product_stock(product)


def decrement_product(product_id: int, quantity: int) -> None:
    """Take `quantity` units of a product sold without variants."""
    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .where(Product.total_stock >= quantity)
        .values(total_stock=Product.total_stock - quantity)
        .execution_options(synchronize_session=False)
    )
    res = db.session.execute(stmt)
    _expire(Product, product_id, "total_stock")
    if res.rowcount != 1:
        current_app.logger.warning("stock exhausted for product %s (wanted %s)", product_id, quantity)
        raise insufficient_product_stock(db.session.get(Product, product_id))


def increment_product(product_id: int, quantity: int) -> None:
    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(total_stock=Product.total_stock + quantity)
        .execution_options(synchronize_session=False)
    )
    db.session.execute(stmt)
    _expire(Product, product_id, "total_stock")


def sync_product_total(product_id: int) -> None:
    """total_stock of a product with variants is the sum of their stock."""
    total = (
        select(func.coalesce(func.sum(ProductVariant.stock), 0))
        .where(ProductVariant.product_id == product_id)
        .scalar_subquery()
    )
    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(total_stock=total)
        .execution_options(synchronize_session=False)
    )
    db.session.execute(stmt)
    _expire(Product, product_id, "total_stock")


def reserve_stock(items) -> None:
    """Decrement stock for every order line; raises before any partial commit."""
    with_variants = set()
    for it in items:
        if it.variant_id:
            decrement_variant(it.variant_id, it.quantity)
            with_variants.add(it.product_id)
        else:
            decrement_product(it.product_id, it.quantity)
    for product_id in with_variants:
        sync_product_total(product_id)


def restock(items) -> None:
    """Exact inverse of `reserve_stock`."""
    with_variants = set()
    for it in items:
        if it.variant_id:
            increment_variant(it.variant_id, it.quantity)
            with_variants.add(it.product_id)
        else:
            increment_product(it.product_id, it.quantity)
    for product_id in with_variants:
        sync_product_total(product_id)
