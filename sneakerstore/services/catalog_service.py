# sneakerstore/services/catalog_service.py
import os
import re

import pandas as pd

from ..errors import BadRequest
from ..extensions import db
from ..model import Color, Order, Product, ProductImage, ProductVariant, Size

VARIANT_COLUMNS = ["Product", "SKU", "Size", "Color", "Stock"]


def slugify(text):
    text = text.strip().lower()
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")


def read_sheet(path: str) -> pd.DataFrame:
    ext = os.path.splitext(path)[1].lower()
    if ext == ".csv":
        df = pd.read_csv(path)
    elif ext in (".xlsx", ".xls"):
        df = pd.read_excel(path)
    else:
        raise BadRequest("Only .csv and .xlsx files are supported")
    # Clean column names (remove extra spaces)
    df.columns = df.columns.str.strip()
    return df


def write_sheet(df: pd.DataFrame, path: str) -> None:
    if path.lower().endswith(".xlsx"):
        df.to_excel(path, index=False)
    else:
        df.to_csv(path, index=False)


def _cell(row, col, default=None):
    if col not in row.index:
        return default
    v = row[col]
    return v if pd.notnull(v) else default


def _int_cell(row, col, default=0) -> int:
    v = _cell(row, col)
    try:
        return int(float(v)) if v is not None else default
    except (TypeError, ValueError, OverflowError):
        return default


def _get_or_create(model, name, **extra):
    obj = model.query.filter(model.name == name).first()
    if not obj:
        obj = model(name=name, **extra)
        db.session.add(obj)
        db.session.flush()
    return obj


def import_variants(df: pd.DataFrame) -> int:
    """
    Upsert product variants (by SKU) from a sheet. Columns:
      Product, SKU, Size, Color, Stock, [Base Price, Sale Price, Additional Price, Image]
    Products, sizes and colors are created by name when missing.
    Each touched product's total_stock is recomputed from its variants.
    Rows missing a product name, SKU, size or color are skipped.
    Returns the number of variants upserted.
    """
    missing = [c for c in VARIANT_COLUMNS if c not in df.columns]
    if missing:
        raise BadRequest(f"Missing required columns: {', '.join(missing)}")

    touched = {}
    upserted = 0
    try:
        for _, row in df.iterrows():
            name = str(_cell(row, "Product", "")).strip()
            sku = str(_cell(row, "SKU", "")).strip()
            size_name = str(_cell(row, "Size", "")).strip()
            color_name = str(_cell(row, "Color", "")).strip()
            if not (name and sku and size_name and color_name):
                continue

            product = Product.query.filter(Product.name == name).first()
            if not product:
                product = Product(name=name, slug=slugify(name))
                db.session.add(product)
            if _cell(row, "Base Price") is not None:
                product.base_price = _int_cell(row, "Base Price")
            if _cell(row, "Sale Price") is not None:
                product.sale_price = _int_cell(row, "Sale Price")
            image = _cell(row, "Image")
            if image and not product.images:
                product.images.append(ProductImage(image_path=str(image), is_primary=True))
            db.session.flush()

            size = _get_or_create(Size, size_name, value=size_name)
            color = _get_or_create(Color, color_name)

            variant = ProductVariant.query.filter(ProductVariant.sku == sku).first()
            if not variant:
                variant = ProductVariant(sku=sku, product_id=product.id)
                db.session.add(variant)
            variant.product_id = product.id
            variant.size_id = size.id
            variant.color_id = color.id
            variant.stock = max(_int_cell(row, "Stock"), 0)
            variant.additional_price = _int_cell(row, "Additional Price")
            variant.sync_status()
            db.session.flush()
            touched[product.id] = product
            upserted += 1

        for product in touched.values():
            db.session.refresh(product)
            product.total_stock = sum(int(v.stock or 0) for v in product.variants)
            if product.status != "draft":
                product.status = "active" if product.total_stock > 0 else "out_of_stock"

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return upserted


def orders_frame(orders) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "Order Number": o.order_number,
            "Created At": o.created_at,
            "Customer": o.ship_full_name,
            "Email": o.ship_email,
            "Phone": o.ship_phone,
            "City": o.ship_city,
            "Status": o.status,
            "Payment Method": o.payment_method,
            "Payment Status": o.payment_status,
            "Items": sum(int(i.quantity) for i in o.items),
            "Subtotal": o.subtotal,
            "Shipping Fee": o.shipping_fee,
            "Discount": o.discount,
            "Total": o.total,
            "Coupon": o.coupon.code if o.coupon else None,
        }
        for o in orders
    ])


def export_orders(path: str, status: str | None = None) -> int:
    q = Order.query
    if status:
        q = q.filter(Order.status == status)
    orders = q.order_by(Order.created_at.asc(), Order.id.asc()).all()
    write_sheet(orders_frame(orders), path)
    return len(orders)
