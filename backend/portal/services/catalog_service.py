# Overview: Read-only product lookups consumed by the order workflow.

from __future__ import annotations

from typing import Iterable

from ..models import Product


def find_active_products(session, product_ids: Iterable[int]) -> dict[int, Product]:
    """
    Resolve product ids to active products.

    Missing and inactive products are simply absent from the result;
    the caller decides how to report them.
    """
    ids = set(product_ids)
    if not ids:
        return {}
    products = (
        session.query(Product)
        .filter(Product.id.in_(ids), Product.is_active.is_(True))
        .all()
    )
    return {product.id: product for product in products}
