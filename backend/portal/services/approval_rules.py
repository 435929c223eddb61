# Overview: Pure rules deciding whether an order needs manager approval.

"""
Approval Requirement

An order needs approval when ANY of its products is flagged
requires_approval, OR it carries a special request. A whitespace-only
special request counts as empty.

No database access and no side effects: callers pass in what they
already loaded.
"""

from __future__ import annotations

from typing import Iterable


def has_special_request(special_request: str | None) -> bool:
    return bool(special_request and special_request.strip())


def products_require_approval(products: Iterable, special_request: str | None = None) -> bool:
    """Evaluate the rule from resolved products (anything with .requires_approval)."""
    if any(bool(product.requires_approval) for product in products):
        return True
    return has_special_request(special_request)


def requires_approval(order) -> bool:
    """Evaluate the rule for an order whose items reference their products."""
    return products_require_approval(
        (item.product for item in order.items),
        order.special_request,
    )
