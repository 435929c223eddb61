# Overview: Human-readable order number generation.

"""
Order Numbers

Format: BEST-YYYYMMDD-NNNN
- YYYYMMDD: creation date
- NNNN: zero-padded random value in [0, 9999]

Numbers are NOT globally unique. The orders.order_number unique
constraint is the final guard; the engine retries with a fresh number.
"""

from __future__ import annotations

import re
import secrets
from datetime import datetime
from typing import Callable


ORDER_NUMBER_PREFIX = "BEST"
ORDER_NUMBER_PATTERN = re.compile(r"^BEST-\d{8}-\d{4}$")


def generate_order_number(
    now: datetime,
    *,
    randbelow: Callable[[int], int] = secrets.randbelow,
) -> str:
    suffix = randbelow(10000)
    return f"{ORDER_NUMBER_PREFIX}-{now:%Y%m%d}-{suffix:04d}"


def is_valid_order_number(value: str) -> bool:
    return bool(ORDER_NUMBER_PATTERN.match(value or ""))
