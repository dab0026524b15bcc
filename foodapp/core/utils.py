"""Small helpers shared by models and services."""

import random
import re
import string
import time
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

CENT = Decimal("0.01")
BASE36 = string.digits + string.ascii_uppercase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to aware UTC; naive values (SQLite returns those) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def money(value: Union[Decimal, float, int, str, None]) -> Decimal:
    """Quantize a value to two decimal places, rounding half up."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug or "item"


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(BASE36[rem])
    return "".join(reversed(digits))


def generate_order_number() -> str:
    """ORD-<base36 millisecond timestamp>-<5 random chars>, upper case."""
    stamp = to_base36(int(time.time() * 1000))
    suffix = "".join(random.choices(BASE36, k=5))
    return f"ORD-{stamp}-{suffix}"


def page_count(total: int, limit: int) -> int:
    return (total + limit - 1) // limit if limit else 0
