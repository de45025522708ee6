import math
from typing import Optional

from stockledger.models.product import Product

DEFAULT_TARGET_STOCK = 10
DEFAULT_MIN_ORDER = 5
# a threshold's worth of stock is assumed to last one week
THRESHOLD_COVER_DAYS = 7


def compute_target_stock(threshold: Optional[int]) -> int:
    return threshold * 2 if threshold else DEFAULT_TARGET_STOCK


def compute_recommended_quantity(qty: int, threshold: Optional[int]) -> int:
    target = compute_target_stock(threshold)
    return max(target - qty, threshold or DEFAULT_MIN_ORDER)


def compute_days_remaining(qty: int, threshold: Optional[int]) -> int:
    if qty <= 0 or not threshold:
        return 0
    return int(math.floor(qty / threshold * THRESHOLD_COVER_DAYS))


def compute_reorder_fields(p: Product) -> dict:
    """A threshold of 0 is treated as no threshold."""
    qty = p.quantity or 0
    threshold = p.low_stock_threshold

    return {
        "target_stock": compute_target_stock(threshold),
        "recommended_order_quantity": compute_recommended_quantity(qty, threshold),
        "estimated_days_remaining": compute_days_remaining(qty, threshold),
    }
