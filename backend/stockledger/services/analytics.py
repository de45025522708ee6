"""
Inventory and sales analytics.

Money columns come back from the store as ``Decimal``; everything is summed as
``Decimal`` and turned into float only when the response model is built.
"""
import logging
from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from stockledger.core.errors import ValidationFailure
from stockledger.data.filters import ProductFilter, SaleFilter
from stockledger.data.gateway import Gateway
from stockledger.models.product import Category, Product
from stockledger.models.sale import Sale
from stockledger.schemas.responses import (
    DailySales,
    InventorySnapshot,
    ProfitLoss,
    Sale as SaleOut,
    SalesAnalytics,
)
from stockledger.services.cache import CacheTag, ResultCache, default_ttl, make_cache_key

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"
RECENT_SALES = 10
DEFAULT_REPORT_DAYS = 30

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT)


def stock_value():
    return func.coalesce(func.sum(Product.price * Product.quantity), 0)


# ---------- inventory ----------

def compute_inventory_analytics(gateway: Gateway, tenant_id: int) -> InventorySnapshot:
    totals = gateway.aggregate_row(
        tenant_id,
        Product,
        func.count(Product.id).label("total_products"),
        stock_value().label("total_value"),
    )
    low_stock = gateway.count_at_or_below_threshold(tenant_id)
    out_of_stock = gateway.count(tenant_id, Product, ProductFilter(status="out_of_stock"))

    groups = gateway.group_by(tenant_id, Product, Product.category_id, stock_value())
    names = {c.id: c.name for c in gateway.find_many(tenant_id, Category)}

    # null and dangling category ids share one bucket, so add rather than overwrite
    by_category: Dict[str, Decimal] = {}
    for row in groups:
        label = names.get(row.key, UNCATEGORIZED) if row.key is not None else UNCATEGORIZED
        by_category[label] = by_category.get(label, Decimal("0.00")) + to_money(row.value)

    return InventorySnapshot(
        total_products=int(totals.total_products or 0),
        total_value=float(to_money(totals.total_value)),
        low_stock_count=low_stock,
        out_of_stock_count=out_of_stock,
        value_by_category={k: float(v) for k, v in by_category.items()},
    )


def get_inventory_analytics(gateway: Gateway, cache: ResultCache, tenant_id: int) -> InventorySnapshot:
    return cache.get_or_compute(
        make_cache_key("inventory_analytics", tenant_id),
        [CacheTag.ANALYTICS, CacheTag.PRODUCTS],
        default_ttl(CacheTag.ANALYTICS),
        lambda: compute_inventory_analytics(gateway, tenant_id),
    )


# ---------- sales ----------

def compute_sales_analytics(
    gateway: Gateway,
    tenant_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    recent: int = RECENT_SALES,
) -> SalesAnalytics:
    filters = SaleFilter(start_date=start_date, end_date=end_date)

    sales_count = gateway.count(tenant_id, Sale, filters)
    revenue = gateway.aggregate(tenant_id, Sale, func.sum(Sale.total_amount), filters)
    recent_sales = gateway.find_many(
        tenant_id,
        Sale,
        filters=filters,
        order_by=(Sale.created_at.desc(), Sale.id.desc()),
        limit=recent,
        options=(selectinload(Sale.items),),
    )

    return SalesAnalytics(
        sales_count=sales_count,
        total_revenue=float(to_money(revenue)),
        recent_sales=[SaleOut.model_validate(s) for s in recent_sales],
    )


def get_sales_analytics(
    gateway: Gateway,
    cache: ResultCache,
    tenant_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> SalesAnalytics:
    return cache.get_or_compute(
        make_cache_key("sales_analytics", tenant_id, start_date, end_date),
        [CacheTag.ANALYTICS, CacheTag.SALES],
        default_ttl(CacheTag.ANALYTICS),
        lambda: compute_sales_analytics(gateway, tenant_id, start_date, end_date),
    )


# ---------- reports ----------

def resolve_range(start_date: Optional[date], end_date: Optional[date], today: Optional[date] = None):
    """Default to the last 30 days ending today."""
    end = end_date or today or date.today()
    start = start_date or (end - timedelta(days=DEFAULT_REPORT_DAYS))
    if start > end:
        raise ValidationFailure(
            {"start_date": ["Start date must be on or before end date"]},
            message="Invalid date range",
        )
    return start, end


def _completed_sales(gateway: Gateway, tenant_id: int, start: date, end: date):
    return gateway.find_many(
        tenant_id,
        Sale,
        filters=SaleFilter(start_date=start, end_date=end, status="completed"),
        order_by=(Sale.created_at.asc(),),
        options=(selectinload(Sale.items),),
    )


def _cogs(sale: Sale) -> Decimal:
    return sum(
        (to_money(item.cost_price) * item.quantity for item in sale.items),
        Decimal("0.00"),
    )


def compute_profit_loss(
    gateway: Gateway,
    tenant_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    today: Optional[date] = None,
) -> ProfitLoss:
    start, end = resolve_range(start_date, end_date, today)
    sales = _completed_sales(gateway, tenant_id, start, end)

    revenue = cogs = discount = tax = Decimal("0.00")
    for sale in sales:
        # net revenue, tax excluded
        revenue += to_money(sale.total_amount) - to_money(sale.tax)
        discount += to_money(sale.discount)
        tax += to_money(sale.tax)
        cogs += _cogs(sale)

    gross = revenue - cogs
    margin = (gross / revenue * 100) if revenue > 0 else Decimal("0")

    return ProfitLoss(
        start_date=start,
        end_date=end,
        revenue=float(revenue),
        cogs=float(cogs),
        gross_profit=float(gross),
        gross_margin=round(float(margin), 2),
        # no expenses tracked yet, so net == gross
        net_profit=float(gross),
        total_discount=float(discount),
        total_tax=float(tax),
        transaction_count=len(sales),
    )


def compute_sales_performance(
    gateway: Gateway,
    tenant_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    today: Optional[date] = None,
) -> list:
    start, end = resolve_range(start_date, end_date, today)

    days: "OrderedDict[date, Dict]" = OrderedDict()
    current = start
    while current <= end:
        days[current] = {"revenue": Decimal("0.00"), "profit": Decimal("0.00"), "count": 0}
        current += timedelta(days=1)

    for sale in _completed_sales(gateway, tenant_id, start, end):
        bucket = days.get(sale.created_at.date())
        if bucket is None:
            continue
        revenue = to_money(sale.total_amount) - to_money(sale.tax)
        bucket["revenue"] += revenue
        bucket["profit"] += revenue - _cogs(sale)
        bucket["count"] += 1

    return [
        DailySales(date=d, revenue=float(v["revenue"]), profit=float(v["profit"]), count=v["count"])
        for d, v in days.items()
    ]
