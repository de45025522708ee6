"""
Stock alerts and reorder recommendations.

Classification rules for a product with quantity ``q`` and threshold ``T``:

* ``q == 0`` -> out_of_stock, critical (threshold or not)
* ``T`` set and ``0 < q <= T`` -> low_stock, critical when ``q <= T * 0.5``
  otherwise warning
* anything else raises no alert
"""
import logging
from typing import List, Optional

from stockledger.data.filters import ProductFilter
from stockledger.data.gateway import Gateway
from stockledger.models.product import Product
from stockledger.schemas.responses import AlertSummary, ReorderRecommendation, StockAlert
from stockledger.services.cache import CacheTag, ResultCache, default_ttl, make_cache_key
from stockledger.services.reorder import compute_reorder_fields

logger = logging.getLogger(__name__)

CRITICAL_RATIO = 0.5
DEFAULT_DAYS_OF_STOCK = 30

ALERT_TAGS = (CacheTag.PRODUCTS, CacheTag.ANALYTICS)


def classify_product(p: Product) -> Optional[StockAlert]:
    qty = p.quantity or 0
    threshold = p.low_stock_threshold

    if qty == 0:
        return StockAlert(
            product_id=p.id,
            product_name=p.name,
            sku=p.sku,
            current_stock=qty,
            low_stock_threshold=threshold,
            alert_type="out_of_stock",
            severity="critical",
            message=f"{p.name} is out of stock",
            created_at=p.updated_at,
        )

    if threshold is not None and qty <= threshold:
        severity = "critical" if qty <= threshold * CRITICAL_RATIO else "warning"
        return StockAlert(
            product_id=p.id,
            product_name=p.name,
            sku=p.sku,
            current_stock=qty,
            low_stock_threshold=threshold,
            alert_type="low_stock",
            severity=severity,
            message=f"{p.name} is running low ({qty} left, threshold {threshold})",
            created_at=p.updated_at,
        )

    return None


def _alerting_products(gateway: Gateway, tenant_id: int) -> List[Product]:
    return gateway.find_many(
        tenant_id,
        Product,
        filters=ProductFilter(alerting=True),
        order_by=(Product.quantity.asc(), Product.name.asc(), Product.id.asc()),
    )


def compute_stock_alerts(gateway: Gateway, tenant_id: int) -> List[StockAlert]:
    alerts = []
    for p in _alerting_products(gateway, tenant_id):
        alert = classify_product(p)
        if alert is not None:
            alerts.append(alert)
    return alerts


def compute_stock_alert_summary(gateway: Gateway, tenant_id: int) -> AlertSummary:
    out_of_stock = gateway.count(tenant_id, Product, ProductFilter(status="out_of_stock"))
    low_stock = gateway.count(tenant_id, Product, ProductFilter(status="low_stock"))
    low_critical = gateway.count_at_or_below_threshold(
        tenant_id, ratio=CRITICAL_RATIO, in_stock_only=True
    )

    total = out_of_stock + low_stock
    critical = out_of_stock + low_critical
    return AlertSummary(
        total_alerts=total,
        critical_alerts=critical,
        warning_alerts=total - critical,
        out_of_stock=out_of_stock,
        low_stock=low_stock,
    )


def compute_reorder_recommendations(
    gateway: Gateway,
    tenant_id: int,
    days_of_stock: int = DEFAULT_DAYS_OF_STOCK,
) -> List[ReorderRecommendation]:
    """
    Reorder suggestions for every alerting product, most urgent first.

    ``days_of_stock`` does not change the estimate yet; days remaining are
    measured against the one-week threshold baseline.
    """
    recs = []
    for p in _alerting_products(gateway, tenant_id):
        fields = compute_reorder_fields(p)
        recs.append(
            ReorderRecommendation(
                product_id=p.id,
                product_name=p.name,
                current_stock=p.quantity or 0,
                low_stock_threshold=p.low_stock_threshold,
                **fields,
            )
        )
    recs.sort(key=lambda r: (r.estimated_days_remaining, r.product_name))
    return recs


# ---------- cached reads ----------

def get_stock_alerts(gateway: Gateway, cache: ResultCache, tenant_id: int) -> List[StockAlert]:
    return cache.get_or_compute(
        make_cache_key("stock_alerts", tenant_id),
        ALERT_TAGS,
        default_ttl(CacheTag.PRODUCTS),
        lambda: compute_stock_alerts(gateway, tenant_id),
    )


def get_stock_alert_summary(gateway: Gateway, cache: ResultCache, tenant_id: int) -> AlertSummary:
    return cache.get_or_compute(
        make_cache_key("stock_alert_summary", tenant_id),
        ALERT_TAGS,
        default_ttl(CacheTag.PRODUCTS),
        lambda: compute_stock_alert_summary(gateway, tenant_id),
    )


def get_reorder_recommendations(
    gateway: Gateway,
    cache: ResultCache,
    tenant_id: int,
    days_of_stock: int = DEFAULT_DAYS_OF_STOCK,
) -> List[ReorderRecommendation]:
    return cache.get_or_compute(
        make_cache_key("reorder_recommendations", tenant_id, days_of_stock),
        ALERT_TAGS,
        default_ttl(CacheTag.PRODUCTS),
        lambda: compute_reorder_recommendations(gateway, tenant_id, days_of_stock),
    )
