# backend/stockledger/api/routes.py
#
# Read endpoints. Any authenticated user of a tenant (viewer or manager) can
# read; everything is scoped to the caller's tenant.

from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query

from stockledger.api.deps import CurrentUser, get_cache, get_current_user, get_gateway
from stockledger.data.filters import (
    ActivityFilter,
    BatchFilter,
    MovementFilter,
    ProductFilter,
    PurchaseOrderFilter,
    SaleFilter,
)
from stockledger.data.gateway import Gateway
from stockledger.schemas.forms import PurchaseOrderStatus
from stockledger.schemas import responses as out
from stockledger.services import alerts, analytics, catalog
from stockledger.services.activity import get_activity_feed
from stockledger.services.cache import ResultCache

router = APIRouter()

ProductStatus = Literal["in_stock", "low_stock", "out_of_stock"]


@router.get("/ping")
def ping():
    return {"message": "pong"}


# ---------- CATALOG ----------

@router.get("/products", response_model=out.PageOut[out.Product])
def list_products(
    page: int = Query(1, ge=1),
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    supplier_id: Optional[int] = None,
    status: Optional[ProductStatus] = None,
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    filters = ProductFilter(
        search=search,
        category_id=category_id,
        supplier_id=supplier_id,
        status=status,
    )
    return catalog.list_products(gateway, cache, user.tenant_id, page, filters)


@router.get("/products/{product_id}", response_model=out.Product)
def get_product(
    product_id: int,
    gateway: Gateway = Depends(get_gateway),
    user: CurrentUser = Depends(get_current_user),
):
    return catalog.get_product(gateway, user.tenant_id, product_id)


@router.get("/categories", response_model=List[out.Category])
def list_categories(
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return catalog.list_categories(gateway, cache, user.tenant_id)


@router.get("/tags", response_model=List[out.Tag])
def list_tags(
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return catalog.list_tags(gateway, cache, user.tenant_id)


@router.get("/suppliers", response_model=out.PageOut[out.Supplier])
def list_suppliers(
    page: int = Query(1, ge=1),
    search: Optional[str] = None,
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return catalog.list_suppliers(gateway, cache, user.tenant_id, page, search)


@router.get("/customers", response_model=out.PageOut[out.Customer])
def list_customers(
    page: int = Query(1, ge=1),
    search: Optional[str] = None,
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return catalog.list_customers(gateway, cache, user.tenant_id, page, search)


@router.get("/locations", response_model=out.PageOut[out.Location])
def list_locations(
    page: int = Query(1, ge=1),
    search: Optional[str] = None,
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return catalog.list_locations(gateway, cache, user.tenant_id, page, search)


@router.get("/batches", response_model=out.PageOut[out.Batch])
def list_batches(
    page: int = Query(1, ge=1),
    product_id: Optional[int] = None,
    location_id: Optional[int] = None,
    include_expired: bool = True,
    expiring_before: Optional[date] = None,
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    filters = BatchFilter(
        product_id=product_id,
        location_id=location_id,
        include_expired=include_expired,
        expiring_before=expiring_before,
        today=date.today(),
    )
    return catalog.list_batches(gateway, cache, user.tenant_id, page, filters)


@router.get("/stock-movements", response_model=out.PageOut[out.StockMovement])
def list_stock_movements(
    page: int = Query(1, ge=1),
    product_id: Optional[int] = None,
    location_id: Optional[int] = None,
    type: Optional[str] = None,
    reference: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    filters = MovementFilter(
        product_id=product_id,
        location_id=location_id,
        type=type,
        reference=reference,
        start_date=start_date,
        end_date=end_date,
    )
    return catalog.list_movements(gateway, cache, user.tenant_id, page, filters)


@router.get("/stock-movements/summary", response_model=out.MovementSummary)
def stock_movement_summary(
    product_id: Optional[int] = None,
    location_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    filters = MovementFilter(
        product_id=product_id,
        location_id=location_id,
        start_date=start_date,
        end_date=end_date,
    )
    return catalog.get_movement_summary(gateway, cache, user.tenant_id, filters)


# ---------- PURCHASE ORDERS ----------

@router.get("/purchase-orders", response_model=out.PageOut[out.PurchaseOrder])
def list_purchase_orders(
    page: int = Query(1, ge=1),
    status: Optional[PurchaseOrderStatus] = None,
    supplier_id: Optional[int] = None,
    search: Optional[str] = None,
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    filters = PurchaseOrderFilter(status=status, supplier_id=supplier_id, search=search)
    return catalog.list_purchase_orders(gateway, cache, user.tenant_id, page, filters)


@router.get("/purchase-orders/{po_id}", response_model=out.PurchaseOrderDetail)
def get_purchase_order(
    po_id: int,
    gateway: Gateway = Depends(get_gateway),
    user: CurrentUser = Depends(get_current_user),
):
    return catalog.get_purchase_order(gateway, user.tenant_id, po_id)


# ---------- SALES ----------

@router.get("/sales", response_model=out.PageOut[out.Sale])
def list_sales(
    page: int = Query(1, ge=1),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Optional[str] = None,
    customer_id: Optional[int] = None,
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    filters = SaleFilter(
        start_date=start_date,
        end_date=end_date,
        status=status,
        customer_id=customer_id,
    )
    return catalog.list_sales(gateway, cache, user.tenant_id, page, filters)


# ---------- ACTIVITY LOG ----------

@router.get("/activity-log", response_model=out.PageOut[out.ActivityEntry])
def list_activity(
    page: int = Query(1, ge=1),
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    filters = ActivityFilter(action=action, entity_type=entity_type, entity_id=entity_id)
    return get_activity_feed(gateway, cache, user.tenant_id, page, filters)


# ---------- ANALYTICS / REPORTS ----------

@router.get("/analytics/inventory", response_model=out.InventorySnapshot)
def inventory_analytics(
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return analytics.get_inventory_analytics(gateway, cache, user.tenant_id)


@router.get("/analytics/sales", response_model=out.SalesAnalytics)
def sales_analytics(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return analytics.get_sales_analytics(gateway, cache, user.tenant_id, start_date, end_date)


@router.get("/reports/profit-loss", response_model=out.ProfitLoss)
def profit_loss(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    gateway: Gateway = Depends(get_gateway),
    user: CurrentUser = Depends(get_current_user),
):
    return analytics.compute_profit_loss(gateway, user.tenant_id, start_date, end_date)


@router.get("/reports/sales-performance", response_model=List[out.DailySales])
def sales_performance(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    gateway: Gateway = Depends(get_gateway),
    user: CurrentUser = Depends(get_current_user),
):
    return analytics.compute_sales_performance(gateway, user.tenant_id, start_date, end_date)


# ---------- ALERTS / REORDER ----------

@router.get("/alerts", response_model=List[out.StockAlert])
def stock_alerts(
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return alerts.get_stock_alerts(gateway, cache, user.tenant_id)


@router.get("/alerts/summary", response_model=out.AlertSummary)
def stock_alert_summary(
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return alerts.get_stock_alert_summary(gateway, cache, user.tenant_id)


@router.get("/alerts/reorder", response_model=List[out.ReorderRecommendation])
def reorder_recommendations(
    days_of_stock: int = Query(alerts.DEFAULT_DAYS_OF_STOCK, ge=1),
    gateway: Gateway = Depends(get_gateway),
    cache: ResultCache = Depends(get_cache),
    user: CurrentUser = Depends(get_current_user),
):
    return alerts.get_reorder_recommendations(gateway, cache, user.tenant_id, days_of_stock)
