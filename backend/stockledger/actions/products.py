import logging
from typing import Any, Dict, Optional

from stockledger.actions.base import (
    ActionContext,
    ActionResult,
    changes_between,
    check_reference,
    commit,
    field_error,
    get_owned,
    mutation,
    success_result,
    validate,
)
from stockledger.data.filters import Where
from stockledger.models.batch import Batch, StockMovement
from stockledger.models.product import Category, Product
from stockledger.models.purchase_order import PurchaseOrderItem
from stockledger.models.sale import SaleItem
from stockledger.models.supplier import Supplier
from stockledger.schemas.forms import ProductForm, StockAdjustmentForm, ThresholdForm
from stockledger.services.cache import CacheTag

logger = logging.getLogger(__name__)

PRODUCT_TAGS = (CacheTag.PRODUCTS, CacheTag.ANALYTICS, CacheTag.ACTIVITY_LOG)

SKU_TAKEN = "A product with this SKU already exists."
SKU_CONSTRAINT = {"sku": ("sku", SKU_TAKEN)}


def _check_sku(ctx: ActionContext, sku: Optional[str], exclude_id: Optional[int] = None) -> None:
    if not sku:
        return
    clauses = [Product.sku == sku]
    if exclude_id is not None:
        clauses.append(Product.id != exclude_id)
    # archived products still hold their sku
    if ctx.gateway.find_many(ctx.tenant_id, Product, Where(*clauses), limit=1, include_inactive=True):
        raise field_error("sku", SKU_TAKEN)


def _check_refs(ctx: ActionContext, form: ProductForm) -> None:
    check_reference(ctx, Category, form.category_id, "category_id", "Category")
    check_reference(ctx, Supplier, form.supplier_id, "supplier_id", "Supplier")


def _movement(ctx: ActionContext, product_id: int, kind: str, quantity: int, **extra) -> StockMovement:
    return ctx.gateway.add(
        ctx.tenant_id,
        StockMovement(product_id=product_id, type=kind, quantity=quantity, **extra),
    )


@mutation(*PRODUCT_TAGS, failure="Failed to create product.")
def create_product(ctx: ActionContext, data: Dict[str, Any]) -> ActionResult:
    form = validate(ProductForm, data)
    _check_refs(ctx, form)
    _check_sku(ctx, form.sku)

    p = ctx.gateway.add(ctx.tenant_id, Product(**form.model_dump()))
    ctx.gateway.flush()
    product_id = p.id

    if form.quantity > 0:
        _movement(ctx, product_id, "in", form.quantity, reference_type="product", notes="Initial stock")

    ctx.log("create", "product", product_id, note=f"Created product {form.name}")
    commit(ctx, SKU_CONSTRAINT)
    return success_result("Product added successfully!", {"id": product_id})


@mutation(*PRODUCT_TAGS, failure="Failed to update product.")
def update_product(ctx: ActionContext, product_id: int, data: Dict[str, Any]) -> ActionResult:
    p = get_owned(ctx, Product, product_id, "Product")
    form = validate(ProductForm, data)
    _check_refs(ctx, form)
    _check_sku(ctx, form.sku, exclude_id=p.id)

    values = form.model_dump()
    changes = changes_between(p, values)

    # a quantity edited through the form is still a stock movement
    delta = form.quantity - (p.quantity or 0)
    if delta:
        _movement(ctx, p.id, "adjustment", delta, reference_type="product", notes="Quantity edited")

    for key, value in values.items():
        setattr(p, key, value)

    ctx.log("update", "product", p.id, changes=changes, note=f"Updated product {p.name}")
    commit(ctx, SKU_CONSTRAINT)
    return success_result("Product updated successfully.", {"id": product_id})


@mutation(*PRODUCT_TAGS, failure="Failed to delete product.")
def delete_product(ctx: ActionContext, product_id: int) -> ActionResult:
    p = get_owned(ctx, Product, product_id, "Product")
    name = p.name

    sold = ctx.gateway.count(ctx.tenant_id, SaleItem, Where(SaleItem.product_id == p.id))
    if sold:
        # sale history keeps pointing at it
        p.is_active = False
    else:
        for m in ctx.gateway.find_many(ctx.tenant_id, StockMovement, Where(StockMovement.product_id == p.id)):
            ctx.gateway.delete(m)
        for b in ctx.gateway.find_many(ctx.tenant_id, Batch, Where(Batch.product_id == p.id)):
            ctx.gateway.delete(b)
        # order lines keep their name and sku as free text
        lines = ctx.gateway.find_many(ctx.tenant_id, PurchaseOrderItem, Where(PurchaseOrderItem.product_id == p.id))
        for item in lines:
            item.product_id = None
        ctx.gateway.delete(p)

    ctx.log(
        "delete",
        "product",
        product_id,
        changes={"archived": bool(sold)},
        note=f"Deleted product {name}",
    )
    commit(ctx)
    return success_result("Product deleted successfully.", {"id": product_id, "archived": bool(sold)})


@mutation(*PRODUCT_TAGS, failure="Failed to adjust stock.")
def adjust_stock(ctx: ActionContext, product_id: int, data: Dict[str, Any]) -> ActionResult:
    p = get_owned(ctx, Product, product_id, "Product")
    form = validate(StockAdjustmentForm, data)

    before = p.quantity or 0
    after = before + form.adjustment
    if after < 0:
        raise field_error("adjustment", "Cannot adjust stock below zero.")

    ctx.gateway.increment(ctx.tenant_id, Product, p.id, "quantity", form.adjustment)
    _movement(
        ctx,
        p.id,
        "adjustment",
        form.adjustment,
        reference_type="manual",
        notes=form.reason or "Manual stock adjustment",
    )
    ctx.log(
        "stock_adjustment",
        "product",
        p.id,
        changes={"quantity": {"from": before, "to": after}},
        note=form.reason,
    )
    commit(ctx)
    return success_result(
        f"Stock adjusted successfully. New quantity: {after}",
        {"id": product_id, "quantity": after},
    )


@mutation(*PRODUCT_TAGS, failure="Failed to update alert threshold.")
def set_alert_threshold(ctx: ActionContext, product_id: int, threshold: Optional[int]) -> ActionResult:
    """Set or (with ``None``) clear the low-stock threshold of one product."""
    p = get_owned(ctx, Product, product_id, "Product")
    form = validate(ThresholdForm, {"low_stock_threshold": threshold})

    changes = changes_between(p, {"low_stock_threshold": form.low_stock_threshold})
    p.low_stock_threshold = form.low_stock_threshold
    name = p.name

    ctx.log("update", "product", p.id, changes=changes, note="Alert threshold changed")
    commit(ctx)

    if form.low_stock_threshold is None:
        message = f"Alert threshold removed for {name}"
    else:
        message = f"Alert threshold set to {form.low_stock_threshold} for {name}"
    return success_result(message, {"id": product_id, "low_stock_threshold": form.low_stock_threshold})
