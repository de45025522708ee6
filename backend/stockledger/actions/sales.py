"""
Recording a sale.

Every line is checked against current stock before anything is written; the
sale, its items, the product decrements and the ``out`` movements then commit
as one transaction. The ``quantity >= 0`` check constraint catches a
concurrent sale that drained the stock between the check and the write.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from stockledger.actions.base import (
    ActionContext,
    ActionResult,
    check_reference,
    commit,
    field_error,
    mutation,
    success_result,
    validate,
)
from stockledger.data.filters import Where
from stockledger.models.batch import Batch, StockMovement
from stockledger.models.customer import Customer
from stockledger.models.product import Product
from stockledger.models.sale import Sale, SaleItem
from stockledger.schemas.forms import SaleForm
from stockledger.services.cache import CacheTag

logger = logging.getLogger(__name__)

SALE_TAGS = (
    CacheTag.SALES,
    CacheTag.PRODUCTS,
    CacheTag.ANALYTICS,
    CacheTag.CUSTOMERS,
    CacheTag.ACTIVITY_LOG,
)


def _unit_cost(ctx: ActionContext, product_id: int) -> Optional[Decimal]:
    """Cost of the most recently received batch that has one."""
    batches = ctx.gateway.find_many(
        ctx.tenant_id,
        Batch,
        Where(Batch.product_id == product_id, Batch.cost_price.isnot(None)),
        order_by=(Batch.created_at.desc(), Batch.id.desc()),
        limit=1,
    )
    return batches[0].cost_price if batches else None


@mutation(*SALE_TAGS, failure="Failed to record sale.")
def create_sale(ctx: ActionContext, data: Dict[str, Any]) -> ActionResult:
    form = validate(SaleForm, data)
    check_reference(ctx, Customer, form.customer_id, "customer_id", "Customer")

    lines = []
    for i, line in enumerate(form.items):
        product = check_reference(ctx, Product, line.product_id, f"items.{i}.product_id", "Product")
        available = product.quantity or 0
        if line.quantity > available:
            raise field_error(
                f"items.{i}.quantity",
                f"Insufficient stock for {product.name}: {available} available, {line.quantity} requested.",
            )
        unit_price = line.unit_price if line.unit_price is not None else product.price
        lines.append((product, line.quantity, Decimal(unit_price)))

    subtotal = sum((price * qty for _, qty, price in lines), Decimal("0"))
    if form.discount > subtotal + form.tax:
        raise field_error("discount", "Discount cannot exceed the sale total.")
    total = subtotal + form.tax - form.discount

    sale = ctx.gateway.add(
        ctx.tenant_id,
        Sale(
            customer_id=form.customer_id,
            status="completed",
            subtotal=subtotal,
            tax=form.tax,
            discount=form.discount,
            total_amount=total,
        ),
    )
    for product, qty, price in lines:
        sale.items.append(
            SaleItem(
                tenant_id=ctx.tenant_id,
                product_id=product.id,
                product_name=product.name,
                quantity=qty,
                unit_price=price,
                cost_price=_unit_cost(ctx, product.id),
                total_price=price * qty,
            )
        )
    ctx.gateway.flush()
    sale_id = sale.id

    for product, qty, _ in lines:
        ctx.gateway.increment(ctx.tenant_id, Product, product.id, "quantity", -qty)
        ctx.gateway.add(
            ctx.tenant_id,
            StockMovement(
                product_id=product.id,
                type="out",
                quantity=-qty,
                reference=f"SALE-{sale_id}",
                reference_type="sale",
            ),
        )

    ctx.log(
        "create",
        "sale",
        sale_id,
        changes={"items": len(lines), "total_amount": str(total)},
        note=f"Recorded sale SALE-{sale_id}",
    )
    commit(ctx)
    return success_result(
        "Sale recorded successfully.",
        {"id": sale_id, "total_amount": float(total)},
    )
