"""
Purchase order actions.

An order starts as a draft and moves through the status map below. Receiving
items is the only step that touches stock: every received line raises its
product's quantity and writes a ``receive`` movement, optionally into a lot,
and the whole receipt commits as one transaction.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict

from stockledger.actions.base import (
    ActionContext,
    ActionResult,
    check_reference,
    commit,
    field_error,
    get_owned,
    mutation,
    success_result,
    validate,
)
from stockledger.actions.batches import stock_into_batch
from stockledger.data.filters import Where
from stockledger.models.batch import StockMovement
from stockledger.models.location import Location
from stockledger.models.product import Product
from stockledger.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from stockledger.models.supplier import Supplier
from stockledger.schemas.forms import PurchaseOrderForm, PurchaseOrderStatusForm, ReceiveForm
from stockledger.services.cache import CacheTag

PO_TAGS = (CacheTag.PURCHASE_ORDERS, CacheTag.ACTIVITY_LOG)
RECEIVE_TAGS = (
    CacheTag.PURCHASE_ORDERS,
    CacheTag.PRODUCTS,
    CacheTag.ANALYTICS,
    CacheTag.BATCHES,
    CacheTag.ACTIVITY_LOG,
)

TRANSITIONS = {
    "draft": ("ordered", "cancelled"),
    "ordered": ("partial", "received", "cancelled"),
    "partial": ("received", "cancelled"),
    "received": (),
    "cancelled": (),
}

NUMBER_CONSTRAINT = {
    "order_number": ("order_number", "Another order took this number, please try again."),
}


def next_order_number(ctx: ActionContext, today: date) -> str:
    """PO-YYYYMM-NNNN, one higher than the tenant's latest order this month."""
    prefix = f"PO-{today:%Y%m}-"
    latest = ctx.gateway.find_many(
        ctx.tenant_id,
        PurchaseOrder,
        Where(PurchaseOrder.order_number.like(f"{prefix}%")),
        order_by=(PurchaseOrder.order_number.desc(),),
        limit=1,
    )
    sequence = 1
    if latest:
        sequence = int(latest[0].order_number.rsplit("-", 1)[-1]) + 1
    return f"{prefix}{sequence:04d}"


@mutation(*PO_TAGS, failure="Failed to create purchase order.")
def create_purchase_order(ctx: ActionContext, data: Dict[str, Any]) -> ActionResult:
    form = validate(PurchaseOrderForm, data)
    check_reference(ctx, Supplier, form.supplier_id, "supplier_id", "Supplier")

    lines = []
    for i, line in enumerate(form.items):
        product = check_reference(ctx, Product, line.product_id, f"items.{i}.product_id", "Product")
        name = line.product_name or (product.name if product is not None else None)
        if not name:
            raise field_error(f"items.{i}.product_name", "Product name is required")
        sku = line.sku or (product.sku if product is not None else None)
        lines.append((line, name, sku))

    subtotal = sum((line.unit_cost * line.ordered_quantity for line, _, _ in lines), Decimal("0"))
    total = subtotal + form.tax + form.shipping_cost
    number = next_order_number(ctx, datetime.utcnow().date())

    po = ctx.gateway.add(
        ctx.tenant_id,
        PurchaseOrder(
            supplier_id=form.supplier_id,
            order_number=number,
            status="draft",
            expected_date=form.expected_date,
            notes=form.notes,
            subtotal=subtotal,
            tax=form.tax,
            shipping_cost=form.shipping_cost,
            total_amount=total,
        ),
    )
    for line, name, sku in lines:
        po.items.append(
            PurchaseOrderItem(
                tenant_id=ctx.tenant_id,
                product_id=line.product_id,
                product_name=name,
                sku=sku,
                ordered_quantity=line.ordered_quantity,
                received_quantity=0,
                unit_cost=line.unit_cost,
                total_cost=line.unit_cost * line.ordered_quantity,
            )
        )
    ctx.gateway.flush()
    po_id = po.id

    ctx.log(
        "create",
        "purchase_order",
        po_id,
        changes={"items": len(lines), "total_amount": str(total)},
        note=f"Created purchase order {number}",
    )
    commit(ctx, NUMBER_CONSTRAINT)
    return success_result(
        f"Purchase order {number} created successfully!",
        {"id": po_id, "order_number": number, "total_amount": float(total)},
    )


@mutation(*PO_TAGS, failure="Failed to update purchase order status.")
def update_purchase_order_status(ctx: ActionContext, po_id: int, data: Dict[str, Any]) -> ActionResult:
    po = get_owned(ctx, PurchaseOrder, po_id, "Purchase order")
    form = validate(PurchaseOrderStatusForm, data)

    before = po.status
    if form.status not in TRANSITIONS.get(before, ()):
        raise field_error("status", f'Cannot change status from "{before}" to "{form.status}".')

    po.status = form.status
    if form.status == "ordered":
        po.order_date = datetime.utcnow()
    elif form.status == "received":
        po.received_date = datetime.utcnow()

    ctx.log(
        "update",
        "purchase_order",
        po.id,
        changes={"status": {"from": before, "to": form.status}},
        note=f"Purchase order {po.order_number} marked {form.status}",
    )
    commit(ctx)
    return success_result(f'Status updated to "{form.status}".', {"id": po_id, "status": form.status})


@mutation(*RECEIVE_TAGS, failure="Failed to receive items.")
def receive_purchase_order_items(ctx: ActionContext, po_id: int, data: Dict[str, Any]) -> ActionResult:
    """
    Receive some or all outstanding quantities.

    Every line is checked before anything is written. Lines that are not
    linked to an active product only count towards the order's progress.
    """
    po = get_owned(ctx, PurchaseOrder, po_id, "Purchase order")
    if po.status == "cancelled":
        raise field_error("status", "Cannot receive items for a cancelled order.")
    if po.status == "received":
        raise field_error("status", "This order has already been fully received.")

    form = validate(ReceiveForm, data)
    items = {item.id: item for item in po.items}

    plan = []
    for i, line in enumerate(form.items):
        item = items.get(line.item_id)
        if item is None:
            raise field_error(f"items.{i}.item_id", "Item not found on this order.")
        if not line.received_quantity:
            continue
        if item.received_quantity + line.received_quantity > item.ordered_quantity:
            raise field_error(
                f"items.{i}.received_quantity",
                f'Cannot receive more than ordered for "{item.product_name}"',
            )

        product = None
        if item.product_id is not None:
            product = ctx.gateway.find_one(ctx.tenant_id, Product, item.product_id)
        if line.batch_number and product is None:
            raise field_error(
                f"items.{i}.batch_number",
                "Only items linked to a product can be received into a batch.",
            )
        check_reference(ctx, Location, line.location_id, f"items.{i}.location_id", "Location")
        plan.append((item, line, product))

    if not plan:
        raise field_error("items", "Enter a quantity to receive for at least one item.")

    units = 0
    for item, line, product in plan:
        qty = line.received_quantity
        item.received_quantity += qty
        units += qty
        if product is None:
            continue

        batch_id = None
        if line.batch_number:
            batch = stock_into_batch(
                ctx,
                product.id,
                line.batch_number,
                line.location_id,
                qty,
                cost_price=item.unit_cost,
                expiry_date=line.expiry_date,
            )
            batch_id = batch.id

        ctx.gateway.increment(ctx.tenant_id, Product, product.id, "quantity", qty)
        ctx.gateway.add(
            ctx.tenant_id,
            StockMovement(
                product_id=product.id,
                batch_id=batch_id,
                location_id=line.location_id,
                type="receive",
                quantity=qty,
                reference=po.order_number,
                reference_type="purchase_order",
                notes=form.notes or f"Received from PO {po.order_number}",
            ),
        )

    before = po.status
    if all(item.received_quantity >= item.ordered_quantity for item in po.items):
        po.status = "received"
        po.received_date = datetime.utcnow()
    else:
        po.status = "partial"
    status = po.status

    ctx.log(
        "receive",
        "purchase_order",
        po.id,
        changes={"status": {"from": before, "to": status}, "units": units},
        note=f"Received {units} units on {po.order_number}",
    )
    commit(ctx)
    return success_result("Items received successfully!", {"id": po_id, "status": status, "units": units})


@mutation(*PO_TAGS, failure="Failed to delete purchase order.")
def delete_purchase_order(ctx: ActionContext, po_id: int) -> ActionResult:
    po = get_owned(ctx, PurchaseOrder, po_id, "Purchase order")
    if po.status != "draft":
        raise field_error("status", "Only draft orders can be deleted.")

    number = po.order_number
    ctx.gateway.delete(po)

    ctx.log("delete", "purchase_order", po_id, note=f"Deleted purchase order {number}")
    commit(ctx)
    return success_result("Purchase order deleted successfully!", {"id": po_id})
