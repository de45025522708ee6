"""
Batch (lot) actions.

A batch's quantity is part of its product's quantity: creating a stocked batch
adds to the product, adjusting a batch moves both in the same transaction, and
only an empty batch can be deleted.
"""
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
from stockledger.models.location import Location
from stockledger.models.product import Product
from stockledger.schemas.forms import BatchAdjustmentForm, BatchForm, BatchUpdateForm
from stockledger.services.cache import CacheTag

BATCH_TAGS = (CacheTag.BATCHES, CacheTag.PRODUCTS, CacheTag.ANALYTICS, CacheTag.ACTIVITY_LOG)

NUMBER_TAKEN = "A batch with this number already exists for this product."
NUMBER_CONSTRAINT = {"batch_number": ("batch_number", NUMBER_TAKEN)}


def _same_location(location_id: Optional[int]):
    if location_id is None:
        return Batch.location_id.is_(None)
    return Batch.location_id == location_id


def _check_number(
    ctx: ActionContext,
    product_id: int,
    number: str,
    location_id: Optional[int],
    exclude_id: Optional[int] = None,
) -> None:
    clauses = [Batch.product_id == product_id, Batch.batch_number == number, _same_location(location_id)]
    if exclude_id is not None:
        clauses.append(Batch.id != exclude_id)
    if ctx.gateway.find_many(ctx.tenant_id, Batch, Where(*clauses), limit=1):
        raise field_error("batch_number", NUMBER_TAKEN)


def stock_into_batch(
    ctx: ActionContext,
    product_id: int,
    number: str,
    location_id: Optional[int],
    quantity: int,
    **details,
) -> Batch:
    """
    Put ``quantity`` into the lot ``number`` at ``location_id``, creating it if
    needed. Only the batch row changes; the caller owns the product quantity
    and the movement.
    """
    found = ctx.gateway.find_many(
        ctx.tenant_id,
        Batch,
        Where(Batch.product_id == product_id, Batch.batch_number == number, _same_location(location_id)),
        limit=1,
    )
    if found:
        ctx.gateway.increment(ctx.tenant_id, Batch, found[0].id, "quantity", quantity)
        return found[0]

    b = ctx.gateway.add(
        ctx.tenant_id,
        Batch(
            product_id=product_id,
            batch_number=number,
            location_id=location_id,
            quantity=quantity,
            **details,
        ),
    )
    ctx.gateway.flush()
    return b


def _signed(n: int) -> str:
    return f"+{n}" if n > 0 else str(n)


@mutation(*BATCH_TAGS, failure="Failed to create batch.")
def create_batch(ctx: ActionContext, data: Dict[str, Any]) -> ActionResult:
    form = validate(BatchForm, data)
    check_reference(ctx, Product, form.product_id, "product_id", "Product")
    check_reference(ctx, Location, form.location_id, "location_id", "Location")
    _check_number(ctx, form.product_id, form.batch_number, form.location_id)

    b = ctx.gateway.add(ctx.tenant_id, Batch(**form.model_dump()))
    ctx.gateway.flush()
    batch_id = b.id

    if form.quantity > 0:
        ctx.gateway.add(
            ctx.tenant_id,
            StockMovement(
                product_id=form.product_id,
                batch_id=batch_id,
                location_id=form.location_id,
                type="in",
                quantity=form.quantity,
                reference=form.batch_number,
                reference_type="batch",
                notes="Initial batch creation",
            ),
        )
        ctx.gateway.increment(ctx.tenant_id, Product, form.product_id, "quantity", form.quantity)

    ctx.log("create", "batch", batch_id, note=f"Created batch {form.batch_number}")
    commit(ctx, NUMBER_CONSTRAINT)
    return success_result("Batch created successfully.", {"id": batch_id})


@mutation(*BATCH_TAGS, failure="Failed to update batch.")
def update_batch(ctx: ActionContext, batch_id: int, data: Dict[str, Any]) -> ActionResult:
    """Edit batch details. Quantity only changes through adjust_batch_quantity."""
    b = get_owned(ctx, Batch, batch_id, "Batch")
    form = validate(BatchUpdateForm, data)
    check_reference(ctx, Location, form.location_id, "location_id", "Location")
    if (form.batch_number, form.location_id) != (b.batch_number, b.location_id):
        _check_number(ctx, b.product_id, form.batch_number, form.location_id, exclude_id=b.id)

    values = form.model_dump()
    changes = changes_between(b, values)
    for key, value in values.items():
        setattr(b, key, value)

    ctx.log("update", "batch", batch_id, changes=changes, note=f"Updated batch {form.batch_number}")
    commit(ctx, NUMBER_CONSTRAINT)
    return success_result("Batch updated successfully.", {"id": batch_id})


@mutation(*BATCH_TAGS, failure="Failed to adjust batch quantity.")
def adjust_batch_quantity(ctx: ActionContext, batch_id: int, data: Dict[str, Any]) -> ActionResult:
    b = get_owned(ctx, Batch, batch_id, "Batch")
    form = validate(BatchAdjustmentForm, data)

    after = (b.quantity or 0) + form.adjustment
    if after < 0:
        raise field_error("adjustment", "Adjustment would result in negative quantity.")

    product = get_owned(ctx, Product, b.product_id, "Product", include_inactive=True)
    if (product.quantity or 0) + form.adjustment < 0:
        raise field_error("adjustment", "Adjustment would take product stock below zero.")

    # batch, product and movement commit together or not at all
    ctx.gateway.increment(ctx.tenant_id, Batch, b.id, "quantity", form.adjustment)
    ctx.gateway.increment(ctx.tenant_id, Product, b.product_id, "quantity", form.adjustment)
    ctx.gateway.add(
        ctx.tenant_id,
        StockMovement(
            product_id=b.product_id,
            batch_id=b.id,
            location_id=b.location_id,
            type="adjustment",
            quantity=form.adjustment,
            reference=b.batch_number,
            reference_type="batch",
            notes=form.reason or "Batch quantity adjustment",
        ),
    )

    message = f"Batch quantity adjusted by {_signed(form.adjustment)}"
    ctx.log(
        "stock_adjustment",
        "batch",
        batch_id,
        changes={"quantity": {"from": after - form.adjustment, "to": after}},
        note=f"Adjusted batch {b.batch_number} by {_signed(form.adjustment)}",
    )
    commit(ctx)
    return success_result(message, {"id": batch_id, "quantity": after})


@mutation(*BATCH_TAGS, failure="Failed to delete batch.")
def delete_batch(ctx: ActionContext, batch_id: int) -> ActionResult:
    b = get_owned(ctx, Batch, batch_id, "Batch")
    if b.quantity:
        raise field_error(
            "quantity",
            "Cannot delete batch with remaining quantity. Adjust quantity to 0 first.",
        )

    number = b.batch_number
    # keep the movement history, just unlink it
    for m in ctx.gateway.find_many(ctx.tenant_id, StockMovement, Where(StockMovement.batch_id == b.id)):
        m.batch_id = None
    ctx.gateway.delete(b)

    ctx.log("delete", "batch", batch_id, note=f"Deleted batch {number}")
    commit(ctx)
    return success_result("Batch deleted successfully.", {"id": batch_id})
