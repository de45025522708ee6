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
    name_taken,
    success_result,
    validate,
)
from stockledger.actions.batches import stock_into_batch
from stockledger.data.filters import Where
from stockledger.models.batch import Batch, StockMovement
from stockledger.models.location import Location
from stockledger.models.product import Product
from stockledger.schemas.forms import LocationForm, TransferForm
from stockledger.services.cache import CacheTag

LOCATION_TAGS = (CacheTag.LOCATIONS, CacheTag.BATCHES, CacheTag.ACTIVITY_LOG)
TRANSFER_TAGS = (CacheTag.LOCATIONS, CacheTag.BATCHES, CacheTag.PRODUCTS, CacheTag.ACTIVITY_LOG)

NAME_TAKEN = "A location with this name already exists."
NAME_CONSTRAINT = {"name": ("name", NAME_TAKEN)}


def _unset_default(ctx: ActionContext, keep_id: Optional[int] = None) -> None:
    # at most one default location per tenant
    clauses = [Location.is_default.is_(True)]
    if keep_id is not None:
        clauses.append(Location.id != keep_id)
    for loc in ctx.gateway.find_many(ctx.tenant_id, Location, Where(*clauses)):
        loc.is_default = False


@mutation(*LOCATION_TAGS, failure="Failed to create location.")
def create_location(ctx: ActionContext, data: Dict[str, Any]) -> ActionResult:
    form = validate(LocationForm, data)
    if name_taken(ctx, Location, form.name):
        raise field_error("name", NAME_TAKEN)

    if form.is_default:
        _unset_default(ctx)
    loc = ctx.gateway.add(ctx.tenant_id, Location(**form.model_dump()))
    ctx.gateway.flush()
    location_id = loc.id

    ctx.log("create", "location", location_id, note=f"Created location: {form.name}")
    commit(ctx, NAME_CONSTRAINT)
    return success_result("Location created successfully!", {"id": location_id})


@mutation(*LOCATION_TAGS, failure="Failed to update location.")
def update_location(ctx: ActionContext, location_id: int, data: Dict[str, Any]) -> ActionResult:
    loc = get_owned(ctx, Location, location_id, "Location")
    form = validate(LocationForm, data)
    if name_taken(ctx, Location, form.name, exclude_id=loc.id):
        raise field_error("name", NAME_TAKEN)

    if form.is_default:
        _unset_default(ctx, keep_id=loc.id)

    values = form.model_dump()
    changes = changes_between(loc, values)
    for key, value in values.items():
        setattr(loc, key, value)

    ctx.log("update", "location", location_id, changes=changes, note=f"Updated location: {form.name}")
    commit(ctx, NAME_CONSTRAINT)
    return success_result("Location updated successfully!", {"id": location_id})


@mutation(*LOCATION_TAGS, failure="Failed to delete location.")
def delete_location(ctx: ActionContext, location_id: int) -> ActionResult:
    loc = get_owned(ctx, Location, location_id, "Location")

    stored = ctx.gateway.count(ctx.tenant_id, Batch, Where(Batch.location_id == loc.id))
    if stored:
        raise field_error(
            "id",
            "Cannot delete location with existing stock. Transfer or remove stock first.",
        )

    name = loc.name
    for m in ctx.gateway.find_many(ctx.tenant_id, StockMovement, Where(StockMovement.location_id == loc.id)):
        m.location_id = None
    ctx.gateway.delete(loc)
    ctx.log("delete", "location", location_id, note=f"Deleted location: {name}")
    commit(ctx)
    return success_result("Location deleted successfully!", {"id": location_id})


@mutation(*TRANSFER_TAGS, failure="Failed to transfer stock.")
def transfer_stock(ctx: ActionContext, data: Dict[str, Any]) -> ActionResult:
    """
    Move stock of one product between two locations.

    Stock at a location is the sum of the product's lots stored there. Lots
    are drawn soonest-expiry first; each portion lands in a lot with the same
    number at the destination and is recorded as a pair of ``transfer``
    movements (out of the source, into the destination). The product's total
    quantity does not change.
    """
    form = validate(TransferForm, data)
    product = check_reference(ctx, Product, form.product_id, "product_id", "Product")
    source = check_reference(ctx, Location, form.from_location_id, "from_location_id", "Source location")
    target = check_reference(ctx, Location, form.to_location_id, "to_location_id", "Destination location")

    lots = ctx.gateway.find_many(
        ctx.tenant_id,
        Batch,
        Where(Batch.product_id == product.id, Batch.location_id == source.id, Batch.quantity > 0),
        order_by=(Batch.expiry_date.is_(None), Batch.expiry_date.asc(), Batch.id.asc()),
    )
    available = sum(b.quantity for b in lots)
    if available < form.quantity:
        raise field_error("quantity", f"Insufficient stock at {source.name}. Available: {available}")

    suffix = f": {form.notes}" if form.notes else ""
    remaining = form.quantity
    for lot in lots:
        if not remaining:
            break
        portion = min(lot.quantity, remaining)
        remaining -= portion

        ctx.gateway.increment(ctx.tenant_id, Batch, lot.id, "quantity", -portion)
        moved = stock_into_batch(
            ctx,
            product.id,
            lot.batch_number,
            target.id,
            portion,
            cost_price=lot.cost_price,
            expiry_date=lot.expiry_date,
            manufacturing_date=lot.manufacturing_date,
        )
        ctx.gateway.add(
            ctx.tenant_id,
            StockMovement(
                product_id=product.id,
                batch_id=lot.id,
                location_id=source.id,
                type="transfer",
                quantity=-portion,
                reference=lot.batch_number,
                reference_type="transfer",
                notes=f"Transfer to {target.name}{suffix}",
            ),
        )
        ctx.gateway.add(
            ctx.tenant_id,
            StockMovement(
                product_id=product.id,
                batch_id=moved.id,
                location_id=target.id,
                type="transfer",
                quantity=portion,
                reference=lot.batch_number,
                reference_type="transfer",
                notes=f"Transfer from {source.name}{suffix}",
            ),
        )

    ctx.log(
        "transfer",
        "stock_movement",
        product.id,
        changes={"from": source.id, "to": target.id, "quantity": form.quantity},
        note=f"Transferred {form.quantity} of {product.name} from {source.name} to {target.name}",
    )
    commit(ctx)
    return success_result(
        f"Transferred {form.quantity} units from {source.name} to {target.name}",
        {"product_id": product.id, "quantity": form.quantity},
    )
