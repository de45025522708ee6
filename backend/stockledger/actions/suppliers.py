from typing import Any, Dict

from stockledger.actions.base import (
    ActionContext,
    ActionResult,
    changes_between,
    commit,
    field_error,
    get_owned,
    mutation,
    name_taken,
    success_result,
    validate,
)
from stockledger.data.filters import Where
from stockledger.models.product import Product
from stockledger.models.purchase_order import PurchaseOrder
from stockledger.models.supplier import Supplier
from stockledger.schemas.forms import SupplierForm
from stockledger.services.cache import CacheTag

SUPPLIER_TAGS = (CacheTag.SUPPLIERS, CacheTag.PRODUCTS, CacheTag.PURCHASE_ORDERS, CacheTag.ACTIVITY_LOG)

NAME_TAKEN = "A supplier with this name already exists."
NAME_CONSTRAINT = {"name": ("name", NAME_TAKEN)}


@mutation(*SUPPLIER_TAGS, failure="Failed to create supplier.")
def create_supplier(ctx: ActionContext, data: Dict[str, Any]) -> ActionResult:
    form = validate(SupplierForm, data)
    if name_taken(ctx, Supplier, form.name):
        raise field_error("name", NAME_TAKEN)

    s = ctx.gateway.add(ctx.tenant_id, Supplier(**form.model_dump()))
    ctx.gateway.flush()
    supplier_id = s.id

    ctx.log("create", "supplier", supplier_id, note=f"Created supplier {form.name}")
    commit(ctx, NAME_CONSTRAINT)
    return success_result("Supplier created successfully.", {"id": supplier_id})


@mutation(*SUPPLIER_TAGS, failure="Failed to update supplier.")
def update_supplier(ctx: ActionContext, supplier_id: int, data: Dict[str, Any]) -> ActionResult:
    s = get_owned(ctx, Supplier, supplier_id, "Supplier")
    form = validate(SupplierForm, data)
    if name_taken(ctx, Supplier, form.name, exclude_id=s.id):
        raise field_error("name", NAME_TAKEN)

    values = form.model_dump()
    changes = changes_between(s, values)
    for key, value in values.items():
        setattr(s, key, value)

    ctx.log("update", "supplier", supplier_id, changes=changes)
    commit(ctx, NAME_CONSTRAINT)
    return success_result("Supplier updated successfully.", {"id": supplier_id})


@mutation(*SUPPLIER_TAGS, failure="Failed to delete supplier.")
def delete_supplier(ctx: ActionContext, supplier_id: int) -> ActionResult:
    s = get_owned(ctx, Supplier, supplier_id, "Supplier")
    name = s.name

    orders = ctx.gateway.count(ctx.tenant_id, PurchaseOrder, Where(PurchaseOrder.supplier_id == s.id))
    if orders:
        raise field_error(
            "id",
            f"Cannot delete supplier with {orders} purchase order(s). "
            "Please delete or reassign the purchase orders first.",
        )

    products = ctx.gateway.find_many(
        ctx.tenant_id, Product, Where(Product.supplier_id == s.id), include_inactive=True
    )
    for p in products:
        p.supplier_id = None
    ctx.gateway.delete(s)

    ctx.log(
        "delete",
        "supplier",
        supplier_id,
        changes={"detached_products": len(products)},
        note=f"Deleted supplier {name}",
    )
    commit(ctx)
    return success_result("Supplier deleted successfully.", {"id": supplier_id})
