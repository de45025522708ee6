from typing import Any, Dict, Optional

from sqlalchemy import func

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
from stockledger.models.customer import Customer
from stockledger.models.sale import Sale
from stockledger.schemas.forms import CustomerForm
from stockledger.services.cache import CacheTag

CUSTOMER_TAGS = (CacheTag.CUSTOMERS, CacheTag.SALES, CacheTag.ACTIVITY_LOG)


def _check_unique(ctx: ActionContext, form: CustomerForm, exclude_id: Optional[int] = None) -> None:
    if name_taken(ctx, Customer, form.name, exclude_id=exclude_id):
        raise field_error("name", "A customer with this name already exists.")
    if form.email:
        clauses = [func.lower(Customer.email) == form.email.lower()]
        if exclude_id is not None:
            clauses.append(Customer.id != exclude_id)
        if ctx.gateway.find_many(ctx.tenant_id, Customer, Where(*clauses), limit=1):
            raise field_error("email", "A customer with this email already exists.")


@mutation(*CUSTOMER_TAGS, failure="Failed to create customer.")
def create_customer(ctx: ActionContext, data: Dict[str, Any]) -> ActionResult:
    form = validate(CustomerForm, data)
    _check_unique(ctx, form)

    c = ctx.gateway.add(ctx.tenant_id, Customer(**form.model_dump()))
    ctx.gateway.flush()
    customer_id = c.id

    ctx.log("create", "customer", customer_id, note=f"Created customer {form.name}")
    commit(ctx)
    return success_result("Customer created successfully!", {"id": customer_id})


@mutation(*CUSTOMER_TAGS, failure="Failed to update customer.")
def update_customer(ctx: ActionContext, customer_id: int, data: Dict[str, Any]) -> ActionResult:
    c = get_owned(ctx, Customer, customer_id, "Customer")
    form = validate(CustomerForm, data)
    _check_unique(ctx, form, exclude_id=c.id)

    values = form.model_dump()
    changes = changes_between(c, values)
    for key, value in values.items():
        setattr(c, key, value)

    ctx.log("update", "customer", customer_id, changes=changes)
    commit(ctx)
    return success_result("Customer updated successfully.", {"id": customer_id})


@mutation(*CUSTOMER_TAGS, failure="Failed to delete customer.")
def delete_customer(ctx: ActionContext, customer_id: int) -> ActionResult:
    c = get_owned(ctx, Customer, customer_id, "Customer")

    sales = ctx.gateway.count(ctx.tenant_id, Sale, Where(Sale.customer_id == c.id))
    if sales:
        raise field_error(
            "id",
            f"Cannot delete customer with {sales} sale(s). Keep the customer for sales history.",
        )

    name = c.name
    ctx.gateway.delete(c)
    ctx.log("delete", "customer", customer_id, note=f"Deleted customer {name}")
    commit(ctx)
    return success_result("Customer deleted successfully.", {"id": customer_id})
