from typing import Any, Dict

from stockledger.actions.base import (
    ActionContext,
    ActionResult,
    commit,
    field_error,
    get_owned,
    mutation,
    name_taken,
    success_result,
    validate,
)
from stockledger.data.filters import Where
from stockledger.models.product import Category, Product
from stockledger.schemas.forms import CategoryForm
from stockledger.services.cache import CacheTag

CATEGORY_TAGS = (CacheTag.CATEGORIES, CacheTag.PRODUCTS, CacheTag.ANALYTICS, CacheTag.ACTIVITY_LOG)

NAME_TAKEN = "A category with this name already exists."


@mutation(*CATEGORY_TAGS, failure="Failed to create category.")
def create_category(ctx: ActionContext, data: Dict[str, Any]) -> ActionResult:
    form = validate(CategoryForm, data)
    if name_taken(ctx, Category, form.name):
        raise field_error("name", NAME_TAKEN)

    c = ctx.gateway.add(ctx.tenant_id, Category(name=form.name))
    ctx.gateway.flush()
    category_id = c.id

    ctx.log("create", "category", category_id, note=f"Created category {form.name}")
    commit(ctx, {"name": ("name", NAME_TAKEN)})
    return success_result("Category created successfully.", {"id": category_id})


@mutation(*CATEGORY_TAGS, failure="Failed to update category.")
def update_category(ctx: ActionContext, category_id: int, data: Dict[str, Any]) -> ActionResult:
    c = get_owned(ctx, Category, category_id, "Category")
    form = validate(CategoryForm, data)
    if name_taken(ctx, Category, form.name, exclude_id=c.id):
        raise field_error("name", NAME_TAKEN)

    changes = {"name": {"from": c.name, "to": form.name}} if c.name != form.name else {}
    c.name = form.name

    ctx.log("update", "category", category_id, changes=changes)
    commit(ctx, {"name": ("name", NAME_TAKEN)})
    return success_result("Category updated successfully.", {"id": category_id})


@mutation(*CATEGORY_TAGS, failure="Failed to delete category.")
def delete_category(ctx: ActionContext, category_id: int) -> ActionResult:
    c = get_owned(ctx, Category, category_id, "Category")
    name = c.name

    # products fall back to "Uncategorized"
    products = ctx.gateway.find_many(
        ctx.tenant_id, Product, Where(Product.category_id == c.id), include_inactive=True
    )
    for p in products:
        p.category_id = None
    ctx.gateway.delete(c)

    ctx.log(
        "delete",
        "category",
        category_id,
        changes={"detached_products": len(products)},
        note=f"Deleted category {name}",
    )
    commit(ctx)
    return success_result("Category deleted successfully.", {"id": category_id})
