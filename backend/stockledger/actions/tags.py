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
from stockledger.models.tag import Tag
from stockledger.schemas.forms import ProductTagsForm, TagForm
from stockledger.services.cache import CacheTag

TAG_TAGS = (CacheTag.TAGS, CacheTag.PRODUCTS, CacheTag.ACTIVITY_LOG)

NAME_TAKEN = "A tag with this name already exists."
NAME_CONSTRAINT = {"name": ("name", NAME_TAKEN)}


@mutation(*TAG_TAGS, failure="Failed to create tag.")
def create_tag(ctx: ActionContext, data: Dict[str, Any]) -> ActionResult:
    form = validate(TagForm, data)
    if name_taken(ctx, Tag, form.name):
        raise field_error("name", NAME_TAKEN)

    tag = ctx.gateway.add(ctx.tenant_id, Tag(**form.model_dump()))
    ctx.gateway.flush()
    tag_id = tag.id

    ctx.log("create", "tag", tag_id, note=f"Created tag {form.name}")
    commit(ctx, NAME_CONSTRAINT)
    return success_result("Tag created successfully.", {"id": tag_id})


@mutation(*TAG_TAGS, failure="Failed to update tag.")
def update_tag(ctx: ActionContext, tag_id: int, data: Dict[str, Any]) -> ActionResult:
    tag = get_owned(ctx, Tag, tag_id, "Tag")
    form = validate(TagForm, data)
    if name_taken(ctx, Tag, form.name, exclude_id=tag.id):
        raise field_error("name", NAME_TAKEN)

    values = form.model_dump()
    changes = changes_between(tag, values)
    for key, value in values.items():
        setattr(tag, key, value)

    ctx.log("update", "tag", tag_id, changes=changes)
    commit(ctx, NAME_CONSTRAINT)
    return success_result("Tag updated successfully.", {"id": tag_id})


@mutation(*TAG_TAGS, failure="Failed to delete tag.")
def delete_tag(ctx: ActionContext, tag_id: int) -> ActionResult:
    """Delete a tag; products lose it, nothing else changes."""
    tag = get_owned(ctx, Tag, tag_id, "Tag")
    name = tag.name
    tagged = len(tag.products)

    tag.products.clear()
    ctx.gateway.delete(tag)

    ctx.log("delete", "tag", tag_id, changes={"untagged_products": tagged}, note=f"Deleted tag {name}")
    commit(ctx)
    return success_result("Tag deleted successfully.", {"id": tag_id})


@mutation(*TAG_TAGS, failure="Failed to update product tags.")
def set_product_tags(ctx: ActionContext, product_id: int, data: Dict[str, Any]) -> ActionResult:
    """Replace a product's tags with exactly ``tag_ids``."""
    product = get_owned(ctx, Product, product_id, "Product")
    form = validate(ProductTagsForm, data)

    tags = []
    if form.tag_ids:
        tags = ctx.gateway.find_many(ctx.tenant_id, Tag, Where(Tag.id.in_(form.tag_ids)))
    # another tenant's tag id looks like a missing one
    missing = set(form.tag_ids) - {t.id for t in tags}
    if missing:
        raise field_error("tag_ids", f"Tag not found: {', '.join(str(i) for i in sorted(missing))}")

    before = sorted(t.name for t in product.tags)
    product.tags = sorted(tags, key=lambda t: t.name)
    after = sorted(t.name for t in tags)

    ctx.log(
        "update",
        "product",
        product.id,
        changes={"tags": {"from": before, "to": after}} if before != after else {},
        note=f"Updated tags for {product.name}",
    )
    commit(ctx)
    return success_result("Product tags updated.", {"id": product_id, "tags": after})
