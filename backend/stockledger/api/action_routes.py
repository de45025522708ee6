# backend/stockledger/api/action_routes.py
#
# Write endpoints (manager only). The JSON body goes to the action unparsed so
# validation errors come back as a per-field ActionResult, not a bare 422.

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Response, status

from stockledger.actions import (
    batches,
    categories,
    customers,
    locations,
    products,
    purchase_orders,
    sales,
    suppliers,
    tags,
)
from stockledger.actions.base import ActionContext, ActionResult
from stockledger.api.deps import get_action_context

router = APIRouter()

Payload = Dict[str, Any]


def _respond(result: ActionResult, response: Response, created: bool = False) -> ActionResult:
    if not result.success:
        response.status_code = status.HTTP_400_BAD_REQUEST
    elif created:
        response.status_code = status.HTTP_201_CREATED
    return result


# ---------- PRODUCTS ----------

@router.post("/products", response_model=ActionResult)
def create_product(response: Response, payload: Payload = Body(...), ctx: ActionContext = Depends(get_action_context)):
    return _respond(products.create_product(ctx, payload), response, created=True)


@router.patch("/products/{product_id}", response_model=ActionResult)
def update_product(
    product_id: int,
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    return _respond(products.update_product(ctx, product_id, payload), response)


@router.delete("/products/{product_id}", response_model=ActionResult)
def delete_product(product_id: int, response: Response, ctx: ActionContext = Depends(get_action_context)):
    return _respond(products.delete_product(ctx, product_id), response)


@router.post("/products/{product_id}/adjust", response_model=ActionResult)
def adjust_stock(
    product_id: int,
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    return _respond(products.adjust_stock(ctx, product_id, payload), response)


@router.put("/products/{product_id}/threshold", response_model=ActionResult)
def set_alert_threshold(
    product_id: int,
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    threshold: Optional[Any] = payload.get("low_stock_threshold")
    return _respond(products.set_alert_threshold(ctx, product_id, threshold), response)


@router.put("/products/{product_id}/tags", response_model=ActionResult)
def set_product_tags(
    product_id: int,
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    return _respond(tags.set_product_tags(ctx, product_id, payload), response)


# ---------- CATEGORIES ----------

@router.post("/categories", response_model=ActionResult)
def create_category(response: Response, payload: Payload = Body(...), ctx: ActionContext = Depends(get_action_context)):
    return _respond(categories.create_category(ctx, payload), response, created=True)


@router.patch("/categories/{category_id}", response_model=ActionResult)
def update_category(
    category_id: int,
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    return _respond(categories.update_category(ctx, category_id, payload), response)


@router.delete("/categories/{category_id}", response_model=ActionResult)
def delete_category(category_id: int, response: Response, ctx: ActionContext = Depends(get_action_context)):
    return _respond(categories.delete_category(ctx, category_id), response)


# ---------- TAGS ----------

@router.post("/tags", response_model=ActionResult)
def create_tag(response: Response, payload: Payload = Body(...), ctx: ActionContext = Depends(get_action_context)):
    return _respond(tags.create_tag(ctx, payload), response, created=True)


@router.patch("/tags/{tag_id}", response_model=ActionResult)
def update_tag(
    tag_id: int,
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    return _respond(tags.update_tag(ctx, tag_id, payload), response)


@router.delete("/tags/{tag_id}", response_model=ActionResult)
def delete_tag(tag_id: int, response: Response, ctx: ActionContext = Depends(get_action_context)):
    return _respond(tags.delete_tag(ctx, tag_id), response)


# ---------- BATCHES ----------

@router.post("/batches", response_model=ActionResult)
def create_batch(response: Response, payload: Payload = Body(...), ctx: ActionContext = Depends(get_action_context)):
    return _respond(batches.create_batch(ctx, payload), response, created=True)


@router.patch("/batches/{batch_id}", response_model=ActionResult)
def update_batch(
    batch_id: int,
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    return _respond(batches.update_batch(ctx, batch_id, payload), response)


@router.post("/batches/{batch_id}/adjust", response_model=ActionResult)
def adjust_batch_quantity(
    batch_id: int,
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    return _respond(batches.adjust_batch_quantity(ctx, batch_id, payload), response)


@router.delete("/batches/{batch_id}", response_model=ActionResult)
def delete_batch(batch_id: int, response: Response, ctx: ActionContext = Depends(get_action_context)):
    return _respond(batches.delete_batch(ctx, batch_id), response)


# ---------- SUPPLIERS ----------

@router.post("/suppliers", response_model=ActionResult)
def create_supplier(response: Response, payload: Payload = Body(...), ctx: ActionContext = Depends(get_action_context)):
    return _respond(suppliers.create_supplier(ctx, payload), response, created=True)


@router.patch("/suppliers/{supplier_id}", response_model=ActionResult)
def update_supplier(
    supplier_id: int,
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    return _respond(suppliers.update_supplier(ctx, supplier_id, payload), response)


@router.delete("/suppliers/{supplier_id}", response_model=ActionResult)
def delete_supplier(supplier_id: int, response: Response, ctx: ActionContext = Depends(get_action_context)):
    return _respond(suppliers.delete_supplier(ctx, supplier_id), response)


# ---------- CUSTOMERS ----------

@router.post("/customers", response_model=ActionResult)
def create_customer(response: Response, payload: Payload = Body(...), ctx: ActionContext = Depends(get_action_context)):
    return _respond(customers.create_customer(ctx, payload), response, created=True)


@router.patch("/customers/{customer_id}", response_model=ActionResult)
def update_customer(
    customer_id: int,
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    return _respond(customers.update_customer(ctx, customer_id, payload), response)


@router.delete("/customers/{customer_id}", response_model=ActionResult)
def delete_customer(customer_id: int, response: Response, ctx: ActionContext = Depends(get_action_context)):
    return _respond(customers.delete_customer(ctx, customer_id), response)


# ---------- LOCATIONS ----------

@router.post("/locations", response_model=ActionResult)
def create_location(response: Response, payload: Payload = Body(...), ctx: ActionContext = Depends(get_action_context)):
    return _respond(locations.create_location(ctx, payload), response, created=True)


@router.patch("/locations/{location_id}", response_model=ActionResult)
def update_location(
    location_id: int,
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    return _respond(locations.update_location(ctx, location_id, payload), response)


@router.delete("/locations/{location_id}", response_model=ActionResult)
def delete_location(location_id: int, response: Response, ctx: ActionContext = Depends(get_action_context)):
    return _respond(locations.delete_location(ctx, location_id), response)


@router.post("/stock-transfers", response_model=ActionResult)
def transfer_stock(response: Response, payload: Payload = Body(...), ctx: ActionContext = Depends(get_action_context)):
    return _respond(locations.transfer_stock(ctx, payload), response, created=True)


# ---------- PURCHASE ORDERS ----------

@router.post("/purchase-orders", response_model=ActionResult)
def create_purchase_order(
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    return _respond(purchase_orders.create_purchase_order(ctx, payload), response, created=True)


@router.put("/purchase-orders/{po_id}/status", response_model=ActionResult)
def update_purchase_order_status(
    po_id: int,
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    return _respond(purchase_orders.update_purchase_order_status(ctx, po_id, payload), response)


@router.post("/purchase-orders/{po_id}/receive", response_model=ActionResult)
def receive_purchase_order_items(
    po_id: int,
    response: Response,
    payload: Payload = Body(...),
    ctx: ActionContext = Depends(get_action_context),
):
    return _respond(purchase_orders.receive_purchase_order_items(ctx, po_id, payload), response)


@router.delete("/purchase-orders/{po_id}", response_model=ActionResult)
def delete_purchase_order(po_id: int, response: Response, ctx: ActionContext = Depends(get_action_context)):
    return _respond(purchase_orders.delete_purchase_order(ctx, po_id), response)


# ---------- SALES ----------

@router.post("/sales", response_model=ActionResult)
def create_sale(response: Response, payload: Payload = Body(...), ctx: ActionContext = Depends(get_action_context)):
    return _respond(sales.create_sale(ctx, payload), response, created=True)
