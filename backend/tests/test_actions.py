from datetime import date
from decimal import Decimal

from stockledger.actions.base import ActionContext
from stockledger.actions.batches import adjust_batch_quantity, create_batch, delete_batch, update_batch
from stockledger.actions.categories import create_category, delete_category
from stockledger.actions.customers import create_customer, delete_customer
from stockledger.actions.locations import create_location, delete_location, update_location
from stockledger.actions.products import adjust_stock, create_product, delete_product, update_product
from stockledger.actions.sales import create_sale
from stockledger.actions.suppliers import create_supplier, delete_supplier
from stockledger.data.filters import BatchFilter, Where
from stockledger.models.activity_log import ActivityLog
from stockledger.models.batch import Batch, StockMovement
from stockledger.models.location import Location
from stockledger.models.product import Product
from stockledger.services.analytics import get_inventory_analytics
from stockledger.services.cache import CacheTag


def product_data(**overrides):
    data = {"name": "Brake Pad", "manufacturer": "Acme", "price": "12.50", "quantity": 4}
    data.update(overrides)
    return data


def reload(db, model, entity_id):
    db.expire_all()
    return db.get(model, entity_id)


# ---------- products ----------

def test_create_product(ctx, db, tenant):
    result = create_product(ctx, product_data(sku="BP-1", low_stock_threshold="5"))

    assert result.success
    assert result.message == "Product added successfully!"
    p = reload(db, Product, result.data["id"])
    assert (p.tenant_id, p.sku, p.quantity, p.price) == (tenant.id, "BP-1", 4, Decimal("12.50"))
    assert p.low_stock_threshold == 5

    movements = db.query(StockMovement).filter_by(product_id=p.id).all()
    assert [(m.type, m.quantity) for m in movements] == [("in", 4)]
    assert db.query(ActivityLog).filter_by(entity_type="product", action="create").count() == 1


def test_create_product_validation_errors(ctx, db):
    result = create_product(ctx, {"name": "  ", "price": "-1"})

    assert not result.success
    assert result.message == "Validation failed. Please check the form for errors."
    assert result.errors["name"] == ["Product name is required"]
    assert result.errors["manufacturer"] == ["Manufacturer is required"]
    assert result.errors["price"] == ["Price must be 0 or greater"]
    assert db.query(Product).count() == 0


def test_duplicate_sku_within_tenant_rejected(ctx, tenant, make_product):
    make_product(tenant, sku="BP-1")

    result = create_product(ctx, product_data(sku="BP-1"))

    assert not result.success
    assert result.errors == {"sku": ["A product with this SKU already exists."]}


def test_same_sku_in_another_tenant_is_fine(ctx, other_tenant, make_product):
    make_product(other_tenant, sku="BP-1")

    assert create_product(ctx, product_data(sku="BP-1")).success


def test_foreign_category_is_rejected(ctx, other_tenant, make_category):
    theirs = make_category(other_tenant, "Theirs")

    result = create_product(ctx, product_data(category_id=theirs.id))

    assert not result.success
    assert result.errors == {"category_id": ["Category not found"]}


def test_update_product_records_changes(ctx, db, tenant, make_product):
    p = make_product(tenant, name="Old", quantity=4, price=Decimal("1.00"))

    result = update_product(ctx, p.id, product_data(name="New", quantity=6, price="1.00"))

    assert result.success
    p = reload(db, Product, p.id)
    assert (p.name, p.quantity) == ("New", 6)
    log = db.query(ActivityLog).filter_by(action="update").one()
    assert log.changes["name"] == {"from": "Old", "to": "New"}
    movement = db.query(StockMovement).filter_by(product_id=p.id).one()
    assert (movement.type, movement.quantity) == ("adjustment", 2)


def test_adjust_stock(ctx, db, tenant, make_product):
    p = make_product(tenant, quantity=5)

    result = adjust_stock(ctx, p.id, {"adjustment": "-3", "reason": "damaged"})

    assert result.success
    assert result.message == "Stock adjusted successfully. New quantity: 2"
    assert reload(db, Product, p.id).quantity == 2
    movement = db.query(StockMovement).one()
    assert (movement.type, movement.quantity, movement.notes) == ("adjustment", -3, "damaged")


def test_adjust_stock_below_zero_changes_nothing(ctx, db, tenant, make_product):
    p = make_product(tenant, quantity=2)

    result = adjust_stock(ctx, p.id, {"adjustment": -3})

    assert not result.success
    assert result.message == "Cannot adjust stock below zero."
    assert reload(db, Product, p.id).quantity == 2
    assert db.query(StockMovement).count() == 0
    assert db.query(ActivityLog).count() == 0


def test_zero_adjustment_rejected(ctx, tenant, make_product):
    p = make_product(tenant)
    result = adjust_stock(ctx, p.id, {"adjustment": 0})
    assert result.errors == {"adjustment": ["Adjustment must not be zero"]}


def test_delete_unsold_product_is_hard_delete(ctx, db, tenant, make_product):
    p = make_product(tenant)

    result = delete_product(ctx, p.id)

    assert result.success and result.data["archived"] is False
    assert reload(db, Product, p.id) is None


def test_delete_sold_product_is_archived(ctx, db, tenant, make_product):
    p = make_product(tenant, quantity=5)
    assert create_sale(ctx, {"items": [{"product_id": p.id, "quantity": 1}]}).success

    result = delete_product(ctx, p.id)

    assert result.success and result.data["archived"] is True
    assert reload(db, Product, p.id).is_active is False
    # archived products disappear from reads
    assert update_product(ctx, p.id, product_data()).message == "Product not found or access denied."


def test_viewer_cannot_write(gateway, cache, tenant, db):
    viewer = ActionContext(gateway=gateway, cache=cache, tenant_id=tenant.id, actor="V", role="viewer")

    result = create_product(viewer, product_data())

    assert not result.success
    assert result.message == "Manager role required"
    assert db.query(Product).count() == 0


# ---------- cache invalidation ----------

def test_successful_mutation_invalidates_analytics(ctx, gateway, cache, tenant):
    assert get_inventory_analytics(gateway, cache, tenant.id).total_products == 0

    assert create_product(ctx, product_data()).success

    assert get_inventory_analytics(gateway, cache, tenant.id).total_products == 1


def test_failed_mutation_invalidates_nothing(ctx, gateway, cache, tenant):
    calls = []
    cache.get_or_compute("watch", [CacheTag.PRODUCTS], 60, lambda: calls.append(1))

    assert not create_product(ctx, {"name": ""}).success

    cache.get_or_compute("watch", [CacheTag.PRODUCTS], 60, lambda: calls.append(1))
    assert len(calls) == 1


def test_actions_declare_their_tags():
    assert set(create_product.cache_tags) == {CacheTag.PRODUCTS, CacheTag.ANALYTICS, CacheTag.ACTIVITY_LOG}
    assert set(create_sale.cache_tags) == {
        CacheTag.SALES, CacheTag.PRODUCTS, CacheTag.ANALYTICS, CacheTag.CUSTOMERS, CacheTag.ACTIVITY_LOG,
    }
    assert {CacheTag.LOCATIONS, CacheTag.BATCHES} <= set(create_location.cache_tags)


# ---------- categories / suppliers ----------

def test_deleting_category_uncategorizes_products(ctx, db, tenant, make_category, make_product):
    c = make_category(tenant, "Parts")
    p = make_product(tenant, category_id=c.id)

    assert create_category(ctx, {"name": "parts"}).errors == {"name": ["A category with this name already exists."]}
    assert delete_category(ctx, c.id).success
    assert reload(db, Product, p.id).category_id is None


def test_deleting_supplier_detaches_products(ctx, db, tenant, make_product):
    result = create_supplier(ctx, {"name": "Bolt Co", "email": "sales@bolt.example"})
    supplier_id = result.data["id"]
    p = make_product(tenant, supplier_id=supplier_id)

    assert delete_supplier(ctx, supplier_id).success
    assert reload(db, Product, p.id).supplier_id is None


def test_supplier_email_validated(ctx):
    result = create_supplier(ctx, {"name": "Bolt Co", "email": "not-an-email"})
    assert result.errors == {"email": ["Invalid email address"]}


# ---------- batches ----------

def test_batch_lifecycle(ctx, db, tenant, make_product):
    p = make_product(tenant, quantity=0)

    created = create_batch(ctx, {"product_id": p.id, "batch_number": "LOT-1", "quantity": 6, "cost_price": "2.00"})
    assert created.success
    batch_id = created.data["id"]
    assert reload(db, Product, p.id).quantity == 6

    adjusted = adjust_batch_quantity(ctx, batch_id, {"adjustment": -6})
    assert adjusted.success
    assert adjusted.message == "Batch quantity adjusted by -6"
    assert reload(db, Batch, batch_id).quantity == 0
    assert reload(db, Product, p.id).quantity == 0

    assert delete_batch(ctx, batch_id).success
    assert reload(db, Batch, batch_id) is None
    types = [m.type for m in db.query(StockMovement).order_by(StockMovement.id)]
    assert types == ["in", "adjustment"]


def test_batch_adjustment_cannot_go_negative(ctx, db, tenant, make_product):
    p = make_product(tenant, quantity=0)
    batch_id = create_batch(ctx, {"product_id": p.id, "batch_number": "LOT-1", "quantity": 2}).data["id"]

    result = adjust_batch_quantity(ctx, batch_id, {"adjustment": -3})

    assert not result.success
    assert reload(db, Batch, batch_id).quantity == 2
    assert reload(db, Product, p.id).quantity == 2


def test_stocked_batch_cannot_be_deleted(ctx, tenant, make_product):
    p = make_product(tenant, quantity=0)
    batch_id = create_batch(ctx, {"product_id": p.id, "batch_number": "LOT-1", "quantity": 2}).data["id"]

    result = delete_batch(ctx, batch_id)

    assert not result.success
    assert "quantity" in result.errors


def test_batch_dates_and_duplicate_numbers(ctx, tenant, make_product):
    p = make_product(tenant)
    base = {"product_id": p.id, "batch_number": "LOT-1"}
    batch_id = create_batch(ctx, base).data["id"]

    assert create_batch(ctx, base).errors == {"batch_number": ["A batch with this number already exists for this product."]}

    result = update_batch(
        ctx,
        batch_id,
        {"batch_number": "LOT-1", "expiry_date": "2026-01-01", "manufacturing_date": "2026-02-01"},
    )
    assert result.errors == {"manufacturing_date": ["Manufacturing date must be before expiry date"]}


# ---------- customers / locations ----------

def test_customer_with_sales_cannot_be_deleted(ctx, tenant, make_product):
    customer_id = create_customer(ctx, {"name": "Jane"}).data["id"]
    p = make_product(tenant, quantity=3)
    assert create_sale(ctx, {"customer_id": customer_id, "items": [{"product_id": p.id, "quantity": 1}]}).success

    result = delete_customer(ctx, customer_id)

    assert not result.success
    assert "Cannot delete customer" in result.message


def test_only_one_default_location(ctx, db, tenant):
    first = create_location(ctx, {"name": "Main", "is_default": True}).data["id"]
    second = create_location(ctx, {"name": "Back", "is_default": True}).data["id"]

    assert reload(db, Location, first).is_default is False
    assert reload(db, Location, second).is_default is True

    assert update_location(ctx, first, {"name": "Main", "is_default": True}).success
    assert reload(db, Location, second).is_default is False


def test_location_with_batches_cannot_be_deleted(ctx, tenant, make_product):
    location_id = create_location(ctx, {"name": "Main"}).data["id"]
    p = make_product(tenant)
    create_batch(ctx, {"product_id": p.id, "batch_number": "LOT-1", "location_id": location_id})

    result = delete_location(ctx, location_id)

    assert not result.success
    assert result.message == "Cannot delete location with existing stock. Transfer or remove stock first."


# ---------- sales ----------

def test_create_sale(ctx, db, gateway, tenant, make_product):
    a = make_product(tenant, name="A", quantity=5, price=Decimal("10.00"))
    b = make_product(tenant, name="B", quantity=2, price=Decimal("3.00"))
    create_batch(ctx, {"product_id": a.id, "batch_number": "LOT-A", "cost_price": "6.00"})

    result = create_sale(
        ctx,
        {
            "items": [
                {"product_id": a.id, "quantity": 2},
                {"product_id": b.id, "quantity": 2, "unit_price": "2.50"},
            ],
            "tax": "1.00",
            "discount": "0.50",
        },
    )

    assert result.success
    assert result.data["total_amount"] == 25.5
    assert reload(db, Product, a.id).quantity == 3
    assert reload(db, Product, b.id).quantity == 0

    out = gateway.find_many(tenant.id, StockMovement, Where(StockMovement.type == "out"))
    assert sorted(m.quantity for m in out) == [-2, -2]
    assert {m.reference for m in out} == {f"SALE-{result.data['id']}"}


def test_sale_with_insufficient_stock_writes_nothing(ctx, db, tenant, make_product):
    a = make_product(tenant, name="A", quantity=5)
    b = make_product(tenant, name="B", quantity=1)

    result = create_sale(
        ctx,
        {"items": [{"product_id": a.id, "quantity": 2}, {"product_id": b.id, "quantity": 2}]},
    )

    assert not result.success
    assert list(result.errors) == ["items.1.quantity"]
    assert reload(db, Product, a.id).quantity == 5
    assert db.query(StockMovement).count() == 0


def test_sale_rejects_duplicate_lines_and_empty_items(ctx, tenant, make_product):
    p = make_product(tenant)

    assert not create_sale(ctx, {"items": []}).success
    result = create_sale(
        ctx, {"items": [{"product_id": p.id, "quantity": 1}, {"product_id": p.id, "quantity": 1}]}
    )
    assert not result.success
    assert "items" in result.errors


def test_other_tenants_product_cannot_be_sold(ctx, other_tenant, make_product):
    p = make_product(other_tenant, quantity=5)

    result = create_sale(ctx, {"items": [{"product_id": p.id, "quantity": 1}]})

    assert result.errors == {"items.0.product_id": ["Product not found"]}


def test_batch_filter_hides_expired(gateway, ctx, tenant, make_product):
    p = make_product(tenant)
    create_batch(ctx, {"product_id": p.id, "batch_number": "OLD", "expiry_date": "2026-01-01"})
    create_batch(ctx, {"product_id": p.id, "batch_number": "NEW", "expiry_date": "2026-12-01"})

    live = gateway.find_many(tenant.id, Batch, BatchFilter(include_expired=False, today=date(2026, 6, 1)))
    assert [b.batch_number for b in live] == ["NEW"]
