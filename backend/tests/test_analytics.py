from datetime import date, datetime
from decimal import Decimal

import pytest

from stockledger.core.errors import ValidationFailure
from stockledger.models.sale import Sale, SaleItem
from stockledger.services.analytics import (
    compute_inventory_analytics,
    compute_profit_loss,
    compute_sales_analytics,
    compute_sales_performance,
    get_inventory_analytics,
)


@pytest.fixture
def make_sale(db):
    def make(tenant, total, tax="0", created_at=None, status="completed", items=()):
        sale = Sale(
            tenant_id=tenant.id,
            status=status,
            subtotal=Decimal(total) - Decimal(tax),
            tax=Decimal(tax),
            discount=Decimal("0"),
            total_amount=Decimal(total),
            created_at=created_at or datetime(2026, 3, 10, 12, 0),
        )
        for name, qty, unit, cost in items:
            sale.items.append(
                SaleItem(
                    tenant_id=tenant.id,
                    product_name=name,
                    quantity=qty,
                    unit_price=Decimal(unit),
                    cost_price=Decimal(cost) if cost is not None else None,
                    total_price=Decimal(unit) * qty,
                )
            )
        db.add(sale)
        db.commit()
        return sale

    return make


# ---------- inventory ----------

def test_empty_inventory(gateway, tenant):
    snap = compute_inventory_analytics(gateway, tenant.id)

    assert snap.model_dump() == {
        "total_products": 0,
        "total_value": 0.0,
        "low_stock_count": 0,
        "out_of_stock_count": 0,
        "value_by_category": {},
    }


def test_inventory_totals_and_categories(gateway, tenant, make_product, make_category):
    parts = make_category(tenant, "Parts")
    tools = make_category(tenant, "Tools")
    make_product(tenant, quantity=3, price=Decimal("10.00"), category_id=parts.id, low_stock_threshold=5)
    make_product(tenant, quantity=2, price=Decimal("2.50"), category_id=parts.id)
    make_product(tenant, quantity=1, price=Decimal("99.99"), category_id=tools.id)
    make_product(tenant, quantity=0, price=Decimal("5.00"))
    make_product(tenant, quantity=4, price=Decimal("1.25"))

    snap = compute_inventory_analytics(gateway, tenant.id)

    assert snap.total_products == 5
    assert snap.total_value == pytest.approx(30 + 5 + 99.99 + 0 + 5)
    assert snap.low_stock_count == 1
    assert snap.out_of_stock_count == 1
    assert snap.value_by_category == {
        "Parts": pytest.approx(35.0),
        "Tools": pytest.approx(99.99),
        "Uncategorized": pytest.approx(5.0),
    }
    assert sum(snap.value_by_category.values()) == pytest.approx(snap.total_value)


def test_inventory_is_tenant_scoped_with_shared_sku(gateway, tenant, other_tenant, make_product):
    make_product(tenant, sku="SKU-1", quantity=2, price=Decimal("3.00"))
    make_product(other_tenant, sku="SKU-1", quantity=100, price=Decimal("3.00"))

    mine = compute_inventory_analytics(gateway, tenant.id)
    theirs = compute_inventory_analytics(gateway, other_tenant.id)

    assert (mine.total_products, mine.total_value) == (1, 6.0)
    assert (theirs.total_products, theirs.total_value) == (1, 300.0)


def test_archived_products_are_not_counted(gateway, tenant, make_product):
    make_product(tenant, quantity=0, is_active=False)
    make_product(tenant, quantity=2, price=Decimal("4.00"))

    snap = compute_inventory_analytics(gateway, tenant.id)

    assert snap.total_products == 1
    assert snap.out_of_stock_count == 0


def test_cached_inventory_recomputes_after_products_invalidation(gateway, cache, tenant, make_product):
    make_product(tenant, quantity=1, price=Decimal("1.00"))
    before = get_inventory_analytics(gateway, cache, tenant.id)

    make_product(tenant, quantity=1, price=Decimal("1.00"))
    assert get_inventory_analytics(gateway, cache, tenant.id) == before

    cache.invalidate("products")
    assert get_inventory_analytics(gateway, cache, tenant.id).total_products == 2


# ---------- sales ----------

def test_empty_sales_analytics(gateway, tenant):
    result = compute_sales_analytics(gateway, tenant.id)
    assert (result.sales_count, result.total_revenue, result.recent_sales) == (0, 0.0, [])


def test_sales_analytics_inclusive_range(gateway, tenant, make_sale):
    make_sale(tenant, "10.00", created_at=datetime(2026, 3, 1, 0, 0))
    make_sale(tenant, "20.00", created_at=datetime(2026, 3, 5, 23, 59))
    make_sale(tenant, "40.00", created_at=datetime(2026, 3, 6, 0, 0))

    result = compute_sales_analytics(gateway, tenant.id, date(2026, 3, 1), date(2026, 3, 5))

    assert result.sales_count == 2
    assert result.total_revenue == 30.0
    assert [s.total_amount for s in result.recent_sales] == [20.0, 10.0]


def test_recent_sales_limited_with_items(gateway, tenant, make_sale):
    for day in range(1, 13):
        make_sale(tenant, "1.00", created_at=datetime(2026, 3, day, 9), items=[("Bolt", 1, "1.00", None)])

    result = compute_sales_analytics(gateway, tenant.id)

    assert result.sales_count == 12
    assert len(result.recent_sales) == 10
    assert result.recent_sales[0].created_at == datetime(2026, 3, 12, 9)
    assert result.recent_sales[0].items[0].product_name == "Bolt"


# ---------- reports ----------

def test_profit_loss(gateway, tenant, make_sale):
    make_sale(
        tenant, "110.00", tax="10.00", created_at=datetime(2026, 3, 2, 10),
        items=[("Bolt", 10, "10.00", "6.00")],
    )
    make_sale(
        tenant, "50.00", created_at=datetime(2026, 3, 3, 10),
        items=[("Nut", 5, "10.00", None)],
    )
    make_sale(tenant, "999.00", created_at=datetime(2026, 3, 3, 11), status="refunded")

    report = compute_profit_loss(gateway, tenant.id, date(2026, 3, 1), date(2026, 3, 31))

    assert report.revenue == 150.0
    assert report.cogs == 60.0
    assert report.gross_profit == 90.0
    assert report.gross_margin == 60.0
    assert report.total_tax == 10.0
    assert report.transaction_count == 2


def test_profit_loss_defaults_to_last_30_days(gateway, tenant):
    report = compute_profit_loss(gateway, tenant.id, today=date(2026, 3, 31))
    assert (report.start_date, report.end_date) == (date(2026, 3, 1), date(2026, 3, 31))
    assert report.gross_margin == 0.0


def test_inverted_range_is_rejected(gateway, tenant):
    with pytest.raises(ValidationFailure):
        compute_profit_loss(gateway, tenant.id, date(2026, 3, 5), date(2026, 3, 1))


def test_sales_performance_has_one_row_per_day(gateway, tenant, make_sale):
    make_sale(tenant, "30.00", created_at=datetime(2026, 3, 2, 10), items=[("Bolt", 3, "10.00", "4.00")])
    make_sale(tenant, "5.00", created_at=datetime(2026, 3, 2, 18))

    rows = compute_sales_performance(gateway, tenant.id, date(2026, 3, 1), date(2026, 3, 3))

    assert [r.date for r in rows] == [date(2026, 3, 1), date(2026, 3, 2), date(2026, 3, 3)]
    assert [r.count for r in rows] == [0, 2, 0]
    assert rows[1].revenue == 35.0
    assert rows[1].profit == 23.0
