from types import SimpleNamespace

import pytest

from stockledger.actions.products import set_alert_threshold
from stockledger.services.alerts import (
    classify_product,
    compute_reorder_recommendations,
    compute_stock_alert_summary,
    compute_stock_alerts,
    get_stock_alerts,
)
from stockledger.services.reorder import compute_reorder_fields


def fake_product(quantity, threshold=None, name="Widget"):
    return SimpleNamespace(
        id=1, name=name, sku=None, quantity=quantity, low_stock_threshold=threshold, updated_at=None
    )


# ---------- classification ----------

@pytest.mark.parametrize("threshold", [None, 0, 5])
def test_zero_quantity_is_out_of_stock_and_critical(threshold):
    alert = classify_product(fake_product(0, threshold))
    assert alert.alert_type == "out_of_stock"
    assert alert.severity == "critical"


@pytest.mark.parametrize(
    "quantity, threshold, severity",
    [
        (1, 10, "critical"),
        (5, 10, "critical"),
        (6, 10, "warning"),
        (10, 10, "warning"),
        (2, 5, "critical"),
        (3, 5, "warning"),
    ],
)
def test_low_stock_severity_splits_at_half_threshold(quantity, threshold, severity):
    alert = classify_product(fake_product(quantity, threshold))
    assert alert.alert_type == "low_stock"
    assert alert.severity == severity


@pytest.mark.parametrize("quantity, threshold", [(11, 10), (3, None), (1, 0)])
def test_no_alert_above_threshold_or_without_one(quantity, threshold):
    assert classify_product(fake_product(quantity, threshold)) is None


# ---------- reorder formula ----------

def test_reorder_formula_example():
    fields = compute_reorder_fields(fake_product(3, 10))
    assert fields == {
        "target_stock": 20,
        "recommended_order_quantity": 17,
        "estimated_days_remaining": 2,
    }


def test_reorder_formula_without_threshold():
    fields = compute_reorder_fields(fake_product(0, None))
    assert fields == {
        "target_stock": 10,
        "recommended_order_quantity": 10,
        "estimated_days_remaining": 0,
    }


def test_reorder_zero_threshold_counts_as_unset():
    assert compute_reorder_fields(fake_product(3, 0)) == compute_reorder_fields(fake_product(3, None))
    assert compute_reorder_fields(fake_product(3, 0)) == {
        "target_stock": 10,
        "recommended_order_quantity": 7,
        "estimated_days_remaining": 0,
    }


def test_reorder_never_recommends_less_than_threshold():
    fields = compute_reorder_fields(fake_product(10, 10))
    assert fields["recommended_order_quantity"] == 10
    assert fields["estimated_days_remaining"] == 7


# ---------- against the store ----------

def test_alerts_sorted_by_quantity_then_name(gateway, tenant, make_product):
    make_product(tenant, name="Low", quantity=5, low_stock_threshold=10)
    make_product(tenant, name="Gone", quantity=0)
    make_product(tenant, name="Fine", quantity=50, low_stock_threshold=10)
    make_product(tenant, name="Untracked", quantity=2)

    alerts = compute_stock_alerts(gateway, tenant.id)

    assert len(alerts) == 2
    assert [a.product_name for a in alerts] == ["Gone", "Low"]
    assert [a.alert_type for a in alerts] == ["out_of_stock", "low_stock"]


def test_alerts_ignore_other_tenants_and_archived_products(gateway, tenant, other_tenant, make_product):
    make_product(tenant, name="Mine", quantity=0)
    make_product(tenant, name="Archived", quantity=0, is_active=False)
    make_product(other_tenant, name="Theirs", quantity=0)

    alerts = compute_stock_alerts(gateway, tenant.id)

    assert [a.product_name for a in alerts] == ["Mine"]


def test_alert_summary_counts(gateway, tenant, make_product):
    make_product(tenant, quantity=0)
    make_product(tenant, quantity=0, low_stock_threshold=4)
    make_product(tenant, quantity=2, low_stock_threshold=4)   # critical
    make_product(tenant, quantity=3, low_stock_threshold=4)   # warning
    make_product(tenant, quantity=9, low_stock_threshold=4)   # fine

    summary = compute_stock_alert_summary(gateway, tenant.id)

    assert summary.out_of_stock == 2
    assert summary.low_stock == 2
    assert summary.total_alerts == 4
    assert summary.critical_alerts == 3
    assert summary.warning_alerts == 1


def test_summary_matches_alert_list(gateway, tenant, make_product):
    for q, t in [(0, None), (1, 10), (7, 10), (10, 10), (11, 10), (4, 8)]:
        make_product(tenant, quantity=q, low_stock_threshold=t)

    alerts = compute_stock_alerts(gateway, tenant.id)
    summary = compute_stock_alert_summary(gateway, tenant.id)

    assert summary.total_alerts == len(alerts)
    assert summary.critical_alerts == sum(1 for a in alerts if a.severity == "critical")


def test_reorder_recommendations_sorted_by_days_remaining(gateway, tenant, make_product):
    make_product(tenant, name="Slow", quantity=9, low_stock_threshold=10)
    make_product(tenant, name="Empty", quantity=0, low_stock_threshold=10)
    make_product(tenant, name="Half", quantity=5, low_stock_threshold=10)

    recs = compute_reorder_recommendations(gateway, tenant.id, days_of_stock=14)

    assert [r.product_name for r in recs] == ["Empty", "Half", "Slow"]
    assert [r.estimated_days_remaining for r in recs] == [0, 3, 6]
    assert recs[0].recommended_order_quantity == 20


# ---------- threshold updates ----------

def test_set_alert_threshold_changes_alerts(ctx, cache, gateway, tenant, make_product):
    p = make_product(tenant, name="Bolt", quantity=4)
    assert get_stock_alerts(gateway, cache, tenant.id) == []

    result = set_alert_threshold(ctx, p.id, 5)

    assert result.success
    assert result.message == "Alert threshold set to 5 for Bolt"
    alerts = get_stock_alerts(gateway, cache, tenant.id)
    assert [(a.product_name, a.severity) for a in alerts] == [("Bolt", "warning")]


def test_clearing_threshold(ctx, tenant, make_product):
    p = make_product(tenant, name="Bolt", quantity=4, low_stock_threshold=5)

    result = set_alert_threshold(ctx, p.id, None)

    assert result.success
    assert result.message == "Alert threshold removed for Bolt"


def test_threshold_on_another_tenants_product_is_not_found(ctx, other_tenant, make_product):
    p = make_product(other_tenant, quantity=4)

    result = set_alert_threshold(ctx, p.id, 5)

    assert not result.success
    assert result.message == "Product not found or access denied."


def test_negative_threshold_rejected(ctx, tenant, make_product):
    p = make_product(tenant, quantity=4)

    result = set_alert_threshold(ctx, p.id, -1)

    assert not result.success
    assert "low_stock_threshold" in result.errors
