from decimal import Decimal


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


# ---------- auth ----------

def test_login_and_me(client, tenant, make_user):
    make_user(tenant, role="manager", username="mgr", password="secret123")

    res = client.post("/api/auth/login", json={"username": "mgr", "password": "secret123"})

    assert res.status_code == 200
    body = res.json()
    assert body["token_type"] == "bearer"
    assert body["user"]["tenant_id"] == tenant.id

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.json()["username"] == "mgr"


def test_oauth2_token_form(client, tenant, make_user):
    make_user(tenant, username="mgr", password="secret123")

    res = client.post("/api/auth/token", data={"username": "mgr", "password": "secret123"})

    assert res.status_code == 200
    assert res.json()["access_token"]


def test_bad_password(client, tenant, make_user):
    make_user(tenant, username="mgr", password="secret123")
    res = client.post("/api/auth/login", json={"username": "mgr", "password": "nope"})
    assert res.status_code == 401


def test_reads_require_a_token(client):
    res = client.get("/api/products")
    assert res.status_code == 401
    assert res.headers["www-authenticate"] == "Bearer"


def test_garbage_token_rejected(client):
    res = client.get("/api/products", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


# ---------- reads ----------

def test_products_are_paginated_and_scoped(client, tenant, other_tenant, make_user, make_product, auth_headers):
    user = make_user(tenant, role="viewer")
    for i in range(25):
        make_product(tenant, name=f"Item {i:02d}")
    make_product(other_tenant, name="Not mine")

    first = client.get("/api/products", headers=auth_headers(user)).json()
    last = client.get("/api/products?page=2", headers=auth_headers(user)).json()

    assert (first["total"], first["total_pages"], len(first["items"])) == (25, 2, 20)
    assert len(last["items"]) == 5
    names = {p["name"] for p in first["items"] + last["items"]}
    assert "Not mine" not in names


def test_other_tenants_product_is_404(client, tenant, other_tenant, make_user, make_product, auth_headers):
    user = make_user(tenant)
    theirs = make_product(other_tenant)

    res = client.get(f"/api/products/{theirs.id}", headers=auth_headers(user))

    assert res.status_code == 404
    assert res.json()["detail"] == "Product not found or access denied."


def test_alert_endpoints(client, tenant, make_user, make_product, auth_headers):
    user = make_user(tenant, role="viewer")
    make_product(tenant, name="Gone", quantity=0)
    make_product(tenant, name="Low", quantity=3, low_stock_threshold=5)

    alerts = client.get("/api/alerts", headers=auth_headers(user)).json()
    summary = client.get("/api/alerts/summary", headers=auth_headers(user)).json()
    reorder = client.get("/api/alerts/reorder", headers=auth_headers(user)).json()

    assert [(a["product_name"], a["severity"]) for a in alerts] == [("Gone", "critical"), ("Low", "warning")]
    assert summary == {
        "total_alerts": 2,
        "critical_alerts": 1,
        "warning_alerts": 1,
        "out_of_stock": 1,
        "low_stock": 1,
    }
    assert [r["product_name"] for r in reorder] == ["Gone", "Low"]


def test_inverted_report_range_is_400(client, tenant, make_user, auth_headers):
    user = make_user(tenant)

    res = client.get(
        "/api/reports/profit-loss?start_date=2026-03-05&end_date=2026-03-01",
        headers=auth_headers(user),
    )

    assert res.status_code == 400
    assert "start_date" in res.json()["errors"]


# ---------- writes ----------

def test_viewer_cannot_write(client, tenant, make_user, auth_headers):
    viewer = make_user(tenant, role="viewer")

    res = client.post(
        "/api/products",
        json={"name": "X", "manufacturer": "Y", "price": 1},
        headers=auth_headers(viewer),
    )

    assert res.status_code == 403


def test_create_then_read_product(client, tenant, make_user, auth_headers):
    manager = make_user(tenant)
    headers = auth_headers(manager)

    # warm the cached list first
    assert client.get("/api/products", headers=headers).json()["total"] == 0

    res = client.post(
        "/api/products",
        json={"name": "Brake Pad", "manufacturer": "Acme", "price": "12.50", "quantity": 3},
        headers=headers,
    )
    assert res.status_code == 201
    product_id = res.json()["data"]["id"]

    listing = client.get("/api/products", headers=headers).json()
    assert [p["id"] for p in listing["items"]] == [product_id]

    log = client.get("/api/activity-log", headers=headers).json()
    assert log["items"][0]["entity_type"] == "product"


def test_failed_write_is_400_with_field_errors(client, tenant, make_user, auth_headers):
    manager = make_user(tenant)

    res = client.post("/api/products", json={"name": ""}, headers=auth_headers(manager))

    assert res.status_code == 400
    body = res.json()
    assert body["success"] is False
    assert "name" in body["errors"]


def test_threshold_endpoint(client, tenant, make_user, make_product, auth_headers):
    manager = make_user(tenant)
    p = make_product(tenant, name="Bolt", quantity=4)

    res = client.put(
        f"/api/products/{p.id}/threshold",
        json={"low_stock_threshold": 5},
        headers=auth_headers(manager),
    )

    assert res.status_code == 200
    assert res.json()["message"] == "Alert threshold set to 5 for Bolt"


def test_sale_endpoint(client, tenant, make_user, make_product, auth_headers):
    manager = make_user(tenant)
    p = make_product(tenant, quantity=4, price=Decimal("2.00"))

    res = client.post(
        "/api/sales",
        json={"items": [{"product_id": p.id, "quantity": 3}]},
        headers=auth_headers(manager),
    )

    assert res.status_code == 201
    assert res.json()["data"]["total_amount"] == 6.0
    product = client.get(f"/api/products/{p.id}", headers=auth_headers(manager)).json()
    assert product["quantity"] == 1


def test_purchase_order_endpoints(client, tenant, make_user, make_product, auth_headers):
    headers = auth_headers(make_user(tenant))
    p = make_product(tenant, quantity=0)
    supplier = client.post("/api/suppliers", json={"name": "Bolt Co"}, headers=headers).json()["data"]["id"]

    created = client.post(
        "/api/purchase-orders",
        json={"supplier_id": supplier, "items": [{"product_id": p.id, "ordered_quantity": 4, "unit_cost": "1.50"}]},
        headers=headers,
    )
    assert created.status_code == 201
    po_id = created.json()["data"]["id"]

    bad = client.put(f"/api/purchase-orders/{po_id}/status", json={"status": "received"}, headers=headers)
    assert bad.status_code == 400

    detail = client.get(f"/api/purchase-orders/{po_id}", headers=headers).json()
    item_id = detail["items"][0]["id"]
    received = client.post(
        f"/api/purchase-orders/{po_id}/receive",
        json={"items": [{"item_id": item_id, "received_quantity": 4}]},
        headers=headers,
    )
    assert received.json()["data"]["status"] == "received"

    listing = client.get("/api/purchase-orders?status=received", headers=headers).json()
    assert [o["id"] for o in listing["items"]] == [po_id]
    assert client.get(f"/api/products/{p.id}", headers=headers).json()["quantity"] == 4
    summary = client.get(f"/api/stock-movements/summary?product_id={p.id}", headers=headers).json()
    assert (summary["total_in"], summary["total_in_count"]) == (4, 1)


def test_transfer_endpoint(client, tenant, make_user, make_product, auth_headers):
    headers = auth_headers(make_user(tenant))
    p = make_product(tenant, quantity=0)
    front = client.post("/api/locations", json={"name": "Front"}, headers=headers).json()["data"]["id"]
    back = client.post("/api/locations", json={"name": "Back"}, headers=headers).json()["data"]["id"]
    client.post(
        "/api/batches",
        json={"product_id": p.id, "batch_number": "LOT-1", "quantity": 3, "location_id": front},
        headers=headers,
    )

    res = client.post(
        "/api/stock-transfers",
        json={"product_id": p.id, "from_location_id": front, "to_location_id": back, "quantity": 2},
        headers=headers,
    )

    assert res.status_code == 201
    at_back = client.get(f"/api/batches?location_id={back}", headers=headers).json()
    assert [(b["batch_number"], b["quantity"]) for b in at_back["items"]] == [("LOT-1", 2)]


# ---------- admin ----------

def test_admin_routes_need_admin(client, tenant, make_user, auth_headers):
    manager = make_user(tenant)
    assert client.get("/api/admin/cache", headers=auth_headers(manager)).status_code == 403


def test_admin_sees_all_tenants_and_cache_stats(client, tenant, other_tenant, make_user, auth_headers):
    admin = make_user(tenant, role="admin")

    tenants = client.get("/api/admin/tenants", headers=auth_headers(admin)).json()
    stats = client.post("/api/admin/cache/clear", headers=auth_headers(admin)).json()

    assert tenants["total"] == 2
    assert stats["total_entries"] == 0
