import pytest

from shopsync.core import rate_limit
from shopsync.core.exceptions import UpstreamError
from shopsync.core.rate_limit import FixedWindowRateLimiter

ORDERS = {"orders": [{"id": 1, "name": "#1001"}, {"id": 2, "name": "#1002"}]}


def test_read_scope_allows_get(client, fake_connector, issue_key):
    headers = issue_key(["read_orders"])
    fake_connector.responses[("GET", "/orders.json")] = ORDERS

    response = client.get("/api/orders", headers=headers, params={"status": "any", "limit": "2"})

    assert response.status_code == 200
    assert response.json() == ORDERS
    [call] = fake_connector.calls
    assert call["shop"] == "portal-test.myshopify.com"
    assert call["token"] == "shpat_0123456789abcdef"
    assert call["params"] == {"status": "any", "limit": "2"}


def test_missing_write_scope_is_forbidden(client, fake_connector, issue_key):
    headers = issue_key(["read_orders"])

    response = client.put("/api/orders/1", headers=headers, json={"note": "rush"})

    assert response.status_code == 403
    body = response.json()
    assert body["required_scope"] == "write_orders"
    assert body["your_scopes"] == ["read_orders"]
    assert "write_orders" in body["message"]
    assert fake_connector.calls == []


def test_write_scope_covers_read(client, fake_connector, issue_key):
    headers = issue_key(["write_orders"])
    assert client.get("/api/orders/1", headers=headers).status_code == 200
    assert fake_connector.calls[0]["path"] == "/orders/1.json"


def test_update_wraps_body_in_envelope(client, fake_connector, issue_key):
    headers = issue_key(["write_orders"])
    fake_connector.responses[("PUT", "/orders/7.json")] = {"order": {"id": 7, "note": "rush"}}

    response = client.put("/api/orders/7", headers=headers, json={"note": "rush"})

    assert response.status_code == 200
    assert fake_connector.calls[0]["json"] == {"order": {"note": "rush"}}


def test_missing_credentials(client, installed_store):
    response = client.get("/api/orders")
    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"
    assert client.get("/api/orders", headers={"X-API-Key": "sk_x"}).status_code == 401


def test_bad_credentials_look_the_same(client, issue_key):
    headers = issue_key(["read_orders"])
    wrong_secret = client.get("/api/orders", headers=dict(headers, **{"X-API-Secret": "nope"}))
    unknown_key = client.get("/api/orders", headers=dict(headers, **{"X-API-Key": "sk_" + "1" * 64}))

    assert wrong_secret.status_code == unknown_key.status_code == 401
    assert wrong_secret.json() == unknown_key.json()


def test_calls_are_recorded(client, fake_connector, issue_key):
    headers = issue_key(["read_orders", "write_products"])
    fake_connector.responses[("GET", "/orders.json")] = ORDERS
    fake_connector.responses[("POST", "/products.json")] = {"product": {"id": 555, "title": "Hat"}}

    client.get("/api/orders", headers=headers)
    client.post("/api/products", headers=headers, json={"title": "Hat"})

    logs = client.get("/api/logs", headers=headers).json()["logs"]
    assert [(log["action"], log["resource_type"], log["status"]) for log in logs] == [
        ("CREATE", "product", "success"),
        ("READ", "order", "success"),
    ]
    assert logs[0]["resource_id"] == "555"
    assert logs[1]["details"] == {"count": 2}
    assert logs[0]["api_key_id"] is not None


@pytest.mark.parametrize("upstream_status", [401, 403, 404, 429])
def test_upstream_client_error_is_reported_as_upstream_failure(client, fake_connector, issue_key, upstream_status):
    headers = issue_key(["read_orders"])
    fake_connector.errors[("GET", "/orders/404.json")] = UpstreamError(
        f"Shopify API returned {upstream_status}", upstream_status=upstream_status, details="Refused"
    )

    response = client.get("/api/orders/404", headers=headers)

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Upstream request failed"
    assert body["upstream_status"] == upstream_status
    assert body["details"] == "Refused"
    assert body["retryable"] is False

    [log] = client.get("/api/logs", headers=headers).json()["logs"]
    assert log["status"] == "error"
    assert log["resource_id"] == "404"
    assert log["details"]["upstream_status"] == upstream_status


def test_upstream_timeout_is_retryable(client, fake_connector, issue_key):
    headers = issue_key(["read_customers"])
    fake_connector.errors[("GET", "/customers.json")] = UpstreamError(
        "Shopify API request timed out", retryable=True
    )

    response = client.get("/api/customers", headers=headers)

    assert response.status_code == 504
    assert response.json()["retryable"] is True


def test_inventory_sync_requires_fields(client, fake_connector, issue_key):
    headers = issue_key(["write_inventory"])

    assert client.post("/api/inventory/sync", headers=headers, json={"location_id": 1}).status_code == 400

    response = client.post(
        "/api/inventory/sync",
        headers=headers,
        json={"inventory_item_id": 808950810, "location_id": 655441491, "available": 0},
    )
    assert response.status_code == 200
    [call] = fake_connector.calls
    assert call["path"] == "/inventory_levels/set.json"
    assert call["json"]["available"] == 0


def test_fulfillments(client, fake_connector, issue_key):
    # Tenant grant has no fulfillments scope, so no credential can carry it
    headers = issue_key(["read_orders"])
    assert client.get("/api/orders/1/fulfillments", headers=headers).status_code == 403


def test_generic_resource_routes(client, fake_connector, issue_key):
    headers = issue_key(["write_products"])
    fake_connector.responses[("GET", "/products.json")] = {"products": []}

    assert client.get("/api/v1/products", headers=headers).status_code == 200
    assert client.delete("/api/v1/products/9", headers=headers).status_code == 200
    assert [c["method"] + " " + c["path"] for c in fake_connector.calls] == [
        "GET /products.json",
        "DELETE /products/9.json",
    ]


def test_generic_fallback_scope(client, fake_connector, issue_key):
    headers = issue_key(["read_orders"])
    response = client.get("/api/v1/gift_cards", headers=headers)
    assert response.status_code == 403
    assert response.json()["required_scope"] == "read_gift_cards"


def test_generic_invalid_and_read_only_resources(client, fake_connector, issue_key):
    headers = issue_key(["read_orders"])
    assert client.get("/api/v1/Not-A-Resource", headers=headers).status_code == 404
    assert client.post("/api/v1/draft_orders", headers=headers, json={}).status_code == 405
    assert fake_connector.calls == []


def test_graphql_backed_reads(client, fake_connector, issue_key):
    headers = issue_key(["read_orders"])
    fake_connector.graphql_data = {"order": {"id": "gid://shopify/Order/123", "transactions": []}}

    response = client.get("/api/v1/graphql/transactions/123", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "data": fake_connector.graphql_data}
    assert fake_connector.graphql_calls[0]["variables"] == {"orderId": "gid://shopify/Order/123"}

    denied = client.get("/api/v1/graphql/returns", headers=headers)
    assert denied.status_code == 403
    assert denied.json()["required_scope"] == "read_returns"


def test_graphql_errors_are_upstream_failures(client, fake_connector, issue_key):
    headers = issue_key(["read_orders"])
    fake_connector.graphql_error = UpstreamError("GraphQL query failed", upstream_status=200, details=[{"message": "x"}])

    response = client.get("/api/v1/graphql/transactions/1", headers=headers)
    assert response.status_code == 500
    assert response.json()["details"] == [{"message": "x"}]


def test_stats_and_test_connection(client, fake_connector, issue_key):
    headers = issue_key(["read_orders"])
    fake_connector.responses[("GET", "/shop.json")] = {"shop": {"name": "Portal Test", "domain": "portal.example"}}

    client.get("/api/orders", headers=headers)
    client.get("/api/orders", headers=headers)

    stats = client.get("/api/stats", headers=headers, params={"hours": 1}).json()
    assert stats["hours"] == 1
    assert stats["summary"] == [{"resource_type": "order", "action": "READ", "status": "success", "count": 2}]

    connection = client.get("/api/test-connection", headers=headers).json()
    assert connection["success"] is True
    assert connection["shop"] == "Portal Test"
    assert connection["scopes"] == ["read_orders"]


def test_rate_limit(client, issue_key, monkeypatch):
    headers = issue_key(["read_orders"])
    monkeypatch.setattr(rate_limit, "api_limiter", FixedWindowRateLimiter(max_requests=2, window_seconds=900))

    assert client.get("/api/orders", headers=headers).status_code == 200
    assert client.get("/api/orders", headers=headers).status_code == 200
    response = client.get("/api/orders", headers=headers)

    assert response.status_code == 429
    assert int(response.headers["Retry-After"]) > 0
    # Other credentials have their own budget
    other = issue_key(["read_orders"], name="Other")
    assert client.get("/api/orders", headers=other).status_code == 200
