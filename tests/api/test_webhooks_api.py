import base64
import hashlib
import hmac
import json

from shopsync.crud.store import get_store_by_domain
from shopsync.crud.webhook import get_webhooks_by_store, save_webhook

SHOP = "portal-test.myshopify.com"
SECRET = "test-shopify-secret"


def _signed(body: bytes, topic_shop=SHOP, secret=SECRET):
    digest = hmac.new(secret.encode(), body, hashlib.sha256).digest()
    return {
        "X-Shopify-Hmac-SHA256": base64.b64encode(digest).decode(),
        "X-Shopify-Shop-Domain": topic_shop,
        "Content-Type": "application/json",
    }


ORDER = json.dumps({
    "id": 450789469,
    "order_number": 1001,
    "total_price": "598.94",
    "customer": {"email": "bob.norman@mail.example.com"},
}).encode()


def test_order_webhook_is_logged(client, installed_store, owner_headers):
    response = client.post("/webhooks/orders-create", content=ORDER, headers=_signed(ORDER))

    assert response.status_code == 200
    assert response.text == "OK"

    [log] = client.get("/api/admin/logs", headers=owner_headers).json()["logs"]
    assert log["action"] == "WEBHOOK_CREATE"
    assert log["resource_type"] == "orders"
    assert log["resource_id"] == "450789469"
    assert log["status"] == "received"
    assert log["api_key_id"] is None
    assert log["details"]["webhook_topic"] == "orders/create"
    assert log["details"]["data"]["customer"] == "bob.norman@mail.example.com"


def test_inventory_webhook_uses_inventory_item_id(client, installed_store, owner_headers):
    body = json.dumps({"inventory_item_id": 271878346596884015, "location_id": 24826418, "available": 3}).encode()
    assert client.post("/webhooks/inventory_levels-update", content=body, headers=_signed(body)).status_code == 200

    [log] = client.get("/api/admin/logs", headers=owner_headers).json()["logs"]
    assert log["action"] == "WEBHOOK_UPDATE"
    assert log["resource_type"] == "inventory_levels"
    assert log["resource_id"] == "271878346596884015"


def test_bad_signature_is_rejected(client, installed_store, owner_headers):
    headers = _signed(ORDER)
    tampered = ORDER.replace(b"598.94", b"0.01")

    assert client.post("/webhooks/orders-create", content=tampered, headers=headers).status_code == 401
    assert client.post("/webhooks/orders-create", content=ORDER, headers=_signed(ORDER, secret="other")).status_code == 401
    assert client.get("/api/admin/logs", headers=owner_headers).json()["logs"] == []


def test_missing_headers_are_rejected(client, installed_store):
    headers = _signed(ORDER)
    del headers["X-Shopify-Hmac-SHA256"]
    assert client.post("/webhooks/orders-create", content=ORDER, headers=headers).status_code == 401

    headers = _signed(ORDER)
    del headers["X-Shopify-Shop-Domain"]
    assert client.post("/webhooks/orders-create", content=ORDER, headers=headers).status_code == 401


def test_unknown_store(client, installed_store):
    response = client.post(
        "/webhooks/orders-create", content=ORDER, headers=_signed(ORDER, topic_shop="ghost.myshopify.com")
    )
    assert response.status_code == 404


def test_unknown_topic(client, installed_store):
    assert client.post("/webhooks/carts-create", content=ORDER, headers=_signed(ORDER)).status_code == 404


def test_uninstall_revokes_credentials(client, installed_store, issue_key, with_db, owner_headers):
    headers = issue_key(["read_orders"])
    with_db(lambda session: save_webhook(session, installed_store.id, 1, "orders/create", "https://x/webhooks/orders-create"))
    assert client.get("/api/orders", headers=headers).status_code == 200

    body = json.dumps({"id": 548380009, "domain": SHOP}).encode()
    response = client.post("/webhooks/app-uninstalled", content=body, headers=_signed(body))
    assert response.status_code == 200

    assert client.get("/api/orders", headers=headers).status_code == 401
    assert with_db(lambda session: get_store_by_domain(session, SHOP)) is None
    assert with_db(lambda session: get_webhooks_by_store(session, installed_store.id)) == []
    # Owner session tokens stop working too
    assert client.get("/api/admin/store", headers=owner_headers).status_code == 404
    # Later webhooks for the shop are refused
    assert client.post("/webhooks/orders-create", content=ORDER, headers=_signed(ORDER)).status_code == 404
