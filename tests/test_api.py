from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from factories import address_payload, make_product, make_user, make_variant
from storefront.services.cart_service import CartService


def as_user(user_id):
    return {"X-User-Id": str(user_id)}


@pytest.fixture
def shopper(client):
    resp = client.post("/users/", json={"id": 1, "name": "Ayesha Khan", "email": "ayesha@example.com"})
    assert resp.status_code == 201
    address = client.post("/addresses", json=address_payload(is_default=True), headers=as_user(1))
    assert address.status_code == 201
    return {"user_id": 1, "address_id": address.json()["data"]["id"]}


def test_health(client):
    assert client.get("/health").json() == {"status": "ok", "database": "ok"}


def test_guest_cart_gets_a_token(client, db):
    product = make_product(db)

    resp = client.post("/cart/items", json={"product_id": product.id, "is_simple_product": True, "quantity": 2})
    body = resp.json()
    assert body["success"] is True
    token = body["data"]["guest_token"]

    again = client.get("/cart", headers={"X-Guest-Token": token}).json()["data"]
    assert [i["quantity"] for i in again["items"]] == [2]
    assert Decimal(again["total"]) == Decimal("2000")


def test_bad_cart_item_returns_field_errors(client):
    resp = client.post("/cart/items", json={"product_id": 1, "is_simple_product": False})

    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert body["error"] == "Validation failed"
    assert body["field_errors"]["__root__"][0].startswith("For simple products, provide product_id only.")


def test_missing_cart_item_is_404(client, shopper):
    resp = client.patch("/cart/items/999", json={"quantity": 2}, headers=as_user(1))
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "error": "Cart item not found"}


def test_checkout_to_cancellation(client, db, shopper):
    product = make_product(db, price="1000.00", in_stock=5)
    headers = as_user(shopper["user_id"])
    client.post("/cart/items", json={"product_id": product.id, "is_simple_product": True, "quantity": 3}, headers=headers)

    session = client.post("/checkout/sessions", headers=headers)
    assert session.status_code == 201
    session_data = session.json()["data"]
    assert Decimal(session_data["calculation"]["total_amount"]) == Decimal("3300")
    assert session_data["default_addresses"]["shipping"]["id"] == shopper["address_id"]

    checkout = {"shipping_address_id": shopper["address_id"], "payment_method": "cod"}
    updated = client.patch(f"/checkout/sessions/{session_data['id']}", json=checkout, headers=headers)
    assert updated.json()["data"]["checkout_data"]["shipping_address_id"] == shopper["address_id"]

    placed = client.post(f"/checkout/sessions/{session_data['id']}/order", json=checkout, headers=headers)
    assert placed.status_code == 201
    order = placed.json()["data"]
    assert order["status"] == "pending"
    assert Decimal(order["subtotal"]) == Decimal("3000")
    assert Decimal(order["total_amount"]) == Decimal("3300")

    assert client.get("/cart", headers=headers).json()["data"]["items"] == []
    assert [o["id"] for o in client.get("/orders", headers=headers).json()["data"]] == [order["id"]]

    gone = client.get(f"/checkout/sessions/{session_data['id']}", headers=headers)
    assert gone.status_code == 404

    cancelled = client.post(f"/orders/{order['id']}/cancel", headers=headers)
    assert cancelled.json()["data"]["status"] == "cancelled"
    again = client.post(f"/orders/{order['id']}/cancel", headers=headers)
    assert again.status_code == 400
    assert again.json()["error"] == "Only pending orders can be cancelled."


def test_cart_rejects_more_than_is_in_stock(client, db, shopper):
    variant = make_variant(db, in_stock=1)

    resp = client.post(
        "/cart/items",
        json={"product_id": variant.product_id, "product_variant_id": variant.id, "quantity": 2},
        headers=as_user(1),
    )

    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "Only 1 available. You already have 0 in cart."
    assert body["field_errors"] == {"quantity": ["Only 1 available. You already have 0 in cart."]}


def test_direct_order_and_insufficient_stock(client, db, shopper):
    variant = make_variant(db, in_stock=1)
    headers = as_user(1)
    client.post(
        "/cart/items",
        json={"product_id": variant.product_id, "product_variant_id": variant.id, "quantity": 1},
        headers=headers,
    )
    # sold out after it went into the cart
    variant.in_stock = 0
    db.commit()

    resp = client.post("/orders", json={"shipping_address_id": shopper["address_id"]}, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Cotton Shirt (Red M) is out of stock"


def test_checkout_session_of_another_user(client, db, shopper):
    make_user(db, user_id=2)
    product = make_product(db)
    client.post("/cart/items", json={"product_id": product.id, "is_simple_product": True}, headers=as_user(1))
    session_id = client.post("/checkout/sessions", headers=as_user(1)).json()["data"]["id"]

    resp = client.get(f"/checkout/sessions/{session_id}", headers=as_user(2))

    assert resp.status_code == 404
    assert resp.json()["error"] == "Invalid checkout session."


def test_authentication_required(client):
    resp = client.get("/orders")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "Authentication required."}

    assert client.post("/checkout/sessions").status_code == 401


def test_address_validation_errors(client, shopper):
    resp = client.post("/addresses", json=address_payload(postal_code="540"), headers=as_user(1))

    assert resp.status_code == 422
    assert resp.json()["field_errors"] == {"postal_code": ["Postal code must be exactly 5 digits"]}


def test_dashboard_is_admin_only(client, db, shopper):
    make_user(db, user_id=9, role="admin")

    assert client.get("/dashboard/orders", headers=as_user(1)).status_code == 403

    resp = client.get("/dashboard/orders", params={"status": "all", "page": 1, "limit": 10}, headers=as_user(9))
    assert resp.status_code == 200
    assert resp.json()["data"]["pagination"] == {"page": 1, "limit": 10, "total": 0, "total_pages": 0}
    assert client.get("/dashboard/orders/stats", headers=as_user(9)).json()["data"]["total_orders"] == 0


def test_unexpected_errors_become_generic_envelope(client, monkeypatch):
    def broken(self, owner):
        raise RuntimeError("db exploded")

    monkeypatch.setattr(CartService, "get_cart", broken)
    quiet = TestClient(client.app, raise_server_exceptions=False)

    resp = quiet.get("/cart")

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Something went wrong. Please try again."}
