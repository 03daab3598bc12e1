"""
Tests de los endpoints de la API (menú, cupones, direcciones, pedidos).
"""

from datetime import date
from decimal import Decimal

import pytest

from trois_quarts.crud import coupon_crud
from trois_quarts.db.models.coupon_model import TYPE_FIXED


def order_body(**overrides):
    body = {
        "items": [{"itemId": "5", "name": "Bouillabaisse", "unitPrice": "24.00", "quantity": 1}],
        "delivery": {"mode": "pickup", "date": "2099-01-15", "time": "12:30:00"},
        "payment": {"mode": "card"},
        "clientInfo": {
            "firstName": "Marie",
            "lastName": "Dupont",
            "phone": "06 12 34 56 78",
            "email": "marie@example.fr",
        },
        "totals": {"subtotal": "21.82", "taxAmount": "2.18", "deliveryFee": "0.00", "discount": "0.00", "total": "24.00"},
    }
    body.update(overrides)
    return body


async def test_root(client):
    response = await client.get("/")
    assert response.status_code == 200


async def test_read_menu_item(client, menu_items):
    response = await client.get("/api/v1/menu/5")

    assert response.status_code == 200
    assert response.json() == {
        "id": 5,
        "name": "Bouillabaisse",
        "description": None,
        "price": "24.00",
        "category": "plats",
        "isAvailable": True,
    }


async def test_unknown_or_unavailable_menu_item_is_404(client, menu_items):
    assert (await client.get("/api/v1/menu/999")).status_code == 404
    assert (await client.get("/api/v1/menu/8")).status_code == 404


async def test_list_menu_filters_unavailable(client, menu_items):
    response = await client.get("/api/v1/menu/")
    assert [item["id"] for item in response.json()] == [5, 7]


async def test_restaurant_settings(client):
    response = await client.get("/api/v1/restaurant/settings")

    data = response.json()
    assert data["deliveryFee"] == "5.00"
    assert data["vatRate"] == "0.10"
    assert data["minTimeDelayHours"] == 1


async def test_address_validation_endpoint(client, address_validator):
    address_validator.valid = False
    address_validator.error = "Livraison non disponible au-delà de 10km"

    response = await client.post("/api/v1/address/validate", json={"address": "Aix", "zipCode": "13100"})

    assert response.status_code == 200
    assert response.json()["valid"] is False
    assert address_validator.calls == [("Aix", "13100")]


async def test_create_pickup_order(client, menu_items):
    response = await client.post("/api/v1/order", json=order_body(), headers={"Idempotency-Key": "k-1"})

    assert response.status_code == 201
    order = response.json()["order"]
    assert order["no"].startswith("ORD-")
    assert order["status"] == "pending"
    assert order["subtotal"] == "21.82"
    assert order["taxAmount"] == "2.18"
    assert order["deliveryFee"] == "0.00"
    assert order["total"] == "24.00"
    assert order["items"][0]["productName"] == "Bouillabaisse"


async def test_repeated_idempotency_key_returns_same_order(client, menu_items):
    first = await client.post("/api/v1/order", json=order_body(), headers={"Idempotency-Key": "same-key"})
    second = await client.post("/api/v1/order", json=order_body(), headers={"Idempotency-Key": "same-key"})
    other = await client.post("/api/v1/order", json=order_body(), headers={"Idempotency-Key": "other-key"})

    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["order"]["id"] == first.json()["order"]["id"]
    assert other.json()["order"]["id"] != first.json()["order"]["id"]


async def test_server_prices_are_authoritative(client, menu_items):
    body = order_body(items=[{"itemId": "5", "unitPrice": "1.00", "quantity": 2}])

    response = await client.post("/api/v1/order", json=body)

    assert response.status_code == 201
    assert response.json()["order"]["total"] == "48.00"


async def test_delivery_order_uses_default_fee_without_client_fee(client, menu_items):
    body = order_body(delivery={
        "mode": "delivery", "date": "2099-01-15", "time": "19:00:00",
        "address": "12 rue Paradis", "zip": "13001", "fee": "0.00",
    })

    response = await client.post("/api/v1/order", json=body)

    assert response.status_code == 201
    order = response.json()["order"]
    assert order["deliveryFee"] == "5.00"
    assert order["total"] == "29.00"
    assert order["deliveryZip"] == "13001"


async def test_delivery_fee_set_by_client_is_charged(client, menu_items):
    body = order_body(
        delivery={"mode": "delivery", "date": "2099-01-15", "time": "19:00:00", "address": "12 rue Paradis", "zip": "13001"},
        deliveryFee="3.00",
        totals={"subtotal": "21.82", "taxAmount": "2.18", "deliveryFee": "3.00", "discount": "0.00", "total": "27.00"},
    )

    response = await client.post("/api/v1/order", json=body)

    assert response.status_code == 201
    order = response.json()["order"]
    assert order["deliveryFee"] == "3.00"
    assert order["total"] == "27.00"


async def test_free_delivery_threshold_on_server(client, menu_items):
    body = order_body(
        items=[{"itemId": "5", "quantity": 3}],
        delivery={"mode": "delivery", "date": "2099-01-15", "time": "19:00:00", "address": "12 rue Paradis", "zip": "13001"},
    )

    response = await client.post("/api/v1/order", json=body)

    assert response.status_code == 201
    assert response.json()["order"]["deliveryFee"] == "0.00"
    assert response.json()["order"]["total"] == "72.00"


async def test_negative_client_fee_is_422(client, menu_items):
    body = order_body(
        delivery={"mode": "delivery", "address": "12 rue Paradis", "zip": "13001"},
        deliveryFee="-1.00",
    )
    response = await client.post("/api/v1/order", json=body)
    assert response.status_code == 422


async def test_unserviceable_address_is_rejected(client, menu_items, address_validator):
    address_validator.valid = False
    body = order_body(delivery={"mode": "delivery", "address": "Lyon", "zip": "69002"})

    response = await client.post("/api/v1/order", json=body)

    assert response.status_code == 400


async def test_unknown_item_is_rejected(client, menu_items):
    response = await client.post("/api/v1/order", json=order_body(items=[{"itemId": "999", "quantity": 1}]))
    assert response.status_code == 400


@pytest.mark.parametrize("overrides", [
    {"items": []},
    {"payment": {}},
    {"clientInfo": {"firstName": "M", "lastName": "Dupont", "phone": "0612345678", "email": "marie@example.fr"}},
    {"delivery": {"mode": "pickup", "instructions": "<script>alert(1)</script>"}},
])
async def test_invalid_order_payload_is_422(client, menu_items, overrides):
    response = await client.post("/api/v1/order", json=order_body(**overrides))
    assert response.status_code == 422


async def test_coupon_flow(client, menu_items, db):
    await coupon_crud.create_coupon(
        db, code="SAVE5", discount_type=TYPE_FIXED, discount_value=Decimal("5"), usage_limit=1
    )

    validation = await client.post("/api/v1/coupon/validate", json={"code": " save5 ", "orderAmount": "24.00"})
    assert validation.status_code == 200
    data = validation.json()["data"]
    assert data["discountAmount"] == "5.00"
    assert data["newTotal"] == "19.00"

    order = await client.post("/api/v1/order", json=order_body(couponId=data["couponId"]))
    assert order.json()["order"]["discountAmount"] == "5.00"
    assert order.json()["order"]["total"] == "19.00"

    applied = await client.post(f"/api/v1/coupon/apply/{data['couponId']}")
    assert applied.json() == {"success": True, "message": "Code promo utilisé", "usageCount": 1}

    again = await client.post("/api/v1/coupon/validate", json={"code": "SAVE5", "orderAmount": "24.00"})
    assert again.status_code == 400
    assert again.json()["reason"] == "already_used"


async def test_unknown_coupon_is_404(client):
    response = await client.post("/api/v1/coupon/validate", json={"code": "NOPE", "orderAmount": "24.00"})

    assert response.status_code == 404
    assert response.json()["success"] is False
    assert response.json()["reason"] == "not_found"


async def test_order_lookup_and_status_update(client, menu_items):
    created = (await client.post("/api/v1/order", json=order_body())).json()["order"]

    fetched = await client.get(f"/api/v1/order/{created['id']}")
    assert fetched.json()["no"] == created["no"]
    assert fetched.json()["deliveryDate"] == date(2099, 1, 15).isoformat()

    updated = await client.patch(f"/api/v1/order/{created['id']}/status", json={"status": "confirmed"})
    assert updated.json()["status"] == "confirmed"

    assert (await client.get("/api/v1/order/999")).status_code == 404
