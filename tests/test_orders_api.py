import re

from conftest import make_account

ORDER = {
    "userEmail": "guest@vengase.com",
    "userName": "Guest Buyer",
    "phone": "0771234567",
    "items": [{"productId": 1000, "name": "Classic Tee", "price": 2500, "quantity": 2, "size": "M"}],
    "totalAmount": 5000,
    "shippingAddress": {"address": "12 Galle Road", "city": "Colombo", "postalCode": "00300"},
}


def place(client, headers=None):
    response = client.post("/api/v1/orders", json=ORDER, headers=headers or {})
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_guest_checkout(client):
    order = place(client)
    assert re.fullmatch(r"ORD-\d{8}-00001", order["orderId"])
    assert order["userId"] is None
    assert order["orderStatus"] == "pending"
    assert order["paymentStatus"] == "pending"
    assert order["shippingAddress"]["country"] == "Sri Lanka"


def test_order_ids_increase_within_a_day(client):
    first, second = place(client), place(client)
    assert int(second["orderId"][-5:]) == int(first["orderId"][-5:]) + 1


def test_signed_in_checkout_records_history(client, services, user):
    uid, headers = user
    order = place(client, headers)
    assert order["userId"] == uid
    history = services.users.get_by_uid(uid)["orders"]
    assert history[0]["orderId"] == order["orderId"]


def test_invalid_order_is_rejected(client):
    response = client.post("/api/v1/orders", json={**ORDER, "items": []})
    assert response.status_code == 400


def test_owner_or_admin_can_read(client, services, user, admin_headers):
    uid, headers = user
    order = place(client, headers)
    _, stranger = make_account(services, "stranger@vengase.com")

    assert client.get(f"/api/v1/orders/{order['orderId']}", headers=headers).status_code == 200
    assert client.get(f"/api/v1/orders/{order['orderId']}", headers=admin_headers).status_code == 200
    denied = client.get(f"/api/v1/orders/{order['orderId']}", headers=stranger)
    assert denied.status_code == 403
    assert denied.json()["error"] == "Not authorized to view this order"

    assert client.get(f"/api/v1/orders/user/{uid}", headers=headers).json()["count"] == 1
    assert client.get(f"/api/v1/orders/user/{uid}", headers=stranger).status_code == 403
    assert client.get("/api/v1/orders/ORD-20000101-00001", headers=headers).status_code == 404


def test_admin_status_updates_and_stats(client, admin_headers):
    order = place(client)
    status = client.patch(
        f"/api/v1/orders/{order['orderId']}/status", json={"status": "delivered"}, headers=admin_headers
    ).json()
    assert status["message"] == "Order status updated to delivered"

    payment = client.patch(
        f"/api/v1/orders/{order['orderId']}/payment", json={"status": "completed"}, headers=admin_headers
    ).json()
    assert payment["data"]["paymentStatus"] == "completed"

    bad = client.patch(f"/api/v1/orders/{order['orderId']}/status", json={"status": "lost"}, headers=admin_headers)
    assert bad.status_code == 400

    place(client)
    listing = client.get("/api/v1/orders", params={"orderStatus": "pending"}, headers=admin_headers).json()
    assert listing["count"] == 1

    stats = client.get("/api/v1/orders/stats/overview", headers=admin_headers).json()["data"]
    assert stats["totalOrders"] == 2
    assert stats["completedOrders"] == 1
    assert stats["totalRevenue"] == 10000


def test_listing_requires_admin(client, user):
    _, headers = user
    assert client.get("/api/v1/orders", headers=headers).status_code == 403
