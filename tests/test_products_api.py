import base64
import os

from conftest import product_payload

PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(b"\x89PNG fake image").decode()


def create(client, headers, **overrides):
    response = client.post("/api/v1/products", json=product_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_list_is_public_and_wrapped(client, admin_headers):
    create(client, admin_headers)
    body = client.get("/api/v1/products").json()
    assert body["success"] is True
    assert body["count"] == 1
    assert body["data"][0]["id"] == 1000


def test_ids_are_allocated_sequentially(client, admin_headers):
    assert [create(client, admin_headers)["id"] for _ in range(3)] == [1000, 1001, 1002]


def test_missing_product_is_404(client):
    response = client.get("/api/v1/products/999999")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Product not found"}


def test_filters_and_sorting(client, admin_headers):
    create(client, admin_headers, name="Cheap", price=10)
    create(client, admin_headers, name="Middle", price=50)
    create(client, admin_headers, name="Pricey", price=100)
    create(client, admin_headers, name="Ring", price=55, category="jewelry", subcategory="rings")

    body = client.get(
        "/api/v1/products",
        params={"category": "unisex", "minPrice": 20, "maxPrice": 100, "sortBy": "price", "sortOrder": "desc"},
    ).json()
    assert [p["name"] for p in body["data"]] == ["Pricey", "Middle"]

    assert client.get("/api/v1/products", params={"offset": 3}).json()["count"] == 1
    assert client.get("/api/v1/products/category/jewelry").json()["data"][0]["name"] == "Ring"
    assert client.get("/api/v1/products/search/ring").json()["count"] == 1


def test_writes_require_admin(client, user):
    _, headers = user
    assert client.post("/api/v1/products", json=product_payload()).status_code == 401
    response = client.post("/api/v1/products", json=product_payload(), headers=headers)
    assert response.status_code == 403
    assert response.json()["error"] == "Admin access required"


def test_invalid_product_is_rejected(client, admin_headers):
    response = client.post("/api/v1/products", json=product_payload(price=-1), headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_update_and_stock(client, admin_headers):
    product = create(client, admin_headers)
    updated = client.put(f"/api/v1/products/{product['id']}", json={"price": 3000}, headers=admin_headers).json()
    assert updated["data"]["price"] == 3000
    assert updated["data"]["name"] == product["name"]

    stock = client.patch(
        f"/api/v1/products/{product['id']}/stock", json={"stock": {"M": 0, "XL": 4}}, headers=admin_headers
    ).json()
    assert stock["data"]["stock"] == {"S": 2, "M": 0, "XL": 4}

    missing = client.put("/api/v1/products/999999", json={"price": 1}, headers=admin_headers)
    assert missing.status_code == 404


def test_base64_image_is_saved_and_replaced(client, admin_headers, settings):
    product = create(client, admin_headers, img=PNG_DATA_URL)
    assert product["img"].startswith("/images/product_")
    first_file = os.path.join(settings.image_dir, os.path.basename(product["img"]))
    assert os.path.exists(first_file)

    updated = client.put(
        f"/api/v1/products/{product['id']}", json={"img": PNG_DATA_URL}, headers=admin_headers
    ).json()["data"]
    assert updated["img"] != product["img"]
    assert not os.path.exists(first_file)

    assert client.delete(f"/api/v1/products/{product['id']}", headers=admin_headers).json()["success"] is True
    assert not os.path.exists(os.path.join(settings.image_dir, os.path.basename(updated["img"])))
    assert client.get(f"/api/v1/products/{product['id']}").status_code == 404


def test_undecodable_image_falls_back(client, admin_headers):
    product = create(client, admin_headers, img="data:image/png;base64,@@not-base64@@")
    assert product["img"] == "/images/prod1.png"


def test_sorting_on_stock_maps_keeps_fetch_order(client, admin_headers):
    first = create(client, admin_headers, stock={"M": 5})
    second = create(client, admin_headers, stock={"L": 1, "XL": 2})
    response = client.get("/api/v1/products", params={"sortBy": "stock"})
    assert response.status_code == 200
    assert {p["id"] for p in response.json()["data"]} == {first["id"], second["id"]}
