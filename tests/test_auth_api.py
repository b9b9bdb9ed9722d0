from conftest import PASSWORD, bearer, make_account, product_payload


def test_signup_then_login(client, services):
    signup = client.post(
        "/api/v1/auth/signup", json={"email": "new@vengase.com", "password": PASSWORD, "displayName": "New User"}
    )
    assert signup.status_code == 201
    uid = signup.json()["data"]["uid"]
    assert services.users.get_by_uid(uid)["email"] == "new@vengase.com"

    duplicate = client.post("/api/v1/auth/signup", json={"email": "new@vengase.com", "password": PASSWORD})
    assert duplicate.status_code == 400
    assert duplicate.json()["error"] == "Email already exists"

    login = client.post("/api/v1/auth/login", json={"email": "new@vengase.com", "password": PASSWORD}).json()
    assert login["data"]["token_type"] == "bearer"
    profile = client.get("/api/v1/auth/profile", headers=bearer(login["data"]["access_token"]))
    assert profile.json()["data"]["uid"] == uid

    wrong = client.post("/api/v1/auth/login", json={"email": "new@vengase.com", "password": "nope-nope"})
    assert wrong.status_code == 401


def test_register_and_signin_profiles(client):
    body = {"uid": "ext-1", "email": "ext@vengase.com", "firstName": "Ada", "lastName": "Perera"}
    created = client.post("/api/v1/auth/register", json=body)
    assert created.status_code == 201
    assert created.json()["data"]["displayName"] == "Ada Perera"
    assert client.post("/api/v1/auth/register", json=body).json()["error"] == "User profile already exists"

    signed_in = client.post("/api/v1/auth/signin", json={"uid": "ext-2", "email": "kasun@vengase.com"}).json()
    assert signed_in["data"]["displayName"] == "kasun"
    assert signed_in["data"]["cart"] == []


def test_update_profile_builds_display_name(client, user):
    _, headers = user
    data = client.put("/api/v1/auth/profile", json={"firstName": "Nimal", "lastName": "Silva"}, headers=headers).json()
    assert data["data"]["displayName"] == "Nimal Silva"


def test_cart_and_wishlist(client, user, admin_headers):
    _, headers = user
    product = client.post("/api/v1/products", json=product_payload(), headers=admin_headers).json()["data"]

    client.post("/api/v1/auth/cart/add", json={"productId": product["id"], "size": "M", "quantity": 1}, headers=headers)
    cart = client.post(
        "/api/v1/auth/cart/add", json={"productId": product["id"], "size": "M", "quantity": 2}, headers=headers
    ).json()["data"]["cart"]
    assert len(cart) == 1
    assert cart[0]["quantity"] == 3
    assert cart[0]["name"] == product["name"]

    missing = client.post("/api/v1/auth/cart/add", json={"productId": 424242, "size": "M"}, headers=headers)
    assert missing.status_code == 404

    removed = client.post("/api/v1/auth/cart/remove", json={"productId": product["id"], "size": "M"}, headers=headers)
    assert removed.json()["data"]["cart"] == []

    toggle = {"productId": product["id"]}
    assert client.post("/api/v1/auth/wishlist/toggle", json=toggle, headers=headers).json()["data"]["wishlist"] == [product["id"]]
    assert client.post("/api/v1/auth/wishlist/toggle", json=toggle, headers=headers).json()["data"]["wishlist"] == []


def test_sync_replaces_cart_and_wishlist(client, services, user):
    uid, headers = user
    client.post("/api/v1/auth/sync-cart", json={"cart": [{"productId": 1000, "size": "L", "quantity": 2}]}, headers=headers)
    client.post("/api/v1/auth/sync-wishlist", json={"wishlist": [1000, 1001]}, headers=headers)
    profile = services.users.get_by_uid(uid)
    assert [(line["productId"], line["quantity"]) for line in profile["cart"]] == [(1000, 2)]
    assert profile["wishlist"] == [1000, 1001]


def test_verify_admin_checks_claim(client, user, admin_headers):
    _, headers = user
    assert client.get("/api/v1/auth/verify-admin", headers=headers).status_code == 403
    assert client.get("/api/v1/auth/verify-admin", headers=admin_headers).json()["data"]["admin"] is True


def test_create_and_revoke_admin(client, services, admin_headers):
    created = client.post(
        "/api/v1/auth/create-admin", json={"email": "ops@vengase.com", "password": PASSWORD}, headers=admin_headers
    )
    assert created.status_code == 201
    uid = created.json()["data"]["uid"]
    assert services.identity.get_user(uid).customClaims == {"admin": True}

    assert client.post("/api/v1/auth/revoke-admin", json={"uid": uid}, headers=admin_headers).json()["success"]
    assert services.identity.get_user(uid).customClaims == {"admin": False}

    missing = client.post("/api/v1/auth/revoke-admin", json={"uid": "ghost"}, headers=admin_headers)
    assert missing.status_code == 404


def test_user_management(client, services, admin_headers):
    uid, _ = make_account(services, "listed@vengase.com")
    listing = client.get("/api/v1/auth/users", headers=admin_headers).json()
    assert uid in [u["uid"] for u in listing["data"]]

    assert client.delete(f"/api/v1/auth/users/{uid}", headers=admin_headers).json()["success"] is True
    listing = client.get("/api/v1/auth/users", headers=admin_headers).json()
    assert uid not in [u["uid"] for u in listing["data"]]
    assert services.users.get_by_uid(uid)["isActive"] is False

    stats = client.get("/api/v1/auth/users/stats", headers=admin_headers).json()["data"]
    assert stats["totalUsers"] == 2
    assert stats["activeUsers"] == 1
