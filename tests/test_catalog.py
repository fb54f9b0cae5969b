"""Tests for product management, categories and seeding."""

from bson.objectid import ObjectId

from catalog import create_admin
from database import find_by_id
from schemas import normalize_product, slugify


def product_body(**overrides):
    body = {
        "title": "Turntable",
        "description": "Belt drive",
        "price": 199.0,
        "oldPrice": 249.0,
        "category": str(ObjectId()),
        "images": ["https://img.example.com/tt.jpg"],
        "colors": ["#000000"],
        "stockQuantity": 3,
    }
    body.update(overrides)
    return body


def test_admin_creates_product(client, admin):
    resp = client.post("/products", json=product_body(), headers=admin.headers)

    assert resp.status_code == 201
    product = resp.json()
    assert product["title"] == "Turntable"
    assert product["old_price"] == 249.0
    assert product["in_stock"] is True
    assert product["sales"] == 0
    assert product["rating"] == 0


def test_product_without_stock_is_not_in_stock(client, admin):
    resp = client.post("/products", json=product_body(stockQuantity=0), headers=admin.headers)
    assert resp.json()["in_stock"] is False


def test_create_product_validation(client, admin):
    assert client.post("/products", json=product_body(images=[]), headers=admin.headers).status_code == 400
    assert client.post("/products", json=product_body(stockQuantity=-1), headers=admin.headers).status_code == 400


def test_customers_cannot_manage_products(client, customer, make_product):
    pid = make_product()
    assert client.post("/products", json=product_body(), headers=customer.headers).status_code == 403
    assert client.put(f"/products/{pid}", json={"price": 1.0}, headers=customer.headers).status_code == 403
    assert client.delete(f"/products/{pid}", headers=customer.headers).status_code == 403


def test_update_recomputes_in_stock(client, db, admin, make_product):
    pid = make_product(stock_quantity=5)

    resp = client.put(f"/products/{pid}", json={"stockQuantity": 0, "title": "Renamed"}, headers=admin.headers)

    assert resp.status_code == 200
    assert resp.json()["in_stock"] is False
    assert resp.json()["title"] == "Renamed"
    assert find_by_id(db, "product", pid)["description"] == "Speaker description"


def test_update_unknown_product(client, admin):
    assert client.put(f"/products/{ObjectId()}", json={"price": 2.0}, headers=admin.headers).status_code == 404


def test_get_and_list_products(client, make_product, category_id):
    pid = make_product("Radio")

    one = client.get(f"/products/{pid}")
    listed = client.get("/products")

    assert one.status_code == 200
    assert one.json()["category"]["id"] == category_id
    assert one.json()["category"]["slug"] == "home-audio"
    assert [p["id"] for p in listed.json()] == [pid]
    assert client.get(f"/products/{ObjectId()}").status_code == 404
    assert client.get("/products/garbage").status_code == 404


def test_delete_product(client, admin, make_product):
    pid = make_product()
    assert client.delete(f"/products/{pid}", headers=admin.headers).status_code == 200
    assert client.delete(f"/products/{pid}", headers=admin.headers).status_code == 404


def test_seed_is_idempotent(client, db, admin):
    first = client.post("/seed", headers=admin.headers)
    second = client.post("/seed", headers=admin.headers)

    assert first.json()["seeded"] is True
    assert second.json()["seeded"] is False
    assert db["category"].find_one({"name": "Accessories"})["slug"] == "accessories"
    keyboard = db["product"].find_one({"title": "Mechanical Keyboard"})
    assert keyboard["in_stock"] is False
    assert db["user"].count_documents({}) == 1


def test_anonymous_seed_grants_no_admin_access(client, db, customer):
    assert client.post("/seed").status_code == 401
    assert client.post("/seed", headers=customer.headers).status_code == 403

    login = client.post("/users/login", json={"email": "admin@shop.com", "password": "admin123"})

    assert login.status_code == 401
    assert db["user"].count_documents({"role": "admin"}) == 0
    assert db["product"].count_documents({}) == 0


def test_create_admin_requires_configured_password(db, settings):
    assert settings.seed_admin_password is None
    assert create_admin(db, settings) is None
    assert db["user"].count_documents({}) == 0


def test_create_admin_bootstraps_once(client, db, settings):
    settings.seed_admin_password = "Str0ng-pass"

    admin_id = create_admin(db, settings)
    assert create_admin(db, settings) is None

    assert find_by_id(db, "user", admin_id)["role"] == "admin"
    login = client.post("/users/login", json={"email": "admin@shop.com", "password": "Str0ng-pass"})
    assert login.status_code == 200
    token = login.json()["token"]
    assert client.get("/payments", headers={"Authorization": f"Bearer {token}"}).status_code == 200


def test_slugify():
    assert slugify("  Home & Garden ") == "home-garden"
    assert slugify("Café Crème") == "cafe-creme"
    assert len(slugify("!!!")) == 32


def test_normalize_product():
    assert normalize_product({"stock_quantity": 1})["in_stock"] is True
    assert normalize_product({"stock_quantity": -2})["in_stock"] is False


def test_health(client):
    assert client.get("/").json() == {"message": "E-commerce API running"}
    assert client.get("/test").json()["connection_status"] == "Connected"
