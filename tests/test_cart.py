"""Catalog detail, purchase history and the server-side cart."""

from storefront.constants import PURCHASE_COMPLETED, PURCHASE_PENDING
from tests.helpers import add_purchase, auth_headers


async def test_product_detail(client, products):
    response = await client.get("/api/products/p1")

    assert response.status_code == 200
    assert response.json()["price"] == 10
    assert response.json()["course"] is None


async def test_unknown_product(client):
    response = await client.get("/api/products/missing")

    assert response.status_code == 404
    assert response.json() == {"error": "Product not found"}


async def test_add_to_cart_is_idempotent(client, products):
    first = await client.post("/api/cart/items", json={"product_id": "p1"}, headers=auth_headers())
    second = await client.post("/api/cart/items", json={"product_id": "p1"}, headers=auth_headers())

    assert first.status_code == second.status_code == 201
    assert first.json()["id"] == second.json()["id"]
    cart = (await client.get("/api/cart", headers=auth_headers())).json()
    assert [(i["product_id"], i["price"]) for i in cart] == [("p1", 10)]


async def test_add_unknown_product_to_cart(client):
    response = await client.post("/api/cart/items", json={"product_id": "ghost"}, headers=auth_headers())

    assert response.status_code == 404


async def test_remove_and_clear_cart(client, products):
    for pid in ("p1", "p2"):
        await client.post("/api/cart/items", json={"product_id": pid}, headers=auth_headers())

    await client.delete("/api/cart/items/p1", headers=auth_headers())
    cart = (await client.get("/api/cart", headers=auth_headers())).json()
    assert [i["product_id"] for i in cart] == ["p2"]

    await client.delete("/api/cart", headers=auth_headers())
    assert (await client.get("/api/cart", headers=auth_headers())).json() == []


async def test_carts_are_per_user(client, products):
    await client.post("/api/cart/items", json={"product_id": "p1"}, headers=auth_headers())

    other = await client.get("/api/cart", headers=auth_headers("user-2"))

    assert other.json() == []


async def test_cart_requires_login(client):
    response = await client.get("/api/cart")

    assert response.status_code == 401


async def test_check_purchase_counts_only_completed(client, products, session_factory):
    await add_purchase(session_factory, product_id="p1", amount=10, status=PURCHASE_PENDING)

    pending = await client.get("/api/products/p1/check-purchase", headers=auth_headers())
    assert pending.json() == {"purchased": False, "purchase": None}

    await add_purchase(session_factory, product_id="p1", amount=10, status=PURCHASE_COMPLETED)
    completed = await client.get("/api/products/p1/check-purchase", headers=auth_headers())
    assert completed.json()["purchased"] is True
    assert completed.json()["purchase"]["status"] == PURCHASE_COMPLETED


async def test_purchase_history(client, products, session_factory):
    await add_purchase(session_factory, product_id="p1", amount=10, status=PURCHASE_COMPLETED)
    await add_purchase(session_factory, product_id="p2", amount=20, status=PURCHASE_COMPLETED, user_id="user-2")

    response = await client.get("/api/purchases", headers=auth_headers())

    assert [p["product_id"] for p in response.json()] == ["p1"]
