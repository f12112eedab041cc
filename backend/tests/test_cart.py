"""
Cart tests.

Verifies:
- Adding the same product twice merges quantities (guest and signed-in)
- Guest lines live in the app's GuestCartStore, never in cart_items
- Quantity and product validation, missing lines, deleted products
- Non-object JSON bodies are rejected with 400
"""

import threading

import pytest

from storefront.extensions import db, GUEST_CART_KEY
from storefront.models import CartItem
from storefront.services import cart_service
from storefront.services.cart_service import GuestCartStore


@pytest.fixture
def user_client(client, login):
    login(client, "user-1")
    return client


class TestMerge:

    def test_guest_merge(self, app, client, make_product):
        product_id = make_product()
        first = client.post("/api/cart", json={"product_id": product_id, "quantity": 2})
        second = client.post("/api/cart", json={"product_id": product_id, "quantity": 3})
        assert first.status_code == 201
        assert second.status_code == 201
        assert first.get_json()["id"] == second.get_json()["id"]
        assert first.get_json()["id"].startswith("guest-")

        lines = client.get("/api/cart").get_json()
        assert len(lines) == 1
        assert lines[0]["quantity"] == 5
        assert lines[0]["product"]["id"] == product_id

        with app.app_context():
            assert db.session.query(CartItem).count() == 0

    def test_persistent_merge(self, app, user_client, make_product):
        product_id = make_product()
        user_client.post("/api/cart", json={"product_id": product_id, "quantity": 1})
        resp = user_client.post("/api/cart", json={"product_id": product_id, "quantity": 4})
        assert resp.status_code == 201
        assert resp.get_json()["quantity"] == 5
        assert resp.get_json()["user_id"] == "user-1"

        with app.app_context():
            rows = db.session.query(CartItem).filter_by(user_id="user-1").all()
            assert [(r.product_id, r.quantity) for r in rows] == [(product_id, 5)]

    def test_default_quantity_is_one(self, client, make_product):
        product_id = make_product()
        resp = client.post("/api/cart", json={"product_id": product_id})
        assert resp.get_json()["quantity"] == 1

    def test_identities_are_separate(self, app, make_product, login):
        product_id = make_product()
        guest = app.test_client()
        alice = app.test_client()
        bob = app.test_client()
        login(alice, "alice")
        login(bob, "bob")

        guest.post("/api/cart", json={"product_id": product_id, "quantity": 1})
        alice.post("/api/cart", json={"product_id": product_id, "quantity": 2})
        bob.post("/api/cart", json={"product_id": product_id, "quantity": 3})

        assert [line["quantity"] for line in guest.get("/api/cart").get_json()] == [1]
        assert [line["quantity"] for line in alice.get("/api/cart").get_json()] == [2]
        assert [line["quantity"] for line in bob.get("/api/cart").get_json()] == [3]


class TestValidation:

    def test_product_id_required(self, client):
        resp = client.post("/api/cart", json={"quantity": 1})
        assert resp.status_code == 400

    def test_unknown_product_rejected_on_add(self, client):
        resp = client.post("/api/cart", json={"product_id": 4242})
        assert resp.status_code == 404

    @pytest.mark.parametrize("quantity", [0, -1, "abc", 1.5])
    def test_add_rejects_bad_quantity(self, client, make_product, quantity):
        product_id = make_product()
        resp = client.post("/api/cart", json={"product_id": product_id, "quantity": quantity})
        assert resp.status_code == 400

    def test_deleted_product_breaks_listing(self, client, admin_headers, user_client, make_product):
        product_id = make_product()
        user_client.post("/api/cart", json={"product_id": product_id})
        client.delete(f"/api/products/{product_id}", headers=admin_headers)

        resp = user_client.get("/api/cart")
        assert resp.status_code == 404
        assert "not found" in resp.get_json()["error"]


class TestLineUpdates:

    def test_update_quantity_guest(self, client, make_product):
        product_id = make_product()
        line_id = client.post("/api/cart", json={"product_id": product_id}).get_json()["id"]

        resp = client.put(f"/api/cart/{line_id}", json={"quantity": 7})
        assert resp.status_code == 200
        assert resp.get_json()["quantity"] == 7

    def test_update_quantity_persistent(self, user_client, make_product):
        product_id = make_product()
        line_id = user_client.post("/api/cart", json={"product_id": product_id}).get_json()["id"]

        resp = user_client.put(f"/api/cart/{line_id}", json={"quantity": 3})
        assert resp.status_code == 200
        assert user_client.get("/api/cart").get_json()[0]["quantity"] == 3

    def test_update_quantity_below_one_rejected(self, user_client, make_product):
        product_id = make_product()
        line_id = user_client.post("/api/cart", json={"product_id": product_id}).get_json()["id"]

        assert user_client.put(f"/api/cart/{line_id}", json={"quantity": 0}).status_code == 400
        assert user_client.get("/api/cart").get_json()[0]["quantity"] == 1

    @pytest.mark.parametrize("line_id", ["guest-missing", "99999", "not-a-line"])
    def test_update_missing_line_404(self, client, line_id):
        resp = client.put(f"/api/cart/{line_id}", json={"quantity": 2})
        assert resp.status_code == 404

    def test_remove_line(self, user_client, make_product):
        first = make_product(name="A")
        second = make_product(name="B")
        line_id = user_client.post("/api/cart", json={"product_id": first}).get_json()["id"]
        user_client.post("/api/cart", json={"product_id": second})

        assert user_client.delete(f"/api/cart/{line_id}").status_code == 204
        lines = user_client.get("/api/cart").get_json()
        assert [line["product_id"] for line in lines] == [second]

    def test_remove_missing_line_is_noop(self, client):
        assert client.delete("/api/cart/12345").status_code == 204
        assert client.delete("/api/cart/guest-nothing").status_code == 204

    def test_clear(self, app, client, user_client, make_product):
        product_id = make_product()
        user_client.post("/api/cart", json={"product_id": product_id})
        assert user_client.delete("/api/cart").status_code == 204
        assert user_client.get("/api/cart").get_json() == []

    def test_clear_guest_cart(self, app, client, make_product):
        product_id = make_product()
        client.post("/api/cart", json={"product_id": product_id})
        assert len(app.extensions[GUEST_CART_KEY]) == 1
        assert client.delete("/api/cart").status_code == 204
        assert len(app.extensions[GUEST_CART_KEY]) == 0


class TestGuestCartStore:

    def test_add_merges_by_product(self):
        store = GuestCartStore()
        first = store.add(1, 2)
        second = store.add(1, 3)
        store.add(2, 1)
        assert first.id == second.id
        assert second.quantity == 5
        assert len(store) == 2

    def test_clear_empties_store(self):
        store = GuestCartStore()
        store.add(1, 1)
        store.clear()
        assert store.lines() == []

    def test_set_quantity_missing_line(self):
        assert GuestCartStore().set_quantity("guest-x", 3) is None

    def test_service_uses_given_store(self, app_ctx, make_product):
        product_id = make_product()
        store = GuestCartStore()
        cart_service.add_line("guest", product_id, 2, guest_cart=store)
        assert [line.quantity for line in store.lines()] == [2]
        assert len(app_ctx.extensions[GUEST_CART_KEY]) == 0

    def test_len_waits_for_lock(self):
        store = GuestCartStore()
        store.add(1, 1)
        result = []

        with store._lock:
            reader = threading.Thread(target=lambda: result.append(len(store)))
            reader.start()
            reader.join(timeout=0.2)
            assert reader.is_alive()
            store._lines.clear()

        reader.join(timeout=2)
        assert result == [0]

    def test_concurrent_adds_merge(self):
        store = GuestCartStore()
        threads = [threading.Thread(target=store.add, args=(7, 1)) for _ in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(store) == 1
        assert store.lines()[0].quantity == 20


class TestMalformedBody:

    @pytest.mark.parametrize("body", [[1], "product", 5])
    def test_add_non_object_body_400(self, client, body):
        resp = client.post("/api/cart", json=body)
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invalid JSON payload"}

    def test_update_non_object_body_400(self, client, make_product):
        product_id = make_product()
        line_id = client.post("/api/cart", json={"product_id": product_id}).get_json()["id"]
        resp = client.put(f"/api/cart/{line_id}", json=[3])
        assert resp.status_code == 400
        assert client.get("/api/cart").get_json()[0]["quantity"] == 1
