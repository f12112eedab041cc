"""
EFT order tracker tests.

Verifies:
- Orders are created in pending_payment and addressed by reference
- Confirming payment moves the order to payment_submitted
- Duplicate references conflict; unknown references are 404
- Status changes are admin-only and follow the order state machine
- Overlong references and non-object bodies are rejected with 400
"""

import pytest

from storefront.extensions import db
from storefront.models import Order
from storefront.services import eft_service
from storefront.validation import NotFoundError


@pytest.fixture
def create_eft(client, make_product):
    def _create(reference="TMH-1", items=None):
        if items is None:
            product_id = make_product()
            items = [{"product_id": product_id, "quantity": 2, "price": "150.00"}]
        resp = client.post("/api/eft-orders", json={
            "order_reference": reference,
            "customer_info": {"name": "Naledi", "email": "naledi@example.com"},
            "items": items,
            "total_amount": "300.00",
        })
        return resp

    return _create


class TestCreate:

    def test_create_pending_payment(self, client, create_eft):
        resp = create_eft()
        assert resp.status_code == 201
        assert resp.get_json()["order_reference"] == "TMH-1"

        order = client.get("/api/eft-orders/TMH-1").get_json()
        assert order["status"] == "pending_payment"
        assert order["payment_method"] == "EFT"
        assert order["total"] == "300.00"
        assert order["user_id"] is None
        assert order["customer_info"]["order_reference"] == "TMH-1"
        assert [(i["quantity"], i["price"]) for i in order["items"]] == [(2, "150.00")]

    def test_duplicate_reference_conflicts(self, app, create_eft):
        assert create_eft().status_code == 201
        resp = create_eft()
        assert resp.status_code == 409
        with app.app_context():
            assert db.session.query(Order).filter_by(external_reference="TMH-1").count() == 1

    def test_missing_product_line_is_skipped(self, client, create_eft, make_product):
        product_id = make_product()
        resp = create_eft(items=[
            {"product_id": 4242, "quantity": 1, "price": "10.00"},
            {"product_id": product_id, "quantity": 3, "price": "20.00"},
        ])
        assert resp.status_code == 201
        items = client.get("/api/eft-orders/TMH-1").get_json()["items"]
        assert [(i["product_id"], i["quantity"]) for i in items] == [(product_id, 3)]

    def test_does_not_touch_cart(self, client, create_eft, make_product):
        product_id = make_product()
        client.post("/api/cart", json={"product_id": product_id})
        create_eft()
        assert len(client.get("/api/cart").get_json()) == 1

    @pytest.mark.parametrize(
        "body",
        [
            {"customer_info": {}, "items": [], "total_amount": "1.00"},
            {"order_reference": "  ", "items": [], "total_amount": "1.00"},
            {"order_reference": "TMH-2", "items": [], "total_amount": None},
            {"order_reference": "TMH-2", "items": {}, "total_amount": "1.00"},
        ],
    )
    def test_invalid_payload_400(self, client, body):
        assert client.post("/api/eft-orders", json=body).status_code == 400


class TestConfirmPayment:

    def test_confirm_moves_to_payment_submitted(self, client, create_eft):
        create_eft()
        resp = client.post("/api/eft-orders/confirm-payment", json={
            "order_reference": "TMH-1",
            "payment_proof": "uploads/proof-tmh-1.pdf",
        })
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "payment_submitted"

        order = client.get("/api/eft-orders/TMH-1").get_json()
        assert order["status"] == "payment_submitted"
        assert order["payment_proof_ref"] == "uploads/proof-tmh-1.pdf"

    def test_confirm_unknown_reference_404(self, client):
        resp = client.post("/api/eft-orders/confirm-payment", json={"order_reference": "unknown-ref"})
        assert resp.status_code == 404

    def test_confirm_without_reference_400(self, client):
        assert client.post("/api/eft-orders/confirm-payment", json={}).status_code == 400

    def test_confirm_service(self, app_ctx):
        eft_service.create_eft_order("TMH-9", {"name": "N"}, [], "10")
        order = eft_service.confirm_payment("TMH-9")
        assert order.status == "payment_submitted"

        with pytest.raises(NotFoundError):
            eft_service.confirm_payment("unknown-ref")


class TestStatus:

    def test_requires_admin(self, client, create_eft):
        create_eft()
        resp = client.put("/api/eft-orders/TMH-1/status", json={"status": "payment_confirmed"})
        assert resp.status_code == 401

    def test_admin_confirms_then_fulfils(self, client, admin_headers, create_eft):
        create_eft()
        resp = client.put("/api/eft-orders/TMH-1/status", json={"status": "payment_confirmed"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "payment_confirmed"

        resp = client.put("/api/eft-orders/TMH-1/status", json={"status": "fulfilled"}, headers=admin_headers)
        assert resp.get_json()["status"] == "fulfilled"

    def test_rejected_proof_returns_to_pending_payment(self, client, admin_headers, create_eft):
        create_eft()
        client.post("/api/eft-orders/confirm-payment", json={"order_reference": "TMH-1"})
        resp = client.put("/api/eft-orders/TMH-1/status", json={"status": "pending_payment"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "pending_payment"

    @pytest.mark.parametrize("status", ["bogus", "pending", "fulfilled"])
    def test_invalid_status_or_transition(self, client, admin_headers, create_eft, status):
        create_eft()
        resp = client.put("/api/eft-orders/TMH-1/status", json={"status": status}, headers=admin_headers)
        assert resp.status_code == 400
        assert client.get("/api/eft-orders/TMH-1").get_json()["status"] == "pending_payment"

    def test_unknown_reference_404(self, client, admin_headers):
        resp = client.put("/api/eft-orders/nope/status", json={"status": "cancelled"}, headers=admin_headers)
        assert resp.status_code == 404


class TestList:

    def test_list_requires_admin(self, client):
        assert client.get("/api/eft-orders").status_code == 401

    def test_list_shows_open_eft_statuses_only(self, client, admin_headers, create_eft, make_product, login):
        product_id = make_product()
        create_eft("TMH-1", items=[])
        create_eft("TMH-2", items=[])
        create_eft("TMH-3", items=[])
        client.post("/api/eft-orders/confirm-payment", json={"order_reference": "TMH-2"})
        client.put("/api/eft-orders/TMH-3/status", json={"status": "cancelled"}, headers=admin_headers)

        # A storefront order in "pending" is not part of the EFT queue
        login(client, "user-1")
        client.post("/api/orders", json={
            "customer_info": {"name": "X"},
            "items": [{"product_id": product_id, "quantity": 1, "price": "1.00"}],
        })

        data = client.get("/api/eft-orders", headers=admin_headers).get_json()
        assert sorted((o["order_reference"], o["status"]) for o in data) == [
            ("TMH-1", "pending_payment"),
            ("TMH-2", "payment_submitted"),
        ]

    def test_get_unknown_reference_404(self, client):
        assert client.get("/api/eft-orders/unknown-ref").status_code == 404

    def test_get_overlong_reference_400(self, client):
        resp = client.get("/api/eft-orders/" + "R" * 80)
        assert resp.status_code == 400
        assert "max length" in resp.get_json()["error"]


class TestMalformedBody:

    @pytest.mark.parametrize("body", [["TMH-1"], "TMH-1"])
    def test_confirm_non_object_body_400(self, client, create_eft, body):
        create_eft()
        resp = client.post("/api/eft-orders/confirm-payment", json=body)
        assert resp.status_code == 400
        assert client.get("/api/eft-orders/TMH-1").get_json()["status"] == "pending_payment"

    def test_status_non_object_body_400(self, client, admin_headers, create_eft):
        create_eft()
        resp = client.put("/api/eft-orders/TMH-1/status", json=["cancelled"], headers=admin_headers)
        assert resp.status_code == 400
        assert client.get("/api/eft-orders/TMH-1").get_json()["status"] == "pending_payment"
