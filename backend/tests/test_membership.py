"""
Membership lifecycle tests.

Verifies:
- Submission validation and pending state
- Approval issues MS-<year>-NNN numbers from the atomic sequence
- Card expiry is exactly 180 days after approval
- Re-approval keeps the original member card
- Lookup/verify only ever return approved members
- Public lookup/verify responses carry the card fields only
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from storefront.extensions import db
from storefront.models import MembershipApplication, NumberSequence
from storefront.services import membership_service


def _application(**overrides):
    body = {
        "first_name": "Lerato",
        "last_name": "Mokoena",
        "email": "lerato@example.com",
        "phone": "0831234567",
        "date_of_birth": "1990-05-01",
        "id_number": "9005010000000",
        "preferred_products": ["flower"],
    }
    body.update(overrides)
    return body


@pytest.fixture
def submit(client):
    def _submit(**overrides):
        resp = client.post("/api/membership-applications", json=_application(**overrides))
        assert resp.status_code == 201
        return resp.get_json()["id"]

    return _submit


@pytest.fixture
def approve(client, admin_headers):
    def _approve(application_id):
        resp = client.patch(
            f"/api/membership-applications/{application_id}/status",
            json={"status": "approved"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        return resp.get_json()

    return _approve


class TestSubmit:

    def test_submit_creates_pending(self, client):
        resp = client.post("/api/membership-applications", json=_application(email="Lerato@Example.COM"))
        assert resp.status_code == 201
        data = resp.get_json()
        assert data["status"] == "pending"
        assert data["email"] == "lerato@example.com"
        assert data["member_number"] is None
        assert data["card_generated"] is False

    @pytest.mark.parametrize("missing", ["first_name", "last_name", "email", "phone", "date_of_birth", "id_number"])
    def test_required_fields(self, client, missing):
        body = _application()
        body.pop(missing)
        resp = client.post("/api/membership-applications", json=body)
        assert resp.status_code == 400
        assert missing in resp.get_json()["error"]

    def test_rejects_bad_email(self, client):
        resp = client.post("/api/membership-applications", json=_application(email="not-an-email"))
        assert resp.status_code == 400

    def test_rejects_unknown_fields(self, client):
        resp = client.post("/api/membership-applications", json=_application(status="approved"))
        assert resp.status_code == 400


class TestApproval:

    def test_third_approval_gets_sequence_three(self, submit, approve):
        first = submit(email="one@example.com")
        second = submit(email="two@example.com")
        third = submit(email="three@example.com")
        approve(first)
        approve(second)

        data = approve(third)
        year = datetime.now(timezone.utc).year
        assert data["member_number"] == f"MS-{year}-003"
        assert data["membership_tier"] == "GOLD"
        assert data["card_generated"] is True

    def test_sequence_seeded_from_existing_approvals(self, app, submit, approve):
        with app.app_context():
            for n in (1, 2):
                db.session.add(MembershipApplication(
                    first_name="Old", last_name=f"Member{n}", email=f"old{n}@example.com",
                    phone="0", date_of_birth="1980-01-01", id_number=f"OLD{n}",
                    status="approved", member_number=f"MS-2025-00{n}",
                ))
            db.session.commit()

        data = approve(submit())
        year = datetime.now(timezone.utc).year
        assert data["member_number"] == f"MS-{year}-003"

        with app.app_context():
            seq = db.session.query(NumberSequence).filter_by(name="member_number").one()
            assert seq.next_number == 4

    def test_expiry_is_180_days_after_approval(self, app_ctx):
        application = membership_service.submit(_application())
        approved_at = datetime(2026, 2, 1, 8, 30, 0)

        application = membership_service.set_status(application.id, "approved", now=approved_at)
        assert application.member_number == "MS-2026-001"
        assert application.member_since == approved_at
        assert application.reviewed_at == approved_at
        assert application.expiry_date == approved_at + timedelta(days=180)
        assert application.expiry_date - application.member_since == timedelta(days=180)

        card = json.loads(application.qr_code_data)
        assert card == {"member_number": "MS-2026-001", "issued_at": "2026-02-01T08:30:00Z", "tier": "GOLD"}

    def test_reapproval_keeps_member_card(self, client, admin_headers, submit, approve):
        application_id = submit()
        first = approve(application_id)

        client.patch(
            f"/api/membership-applications/{application_id}/status",
            json={"status": "rejected"},
            headers=admin_headers,
        )
        second = approve(application_id)

        assert second["member_number"] == first["member_number"]
        assert second["qr_code_data"] == first["qr_code_data"]
        assert second["expiry_date"] == first["expiry_date"]

        # The sequence was not consumed by the re-approval
        other = approve(submit(email="next@example.com"))
        assert other["member_number"].endswith("-002")

    def test_invalid_status_leaves_application_unchanged(self, client, admin_headers, submit):
        application_id = submit()
        resp = client.patch(
            f"/api/membership-applications/{application_id}/status",
            json={"status": "bogus"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

        data = client.get(f"/api/membership-applications/{application_id}", headers=admin_headers).get_json()
        assert data["status"] == "pending"
        assert data["reviewed_at"] is None

    def test_reject_records_review(self, client, admin_headers, submit):
        application_id = submit()
        resp = client.patch(
            f"/api/membership-applications/{application_id}",
            json={"status": "rejected", "notes": "ID unreadable", "reviewed_by": "staff-1"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status"] == "rejected"
        assert data["notes"] == "ID unreadable"
        assert data["reviewed_by"] == "staff-1"
        assert data["member_number"] is None

    def test_notes_only_update(self, client, admin_headers, submit):
        application_id = submit()
        resp = client.patch(
            f"/api/membership-applications/{application_id}",
            json={"notes": "called back"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "pending"
        assert resp.get_json()["notes"] == "called back"

    def test_missing_application_404(self, client, admin_headers):
        resp = client.patch(
            "/api/membership-applications/999/status",
            json={"status": "approved"},
            headers=admin_headers,
        )
        assert resp.status_code == 404


class TestAdminSurface:

    def test_list_filters_by_status(self, client, admin_headers, submit, approve):
        approve(submit(email="a@example.com"))
        submit(email="b@example.com")

        everyone = client.get("/api/membership-applications", headers=admin_headers).get_json()
        approved = client.get("/api/membership-applications?status=approved", headers=admin_headers).get_json()
        assert len(everyone) == 2
        assert [a["email"] for a in approved] == ["a@example.com"]

    def test_list_rejects_unknown_status_filter(self, client, admin_headers):
        resp = client.get("/api/membership-applications?status=bogus", headers=admin_headers)
        assert resp.status_code == 400

    def test_delete(self, client, admin_headers, submit):
        application_id = submit()
        assert client.delete(f"/api/membership-applications/{application_id}", headers=admin_headers).status_code == 204
        assert client.get(f"/api/membership-applications/{application_id}", headers=admin_headers).status_code == 404

    def test_delete_missing_is_noop(self, client, admin_headers):
        assert client.delete("/api/membership-applications/999", headers=admin_headers).status_code == 204


class TestLookup:

    def test_lookup_by_email_is_case_insensitive(self, client, submit, approve):
        approve(submit(email="A@B.com"))
        resp = client.get("/api/member-lookup?q=a@b.com")
        assert resp.status_code == 200
        assert resp.get_json()["member_number"].startswith("MS-")

        assert client.get("/api/member-lookup?q=A@B.COM").status_code == 200

    def test_lookup_by_member_number(self, client, submit, approve):
        member_number = approve(submit())["member_number"]
        resp = client.get(f"/api/member-lookup?q={member_number}")
        assert resp.status_code == 200
        assert resp.get_json()["member_number"] == member_number

    def test_pending_and_rejected_are_hidden(self, client, admin_headers, submit):
        submit(email="pending@example.com")
        rejected = submit(email="rejected@example.com")
        client.patch(
            f"/api/membership-applications/{rejected}/status",
            json={"status": "rejected"},
            headers=admin_headers,
        )
        assert client.get("/api/member-lookup?q=pending@example.com").status_code == 404
        assert client.get("/api/member-lookup?q=rejected@example.com").status_code == 404

    def test_lookup_requires_query(self, client):
        assert client.get("/api/member-lookup").status_code == 400

    def test_verify_by_member_number_only(self, client, submit, approve):
        member_number = approve(submit())["member_number"]
        assert client.get(f"/api/member-verify?member_number={member_number}").status_code == 200
        assert client.get(f"/api/member-verify?memberNumber={member_number}").status_code == 200
        assert client.get("/api/member-verify?member_number=lerato@example.com").status_code == 404
        assert client.get("/api/member-verify").status_code == 400

    @pytest.mark.parametrize("path", ["/api/member-lookup?q={number}", "/api/member-verify?member_number={number}"])
    def test_public_routes_return_card_only(self, client, submit, approve, path):
        application_id = submit(address="12 Long Street", medical_conditions="asthma")
        member_number = approve(application_id)["member_number"]

        data = client.get(path.format(number=member_number)).get_json()
        assert data["member_number"] == member_number
        assert data["first_name"] == "Lerato"
        assert data["membership_tier"] == "GOLD"
        assert data["qr_code_data"]
        for field in ("id_number", "date_of_birth", "medical_conditions", "address", "email", "phone"):
            assert field not in data


class TestMalformedBody:

    @pytest.mark.parametrize("body", [["approved"], "approved"])
    def test_status_non_object_body_400(self, client, admin_headers, submit, body):
        application_id = submit()
        resp = client.patch(f"/api/membership-applications/{application_id}/status", json=body, headers=admin_headers)
        assert resp.status_code == 400
        detail = client.get(f"/api/membership-applications/{application_id}", headers=admin_headers).get_json()
        assert detail["status"] == "pending"

    def test_update_non_object_body_400(self, client, admin_headers, submit):
        application_id = submit()
        resp = client.patch(f"/api/membership-applications/{application_id}", json=["notes"], headers=admin_headers)
        assert resp.status_code == 400
