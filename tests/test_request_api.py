"""
HTTP tests for the request lifecycle and notification blueprints.

Covers:
    - Filing and the full transition flow over HTTP
    - Error mapping: 400 / 403 / 404 / 409 / 422 / 503
    - Listing filters, status summary, access endpoint
    - Notification inbox endpoints
"""

from pfadmin.core.exceptions import PersistenceError
from pfadmin.models.request import RequestKind, RequestStatus
from pfadmin.services.request_store import RequestStore

BASE = "/api/v1/requests"


def _post(client, path, **body):
    return client.post(f"{BASE}{path}", json=body)


# ═════════════════════════════════════════════════════════════════════════════
# Happy path
# ═════════════════════════════════════════════════════════════════════════════


class TestFlow:
    def test_submit_returns_201(self, client, staff):
        res = _post(
            client, "",
            actor_id=staff["employee"].id, request_kind="withdrawal",
            request_type="Retirement", payout_amount="250000.50",
        )
        assert res.status_code == 201
        data = res.get_json()
        assert data["status"] == "Submitted"
        assert data["payout_amount"] == "250000.50"
        assert data["employee_name"] == "Ana Reyes"

    def test_full_flow(self, client, staff):
        rid = _post(
            client, "", actor_id=staff["employee"].id,
            request_kind="loan", request_type="Education", payout_amount=40000,
        ).get_json()["id"]

        res = _post(client, f"/{rid}/mark-ready", actor_id=staff["assistant"].id)
        assert res.status_code == 200
        assert res.get_json()["request"]["status"] == "ReadyForReview"

        assert _post(client, f"/{rid}/move-to-review", actor_id=staff["officer"].id).status_code == 200
        res = _post(
            client, f"/{rid}/assign-approvers",
            actor_id=staff["officer"].id, approver_ids=[staff["approver"].id, staff["officer_2"].id],
        )
        assert res.get_json()["request"]["approver_id"] == staff["approver"].id

        approvals = client.get(f"{BASE}/{rid}/approvals").get_json()
        assert approvals["total"] == 2
        assert approvals["approvals"][0]["is_current"] is True
        assert approvals["approvals"][1]["approver_name"] == "Officer O2"

        res = _post(client, f"/{rid}/decision", actor_id=staff["approver"].id, decision="Approved")
        assert res.get_json()["request"]["status"] == "OfficerReview"
        assert res.get_json()["request"]["approver_id"] == staff["officer_2"].id

        res = _post(client, f"/{rid}/decision", actor_id=staff["officer_2"].id, decision="Approved")
        assert res.get_json()["request"]["status"] == "Approved"

        res = _post(client, f"/{rid}/release", actor_id=staff["treasury"].id, payment_reference="EFT-42")
        assert res.status_code == 200
        assert res.get_json()["request"]["status"] == "Released"

        history = client.get(f"{BASE}/{rid}/history").get_json()
        assert history["total"] == 7
        assert [h["to_status"] for h in history["history"]] == [
            "Submitted", "ReadyForReview", "OfficerReview", "OfficerReview",
            "OfficerReview", "Approved", "Released",
        ]
        assert history["history"][-1]["remarks"] == "EFT-42"

    def test_incomplete_and_resubmit(self, client, staff, make_request):
        req = make_request(staff["employee"])
        res = _post(client, f"/{req.id}/mark-incomplete", actor_id=staff["assistant"].id, remarks="Need ID copy")
        assert res.get_json()["request"]["status"] == "Incomplete"

        res = _post(client, f"/{req.id}/resubmit", actor_id=staff["employee"].id)
        assert res.get_json()["request"]["status"] == "Submitted"

    def test_cancel(self, client, staff, make_request):
        req = make_request(staff["employee"])
        res = _post(client, f"/{req.id}/cancel", actor_id=staff["employee"].id)
        assert res.status_code == 200
        assert res.get_json()["request"]["status"] == "Cancelled"


# ═════════════════════════════════════════════════════════════════════════════
# Error mapping
# ═════════════════════════════════════════════════════════════════════════════


class TestErrors:
    def test_missing_actor_id_is_400(self, client, staff, make_request):
        req = make_request(staff["employee"])
        res = _post(client, f"/{req.id}/mark-ready")
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_non_integer_actor_id_is_400(self, client, staff, make_request):
        req = make_request(staff["employee"])
        res = _post(client, f"/{req.id}/mark-ready", actor_id="abc")
        assert res.status_code == 400

    def test_unknown_request_is_404(self, client, staff):
        res = _post(client, "/777/mark-ready", actor_id=staff["assistant"].id)
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_unknown_actor_is_404(self, client, staff, make_request):
        req = make_request(staff["employee"])
        res = _post(client, f"/{req.id}/mark-ready", actor_id=5555)
        assert res.status_code == 404

    def test_unauthorized_is_403_with_context(self, client, staff, make_request):
        req = make_request(staff["employee"], RequestStatus.OFFICER_REVIEW)
        res = _post(client, f"/{req.id}/decision", actor_id=staff["employee"].id, decision="Approved")
        assert res.status_code == 403
        body = res.get_json()
        assert body["code"] == "ERR_FORBIDDEN"
        assert body["details"]["required_capability"] == "can_approve"
        assert body["details"]["current_status"] == "OfficerReview"

    def test_invalid_transition_is_409(self, client, staff, make_request):
        req = make_request(staff["employee"], RequestStatus.RELEASED)
        res = _post(client, f"/{req.id}/cancel", actor_id=staff["employee"].id)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_INVALID_TRANSITION"

    def test_missing_remarks_is_422(self, client, staff, make_request):
        req = make_request(staff["employee"])
        res = _post(client, f"/{req.id}/mark-incomplete", actor_id=staff["assistant"].id)
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION"

    def test_missing_decision_is_422(self, client, staff, make_request):
        req = make_request(staff["employee"], RequestStatus.OFFICER_REVIEW)
        res = _post(client, f"/{req.id}/decision", actor_id=staff["approver"].id)
        assert res.status_code == 422
        assert res.get_json()["code"] == "ERR_VALIDATION"

    def test_missing_decision_on_unknown_request_is_404(self, client, staff):
        res = _post(client, "/888/decision", actor_id=staff["approver"].id)
        assert res.status_code == 404

    def test_approver_ids_must_be_a_list(self, client, staff, make_request):
        req = make_request(staff["employee"], RequestStatus.OFFICER_REVIEW, officer=staff["officer"])
        res = _post(
            client, f"/{req.id}/assign-approvers",
            actor_id=staff["officer"].id, approver_ids=staff["approver"].id,
        )
        assert res.status_code == 400

    def test_approver_ids_must_be_integers(self, client, staff, make_request):
        req = make_request(staff["employee"], RequestStatus.OFFICER_REVIEW, officer=staff["officer"])
        res = _post(
            client, f"/{req.id}/assign-approvers",
            actor_id=staff["officer"].id, approver_ids=[staff["approver"].id, "x"],
        )
        assert res.status_code == 400

    def test_single_loan_approver_is_422(self, client, staff, make_request):
        req = make_request(
            staff["employee"], RequestStatus.OFFICER_REVIEW,
            officer=staff["officer"], kind=RequestKind.LOAN, request_type="Car",
        )
        res = _post(
            client, f"/{req.id}/assign-approvers",
            actor_id=staff["officer"].id, approver_ids=[staff["approver"].id],
        )
        assert res.status_code == 422
        assert "approver_ids" in res.get_json()["details"]

    def test_overlong_payment_reference_is_422(self, client, staff, make_request):
        req = make_request(staff["employee"], RequestStatus.APPROVED)
        res = _post(client, f"/{req.id}/release", actor_id=staff["treasury"].id, payment_reference="E" * 101)
        assert res.status_code == 422

    def test_bad_amount_is_422(self, client, staff):
        res = _post(
            client, "", actor_id=staff["employee"].id,
            request_kind="withdrawal", request_type="Retirement", payout_amount=-5,
        )
        assert res.status_code == 422

    def test_store_failure_is_503(self, client, staff, monkeypatch):
        def _boom(self, request_id):
            raise PersistenceError("load request")

        monkeypatch.setattr(RequestStore, "get", _boom)
        res = client.get(f"{BASE}/1")
        assert res.status_code == 503
        assert res.get_json()["code"] == "ERR_DATABASE"

    def test_unknown_route_is_404(self, client):
        assert client.get("/api/v1/nowhere").status_code == 404


# ═════════════════════════════════════════════════════════════════════════════
# Queries
# ═════════════════════════════════════════════════════════════════════════════


class TestQueries:
    def test_get_single(self, client, staff, make_request):
        req = make_request(staff["employee"])
        res = client.get(f"{BASE}/{req.id}")
        assert res.status_code == 200
        assert res.get_json()["id"] == req.id

    def test_list_with_filters(self, client, staff, make_request):
        make_request(staff["employee"])
        make_request(staff["other_employee"], RequestStatus.APPROVED)
        make_request(staff["other_employee"], kind=RequestKind.LOAN, request_type="Car")

        assert client.get(BASE).get_json()["total"] == 3
        assert client.get(f"{BASE}?status=Approved").get_json()["total"] == 1
        assert client.get(f"{BASE}?request_kind=loan").get_json()["total"] == 1
        assert client.get(f"{BASE}?search=ben").get_json()["total"] == 2

    def test_list_bad_date_is_400(self, client):
        assert client.get(f"{BASE}?start_date=2024-13-01").status_code == 400

    def test_list_bad_status_is_422(self, client):
        assert client.get(f"{BASE}?status=Pending").status_code == 422

    def test_summary(self, client, staff, make_request):
        make_request(staff["employee"])
        make_request(staff["employee"], RequestStatus.CANCELLED)
        summary = client.get(f"{BASE}/summary").get_json()["summary"]
        assert summary == [{"status": "Cancelled", "count": 1}, {"status": "Submitted", "count": 1}]

    def test_access_endpoint(self, client, staff, make_request):
        req = make_request(staff["employee"], RequestStatus.APPROVED)
        res = client.get(f"{BASE}/{req.id}/access?actor_id={staff['treasury'].id}")
        assert res.status_code == 200
        access = res.get_json()["access"]
        assert access["can_release"] is True
        assert access["can_approve"] is False

    def test_access_requires_actor(self, client, staff, make_request):
        req = make_request(staff["employee"])
        assert client.get(f"{BASE}/{req.id}/access").status_code == 400


# ═════════════════════════════════════════════════════════════════════════════
# Notifications & health
# ═════════════════════════════════════════════════════════════════════════════


class TestNotificationEndpoints:
    def test_transition_lands_in_owner_inbox(self, client, staff, make_request):
        req = make_request(staff["employee"])
        _post(client, f"/{req.id}/mark-incomplete", actor_id=staff["assistant"].id, remarks="Missing payslip")

        uid = staff["employee"].id
        inbox = client.get(f"/api/v1/notifications?recipient_id={uid}").get_json()
        assert inbox["total"] == 1
        assert inbox["items"][0]["severity"] == "action_required"
        assert client.get(f"/api/v1/notifications/unread-count?recipient_id={uid}").get_json()["unread_count"] == 1

        nid = inbox["items"][0]["id"]
        assert client.post(f"/api/v1/notifications/{nid}/read").status_code == 200
        assert client.get(f"/api/v1/notifications/unread-count?recipient_id={uid}").get_json()["unread_count"] == 0

    def test_read_all(self, client, staff, make_request):
        req = make_request(staff["employee"], RequestStatus.READY_FOR_REVIEW)
        _post(client, f"/{req.id}/move-to-review", actor_id=staff["officer"].id)
        res = client.post("/api/v1/notifications/read-all", json={"recipient_id": staff["officer"].id})
        assert res.get_json()["marked"] == 1

    def test_negative_paging_is_clamped(self, client, staff, make_request):
        req = make_request(staff["employee"])
        _post(client, f"/{req.id}/mark-incomplete", actor_id=staff["assistant"].id, remarks="Missing payslip")

        uid = staff["employee"].id
        res = client.get(f"/api/v1/notifications?recipient_id={uid}&limit=-5&offset=-3")
        assert res.status_code == 200
        body = res.get_json()
        assert body["total"] == 1
        assert body["items"] == []

        res = client.get(f"/api/v1/notifications?recipient_id={uid}&offset=-3")
        assert len(res.get_json()["items"]) == 1

    def test_missing_recipient_is_400(self, client):
        assert client.get("/api/v1/notifications").status_code == 400

    def test_unknown_notification_is_404(self, client):
        assert client.post("/api/v1/notifications/4040/read").status_code == 404


class TestHealth:
    def test_ready(self, client):
        assert client.get("/api/v1/health/ready").status_code == 200

    def test_live(self, client):
        assert client.get("/api/v1/health/live").status_code == 200
