"""
Tests for post-commit notification dispatch and the NotificationService.
"""

import pytest

from pfadmin.core.exceptions import UnauthorizedError
from pfadmin.models.notification import Notification
from pfadmin.models.request import RequestStatus
from pfadmin.services.notification import NotificationService, transition_messages
from pfadmin.services.request_lifecycle import LifecycleEngine


class _RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, recipient_id, title, message="", severity="info", metadata=None):
        self.sent.append({"recipient_id": recipient_id, "title": title, "severity": severity, "metadata": metadata})


class _BrokenNotifier:
    def __init__(self):
        self.calls = 0

    def notify(self, *args, **kwargs):
        self.calls += 1
        raise RuntimeError("smtp relay down")


class TestDispatch:
    def test_move_to_review_notifies_owner_and_officer(self, staff, make_request):
        notifier = _RecordingNotifier()
        req = make_request(staff["employee"], RequestStatus.READY_FOR_REVIEW)

        LifecycleEngine(notifier=notifier).move_to_review(staff["officer"].id, req.id)

        recipients = [m["recipient_id"] for m in notifier.sent]
        assert recipients == [staff["employee"].id, staff["officer"].id]
        assert notifier.sent[0]["metadata"]["status"] == "OfficerReview"

    def test_failed_dispatch_does_not_undo_transition(self, staff, make_request):
        notifier = _BrokenNotifier()
        req = make_request(staff["employee"])

        updated = LifecycleEngine(notifier=notifier).mark_incomplete(
            staff["assistant"].id, req.id, "Payslip missing",
        )

        assert notifier.calls == 1
        assert updated.status == RequestStatus.INCOMPLETE
        fresh = LifecycleEngine().get_by_id(req.id)
        assert fresh.status == RequestStatus.INCOMPLETE
        assert len(LifecycleEngine().get_history(req.id)) == 1

    def test_failed_dispatch_is_logged(self, staff, make_request, caplog):
        req = make_request(staff["employee"])
        with caplog.at_level("ERROR", logger="pfadmin.services.request_lifecycle"):
            LifecycleEngine(notifier=_BrokenNotifier()).mark_ready(staff["assistant"].id, req.id)
        assert any("Notification dispatch failed" in r.getMessage() for r in caplog.records)

    def test_no_dispatch_when_transition_rejected(self, staff, make_request):
        notifier = _RecordingNotifier()
        req = make_request(staff["employee"])
        with pytest.raises(UnauthorizedError):
            LifecycleEngine(notifier=notifier).mark_ready(staff["officer"].id, req.id)
        assert notifier.sent == []

    def test_chain_forward_notifies_next_approver(self, staff, make_request):
        notifier = _RecordingNotifier()
        req = make_request(staff["employee"], RequestStatus.OFFICER_REVIEW, officer=staff["officer"])
        engine = LifecycleEngine(notifier=notifier)
        engine.assign_approvers(staff["officer"].id, req.id, [staff["approver"].id, staff["officer_2"].id])
        engine.decide(staff["approver"].id, req.id, "Approved")

        assert [m["recipient_id"] for m in notifier.sent] == [staff["approver"].id, staff["officer_2"].id]
        assert all(m["severity"] == "action_required" for m in notifier.sent)

    def test_service_persists_rows(self, staff, make_request):
        req = make_request(staff["employee"], RequestStatus.APPROVED)
        LifecycleEngine(notifier=NotificationService).release(staff["treasury"].id, req.id, "EFT-889")

        rows = Notification.query.filter_by(recipient_id=staff["employee"].id).all()
        assert len(rows) == 1
        assert rows[0].severity == "success"
        assert "EFT-889" in rows[0].message
        assert rows[0].data["request_id"] == req.id


class TestMessageCatalogue:
    def test_assign_approver_targets_approver(self, staff, make_request):
        req = make_request(
            staff["employee"], RequestStatus.OFFICER_REVIEW,
            officer=staff["officer"], approver=staff["approver"],
        )
        messages = transition_messages(req, "assign_approver")
        assert [m["recipient_id"] for m in messages] == [staff["approver"].id]
        assert messages[0]["severity"] == "action_required"

    def test_approve_step_targets_next_approver(self, staff, make_request):
        req = make_request(
            staff["employee"], RequestStatus.OFFICER_REVIEW,
            officer=staff["officer"], approver=staff["officer_2"],
        )
        messages = transition_messages(req, "approve_step")
        assert [m["recipient_id"] for m in messages] == [staff["officer_2"].id]
        assert messages[0]["severity"] == "action_required"

    def test_resubmit_without_assistant_has_no_audience(self, staff, make_request):
        req = make_request(staff["employee"])
        assert transition_messages(req, "resubmit") == []


class TestNotificationService:
    def test_unread_count_and_mark_all(self, staff):
        uid = staff["employee"].id
        NotificationService.notify(uid, "one")
        NotificationService.notify(uid, "two", severity="bogus")
        assert NotificationService.unread_count(uid) == 2

        items, total = NotificationService.list_for_recipient(uid)
        assert total == 2
        assert {n.severity for n in items} == {"info"}

        assert NotificationService.mark_all_read(uid) == 2
        assert NotificationService.unread_count(uid) == 0

    def test_mark_read_single(self, staff):
        n = NotificationService.notify(staff["officer"].id, "ping")
        assert NotificationService.mark_read(n.id).is_read is True
        assert NotificationService.mark_read(987654) is None
