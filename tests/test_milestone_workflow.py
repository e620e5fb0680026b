"""
Milestone tests — CRUD, weekly reports, feedback and the
assign / accept / decline / respond workflow.
"""

from datetime import date, timedelta

import pytest

from goldenbridge.core.exceptions import (
    ConflictError,
    PermissionDenied,
    TransitionError,
    ValidationError,
)
from goldenbridge.models.audit import AuditLog
from goldenbridge.models.milestone import AssignmentState, AssignmentType
from goldenbridge.models.notification import Notification
from goldenbridge.services import audit_service, milestone_service

TODAY = date.today()


def _assignment(**overrides):
    data = {
        "title": "Build a 90-day leadership plan",
        "description": "Goals, stakeholders, checkpoints",
        "category": "project",
        "start_date": TODAY.isoformat(),
        "end_date": (TODAY + timedelta(days=30)).isoformat(),
    }
    data.update(overrides)
    return data


def _assign_one(manager, program, participant, **overrides):
    result = milestone_service.assign_milestone(manager, program, [participant.id], _assignment(**overrides))
    assert result["failed"] == []
    return result["created"][0]


# ── Self-created milestones ──────────────────────────────────────────────────


class TestMilestoneCrud:
    def test_create_self_milestone(self, participant, program):
        m = milestone_service.create_milestone(participant, participant, {
            "title": "Public speaking",
            "category": "skill",
            "start_date": TODAY,
            "end_date": TODAY + timedelta(days=14),
            "program_id": program.id,
        })
        assert m.assignment_type == AssignmentType.SELF_CREATED.value
        assert m.status == "not_started"
        assert m.assignment_state is None
        assert "assignment_info" not in m.to_dict()

    def test_end_must_follow_start(self, participant):
        with pytest.raises(ValidationError):
            milestone_service.create_milestone(participant, participant, {
                "title": "Same day", "start_date": TODAY, "end_date": TODAY,
            })

    def test_unknown_category(self, participant):
        with pytest.raises(ValidationError):
            milestone_service.create_milestone(participant, participant, {
                "title": "x", "category": "career", "start_date": TODAY,
                "end_date": TODAY + timedelta(days=1),
            })

    def test_cannot_create_for_someone_else(self, manager, participant, program):
        with pytest.raises(PermissionDenied):
            milestone_service.create_milestone(manager, participant, {
                "title": "x", "start_date": TODAY, "end_date": TODAY + timedelta(days=1),
            })

    def test_manager_edit_and_delete_are_audited(self, manager, participant, program):
        m = _assign_one(manager, program, participant)
        milestone_service.update_milestone(manager, m, {"title": "Renamed", "status": "paused"})
        edit = AuditLog.query.filter_by(action=audit_service.EDIT_MILESTONE).one()
        assert edit.details["changes"] == ["status", "title"]

        milestone_service.delete_milestone(manager, m)
        delete = AuditLog.query.filter_by(action=audit_service.DELETE_MILESTONE).one()
        assert delete.details["milestoneTitle"] == "Renamed"
        assert delete.program_id == program.id


# ── Reports & feedback ───────────────────────────────────────────────────────


class TestReportsAndFeedback:
    def test_one_report_per_week(self, manager, participant, program):
        m = _assign_one(manager, program, participant)
        milestone_service.add_progress_report(participant, m, {"week_number": 3, "content": "Good week"})
        with pytest.raises(ConflictError) as exc:
            milestone_service.add_progress_report(participant, m, {"week_number": 3, "content": "Again"})
        assert "Week 3" in str(exc.value)

    def test_completion_is_clamped(self, participant, program):
        m = milestone_service.create_milestone(participant, participant, {
            "title": "x", "start_date": TODAY, "end_date": TODAY + timedelta(days=10),
        })
        report = milestone_service.add_progress_report(
            participant, m, {"week_number": 1, "content": "Done", "completion_percentage": 140},
        )
        assert report.completion_percentage == 100

    def test_non_finite_numbers_are_rejected(self, participant, program):
        m = milestone_service.create_milestone(participant, participant, {
            "title": "x", "start_date": TODAY, "end_date": TODAY + timedelta(days=10),
        })
        for bad in ({"completion_percentage": "inf"}, {"completion_percentage": "nan"},
                    {"hours_spent": "inf"}, {"hours_spent": "nan"}):
            with pytest.raises(ValidationError):
                milestone_service.add_progress_report(
                    participant, m, {"week_number": 1, "content": "Done", **bad},
                )
        assert m.reports == []

    def test_only_owner_reports(self, manager, participant, program):
        m = _assign_one(manager, program, participant)
        with pytest.raises(PermissionDenied):
            milestone_service.add_progress_report(manager, m, {"week_number": 1, "content": "x"})

    def test_feedback_notifies_and_audits(self, manager, participant, program):
        m = _assign_one(manager, program, participant)
        report = milestone_service.add_progress_report(participant, m, {"week_number": 1, "content": "x"})
        long_text = "Great progress! " * 10
        milestone_service.add_feedback(manager, report, long_text)

        notif = Notification.query.filter_by(user_id=participant.id, type="feedback").one()
        assert notif.message.endswith('..."')
        assert AuditLog.query.filter_by(action=audit_service.PROVIDE_FEEDBACK).count() == 1

    def test_participant_cannot_give_feedback(self, participant, program):
        m = milestone_service.create_milestone(participant, participant, {
            "title": "x", "start_date": TODAY, "end_date": TODAY + timedelta(days=10),
        })
        report = milestone_service.add_progress_report(participant, m, {"week_number": 1, "content": "x"})
        with pytest.raises(PermissionDenied):
            milestone_service.add_feedback(participant, report, "Nice")

    def test_current_week(self, participant):
        m = milestone_service.create_milestone(participant, participant, {
            "title": "x", "start_date": TODAY - timedelta(days=15), "end_date": TODAY + timedelta(days=10),
        })
        assert milestone_service.current_week(m) == 3
        assert milestone_service.current_week(m, today=m.start_date) == 1


# ── Assignment workflow ──────────────────────────────────────────────────────


class TestAssignment:
    def test_bulk_assignment(self, manager, make_user, make_program):
        people = [make_user("participant") for _ in range(3)]
        program = make_program(managers=[manager], participants=people)

        result = milestone_service.assign_milestone(
            manager, program, [p.id for p in people], _assignment(is_required=True),
        )
        assert len(result["created"]) == 3
        assert {m.assignment_type for m in result["created"]} == {AssignmentType.BULK_ASSIGNED.value}
        assert all(m.assigned_by == manager.id for m in result["created"])
        assert Notification.query.filter_by(type="assignment").count() == 3
        assert AuditLog.query.filter_by(action=audit_service.ASSIGN_MILESTONE).count() == 3

    def test_single_assignment_type(self, manager, participant, program):
        m = _assign_one(manager, program, participant)
        assert m.assignment_type == AssignmentType.MANAGER_ASSIGNED.value
        assert m.assignment_state == AssignmentState.ASSIGNED.value

    def test_partial_failure(self, manager, participant, make_user, program):
        outsider = make_user("participant")
        result = milestone_service.assign_milestone(
            manager, program, [participant.id, outsider.id, 9999], _assignment(),
        )
        assert [m.user_id for m in result["created"]] == [participant.id]
        assert {f["user_id"] for f in result["failed"]} == {outsider.id, 9999}

    def test_manager_of_other_program_cannot_assign(self, manager, make_user, make_program):
        michael = make_user("program_manager")
        aisha = make_user("participant")
        make_program(name="Tech Career Accelerator", managers=[michael], participants=[aisha])
        spring = make_program(managers=[manager])

        result = milestone_service.assign_milestone(manager, spring, [aisha.id], _assignment())
        assert result["created"] == []
        assert result["failed"][0]["user_id"] == aisha.id

    def test_participant_cannot_assign(self, participant, program):
        with pytest.raises(PermissionDenied):
            milestone_service.assign_milestone(participant, program, [participant.id], _assignment())

    def test_requires_title_and_participants(self, manager, participant, program):
        with pytest.raises(ValidationError):
            milestone_service.assign_milestone(manager, program, [participant.id], _assignment(title=" "))
        with pytest.raises(ValidationError):
            milestone_service.assign_milestone(manager, program, [], _assignment())


class TestAcceptDecline:
    def test_accept_moves_to_in_progress(self, manager, participant, program):
        m = _assign_one(manager, program, participant)
        milestone_service.accept_assignment(participant, m)
        assert m.accepted_at is not None
        assert m.status == "in_progress"
        assert m.assignment_state == AssignmentState.ACCEPTED.value

        with pytest.raises(TransitionError):
            milestone_service.accept_assignment(participant, m)

    def test_decline_requires_reason(self, manager, participant, program):
        m = _assign_one(manager, program, participant)
        with pytest.raises(ValidationError):
            milestone_service.decline_assignment(participant, m, "   ")
        assert m.declined_at is None

    def test_decline_notifies_managers(self, manager, participant, program):
        m = _assign_one(manager, program, participant)
        milestone_service.decline_assignment(participant, m, "Already covered by my course")

        assert m.assignment_state == AssignmentState.DECLINED.value
        assert m.status == "not_started"
        notif = Notification.query.filter_by(user_id=manager.id, type="decline").one()
        assert notif.data["reason"] == "Already covered by my course"

    def test_non_declinable_assignment(self, manager, participant, program):
        m = _assign_one(manager, program, participant, can_decline=False)
        assert m.assignment_state == AssignmentState.ACCEPTED.value
        with pytest.raises(TransitionError):
            milestone_service.decline_assignment(participant, m, "No thanks")
        assert m.declined_at is None
        assert m.decline_reason is None

    def test_cannot_accept_after_decline(self, manager, participant, program):
        m = _assign_one(manager, program, participant)
        milestone_service.decline_assignment(participant, m, "Too busy")
        with pytest.raises(TransitionError):
            milestone_service.accept_assignment(participant, m)

    def test_only_owner_may_decline(self, manager, participant, program):
        m = _assign_one(manager, program, participant)
        with pytest.raises(PermissionDenied):
            milestone_service.decline_assignment(manager, m, "x")

    def test_self_created_cannot_be_declined(self, participant):
        m = milestone_service.create_milestone(participant, participant, {
            "title": "x", "start_date": TODAY, "end_date": TODAY + timedelta(days=10),
        })
        with pytest.raises(TransitionError):
            milestone_service.decline_assignment(participant, m, "x")


class TestRespondToDecline:
    def test_respond(self, manager, participant, program):
        m = _assign_one(manager, program, participant)
        milestone_service.decline_assignment(participant, m, "Too busy")
        milestone_service.respond_to_decline(manager, m, False, "Please reconsider")

        info = m.assignment_info()
        assert info["state"] == AssignmentState.RESPONDED.value
        assert info["manager_response"] == {
            "accepted": False,
            "comment": "Please reconsider",
            "responded_at": m.responded_at.isoformat(),
        }
        notif = Notification.query.filter_by(user_id=participant.id, title="Decline Reviewed").one()
        assert "did not accept" in notif.message
        assert AuditLog.query.filter_by(action=audit_service.RESPOND_TO_DECLINE).count() == 1

    def test_respond_only_once(self, manager, participant, program):
        m = _assign_one(manager, program, participant)
        milestone_service.decline_assignment(participant, m, "Too busy")
        milestone_service.respond_to_decline(manager, m, True)
        with pytest.raises(TransitionError):
            milestone_service.respond_to_decline(manager, m, False)

    def test_respond_requires_pending_decline(self, manager, participant, program):
        m = _assign_one(manager, program, participant)
        with pytest.raises(TransitionError):
            milestone_service.respond_to_decline(manager, m, True)

    def test_categorize(self, manager, make_user, make_program):
        p = make_user("participant")
        program = make_program(managers=[manager], participants=[p])
        pending = _assign_one(manager, program, p)
        accepted = _assign_one(manager, program, p, title="Second")
        declined = _assign_one(manager, program, p, title="Third")
        milestone_service.accept_assignment(p, accepted)
        milestone_service.decline_assignment(p, declined, "No")

        buckets = milestone_service.categorize_assignments(milestone_service.list_milestones(p, p))
        assert [m.id for m in buckets["pending"]] == [pending.id]
        assert [m.id for m in buckets["accepted"]] == [accepted.id]
        assert [m.id for m in buckets["declined"]] == [declined.id]
