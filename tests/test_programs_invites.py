"""
Program service tests — lifecycle, membership, invites and statistics.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from goldenbridge.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from goldenbridge.models import db
from goldenbridge.models.program import Invite, determine_status
from goldenbridge.services import program_service, user_service

TODAY = date.today()


def _program_data(**overrides):
    data = {
        "name": "Spring Leadership Cohort",
        "description": "Six months",
        "start_date": TODAY.isoformat(),
        "end_date": (TODAY + timedelta(days=180)).isoformat(),
    }
    data.update(overrides)
    return data


class TestStatus:
    def test_determine_status(self):
        start, end = date(2026, 3, 1), date(2026, 6, 1)
        assert determine_status(start, end, date(2026, 2, 1)) == "upcoming"
        assert determine_status(start, end, date(2026, 3, 1)) == "active"
        assert determine_status(start, end, date(2026, 6, 1)) == "active"
        assert determine_status(start, end, date(2026, 6, 2)) == "completed"


class TestLifecycle:
    def test_admin_creates_program_with_manager(self, admin, manager):
        program = program_service.create_program(admin, _program_data(manager_ids=[manager.id]))
        assert program.manager_ids == [manager.id]
        assert program.created_by == admin.id
        assert program.status == "active"

    def test_manager_cannot_create(self, manager):
        with pytest.raises(PermissionDenied):
            program_service.create_program(manager, _program_data())

    def test_dates_validated(self, admin):
        with pytest.raises(ValidationError):
            program_service.create_program(admin, _program_data(end_date=(TODAY - timedelta(days=1)).isoformat()))
        with pytest.raises(ValidationError):
            program_service.create_program(admin, _program_data(start_date="not a date"))

    def test_participant_cannot_manage_program(self, admin, participant):
        with pytest.raises(ValidationError):
            program_service.create_program(admin, _program_data(manager_ids=[participant.id]))

    def test_manager_updates_own_program(self, manager, program):
        program_service.update_program(manager, program, {"name": "Renamed"})
        assert program.name == "Renamed"

    def test_archive(self, admin, manager, program):
        with pytest.raises(PermissionDenied):
            program_service.archive_program(manager, program)
        program_service.archive_program(admin, program)
        assert program.status == "completed"
        with pytest.raises(NotFoundError):
            program_service.get_program(program.id)
        assert program_service.get_program(program.id, include_archived=True).id == program.id

    def test_listing_is_role_scoped(self, admin, manager, participant, make_user, make_program, program):
        other = make_program(name="Tech Career Accelerator", managers=[make_user("program_manager")])
        assert {p.id for p in program_service.list_programs_for_user(admin)} == {program.id, other.id}
        assert [p.id for p in program_service.list_programs_for_user(manager)] == [program.id]
        assert [p.id for p in program_service.list_programs_for_user(participant)] == [program.id]


class TestMembership:
    def test_enroll_and_remove(self, manager, make_user, program):
        maria = make_user("participant")
        program_service.add_participant(manager, program, maria.id)
        assert maria.id in program.participant_ids
        assert program.id in maria.program_ids

        with pytest.raises(ConflictError):
            program_service.add_participant(manager, program, maria.id)

        program_service.remove_participant(manager, program, maria.id)
        assert maria.id not in program.participant_ids

    def test_only_participants_enroll(self, manager, admin, program):
        with pytest.raises(ValidationError):
            program_service.add_participant(manager, program, admin.id)

    def test_admin_manages_managers(self, admin, manager, make_user, program):
        michael = make_user("program_manager")
        with pytest.raises(PermissionDenied):
            program_service.add_manager(manager, program, michael.id)
        program_service.add_manager(admin, program, michael.id)
        assert program.manager_ids == sorted([manager.id, michael.id])
        program_service.remove_manager(admin, program, michael.id)
        assert program.manager_ids == [manager.id]

    def test_unknown_user(self, manager, program):
        with pytest.raises(NotFoundError):
            program_service.add_participant(manager, program, 9999)


class TestInvites:
    def test_existing_account_is_enrolled_directly(self, manager, make_user, program):
        maria = make_user("participant", email="maria@goldenbridge.org")
        result = program_service.add_participant_by_email(manager, program, " Maria@GoldenBridge.org ")
        assert result["status"] == "enrolled"
        assert maria.id in program.participant_ids

    def test_unknown_email_creates_invite(self, manager, program):
        result = program_service.add_participant_by_email(
            manager, program, "new.person@goldenbridge.org", origin="https://app.goldenbridge.org/",
        )
        assert result["status"] == "invited"
        code = result["invite"]["invite_code"]
        assert result["invite_url"] == f"https://app.goldenbridge.org/signup?invite={code}"

        with pytest.raises(ConflictError):
            program_service.add_participant_by_email(manager, program, "new.person@goldenbridge.org")

    def test_invalid_email(self, manager, program):
        with pytest.raises(ValidationError):
            program_service.add_participant_by_email(manager, program, "not-an-email")

    def test_register_with_invite_enrolls(self, manager, program):
        result = program_service.add_participant_by_email(manager, program, "aisha@goldenbridge.org")
        code = result["invite"]["invite_code"]

        user = user_service.register_user("Aisha Patel", "aisha@goldenbridge.org", "secret123", invite_code=code)
        assert program.id in user.program_ids
        invite = Invite.query.filter_by(invite_code=code).one()
        assert invite.status == "accepted"
        assert invite.accepted_by == user.id

    def test_invite_to_archived_program_rejected(self, admin, manager, program):
        result = program_service.add_participant_by_email(manager, program, "lena@goldenbridge.org")
        code = result["invite"]["invite_code"]
        program_service.archive_program(admin, program)

        with pytest.raises(ValidationError) as exc:
            user_service.register_user("Lena Ortiz", "lena@goldenbridge.org", "secret123", invite_code=code)
        assert exc.value.details == {"program_id": program.id}
        assert user_service.find_user_by_email("lena@goldenbridge.org") is None
        assert Invite.query.filter_by(invite_code=code).one().status == "pending"

    def test_failed_enrollment_leaves_no_account(self, manager, program, monkeypatch):
        result = program_service.add_participant_by_email(manager, program, "noor@goldenbridge.org")
        code = result["invite"]["invite_code"]

        def _conflict(program, user):
            raise ConflictError("ProgramParticipant", "user_id", user.id)

        monkeypatch.setattr(program_service, "_enroll", _conflict)
        with pytest.raises(ConflictError):
            user_service.register_user("Noor Khan", "noor@goldenbridge.org", "secret123", invite_code=code)
        assert user_service.find_user_by_email("noor@goldenbridge.org") is None

    def test_invite_for_other_email_rejected(self, manager, program):
        result = program_service.add_participant_by_email(manager, program, "aisha@goldenbridge.org")
        with pytest.raises(ValidationError):
            user_service.register_user(
                "Someone", "someone@goldenbridge.org", "secret123",
                invite_code=result["invite"]["invite_code"],
            )
        assert user_service.find_user_by_email("someone@goldenbridge.org") is None

    def test_expired_invite(self, manager, program):
        result = program_service.add_participant_by_email(manager, program, "late@goldenbridge.org")
        invite = db.session.get(Invite, result["invite"]["id"])
        invite.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
        db.session.commit()

        with pytest.raises(ValidationError):
            program_service.get_pending_invite(invite.invite_code)
        assert invite.status == "expired"

    def test_expire_invites_sweep(self, manager, program):
        for email in ("a@goldenbridge.org", "b@goldenbridge.org"):
            program_service.add_participant_by_email(manager, program, email)
        invite = Invite.query.filter_by(email="a@goldenbridge.org").one()
        invite.expires_at = datetime.now(timezone.utc) - timedelta(hours=1)
        db.session.commit()

        assert program_service.expire_invites() == 1
        statuses = {i.email: i.status for i in program_service.list_invites(manager, program)}
        assert statuses == {"a@goldenbridge.org": "expired", "b@goldenbridge.org": "pending"}

    def test_cancel_invite(self, manager, program):
        result = program_service.add_participant_by_email(manager, program, "c@goldenbridge.org")
        program_service.cancel_invite(manager, program, result["invite"]["id"])
        with pytest.raises(NotFoundError):
            program_service.get_pending_invite(result["invite"]["invite_code"])


class TestStatistics:
    def test_active_program(self, make_program, participant):
        today = date(2026, 4, 1)
        program = make_program(
            participants=[participant], start=date(2026, 3, 2), end=date(2026, 5, 1),
        )
        stats = program_service.program_statistics(program, today=today)
        assert stats["status"] == "active"
        assert stats["participant_count"] == 1
        assert stats["duration_days"] == 60
        assert stats["days_remaining"] == 30
        assert stats["completion_percentage"] == 50

    def test_upcoming_program(self, make_program):
        program = make_program(start=date(2026, 5, 1), end=date(2026, 6, 1))
        stats = program_service.program_statistics(program, today=date(2026, 4, 1))
        assert stats["status"] == "upcoming"
        assert stats["days_remaining"] is None
        assert stats["completion_percentage"] == 0
