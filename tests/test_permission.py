"""
Permission evaluator tests.

The predicates are pure, so plain namespaces stand in for users and no
database is touched.
"""

from types import SimpleNamespace

import pytest

from goldenbridge.core.exceptions import PermissionDenied
from goldenbridge.services.permission import (
    can_assign_milestones,
    can_create_program,
    can_edit_financial_data,
    can_export_data,
    can_manage_program,
    can_provide_feedback,
    can_view_audit_log,
    can_view_financial_data,
    can_view_milestones,
    check_permission,
    filter_accessible_users,
    shared_program_ids,
)


def _user(uid, role, program_ids=(), managed=()):
    return SimpleNamespace(
        id=uid, role=role, program_ids=list(program_ids), managed_program_ids=list(managed),
    )


ADMIN = _user(1, "admin")
EMILY = _user(2, "program_manager", managed=[10])
MICHAEL = _user(3, "program_manager", managed=[20])
JESSICA = _user(4, "participant", program_ids=[10])
AISHA = _user(5, "participant", program_ids=[20])
MARIA = _user(6, "participant", program_ids=[10, 20])


class TestRelationships:
    def test_shared_program_ids(self):
        assert shared_program_ids(EMILY, MARIA) == [10]
        assert shared_program_ids(MICHAEL, JESSICA) == []

    def test_participant_has_no_shared_programs(self):
        assert shared_program_ids(JESSICA, MARIA) == []


class TestFinancialAndMilestoneAccess:
    @pytest.mark.parametrize("predicate", [
        can_view_financial_data,
        can_edit_financial_data,
        can_view_milestones,
        can_assign_milestones,
    ])
    def test_scoping(self, predicate):
        assert predicate(JESSICA, JESSICA)
        assert predicate(ADMIN, AISHA)
        assert predicate(EMILY, JESSICA)
        assert not predicate(EMILY, AISHA)
        assert not predicate(JESSICA, MARIA)

    def test_manager_reaches_participant_through_any_shared_program(self):
        assert can_view_financial_data(MICHAEL, MARIA)
        assert can_view_financial_data(EMILY, MARIA)

    def test_none_actor_is_denied(self):
        assert not can_view_financial_data(None, JESSICA)
        assert not can_view_milestones(JESSICA, None)

    def test_feedback_requires_overseer_role(self):
        assert can_provide_feedback(EMILY, JESSICA)
        assert can_provide_feedback(ADMIN, AISHA)
        assert not can_provide_feedback(JESSICA, JESSICA)
        assert not can_provide_feedback(MICHAEL, JESSICA)


class TestProgramAccess:
    def test_manage_program(self):
        assert can_manage_program(ADMIN, 99)
        assert can_manage_program(EMILY, 10)
        assert not can_manage_program(EMILY, 20)
        assert not can_manage_program(JESSICA, 10)

    def test_participant_listed_in_managed_ids_is_not_a_manager(self):
        odd = _user(7, "participant", managed=[10])
        assert not can_manage_program(odd, 10)

    def test_only_admin_creates_programs(self):
        assert can_create_program(ADMIN)
        assert not can_create_program(EMILY)
        assert not can_create_program(JESSICA)


class TestExportAndAudit:
    def test_export(self):
        assert can_export_data(ADMIN, program_id=20)
        assert can_export_data(EMILY, program_id=10)
        assert not can_export_data(EMILY, program_id=20)
        assert can_export_data(EMILY, target=JESSICA)
        assert can_export_data(JESSICA, target=JESSICA)
        assert not can_export_data(JESSICA, program_id=10)
        assert not can_export_data(JESSICA, target=MARIA)
        assert not can_export_data(None)

    def test_audit_log(self):
        assert can_view_audit_log(ADMIN)
        assert can_view_audit_log(EMILY, program_id=10)
        assert not can_view_audit_log(EMILY, program_id=20)
        assert can_view_audit_log(EMILY, target=JESSICA)
        assert can_view_audit_log(JESSICA, target=JESSICA)
        assert not can_view_audit_log(JESSICA, program_id=10)
        assert not can_view_audit_log(JESSICA)


class TestFilterAndEnforce:
    ALL = [ADMIN, EMILY, MICHAEL, JESSICA, AISHA, MARIA]

    def test_admin_sees_everyone(self):
        assert filter_accessible_users(ADMIN, self.ALL) == self.ALL

    def test_manager_sees_self_and_own_participants(self):
        ids = [u.id for u in filter_accessible_users(EMILY, self.ALL)]
        assert ids == [EMILY.id, JESSICA.id, MARIA.id]

    def test_participant_sees_only_self(self):
        assert filter_accessible_users(AISHA, self.ALL) == [AISHA]

    def test_check_permission_raises(self):
        check_permission(True, JESSICA, "read")
        with pytest.raises(PermissionDenied) as exc:
            check_permission(False, JESSICA, "edit financial data")
        assert exc.value.actor_id == JESSICA.id
