"""
Finance service tests — budget cycles, expenses and the reason rule for
cross-user edits.
"""

from datetime import date, timedelta

import pytest

from goldenbridge.core.exceptions import NotFoundError, PermissionDenied, ValidationError
from goldenbridge.models import db
from goldenbridge.models.audit import AuditLog
from goldenbridge.models.finance import BalanceSheetCycle
from goldenbridge.models.program import ProgramParticipant
from goldenbridge.services import audit_service, finance_service

TODAY = date.today()


def _cycle(actor, owner, budget=2500):
    return finance_service.start_cycle(actor, owner, budget, TODAY, TODAY + timedelta(days=90))


def _expense(actor, owner, cycle, item, amount, **extra):
    data = {"item": item, "amount": amount, "date": TODAY.isoformat(), **extra}
    return finance_service.add_expense(actor, owner, cycle, data)


class TestCycles:
    def test_budget_summary(self, participant, program):
        cycle = _cycle(participant, participant)
        for item, amount in (("Online course", 89.99), ("Conference ticket", 199.00),
                             ("Laptop", 450.00), ("Books", 125.50)):
            _expense(participant, participant, cycle, item, amount)

        summary = finance_service.budget_summary(cycle)
        assert summary["spent"] == 864.49
        assert summary["remaining"] == 1635.51
        assert summary["utilization"] == 35
        assert summary["expense_count"] == 4

    def test_single_active_cycle(self, participant, program):
        first = _cycle(participant, participant, 1000)
        second = _cycle(participant, participant, 1500)

        active = finance_service.get_active_cycle(participant, participant)
        assert active.id == second.id
        assert BalanceSheetCycle.query.filter_by(user_id=participant.id, is_active=True).count() == 1
        assert not db.session.get(BalanceSheetCycle, first.id).is_active

    def test_invalid_budget_and_dates(self, participant):
        with pytest.raises(ValidationError) as exc:
            finance_service.start_cycle(participant, participant, 0, TODAY, TODAY - timedelta(days=1))
        assert set(exc.value.details) == {"budget", "end_date"}

    def test_non_finite_budget_is_rejected(self, participant):
        for budget in ("nan", "inf", float("-inf")):
            with pytest.raises(ValidationError) as exc:
                _cycle(participant, participant, budget)
            assert exc.value.details == {"budget": "invalid"}
        assert BalanceSheetCycle.query.count() == 0

    def test_unrelated_manager_is_denied(self, make_user, participant, program):
        stranger = make_user("program_manager")
        with pytest.raises(PermissionDenied):
            _cycle(stranger, participant)

    def test_overspend_gives_negative_remaining(self, participant):
        cycle = _cycle(participant, participant, 100)
        _expense(participant, participant, cycle, "Laptop", 150)
        assert cycle.remaining == -50.0
        assert cycle.utilization == 150

    def test_delete_cycle_removes_expenses(self, participant):
        cycle = _cycle(participant, participant)
        _expense(participant, participant, cycle, "Books", 10)
        finance_service.delete_cycle(participant, participant, cycle)
        with pytest.raises(NotFoundError):
            finance_service.get_cycle(participant, cycle.id)


class TestExpenses:
    def test_expense_validation(self, participant):
        cycle = _cycle(participant, participant)
        with pytest.raises(ValidationError):
            finance_service.add_expense(participant, participant, cycle, {"amount": 5, "date": TODAY})
        with pytest.raises(ValidationError):
            finance_service.add_expense(participant, participant, cycle, {"item": "X", "date": TODAY})
        with pytest.raises(ValidationError):
            _expense(participant, participant, cycle, "X", -1)

    def test_non_finite_amount_is_rejected(self, participant):
        cycle = _cycle(participant, participant)
        expense = _expense(participant, participant, cycle, "Books", 10)
        for amount in ("nan", "Infinity"):
            with pytest.raises(ValidationError):
                _expense(participant, participant, cycle, "Course", amount)
            with pytest.raises(ValidationError):
                finance_service.update_expense(participant, participant, cycle, expense, {"amount": amount})
        db.session.rollback()
        assert [e.amount for e in cycle.expenses] == [10]

    def test_owner_edits_without_reason(self, participant):
        cycle = _cycle(participant, participant)
        expense = _expense(participant, participant, cycle, "Books", 10)
        finance_service.update_expense(participant, participant, cycle, expense, {"amount": 12.5})
        assert expense.amount == 12.5

    def test_manager_edit_requires_reason(self, manager, participant, program):
        cycle = _cycle(participant, participant)
        expense = _expense(participant, participant, cycle, "Books", 10)

        with pytest.raises(ValidationError) as exc:
            finance_service.update_expense(manager, participant, cycle, expense, {"amount": 20}, reason="  ")
        assert exc.value.details == {"reason": "required"}

        finance_service.update_expense(
            manager, participant, cycle, expense, {"amount": 20}, reason="Receipt shows 20",
        )
        entry = AuditLog.query.filter_by(action=audit_service.EDIT_EXPENSE).one()
        assert entry.details["oldAmount"] == 10.0
        assert entry.details["newAmount"] == 20.0
        assert entry.details["reason"] == "Receipt shows 20"

    def test_manager_delete_requires_reason(self, manager, participant, program):
        cycle = _cycle(participant, participant)
        expense = _expense(participant, participant, cycle, "Books", 10)
        with pytest.raises(ValidationError):
            finance_service.delete_expense(manager, participant, cycle, expense)

        finance_service.delete_expense(manager, participant, cycle, expense, reason="Duplicate")
        assert cycle.expenses == []
        entry = AuditLog.query.filter_by(action=audit_service.DELETE_EXPENSE).one()
        assert entry.details["expense"]["item"] == "Books"

    def test_manager_add_is_audited(self, manager, participant, program):
        cycle = _cycle(participant, participant)
        _expense(manager, participant, cycle, "Workshop fee", 75)
        entry = AuditLog.query.filter_by(action=audit_service.ADD_EXPENSE).one()
        assert entry.details["addedBy"] == "program_manager"
        assert entry.program_id == program.id


class TestProgramOverview:
    def test_totals(self, manager, participant, make_user, program):
        other = make_user("participant")
        program.participants.append(ProgramParticipant(user=other, status="active"))
        db.session.commit()
        cycle = _cycle(participant, participant, 1000)
        _expense(participant, participant, cycle, "Laptop", 1200)

        overview = finance_service.program_financial_overview(manager, program)
        assert len(overview["participants"]) == 2
        totals = overview["totals"]
        assert totals["total_budget"] == 1000.0
        assert totals["total_spent"] == 1200.0
        assert totals["over_budget"] == 1

    def test_participant_cannot_view_overview(self, participant, program):
        with pytest.raises(PermissionDenied):
            finance_service.program_financial_overview(participant, program)
