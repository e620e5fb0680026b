"""
Finance Service — budget cycles and expenses.

Rules:
    - A participant has at most one active cycle; starting a new one
      deactivates the others in the same transaction.
    - Edits by anyone other than the cycle owner are audit-logged after
      commit. Editing or deleting someone else's expense needs a reason.
"""

import logging
import math

from goldenbridge.core.exceptions import NotFoundError, ValidationError
from goldenbridge.models import db
from goldenbridge.models.finance import BalanceSheetCycle, Expense
from goldenbridge.services import audit_service
from goldenbridge.services.permission import (
    can_edit_financial_data,
    can_manage_program,
    can_view_financial_data,
    check_permission,
    is_self,
)
from goldenbridge.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────────────────

def _parse_amount(value, field="amount"):
    try:
        amount = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a number", details={field: "invalid"}) from exc
    if not math.isfinite(amount):
        raise ValidationError(f"{field} must be a finite number", details={field: "invalid"})
    return round(amount, 2)


def _require_reason(actor, owner, reason, action):
    """Cross-user edits and deletes need a non-empty justification."""
    if is_self(actor, owner):
        return None
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError(
            f"A reason is required to {action} another user's expense",
            details={"reason": "required"},
        )
    return reason


def _audit(actor, owner, action, details, program_id=None):
    if is_self(actor, owner):
        return
    audit_service.log_audit_action(
        actor.id, action, owner.id, details,
        program_id=audit_service.audit_program_scope(actor, owner, program_id),
    )


def get_cycle(owner, cycle_id) -> BalanceSheetCycle:
    cycle = BalanceSheetCycle.query.filter_by(id=cycle_id, user_id=owner.id).first()
    if not cycle:
        raise NotFoundError("BalanceSheetCycle", cycle_id)
    return cycle


def get_expense(cycle, expense_id) -> Expense:
    expense = Expense.query.filter_by(id=expense_id, cycle_id=cycle.id).first()
    if not expense:
        raise NotFoundError("Expense", expense_id)
    return expense


# ═══════════════════════════════════════════════════════════════════════════
#  Cycles
# ═══════════════════════════════════════════════════════════════════════════

def list_cycles(actor, owner) -> list[BalanceSheetCycle]:
    check_permission(can_view_financial_data(actor, owner), actor, "view financial data")
    return (
        BalanceSheetCycle.query.filter_by(user_id=owner.id)
        .order_by(BalanceSheetCycle.start_date.desc(), BalanceSheetCycle.id.desc())
        .all()
    )


def get_active_cycle(actor, owner):
    check_permission(can_view_financial_data(actor, owner), actor, "view financial data")
    return BalanceSheetCycle.query.filter_by(user_id=owner.id, is_active=True).first()


def start_cycle(actor, owner, budget, start_date, end_date, program_id=None) -> BalanceSheetCycle:
    """Open a new active cycle and close every other cycle of *owner*."""
    check_permission(can_edit_financial_data(actor, owner), actor, "edit financial data")
    budget = _parse_amount(budget, "budget")
    try:
        start = parse_date_input(start_date, "start_date")
        end = parse_date_input(end_date, "end_date")
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    errors = {}
    if budget <= 0:
        errors["budget"] = "Budget must be greater than zero"
    if not start:
        errors["start_date"] = "Start date is required"
    if not end:
        errors["end_date"] = "End date is required"
    if start and end and start > end:
        errors["end_date"] = "End date must be on or after the start date"
    if errors:
        raise ValidationError("Invalid cycle", details=errors)

    BalanceSheetCycle.query.filter_by(user_id=owner.id, is_active=True).update(
        {"is_active": False}, synchronize_session="fetch",
    )
    cycle = BalanceSheetCycle(
        user_id=owner.id, start_date=start, end_date=end, budget=budget, is_active=True,
    )
    db.session.add(cycle)
    db.session.commit()
    logger.info("Cycle %s started for user %s (budget %.2f)", cycle.id, owner.id, budget)

    _audit(actor, owner, audit_service.START_CYCLE,
           {"cycleId": cycle.id, "budget": budget}, program_id)
    return cycle


def delete_cycle(actor, owner, cycle, program_id=None) -> None:
    check_permission(can_edit_financial_data(actor, owner), actor, "edit financial data")
    cycle_id = cycle.id
    db.session.delete(cycle)
    db.session.commit()
    _audit(actor, owner, audit_service.DELETE_CYCLE, {"cycleId": cycle_id}, program_id)


# ═══════════════════════════════════════════════════════════════════════════
#  Expenses
# ═══════════════════════════════════════════════════════════════════════════

def _apply_expense_fields(expense, data, partial=False):
    if not partial or "item" in data:
        item = (data.get("item") or "").strip()
        if not item:
            raise ValidationError("Item is required", details={"item": "required"})
        expense.item = item
    if not partial or "date" in data:
        try:
            spent_on = parse_date_input(data.get("date"), "date")
        except ValueError as exc:
            raise ValidationError(str(exc), details={"date": "invalid"}) from exc
        if not spent_on:
            raise ValidationError("Date is required", details={"date": "required"})
        expense.date = spent_on
    if not partial or "amount" in data:
        if data.get("amount") in (None, ""):
            raise ValidationError("Amount is required", details={"amount": "required"})
        amount = _parse_amount(data.get("amount"))
        if amount < 0:
            raise ValidationError("Amount cannot be negative", details={"amount": "negative"})
        expense.amount = amount
    for field in ("category", "receipt_url", "contact", "remarks"):
        if field in data:
            setattr(expense, field, data.get(field) or None)


def add_expense(actor, owner, cycle, data: dict, program_id=None) -> Expense:
    check_permission(can_edit_financial_data(actor, owner), actor, "edit financial data")
    expense = Expense(cycle_id=cycle.id)
    _apply_expense_fields(expense, data)
    cycle.expenses.append(expense)
    db.session.commit()

    _audit(actor, owner, audit_service.ADD_EXPENSE, {
        "cycleId": cycle.id,
        "expense": expense.to_dict(),
        "addedBy": actor.role,
    }, program_id)
    return expense


def update_expense(actor, owner, cycle, expense, data: dict, reason=None,
                   program_id=None) -> Expense:
    check_permission(can_edit_financial_data(actor, owner), actor, "edit financial data")
    reason = _require_reason(actor, owner, reason, "edit")
    old_amount = round(float(expense.amount or 0), 2)
    _apply_expense_fields(expense, data, partial=True)
    db.session.commit()

    _audit(actor, owner, audit_service.EDIT_EXPENSE, {
        "cycleId": cycle.id,
        "expenseId": expense.id,
        "oldAmount": old_amount,
        "newAmount": round(float(expense.amount or 0), 2),
        "reason": reason,
    }, program_id)
    return expense


def delete_expense(actor, owner, cycle, expense, reason=None, program_id=None) -> None:
    check_permission(can_edit_financial_data(actor, owner), actor, "edit financial data")
    reason = _require_reason(actor, owner, reason, "delete")
    snapshot = expense.to_dict()
    cycle.expenses.remove(expense)
    db.session.delete(expense)
    db.session.commit()

    _audit(actor, owner, audit_service.DELETE_EXPENSE, {
        "cycleId": cycle.id,
        "expenseId": snapshot["id"],
        "expense": snapshot,
        "reason": reason,
    }, program_id)


# ═══════════════════════════════════════════════════════════════════════════
#  Summaries
# ═══════════════════════════════════════════════════════════════════════════

def budget_summary(cycle) -> dict:
    return {
        "cycle_id": cycle.id,
        "budget": round(float(cycle.budget), 2),
        "spent": cycle.total_spent,
        "remaining": cycle.remaining,
        "utilization": cycle.utilization,
        "expense_count": len(cycle.expenses),
    }


def program_financial_overview(actor, program) -> dict:
    """Active-cycle summary for every participant of *program*."""
    check_permission(can_manage_program(actor, program.id), actor, "manage this program")
    rows = []
    for enrollment in sorted(program.participants, key=lambda p: p.user_id):
        user = enrollment.user
        cycle = BalanceSheetCycle.query.filter_by(user_id=user.id, is_active=True).first()
        rows.append({
            "user_id": user.id,
            "name": user.name,
            "email": user.email,
            "active_cycle": budget_summary(cycle) if cycle else None,
        })

    summaries = [r["active_cycle"] for r in rows if r["active_cycle"]]
    total_budget = round(sum(s["budget"] for s in summaries), 2)
    total_spent = round(sum(s["spent"] for s in summaries), 2)
    return {
        "program_id": program.id,
        "participants": rows,
        "totals": {
            "total_budget": total_budget,
            "total_spent": total_spent,
            "total_remaining": round(total_budget - total_spent, 2),
            "average_utilization": (
                round(sum(s["utilization"] for s in summaries) / len(summaries))
                if summaries else 0
            ),
            "over_budget": sum(1 for s in summaries if s["spent"] > s["budget"]),
        },
    }
