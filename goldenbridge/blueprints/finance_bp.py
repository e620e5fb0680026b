"""
Finance Blueprint — budget cycles and expenses.

Endpoints (all under /api/v1):
    GET    /users/<uid>/cycles                          — all cycles, newest first
    POST   /users/<uid>/cycles                          — start a cycle (closes the active one)
    GET    /users/<uid>/cycles/active                   — the active cycle with summary
    DELETE /users/<uid>/cycles/<cid>
    POST   /users/<uid>/cycles/<cid>/expenses
    PUT    /users/<uid>/cycles/<cid>/expenses/<eid>     — body carries "reason" for cross-user edits
    DELETE /users/<uid>/cycles/<cid>/expenses/<eid>     — body or ?reason= for cross-user deletes
    GET    /programs/<id>/financials                    — active-cycle overview per participant

Cross-user writes accept an optional ``program_id`` to scope the audit entry.
"""

from flask import Blueprint, jsonify, request

from goldenbridge.auth import current_user, login_required
from goldenbridge.blueprints import json_body, optional_int
from goldenbridge.services import finance_service, program_service, user_service
from goldenbridge.services.permission import can_view_financial_data, check_permission
from goldenbridge.utils.errors import E, api_error

finance_bp = Blueprint("finance", __name__, url_prefix="/api/v1")


def _audit_program_id(data):
    return optional_int(data.get("program_id", request.args.get("program_id")), "program_id")


def _cycle_payload(cycle):
    data = cycle.to_dict()
    data["summary"] = finance_service.budget_summary(cycle)
    return data


# ═══════════════════════════════════════════════════════════════════════════
#  CYCLES
# ═══════════════════════════════════════════════════════════════════════════

@finance_bp.route("/users/<int:user_id>/cycles", methods=["GET"])
@login_required
def list_cycles(user_id):
    owner = user_service.get_user(user_id)
    cycles = finance_service.list_cycles(current_user(), owner)
    return jsonify({"items": [c.to_dict() for c in cycles], "total": len(cycles)}), 200


@finance_bp.route("/users/<int:user_id>/cycles", methods=["POST"])
@login_required
def start_cycle(user_id):
    """Body: {"budget": 2500, "start_date": "2025-01-01", "end_date": "2025-06-30"}."""
    data = json_body()
    if data.get("budget") in (None, ""):
        return api_error(E.VALIDATION_REQUIRED, "budget is required")
    owner = user_service.get_user(user_id)
    cycle = finance_service.start_cycle(
        current_user(), owner,
        data.get("budget"), data.get("start_date"), data.get("end_date"),
        program_id=_audit_program_id(data),
    )
    return jsonify(_cycle_payload(cycle)), 201


@finance_bp.route("/users/<int:user_id>/cycles/active", methods=["GET"])
@login_required
def active_cycle(user_id):
    owner = user_service.get_user(user_id)
    cycle = finance_service.get_active_cycle(current_user(), owner)
    if cycle is None:
        return jsonify({"cycle": None}), 200
    return jsonify({"cycle": _cycle_payload(cycle)}), 200


@finance_bp.route("/users/<int:user_id>/cycles/<int:cycle_id>", methods=["DELETE"])
@login_required
def delete_cycle(user_id, cycle_id):
    actor = current_user()
    owner = user_service.get_user(user_id)
    check_permission(can_view_financial_data(actor, owner), actor, "view financial data")
    cycle = finance_service.get_cycle(owner, cycle_id)
    finance_service.delete_cycle(actor, owner, cycle, program_id=_audit_program_id(json_body()))
    return jsonify({"deleted": True, "id": cycle_id}), 200


# ═══════════════════════════════════════════════════════════════════════════
#  EXPENSES
# ═══════════════════════════════════════════════════════════════════════════

def _load(user_id, cycle_id):
    actor = current_user()
    owner = user_service.get_user(user_id)
    check_permission(can_view_financial_data(actor, owner), actor, "view financial data")
    return actor, owner, finance_service.get_cycle(owner, cycle_id)


@finance_bp.route("/users/<int:user_id>/cycles/<int:cycle_id>/expenses", methods=["POST"])
@login_required
def add_expense(user_id, cycle_id):
    data = json_body()
    actor, owner, cycle = _load(user_id, cycle_id)
    expense = finance_service.add_expense(actor, owner, cycle, data, program_id=_audit_program_id(data))
    return jsonify({"expense": expense.to_dict(), "summary": finance_service.budget_summary(cycle)}), 201


@finance_bp.route("/users/<int:user_id>/cycles/<int:cycle_id>/expenses/<int:expense_id>",
                  methods=["PUT"])
@login_required
def update_expense(user_id, cycle_id, expense_id):
    data = json_body()
    actor, owner, cycle = _load(user_id, cycle_id)
    expense = finance_service.get_expense(cycle, expense_id)
    fields = {k: v for k, v in data.items() if k not in ("reason", "program_id")}
    expense = finance_service.update_expense(
        actor, owner, cycle, expense, fields,
        reason=data.get("reason"), program_id=_audit_program_id(data),
    )
    return jsonify({"expense": expense.to_dict(), "summary": finance_service.budget_summary(cycle)}), 200


@finance_bp.route("/users/<int:user_id>/cycles/<int:cycle_id>/expenses/<int:expense_id>",
                  methods=["DELETE"])
@login_required
def delete_expense(user_id, cycle_id, expense_id):
    data = json_body()
    actor, owner, cycle = _load(user_id, cycle_id)
    expense = finance_service.get_expense(cycle, expense_id)
    finance_service.delete_expense(
        actor, owner, cycle, expense,
        reason=data.get("reason") or request.args.get("reason"),
        program_id=_audit_program_id(data),
    )
    return jsonify({"deleted": True, "id": expense_id, "summary": finance_service.budget_summary(cycle)}), 200


# ═══════════════════════════════════════════════════════════════════════════
#  PROGRAM OVERVIEW
# ═══════════════════════════════════════════════════════════════════════════

@finance_bp.route("/programs/<int:program_id>/financials", methods=["GET"])
@login_required
def program_financials(program_id):
    program = program_service.get_program(program_id)
    return jsonify(finance_service.program_financial_overview(current_user(), program)), 200
