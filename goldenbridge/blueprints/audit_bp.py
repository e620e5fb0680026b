"""
Golden Bridge Women
Audit trail blueprint.

Endpoints:
    GET  /api/v1/audit          — list / filter audit entries, newest first
    GET  /api/v1/audit/export   — same filters, as CSV

Query params:
    user_id     — entries where the user acted or was affected
    program_id  — entries scoped to a program
    action      — filter by action name (prefix match)
    limit       — max items (default 200)
    offset      — starting position

Non-admins without filters see the entries about themselves.
"""

from datetime import datetime, timezone

from flask import Blueprint, Response, jsonify, request

from goldenbridge.auth import current_user, login_required
from goldenbridge.blueprints import optional_int, paginate_query
from goldenbridge.models.audit import AuditLog
from goldenbridge.services import audit_service, export_service, user_service
from goldenbridge.services.permission import can_view_audit_log, check_permission, is_admin

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1/audit")


def _filtered_query():
    actor = current_user()
    user_id = optional_int(request.args.get("user_id"), "user_id")
    program_id = optional_int(request.args.get("program_id"), "program_id")
    if user_id is None and program_id is None and not is_admin(actor):
        user_id = actor.id

    allowed = is_admin(actor)
    if program_id is not None:
        allowed = can_view_audit_log(actor, program_id=program_id)
    if user_id is not None:
        target = user_service.get_user(user_id)
        allowed = can_view_audit_log(actor, target=target) and (
            program_id is None or allowed
        )
    check_permission(allowed, actor, "view the audit log")

    q = audit_service.audit_query(user_id=user_id, program_id=program_id)
    action = request.args.get("action")
    if action:
        q = q.filter(AuditLog.action.startswith(action.upper()))
    return q, program_id


@audit_bp.route("", methods=["GET"])
@login_required
def list_audit_logs():
    q, _ = _filtered_query()
    items, total = paginate_query(q)
    return jsonify({
        "audit_logs": [log.to_dict() for log in items],
        "total": total,
    }), 200


@audit_bp.route("/export", methods=["GET"])
@login_required
def export_audit_logs():
    q, program_id = _filtered_query()
    content = export_service.audit_log_to_csv(q.all())
    export_service.record_export(current_user(), "audit_log", "csv", program_id=program_id)
    filename = f"AuditLog_{datetime.now(timezone.utc).strftime('%Y%m%d')}.csv"
    return Response(
        content,
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
