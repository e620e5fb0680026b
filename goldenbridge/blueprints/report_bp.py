"""
Program reports and data exports.

    GET /api/v1/programs/<id>/report
        format: json | csv | html | xlsx (default: json)
    GET /api/v1/programs/<id>/progress             — per-participant progress as JSON
    GET /api/v1/programs/<id>/export/progress      — per-participant progress CSV
    GET /api/v1/users/<uid>/export/expenses        — every cycle's expenses as CSV
    GET /api/v1/users/<uid>/export/milestones      — format: csv | xlsx (default: csv)

Content is built in memory; nothing is written to disk.
"""

import logging
from datetime import datetime, timezone

from flask import Blueprint, Response, jsonify, request, send_file

from goldenbridge.auth import current_user, login_required
from goldenbridge.services import (
    export_service,
    finance_service,
    milestone_service,
    program_service,
    report_service,
    user_service,
)
from goldenbridge.services.permission import can_export_data, check_permission
from goldenbridge.utils.errors import E, api_error

logger = logging.getLogger(__name__)

report_bp = Blueprint("report", __name__, url_prefix="/api/v1")

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _stamp():
    return datetime.now(timezone.utc).strftime("%Y%m%d")


def _attachment(content, mimetype, filename):
    return Response(
        content,
        mimetype=mimetype,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@report_bp.route("/programs/<int:program_id>/report", methods=["GET"])
@login_required
def program_report(program_id):
    fmt = request.args.get("format", "json").lower()
    if fmt not in export_service.EXPORT_FORMATS:
        return api_error(
            E.VALIDATION_INVALID,
            f"Unsupported format. Supported values: {', '.join(export_service.EXPORT_FORMATS)}.",
        )

    actor = current_user()
    program = program_service.get_program(program_id, include_archived=True)
    report = report_service.generate_program_report(actor, program)
    if fmt == "json":
        return jsonify(report), 200

    export_service.record_export(actor, "program_report", fmt, program_id=program.id)
    name = f"Program{program.id}_Report_{_stamp()}"
    if fmt == "csv":
        return _attachment(export_service.report_to_csv(report), "text/csv", f"{name}.csv")
    if fmt == "html":
        return Response(export_service.report_to_html(report), mimetype="text/html")
    buf = export_service.report_to_xlsx(report, report_service.participant_progress(program))
    return send_file(buf, mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=f"{name}.xlsx")


@report_bp.route("/programs/<int:program_id>/progress", methods=["GET"])
@login_required
def program_progress(program_id):
    actor = current_user()
    program = program_service.get_program(program_id, include_archived=True)
    check_permission(can_export_data(actor, program.id), actor, "view this program's progress")
    rows = report_service.participant_progress(program)
    return jsonify({"items": rows, "total": len(rows)}), 200


@report_bp.route("/programs/<int:program_id>/export/progress", methods=["GET"])
@login_required
def export_progress(program_id):
    actor = current_user()
    program = program_service.get_program(program_id, include_archived=True)
    check_permission(can_export_data(actor, program.id), actor, "export this program")
    rows = report_service.participant_progress(program)
    export_service.record_export(actor, "participant_progress", "csv", program_id=program.id)
    return _attachment(
        export_service.participant_progress_to_csv(rows),
        "text/csv",
        f"Program{program.id}_Progress_{_stamp()}.csv",
    )


@report_bp.route("/users/<int:user_id>/export/expenses", methods=["GET"])
@login_required
def export_expenses(user_id):
    actor = current_user()
    owner = user_service.get_user(user_id)
    check_permission(can_export_data(actor, target=owner), actor, "export this user's data")
    cycles = finance_service.list_cycles(actor, owner)
    export_service.record_export(actor, "expenses", "csv", target_id=owner.id)
    return _attachment(
        export_service.expenses_to_csv(cycles),
        "text/csv",
        f"User{owner.id}_Expenses_{_stamp()}.csv",
    )


@report_bp.route("/users/<int:user_id>/export/milestones", methods=["GET"])
@login_required
def export_milestones(user_id):
    fmt = request.args.get("format", "csv").lower()
    if fmt not in ("csv", "xlsx"):
        return api_error(E.VALIDATION_INVALID, "Unsupported format. Supported values: csv, xlsx.")

    actor = current_user()
    owner = user_service.get_user(user_id)
    check_permission(can_export_data(actor, target=owner), actor, "export this user's data")
    milestones = milestone_service.list_milestones(actor, owner)
    export_service.record_export(actor, "milestones", fmt, target_id=owner.id)
    name = f"User{owner.id}_Milestones_{_stamp()}"
    if fmt == "xlsx":
        buf = export_service.milestones_to_xlsx(milestones)
        return send_file(buf, mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=f"{name}.xlsx")
    return _attachment(export_service.milestones_to_csv(milestones), "text/csv", f"{name}.csv")
