"""
Milestone Blueprint — goals, weekly reports, feedback and assignments.

Endpoints (all under /api/v1):
    GET    /users/<uid>/milestones            — ?program_id=
    POST   /users/<uid>/milestones            — self-created goal
    PUT    /milestones/<id>
    DELETE /milestones/<id>
    PATCH  /milestones/<id>/status            — {"status": "..."}
    GET    /milestones/<id>/progress
    POST   /milestones/<id>/reports           — weekly progress report
    POST   /reports/<id>/feedback             — manager feedback on a report

    POST   /programs/<id>/assignments         — assign to one or many participants
    GET    /users/<uid>/assignments           — pending / accepted / declined buckets
    POST   /milestones/<id>/accept
    POST   /milestones/<id>/decline           — {"reason": "..."}
    POST   /milestones/<id>/respond           — {"accepted": bool, "comment": "..."}
"""

from flask import Blueprint, jsonify, request

from goldenbridge.auth import current_user, login_required
from goldenbridge.blueprints import json_body, optional_int
from goldenbridge.services import milestone_service, program_service, user_service
from goldenbridge.services.permission import can_view_milestones, check_permission
from goldenbridge.utils.errors import E, api_error

milestone_bp = Blueprint("milestone", __name__, url_prefix="/api/v1")


def _visible_milestone(milestone_id):
    actor = current_user()
    milestone = milestone_service.get_milestone(milestone_id)
    owner = user_service.get_user(milestone.user_id)
    check_permission(can_view_milestones(actor, owner), actor, "view milestones")
    return milestone


# ═══════════════════════════════════════════════════════════════════════════
#  MILESTONES
# ═══════════════════════════════════════════════════════════════════════════

@milestone_bp.route("/users/<int:user_id>/milestones", methods=["GET"])
@login_required
def list_milestones(user_id):
    owner = user_service.get_user(user_id)
    program_id = optional_int(request.args.get("program_id"), "program_id")
    milestones = milestone_service.list_milestones(current_user(), owner, program_id)
    return jsonify({"items": [m.to_dict() for m in milestones], "total": len(milestones)}), 200


@milestone_bp.route("/users/<int:user_id>/milestones", methods=["POST"])
@login_required
def create_milestone(user_id):
    data = json_body()
    if not (data.get("title") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "Title is required")
    owner = user_service.get_user(user_id)
    data["program_id"] = optional_int(data.get("program_id"), "program_id")
    milestone = milestone_service.create_milestone(current_user(), owner, data)
    return jsonify(milestone.to_dict()), 201


@milestone_bp.route("/milestones/<int:milestone_id>", methods=["PUT"])
@login_required
def update_milestone(milestone_id):
    milestone = _visible_milestone(milestone_id)
    milestone = milestone_service.update_milestone(current_user(), milestone, json_body())
    return jsonify(milestone.to_dict()), 200


@milestone_bp.route("/milestones/<int:milestone_id>", methods=["DELETE"])
@login_required
def delete_milestone(milestone_id):
    milestone = _visible_milestone(milestone_id)
    milestone_service.delete_milestone(current_user(), milestone)
    return jsonify({"deleted": True, "id": milestone_id}), 200


@milestone_bp.route("/milestones/<int:milestone_id>/status", methods=["PATCH"])
@login_required
def update_status(milestone_id):
    status = json_body().get("status")
    if not status:
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    milestone = _visible_milestone(milestone_id)
    milestone = milestone_service.update_status(current_user(), milestone, status)
    return jsonify(milestone.to_dict()), 200


@milestone_bp.route("/milestones/<int:milestone_id>/progress", methods=["GET"])
@login_required
def milestone_progress(milestone_id):
    milestone = _visible_milestone(milestone_id)
    return jsonify(milestone_service.milestone_progress(milestone)), 200


# ═══════════════════════════════════════════════════════════════════════════
#  REPORTS & FEEDBACK
# ═══════════════════════════════════════════════════════════════════════════

@milestone_bp.route("/milestones/<int:milestone_id>/reports", methods=["POST"])
@login_required
def add_report(milestone_id):
    milestone = _visible_milestone(milestone_id)
    report = milestone_service.add_progress_report(current_user(), milestone, json_body())
    return jsonify(report.to_dict()), 201


@milestone_bp.route("/reports/<int:report_id>/feedback", methods=["POST"])
@login_required
def add_feedback(report_id):
    feedback = json_body().get("feedback")
    if not (feedback or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "feedback is required")
    report = milestone_service.get_report(report_id)
    entry = milestone_service.add_feedback(current_user(), report, feedback)
    return jsonify(entry.to_dict()), 201


# ═══════════════════════════════════════════════════════════════════════════
#  ASSIGNMENTS
# ═══════════════════════════════════════════════════════════════════════════

@milestone_bp.route("/programs/<int:program_id>/assignments", methods=["POST"])
@login_required
def assign_milestone(program_id):
    """
    Body: {"participant_ids": [..], "title": "...", "end_date": "...",
           "start_date"?, "description"?, "category"?, "is_required"?, "can_decline"?}

    201 when at least one milestone was created, 422 when none were.
    """
    data = json_body()
    raw_ids = data.get("participant_ids") or []
    if not isinstance(raw_ids, list):
        return api_error(E.VALIDATION_INVALID, "participant_ids must be a list")
    participant_ids = [optional_int(pid, "participant_ids") for pid in raw_ids]

    program = program_service.get_program(program_id)
    result = milestone_service.assign_milestone(current_user(), program, participant_ids, data)
    body = {
        "created": [m.to_dict(include_reports=False) for m in result["created"]],
        "failed": result["failed"],
    }
    if not result["created"]:
        return api_error(E.VALIDATION_CONSTRAINT, "No milestones were assigned", details=body)
    return jsonify(body), 201


@milestone_bp.route("/users/<int:user_id>/assignments", methods=["GET"])
@login_required
def list_assignments(user_id):
    owner = user_service.get_user(user_id)
    milestones = milestone_service.list_milestones(current_user(), owner)
    buckets = milestone_service.categorize_assignments(milestones)
    return jsonify({
        name: [m.to_dict(include_reports=False) for m in items]
        for name, items in buckets.items()
    }), 200


@milestone_bp.route("/milestones/<int:milestone_id>/accept", methods=["POST"])
@login_required
def accept_assignment(milestone_id):
    milestone = milestone_service.get_milestone(milestone_id)
    milestone = milestone_service.accept_assignment(current_user(), milestone)
    return jsonify(milestone.to_dict()), 200


@milestone_bp.route("/milestones/<int:milestone_id>/decline", methods=["POST"])
@login_required
def decline_assignment(milestone_id):
    reason = json_body().get("reason")
    milestone = milestone_service.get_milestone(milestone_id)
    milestone = milestone_service.decline_assignment(current_user(), milestone, reason)
    return jsonify(milestone.to_dict()), 200


@milestone_bp.route("/milestones/<int:milestone_id>/respond", methods=["POST"])
@login_required
def respond_to_decline(milestone_id):
    data = json_body()
    if "accepted" not in data:
        return api_error(E.VALIDATION_REQUIRED, "accepted is required")
    milestone = milestone_service.get_milestone(milestone_id)
    milestone = milestone_service.respond_to_decline(
        current_user(), milestone, bool(data["accepted"]), data.get("comment") or "",
    )
    return jsonify(milestone.to_dict()), 200
