"""
Program Blueprint — programs, membership and invites.

Endpoints (all under /api/v1):
    GET    /programs                                 — programs visible to the caller
    POST   /programs                                 — admin creates a program
    GET    /programs/<id>                            — one program
    PUT    /programs/<id>                            — update name, description, dates
    DELETE /programs/<id>                            — archive (soft delete)
    GET    /programs/<id>/statistics                 — counts and time progress
    POST   /programs/<id>/participants               — enroll by user_id or email
    DELETE /programs/<id>/participants/<uid>
    POST   /programs/<id>/managers                   — admin attaches a manager
    DELETE /programs/<id>/managers/<uid>
    GET    /programs/<id>/invites                    — ?status=pending|accepted|expired
    DELETE /programs/<id>/invites/<invite_id>        — cancel an invite
    GET    /invites/<code>                           — public invite lookup for sign-up
    POST   /invites/<code>/accept                    — logged-in user joins via invite
"""

import logging

from flask import Blueprint, jsonify, request

from goldenbridge.auth import current_user, login_required
from goldenbridge.blueprints import json_body, optional_int
from goldenbridge.core.exceptions import NotFoundError
from goldenbridge.models.program import INVITE_STATUSES
from goldenbridge.services import program_service
from goldenbridge.services.permission import is_admin, manager_of, participant_of
from goldenbridge.utils.errors import E, api_error

logger = logging.getLogger(__name__)

program_bp = Blueprint("program", __name__, url_prefix="/api/v1")


def _visible_program(program_id):
    """Load a program the caller belongs to; others look missing."""
    actor = current_user()
    program = program_service.get_program(program_id, include_archived=is_admin(actor))
    if not (is_admin(actor) or manager_of(actor, program.id) or participant_of(actor, program.id)):
        raise NotFoundError("Program", program_id)
    return program


# ═══════════════════════════════════════════════════════════════════════════
#  PROGRAMS
# ═══════════════════════════════════════════════════════════════════════════

@program_bp.route("/programs", methods=["GET"])
@login_required
def list_programs():
    programs = program_service.list_programs_for_user(current_user())
    return jsonify({"items": [p.to_dict() for p in programs], "total": len(programs)}), 200


@program_bp.route("/programs", methods=["POST"])
@login_required
def create_program():
    data = json_body()
    if not (data.get("name") or "").strip():
        return api_error(E.VALIDATION_REQUIRED, "Program name is required")
    program = program_service.create_program(current_user(), data)
    return jsonify(program.to_dict()), 201


@program_bp.route("/programs/<int:program_id>", methods=["GET"])
@login_required
def get_program(program_id):
    return jsonify(_visible_program(program_id).to_dict()), 200


@program_bp.route("/programs/<int:program_id>", methods=["PUT"])
@login_required
def update_program(program_id):
    program = _visible_program(program_id)
    program = program_service.update_program(current_user(), program, json_body())
    return jsonify(program.to_dict()), 200


@program_bp.route("/programs/<int:program_id>", methods=["DELETE"])
@login_required
def archive_program(program_id):
    program = program_service.get_program(program_id)
    program = program_service.archive_program(current_user(), program)
    return jsonify(program.to_dict()), 200


@program_bp.route("/programs/<int:program_id>/statistics", methods=["GET"])
@login_required
def program_statistics(program_id):
    program = _visible_program(program_id)
    return jsonify(program_service.program_statistics(program)), 200


# ═══════════════════════════════════════════════════════════════════════════
#  MEMBERSHIP
# ═══════════════════════════════════════════════════════════════════════════

@program_bp.route("/programs/<int:program_id>/participants", methods=["POST"])
@login_required
def add_participant(program_id):
    """Body: {"user_id": 7} or {"email": "new@example.com"}."""
    data = json_body()
    program = _visible_program(program_id)
    user_id = optional_int(data.get("user_id"), "user_id")
    if user_id is not None:
        enrollment = program_service.add_participant(current_user(), program, user_id)
        return jsonify({"status": "enrolled", "enrollment": enrollment.to_dict()}), 201
    if data.get("email"):
        result = program_service.add_participant_by_email(
            current_user(), program, data["email"], origin=request.headers.get("Origin"),
        )
        return jsonify(result), 201
    return api_error(E.VALIDATION_REQUIRED, "user_id or email is required")


@program_bp.route("/programs/<int:program_id>/participants/<int:user_id>", methods=["DELETE"])
@login_required
def remove_participant(program_id, user_id):
    program = _visible_program(program_id)
    program_service.remove_participant(current_user(), program, user_id)
    return jsonify({"deleted": True, "user_id": user_id}), 200


@program_bp.route("/programs/<int:program_id>/managers", methods=["POST"])
@login_required
def add_manager(program_id):
    data = json_body()
    user_id = optional_int(data.get("user_id"), "user_id")
    if user_id is None:
        return api_error(E.VALIDATION_REQUIRED, "user_id is required")
    program = program_service.get_program(program_id)
    program = program_service.add_manager(current_user(), program, user_id)
    return jsonify(program.to_dict()), 201


@program_bp.route("/programs/<int:program_id>/managers/<int:user_id>", methods=["DELETE"])
@login_required
def remove_manager(program_id, user_id):
    program = program_service.get_program(program_id)
    program_service.remove_manager(current_user(), program, user_id)
    return jsonify({"deleted": True, "user_id": user_id}), 200


# ═══════════════════════════════════════════════════════════════════════════
#  INVITES
# ═══════════════════════════════════════════════════════════════════════════

@program_bp.route("/programs/<int:program_id>/invites", methods=["GET"])
@login_required
def list_invites(program_id):
    status = request.args.get("status") or None
    if status and status not in INVITE_STATUSES:
        return api_error(E.VALIDATION_INVALID, f"status must be one of {sorted(INVITE_STATUSES)}")
    program = _visible_program(program_id)
    invites = program_service.list_invites(current_user(), program, status)
    return jsonify({"items": [i.to_dict() for i in invites], "total": len(invites)}), 200


@program_bp.route("/programs/<int:program_id>/invites/<int:invite_id>", methods=["DELETE"])
@login_required
def cancel_invite(program_id, invite_id):
    program = _visible_program(program_id)
    program_service.cancel_invite(current_user(), program, invite_id)
    return jsonify({"deleted": True, "id": invite_id}), 200


@program_bp.route("/invites/<code>", methods=["GET"])
def get_invite(code):
    """Public: the sign-up page shows which program and email the code is for."""
    invite = program_service.get_pending_invite(code)
    program = program_service.get_program(invite.program_id)
    return jsonify({
        "email": invite.email,
        "program_id": program.id,
        "program_name": program.name,
        "expires_at": invite.expires_at.isoformat() if invite.expires_at else None,
    }), 200


@program_bp.route("/invites/<code>/accept", methods=["POST"])
@login_required
def accept_invite(code):
    invite = program_service.accept_invite(code, current_user())
    return jsonify(invite.to_dict()), 200
