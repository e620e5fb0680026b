"""
Program Service — program lifecycle, membership and invites.

Membership lives only in the ``program_managers`` / ``program_participants``
tables, so a program's participant list and a user's program list are two
reads of the same rows and cannot drift apart.
"""

import logging
from datetime import date, datetime, timedelta, timezone

from flask import current_app, has_app_context

from goldenbridge.core.exceptions import ConflictError, NotFoundError, ValidationError
from goldenbridge.models import db
from goldenbridge.models.program import (
    DEFAULT_INVITE_EXPIRY_DAYS,
    Invite,
    Program,
    ProgramManager,
    ProgramParticipant,
    ProgramStatus,
)
from goldenbridge.models.user import User, UserRole, normalize_email
from goldenbridge.services.permission import (
    can_create_program,
    can_manage_program,
    check_permission,
    is_admin,
    is_program_manager,
)
from goldenbridge.services.user_service import validate_email_address
from goldenbridge.utils.helpers import ensure_utc, parse_date_input

logger = logging.getLogger(__name__)


# ── Lookups ──────────────────────────────────────────────────────────────────

def get_program(program_id, include_archived=False) -> Program:
    program = db.session.get(Program, program_id)
    if not program or (program.is_deleted and not include_archived):
        raise NotFoundError("Program", program_id)
    return program


def list_programs_for_user(actor) -> list[Program]:
    """Admins see every program, managers what they manage, participants where enrolled."""
    q = Program.query_active().order_by(Program.start_date.desc(), Program.id.desc())
    if is_admin(actor):
        return q.all()
    ids = actor.managed_program_ids if is_program_manager(actor) else actor.program_ids
    if not ids:
        return []
    return q.filter(Program.id.in_(ids)).all()


# ── Create / update / archive ────────────────────────────────────────────────

def _parse_range(data, program=None):
    try:
        start = parse_date_input(data.get("start_date"), "start_date")
        end = parse_date_input(data.get("end_date"), "end_date")
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    start = start or (program.start_date if program else None)
    end = end or (program.end_date if program else None)
    errors = {}
    if not start:
        errors["start_date"] = "Start date is required"
    if not end:
        errors["end_date"] = "End date is required"
    if start and end and start > end:
        errors["end_date"] = "End date must be on or after the start date"
    if errors:
        raise ValidationError("Invalid program dates", details=errors)
    return start, end


def create_program(actor, data: dict) -> Program:
    check_permission(can_create_program(actor), actor, "create programs")
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("Program name is required", details={"name": "required"})
    start, end = _parse_range(data)

    program = Program(
        name=name,
        description=(data.get("description") or "").strip(),
        start_date=start,
        end_date=end,
        created_by=actor.id,
    )
    db.session.add(program)
    db.session.flush()

    for manager_id in data.get("manager_ids") or []:
        _attach_manager(program, _get_user(manager_id))

    db.session.commit()
    logger.info("Program %s created by %s", program.id, actor.id)
    return program


def update_program(actor, program, data: dict) -> Program:
    check_permission(can_manage_program(actor, program.id), actor, "manage this program")
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Program name is required", details={"name": "required"})
        program.name = name
    if "description" in data:
        program.description = (data.get("description") or "").strip()
    if "start_date" in data or "end_date" in data:
        program.start_date, program.end_date = _parse_range(data, program)
    db.session.commit()
    return program


def archive_program(actor, program) -> Program:
    """Soft delete: the program stays readable and reports as completed."""
    check_permission(is_admin(actor), actor, "archive programs")
    program.soft_delete()
    db.session.commit()
    logger.info("Program %s archived by %s", program.id, actor.id)
    return program


# ── Membership ───────────────────────────────────────────────────────────────

def _get_user(user_id) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user


def _attach_manager(program, user):
    if user.role != UserRole.PROGRAM_MANAGER.value:
        raise ValidationError(
            "Only program managers can manage programs",
            details={"user_id": user.id, "role": user.role},
        )
    if any(m.user_id == user.id for m in program.managers):
        raise ConflictError("ProgramManager", "user_id", user.id,
                            message="User already manages this program")
    program.managers.append(ProgramManager(user=user))


def add_manager(actor, program, user_id) -> Program:
    check_permission(is_admin(actor), actor, "assign program managers")
    _attach_manager(program, _get_user(user_id))
    db.session.commit()
    return program


def remove_manager(actor, program, user_id) -> Program:
    check_permission(is_admin(actor), actor, "remove program managers")
    membership = ProgramManager.query.filter_by(program_id=program.id, user_id=user_id).first()
    if not membership:
        raise NotFoundError("ProgramManager", user_id)
    db.session.delete(membership)
    db.session.commit()
    return program


def _enroll(program, user) -> ProgramParticipant:
    if user.role != UserRole.PARTICIPANT.value:
        raise ValidationError(
            "Only participants can be enrolled",
            details={"user_id": user.id, "role": user.role},
        )
    existing = ProgramParticipant.query.filter_by(program_id=program.id, user_id=user.id).first()
    if existing:
        raise ConflictError("ProgramParticipant", "user_id", user.id,
                            message="Participant is already in this program")
    enrollment = ProgramParticipant(user=user, status="active")
    program.participants.append(enrollment)
    return enrollment


def add_participant(actor, program, user_id) -> ProgramParticipant:
    check_permission(can_manage_program(actor, program.id), actor, "manage this program")
    enrollment = _enroll(program, _get_user(user_id))
    db.session.commit()
    logger.info("User %s enrolled in program %s", user_id, program.id)
    return enrollment


def remove_participant(actor, program, user_id) -> Program:
    check_permission(can_manage_program(actor, program.id), actor, "manage this program")
    enrollment = ProgramParticipant.query.filter_by(program_id=program.id, user_id=user_id).first()
    if not enrollment:
        raise NotFoundError("ProgramParticipant", user_id)
    db.session.delete(enrollment)
    db.session.commit()
    return program


# ── Invites ──────────────────────────────────────────────────────────────────

def _invite_expiry_days():
    if has_app_context():
        return current_app.config.get("INVITE_EXPIRY_DAYS", DEFAULT_INVITE_EXPIRY_DAYS)
    return DEFAULT_INVITE_EXPIRY_DAYS


def _origin(origin=None):
    if origin:
        return origin.rstrip("/")
    if has_app_context():
        return current_app.config.get("APP_ORIGIN", "").rstrip("/")
    return ""


def invite_url(invite, origin=None) -> str:
    return f"{_origin(origin)}/signup?invite={invite.invite_code}"


def add_participant_by_email(actor, program, email, origin=None) -> dict:
    """
    Enroll an existing account directly, or create a pending invite.

    Returns ``{"status": "enrolled", "user": ...}`` or
    ``{"status": "invited", "invite": ..., "invite_url": ...}``.
    """
    check_permission(can_manage_program(actor, program.id), actor, "manage this program")
    email = validate_email_address(email)

    user = User.query.filter_by(email=email).first()
    if user:
        _enroll(program, user)
        db.session.commit()
        logger.info("User %s enrolled in program %s by email", user.id, program.id)
        return {"status": "enrolled", "user": user.to_dict()}

    pending = Invite.query.filter_by(program_id=program.id, email=email, status="pending").first()
    if pending and not _is_expired(pending):
        raise ConflictError("Invite", "email", email,
                            message="An invite has already been sent to this email")
    if pending:
        pending.status = "expired"

    now = datetime.now(timezone.utc)
    invite = Invite(
        program_id=program.id,
        email=email,
        invited_by=actor.id,
        created_at=now,
        expires_at=now + timedelta(days=_invite_expiry_days()),
    )
    db.session.add(invite)
    db.session.commit()
    logger.info("Invite %s created for program %s", invite.id, program.id)
    return {"status": "invited", "invite": invite.to_dict(), "invite_url": invite_url(invite, origin)}


def _is_expired(invite, now=None) -> bool:
    now = now or datetime.now(timezone.utc)
    expires = ensure_utc(invite.expires_at)
    return expires is not None and expires < now


def list_invites(actor, program, status=None) -> list[Invite]:
    check_permission(can_manage_program(actor, program.id), actor, "manage this program")
    q = program.invites.order_by(Invite.created_at.desc())
    if status:
        q = q.filter(Invite.status == status)
    return q.all()


def get_pending_invite(code, email=None) -> Invite:
    """Look up a usable invite; raises if it is unknown, used, expired or for another email."""
    invite = Invite.query.filter_by(invite_code=code).first()
    if not invite:
        raise NotFoundError("Invite", code)
    if invite.status != "pending":
        raise ValidationError("This invite is no longer valid", details={"status": invite.status})
    if _is_expired(invite):
        invite.status = "expired"
        db.session.commit()
        raise ValidationError("This invite has expired", details={"status": "expired"})
    if invite.program is None or invite.program.is_deleted:
        raise ValidationError("This program is no longer accepting participants",
                              details={"program_id": invite.program_id})
    if email is not None and normalize_email(email) != invite.email:
        raise ValidationError("This invite was issued to a different email",
                              details={"email": "mismatch"})
    return invite


def accept_invite(code, user) -> Invite:
    """Enroll *user* in the invite's program and close the invite."""
    invite = get_pending_invite(code, user.email)
    program = get_program(invite.program_id)
    _enroll(program, user)
    invite.status = "accepted"
    invite.accepted_at = datetime.now(timezone.utc)
    invite.accepted_by = user.id
    db.session.commit()
    logger.info("Invite %s accepted by user %s", invite.id, user.id)
    return invite


def cancel_invite(actor, program, invite_id) -> None:
    check_permission(can_manage_program(actor, program.id), actor, "manage this program")
    invite = Invite.query.filter_by(id=invite_id, program_id=program.id).first()
    if not invite:
        raise NotFoundError("Invite", invite_id)
    db.session.delete(invite)
    db.session.commit()


def expire_invites(now=None) -> int:
    """Mark overdue pending invites as expired. Returns how many changed."""
    now = now or datetime.now(timezone.utc)
    count = 0
    for invite in Invite.query.filter_by(status="pending").all():
        if _is_expired(invite, now):
            invite.status = "expired"
            count += 1
    if count:
        db.session.commit()
        logger.info("Expired %d invite(s)", count)
    return count


# ── Statistics ───────────────────────────────────────────────────────────────

def program_statistics(program, today=None) -> dict:
    """Membership counts plus elapsed-time progress of the program window."""
    today = today or date.today()
    status = program.status_on(today)
    days_remaining = None
    completion = 0
    if status == ProgramStatus.ACTIVE.value:
        days_remaining = max(0, (program.end_date - today).days)
        total_days = (program.end_date - program.start_date).days
        if total_days <= 0:
            completion = 100
        else:
            passed = (today - program.start_date).days
            completion = min(100, max(0, round(passed / total_days * 100)))
    elif status == ProgramStatus.COMPLETED.value:
        days_remaining = 0
        completion = 100

    return {
        "program_id": program.id,
        "status": status,
        "participant_count": len(program.participants),
        "manager_count": len(program.managers),
        "duration_days": (program.end_date - program.start_date).days,
        "days_remaining": days_remaining,
        "completion_percentage": completion,
    }
