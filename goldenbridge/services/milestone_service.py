"""
Milestone Service — goals, weekly progress reports, manager feedback and
the assignment / decline workflow.

Assignment state machine (see ``Milestone.assignment_state``)::

    assigned ──accept──▶ accepted
        │
        └──decline──▶ declined ──respond──▶ responded

A milestone created with ``can_decline=False`` starts out accepted.
Accepting moves a ``not_started`` milestone to ``in_progress``; declining
leaves the milestone status untouched.

Bulk assignment is not atomic: each participant is committed
on its own and failures are reported next to the successes.
"""

import logging
import math
from datetime import date, datetime, timezone

from goldenbridge.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDenied,
    TransitionError,
    ValidationError,
)
from goldenbridge.models import db
from goldenbridge.models.milestone import (
    MILESTONE_CATEGORIES,
    MILESTONE_STATUSES,
    AssignmentState,
    AssignmentType,
    ManagerFeedback,
    Milestone,
    ProgressReport,
)
from goldenbridge.models.program import ProgramManager
from goldenbridge.models.user import User
from goldenbridge.services import audit_service
from goldenbridge.services.notification_service import NotificationService
from goldenbridge.services.permission import (
    can_assign_milestones,
    can_manage_program,
    can_provide_feedback,
    can_view_milestones,
    check_permission,
    is_self,
    participant_of,
)
from goldenbridge.utils.helpers import parse_date_input

logger = logging.getLogger(__name__)


# ── Lookups ──────────────────────────────────────────────────────────────────

def get_milestone(milestone_id) -> Milestone:
    milestone = db.session.get(Milestone, milestone_id)
    if not milestone:
        raise NotFoundError("Milestone", milestone_id)
    return milestone


def get_report(report_id) -> ProgressReport:
    report = db.session.get(ProgressReport, report_id)
    if not report:
        raise NotFoundError("ProgressReport", report_id)
    return report


def _owner(milestone) -> User:
    return db.session.get(User, milestone.user_id)


def list_milestones(actor, owner, program_id=None) -> list[Milestone]:
    check_permission(can_view_milestones(actor, owner), actor, "view milestones")
    q = Milestone.query.filter_by(user_id=owner.id)
    if program_id is not None:
        q = q.filter_by(program_id=program_id)
    return q.order_by(Milestone.end_date, Milestone.id).all()


# ── Validation ───────────────────────────────────────────────────────────────

def _parse_window(data, default_start=None):
    try:
        start = parse_date_input(data.get("start_date"), "start_date") or default_start
        end = parse_date_input(data.get("end_date"), "end_date")
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if not end:
        raise ValidationError("End date is required", details={"end_date": "required"})
    if not start:
        raise ValidationError("Start date is required", details={"start_date": "required"})
    if end <= start:
        raise ValidationError("End date must be after start date", details={"end_date": "before_start"})
    return start, end


def _validate_category(category):
    category = category or "other"
    if category not in MILESTONE_CATEGORIES:
        raise ValidationError(
            f"Category must be one of {sorted(MILESTONE_CATEGORIES)}",
            details={"category": category},
        )
    return category


def _validate_status(status):
    if status not in MILESTONE_STATUSES:
        raise ValidationError(
            f"Status must be one of {sorted(MILESTONE_STATUSES)}",
            details={"status": status},
        )
    return status


def _audit_cross_user(actor, owner, action, details, program_id=None):
    if is_self(actor, owner):
        return
    audit_service.log_audit_action(
        actor.id, action, owner.id, details,
        program_id=audit_service.audit_program_scope(actor, owner, program_id),
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Milestone CRUD
# ═══════════════════════════════════════════════════════════════════════════

def create_milestone(actor, owner, data: dict) -> Milestone:
    """Self-created goal. Managers create goals for others through ``assign_milestone``."""
    check_permission(is_self(actor, owner), actor, "create milestones for another user")
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("Title is required", details={"title": "required"})
    start, end = _parse_window(data)
    program_id = data.get("program_id")
    if program_id is not None and not participant_of(owner, program_id):
        raise ValidationError("You are not enrolled in this program",
                              details={"program_id": program_id})

    milestone = Milestone(
        user_id=owner.id,
        program_id=program_id,
        title=title,
        description=(data.get("description") or "").strip(),
        category=_validate_category(data.get("category")),
        start_date=start,
        end_date=end,
        status=_validate_status(data.get("status") or "not_started"),
        assignment_type=AssignmentType.SELF_CREATED.value,
    )
    db.session.add(milestone)
    db.session.commit()
    return milestone


def update_milestone(actor, milestone, data: dict) -> Milestone:
    owner = _owner(milestone)
    check_permission(can_assign_milestones(actor, owner), actor, "edit milestones")
    if "title" in data:
        title = (data.get("title") or "").strip()
        if not title:
            raise ValidationError("Title is required", details={"title": "required"})
        milestone.title = title
    if "description" in data:
        milestone.description = (data.get("description") or "").strip()
    if "category" in data:
        milestone.category = _validate_category(data.get("category"))
    if "status" in data:
        milestone.status = _validate_status(data.get("status"))
    if "start_date" in data or "end_date" in data:
        merged = {
            "start_date": data.get("start_date") or milestone.start_date,
            "end_date": data.get("end_date") or milestone.end_date,
        }
        milestone.start_date, milestone.end_date = _parse_window(merged)
    db.session.commit()

    _audit_cross_user(actor, owner, audit_service.EDIT_MILESTONE, {
        "milestoneId": milestone.id,
        "milestoneTitle": milestone.title,
        "changes": sorted(k for k in data if k != "reason"),
    }, milestone.program_id)
    return milestone


def update_status(actor, milestone, status) -> Milestone:
    return update_milestone(actor, milestone, {"status": status})


def delete_milestone(actor, milestone) -> None:
    """Hard delete; progress reports and their feedback go with it."""
    owner = _owner(milestone)
    check_permission(can_assign_milestones(actor, owner), actor, "delete milestones")
    details = {"milestoneId": milestone.id, "milestoneTitle": milestone.title}
    program_id = milestone.program_id
    db.session.delete(milestone)
    db.session.commit()
    _audit_cross_user(actor, owner, audit_service.DELETE_MILESTONE, details, program_id)


# ═══════════════════════════════════════════════════════════════════════════
#  Progress reports & feedback
# ═══════════════════════════════════════════════════════════════════════════

def current_week(milestone, today=None) -> int:
    """1-based week of *today* relative to the milestone start."""
    today = today or date.today()
    days = abs((today - milestone.start_date).days)
    return max(1, math.ceil(days / 7))


def add_progress_report(actor, milestone, data: dict) -> ProgressReport:
    owner = _owner(milestone)
    check_permission(is_self(actor, owner), actor, "report progress on this milestone")

    content = (data.get("content") or "").strip()
    if not content:
        raise ValidationError("Progress report content is required", details={"content": "required"})
    week = data.get("week_number")
    try:
        week = int(week) if week not in (None, "") else current_week(milestone)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Please select a valid week", details={"week_number": "invalid"}) from exc
    if week < 1:
        raise ValidationError("Please select a valid week", details={"week_number": "invalid"})
    if any(r.week_number == week for r in milestone.reports):
        raise ConflictError("ProgressReport", "week_number", week,
                            message=f"A report already exists for Week {week}")

    try:
        report_date = parse_date_input(data.get("date"), "date") or date.today()
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    try:
        completion = int(round(float(data.get("completion_percentage") or 0)))
        hours = data.get("hours_spent")
        hours = float(hours) if hours not in (None, "") else None
    except (TypeError, ValueError, OverflowError) as exc:
        raise ValidationError("Hours and completion must be numbers") from exc
    if hours is not None and not math.isfinite(hours):
        raise ValidationError("Hours and completion must be numbers", details={"hours_spent": "invalid"})

    report = ProgressReport(
        week_number=week,
        report_date=report_date,
        content=content,
        hours_spent=hours,
        completion_percentage=min(100, max(0, completion)),
    )
    milestone.reports.append(report)
    db.session.commit()
    return report


def add_feedback(actor, report, feedback) -> ManagerFeedback:
    milestone = report.milestone
    owner = _owner(milestone)
    check_permission(can_provide_feedback(actor, owner), actor, "give feedback")
    feedback = (feedback or "").strip()
    if not feedback:
        raise ValidationError("Feedback is required", details={"feedback": "required"})

    entry = ManagerFeedback(manager_id=actor.id, feedback=feedback)
    report.feedback.append(entry)
    db.session.commit()

    NotificationService.notify_feedback(owner.id, milestone, actor.name, feedback, report.id)
    audit_service.log_audit_action(
        actor.id, audit_service.PROVIDE_FEEDBACK, owner.id,
        {"milestoneId": milestone.id, "reportId": report.id, "feedback": feedback},
        program_id=audit_service.audit_program_scope(actor, owner, milestone.program_id),
    )
    return entry


def milestone_progress(milestone, today=None) -> dict:
    """Time elapsed versus latest reported completion."""
    today = today or date.today()
    total = (milestone.end_date - milestone.start_date).days
    elapsed = (today - milestone.start_date).days
    time_progress = 100 if total <= 0 else min(100, max(0, round(elapsed / total * 100)))
    latest = milestone.latest_report
    return {
        "milestone_id": milestone.id,
        "time_progress": time_progress,
        "days_remaining": max(0, (milestone.end_date - today).days),
        "overdue": today > milestone.end_date and milestone.status != "completed",
        "latest_completion": latest.completion_percentage if latest else 0,
        "report_count": len(milestone.reports),
        "current_week": current_week(milestone, today),
    }


# ═══════════════════════════════════════════════════════════════════════════
#  Assignment workflow
# ═══════════════════════════════════════════════════════════════════════════

def assign_milestone(actor, program, participant_ids, data: dict) -> dict:
    """
    Create one independent milestone per participant.

    Returns ``{"created": [Milestone, ...], "failed": [{"user_id", "error"}]}``.
    """
    check_permission(can_manage_program(actor, program.id), actor, "assign milestones in this program")

    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("Milestone title is required", details={"title": "required"})
    start, end = _parse_window(data, default_start=date.today())
    participant_ids = list(dict.fromkeys(participant_ids or []))
    if not participant_ids:
        raise ValidationError("Please select at least one participant",
                              details={"participant_ids": "required"})
    category = _validate_category(data.get("category"))
    assignment_type = (
        AssignmentType.BULK_ASSIGNED if len(participant_ids) > 1
        else AssignmentType.MANAGER_ASSIGNED
    ).value
    is_required = bool(data.get("is_required", False))
    can_decline = bool(data.get("can_decline", True))
    description = (data.get("description") or "").strip()
    program_id, program_name = program.id, program.name

    created, failed = [], []
    for user_id in participant_ids:
        participant = db.session.get(User, user_id)
        if participant is None:
            failed.append({"user_id": user_id, "error": "User not found"})
            continue
        if not participant_of(participant, program_id) or not can_assign_milestones(actor, participant):
            failed.append({"user_id": user_id, "error": "Participant is not in this program"})
            continue
        try:
            milestone = Milestone(
                user_id=participant.id,
                program_id=program_id,
                title=title,
                description=description,
                category=category,
                start_date=start,
                end_date=end,
                status="not_started",
                assigned_by=actor.id,
                assigned_at=datetime.now(timezone.utc),
                assignment_type=assignment_type,
                is_required=is_required,
                can_decline=can_decline,
            )
            db.session.add(milestone)
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            logger.exception("Assignment to user %s failed", user_id)
            failed.append({"user_id": user_id, "error": str(exc)})
            continue

        created.append(milestone)
        NotificationService.notify_assignment(participant.id, milestone, actor.name, program_name)
        audit_service.log_audit_action(
            actor.id, audit_service.ASSIGN_MILESTONE, participant.id,
            {"milestoneId": milestone.id, "milestoneTitle": title, "programId": program_id},
            program_id=program_id,
        )

    logger.info(
        "Milestone %r assigned in program %s: %d created, %d failed",
        title, program_id, len(created), len(failed),
    )
    return {"created": created, "failed": failed}


def _require_owner(actor, milestone, action):
    if not is_self(actor, _owner(milestone)):
        raise PermissionDenied(getattr(actor, "id", None), action)


def accept_assignment(actor, milestone) -> Milestone:
    _require_owner(actor, milestone, "accept this assignment")
    state = milestone.assignment_state
    if state is None:
        raise TransitionError("accept", None, "Only assigned milestones can be accepted")
    if state in (AssignmentState.DECLINED.value, AssignmentState.RESPONDED.value):
        raise TransitionError("accept", state, "A declined assignment cannot be accepted")
    if milestone.accepted_at is not None:
        raise TransitionError("accept", state, "This assignment was already accepted")

    milestone.accepted_at = datetime.now(timezone.utc)
    if milestone.status == "not_started":
        milestone.status = "in_progress"
    db.session.commit()
    logger.info("Milestone %s accepted by user %s", milestone.id, actor.id)
    return milestone


def decline_assignment(actor, milestone, reason) -> Milestone:
    _require_owner(actor, milestone, "decline this assignment")
    state = milestone.assignment_state
    if state is None:
        raise TransitionError("decline", None, "Only assigned milestones can be declined")
    if not milestone.can_decline:
        raise TransitionError("decline", state, "This assignment cannot be declined")
    if state != AssignmentState.ASSIGNED.value:
        raise TransitionError("decline", state, f"Cannot decline an assignment that is {state}")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reason is required to decline", details={"reason": "required"})

    milestone.decline_reason = reason
    milestone.declined_at = datetime.now(timezone.utc)
    db.session.commit()
    logger.info("Milestone %s declined by user %s", milestone.id, actor.id)

    manager_ids = []
    if milestone.program_id is not None:
        manager_ids = [
            m.user_id for m in
            ProgramManager.query.filter_by(program_id=milestone.program_id).all()
        ]
    for manager_id in manager_ids:
        NotificationService.notify_decline(manager_id, milestone, actor.name, reason)
    return milestone


def respond_to_decline(actor, milestone, accepted, comment="") -> Milestone:
    owner = _owner(milestone)
    check_permission(can_assign_milestones(actor, owner), actor, "respond to this decline")
    if is_self(actor, owner):
        raise PermissionDenied(actor.id, "respond to your own decline")
    state = milestone.assignment_state
    if state != AssignmentState.DECLINED.value:
        raise TransitionError("respond", state, "Only a declined assignment awaiting review can be answered")

    comment = (comment or "").strip()
    milestone.response_accepted = bool(accepted)
    milestone.response_comment = comment
    milestone.responded_at = datetime.now(timezone.utc)
    db.session.commit()

    NotificationService.notify_decline_response(owner.id, milestone, actor.name, accepted, comment)
    audit_service.log_audit_action(
        actor.id, audit_service.RESPOND_TO_DECLINE, owner.id,
        {"milestoneId": milestone.id, "accepted": bool(accepted), "comment": comment},
        program_id=audit_service.audit_program_scope(actor, owner, milestone.program_id),
    )
    return milestone


def categorize_assignments(milestones) -> dict:
    """Split assigned milestones into pending / accepted / declined buckets."""
    buckets = {"pending": [], "accepted": [], "declined": []}
    for m in milestones:
        state = m.assignment_state
        if state == AssignmentState.ASSIGNED.value:
            buckets["pending"].append(m)
        elif state == AssignmentState.ACCEPTED.value:
            buckets["accepted"].append(m)
        elif state in (AssignmentState.DECLINED.value, AssignmentState.RESPONDED.value):
            buckets["declined"].append(m)
    return buckets
