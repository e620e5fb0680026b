"""
Report Service — program-level analytics.

Builds the comprehensive program report (milestones, progress, financial,
engagement, timeline) and the per-participant progress rows that feed
the CSV exports. Only milestones tagged with the program count towards
its report; budgets come from each participant's active cycle.
"""

import logging
import math
from datetime import date, datetime, timezone

from flask import current_app, has_app_context

from goldenbridge.models.finance import BalanceSheetCycle
from goldenbridge.models.milestone import Milestone
from goldenbridge.services import audit_service
from goldenbridge.services.permission import can_export_data, check_permission

logger = logging.getLogger(__name__)

TOP_PERFORMERS = 5
DEFAULT_ATTENTION_DAYS = 7


def _attention_days():
    if has_app_context():
        return current_app.config.get("NEEDS_ATTENTION_DAYS", DEFAULT_ATTENTION_DAYS)
    return DEFAULT_ATTENTION_DAYS


def _participant_metrics(program, user, today):
    milestones = (
        Milestone.query.filter_by(user_id=user.id, program_id=program.id)
        .order_by(Milestone.id).all()
    )
    reports = [r for m in milestones for r in m.reports]
    completed = [m for m in milestones if m.status == "completed"]
    last_report = max((r.report_date for r in reports), default=None)
    cycle = BalanceSheetCycle.query.filter_by(user_id=user.id, is_active=True).first()
    return {
        "user": user,
        "milestones": milestones,
        "completed": len(completed),
        "in_progress": sum(1 for m in milestones if m.status == "in_progress"),
        "completion_rate": (len(completed) / len(milestones) * 100) if milestones else 0,
        "reports": reports,
        "last_activity": last_report,
        "days_since_activity": (today - last_report).days if last_report else None,
        "cycle": cycle,
    }


def build_program_report(program, now=None) -> dict:
    """Assemble the program report as a plain, JSON-serialisable dict."""
    now = now or datetime.now(timezone.utc)
    today = now.date() if isinstance(now, datetime) else now
    attention_days = _attention_days()

    enrollments = sorted(program.participants, key=lambda p: p.user_id)
    metrics = [_participant_metrics(program, e.user, today) for e in enrollments]
    milestones = [m for pm in metrics for m in pm["milestones"]]
    total_reports = sum(len(pm["reports"]) for pm in metrics)
    participant_count = len(metrics)

    completed = sum(1 for m in milestones if m.status == "completed")

    top_performers = sorted(
        (pm for pm in metrics if pm["milestones"]),
        key=lambda pm: pm["completion_rate"],
        reverse=True,
    )[:TOP_PERFORMERS]

    needs_attention = [
        pm for pm in metrics
        if pm["days_since_activity"] is None or pm["days_since_activity"] > attention_days
    ]
    active = sum(
        1 for pm in metrics
        if pm["days_since_activity"] is not None and pm["days_since_activity"] <= attention_days
    )

    cycles = [pm["cycle"] for pm in metrics if pm["cycle"] is not None]
    total_budget = round(sum(float(c.budget) for c in cycles), 2)
    total_spent = round(sum(c.total_spent for c in cycles), 2)

    total_days = (program.end_date - program.start_date).days
    days_elapsed = (today - program.start_date).days
    days_remaining = max(0, (program.end_date - today).days)
    program_progress = min(100, days_elapsed / total_days * 100) if total_days > 0 else 0

    return {
        "program": {
            "id": program.id,
            "name": program.name,
            "description": program.description,
            "status": program.status_on(today),
            "start_date": program.start_date.isoformat(),
            "end_date": program.end_date.isoformat(),
        },
        "generated_at": now.isoformat() if isinstance(now, datetime) else str(now),
        "participants": participant_count,
        "milestones": {
            "total": len(milestones),
            "completed": completed,
            "in_progress": sum(1 for m in milestones if m.status == "in_progress"),
            "not_started": sum(1 for m in milestones if m.status == "not_started"),
            "paused": sum(1 for m in milestones if m.status == "paused"),
            "assigned": sum(1 for m in milestones if m.is_assigned),
            "self_created": sum(1 for m in milestones if not m.is_assigned),
        },
        "progress": {
            "overall_completion": round(completed / len(milestones) * 100) if milestones else 0,
            "average_completion": (
                round(sum(pm["completion_rate"] for pm in metrics) / participant_count)
                if participant_count else 0
            ),
            "top_performers": [
                {
                    "user_id": pm["user"].id,
                    "name": pm["user"].name,
                    "completion_rate": round(pm["completion_rate"]),
                }
                for pm in top_performers
            ],
            "needs_attention": [
                {
                    "user_id": pm["user"].id,
                    "name": pm["user"].name,
                    "last_activity": pm["last_activity"].isoformat() if pm["last_activity"] else None,
                }
                for pm in needs_attention
            ],
        },
        "financial": {
            "total_budget": total_budget,
            "total_spent": total_spent,
            "average_utilization": round(total_spent / total_budget * 100) if total_budget else 0,
            "over_budget": sum(1 for c in cycles if c.total_spent > c.budget),
        },
        "engagement": {
            "total_reports": total_reports,
            "average_reports_per_participant": (
                round(total_reports / participant_count) if participant_count else 0
            ),
            "reports_with_feedback": sum(
                1 for pm in metrics for r in pm["reports"] if r.feedback
            ),
            "active_participants": active,
            "inactive_participants": participant_count - active,
        },
        "timeline": {
            "program_progress": round(program_progress) if program_progress > 0 else 0,
            "days_remaining": days_remaining,
            "days_elapsed": max(0, days_elapsed),
            "upcoming_deadlines": [
                {
                    "milestone_id": m.id,
                    "user_id": m.user_id,
                    "title": m.title,
                    "end_date": m.end_date.isoformat(),
                }
                for m in sorted(milestones, key=lambda m: m.end_date)
                if m.status != "completed" and 0 <= (m.end_date - today).days <= 30
            ],
        },
    }


def generate_program_report(actor, program, now=None) -> dict:
    """Permission-checked report generation; records GENERATE_REPORT."""
    check_permission(can_export_data(actor, program.id), actor, "generate reports for this program")
    report = build_program_report(program, now)
    audit_service.log_audit_action(
        actor.id, audit_service.GENERATE_REPORT, None,
        {"programId": program.id, "reportType": "comprehensive"},
        program_id=program.id,
    )
    logger.info("Report generated for program %s by %s", program.id, actor.id)
    return report


def participant_progress(program, today=None) -> list[dict]:
    """One row per enrolled participant, for progress exports."""
    today = today or date.today()
    rows = []
    for enrollment in sorted(program.participants, key=lambda p: p.user_id):
        pm = _participant_metrics(program, enrollment.user, today)
        rows.append({
            "user_id": pm["user"].id,
            "name": pm["user"].name,
            "email": pm["user"].email,
            "total_milestones": len(pm["milestones"]),
            "completed": pm["completed"],
            "in_progress": pm["in_progress"],
            "completion_rate": math.floor(pm["completion_rate"] + 0.5),
            "total_reports": len(pm["reports"]),
            "last_report_date": pm["last_activity"].isoformat() if pm["last_activity"] else None,
        })
    return rows
