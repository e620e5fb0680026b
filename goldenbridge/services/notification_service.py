"""
Golden Bridge Women
Notification Service.

Central service for creating, querying and pruning per-user notifications,
plus the typed helpers used by the milestone workflow and the deadline scan.

Each user keeps at most ``NOTIFICATION_RETENTION`` (100) notifications;
creating one more drops the oldest.
"""

import json
import logging
import math
from datetime import datetime, time, timezone

from flask import current_app, has_app_context

from goldenbridge.models import db
from goldenbridge.models.milestone import Milestone
from goldenbridge.models.notification import NOTIFICATION_TYPES, Notification, NotifiedDeadline

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = 100
DEFAULT_DEADLINE_DAYS = (7, 3, 1)
FEEDBACK_PREVIEW_CHARS = 100


def _config(key, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def feedback_preview(text: str) -> str:
    text = text or ""
    if len(text) > FEEDBACK_PREVIEW_CHARS:
        return text[:FEEDBACK_PREVIEW_CHARS] + "..."
    return text


def days_until(end_date, now=None) -> int:
    """Whole days (rounded up) from *now* to midnight UTC of *end_date*."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    deadline = datetime.combine(end_date, time.min, tzinfo=timezone.utc)
    return math.ceil((deadline - now).total_seconds() / 86400)


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, user_id, type="general", title, message="", data=None):
        """
        Create a single notification record and prune the user's backlog.

        Returns:
            The created Notification instance (already committed).
        """
        if type not in NOTIFICATION_TYPES:
            raise ValueError(f"Unknown notification type: {type}")
        notif = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data_json=json.dumps(data or {}, default=str),
        )
        db.session.add(notif)
        db.session.flush()
        NotificationService._prune(user_id, _config("NOTIFICATION_RETENTION", DEFAULT_RETENTION))
        db.session.commit()
        return notif

    @staticmethod
    def _prune(user_id, keep):
        stale = [
            row.id for row in
            Notification.query.with_entities(Notification.id)
            .filter_by(user_id=user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(keep)
            .all()
        ]
        if stale:
            Notification.query.filter(Notification.id.in_(stale)).delete(synchronize_session=False)
        return len(stale)

    @staticmethod
    def safe_create(**kwargs):
        """Fire-and-forget variant: logs and returns None instead of raising."""
        try:
            return NotificationService.create(**kwargs)
        except Exception:
            db.session.rollback()
            logger.exception("Failed to create %s notification for user %s",
                             kwargs.get("type"), kwargs.get("user_id"))
            return None

    # ── Query ─────────────────────────────────────────────────────────────

    @staticmethod
    def list_for_user(user_id, unread_only=False, limit=None):
        """Retrieve notifications for a user, newest first."""
        q = Notification.query.filter_by(user_id=user_id)
        if unread_only:
            q = q.filter_by(read=False)
        q = q.order_by(Notification.created_at.desc(), Notification.id.desc())
        if limit:
            q = q.limit(limit)
        return q.all()

    @staticmethod
    def unread_count(user_id):
        return Notification.query.filter_by(user_id=user_id, read=False).count()

    # ── Actions ───────────────────────────────────────────────────────────

    @staticmethod
    def mark_as_read(user_id, notification_id):
        """Mark one of the user's notifications as read. Returns None if not theirs."""
        notif = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
        if notif:
            notif.mark_read()
            db.session.commit()
        return notif

    @staticmethod
    def mark_all_as_read(user_id):
        q = Notification.query.filter_by(user_id=user_id, read=False)
        now = datetime.now(timezone.utc)
        count = q.update({"read": True, "read_at": now}, synchronize_session="fetch")
        db.session.commit()
        return count

    @staticmethod
    def delete(user_id, notification_id):
        notif = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
        if not notif:
            return False
        db.session.delete(notif)
        db.session.commit()
        return True

    @staticmethod
    def clear_all(user_id):
        count = Notification.query.filter_by(user_id=user_id).delete(synchronize_session=False)
        db.session.commit()
        return count

    # ── Milestone workflow helpers ────────────────────────────────────────

    @staticmethod
    def notify_assignment(participant_id, milestone, manager_name, program_name=""):
        """Tell a participant a manager assigned them a milestone."""
        requirement = (
            "This is a required milestone." if milestone.is_required
            else "This is an optional milestone."
        )
        message = f'{manager_name} has assigned you "{milestone.title}"'
        if program_name:
            message += f" in {program_name}"
        message += f". {requirement}"
        if milestone.can_decline:
            message += " You can decline this assignment with a reason."
        return NotificationService.safe_create(
            user_id=participant_id,
            type="assignment",
            title="New Milestone Assigned",
            message=message,
            data={
                "milestoneId": milestone.id,
                "programId": milestone.program_id,
                "isRequired": bool(milestone.is_required),
                "canDecline": bool(milestone.can_decline),
            },
        )

    @staticmethod
    def notify_feedback(participant_id, milestone, manager_name, feedback, report_id=None):
        return NotificationService.safe_create(
            user_id=participant_id,
            type="feedback",
            title="Manager Feedback Received",
            message=(
                f'{manager_name} provided feedback on your progress report for '
                f'"{milestone.title}": "{feedback_preview(feedback)}"'
            ),
            data={"milestoneId": milestone.id, "reportId": report_id},
        )

    @staticmethod
    def notify_deadline(user_id, milestone, days):
        plural = "" if days == 1 else "s"
        return NotificationService.safe_create(
            user_id=user_id,
            type="deadline",
            title="Milestone Deadline Approaching",
            message=(
                f'"{milestone.title}" is due in {days} day{plural}. '
                "Please ensure you complete it on time."
            ),
            data={"milestoneId": milestone.id, "daysRemaining": days},
        )

    @staticmethod
    def notify_decline(manager_id, milestone, participant_name, reason):
        return NotificationService.safe_create(
            user_id=manager_id,
            type="decline",
            title="Milestone Declined",
            message=(
                f'{participant_name} has declined the milestone "{milestone.title}". '
                f'Reason: "{reason}"'
            ),
            data={
                "milestoneId": milestone.id,
                "participantId": milestone.user_id,
                "reason": reason,
            },
        )

    @staticmethod
    def notify_decline_response(participant_id, milestone, manager_name, accepted, comment):
        verdict = "accepted" if accepted else "did not accept"
        message = f'{manager_name} {verdict} your decline of "{milestone.title}".'
        if comment:
            message += f' Comment: "{comment}"'
        return NotificationService.safe_create(
            user_id=participant_id,
            type="general",
            title="Decline Reviewed",
            message=message,
            data={"milestoneId": milestone.id, "accepted": bool(accepted)},
        )

    # ── Deadline scan ─────────────────────────────────────────────────────

    @staticmethod
    def check_deadlines(user_id, now=None):
        """
        Create deadline notices for the user's open milestones.

        A notice goes out when the days left hit one of the configured
        thresholds (7, 3, 1), at most once per milestone and threshold.

        Returns:
            List of created Notification instances.
        """
        now = now or datetime.now(timezone.utc)
        thresholds = set(_config("DEADLINE_NOTICE_DAYS", DEFAULT_DEADLINE_DAYS))
        already = {
            row.notification_key
            for row in NotifiedDeadline.query.filter_by(user_id=user_id).all()
        }

        created = []
        milestones = (
            Milestone.query
            .filter(Milestone.user_id == user_id, Milestone.status != "completed")
            .all()
        )
        for milestone in milestones:
            days = days_until(milestone.end_date, now)
            if days not in thresholds:
                continue
            key = f"{milestone.id}_{days}"
            if key in already:
                continue
            notif = NotificationService.notify_deadline(user_id, milestone, days)
            if notif is None:
                continue
            db.session.add(NotifiedDeadline(user_id=user_id, notification_key=key))
            db.session.commit()
            already.add(key)
            created.append(notif)

        if created:
            logger.info("Deadline scan for user %s created %d notice(s)", user_id, len(created))
        return created
