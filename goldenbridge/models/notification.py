"""
Golden Bridge Women
Notification domain model.

Models:
    - Notification: per-user in-app notification with read tracking
    - NotifiedDeadline: per-user record of deadline notices already sent
"""

import json
from datetime import datetime, timezone

from goldenbridge.models import db


# ── Constants ────────────────────────────────────────────────────────────────

NOTIFICATION_TYPES = {"assignment", "feedback", "deadline", "decline", "general"}


class Notification(db.Model):
    """
    In-app notification entity.

    One record per recipient per event. ``data_json`` carries the ids a
    client needs to deep-link (milestone id, days remaining, ...).
    """

    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("idx_notification_user_created", "user_id", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    type = db.Column(db.String(20), nullable=False, default="general")
    title = db.Column(db.String(300), nullable=False)
    message = db.Column(db.Text, default="")
    data_json = db.Column(db.Text, default="{}")
    read = db.Column(db.Boolean, nullable=False, default=False)
    read_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    @property
    def data(self) -> dict:
        try:
            return json.loads(self.data_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def mark_read(self):
        self.read = True
        self.read_at = datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "data": self.data,
            "read": self.read,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Notification {self.id}: {self.title[:40]}>"


class NotifiedDeadline(db.Model):
    """Dedup key ``<milestoneId>_<daysRemaining>`` per user."""

    __tablename__ = "notified_deadlines"
    __table_args__ = (
        db.UniqueConstraint("user_id", "notification_key", name="uq_notified_deadline"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    notification_key = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def __repr__(self):
        return f"<NotifiedDeadline user={self.user_id} key={self.notification_key}>"
