"""
Golden Bridge Women
Milestone domain models.

Models:
    - Milestone: a participant-owned goal, optionally assigned by a manager
    - ProgressReport: weekly progress entry (one per milestone and week)
    - ManagerFeedback: append-only manager comment on a progress report
"""

from datetime import datetime, timezone
from enum import Enum

from goldenbridge.models import db


# ── Constants ────────────────────────────────────────────────────────────────

MILESTONE_CATEGORIES = {"education", "skill", "project", "fitness", "other"}
MILESTONE_STATUSES = {"not_started", "in_progress", "paused", "completed"}


class AssignmentType(str, Enum):
    SELF_CREATED = "self_created"
    MANAGER_ASSIGNED = "manager_assigned"
    TEMPLATE_BASED = "template_based"
    BULK_ASSIGNED = "bulk_assigned"


class AssignmentState(str, Enum):
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    RESPONDED = "responded"


def _iso(value):
    return value.isoformat() if value else None


class Milestone(db.Model):
    """
    Goal owned by exactly one participant (``user_id``).

    Assignment columns are only populated when someone other than the
    owner created the milestone (``assigned_by`` set).
    """

    __tablename__ = "milestones"
    __table_args__ = (
        db.Index("idx_milestone_owner", "user_id"),
        db.Index("idx_milestone_program", "program_id"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False,
    )
    program_id = db.Column(
        db.Integer, db.ForeignKey("programs.id", ondelete="SET NULL"), nullable=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    category = db.Column(db.String(20), nullable=False, default="other")
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="not_started")

    # Assignment
    assigned_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    assignment_type = db.Column(
        db.String(30), nullable=False, default=AssignmentType.SELF_CREATED.value,
    )
    is_required = db.Column(db.Boolean, default=False)
    can_decline = db.Column(db.Boolean, default=True)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decline_reason = db.Column(db.Text, nullable=True)
    declined_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Manager response to a decline
    response_accepted = db.Column(db.Boolean, nullable=True)
    response_comment = db.Column(db.Text, nullable=True)
    responded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    reports = db.relationship(
        "ProgressReport",
        back_populates="milestone",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProgressReport.week_number",
    )

    # ── Assignment helpers ───────────────────────────────────────────────

    @property
    def is_assigned(self) -> bool:
        return self.assigned_by is not None

    @property
    def assignment_state(self):
        """Current assignment workflow state, or None for self-created goals."""
        if not self.is_assigned:
            return None
        if self.declined_at is not None:
            if self.responded_at is not None:
                return AssignmentState.RESPONDED.value
            return AssignmentState.DECLINED.value
        if self.accepted_at is not None or not self.can_decline:
            return AssignmentState.ACCEPTED.value
        return AssignmentState.ASSIGNED.value

    def assignment_info(self):
        if not self.is_assigned:
            return None
        info = {
            "assigned_by": self.assigned_by,
            "assigned_at": _iso(self.assigned_at),
            "assignment_type": self.assignment_type,
            "is_required": bool(self.is_required),
            "can_decline": bool(self.can_decline),
            "state": self.assignment_state,
            "accepted_at": _iso(self.accepted_at),
            "decline_reason": self.decline_reason,
            "declined_at": _iso(self.declined_at),
            "manager_response": None,
        }
        if self.responded_at is not None:
            info["manager_response"] = {
                "accepted": bool(self.response_accepted),
                "comment": self.response_comment or "",
                "responded_at": _iso(self.responded_at),
            }
        return info

    @property
    def latest_report(self):
        return self.reports[-1] if self.reports else None

    def to_dict(self, include_reports=True):
        d = {
            "id": self.id,
            "user_id": self.user_id,
            "program_id": self.program_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "status": self.status,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        info = self.assignment_info()
        if info is not None:
            d["assignment_info"] = info
        if include_reports:
            d["progress_reports"] = [r.to_dict() for r in self.reports]
        return d

    def __repr__(self):
        return f"<Milestone {self.id}: {self.title[:40]} ({self.status})>"


class ProgressReport(db.Model):
    __tablename__ = "progress_reports"
    __table_args__ = (
        db.UniqueConstraint("milestone_id", "week_number", name="uq_report_milestone_week"),
    )

    id = db.Column(db.Integer, primary_key=True)
    milestone_id = db.Column(
        db.Integer, db.ForeignKey("milestones.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    week_number = db.Column(db.Integer, nullable=False)
    report_date = db.Column(db.Date, nullable=False)
    content = db.Column(db.Text, nullable=False)
    hours_spent = db.Column(db.Float, nullable=True)
    completion_percentage = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    milestone = db.relationship("Milestone", back_populates="reports")
    feedback = db.relationship(
        "ManagerFeedback",
        back_populates="report",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ManagerFeedback.id",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "milestone_id": self.milestone_id,
            "week_number": self.week_number,
            "date": _iso(self.report_date),
            "content": self.content,
            "hours_spent": self.hours_spent,
            "completion_percentage": self.completion_percentage,
            "created_at": _iso(self.created_at),
            "manager_feedback": [f.to_dict() for f in self.feedback],
        }

    def __repr__(self):
        return f"<ProgressReport milestone={self.milestone_id} week={self.week_number}>"


class ManagerFeedback(db.Model):
    __tablename__ = "manager_feedback"

    id = db.Column(db.Integer, primary_key=True)
    report_id = db.Column(
        db.Integer, db.ForeignKey("progress_reports.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    manager_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    feedback = db.Column(db.Text, nullable=False)
    feedback_date = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    report = db.relationship("ProgressReport", back_populates="feedback")

    def to_dict(self):
        return {
            "id": self.id,
            "manager_id": self.manager_id,
            "feedback": self.feedback,
            "feedback_date": _iso(self.feedback_date),
        }

    def __repr__(self):
        return f"<ManagerFeedback report={self.report_id} manager={self.manager_id}>"
