"""
Golden Bridge Women
Program domain models.

Models:
    - Program: a time-bounded mentorship cohort (soft-deletable)
    - ProgramManager: manager membership (many-to-many)
    - ProgramParticipant: participant enrollment (many-to-many)
    - Invite: pending enrollment for an email with no account yet
"""

import uuid
from datetime import date, datetime, timedelta, timezone
from enum import Enum

from goldenbridge.models import db
from goldenbridge.models.soft_delete import SoftDeleteMixin


class ProgramStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


INVITE_STATUSES = {"pending", "accepted", "expired"}
DEFAULT_INVITE_EXPIRY_DAYS = 30


def determine_status(start_date, end_date, today=None):
    """Derive a program status from its date range."""
    today = today or date.today()
    if start_date and today < start_date:
        return ProgramStatus.UPCOMING.value
    if end_date and today > end_date:
        return ProgramStatus.COMPLETED.value
    return ProgramStatus.ACTIVE.value


class Program(SoftDeleteMixin, db.Model):
    """
    Mentorship program.

    ``status`` is never stored: it is recomputed from the dates on every
    read. An archived (soft-deleted) program always reads as completed.
    """

    __tablename__ = "programs"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, default="")
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    created_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    managers = db.relationship(
        "ProgramManager", back_populates="program", lazy="select", cascade="all, delete-orphan",
    )
    participants = db.relationship(
        "ProgramParticipant", back_populates="program", lazy="select", cascade="all, delete-orphan",
    )
    invites = db.relationship(
        "Invite", back_populates="program", lazy="dynamic", cascade="all, delete-orphan",
    )

    def status_on(self, today=None):
        if self.is_deleted:
            return ProgramStatus.COMPLETED.value
        return determine_status(self.start_date, self.end_date, today)

    @property
    def status(self):
        return self.status_on()

    @property
    def manager_ids(self) -> list[int]:
        return sorted(m.user_id for m in self.managers)

    @property
    def participant_ids(self) -> list[int]:
        return sorted(p.user_id for p in self.participants)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "status": self.status,
            "manager_ids": self.manager_ids,
            "participant_ids": self.participant_ids,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "archived": self.is_deleted,
        }

    def __repr__(self):
        return f"<Program {self.id}: {self.name}>"


class ProgramManager(db.Model):
    __tablename__ = "program_managers"
    __table_args__ = (
        db.UniqueConstraint("program_id", "user_id", name="uq_program_manager"),
    )

    id = db.Column(db.Integer, primary_key=True)
    program_id = db.Column(
        db.Integer, db.ForeignKey("programs.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    assigned_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    program = db.relationship("Program", back_populates="managers")
    user = db.relationship("User", back_populates="managed")

    def __repr__(self):
        return f"<ProgramManager program={self.program_id} user={self.user_id}>"


class ProgramParticipant(db.Model):
    __tablename__ = "program_participants"
    __table_args__ = (
        db.UniqueConstraint("program_id", "user_id", name="uq_program_participant"),
    )

    id = db.Column(db.Integer, primary_key=True)
    program_id = db.Column(
        db.Integer, db.ForeignKey("programs.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    status = db.Column(db.String(20), default="active")
    enrolled_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    program = db.relationship("Program", back_populates="participants")
    user = db.relationship("User", back_populates="participations")

    def to_dict(self):
        return {
            "program_id": self.program_id,
            "user_id": self.user_id,
            "status": self.status,
            "enrolled_at": self.enrolled_at.isoformat() if self.enrolled_at else None,
        }

    def __repr__(self):
        return f"<ProgramParticipant program={self.program_id} user={self.user_id}>"


class Invite(db.Model):
    """
    Enrollment invitation for an email that has no account yet.

    At most one *pending* invite exists per (program, email); the
    service layer enforces it because accepted/expired rows are kept.
    """

    __tablename__ = "invites"

    id = db.Column(db.Integer, primary_key=True)
    program_id = db.Column(
        db.Integer, db.ForeignKey("programs.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    email = db.Column(db.String(200), nullable=False, index=True)
    invite_code = db.Column(
        db.String(64), nullable=False, unique=True, default=lambda: uuid.uuid4().hex,
    )
    invited_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    status = db.Column(db.String(20), nullable=False, default="pending")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    expires_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc) + timedelta(days=DEFAULT_INVITE_EXPIRY_DAYS),
    )
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    accepted_by = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )

    program = db.relationship("Program", back_populates="invites")

    def to_dict(self):
        return {
            "id": self.id,
            "program_id": self.program_id,
            "email": self.email,
            "invite_code": self.invite_code,
            "invited_by": self.invited_by,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "accepted_at": self.accepted_at.isoformat() if self.accepted_at else None,
            "accepted_by": self.accepted_by,
        }

    def __repr__(self):
        return f"<Invite {self.id}: {self.email} → program {self.program_id} ({self.status})>"
