"""
Golden Bridge Women
User domain model.

Models:
    - User: an account with exactly one role (admin, program manager or participant)

Program membership is not stored on the user row. ``program_ids`` and
``managed_program_ids`` are read from the membership tables in
``goldenbridge.models.program`` so both sides of a membership always agree.
"""

from datetime import datetime, timezone
from enum import Enum

from goldenbridge.models import db


class UserRole(str, Enum):
    """The three roles of the platform. Roles never change after creation."""

    ADMIN = "admin"
    PROGRAM_MANAGER = "program_manager"
    PARTICIPANT = "participant"


USER_ROLES = {r.value for r in UserRole}


def normalize_email(email):
    """Emails are compared and stored lowercased without surrounding whitespace."""
    return (email or "").strip().lower()


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    role = db.Column(db.String(30), nullable=False, default=UserRole.PARTICIPANT.value)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    participations = db.relationship(
        "ProgramParticipant", back_populates="user", lazy="select", cascade="all, delete-orphan",
    )
    managed = db.relationship(
        "ProgramManager", back_populates="user", lazy="select", cascade="all, delete-orphan",
    )

    @property
    def program_ids(self) -> list[int]:
        """Programs this user participates in."""
        return sorted(p.program_id for p in self.participations)

    @property
    def managed_program_ids(self) -> list[int]:
        """Programs this user manages. Only meaningful for program managers."""
        return sorted(m.program_id for m in self.managed)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "program_ids": self.program_ids,
            "managed_program_ids": self.managed_program_ids,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email} ({self.role})>"
