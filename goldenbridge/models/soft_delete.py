"""
Archive-instead-of-delete for programs.

An archived program keeps its memberships, milestones and audit history;
it just drops out of ``query_active()`` listings. Admins can still load
it by id (``program_service.get_program(..., include_archived=True)``).
"""

from datetime import datetime, timezone

from goldenbridge.models import db


class SoftDeleteMixin:
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    def soft_delete(self):
        self.deleted_at = datetime.now(timezone.utc)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @classmethod
    def query_active(cls):
        return cls.query.filter(cls.deleted_at.is_(None))
