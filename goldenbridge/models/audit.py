"""
Golden Bridge Women
Audit domain model.

Models:
    - AuditLog: append-only trail of manager/admin mutations to participant data.
"""

import json
from datetime import datetime, timezone

from goldenbridge.models import db

# ── Local coercion ───────────────────────────────────────────────────────────

def _as_int(value):
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ACTIONS = {
    # Milestones
    "ASSIGN_MILESTONE",
    "EDIT_MILESTONE",
    "DELETE_MILESTONE",
    "PROVIDE_FEEDBACK",
    "RESPOND_TO_DECLINE",
    # Finance
    "START_CYCLE",
    "DELETE_CYCLE",
    "ADD_EXPENSE",
    "EDIT_EXPENSE",
    "DELETE_EXPENSE",
    # Reporting
    "GENERATE_REPORT",
    "EXPORT_REPORT",
}


class AuditLog(db.Model):
    """
    Immutable audit row.

    ``user_id`` is the actor, ``target_id`` the user whose data was
    touched. ``program_id`` is a first-class column so program-scoped
    trails do not depend on the shape of ``details``.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_actor", "user_id"),
        db.Index("idx_audit_target", "target_id"),
        db.Index("idx_audit_program", "program_id"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True, comment="Actor")
    action = db.Column(db.String(60), nullable=False)
    target_id = db.Column(db.Integer, nullable=True, comment="Affected user")
    program_id = db.Column(db.Integer, nullable=True)
    details_json = db.Column(db.Text, default="{}")
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def details(self) -> dict:
        """Deserialise *details_json* to a Python dict."""
        try:
            return json.loads(self.details_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "target_id": self.target_id,
            "program_id": self.program_id,
            "details": self.details,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} by {self.user_id} on {self.target_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    actor_id,
    action: str,
    target_id=None,
    program_id=None,
    details: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row. Uses ``flush`` so callers keep
    transaction control.

    ``program_id`` falls back to ``details["programId"]`` when not given.
    """
    details = details or {}
    if program_id is None:
        program_id = details.get("programId")

    log = AuditLog(
        user_id=_as_int(actor_id),
        action=action,
        target_id=_as_int(target_id),
        program_id=_as_int(program_id),
        details_json=json.dumps(details, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
