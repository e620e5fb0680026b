"""
Audit Service — best-effort trail of cross-user mutations.

Services call ``log_audit_action`` after their business commit. The call
publishes an ``audit.record`` event; ``_persist_audit_record`` below is
the consumer that writes the row and enforces retention. Nothing here
ever raises into the caller: if persistence fails the mutation has
already committed and the failure is only logged.
"""

import logging

from flask import current_app, has_app_context

from goldenbridge.models import db
from goldenbridge.models.audit import AUDIT_ACTIONS, AuditLog, write_audit
from goldenbridge.services import events
from goldenbridge.services.permission import is_admin, shared_program_ids

logger = logging.getLogger(__name__)

AUDIT_EVENT = "audit.record"
DEFAULT_RETENTION = 1000

# ── Action names ─────────────────────────────────────────────────────────────

ASSIGN_MILESTONE = "ASSIGN_MILESTONE"
EDIT_MILESTONE = "EDIT_MILESTONE"
DELETE_MILESTONE = "DELETE_MILESTONE"
PROVIDE_FEEDBACK = "PROVIDE_FEEDBACK"
RESPOND_TO_DECLINE = "RESPOND_TO_DECLINE"
START_CYCLE = "START_CYCLE"
DELETE_CYCLE = "DELETE_CYCLE"
ADD_EXPENSE = "ADD_EXPENSE"
EDIT_EXPENSE = "EDIT_EXPENSE"
DELETE_EXPENSE = "DELETE_EXPENSE"
GENERATE_REPORT = "GENERATE_REPORT"
EXPORT_REPORT = "EXPORT_REPORT"


def _retention() -> int:
    if has_app_context():
        return current_app.config.get("AUDIT_LOG_RETENTION", DEFAULT_RETENTION)
    return DEFAULT_RETENTION


def audit_program_scope(actor, target, program_id=None):
    """Pick the program an entry belongs to.

    An explicit id counts only when the target is enrolled there and the
    actor manages it (or is an admin); otherwise it is ignored. Then the
    first program the actor manages and the target is enrolled in, then
    the target's only program.
    """
    shared = shared_program_ids(actor, target)
    enrolled = getattr(target, "program_ids", None) or []
    if program_id is not None:
        if program_id in shared or (is_admin(actor) and program_id in enrolled):
            return program_id
        logger.warning(
            "Ignoring audit scope program %s: user %s does not oversee user %s there",
            program_id, getattr(actor, "id", None), getattr(target, "id", None),
        )
    if shared:
        return shared[0]
    if len(enrolled) == 1:
        return enrolled[0]
    return None


# ═══════════════════════════════════════════════════════════════════════════
#  Write path
# ═══════════════════════════════════════════════════════════════════════════

def log_audit_action(actor_id, action: str, target_id, details: dict | None = None,
                     program_id=None) -> None:
    """Record one audit entry. Never raises; returns nothing."""
    if action not in AUDIT_ACTIONS:
        logger.warning("Unknown audit action %s", action)
    events.publish(
        AUDIT_EVENT,
        actor_id=actor_id,
        action=action,
        target_id=target_id,
        details=details or {},
        program_id=program_id,
    )


@events.subscribe(AUDIT_EVENT)
def _persist_audit_record(*, actor_id, action, target_id, details, program_id):
    try:
        entry = write_audit(
            actor_id=actor_id,
            action=action,
            target_id=target_id,
            program_id=program_id,
            details=details,
        )
        _enforce_retention(_retention())
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    logger.info(
        "Audit %s by user %s on user %s",
        action, actor_id, target_id,
        extra={"event_type": "audit", "program_id": entry.program_id},
    )


def _enforce_retention(limit: int) -> int:
    """Drop entries beyond the newest *limit*, oldest first."""
    stale_ids = [
        row.id for row in
        AuditLog.query.with_entities(AuditLog.id)
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .offset(limit)
        .all()
    ]
    if not stale_ids:
        return 0
    AuditLog.query.filter(AuditLog.id.in_(stale_ids)).delete(synchronize_session=False)
    return len(stale_ids)


# ═══════════════════════════════════════════════════════════════════════════
#  Read path
# ═══════════════════════════════════════════════════════════════════════════

def audit_query(user_id=None, program_id=None):
    """
    Entries newest-first, as an unevaluated query.

    ``user_id`` matches either the actor or the affected user;
    ``program_id`` matches the entry's program scope.
    """
    q = AuditLog.query
    if user_id is not None:
        q = q.filter((AuditLog.user_id == user_id) | (AuditLog.target_id == user_id))
    if program_id is not None:
        q = q.filter(AuditLog.program_id == program_id)
    return q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())


def get_audit_log(user_id=None, program_id=None, limit=None) -> list[AuditLog]:
    q = audit_query(user_id, program_id)
    if limit:
        q = q.limit(limit)
    return q.all()
