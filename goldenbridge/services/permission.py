"""
Permission evaluator — who may see or change whose data.

Every predicate here is pure: it reads ``id``, ``role``, ``program_ids``
and ``managed_program_ids`` from the users it is given, never touches
the database and never raises. Any object with those attributes works,
so ``User`` rows and plain test doubles are interchangeable.

Access is program-scoped: a program manager reaches a participant only
through a program the manager manages *and* the participant is enrolled
in. Self-access short-circuits every per-target check.

Usage:
    from goldenbridge.services.permission import can_edit_financial_data, check_permission

    if can_edit_financial_data(actor, owner):
        ...

    # Raises PermissionDenied on a False answer
    check_permission(can_manage_program(actor, program.id), actor, "manage program")
"""

from goldenbridge.core.exceptions import PermissionDenied
from goldenbridge.models.user import UserRole


# ── Relationship helpers ─────────────────────────────────────────────────────

def _role(user) -> str | None:
    role = getattr(user, "role", None)
    if isinstance(role, UserRole):
        return role.value
    return role


def _id(user):
    return getattr(user, "id", None)


def is_admin(user) -> bool:
    return user is not None and _role(user) == UserRole.ADMIN.value


def is_program_manager(user) -> bool:
    return user is not None and _role(user) == UserRole.PROGRAM_MANAGER.value


def is_participant(user) -> bool:
    return user is not None and _role(user) == UserRole.PARTICIPANT.value


def is_self(actor, target) -> bool:
    if actor is None or target is None:
        return False
    return _id(actor) is not None and _id(actor) == _id(target)


def manager_of(user, program_id) -> bool:
    """True when *user* is a program manager listed as manager of *program_id*."""
    if not is_program_manager(user) or program_id is None:
        return False
    return program_id in (getattr(user, "managed_program_ids", None) or [])


def participant_of(user, program_id) -> bool:
    if user is None or program_id is None:
        return False
    return program_id in (getattr(user, "program_ids", None) or [])


def shared_program_ids(actor, target) -> list:
    """Programs *actor* manages in which *target* participates."""
    if not is_program_manager(actor) or target is None:
        return []
    managed = set(getattr(actor, "managed_program_ids", None) or [])
    enrolled = getattr(target, "program_ids", None) or []
    return sorted(pid for pid in enrolled if pid in managed)


def shared_program(actor, target) -> bool:
    return bool(shared_program_ids(actor, target))


def _owner_or_overseer(actor, target) -> bool:
    if actor is None or target is None:
        return False
    if is_self(actor, target):
        return True
    if is_admin(actor):
        return True
    return shared_program(actor, target)


# ── Financial data ───────────────────────────────────────────────────────────

def can_view_financial_data(actor, target) -> bool:
    return _owner_or_overseer(actor, target)


def can_edit_financial_data(actor, target) -> bool:
    return _owner_or_overseer(actor, target)


# ── Milestones ───────────────────────────────────────────────────────────────

def can_view_milestones(actor, target) -> bool:
    return _owner_or_overseer(actor, target)


def can_assign_milestones(actor, target) -> bool:
    return _owner_or_overseer(actor, target)


def can_view_progress_reports(actor, target) -> bool:
    return _owner_or_overseer(actor, target)


def can_provide_feedback(actor, target) -> bool:
    """Only admins and program managers give feedback, and only where they can see."""
    if not (is_admin(actor) or is_program_manager(actor)):
        return False
    return can_view_progress_reports(actor, target)


# ── Programs ─────────────────────────────────────────────────────────────────

def can_manage_program(actor, program_id) -> bool:
    if is_admin(actor):
        return True
    return manager_of(actor, program_id)


def can_create_program(actor) -> bool:
    """Admin only. There is no self-access exception for program creation."""
    return is_admin(actor)


# ── Export / audit ───────────────────────────────────────────────────────────

def can_export_data(actor, program_id=None, target=None) -> bool:
    """
    Admins export anything. Program managers export programs they manage.
    Participants export only their own data.
    """
    if actor is None:
        return False
    if is_admin(actor):
        return True
    if is_program_manager(actor):
        if program_id is not None:
            return manager_of(actor, program_id)
        return target is not None and _owner_or_overseer(actor, target)
    if is_participant(actor):
        return program_id is None and (target is None or is_self(actor, target))
    return False


def can_view_audit_log(actor, target=None, program_id=None) -> bool:
    """
    Admins read the whole trail. Managers read a managed program's trail
    or the trail of a user they oversee. Participants read their own.
    """
    if actor is None:
        return False
    if is_admin(actor):
        return True
    if program_id is not None:
        return manager_of(actor, program_id)
    if target is None:
        return False
    return _owner_or_overseer(actor, target)


def filter_accessible_users(actor, users) -> list:
    """Users *actor* may see in directory listings."""
    if actor is None:
        return []
    users = list(users)
    if is_admin(actor):
        return users
    if is_program_manager(actor):
        return [u for u in users if is_self(actor, u) or shared_program(actor, u)]
    return [u for u in users if is_self(actor, u)]


# ── Enforcement ──────────────────────────────────────────────────────────────

def check_permission(allowed: bool, actor, action: str) -> None:
    """Raise PermissionDenied unless *allowed*; used by services, not by predicates."""
    if not allowed:
        raise PermissionDenied(_id(actor), action)
