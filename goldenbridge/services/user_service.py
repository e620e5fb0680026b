"""
User Service — registration, authentication and directory queries.

Roles are fixed at creation. Self-registration always yields a
participant; admins create program managers and other admins.
"""

import logging

from email_validator import EmailNotValidError, validate_email

from goldenbridge.core.exceptions import ConflictError, NotFoundError, ValidationError
from goldenbridge.models import db
from goldenbridge.models.user import USER_ROLES, User, UserRole, normalize_email
from goldenbridge.services.permission import (
    check_permission,
    filter_accessible_users,
    is_admin,
    is_self,
)
from goldenbridge.utils.crypto import hash_password, needs_rehash, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def validate_email_address(email) -> str:
    """Normalise and syntax-check an email. Raises ValidationError when it is unusable."""
    email = normalize_email(email)
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": "invalid"}) from e
    return email


def _validate_new_user(name, email, password, role):
    errors = {}
    if not (name or "").strip():
        errors["name"] = "Name is required"
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if role not in USER_ROLES:
        errors["role"] = f"Role must be one of {sorted(USER_ROLES)}"
    if errors:
        raise ValidationError("Invalid user data", details=errors)


def _insert_user(name, email, password, role) -> User:
    email = validate_email_address(email)
    role = role.value if isinstance(role, UserRole) else role
    _validate_new_user(name, email, password, role)
    if find_user_by_email(email):
        raise ConflictError("User", "email", email, message="A user with this email already exists")
    user = User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(user)
    db.session.flush()
    return user


def register_user(name, email, password, role=UserRole.PARTICIPANT, invite_code=None) -> User:
    """Create an account; with *invite_code* the invite is accepted in the same step.

    The account and the enrollment are committed together, so a code that
    turns out to be unusable never leaves a half-registered user behind.
    """
    from goldenbridge.services.program_service import accept_invite, get_pending_invite

    if invite_code:
        get_pending_invite(invite_code, email)
    user = _insert_user(name, email, password, role)
    if invite_code:
        try:
            accept_invite(invite_code, user)
        except Exception:
            db.session.rollback()
            raise
    else:
        db.session.commit()
    logger.info("Registered user %s (%s)", user.id, user.role)
    return user


def create_user(actor, data: dict) -> User:
    """Admin-only account creation with an explicit role."""
    check_permission(is_admin(actor), actor, "create users")
    user = _insert_user(
        data.get("name"),
        data.get("email"),
        data.get("password"),
        data.get("role") or UserRole.PARTICIPANT.value,
    )
    db.session.commit()
    logger.info("User %s created by admin %s with role %s", user.id, actor.id, user.role)
    return user


def authenticate(email, password):
    """Return the user for valid credentials, else None."""
    user = find_user_by_email(email)
    if not user or not verify_password(password, user.password_hash):
        return None
    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        db.session.commit()
        logger.info("Upgraded legacy password hash for user %s", user.id)
    return user


def update_profile(actor, user, data: dict) -> User:
    """Change name and/or password. The role is never touched."""
    check_permission(is_self(actor, user) or is_admin(actor), actor, "update this profile")
    if "role" in data and data["role"] != user.role:
        raise ValidationError("Role cannot be changed", details={"role": "immutable"})
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("Name is required", details={"name": "required"})
        user.name = name
    if data.get("password"):
        if len(data["password"]) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                "Invalid password",
                details={"password": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"},
            )
        user.password_hash = hash_password(data["password"])
    db.session.commit()
    return user


def get_user(user_id) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user


def find_user_by_email(email):
    email = normalize_email(email)
    if not email:
        return None
    return User.query.filter_by(email=email).first()


def list_accessible_users(actor, role=None) -> list[User]:
    q = User.query.order_by(User.name)
    if role:
        q = q.filter_by(role=role)
    return filter_accessible_users(actor, q.all())
