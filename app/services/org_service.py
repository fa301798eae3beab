"""
Organization Service Module
===========================

Org settings, members and role definitions.

Settings columns left NULL fall back to the application defaults in
``app.core.config``.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.authz import ALL_CAPABILITIES, DEFAULT_ROLE_CAPABILITIES
from app.core.config import settings
from app.core.exceptions import ConflictError, EmailAlreadyExistsError, NotFoundError, ValidationError
from app.core.logging import get_logger
from app.models.organization import OrgSettings
from app.models.role import CrewMember, OrgRole
from app.models.user import User
from app.services.auth_service import AuthService

# Initialize logger
logger = get_logger(__name__)

SETTINGS_FIELDS = (
    "company_name",
    "timezone",
    "default_daily_capacity_minutes",
    "margin_warning_percent",
    "margin_critical_percent",
    "variance_threshold_percent",
    "automations_disabled",
)


@dataclass(frozen=True)
class MarginSettings:
    margin_warning_percent: float
    margin_critical_percent: float
    variance_threshold_percent: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "margin_warning_percent": self.margin_warning_percent,
            "margin_critical_percent": self.margin_critical_percent,
            "variance_threshold_percent": self.variance_threshold_percent,
        }


def _percent_or_default(value: Optional[float], default: float) -> float:
    if value is None:
        return float(default)
    return max(0.0, float(value))


def margin_settings_for(row: Optional[OrgSettings]) -> MarginSettings:
    """Normalize thresholds: missing -> default, negative -> 0."""
    return MarginSettings(
        margin_warning_percent=_percent_or_default(
            row.margin_warning_percent if row else None, settings.DEFAULT_MARGIN_WARNING_PERCENT
        ),
        margin_critical_percent=_percent_or_default(
            row.margin_critical_percent if row else None, settings.DEFAULT_MARGIN_CRITICAL_PERCENT
        ),
        variance_threshold_percent=_percent_or_default(
            row.variance_threshold_percent if row else None, settings.DEFAULT_VARIANCE_THRESHOLD_PERCENT
        ),
    )


# =====================================
# Settings
# =====================================

def get_org_settings(db: Session, org_id: UUID) -> OrgSettings:
    """Settings row for the org, created with defaults on first access."""
    row = db.get(OrgSettings, org_id)
    if row is None:
        row = OrgSettings(org_id=org_id, automations_disabled=False, invoice_next_number=1)
        db.add(row)
        db.flush()
    return row


def serialize_org_settings(row: OrgSettings) -> Dict[str, Any]:
    data = row.to_dict()
    data["effective"] = {
        **margin_settings_for(row).to_dict(),
        "default_daily_capacity_minutes": row.default_daily_capacity_minutes
        or settings.DEFAULT_DAILY_CAPACITY_MINUTES,
    }
    return data


def update_org_settings(db: Session, org_id: UUID, changes: Dict[str, Any]) -> OrgSettings:
    row = get_org_settings(db, org_id)
    for field in SETTINGS_FIELDS:
        if field in changes:
            setattr(row, field, changes[field])

    margins = margin_settings_for(row)
    if margins.margin_critical_percent > margins.margin_warning_percent:
        raise ValidationError("Critical margin threshold cannot exceed the warning threshold")

    db.commit()
    logger.info("Org settings updated", extra={"org_id": str(org_id), "fields": sorted(changes)})
    return row


# =====================================
# Members
# =====================================

def list_members(db: Session, org_id: UUID) -> List[User]:
    return db.query(User).filter(User.org_id == org_id).order_by(User.email).all()


def create_member(
    db: Session,
    org_id: UUID,
    email: str,
    password: str,
    full_name: Optional[str] = None,
    role_key: str = "staff",
    crew_member_id: Optional[UUID] = None,
) -> User:
    """
    Raises:
        EmailAlreadyExistsError: the email is taken in any org
        NotFoundError: ``crew_member_id`` is not a crew member of the org
    """
    email = email.lower()
    if db.query(User.id).filter(User.email == email).first():
        raise EmailAlreadyExistsError()

    if crew_member_id is not None:
        crew = db.get(CrewMember, crew_member_id)
        if crew is None or crew.org_id != org_id:
            raise NotFoundError("Crew member", identifier=str(crew_member_id))

    user = User(
        org_id=org_id,
        email=email,
        hashed_password=AuthService.hash_password(password),
        full_name=full_name,
        role_key=role_key,
        crew_member_id=crew_member_id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Org member created", extra={"org_id": str(org_id), "user_id": str(user.id), "role_key": role_key})
    return user


def update_member(db: Session, org_id: UUID, user_id: UUID, changes: Dict[str, Any]) -> User:
    """
    Change a member's role, crew link or active flag.

    Deactivating a member also revokes their tokens.
    """
    user = db.query(User).filter(User.org_id == org_id, User.id == user_id).first()
    if user is None:
        raise NotFoundError("User", identifier=str(user_id))

    demoting = changes.get("role_key") is not None and changes["role_key"] not in ("owner", "admin")
    disabling = changes.get("is_active") is False
    if demoting or disabling:
        assert_not_last_admin(db, org_id, user)

    if changes.get("crew_member_id") is not None:
        crew = db.get(CrewMember, changes["crew_member_id"])
        if crew is None or crew.org_id != org_id:
            raise NotFoundError("Crew member", identifier=str(changes["crew_member_id"]))

    for field in ("full_name", "role_key", "crew_member_id", "is_active"):
        if field in changes and (changes[field] is not None or field == "crew_member_id"):
            setattr(user, field, changes[field])
    if disabling:
        user.invalidate_tokens()
    db.commit()
    logger.info("Org member updated", extra={"org_id": str(org_id), "user_id": str(user.id), "fields": sorted(changes)})
    return user


# =====================================
# Roles
# =====================================

def list_roles(db: Session, org_id: UUID) -> List[Dict[str, Any]]:
    """Org role rows, plus built-in templates for keys the org has not overridden."""
    rows = db.query(OrgRole).filter(OrgRole.org_id == org_id).order_by(OrgRole.key).all()
    result = [{**row.to_dict(), "is_default": False} for row in rows]
    overridden = {row.key for row in rows}
    for key, capabilities in DEFAULT_ROLE_CAPABILITIES.items():
        if key not in overridden:
            result.append({"key": key, "name": key.title(), "capabilities": list(capabilities), "is_default": True})
    return result


def upsert_role(db: Session, org_id: UUID, key: str, name: str, capabilities: List[str]) -> OrgRole:
    unknown = sorted(set(capabilities) - ALL_CAPABILITIES)
    if unknown:
        raise ValidationError(f"Unknown capabilities: {', '.join(unknown)}")
    if not key.strip():
        raise ValidationError("Role key is required")

    row = db.query(OrgRole).filter(OrgRole.org_id == org_id, OrgRole.key == key).first()
    if row is None:
        row = OrgRole(org_id=org_id, key=key, name=name, capabilities=list(capabilities))
        db.add(row)
    else:
        row.name = name
        row.capabilities = list(capabilities)
    db.commit()
    return row


def assert_not_last_admin(db: Session, org_id: UUID, user: User) -> None:
    """Raises ConflictError when demoting or disabling the org's only owner/admin."""
    admins = (
        db.query(User)
        .filter(User.org_id == org_id, User.role_key.in_(("owner", "admin")), User.is_active.is_(True))
        .count()
    )
    if user.role_key in ("owner", "admin") and admins <= 1:
        raise ConflictError("The organization must keep at least one admin")
