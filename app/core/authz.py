"""
Capability-Based Authorization
==============================

Pure permission predicates over an ``Actor``.

An actor's capabilities come from the org role named by the user's
``role_key``. The ``admin`` capability grants everything. Job visibility
is either org-wide or limited to the actor's own crew.

Usage:
    if not can_manage_contacts(actor):
        raise AuthorizationError()
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, TypeVar

from sqlalchemy import false
from sqlalchemy.orm import Query

from app.core.exceptions import AuthorizationError


class Capability(str, Enum):
    ADMIN = "admin"
    MANAGE_ORG = "manage_org"
    MANAGE_ROLES = "manage_roles"
    MANAGE_STAFF = "manage_staff"
    MANAGE_SCHEDULE = "manage_schedule"
    MANAGE_JOBS = "manage_jobs"
    UPDATE_JOBS = "update_jobs"
    VIEW_JOBS = "view_jobs"
    VIEW_SCHEDULE = "view_schedule"
    VIEW_AUDIT_LOGS = "view_audit_logs"
    MANAGE_TEMPLATES = "manage_templates"
    MANAGE_ANNOUNCEMENTS = "manage_announcements"


ALL_CAPABILITIES: FrozenSet[str] = frozenset(c.value for c in Capability)

# Built-in role templates, used when the org has no role row for the key
DEFAULT_ROLE_CAPABILITIES: Dict[str, List[str]] = {
    "owner": [Capability.ADMIN.value],
    "admin": [Capability.ADMIN.value],
    "manager": [
        Capability.MANAGE_JOBS.value,
        Capability.MANAGE_SCHEDULE.value,
        Capability.MANAGE_STAFF.value,
        Capability.VIEW_AUDIT_LOGS.value,
        Capability.MANAGE_TEMPLATES.value,
        Capability.MANAGE_ANNOUNCEMENTS.value,
    ],
    "agent": [Capability.MANAGE_JOBS.value, Capability.VIEW_SCHEDULE.value],
    "staff": [Capability.VIEW_JOBS.value, Capability.UPDATE_JOBS.value, Capability.VIEW_SCHEDULE.value],
    "viewer": [Capability.VIEW_JOBS.value],
}

ORG_WIDE_VISIBILITY_CAPABILITIES: FrozenSet[str] = frozenset({
    Capability.ADMIN.value,
    Capability.MANAGE_ORG.value,
    Capability.MANAGE_ROLES.value,
    Capability.MANAGE_STAFF.value,
    Capability.MANAGE_SCHEDULE.value,
    Capability.MANAGE_JOBS.value,
})


class VisibilityMode(str, Enum):
    ORG_WIDE = "org_wide"
    CREW_SCOPED = "crew_scoped"


@dataclass(frozen=True)
class Actor:
    """The authenticated user plus the capabilities derived from their role."""

    user_id: Optional[uuid.UUID]
    org_id: Optional[uuid.UUID]
    crew_member_id: Optional[uuid.UUID] = None
    role_key: Optional[str] = None
    capabilities: Sequence[str] = field(default_factory=tuple)
    is_impersonating: bool = False


def has_capability(actor: Actor, capability: str) -> bool:
    if not actor.user_id:
        return False
    if Capability.ADMIN.value in actor.capabilities:
        return True
    return capability in actor.capabilities


# =====================================
# Job Visibility
# =====================================

def get_visibility_mode(actor: Actor) -> VisibilityMode:
    if not actor.user_id:
        return VisibilityMode.CREW_SCOPED
    if ORG_WIDE_VISIBILITY_CAPABILITIES.intersection(actor.capabilities):
        return VisibilityMode.ORG_WIDE
    return VisibilityMode.CREW_SCOPED


def get_crew_ids_for_actor(actor: Actor) -> List[uuid.UUID]:
    if not actor.user_id or not actor.crew_member_id:
        return []
    return [actor.crew_member_id]


T = TypeVar("T")


def filter_visible_jobs(rows: List[T], actor: Actor) -> List[T]:
    """In-memory variant of ``apply_job_visibility`` for loaded rows."""
    if get_visibility_mode(actor) == VisibilityMode.ORG_WIDE:
        return rows
    crew_ids = get_crew_ids_for_actor(actor)
    return [row for row in rows if getattr(row, "crew_id", None) is not None and row.crew_id in crew_ids]


def apply_job_visibility(query: Query, actor: Actor, job_model) -> Query:
    """Restrict a job query to the rows the actor may see."""
    if get_visibility_mode(actor) == VisibilityMode.ORG_WIDE:
        return query
    crew_ids = get_crew_ids_for_actor(actor)
    if not crew_ids:
        return query.filter(false())
    return query.filter(job_model.crew_id.in_(crew_ids))


def assert_job_write_access(job, actor: Actor) -> None:
    """
    Raise FORBIDDEN unless the actor may write to the job.

    Org-wide actors may write to any job; crew-scoped actors only to
    jobs assigned to their crew.
    """
    if get_visibility_mode(actor) == VisibilityMode.ORG_WIDE:
        return
    crew_ids = get_crew_ids_for_actor(actor)
    if job.crew_id is not None and job.crew_id in crew_ids:
        return
    raise AuthorizationError("Insufficient permissions")


# =====================================
# Predicates
# =====================================

def can_manage_org_settings(actor: Actor) -> bool:
    return has_capability(actor, Capability.MANAGE_ORG.value)


def can_manage_staff(actor: Actor) -> bool:
    return has_capability(actor, Capability.MANAGE_STAFF.value)


def can_manage_schedule(actor: Actor) -> bool:
    return has_capability(actor, Capability.MANAGE_SCHEDULE.value)


def can_manage_jobs(actor: Actor) -> bool:
    return has_capability(actor, Capability.MANAGE_JOBS.value)


def can_manage_contacts(actor: Actor) -> bool:
    return can_manage_jobs(actor) or can_manage_staff(actor)


def can_manage_warehouse(actor: Actor) -> bool:
    return can_manage_jobs(actor) or can_manage_schedule(actor)


def can_log_material_usage(actor: Actor) -> bool:
    return can_manage_warehouse(actor)


def can_manage_clients(actor: Actor) -> bool:
    return can_manage_jobs(actor) or can_manage_org_settings(actor)


def can_update_jobs(actor: Actor) -> bool:
    return has_capability(actor, Capability.UPDATE_JOBS.value) or can_manage_jobs(actor)


def can_write_job_artifacts(actor: Actor) -> bool:
    return can_update_jobs(actor)


def can_view_jobs(actor: Actor) -> bool:
    return has_capability(actor, Capability.VIEW_JOBS.value) or can_update_jobs(actor)


def can_view_schedule(actor: Actor) -> bool:
    return has_capability(actor, Capability.VIEW_SCHEDULE.value) or can_manage_schedule(actor)


def can_view_audit_logs(actor: Actor) -> bool:
    return has_capability(actor, Capability.VIEW_AUDIT_LOGS.value) or can_manage_org_settings(actor)


def can_manage_templates(actor: Actor) -> bool:
    return has_capability(actor, Capability.MANAGE_TEMPLATES.value)


def can_manage_announcements(actor: Actor) -> bool:
    return has_capability(actor, Capability.MANAGE_ANNOUNCEMENTS.value)


def is_org_admin(actor: Actor) -> bool:
    return has_capability(actor, Capability.ADMIN.value)


def is_authenticated(actor: Actor) -> bool:
    return actor.user_id is not None


Permission = Callable[[Actor], bool]
