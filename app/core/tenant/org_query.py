"""
Org Query Utilities Module
==========================

Provides utilities for multi-tenant data isolation.

Features:
- Automatic org filtering for queries
- Lookups that treat rows of other orgs as missing
- Cross-org access attempts are security logged

Security:
- Enforces org isolation at the query level
- A row of another org is reported as NOT_FOUND, never FORBIDDEN,
  so ids cannot be guessed across tenants
"""

from typing import Generic, Optional, Type, TypeVar
from uuid import UUID

from sqlalchemy.orm import Query, Session

from app.core.authz import Actor
from app.core.exceptions import NotFoundError
from app.core.logging import get_logger, security_logger

# Initialize logger
logger = get_logger(__name__)

# Generic type for models with org_id
T = TypeVar("T")


class OrgQuery(Generic[T]):
    """
    Helper class for org-isolated database queries.

    Usage:
        contacts = OrgQuery(db, Contact, actor.org_id)
        rows = contacts.query().filter(Contact.role == "seller").all()
        contact = contacts.get_or_404(contact_id, "Contact")
    """

    def __init__(self, db: Session, model: Type[T], org_id: UUID):
        self.db = db
        self.model = model
        self.org_id = org_id

    def query(self) -> Query:
        """Query filtered by the org."""
        return self.db.query(self.model).filter(self.model.org_id == self.org_id)

    def get(self, resource_id: UUID) -> Optional[T]:
        row = self.db.get(self.model, resource_id)
        if row is None:
            return None
        if row.org_id != self.org_id:
            security_logger.log_cross_org_access(
                user_id="unknown",
                user_org=str(self.org_id),
                resource=f"{self.model.__tablename__}:{resource_id}",
            )
            return None
        return row

    def get_or_404(self, resource_id: UUID, resource: Optional[str] = None) -> T:
        """
        Get a row by id within the org.

        Raises:
            NotFoundError: missing, or owned by a different org
        """
        row = self.get(resource_id)
        if row is None:
            raise NotFoundError(resource or self.model.__name__, identifier=str(resource_id))
        return row


def org_query(db: Session, model: Type[T], actor: Actor) -> OrgQuery[T]:
    """Shortcut for ``OrgQuery(db, model, actor.org_id)``."""
    return OrgQuery(db, model, actor.org_id)
