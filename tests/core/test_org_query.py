"""
Org Query Utilities Unit Tests
==============================

Tests for org isolation in OrgQuery:
- query() filtering
- get() hiding rows of other orgs
- get_or_404 reporting cross-org rows as NOT_FOUND
"""

import pytest
from uuid import uuid4

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.core.tenant.org_query import OrgQuery, org_query
from app.models.contact import Contact
from app.models.organization import Organization


pytestmark = pytest.mark.tenant


@pytest.fixture
def contacts(db_session: Session, sample_organization: Organization, second_organization: Organization):
    own = Contact(org_id=sample_organization.id, full_name="Own Contact")
    other = Contact(org_id=second_organization.id, full_name="Other Contact")
    db_session.add_all([own, other])
    db_session.commit()
    return own, other


class TestOrgQueryFiltering:
    """Tests for OrgQuery.query."""

    def test_query_only_returns_own_org(self, db_session, sample_organization, contacts):
        """Test that rows of another org are filtered out."""
        # Arrange
        own, other = contacts

        # Act
        rows = OrgQuery(db_session, Contact, sample_organization.id).query().all()

        # Assert
        assert [row.id for row in rows] == [own.id]

    def test_org_query_shortcut_uses_actor_org(self, db_session, owner_actor, contacts):
        """Test that org_query scopes to the actor's org."""
        # Arrange
        own, _ = contacts

        # Act
        rows = org_query(db_session, Contact, owner_actor).query().all()

        # Assert
        assert [row.id for row in rows] == [own.id]


class TestOrgQueryLookup:
    """Tests for OrgQuery.get and get_or_404."""

    def test_get_own_row(self, db_session, sample_organization, contacts):
        """Test that an own-org row is returned."""
        # Arrange
        own, _ = contacts

        # Act
        row = OrgQuery(db_session, Contact, sample_organization.id).get(own.id)

        # Assert
        assert row is not None
        assert row.full_name == "Own Contact"

    def test_get_other_org_row_returns_none(self, db_session, sample_organization, contacts):
        """Test that a cross-org row looks missing."""
        # Arrange
        _, other = contacts

        # Act
        row = OrgQuery(db_session, Contact, sample_organization.id).get(other.id)

        # Assert
        assert row is None

    def test_get_or_404_cross_org_is_not_found(self, db_session, sample_organization, contacts):
        """Test that cross-org access raises NOT_FOUND, not FORBIDDEN."""
        # Arrange
        _, other = contacts

        # Act / Assert
        with pytest.raises(NotFoundError) as exc_info:
            OrgQuery(db_session, Contact, sample_organization.id).get_or_404(other.id, "Contact")

        assert exc_info.value.status_code == 404

    def test_get_or_404_missing_id(self, db_session, sample_organization):
        """Test that an unknown id raises NOT_FOUND."""
        with pytest.raises(NotFoundError):
            OrgQuery(db_session, Contact, sample_organization.id).get_or_404(uuid4())
