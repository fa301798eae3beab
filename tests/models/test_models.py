"""
Model Unit Tests
================

Tests for SQLAlchemy models including:
- User model
- Organization model
- Org-scoped business models (defaults and constraints)
"""

import pytest
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.contact import Contact
from app.models.invoice import JobInvoice
from app.models.job import Job
from app.models.organization import Organization
from app.models.user import User
from app.services.auth_service import AuthService


pytestmark = pytest.mark.unit


class TestUserModel:
    """Tests for User model."""

    def test_user_creation(self, db_session: Session, sample_organization: Organization):
        """Test creating a user with the Python-level defaults."""
        # Arrange
        user = User(
            email="new@example.com",
            hashed_password=AuthService.hash_password("Password123!"),
            org_id=sample_organization.id,
        )

        # Act
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)

        # Assert
        assert isinstance(user.id, UUID)
        assert user.role_key == "staff"
        assert user.is_active is True
        assert user.is_locked is False
        assert user.failed_attempts == 0
        assert user.token_version == 1
        assert user.created_at is not None

    def test_user_lock_and_unlock(self, staff_user: User, db_session: Session):
        """Test that unlocking also clears failed attempts."""
        # Arrange
        staff_user.failed_attempts = 4
        staff_user.lock_account()
        db_session.commit()
        assert staff_user.is_locked is True

        # Act
        staff_user.unlock_account()
        db_session.commit()

        # Assert
        assert staff_user.is_locked is False
        assert staff_user.failed_attempts == 0

    def test_user_invalidate_tokens(self, staff_user: User, db_session: Session):
        """Test that invalidate_tokens bumps the version."""
        # Act
        staff_user.invalidate_tokens()
        db_session.commit()

        # Assert
        assert staff_user.token_version == 2

    def test_user_to_dict_hides_password(self, staff_user: User, crew_member):
        """Test that to_dict never exposes the password hash."""
        # Act
        data = staff_user.to_dict()

        # Assert
        assert "hashed_password" not in data
        assert data["email"] == "staff@example.com"
        assert data["crew_member_id"] == str(crew_member.id)

    def test_user_email_unique(self, db_session: Session, staff_user: User, sample_organization: Organization):
        """Test that duplicate emails are rejected."""
        # Arrange
        duplicate = User(email=staff_user.email, hashed_password="x", org_id=sample_organization.id)

        # Act & Assert
        db_session.add(duplicate)
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_user_org_required(self, db_session: Session):
        """Test that a user without an org is rejected."""
        db_session.add(User(email="orphan@example.com", hashed_password="x"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestOrganizationModel:
    """Tests for Organization model."""

    def test_organization_unique_name(self, db_session: Session, sample_organization: Organization):
        """Test that organization names are unique."""
        db_session.add(Organization(id=uuid4(), name=sample_organization.name))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_organization_user_count(self, db_session: Session, sample_organization: Organization, owner_user, staff_user):
        """Test the user_count property."""
        db_session.refresh(sample_organization)
        assert sample_organization.user_count == 2
        assert sample_organization.to_dict()["user_count"] == 2

    def test_cascade_delete_users_on_organization_delete(
        self,
        db_session: Session,
        sample_organization: Organization,
        owner_user: User,
    ):
        """Test that deleting an organization deletes its users."""
        # Arrange
        user_id = owner_user.id
        db_session.refresh(sample_organization)

        # Act
        db_session.delete(sample_organization)
        db_session.commit()

        # Assert
        assert db_session.get(User, user_id) is None


class TestBusinessModels:
    """Defaults and constraints of org-scoped rows."""

    def test_contact_defaults(self, db_session: Session, sample_organization: Organization):
        """Test contact defaults."""
        contact = Contact(org_id=sample_organization.id, full_name="Jane Seller")
        db_session.add(contact)
        db_session.commit()

        assert contact.role == "unknown"
        assert contact.temperature == "unknown"
        assert contact.tags == []
        assert contact.do_not_contact is False

    def test_job_defaults(self, db_session: Session, sample_organization: Organization):
        """Test job defaults."""
        job = Job(org_id=sample_organization.id, title="Bathroom")
        db_session.add(job)
        db_session.commit()

        assert job.status == "unassigned"
        assert job.priority == "normal"
        assert job.profitability_status == "healthy"
        assert job.flags == []

    def test_invoice_number_unique_per_org(
        self,
        db_session: Session,
        sample_organization: Organization,
        second_organization: Organization,
    ):
        """Test that invoice numbers are unique within an org only."""
        # Arrange
        own_job = Job(org_id=sample_organization.id, title="A")
        other_job = Job(org_id=second_organization.id, title="B")
        db_session.add_all([own_job, other_job])
        db_session.flush()

        db_session.add_all([
            JobInvoice(org_id=sample_organization.id, job_id=own_job.id, invoice_number="INV-1"),
            JobInvoice(org_id=second_organization.id, job_id=other_job.id, invoice_number="INV-1"),
        ])
        db_session.commit()

        # Act & Assert
        db_session.add(JobInvoice(org_id=sample_organization.id, job_id=own_job.id, invoice_number="INV-1"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()
