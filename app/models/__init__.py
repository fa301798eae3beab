"""
Model Package Initialization
============================

Ensures models are properly registered when imported by the application.

All SQLAlchemy ORM models are exported from this module.

Usage:
    from app.models import User, Organization, Job
"""

from .organization import Organization, OrgSettings
from .role import OrgRole, CrewMember
from .user import User
from .contact import Contact, ContactActivity
from .appraisal import Appraisal, AppraisalChecklistItem, AppraisalFollowup
from .listing import (
    Listing,
    ListingChecklistItem,
    ListingMilestone,
    ListingEnquiry,
    ListingInspection,
    ListingBuyer,
    ListingVendorComm,
)
from .job import Job, JobHoursLog, JobCost, JobActivityEvent
from .material import Material, MaterialUsageLog
from .invoice import JobInvoice, JobPayment
from .notification import Notification
from .event import AuditLog, AppEvent
from .automation import AutomationRule, AutomationRun

__all__ = [
    "Organization",
    "OrgSettings",
    "OrgRole",
    "CrewMember",
    "User",
    "Contact",
    "ContactActivity",
    "Appraisal",
    "AppraisalChecklistItem",
    "AppraisalFollowup",
    "Listing",
    "ListingChecklistItem",
    "ListingMilestone",
    "ListingEnquiry",
    "ListingInspection",
    "ListingBuyer",
    "ListingVendorComm",
    "Job",
    "JobHoursLog",
    "JobCost",
    "JobActivityEvent",
    "Material",
    "MaterialUsageLog",
    "JobInvoice",
    "JobPayment",
    "Notification",
    "AuditLog",
    "AppEvent",
    "AutomationRule",
    "AutomationRun",
]
