"""Initial schema: tenants, sales pipeline, jobs, billing and automations

Revision ID: 202610180001
Revises: 
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '202610180001'
down_revision = None
branch_labels = None
depends_on = None


def _id():
    return sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True, nullable=False)


def _org_id():
    return sa.Column(
        'org_id',
        sa.Uuid(as_uuid=True),
        sa.ForeignKey('organizations.id', ondelete='CASCADE'),
        nullable=False,
        index=True,
    )


def _fk(name, target, ondelete='CASCADE', nullable=False, index=True):
    return sa.Column(
        name,
        sa.Uuid(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
        index=index,
    )


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False)


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False)


def _ts(name, nullable=True):
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _percent(name):
    return sa.Column(name, sa.Numeric(5, 2), nullable=True)


def upgrade() -> None:
    # ------------------------------
    # Tenants, roles and users
    # ------------------------------
    op.create_table(
        'organizations',
        _id(),
        sa.Column('name', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('business_type', sa.String(50), nullable=False, server_default='trades'),
        _created_at(),
        _updated_at(),
    )
    op.create_table(
        'org_settings',
        sa.Column('org_id', sa.Uuid(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('company_name', sa.String(255), nullable=True),
        sa.Column('timezone', sa.String(64), nullable=True),
        sa.Column('default_daily_capacity_minutes', sa.Integer(), nullable=True),
        _percent('margin_warning_percent'),
        _percent('margin_critical_percent'),
        _percent('variance_threshold_percent'),
        sa.Column('automations_disabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('invoice_next_number', sa.Integer(), nullable=False, server_default='1'),
        _created_at(),
        _updated_at(),
    )
    op.create_table(
        'org_roles',
        _id(),
        _org_id(),
        sa.Column('key', sa.String(50), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('capabilities', sa.JSON(), nullable=False),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint('org_id', 'key', name='uq_org_roles_org_key'),
    )
    op.create_table(
        'crew_members',
        _id(),
        _org_id(),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('cost_rate_cents', sa.Integer(), nullable=True),
        sa.Column('cost_rate_type', sa.String(20), nullable=False, server_default='hourly'),
        sa.Column('daily_capacity_minutes', sa.Integer(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _updated_at(),
    )
    op.create_table(
        'users',
        _id(),
        _org_id(),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=True),
        sa.Column('role_key', sa.String(50), nullable=False, server_default='staff'),
        _fk('crew_member_id', 'crew_members.id', ondelete='SET NULL', nullable=True, index=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('failed_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_locked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default='1'),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_users_org_role', 'users', ['org_id', 'role_key'])

    # ------------------------------
    # Contacts and appraisals
    # ------------------------------
    op.create_table(
        'contacts',
        _id(),
        _org_id(),
        _fk('owner_user_id', 'users.id', ondelete='SET NULL', nullable=True, index=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('suburb', sa.String(120), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='unknown'),
        sa.Column('temperature', sa.String(20), nullable=False, server_default='unknown'),
        sa.Column('lead_source', sa.String(100), nullable=True),
        sa.Column('seller_stage', sa.String(100), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        _ts('last_touch_at'),
        _ts('next_touch_at'),
        sa.Column('do_not_contact', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_contacts_org_next_touch', 'contacts', ['org_id', 'next_touch_at'])
    op.create_table(
        'contact_activities',
        _id(),
        _org_id(),
        _fk('contact_id', 'contacts.id'),
        sa.Column('type', sa.String(50), nullable=False, server_default='call'),
        sa.Column('summary', sa.Text(), nullable=True),
        _ts('occurred_at', nullable=False),
        sa.Column('created_by_user_id', sa.Uuid(as_uuid=True), nullable=True),
        _created_at(),
    )
    op.create_table(
        'appraisals',
        _id(),
        _org_id(),
        _fk('contact_id', 'contacts.id', ondelete='SET NULL', nullable=True),
        _fk('owner_user_id', 'users.id', ondelete='SET NULL', nullable=True, index=False),
        sa.Column('address', sa.String(255), nullable=False),
        sa.Column('suburb', sa.String(120), nullable=True),
        sa.Column('stage', sa.String(30), nullable=False, server_default='booked'),
        _ts('appointment_at'),
        sa.Column('outcome', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('lead_source', sa.String(100), nullable=True),
        sa.Column('decision_makers', sa.Text(), nullable=True),
        sa.Column('motivation', sa.Text(), nullable=True),
        sa.Column('timeline', sa.String(20), nullable=False, server_default='unknown'),
        sa.Column('price_expectation_min_cents', sa.Integer(), nullable=True),
        sa.Column('price_expectation_max_cents', sa.Integer(), nullable=True),
        sa.Column('objections', sa.Text(), nullable=True),
        sa.Column('win_probability_score', sa.Integer(), nullable=True),
        sa.Column('win_probability_band', sa.String(10), nullable=True),
        sa.Column('win_probability_reasons', sa.JSON(), nullable=False),
        _created_at(),
        _updated_at(),
    )
    op.create_table(
        'appraisal_checklist_items',
        _id(),
        _org_id(),
        _fk('appraisal_id', 'appraisals.id'),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('is_done', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('due_at'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
    )
    op.create_table(
        'appraisal_followups',
        _id(),
        _org_id(),
        _fk('appraisal_id', 'appraisals.id'),
        sa.Column('title', sa.String(255), nullable=False),
        _ts('due_at', nullable=False),
        sa.Column('is_done', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('completed_at'),
        _created_at(),
    )

    # ------------------------------
    # Listings
    # ------------------------------
    op.create_table(
        'listings',
        _id(),
        _org_id(),
        _fk('owner_user_id', 'users.id', ondelete='SET NULL', nullable=True, index=False),
        _fk('vendor_contact_id', 'contacts.id', ondelete='SET NULL', nullable=True, index=False),
        sa.Column('address_line1', sa.String(255), nullable=False),
        sa.Column('suburb', sa.String(120), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        sa.Column('price_guide', sa.String(120), nullable=True),
        _ts('listed_at'),
        sa.Column('report_cadence_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('report_cadence_days', sa.Integer(), nullable=False, server_default='7'),
        _ts('report_next_due_at'),
        _ts('report_last_sent_at'),
        sa.Column('campaign_health_score', sa.Integer(), nullable=True),
        sa.Column('campaign_health_band', sa.String(20), nullable=True),
        sa.Column('campaign_health_reasons', sa.JSON(), nullable=False),
        _ts('campaign_health_updated_at'),
        _created_at(),
        _updated_at(),
    )
    op.create_table(
        'listing_checklist_items',
        _id(),
        _org_id(),
        _fk('listing_id', 'listings.id'),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('is_done', sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts('due_at'),
        _created_at(),
    )
    op.create_table(
        'listing_milestones',
        _id(),
        _org_id(),
        _fk('listing_id', 'listings.id'),
        sa.Column('name', sa.String(255), nullable=False),
        _ts('target_due_at'),
        _ts('completed_at'),
        _created_at(),
    )
    op.create_table(
        'listing_enquiries',
        _id(),
        _org_id(),
        _fk('listing_id', 'listings.id'),
        sa.Column('buyer_name', sa.String(255), nullable=True),
        sa.Column('source', sa.String(100), nullable=True),
        _ts('occurred_at', nullable=False),
        _created_at(),
    )
    op.create_table(
        'listing_inspections',
        _id(),
        _org_id(),
        _fk('listing_id', 'listings.id'),
        _ts('starts_at', nullable=False),
        _ts('ends_at'),
        sa.Column('attendee_count', sa.Integer(), nullable=False, server_default='0'),
        _created_at(),
    )
    op.create_table(
        'listing_buyers',
        _id(),
        _org_id(),
        _fk('listing_id', 'listings.id'),
        _fk('contact_id', 'contacts.id', ondelete='SET NULL', nullable=True, index=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(30), nullable=False, server_default='new'),
        _ts('next_follow_up_at'),
        _created_at(),
        _updated_at(),
    )
    op.create_table(
        'listing_vendor_comms',
        _id(),
        _org_id(),
        _fk('listing_id', 'listings.id'),
        sa.Column('type', sa.String(30), nullable=False, server_default='call'),
        sa.Column('summary', sa.Text(), nullable=True),
        _ts('occurred_at', nullable=False),
        _created_at(),
    )

    # ------------------------------
    # Jobs and warehouse
    # ------------------------------
    op.create_table(
        'jobs',
        _id(),
        _org_id(),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('client_name', sa.String(255), nullable=True),
        sa.Column('address', sa.String(255), nullable=True),
        sa.Column('suburb', sa.String(120), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='unassigned'),
        sa.Column('priority', sa.String(20), nullable=False, server_default='normal'),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('flags', sa.JSON(), nullable=False),
        _fk('crew_id', 'crew_members.id', ondelete='SET NULL', nullable=True),
        _fk('owner_user_id', 'users.id', ondelete='SET NULL', nullable=True, index=False),
        _ts('scheduled_start'),
        _ts('scheduled_end'),
        _ts('completed_at'),
        sa.Column('estimated_revenue_cents', sa.Integer(), nullable=True),
        sa.Column('estimated_cost_cents', sa.Integer(), nullable=True),
        _percent('target_margin_percent'),
        sa.Column('revenue_override_cents', sa.Integer(), nullable=True),
        sa.Column('profitability_status', sa.String(20), nullable=False, server_default='healthy'),
        _created_at(),
        _updated_at(),
    )
    op.create_index('ix_jobs_org_status', 'jobs', ['org_id', 'status'])
    op.create_table(
        'job_hours_logs',
        _id(),
        _org_id(),
        _fk('job_id', 'jobs.id'),
        _fk('crew_member_id', 'crew_members.id', ondelete='SET NULL', nullable=True, index=False),
        sa.Column('minutes', sa.Integer(), nullable=False),
        sa.Column('work_date', sa.Date(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_table(
        'job_costs',
        _id(),
        _org_id(),
        _fk('job_id', 'jobs.id'),
        sa.Column('cost_type', sa.String(20), nullable=False, server_default='other'),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        _ts('incurred_at'),
        _created_at(),
    )
    op.create_table(
        'job_activity_events',
        _id(),
        _org_id(),
        _fk('job_id', 'jobs.id'),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('actor_user_id', sa.Uuid(as_uuid=True), nullable=True),
        _created_at(),
    )
    op.create_index('ix_job_activity_job_type', 'job_activity_events', ['job_id', 'type'])
    op.create_table(
        'materials',
        _id(),
        _org_id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('sku', sa.String(100), nullable=True),
        sa.Column('unit', sa.String(30), nullable=False, server_default='each'),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=True),
        sa.Column('stock_on_hand', sa.Float(), nullable=False, server_default='0'),
        sa.Column('reorder_threshold', sa.Float(), nullable=True),
        _created_at(),
        _updated_at(),
    )
    op.create_table(
        'material_usage_logs',
        _id(),
        _org_id(),
        _fk('job_id', 'jobs.id'),
        _fk('material_id', 'materials.id'),
        sa.Column('quantity', sa.Float(), nullable=False),
        sa.Column('unit_cost_cents', sa.Integer(), nullable=True),
        sa.Column('logged_by_user_id', sa.Uuid(as_uuid=True), nullable=True),
        _created_at(),
    )

    # ------------------------------
    # Billing
    # ------------------------------
    op.create_table(
        'job_invoices',
        _id(),
        _org_id(),
        _fk('job_id', 'jobs.id'),
        sa.Column('invoice_number', sa.String(50), nullable=True),
        sa.Column('summary', sa.String(255), nullable=True),
        sa.Column('currency', sa.String(3), nullable=False, server_default='AUD'),
        sa.Column('amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tax_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('line_items', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='draft'),
        _ts('issued_at'),
        _ts('sent_at'),
        _ts('due_at'),
        _ts('paid_at'),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint('org_id', 'invoice_number', name='uq_job_invoices_org_number'),
    )
    op.create_table(
        'job_payments',
        _id(),
        _org_id(),
        _fk('job_id', 'jobs.id'),
        _fk('invoice_id', 'job_invoices.id', ondelete='SET NULL', nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('method', sa.String(30), nullable=True),
        sa.Column('reference', sa.String(120), nullable=True),
        _ts('paid_at'),
        _created_at(),
    )

    # ------------------------------
    # Notifications, audit and automations
    # ------------------------------
    op.create_table(
        'notifications',
        _id(),
        _org_id(),
        sa.Column('recipient_user_id', sa.Uuid(as_uuid=True), nullable=True, index=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('severity', sa.String(10), nullable=False, server_default='info'),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('body', sa.Text(), nullable=True),
        sa.Column('entity_type', sa.String(50), nullable=True),
        sa.Column('entity_id', sa.String(64), nullable=True),
        sa.Column('deeplink', sa.String(255), nullable=True),
        sa.Column('event_key', sa.String(255), nullable=True),
        _ts('read_at'),
        _created_at(),
        sa.UniqueConstraint('org_id', 'event_key', name='uq_notifications_org_event_key'),
    )
    op.create_index('ix_notifications_org_read', 'notifications', ['org_id', 'read_at'])
    op.create_table(
        'audit_logs',
        _id(),
        _org_id(),
        sa.Column('actor_user_id', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('action', sa.String(80), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.String(64), nullable=True),
        sa.Column('before', sa.JSON(), nullable=True),
        sa.Column('after', sa.JSON(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        _created_at(),
    )
    op.create_index('ix_audit_logs_org_entity', 'audit_logs', ['org_id', 'entity_type', 'entity_id'])
    op.create_table(
        'app_events',
        _id(),
        _org_id(),
        sa.Column('event_type', sa.String(80), nullable=False, index=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('actor_user_id', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('event_key', sa.String(255), nullable=True),
        _created_at(),
        sa.UniqueConstraint('org_id', 'event_key', name='uq_app_events_org_event_key'),
    )
    op.create_table(
        'automation_rules',
        _id(),
        _org_id(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('trigger_key', sa.String(80), nullable=False, index=True),
        sa.Column('is_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('conditions', sa.JSON(), nullable=False),
        sa.Column('actions', sa.JSON(), nullable=False),
        sa.Column('created_by_user_id', sa.Uuid(as_uuid=True), nullable=True),
        _ts('last_run_at'),
        _created_at(),
        _updated_at(),
    )
    op.create_table(
        'automation_runs',
        _id(),
        _org_id(),
        _fk('rule_id', 'automation_rules.id'),
        sa.Column('event_id', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('trigger_key', sa.String(80), nullable=False),
        sa.Column('idempotency_key', sa.String(64), nullable=False, unique=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='queued'),
        sa.Column('match_details', sa.JSON(), nullable=False),
        sa.Column('action_results', sa.JSON(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        _created_at(),
    )


def downgrade() -> None:
    for table in (
        'automation_runs',
        'automation_rules',
        'app_events',
        'audit_logs',
        'notifications',
        'job_payments',
        'job_invoices',
        'material_usage_logs',
        'materials',
        'job_activity_events',
        'job_costs',
        'job_hours_logs',
        'jobs',
        'listing_vendor_comms',
        'listing_buyers',
        'listing_inspections',
        'listing_enquiries',
        'listing_milestones',
        'listing_checklist_items',
        'listings',
        'appraisal_followups',
        'appraisal_checklist_items',
        'appraisals',
        'contact_activities',
        'contacts',
        'users',
        'crew_members',
        'org_roles',
        'org_settings',
        'organizations',
    ):
        op.drop_table(table)
