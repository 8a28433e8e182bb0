"""
Initial database schema creation.
This migration creates all tables for the SafeScope tenancy core.
Revision ID: 2025010101
Revises:
Create Date: 2025-01-01 01:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic
revision = '2025010101'
down_revision = None
branch_labels = None
depends_on = None


def timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # Organizations table
    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', sa.String(50), nullable=False, server_default='company'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('logo_url', sa.String(500), nullable=True),
        sa.Column('contact_email', sa.String(255), nullable=True),
        sa.Column('contact_phone', sa.String(50), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('parent_organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('organization_level', sa.String(20), nullable=False, server_default='company'),
        sa.Column('subscription_status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('subscription_plan', sa.String(20), nullable=False, server_default='basic'),
        sa.Column('max_users', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('max_subsidiaries', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('registration_number', sa.String(32), nullable=True),
        sa.Column('legal_name', sa.String(255), nullable=True),
        sa.Column('trade_name', sa.String(255), nullable=True),
        sa.Column('primary_activity_code', sa.String(20), nullable=True),
        sa.Column('primary_activity_description', sa.Text(), nullable=True),
        sa.Column('legal_nature', sa.String(255), nullable=True),
        sa.Column('opening_date', sa.Date(), nullable=True),
        sa.Column('share_capital', sa.Numeric(18, 2), nullable=True),
        sa.Column('company_size', sa.String(50), nullable=True),
        sa.Column('registration_status', sa.String(50), nullable=True),
        sa.Column('employee_count', sa.Integer(), nullable=True),
        sa.Column('annual_revenue', sa.Numeric(18, 2), nullable=True),
        sa.Column('website', sa.String(500), nullable=True),
        sa.Column('industry_sector', sa.String(100), nullable=True),
        sa.Column('industry_subsector', sa.String(100), nullable=True),
        sa.Column('safety_certifications', sa.Text(), nullable=True),
        sa.Column('last_audit_date', sa.Date(), nullable=True),
        sa.Column('risk_level', sa.String(20), nullable=True, server_default='medio'),
        sa.Column('safety_contact_name', sa.String(255), nullable=True),
        sa.Column('safety_contact_email', sa.String(255), nullable=True),
        sa.Column('safety_contact_phone', sa.String(50), nullable=True),
        sa.Column('incident_history', sa.Text(), nullable=True),
        sa.Column('compliance_notes', sa.Text(), nullable=True),
        *timestamps()
    )

    # Users table, keyed by the external identity id
    op.create_table(
        'users',
        sa.Column('id', sa.String(255), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('avatar_url', sa.String(500), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='inspector'),
        sa.Column('can_manage_users', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('can_create_organizations', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('managed_organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        *timestamps()
    )

    # Organization permission grants
    op.create_table(
        'organization_permissions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(255), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('permission_type', sa.String(20), nullable=False),
        sa.Column('granted_by', sa.String(255), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('granted_at', sa.DateTime(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *timestamps(),
        sa.UniqueConstraint('user_id', 'organization_id', 'permission_type', name='uq_user_organization_permission')
    )

    # Invitations table
    op.create_table(
        'user_invitations',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('invited_by', sa.String(255), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('invitation_token', sa.String(255), nullable=False, unique=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('accepted_by', sa.String(255), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('revoked_at', sa.DateTime(), nullable=True),
        *timestamps()
    )

    # Activity log table
    op.create_table(
        'activity_log',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(255), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('action_type', sa.String(100), nullable=False),
        sa.Column('action_description', sa.Text(), nullable=False),
        sa.Column('target_type', sa.String(50), nullable=True),
        sa.Column('target_id', sa.String(255), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False)
    )

    # Inspection-side tables read by the scoping engine
    op.create_table(
        'inspections',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('status', sa.String(30), nullable=False, server_default='pendente'),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('created_by', sa.String(255), sa.ForeignKey('users.id'), nullable=False),
        *timestamps()
    )

    op.create_table(
        'inspection_collaborators',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('inspection_id', sa.Integer(), sa.ForeignKey('inspections.id'), nullable=False),
        sa.Column('user_id', sa.String(255), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        *timestamps()
    )

    op.create_table(
        'action_items',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('inspection_id', sa.Integer(), sa.ForeignKey('inspections.id'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        *timestamps()
    )

    op.create_table(
        'checklist_templates',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('created_by_user_id', sa.String(255), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        *timestamps()
    )

    # Create indexes
    op.create_index('ix_organizations_parent_organization_id', 'organizations', ['parent_organization_id'])
    op.create_index('ix_organizations_is_active', 'organizations', ['is_active'])
    op.create_index('ix_organizations_organization_level', 'organizations', ['organization_level'])
    op.create_index('ix_users_organization_id', 'users', ['organization_id'])
    op.create_index('ix_users_managed_organization_id', 'users', ['managed_organization_id'])
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_is_active', 'users', ['is_active'])
    op.create_index('ix_organization_permissions_user_id', 'organization_permissions', ['user_id'])
    op.create_index('ix_organization_permissions_organization_id', 'organization_permissions', ['organization_id'])
    op.create_index('ix_user_invitations_email_organization', 'user_invitations', ['email', 'organization_id'])
    op.create_index('ix_user_invitations_status', 'user_invitations', ['status'])
    op.create_index('ix_user_invitations_expires_at', 'user_invitations', ['expires_at'])
    op.create_index('ix_activity_log_user_id', 'activity_log', ['user_id'])
    op.create_index('ix_activity_log_organization_id', 'activity_log', ['organization_id'])
    op.create_index('ix_activity_log_action_type', 'activity_log', ['action_type'])
    op.create_index('ix_activity_log_created_at', 'activity_log', ['created_at'])
    op.create_index('ix_inspections_organization_id', 'inspections', ['organization_id'])
    op.create_index('ix_inspections_created_by', 'inspections', ['created_by'])
    op.create_index('ix_inspection_collaborators_user_id', 'inspection_collaborators', ['user_id'])


def downgrade() -> None:
    op.drop_table('checklist_templates')
    op.drop_table('action_items')
    op.drop_table('inspection_collaborators')
    op.drop_table('inspections')
    op.drop_table('activity_log')
    op.drop_table('user_invitations')
    op.drop_table('organization_permissions')
    op.drop_table('users')
    op.drop_table('organizations')
