"""initial_tenancy_schema

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-03-01 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1c2a9d7b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('email', sa.VARCHAR(length=255), nullable=False),
        sa.Column('name', sa.VARCHAR(length=255), nullable=True),
        sa.Column('avatar', sa.TEXT(), nullable=True),
        sa.Column('email_verified_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'organizations',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('name', sa.VARCHAR(length=255), nullable=False),
        sa.Column('slug', sa.VARCHAR(length=100), nullable=False),
        sa.Column('plan', sa.VARCHAR(length=50), server_default='free', nullable=False),
        sa.Column('billing_email', sa.VARCHAR(length=255), nullable=True),
        sa.Column('stripe_customer_id', sa.VARCHAR(length=255), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )

    op.create_table(
        'memberships',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.BIGINT(), nullable=False),
        sa.Column('organization_id', sa.BIGINT(), nullable=False),
        sa.Column('role', sa.VARCHAR(length=20), server_default='member', nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'organization_id', name='uq_memberships_user_org'),
        sa.CheckConstraint("role IN ('owner', 'admin', 'member')", name='ck_memberships_role'),
    )
    op.create_index('idx_memberships_org', 'memberships', ['organization_id'])

    op.create_table(
        'projects',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('organization_id', sa.BIGINT(), nullable=False),
        sa.Column('name', sa.VARCHAR(length=255), nullable=False),
        sa.Column('description', sa.TEXT(), nullable=True),
        sa.Column('api_key', sa.VARCHAR(length=64), nullable=False),
        sa.Column('domain', sa.VARCHAR(length=255), nullable=True),
        sa.Column('is_active', sa.BOOLEAN(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('api_key', name='uq_projects_api_key'),
    )
    op.create_index('idx_projects_org', 'projects', ['organization_id'])

    op.create_table(
        'events',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('organization_id', sa.BIGINT(), nullable=False),
        sa.Column('project_id', sa.BIGINT(), nullable=False),
        sa.Column('event_name', sa.VARCHAR(length=255), nullable=False),
        sa.Column('user_id', sa.VARCHAR(length=255), nullable=True),
        sa.Column('session_id', sa.VARCHAR(length=255), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('timestamp', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('ip_address', sa.VARCHAR(length=45), nullable=True),
        sa.Column('user_agent', sa.TEXT(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_events_org', 'events', ['organization_id'])
    op.create_index('idx_events_timestamp', 'events', ['timestamp'])
    op.create_index('idx_events_name', 'events', ['event_name'])
    op.create_index('idx_events_org_project_time', 'events', ['organization_id', 'project_id', 'timestamp'])

    op.create_table(
        'kpi_snapshots',
        sa.Column('id', sa.BIGINT(), autoincrement=True, nullable=False),
        sa.Column('organization_id', sa.BIGINT(), nullable=False),
        sa.Column('project_id', sa.BIGINT(), nullable=True),
        sa.Column('key', sa.VARCHAR(length=100), nullable=False),
        sa.Column('period_start', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('period_end', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('value', sa.NUMERIC(precision=15, scale=4), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'organization_id', 'project_id', 'key', 'period_start',
            name='uq_kpi_org_project_key_period',
        ),
    )
    # NULL project_id rows (org-level KPIs) need their own partial unique index
    op.create_index(
        'uq_kpi_org_key_period_org_level',
        'kpi_snapshots',
        ['organization_id', 'key', 'period_start'],
        unique=True,
        postgresql_where=sa.text('project_id IS NULL'),
    )
    op.create_index('idx_kpi_org', 'kpi_snapshots', ['organization_id'])
    op.create_index('idx_kpi_key', 'kpi_snapshots', ['key'])
    op.create_index('idx_kpi_period', 'kpi_snapshots', ['period_start', 'period_end'])


def downgrade() -> None:
    op.drop_index('idx_kpi_period', table_name='kpi_snapshots')
    op.drop_index('idx_kpi_key', table_name='kpi_snapshots')
    op.drop_index('idx_kpi_org', table_name='kpi_snapshots')
    op.drop_index('uq_kpi_org_key_period_org_level', table_name='kpi_snapshots')
    op.drop_table('kpi_snapshots')

    op.drop_index('idx_events_org_project_time', table_name='events')
    op.drop_index('idx_events_name', table_name='events')
    op.drop_index('idx_events_timestamp', table_name='events')
    op.drop_index('idx_events_org', table_name='events')
    op.drop_table('events')

    op.drop_index('idx_projects_org', table_name='projects')
    op.drop_table('projects')

    op.drop_index('idx_memberships_org', table_name='memberships')
    op.drop_table('memberships')

    op.drop_table('organizations')
    op.drop_table('users')
