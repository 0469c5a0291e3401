"""Initial schema: tenants, hierarchy, tickets, messages, audit, counters.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17

Creates:
- organizations
- users (created_by_id self-reference forms the per-org hierarchy)
- invites
- customers
- tickets
- messages
- audit_logs
- org_counters (ticket numbers, round-robin cursor)
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, length=32)


ROLE = ('owner', 'manager', 'agent')
TICKET_STATUS = ('open', 'in_progress', 'waiting', 'resolved', 'closed')
TICKET_PRIORITY = ('low', 'medium', 'high', 'urgent')
TICKET_CHANNEL = ('email', 'chat', 'phone', 'social', 'portal')
MESSAGE_SENDER = ('customer', 'agent', 'ai')


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ==========================================================================
    # organizations
    # ==========================================================================
    op.create_table(
        'organizations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_organizations'),
        sa.UniqueConstraint('slug', name='uq_organizations_slug'),
    )

    # ==========================================================================
    # users
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('avatar_url', sa.String(500), nullable=True),
        sa.Column('title', sa.String(100), nullable=True),
        sa.Column('role', _enum('user_role', *ROLE), nullable=False),
        sa.Column('created_by_id', sa.Uuid(), nullable=True),
        sa.Column('token_version', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_users_organization_id_organizations', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['created_by_id'], ['users.id'],
            name='fk_users_created_by_id_users', ondelete='RESTRICT',
        ),
        sa.UniqueConstraint('organization_id', 'email', name='uq_users_org_email'),
    )
    op.create_index('idx_users_org_role', 'users', ['organization_id', 'role'])
    op.create_index('idx_users_org_created_by', 'users', ['organization_id', 'created_by_id'])

    # ==========================================================================
    # invites
    # ==========================================================================
    op.create_table(
        'invites',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('role', _enum('user_role', *ROLE), nullable=False),
        sa.Column('token', sa.String(64), nullable=False),
        sa.Column('invited_by_user_id', sa.Uuid(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_invites'),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_invites_organization_id_organizations', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['invited_by_user_id'], ['users.id'],
            name='fk_invites_invited_by_user_id_users', ondelete='CASCADE',
        ),
        sa.UniqueConstraint('token', name='uq_invites_token'),
    )
    op.create_index('idx_invites_org_email', 'invites', ['organization_id', 'email'])

    # ==========================================================================
    # customers
    # ==========================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('company', sa.String(255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_customers'),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_customers_organization_id_organizations', ondelete='CASCADE',
        ),
        sa.UniqueConstraint('organization_id', 'email', name='uq_customers_org_email'),
    )

    # ==========================================================================
    # tickets
    # ==========================================================================
    op.create_table(
        'tickets',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('ticket_number', sa.String(20), nullable=False),
        sa.Column('subject', sa.String(500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', _enum('ticket_status', *TICKET_STATUS), server_default=sa.text("'open'"), nullable=False),
        sa.Column('priority', _enum('ticket_priority', *TICKET_PRIORITY), server_default=sa.text("'medium'"), nullable=False),
        sa.Column('channel', _enum('ticket_channel', *TICKET_CHANNEL), nullable=False),
        sa.Column('assignee_id', sa.Uuid(), nullable=True),
        sa.Column('customer_id', sa.Uuid(), nullable=False),
        sa.Column('created_by_id', sa.Uuid(), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_tickets'),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_tickets_organization_id_organizations', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['assignee_id'], ['users.id'],
            name='fk_tickets_assignee_id_users', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['customer_id'], ['customers.id'],
            name='fk_tickets_customer_id_customers', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['created_by_id'], ['users.id'],
            name='fk_tickets_created_by_id_users', ondelete='SET NULL',
        ),
        sa.UniqueConstraint('organization_id', 'ticket_number', name='uq_tickets_org_number'),
    )
    op.create_index('idx_tickets_org_assignee', 'tickets', ['organization_id', 'assignee_id'])
    op.create_index('idx_tickets_org_status', 'tickets', ['organization_id', 'status'])
    op.create_index('idx_tickets_org_created', 'tickets', ['organization_id', 'created_at'])

    # ==========================================================================
    # messages
    # ==========================================================================
    op.create_table(
        'messages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('ticket_id', sa.Uuid(), nullable=True),
        sa.Column('customer_id', sa.Uuid(), nullable=True),
        sa.Column('sender_type', _enum('message_sender', *MESSAGE_SENDER), nullable=False),
        sa.Column('sender_user_id', sa.Uuid(), nullable=True),
        sa.Column('channel', _enum('ticket_channel', *TICKET_CHANNEL), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_messages'),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_messages_organization_id_organizations', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['ticket_id'], ['tickets.id'],
            name='fk_messages_ticket_id_tickets', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['customer_id'], ['customers.id'],
            name='fk_messages_customer_id_customers', ondelete='SET NULL',
        ),
        sa.ForeignKeyConstraint(
            ['sender_user_id'], ['users.id'],
            name='fk_messages_sender_user_id_users', ondelete='SET NULL',
        ),
    )
    op.create_index('idx_messages_ticket_created', 'messages', ['ticket_id', 'created_at'])
    op.create_index('idx_messages_org_customer', 'messages', ['organization_id', 'customer_id'])

    # ==========================================================================
    # audit_logs
    # ==========================================================================
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('actor_user_id', sa.Uuid(), nullable=True),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('target_type', sa.String(50), nullable=True),
        sa.Column('target_id', sa.Uuid(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_audit_logs'),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_audit_logs_organization_id_organizations', ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['actor_user_id'], ['users.id'],
            name='fk_audit_logs_actor_user_id_users', ondelete='SET NULL',
        ),
    )
    op.create_index('idx_audit_org_created', 'audit_logs', ['organization_id', 'created_at'])
    op.create_index(
        'idx_audit_org_event_created', 'audit_logs', ['organization_id', 'event_type', 'created_at']
    )

    # ==========================================================================
    # org_counters
    # ==========================================================================
    op.create_table(
        'org_counters',
        sa.Column('organization_id', sa.Uuid(), nullable=False),
        sa.Column('counter_type', sa.String(50), nullable=False),
        sa.Column('current_value', sa.BigInteger(), server_default=sa.text('0'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('organization_id', 'counter_type', name='pk_org_counters'),
        sa.ForeignKeyConstraint(
            ['organization_id'], ['organizations.id'],
            name='fk_org_counters_organization_id_organizations', ondelete='CASCADE',
        ),
    )


def downgrade() -> None:
    op.drop_table('org_counters')
    op.drop_index('idx_audit_org_event_created', table_name='audit_logs')
    op.drop_index('idx_audit_org_created', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('idx_messages_org_customer', table_name='messages')
    op.drop_index('idx_messages_ticket_created', table_name='messages')
    op.drop_table('messages')
    op.drop_index('idx_tickets_org_created', table_name='tickets')
    op.drop_index('idx_tickets_org_status', table_name='tickets')
    op.drop_index('idx_tickets_org_assignee', table_name='tickets')
    op.drop_table('tickets')
    op.drop_table('customers')
    op.drop_index('idx_invites_org_email', table_name='invites')
    op.drop_table('invites')
    op.drop_index('idx_users_org_created_by', table_name='users')
    op.drop_index('idx_users_org_role', table_name='users')
    op.drop_table('users')
    op.drop_table('organizations')
