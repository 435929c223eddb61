"""initial order workflow schema

Revision ID: p0001_order_workflow
Revises:
Create Date: 2026-10-19 00:00:00.000000

This migration creates the procurement portal schema from scratch:
- users / session_tokens: portal identities and bearer tokens
- products: read-only catalog slice (approval flag, responsible desk)
- orders / order_items: procurement requests with an optimistic lock
- status_history: append-only transition audit trail
- approvals: one decision record per (order, approver)
- comments: public and internal order notes
- security_events: denied transitions, denied comments, logins
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'p0001_order_workflow'
down_revision = None
branch_labels = None
depends_on = None


ROLE_VALUES = ('REQUESTER', 'IT_SUPPORT', 'EMPFANG', 'APPROVER', 'ADMIN')

ORDER_STATUS_VALUES = (
    'NEW', 'IN_REVIEW', 'PENDING_APPROVAL', 'APPROVED', 'ORDERED',
    'ORDER_CONFIRMED', 'IN_TRANSIT', 'DELIVERED', 'NOTIFIED',
    'INVOICE_VERIFIED', 'COMPLETED', 'REJECTED', 'CANCELLED', 'ON_HOLD',
)

APPROVAL_STATUS_VALUES = ('PENDING', 'APPROVED', 'REJECTED')


def _enum(values, name):
    return sa.Enum(*values, name=name, native_enum=False, length=32, create_constraint=True)


def upgrade():
    """
    Create all tables for the order workflow.

    WHY version_id on orders and approvals: concurrent writers holding
    the same stale row must not both commit. The loser is retried and
    re-evaluated against the winner's status.
    """

    # ============================================================================
    # users: Requesters and staff
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('role', _enum(ROLE_VALUES, 'user_role'), nullable=False,
                  server_default='REQUESTER'),
        sa.Column('department', sa.String(length=128), nullable=True),
        sa.Column('cost_center', sa.String(length=64), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
        sqlite_autoincrement=True
    )
    # Approver routing: role + department
    op.create_index('ix_users_role_department', 'users', ['role', 'department'])

    # ============================================================================
    # session_tokens: Hashed bearer tokens
    # ============================================================================
    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_hash'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])

    # ============================================================================
    # products: Catalog slice the workflow reads
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('model', sa.String(length=128), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('requires_approval', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('responsible_role', _enum(ROLE_VALUES, 'product_responsible_role'),
                  nullable=False, server_default='IT_SUPPORT'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # orders: Procurement requests
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('status', _enum(ORDER_STATUS_VALUES, 'order_status'), nullable=False,
                  server_default='NEW'),
        sa.Column('requester_id', sa.Integer(), nullable=False),
        sa.Column('cost_center', sa.String(length=64), nullable=False),
        sa.Column('special_request', sa.Text(), nullable=True),
        sa.Column('justification', sa.Text(), nullable=True),
        sa.Column('requires_approval', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['requester_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_requester_id', 'orders', ['requester_id'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])
    op.create_index('ix_orders_requester_created', 'orders', ['requester_id', 'created_at'])
    op.create_index('ix_orders_status_created', 'orders', ['status', 'created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity_positive'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    # ============================================================================
    # status_history: Append-only transition trail
    # ============================================================================
    # from_status is NULL only for the creation row
    op.create_table(
        'status_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('from_status', _enum(ORDER_STATUS_VALUES, 'history_from_status'), nullable=True),
        sa.Column('to_status', _enum(ORDER_STATUS_VALUES, 'history_to_status'), nullable=False),
        sa.Column('changed_by_user_id', sa.Integer(), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['changed_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_status_history_order_id', 'status_history', ['order_id'])
    op.create_index('ix_status_history_changed_by_user_id', 'status_history', ['changed_by_user_id'])
    op.create_index('ix_status_history_order_changed', 'status_history', ['order_id', 'changed_at'])

    # ============================================================================
    # approvals: Approver decisions
    # ============================================================================
    op.create_table(
        'approvals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('approver_id', sa.Integer(), nullable=False),
        sa.Column('status', _enum(APPROVAL_STATUS_VALUES, 'approval_status'), nullable=False,
                  server_default='PENDING'),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['approver_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_approvals_order_id', 'approvals', ['order_id'])
    op.create_index('ix_approvals_approver_status', 'approvals', ['approver_id', 'status'])
    # At most one open approval per (order, approver)
    op.create_index(
        'uq_approvals_order_approver_pending',
        'approvals',
        ['order_id', 'approver_id'],
        unique=True,
        sqlite_where=sa.text("status = 'PENDING'"),
        postgresql_where=sa.text("status = 'PENDING'"),
    )

    # ============================================================================
    # comments
    # ============================================================================
    op.create_table(
        'comments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('author_id', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_internal', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['author_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_comments_order_id', 'comments', ['order_id'])

    # ============================================================================
    # security_events: Access-control audit log
    # ============================================================================
    op.create_table(
        'security_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('resource', sa.String(length=128), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_security_events_user_id', 'security_events', ['user_id'])
    op.create_index('ix_security_events_event_type', 'security_events', ['event_type'])
    op.create_index('ix_security_events_success', 'security_events', ['success'])
    op.create_index('ix_security_events_occurred_at', 'security_events', ['occurred_at'])
    op.create_index('ix_security_events_user_type', 'security_events', ['user_id', 'event_type'])


def downgrade():
    op.drop_table('security_events')
    op.drop_table('comments')
    op.drop_index('uq_approvals_order_approver_pending', table_name='approvals')
    op.drop_table('approvals')
    op.drop_table('status_history')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('products')
    op.drop_table('session_tokens')
    op.drop_table('users')
