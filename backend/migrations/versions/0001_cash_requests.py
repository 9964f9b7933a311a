"""users, cash requests, audit trail, receipts, cashbook, document counters

Revision ID: 0001_cash_requests
Revises: 
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_cash_requests'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='Employee'),
        sa.Column('department', sa.String(length=64)),
        sa.Column('designation', sa.String(length=64)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table('doc_counters',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('prefix', sa.String(length=16), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('last_number', sa.Integer(), nullable=False, server_default='0'),
        sa.UniqueConstraint('prefix', 'year', name='uq_doc_counter_prefix_year'),
    )

    op.create_table('cash_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('request_id', sa.String(length=32), nullable=False, unique=True),
        sa.Column('date_of_request', sa.Date(), nullable=False),
        sa.Column('amount_requested', sa.Numeric(14, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='XAF'),
        sa.Column('expense_category', sa.String(length=64), nullable=False),
        sa.Column('budget_line', sa.String(length=64)),
        sa.Column('type_of_request', sa.String(length=32), nullable=False, server_default='Operations'),
        sa.Column('purpose_of_request', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('urgency_level', sa.String(length=16), nullable=False, server_default='Medium'),
        sa.Column('expected_date_of_use', sa.Date()),
        sa.Column('advance_or_reimbursement', sa.String(length=16), nullable=False, server_default='Advance'),
        sa.Column('project_cost_center_code', sa.String(length=64)),
        sa.Column('payee_name', sa.String(length=128)),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='Pending Accountant'),
        sa.Column('ceo_approval_required', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('approval_notes', sa.Text()),
        sa.Column('requested_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('requested_by_name', sa.String(length=128), nullable=False),
        sa.Column('designation', sa.String(length=64)),
        sa.Column('department', sa.String(length=64), nullable=False),
        sa.Column('supervisor', sa.String(length=128)),
        sa.Column('finance_officer', sa.String(length=128)),
        sa.Column('payment_method_preferred', sa.String(length=32), nullable=False, server_default='Cash'),
        sa.Column('bank_name', sa.String(length=128)),
        sa.Column('account_name', sa.String(length=128)),
        sa.Column('account_number', sa.String(length=64)),
        sa.Column('momo_provider', sa.String(length=64)),
        sa.Column('momo_name', sa.String(length=128)),
        sa.Column('momo_number', sa.String(length=32)),
        sa.Column('supporting_documents', sa.JSON()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_cash_requests_request_id', 'cash_requests', ['request_id'])
    op.create_index('ix_cash_requests_status', 'cash_requests', ['status'])
    op.create_index('ix_cash_requests_department', 'cash_requests', ['department'])
    op.create_index('ix_cash_requests_expense_category', 'cash_requests', ['expense_category'])
    op.create_index('ix_cash_requests_requested_by', 'cash_requests', ['requested_by'])

    op.create_table('cash_request_audit_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('cash_request_id', sa.Integer(), sa.ForeignKey('cash_requests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('from_status', sa.String(length=32), nullable=False),
        sa.Column('to_status', sa.String(length=32), nullable=False),
        sa.Column('performed_by', sa.Integer(), nullable=False),
        sa.Column('performed_by_name', sa.String(length=128)),
        sa.Column('actor_role', sa.String(length=32), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_cash_request_audit_entries_cash_request_id', 'cash_request_audit_entries', ['cash_request_id'])
    op.create_index('ix_cash_request_audit_entries_performed_by', 'cash_request_audit_entries', ['performed_by'])

    op.create_table('cash_receipts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('receipt_id', sa.String(length=32), nullable=False, unique=True),
        sa.Column('cash_request_id', sa.Integer(), sa.ForeignKey('cash_requests.id'), nullable=False),
        sa.Column('linked_request_id', sa.String(length=32), nullable=False),
        sa.Column('date_of_receipt', sa.Date(), nullable=False),
        sa.Column('receiver_id', sa.Integer(), nullable=False),
        sa.Column('department', sa.String(length=64), nullable=False),
        sa.Column('purpose_of_funds', sa.String(length=255), nullable=False),
        sa.Column('amount_received', sa.Numeric(14, 2), nullable=False),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('payment_reference_no', sa.String(length=64), nullable=False),
        sa.Column('issued_by', sa.Integer(), nullable=False),
        sa.Column('approved_by', sa.String(length=128), nullable=False),
        sa.Column('remarks', sa.Text()),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Completed'),
        *_timestamps(),
    )
    op.create_index('ix_cash_receipts_receipt_id', 'cash_receipts', ['receipt_id'])
    op.create_index('ix_cash_receipts_cash_request_id', 'cash_receipts', ['cash_request_id'])

    op.create_table('cashbook_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ref_id', sa.String(length=32), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('amount_in', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('amount_out', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('method', sa.String(length=16), nullable=False),
        sa.Column('entered_by', sa.Integer(), nullable=False),
        sa.Column('approved_by', sa.String(length=128)),
        sa.Column('linked_request_id', sa.String(length=32)),
        sa.Column('linked_receipt_id', sa.String(length=32)),
        *_timestamps(),
    )
    op.create_index('ix_cashbook_entries_ref_id', 'cashbook_entries', ['ref_id'])
    op.create_index('ix_cashbook_entries_entry_date', 'cashbook_entries', ['entry_date'])


def downgrade():
    op.drop_table('cashbook_entries')
    op.drop_table('cash_receipts')
    op.drop_table('cash_request_audit_entries')
    op.drop_table('cash_requests')
    op.drop_table('doc_counters')
    op.drop_table('users')
