"""Baseline migration - clinics, staff, contacts, settings and follow-ups

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-19

Timestamps are stored as naive UTC (see clinic_api.db.types.UTCDateTime).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    """Create tenant, staff, contact, settings and follow-up tables."""

    # ==========================================================================
    # Tenants and staff
    # ==========================================================================
    op.create_table(
        'clinics',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='America/Sao_Paulo'),
        *_timestamps(),
    )

    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('role', sa.String(30), nullable=False),
        sa.Column('token_version', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_users_clinic', 'users', ['clinic_id'])

    # ==========================================================================
    # Contacts (maintained by the clinic CRUD modules)
    # ==========================================================================
    op.create_table(
        'patients',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_patients_clinic', 'patients', ['clinic_id'])

    op.create_table(
        'leads',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('source', sa.String(30), nullable=False),
        sa.Column('status', sa.String(30), nullable=False),
        *_timestamps(),
    )
    op.create_index('idx_leads_clinic_status', 'leads', ['clinic_id', 'status'])

    # ==========================================================================
    # Omnichannel settings (one row per clinic, upserted on clinic_id)
    # ==========================================================================
    op.create_table(
        'clinic_settings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('whatsapp_token', sa.Text(), nullable=True),
        sa.Column('whatsapp_phone_number_id', sa.String(64), nullable=True),
        sa.Column('instagram_access_token', sa.Text(), nullable=True),
        *_timestamps(),
    )

    # ==========================================================================
    # Follow-ups
    # ==========================================================================
    op.create_table(
        'follow_ups',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('trigger', sa.String(50), nullable=False),
        sa.Column('target_type', sa.String(20), nullable=False),
        sa.Column('delay_days', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('message_template', sa.Text(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint('delay_days BETWEEN -365 AND 365', name='ck_follow_ups_delay_days'),
    )
    op.create_index('idx_follow_ups_clinic_trigger', 'follow_ups', ['clinic_id', 'trigger', 'target_type'])

    op.create_table(
        'follow_up_executions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('follow_up_id', sa.Uuid(), sa.ForeignKey('follow_ups.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='CASCADE'), nullable=False),
        sa.Column('target_id', sa.Uuid(), nullable=False),
        sa.Column('target_type', sa.String(20), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('claimed_at', sa.DateTime(), nullable=True),
        sa.Column('executed_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        'idx_follow_up_executions_due',
        'follow_up_executions',
        ['status', 'scheduled_for'],
        postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_index('idx_follow_up_executions_clinic', 'follow_up_executions', ['clinic_id', 'scheduled_for'])
    op.create_index('idx_follow_up_executions_target', 'follow_up_executions', ['clinic_id', 'target_id'])


def downgrade() -> None:
    op.drop_table('follow_up_executions')
    op.drop_table('follow_ups')
    op.drop_table('clinic_settings')
    op.drop_table('leads')
    op.drop_table('patients')
    op.drop_table('users')
    op.drop_table('clinics')
