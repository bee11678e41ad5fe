"""Ledger schema: quiz, affiliates, closers, appointments, conversions, payouts, settings

Revision ID: 3f1a9c2d7e10
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2d7e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('quiz_questions',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('quiz_type', sa.Text(), nullable=False),
        sa.Column('prompt', sa.Text(), nullable=False),
        sa.Column('role', sa.Text(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table('quiz_sessions',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('quiz_type', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('affiliate_code', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_quiz_sessions_affiliate_code', 'quiz_sessions', ['affiliate_code'])

    op.create_table('quiz_answers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('session_id', sa.Text(), nullable=False),
        sa.Column('question_id', sa.Text(), nullable=False),
        sa.Column('value', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['session_id'], ['quiz_sessions.id']),
        sa.ForeignKeyConstraint(['question_id'], ['quiz_questions.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'question_id', name='uq_quiz_answer_session_question'),
    )
    op.create_index('ix_quiz_answers_session_id', 'quiz_answers', ['session_id'])

    op.create_table('affiliates',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('referral_code', sa.Text(), nullable=False),
        sa.Column('custom_link', sa.Text(), nullable=True),
        sa.Column('commission_rate', sa.Numeric(5, 4), nullable=False),
        sa.Column('tier', sa.Text(), nullable=True),
        sa.Column('total_clicks', sa.Integer(), nullable=False),
        sa.Column('total_leads', sa.Integer(), nullable=False),
        sa.Column('total_bookings', sa.Integer(), nullable=False),
        sa.Column('total_sales', sa.Integer(), nullable=False),
        sa.Column('total_commission', sa.Numeric(12, 2), nullable=False),
        sa.Column('is_approved', sa.Boolean(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('referral_code'),
        sa.UniqueConstraint('custom_link'),
    )

    op.create_table('closers',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('total_calls', sa.Integer(), nullable=False),
        sa.Column('total_conversions', sa.Integer(), nullable=False),
        sa.Column('total_revenue', sa.Numeric(12, 2), nullable=False),
        sa.Column('conversion_rate', sa.Float(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('is_approved', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table('appointments',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('customer_name', sa.Text(), nullable=False),
        sa.Column('customer_email', sa.Text(), nullable=False),
        sa.Column('scheduled_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('outcome', sa.Text(), nullable=True),
        sa.Column('sale_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recording_link', sa.Text(), nullable=True),
        sa.Column('affiliate_code', sa.Text(), nullable=True),
        sa.Column('closer_id', sa.Text(), nullable=True),
        sa.Column('quiz_session_id', sa.Text(), nullable=True),
        sa.Column('conversion_seq', sa.Integer(), nullable=False),
        sa.Column('converted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['closer_id'], ['closers.id']),
        sa.ForeignKeyConstraint(['quiz_session_id'], ['quiz_sessions.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_appointments_customer_email', 'appointments', ['customer_email'])
    op.create_index('ix_appointments_affiliate_code', 'appointments', ['affiliate_code'])
    op.create_index('ix_appointments_closer_id', 'appointments', ['closer_id'])
    op.create_index('ix_appointments_created_at', 'appointments', ['created_at'])

    op.create_table('appointment_outcome_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('appointment_id', sa.Text(), nullable=False),
        sa.Column('closer_id', sa.Text(), nullable=True),
        sa.Column('previous_outcome', sa.Text(), nullable=True),
        sa.Column('outcome', sa.Text(), nullable=False),
        sa.Column('previous_sale_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('sale_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('recording_link', sa.Text(), nullable=True),
        sa.Column('conversion_id', sa.Text(), nullable=True),
        sa.Column('duplicate_skipped', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['appointment_id'], ['appointments.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_appointment_outcome_events_appointment_id',
                    'appointment_outcome_events', ['appointment_id'])

    op.create_table('affiliate_clicks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('affiliate_id', sa.Text(), nullable=False),
        sa.Column('referral_code', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_affiliate_clicks_affiliate_id', 'affiliate_clicks', ['affiliate_id'])
    op.create_index('ix_affiliate_clicks_created_at', 'affiliate_clicks', ['created_at'])

    op.create_table('affiliate_conversions',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('affiliate_id', sa.Text(), nullable=False),
        sa.Column('appointment_id', sa.Text(), nullable=True),
        sa.Column('referral_code', sa.Text(), nullable=False),
        sa.Column('conversion_type', sa.Text(), nullable=False),
        sa.Column('sale_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('commission_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('commission_status', sa.Text(), nullable=False),
        sa.Column('hold_until', sa.DateTime(), nullable=False),
        sa.Column('idempotency_key', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('released_at', sa.DateTime(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id']),
        sa.ForeignKeyConstraint(['appointment_id'], ['appointments.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key'),
    )
    op.create_index('ix_affiliate_conversions_affiliate_id', 'affiliate_conversions', ['affiliate_id'])
    op.create_index('ix_affiliate_conversions_appointment_id', 'affiliate_conversions', ['appointment_id'])
    op.create_index('ix_affiliate_conversions_created_at', 'affiliate_conversions', ['created_at'])
    op.create_index('ix_affiliate_conversions_status_hold', 'affiliate_conversions',
                    ['commission_status', 'hold_until'])

    op.create_table('affiliate_payouts',
        sa.Column('id', sa.Text(), nullable=False),
        sa.Column('affiliate_id', sa.Text(), nullable=False),
        sa.Column('amount_due', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['affiliate_id'], ['affiliates.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_affiliate_payouts_affiliate_id', 'affiliate_payouts', ['affiliate_id'])

    op.create_table('settings',
        sa.Column('key', sa.Text(), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('settings')
    op.drop_index('ix_affiliate_payouts_affiliate_id', table_name='affiliate_payouts')
    op.drop_table('affiliate_payouts')
    op.drop_index('ix_affiliate_conversions_status_hold', table_name='affiliate_conversions')
    op.drop_index('ix_affiliate_conversions_created_at', table_name='affiliate_conversions')
    op.drop_index('ix_affiliate_conversions_appointment_id', table_name='affiliate_conversions')
    op.drop_index('ix_affiliate_conversions_affiliate_id', table_name='affiliate_conversions')
    op.drop_table('affiliate_conversions')
    op.drop_index('ix_affiliate_clicks_created_at', table_name='affiliate_clicks')
    op.drop_index('ix_affiliate_clicks_affiliate_id', table_name='affiliate_clicks')
    op.drop_table('affiliate_clicks')
    op.drop_index('ix_appointment_outcome_events_appointment_id', table_name='appointment_outcome_events')
    op.drop_table('appointment_outcome_events')
    op.drop_index('ix_appointments_created_at', table_name='appointments')
    op.drop_index('ix_appointments_closer_id', table_name='appointments')
    op.drop_index('ix_appointments_affiliate_code', table_name='appointments')
    op.drop_index('ix_appointments_customer_email', table_name='appointments')
    op.drop_table('appointments')
    op.drop_table('closers')
    op.drop_table('affiliates')
    op.drop_index('ix_quiz_answers_session_id', table_name='quiz_answers')
    op.drop_table('quiz_answers')
    op.drop_index('ix_quiz_sessions_affiliate_code', table_name='quiz_sessions')
    op.drop_table('quiz_sessions')
    op.drop_table('quiz_questions')
