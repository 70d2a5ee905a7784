"""cognitive engine schema

Revision ID: 001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Per-user aggregate: skill vector, baseline snapshot, activity clocks
    op.create_table(
        'cognitive_profile',
        sa.Column('user_id', sa.Text(), primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('training_plan', sa.Text(), nullable=True),
        sa.Column('chronological_age', sa.Integer(), nullable=True),
        sa.Column('education_level', sa.Text(), nullable=True),
        sa.Column('work_type', sa.Text(), nullable=True),
        sa.Column('skill_ae', sa.Float(), nullable=True),
        sa.Column('skill_ra', sa.Float(), nullable=True),
        sa.Column('skill_ct', sa.Float(), nullable=True),
        sa.Column('skill_in', sa.Float(), nullable=True),
        sa.Column('baseline_ae', sa.Float(), nullable=True),
        sa.Column('baseline_ra', sa.Float(), nullable=True),
        sa.Column('baseline_ct', sa.Float(), nullable=True),
        sa.Column('baseline_in', sa.Float(), nullable=True),
        sa.Column('baseline_cognitive_age', sa.Float(), nullable=True),
        sa.Column('baseline_captured_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_xp_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_slow_activity_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('skill_ae IS NULL OR (skill_ae >= 0 AND skill_ae <= 100)', name='ck_profile_skill_ae_range'),
        sa.CheckConstraint('skill_ra IS NULL OR (skill_ra >= 0 AND skill_ra <= 100)', name='ck_profile_skill_ra_range'),
        sa.CheckConstraint('skill_ct IS NULL OR (skill_ct >= 0 AND skill_ct <= 100)', name='ck_profile_skill_ct_range'),
        sa.CheckConstraint('skill_in IS NULL OR (skill_in >= 0 AND skill_in <= 100)', name='ck_profile_skill_in_range'),
    )

    op.create_table(
        'training_event',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Text(), sa.ForeignKey('cognitive_profile.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('event_id', sa.Text(), nullable=False),
        sa.Column('game_identifier', sa.Text(), nullable=True),
        sa.Column('skill_routed', sa.Text(), nullable=False),
        sa.Column('system_type', sa.Text(), nullable=False),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('difficulty', sa.Text(), nullable=True),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('duration_seconds', sa.Integer(), nullable=False),
        sa.Column('requested_xp', sa.Integer(), nullable=False),
        sa.Column('granted_xp', sa.Integer(), nullable=False),
        sa.Column('skill_delta', sa.Float(), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('recorded_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'event_id', name='uq_training_event_user_event'),
    )
    op.create_index('ix_training_event_user_occurred', 'training_event', ['user_id', 'occurred_at'])
    op.create_index('ix_training_event_user_skill', 'training_event', ['user_id', 'skill_routed'])

    op.create_table(
        'recovery_activity',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Text(), sa.ForeignKey('cognitive_profile.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('activity_id', sa.Text(), nullable=True),
        sa.Column('activity_type', sa.Text(), nullable=False),
        sa.Column('minutes', sa.Float(), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('recorded_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'activity_id', name='uq_recovery_activity_user_activity'),
        sa.CheckConstraint('minutes >= 0', name='ck_recovery_activity_minutes_nonneg'),
    )
    op.create_index('ix_recovery_activity_user_occurred', 'recovery_activity', ['user_id', 'occurred_at'])

    op.create_table(
        'priming_task',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Text(), sa.ForeignKey('cognitive_profile.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('task_id', sa.Text(), nullable=True),
        sa.Column('task_type', sa.Text(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('recorded_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'task_id', name='uq_priming_task_user_task'),
    )
    op.create_index('ix_priming_task_user_completed', 'priming_task', ['user_id', 'completed_at'])

    op.create_table(
        'physio_snapshot',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Text(), sa.ForeignKey('cognitive_profile.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('captured_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('hrv_ms', sa.Float(), nullable=True),
        sa.Column('resting_hr', sa.Float(), nullable=True),
        sa.Column('sleep_duration_min', sa.Float(), nullable=True),
        sa.Column('sleep_efficiency', sa.Float(), nullable=True),
    )
    op.create_index('ix_physio_snapshot_user_captured', 'physio_snapshot', ['user_id', 'captured_at'])

    # Granted XP per (user, day|week window, category)
    op.create_table(
        'xp_cap_ledger',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Text(), sa.ForeignKey('cognitive_profile.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('window_kind', sa.Text(), nullable=False),
        sa.Column('window_start', sa.Date(), nullable=False),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('granted_xp', sa.Integer(), nullable=False),
        sa.UniqueConstraint('user_id', 'window_kind', 'window_start', 'category', name='uq_xp_cap_ledger_window'),
        sa.CheckConstraint('granted_xp >= 0', name='ck_xp_cap_ledger_nonneg'),
    )

    op.create_table(
        'weekly_category_ledger',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Text(), sa.ForeignKey('cognitive_profile.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('week_start', sa.Date(), nullable=False),
        sa.Column('category', sa.Text(), nullable=False),
        sa.Column('raw_xp', sa.Float(), nullable=False),
        sa.UniqueConstraint('user_id', 'week_start', 'category', name='uq_weekly_category_ledger_week'),
    )


def downgrade() -> None:
    op.drop_table('weekly_category_ledger')
    op.drop_table('xp_cap_ledger')
    op.drop_index('ix_physio_snapshot_user_captured', table_name='physio_snapshot')
    op.drop_table('physio_snapshot')
    op.drop_index('ix_priming_task_user_completed', table_name='priming_task')
    op.drop_table('priming_task')
    op.drop_index('ix_recovery_activity_user_occurred', table_name='recovery_activity')
    op.drop_table('recovery_activity')
    op.drop_index('ix_training_event_user_skill', table_name='training_event')
    op.drop_index('ix_training_event_user_occurred', table_name='training_event')
    op.drop_table('training_event')
    op.drop_table('cognitive_profile')
