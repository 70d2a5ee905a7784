from sqlalchemy import Column, Integer, Float, Date, DateTime, ForeignKey, Text, Index, UniqueConstraint, CheckConstraint, Uuid
from sqlalchemy.sql import func
from core.database import Base
import uuid


SKILL_COLUMNS = {
    "AE": "skill_ae",
    "RA": "skill_ra",
    "CT": "skill_ct",
    "IN": "skill_in",
}


class CognitiveProfile(Base):
    """
    Per-user aggregate: the durable skill vector, the write-once baseline
    snapshot and the activity timestamps that drive lazy decay.

    Every event mutation locks this row first (SELECT ... FOR UPDATE), so it is
    also the serialization point for a user's cap ledgers and weekly ledger.
    """
    __tablename__ = "cognitive_profile"

    user_id = Column(Text, primary_key=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # --- PROFILE (demographic fallback baseline inputs) ---
    training_plan = Column(Text, nullable=True)  # 'light' | 'expert' | 'superhuman'; NULL = settings default
    chronological_age = Column(Integer, nullable=True)
    education_level = Column(Text, nullable=True)
    work_type = Column(Text, nullable=True)

    # --- SKILL VECTOR (NULL until calibration, never NULL after) ---
    skill_ae = Column(Float, nullable=True)  # Attentional Efficiency
    skill_ra = Column(Float, nullable=True)  # Rapid Association
    skill_ct = Column(Float, nullable=True)  # Critical Thinking
    skill_in = Column(Float, nullable=True)  # Insight

    # --- BASELINE SNAPSHOT (write-once) ---
    baseline_ae = Column(Float, nullable=True)
    baseline_ra = Column(Float, nullable=True)
    baseline_ct = Column(Float, nullable=True)
    baseline_in = Column(Float, nullable=True)
    baseline_cognitive_age = Column(Float, nullable=True)
    baseline_captured_at = Column(DateTime(timezone=True), nullable=True)

    # --- ACTIVITY TIMESTAMPS ---
    last_xp_at = Column(DateTime(timezone=True), nullable=True)
    # Latest slow-system session or priming task (reasoning-quality decay clock)
    last_slow_activity_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("skill_ae IS NULL OR (skill_ae >= 0 AND skill_ae <= 100)", name="ck_profile_skill_ae_range"),
        CheckConstraint("skill_ra IS NULL OR (skill_ra >= 0 AND skill_ra <= 100)", name="ck_profile_skill_ra_range"),
        CheckConstraint("skill_ct IS NULL OR (skill_ct >= 0 AND skill_ct <= 100)", name="ck_profile_skill_ct_range"),
        CheckConstraint("skill_in IS NULL OR (skill_in >= 0 AND skill_in <= 100)", name="ck_profile_skill_in_range"),
    )

    @property
    def is_calibrated(self) -> bool:
        return self.baseline_captured_at is not None


class TrainingEvent(Base):
    """
    Immutable log of every game session delivered to the pipeline, including
    aborted and fully capped ones (granted_xp = 0). (user_id, event_id) is the
    idempotency key.
    """
    __tablename__ = "training_event"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, ForeignKey("cognitive_profile.user_id", ondelete="CASCADE"), nullable=False)
    event_id = Column(Text, nullable=False)  # client-supplied id, stable across retries

    game_identifier = Column(Text, nullable=True)
    skill_routed = Column(Text, nullable=False)  # 'AE' | 'RA' | 'CT' | 'IN'
    system_type = Column(Text, nullable=False)  # 'S1' | 'S2'
    category = Column(Text, nullable=False)  # 's1_games' | 's2_games'
    difficulty = Column(Text, nullable=True)  # 'easy' | 'medium' | 'hard'

    score = Column(Float, nullable=False)  # 0-100
    status = Column(Text, nullable=False, default="completed")  # 'completed' | 'aborted'
    duration_seconds = Column(Integer, nullable=False, default=0)

    requested_xp = Column(Integer, nullable=False, default=0)
    granted_xp = Column(Integer, nullable=False, default=0)
    skill_delta = Column(Float, nullable=False, default=0.0)

    occurred_at = Column(DateTime(timezone=True), nullable=False)
    recorded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "event_id", name="uq_training_event_user_event"),
        Index("ix_training_event_user_occurred", "user_id", "occurred_at"),
        Index("ix_training_event_user_skill", "user_id", "skill_routed"),
    )


class RecoveryActivity(Base):
    """Detox / walk minutes. Source data for the rolling recovery window."""
    __tablename__ = "recovery_activity"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, ForeignKey("cognitive_profile.user_id", ondelete="CASCADE"), nullable=False)
    activity_id = Column(Text, nullable=True)  # optional client id for retry de-duplication
    activity_type = Column(Text, nullable=False)  # 'detox' | 'walk'
    minutes = Column(Float, nullable=False)
    occurred_at = Column(DateTime(timezone=True), nullable=False)
    recorded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "activity_id", name="uq_recovery_activity_user_activity"),
        Index("ix_recovery_activity_user_occurred", "user_id", "occurred_at"),
        CheckConstraint("minutes >= 0", name="ck_recovery_activity_minutes_nonneg"),
    )


class PrimingTask(Base):
    """Completed podcast / article / book task. Feeds reasoning-quality priming only."""
    __tablename__ = "priming_task"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, ForeignKey("cognitive_profile.user_id", ondelete="CASCADE"), nullable=False)
    task_id = Column(Text, nullable=True)
    task_type = Column(Text, nullable=False)  # 'podcast' | 'article' | 'book'
    completed_at = Column(DateTime(timezone=True), nullable=False)
    recorded_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "task_id", name="uq_priming_task_user_task"),
        Index("ix_priming_task_user_completed", "user_id", "completed_at"),
    )


class PhysioSnapshot(Base):
    """Wearable readings pushed by the health-platform bridge."""
    __tablename__ = "physio_snapshot"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, ForeignKey("cognitive_profile.user_id", ondelete="CASCADE"), nullable=False)
    captured_at = Column(DateTime(timezone=True), nullable=False)
    hrv_ms = Column(Float, nullable=True)
    resting_hr = Column(Float, nullable=True)
    sleep_duration_min = Column(Float, nullable=True)
    sleep_efficiency = Column(Float, nullable=True)  # 0-1 (values > 1 are read as percent)

    __table_args__ = (
        Index("ix_physio_snapshot_user_captured", "user_id", "captured_at"),
    )


class XPCapLedger(Base):
    """
    Granted XP per (user, window, category). window_kind is 'day' (UTC date) or
    'week' (ISO week, Monday start); window_start is the first day of the window.
    """
    __tablename__ = "xp_cap_ledger"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, ForeignKey("cognitive_profile.user_id", ondelete="CASCADE"), nullable=False)
    window_kind = Column(Text, nullable=False)
    window_start = Column(Date, nullable=False)
    category = Column(Text, nullable=False)
    granted_xp = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("user_id", "window_kind", "window_start", "category", name="uq_xp_cap_ledger_window"),
        CheckConstraint("granted_xp >= 0", name="ck_xp_cap_ledger_nonneg"),
    )


class WeeklyCategoryLedger(Base):
    """Raw weekly load XP per category (granted game XP, detox load XP)."""
    __tablename__ = "weekly_category_ledger"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, ForeignKey("cognitive_profile.user_id", ondelete="CASCADE"), nullable=False)
    week_start = Column(Date, nullable=False)
    category = Column(Text, nullable=False)
    raw_xp = Column(Float, nullable=False, default=0.0)

    __table_args__ = (
        UniqueConstraint("user_id", "week_start", "category", name="uq_weekly_category_ledger_week"),
    )
