from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from datetime import datetime, timezone
from typing import Optional, Dict, Literal


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Naive timestamps are taken to be UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


Difficulty = Literal["easy", "medium", "hard"]
SessionStatus = Literal["completed", "aborted"]
TrainingPlanId = Literal["light", "expert", "superhuman"]
EducationLevel = Literal["high_school", "bachelor", "master", "phd"]


class SkillVectorResponse(BaseModel):
    AE: float
    RA: float
    CT: float
    IN: float


# ---------------------------------------------------------------------------
# Profile / calibration
# ---------------------------------------------------------------------------


class ProfileUpsert(BaseModel):
    """Demographics and plan. Only fields that are sent are changed."""
    training_plan: Optional[TrainingPlanId] = None
    chronological_age: Optional[int] = Field(default=None, ge=10, le=110)
    education_level: Optional[EducationLevel] = None
    work_type: Optional[str] = None


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    created_at: datetime
    training_plan: Optional[str] = None
    chronological_age: Optional[int] = None
    education_level: Optional[str] = None
    work_type: Optional[str] = None
    is_calibrated: bool = False
    baseline_captured_at: Optional[datetime] = None


class CalibrationRequest(BaseModel):
    AE0: float = Field(ge=0, le=100)
    RA0: float = Field(ge=0, le=100)
    CT0: float = Field(ge=0, le=100)
    IN0: float = Field(ge=0, le=100)
    cognitive_age_baseline: float = Field(gt=0, le=120)


class CalibrationResponse(BaseModel):
    user_id: str
    baseline: SkillVectorResponse
    baseline_cognitive_age: float
    baseline_captured_at: datetime
    skill_vector: SkillVectorResponse


# ---------------------------------------------------------------------------
# Inbound events
# ---------------------------------------------------------------------------


class TrainingEventCreate(BaseModel):
    event_id: str = Field(min_length=1, max_length=200)
    skill_route: Optional[str] = None
    game_identifier: Optional[str] = None
    raw_xp: Optional[int] = None
    difficulty: Optional[Difficulty] = None
    score: float = Field(ge=0, le=100)
    occurred_at: datetime
    category: Optional[Literal["s1_games", "s2_games"]] = None
    duration_seconds: int = Field(default=0, ge=0)
    status: SessionStatus = "completed"

    @field_validator("occurred_at")
    @classmethod
    def _normalize_occurred_at(cls, v):
        return _as_utc(v)

    @model_validator(mode="after")
    def _require_route(self):
        if not self.skill_route and not self.game_identifier:
            raise ValueError("one of skill_route or game_identifier is required")
        return self


class TrainingEventResult(BaseModel):
    event_id: str
    skill: str
    system: str
    category: str
    status: str
    requested_xp: int
    granted_xp: int
    capped: bool = False
    limiting_window: Optional[str] = None
    duplicate: bool = False
    skill_vector: SkillVectorResponse


class RecoveryActivityCreate(BaseModel):
    type: Literal["detox", "walk"]
    minutes: float = Field(ge=0, le=24 * 60)
    occurred_at: datetime
    activity_id: Optional[str] = Field(default=None, max_length=200)

    @field_validator("occurred_at")
    @classmethod
    def _normalize_occurred_at(cls, v):
        return _as_utc(v)


class RecoveryActivityResult(BaseModel):
    activity_id: Optional[str] = None
    type: str
    minutes: float
    detox_load_xp: float = 0.0
    duplicate: bool = False
    weekly_detox_minutes: float
    weekly_walk_minutes: float
    recovery: float


class PrimingTaskCreate(BaseModel):
    type: Literal["podcast", "article", "book"]
    completed_at: datetime
    task_id: Optional[str] = Field(default=None, max_length=200)

    @field_validator("completed_at")
    @classmethod
    def _normalize_completed_at(cls, v):
        return _as_utc(v)


class PrimingTaskResult(BaseModel):
    task_id: Optional[str] = None
    type: str
    completed_at: datetime
    duplicate: bool = False


class PhysioSnapshotCreate(BaseModel):
    captured_at: datetime
    hrv_ms: Optional[float] = Field(default=None, ge=0)
    resting_hr: Optional[float] = Field(default=None, ge=0)
    sleep_duration_min: Optional[float] = Field(default=None, ge=0)
    sleep_efficiency: Optional[float] = Field(default=None, ge=0, le=100)

    @field_validator("captured_at")
    @classmethod
    def _normalize_captured_at(cls, v):
        return _as_utc(v)


class PhysioSnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    captured_at: datetime
    hrv_ms: Optional[float] = None
    resting_hr: Optional[float] = None
    sleep_duration_min: Optional[float] = None
    sleep_efficiency: Optional[float] = None
    complete: bool = False
    physio_score: Optional[float] = None


# ---------------------------------------------------------------------------
# Outbound reads
# ---------------------------------------------------------------------------


class SkillStateResponse(BaseModel):
    user_id: str
    skills: SkillVectorResponse
    baseline_estimated: bool = False
    last_xp_at: Optional[datetime] = None


class ReasoningQualityResponse(BaseModel):
    user_id: str
    rq: float
    state: Literal["ACTIVE", "DECAYING"]
    s2_core: float
    s2_consistency: float
    task_priming: float
    base_rq: float
    decay: float
    floor: float
    days_inactive: Optional[int] = None
    slow_sessions_considered: int = 0
    priming_tasks_considered: int = 0


class CompositeScoresResponse(BaseModel):
    user_id: str
    S1: float
    S2: float
    dual_process: float
    dual_process_band: str
    sharpness_base: float
    sharpness: float
    readiness: float
    readiness_band: str
    readiness_source: Literal["with_physio", "without_physio"]
    physio_score: Optional[float] = None
    recovery: float
    SCI: float
    sci_band: str
    cognitive_performance: float
    behavioral_engagement: float
    cognitive_age: float
    baseline_cognitive_age: float
    RQ: float
    rq_state: Literal["ACTIVE", "DECAYING"]
    baseline_estimated: bool = False
    computed_at: datetime
    skill_decay: Dict[str, float] = {}
    sci_decay: float = 0.0
    dual_process_decay: float = 0.0


class WeeklyProgressResponse(BaseModel):
    user_id: str
    training_plan: str
    week_start: str
    raw_by_category: Dict[str, float]
    capped_by_category: Dict[str, float]
    targets_by_category: Dict[str, float]
    progress_by_category: Dict[str, float]
    capped_total: float
    total_target: float
    total_progress: float
