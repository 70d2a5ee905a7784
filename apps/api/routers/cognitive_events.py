"""
Cognitive Events API Router

Inbound side of the engine, fed by game/task runners, the calibration wizard
and the wearable bridge:
- Profile upsert and calibration
- Training events (the only path that moves the skill vector)
- Recovery activities, priming tasks, physio snapshots
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import get_db
from schemas import (
    CalibrationRequest,
    CalibrationResponse,
    PhysioSnapshotCreate,
    PhysioSnapshotResponse,
    PrimingTaskCreate,
    PrimingTaskResult,
    ProfileResponse,
    ProfileUpsert,
    RecoveryActivityCreate,
    RecoveryActivityResult,
    SkillVectorResponse,
    TrainingEventCreate,
    TrainingEventResult,
)
from services import calibration, training_events
from services.skill_state import read_baseline, read_vector

router = APIRouter(prefix="/v1/users/{user_id}", tags=["Cognitive Events"])


@router.put("/profile", response_model=ProfileResponse)
def put_profile(user_id: str, body: ProfileUpsert, db: Session = Depends(get_db)):
    """Create or update demographics and training plan."""
    profile = calibration.upsert_profile(db, user_id, **body.model_dump(exclude_unset=True))
    return ProfileResponse.model_validate(profile)


@router.post("/calibration", response_model=CalibrationResponse, status_code=201)
def post_calibration(user_id: str, body: CalibrationRequest, db: Session = Depends(get_db)):
    """
    Capture the baseline snapshot. Write-once: a repeat call is rejected with
    409 BASELINE_ALREADY_CAPTURED.
    """
    profile = calibration.complete_calibration(
        db,
        user_id,
        ae0=body.AE0,
        ra0=body.RA0,
        ct0=body.CT0,
        in0=body.IN0,
        cognitive_age_baseline=body.cognitive_age_baseline,
    )
    return CalibrationResponse(
        user_id=user_id,
        baseline=SkillVectorResponse(**read_baseline(profile).as_dict()),
        baseline_cognitive_age=profile.baseline_cognitive_age,
        baseline_captured_at=profile.baseline_captured_at,
        skill_vector=SkillVectorResponse(**read_vector(profile).as_dict()),
    )


@router.post("/training-events", response_model=TrainingEventResult)
def post_training_event(user_id: str, body: TrainingEventCreate, db: Session = Depends(get_db)):
    """
    Record a game session. The response always carries the granted XP, which
    may be lower than requested (cap) or repeat a prior result (duplicate).
    """
    outcome = training_events.record_training_event(
        db,
        user_id,
        event_id=body.event_id,
        score=body.score,
        occurred_at=body.occurred_at,
        skill_route=body.skill_route,
        game_identifier=body.game_identifier,
        raw_xp=body.raw_xp,
        difficulty=body.difficulty,
        category=body.category,
        duration_seconds=body.duration_seconds,
        status=body.status,
    )
    return TrainingEventResult(
        event_id=outcome.event_id,
        skill=outcome.skill,
        system=outcome.system,
        category=outcome.category,
        status=outcome.status,
        requested_xp=outcome.requested_xp,
        granted_xp=outcome.granted_xp,
        capped=outcome.capped,
        limiting_window=outcome.limiting_window,
        duplicate=outcome.duplicate,
        skill_vector=SkillVectorResponse(**outcome.skill_vector.as_dict()),
    )


@router.post("/recovery-activities", response_model=RecoveryActivityResult)
def post_recovery_activity(user_id: str, body: RecoveryActivityCreate, db: Session = Depends(get_db)):
    outcome = training_events.record_recovery_activity(
        db,
        user_id,
        activity_type=body.type,
        minutes=body.minutes,
        occurred_at=body.occurred_at,
        activity_id=body.activity_id,
    )
    return RecoveryActivityResult(
        activity_id=outcome.activity_id,
        type=outcome.activity_type,
        minutes=outcome.minutes,
        detox_load_xp=outcome.detox_load_xp,
        duplicate=outcome.duplicate,
        weekly_detox_minutes=outcome.window.detox_minutes,
        weekly_walk_minutes=outcome.window.walk_minutes,
        recovery=outcome.window.recovery,
    )


@router.post("/priming-tasks", response_model=PrimingTaskResult)
def post_priming_task(user_id: str, body: PrimingTaskCreate, db: Session = Depends(get_db)):
    task, duplicate = training_events.record_priming_task(
        db,
        user_id,
        task_type=body.type,
        completed_at=body.completed_at,
        task_id=body.task_id,
    )
    return PrimingTaskResult(
        task_id=task.task_id,
        type=task.task_type,
        completed_at=task.completed_at,
        duplicate=duplicate,
    )


@router.post("/physio-snapshots", response_model=PhysioSnapshotResponse, status_code=201)
def post_physio_snapshot(user_id: str, body: PhysioSnapshotCreate, db: Session = Depends(get_db)):
    snapshot, score = training_events.record_physio_snapshot(
        db,
        user_id,
        captured_at=body.captured_at,
        hrv_ms=body.hrv_ms,
        resting_hr=body.resting_hr,
        sleep_duration_min=body.sleep_duration_min,
        sleep_efficiency=body.sleep_efficiency,
    )
    return PhysioSnapshotResponse(
        captured_at=snapshot.captured_at,
        hrv_ms=snapshot.hrv_ms,
        resting_hr=snapshot.resting_hr,
        sleep_duration_min=snapshot.sleep_duration_min,
        sleep_efficiency=snapshot.sleep_efficiency,
        complete=score is not None,
        physio_score=score,
    )
