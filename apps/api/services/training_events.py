"""
Inbound event pipeline.

record_training_event is the single write path into the skill vector. One call
is one unit of work inside the caller's transaction:

    route → lock profile → claim event_id → cap enforcer → applier
          → weekly ledger → event row finalized

The profile row is locked FOR UPDATE before anything is read, so the cap
ledgers, the skill vector and the weekly ledger for a user are only ever
touched by one event at a time. The (user_id, event_id) unique constraint is
the backstop for a racing retry: the loser rolls back and reports the
original outcome as a duplicate.

Recovery activities, priming tasks and physio snapshots are recorded here as
well; none of them moves the skill vector.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import NotCalibrated, ValidationError
from core.time_windows import as_utc, utcnow
from core.training_plans import CATEGORY_DETOX, DETOX_XP_PER_MINUTE, get_training_plan
from models import PhysioSnapshot, PrimingTask, RecoveryActivity, TrainingEvent
from services.cognitive_indices import physio_score
from services.recovery import RecoveryWindow, load_recovery_window
from services.skill_routing import SYSTEM_SLOW, SkillRoute, requested_xp_for, route
from services.skill_state import (
    SkillVector,
    apply_xp,
    get_or_create_profile,
    load_profile,
    read_vector,
    write_vector,
)
from services.weekly_progress import add_weekly_xp
from services.xp_caps import CapDecision, CapEnforcer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainingEventOutcome:
    event_id: str
    skill: str
    system: str
    category: str
    status: str
    requested_xp: int
    granted_xp: int
    capped: bool
    limiting_window: Optional[str]
    duplicate: bool
    skill_vector: SkillVector


def _validate_occurred_at(occurred_at: datetime, now: datetime, max_age: Optional[timedelta] = None) -> datetime:
    occurred_at = as_utc(occurred_at)
    if occurred_at > now + timedelta(seconds=settings.EVENT_CLOCK_SKEW_S):
        raise ValidationError("occurred_at is in the future", field="occurred_at")
    if max_age is not None and occurred_at < now - max_age:
        raise ValidationError("occurred_at is too old to be accepted", field="occurred_at")
    return occurred_at


def _max_time(current: Optional[datetime], candidate: datetime) -> datetime:
    current = as_utc(current)
    return candidate if current is None or candidate > current else current


def _find_event(db: Session, user_id: str, event_id: str) -> Optional[TrainingEvent]:
    return (
        db.query(TrainingEvent)
        .filter(TrainingEvent.user_id == user_id, TrainingEvent.event_id == event_id)
        .first()
    )


def _duplicate_outcome(db: Session, user_id: str, existing: TrainingEvent) -> TrainingEventOutcome:
    profile = load_profile(db, user_id)
    logger.info(
        f"Duplicate training event {existing.event_id} for user {user_id} absorbed",
        extra={"extra_fields": {"user_id": user_id, "event_id": existing.event_id,
                                "granted_xp": existing.granted_xp}},
    )
    return TrainingEventOutcome(
        event_id=existing.event_id,
        skill=existing.skill_routed,
        system=existing.system_type,
        category=existing.category,
        status=existing.status,
        requested_xp=existing.requested_xp,
        granted_xp=existing.granted_xp,
        capped=existing.granted_xp < existing.requested_xp,
        limiting_window=None,
        duplicate=True,
        skill_vector=read_vector(profile),
    )


def record_training_event(
    db: Session,
    user_id: str,
    event_id: str,
    score: float,
    occurred_at: datetime,
    skill_route: Optional[str] = None,
    game_identifier: Optional[str] = None,
    raw_xp: Optional[int] = None,
    difficulty: Optional[str] = None,
    category: Optional[str] = None,
    duration_seconds: int = 0,
    status: str = "completed",
    now: Optional[datetime] = None,
) -> TrainingEventOutcome:
    """
    Apply one game session to the user's skill vector.

    Raises UnknownSkillRoute (nothing is written), NotCalibrated, or
    ValidationError for a category or game that contradicts the route, or an
    out-of-range timestamp. A cap hit and a repeated event_id are normal
    outcomes reported on the result.
    """
    resolved: SkillRoute = route(skill_route or game_identifier)
    if skill_route and game_identifier:
        from_game = route(game_identifier)
        if from_game.skill != resolved.skill:
            raise ValidationError(
                f"game {game_identifier!r} trains {from_game.skill}, not {resolved.skill}",
                field="skill_route",
            )
        resolved = from_game
    if category is not None and category != resolved.category:
        raise ValidationError(
            f"category {category!r} does not match skill {resolved.skill} ({resolved.category})",
            field="category",
        )

    profile = load_profile(db, user_id, lock=True)
    if profile is None or not profile.is_calibrated:
        raise NotCalibrated(user_id)

    existing = _find_event(db, user_id, event_id)
    if existing is not None:
        return _duplicate_outcome(db, user_id, existing)

    now = as_utc(now) or utcnow()
    occurred_at = _validate_occurred_at(occurred_at, now, timedelta(hours=settings.EVENT_MAX_AGE_HOURS))

    requested = requested_xp_for(score, difficulty=difficulty, raw_xp=raw_xp, status=status)

    # Claim the event id before touching any ledger
    event = TrainingEvent(
        user_id=user_id,
        event_id=event_id,
        game_identifier=resolved.game_identifier or game_identifier,
        skill_routed=resolved.skill,
        system_type=resolved.system,
        category=resolved.category,
        difficulty=difficulty,
        score=float(score),
        status=status,
        duration_seconds=int(duration_seconds or 0),
        requested_xp=requested,
        granted_xp=0,
        skill_delta=0.0,
        occurred_at=occurred_at,
    )
    db.add(event)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        existing = _find_event(db, user_id, event_id)
        if existing is None:
            raise
        return _duplicate_outcome(db, user_id, existing)

    plan = get_training_plan(profile.training_plan)
    if requested > 0:
        decision = CapEnforcer(db, plan).admit(user_id, resolved.category, occurred_at, requested)
    else:
        decision = CapDecision(requested_xp=0, granted_xp=0, capped=False)

    before = read_vector(profile)
    after = apply_xp(before, resolved.skill, decision.granted_xp)
    write_vector(profile, after)

    if decision.granted_xp > 0:
        profile.last_xp_at = _max_time(profile.last_xp_at, occurred_at)
        add_weekly_xp(db, user_id, occurred_at, resolved.category, decision.granted_xp)
    if resolved.system == SYSTEM_SLOW and status == "completed":
        profile.last_slow_activity_at = _max_time(profile.last_slow_activity_at, occurred_at)

    event.granted_xp = decision.granted_xp
    event.skill_delta = after.get(resolved.skill) - before.get(resolved.skill)
    db.add(profile)
    db.add(event)
    db.flush()

    logger.info(
        f"Training event {event_id} applied for user {user_id}: {resolved.skill} +{decision.granted_xp} XP",
        extra={"extra_fields": {
            "user_id": user_id,
            "event_id": event_id,
            "skill": resolved.skill,
            "status": status,
            "requested_xp": requested,
            "granted_xp": decision.granted_xp,
            "capped": decision.capped,
        }},
    )

    return TrainingEventOutcome(
        event_id=event_id,
        skill=resolved.skill,
        system=resolved.system,
        category=resolved.category,
        status=status,
        requested_xp=requested,
        granted_xp=decision.granted_xp,
        capped=decision.capped,
        limiting_window=decision.limiting_window,
        duplicate=False,
        skill_vector=after,
    )


# ---------------------------------------------------------------------------
# Recovery activities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RecoveryOutcome:
    activity_id: Optional[str]
    activity_type: str
    minutes: float
    detox_load_xp: float
    duplicate: bool
    window: RecoveryWindow


def _find_recovery_activity(db: Session, user_id: str, activity_id: str) -> Optional[RecoveryActivity]:
    return (
        db.query(RecoveryActivity)
        .filter(RecoveryActivity.user_id == user_id, RecoveryActivity.activity_id == activity_id)
        .first()
    )


def _duplicate_recovery(db: Session, user_id: str, existing: RecoveryActivity, detox_target: float, now: datetime) -> RecoveryOutcome:
    logger.info(f"Duplicate recovery activity {existing.activity_id} for user {user_id} absorbed")
    return RecoveryOutcome(
        activity_id=existing.activity_id,
        activity_type=existing.activity_type,
        minutes=existing.minutes,
        detox_load_xp=0.0,
        duplicate=True,
        window=load_recovery_window(db, user_id, detox_target, as_of=now),
    )


def record_recovery_activity(
    db: Session,
    user_id: str,
    activity_type: str,
    minutes: float,
    occurred_at: datetime,
    activity_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> RecoveryOutcome:
    """
    Store detox/walk minutes. Only the recovery inputs and the detox load
    ledger change; the skill vector is never touched.
    """
    if activity_type not in ("detox", "walk"):
        raise ValidationError(f"unknown recovery activity type {activity_type!r}", field="type")

    now = as_utc(now) or utcnow()
    occurred_at = _validate_occurred_at(occurred_at, now)

    profile = get_or_create_profile(db, user_id, lock=True)
    plan = get_training_plan(profile.training_plan)

    if activity_id:
        existing = _find_recovery_activity(db, user_id, activity_id)
        if existing is not None:
            return _duplicate_recovery(db, user_id, existing, plan.detox_weekly_minutes, now)

    # Claim the activity id before the detox ledger moves
    minutes = max(0.0, float(minutes))
    db.add(RecoveryActivity(
        user_id=user_id,
        activity_id=activity_id,
        activity_type=activity_type,
        minutes=minutes,
        occurred_at=occurred_at,
    ))
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        existing = _find_recovery_activity(db, user_id, activity_id) if activity_id else None
        if existing is None:
            raise
        return _duplicate_recovery(db, user_id, existing, plan.detox_weekly_minutes, now)

    load_xp = 0.0
    if activity_type == "detox":
        load_xp = minutes * DETOX_XP_PER_MINUTE
        add_weekly_xp(db, user_id, occurred_at, CATEGORY_DETOX, load_xp)
    db.flush()

    logger.info(
        f"Recovery activity recorded for user {user_id}: {activity_type} {minutes:g} min",
        extra={"extra_fields": {"user_id": user_id, "activity_type": activity_type,
                                "minutes": minutes, "detox_load_xp": load_xp}},
    )

    return RecoveryOutcome(
        activity_id=activity_id,
        activity_type=activity_type,
        minutes=minutes,
        detox_load_xp=load_xp,
        duplicate=False,
        window=load_recovery_window(db, user_id, plan.detox_weekly_minutes, as_of=now),
    )


# ---------------------------------------------------------------------------
# Priming tasks and physio snapshots
# ---------------------------------------------------------------------------


def _find_priming_task(db: Session, user_id: str, task_id: str) -> Optional[PrimingTask]:
    return (
        db.query(PrimingTask)
        .filter(PrimingTask.user_id == user_id, PrimingTask.task_id == task_id)
        .first()
    )


def record_priming_task(
    db: Session,
    user_id: str,
    task_type: str,
    completed_at: datetime,
    task_id: Optional[str] = None,
    now: Optional[datetime] = None,
):
    """Returns (PrimingTask, duplicate)."""
    if task_type not in ("podcast", "article", "book"):
        raise ValidationError(f"unknown priming task type {task_type!r}", field="type")

    now = as_utc(now) or utcnow()
    completed_at = _validate_occurred_at(completed_at, now)
    profile = get_or_create_profile(db, user_id, lock=True)

    if task_id:
        existing = _find_priming_task(db, user_id, task_id)
        if existing is not None:
            return existing, True

    task = PrimingTask(user_id=user_id, task_id=task_id, task_type=task_type, completed_at=completed_at)
    db.add(task)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        existing = _find_priming_task(db, user_id, task_id) if task_id else None
        if existing is None:
            raise
        return existing, True

    profile.last_slow_activity_at = _max_time(profile.last_slow_activity_at, completed_at)
    db.add(profile)
    db.flush()

    logger.info(f"Priming task recorded for user {user_id}: {task_type}")
    return task, False


def record_physio_snapshot(
    db: Session,
    user_id: str,
    captured_at: datetime,
    hrv_ms: Optional[float] = None,
    resting_hr: Optional[float] = None,
    sleep_duration_min: Optional[float] = None,
    sleep_efficiency: Optional[float] = None,
    now: Optional[datetime] = None,
):
    """Returns (PhysioSnapshot, physio score or None when the snapshot is partial)."""
    now = as_utc(now) or utcnow()
    captured_at = _validate_occurred_at(captured_at, now)
    get_or_create_profile(db, user_id)

    snapshot = PhysioSnapshot(
        user_id=user_id,
        captured_at=captured_at,
        hrv_ms=hrv_ms,
        resting_hr=resting_hr,
        sleep_duration_min=sleep_duration_min,
        sleep_efficiency=sleep_efficiency,
    )
    db.add(snapshot)
    db.flush()

    score = physio_score(hrv_ms, resting_hr, sleep_duration_min, sleep_efficiency)
    logger.debug(f"Physio snapshot recorded for user {user_id} (score={score})")
    return snapshot, score
