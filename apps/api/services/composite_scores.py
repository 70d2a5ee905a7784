"""
Composite score reads.

A report is built in two steps: load_snapshot() reads every source input once
(skill vector, baseline, recovery window, engagement, RQ inputs, physio,
decay signals), then compute_composite_scores() derives all scores from that
immutable snapshot. The second step is pure, so the same snapshot always
yields identical scores and a concurrent event cannot leave one report half
old and half new.

Scores are never stored.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.config import settings
from core.time_windows import as_utc, days_between, utcnow, week_start
from core.training_plans import CATEGORY_S1_GAMES, CATEGORY_S2_GAMES, GAME_CATEGORIES, get_training_plan
from models import PhysioSnapshot, TrainingEvent
from services import cognitive_indices as ci
from services.calibration import require_profile, resolve_baseline
from services.reasoning_quality import RQInputs, ReasoningQuality, compute_reasoning_quality, load_rq_inputs
from services.recovery import load_recovery_window
from services.skill_state import SkillVector
from services.weekly_progress import load_weekly_raw

logger = logging.getLogger(__name__)


ENGAGEMENT_WINDOW_DAYS = 7


@dataclass(frozen=True)
class CognitiveSnapshot:
    user_id: str
    skills: SkillVector
    baseline: SkillVector
    baseline_cognitive_age: float
    baseline_estimated: bool
    recovery: float
    readiness_inputs: ci.ReadinessInputs
    engagement: ci.EngagementInputs
    rq_inputs: RQInputs
    as_of: datetime
    decay: ci.DecayInputs = field(default_factory=ci.DecayInputs)


@dataclass(frozen=True)
class CompositeScores:
    user_id: str
    s1: float
    s2: float
    dual_process: float
    dual_process_band: str
    sharpness_base: float
    sharpness: float
    readiness: float
    readiness_band: str
    readiness_source: str
    physio_score: Optional[float]
    recovery: float
    sci: float
    sci_band: str
    cognitive_performance: float
    behavioral_engagement: float
    cognitive_age: float
    baseline_cognitive_age: float
    rq: ReasoningQuality
    baseline_estimated: bool
    computed_at: datetime
    skill_decay: Dict[str, float]
    sci_decay: float
    dual_process_decay: float


def compute_composite_scores(snapshot: CognitiveSnapshot) -> CompositeScores:
    decay = snapshot.decay
    v = ci.decayed_vector(snapshot.skills, snapshot.baseline, decay.days_since_skill_xp)
    rec = snapshot.recovery

    s2 = ci.s2_score(v)
    dual_decay = ci.dual_process_decay(decay.weekly_s1_xp, decay.weekly_s2_xp)
    dual = max(0.0, ci.dual_process_balance(v) - dual_decay)
    readiness = ci.readiness(v, rec, snapshot.readiness_inputs)
    cp = ci.cognitive_performance(v)
    be = ci.behavioral_engagement(snapshot.engagement)
    sci_decay = ci.sci_decay(rec, decay.days_since_training)
    sci = max(0.0, ci.sci(cp, be, rec) - sci_decay)
    physio = snapshot.readiness_inputs.physio_score if isinstance(snapshot.readiness_inputs, ci.WithPhysio) else None

    return CompositeScores(
        user_id=snapshot.user_id,
        s1=ci.s1_score(v),
        s2=s2,
        dual_process=dual,
        dual_process_band=ci.dual_process_band(dual),
        sharpness_base=ci.sharpness_base(v),
        sharpness=ci.sharpness(v, rec),
        readiness=readiness,
        readiness_band=ci.readiness_band(readiness),
        readiness_source=snapshot.readiness_inputs.kind,
        physio_score=physio,
        recovery=rec,
        sci=sci,
        sci_band=ci.sci_band(sci),
        cognitive_performance=cp,
        behavioral_engagement=be,
        cognitive_age=ci.cognitive_age(v, snapshot.baseline, snapshot.baseline_cognitive_age),
        baseline_cognitive_age=snapshot.baseline_cognitive_age,
        rq=compute_reasoning_quality(s2, snapshot.rq_inputs),
        baseline_estimated=snapshot.baseline_estimated,
        computed_at=snapshot.as_of,
        skill_decay={s: snapshot.skills.get(s) - v.get(s) for s in v.as_dict()},
        sci_decay=sci_decay,
        dual_process_decay=dual_decay,
    )


def _latest_physio_score(db: Session, user_id: str, as_of: datetime) -> Optional[float]:
    since = as_of - timedelta(hours=settings.PHYSIO_MAX_AGE_HOURS)
    latest = (
        db.query(PhysioSnapshot)
        .filter(
            PhysioSnapshot.user_id == user_id,
            PhysioSnapshot.captured_at >= since,
            PhysioSnapshot.captured_at <= as_of,
        )
        .order_by(PhysioSnapshot.captured_at.desc())
        .first()
    )
    if latest is None:
        return None
    return ci.physio_score(latest.hrv_ms, latest.resting_hr, latest.sleep_duration_min, latest.sleep_efficiency)


def _load_engagement(db: Session, user_id: str, plan, raw: Dict[str, float], as_of: datetime) -> ci.EngagementInputs:
    since = as_of - timedelta(days=ENGAGEMENT_WINDOW_DAYS)
    sessions = (
        db.query(TrainingEvent.occurred_at, TrainingEvent.score)
        .filter(
            TrainingEvent.user_id == user_id,
            TrainingEvent.status == "completed",
            TrainingEvent.occurred_at > since,
            TrainingEvent.occurred_at <= as_of,
        )
        .all()
    )
    training_days = {as_utc(occurred_at).date() for occurred_at, _ in sessions}
    accuracy = sum(float(score) for _, score in sessions) / len(sessions) if sessions else 0.0

    return ci.EngagementInputs(
        weekly_game_xp=sum(raw.get(c, 0.0) for c in GAME_CATEGORIES),
        weekly_xp_target=float(plan.weekly_xp_target),
        training_days_last_7=len(training_days),
        sessions_per_week=plan.sessions_per_week,
        accuracy_rate=accuracy,
    )


def _days_since_skill_xp(db: Session, user_id: str, as_of: datetime) -> Dict[str, Optional[int]]:
    rows = (
        db.query(TrainingEvent.skill_routed, func.max(TrainingEvent.occurred_at))
        .filter(
            TrainingEvent.user_id == user_id,
            TrainingEvent.granted_xp > 0,
            TrainingEvent.occurred_at <= as_of,
        )
        .group_by(TrainingEvent.skill_routed)
        .all()
    )
    return {skill: days_between(last, as_of) for skill, last in rows if last is not None}


def _load_decay(db: Session, user_id: str, raw: Dict[str, float], as_of: datetime) -> ci.DecayInputs:
    last_session = (
        db.query(func.max(TrainingEvent.occurred_at))
        .filter(
            TrainingEvent.user_id == user_id,
            TrainingEvent.status == "completed",
            TrainingEvent.occurred_at <= as_of,
        )
        .scalar()
    )
    return ci.DecayInputs(
        days_since_skill_xp=_days_since_skill_xp(db, user_id, as_of),
        days_since_training=days_between(last_session, as_of) if last_session is not None else None,
        weekly_s1_xp=raw.get(CATEGORY_S1_GAMES, 0.0),
        weekly_s2_xp=raw.get(CATEGORY_S2_GAMES, 0.0),
    )


def load_snapshot(db: Session, user_id: str, as_of: Optional[datetime] = None) -> CognitiveSnapshot:
    as_of = as_utc(as_of) or utcnow()
    profile = require_profile(db, user_id)
    resolved = resolve_baseline(profile)
    plan = get_training_plan(profile.training_plan)

    window = load_recovery_window(db, user_id, plan.detox_weekly_minutes, as_of=as_of)
    raw = load_weekly_raw(db, user_id, week_start(as_of))

    return CognitiveSnapshot(
        user_id=user_id,
        skills=resolved.current,
        baseline=resolved.baseline,
        baseline_cognitive_age=resolved.baseline_cognitive_age,
        baseline_estimated=resolved.estimated,
        recovery=window.recovery,
        readiness_inputs=ci.readiness_inputs_from(_latest_physio_score(db, user_id, as_of)),
        engagement=_load_engagement(db, user_id, plan, raw, as_of),
        rq_inputs=load_rq_inputs(db, user_id, as_of=as_of),
        as_of=as_of,
        decay=_load_decay(db, user_id, raw, as_of),
    )


def get_skill_vector(db: Session, user_id: str):
    """Returns (SkillVector, baseline_estimated, last_xp_at)."""
    profile = require_profile(db, user_id)
    resolved = resolve_baseline(profile)
    return resolved.current, resolved.estimated, as_utc(profile.last_xp_at)


def get_composite_scores(db: Session, user_id: str, as_of: Optional[datetime] = None) -> CompositeScores:
    return compute_composite_scores(load_snapshot(db, user_id, as_of=as_of))


def get_reasoning_quality(db: Session, user_id: str, as_of: Optional[datetime] = None) -> ReasoningQuality:
    """RQ on the same decayed S2 the composite report uses."""
    as_of = as_utc(as_of) or utcnow()
    profile = require_profile(db, user_id)
    resolved = resolve_baseline(profile)
    current = ci.decayed_vector(resolved.current, resolved.baseline, _days_since_skill_xp(db, user_id, as_of))
    return compute_reasoning_quality(ci.s2_score(current), load_rq_inputs(db, user_id, as_of=as_of))
