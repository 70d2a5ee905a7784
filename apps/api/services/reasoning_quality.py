"""
Reasoning Quality (RQ) and inactivity decay.

RQ is a derived read-side metric. It never grants XP and never feeds back into
the skill vector.

    RQ_base = 0.50 × S2_core + 0.30 × S2_consistency + 0.20 × task_priming
    RQ      = clamp(RQ_base - decay, max(0, S2_core - 10), 100)

S2_core is S2 = (CT + IN) / 2, so CT and IN each carry 25% of the total.

S2_consistency: 100 - clamp(stddev / 50 × 100) over the last
RQ_CONSISTENCY_WINDOW completed slow-system session scores; 50 when fewer than
RQ_MIN_CONSISTENCY_SESSIONS are available.

Task priming: each podcast/article/book completed in the last
PRIMING_WINDOW_DAYS contributes base × max(0.3, 1 - 0.1 × days_ago) (rounded to
one decimal). The sum is capped at 20 points per effective task (the first
five count fully, further ones half) and clamped to [0, 100].

Decay is lazy: computed from the latest slow-system session or priming task at
read time. A user with no such activity ever does not decay.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Tuple
import logging
import math

from sqlalchemy.orm import Session

from core.config import settings
from core.time_windows import as_utc, days_between, utcnow
from models import PrimingTask, TrainingEvent
from services.skill_routing import SYSTEM_SLOW
from services.skill_state import clamp

logger = logging.getLogger(__name__)


RQ_WEIGHTS = {"s2_core": 0.50, "s2_consistency": 0.30, "task_priming": 0.20}

CONSISTENCY_FALLBACK = 50.0
CONSISTENCY_STDDEV_SCALE = 50.0  # stddev 50 ⇒ consistency 0

PRIMING_TASK_WEIGHTS = {
    "podcast": 12.0,
    "article": 15.0,
    "book": 20.0,
}
PRIMING_RECENCY_STEP = 0.1
PRIMING_RECENCY_FLOOR = 0.3
PRIMING_POINTS_PER_TASK = 20.0
PRIMING_FULL_TASKS = 5
PRIMING_EXTRA_TASK_WEIGHT = 0.5

RQ_FLOOR_OFFSET = 10.0

STATE_ACTIVE = "ACTIVE"
STATE_DECAYING = "DECAYING"


# ---------------------------------------------------------------------------
# Components
# ---------------------------------------------------------------------------


def s2_consistency(scores: Sequence[float]) -> float:
    """Scores in chronological order; only the most recent window is used."""
    if len(scores) < settings.RQ_MIN_CONSISTENCY_SESSIONS:
        return CONSISTENCY_FALLBACK
    recent = list(scores)[-settings.RQ_CONSISTENCY_WINDOW:]
    mean = sum(recent) / len(recent)
    variance = sum((s - mean) ** 2 for s in recent) / len(recent)
    stddev = math.sqrt(variance)
    return clamp(100.0 - clamp(stddev / CONSISTENCY_STDDEV_SCALE * 100.0))


def priming_contribution(task_type: str, days_ago: int) -> float:
    base = PRIMING_TASK_WEIGHTS.get(task_type, PRIMING_TASK_WEIGHTS["podcast"])
    recency = max(PRIMING_RECENCY_FLOOR, 1.0 - days_ago * PRIMING_RECENCY_STEP)
    return math.floor(base * recency * 10 + 0.5) / 10


def task_priming(tasks: Sequence[Tuple[str, datetime]], as_of: datetime) -> float:
    window_start = as_of - timedelta(days=settings.PRIMING_WINDOW_DAYS)
    recent = [
        (task_type, as_utc(completed_at))
        for task_type, completed_at in tasks
        if window_start <= as_utc(completed_at) <= as_of
    ]
    if not recent:
        return 0.0

    total = sum(priming_contribution(t, days_between(c, as_of)) for t, c in recent)
    effective = min(len(recent), PRIMING_FULL_TASKS) + max(0, len(recent) - PRIMING_FULL_TASKS) * PRIMING_EXTRA_TASK_WEIGHT
    return clamp(min(total, effective * PRIMING_POINTS_PER_TASK))


def rq_decay(last_activity_at: Optional[datetime], as_of: datetime) -> Tuple[float, Optional[int]]:
    """(decay points, whole days since the last qualifying activity)."""
    if last_activity_at is None:
        return 0.0, None
    days = days_between(last_activity_at, as_of)
    if days < settings.RQ_INACTIVITY_DAYS:
        return 0.0, days
    weeks = (days - settings.RQ_INACTIVITY_DAYS) // 7 + 1
    return weeks * settings.RQ_DECAY_PER_WEEK, days


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RQInputs:
    """Everything RQ needs, read once."""
    slow_scores: Tuple[float, ...]                          # chronological, completed CT/IN sessions
    priming_tasks: Tuple[Tuple[str, datetime], ...] = ()
    last_slow_session_at: Optional[datetime] = None
    last_priming_at: Optional[datetime] = None
    as_of: datetime = field(default_factory=utcnow)

    @property
    def last_activity_at(self) -> Optional[datetime]:
        candidates = [as_utc(t) for t in (self.last_slow_session_at, self.last_priming_at) if t is not None]
        return max(candidates) if candidates else None


@dataclass(frozen=True)
class ReasoningQuality:
    rq: float
    state: str
    s2_core: float
    s2_consistency: float
    task_priming: float
    base_rq: float
    decay: float
    floor: float
    days_inactive: Optional[int]
    slow_sessions_considered: int
    priming_tasks_considered: int


def compute_reasoning_quality(s2: float, inputs: RQInputs) -> ReasoningQuality:
    as_of = as_utc(inputs.as_of)
    consistency = s2_consistency(inputs.slow_scores)
    priming = task_priming(inputs.priming_tasks, as_of)

    base = (
        RQ_WEIGHTS["s2_core"] * s2
        + RQ_WEIGHTS["s2_consistency"] * consistency
        + RQ_WEIGHTS["task_priming"] * priming
    )
    decay, days = rq_decay(inputs.last_activity_at, as_of)
    floor = max(0.0, s2 - RQ_FLOOR_OFFSET)
    rq = max(floor, min(100.0, base - decay))

    return ReasoningQuality(
        rq=rq,
        state=STATE_DECAYING if decay > 0 else STATE_ACTIVE,
        s2_core=s2,
        s2_consistency=consistency,
        task_priming=priming,
        base_rq=base,
        decay=decay,
        floor=floor,
        days_inactive=days,
        slow_sessions_considered=min(len(inputs.slow_scores), settings.RQ_CONSISTENCY_WINDOW),
        priming_tasks_considered=len(inputs.priming_tasks),
    )


def load_rq_inputs(db: Session, user_id: str, as_of: Optional[datetime] = None) -> RQInputs:
    as_of = as_of or utcnow()

    recent_slow: List[TrainingEvent] = (
        db.query(TrainingEvent)
        .filter(
            TrainingEvent.user_id == user_id,
            TrainingEvent.system_type == SYSTEM_SLOW,
            TrainingEvent.status == "completed",
            TrainingEvent.occurred_at <= as_of,
        )
        .order_by(TrainingEvent.occurred_at.desc())
        .limit(settings.RQ_CONSISTENCY_WINDOW)
        .all()
    )
    last_slow = as_utc(recent_slow[0].occurred_at) if recent_slow else None

    window_start = as_of - timedelta(days=settings.PRIMING_WINDOW_DAYS)
    tasks = (
        db.query(PrimingTask.task_type, PrimingTask.completed_at)
        .filter(
            PrimingTask.user_id == user_id,
            PrimingTask.completed_at >= window_start,
            PrimingTask.completed_at <= as_of,
        )
        .all()
    )
    last_task_row = (
        db.query(PrimingTask.completed_at)
        .filter(PrimingTask.user_id == user_id, PrimingTask.completed_at <= as_of)
        .order_by(PrimingTask.completed_at.desc())
        .first()
    )

    return RQInputs(
        slow_scores=tuple(float(e.score) for e in reversed(recent_slow)),
        priming_tasks=tuple((t, as_utc(c)) for t, c in tasks),
        last_slow_session_at=last_slow,
        last_priming_at=as_utc(last_task_row[0]) if last_task_row else None,
        as_of=as_of,
    )
