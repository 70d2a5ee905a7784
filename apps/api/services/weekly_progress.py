"""
Weekly Progress Aggregator

Buckets raw XP per category into the current ISO week and caps each category
at its plan target. Overshoot stays visible in raw_by_category but is left out
of capped_total, so one over-trained category cannot hide under-training in
another.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Optional
import logging

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from core.time_windows import utcnow, week_start
from core.training_plans import WEEKLY_CATEGORIES, TrainingPlan, get_training_plan
from models import CognitiveProfile, WeeklyCategoryLedger

logger = logging.getLogger(__name__)


def add_weekly_xp(db: Session, user_id: str, occurred_at: datetime, category: str, xp: float) -> None:
    """Increment the weekly ledger. Callers hold the profile lock."""
    if xp <= 0:
        return
    start = week_start(occurred_at)
    row = (
        db.query(WeeklyCategoryLedger)
        .filter(
            WeeklyCategoryLedger.user_id == user_id,
            WeeklyCategoryLedger.week_start == start,
            WeeklyCategoryLedger.category == category,
        )
        .first()
    )
    if row is None:
        row = WeeklyCategoryLedger(user_id=user_id, week_start=start, category=category, raw_xp=0.0)
        db.add(row)
        db.flush()
    row.raw_xp = (row.raw_xp or 0.0) + xp


def load_weekly_raw(db: Session, user_id: str, start: date) -> Dict[str, float]:
    rows = (
        db.query(WeeklyCategoryLedger.category, WeeklyCategoryLedger.raw_xp)
        .filter(WeeklyCategoryLedger.user_id == user_id, WeeklyCategoryLedger.week_start == start)
        .all()
    )
    raw = {category: 0.0 for category in WEEKLY_CATEGORIES}
    for category, xp in rows:
        raw[category] = raw.get(category, 0.0) + float(xp or 0.0)
    return raw


@dataclass(frozen=True)
class WeeklyProgress:
    training_plan: str
    week_start: date
    raw_by_category: Dict[str, float]
    capped_by_category: Dict[str, float]
    targets_by_category: Dict[str, float]
    progress_by_category: Dict[str, float]
    capped_total: float
    total_target: float
    total_progress: float


def summarize_week(raw_by_category: Dict[str, float], plan: TrainingPlan, start: date) -> WeeklyProgress:
    targets = dict(plan.weekly_category_targets)
    capped = {c: min(raw_by_category.get(c, 0.0), targets.get(c, 0.0)) for c in WEEKLY_CATEGORIES}
    progress = {
        c: (capped[c] / targets[c] * 100.0) if targets.get(c, 0.0) > 0 else 0.0
        for c in WEEKLY_CATEGORIES
    }
    capped_total = sum(capped.values())
    total_target = plan.weekly_total_target

    return WeeklyProgress(
        training_plan=plan.id,
        week_start=start,
        raw_by_category={c: raw_by_category.get(c, 0.0) for c in WEEKLY_CATEGORIES},
        capped_by_category=capped,
        targets_by_category=targets,
        progress_by_category=progress,
        capped_total=capped_total,
        total_target=total_target,
        total_progress=(capped_total / total_target * 100.0) if total_target > 0 else 0.0,
    )


def get_weekly_progress(db: Session, user_id: str, as_of: Optional[datetime] = None) -> WeeklyProgress:
    profile = db.query(CognitiveProfile).filter(CognitiveProfile.user_id == user_id).first()
    if profile is None:
        raise NotFoundError("User", user_id)

    plan = get_training_plan(profile.training_plan)
    start = week_start(as_of or utcnow())
    return summarize_week(load_weekly_raw(db, user_id, start), plan, start)
