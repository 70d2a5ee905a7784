"""
Recovery Calculator

    REC_input = detox_minutes + 0.5 × walk_minutes
    REC       = min(100, REC_input / detox_target × 100)

Minutes are summed over a rolling window (RECOVERY_WINDOW_DAYS) ending at the
read time; older activity is stale and counts as zero. The detox target is
the training plan's weekly detox minutes. Recovery never touches the skill
vector.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from core.config import settings
from core.time_windows import utcnow
from models import RecoveryActivity

logger = logging.getLogger(__name__)


WALK_WEIGHT = 0.5
REC_MAX = 100.0


def calculate_recovery(detox_minutes: float, walk_minutes: float, detox_target: float) -> float:
    if detox_target <= 0:
        return 0.0
    rec_input = max(0.0, detox_minutes) + WALK_WEIGHT * max(0.0, walk_minutes)
    return min(REC_MAX, rec_input / detox_target * 100.0)


@dataclass(frozen=True)
class RecoveryWindow:
    detox_minutes: float
    walk_minutes: float
    detox_target: float
    window_start: datetime
    window_end: datetime

    @property
    def recovery(self) -> float:
        return calculate_recovery(self.detox_minutes, self.walk_minutes, self.detox_target)


def load_recovery_window(
    db: Session,
    user_id: str,
    detox_target: float,
    as_of: Optional[datetime] = None,
) -> RecoveryWindow:
    """Sum detox and walk minutes in (as_of - window, as_of]."""
    end = as_of or utcnow()
    start = end - timedelta(days=settings.RECOVERY_WINDOW_DAYS)

    rows = (
        db.query(RecoveryActivity.activity_type, func.coalesce(func.sum(RecoveryActivity.minutes), 0.0))
        .filter(
            RecoveryActivity.user_id == user_id,
            RecoveryActivity.occurred_at > start,
            RecoveryActivity.occurred_at <= end,
        )
        .group_by(RecoveryActivity.activity_type)
        .all()
    )
    totals = {activity_type: float(total) for activity_type, total in rows}

    return RecoveryWindow(
        detox_minutes=totals.get("detox", 0.0),
        walk_minutes=totals.get("walk", 0.0),
        detox_target=float(detox_target),
        window_start=start,
        window_end=end,
    )
