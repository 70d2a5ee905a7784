"""
XP Cap Enforcer

Limits granted XP per category per UTC day and per ISO week. Ceilings come
from the user's training plan.

    granted = max(0, min(requested, ceiling - already_granted))

Both windows are checked and the smaller remainder wins. Hitting a cap is not
an error: the event is still recorded, with granted_xp < requested_xp.

The ledgers are only written inside the event pipeline's transaction, after the
profile row is locked, so admit() never races another writer for the same user.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
import logging

from sqlalchemy.orm import Session

from core.time_windows import day_start, week_start
from core.training_plans import TrainingPlan
from models import XPCapLedger

logger = logging.getLogger(__name__)


WINDOW_DAY = "day"
WINDOW_WEEK = "week"


def compute_granted(requested: int, ceiling: int, already_granted: int) -> int:
    return max(0, min(requested, ceiling - already_granted))


@dataclass
class CapDecision:
    requested_xp: int
    granted_xp: int
    capped: bool
    limiting_window: Optional[str] = None  # 'day' | 'week' when capped


def _get_or_create_ledger(
    db: Session, user_id: str, window_kind: str, window_start: date, category: str
) -> XPCapLedger:
    ledger = (
        db.query(XPCapLedger)
        .filter(
            XPCapLedger.user_id == user_id,
            XPCapLedger.window_kind == window_kind,
            XPCapLedger.window_start == window_start,
            XPCapLedger.category == category,
        )
        .first()
    )
    if ledger:
        return ledger
    ledger = XPCapLedger(
        user_id=user_id,
        window_kind=window_kind,
        window_start=window_start,
        category=category,
        granted_xp=0,
    )
    db.add(ledger)
    db.flush()
    return ledger


class CapEnforcer:
    """Admits XP against the day and week ledgers of one user's plan."""

    def __init__(self, db: Session, plan: TrainingPlan):
        self.db = db
        self.plan = plan

    def admit(self, user_id: str, category: str, occurred_at: datetime, requested: int) -> CapDecision:
        day_ledger = _get_or_create_ledger(self.db, user_id, WINDOW_DAY, day_start(occurred_at), category)
        week_ledger = _get_or_create_ledger(self.db, user_id, WINDOW_WEEK, week_start(occurred_at), category)

        day_allowance = compute_granted(requested, self.plan.daily_ceiling(category), day_ledger.granted_xp)
        week_allowance = compute_granted(requested, self.plan.weekly_ceiling(category), week_ledger.granted_xp)
        granted = min(day_allowance, week_allowance)

        limiting = None
        if granted < requested:
            limiting = WINDOW_DAY if day_allowance <= week_allowance else WINDOW_WEEK
            logger.info(
                f"XP capped for user {user_id}: {category} requested={requested} granted={granted} ({limiting})",
                extra={"extra_fields": {
                    "user_id": user_id,
                    "category": category,
                    "requested_xp": requested,
                    "granted_xp": granted,
                    "limiting_window": limiting,
                }},
            )

        if granted > 0:
            day_ledger.granted_xp += granted
            week_ledger.granted_xp += granted
            self.db.add(day_ledger)
            self.db.add(week_ledger)

        return CapDecision(
            requested_xp=requested,
            granted_xp=granted,
            capped=granted < requested,
            limiting_window=limiting,
        )
