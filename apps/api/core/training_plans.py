"""
Training Plan Configuration

Static per-plan settings consumed by the cap enforcer, the weekly progress
aggregator and the recovery calculator. Ceilings and targets are configuration,
never computed from user data.

Categories:
    s1_games  - fast-system game XP (AE, RA)
    s2_games  - slow-system game XP (CT, IN)
    detox     - detox load XP (0.05 XP per detox minute); load reporting only,
                never reaches the skill vector
"""
from dataclasses import dataclass
from typing import Dict

from core.config import settings


CATEGORY_S1_GAMES = "s1_games"
CATEGORY_S2_GAMES = "s2_games"
CATEGORY_DETOX = "detox"

GAME_CATEGORIES = (CATEGORY_S1_GAMES, CATEGORY_S2_GAMES)
WEEKLY_CATEGORIES = (CATEGORY_S1_GAMES, CATEGORY_S2_GAMES, CATEGORY_DETOX)

# Uniform across plans
DETOX_XP_PER_MINUTE = 0.05


@dataclass(frozen=True)
class TrainingPlan:
    """One plan's caps and targets."""
    id: str
    sessions_per_week: int
    weekly_xp_target: int                  # game XP per week (behavioral engagement denominator)
    detox_weekly_minutes: int              # recovery target (REC = 100 at this many minutes)
    daily_xp_ceilings: Dict[str, int]      # per game category, per UTC day
    weekly_xp_ceilings: Dict[str, int]     # per game category, per ISO week
    weekly_category_targets: Dict[str, float]

    def daily_ceiling(self, category: str) -> int:
        return self.daily_xp_ceilings[category]

    def weekly_ceiling(self, category: str) -> int:
        return self.weekly_xp_ceilings[category]

    @property
    def weekly_total_target(self) -> float:
        return sum(self.weekly_category_targets.values())


def _plan(
    plan_id: str,
    sessions_per_week: int,
    weekly_xp_target: int,
    detox_weekly_minutes: int,
    daily_ceiling: int,
) -> TrainingPlan:
    detox_target = round(detox_weekly_minutes * DETOX_XP_PER_MINUTE, 1)
    # Game target is what is left of the weekly load once detox is accounted for,
    # split evenly between the two systems.
    per_system_target = round((weekly_xp_target - detox_target) / 2, 1)
    per_system_weekly_ceiling = weekly_xp_target // 2
    return TrainingPlan(
        id=plan_id,
        sessions_per_week=sessions_per_week,
        weekly_xp_target=weekly_xp_target,
        detox_weekly_minutes=detox_weekly_minutes,
        daily_xp_ceilings={c: daily_ceiling for c in GAME_CATEGORIES},
        weekly_xp_ceilings={c: per_system_weekly_ceiling for c in GAME_CATEGORIES},
        weekly_category_targets={
            CATEGORY_S1_GAMES: per_system_target,
            CATEGORY_S2_GAMES: per_system_target,
            CATEGORY_DETOX: detox_target,
        },
    )


TRAINING_PLANS: Dict[str, TrainingPlan] = {
    # light:      targets s1 48 / s2 48 / detox 24
    "light": _plan("light", sessions_per_week=3, weekly_xp_target=120,
                   detox_weekly_minutes=480, daily_ceiling=16),
    # expert:     targets s1 79 / s2 79 / detox 42
    "expert": _plan("expert", sessions_per_week=3, weekly_xp_target=200,
                    detox_weekly_minutes=840, daily_ceiling=24),
    # superhuman: targets s1 108 / s2 108 / detox 84
    "superhuman": _plan("superhuman", sessions_per_week=3, weekly_xp_target=300,
                        detox_weekly_minutes=1680, daily_ceiling=32),
}


def get_training_plan(plan_id: str = None) -> TrainingPlan:
    """
    Look up a plan by id, falling back to the configured default for a
    missing id. Unknown ids raise KeyError; profiles are validated on write.
    """
    return TRAINING_PLANS[plan_id or settings.DEFAULT_TRAINING_PLAN]
