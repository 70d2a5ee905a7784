"""
XP Router

Maps a game or task identifier to exactly one of the four trainable skills and
turns a session outcome into requested XP.

Routing is total over the catalog below plus the direct skill routes
(S1-AE, S1-RA, S2-CT, S2-IN, or the bare skill code). Anything else raises
UnknownSkillRoute; nothing is ever routed to a fallback skill.

XP:
    base XP by difficulty tier: easy 3, medium 5, hard 8
    event XP = max(MIN_EVENT_XP, round_half_up(base × score / 100))
    aborted sessions request 0
"""
from dataclasses import dataclass
from typing import Dict, Optional
import logging
import math

from core.config import settings
from core.exceptions import UnknownSkillRoute
from core.training_plans import CATEGORY_S1_GAMES, CATEGORY_S2_GAMES

logger = logging.getLogger(__name__)


SKILL_AE = "AE"
SKILL_RA = "RA"
SKILL_CT = "CT"
SKILL_IN = "IN"
SKILLS = (SKILL_AE, SKILL_RA, SKILL_CT, SKILL_IN)

SYSTEM_FAST = "S1"
SYSTEM_SLOW = "S2"

SKILL_SYSTEM: Dict[str, str] = {
    SKILL_AE: SYSTEM_FAST,
    SKILL_RA: SYSTEM_FAST,
    SKILL_CT: SYSTEM_SLOW,
    SKILL_IN: SYSTEM_SLOW,
}

SYSTEM_CATEGORY: Dict[str, str] = {
    SYSTEM_FAST: CATEGORY_S1_GAMES,
    SYSTEM_SLOW: CATEGORY_S2_GAMES,
}

DIFFICULTY_XP: Dict[str, int] = {
    "easy": 3,
    "medium": 5,
    "hard": 8,
}
DEFAULT_DIFFICULTY = "medium"
MAX_TIER_XP = max(DIFFICULTY_XP.values())

GAME_CATALOG: Dict[str, str] = {
    # Attentional Efficiency
    "orbit_lock": SKILL_AE,
    "triage_sprint": SKILL_AE,
    "focus_switch": SKILL_AE,
    # Rapid Association
    "flash_connect": SKILL_RA,
    "semantic_drift": SKILL_RA,
    "constellation_snap": SKILL_RA,
    # Critical Thinking
    "causal_ledger": SKILL_CT,
    "counterfactual_audit": SKILL_CT,
    "socratic_cross_exam": SKILL_CT,
    # Insight
    "signal_vs_noise": SKILL_IN,
    "counterexample_forge": SKILL_IN,
    "hidden_rule_lab": SKILL_IN,
}

DIRECT_ROUTES: Dict[str, str] = {
    "S1-AE": SKILL_AE,
    "S1-RA": SKILL_RA,
    "S2-CT": SKILL_CT,
    "S2-IN": SKILL_IN,
    "AE": SKILL_AE,
    "RA": SKILL_RA,
    "CT": SKILL_CT,
    "IN": SKILL_IN,
}


@dataclass(frozen=True)
class SkillRoute:
    skill: str
    system: str
    category: str
    game_identifier: Optional[str] = None


def _normalize_game(identifier: str) -> str:
    return identifier.strip().lower().replace("-", "_").replace(" ", "_")


def route(identifier: Optional[str]) -> SkillRoute:
    """
    Resolve an identifier to its skill.

    Direct routes are matched case-insensitively; game names additionally
    accept '-' or ' ' in place of '_'.
    """
    if identifier and identifier.strip():
        direct = DIRECT_ROUTES.get(identifier.strip().upper())
        if direct:
            return _route_for(direct)

        game = _normalize_game(identifier)
        skill = GAME_CATALOG.get(game)
        if skill:
            return _route_for(skill, game)

    logger.warning(f"Unknown skill route: {identifier!r}")
    raise UnknownSkillRoute(identifier)


def _route_for(skill: str, game: Optional[str] = None) -> SkillRoute:
    system = SKILL_SYSTEM[skill]
    return SkillRoute(
        skill=skill,
        system=system,
        category=SYSTEM_CATEGORY[system],
        game_identifier=game,
    )


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def base_xp_for(difficulty: Optional[str]) -> int:
    return DIFFICULTY_XP.get(difficulty or DEFAULT_DIFFICULTY, DIFFICULTY_XP[DEFAULT_DIFFICULTY])


def event_xp(base_xp: int, score: float) -> int:
    """Score-scaled XP for a completed session, never below MIN_EVENT_XP."""
    scaled = round_half_up(base_xp * max(0.0, min(100.0, score)) / 100.0)
    return max(settings.MIN_EVENT_XP, scaled)


def requested_xp_for(
    score: float,
    difficulty: Optional[str] = None,
    raw_xp: Optional[int] = None,
    status: str = "completed",
) -> int:
    """
    XP a session asks for before caps.

    A client-supplied raw_xp is bounded to [0, MAX_TIER_XP] and used as-is.
    """
    if status != "completed":
        return 0
    if raw_xp is not None:
        return max(0, min(MAX_TIER_XP, int(raw_xp)))
    return event_xp(base_xp_for(difficulty), score)
