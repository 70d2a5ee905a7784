"""
Skill State Store and Update Applier.

The skill vector lives on CognitiveProfile. apply_xp is pure: it returns a new
vector with one skill moved by granted_xp × XP_TO_SKILL_FACTOR and clamped to
[0, 100]. Persisting it is the caller's job (the event pipeline).
"""
from dataclasses import dataclass, replace
from typing import Dict, Optional
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import settings
from models import CognitiveProfile, SKILL_COLUMNS

logger = logging.getLogger(__name__)


SKILL_MIN = 0.0
SKILL_MAX = 100.0


def clamp(value: float, low: float = SKILL_MIN, high: float = SKILL_MAX) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class SkillVector:
    AE: float
    RA: float
    CT: float
    IN: float

    def get(self, skill: str) -> float:
        return getattr(self, skill)

    def as_dict(self) -> Dict[str, float]:
        return {"AE": self.AE, "RA": self.RA, "CT": self.CT, "IN": self.IN}

    @property
    def s1(self) -> float:
        return (self.AE + self.RA) / 2

    @property
    def s2(self) -> float:
        return (self.CT + self.IN) / 2


def skill_delta(granted_xp: int) -> float:
    return granted_xp * settings.XP_TO_SKILL_FACTOR


def apply_xp(vector: SkillVector, skill: str, granted_xp: int) -> SkillVector:
    if skill not in SKILL_COLUMNS:
        raise KeyError(skill)
    if granted_xp <= 0:
        return vector
    updated = clamp(vector.get(skill) + skill_delta(granted_xp))
    return replace(vector, **{skill: updated})


def read_vector(profile: CognitiveProfile) -> SkillVector:
    """Skill vector stored on a calibrated profile."""
    return SkillVector(
        AE=profile.skill_ae,
        RA=profile.skill_ra,
        CT=profile.skill_ct,
        IN=profile.skill_in,
    )


def read_baseline(profile: CognitiveProfile) -> SkillVector:
    return SkillVector(
        AE=profile.baseline_ae,
        RA=profile.baseline_ra,
        CT=profile.baseline_ct,
        IN=profile.baseline_in,
    )


def write_vector(profile: CognitiveProfile, vector: SkillVector) -> None:
    for skill, column in SKILL_COLUMNS.items():
        setattr(profile, column, vector.get(skill))


# ---------------------------------------------------------------------------
# Profile access
# ---------------------------------------------------------------------------


def load_profile(db: Session, user_id: str, lock: bool = False) -> Optional[CognitiveProfile]:
    """
    Fetch a user's profile. With lock=True the row is held FOR UPDATE until the
    transaction ends; every event mutation goes through here first.
    """
    query = db.query(CognitiveProfile).filter(CognitiveProfile.user_id == user_id)
    if lock:
        query = query.with_for_update()
    return query.first()


def get_or_create_profile(db: Session, user_id: str, lock: bool = False) -> CognitiveProfile:
    """
    Profile creation is the first write of every path that calls this, so a
    concurrent first write for the same user rolls back and reloads the
    winner's row.
    """
    profile = load_profile(db, user_id, lock=lock)
    if profile:
        return profile
    profile = CognitiveProfile(user_id=user_id)
    db.add(profile)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        profile = load_profile(db, user_id, lock=lock)
        if profile is None:
            raise
        return profile
    logger.info(f"Created cognitive profile for user {user_id}")
    return profile
