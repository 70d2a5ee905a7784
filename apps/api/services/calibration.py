"""
Calibration and baseline resolution.

complete_calibration writes the Baseline Snapshot exactly once and seeds the
skill vector from it. Until then, reads can fall back to a demographic
estimate:

    center = clamp(50 + age_adj + education_adj + work_adj, 44, 56)

applied to all four skills, with the chronological age (or
DEFAULT_CHRONOLOGICAL_AGE) as the baseline cognitive age. Results built on the
estimate are flagged baseline_estimated.
"""
from dataclasses import dataclass
from typing import Optional
import logging

from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import BaselineAlreadyCaptured, NotCalibrated, NotFoundError
from core.time_windows import utcnow
from models import CognitiveProfile
from services.skill_state import (
    SkillVector,
    clamp,
    get_or_create_profile,
    load_profile,
    read_baseline,
    read_vector,
    write_vector,
)

logger = logging.getLogger(__name__)


DEMO_CENTER = 50.0
DEMO_CENTER_MIN = 44.0
DEMO_CENTER_MAX = 56.0


def age_adjustment(age: int) -> int:
    if age <= 30:
        return 2
    if age <= 40:
        return 1
    if age <= 55:
        return 0
    return -2


def education_adjustment(education_level: Optional[str]) -> int:
    if not education_level:
        return 0
    level = education_level.lower()
    if "high_school" in level or "high school" in level:
        return -1
    if "bachelor" in level:
        return 0
    if "master" in level:
        return 1
    if "phd" in level or "doctorate" in level:
        return 2
    return 0


def work_adjustment(work_type: Optional[str]) -> int:
    if not work_type:
        return 0
    kind = work_type.lower()
    if "technical" in kind:
        return 1
    if kind == "student" or "academic" in kind or "phd" in kind:
        return 1
    if kind == "knowledge" or "consulting" in kind or "analyst" in kind:
        return 1
    # management, creative, other
    return 0


def demographic_center(age: Optional[int], education_level: Optional[str], work_type: Optional[str]) -> float:
    effective_age = age or settings.DEFAULT_CHRONOLOGICAL_AGE
    raw = DEMO_CENTER + age_adjustment(effective_age) + education_adjustment(education_level) + work_adjustment(work_type)
    return clamp(raw, DEMO_CENTER_MIN, DEMO_CENTER_MAX)


@dataclass(frozen=True)
class ResolvedBaseline:
    """Current skills plus the baseline they are measured against."""
    current: SkillVector
    baseline: SkillVector
    baseline_cognitive_age: float
    estimated: bool


def resolve_baseline(profile: CognitiveProfile) -> ResolvedBaseline:
    if profile.is_calibrated:
        return ResolvedBaseline(
            current=read_vector(profile),
            baseline=read_baseline(profile),
            baseline_cognitive_age=profile.baseline_cognitive_age,
            estimated=False,
        )

    if not settings.ALLOW_FALLBACK_BASELINE:
        raise NotCalibrated(profile.user_id)

    center = demographic_center(profile.chronological_age, profile.education_level, profile.work_type)
    estimate = SkillVector(AE=center, RA=center, CT=center, IN=center)
    return ResolvedBaseline(
        current=estimate,
        baseline=estimate,
        baseline_cognitive_age=float(profile.chronological_age or settings.DEFAULT_CHRONOLOGICAL_AGE),
        estimated=True,
    )


def require_profile(db: Session, user_id: str) -> CognitiveProfile:
    profile = load_profile(db, user_id)
    if profile is None:
        raise NotFoundError("User", user_id)
    return profile


def upsert_profile(db: Session, user_id: str, **fields) -> CognitiveProfile:
    """Create the profile if needed and set the given demographic/plan fields."""
    profile = get_or_create_profile(db, user_id, lock=True)
    for name, value in fields.items():
        if name not in ("training_plan", "chronological_age", "education_level", "work_type"):
            raise AttributeError(name)
        setattr(profile, name, value)
    db.add(profile)
    db.flush()
    return profile


def complete_calibration(
    db: Session,
    user_id: str,
    ae0: float,
    ra0: float,
    ct0: float,
    in0: float,
    cognitive_age_baseline: float,
) -> CognitiveProfile:
    """
    Capture the Baseline Snapshot. Write-once: a second call raises
    BaselineAlreadyCaptured and leaves the stored snapshot untouched.
    """
    profile = get_or_create_profile(db, user_id, lock=True)
    if profile.is_calibrated:
        logger.warning(f"Rejected second calibration for user {user_id}")
        raise BaselineAlreadyCaptured(user_id)

    baseline = SkillVector(AE=clamp(ae0), RA=clamp(ra0), CT=clamp(ct0), IN=clamp(in0))
    profile.baseline_ae = baseline.AE
    profile.baseline_ra = baseline.RA
    profile.baseline_ct = baseline.CT
    profile.baseline_in = baseline.IN
    profile.baseline_cognitive_age = float(cognitive_age_baseline)
    profile.baseline_captured_at = utcnow()
    write_vector(profile, baseline)

    db.add(profile)
    db.flush()

    logger.info(
        f"Baseline captured for user {user_id}",
        extra={"extra_fields": {"user_id": user_id, **baseline.as_dict(),
                                "cognitive_age_baseline": float(cognitive_age_baseline)}},
    )
    return profile
