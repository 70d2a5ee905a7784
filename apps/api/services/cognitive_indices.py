"""
Composite Index Calculator

Pure functions from a skill vector (plus recovery and engagement inputs) to
the derived scores. Nothing here touches the database and nothing is rounded;
presentation rounding belongs to the caller.

    S1            = (AE + RA) / 2
    S2            = (CT + IN) / 2
    DualProcess   = 100 - |S1 - S2|
    Sharpness     = (0.50 S1 + 0.30 AE + 0.20 S2) × (0.75 + 0.25 REC/100)
    Readiness     = 0.35 REC + 0.35 S2 + 0.30 AE                  (WithoutPhysio)
                  = 0.6 × that + 0.4 physio                       (WithPhysio)
    PerformanceAvg= (AE + RA + CT + IN + S2) / 5
    CognitiveAge  = BaselineAge - (PerformanceAvg - BaselinePerformanceAvg) / 10
                    bounded to BaselineAge ± COGNITIVE_AGE_MAX_SHIFT_YEARS
    SCI           = 0.50 CP + 0.30 BE + 0.20 REC

Decay (skill inactivity, SCI, dual-process imbalance) is subtracted at read
time; see the Decay section.

Readiness inputs are an explicit variant chosen once from data availability:
a complete, fresh wearable snapshot gives WithPhysio, anything else gives
WithoutPhysio.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from core.config import settings
from services.skill_routing import SKILLS
from services.skill_state import SkillVector, clamp


# Sharpness
SHARPNESS_WEIGHTS = {"s1": 0.50, "ae": 0.30, "s2": 0.20}
SHARPNESS_RECOVERY_FLOOR = 0.75
SHARPNESS_RECOVERY_SPAN = 0.25

# Readiness
READINESS_WEIGHTS = {"rec": 0.35, "s2": 0.35, "ae": 0.30}
READINESS_PHYSIO_BLEND = 0.4

# Physio normalization ranges
HRV_RANGE_MS = (20.0, 120.0)
RESTING_HR_RANGE_BPM = (45.0, 90.0)
SLEEP_DURATION_RANGE_MIN = (300.0, 540.0)
SLEEP_EFFICIENCY_RANGE = (0.70, 0.98)
PHYSIO_WEIGHTS = {"hrv": 0.4, "resting_hr": 0.2, "sleep": 0.4}
SLEEP_WEIGHTS = {"duration": 0.6, "efficiency": 0.4}

# SCI
SCI_WEIGHTS = {"cognitive_performance": 0.50, "behavioral_engagement": 0.30, "recovery": 0.20}
ENGAGEMENT_WEIGHTS = {"xp_completion": 0.50, "session_frequency": 0.30, "accuracy": 0.20}

# Cognitive age: 10 points of performance ≡ 1 year
IMPROVEMENT_POINTS_PER_YEAR = 10.0

SCI_BANDS = ((85.0, "elite"), (70.0, "high"), (55.0, "moderate"), (40.0, "developing"))
DUAL_PROCESS_BANDS = ((85.0, "elite"), (70.0, "good"))
READINESS_BANDS = ((70.0, "HIGH"), (40.0, "MEDIUM"))


# ---------------------------------------------------------------------------
# System composites
# ---------------------------------------------------------------------------


def s1_score(v: SkillVector) -> float:
    return (v.AE + v.RA) / 2


def s2_score(v: SkillVector) -> float:
    return (v.CT + v.IN) / 2


def dual_process_balance(v: SkillVector) -> float:
    return 100.0 - abs(s1_score(v) - s2_score(v))


def sharpness_base(v: SkillVector) -> float:
    return (
        SHARPNESS_WEIGHTS["s1"] * s1_score(v)
        + SHARPNESS_WEIGHTS["ae"] * v.AE
        + SHARPNESS_WEIGHTS["s2"] * s2_score(v)
    )


def sharpness(v: SkillVector, recovery: float) -> float:
    modifier = SHARPNESS_RECOVERY_FLOOR + SHARPNESS_RECOVERY_SPAN * (recovery / 100.0)
    return sharpness_base(v) * modifier


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WithoutPhysio:
    kind = "without_physio"


@dataclass(frozen=True)
class WithPhysio:
    physio_score: float
    kind = "with_physio"


ReadinessInputs = Union[WithPhysio, WithoutPhysio]


def _normalize(value: float, low: float, high: float) -> float:
    return clamp((value - low) / (high - low) * 100.0)


def physio_score(
    hrv_ms: Optional[float],
    resting_hr: Optional[float],
    sleep_duration_min: Optional[float],
    sleep_efficiency: Optional[float],
) -> Optional[float]:
    """
    0-100 physiological readiness from one wearable snapshot.

    Returns None when any reading is missing; a partial snapshot never blends
    into readiness.
    """
    if hrv_ms is None or resting_hr is None or sleep_duration_min is None or sleep_efficiency is None:
        return None

    efficiency = sleep_efficiency / 100.0 if sleep_efficiency > 1 else sleep_efficiency

    hrv_component = _normalize(hrv_ms, *HRV_RANGE_MS)
    hr_low, hr_high = RESTING_HR_RANGE_BPM
    rhr_component = clamp((hr_high - resting_hr) / (hr_high - hr_low) * 100.0)
    sleep_component = (
        SLEEP_WEIGHTS["duration"] * _normalize(sleep_duration_min, *SLEEP_DURATION_RANGE_MIN)
        + SLEEP_WEIGHTS["efficiency"] * _normalize(efficiency, *SLEEP_EFFICIENCY_RANGE)
    )

    return (
        PHYSIO_WEIGHTS["hrv"] * hrv_component
        + PHYSIO_WEIGHTS["resting_hr"] * rhr_component
        + PHYSIO_WEIGHTS["sleep"] * sleep_component
    )


def readiness_inputs_from(score: Optional[float]) -> ReadinessInputs:
    if score is None:
        return WithoutPhysio()
    return WithPhysio(physio_score=score)


def readiness_base(v: SkillVector, recovery: float) -> float:
    return (
        READINESS_WEIGHTS["rec"] * recovery
        + READINESS_WEIGHTS["s2"] * s2_score(v)
        + READINESS_WEIGHTS["ae"] * v.AE
    )


def readiness(v: SkillVector, recovery: float, inputs: ReadinessInputs) -> float:
    base = readiness_base(v, recovery)
    if isinstance(inputs, WithPhysio):
        blended = (1 - READINESS_PHYSIO_BLEND) * base + READINESS_PHYSIO_BLEND * inputs.physio_score
        return clamp(blended)
    return clamp(base)


# ---------------------------------------------------------------------------
# Cognitive age
# ---------------------------------------------------------------------------


def performance_avg(v: SkillVector) -> float:
    return (v.AE + v.RA + v.CT + v.IN + s2_score(v)) / 5


def cognitive_age(current: SkillVector, baseline: SkillVector, baseline_age: float) -> float:
    improvement = performance_avg(current) - performance_avg(baseline)
    max_shift = settings.COGNITIVE_AGE_MAX_SHIFT_YEARS
    age = baseline_age - improvement / IMPROVEMENT_POINTS_PER_YEAR
    return max(baseline_age - max_shift, min(baseline_age + max_shift, age))


# ---------------------------------------------------------------------------
# SCI
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngagementInputs:
    """Training-consistency signals for the behavioral engagement term."""
    weekly_game_xp: float
    weekly_xp_target: float
    training_days_last_7: int
    sessions_per_week: int
    accuracy_rate: float  # mean score of completed sessions, last 7 days (0 if none)


def behavioral_engagement(e: EngagementInputs) -> float:
    xp_completion = min(100.0, e.weekly_game_xp / e.weekly_xp_target * 100.0) if e.weekly_xp_target > 0 else 0.0
    frequency = min(100.0, e.training_days_last_7 / e.sessions_per_week * 100.0) if e.sessions_per_week > 0 else 0.0
    return clamp(
        ENGAGEMENT_WEIGHTS["xp_completion"] * xp_completion
        + ENGAGEMENT_WEIGHTS["session_frequency"] * frequency
        + ENGAGEMENT_WEIGHTS["accuracy"] * clamp(e.accuracy_rate)
    )


def cognitive_performance(v: SkillVector) -> float:
    return clamp(performance_avg(v))


def sci(cp: float, be: float, recovery: float) -> float:
    return (
        SCI_WEIGHTS["cognitive_performance"] * cp
        + SCI_WEIGHTS["behavioral_engagement"] * be
        + SCI_WEIGHTS["recovery"] * recovery
    )


# ---------------------------------------------------------------------------
# Bands
# ---------------------------------------------------------------------------


def _band(value: float, bands, fallback: str) -> str:
    for threshold, label in bands:
        if value >= threshold:
            return label
    return fallback


def sci_band(value: float) -> str:
    return _band(value, SCI_BANDS, "early")


def dual_process_band(value: float) -> str:
    return _band(value, DUAL_PROCESS_BANDS, "unbalanced")


def readiness_band(value: float) -> str:
    return _band(value, READINESS_BANDS, "LOW")


# ---------------------------------------------------------------------------
# Decay
#
# Evaluated at read time from activity timestamps and the weekly ledger; the
# stored skill vector is never rewritten. Each weekly maximum bounds what one
# read can subtract.
# ---------------------------------------------------------------------------

SKILL_DECAY_THRESHOLD_DAYS = 30
SKILL_DECAY_INTERVAL_DAYS = 15
SKILL_DECAY_MAX_POINTS = 3.0

LOW_RECOVERY_THRESHOLD = 40.0
SCI_NO_TRAINING_DAYS = 7
SCI_DECAY = {"low_recovery": 5.0, "no_training": 5.0}
SCI_DECAY_MAX_WEEKLY = 10.0

DUAL_PROCESS_IMBALANCE_RATIO = 2.0
DUAL_PROCESS_IMBALANCE_DECAY = 5.0
DUAL_PROCESS_DECAY_MAX_WEEKLY = 10.0


@dataclass(frozen=True)
class DecayInputs:
    """Inactivity and imbalance signals, all relative to the read time."""
    days_since_skill_xp: Dict[str, Optional[int]] = field(default_factory=dict)
    days_since_training: Optional[int] = None  # None: no completed session ever
    weekly_s1_xp: float = 0.0
    weekly_s2_xp: float = 0.0


def skill_decay(days_since_xp: Optional[int], current: float, baseline: float) -> float:
    """
    Points a skill loses after 30 days without XP: 1 at the threshold, +1 per
    further 15 days, at most 3, and never below the baseline. A skill that
    never earned XP does not decay.
    """
    if days_since_xp is None or days_since_xp < SKILL_DECAY_THRESHOLD_DAYS:
        return 0.0
    intervals = (days_since_xp - SKILL_DECAY_THRESHOLD_DAYS) // SKILL_DECAY_INTERVAL_DAYS
    decay = min(1.0 + intervals, SKILL_DECAY_MAX_POINTS)
    return min(decay, max(0.0, current - baseline))


def decayed_vector(v: SkillVector, baseline: SkillVector, days_since_skill_xp: Dict[str, Optional[int]]) -> SkillVector:
    return SkillVector(**{
        skill: v.get(skill) - skill_decay(days_since_skill_xp.get(skill), v.get(skill), baseline.get(skill))
        for skill in SKILLS
    })


def sci_decay(recovery: float, days_since_training: Optional[int]) -> float:
    decay = 0.0
    if recovery < LOW_RECOVERY_THRESHOLD:
        decay += SCI_DECAY["low_recovery"]
    if days_since_training is None or days_since_training >= SCI_NO_TRAINING_DAYS:
        decay += SCI_DECAY["no_training"]
    return min(decay, SCI_DECAY_MAX_WEEKLY)


def dual_process_decay(weekly_s1_xp: float, weekly_s2_xp: float) -> float:
    """Penalty when one system earned at least twice the other's XP this week."""
    if weekly_s1_xp <= 0 and weekly_s2_xp <= 0:
        return 0.0
    low, high = sorted((weekly_s1_xp, weekly_s2_xp))
    if low <= 0 or high / low >= DUAL_PROCESS_IMBALANCE_RATIO:
        return min(DUAL_PROCESS_IMBALANCE_DECAY, DUAL_PROCESS_DECAY_MAX_WEEKLY)
    return 0.0
