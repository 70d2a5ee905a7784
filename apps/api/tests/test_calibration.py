"""
Tests for calibration, the write-once baseline and the demographic fallback
"""

import pytest
from unittest.mock import patch
from core.exceptions import BaselineAlreadyCaptured, NotCalibrated
from models import CognitiveProfile
from services.calibration import (
    age_adjustment,
    complete_calibration,
    demographic_center,
    education_adjustment,
    resolve_baseline,
    upsert_profile,
    work_adjustment,
)


class TestDemographicCenter:
    """Demographic fallback center."""

    @pytest.mark.parametrize("age,adj", [(25, 2), (30, 2), (35, 1), (40, 1), (50, 0), (55, 0), (60, -2)])
    def test_age_adjustment(self, age, adj):
        """Age bands shift the center."""
        assert age_adjustment(age) == adj

    @pytest.mark.parametrize("level,adj", [
        ("high_school", -1), ("bachelor", 0), ("master", 1), ("phd", 2),
        ("Doctorate", 2), ("other", 0), (None, 0),
    ])
    def test_education_adjustment(self, level, adj):
        """Education shifts the center."""
        assert education_adjustment(level) == adj

    @pytest.mark.parametrize("work,adj", [
        ("technical", 1), ("student", 1), ("knowledge", 1), ("Senior Analyst", 1),
        ("management", 0), ("creative", 0), (None, 0),
    ])
    def test_work_adjustment(self, work, adj):
        """Work type shifts the center."""
        assert work_adjustment(work) == adj

    def test_center_sums_adjustments(self):
        """Adjustments add onto the neutral 50."""
        # 50 + 2 + 1 + 1
        assert demographic_center(28, "master", "technical") == 54.0

    def test_center_clamped(self):
        """The center stays inside the skill range."""
        assert demographic_center(70, "high_school", None) == 47.0
        assert 44.0 <= demographic_center(25, "phd", "technical") <= 56.0

    def test_unknown_age_uses_default(self):
        """A missing age adds nothing."""
        # default 35 → +1
        assert demographic_center(None, None, None) == 51.0


class TestCompleteCalibration:
    """Capturing the baseline."""

    def test_seeds_skill_vector_and_baseline(self, db_session):
        """Calibration seeds both vectors."""
        profile = complete_calibration(db_session, "u1", 62, 55, 48, 41, 33)
        assert profile.is_calibrated
        assert (profile.skill_ae, profile.skill_ra, profile.skill_ct, profile.skill_in) == (62, 55, 48, 41)
        assert (profile.baseline_ae, profile.baseline_ra, profile.baseline_ct, profile.baseline_in) == (62, 55, 48, 41)
        assert profile.baseline_cognitive_age == 33.0

    def test_second_capture_rejected(self, db_session):
        """The baseline is written once."""
        complete_calibration(db_session, "u1", 50, 50, 50, 50, 35)
        with pytest.raises(BaselineAlreadyCaptured):
            complete_calibration(db_session, "u1", 90, 90, 90, 90, 20)
        profile = db_session.query(CognitiveProfile).filter_by(user_id="u1").one()
        assert profile.baseline_ae == 50
        assert profile.baseline_cognitive_age == 35

    def test_existing_profile_keeps_demographics(self, db_session):
        """Calibration leaves demographics alone."""
        upsert_profile(db_session, "u1", chronological_age=44, training_plan="light")
        profile = complete_calibration(db_session, "u1", 50, 50, 50, 50, 40)
        assert profile.chronological_age == 44
        assert profile.training_plan == "light"


class TestResolveBaseline:
    """Baseline lookup with fallback."""

    def test_calibrated(self, db_session):
        """A calibrated user reads the captured baseline."""
        profile = complete_calibration(db_session, "u1", 60, 50, 40, 30, 35)
        resolved = resolve_baseline(profile)
        assert resolved.estimated is False
        assert resolved.current.AE == 60
        assert resolved.baseline_cognitive_age == 35

    def test_fallback_when_not_calibrated(self, db_session):
        """No calibration gives an estimated baseline."""
        profile = upsert_profile(db_session, "u2", chronological_age=28, education_level="master", work_type="technical")
        resolved = resolve_baseline(profile)
        assert resolved.estimated is True
        assert resolved.current.AE == resolved.current.IN == 54.0
        assert resolved.baseline_cognitive_age == 28.0

    def test_fallback_disabled(self, db_session):
        """With fallback off an uncalibrated user raises NotCalibrated."""
        profile = upsert_profile(db_session, "u3")
        with patch("services.calibration.settings") as mock_settings:
            mock_settings.ALLOW_FALLBACK_BASELINE = False
            with pytest.raises(NotCalibrated):
                resolve_baseline(profile)


class TestUpsertProfile:
    """Profile upsert."""

    def test_unknown_field_rejected(self, db_session):
        """Unknown profile fields are a ValidationError."""
        with pytest.raises(AttributeError):
            upsert_profile(db_session, "u1", skill_ae=99)

    def test_updates_only_given_fields(self, db_session):
        """Omitted fields keep their values."""
        upsert_profile(db_session, "u1", chronological_age=30, work_type="creative")
        profile = upsert_profile(db_session, "u1", work_type="technical")
        assert profile.chronological_age == 30
        assert profile.work_type == "technical"
