"""
Tests for the event pipeline

Covers routing rejection, idempotence by event id, cap saturation, aborted
sessions, timestamp validation, and the recovery / priming / physio inputs.
"""

import pytest
from datetime import timedelta
from unittest.mock import patch
from core.exceptions import NotCalibrated, UnknownSkillRoute, ValidationError
from core.time_windows import as_utc
from models import (
    CognitiveProfile,
    PrimingTask,
    RecoveryActivity,
    TrainingEvent,
    WeeklyCategoryLedger,
    XPCapLedger,
)
from services import skill_state
from services.calibration import complete_calibration, upsert_profile
from services.training_events import (
    record_physio_snapshot,
    record_priming_task,
    record_recovery_activity,
    record_training_event,
)


def _vector(db, user_id):
    p = db.query(CognitiveProfile).filter_by(user_id=user_id).one()
    return (p.skill_ae, p.skill_ra, p.skill_ct, p.skill_in)


class TestRecordTrainingEvent:
    """The single write path into the skill vector."""

    def test_applies_granted_xp(self, db_session, calibrated_user, monday):
        """A hard session at 100% grants 8 XP and moves AE by 4."""
        outcome = record_training_event(
            db_session, calibrated_user, event_id="evt-1", score=100, difficulty="hard",
            occurred_at=monday, skill_route="S1-AE", now=monday,
        )
        assert outcome.requested_xp == 8
        assert outcome.granted_xp == 8
        assert outcome.duplicate is False
        assert outcome.skill_vector.AE == 54.0
        assert _vector(db_session, calibrated_user) == (54.0, 50.0, 50.0, 50.0)

        event = db_session.query(TrainingEvent).filter_by(event_id="evt-1").one()
        assert event.skill_routed == "AE"
        assert event.category == "s1_games"
        assert event.skill_delta == 4.0

    def test_game_identifier_routes(self, db_session, calibrated_user, monday):
        """A catalog game resolves to its skill."""
        outcome = record_training_event(
            db_session, calibrated_user, event_id="evt-1", score=100,
            occurred_at=monday, game_identifier="signal_vs_noise", now=monday,
        )
        assert outcome.skill == "IN"
        assert outcome.skill_vector.IN == 52.5

    def test_route_and_game_must_agree(self, db_session, calibrated_user, monday):
        """A skill route that contradicts the game is rejected before any write."""
        with pytest.raises(ValidationError) as exc:
            record_training_event(
                db_session, calibrated_user, event_id="evt-1", score=100,
                occurred_at=monday, skill_route="AE", game_identifier="causal_ledger", now=monday,
            )
        assert exc.value.error_code == "VALIDATION_ERROR_SKILL_ROUTE"
        assert db_session.query(TrainingEvent).count() == 0
        assert _vector(db_session, calibrated_user) == (50.0, 50.0, 50.0, 50.0)

    def test_matching_route_and_game_accepted(self, db_session, calibrated_user, monday):
        """Route and game naming the same skill record the game."""
        outcome = record_training_event(
            db_session, calibrated_user, event_id="evt-1", score=100,
            occurred_at=monday, skill_route="CT", game_identifier="causal_ledger", now=monday,
        )
        assert outcome.skill == "CT"
        event = db_session.query(TrainingEvent).filter_by(event_id="evt-1").one()
        assert event.game_identifier == "causal_ledger"
        assert event.skill_routed == "CT"

    def test_resubmission_is_idempotent(self, db_session, calibrated_user, monday):
        """The same event id applies once and reports the first grant."""
        first = record_training_event(
            db_session, calibrated_user, event_id="evt-1", score=100, difficulty="hard",
            occurred_at=monday, skill_route="S2-CT", now=monday,
        )
        second = record_training_event(
            db_session, calibrated_user, event_id="evt-1", score=100, difficulty="hard",
            occurred_at=monday, skill_route="S2-CT", now=monday,
        )
        assert second.duplicate is True
        assert second.granted_xp == first.granted_xp
        assert second.skill_vector == first.skill_vector
        assert db_session.query(TrainingEvent).count() == 1
        day = db_session.query(XPCapLedger).filter_by(window_kind="day").one()
        assert day.granted_xp == 8

    def test_racing_duplicate_rolls_back_to_prior_result(self, db_session, calibrated_user, monday):
        """A duplicate caught by the unique constraint returns the stored outcome."""
        record_training_event(
            db_session, calibrated_user, event_id="evt-1", score=100, difficulty="hard",
            occurred_at=monday, skill_route="S1-RA", now=monday,
        )
        db_session.commit()
        existing = db_session.query(TrainingEvent).filter_by(event_id="evt-1").one()

        # The pre-check misses (another writer committed in between); the unique
        # constraint catches it on insert.
        with patch("services.training_events._find_event", side_effect=[None, existing]):
            outcome = record_training_event(
                db_session, calibrated_user, event_id="evt-1", score=100, difficulty="hard",
                occurred_at=monday, skill_route="S1-RA", now=monday,
            )
        assert outcome.duplicate is True
        assert outcome.granted_xp == 8
        assert _vector(db_session, calibrated_user) == (50.0, 54.0, 50.0, 50.0)

    def test_unknown_route_changes_nothing(self, db_session, calibrated_user, monday):
        """An unroutable game raises and leaves no trace."""
        with pytest.raises(UnknownSkillRoute):
            record_training_event(
                db_session, calibrated_user, event_id="evt-x", score=100,
                occurred_at=monday, game_identifier="mystery_box", now=monday,
            )
        assert _vector(db_session, calibrated_user) == (50.0, 50.0, 50.0, 50.0)
        assert db_session.query(TrainingEvent).count() == 0

    def test_cap_saturation_still_records(self, db_session, calibrated_user, monday):
        """Past the daily ceiling events are stored with zero XP."""
        outcomes = [
            record_training_event(
                db_session, calibrated_user, event_id=f"evt-{i}", score=100, difficulty="hard",
                occurred_at=monday + timedelta(minutes=i), skill_route="S1-AE",
                now=monday + timedelta(hours=1),
            )
            for i in range(5)
        ]
        assert [o.granted_xp for o in outcomes] == [8, 8, 8, 0, 0]
        assert outcomes[3].capped is True
        assert outcomes[3].limiting_window == "day"
        assert db_session.query(TrainingEvent).count() == 5
        # 50 + 24 × 0.5
        assert _vector(db_session, calibrated_user)[0] == 62.0

    def test_skill_stays_clamped(self, db_session, monday):
        """A skill near the top stops at 100."""
        complete_calibration(db_session, "top", 99.0, 50, 50, 50, 30)
        outcome = record_training_event(
            db_session, "top", event_id="evt-1", score=100, difficulty="hard",
            occurred_at=monday, skill_route="AE", now=monday,
        )
        assert outcome.skill_vector.AE == 100.0

    def test_aborted_session_recorded_without_xp(self, db_session, calibrated_user, monday):
        """Aborted sessions are kept for history but grant nothing."""
        outcome = record_training_event(
            db_session, calibrated_user, event_id="evt-1", score=40, status="aborted",
            occurred_at=monday, skill_route="S2-IN", now=monday,
        )
        assert outcome.requested_xp == 0
        assert outcome.granted_xp == 0
        assert outcome.capped is False
        assert _vector(db_session, calibrated_user) == (50.0, 50.0, 50.0, 50.0)
        assert db_session.query(XPCapLedger).count() == 0
        assert db_session.query(TrainingEvent).filter_by(status="aborted").count() == 1

    def test_slow_session_moves_decay_clock(self, db_session, calibrated_user, monday):
        """A completed S2 session stamps both activity clocks."""
        record_training_event(
            db_session, calibrated_user, event_id="evt-1", score=70,
            occurred_at=monday, skill_route="S2-CT", now=monday,
        )
        profile = db_session.query(CognitiveProfile).filter_by(user_id=calibrated_user).one()
        assert as_utc(profile.last_slow_activity_at) == monday
        assert as_utc(profile.last_xp_at) == monday

    def test_requires_calibration(self, db_session, monday):
        """A profile without a baseline cannot train."""
        upsert_profile(db_session, "fresh", chronological_age=30)
        with pytest.raises(NotCalibrated):
            record_training_event(
                db_session, "fresh", event_id="evt-1", score=100,
                occurred_at=monday, skill_route="S1-AE", now=monday,
            )

    def test_unknown_user_is_not_calibrated(self, db_session, monday):
        """No profile at all is reported as not calibrated."""
        with pytest.raises(NotCalibrated):
            record_training_event(
                db_session, "ghost", event_id="evt-1", score=100,
                occurred_at=monday, skill_route="S1-AE", now=monday,
            )

    def test_category_must_match_route(self, db_session, calibrated_user, monday):
        """A declared category must match the routed system."""
        with pytest.raises(ValidationError):
            record_training_event(
                db_session, calibrated_user, event_id="evt-1", score=100, category="s2_games",
                occurred_at=monday, skill_route="S1-AE", now=monday,
            )

    def test_future_timestamp_rejected(self, db_session, calibrated_user, monday):
        """Ten minutes ahead is beyond the allowed clock skew."""
        with pytest.raises(ValidationError):
            record_training_event(
                db_session, calibrated_user, event_id="evt-1", score=100,
                occurred_at=monday + timedelta(minutes=10), skill_route="S1-AE", now=monday,
            )

    def test_small_clock_skew_accepted(self, db_session, calibrated_user, monday):
        """Two minutes ahead is tolerated."""
        outcome = record_training_event(
            db_session, calibrated_user, event_id="evt-1", score=100,
            occurred_at=monday + timedelta(minutes=2), skill_route="S1-AE", now=monday,
        )
        assert outcome.granted_xp == 5

    def test_stale_timestamp_rejected(self, db_session, calibrated_user, monday):
        """Events older than 72 hours cannot be backdated in."""
        with pytest.raises(ValidationError):
            record_training_event(
                db_session, calibrated_user, event_id="evt-1", score=100,
                occurred_at=monday - timedelta(hours=73), skill_route="S1-AE", now=monday,
            )


class TestRecordRecoveryActivity:
    """Detox and walk minutes feed recovery, never skills."""

    def test_updates_recovery_inputs_only(self, db_session, calibrated_user, monday):
        """84 detox minutes are 10% of the expert target."""
        outcome = record_recovery_activity(db_session, calibrated_user, "detox", 84, monday, now=monday)
        assert outcome.detox_load_xp == pytest.approx(4.2)
        assert outcome.window.detox_minutes == 84
        # expert target 840 minutes
        assert outcome.window.recovery == pytest.approx(10.0)
        assert _vector(db_session, calibrated_user) == (50.0, 50.0, 50.0, 50.0)

    def test_walk_adds_no_load_xp(self, db_session, calibrated_user, monday):
        """Walks count toward recovery but not the detox ledger."""
        outcome = record_recovery_activity(db_session, calibrated_user, "walk", 60, monday, now=monday)
        assert outcome.detox_load_xp == 0.0
        assert outcome.window.walk_minutes == 60

    def test_duplicate_activity_id(self, db_session, calibrated_user, monday):
        """A repeated activity id is stored once."""
        record_recovery_activity(db_session, calibrated_user, "detox", 30, monday, activity_id="a1", now=monday)
        again = record_recovery_activity(db_session, calibrated_user, "detox", 30, monday, activity_id="a1", now=monday)
        assert again.duplicate is True
        assert again.window.detox_minutes == 30
        assert db_session.query(RecoveryActivity).count() == 1

    def test_racing_duplicate_activity_absorbed(self, db_session, calibrated_user, monday):
        """A repeat caught by the unique constraint leaves the detox ledger alone."""
        record_recovery_activity(db_session, calibrated_user, "detox", 30, monday, activity_id="a1", now=monday)
        db_session.commit()
        existing = db_session.query(RecoveryActivity).filter_by(activity_id="a1").one()

        with patch("services.training_events._find_recovery_activity", side_effect=[None, existing]):
            again = record_recovery_activity(
                db_session, calibrated_user, "detox", 30, monday, activity_id="a1", now=monday,
            )
        assert again.duplicate is True
        assert again.detox_load_xp == 0.0
        assert db_session.query(RecoveryActivity).count() == 1
        ledger = db_session.query(WeeklyCategoryLedger).filter_by(category="detox").one()
        assert ledger.raw_xp == pytest.approx(1.5)

    def test_creates_profile_when_missing(self, db_session, monday):
        """Recovery can arrive before calibration."""
        record_recovery_activity(db_session, "new-user", "walk", 20, monday, now=monday)
        assert db_session.query(CognitiveProfile).filter_by(user_id="new-user").count() == 1

    def test_racing_first_write_reuses_profile(self, db_session, monday):
        """A profile created concurrently is reloaded instead of failing."""
        upsert_profile(db_session, "racer", chronological_age=30)
        db_session.commit()
        db_session.expunge_all()

        real_load = skill_state.load_profile
        calls = []

        def miss_once(db, user_id, lock=False):
            calls.append(user_id)
            if len(calls) == 1:
                return None
            return real_load(db, user_id, lock=lock)

        with patch("services.skill_state.load_profile", side_effect=miss_once):
            outcome = record_recovery_activity(db_session, "racer", "walk", 20, monday, now=monday)
        assert outcome.duplicate is False
        profile = db_session.query(CognitiveProfile).filter_by(user_id="racer").one()
        assert profile.chronological_age == 30
        assert db_session.query(RecoveryActivity).count() == 1

    def test_unknown_type(self, db_session, calibrated_user, monday):
        """Only detox and walk are recovery activities."""
        with pytest.raises(ValidationError):
            record_recovery_activity(db_session, calibrated_user, "nap", 20, monday, now=monday)


class TestPrimingAndPhysio:
    """Inputs that feed RQ and readiness."""

    def test_priming_task_recorded(self, db_session, calibrated_user, monday):
        """A task is stored once and stamps the slow-activity clock."""
        task, duplicate = record_priming_task(db_session, calibrated_user, "article", monday, task_id="t1", now=monday)
        assert duplicate is False
        assert task.task_type == "article"
        _, duplicate = record_priming_task(db_session, calibrated_user, "article", monday, task_id="t1", now=monday)
        assert duplicate is True
        profile = db_session.query(CognitiveProfile).filter_by(user_id=calibrated_user).one()
        assert as_utc(profile.last_slow_activity_at) == monday

    def test_racing_duplicate_task_absorbed(self, db_session, calibrated_user, monday):
        """A repeat caught by the unique constraint returns the stored task."""
        record_priming_task(db_session, calibrated_user, "book", monday, task_id="t1", now=monday)
        db_session.commit()
        existing = db_session.query(PrimingTask).filter_by(task_id="t1").one()

        with patch("services.training_events._find_priming_task", side_effect=[None, existing]):
            task, duplicate = record_priming_task(db_session, calibrated_user, "book", monday, task_id="t1", now=monday)
        assert duplicate is True
        assert task.task_id == "t1"
        assert db_session.query(PrimingTask).count() == 1

    def test_priming_task_unknown_type(self, db_session, calibrated_user, monday):
        """Only podcast, article and book prime RQ."""
        with pytest.raises(ValidationError):
            record_priming_task(db_session, calibrated_user, "movie", monday, now=monday)

    def test_physio_snapshot_scores_when_complete(self, db_session, calibrated_user, monday):
        """Top-of-range readings score 100."""
        _, score = record_physio_snapshot(
            db_session, calibrated_user, monday, hrv_ms=120, resting_hr=45,
            sleep_duration_min=540, sleep_efficiency=0.98, now=monday,
        )
        assert score == pytest.approx(100.0)

    def test_partial_physio_snapshot_has_no_score(self, db_session, calibrated_user, monday):
        """A snapshot missing readings is stored without a score."""
        _, score = record_physio_snapshot(db_session, calibrated_user, monday, hrv_ms=60, now=monday)
        assert score is None
