"""
Integration tests for the cognitive engine HTTP API

Exercises the routers end to end through TestClient: request validation,
domain error rendering and response shapes.
"""
import pytest
from datetime import datetime, timedelta, timezone

BASE = "/v1/users/api-user"


def _now():
    return datetime.now(timezone.utc)


def _event(event_id="evt-1", **overrides):
    body = {
        "event_id": event_id,
        "skill_route": "S1-AE",
        "difficulty": "hard",
        "score": 100,
        "occurred_at": _now().isoformat(),
        "duration_seconds": 90,
        "status": "completed",
    }
    body.update(overrides)
    return body


@pytest.fixture
def calibrated(client):
    response = client.post(f"{BASE}/calibration", json={
        "AE0": 50, "RA0": 50, "CT0": 50, "IN0": 50, "cognitive_age_baseline": 35,
    })
    assert response.status_code == 201
    return response.json()


class TestHealth:
    """Liveness endpoints."""

    def test_ping(self, client):
        """Ping answers without touching the database."""
        assert client.get("/ping").json() == {"pong": True}

    def test_health(self, client):
        """Health reports the database as reachable."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestProfileAndCalibration:
    """Profile upsert and the write-once baseline."""

    def test_put_profile(self, client):
        """PUT creates an uncalibrated profile."""
        response = client.put(f"{BASE}/profile", json={
            "training_plan": "light", "chronological_age": 31, "education_level": "phd",
        })
        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == "api-user"
        assert data["training_plan"] == "light"
        assert data["is_calibrated"] is False

    def test_put_profile_rejects_unknown_plan(self, client):
        """An unknown training plan is a 422."""
        response = client.put(f"{BASE}/profile", json={"training_plan": "olympic"})
        assert response.status_code == 422

    def test_calibration_is_write_once(self, client, calibrated):
        """A second calibration is a 409 with BASELINE_ALREADY_CAPTURED."""
        assert calibrated["skill_vector"] == {"AE": 50.0, "RA": 50.0, "CT": 50.0, "IN": 50.0}
        response = client.post(f"{BASE}/calibration", json={
            "AE0": 90, "RA0": 90, "CT0": 90, "IN0": 90, "cognitive_age_baseline": 20,
        })
        assert response.status_code == 409
        assert response.json()["error_code"] == "BASELINE_ALREADY_CAPTURED"

    def test_calibration_range_validated(self, client):
        """Calibration values above 100 are rejected."""
        response = client.post(f"{BASE}/calibration", json={
            "AE0": 150, "RA0": 50, "CT0": 50, "IN0": 50, "cognitive_age_baseline": 35,
        })
        assert response.status_code == 422


class TestTrainingEvents:
    """POST /training-events."""

    def test_granted_xp_returned(self, client, calibrated):
        """The response carries the granted XP and the new vector."""
        response = client.post(f"{BASE}/training-events", json=_event())
        assert response.status_code == 200
        data = response.json()
        assert data["granted_xp"] == 8
        assert data["duplicate"] is False
        assert data["skill_vector"]["AE"] == 54.0

    def test_duplicate_absorbed(self, client, calibrated):
        """A resubmitted event reports duplicate and changes nothing."""
        client.post(f"{BASE}/training-events", json=_event())
        response = client.post(f"{BASE}/training-events", json=_event())
        assert response.status_code == 200
        assert response.json()["duplicate"] is True
        assert client.get(f"{BASE}/skills").json()["skills"]["AE"] == 54.0

    def test_unknown_game_rejected(self, client, calibrated):
        """An unroutable game is a 422 with UNKNOWN_SKILL_ROUTE."""
        body = _event(skill_route=None, game_identifier="mystery_box")
        response = client.post(f"{BASE}/training-events", json=body)
        assert response.status_code == 422
        assert response.json()["error_code"] == "UNKNOWN_SKILL_ROUTE"
        assert client.get(f"{BASE}/skills").json()["skills"]["AE"] == 50.0

    def test_route_required(self, client, calibrated):
        """A body without route or game fails validation."""
        response = client.post(f"{BASE}/training-events", json=_event(skill_route=None))
        assert response.status_code == 422

    def test_not_calibrated(self, client):
        """Training before calibration is a 409."""
        response = client.post(f"{BASE}/training-events", json=_event())
        assert response.status_code == 409
        assert response.json()["error_code"] == "NOT_CALIBRATED"

    def test_category_mismatch(self, client, calibrated):
        """A category that contradicts the route is a 422."""
        response = client.post(f"{BASE}/training-events", json=_event(category="s2_games"))
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR_CATEGORY"

    def test_route_and_game_conflict(self, client, calibrated):
        """A route that disagrees with the game's skill is a 422."""
        body = _event(skill_route="AE", game_identifier="causal_ledger")
        response = client.post(f"{BASE}/training-events", json=body)
        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR_SKILL_ROUTE"
        assert client.get(f"{BASE}/skills").json()["skills"]["CT"] == 50.0

    def test_backdated_event_rejected(self, client, calibrated):
        """Events days old are a 422."""
        old = (_now() - timedelta(days=5)).isoformat()
        response = client.post(f"{BASE}/training-events", json=_event(occurred_at=old))
        assert response.status_code == 422

    def test_cap_reported(self, client, calibrated):
        """The fourth hard session of the day is capped to zero."""
        results = [
            client.post(f"{BASE}/training-events", json=_event(f"evt-{i}")).json()
            for i in range(4)
        ]
        assert results[3]["granted_xp"] == 0
        assert results[3]["capped"] is True


class TestOtherInputs:
    """Recovery, priming and physio inputs."""

    def test_recovery_activity(self, client, calibrated):
        """420 detox minutes are half the expert target."""
        response = client.post(f"{BASE}/recovery-activities", json={
            "type": "detox", "minutes": 420, "occurred_at": _now().isoformat(),
        })
        assert response.status_code == 200
        data = response.json()
        assert data["recovery"] == pytest.approx(50.0)
        assert data["detox_load_xp"] == pytest.approx(21.0)

    def test_priming_task(self, client, calibrated):
        """A new priming task is not a duplicate."""
        response = client.post(f"{BASE}/priming-tasks", json={
            "type": "book", "completed_at": _now().isoformat(), "task_id": "b-1",
        })
        assert response.status_code == 200
        assert response.json()["duplicate"] is False

    def test_physio_snapshot(self, client, calibrated):
        """A complete snapshot returns its score."""
        response = client.post(f"{BASE}/physio-snapshots", json={
            "captured_at": _now().isoformat(), "hrv_ms": 120, "resting_hr": 45,
            "sleep_duration_min": 540, "sleep_efficiency": 98,
        })
        assert response.status_code == 201
        data = response.json()
        assert data["complete"] is True
        assert data["physio_score"] == pytest.approx(100.0)


class TestReads:
    """Read endpoints."""

    def test_composite_scores(self, client, calibrated):
        """Composite scores for a calibrated user."""
        response = client.get(f"{BASE}/composite-scores")
        assert response.status_code == 200
        data = response.json()
        for key in ("S1", "S2", "sharpness", "readiness", "SCI", "cognitive_age", "RQ"):
            assert key in data
        assert data["S1"] == 50.0
        assert data["cognitive_age"] == pytest.approx(35.0)
        assert data["baseline_estimated"] is False
        assert data["sci_decay"] == 10.0
        assert data["skill_decay"]["AE"] == 0.0

    def test_composite_scores_with_fallback_baseline(self, client):
        """Uncalibrated users read an estimated baseline."""
        client.put(f"{BASE}/profile", json={"chronological_age": 28, "education_level": "master", "work_type": "technical"})
        data = client.get(f"{BASE}/composite-scores").json()
        assert data["baseline_estimated"] is True
        assert data["S1"] == 54.0

    def test_unknown_user_is_404(self, client):
        """Reads for an unknown user are a 404."""
        response = client.get("/v1/users/nobody/composite-scores")
        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_reasoning_quality(self, client, calibrated):
        """RQ breakdown for a fresh user."""
        data = client.get(f"{BASE}/reasoning-quality").json()
        assert data["state"] == "ACTIVE"
        assert data["rq"] == pytest.approx(40.0)

    def test_weekly_progress(self, client, calibrated):
        """Weekly progress reflects the granted XP."""
        client.post(f"{BASE}/training-events", json=_event())
        data = client.get(f"{BASE}/weekly-progress").json()
        assert data["training_plan"] == "expert"
        assert data["raw_by_category"]["s1_games"] == 8.0
        assert data["capped_total"] == pytest.approx(8.0)
        assert set(data["targets_by_category"]) == {"s1_games", "s2_games", "detox"}
