"""Detection state machine tests."""

import random

from safepool.shared.schemas.analysis import AnalysisResult
from safepool.worker.detection import DetectionPhase, DetectionStateMachine


def _submerged(confidence: float = 0.9) -> AnalysisResult:
    return AnalysisResult(distress=False, confidence=confidence, description="Swimmer below surface", submerged=True)


def _distress(confidence: float = 0.6) -> AnalysisResult:
    return AnalysisResult(distress=True, confidence=confidence, description="Vertical posture, no kick")


def _clear() -> AnalysisResult:
    return AnalysisResult(distress=False, confidence=0.1, description="Normal swimming")


def test_severity_follows_confidence_for_both_triggers() -> None:
    for confidence in (0.5, 0.61, 0.79, 0.8, 0.93, 1.0):
        expected = "high" if confidence >= 0.8 else "medium"

        distress = DetectionStateMachine().observe(_distress(confidence), now_ms=0)
        assert distress.trigger_type == "distress"
        assert distress.severity == expected

        machine = DetectionStateMachine(underwater_threshold_seconds=1)
        assert machine.observe(_submerged(confidence), now_ms=0) is None
        underwater = machine.observe(_submerged(confidence), now_ms=1000)
        assert underwater.trigger_type == "underwater_time"
        assert underwater.severity == expected


def test_scenario_a_single_underwater_alert_once_threshold_reached() -> None:
    machine = DetectionStateMachine(underwater_threshold_seconds=5)
    alerts = []

    for tick in range(20):
        now = tick * 1000
        intent = machine.observe(_submerged(0.9), now_ms=now)
        if intent:
            alerts.append((now, intent))

    assert len(alerts) == 1
    fired_at, intent = alerts[0]
    assert fired_at == 5000
    assert intent.trigger_type == "underwater_time"
    assert intent.severity == "high"
    assert intent.frame_data == {
        "description": "Swimmer below surface",
        "confidence": 0.9,
        "trigger": "underwater_time",
    }


def test_scenario_b_distress_cooldown() -> None:
    machine = DetectionStateMachine()

    first = machine.observe(_distress(0.6), now_ms=0)
    assert first.trigger_type == "distress"
    assert first.severity == "medium"
    assert machine.phase == DetectionPhase.IDLE

    assert machine.observe(_distress(0.6), now_ms=1000) is None

    second = machine.observe(_distress(0.6), now_ms=16000)
    assert second is not None
    assert second.trigger_type == "distress"


def test_cooldown_is_strictly_greater_than_fifteen_seconds() -> None:
    machine = DetectionStateMachine()
    assert machine.observe(_distress(), now_ms=0) is not None
    assert machine.observe(_distress(), now_ms=15000) is None
    assert machine.observe(_distress(), now_ms=15001) is not None


def test_interrupting_result_resets_submerged_duration() -> None:
    machine = DetectionStateMachine(underwater_threshold_seconds=5)

    for now in (0, 1000, 2000, 3000, 4000):
        assert machine.observe(_submerged(), now_ms=now) is None
    assert machine.phase == DetectionPhase.SUBMERGED

    assert machine.observe(_clear(), now_ms=4500) is None
    assert machine.submerged_since is None

    for now in (5000, 6000, 7000, 8000, 9000):
        assert machine.observe(_submerged(), now_ms=now) is None
    assert machine.observe(_submerged(), now_ms=10000) is not None


def test_low_confidence_submersion_counts_as_interruption() -> None:
    machine = DetectionStateMachine(underwater_threshold_seconds=2)
    machine.observe(_submerged(0.9), now_ms=0)
    machine.observe(_submerged(0.4), now_ms=1000)
    assert machine.submerged_since is None
    assert machine.observe(_submerged(0.9), now_ms=2000) is None
    assert machine.submerged_since == 2000


def test_submerged_path_takes_precedence_over_distress() -> None:
    machine = DetectionStateMachine(underwater_threshold_seconds=10)
    result = AnalysisResult(distress=True, confidence=0.95, description="Sinking", submerged=True)

    assert machine.observe(result, now_ms=0) is None
    assert machine.last_alert_at is None


def test_underwater_alert_waits_for_cooldown_without_resetting_streak() -> None:
    machine = DetectionStateMachine(underwater_threshold_seconds=2)
    assert machine.observe(_distress(), now_ms=0) is not None

    assert machine.observe(_submerged(), now_ms=1000) is None
    assert machine.observe(_submerged(), now_ms=3000) is None
    assert machine.phase == DetectionPhase.SUBMERGED

    intent = machine.observe(_submerged(), now_ms=15001)
    assert intent.trigger_type == "underwater_time"
    assert machine.phase == DetectionPhase.IDLE


def test_description_falls_back_when_classifier_gives_none() -> None:
    machine = DetectionStateMachine()
    intent = machine.observe(AnalysisResult(distress=True, confidence=0.7), now_ms=0)
    assert intent.description == "Distress detected"

    machine = DetectionStateMachine(underwater_threshold_seconds=0)
    intent = machine.observe(AnalysisResult(distress=False, confidence=0.7, submerged=True), now_ms=0)
    assert intent.description == "Person submerged too long"


def test_no_two_alerts_within_cooldown_for_random_sequences() -> None:
    rng = random.Random(20261019)

    for _ in range(50):
        machine = DetectionStateMachine(underwater_threshold_seconds=rng.choice([0, 1, 3, 10]))
        now = 0
        fired = []
        for _ in range(300):
            now += rng.choice([500, 1000, 2000])
            result = AnalysisResult(
                distress=rng.random() < 0.3,
                confidence=round(rng.random(), 2),
                submerged=rng.random() < 0.5,
            )
            if machine.observe(result, now_ms=now):
                fired.append(now)

        gaps = [later - earlier for earlier, later in zip(fired, fired[1:])]
        assert all(gap > 15000 for gap in gaps)
