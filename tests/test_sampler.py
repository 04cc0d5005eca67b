"""Frame sampler tests: single flight, skipping, dispatch."""

import asyncio
from typing import List, Optional
from uuid import uuid4

from safepool.shared.errors import PersistenceError
from safepool.shared.schemas.analysis import AnalysisResult
from safepool.worker.sampler import FrameSampler

DISTRESS = AnalysisResult(distress=True, confidence=0.85, description="Struggling at surface")
CALM = AnalysisResult(distress=False, confidence=0.05, description="Lap swimming")


class FakeSource:
    def __init__(self, frame: Optional[str] = "ZnJhbWU="):
        self.frame = frame
        self.captures = 0
        self.closed = False

    async def capture(self) -> Optional[str]:
        self.captures += 1
        return self.frame

    def close(self) -> None:
        self.closed = True


class FakeClassifier:
    def __init__(self, results: List[AnalysisResult], gate: Optional[asyncio.Event] = None):
        self.results = list(results)
        self.gate = gate
        self.calls = 0

    async def analyze(self, image_base64: str) -> AnalysisResult:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return self.results.pop(0) if len(self.results) > 1 else self.results[0]


class FakeDispatcher:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls = []

    async def dispatch(self, intent, facility_id, camera_id=None, thumbnail_url=None, create_incident=True):
        self.calls.append((intent, facility_id, camera_id, create_incident))
        if self.error:
            raise self.error
        return {"id": str(uuid4()), "trigger_type": intent.trigger_type}


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def _sampler(source=None, classifier=None, dispatcher=None, clock=None, **kwargs) -> FrameSampler:
    return FrameSampler(
        camera_id=uuid4(),
        facility_id=uuid4(),
        source=source or FakeSource(),
        analysis_client=classifier or FakeClassifier([CALM]),
        dispatcher=dispatcher or FakeDispatcher(),
        clock=clock or FakeClock(),
        **kwargs,
    )


def test_interval_follows_sensitivity() -> None:
    assert _sampler(sensitivity="low").interval_seconds == 2.0
    assert _sampler(sensitivity="medium").interval_seconds == 1.0
    assert _sampler(sensitivity="high").interval_seconds == 0.5
    assert _sampler(sensitivity="unknown").interval_seconds == 1.0


def test_tick_dropped_while_classification_outstanding() -> None:
    async def run():
        gate = asyncio.Event()
        classifier = FakeClassifier([CALM], gate=gate)
        sampler = _sampler(classifier=classifier)

        first = asyncio.create_task(sampler.tick())
        await asyncio.sleep(0)
        assert sampler.busy is True

        assert await sampler.tick() is None
        assert classifier.calls == 1
        assert sampler.stats.dropped == 1

        gate.set()
        await first
        assert sampler.busy is False

        await sampler.tick()
        return classifier.calls

    assert asyncio.run(run()) == 2


def test_paused_or_disabled_sampler_skips_without_capturing() -> None:
    source = FakeSource()
    classifier = FakeClassifier([DISTRESS])
    paused = _sampler(source=source, classifier=classifier)
    paused.pause()

    asyncio.run(paused.tick())
    assert source.captures == 0
    assert classifier.calls == 0
    assert paused.stats.skipped == 1

    paused.resume()
    paused.analysis_enabled = False
    asyncio.run(paused.tick())
    assert source.captures == 0
    assert paused.stats.skipped == 2


def test_source_not_ready_skips_tick_silently() -> None:
    classifier = FakeClassifier([DISTRESS])
    sampler = _sampler(source=FakeSource(frame=None), classifier=classifier)

    assert asyncio.run(sampler.tick()) is None
    assert classifier.calls == 0
    assert sampler.stats.skipped == 1


def test_distress_result_is_dispatched_with_camera_and_facility() -> None:
    dispatcher = FakeDispatcher()
    sampler = _sampler(classifier=FakeClassifier([DISTRESS]), dispatcher=dispatcher, create_incident=False)

    alert = asyncio.run(sampler.tick())

    assert alert["trigger_type"] == "distress"
    intent, facility_id, camera_id, create_incident = dispatcher.calls[0]
    assert intent.severity == "high"
    assert facility_id == sampler.facility_id
    assert camera_id == sampler.camera_id
    assert create_incident is False
    assert sampler.stats.alerts == 1


def test_cooldown_uses_sampler_clock() -> None:
    clock = FakeClock()
    dispatcher = FakeDispatcher()
    sampler = _sampler(classifier=FakeClassifier([DISTRESS]), dispatcher=dispatcher, clock=clock)

    asyncio.run(sampler.tick())
    clock.now += 1
    asyncio.run(sampler.tick())
    clock.now += 15
    asyncio.run(sampler.tick())

    assert len(dispatcher.calls) == 2


def test_dispatch_failure_does_not_stop_sampling() -> None:
    dispatcher = FakeDispatcher(error=PersistenceError("failed to store alert: disk full"))
    sampler = _sampler(classifier=FakeClassifier([DISTRESS]), dispatcher=dispatcher)

    assert asyncio.run(sampler.tick()) is None
    assert sampler.stats.errors == 1
    assert sampler.busy is False


def test_run_fires_first_tick_and_stop_releases_source() -> None:
    async def run():
        source = FakeSource()
        classifier = FakeClassifier([CALM])
        sampler = _sampler(source=source, classifier=classifier, sensitivity="low")
        sampler.start()
        await asyncio.sleep(0.05)
        await sampler.stop()
        return source, classifier, sampler

    source, classifier, sampler = asyncio.run(run())
    assert classifier.calls == 1
    assert source.closed is True
    assert sampler.running is False
