"""Alert distributor and observer preference tests."""

import asyncio
import io
import json
from datetime import datetime, timedelta
from typing import Dict, List, Optional
from uuid import UUID, uuid4

import pytest

from safepool.observer.distributor import AlertDistributor
from safepool.observer.preferences import (
    JsonFilePreferencesStore,
    MemoryPreferencesStore,
    ObserverPreferences,
)
from safepool.observer.sound import TerminalBell
from safepool.shared.errors import NetworkError, ValidationError
from safepool.shared.schemas.alert import AlertChange, AlertResponse

FACILITY = uuid4()
BASE_TIME = datetime(2026, 6, 1, 12, 0)


def _alert(minute: int = 0, severity: str = "high", facility_id: UUID = FACILITY, **fields) -> AlertResponse:
    return AlertResponse(
        id=fields.pop("id", uuid4()),
        facility_id=facility_id,
        severity=severity,
        trigger_type="distress",
        created_at=BASE_TIME + timedelta(minutes=minute),
        **fields,
    )


class FakeGateway:
    def __init__(self, alerts: Optional[List[AlertResponse]] = None, failures: int = 0):
        self.alerts = alerts or []
        self.failures = failures
        self.dismiss_calls = 0
        self.listed_for: List[Optional[str]] = []
        self.on_dismiss = None

    async def list_alerts(self, facility_id: Optional[str] = None) -> List[AlertResponse]:
        self.listed_for.append(facility_id)
        return list(self.alerts)

    async def dismiss(self, alert_id: UUID) -> AlertResponse:
        self.dismiss_calls += 1
        if self.on_dismiss:
            self.on_dismiss()
        if self.dismiss_calls <= self.failures:
            raise NetworkError("PATCH failed: connection reset")
        alert = next(a for a in self.alerts if a.id == alert_id)
        return alert.model_copy(update={"dismissed_at": BASE_TIME + timedelta(hours=1)})


class CountingSound:
    def __init__(self):
        self.plays = 0

    def play(self) -> None:
        self.plays += 1


class FakeClock:
    def __init__(self):
        self.now = 50.0

    def __call__(self) -> float:
        return self.now


def _distributor(gateway=None, preferences=None, clock=None, **kwargs) -> AlertDistributor:
    store = MemoryPreferencesStore(preferences or ObserverPreferences(selected_facility_id=str(FACILITY)))
    return AlertDistributor(
        gateway=gateway or FakeGateway(),
        preferences=store,
        sound=kwargs.pop("sound", CountingSound()),
        sound_cooldown_ms=kwargs.pop("sound_cooldown_ms", 5000),
        retry_delay=0,
        clock=clock or FakeClock(),
        **kwargs,
    )


def test_load_is_newest_first_and_capped() -> None:
    alerts = [_alert(minute) for minute in (3, 9, 1, 7)]
    distributor = _distributor(FakeGateway(alerts), limit=3)

    asyncio.run(distributor.load())

    assert [a.created_at.minute for a in distributor.alerts] == [9, 7, 3]


def test_duplicate_insert_is_ignored_and_sound_plays_once() -> None:
    distributor = _distributor()
    alert = _alert(1)

    assert distributor.apply(AlertChange(event="insert", alert=alert)) is True
    distributor.apply(AlertChange(event="insert", alert=alert))

    assert [a.id for a in distributor.alerts] == [alert.id]
    assert distributor.sound.plays == 1


def test_insert_keeps_order_and_update_does_not_reopen() -> None:
    distributor = _distributor()
    newer, older = _alert(5), _alert(2)
    distributor.apply(AlertChange(event="insert", alert=newer))
    distributor.apply(AlertChange(event="insert", alert=older))
    assert [a.id for a in distributor.alerts] == [newer.id, older.id]

    dismissed = newer.model_copy(update={"dismissed_at": BASE_TIME})
    distributor.apply(AlertChange(event="update", alert=dismissed))
    assert distributor.open_count == 1

    # A stale insert replayed after the dismissal must not reopen the alert
    distributor.apply(AlertChange(event="insert", alert=newer))
    assert distributor.get(newer.id).dismissed_at == BASE_TIME


def test_update_for_unknown_alert_is_ignored() -> None:
    distributor = _distributor()
    assert distributor.apply(AlertChange(event="update", alert=_alert())) is False
    assert distributor.alerts == []


def test_changes_for_other_facilities_are_ignored() -> None:
    distributor = _distributor()
    assert distributor.apply(AlertChange(event="insert", alert=_alert(facility_id=uuid4()))) is False
    assert distributor.alerts == []
    assert distributor.sound.plays == 0


def test_all_facilities_view_accepts_every_facility() -> None:
    distributor = _distributor(preferences=ObserverPreferences())
    distributor.apply(AlertChange(event="insert", alert=_alert(facility_id=uuid4())))
    distributor.apply(AlertChange(event="insert", alert=_alert(facility_id=uuid4())))
    assert len(distributor.alerts) == 2


def test_severity_filter_hides_alerts_and_their_sound() -> None:
    distributor = _distributor()
    distributor.set_severity_filter("high")

    medium = _alert(1, severity="medium")
    distributor.apply(AlertChange(event="insert", alert=medium))

    assert distributor.visible_alerts() == []
    assert distributor.open_count == 1
    assert distributor.sound.plays == 0

    with pytest.raises(ValidationError):
        distributor.set_severity_filter("critical")


def test_sound_cooldown_and_mute() -> None:
    clock = FakeClock()
    distributor = _distributor(clock=clock, sound_cooldown_ms=5000)

    distributor.apply(AlertChange(event="insert", alert=_alert(1)))
    clock.now += 5
    distributor.apply(AlertChange(event="insert", alert=_alert(2)))
    assert distributor.sound.plays == 1

    clock.now += 0.001
    distributor.apply(AlertChange(event="insert", alert=_alert(3)))
    assert distributor.sound.plays == 2

    distributor.set_muted(True)
    clock.now += 60
    distributor.apply(AlertChange(event="insert", alert=_alert(4)))
    assert distributor.sound.plays == 2
    assert len(distributor.alerts) == 4


def test_dismiss_succeeds_after_retry() -> None:
    alert = _alert(1)
    gateway = FakeGateway([alert], failures=1)
    distributor = _distributor(gateway, dismiss_retries=1)
    asyncio.run(distributor.load())

    assert asyncio.run(distributor.dismiss(alert.id)) is True
    assert gateway.dismiss_calls == 2
    assert distributor.get(alert.id).dismissed_at == BASE_TIME + timedelta(hours=1)
    assert distributor.open_count == 0


def test_dismiss_reverts_after_retries_exhausted() -> None:
    alert = _alert(1)
    gateway = FakeGateway([alert], failures=5)
    distributor = _distributor(gateway, dismiss_retries=1)
    asyncio.run(distributor.load())

    observed: Dict[str, Optional[datetime]] = {}
    gateway.on_dismiss = lambda: observed.setdefault("during", distributor.get(alert.id).dismissed_at)

    assert asyncio.run(distributor.dismiss(alert.id)) is False
    assert observed["during"] is not None
    assert gateway.dismiss_calls == 2
    assert distributor.get(alert.id).dismissed_at is None
    assert distributor.open_count == 1


def test_feed_confirmation_during_failed_dismiss_is_kept() -> None:
    alert = _alert(1)
    gateway = FakeGateway([alert], failures=5)
    distributor = _distributor(gateway, dismiss_retries=0)
    asyncio.run(distributor.load())

    confirmed = alert.model_copy(update={"dismissed_at": BASE_TIME})
    gateway.on_dismiss = lambda: distributor.apply(AlertChange(event="update", alert=confirmed))

    assert asyncio.run(distributor.dismiss(alert.id)) is True
    assert distributor.get(alert.id).dismissed_at is not None


def test_select_facility_reloads_and_persists() -> None:
    gateway = FakeGateway([_alert(1)])
    store = MemoryPreferencesStore()
    distributor = AlertDistributor(gateway, store, sound=CountingSound())

    other = str(uuid4())
    asyncio.run(distributor.select_facility(other))

    assert gateway.listed_for == [other]
    assert store.load().selected_facility_id == other
    # Loaded alerts belong to FACILITY, so none are in scope
    assert distributor.alerts == []


def test_json_preferences_round_trip(tmp_path) -> None:
    path = tmp_path / "nested" / "observer.json"
    store = JsonFilePreferencesStore(path)

    assert store.load() == ObserverPreferences()

    store.save(ObserverPreferences(muted=True, selected_facility_id="abc", severity_filter="high"))
    assert store.load() == ObserverPreferences(muted=True, selected_facility_id="abc", severity_filter="high")


def test_json_preferences_tolerate_bad_files(tmp_path) -> None:
    path = tmp_path / "observer.json"
    defaults = ObserverPreferences(severity_filter="medium")

    path.write_text("{not json", encoding="utf-8")
    assert JsonFilePreferencesStore(path, defaults).load() == defaults

    path.write_text(json.dumps({"muted": True, "severity_filter": "loud", "theme": "dark"}), encoding="utf-8")
    loaded = JsonFilePreferencesStore(path, defaults).load()
    assert loaded.muted is True
    assert loaded.severity_filter == "all"


def test_terminal_bell_writes_bel() -> None:
    stream = io.StringIO()
    TerminalBell(stream).play()
    assert stream.getvalue() == "\a"


def test_dismiss_reverts_on_unexpected_gateway_error() -> None:
    alert = _alert(1)
    gateway = FakeGateway([alert])

    def explode():
        raise RuntimeError("malformed response")

    gateway.on_dismiss = explode
    distributor = _distributor(gateway, dismiss_retries=2)
    asyncio.run(distributor.load())

    with pytest.raises(RuntimeError):
        asyncio.run(distributor.dismiss(alert.id))

    assert gateway.dismiss_calls == 1
    assert distributor.get(alert.id).dismissed_at is None
    assert distributor.open_count == 1
    assert distributor._optimistic == {}
