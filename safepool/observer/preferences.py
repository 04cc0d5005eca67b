"""Observer-local presentation preferences."""

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional, Protocol

import structlog

logger = structlog.get_logger(__name__)

SEVERITY_FILTERS = ("all", "medium", "high")


@dataclass
class ObserverPreferences:
    """Mute, facility selection and severity filter for one observer."""
    muted: bool = False
    selected_facility_id: Optional[str] = None
    severity_filter: str = "all"


class PreferencesStore(Protocol):
    """Load/save port for observer preferences."""

    def load(self) -> ObserverPreferences:
        ...

    def save(self, preferences: ObserverPreferences) -> None:
        ...


class MemoryPreferencesStore:
    """Keeps preferences for the life of the process."""

    def __init__(self, preferences: Optional[ObserverPreferences] = None):
        self._preferences = preferences or ObserverPreferences()

    def load(self) -> ObserverPreferences:
        return ObserverPreferences(**asdict(self._preferences))

    def save(self, preferences: ObserverPreferences) -> None:
        self._preferences = ObserverPreferences(**asdict(preferences))


class JsonFilePreferencesStore:
    """
    Stores preferences as a JSON file.

    A missing or unreadable file loads as defaults; unknown keys are ignored.
    """

    def __init__(self, path: Path, defaults: Optional[ObserverPreferences] = None):
        self.path = Path(path)
        self.defaults = defaults or ObserverPreferences()

    def load(self) -> ObserverPreferences:
        if not self.path.exists():
            return ObserverPreferences(**asdict(self.defaults))

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("preferences_load_failed", path=str(self.path), error=str(exc))
            return ObserverPreferences(**asdict(self.defaults))

        known = {f.name for f in fields(ObserverPreferences)}
        values = asdict(self.defaults)
        if isinstance(data, dict):
            values.update({k: v for k, v in data.items() if k in known})
        if values["severity_filter"] not in SEVERITY_FILTERS:
            values["severity_filter"] = "all"
        return ObserverPreferences(**values)

    def save(self, preferences: ObserverPreferences) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(asdict(preferences), indent=2), encoding="utf-8")
