"""Personal schedule entries kept in client-local storage.

Events are serialized as a JSON list under a single named slot of a small
key/value JSON file, the same shape a browser's local storage would hold.
"""
from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path

from pydantic import ValidationError

from ember.schemas import UserEvent
from ember.utils import is_blank, json_parse

log = logging.getLogger(__name__)

EVENTS_SLOT = "ember-user-events"


class LocalStorage:
    """String key/value slots persisted to a JSON file, or held in memory if no path is given."""

    def __init__(self, path: str | Path | None = None):
        self.path = Path(path) if path is not None else None
        self._memory: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)

    def _read(self) -> dict[str, str]:
        if self.path is None:
            return dict(self._memory)
        if not self.path.exists():
            return {}
        data = json_parse(self.path.read_text(encoding="utf-8"), {})
        if not isinstance(data, dict):
            log.warning("Ignoring malformed local storage file %s", self.path)
            return {}
        return data

    def _write(self, data: dict[str, str]) -> None:
        if self.path is None:
            self._memory = dict(data)
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def decode_events(raw: str | None) -> list[UserEvent]:
    """Decode a stored slot. A missing or unreadable slot yields no events."""
    records = json_parse(raw, [])
    if not isinstance(records, list):
        log.warning("Failed to load events from local storage: expected a list")
        return []
    events = []
    for record in records:
        try:
            events.append(UserEvent.model_validate(record))
        except ValidationError as exc:
            log.warning("Skipping malformed schedule entry: %s", exc.errors()[0]["msg"])
    return events


def encode_events(events: list[UserEvent]) -> str:
    return json.dumps([e.model_dump() for e in events])


class ScheduleStore:
    def __init__(self, storage: LocalStorage):
        self._storage = storage

    def list_events(self) -> list[UserEvent]:
        """Events in chronological order."""
        return sorted(self._load(), key=lambda e: (e.date, e.time))

    def add_event(self, title: str, date: str, time: str, description: str = "") -> UserEvent:
        if is_blank(title) or is_blank(date) or is_blank(time):
            raise ValueError("Please fill in at least title, date, and time.")
        event = UserEvent(
            id=uuid.uuid4().hex, title=title.strip(), date=date.strip(), time=time.strip(),
            description=description or "",
        )
        events = self._load()
        events.append(event)
        self._save(events)
        return event

    def delete_event(self, event_id: str) -> bool:
        events = self._load()
        remaining = [e for e in events if e.id != event_id]
        if len(remaining) == len(events):
            return False
        self._save(remaining)
        return True

    def clear_events(self) -> None:
        self._storage.remove_item(EVENTS_SLOT)

    def _load(self) -> list[UserEvent]:
        return decode_events(self._storage.get_item(EVENTS_SLOT))

    def _save(self, events: list[UserEvent]) -> None:
        self._storage.set_item(EVENTS_SLOT, encode_events(events))
