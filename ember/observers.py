"""Topic-keyed observer registry used by every Ember store.

Each topic holds an ordered list of registrations. Subscribing never evicts an
earlier subscriber; the returned unsubscribe action removes exactly the
registration it was issued for.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Hashable
from typing import Any

log = logging.getLogger(__name__)

Callback = Callable[[Any], None]
Unsubscribe = Callable[[], None]

_NO_INITIAL = object()


class _Registration:
    __slots__ = ("callback", "active")

    def __init__(self, callback: Callback):
        self.callback = callback
        self.active = True


class ObserverRegistry:
    def __init__(self) -> None:
        self._topics: dict[Hashable, list[_Registration]] = {}

    def subscribe(self, topic: Hashable, callback: Callback, initial: Any = _NO_INITIAL) -> Unsubscribe:
        """Register *callback* on *topic*, delivering *initial* right away if given."""
        reg = _Registration(callback)
        self._topics.setdefault(topic, []).append(reg)
        if initial is not _NO_INITIAL:
            self._deliver(topic, reg, initial)

        def unsubscribe() -> None:
            reg.active = False
            regs = self._topics.get(topic)
            if regs is None:
                return
            if reg in regs:
                regs.remove(reg)
            if not regs:
                self._topics.pop(topic, None)

        return unsubscribe

    def publish(self, topic: Hashable, payload: Any) -> int:
        """Deliver *payload* to every active registration on *topic*, in subscription order."""
        delivered = 0
        for reg in list(self._topics.get(topic, ())):
            # An earlier callback may have unsubscribed this one.
            if not reg.active:
                continue
            self._deliver(topic, reg, payload)
            delivered += 1
        return delivered

    def count(self, topic: Hashable) -> int:
        return len(self._topics.get(topic, ()))

    def topics(self) -> list[Hashable]:
        return list(self._topics)

    def clear(self) -> None:
        for regs in self._topics.values():
            for reg in regs:
                reg.active = False
        self._topics.clear()

    @staticmethod
    def _deliver(topic: Hashable, reg: _Registration, payload: Any) -> None:
        try:
            reg.callback(payload)
        except Exception:
            log.exception("Observer on %r raised; continuing delivery", topic)
