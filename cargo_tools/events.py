"""Change notifications broadcast to UI collaborators."""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List
import asyncio

from .console import Console

DEBOUNCE_SECONDS = 0.05

Callback = Callable[[Any], None]


class ChangeEvent(str, Enum):
    TARGETS_CHANGED = "targets-changed"
    PROFILE_CHANGED = "profile-changed"
    SELECTION_CHANGED = "selection-changed"
    PACKAGE_CHANGED = "package-changed"


@dataclass(frozen=True, slots=True)
class SelectionChange:
    """Payload of ``SELECTION_CHANGED``: which selection moved and its new value."""

    field: str
    value: Any


class Subscription:
    def __init__(self, notifier: "ChangeNotifier", event: ChangeEvent, callback: Callback) -> None:
        self._notifier = notifier
        self.event = event
        self.callback = callback
        self.active = True

    def dispose(self) -> None:
        if self.active:
            self._notifier._remove(self)
            self.active = False


class ChangeNotifier:
    """Observer registry with one subscriber list per :class:`ChangeEvent`.

    ``emit`` delivers synchronously in subscription order. Inside ``hold()``
    emissions are collapsed to the last payload per event and delivered when
    the outermost hold exits. ``emit_debounced`` collapses emissions over a
    fixed window while an event loop is running.
    """

    def __init__(self, console: Console | None = None) -> None:
        self._console = console or Console()
        self._subscribers: Dict[ChangeEvent, List[Subscription]] = {event: [] for event in ChangeEvent}
        self._hold_depth = 0
        self._held: Dict[ChangeEvent, Any] = {}
        self._debounced: Dict[ChangeEvent, Any] = {}
        self._timer: asyncio.TimerHandle | None = None

    def subscribe(self, event: ChangeEvent, callback: Callback) -> Subscription:
        subscription = Subscription(self, event, callback)
        self._subscribers[event].append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        bucket = self._subscribers[subscription.event]
        if subscription in bucket:
            bucket.remove(subscription)

    def subscriber_count(self, event: ChangeEvent) -> int:
        return len(self._subscribers[event])

    def emit(self, event: ChangeEvent, payload: Any = None) -> None:
        if self._hold_depth:
            # re-insert so delivery order follows the latest emission
            self._held.pop(event, None)
            self._held[event] = payload
            return
        self._deliver(event, payload)

    def _deliver(self, event: ChangeEvent, payload: Any) -> None:
        for subscription in list(self._subscribers[event]):
            try:
                subscription.callback(payload)
            except Exception as exc:  # keep delivering to the remaining subscribers
                self._console.error(f"{event.value} listener failed: {exc}")

    @contextmanager
    def hold(self) -> Iterator[None]:
        self._hold_depth += 1
        try:
            yield
        finally:
            self._hold_depth -= 1
            if self._hold_depth == 0:
                pending, self._held = self._held, {}
                for event, payload in pending.items():
                    self._deliver(event, payload)

    def emit_debounced(self, event: ChangeEvent, payload: Any = None) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.emit(event, payload)
            return
        self._debounced.pop(event, None)
        self._debounced[event] = payload
        if self._timer is not None:
            self._timer.cancel()
        self._timer = loop.call_later(DEBOUNCE_SECONDS, self.flush)

    @property
    def has_pending(self) -> bool:
        return bool(self._debounced)

    def flush(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        pending, self._debounced = self._debounced, {}
        for event, payload in pending.items():
            self.emit(event, payload)

    def cancel_pending(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._debounced = {}


__all__ = [
    "ChangeEvent",
    "ChangeNotifier",
    "DEBOUNCE_SECONDS",
    "SelectionChange",
    "Subscription",
]
