from __future__ import annotations

import asyncio
import io
import unittest
from contextlib import redirect_stderr

from cargo_tools.console import Console
from cargo_tools.events import DEBOUNCE_SECONDS, ChangeEvent, ChangeNotifier


class ChangeNotifierTests(unittest.TestCase):
    def setUp(self) -> None:
        self.notifier = ChangeNotifier()
        self.received = []

    def test_delivery_follows_subscription_order(self) -> None:
        self.notifier.subscribe(ChangeEvent.PROFILE_CHANGED, lambda payload: self.received.append(("first", payload)))
        self.notifier.subscribe(ChangeEvent.PROFILE_CHANGED, lambda payload: self.received.append(("second", payload)))
        self.notifier.emit(ChangeEvent.PROFILE_CHANGED, "release")
        self.assertEqual(self.received, [("first", "release"), ("second", "release")])

    def test_events_are_isolated_by_category(self) -> None:
        self.notifier.subscribe(ChangeEvent.PACKAGE_CHANGED, self.received.append)
        self.notifier.emit(ChangeEvent.TARGETS_CHANGED, ())
        self.assertEqual(self.received, [])

    def test_dispose_unsubscribes(self) -> None:
        subscription = self.notifier.subscribe(ChangeEvent.PACKAGE_CHANGED, self.received.append)
        self.assertEqual(self.notifier.subscriber_count(ChangeEvent.PACKAGE_CHANGED), 1)
        subscription.dispose()
        subscription.dispose()
        self.notifier.emit(ChangeEvent.PACKAGE_CHANGED, "core")
        self.assertEqual(self.received, [])
        self.assertEqual(self.notifier.subscriber_count(ChangeEvent.PACKAGE_CHANGED), 0)

    def test_hold_collapses_to_last_payload(self) -> None:
        self.notifier.subscribe(ChangeEvent.SELECTION_CHANGED, self.received.append)
        with self.notifier.hold():
            with self.notifier.hold():
                self.notifier.emit(ChangeEvent.SELECTION_CHANGED, 1)
            self.assertEqual(self.received, [])
            self.notifier.emit(ChangeEvent.SELECTION_CHANGED, 2)
        self.assertEqual(self.received, [2])

    def test_failing_listener_does_not_stop_delivery(self) -> None:
        def broken(_payload) -> None:
            raise RuntimeError("boom")

        notifier = ChangeNotifier(Console("error"))
        notifier.subscribe(ChangeEvent.PROFILE_CHANGED, broken)
        notifier.subscribe(ChangeEvent.PROFILE_CHANGED, self.received.append)
        stderr = io.StringIO()
        with redirect_stderr(stderr):
            notifier.emit(ChangeEvent.PROFILE_CHANGED, "dev")
        self.assertEqual(self.received, ["dev"])
        self.assertIn("boom", stderr.getvalue())

    def test_debounce_without_loop_emits_immediately(self) -> None:
        self.notifier.subscribe(ChangeEvent.TARGETS_CHANGED, self.received.append)
        self.notifier.emit_debounced(ChangeEvent.TARGETS_CHANGED, "now")
        self.assertEqual(self.received, ["now"])
        self.assertFalse(self.notifier.has_pending)


class DebounceTests(unittest.IsolatedAsyncioTestCase):
    async def test_burst_is_collapsed_into_one_notification(self) -> None:
        notifier = ChangeNotifier()
        received = []
        notifier.subscribe(ChangeEvent.TARGETS_CHANGED, received.append)

        for payload in range(5):
            notifier.emit_debounced(ChangeEvent.TARGETS_CHANGED, payload)
        self.assertEqual(received, [])
        self.assertTrue(notifier.has_pending)

        await asyncio.sleep(DEBOUNCE_SECONDS * 4)
        self.assertEqual(received, [4])
        self.assertFalse(notifier.has_pending)

    async def test_flush_delivers_immediately(self) -> None:
        notifier = ChangeNotifier()
        received = []
        notifier.subscribe(ChangeEvent.TARGETS_CHANGED, received.append)
        notifier.emit_debounced(ChangeEvent.TARGETS_CHANGED, "payload")
        notifier.flush()
        self.assertEqual(received, ["payload"])
        await asyncio.sleep(DEBOUNCE_SECONDS * 2)
        self.assertEqual(received, ["payload"])

    async def test_cancel_pending_drops_notification(self) -> None:
        notifier = ChangeNotifier()
        received = []
        notifier.subscribe(ChangeEvent.TARGETS_CHANGED, received.append)
        notifier.emit_debounced(ChangeEvent.TARGETS_CHANGED, "payload")
        notifier.cancel_pending()
        await asyncio.sleep(DEBOUNCE_SECONDS * 2)
        self.assertEqual(received, [])


if __name__ == "__main__":
    unittest.main()
