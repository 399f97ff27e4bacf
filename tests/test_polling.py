"""Tests for the PollingController."""

import threading
import time
import unittest

from hyquery.events import EventLog
from hyquery.polling import PollingController


class TickRecorder:
    """Records the thread of each tick and signals when enough have run."""

    def __init__(self, fail_first=False):
        self.threads = []
        self._lock = threading.Lock()
        self._cv = threading.Condition(self._lock)
        self._fail_first = fail_first

    def __call__(self):
        with self._cv:
            self.threads.append(threading.current_thread())
            count = len(self.threads)
            self._cv.notify_all()
        if self._fail_first and count == 1:
            raise RuntimeError("first tick fails")

    def wait_for(self, count, timeout=3.0):
        with self._cv:
            return self._cv.wait_for(lambda: len(self.threads) >= count, timeout)

    @property
    def count(self):
        with self._lock:
            return len(self.threads)


class TestPollingController(unittest.TestCase):
    """Verify the start/stop/restart lifecycle of the poll loop."""

    def setUp(self):
        """Fresh event log and recorder per test."""
        self.events = EventLog()
        self.ticks = TickRecorder()
        self.controller = PollingController(self.ticks, self.events)

    def tearDown(self):
        """Make sure no loop outlives its test."""
        self.controller.stop(wait=True, timeout=2)

    def test_first_tick_is_immediate(self):
        """Starting the loop performs a fetch without waiting an interval."""
        self.controller.start(60)
        self.assertTrue(self.ticks.wait_for(1, timeout=1))
        self.assertTrue(self.controller.is_running)
        self.assertEqual(self.controller.interval, 60)
        self.assertIn("Polling started: every 60s", [e.message for e in self.events.events()])

    def test_repeats_every_interval(self):
        """The loop keeps ticking at the configured interval."""
        self.controller.start(0.05)
        self.assertTrue(self.ticks.wait_for(3))

    def test_stop_is_prompt(self):
        """stop() interrupts the inter-tick wait instead of sleeping it out."""
        self.controller.start(30)
        self.assertTrue(self.ticks.wait_for(1))
        session = self.controller.session
        started = time.monotonic()
        self.assertTrue(self.controller.stop())
        self.assertTrue(session.join(2))
        self.assertLess(time.monotonic() - started, 1.0)
        self.assertFalse(self.controller.is_running)
        self.assertEqual(self.ticks.count, 1)
        self.assertEqual(self.events.events()[-1].message, "Polling stopped")

    def test_stop_when_idle_is_silent(self):
        """Stopping a stopped controller does nothing and logs nothing."""
        self.assertFalse(self.controller.stop())
        self.assertEqual(self.events.events(), [])

    def test_restart_cancels_previous_loop(self):
        """Restarting with a new interval leaves exactly one loop running."""
        self.controller.start(5)
        self.assertTrue(self.ticks.wait_for(1))
        old_session = self.controller.session

        new_session = self.controller.start(0.05)
        self.assertTrue(old_session.join(2))
        self.assertTrue(old_session.cancelled.is_set())
        self.assertTrue(self.ticks.wait_for(4))

        self.assertIsNot(old_session, new_session)
        self.assertEqual(self.controller.interval, 0.05)
        self.assertEqual(self.ticks.threads[0], old_session.thread)
        self.assertTrue(all(t is new_session.thread for t in self.ticks.threads[1:]))
        messages = [e.message for e in self.events.events()]
        self.assertNotIn("Polling stopped", messages)

    def test_tick_errors_do_not_end_loop(self):
        """A failing tick is logged and the loop carries on."""
        ticks = TickRecorder(fail_first=True)
        controller = PollingController(ticks, self.events)
        controller.start(0.05)
        try:
            self.assertTrue(ticks.wait_for(2))
        finally:
            controller.stop(wait=True, timeout=2)
        errors = [e.message for e in self.events.events() if e.level == "error"]
        self.assertTrue(errors[0].startswith("Polling cycle failed: RuntimeError"))

    def test_rejects_non_positive_interval(self):
        """Zero or negative intervals are refused."""
        with self.assertRaises(ValueError):
            self.controller.start(0)
        self.assertFalse(self.controller.is_running)


if __name__ == "__main__":
    unittest.main()
