"""Tests for the EventLog class."""

import logging
import unittest

from hyquery.events import EventLog


class TestEventLog(unittest.TestCase):
    """Verify event recording, forwarding and export."""

    def test_records_levels(self):
        """Each helper records an event with its level."""
        log = EventLog()
        log.info("i")
        log.warn("w")
        log.error("e")
        log.debug("d")
        self.assertEqual([(e.level, e.message) for e in log.events()],
                         [("info", "i"), ("warn", "w"), ("error", "e"), ("debug", "d")])

    def test_unknown_level_raises(self):
        """Only the four known levels are accepted."""
        with self.assertRaises(ValueError):
            EventLog().emit("fatal", "x")

    def test_forwards_to_logging(self):
        """Events are also emitted through the standard logging module."""
        log = EventLog(logger_name="hyquery.test")
        with self.assertLogs("hyquery.test", level="DEBUG") as captured:
            log.warn("careful")
        self.assertEqual(captured.records[0].levelno, logging.WARNING)
        self.assertEqual(captured.records[0].getMessage(), "careful")

    def test_listeners_and_unsubscribe(self):
        """Subscribed listeners see events until they unsubscribe."""
        log = EventLog()
        seen = []
        unsubscribe = log.subscribe(seen.append)
        log.info("one")
        unsubscribe()
        log.info("two")
        self.assertEqual([e.message for e in seen], ["one"])

    def test_failing_listener_does_not_propagate(self):
        """A listener that raises is logged and later listeners still run."""
        log = EventLog(logger_name="hyquery.test.listener")
        seen = []

        def _broken(event):
            raise RuntimeError("listener bug")

        log.subscribe(_broken)
        log.subscribe(seen.append)
        with self.assertLogs("hyquery.test.listener", level="ERROR") as captured:
            event = log.info("still delivered")
        self.assertEqual(seen, [event])
        self.assertEqual(log.events(), [event])
        self.assertIn("listener", captured.output[0])

    def test_buffer_is_bounded(self):
        """Only the most recent events are retained."""
        log = EventLog(maxlen=2)
        for i in range(5):
            log.debug(str(i))
        self.assertEqual([e.message for e in log.events()], ["3", "4"])

    def test_export_json_and_clear(self):
        """export_json flattens fields; clear empties the buffer."""
        log = EventLog()
        log.info("GET", url="https://h:1/q")
        exported = log.export_json()
        self.assertEqual(exported[0]["url"], "https://h:1/q")
        self.assertEqual(exported[0]["level"], "info")
        self.assertIn("timestamp", exported[0])
        log.clear()
        self.assertEqual(log.events(), [])


if __name__ == "__main__":
    unittest.main()
