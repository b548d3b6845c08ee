from __future__ import annotations

import unittest

from tidymarks.services.reporting import LogLevel, OperationReporter, OperationStatus


class TestOperationReporter(unittest.TestCase):
    def test_events_reach_subscribers(self) -> None:
        logs: list[tuple[str, LogLevel]] = []
        progress: list[tuple[int, str]] = []
        statuses: list[OperationStatus] = []
        reporter = OperationReporter(
            on_log=lambda message, level: logs.append((message, level)),
            on_progress=lambda value, message: progress.append((value, message)),
            on_status=statuses.append,
            correlation_id="cid-1",
        )

        reporter.info("scanning")
        reporter.warning("slow host")
        reporter.error("failed")
        reporter.progress(42.7, "half way")
        reporter.set_status(OperationStatus.REVIEW)

        self.assertEqual(
            logs,
            [("scanning", LogLevel.INFO), ("slow host", LogLevel.WARNING), ("failed", LogLevel.ERROR)],
        )
        self.assertEqual(progress, [(42, "half way")])
        self.assertEqual(statuses, [OperationStatus.REVIEW])
        self.assertIs(reporter.status, OperationStatus.REVIEW)

    def test_progress_is_clamped(self) -> None:
        reporter = OperationReporter()

        reporter.progress(-5)
        self.assertEqual(reporter.last_progress, 0)
        reporter.progress(250)
        self.assertEqual(reporter.last_progress, 100)

    def test_failing_subscriber_is_swallowed(self) -> None:
        def broken(*_args: object) -> None:
            raise RuntimeError("ui went away")

        reporter = OperationReporter(on_log=broken, on_progress=broken, on_status=broken)

        with self.assertLogs("tidymarks.services.reporting", level="WARNING") as captured:
            reporter.info("still running")
            reporter.progress(10)
            reporter.set_status(OperationStatus.IDLE)

        failures = [r for r in captured.records if r.getMessage() == "reporter_callback_failed"]
        self.assertEqual(len(failures), 3)
        self.assertEqual(reporter.last_progress, 10)

    def test_log_record_carries_structured_fields(self) -> None:
        reporter = OperationReporter(correlation_id="abc")

        with self.assertLogs("tidymarks.services.reporting", level="INFO") as captured:
            reporter.info("moved", bookmark_id="10")

        record = captured.records[0]
        self.assertEqual(record.getMessage(), "operation_log")
        self.assertEqual(record.cid, "abc")
        self.assertEqual(record.detail, "moved")
        self.assertEqual(record.bookmark_id, "10")


if __name__ == "__main__":
    unittest.main()
