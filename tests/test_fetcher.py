"""Tests for the bounded-concurrency panel fetch stage.

Tests cover:
  - every panel fetched exactly once for any worker count
  - the worker budget bounds in-flight requests
  - failure aggregation, logging and full drain of the failure queue
  - remote streams released on every path
"""

from __future__ import annotations

import tempfile
import threading
import unittest
from pathlib import Path

from dashreport.report.artifact_store import ArtifactStore
from dashreport.report.fetcher import PanelFetchError, fetch_panel_image, fetch_panel_images
from dashreport.timerange import TimeRange

from fakes import PNG_BYTES, FakeService, make_dashboard


class FetcherTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = ArtifactStore(Path(self._tmp.name))
        self.store.prepare()
        self.time_range = TimeRange("now-1h", "now")

    def tearDown(self):
        self._tmp.cleanup()


# ===========================================================================
# Success paths
# ===========================================================================

class TestFetchAll(FetcherTestCase):

    def test_every_panel_fetched_exactly_once(self):
        """No duplicates, no omissions, for any N and W."""
        for n in (0, 1, 2, 3, 7, 12):
            for workers in (1, 2, 5, 20):
                with self.subTest(n=n, workers=workers):
                    dash = make_dashboard(n)
                    service = FakeService(dash)
                    outcomes = fetch_panel_images(
                        service, dash, "x", self.time_range, self.store, workers=workers,
                    )
                    self.assertEqual(len(outcomes), n)
                    self.assertEqual(set(service.calls), {p.id for p in dash.panels})
                    self.assertTrue(all(count == 1 for count in service.calls.values()))

    def test_outcomes_follow_dashboard_order(self):
        dash = make_dashboard(9)
        outcomes = fetch_panel_images(FakeService(dash), dash, "x", self.time_range, self.store, workers=4)
        self.assertEqual([o.panel.id for o in outcomes], [p.id for p in dash.panels])
        self.assertTrue(all(o.ok for o in outcomes))

    def test_images_written_to_store_paths(self):
        dash = make_dashboard(3)
        fetch_panel_images(FakeService(dash), dash, "x", self.time_range, self.store)
        for panel in dash.panels:
            path = self.store.path_for(panel.id)
            self.assertEqual(path.read_bytes(), PNG_BYTES + str(panel.id).encode())

    def test_worker_budget_bounds_concurrency(self):
        dash = make_dashboard(12)
        service = FakeService(dash, delay=0.02)
        fetch_panel_images(service, dash, "x", self.time_range, self.store, workers=3)
        self.assertLessEqual(service.max_in_flight, 3)
        self.assertGreaterEqual(service.max_in_flight, 1)

    def test_streams_closed_after_success(self):
        dash = make_dashboard(4)
        service = FakeService(dash)
        fetch_panel_images(service, dash, "x", self.time_range, self.store)
        self.assertEqual(len(service.streams), 4)
        self.assertTrue(all(s.was_closed for s in service.streams))

    def test_invalid_worker_count(self):
        dash = make_dashboard(2)
        with self.assertRaises(ValueError):
            fetch_panel_images(FakeService(dash), dash, "x", self.time_range, self.store, workers=0)


# ===========================================================================
# Failure paths
# ===========================================================================

class TestFetchFailures(FetcherTestCase):

    def test_single_failure_fails_stage(self):
        dash = make_dashboard(2)
        service = FakeService(dash, fail_ids={2})
        with self.assertRaises(PanelFetchError) as ctx:
            fetch_panel_images(service, dash, "x", self.time_range, self.store)
        self.assertEqual(ctx.exception.panel_id, 2)
        self.assertIn("panel 2", str(ctx.exception))
        # Panel 1 still landed in the store.
        self.assertTrue(self.store.path_for(1).exists())

    def test_all_failures_collected_and_logged(self):
        dash = make_dashboard(8)
        failing = {2, 5, 7}
        service = FakeService(dash, fail_ids=failing)
        with self.assertLogs("dashreport.report.fetcher", level="ERROR") as logs:
            with self.assertRaises(PanelFetchError) as ctx:
                fetch_panel_images(service, dash, "x", self.time_range, self.store, workers=3)

        self.assertEqual({o.panel.id for o in ctx.exception.failures}, failing)
        self.assertIn(ctx.exception.panel_id, failing)
        self.assertEqual(len(logs.output), len(failing))
        for panel_id in failing:
            self.assertTrue(any(f"panel ID {panel_id} " in line for line in logs.output))

    def test_other_workers_finish_after_failure(self):
        """A failure does not stop in-flight or queued panels."""
        dash = make_dashboard(10)
        service = FakeService(dash, fail_ids={1}, delay=0.005)
        with self.assertRaises(PanelFetchError):
            fetch_panel_images(service, dash, "x", self.time_range, self.store, workers=2)
        self.assertEqual(sum(service.calls.values()), 10)
        for panel_id in range(2, 11):
            self.assertTrue(self.store.path_for(panel_id).exists())

    def test_every_panel_failing_does_not_block(self):
        dash = make_dashboard(20)
        service = FakeService(dash, fail_ids=set(range(1, 21)))
        before = threading.active_count()
        with self.assertLogs("dashreport.report.fetcher", level="ERROR"):
            with self.assertRaises(PanelFetchError) as ctx:
                fetch_panel_images(service, dash, "x", self.time_range, self.store, workers=5)
        self.assertEqual(len(ctx.exception.failures), 20)
        self.assertEqual(threading.active_count(), before)

    def test_stream_released_when_local_write_fails(self):
        dash = make_dashboard(1)
        service = FakeService(dash)
        panel = dash.panels[0]
        missing = Path(self._tmp.name) / "no-such-dir" / "image1.png"
        with self.assertRaises(OSError):
            fetch_panel_image(service, panel, "x", self.time_range, missing)
        self.assertEqual(len(service.streams), 1)
        self.assertTrue(service.streams[0].was_closed)

    def test_unprepared_store_fails_every_panel(self):
        dash = make_dashboard(3)
        service = FakeService(dash)
        store = ArtifactStore(Path(self._tmp.name) / "elsewhere")
        with self.assertLogs("dashreport.report.fetcher", level="ERROR"):
            with self.assertRaises(PanelFetchError) as ctx:
                fetch_panel_images(service, dash, "x", self.time_range, store)
        self.assertEqual(len(ctx.exception.failures), 3)
        self.assertTrue(all(s.was_closed for s in service.streams))


if __name__ == "__main__":
    unittest.main()
