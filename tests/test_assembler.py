"""Tests for PDF assembly: cover page, band placement and failure handling."""

from __future__ import annotations

import re
import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from dashreport.config_loader import ReporterConfig
from dashreport.report.artifact_store import ArtifactStore
from dashreport.report.assembler import assemble_document, panel_caption
from dashreport.report.document import DocumentError, ReportLabWriter
from dashreport.report.layout import LayoutConfig, page_count
from dashreport.timerange import TimeRange

from fakes import RecordingWriter, make_dashboard

NOW = datetime(2024, 3, 15, 12, 30, 0)


class AssemblerTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.store = ArtifactStore(Path(self._tmp.name))
        self.store.prepare()
        self.cfg = ReporterConfig()
        self.layout = LayoutConfig.from_config(self.cfg)
        self.time_range = TimeRange("now-6h", "now", now=NOW)

    def tearDown(self):
        self._tmp.cleanup()

    def _write_images(self, dash):
        for panel in dash.panels:
            self.store.path_for(panel.id).write_bytes(b"png")

    def _assemble(self, dash, writer):
        handle = assemble_document(dash, self.time_range, self.store, self.layout, writer)
        self.addCleanup(handle.close)
        return handle


# ===========================================================================
# Pagination
# ===========================================================================

class TestPagination(AssemblerTestCase):

    def test_page_count_matches_formula(self):
        for n in range(0, 9):
            with self.subTest(n=n):
                dash = make_dashboard(n)
                self._write_images(dash)
                writer = RecordingWriter()
                self._assemble(dash, writer)
                self.assertEqual(len(writer.pages), page_count(n))

    def test_panel_positions(self):
        """Panel i is on page 1 + i // 2, band i % 2, in dashboard order."""
        dash = make_dashboard(7)
        self._write_images(dash)
        writer = RecordingWriter()
        self._assemble(dash, writer)

        pos = self.cfg.position
        for i, panel in enumerate(dash.panels):
            page = 1 + i // 2
            images = writer.images(page)
            entry = images[i % 2]
            self.assertEqual(entry[1], f"image{panel.id}.png")
            self.assertEqual(entry[2], pos.x)
            self.assertEqual(entry[3], pos.image_y1 if i % 2 == 0 else pos.image_y2)

    def test_caption_positions(self):
        """Captions sit at title-Y1 in the top band and title-Y2 in the bottom band."""
        dash = make_dashboard(5)
        self._write_images(dash)
        writer = RecordingWriter()
        self._assemble(dash, writer)

        pos = self.cfg.position
        for i, panel in enumerate(dash.panels):
            cells = [op for op in writer.pages[1 + i // 2] if op[0] == "cell"]
            _, x, y, text = cells[i % 2]
            self.assertEqual(text, panel_caption(panel))
            self.assertEqual(x, pos.x)
            self.assertEqual(y, pos.title_y1 if i % 2 == 0 else pos.title_y2)

    def test_cover_page(self):
        dash = make_dashboard(0, title="Cluster Overview")
        writer = RecordingWriter()
        self._assemble(dash, writer)
        self.assertEqual(len(writer.pages), 1)
        pos = self.cfg.position
        first, second = writer.pages[0]
        self.assertEqual((first[1], first[2]), (pos.x, pos.title_y1))
        self.assertEqual((second[1], second[2]), (pos.x, pos.title_y1 + pos.br))
        self.assertEqual(
            writer.cells(0),
            ["Dashboard: Cluster Overview", "2024-03-15 06:30:00 to 2024-03-15 12:30:00"],
        )

    def test_scenario_b_layout(self):
        """P1 graph, P2 single-stat, P3 graph -> cover + 2 panel pages."""
        dash = make_dashboard(3, single_stat_ids=(2,))
        self._write_images(dash)
        writer = RecordingWriter()
        self._assemble(dash, writer)

        self.assertEqual(len(writer.pages), 3)
        self.assertEqual(writer.cells(1), [panel_caption(dash.panels[0]), panel_caption(dash.panels[1])])
        self.assertEqual(writer.cells(2), [panel_caption(dash.panels[2])])

        top, bottom = writer.images(1)
        self.assertEqual(top[4], self.cfg.rect.graph)
        self.assertEqual(bottom[4], self.cfg.rect.singlestat)
        self.assertEqual(len(writer.images(2)), 1)
        self.assertEqual(writer.images(2)[0][3], self.cfg.position.image_y1)

    def test_caption_text(self):
        panel = make_dashboard(1).panels[0]
        self.assertEqual(panel_caption(panel), "Row: Row 0, Panel: P1")


# ===========================================================================
# Failures
# ===========================================================================

class TestPlacementFailures(AssemblerTestCase):

    def test_image_failure_leaves_blank_band(self):
        dash = make_dashboard(2)
        self._write_images(dash)
        writer = RecordingWriter(fail_paths={str(self.store.path_for(1))})
        with self.assertLogs("dashreport.report.assembler", level="WARNING") as logs:
            self._assemble(dash, writer)

        self.assertEqual(len(writer.pages), 2)
        self.assertEqual(len(writer.cells(1)), 2)
        self.assertEqual([img[1] for img in writer.images(1)], ["image2.png"])
        self.assertTrue(any("panel 1 " in line for line in logs.output))

    def test_missing_image_file_is_not_fatal(self):
        dash = make_dashboard(3)
        writer = RecordingWriter()
        with self.assertLogs("dashreport.report.assembler", level="WARNING"):
            handle = self._assemble(dash, writer)
        self.assertTrue(handle.read().startswith(b"%PDF"))
        self.assertEqual(len(writer.pages), 3)

    def test_returns_fresh_read_handle(self):
        dash = make_dashboard(1)
        self._write_images(dash)
        handle = self._assemble(dash, RecordingWriter())
        self.assertEqual(Path(handle.name), self.store.report_path)
        self.assertTrue(handle.read().startswith(b"%PDF"))

    def test_write_failure_surfaces_as_open_failure(self):
        dash = make_dashboard(1)
        self._write_images(dash)
        writer = RecordingWriter(write_error=RuntimeError("disk full"))
        with self.assertLogs("dashreport.report.assembler", level="ERROR"):
            with self.assertRaises(DocumentError):
                assemble_document(dash, self.time_range, self.store, self.layout, writer)


# ===========================================================================
# Real reportlab output
# ===========================================================================

class TestReportLabWriter(AssemblerTestCase):

    def _write_png(self, path):
        from PIL import Image

        Image.new("RGB", (20, 10), color=(30, 120, 200)).save(path, format="PNG")

    def test_renders_pdf_with_expected_pages(self):
        dash = make_dashboard(3, single_stat_ids=(2,))
        for panel in dash.panels:
            self._write_png(self.store.path_for(panel.id))

        with self.assertLogs("dashreport.report.document", level="WARNING"):
            writer = ReportLabWriter.from_config(self.cfg)
        self.assertTrue(writer.font_fallback)
        handle = self._assemble(dash, writer)
        data = handle.read()

        self.assertTrue(data.startswith(b"%PDF"))
        self.assertEqual(writer.page_count, 3)
        self.assertEqual(len(re.findall(rb"/Type /Page(?!s)", data)), 3)

    def test_invalid_image_raises_document_error(self):
        bad = self.store.path_for(1)
        bad.write_bytes(b"not an image")
        with self.assertLogs("dashreport.report.document", level="WARNING"):
            writer = ReportLabWriter.from_config(self.cfg)
        writer.add_page()
        with self.assertRaises(DocumentError):
            writer.image(bad, 50, 80, self.cfg.rect.graph)

    def test_missing_image_raises_document_error(self):
        with self.assertLogs("dashreport.report.document", level="WARNING"):
            writer = ReportLabWriter.from_config(self.cfg)
        writer.add_page()
        with self.assertRaises(DocumentError):
            writer.image(self.store.path_for(99), 50, 80, self.cfg.rect.graph)


if __name__ == "__main__":
    unittest.main()
