"""Report generation lifecycle.

:class:`Report` runs the stages in order::

    INIT -> DASHBOARD_FETCHED -> STORE_READY -> PANELS_FETCHED
         -> DOCUMENT_ASSEMBLED -> READY

Any failure moves straight to ``FAILED`` and raises :class:`ReportError`.
After reading and closing the handle returned by :meth:`Report.generate`,
call :meth:`Report.clean` to delete the PDF and the fetched images.  The
same applies when generation fails.
"""

from __future__ import annotations

import enum
import logging
from typing import BinaryIO, Callable

from dashreport.clients.dashboard_service import DashboardService
from dashreport.clients.grafana import Dashboard
from dashreport.config_loader import ReporterConfig
from dashreport.constants import FALLBACK_FONT
from dashreport.report.artifact_store import ArtifactStore
from dashreport.report.assembler import assemble_document
from dashreport.report.document import DocumentWriter, ReportLabWriter
from dashreport.report.fetcher import fetch_panel_images
from dashreport.report.layout import LayoutConfig
from dashreport.timerange import TimeRange

logger = logging.getLogger(__name__)

TIMEOUT_HINT = (
    "It is recommended to select a time range within 6 hours on the dashboard; "
    "larger ranges make Grafana render timeouts more likely."
)


class ReportState(enum.Enum):
    INIT = "init"
    DASHBOARD_FETCHED = "dashboard_fetched"
    STORE_READY = "store_ready"
    PANELS_FETCHED = "panels_fetched"
    DOCUMENT_ASSEMBLED = "document_assembled"
    READY = "ready"
    FAILED = "failed"


class ReportError(Exception):
    """Raised when a generation stage fails.  ``stage`` names the stage."""

    def __init__(self, stage: str, detail: str) -> None:
        self.stage = stage
        self.detail = detail
        super().__init__(f"{stage}: {detail}")


class Report:
    """Builds one PDF report for one dashboard.

    Parameters
    ----------
    service:
        Remote dashboard service.
    dashboard_name:
        Dashboard slug (v4) or uid (v5).
    time_range:
        Range to render.
    config:
        Report configuration.
    writer_factory:
        Builds a fresh document writer; defaults to the reportlab writer.
    """

    def __init__(
        self,
        service: DashboardService,
        dashboard_name: str,
        time_range: TimeRange,
        config: ReporterConfig | None = None,
        writer_factory: Callable[[ReporterConfig], DocumentWriter] | None = None,
    ) -> None:
        self.service = service
        self.dashboard_name = dashboard_name
        self.time_range = time_range
        self.config = config or ReporterConfig()
        self.writer_factory = writer_factory or ReportLabWriter.from_config
        self.store = ArtifactStore(self.config.tmp_dir)
        self.state = ReportState.INIT
        self.dashboard: Dashboard | None = None

    def __enter__(self) -> "Report":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.clean()

    def _fail(self, stage: str, detail: str, exc: Exception) -> ReportError:
        self.state = ReportState.FAILED
        logger.error("Report for dashboard %s failed at %s: %s", self.dashboard_name, stage, exc)
        return ReportError(stage, detail)

    def generate(self) -> BinaryIO:
        """Return an open binary handle on the finished PDF.

        Raises ``ReportError`` naming the failed stage.
        """
        if self.state is not ReportState.INIT:
            raise ReportError("init", f"report already run (state {self.state.value})")

        # Prepare stage: dashboard JSON, then the scratch directory.
        try:
            dash = self.service.get_dashboard(self.dashboard_name)
        except Exception as exc:
            raise self._fail("fetch dashboard", f"fetching dashboard {self.dashboard_name} error: {exc}", exc) from exc
        self.dashboard = dash
        self.state = ReportState.DASHBOARD_FETCHED

        try:
            self.store.prepare()
        except OSError as exc:
            raise self._fail("prepare store", f"creating image directory {self.store.image_dir} error: {exc}", exc) from exc
        self.state = ReportState.STORE_READY

        # Working stage: panel images.
        try:
            fetch_panel_images(
                self.service,
                dash,
                self.dashboard_name,
                self.time_range,
                self.store,
                workers=self.config.workers,
            )
        except Exception as exc:
            raise self._fail(
                "fetch panels",
                f"rendering PNGs in parallel for dashboard {dash.title!r} error: {exc}. {TIMEOUT_HINT}",
                exc,
            ) from exc
        self.state = ReportState.PANELS_FETCHED

        # Working stage: PDF.
        try:
            writer = self.writer_factory(self.config)
            if getattr(writer, "font_fallback", False):
                logger.warning(
                    "Dashboard %r is drawn with the built-in %s font; non-Latin titles "
                    "will not render. Pass --font-dir pointing at %s.",
                    dash.title, FALLBACK_FONT, self.config.font.ttf,
                )
            pdf = assemble_document(
                dash,
                self.time_range,
                self.store,
                LayoutConfig.from_config(self.config),
                writer,
            )
        except Exception as exc:
            raise self._fail("assemble document", f"rendering pdf for dashboard {dash.title!r} error: {exc}", exc) from exc
        self.state = ReportState.DOCUMENT_ASSEMBLED

        self.state = ReportState.READY
        logger.info("Report for dashboard %s ready: %s", self.dashboard_name, self.store.report_path)
        return pdf

    def clean(self) -> None:
        """Delete the scratch directory.  Safe to call at any time, repeatedly."""
        self.store.cleanup()
