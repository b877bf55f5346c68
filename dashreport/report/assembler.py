"""Render fetched panel images into the report PDF.

Page 1 is a cover page with the dashboard title and time range.  Panels
follow two per page in dashboard order; see :mod:`dashreport.report.layout`.
"""

from __future__ import annotations

import logging
from typing import BinaryIO

from dashreport.clients.grafana import Dashboard, Panel
from dashreport.report.artifact_store import ArtifactStore
from dashreport.report.document import DocumentError, DocumentWriter
from dashreport.report.layout import LayoutConfig, compute_slot
from dashreport.timerange import TimeRange

logger = logging.getLogger(__name__)


def panel_caption(panel: Panel) -> str:
    return f"Row: {panel.row_title}, Panel: {panel.title}"


def draw_cover_page(
    writer: DocumentWriter,
    dashboard: Dashboard,
    time_range: TimeRange,
    layout: LayoutConfig,
) -> None:
    pos = layout.position
    writer.add_page()
    writer.set_x(pos.x)
    writer.set_y(pos.title_y1)
    writer.cell(f"Dashboard: {dashboard.title}")
    writer.line_break(pos.br)
    writer.set_x(pos.x)
    writer.cell(time_range.formatted())


def draw_panels(
    writer: DocumentWriter,
    dashboard: Dashboard,
    store: ArtifactStore,
    layout: LayoutConfig,
) -> int:
    """Place every panel; return how many images failed to draw.

    A failed image leaves its band captioned but blank.
    """
    failed = 0
    for count, panel in enumerate(dashboard.panels):
        slot = compute_slot(count)
        img_path = store.path_for(panel.id)

        if slot.starts_page:
            writer.add_page()
        writer.set_x(layout.position.x)
        writer.set_y(layout.title_y(slot))
        writer.cell(panel_caption(panel))
        try:
            writer.image(img_path, layout.position.x, layout.image_y(slot), layout.rect_for(panel))
        except DocumentError as exc:
            failed += 1
            logger.warning("Rendering image %s for panel %d to PDF failed: %s", img_path, panel.id, exc)
        else:
            logger.info("Rendering image to PDF: %s", img_path)
    return failed


def assemble_document(
    dashboard: Dashboard,
    time_range: TimeRange,
    store: ArtifactStore,
    layout: LayoutConfig,
    writer: DocumentWriter,
) -> BinaryIO:
    """Draw the report and return a fresh read handle on the written PDF.

    Parameters
    ----------
    dashboard:
        Dashboard whose panels were fetched into *store*.
    time_range:
        Range shown on the cover page.
    store:
        Artifact store holding the panel images; the PDF is written to
        ``store.report_path``.
    layout:
        Page geometry.
    writer:
        Fresh document writer; not used after this call.

    Raises
    ------
    DocumentError
        If the written PDF cannot be opened.
    """
    draw_cover_page(writer, dashboard, time_range, layout)
    failed = draw_panels(writer, dashboard, store, layout)
    if failed:
        logger.warning("%d of %d panel images could not be drawn", failed, len(dashboard.panels))

    pdf_path = store.report_path
    try:
        writer.write(pdf_path)
    except Exception as exc:  # best effort; surfaces below as an open failure
        logger.error("Writing PDF %s failed: %s", pdf_path, exc)

    try:
        return open(pdf_path, "rb")
    except OSError as exc:
        raise DocumentError(f"open pdf file {pdf_path}: {exc}") from exc
