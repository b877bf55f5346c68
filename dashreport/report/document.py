"""Document writers.

The assembler drives a small cursor-based drawing interface
(:class:`DocumentWriter`) using coordinates measured from the top-left
corner of the page.  :class:`ReportLabWriter` implements it on top of a
reportlab canvas, whose origin is the bottom-left corner.
"""

from __future__ import annotations

import io
import logging
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFError, TTFont
from reportlab.pdfgen import canvas

from dashreport.config_loader import FontSettings, Rect, ReporterConfig
from dashreport.constants import FALLBACK_FONT

logger = logging.getLogger(__name__)


class DocumentError(Exception):
    """Raised when an image cannot be placed or the output cannot be opened."""

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


@runtime_checkable
class DocumentWriter(Protocol):
    """Drawing operations the assembler needs."""

    def add_page(self) -> None: ...
    def set_x(self, x: float) -> None: ...
    def set_y(self, y: float) -> None: ...
    def line_break(self, height: float) -> None: ...
    def cell(self, text: str) -> None: ...
    def image(self, path: str | os.PathLike[str], x: float, y: float, rect: Rect) -> None: ...
    def write(self, path: str | os.PathLike[str]) -> None: ...


class ReportLabWriter:
    """:class:`DocumentWriter` backed by ``reportlab.pdfgen.canvas``."""

    def __init__(self, page: Rect, font: FontSettings) -> None:
        self._page = page
        self._buffer = io.BytesIO()
        self._canvas = canvas.Canvas(self._buffer, pagesize=(page.width, page.height))
        self._font_name = self._register_font(font)
        self.font_fallback = self._font_name != font.family
        self._font_size = font.size
        self._pages = 0
        self._x = 0.0
        self._y = 0.0

    @classmethod
    def from_config(cls, cfg: ReporterConfig) -> "ReportLabWriter":
        return cls(cfg.rect.page, cfg.font)

    @staticmethod
    def _register_font(font: FontSettings) -> str:
        ttf_path = font.ttf_path
        if not os.path.isfile(ttf_path):
            logger.warning("TTF font %s not found; falling back to %s", ttf_path, FALLBACK_FONT)
            return FALLBACK_FONT
        try:
            pdfmetrics.registerFont(TTFont(font.family, ttf_path))
        except TTFError as exc:
            logger.warning("Adding TTF font %s failed (%s); falling back to %s", ttf_path, exc, FALLBACK_FONT)
            return FALLBACK_FONT
        return font.family

    @property
    def page_count(self) -> int:
        return self._pages

    def add_page(self) -> None:
        # The canvas opens with an implicit first page.
        if self._pages:
            self._canvas.showPage()
        self._pages += 1
        self._canvas.setFont(self._font_name, self._font_size)
        self._x = 0.0
        self._y = 0.0

    def set_x(self, x: float) -> None:
        self._x = x

    def set_y(self, y: float) -> None:
        self._y = y

    def line_break(self, height: float) -> None:
        self._x = 0.0
        self._y += height

    def cell(self, text: str) -> None:
        baseline = self._page.height - self._y - self._font_size
        self._canvas.drawString(self._x, baseline, text)
        self._x += pdfmetrics.stringWidth(text, self._font_name, self._font_size)

    def image(self, path: str | os.PathLike[str], x: float, y: float, rect: Rect) -> None:
        if not os.path.isfile(path):
            raise DocumentError(f"image file {path} does not exist")
        bottom = self._page.height - y - rect.height
        try:
            self._canvas.drawImage(str(path), x, bottom, width=rect.width, height=rect.height)
        except Exception as exc:  # reportlab/PIL raise a wide range of types
            raise DocumentError(f"cannot place image {path}: {exc}") from exc

    def write(self, path: str | os.PathLike[str]) -> None:
        self._canvas.save()
        Path(path).write_bytes(self._buffer.getvalue())
