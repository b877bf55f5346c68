"""Page layout for the panel pages.

Panels are placed two per page: even positions in the top band, odd
positions in the bottom band.  Everything here is a pure function of the
panel index and the configured geometry so it can be tested without a
PDF writer.
"""

from __future__ import annotations

from dataclasses import dataclass

from dashreport.clients.grafana import Panel
from dashreport.config_loader import PositionSettings, Rect, ReporterConfig

TOP_BAND = 0
BOTTOM_BAND = 1


@dataclass(frozen=True)
class LayoutSlot:
    """Where the panel at ``index`` goes.

    ``page`` is zero-based within the document; page 0 is the cover page.
    """

    index: int
    band: int
    page: int

    @property
    def starts_page(self) -> bool:
        return self.band == TOP_BAND

    @property
    def ends_page(self) -> bool:
        return self.band == BOTTOM_BAND


def compute_slot(index: int) -> LayoutSlot:
    if index < 0:
        raise ValueError(f"panel index must be non-negative, got {index}")
    return LayoutSlot(index=index, band=index % 2, page=1 + index // 2)


def page_count(n_panels: int) -> int:
    """Total pages for *n_panels*: the cover plus one page per two panels."""
    return 1 + (n_panels + 1) // 2


@dataclass(frozen=True)
class LayoutConfig:
    """Geometry used by the assembler, in points from the top-left corner."""

    graph: Rect
    singlestat: Rect
    position: PositionSettings

    @classmethod
    def from_config(cls, cfg: ReporterConfig) -> "LayoutConfig":
        return cls(
            graph=cfg.rect.graph,
            singlestat=cfg.rect.singlestat,
            position=cfg.position,
        )

    def rect_for(self, panel: Panel) -> Rect:
        return self.singlestat if panel.is_single_stat() else self.graph

    def title_y(self, slot: LayoutSlot) -> float:
        return self.position.title_y1 if slot.band == TOP_BAND else self.position.title_y2

    def image_y(self, slot: LayoutSlot) -> float:
        return self.position.image_y1 if slot.band == TOP_BAND else self.position.image_y2
