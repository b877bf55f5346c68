"""Bounded-concurrency panel image fetching.

Panels are put on one shared queue and a fixed number of worker threads
drain it.  The renderer behind Grafana is prone to timeouts when hit with
many concurrent requests, so the worker budget stays small (5 by default).

Worker failures never propagate directly.  They are recorded on a failure
queue that is only read after every worker has been joined; if anything
failed, every failure is logged and the whole stage fails.
"""

from __future__ import annotations

import logging
import queue
import shutil
import threading
from dataclasses import dataclass
from pathlib import Path

from dashreport.clients.dashboard_service import DashboardService
from dashreport.clients.grafana import Dashboard, Panel
from dashreport.constants import DEFAULT_WORKERS
from dashreport.report.artifact_store import ArtifactStore
from dashreport.timerange import TimeRange

logger = logging.getLogger(__name__)


@dataclass
class FetchOutcome:
    """Result of fetching one panel image."""

    panel: Panel
    path: Path | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PanelFetchError(Exception):
    """Raised when at least one panel image could not be fetched.

    ``panel_id`` identifies the failure that is reported; ``failures``
    holds every failed outcome of the stage.
    """

    def __init__(self, panel_id: int, detail: str, failures: list[FetchOutcome] | None = None) -> None:
        self.panel_id = panel_id
        self.detail = detail
        self.failures = list(failures or [])
        super().__init__(f"fetching image for panel {panel_id} failed: {detail}")


def fetch_panel_image(
    service: DashboardService,
    panel: Panel,
    dashboard_name: str,
    time_range: TimeRange,
    dest: Path,
) -> Path:
    """Stream one rendered panel to *dest*.

    The remote stream is closed on every path, including when the local
    file cannot be created or written.
    """
    body = service.get_panel_image(panel, dashboard_name, time_range)
    try:
        with open(dest, "wb") as fh:
            shutil.copyfileobj(body, fh)
    finally:
        body.close()
    return dest


def _worker(
    service: DashboardService,
    store: ArtifactStore,
    dashboard_name: str,
    time_range: TimeRange,
    panels: queue.Queue,
    outcomes: queue.Queue,
    failures: queue.Queue,
) -> None:
    while True:
        try:
            panel = panels.get_nowait()
        except queue.Empty:
            return
        try:
            path = fetch_panel_image(service, panel, dashboard_name, time_range, store.path_for(panel.id))
        except Exception as exc:  # recorded and reported after join
            failures.put(FetchOutcome(panel=panel, error=exc))
        else:
            outcomes.put(FetchOutcome(panel=panel, path=path))
            logger.debug("Fetched panel %d -> %s", panel.id, path)


def fetch_panel_images(
    service: DashboardService,
    dashboard: Dashboard,
    dashboard_name: str,
    time_range: TimeRange,
    store: ArtifactStore,
    workers: int = DEFAULT_WORKERS,
) -> list[FetchOutcome]:
    """Fetch every panel of *dashboard* into *store*.

    Parameters
    ----------
    service:
        Source of panel image streams.
    dashboard:
        Dashboard whose panels are fetched; each panel exactly once.
    dashboard_name:
        Name (slug or uid) used in render URLs.
    time_range:
        Range passed to the renderer.
    store:
        Prepared artifact store; images go to ``store.path_for(panel.id)``.
    workers:
        Maximum number of concurrent requests.

    Returns
    -------
    One successful :class:`FetchOutcome` per panel, in dashboard order.

    Raises
    ------
    PanelFetchError
        If any panel failed.  Files already written are left in *store*.
    ValueError
        If *workers* is less than 1.
    """
    if workers < 1:
        raise ValueError(f"workers must be at least 1, got {workers}")

    panels = dashboard.panels
    if not panels:
        return []

    work: queue.Queue = queue.Queue(maxsize=len(panels))
    for panel in panels:
        work.put_nowait(panel)

    # Unbounded: workers must never block while reporting.
    outcomes: queue.Queue = queue.Queue()
    failures: queue.Queue = queue.Queue()

    n_workers = min(workers, len(panels))
    threads = [
        threading.Thread(
            target=_worker,
            args=(service, store, dashboard_name, time_range, work, outcomes, failures),
            name=f"panel-fetch-{i}",
            daemon=True,
        )
        for i in range(n_workers)
    ]
    logger.info("Fetching %d panel images with %d workers", len(panels), n_workers)
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    failed: list[FetchOutcome] = []
    while True:
        try:
            failed.append(failures.get_nowait())
        except queue.Empty:
            break

    if failed:
        for outcome in failed:
            logger.error("Creating image for panel ID %d failed: %s", outcome.panel.id, outcome.error)
        first = failed[0]
        raise PanelFetchError(first.panel.id, str(first.error), failed)

    by_id: dict[int, FetchOutcome] = {}
    while True:
        try:
            outcome = outcomes.get_nowait()
        except queue.Empty:
            break
        by_id[outcome.panel.id] = outcome
    return [by_id[panel.id] for panel in panels]
