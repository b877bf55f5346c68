"""Dashboard service abstraction.

Defines a ``Protocol`` for the remote side of report generation (dashboard
metadata plus one image stream per panel) and a factory that builds the
Grafana implementation from configuration.
"""

from __future__ import annotations

import logging
from typing import BinaryIO, Protocol, runtime_checkable

from dashreport.clients.grafana import Dashboard, GrafanaClient, Panel
from dashreport.config_loader import ReporterConfig
from dashreport.constants import DEFAULT_API_VERSION, GRAFANA_BASE_URL
from dashreport.timerange import TimeRange

logger = logging.getLogger(__name__)


@runtime_checkable
class DashboardService(Protocol):
    """Structural interface for anything that can serve dashboards.

    ``GrafanaClient`` implements it; tests use in-memory fakes.
    """

    def get_dashboard(self, name: str) -> Dashboard: ...
    def get_panel_image(self, panel: Panel, dashboard_name: str, time_range: TimeRange) -> BinaryIO: ...


def create_dashboard_service(
    config: ReporterConfig,
    url: str | None = None,
    api_token: str | None = None,
    api_version: str = DEFAULT_API_VERSION,
    variables: dict[str, str] | None = None,
) -> DashboardService:
    """Instantiate the Grafana client for *config*.

    Parameters
    ----------
    config:
        Report configuration; its ``grafana`` section supplies theme and
        timeouts.
    url:
        Grafana root URL.  Defaults to ``http://localhost:3000``.
    api_token:
        Optional bearer token.
    api_version:
        ``"v4"`` or ``"v5"``.
    variables:
        Template variables applied to every render request.
    """
    base_url = url or GRAFANA_BASE_URL
    logger.info("Using Grafana at %s (API %s)", base_url, api_version)
    return GrafanaClient(
        base_url=base_url,
        api_token=api_token,
        api_version=api_version,
        variables=variables,
        settings=config.grafana,
    )
