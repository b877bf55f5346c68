"""Grafana HTTP API client.

Fetches dashboard JSON and server-side rendered panel PNGs.  Two URL
schemes are supported:

- ``v4``: dashboards addressed by slug (``/api/dashboards/db/<slug>``)
- ``v5``: dashboards addressed by uid (``/api/dashboards/uid/<uid>``)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, BinaryIO

from dashreport.config_loader import GrafanaSettings
from dashreport.constants import (
    GRAFANA_BASE_URL,
    GRAPH_RENDER_SIZE,
    SINGLE_VALUE_PANEL_TYPES,
    SINGLESTAT_RENDER_SIZE,
)
from dashreport.http_utils import HTTPError, get_json, open_stream
from dashreport.timerange import TimeRange

logger = logging.getLogger(__name__)

API_VERSIONS = ("v4", "v5")


class GrafanaAPIError(Exception):
    """Raised on Grafana-specific API failures."""

    def __init__(self, endpoint: str, detail: str = "") -> None:
        self.endpoint = endpoint
        self.detail = detail
        super().__init__(f"Grafana API error on {endpoint}: {detail}")


# ---------------------------------------------------------------------------
# Dashboard model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Panel:
    """One renderable panel of a dashboard."""

    id: int
    title: str
    row_title: str = ""
    type: str = "graph"

    def is_single_stat(self) -> bool:
        """True for panels drawn in the short single-value rectangle."""
        return self.type in SINGLE_VALUE_PANEL_TYPES


@dataclass(frozen=True)
class Dashboard:
    """Dashboard metadata.  Panel order is the page order of the report."""

    title: str
    panels: tuple[Panel, ...] = ()
    variables: dict[str, str] = field(default_factory=dict, compare=False)


def _panel_from_json(raw: dict[str, Any], row_title: str) -> Panel | None:
    if "id" not in raw:
        logger.warning("Skipping panel without id: %s", raw.get("title", "?"))
        return None
    return Panel(
        id=int(raw["id"]),
        title=str(raw.get("title") or ""),
        row_title=row_title,
        type=str(raw.get("type") or "graph"),
    )


def parse_dashboard(data: dict[str, Any], variables: dict[str, str] | None = None) -> Dashboard:
    """Build a :class:`Dashboard` from a ``/api/dashboards/...`` response.

    Handles the pre-5.0 ``rows[].panels[]`` layout as well as the flat
    ``panels[]`` layout, where ``row`` panels act as section headers and
    collapsed rows carry their children in a nested ``panels`` list.
    """
    dash = data.get("dashboard", data)
    if not isinstance(dash, dict):
        raise ValueError("dashboard JSON has no 'dashboard' object")

    panels: list[Panel] = []

    for row in dash.get("rows") or []:
        row_title = str(row.get("title") or "")
        for raw in row.get("panels") or []:
            panel = _panel_from_json(raw, row_title)
            if panel is not None:
                panels.append(panel)

    row_title = ""
    for raw in dash.get("panels") or []:
        if raw.get("type") == "row":
            row_title = str(raw.get("title") or "")
            # Collapsed rows keep their panels nested.
            for child in raw.get("panels") or []:
                panel = _panel_from_json(child, row_title)
                if panel is not None:
                    panels.append(panel)
            continue
        panel = _panel_from_json(raw, row_title)
        if panel is not None:
            panels.append(panel)

    return Dashboard(
        title=str(dash.get("title") or ""),
        panels=tuple(panels),
        variables=dict(variables or {}),
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class GrafanaClient:
    """Thin wrapper around the Grafana dashboard and render APIs.

    Parameters
    ----------
    base_url:
        Grafana root URL, e.g. ``http://grafana:3000``.
    api_token:
        Optional API token sent as a bearer token.
    api_version:
        ``"v4"`` (slug URLs) or ``"v5"`` (uid URLs).
    variables:
        Template variables forwarded as ``var-<name>`` query parameters.
    settings:
        Theme and timeouts.
    """

    def __init__(
        self,
        base_url: str = GRAFANA_BASE_URL,
        api_token: str | None = None,
        api_version: str = "v5",
        variables: dict[str, str] | None = None,
        settings: GrafanaSettings | None = None,
    ) -> None:
        if api_version not in API_VERSIONS:
            raise ValueError(f"Unsupported Grafana API version {api_version!r}; use one of {API_VERSIONS}")
        self._base_url = base_url.rstrip("/")
        self._api_version = api_version
        self._variables = dict(variables or {})
        self._settings = settings or GrafanaSettings()
        self._headers = {"Accept": "application/json"}
        if api_token:
            self._headers["Authorization"] = f"Bearer {api_token}"

    # ------------------------------------------------------------------
    # URL helpers
    # ------------------------------------------------------------------

    def dashboard_path(self, name: str) -> str:
        if self._api_version == "v4":
            return f"/api/dashboards/db/{name}"
        return f"/api/dashboards/uid/{name}"

    def render_path(self, name: str) -> str:
        if self._api_version == "v4":
            return f"/render/dashboard-solo/db/{name}"
        return f"/render/d-solo/{name}/_"

    def render_params(self, panel: Panel, time_range: TimeRange) -> dict[str, Any]:
        """Query parameters for rendering *panel* over *time_range*."""
        width, height = SINGLESTAT_RENDER_SIZE if panel.is_single_stat() else GRAPH_RENDER_SIZE
        params: dict[str, Any] = {
            "panelId": panel.id,
            "from": time_range.from_raw,
            "to": time_range.to_raw,
            "theme": self._settings.theme,
            "width": width,
            "height": height,
            "timeout": self._settings.server_timeout,
        }
        for key, value in self._variables.items():
            params[f"var-{key}"] = value
        return params

    # ------------------------------------------------------------------
    # DashboardService
    # ------------------------------------------------------------------

    def get_dashboard(self, name: str) -> Dashboard:
        """Fetch and parse the dashboard called *name*.

        Raises ``GrafanaAPIError`` if the dashboard is unknown or Grafana
        is unreachable.
        """
        path = self.dashboard_path(name)
        try:
            data = get_json(
                f"{self._base_url}{path}",
                headers=self._headers,
                timeout=self._settings.client_timeout,
            )
        except HTTPError as exc:
            raise GrafanaAPIError(path, str(exc)) from exc

        if not isinstance(data, dict):
            raise GrafanaAPIError(path, "unexpected response shape")
        try:
            dashboard = parse_dashboard(data, self._variables)
        except (TypeError, ValueError) as exc:
            raise GrafanaAPIError(path, f"cannot parse dashboard: {exc}") from exc

        logger.info("Dashboard %r: %d panels", dashboard.title, len(dashboard.panels))
        return dashboard

    def get_panel_image(self, panel: Panel, dashboard_name: str, time_range: TimeRange) -> BinaryIO:
        """Open a stream over the rendered PNG for *panel*.  Caller closes it."""
        path = self.render_path(dashboard_name)
        try:
            return open_stream(
                f"{self._base_url}{path}",
                params=self.render_params(panel, time_range),
                headers={k: v for k, v in self._headers.items() if k != "Accept"},
                timeout=self._settings.client_timeout,
            )
        except HTTPError as exc:
            raise GrafanaAPIError(f"{path}?panelId={panel.id}", str(exc)) from exc
