"""Global constants for the dashreport pipeline."""

# ---------------------------------------------------------------------------
# Grafana defaults
# ---------------------------------------------------------------------------
GRAFANA_BASE_URL: str = "http://localhost:3000"
DEFAULT_API_VERSION: str = "v5"
DEFAULT_TIME_FROM: str = "now-1h"
DEFAULT_TIME_TO: str = "now"

# Render sizes requested from the image renderer (pixels).
GRAPH_RENDER_SIZE: tuple[int, int] = (1000, 500)
SINGLESTAT_RENDER_SIZE: tuple[int, int] = (300, 150)

# Panel types drawn in the short "single value" rectangle.
SINGLE_VALUE_PANEL_TYPES: frozenset[str] = frozenset(
    {"singlestat", "stat", "gauge", "bargauge"}
)

# ---------------------------------------------------------------------------
# Fetch stage
# ---------------------------------------------------------------------------
# The renderer times out easily under load, so keep this small.
DEFAULT_WORKERS: int = 5

# ---------------------------------------------------------------------------
# Scratch area layout
# ---------------------------------------------------------------------------
TMP_DIR: str = "tmp"
IMAGE_DIR_NAME: str = "images"
REPORT_FILE_NAME: str = "report.pdf"

# ---------------------------------------------------------------------------
# Fonts
# ---------------------------------------------------------------------------
FALLBACK_FONT: str = "Helvetica"
