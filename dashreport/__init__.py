"""dashreport -- render Grafana dashboards to paginated PDF reports."""

__version__ = "0.1.0"
