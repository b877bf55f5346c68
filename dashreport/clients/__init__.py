"""API clients for the dashboard rendering service.

- ``grafana``            -- Grafana dashboard + render API client
- ``dashboard_service``  -- protocol the report pipeline depends on

Use :func:`dashboard_service.create_dashboard_service` to build a client
from configuration.
"""
