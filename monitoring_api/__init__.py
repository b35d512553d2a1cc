"""
Monitoring API Package.

aiohttp application exposing risks, alerts, success scoring
and telemetry ingestion under /api/monitoring.
"""

from .api import (
    MonitoringAPI,
    MonitoringEncoder,
    json_response,
    create_monitoring_router,
    setup_monitoring_routes,
)


__all__ = [
    "MonitoringAPI",
    "MonitoringEncoder",
    "json_response",
    "create_monitoring_router",
    "setup_monitoring_routes",
]
