"""
Monitoring API Endpoints.

============================================================
PURPOSE
============================================================
HTTP API over the risk monitor, the success tracker and
telemetry ingestion.

Routes (mounted under /api/monitoring):
- GET  /risks                          current risks + statistics
- GET  /risks/alerts                   alert history
- GET  /risks/{risk_id}/history        samples of one risk
- POST /risks/actions                  resolve / mitigate / thresholds
- GET  /success/score                  Project Success Score
- GET  /success/report                 progress report
- GET  /success/phases                 phase gates
- GET  /success/phases/{phase}/validate
- POST /success/criteria/{criterion_id}
- POST /metrics                        telemetry ingestion
- GET  /metrics                        ingestion health check

Unauthenticated. Unknown ids map to 404, invalid input to
400, anything else to 500.

============================================================
"""

import json
import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from aiohttp import web

from database.engine import DatabaseError
from risk_monitor import (
    AlertNotFoundError,
    AlertSeverity,
    RiskCategory,
    RiskConfigurationError,
    RiskMonitor,
    UnknownRiskError,
)
from success_tracking import (
    CriterionNotFoundError,
    InvalidCriterionError,
    PhaseNotFoundError,
    SuccessTracker,
)
from telemetry.repository import MetricsIngestionService
from telemetry.types import InvalidBatchError


logger = logging.getLogger(__name__)


DEFAULT_ALERT_LIMIT = 50
DEFAULT_HISTORY_DAYS = 30


# ============================================================
# JSON ENCODER
# ============================================================

class MonitoringEncoder(json.JSONEncoder):
    """JSON encoder for monitoring payloads."""

    def default(self, obj):
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, Enum):
            return obj.value
        if hasattr(obj, "to_dict"):
            return obj.to_dict()
        return super().default(obj)


def json_response(data: Any, status: int = 200) -> web.Response:
    """Create JSON response."""
    return web.Response(
        text=json.dumps(data, cls=MonitoringEncoder, indent=2),
        status=status,
        content_type="application/json",
    )


def error_response(message: str, status: int) -> web.Response:
    return json_response({
        "status": "error",
        "error": message,
    }, status=status)


class BadRequest(Exception):
    """Invalid request parameters."""
    pass


def _query_int(request: web.Request, name: str, default: int) -> int:
    raw = request.query.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise BadRequest(f"'{name}' must be an integer")
    if value <= 0:
        raise BadRequest(f"'{name}' must be positive")
    return value


def _query_enum(request: web.Request, name: str, enum_type):
    raw = request.query.get(name)
    if raw is None:
        return None
    try:
        return enum_type(raw)
    except ValueError:
        allowed = ", ".join(e.value for e in enum_type)
        raise BadRequest(f"'{name}' must be one of: {allowed}")


async def _json_body(request: web.Request) -> Any:
    try:
        return await request.json()
    except json.JSONDecodeError:
        raise BadRequest("Request body must be valid JSON")


def _optional_number(body: dict, name: str) -> Optional[float]:
    value = body.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BadRequest(f"'{name}' must be a number")
    return float(value)


# ============================================================
# API HANDLERS
# ============================================================

class MonitoringAPI:
    """HTTP handlers for the monitoring service."""

    def __init__(
        self,
        risk_monitor: RiskMonitor,
        success_tracker: SuccessTracker,
        ingestion: Optional[MetricsIngestionService] = None,
    ):
        self._monitor = risk_monitor
        self._tracker = success_tracker
        self._ingestion = ingestion

    # --------------------------------------------------------
    # RISK ENDPOINTS
    # --------------------------------------------------------

    async def get_risks(self, request: web.Request) -> web.Response:
        """
        GET /api/monitoring/risks

        Current risks with status, plus statistics.
        """
        try:
            return json_response({
                "status": "ok",
                "data": {
                    "risks": self._monitor.get_risks(),
                    "statistics": self._monitor.get_statistics(),
                },
            })
        except Exception as e:
            logger.error(f"Error getting risks: {e}")
            return error_response(str(e), 500)

    async def get_alerts(self, request: web.Request) -> web.Response:
        """
        GET /api/monitoring/risks/alerts

        Query params:
        - severity: warning | critical
        - category: risk category
        - limit: max number of alerts (default 50)
        """
        try:
            severity = _query_enum(request, "severity", AlertSeverity)
            category = _query_enum(request, "category", RiskCategory)
            limit = _query_int(request, "limit", DEFAULT_ALERT_LIMIT)

            alerts = await self._monitor.list_alerts(severity, category, limit)
            return json_response({
                "status": "ok",
                "data": {
                    "alerts": [a.to_dict() for a in alerts],
                    "count": len(alerts),
                },
            })
        except BadRequest as e:
            return error_response(str(e), 400)
        except Exception as e:
            logger.error(f"Error getting alerts: {e}")
            return error_response(str(e), 500)

    async def get_risk_history(self, request: web.Request) -> web.Response:
        """
        GET /api/monitoring/risks/{risk_id}/history

        Query params:
        - days: window in days (default 30)
        """
        risk_id = request.match_info["risk_id"]
        try:
            days = _query_int(request, "days", DEFAULT_HISTORY_DAYS)
            samples = await self._monitor.get_history(risk_id, days)
            return json_response({
                "status": "ok",
                "data": {
                    "risk_id": risk_id,
                    "days": days,
                    "history": [s.to_dict() for s in samples],
                },
            })
        except BadRequest as e:
            return error_response(str(e), 400)
        except UnknownRiskError as e:
            return error_response(str(e), 404)
        except Exception as e:
            logger.error(f"Error getting history for {risk_id}: {e}")
            return error_response(str(e), 500)

    async def post_risk_action(self, request: web.Request) -> web.Response:
        """
        POST /api/monitoring/risks/actions

        Body:
        - {"action": "resolve_alert", "alert_id": ..., "resolved_by": ...}
        - {"action": "trigger_mitigation", "risk_id": ...}
        - {"action": "update_thresholds", "risk_id": ...,
           "threshold_warning": ..., "threshold_critical": ...}
        """
        try:
            body = await _json_body(request)
            if not isinstance(body, dict):
                raise BadRequest("Request body must be an object")

            action = body.get("action")
            if action == "resolve_alert":
                data = await self._resolve_alert(body)
            elif action == "trigger_mitigation":
                result = await self._monitor.trigger_mitigation(self._require(body, "risk_id"))
                data = result.to_dict()
            elif action == "update_thresholds":
                metric = self._monitor.update_thresholds(
                    self._require(body, "risk_id"),
                    threshold_warning=_optional_number(body, "threshold_warning"),
                    threshold_critical=_optional_number(body, "threshold_critical"),
                )
                data = metric.to_dict()
            else:
                raise BadRequest(f"Unknown action: {action}")

            return json_response({
                "status": "ok",
                "data": data,
            })
        except (BadRequest, RiskConfigurationError) as e:
            return error_response(str(e), 400)
        except (UnknownRiskError, AlertNotFoundError) as e:
            return error_response(str(e), 404)
        except Exception as e:
            logger.error(f"Error running risk action: {e}")
            return error_response(str(e), 500)

    async def _resolve_alert(self, body: dict) -> dict:
        raw_id = self._require(body, "alert_id")
        try:
            alert_id = UUID(str(raw_id))
        except ValueError:
            raise BadRequest(f"Invalid alert id: {raw_id}")
        resolved_by = body.get("resolved_by") or "operator"
        stored = await self._monitor.resolve_alert(alert_id, resolved_by)
        return stored.to_dict()

    @staticmethod
    def _require(body: dict, name: str) -> Any:
        value = body.get(name)
        if value in (None, ""):
            raise BadRequest(f"'{name}' is required")
        return value

    # --------------------------------------------------------
    # SUCCESS ENDPOINTS
    # --------------------------------------------------------

    async def get_success_score(self, request: web.Request) -> web.Response:
        """GET /api/monitoring/success/score"""
        try:
            score = self._tracker.calculate_project_success_score()
            return json_response({
                "status": "ok",
                "data": score.to_dict(),
            })
        except Exception as e:
            logger.error(f"Error calculating success score: {e}")
            return error_response(str(e), 500)

    async def get_progress_report(self, request: web.Request) -> web.Response:
        """GET /api/monitoring/success/report"""
        try:
            report = self._tracker.generate_progress_report()
            return json_response({
                "status": "ok",
                "data": report.to_dict(),
            })
        except Exception as e:
            logger.error(f"Error generating progress report: {e}")
            return error_response(str(e), 500)

    async def get_phases(self, request: web.Request) -> web.Response:
        """GET /api/monitoring/success/phases"""
        try:
            return json_response({
                "status": "ok",
                "data": [gate.to_dict() for gate in self._tracker.get_phase_gates()],
            })
        except Exception as e:
            logger.error(f"Error getting phase gates: {e}")
            return error_response(str(e), 500)

    async def validate_phase(self, request: web.Request) -> web.Response:
        """GET /api/monitoring/success/phases/{phase}/validate"""
        phase = request.match_info["phase"]
        try:
            validation = self._tracker.validate_phase_gate(phase)
            return json_response({
                "status": "ok",
                "data": validation.to_dict(),
            })
        except PhaseNotFoundError as e:
            return error_response(str(e), 404)
        except Exception as e:
            logger.error(f"Error validating phase {phase}: {e}")
            return error_response(str(e), 500)

    async def update_criterion(self, request: web.Request) -> web.Response:
        """
        POST /api/monitoring/success/criteria/{criterion_id}

        Body: any of current_value, target_value, weight,
        evidence, validation_method.
        """
        criterion_id = request.match_info["criterion_id"]
        try:
            body = await _json_body(request)
            if not isinstance(body, dict):
                raise BadRequest("Request body must be an object")

            criterion = self._tracker.update_criterion(
                criterion_id,
                current_value=_optional_number(body, "current_value"),
                target_value=_optional_number(body, "target_value"),
                weight=_optional_number(body, "weight"),
                add_evidence=body.get("evidence"),
                validation_method=body.get("validation_method"),
            )
            return json_response({
                "status": "ok",
                "data": criterion.to_dict(),
            })
        except (BadRequest, InvalidCriterionError) as e:
            return error_response(str(e), 400)
        except CriterionNotFoundError as e:
            return error_response(str(e), 404)
        except Exception as e:
            logger.error(f"Error updating criterion {criterion_id}: {e}")
            return error_response(str(e), 500)

    # --------------------------------------------------------
    # TELEMETRY INGESTION
    # --------------------------------------------------------

    async def post_metrics(self, request: web.Request) -> web.Response:
        """
        POST /api/monitoring/metrics

        Body: {"metrics": [event, ...]}
        """
        if self._ingestion is None:
            return error_response("Telemetry ingestion not available", 503)
        try:
            body = await _json_body(request)
            result = await self._ingestion.ingest(body)
            return json_response(result.to_dict())
        except (BadRequest, InvalidBatchError) as e:
            return error_response(str(e), 400)
        except Exception as e:
            logger.error(f"Error ingesting metrics: {e}")
            return error_response(str(e), 500)

    async def metrics_health(self, request: web.Request) -> web.Response:
        """GET /api/monitoring/metrics"""
        if self._ingestion is None:
            return error_response("Telemetry ingestion not available", 503)
        try:
            return json_response(await self._ingestion.health_check())
        except DatabaseError as e:
            logger.error(f"Metrics health check failed: {e}")
            return json_response({
                "status": "unhealthy",
                "error": str(e),
            }, status=500)


# ============================================================
# ROUTER FACTORY
# ============================================================

def create_monitoring_router(
    risk_monitor: RiskMonitor,
    success_tracker: SuccessTracker,
    ingestion: Optional[MetricsIngestionService] = None,
) -> web.Application:
    """
    Create monitoring API application.

    Returns an aiohttp Application with all routes configured.
    """
    api = MonitoringAPI(risk_monitor, success_tracker, ingestion)

    app = web.Application()

    app.router.add_get("/risks", api.get_risks)
    app.router.add_get("/risks/alerts", api.get_alerts)
    app.router.add_get("/risks/{risk_id}/history", api.get_risk_history)
    app.router.add_post("/risks/actions", api.post_risk_action)

    app.router.add_get("/success/score", api.get_success_score)
    app.router.add_get("/success/report", api.get_progress_report)
    app.router.add_get("/success/phases", api.get_phases)
    app.router.add_get("/success/phases/{phase}/validate", api.validate_phase)
    app.router.add_post("/success/criteria/{criterion_id}", api.update_criterion)

    app.router.add_post("/metrics", api.post_metrics)
    app.router.add_get("/metrics", api.metrics_health)

    return app


def setup_monitoring_routes(
    app: web.Application,
    risk_monitor: RiskMonitor,
    success_tracker: SuccessTracker,
    ingestion: Optional[MetricsIngestionService] = None,
    prefix: str = "/api/monitoring",
) -> None:
    """Add monitoring routes to an existing application."""
    monitoring_app = create_monitoring_router(risk_monitor, success_tracker, ingestion)
    app.add_subapp(prefix, monitoring_app)
