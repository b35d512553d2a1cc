#!/usr/bin/env python3
"""
Upload Rollout Monitoring - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Wires the risk monitor, success tracker, telemetry collector
and the monitoring HTTP API into one runtime.

- Configuration from environment (.env supported)
- Handles SIGINT / SIGTERM gracefully
- On exit: stops the risk scheduler, flushes telemetry,
  closes the HTTP server and client sessions

============================================================
USAGE
============================================================
    python app.py --host 0.0.0.0 --port 8080
    python app.py --single-check

Environment:
    DATABASE_URL, LOG_LEVEL, LOG_FORMAT,
    RISK_CHECK_INTERVAL_SECONDS, RISK_CALLBACK_TIMEOUT_SECONDS,
    RISK_MAX_OBSERVER_THREADS,
    TELEMETRY_ENDPOINT, TELEMETRY_BATCH_SIZE,
    TELEMETRY_FLUSH_INTERVAL_SECONDS,
    UPLOAD_STORAGE_ROOT, UPLOAD_TEMP_DIR, STORAGE_QUOTA_GB

============================================================
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from typing import Optional

from aiohttp import web
from dotenv import load_dotenv

from core.clock import SystemClock
from core.logging_config import setup_logging
from database import (
    create_all_tables,
    create_database_engine,
    create_session_factory,
)
from monitoring_api import setup_monitoring_routes
from risk_monitor import (
    AlertDispatcher,
    LocalMitigationTarget,
    RiskAlert,
    RiskMonitor,
    RiskMonitorConfig,
    UploadThrottle,
    build_default_resolver,
    get_default_risk_catalog,
)
from risk_monitor.repository import SqlAlchemyAlertStore, SqlAlchemyRiskHistory
from risk_monitor.samplers import SamplerConfig, TelemetrySamplers
from success_tracking import SuccessTracker
from telemetry import HttpIngestionClient, TelemetryCollector, TelemetryConfig
from telemetry.repository import MetricsIngestionService


logger = logging.getLogger(__name__)


# ============================================================
# CLI
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="upload-rollout-monitor",
        description="Risk monitoring and success scoring for the direct upload rollout",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=os.getenv("MONITORING_HOST", "0.0.0.0"),
        help="HTTP bind address (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("MONITORING_PORT", "8080")),
        help="HTTP port (default: 8080)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Risk check interval in seconds (overrides RISK_CHECK_INTERVAL_SECONDS)",
    )
    parser.add_argument(
        "--single-check",
        action="store_true",
        help="Run one risk check, print the report and exit",
    )
    return parser


# ============================================================
# ALERT CALLBACK
# ============================================================

def log_alert(alert: RiskAlert) -> None:
    """Default alert observer: one log line per alert."""
    tag = "[CRIT]" if alert.severity.value == "critical" else "[WARN]"
    logger.warning(f"[ALERT] {tag} {alert.message}")


# ============================================================
# WIRING
# ============================================================

class MonitoringRuntime:
    """All long-lived components of the service."""

    def __init__(self, interval_seconds: Optional[float] = None):
        clock = SystemClock()

        self.engine = create_database_engine()
        create_all_tables(self.engine)
        session_factory = create_session_factory(self.engine)

        telemetry_config = TelemetryConfig.from_env()
        self.collector = TelemetryCollector(
            HttpIngestionClient(
                telemetry_config.endpoint,
                timeout_seconds=telemetry_config.request_timeout_seconds,
            ),
            config=telemetry_config,
            clock=clock,
        )

        # upload handlers call throttle.acquire() / release() around each upload
        self.throttle = UploadThrottle()
        samplers = TelemetrySamplers(
            session_factory,
            SamplerConfig(
                storage_root=os.getenv("UPLOAD_STORAGE_ROOT", "./uploads"),
                storage_quota_gb=float(os.getenv("STORAGE_QUOTA_GB", "10")),
            ),
            throttle=self.throttle,
            clock=clock,
        )
        target = LocalMitigationTarget(
            os.getenv("UPLOAD_TEMP_DIR", "./uploads/tmp"),
            throttle=self.throttle,
            clock=clock,
        )

        risk_config = RiskMonitorConfig.from_env()
        dispatcher = AlertDispatcher(
            SqlAlchemyAlertStore(session_factory),
            resolver=build_default_resolver(target),
            callback_timeout_seconds=risk_config.callback_timeout_seconds,
            clock=clock,
            max_observer_threads=risk_config.max_observer_threads,
        )
        self.monitor = RiskMonitor(
            samplers.build_data_source(),
            dispatcher=dispatcher,
            config=risk_config,
            metrics=get_default_risk_catalog(),
            history=SqlAlchemyRiskHistory(session_factory),
            telemetry=self.collector,
            clock=clock,
        )
        self.monitor.on_alert(log_alert)
        self.interval_seconds = interval_seconds

        self.tracker = SuccessTracker(telemetry=self.collector, clock=clock)
        self.ingestion = MetricsIngestionService(session_factory, self.engine, clock=clock)

        self.app = web.Application()
        setup_monitoring_routes(self.app, self.monitor, self.tracker, self.ingestion)
        self._runner: Optional[web.AppRunner] = None

    async def start(self, host: str, port: int) -> None:
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        await web.TCPSite(self._runner, host, port).start()
        logger.info(f"Monitoring API listening on http://{host}:{port}/api/monitoring")

        await self.collector.start()
        await self.monitor.start_monitoring(self.interval_seconds)

    async def stop(self) -> None:
        await self.monitor.stop_monitoring()
        await self.collector.shutdown()
        self.monitor.dispatcher.close()
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        self.engine.dispose()
        logger.info("Monitoring runtime stopped")


# ============================================================
# MAIN FUNCTION
# ============================================================

def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    """Set ``stop_event`` on SIGINT / SIGTERM."""
    if sys.platform == "win32":
        # KeyboardInterrupt ends asyncio.run on Windows
        return
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop_event.set)


async def run_application(args) -> int:
    """
    Run the monitoring service.

    Returns:
        Exit code
    """
    runtime = MonitoringRuntime(interval_seconds=args.interval)

    if args.single_check:
        try:
            report = await runtime.monitor.run_check()
            print(f"\nChecked {len(report.outcomes)} risk(s)")
            print(f"Alerts: {len(report.alerts)}")
            for alert in report.alerts:
                print(f"  [{alert.severity.value}] {alert.message}")
            if report.skipped:
                print(f"Skipped: {', '.join(report.skipped)}")
            return 0
        finally:
            await runtime.collector.shutdown()
            runtime.monitor.dispatcher.close()
            runtime.engine.dispose()

    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)

    try:
        await runtime.start(args.host, args.port)
        logger.info("Monitoring service running (press Ctrl+C to stop)...")
        await stop_event.wait()
        logger.info("Shutdown requested")
        return 0
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await runtime.stop()


def main() -> int:
    """Main entry point."""
    load_dotenv()
    setup_logging(
        level=os.getenv("LOG_LEVEL", "INFO"),
        log_format=os.getenv("LOG_FORMAT", "text"),
        service_name="upload-rollout-monitor",
    )

    args = create_parser().parse_args()
    try:
        return asyncio.run(run_application(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
