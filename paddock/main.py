"""Cloud Function Entry Points.

Thin wrappers that load configuration, build the monitoring service once
per instance, and hand requests to it.

- device_data: HTTP endpoint collars post {id, x, y, battery} to
- run_sweeps: HTTP trigger for Cloud Scheduler (escalation + connectivity)
- run_sweeps_pubsub: same, triggered via Pub/Sub

Run this module directly to start both sweeps on a local background
scheduler instead.
"""

import json
import logging
import os
import time
from typing import Any

import functions_framework
from flask import Request

from paddock.core.models import parse_device_payload
from paddock.service import MonitoringService, build_service, sweep_report_to_dict
from paddock.shell.config_loader import load_config, load_config_from_env


# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


_service: MonitoringService | None = None


def _get_config():
    """Load configuration from file or environment."""
    config_path = os.environ.get("CONFIG_PATH")

    if config_path:
        return load_config(config_path)
    elif os.environ.get("TELEGRAM_BOT_TOKEN"):
        # Simple env-based config
        return load_config_from_env()
    else:
        # Try default config path
        return load_config()


def get_service() -> MonitoringService:
    """Build the service on first use and reuse it for warm invocations."""
    global _service
    if _service is None:
        _service = build_service(_get_config())
    return _service


@functions_framework.http
def device_data(request: Request) -> tuple[dict[str, Any], int]:
    """HTTP Cloud Function for collar reports.

    Args:
        request: Flask request with a JSON body {id, x, y, battery}

    Returns:
        Tuple of (response dict, HTTP status code)
    """
    data = request.get_json(silent=True)
    payload = parse_device_payload(data)
    if payload is None:
        logger.warning("Rejected device payload: %s", data)
        return {"status": "error", "message": "Invalid data"}, 400

    try:
        result = get_service().ingestor.handle_device_payload(payload)
    except Exception as e:
        logger.exception("Failed to handle payload from device %s", payload.device_id)
        return {"status": "error", "message": str(e)}, 500

    return {
        "status": "success",
        "device_id": result.device.device_id,
        "registered": result.created,
        "position_id": result.report.id if result.report else None,
    }, 200


@functions_framework.http
def run_sweeps(request: Request) -> tuple[dict[str, Any], int]:
    """HTTP Cloud Function entry point for Cloud Scheduler.

    Args:
        request: Flask request object (not used, but required by framework)

    Returns:
        Tuple of (response dict, HTTP status code)
    """
    logger.info("Starting sweeps")

    try:
        report = get_service().run_sweeps()
    except Exception as e:
        logger.exception("Unexpected error running sweeps")
        return {"status": "error", "message": str(e)}, 500

    logger.info("Completed: %s", report.summary)
    status_code = 200 if report.success else 207  # 207 = Multi-Status
    return sweep_report_to_dict(report), status_code


@functions_framework.cloud_event
def run_sweeps_pubsub(cloud_event: Any) -> None:
    """Pub/Sub Cloud Function entry point.

    Args:
        cloud_event: CloudEvent from Pub/Sub
    """
    logger.info("Starting sweeps (Pub/Sub trigger)")

    try:
        report = get_service().run_sweeps()
    except Exception:
        logger.exception("Unexpected error running sweeps")
        raise

    logger.info("Completed: %s", report.summary)
    for error in report.escalation.errors + report.connectivity.errors:
        logger.error("Error: %s", error)


# For local runs
if __name__ == "__main__":
    service = get_service()
    scheduler = service.build_scheduler()
    scheduler.start()
    print("Sweeps running locally, Ctrl+C to stop")

    try:
        while True:
            time.sleep(60)
            print(json.dumps({"active_alerts": len(service.manager.active_alerts())}))
    except KeyboardInterrupt:
        scheduler.shutdown()
