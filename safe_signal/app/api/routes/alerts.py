"""
FastAPI route: alert ingestion and alert history.

    POST /api/alert   — record an emergency alert, snapshot notified phones
    GET  /api/alerts  — full append-only alert log

POST /alert tolerates any body: malformed JSON, a non-object payload or
out-of-range coordinates all degrade to null fields instead of an error.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from safe_signal.app.alerts.alert_service import AlertService
from safe_signal.app.api.deps import get_alert_service
from safe_signal.app.api.schemas import (
    AlertListResponse,
    AlertOut,
    AlertRequest,
    AlertResponse,
)
from safe_signal.app.core.config import settings
from safe_signal.app.core.logging_config import tag_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix=settings.API_PREFIX, tags=["alerts"])


async def _read_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        logger.info("POST /alert with unreadable body, using defaults")
        return {}
    return body if isinstance(body, dict) else {}


@router.post(
    "/alert",
    response_model=AlertResponse,
    response_model_by_alias=True,
    summary="Trigger an emergency alert",
    description=(
        "Appends an alert record whose notified list is a snapshot of every "
        "contact phone at this instant, then hands it to the notifier."
    ),
)
async def trigger_alert(
    request: Request,
    service: AlertService = Depends(get_alert_service),
):
    alert_in = AlertRequest.model_validate(await _read_body(request))
    # Notifier dispatch may block on a gateway, so keep it off the event loop.
    record = await run_in_threadpool(
        service.ingest_alert,
        latitude=alert_in.latitude,
        longitude=alert_in.longitude,
        device_info=alert_in.device_info,
    )
    tag_request(alert_id=record.id)
    return AlertResponse.from_record(record)


@router.get(
    "/alerts",
    response_model=AlertListResponse,
    response_model_by_alias=True,
    summary="Alert history",
)
async def list_alerts(service: AlertService = Depends(get_alert_service)):
    return AlertListResponse(
        alerts=[AlertOut.from_record(r) for r in service.list_alerts()],
    )
