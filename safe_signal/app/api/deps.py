"""
FastAPI dependencies shared by the route modules.

The AlertService is created once per application in main.create_app()
and parked on ``app.state``; handlers receive it through Depends.
"""

from __future__ import annotations

from fastapi import Request

from safe_signal.app.alerts.alert_service import AlertService


def get_alert_service(request: Request) -> AlertService:
    return request.app.state.alert_service
