"""
Health check aggregation — readiness probe for the Alert Service.

Checks:
    • Contact repository responds
    • Alert log responds
    • Notifier transport configuration

The liveness endpoint (GET /api/health) stays a fixed "ok" token; this
module backs the deeper GET /api/health/ready report.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

from safe_signal.app.alerts.alert_service import AlertService
from safe_signal.app.alerts.channels.sms_gateway import PROVIDERS
from safe_signal.app.core.config import settings

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = settings.APP_VERSION
    environment: str = settings.ENVIRONMENT
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


_start_time = time.monotonic()


def check_contacts(service: AlertService) -> ComponentHealth:
    comp = ComponentHealth(name="contact_repository")
    start = time.monotonic()
    try:
        count = service.contacts.count()
        comp.message = f"{count} contact(s) stored"
        comp.details = {"backend": type(service.contacts).__name__, "count": count}
        if count == 0:
            comp.status = HealthStatus.DEGRADED
            comp.message = "No contacts, alerts will notify nobody"
    except Exception as e:
        logger.error("Contact repository check failed: %s", e)
        comp.status = HealthStatus.UNHEALTHY
        comp.message = str(e)
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


def check_alert_log(service: AlertService) -> ComponentHealth:
    comp = ComponentHealth(name="alert_log")
    start = time.monotonic()
    try:
        count = service.alert_log.count()
        comp.message = f"{count} alert(s) logged"
        comp.details = {"backend": type(service.alert_log).__name__, "count": count}
    except Exception as e:
        logger.error("Alert log check failed: %s", e)
        comp.status = HealthStatus.UNHEALTHY
        comp.message = str(e)
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


def check_notifier(service: AlertService) -> ComponentHealth:
    comp = ComponentHealth(name="notifier")
    notifier = service.notifier

    if notifier is None or not notifier.enabled:
        comp.status = HealthStatus.DEGRADED
        comp.message = "Notification dispatch disabled"
    elif notifier.provider not in PROVIDERS:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = f"Unknown provider '{notifier.provider}'"
    elif notifier.provider != "simulation" and not notifier.api_key:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = f"{notifier.provider} configured without SMS_API_KEY"
    else:
        comp.message = f"Provider: {notifier.provider}"

    if notifier is not None:
        comp.details = {"provider": notifier.provider}
    return comp


def run_health_check(service: AlertService) -> HealthReport:
    """Run all health checks and aggregate into a report."""
    report = HealthReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )

    for check in (check_contacts, check_alert_log, check_notifier):
        report.components.append(check(service))

    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    return report
