"""
reporter.py — Sends a triggered SOS to the Alert Service.

Only used when REPORT_ALERTS_TO_SERVICE is enabled. Any transport or
HTTP failure surfaces as AlertReportError; the controller turns that
into a notice and the SOS view stays up regardless.
"""

from __future__ import annotations

import logging
import platform
from typing import Any, Dict, Optional

import httpx

from safe_signal.app.core.errors import AlertReportError

logger = logging.getLogger(__name__)


def default_device_info() -> str:
    return f"safe-signal client / {platform.system() or 'unknown'} / Python {platform.python_version()}"


class AlertServiceClient:
    """
    Thin synchronous client for POST /alert.

    Parameters
    ----------
    base_url : str
        API root, e.g. "http://localhost:3001/api".
    timeout : float
        Seconds before the request is abandoned.
    transport : httpx.BaseTransport | None
        Injected transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.Client] = None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    def close(self) -> None:
        if self._http_client and not self._http_client.is_closed:
            self._http_client.close()

    def report_alert(
        self,
        latitude: Optional[float],
        longitude: Optional[float],
        device_info: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        POST the alert and return the decoded response body.

        Raises
        ------
        AlertReportError
            On connection errors, timeouts, non-2xx answers or a body
            that is not JSON.
        """
        url = f"{self.base_url}/alert"
        payload = {
            "latitude": latitude,
            "longitude": longitude,
            "deviceInfo": device_info or default_device_info(),
        }
        try:
            response = self._get_client().post("/alert", json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise AlertReportError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise AlertReportError(url, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise AlertReportError(url, "response is not JSON") from e
        if not isinstance(body, dict):
            raise AlertReportError(url, "unexpected response body")

        logger.info(
            "Alert %s reported: %s",
            body.get("alertId"), body.get("message", ""),
            extra={"alert_id": body.get("alertId")},
        )
        return body


def build_reporter(config) -> Optional[AlertServiceClient]:
    """AlertServiceClient from settings, or None when reporting is switched off."""
    if not config.REPORT_ALERTS_TO_SERVICE:
        return None
    return AlertServiceClient(
        config.ALERT_SERVICE_URL, timeout=config.ALERT_SERVICE_TIMEOUT,
    )
