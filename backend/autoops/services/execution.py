from datetime import datetime, timezone
from typing import Optional

import httpx

from autoops.core.config import settings
from autoops.core.errors import InputError, UpstreamError
from autoops.core.logging import get_logger
from autoops.models.schemas import ExecuteResponse

logger = get_logger(__name__)

ALLOWED_SERVICES = ("api-gateway", "primary-db", "cache")

SCALE_UP_ACTION = "scale_up"
TRIGGERED_BY = "AutoOps AI"


def validate_service(service: Optional[str]) -> str:
    """Reject anything outside the allow-list before any downstream call."""
    if not isinstance(service, str) or service not in ALLOWED_SERVICES:
        raise InputError("Invalid service")
    return service


def trigger_action(
    service: Optional[str],
    webhook_url: Optional[str] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> ExecuteResponse:
    """Forward a scale-up request for an allow-listed service to the webhook."""
    service = validate_service(service)

    url = webhook_url or settings.webhook_url
    if not url:
        raise UpstreamError("Execution webhook is not configured")

    payload = {
        "action": SCALE_UP_ACTION,
        "service": service,
        "triggeredBy": TRIGGERED_BY,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    logger.info(f"Triggering {SCALE_UP_ACTION} for {service}")
    try:
        with httpx.Client(timeout=settings.webhook_timeout_seconds, transport=transport) as http:
            response = http.post(url, json=payload)
    except httpx.HTTPError as e:
        logger.error(f"Webhook call failed for {service}: {e}")
        raise UpstreamError(f"Execution webhook failed: {e}") from e

    return ExecuteResponse(
        service=service,
        webhook_status=response.status_code,
        message=f"Infrastructure action triggered for {service}",
    )
