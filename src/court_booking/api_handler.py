from __future__ import annotations

from typing import Any

from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext
from mangum import Mangum

from court_booking.api import app, get_service, metrics

logger = Logger()
handler = Mangum(app, lifespan="off")

SCHEDULED_EVENT = "Scheduled Event"


def _normalize_http_v2(event: dict[str, Any]) -> None:
    # Minimal API Gateway HTTP API v2.0 events (local runs, tests) lack these
    request_context = event.setdefault("requestContext", {})
    http_ctx = request_context.setdefault("http", {})
    http_ctx.setdefault("sourceIp", "127.0.0.1")
    http_ctx.setdefault("userAgent", "pytest")
    request_context.setdefault("stage", "$default")


@logger.inject_lambda_context(clear_state=True)
@metrics.log_metrics
def lambda_handler(event: dict[str, Any], context: LambdaContext) -> Any:
    if event.get("detail-type") == SCHEDULED_EVENT:
        # periodic sweep: waitlist entries whose slot has already started
        expired = get_service().expire_waitlist()
        logger.info("Scheduled waitlist expiry", extra={"expired": len(expired)})
        return {"expired": len(expired)}

    if event.get("version") == "2.0":
        _normalize_http_v2(event)
    return handler(event, context)
