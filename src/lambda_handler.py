"""Lambda entry point for the ordering service.

HTTP traffic from API Gateway is served by the FastAPI app through Mangum. The
backend's database hooks may also invoke the function directly with a bare
table-change payload; those skip HTTP and go straight to the change handler.
"""

import asyncio
import logging
import os
from typing import Any

from mangum import Mangum

logger = logging.getLogger(__name__)

# Built once per container so warm invocations reuse services and caches
if os.getenv("ENVIRONMENT") != "test":
    from main import app

    mangum_handler = Mangum(app, lifespan="off")
else:
    app = None  # type: ignore
    mangum_handler = None  # type: ignore


def is_table_change_event(event: dict[str, Any]) -> bool:
    """True for direct change payloads such as ``{"type": "UPDATE", "table": "orders"}``."""
    return "table" in event and "type" in event and "requestContext" not in event


def lambda_handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Route one invocation to Mangum or the change handler.

    Errors that escape either path are logged with the request id and turned
    into a 500 so the invocation itself never fails.
    """
    request_id = context.aws_request_id
    try:
        if is_table_change_event(event):
            logger.info(
                "Direct change event",
                extra={"request_id": request_id, "table": event.get("table"), "type": event.get("type")},
            )
            return handle_table_change_event(event)

        logger.info("HTTP invocation", extra={"request_id": request_id})
        response: dict[str, Any] = mangum_handler(event, context)
        return response
    except Exception as e:
        logger.exception("Invocation failed", extra={"request_id": request_id})
        return {"statusCode": 500, "body": f"Internal server error: {e}"}


def handle_table_change_event(event: dict[str, Any], change_handler: Any = None) -> dict[str, Any]:
    """Publish a change payload and wrap the handler's verdict as a Lambda response."""
    handler = change_handler or app.state.change_handler
    status_code, message = asyncio.run(handler.handle_webhook(event))
    return {"statusCode": status_code, "body": message}
