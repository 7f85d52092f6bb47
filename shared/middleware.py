import logging
import re
import uuid

import structlog

logger = logging.getLogger(__name__)

_CORRELATION_ID_PATTERN = re.compile(r"^[A-Za-z0-9\-]{8,64}$")


class CorrelationIdMiddleware:
    """Attach a correlation id to every request, response and log line."""

    header_name = "HTTP_X_CORRELATION_ID"

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        incoming = request.META.get(self.header_name, "")
        if incoming and _CORRELATION_ID_PATTERN.match(incoming):
            correlation_id = incoming
        else:
            if incoming:
                logger.warning(f"Discarding malformed correlation id header: {incoming[:80]!r}")
            correlation_id = uuid.uuid4().hex

        request.correlation_id = correlation_id
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id)
        try:
            response = self.get_response(request)
        finally:
            structlog.contextvars.unbind_contextvars("correlation_id")

        response["X-Correlation-ID"] = correlation_id
        return response
