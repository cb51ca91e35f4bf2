"""Maps QueueError kinds to HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from queue_dispatch.domain.errors import ErrorKind, QueueError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.OPERATION_FAILED: 502,
    ErrorKind.UNKNOWN: 500,
}


async def queue_error_handler(request: Request, exc: QueueError) -> JSONResponse:
    status = STATUS_BY_KIND.get(exc.kind, 500)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status,
        content={"error": exc.kind.value, "message": exc.message, "operation": exc.operation},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(QueueError, queue_error_handler)
