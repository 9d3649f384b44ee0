"""Maps match engine errors to HTTP responses by kind, never by message."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from coffee_match.domain.errors import ErrorKind, MatchEngineError

logger = logging.getLogger(__name__)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.UNAUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.PRECONDITION_FAILED: status.HTTP_409_CONFLICT,
}


async def match_engine_error_handler(request: Request, exc: MatchEngineError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST)
    logger.info("%s %s -> %d %s", request.method, request.url.path, status_code, exc.kind.value)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "kind": exc.kind.value},
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MatchEngineError, match_engine_error_handler)
