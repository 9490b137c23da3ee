from __future__ import annotations

import logging
import uuid
from time import perf_counter

from fastapi import FastAPI, Request

from charwizard.config import settings

REQUEST_ID_HEADER = "X-Request-Id"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

logger = logging.getLogger("charwizard.http")


def configure_logging(level: str | None = None) -> None:
    resolved = str(level or settings.log_level or "INFO").upper()
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger("charwizard").setLevel(resolved)


def install_request_id_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def _request_id_mw(request: Request, call_next):
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = rid
        started = perf_counter()
        logger.debug("request start rid=%s %s %s", rid, request.method, request.url.path)
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request failed rid=%s %s %s", rid, request.method, request.url.path)
            raise
        response.headers[REQUEST_ID_HEADER] = rid
        logger.info(
            "request end rid=%s %s %s -> %s (%.1fms)",
            rid,
            request.method,
            request.url.path,
            response.status_code,
            (perf_counter() - started) * 1000.0,
        )
        return response
