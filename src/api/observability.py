import json
import logging
import os
import re
import time
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Awaitable, Callable
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from prometheus_fastapi_instrumentator import Instrumentator

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
trace_id_var: ContextVar[str] = ContextVar("trace_id", default="")

_TOKEN_SURFACES = (
    ("client", re.compile(r"^(/api/firm-offers/public)/[^/]+")),
    ("speaker", re.compile(r"^(/api/speaker-review)/[^/]+")),
)


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        fields = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "service": os.getenv("SERVICE_NAME", "firm-offer-service"),
            "environment": os.getenv("ENVIRONMENT", "local"),
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": correlation_id_var.get() or None,
            "request_id": request_id_var.get() or None,
            "trace_id": trace_id_var.get() or None,
        }
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            fields.update(extra_fields)
        return json.dumps(
            {key: value for key, value in fields.items() if value is not None},
            default=str,
        )


def classify_endpoint(path: str) -> tuple[str, str]:
    """Return the actor surface for ``path`` and the path with any access token masked."""
    for surface, pattern in _TOKEN_SURFACES:
        if pattern.match(path):
            return surface, pattern.sub(r"\1/{token}", path)
    if path.startswith("/api/firm-offers"):
        return "admin", path
    return "system", path


def redact_token_path(path: str) -> str:
    return classify_endpoint(path)[1]


def configure_logging() -> None:
    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        root_logger.handlers.clear()
    root_logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)


def setup_observability(app: FastAPI) -> None:
    configure_logging()
    Instrumentator(excluded_handlers=["/metrics", "/health.*"]).instrument(app).expose(app)
    access_logger = logging.getLogger("http.access")

    @app.middleware("http")
    async def _request_observability_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        started = time.perf_counter()
        surface, endpoint = classify_endpoint(request.url.path)
        correlation_id = request.headers.get("X-Correlation-Id") or f"corr_{uuid4().hex[:12]}"
        request_id = request.headers.get("X-Request-Id") or f"req_{uuid4().hex[:12]}"
        trace_id = _trace_id_from(request.headers.get("traceparent", ""))

        context_tokens = (
            (correlation_id_var, correlation_id_var.set(correlation_id)),
            (request_id_var, request_id_var.set(request_id)),
            (trace_id_var, trace_id_var.set(trace_id)),
        )
        status_code = 500
        try:
            response: Response = await call_next(request)
            status_code = response.status_code
        finally:
            access_logger.info(
                "request.completed",
                extra={
                    "extra_fields": {
                        "http_method": request.method,
                        "endpoint": endpoint,
                        "surface": surface,
                        "status_code": status_code,
                        "latency_ms": round((time.perf_counter() - started) * 1000, 2),
                    }
                },
            )
            for var, token in context_tokens:
                var.reset(token)

        response.headers.setdefault("X-Correlation-Id", correlation_id)
        response.headers["X-Request-Id"] = request_id
        response.headers["X-Trace-Id"] = trace_id
        response.headers["traceparent"] = f"00-{trace_id}-0000000000000001-01"
        return response


def _trace_id_from(traceparent: str) -> str:
    parts = traceparent.split("-") if traceparent else []
    if len(parts) >= 4 and len(parts[1]) == 32:
        return parts[1]
    return uuid4().hex
