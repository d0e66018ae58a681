"""Structured logging, request scoping and metric hooks.

Every log line is one JSON object carrying the active request scope
(request id, route, object key) alongside any per-call context. Metrics
are fire-and-forget callbacks, so an exporter can be attached without the
server knowing about it.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, MutableMapping

ROOT_LOGGER = "bucket_browser"
TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class RequestScope:
    """Identifiers of the request being served."""

    request_id: str
    route: str | None = None
    object_key: str | None = None

    def fields(self) -> dict[str, Any]:
        """Non-empty identifiers as log fields."""
        data: dict[str, Any] = {"request_id": self.request_id}
        if self.route:
            data["route"] = self.route
        if self.object_key is not None:
            data["object_key"] = self.object_key
        return data


_scope: ContextVar[RequestScope | None] = ContextVar("bucket_browser_scope", default=None)


def current_scope() -> RequestScope | None:
    """The request scope active in this task, if any."""
    return _scope.get()


class RequestContext:
    """Binds a RequestScope for the duration of a block.

    Nested contexts inherit the fields they do not set.

    Example:
        async with RequestContext(route="/api/objects"):
            logger.info("Listing bucket")
    """

    def __init__(
        self,
        request_id: str | None = None,
        route: str | None = None,
        object_key: str | None = None,
    ) -> None:
        self.request_id: str | None = request_id
        self.route = route
        self.object_key = object_key
        self._token: Token | None = None

    def __enter__(self) -> "RequestContext":
        parent = _scope.get()
        if parent is None:
            self.request_id = self.request_id or uuid.uuid4().hex
            scope = RequestScope(self.request_id, self.route, self.object_key)
        else:
            self.request_id = self.request_id or parent.request_id
            scope = replace(
                parent,
                request_id=self.request_id,
                route=self.route or parent.route,
                object_key=self.object_key if self.object_key is not None else parent.object_key,
            )
        self._token = _scope.set(scope)
        return self

    def __exit__(self, *args: Any) -> None:
        if self._token is not None:
            _scope.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "RequestContext":
        return self.__enter__()

    async def __aexit__(self, *args: Any) -> None:
        self.__exit__(*args)


class JSONFormatter(logging.Formatter):
    """Renders records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context: dict[str, Any] = {}
        scope = current_scope()
        if scope is not None:
            context.update(scope.fields())
        context.update(getattr(record, "context", None) or {})
        if context:
            data["context"] = context

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            data["error"] = {"type": type(exc).__name__, "message": str(exc)}

        duration_ms = getattr(record, "duration_ms", None)
        if duration_ms is not None:
            data["duration_ms"] = round(duration_ms, 3)

        return json.dumps(data, default=str)


class StructuredLogger(logging.LoggerAdapter):
    """Logger accepting context, error and duration_ms keywords.

    Example:
        logger = get_logger(__name__)
        logger.info("Listing served", context={"objects": 12}, duration_ms=4.2)
        logger.error("Store unavailable", error=exc)
    """

    def __init__(self, name: str) -> None:
        super().__init__(logging.getLogger(name), {})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        context = kwargs.pop("context", None)
        if context:
            extra["context"] = context
        duration_ms = kwargs.pop("duration_ms", None)
        if duration_ms is not None:
            extra["duration_ms"] = duration_ms
        error = kwargs.pop("error", None)
        if error is not None:
            kwargs["exc_info"] = (type(error), error, error.__traceback__)
        kwargs["extra"] = extra
        return msg, kwargs


class Timer:
    """Measures wall time of a block in milliseconds.

    Reading duration_ms inside the block gives the time elapsed so far.
    """

    def __init__(self) -> None:
        self._started: float | None = None
        self._stopped: float | None = None

    @property
    def duration_ms(self) -> float:
        if self._started is None:
            return 0.0
        stopped = self._stopped if self._stopped is not None else time.perf_counter()
        return (stopped - self._started) * 1000

    def __enter__(self) -> "Timer":
        self._started = time.perf_counter()
        self._stopped = None
        return self

    def __exit__(self, *args: Any) -> None:
        self._stopped = time.perf_counter()

    async def __aenter__(self) -> "Timer":
        return self.__enter__()

    async def __aexit__(self, *args: Any) -> None:
        self.__exit__(*args)


MetricCallback = Callable[[str, float, dict[str, Any]], None]


class MetricHooks:
    """Fan-out of metric samples to registered callbacks."""

    def __init__(self) -> None:
        self._callbacks: list[MetricCallback] = []

    def register(self, callback: MetricCallback) -> None:
        self._callbacks.append(callback)

    def clear(self) -> None:
        self._callbacks.clear()

    def emit(self, name: str, value: float, labels: dict[str, Any] | None = None) -> None:
        """Send one sample; the current route is added as a label."""
        if not self._callbacks:
            return
        labels = dict(labels or {})
        scope = current_scope()
        if scope is not None and scope.route:
            labels.setdefault("route", scope.route)

        for callback in list(self._callbacks):
            try:
                callback(name, value, labels)
            except Exception:
                # Callback errors never reach the caller
                logging.getLogger(ROOT_LOGGER).debug("Metric callback %r failed", callback, exc_info=True)


metrics = MetricHooks()


def register_metric_callback(callback: MetricCallback) -> None:
    """Register a callback receiving (name, value, labels) for every metric."""
    metrics.register(callback)


def clear_metric_callbacks() -> None:
    """Remove all registered metric callbacks."""
    metrics.clear()


def emit_metric(name: str, value: float, labels: dict[str, Any] | None = None) -> None:
    metrics.emit(name, value, labels)


def emit_counter(name: str, labels: dict[str, Any] | None = None) -> None:
    """Count one occurrence."""
    metrics.emit(name, 1.0, labels)


def emit_timer(name: str, duration_ms: float, labels: dict[str, Any] | None = None) -> None:
    metrics.emit(name, duration_ms, labels)


def configure_logging(level: str | int = "INFO", format: str = "json") -> None:
    """Send package logs to stdout.

    Args:
        level: Minimum level, as a name ("debug", "INFO") or number
        format: "json" for one JSON object per line, anything else for text
    """
    if isinstance(level, str):
        level = level.upper()

    package_logger = logging.getLogger(ROOT_LOGGER)
    package_logger.setLevel(level)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if format == "json" else logging.Formatter(TEXT_FORMAT))
    package_logger.addHandler(handler)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for a module (typically __name__)."""
    return StructuredLogger(name)
