"""Structured logging for the cache client.

Modules log through ``logging.getLogger(__name__)``; :func:`configure_logging`
routes those records through structlog so each line carries the client name,
the session generation it was emitted under, and the active trace ids.
Bearer tokens and ``token=`` query values never reach a handler.

With a log root, two JSON files are written per client::

    {log_root}/shiftdesk/{client}.log   cache, orchestrator and repository logs
    {log_root}/http/{client}.log        httpx / httpcore transport logs
"""

from __future__ import annotations

import logging
import os
import re
import sys
from contextvars import ContextVar
from pathlib import Path

import structlog
from opentelemetry import trace

_client_context: ContextVar[str | None] = ContextVar("client_name", default=None)
_session_context: ContextVar[int | None] = ContextVar("session_generation", default=None)

_NOISE_LOGGERS = ("httpx", "httpcore")

_CLIENT_DIR = "shiftdesk"
_HTTP_DIR = "http"

_ZERO_TRACE_ID = "0" * 32
_ZERO_SPAN_ID = "0" * 16


def set_client_context(name: str) -> None:
    _client_context.set(name)


def get_client_context() -> str | None:
    return _client_context.get()


def set_session_context(generation: int | None) -> None:
    """Tag subsequent log lines with a session generation (None once logged out)."""
    _session_context.set(generation)


def get_session_context() -> int | None:
    return _session_context.get()


# ---------------------------------------------------------------------------
# Processors
# ---------------------------------------------------------------------------


def add_client_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    event_dict["client"] = _client_context.get()
    event_dict["generation"] = _session_context.get()
    return event_dict


def add_otel_context(
    logger: logging.Logger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: dict,
) -> dict:
    """Attach the current span's ids; zeroed outside any span."""
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict["trace_id"] = format(span_context.trace_id, "032x")
        event_dict["span_id"] = format(span_context.span_id, "016x")
    else:
        event_dict["trace_id"] = _ZERO_TRACE_ID
        event_dict["span_id"] = _ZERO_SPAN_ID
    return event_dict


def _pre_chain(time_fmt: str) -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt=time_fmt),
        add_client_context,
        add_otel_context,
        structlog.stdlib.ExtraAdder(),
    ]


# ---------------------------------------------------------------------------
# Credential redaction
# ---------------------------------------------------------------------------

_REDACTION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/|]+=*", re.IGNORECASE),
    re.compile(r"((?:access_)?token=)[^&\s\"']+", re.IGNORECASE),
)


class CredentialRedactionFilter(logging.Filter):
    """Scrub API tokens from the rendered message, args included."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = message
        for pattern in _REDACTION_PATTERNS:
            redacted = pattern.sub(r"\1[REDACTED]", redacted)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def resolve_log_root(configured: str | Path | None) -> Path | None:
    """Pick the log directory for file output, or None for console only.

    ``SHIFTDESK_DISABLE_FILE_LOGGING=1`` always wins; ``SHIFTDESK_LOG_ROOT``
    overrides *configured*; the default is ``logs``.  ``"none"`` or
    ``"off"`` disables file output.
    """
    if os.environ.get("SHIFTDESK_DISABLE_FILE_LOGGING", "").strip() in ("1", "true", "yes"):
        return None
    raw = os.environ.get("SHIFTDESK_LOG_ROOT")
    if raw is None:
        raw = "logs" if configured is None else str(configured)
    if raw.strip().lower() in ("", "none", "off"):
        return None
    return Path(raw)


def _formatter(
    renderer: structlog.types.Processor, pre_chain: list[structlog.types.Processor]
) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=pre_chain,
    )


def _json_file_handler(path: Path) -> logging.FileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path)
    handler.setFormatter(_formatter(structlog.processors.JSONRenderer(), _pre_chain("iso")))
    handler.addFilter(CredentialRedactionFilter())
    handler.setLevel(logging.DEBUG)
    return handler


def configure_logging(
    level: str = "INFO",
    fmt: str = "text",
    log_root: Path | None = None,
    client_name: str | None = None,
) -> None:
    """Route all stdlib logging through structlog.

    *fmt* is ``"text"`` (colored console) or ``"json"`` (one object per
    line).  Reconfiguring replaces the root handlers.
    """
    if client_name:
        set_client_context(client_name)

    if fmt == "json":
        pre_chain = _pre_chain("iso")
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        pre_chain = _pre_chain("%H:%M:%S")
        renderer = structlog.dev.ConsoleRenderer()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(renderer, pre_chain))
    console.addFilter(CredentialRedactionFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    noise = [logging.getLogger(name) for name in _NOISE_LOGGERS]
    for noisy in noise:
        noisy.setLevel(logging.WARNING)

    if log_root is not None:
        file_name = f"{client_name or 'shiftdesk'}.log"
        root.addHandler(_json_file_handler(Path(log_root) / _CLIENT_DIR / file_name))
        http_handler = _json_file_handler(Path(log_root) / _HTTP_DIR / file_name)
        for noisy in noise:
            noisy.addHandler(http_handler)

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
