"""
Logging configuration with request_id correlation.
Structured logging for Cloud Logging compatibility.

PII Protection:
- Never log access tokens, JWT assertions, private keys or raw emails
- Use fingerprints (sha256[:8]) for correlation
- Emails go through mask_email()
"""
import hashlib
import logging
import re
import sys
import uuid
import json
from contextvars import ContextVar
from typing import Dict, Optional
from datetime import datetime, timezone

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


def fingerprint(value: Optional[str], prefix: str = "") -> str:
    """
    Create a safe fingerprint for logging secret values.

    Args:
        value: The sensitive value to fingerprint (token, assertion, key, ...)
        prefix: Optional prefix for the fingerprint (e.g., "tok_")

    Returns:
        8-char hex fingerprint with optional prefix, or "none" if value is None/empty

    Example:
        fingerprint("eyJ0eXAiOi...", "tok_") -> "tok_a1b2c3d4"
    """
    if not value:
        return f"{prefix}none" if prefix else "none"
    fp = hashlib.sha256(value.encode()).hexdigest()[:8]
    return f"{prefix}{fp}" if prefix else fp


def mask_email(email: Optional[str]) -> str:
    """Mask email for safe logging: john@example.com -> j***@e***.com"""
    if not email or "@" not in email:
        return "***"
    local, domain = email.split("@", 1)
    domain_parts = domain.split(".")
    masked_local = local[0] + "***" if local else "***"
    masked_domain = domain_parts[0][0] + "***" if domain_parts[0] else "***"
    return f"{masked_local}@{masked_domain}.{domain_parts[-1] if len(domain_parts) > 1 else 'com'}"


# Context variables for request correlation
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
doc_id_var: ContextVar[Optional[str]] = ContextVar("doc_id", default=None)
template_id_var: ContextVar[Optional[str]] = ContextVar("template_id", default=None)
envelope_id_var: ContextVar[Optional[str]] = ContextVar("envelope_id", default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def set_context(
    doc_id: Optional[str] = None,
    template_id: Optional[str] = None,
    envelope_id: Optional[str] = None,
) -> None:
    """
    Set logging context variables.

    Args:
        doc_id: Caller's business document id (safe to log)
        template_id: Provider template id (safe to log)
        envelope_id: Provider envelope id (safe to log)
    """
    if doc_id:
        doc_id_var.set(doc_id)
    if template_id:
        template_id_var.set(template_id)
    if envelope_id:
        envelope_id_var.set(envelope_id)


_CONTEXT_VARS = (
    ("request_id", request_id_var),
    ("doc_id", doc_id_var),
    ("template_id", template_id_var),
    ("envelope_id", envelope_id_var),
)


def current_context() -> Dict[str, str]:
    """Snapshot of the non-empty correlation ids for the current request."""
    return {key: var.get() for key, var in _CONTEXT_VARS if var.get()}


def clear_context() -> None:
    for _, var in _CONTEXT_VARS:
        var.set(None)


class CloudLoggingFormatter(logging.Formatter):
    """JSON lines in the Cloud Logging structured format, with correlation ids."""

    def format(self, record: logging.LogRecord) -> str:
        context = current_context()
        log_entry = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "logger": record.name,
            "logging.googleapis.com/sourceLocation": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
            **context,
        }
        if "request_id" in context:
            log_entry["logging.googleapis.com/trace"] = context["request_id"]
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


class DevelopmentFormatter(logging.Formatter):
    """[LEVEL] [req] [doc:..] [tpl:..] [env:..] message"""

    TAGS = (("doc_id", "doc"), ("template_id", "tpl"), ("envelope_id", "env"))

    def format(self, record: logging.LogRecord) -> str:
        context = current_context()
        parts = [f"[{record.levelname}]", f"[{context.get('request_id', '-')[:8]}]"]
        parts += [f"[{tag}:{context[key][:12]}]" for key, tag in self.TAGS if key in context]

        message = f"{' '.join(parts)} {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message



def setup_logging(environment: str = "development", level: int = logging.INFO) -> None:
    """
    Configure logging based on environment.
    - production: JSON structured logs for Cloud Logging
    - development: Human-readable format
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    if environment == "production":
        handler.setFormatter(CloudLoggingFormatter())
    else:
        handler.setFormatter(DevelopmentFormatter())

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


_PATH_IDS = re.compile(r"/(envelopes|templates)/([^/]+)")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that assigns a unique request_id to each request.
    Also picks up envelope/template ids from the path when present.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        set_request_id(request_id)

        for kind, value in _PATH_IDS.findall(request.url.path):
            if kind == "envelopes":
                set_context(envelope_id=value)
            else:
                set_context(template_id=value)

        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the given name."""
    return logging.getLogger(name)
