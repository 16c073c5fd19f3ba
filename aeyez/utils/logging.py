"""
Structured JSON logging for Aeyez.

Modules log through logging.getLogger(__name__). The run orchestrator
attaches the run id and per-cell data (query, provider, scores) with
log_with_context(), and setup_logging() renders every record as one JSON
line on stderr with provider credentials redacted.

Examples:
    >>> setup_logging(verbose=True)
    >>> log_with_context(
    ...     logging.getLogger("aeyez.runner.orchestrator"),
    ...     logging.INFO,
    ...     "Cell scored",
    ...     context={"query_id": "q1", "provider": "openai", "accuracy": 82},
    ...     run_id="5f0c9a...",
    ... )
    {"timestamp": "...", "level": "INFO", "component": "aeyez.runner.orchestrator",
     "message": "Cell scored", "run_id": "5f0c9a...", "context": {...}}
"""

import json
import logging
import re
import sys
from typing import Any, TextIO

from aeyez.utils.time import utc_timestamp


class JSONFormatter(logging.Formatter):
    """
    Render a record as a single JSON object.

    Keys: timestamp, level, component (logger name), message, plus run_id,
    context and exception when the record carries them.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": utc_timestamp(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        run_id = getattr(record, "run_id", None)
        if run_id is not None:
            log_entry["run_id"] = run_id

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            log_entry["context"] = context

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        # Scores, enums and timestamps in context fall back to str()
        return json.dumps(log_entry, default=str)


class SecretRedactingFilter(logging.Filter):
    """
    Mask provider credentials in messages, arguments and context values.

    OpenAI keys, Google keys and bearer tokens keep their prefix and last four
    characters ("sk-...3456", "AIza...mnop"). A "key=" query parameter, as in
    Gemini URLs, is blanked entirely. Any other opaque token of 32+
    characters keeps only its last four characters.
    """

    SECRET_PATTERNS = [
        (re.compile(r"\bsk-[a-zA-Z0-9_-]{20,}"), lambda m: f"sk-...{m.group(0)[-4:]}"),
        (re.compile(r"\bAIza[a-zA-Z0-9_-]{20,}"), lambda m: f"AIza...{m.group(0)[-4:]}"),
        (
            re.compile(r"\bBearer\s+[a-zA-Z0-9._-]{20,}"),
            lambda m: f"Bearer ***{m.group(0)[-4:]}",
        ),
        (re.compile(r"([?&]key=)[^&\s\"']+"), lambda m: f"{m.group(1)}***"),
        (re.compile(r"\b[a-zA-Z0-9_-]{32,}\b"), lambda m: f"***{m.group(0)[-4:]}"),
    ]

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = self.redact(str(record.msg))

        if isinstance(record.args, dict):
            record.args = {k: self._redact_value(v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple):
            record.args = tuple(self._redact_value(arg) for arg in record.args)

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            record.context = self._redact_value(context)

        return True

    def redact(self, text: str) -> str:
        for pattern, replacement in self.SECRET_PATTERNS:
            text = pattern.sub(replacement, text)
        return text

    def _redact_value(self, value: Any) -> Any:
        # Numbers in args must survive for %d / %.2f formatting
        if isinstance(value, str):
            return self.redact(value)
        if isinstance(value, dict):
            return {k: self._redact_value(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return type(value)(self._redact_value(v) for v in value)
        return value


def setup_logging(verbose: bool = False, stream: TextIO | None = None) -> None:
    """
    Install one JSON handler with secret redaction on the root logger.

    Existing root handlers are replaced. httpx request logging is lowered to
    WARNING: its INFO lines carry full request URLs.

    Args:
        verbose: DEBUG when True (per-cell scores), INFO otherwise
        stream: Output stream, stderr by default
    """
    level = logging.DEBUG if verbose else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(SecretRedactingFilter())
    root_logger.addHandler(handler)

    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    context: dict[str, Any] | None = None,
    run_id: str | None = None,
    exc_info: bool = False,
) -> None:
    """Log message with structured context and the run it belongs to."""
    extra: dict[str, Any] = {}
    if context is not None:
        extra["context"] = context
    if run_id is not None:
        extra["run_id"] = run_id

    logger.log(level, message, extra=extra or None, exc_info=exc_info)
