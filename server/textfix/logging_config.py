from __future__ import annotations

import os
import re
import sys
import time
from pathlib import Path
from typing import Any

from loguru import logger

_CONFIGURED = False

# Bearer tokens and `key=` query parameters must never reach a sink.
_SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[A-Za-z0-9._\-]+"),
    re.compile(r"([?&]key=)[^&\s'\"]+"),
)

_TRACE_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


def redact(message: str) -> str:
    for pattern in _SECRET_PATTERNS:
        message = pattern.sub(r"\1***", message)
    return message


def _scrub_record(record: dict) -> None:
    record["message"] = redact(record["message"])


LOG_FORMAT = (
    "<green>[{time:YYYY-MM-DD HH:mm:ss.SSS}]</green> "
    "<level>[{level: <5}]</level> "
    "<cyan>[{extra[module]: <8}]</cyan> "
    "{extra[trace_id]}{message}"
)
PLAIN_LOG_FORMAT = re.sub(r"</?(green|level|cyan)>", "", LOG_FORMAT)


def add_sink(sink: Any, *, level: str, fmt: str = PLAIN_LOG_FORMAT, **kwargs: Any) -> int:
    """Attach a sink with tracebacks but without variable values.

    ``diagnose`` is forced off: frame locals in an upstream failure hold the
    request headers and the ``key=`` query string.
    """
    kwargs.pop("diagnose", None)
    return logger.add(sink, format=fmt, level=level, backtrace=True, diagnose=False, **kwargs)


def setup_logging() -> Any:
    """Configure TextFix logging (loguru).

    The level comes from ``TEXTFIX_LOG`` (default WARNING).
    Setting ``TEXTFIX_LOG_FILE`` adds a daily rotated file under ``logs/``.
    Calling it again is a no-op.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return logger

    logger.remove()
    logger.configure(patcher=_scrub_record, extra={"module": "server", "trace_id": ""})

    level = os.getenv("TEXTFIX_LOG", "WARNING").upper()

    add_sink(sys.stderr, level=level, fmt=LOG_FORMAT, colorize=True, enqueue=True)

    if os.getenv("TEXTFIX_LOG_FILE"):
        Path("logs").mkdir(parents=True, exist_ok=True)
        add_sink(
            "logs/textfix_{time:YYYY-MM-DD}.log",
            level=level,
            fmt=PLAIN_LOG_FORMAT,
            enqueue=True,
            rotation="00:00",
            retention="7 days",
            compression="gz",
        )

    _CONFIGURED = True
    return logger


def get_logger(module: str):
    """Module-scoped logger; the id is cut to 8 chars to keep columns aligned."""
    module = (module or "server")[:8]
    return logger.bind(module=module, trace_id="")


def with_trace(log, trace_id: str):
    trace_id = (trace_id or "").strip()
    if trace_id:
        return log.bind(trace_id=f"[t:{trace_id}] ")
    return log.bind(trace_id="")


def generate_trace_id() -> str:
    """6-char base62 id derived from the current microsecond clock."""
    micros = int(time.time_ns() // 1000)
    n = micros & 0xFFFFFFFF
    out = []
    for _ in range(6):
        out.append(_TRACE_ALPHABET[n % 62])
        n //= 62
    return "".join(reversed(out))
