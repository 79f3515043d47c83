"""
Tandem Logging — console lines or JSON lines, with credentials scrubbed.

setup_logging() installs one stdout handler on the root logger:

    text (default)          12:00:01 INFO    tandem.pipeline.orchestrator [3f9a1c reasoning]: ...
    TANDEM_LOG_FORMAT=json  {"ts": ..., "level": "info", "logger": ..., "msg": ..., "request_id": ...}

Both formatters pass their output through redact(). API tokens enter the
gateway as X-<Provider>-API-Token headers and leave it as Authorization or
x-api-key headers; a value written next to any of those names is masked,
and so is every secret handed to register_secret() (server-side keys).
Code that formats upstream text carrying a caller's token (an HTTP error
body, for instance) calls redact(text, token) before logging or returning it.

Pipeline extras, passed as logger.info(..., extra={...}):
    request_id, phase, provider, duration_ms, status
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
import time
from datetime import datetime, timezone

REDACTED = "[redacted]"

# Shorter values are too likely to occur in ordinary text
_MIN_SECRET_LENGTH = 8

_CREDENTIAL_FIELD = re.compile(
    r"(X-[A-Za-z0-9_]+-API-Token|Authorization|x-api-key)"
    r"([\"']?\s*[:=]\s*[\"']?)"
    r"(?:Bearer\s+)?[^\s\"',;}]+",
    re.IGNORECASE,
)
_BEARER = re.compile(r"(Bearer\s+)[^\s\"',;}]+", re.IGNORECASE)

_registered_secrets: set[str] = set()

PIPELINE_FIELDS = ("request_id", "phase", "provider", "duration_ms", "status")


def register_secret(value: str | None) -> None:
    """Mask this exact value in every log line from now on."""
    if value and len(value) >= _MIN_SECRET_LENGTH:
        _registered_secrets.add(value)


def redact(text: str, *secrets: str | None) -> str:
    """Mask credential header values, bearer tokens and known secrets in text."""
    for secret in (*secrets, *_registered_secrets):
        if secret and len(secret) >= _MIN_SECRET_LENGTH:
            text = text.replace(secret, REDACTED)
    text = _CREDENTIAL_FIELD.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", text)
    return _BEARER.sub(lambda m: f"{m.group(1)}{REDACTED}", text)


# ─── Formatters ──────────────────────────────────────────────────


class ConsoleFormatter(logging.Formatter):
    """One line per record, request id and phase in brackets when known."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = False):
        super().__init__(datefmt="%H:%M:%S")
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:<7}"
        if self.use_color:
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{self.RESET}"

        line = f"{self.formatTime(record, self.datefmt)} {level} {record.name}"
        context = [
            str(value)
            for value in (getattr(record, "request_id", None), getattr(record, "phase", None))
            if value
        ]
        if context:
            line += f" [{' '.join(context)}]"
        line += f": {record.getMessage()}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return redact(line)


class JsonFormatter(logging.Formatter):
    """One JSON object per record, pipeline extras at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname.lower(),
            "logger": record.name,
            "msg": redact(record.getMessage()),
        }
        for key in PIPELINE_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info:
            entry["exc"] = redact(self.formatException(record.exc_info))
        return json.dumps(entry, default=str, ensure_ascii=False)


# ─── Phase timing ────────────────────────────────────────────────


class PhaseTimer:
    """Wall-clock time spent in each pipeline phase.

        timer = PhaseTimer()
        timer.start("reasoning")
        ...
        timer.start("generation")   # closes "reasoning"
        ...
        timer.stop()
        timer.summary()  # "reasoning=2140ms generation=3381ms total=5523ms"
    """

    def __init__(self) -> None:
        self._started = time.monotonic()
        self._current: tuple[str, float] | None = None
        self._durations: dict[str, float] = {}

    def start(self, phase: str) -> None:
        self.stop()
        self._current = (phase, time.monotonic())

    def stop(self) -> None:
        if self._current is None:
            return
        phase, started = self._current
        self._durations[phase] = (time.monotonic() - started) * 1000
        self._current = None

    def durations_ms(self) -> dict[str, int]:
        return {phase: round(ms) for phase, ms in self._durations.items()}

    def total_ms(self) -> int:
        return round((time.monotonic() - self._started) * 1000)

    def summary(self) -> str:
        parts = [f"{phase}={ms}ms" for phase, ms in self.durations_ms().items()]
        parts.append(f"total={self.total_ms()}ms")
        return " ".join(parts)


# ─── Setup ───────────────────────────────────────────────────────


def _use_color() -> bool:
    setting = os.getenv("TANDEM_LOG_COLOR", "auto").lower()
    if setting in ("true", "1", "yes"):
        return True
    if setting in ("false", "0", "no"):
        return False
    return sys.stdout.isatty()


def setup_logging() -> None:
    """Configure the root logger once at startup.

    TANDEM_LOG_LEVEL   DEBUG / INFO / WARNING / ERROR (default INFO)
    TANDEM_LOG_FORMAT  text / json (default text)
    TANDEM_LOG_COLOR   true / false / auto (default auto: color on a TTY)
    """
    level_name = os.getenv("TANDEM_LOG_LEVEL", "INFO").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    log_format = os.getenv("TANDEM_LOG_FORMAT", "text").lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        JsonFormatter() if log_format == "json" else ConsoleFormatter(use_color=_use_color())
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    # httpx logs every upstream request line at INFO
    for name in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("tandem").debug(
        "Logging configured (level=%s, format=%s)", level_name, log_format
    )
