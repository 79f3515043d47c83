"""
Stream Multiplexer — turns a run's events into what the client receives.

Two modes, chosen once per request:

- aggregate(): buffer everything, return one JSON object
  ({reasoning_content, content, usage} or {"error": {...}})
- stream(): one SSE frame per event, in arrival order, then a terminal
  frame (done or error) and the `data: [DONE]` sentinel exactly once
"""

from __future__ import annotations

import json
import logging
from contextlib import aclosing
from typing import AsyncGenerator

from tandem.core.errors import GatewayError, status_for_kind
from tandem.llm.contracts import EventType, NormalizedEvent, PipelineResult, Usage
from tandem.pipeline.usage import UsageCollector

logger = logging.getLogger(__name__)

DONE_SENTINEL = "data: [DONE]\n\n"


def sse(data: dict) -> str:
    """Format a dict as an SSE data frame."""
    return f"data: {json.dumps(data, ensure_ascii=False)}\n\n"


def error_body(kind: str, message: str) -> dict:
    return {"error": {"type": kind, "message": message}}


# ─── Aggregate mode ──────────────────────────────────────────────


async def aggregate(
    events: AsyncGenerator[NormalizedEvent, None],
    verbose: bool = False,
    usage: UsageCollector | None = None,
) -> tuple[int, dict]:
    """Buffer a whole run. Returns (http_status, body).

    Nothing partial is ever returned: a fatal error anywhere replaces the
    result with a single error object.
    """
    reasoning: list[str] = []
    content: list[str] = []
    warnings: list[dict] = []
    final_usage: Usage | None = None

    try:
        async with aclosing(events) as source:
            async for event in source:
                if event.type == EventType.REASONING:
                    reasoning.append(event.text)
                elif event.type == EventType.CONTENT:
                    content.append(event.text)
                elif event.type == EventType.ERROR:
                    if event.fatal:
                        return status_for_kind(event.error_kind), error_body(
                            event.error_kind, event.message
                        )
                    warnings.append(event.to_dict()["error"])
                elif event.type == EventType.DONE:
                    final_usage = event.usage
    except GatewayError as e:
        return e.status_code, e.to_dict()
    except Exception as e:
        logger.error("Aggregate response error: %s", e, exc_info=True)
        return 500, error_body("internal_error", str(e))

    if final_usage is None:
        # Source ended without a terminal event
        return 500, error_body("internal_error", "Pipeline ended without a result")

    details: dict = {}
    if verbose:
        if usage is not None:
            details["phases"] = usage.summary()["phases"]
        if warnings:
            details["warnings"] = warnings

    result = PipelineResult(
        reasoning_content="".join(reasoning),
        content="".join(content),
        usage=final_usage,
        details=details,
    )
    return 200, result.to_dict()


# ─── Streaming mode ──────────────────────────────────────────────


async def stream(
    events: AsyncGenerator[NormalizedEvent, None],
    verbose: bool = False,
    usage: UsageCollector | None = None,
) -> AsyncGenerator[str, None]:
    """SSE frames for a run. Always closes with exactly one [DONE]."""
    terminal_sent = False

    try:
        async with aclosing(events) as source:
            async for event in source:
                frame = event.to_dict()
                if event.type == EventType.DONE:
                    if verbose and usage is not None:
                        frame["phases"] = usage.summary()["phases"]
                    terminal_sent = True
                elif event.is_fatal:
                    terminal_sent = True
                yield sse(frame)
                if terminal_sent:
                    break

    except GatewayError as e:
        logger.warning("Stream aborted: %s", e.message)
        yield sse(NormalizedEvent.provider_error(e.kind, e.message, fatal=True).to_dict())
        terminal_sent = True
    except Exception as e:
        logger.error("Stream error: %s", e, exc_info=True)
        yield sse(
            NormalizedEvent.provider_error("internal_error", str(e), fatal=True).to_dict()
        )
        terminal_sent = True

    if not terminal_sent:
        yield sse(
            NormalizedEvent.provider_error(
                "internal_error", "Pipeline ended without a result", fatal=True
            ).to_dict()
        )

    yield DONE_SENTINEL
