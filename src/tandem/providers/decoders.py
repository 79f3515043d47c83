"""
Frame decoders — one upstream JSON frame in, normalized events out.

Different deployments of the same model family put the same thing under
different keys (DeepSeek sends `reasoning_content`, OpenRouter sends
`reasoning`; Anthropic streams typed events, its proxies stream OpenAI
chunks). Each adapter owns an ordered tuple of these decoders and takes the
first one that accepts a frame.

A decoder either returns a (possibly empty) list of events or raises
UpstreamMalformedFrame / a lookup error meaning "not my layout". Decoders
are pure: the same payload always produces the same events.
"""

from __future__ import annotations

from typing import Any, Callable

from tandem.core.errors import UpstreamMalformedFrame
from tandem.llm.contracts import NormalizedEvent, Usage

Decoder = Callable[[dict], list[NormalizedEvent]]

# Delta/message fields an OpenAI-layout decoder may see and safely ignore
_OPENAI_PASSIVE_KEYS = frozenset(
    {"role", "tool_calls", "function_call", "refusal", "audio", "annotations"}
)


def _count(value: Any) -> int:
    """A token count, or 0 when absent or not a number."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)


def _require_dict(value: Any, what: str) -> dict:
    if not isinstance(value, dict):
        raise UpstreamMalformedFrame(f"{what} is not an object")
    return value


def _optional_text(container: dict, key: str) -> str:
    value = container.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise UpstreamMalformedFrame(f"'{key}' is not a string")
    return value


# ─── OpenAI chat completions layout ──────────────────────────────


def openai_usage(usage: Any) -> Usage | None:
    """Usage from an OpenAI-style `usage` object.

    reasoning_tokens lives under completion_tokens_details on OpenAI and
    some DeepSeek deployments, at the top level on others, nowhere on most.
    """
    if not isinstance(usage, dict):
        return None
    details = usage.get("completion_tokens_details")
    if isinstance(details, dict) and "reasoning_tokens" in details:
        reasoning = details["reasoning_tokens"]
    else:
        reasoning = usage.get("reasoning_tokens")
    return Usage(
        prompt_tokens=_count(usage.get("prompt_tokens")),
        completion_tokens=_count(usage.get("completion_tokens")),
        reasoning_tokens=_count(reasoning),
    )


def _decode_openai(payload: dict, container: str, reasoning_key: str) -> list[NormalizedEvent]:
    choices = payload.get("choices")
    usage = openai_usage(payload.get("usage"))

    if choices is None:
        if usage is None:
            raise UpstreamMalformedFrame("no 'choices' and no 'usage'")
        return [NormalizedEvent.usage_summary(usage)]
    if not isinstance(choices, list):
        raise UpstreamMalformedFrame("'choices' is not a list")

    known = _OPENAI_PASSIVE_KEYS | {"content", reasoning_key}
    events: list[NormalizedEvent] = []

    for choice in choices:
        choice = _require_dict(choice, "choice")
        body = _require_dict(choice[container], container)

        # A text field we don't know means a different layout; let the next decoder try
        unknown = [
            key
            for key, value in body.items()
            if key not in known and isinstance(value, str) and value
        ]
        if unknown:
            raise UpstreamMalformedFrame(f"unrecognized {container} fields: {unknown}")

        if container == "message" and "content" not in body:
            raise UpstreamMalformedFrame("message has no 'content'")

        reasoning = _optional_text(body, reasoning_key)
        content = _optional_text(body, "content")
        if reasoning:
            events.append(NormalizedEvent.reasoning_delta(reasoning))
        if content:
            events.append(NormalizedEvent.content_delta(content))

    if usage is not None:
        events.append(NormalizedEvent.usage_summary(usage))
    return events


def decode_openai_chunk(payload: dict) -> list[NormalizedEvent]:
    """Streaming chunk, reasoning under `delta.reasoning_content` (DeepSeek)."""
    return _decode_openai(payload, "delta", "reasoning_content")


def decode_openrouter_chunk(payload: dict) -> list[NormalizedEvent]:
    """Streaming chunk, reasoning under `delta.reasoning` (OpenRouter et al.)."""
    return _decode_openai(payload, "delta", "reasoning")


def decode_openai_message(payload: dict) -> list[NormalizedEvent]:
    """Non-streaming completion: `choices[].message`."""
    try:
        return _decode_openai(payload, "message", "reasoning_content")
    except UpstreamMalformedFrame:
        return _decode_openai(payload, "message", "reasoning")


# ─── Anthropic Messages layout ───────────────────────────────────


_ANTHROPIC_SILENT_EVENTS = frozenset(
    {"ping", "content_block_stop", "message_stop"}
)


def _anthropic_block(block: dict) -> list[NormalizedEvent]:
    block_type = block.get("type")
    if block_type == "text":
        text = block["text"]
        if not isinstance(text, str):
            raise UpstreamMalformedFrame("text block 'text' is not a string")
        return [NormalizedEvent.content_delta(text)] if text else []
    if block_type == "thinking":
        thinking = _optional_text(block, "thinking")
        return [NormalizedEvent.reasoning_delta(thinking)] if thinking else []
    # tool_use, redacted_thinking, ... carry nothing we forward
    return []


def decode_anthropic_event(payload: dict) -> list[NormalizedEvent]:
    """One Messages API stream event.

    Input tokens arrive in message_start, output tokens (cumulative) in
    message_delta; each is reported once so a straight sum is correct.
    """
    event_type = payload["type"]

    if event_type in _ANTHROPIC_SILENT_EVENTS:
        return []

    if event_type == "message_start":
        message = _require_dict(payload["message"], "message")
        usage = message.get("usage")
        if not isinstance(usage, dict):
            return []
        return [
            NormalizedEvent.usage_summary(
                Usage(prompt_tokens=_count(usage.get("input_tokens")))
            )
        ]

    if event_type == "content_block_start":
        return _anthropic_block(_require_dict(payload["content_block"], "content_block"))

    if event_type == "content_block_delta":
        delta = _require_dict(payload["delta"], "delta")
        delta_type = delta.get("type")
        if delta_type == "text_delta":
            text = delta["text"]
            if not isinstance(text, str):
                raise UpstreamMalformedFrame("text_delta 'text' is not a string")
            return [NormalizedEvent.content_delta(text)] if text else []
        if delta_type == "thinking_delta":
            thinking = _optional_text(delta, "thinking")
            return [NormalizedEvent.reasoning_delta(thinking)] if thinking else []
        if delta_type in ("signature_delta", "input_json_delta", "citations_delta"):
            return []
        raise UpstreamMalformedFrame(f"unknown delta type: {delta_type!r}")

    if event_type == "message_delta":
        usage = payload.get("usage")
        if not isinstance(usage, dict):
            return []
        return [
            NormalizedEvent.usage_summary(
                Usage(completion_tokens=_count(usage.get("output_tokens")))
            )
        ]

    raise UpstreamMalformedFrame(f"unknown event type: {event_type!r}")


def decode_anthropic_message(payload: dict) -> list[NormalizedEvent]:
    """Non-streaming Messages API response."""
    blocks = payload["content"]
    if not isinstance(blocks, list):
        raise UpstreamMalformedFrame("'content' is not a list")

    events: list[NormalizedEvent] = []
    for block in blocks:
        events.extend(_anthropic_block(_require_dict(block, "content block")))

    usage = payload.get("usage")
    if isinstance(usage, dict):
        events.append(
            NormalizedEvent.usage_summary(
                Usage(
                    prompt_tokens=_count(usage.get("input_tokens")),
                    completion_tokens=_count(usage.get("output_tokens")),
                )
            )
        )
    return events


# ─── In-band errors ──────────────────────────────────────────────


def upstream_error_message(payload: dict) -> str | None:
    """The message of an in-band error object, None for ordinary frames.

    OpenAI layout: {"error": {"message": ...}}
    Anthropic layout: {"type": "error", "error": {"type": ..., "message": ...}}
    """
    error = payload.get("error")
    if payload.get("type") != "error" and not error:
        return None
    if isinstance(error, dict):
        message = error.get("message") or error.get("type") or "unknown error"
        return str(message)
    if isinstance(error, str):
        return error
    return "unknown error"
