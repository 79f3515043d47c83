"""Tests for frame decoders — one upstream layout at a time."""

import pytest

from tandem.core.errors import UpstreamMalformedFrame
from tandem.llm.contracts import EventType, NormalizedEvent, Usage
from tandem.providers.decoders import (
    decode_anthropic_event,
    decode_anthropic_message,
    decode_openai_chunk,
    decode_openai_message,
    decode_openrouter_chunk,
    openai_usage,
    upstream_error_message,
)

from conftest import openai_chunk


# ─── OpenAI / DeepSeek chunks ────────────────────────────────────


def test_deepseek_reasoning_content_chunk():
    events = decode_openai_chunk(openai_chunk(role="assistant", content=None, reasoning_content="Hmm"))
    assert events == [NormalizedEvent.reasoning_delta("Hmm")]


def test_content_chunk():
    events = decode_openai_chunk(openai_chunk(content="Three"))
    assert events == [NormalizedEvent.content_delta("Three")]


def test_role_only_chunk_yields_nothing():
    assert decode_openai_chunk(openai_chunk(role="assistant", content="")) == []


def test_reasoning_under_other_key_is_rejected_then_decoded_by_fallback():
    frame = openai_chunk(reasoning="step one")
    with pytest.raises(UpstreamMalformedFrame):
        decode_openai_chunk(frame)
    assert decode_openrouter_chunk(frame) == [NormalizedEvent.reasoning_delta("step one")]


def test_chunk_without_delta_raises():
    with pytest.raises(KeyError):
        decode_openai_chunk({"choices": [{"index": 0, "message": {"content": "x"}}]})


def test_non_string_content_raises():
    with pytest.raises(UpstreamMalformedFrame):
        decode_openai_chunk(openai_chunk(content=42))


def test_usage_only_chunk():
    events = decode_openai_chunk(
        {"choices": [], "usage": {"prompt_tokens": 10, "completion_tokens": 20}}
    )
    assert events == [NormalizedEvent.usage_summary(Usage(10, 20, 0))]


def test_frame_with_neither_choices_nor_usage_raises():
    with pytest.raises(UpstreamMalformedFrame):
        decode_openai_chunk({"id": "x"})


def test_openai_message_payload():
    payload = {
        "choices": [
            {"index": 0, "message": {"role": "assistant", "reasoning_content": "think", "content": "answer"}}
        ],
        "usage": {"prompt_tokens": 5, "completion_tokens": 7},
    }
    assert decode_openai_message(payload) == [
        NormalizedEvent.reasoning_delta("think"),
        NormalizedEvent.content_delta("answer"),
        NormalizedEvent.usage_summary(Usage(5, 7, 0)),
    ]


def test_openai_message_with_reasoning_alias():
    payload = {"choices": [{"message": {"reasoning": "think", "content": "answer"}}]}
    assert [e.type for e in decode_openai_message(payload)] == [EventType.REASONING, EventType.CONTENT]


def test_openai_message_without_content_raises():
    with pytest.raises(UpstreamMalformedFrame):
        decode_openai_message({"choices": [{"message": {"role": "assistant"}}]})


# ─── Usage defaults ──────────────────────────────────────────────


def test_usage_missing_fields_default_to_zero():
    assert openai_usage({"prompt_tokens": 3}) == Usage(prompt_tokens=3)


def test_usage_reasoning_tokens_nested():
    usage = openai_usage(
        {"prompt_tokens": 1, "completion_tokens": 9, "completion_tokens_details": {"reasoning_tokens": 6}}
    )
    assert usage == Usage(1, 9, 6)


def test_usage_reasoning_tokens_top_level():
    assert openai_usage({"completion_tokens": 9, "reasoning_tokens": 4}).reasoning_tokens == 4


def test_usage_garbage_counts_are_zero():
    assert openai_usage({"prompt_tokens": "many", "completion_tokens": None}) == Usage()


def test_usage_absent():
    assert openai_usage(None) is None


# ─── Anthropic ───────────────────────────────────────────────────


def test_anthropic_text_delta():
    events = decode_anthropic_event(
        {"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": "Hi"}}
    )
    assert events == [NormalizedEvent.content_delta("Hi")]


def test_anthropic_thinking_delta():
    events = decode_anthropic_event(
        {"type": "content_block_delta", "index": 0, "delta": {"type": "thinking_delta", "thinking": "so"}}
    )
    assert events == [NormalizedEvent.reasoning_delta("so")]


def test_anthropic_text_delta_without_text_raises():
    with pytest.raises(KeyError):
        decode_anthropic_event({"type": "content_block_delta", "delta": {"type": "text_delta"}})


def test_anthropic_usage_split_across_events():
    start = decode_anthropic_event(
        {"type": "message_start", "message": {"id": "m", "usage": {"input_tokens": 25, "output_tokens": 1}}}
    )
    delta = decode_anthropic_event(
        {"type": "message_delta", "delta": {"stop_reason": "end_turn"}, "usage": {"output_tokens": 15}}
    )
    total = start[0].usage + delta[0].usage
    assert total == Usage(prompt_tokens=25, completion_tokens=15)


def test_anthropic_message_delta_without_usage():
    assert decode_anthropic_event({"type": "message_delta", "delta": {}}) == []


@pytest.mark.parametrize("event_type", ["ping", "content_block_stop", "message_stop"])
def test_anthropic_silent_events(event_type):
    assert decode_anthropic_event({"type": event_type}) == []


def test_anthropic_unknown_event_raises():
    with pytest.raises(UpstreamMalformedFrame):
        decode_anthropic_event({"type": "mystery"})


def test_anthropic_rejects_openai_chunk():
    with pytest.raises(KeyError):
        decode_anthropic_event(openai_chunk(content="x"))


def test_anthropic_message_payload():
    payload = {
        "type": "message",
        "content": [{"type": "thinking", "thinking": "hm"}, {"type": "text", "text": "Done."}],
        "usage": {"input_tokens": 4},
    }
    assert decode_anthropic_message(payload) == [
        NormalizedEvent.reasoning_delta("hm"),
        NormalizedEvent.content_delta("Done."),
        NormalizedEvent.usage_summary(Usage(prompt_tokens=4)),
    ]


# ─── In-band errors ──────────────────────────────────────────────


def test_upstream_error_openai_layout():
    assert upstream_error_message({"error": {"message": "Insufficient Balance"}}) == "Insufficient Balance"


def test_upstream_error_anthropic_layout():
    payload = {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}
    assert upstream_error_message(payload) == "Overloaded"


def test_ordinary_frame_is_not_an_error():
    assert upstream_error_message(openai_chunk(content="x")) is None
