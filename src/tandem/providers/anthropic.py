"""
Anthropic adapter — the default generation provider (Messages API).

Stream events are typed (message_start, content_block_delta, message_delta,
...). Some deployments front Claude with an OpenAI-compatible proxy and
stream chat.completion chunks instead, so that layout is the last fallback.
"""

from __future__ import annotations

from tandem.llm.contracts import ProviderRequest
from tandem.providers.base import ProviderAdapter
from tandem.providers.decoders import (
    decode_anthropic_event,
    decode_anthropic_message,
    decode_openai_chunk,
)

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicAdapter(ProviderAdapter):
    decoders = (decode_anthropic_event, decode_anthropic_message, decode_openai_chunk)

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "x-api-key": api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
            "accept": "text/event-stream",
        }

    def build_body(self, request: ProviderRequest) -> dict:
        body: dict = {
            "messages": [m.to_dict() for m in request.messages],
            "stream": request.stream,
        }
        if request.system:
            body["system"] = request.system
        return body
