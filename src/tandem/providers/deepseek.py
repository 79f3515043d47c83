"""
DeepSeek adapter — the default reasoning provider.

DeepSeek's reasoner streams its chain of thought as `delta.reasoning_content`
and then the answer as `delta.content`. Hosted copies of the same model
(OpenRouter, some self-hosted gateways) rename the field to `delta.reasoning`,
so both layouts are decoded. Usage sometimes carries
`completion_tokens_details.reasoning_tokens`, sometimes nothing.
"""

from __future__ import annotations

from tandem.providers.decoders import (
    decode_openai_chunk,
    decode_openai_message,
    decode_openrouter_chunk,
)
from tandem.providers.openai_compat import OpenAICompatibleAdapter


class DeepSeekAdapter(OpenAICompatibleAdapter):
    decoders = (decode_openai_chunk, decode_openrouter_chunk, decode_openai_message)

    def prepare(self, request, api_key):
        headers, body = super().prepare(request, api_key)
        # Ask for the trailing usage chunk unless the caller chose otherwise
        if request.stream:
            body.setdefault("stream_options", {"include_usage": True})
        return headers, body
