"""
OpenAI-compatible adapter — any /chat/completions endpoint.

Used for alternate generation providers such as Qwen through DashScope's
compatible mode. Bearer auth, system prompt as the first message.
"""

from __future__ import annotations

from tandem.llm.contracts import ProviderRequest
from tandem.providers.base import ProviderAdapter
from tandem.providers.decoders import decode_openai_chunk, decode_openai_message


class OpenAICompatibleAdapter(ProviderAdapter):
    decoders = (decode_openai_chunk, decode_openai_message)

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def build_body(self, request: ProviderRequest) -> dict:
        messages = [m.to_dict() for m in request.messages]
        if request.system:
            messages.insert(0, {"role": "system", "content": request.system})
        return {"messages": messages, "stream": request.stream}
