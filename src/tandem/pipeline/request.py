"""
GatewayRequest — the parsed client request the pipeline runs on.

Accepted body:
    {
      "stream": false, "verbose": false,
      "system": "...", "model": "...",
      "messages": [{"role": "user", "content": "..."}],
      "deepseek_config": {"headers": {...}, "body": {...}},
      "anthropic_config": {...}
    }
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from tandem.core.errors import InvalidRequest
from tandem.llm.contracts import Message, ProviderOverrides

_ROLES = ("user", "assistant")
_CONFIG_SUFFIX = "_config"


def _text_of(content: Any, index: int) -> str:
    """Message text; content-part arrays ({"type": "text", "text"}) are joined."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        texts = [
            part.get("text", "")
            for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        ]
        return "".join(texts)
    raise InvalidRequest(f"messages[{index}].content must be a string or a list of parts")


def _overrides(value: Any, key: str) -> ProviderOverrides:
    if not isinstance(value, dict):
        raise InvalidRequest(f"{key} must be an object")
    headers = value.get("headers") or {}
    body = value.get("body") or {}
    if not isinstance(headers, dict) or not isinstance(body, dict):
        raise InvalidRequest(f"{key}.headers and {key}.body must be objects")
    return ProviderOverrides(
        headers={str(k): str(v) for k, v in headers.items()},
        body=dict(body),
    )


@dataclass
class GatewayRequest:
    messages: list[Message]
    system: str | None = None
    model: str | None = None
    stream: bool = False
    verbose: bool = False
    overrides: dict[str, ProviderOverrides] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> "GatewayRequest":
        """Validate a decoded JSON body. Raises InvalidRequest."""
        if not isinstance(payload, dict):
            raise InvalidRequest("Request body must be a JSON object")

        raw_messages = payload.get("messages")
        if not isinstance(raw_messages, list) or not raw_messages:
            raise InvalidRequest("messages must be a non-empty array")

        system = payload.get("system")
        if system is not None and not isinstance(system, str):
            raise InvalidRequest("system must be a string")

        lifted_system: list[str] = []
        messages: list[Message] = []
        for i, raw in enumerate(raw_messages):
            if not isinstance(raw, dict):
                raise InvalidRequest(f"messages[{i}] must be an object")
            role = raw.get("role")
            text = _text_of(raw.get("content", ""), i)
            if role == "system":
                # Upstreams take the system prompt separately
                lifted_system.append(text)
                continue
            if role not in _ROLES:
                raise InvalidRequest(f"messages[{i}].role must be user, assistant or system")
            messages.append(Message(role=role, content=text))

        if not messages:
            raise InvalidRequest("messages must contain at least one user or assistant message")
        if system is None and lifted_system:
            system = "\n\n".join(lifted_system)

        model = payload.get("model")
        if model is not None and not isinstance(model, str):
            raise InvalidRequest("model must be a string")

        for flag in ("stream", "verbose"):
            if not isinstance(payload.get(flag, False), bool):
                raise InvalidRequest(f"{flag} must be true or false")

        overrides = {
            key[: -len(_CONFIG_SUFFIX)]: _overrides(value, key)
            for key, value in payload.items()
            if key.endswith(_CONFIG_SUFFIX) and value is not None
        }

        return cls(
            messages=messages,
            system=system or None,
            model=model or None,
            stream=payload.get("stream", False),
            verbose=payload.get("verbose", False),
            overrides=overrides,
        )

    def overrides_for(self, provider: str) -> ProviderOverrides:
        return self.overrides.get(provider, ProviderOverrides())
