"""
LLM Contracts — the provider-agnostic shapes every phase speaks.

- ProviderRequest: what an adapter is asked to send (one per phase)
- NormalizedEvent: what an adapter yields, whatever the upstream wire looks like
- Usage: token counts, each field optional upstream and zero when absent
- ReasoningTrace: the reasoning text folded during the reasoning phase
- PipelineResult: the aggregate (non-streaming) response

Nothing in here knows about a specific provider. An event can be replayed
to a client with to_dict() alone.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """Event types yielded by provider adapters."""

    REASONING = "reasoning"
    CONTENT = "content"
    USAGE = "usage"
    ERROR = "error"
    DONE = "done"


# ═══════════════════════════════════════════════════════════════════════════════
# USAGE
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Usage:
    """Token usage for one upstream call (or a sum of several)."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    reasoning_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def __add__(self, other: "Usage") -> "Usage":
        if not isinstance(other, Usage):
            return NotImplemented
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            reasoning_tokens=self.reasoning_tokens + other.reasoning_tokens,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "reasoning_tokens": self.reasoning_tokens,
            "total_tokens": self.total_tokens,
        }


# ═══════════════════════════════════════════════════════════════════════════════
# NORMALIZED EVENTS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class NormalizedEvent:
    """
    One unit of provider output, already stripped of provider specifics.

    Build with the classmethods, not the constructor:
        NormalizedEvent.reasoning_delta("Let me count...")
        NormalizedEvent.content_delta("There are 3 r's.")
        NormalizedEvent.usage_summary(Usage(prompt_tokens=12))
        NormalizedEvent.provider_error("malformed_frame", "...", raw="{oops")
        NormalizedEvent.done()

    phase is empty when an adapter yields the event; the orchestrator
    tags it with "reasoning" or "generation" before forwarding.
    """

    type: EventType
    text: str = ""
    usage: Usage | None = None
    error_kind: str = ""
    message: str = ""
    fatal: bool = False
    raw: str | None = None
    phase: str = ""

    @classmethod
    def reasoning_delta(cls, text: str) -> "NormalizedEvent":
        return cls(type=EventType.REASONING, text=text)

    @classmethod
    def content_delta(cls, text: str) -> "NormalizedEvent":
        return cls(type=EventType.CONTENT, text=text)

    @classmethod
    def usage_summary(cls, usage: Usage) -> "NormalizedEvent":
        return cls(type=EventType.USAGE, usage=usage)

    @classmethod
    def done(cls, usage: Usage | None = None) -> "NormalizedEvent":
        return cls(type=EventType.DONE, usage=usage)

    @classmethod
    def provider_error(
        cls,
        kind: str,
        message: str,
        fatal: bool = False,
        raw: str | None = None,
    ) -> "NormalizedEvent":
        return cls(
            type=EventType.ERROR,
            error_kind=kind,
            message=message,
            fatal=fatal,
            raw=raw,
        )

    @property
    def is_fatal(self) -> bool:
        return self.type == EventType.ERROR and self.fatal

    def with_phase(self, phase: str) -> "NormalizedEvent":
        return replace(self, phase=phase)

    def to_dict(self) -> dict[str, Any]:
        """Wire payload for one client-facing frame."""
        data: dict[str, Any] = {"type": self.type.value}
        if self.phase:
            data["phase"] = self.phase

        if self.type == EventType.REASONING:
            data["text"] = self.text
        elif self.type == EventType.CONTENT:
            # Clients read content[0].text
            data["content"] = [{"type": "text", "text": self.text}]
        elif self.type == EventType.USAGE:
            data["usage"] = (self.usage or Usage()).to_dict()
        elif self.type == EventType.ERROR:
            data["error"] = {
                "type": self.error_kind,
                "message": self.message,
                "fatal": self.fatal,
            }
            if self.raw is not None:
                data["raw"] = self.raw
        elif self.type == EventType.DONE and self.usage is not None:
            data["usage"] = self.usage.to_dict()

        return data


# ═══════════════════════════════════════════════════════════════════════════════
# REQUESTS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Message:
    role: str  # "user" | "assistant"
    content: str

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ProviderOverrides:
    """Per-provider passthrough supplied by the client as <provider>_config."""

    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderRequest:
    """
    Input for one adapter call.

    Built once per phase by the orchestrator and handed to exactly one
    adapter. Protected wire fields (messages, system, stream) always come
    from here, never from overrides.body.
    """

    messages: list[Message]
    system: str | None = None
    overrides: ProviderOverrides = field(default_factory=ProviderOverrides)
    stream: bool = True


# ═══════════════════════════════════════════════════════════════════════════════
# REASONING TRACE & RESULT
# ═══════════════════════════════════════════════════════════════════════════════


class ReasoningTrace:
    """Reasoning text accumulated in arrival order, frozen when the phase ends."""

    def __init__(self) -> None:
        self._parts: list[str] = []
        self._frozen = False

    def append(self, text: str) -> None:
        if self._frozen:
            raise RuntimeError("Reasoning trace is frozen")
        self._parts.append(text)

    def freeze(self) -> str:
        self._frozen = True
        return self.text

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def __bool__(self) -> bool:
        return bool(self.text.strip())


@dataclass
class PipelineResult:
    """Aggregate-mode response body."""

    reasoning_content: str
    content: str
    usage: Usage
    details: dict[str, Any] = field(default_factory=dict)  # verbose only

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "reasoning_content": self.reasoning_content,
            "content": self.content,
            "usage": self.usage.to_dict(),
        }
        data.update(self.details)
        return data
