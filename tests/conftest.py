"""Shared test doubles: scripted adapters and canned upstream wire responses."""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from tandem.core.config import ProviderConfig
from tandem.core.metrics import metrics
from tandem.llm.contracts import NormalizedEvent, ProviderRequest, Usage
from tandem.providers.base import ProviderAdapter
from tandem.providers.registry import ProviderRegistry


class FakeAdapter(ProviderAdapter):
    """Adapter that yields a fixed script instead of calling an upstream.

    Script items are NormalizedEvents; an Exception item is raised in place.
    Every invoke() that actually starts is recorded in `calls`.
    """

    def __init__(self, name: str, script: list[Any], models: tuple[str, ...] = ()):
        super().__init__(ProviderConfig(name=name, kind="fake", model=f"{name}-default", models=models))
        self.script = list(script)
        self.calls: list[ProviderRequest] = []
        self.closed = False

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {}

    def build_body(self, request: ProviderRequest) -> dict:
        return {}

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def invoke(self, request, credentials):
        self.calls.append(request)
        try:
            for item in self.script:
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self.closed = True


def reasoning_script(*texts: str, usage: Usage | None = None) -> list[NormalizedEvent]:
    events = [NormalizedEvent.reasoning_delta(t) for t in texts]
    if usage is not None:
        events.append(NormalizedEvent.usage_summary(usage))
    events.append(NormalizedEvent.done())
    return events


def content_script(*texts: str, usage: Usage | None = None) -> list[NormalizedEvent]:
    events = [NormalizedEvent.content_delta(t) for t in texts]
    if usage is not None:
        events.append(NormalizedEvent.usage_summary(usage))
    events.append(NormalizedEvent.done())
    return events


def make_registry(
    reasoning: list[Any],
    generation: list[Any],
    alternate: list[Any] | None = None,
) -> ProviderRegistry:
    adapters = {
        "deepseek": FakeAdapter("deepseek", reasoning),
        "anthropic": FakeAdapter("anthropic", generation),
    }
    alternates: tuple[str, ...] = ()
    if alternate is not None:
        adapters["qwen"] = FakeAdapter("qwen", alternate, models=("qwen-plus", "qwen-max"))
        alternates = ("qwen",)
    return ProviderRegistry(
        adapters, reasoning="deepseek", generation="anthropic", alternates=alternates
    )


CREDENTIALS = {"deepseek": "ds-key", "anthropic": "an-key", "qwen": "qw-key"}


# ─── Upstream wire fixtures ──────────────────────────────────────


def sse_body(*frames: Any, done: bool = True) -> bytes:
    """SSE body with one data line per frame (dicts are JSON-encoded)."""
    lines = []
    for frame in frames:
        data = frame if isinstance(frame, str) else json.dumps(frame)
        lines.append(f"data: {data}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def sse_client(body: bytes, captured: list | None = None, status_code: int = 200) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if captured is not None:
            captured.append(request)
        return httpx.Response(
            status_code,
            headers={"content-type": "text/event-stream"},
            content=body,
        )

    return mock_client(handler)


def openai_chunk(**delta: Any) -> dict:
    return {"id": "c1", "object": "chat.completion.chunk", "choices": [{"index": 0, "delta": delta, "finish_reason": None}]}


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield
