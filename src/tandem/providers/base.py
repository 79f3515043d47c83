"""
Provider adapter base — the one boundary between Tandem and an upstream model.

An adapter turns a ProviderRequest into that provider's wire request and the
provider's wire response into NormalizedEvents. Everything provider-specific
(URL, auth header, body shape, frame layouts) lives in a subclass; the frame
loop, error mapping and decoder fallback live here.

Contract of invoke():
- raises InvalidRequest / MissingCredential before any network I/O
- yields NormalizedEvents lazily, one upstream frame at a time
- a frame no decoder accepts becomes a non-fatal "malformed_frame" error
- timeouts, connection failures, HTTP >= 400 and in-band upstream errors
  become one fatal error event, after which nothing else is yielded
- a clean upstream finish yields done()
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import AsyncGenerator, AsyncIterator, Iterable

import httpx

from tandem.core.config import ProviderConfig
from tandem.core.errors import (
    InvalidRequest,
    MissingCredential,
    UpstreamFatalError,
    UpstreamMalformedFrame,
    UpstreamTimeout,
    UpstreamUnreachable,
)
from tandem.core.logging import redact
from tandem.core.metrics import metrics
from tandem.llm.contracts import NormalizedEvent, ProviderRequest
from tandem.providers.decoders import Decoder, upstream_error_message

logger = logging.getLogger(__name__)

# Wire fields only the pipeline decides; overrides never touch them
PROTECTED_BODY_FIELDS = ("messages", "system", "stream")

# Anything a decoder raises to say "not my layout"
_DECODE_ERRORS = (
    UpstreamMalformedFrame,
    KeyError,
    IndexError,
    TypeError,
    ValueError,
    AttributeError,
)

_RAW_LIMIT = 2000


def iter_sse_data(lines: Iterable[str]) -> Iterable[str]:
    """Yield the payload of each `data:` line, stopping at `[DONE]`."""
    for line in lines:
        data = sse_data(line)
        if data is None:
            continue
        if data == "[DONE]":
            return
        yield data


def sse_data(line: str) -> str | None:
    """Payload of one SSE line, or None for blank/comment/event/id lines."""
    line = line.strip()
    if not line.startswith("data:"):
        return None
    return line[len("data:"):].strip()


class ProviderAdapter(ABC):
    """Language model provider adapter."""

    # Ordered candidate decoders; first one that accepts a frame wins
    decoders: tuple[Decoder, ...] = ()

    def __init__(
        self,
        provider_config: ProviderConfig,
        client: httpx.AsyncClient | None = None,
    ):
        self.config = provider_config
        self.client = client

    @property
    def name(self) -> str:
        return self.config.name

    async def start(self) -> None:
        if self.client:
            return  # Already started
        self.client = httpx.AsyncClient(timeout=self._timeout())
        logger.info(
            f"{self.name} adapter ready (model={self.config.model}, url={self.config.base_url})"
        )

    async def stop(self) -> None:
        if self.client:
            await self.client.aclose()
            self.client = None

    async def health_check(self) -> dict:
        return {
            "provider": self.name,
            "kind": self.config.kind,
            "model": self.config.model,
            "status": "ready" if self.client else "not_started",
        }

    # ─── Wire request ────────────────────────────────────────────

    @abstractmethod
    def build_headers(self, api_key: str) -> dict[str, str]:
        """Auth and content headers for one call."""

    @abstractmethod
    def build_body(self, request: ProviderRequest) -> dict:
        """The protected part of the body: messages, system prompt, stream flag."""

    def prepare(self, request: ProviderRequest, api_key: str) -> tuple[dict, dict]:
        """Headers and JSON body for the wire request.

        Body precedence, lowest first: adapter defaults, server-side
        default_body, request override body. Protected fields are then
        written from the ProviderRequest.
        """
        body: dict = {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
        }
        body.update(self.config.default_body)
        body.update(request.overrides.body)
        for key in PROTECTED_BODY_FIELDS:
            body.pop(key, None)
        body.update(self.build_body(request))

        headers = self.build_headers(api_key)
        headers.update(request.overrides.headers)
        return headers, body

    # ─── Normalization ───────────────────────────────────────────

    def normalize(self, frame: str) -> list[NormalizedEvent]:
        """Decode one upstream frame. Pure: same frame in, same events out."""
        try:
            payload = json.loads(frame)
        except json.JSONDecodeError as e:
            return [self._malformed(f"invalid JSON: {e}", frame)]
        if not isinstance(payload, dict):
            return [self._malformed("frame is not a JSON object", frame)]

        error_message = upstream_error_message(payload)
        if error_message is not None:
            return [
                NormalizedEvent.provider_error(
                    UpstreamFatalError.kind,
                    f"{self.name}: {error_message}",
                    fatal=True,
                    raw=frame[:_RAW_LIMIT],
                )
            ]

        last_error = "no decoders configured"
        for decoder in self.decoders:
            try:
                return decoder(payload)
            except _DECODE_ERRORS as e:
                last_error = f"{decoder.__name__}: {e!r}"

        return [self._malformed(last_error, frame)]

    def _malformed(self, reason: str, frame: str) -> NormalizedEvent:
        return NormalizedEvent.provider_error(
            UpstreamMalformedFrame.kind,
            f"{self.name}: unparseable frame ({reason})",
            fatal=False,
            raw=frame[:_RAW_LIMIT],
        )

    # ─── Invocation ──────────────────────────────────────────────

    async def invoke(
        self,
        request: ProviderRequest,
        credentials: dict[str, str],
    ) -> AsyncGenerator[NormalizedEvent, None]:
        """Call the upstream and stream back normalized events."""
        if not request.messages:
            raise InvalidRequest("messages must not be empty")
        api_key = credentials.get(self.name)
        if not api_key:
            raise MissingCredential(self.name)
        if not self.client:
            raise RuntimeError(f"{self.name} adapter not started")

        headers, body = self.prepare(request, api_key)
        labels = {"provider": self.name}
        started = time.monotonic()
        frames = 0
        metrics.inc("provider.requests", labels=labels)

        try:
            async with self.client.stream(
                "POST",
                self.config.base_url,
                headers=headers,
                json=body,
                timeout=self._timeout(),
            ) as response:
                if response.status_code >= 400:
                    detail = redact(
                        (await response.aread()).decode("utf-8", errors="replace"), api_key
                    )
                    metrics.inc("provider.errors", labels={**labels, "kind": "http"})
                    logger.warning(
                        "%s returned HTTP %s",
                        self.name,
                        response.status_code,
                        extra={"provider": self.name, "status": response.status_code},
                    )
                    yield NormalizedEvent.provider_error(
                        UpstreamFatalError.kind,
                        f"{self.name} returned HTTP {response.status_code}: {detail[:500]}",
                        fatal=True,
                    )
                    return

                async for frame in self._frames(response):
                    frames += 1
                    for event in self.normalize(frame):
                        if event.message:
                            event = replace(event, message=redact(event.message, api_key))
                        if event.error_kind == UpstreamMalformedFrame.kind:
                            metrics.inc("provider.malformed_frames", labels=labels)
                            logger.warning(event.message, extra={"provider": self.name})
                        yield event
                        if event.is_fatal:
                            return

        except httpx.TimeoutException as e:
            metrics.inc("provider.errors", labels={**labels, "kind": "timeout"})
            logger.warning(f"{self.name} timed out after {frames} frames: {e!r}")
            yield NormalizedEvent.provider_error(
                UpstreamTimeout.kind,
                f"{self.name} did not respond within {self.config.timeout:.0f}s",
                fatal=True,
            )
            return
        except httpx.TransportError as e:
            metrics.inc("provider.errors", labels={**labels, "kind": "unreachable"})
            logger.warning(f"{self.name} unreachable: {e!r}")
            yield NormalizedEvent.provider_error(
                UpstreamUnreachable.kind,
                f"{self.name} unreachable: {e}",
                fatal=True,
            )
            return

        elapsed_ms = (time.monotonic() - started) * 1000
        metrics.observe("provider.latency_ms", elapsed_ms, labels=labels)
        logger.debug(
            f"{self.name} finished ({frames} frames, {elapsed_ms:.0f}ms)",
            extra={"provider": self.name, "duration_ms": round(elapsed_ms)},
        )
        yield NormalizedEvent.done()

    async def _frames(self, response: httpx.Response) -> AsyncIterator[str]:
        """Upstream frames: SSE data lines, or the whole body for plain JSON."""
        content_type = response.headers.get("content-type", "")
        if "text/event-stream" in content_type:
            async for line in response.aiter_lines():
                data = sse_data(line)
                if data is None:
                    continue
                if data == "[DONE]":
                    return
                yield data
            return

        # Deployment ignored stream=true (or mislabels its stream)
        text = (await response.aread()).decode("utf-8", errors="replace").strip()
        if not text:
            return
        if text.startswith(("data:", "event:", ":")):
            for data in iter_sse_data(text.splitlines()):
                yield data
        else:
            yield text

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.config.timeout, connect=self.config.connect_timeout)
