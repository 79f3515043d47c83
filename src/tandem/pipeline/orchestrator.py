"""
Pipeline Orchestrator — reasoning phase, then generation phase.

    IDLE -> REASONING -> GENERATING -> COMPLETE
                 \\            \\
                  +-> FAILED    +-> FAILED

plan() does every check that can fail without touching the network
(model resolution, credentials). A PipelineRun then drives the two phases
strictly in sequence: the generation request embeds the full reasoning
trace, so it cannot start earlier.

Events leave the run tagged with their phase. The run ends with exactly
one terminal event: done(usage=<totals>) or a fatal error.

Usage:
    orchestrator = PipelineOrchestrator(registry)
    plan = orchestrator.plan(request, credentials)   # may raise GatewayError
    run = orchestrator.run(plan)
    async for event in run.events():
        ...
"""

from __future__ import annotations

import logging
import uuid
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncGenerator

from tandem.core.errors import GatewayError, MissingCredential
from tandem.core.logging import PhaseTimer
from tandem.core.metrics import metrics
from tandem.llm.contracts import (
    EventType,
    Message,
    NormalizedEvent,
    ProviderOverrides,
    ProviderRequest,
    ReasoningTrace,
)
from tandem.pipeline.request import GatewayRequest
from tandem.pipeline.usage import UsageCollector
from tandem.providers.base import ProviderAdapter
from tandem.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

THINKING_TEMPLATE = "<thinking>\n{trace}\n</thinking>"


class Phase(str, Enum):
    REASONING = "reasoning"
    GENERATION = "generation"


class PipelineState(str, Enum):
    IDLE = "idle"
    REASONING = "reasoning"
    GENERATING = "generating"
    COMPLETE = "complete"
    FAILED = "failed"


_TRANSITIONS = {
    PipelineState.IDLE: {PipelineState.REASONING},
    PipelineState.REASONING: {PipelineState.GENERATING, PipelineState.FAILED},
    PipelineState.GENERATING: {PipelineState.COMPLETE, PipelineState.FAILED},
    PipelineState.COMPLETE: set(),
    PipelineState.FAILED: set(),
}


@dataclass
class PipelinePlan:
    """A validated request, bound to the two adapters that will serve it."""

    request: GatewayRequest
    credentials: dict[str, str]
    reasoning: ProviderAdapter
    generation: ProviderAdapter
    generation_model: str | None = None
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


class PipelineRun:
    """State of one request going through both phases."""

    def __init__(self, plan: PipelinePlan):
        self.plan = plan
        self.state = PipelineState.IDLE
        self.trace = ReasoningTrace()
        self.usage = UsageCollector()
        self.error: NormalizedEvent | None = None

    def _transition(self, new_state: PipelineState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal pipeline transition {self.state.value} -> {new_state.value}")
        logger.debug(
            f"Pipeline {self.state.value} -> {new_state.value}",
            extra={"request_id": self.plan.request_id},
        )
        self.state = new_state

    # ─── Phase requests ──────────────────────────────────────────

    def reasoning_request(self) -> ProviderRequest:
        request = self.plan.request
        return ProviderRequest(
            messages=list(request.messages),
            system=request.system,
            overrides=request.overrides_for(self.plan.reasoning.name),
        )

    def generation_request(self, trace: str) -> ProviderRequest:
        """Original conversation plus the trace as a trailing assistant block.

        A conversation that already ends on an assistant turn (a prefill) gets
        the block prepended to that turn, keeping roles alternating.
        """
        request = self.plan.request
        messages = list(request.messages)
        if trace.strip():
            thinking = THINKING_TEMPLATE.format(trace=trace)
            if messages and messages[-1].role == "assistant":
                prefill = messages.pop()
                thinking = f"{thinking}\n\n{prefill.content}"
            messages.append(Message(role="assistant", content=thinking))

        overrides = request.overrides_for(self.plan.generation.name)
        model = self.plan.generation_model
        if model and "model" not in overrides.body:
            overrides = ProviderOverrides(
                headers=dict(overrides.headers),
                body={**overrides.body, "model": model},
            )

        return ProviderRequest(messages=messages, system=request.system, overrides=overrides)

    # ─── Driver ──────────────────────────────────────────────────

    async def events(self) -> AsyncGenerator[NormalizedEvent, None]:
        """Run both phases, yielding phase-tagged events and one terminal event."""
        plan = self.plan
        timer = PhaseTimer()
        log_extra = {"request_id": plan.request_id}
        logger.info(
            f"Pipeline start ({plan.reasoning.name} -> {plan.generation.name}, "
            f"stream={plan.request.stream})",
            extra=log_extra,
        )

        try:
            self._transition(PipelineState.REASONING)
            timer.start(Phase.REASONING.value)
            async with aclosing(
                self._phase(Phase.REASONING, plan.reasoning, self.reasoning_request())
            ) as reasoning_events:
                async for event in reasoning_events:
                    yield event
            if self.state == PipelineState.FAILED:
                return

            trace = self.trace.freeze()
            if not trace.strip():
                logger.info("Reasoning phase produced no trace, generating without it", extra=log_extra)

            self._transition(PipelineState.GENERATING)
            timer.start(Phase.GENERATION.value)
            async with aclosing(
                self._phase(Phase.GENERATION, plan.generation, self.generation_request(trace))
            ) as generation_events:
                async for event in generation_events:
                    yield event
            if self.state == PipelineState.FAILED:
                return

            self._transition(PipelineState.COMPLETE)
            yield NormalizedEvent.done(self.usage.finalize())

        except Exception:
            if self.state not in (PipelineState.COMPLETE, PipelineState.FAILED):
                self.state = PipelineState.FAILED
            raise

        finally:
            timer.stop()
            duration_ms = timer.total_ms()
            status = self.state.value
            if self.state not in (PipelineState.COMPLETE, PipelineState.FAILED):
                status = "cancelled"
            metrics.inc("pipeline.requests", labels={"status": status})
            metrics.observe("pipeline.duration_ms", duration_ms, labels={"status": status})
            for phase_name, phase_ms in timer.durations_ms().items():
                metrics.observe("phase.duration_ms", phase_ms, labels={"phase": phase_name})
            logger.info(
                f"Pipeline {status} ({timer.summary()})",
                extra={**log_extra, "status": status, "duration_ms": duration_ms},
            )

    async def _phase(
        self,
        phase: Phase,
        adapter: ProviderAdapter,
        request: ProviderRequest,
    ) -> AsyncGenerator[NormalizedEvent, None]:
        self.usage.add(phase.value, None, provider=adapter.name)
        dropped = 0

        try:
            async with aclosing(adapter.invoke(request, self.plan.credentials)) as stream:
                async for event in stream:
                    if event.type == EventType.DONE:
                        break

                    if event.is_fatal:
                        self._fail(event.with_phase(phase.value))
                        yield self.error
                        return

                    if event.type == EventType.USAGE:
                        self.usage.add(phase.value, event.usage)
                    elif event.type == EventType.REASONING and phase == Phase.REASONING:
                        self.trace.append(event.text)
                    elif event.type == EventType.CONTENT and phase == Phase.REASONING:
                        # The answer comes from the generation phase only
                        dropped += len(event.text)
                        continue

                    yield event.with_phase(phase.value)

        except GatewayError as e:
            self._fail(
                NormalizedEvent.provider_error(e.kind, e.message, fatal=True).with_phase(phase.value)
            )
            yield self.error
            return

        if dropped:
            logger.debug(
                f"Dropped {dropped} chars of {adapter.name} answer text from the reasoning phase",
                extra={"request_id": self.plan.request_id, "phase": phase.value},
            )

    def _fail(self, error: NormalizedEvent) -> None:
        self.error = error
        logger.warning(
            f"{error.phase} phase failed: {error.error_kind}: {error.message}",
            extra={"request_id": self.plan.request_id, "phase": error.phase},
        )
        self._transition(PipelineState.FAILED)


class PipelineOrchestrator:
    """Plans requests and starts runs. Shared by all requests; holds no request state."""

    def __init__(self, registry: ProviderRegistry):
        self.registry = registry

    def plan(self, request: GatewayRequest, credentials: dict[str, str]) -> PipelinePlan:
        """Validate a request without any network I/O.

        Raises UnsupportedModel or MissingCredential. Only the two providers
        this request will actually call need credentials.
        """
        generation, generation_model = self.registry.generation_for(request.model)
        reasoning = self.registry.reasoning

        for adapter in (reasoning, generation):
            if not credentials.get(adapter.name):
                raise MissingCredential(adapter.name)

        return PipelinePlan(
            request=request,
            credentials=credentials,
            reasoning=reasoning,
            generation=generation,
            generation_model=generation_model,
        )

    def run(self, plan: PipelinePlan) -> PipelineRun:
        return PipelineRun(plan)
