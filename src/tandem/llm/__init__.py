"""
LLM Package — provider-agnostic contracts shared by adapters and the pipeline.

This package provides:
- ProviderRequest / Message / ProviderOverrides: adapter input
- NormalizedEvent / EventType / Usage: adapter output
- ReasoningTrace / PipelineResult: pipeline state and aggregate output
"""

from tandem.llm.contracts import (
    EventType,
    Message,
    NormalizedEvent,
    PipelineResult,
    ProviderOverrides,
    ProviderRequest,
    ReasoningTrace,
    Usage,
)

__all__ = [
    "EventType",
    "Message",
    "NormalizedEvent",
    "PipelineResult",
    "ProviderOverrides",
    "ProviderRequest",
    "ReasoningTrace",
    "Usage",
]
