"""
Pipeline Package — reasoning phase into generation phase, one response out.

Architecture:
  GatewayRequest → PipelineOrchestrator.plan() → PipelineRun.events()
    → multiplexer.aggregate() | multiplexer.stream()
"""

from tandem.pipeline.orchestrator import (
    Phase,
    PipelineOrchestrator,
    PipelinePlan,
    PipelineRun,
    PipelineState,
)
from tandem.pipeline.request import GatewayRequest
from tandem.pipeline.usage import UsageCollector

__all__ = [
    "GatewayRequest",
    "Phase",
    "PipelineOrchestrator",
    "PipelinePlan",
    "PipelineRun",
    "PipelineState",
    "UsageCollector",
]
