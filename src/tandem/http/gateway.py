"""
Gateway HTTP API — the single endpoint that runs the two-phase pipeline.

    curl -N http://localhost:3000/ \\
      -H "X-DeepSeek-API-Token: $DEEPSEEK_KEY" \\
      -H "X-Anthropic-API-Token: $ANTHROPIC_KEY" \\
      -d '{"stream": true, "messages": [{"role": "user", "content": "count letters"}]}'

Non-streaming: one JSON object {reasoning_content, content, usage}.
Streaming: SSE frames `data: <event>` ending with `data: [DONE]`.
Request-level errors (bad body, missing token, unknown model) are
returned before any upstream call.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, StreamingResponse

from tandem.core.errors import GatewayError, InvalidRequest, credential_header
from tandem.pipeline import multiplexer
from tandem.pipeline.request import GatewayRequest

if TYPE_CHECKING:
    from tandem.core.config import TandemConfig
    from tandem.pipeline.orchestrator import PipelineOrchestrator

logger = logging.getLogger(__name__)


def extract_credentials(
    headers, provider_names: list[str], cfg: "TandemConfig | None" = None
) -> dict[str, str]:
    """Provider name -> API token, from X-<Provider>-API-Token or server config.

    The header wins over a server-side key. Providers with neither are left
    out; the orchestrator decides whether that matters for this request.
    """
    credentials: dict[str, str] = {}
    for name in provider_names:
        token = headers.get(credential_header(name), "").strip()
        if not token and cfg is not None:
            try:
                token = cfg.provider(name).api_key
            except KeyError:
                token = ""
        if token:
            credentials[name] = token
    return credentials


def create_router(
    orchestrator: "PipelineOrchestrator",
    cfg: "TandemConfig | None" = None,
    path: str = "/",
) -> APIRouter:
    """Create the gateway router bound to an orchestrator."""

    router = APIRouter()

    @router.post(path, response_model=None)
    async def chat(request: Request):
        try:
            try:
                payload = await request.json()
            except (json.JSONDecodeError, UnicodeDecodeError):
                raise InvalidRequest("Request body is not valid JSON") from None

            gateway_request = GatewayRequest.from_payload(payload)
            credentials = extract_credentials(
                request.headers, orchestrator.registry.names(), cfg
            )
            plan = orchestrator.plan(gateway_request, credentials)
        except GatewayError as e:
            logger.info(f"Rejected request: {e.kind}: {e.message}")
            return JSONResponse(e.to_dict(), status_code=e.status_code)

        run = orchestrator.run(plan)

        if gateway_request.stream:
            return StreamingResponse(
                multiplexer.stream(run.events(), gateway_request.verbose, run.usage),
                media_type="text/event-stream",
                headers={
                    "Cache-Control": "no-cache",
                    "Connection": "keep-alive",
                    "X-Accel-Buffering": "no",
                },
            )

        status_code, body = await multiplexer.aggregate(
            run.events(), gateway_request.verbose, run.usage
        )
        return JSONResponse(body, status_code=status_code)

    return router
