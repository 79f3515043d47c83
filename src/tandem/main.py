"""
Tandem — reasoning model + generation model behind one endpoint.

POST /        run the pipeline (JSON or SSE)
GET  /health  provider status and in-process metrics

Run: tandem  (or: uvicorn tandem.main:app --host 0.0.0.0 --port 3000)
TANDEM_HOST and TANDEM_PORT set the bind address for the `tandem` command.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

import tandem.core.config as config_module
from tandem.core.config import TandemConfig
from tandem.core.logging import register_secret, setup_logging
from tandem.core.metrics import metrics
from tandem.http.gateway import create_router
from tandem.pipeline.orchestrator import PipelineOrchestrator
from tandem.providers.registry import ProviderRegistry

__version__ = "0.1.0"

setup_logging()
logger = logging.getLogger("tandem")


def create_app(
    cfg: TandemConfig | None = None,
    registry: ProviderRegistry | None = None,
) -> FastAPI:
    """Build the app. Tests pass their own registry of fake adapters."""
    cfg = cfg or config_module.config
    registry = registry or ProviderRegistry.from_config(cfg)
    orchestrator = PipelineOrchestrator(registry)
    for provider in cfg.providers:
        register_secret(provider.api_key)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await registry.start()
        logger.info(
            "Tandem v%s ready (path=%s, providers=%s)",
            __version__,
            cfg.server.path,
            registry.names(),
        )
        yield
        await registry.stop()

    app = FastAPI(title="Tandem", version=__version__, lifespan=lifespan)
    app.include_router(create_router(orchestrator, cfg, cfg.server.path))

    @app.get("/health")
    async def health():
        """Health check — reports adapter status and metrics."""
        return JSONResponse(
            {
                "status": "ok",
                "version": __version__,
                "pipeline": {
                    "reasoning": registry.reasoning_name,
                    "generation": registry.generation_name,
                    "alternates": list(registry.alternates),
                },
                "providers": await registry.health(),
                "metrics": metrics.snapshot(),
            }
        )

    return app


app = create_app()


def main() -> None:
    """Serve the module-level app on TANDEM_HOST:TANDEM_PORT."""
    import uvicorn

    server = config_module.config.server
    uvicorn.run("tandem.main:app", host=server.host, port=server.port, log_config=None)


if __name__ == "__main__":
    main()
