"""API composition root."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from apex_core import ApexException, ApexSettings, load_settings, setup_logging
from apex_chain.selector import EndpointSelector
from apex_chain.session import ChainSessionHolder
from apex_chain.withdrawal import WithdrawalPipeline

from .fleet import StrategyFleet
from .health import create_health_router
from .middleware import StructuredLoggingMiddleware, register_exception_handlers
from .routers import fleet as fleet_router
from .routers import withdrawals as withdrawals_router

logger = logging.getLogger("apex.api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    settings: ApexSettings = app.state.settings
    fleet: StrategyFleet = app.state.fleet
    sessions: ChainSessionHolder = app.state.sessions

    logger.info("Starting Apex fleet backend...")
    if not len(fleet):
        fleet.initialize()
    logger.info(f"Fleet initialized with {len(fleet)} strategies, sorted by APY")

    if not sessions.selector.has_signer:
        logger.warning("No signing credential configured; withdrawals are disabled")
    elif settings.connect_on_startup:
        try:
            await sessions.get()
        except ApexException as e:
            # Requests re-acquire on demand.
            logger.warning(f"Initial RPC connection failed: {e.message}")

    yield

    logger.info("Shutting down Apex fleet backend...")
    await sessions.close()


def create_app(
    settings: Optional[ApexSettings] = None,
    *,
    session_holder: Optional[ChainSessionHolder] = None,
    fleet: Optional[StrategyFleet] = None,
) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(level=settings.log_level, json_format=settings.use_json_logs)

    app = FastAPI(
        title="Apex Fleet Backend",
        version="0.1.0",
        lifespan=lifespan,
    )

    sessions = session_holder
    if sessions is None:
        sessions = ChainSessionHolder(EndpointSelector.from_settings(settings))
    if fleet is None:
        fleet = StrategyFleet()
    pipeline = WithdrawalPipeline.from_settings(settings, sessions)

    app.state.settings = settings
    app.state.sessions = sessions
    app.state.fleet = fleet
    app.state.pipeline = pipeline

    app.add_middleware(StructuredLoggingMiddleware, exclude_paths=["/health"])
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )
    register_exception_handlers(app)

    app.include_router(create_health_router(fleet=fleet, sessions=sessions))

    app.dependency_overrides[fleet_router.get_deps] = lambda: fleet_router.Dependencies(fleet=fleet)
    app.include_router(fleet_router.router)

    app.dependency_overrides[withdrawals_router.get_deps] = lambda: withdrawals_router.Dependencies(
        pipeline=pipeline,
    )
    app.include_router(withdrawals_router.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = load_settings()
    uvicorn.run(app, host=_settings.host, port=_settings.port)
