"""Status and health endpoints."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter

from apex_chain.session import ChainSessionHolder

from .fleet import SORT_ORDER, StrategyFleet

logger = logging.getLogger("apex.api")


def create_health_router(*, fleet: StrategyFleet, sessions: ChainSessionHolder) -> APIRouter:
    """Build the status router closed over the fleet and session holder."""

    health_router = APIRouter(tags=["health"])

    @health_router.get("/status")
    async def service_status():
        top = fleet.top
        return {
            "status": "online",
            "blockchain": "connected" if sessions.is_connected else "disconnected",
            "totalStrategies": len(fleet),
            "sortedBy": SORT_ORDER,
            "topStrategy": top.name if top else None,
            "topAPY": f"{top.apy:.1f}%" if top else None,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @health_router.get("/health")
    async def health():
        top = fleet.top
        return {
            "status": "healthy",
            "strategies": len(fleet),
            "sortOrder": SORT_ORDER,
            "topStrategy": top.name if top else None,
        }

    return health_router
