"""Strategy catalog endpoints (simulated)."""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import APIRouter, Depends, HTTPException, status

from apex_api.fleet import StrategyFleet

router = APIRouter(tags=["fleet"])


@dataclass
class Dependencies:
    fleet: StrategyFleet


def get_deps() -> Dependencies:
    raise NotImplementedError("Dependency override required")


@router.get("/api/apex/strategies/live")
async def live_strategies(deps: Dependencies = Depends(get_deps)):
    return deps.fleet.snapshot()


@router.post("/api/strategy/{strategy_id}/execute")
async def execute_strategy(strategy_id: int, deps: Dependencies = Depends(get_deps)):
    strategy = deps.fleet.find(strategy_id)
    if strategy is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Strategy not found")
    return deps.fleet.simulate_execution(strategy)
