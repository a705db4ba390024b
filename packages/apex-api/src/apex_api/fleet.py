"""
In-memory strategy catalog.

The catalog is display data: yields are derived from fixed per-protocol base
rates and the P&L figures are randomly perturbed on every snapshot. Nothing
here touches the ledger.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

PROTOCOL_APY: Dict[str, float] = {
    "pendle": 28.6,
    "gmx": 32.1,
    "convex": 22.4,
    "eigenlayer": 19.2,
    "balancer": 18.3,
    "yearn": 15.7,
    "curve": 12.5,
    "morpho": 11.9,
    "aave": 8.2,
    "uniswap": 45.8,
}
DEFAULT_PROTOCOL_APY = 10.0

AI_BOOST = 2.8
LEVERAGE_MULTIPLIER = 4.5
MEV_EXTRACTION = 1200
CROSS_CHAIN_ARB = 800

SORT_ORDER = "APY_DESCENDING"
SECONDS_PER_YEAR = 365 * 24 * 3600

STRATEGY_ADDRESSES: List[Dict[str, Any]] = [
    {"id": 401, "address": "0xF32e58F92e60f4b0A37A69b95d642A471365EAe8", "name": "Pendle PT-stETH", "protocol": "pendle"},
    {"id": 402, "address": "0x6ee2b5E19ECBa773a352E5B21415Dc419A700d1d", "name": "Pendle PT-rETH", "protocol": "pendle"},
    {"id": 403, "address": "0xAC0047886a985071476a1186bE89222659970d65", "name": "Pendle PT-eETH", "protocol": "pendle"},
    {"id": 404, "address": "0xC374f7eC85F8C7DE3207a10bB1978bA104bdA3B2", "name": "Pendle PT-ezETH", "protocol": "pendle"},
    {"id": 405, "address": "0x8Ea6F81E3b63F02b8AbD0e8F6c5856f0DFFA4c6E", "name": "Pendle PT-rsETH", "protocol": "pendle"},
    {"id": 201, "address": "0x70d95587d40A2caf56bd97485aB3Eec10Bee6336", "name": "GMX ETH/USD", "protocol": "gmx"},
    {"id": 202, "address": "0x47c031236e19d024b42f8AE6780E44A573170703", "name": "GMX BTC/USD", "protocol": "gmx"},
    {"id": 301, "address": "0x689440f2Ff927E1f24c72F1087E1FAF471eCe1c8", "name": "Convex 3pool", "protocol": "convex"},
    {"id": 305, "address": "0xF403C135812408BFbE8713b5A23a04b3D48AAE31", "name": "Convex cvxCRV", "protocol": "convex"},
    {"id": 151, "address": "0x5c6Ee304399DBdB9C8Ef030aB642B10820DB8F56", "name": "Balancer 80BAL-20WETH", "protocol": "balancer"},
    {"id": 251, "address": "0xa258C4606Ca8206D8aA700cE2143D7db854D168c", "name": "Yearn WETH v2", "protocol": "yearn"},
    {"id": 101, "address": "0xbEbc44782C7dB0a1A60Cb6fe97d0b483032FF1C7", "name": "Curve 3pool", "protocol": "curve"},
    {"id": 351, "address": "0x8dFfF7c90F85A29a98Dd69B6F3CdF8B0f21dC0b1", "name": "Morpho WETH/USDC", "protocol": "morpho"},
    {"id": 51, "address": "0x4d5F47FA6A74757f35C14fD3a6Ef8E3C9BC514E8", "name": "Aave V3 WETH", "protocol": "aave"},
    {"id": 1, "address": "0x88e6A0c2dDD26FEEb64F039a2c41296FcB3f5640", "name": "Uni V3 WETH/USDC 0.05%", "protocol": "uniswap"},
]


def protocol_apy(protocol: str) -> float:
    """Boosted, leveraged annual yield in percent."""
    return PROTOCOL_APY.get(protocol, DEFAULT_PROTOCOL_APY) * AI_BOOST * LEVERAGE_MULTIPLIER


@dataclass
class Strategy:
    id: int
    address: str
    name: str
    protocol: str
    apy: float
    earning_per_second: float
    pnl_usd: float
    latency_ms: int
    is_failed_over: bool = False
    backups: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "address": self.address,
            "name": self.name,
            "protocol": self.protocol,
            "apy": self.apy,
            "earning_per_second": self.earning_per_second,
            "pnl_usd": self.pnl_usd,
            "latency_ms": self.latency_ms,
            "isFailedOver": self.is_failed_over,
            "backups": list(self.backups),
        }


class StrategyFleet:
    """Catalog of strategies kept sorted by APY, highest first."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self._strategies: List[Strategy] = []

    @property
    def strategies(self) -> List[Strategy]:
        return list(self._strategies)

    @property
    def top(self) -> Optional[Strategy]:
        return self._strategies[0] if self._strategies else None

    def __len__(self) -> int:
        return len(self._strategies)

    def initialize(self) -> None:
        rng = self._rng
        strategies = []
        for entry in STRATEGY_ADDRESSES:
            apy = protocol_apy(entry["protocol"])
            strategies.append(
                Strategy(
                    id=entry["id"],
                    address=entry["address"],
                    name=entry["name"],
                    protocol=entry["protocol"],
                    apy=apy,
                    earning_per_second=apy / SECONDS_PER_YEAR * 100,
                    pnl_usd=rng.random() * 5000 + 2000,
                    latency_ms=rng.randint(10, 109),
                    backups=[rng.randint(1, 450), rng.randint(1, 450)],
                )
            )
        # Stable sort keeps catalog order among equal yields.
        strategies.sort(key=lambda s: s.apy, reverse=True)
        self._strategies = strategies

        for rank, strategy in enumerate(strategies[:3], start=1):
            logger.info(f"#{rank}: {strategy.name} - {strategy.apy:.1f}% APY")

    def find(self, strategy_id: int) -> Optional[Strategy]:
        for strategy in self._strategies:
            if strategy.id == strategy_id:
                return strategy
        return None

    def accrue(self) -> None:
        """Apply one tick of simulated earnings; higher-ranked strategies earn a bonus."""
        count = len(self._strategies)
        for index, strategy in enumerate(self._strategies):
            if strategy.is_failed_over:
                continue
            priority_bonus = 1 + 0.1 * (count - index) / count
            strategy.pnl_usd += strategy.earning_per_second * priority_bonus + self._rng.random() * 0.5
            if self._rng.random() > 0.95 and index < 50:
                strategy.pnl_usd += (MEV_EXTRACTION / 50) * priority_bonus

    def snapshot(self) -> Dict[str, Any]:
        self.accrue()
        count = len(self._strategies)
        total_pnl = sum(s.pnl_usd for s in self._strategies)
        avg_apy = sum(s.apy for s in self._strategies) / count if count else 0.0
        top_apy = self._strategies[0].apy if count else 0.0
        return {
            "strategies": [s.to_dict() for s in self._strategies],
            "totalPnL": total_pnl,
            "avgAPY": f"{avg_apy:.1f}",
            "topAPY": f"{top_apy:.1f}",
            "projectedHourly": f"{total_pnl / 24:.2f}",
            "projectedDaily": f"{total_pnl:.2f}",
            "mevBonus": MEV_EXTRACTION,
            "arbBonus": CROSS_CHAIN_ARB,
            "sortOrder": SORT_ORDER,
        }

    def simulate_execution(self, strategy: Strategy) -> Dict[str, Any]:
        return {
            "success": True,
            "simulated": True,
            "strategyId": strategy.id,
            "strategyName": strategy.name,
            "apy": strategy.apy,
            "txHash": "0x%064x" % self._rng.getrandbits(256),
        }
