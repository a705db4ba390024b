"""Withdrawal and signer balance endpoints."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from apex_chain.withdrawal import WithdrawalPipeline

logger = logging.getLogger("apex.api")

router = APIRouter(tags=["withdrawals"])


class WithdrawalRequestBody(BaseModel):
    """Accepts both the ``toAddress``/``amountETH`` and ``to``/``amount`` spellings.

    Values are kept exactly as sent; ``WithdrawalRequest.parse`` classifies them.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    to_address: Any = Field(default=None, alias="toAddress")
    to: Any = None
    amount_eth: Any = Field(default=None, alias="amountETH")
    amount: Any = None

    def destination(self) -> Any:
        if self.to_address not in (None, ""):
            return self.to_address
        return self.to

    def requested_amount(self) -> Any:
        if self.amount_eth not in (None, ""):
            return self.amount_eth
        return self.amount


class WithdrawalResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    tx_hash: str = Field(alias="txHash")
    from_address: str = Field(alias="from")
    to: str
    amount: float
    block_number: int = Field(alias="blockNumber")


class BalanceResponse(BaseModel):
    address: str
    balance: str


@dataclass
class Dependencies:
    pipeline: WithdrawalPipeline


def get_deps() -> Dependencies:
    raise NotImplementedError("Dependency override required")


async def execute_withdrawal(
    payload: WithdrawalRequestBody,
    deps: Dependencies,
) -> WithdrawalResponse:
    """Shared handler behind every withdrawal route."""
    receipt = await deps.pipeline.submit_withdrawal(
        payload.destination(),
        payload.requested_amount(),
    )
    return WithdrawalResponse(
        tx_hash=receipt.tx_hash,
        from_address=receipt.from_address,
        to=receipt.to_address,
        amount=float(receipt.amount),
        block_number=receipt.block_number,
    )


@router.post("/withdraw", response_model=WithdrawalResponse)
async def withdraw(
    payload: WithdrawalRequestBody,
    deps: Dependencies = Depends(get_deps),
):
    """Send ether from the signing wallet and wait for confirmation."""
    return await execute_withdrawal(payload, deps)


@router.post("/send-eth", response_model=WithdrawalResponse)
async def send_eth(payload: WithdrawalRequestBody, deps: Dependencies = Depends(get_deps)):
    return await execute_withdrawal(payload, deps)


@router.post("/coinbase-withdraw", response_model=WithdrawalResponse)
async def coinbase_withdraw(payload: WithdrawalRequestBody, deps: Dependencies = Depends(get_deps)):
    return await execute_withdrawal(payload, deps)


@router.post("/transfer", response_model=WithdrawalResponse)
async def transfer(payload: WithdrawalRequestBody, deps: Dependencies = Depends(get_deps)):
    return await execute_withdrawal(payload, deps)


@router.get("/balance", response_model=BalanceResponse)
async def signer_balance(deps: Dependencies = Depends(get_deps)):
    address, balance = await deps.pipeline.get_signer_balance()
    return BalanceResponse(address=address, balance=f"{balance:.6f}")
