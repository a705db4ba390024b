"""
Pytest configuration for apex-chain tests.
"""
from __future__ import annotations

import hashlib
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

# Add cross-package imports
packages_dir = Path(__file__).parent.parent.parent
for pkg in ["apex-core"]:
    pkg_path = packages_dir / pkg / "src"
    if pkg_path.exists() and str(pkg_path) not in sys.path:
        sys.path.insert(0, str(pkg_path))

# Set test environment
os.environ.setdefault("APEX_ENVIRONMENT", "dev")

from apex_chain.rpc_client import ChainRPCClient
from apex_chain.selector import EndpointSelector, endpoints_from_urls

ONE_ETH = 10**18
GWEI = 10**9


def fake_rpc_client(
    url: str,
    *,
    block_number: int = 100,
    balance_wei: int = ONE_ETH,
    gas_price_wei: int = 20 * GWEI,
    nonce: int = 0,
    tx_hash: Optional[str] = None,
    receipt: Optional[dict] = None,
) -> MagicMock:
    """RPC client double whose calls all succeed by default."""
    client = MagicMock(spec=ChainRPCClient)
    client.url = url
    client.get_block_number = AsyncMock(return_value=block_number)
    client.verify_chain_id = AsyncMock(return_value=None)
    client.get_balance = AsyncMock(return_value=balance_wei)
    client.get_gas_price = AsyncMock(return_value=gas_price_wei)
    client.get_nonce = AsyncMock(return_value=nonce)
    client.send_raw_transaction = AsyncMock(return_value=tx_hash)
    client.get_transaction_receipt = AsyncMock(
        return_value=receipt or {"blockNumber": hex(block_number), "status": "0x1"}
    )
    client.close = AsyncMock()
    return client


class FakeNetwork:
    """Hands out one client double per endpoint URL and records probes."""

    def __init__(self):
        self.clients: Dict[str, MagicMock] = {}
        self.created: List[str] = []

    def add(self, url: str, **kwargs) -> MagicMock:
        client = fake_rpc_client(url, **kwargs)
        self.clients[url] = client
        return client

    def factory(self, endpoint) -> MagicMock:
        self.created.append(endpoint.url)
        return self.clients[endpoint.url]


@pytest.fixture(scope="session")
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


@pytest.fixture
def private_key():
    """Deterministic throwaway signing key, derived at test time."""
    return "0x" + hashlib.sha256(b"apex-chain-test-signer").hexdigest()


@pytest.fixture
def destination():
    return "0x1234567890123456789012345678901234567890"


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def make_selector(network, private_key):
    def _make(urls, key: Optional[str] = "default", probe_timeout: float = 0.05):
        return EndpointSelector(
            endpoints_from_urls(urls),
            chain_id=1,
            private_key=private_key if key == "default" else key,
            probe_timeout_seconds=probe_timeout,
            client_factory=network.factory,
        )

    return _make
