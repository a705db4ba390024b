"""Pytest configuration and fixtures for Apex API tests."""
from __future__ import annotations

import hashlib
import os
import random
import sys
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

# Ensure local packages are importable when running pytest directly.
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
packages_dir = Path(__file__).parent.parent.parent
for pkg in ["apex-core", "apex-chain"]:
    pkg_path = packages_dir / pkg / "src"
    if pkg_path.exists():
        sys.path.insert(0, str(pkg_path))

# Set test environment before importing app
os.environ["APEX_ENVIRONMENT"] = "dev"
os.environ["APEX_CONNECT_ON_STARTUP"] = "false"
os.environ.pop("APEX_SIGNER_PRIVATE_KEY", None)
os.environ.pop("VAULT_PRIVATE_KEY", None)

from apex_core.config import ApexSettings
from apex_chain.rpc_client import ChainRPCClient
from apex_chain.selector import EndpointSelector, endpoints_from_urls
from apex_chain.session import ChainSessionHolder
from apex_api.fleet import StrategyFleet
from apex_api.main import create_app

RPC_URL = "https://rpc-test.example"


class FakeNode:
    """One RPC client double shared by every connection the app opens."""

    def __init__(self):
        self.client = MagicMock(spec=ChainRPCClient)
        self.client.url = RPC_URL
        self.client.get_block_number = AsyncMock(return_value=100)
        self.client.verify_chain_id = AsyncMock(return_value=None)
        self.client.get_balance = AsyncMock(return_value=10**18)
        self.client.get_gas_price = AsyncMock(return_value=20 * 10**9)
        self.client.get_nonce = AsyncMock(return_value=0)
        self.client.send_raw_transaction = AsyncMock(return_value=None)
        self.client.get_transaction_receipt = AsyncMock(
            return_value={"blockNumber": "0x64", "status": "0x1"}
        )
        self.client.close = AsyncMock()
        self.connections = 0

    def factory(self, endpoint) -> MagicMock:
        self.connections += 1
        return self.client


@pytest.fixture
def private_key() -> str:
    return "0x" + hashlib.sha256(b"apex-api-test-signer").hexdigest()


@pytest.fixture
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def settings(private_key) -> ApexSettings:
    return ApexSettings(
        _env_file=None,
        environment="dev",
        rpc_urls=[RPC_URL],
        signer_private_key=private_key,
        confirmation_poll_interval_seconds=0,
        confirmation_timeout_seconds=0.2,
        connect_on_startup=False,
    )


def _holder(settings: ApexSettings, node: FakeNode, private_key) -> ChainSessionHolder:
    selector = EndpointSelector(
        endpoints_from_urls(settings.rpc_urls),
        chain_id=settings.chain_id,
        private_key=private_key,
        probe_timeout_seconds=0.05,
        client_factory=node.factory,
    )
    return ChainSessionHolder(selector)


@pytest.fixture
def make_app(settings, node, private_key):
    """Build an application wired to the fake node and a seeded fleet."""

    def _make(signed: bool = True, **overrides):
        app_settings = settings.model_copy(update=overrides) if overrides else settings
        return create_app(
            app_settings,
            session_holder=_holder(app_settings, node, private_key if signed else None),
            fleet=StrategyFleet(random.Random(7)),
        )

    return _make


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def unsigned_client(make_app) -> Generator[TestClient, None, None]:
    """Application with no signing credential configured."""
    with TestClient(make_app(signed=False)) as test_client:
        yield test_client
