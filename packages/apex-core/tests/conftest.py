"""
Pytest configuration for apex-core tests.
"""
from __future__ import annotations

import hashlib
import os
import sys
from pathlib import Path

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

# Set test environment
os.environ.setdefault("APEX_ENVIRONMENT", "dev")

SETTINGS_ENV_VARS = (
    "APEX_SIGNER_PRIVATE_KEY",
    "VAULT_PRIVATE_KEY",
    "APEX_VAULT_ADDRESS",
    "VAULT_ADDRESS",
    "APEX_RPC_URLS",
    "APEX_PORT",
    "PORT",
    "APEX_LOG_JSON",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Strip settings variables that may leak in from the host."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("APEX_ENVIRONMENT", "dev")
    return monkeypatch


@pytest.fixture
def private_key_hex():
    return hashlib.sha256(b"apex-core-test-signer").hexdigest()
