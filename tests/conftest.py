"""Pytest configuration for the file bridge."""
import os
from unittest.mock import MagicMock

import pytest

from filebridge.base.config import BackendConfig, BridgeConfig, ServerConfig
from filebridge.client.mcp_client import MCPFileClient
from filebridge.server.api import create_app
from filebridge.server.state import BridgeState


def pytest_configure():
    # Never spawn a real backend from the test suite.
    os.environ.setdefault("FILEBRIDGE_AUTO_CONNECT", "false")


@pytest.fixture
def bridge_config():
    return BridgeConfig(
        server=ServerConfig(max_body_mb=1),
        backend=BackendConfig(auto_connect=False),
    )


@pytest.fixture
def stub_client():
    """MCPFileClient stand-in: async methods are AsyncMocks, is_connected() is True."""
    client = MagicMock(spec=MCPFileClient)
    client.is_connected.return_value = True
    client.disconnect.return_value = False
    return client


@pytest.fixture
def bridge_state(stub_client, bridge_config):
    return BridgeState(client=stub_client, config=bridge_config)


@pytest.fixture
def app(bridge_state):
    return create_app(state=bridge_state)
