"""Shared fixtures for MCP tests."""

import pytest

import brain_mcp.bootstrap
import brain_mcp.server


@pytest.fixture(autouse=True)
def reset_bootstrap():
    """Reset the bootstrap singleton and tool cache between tests."""
    brain_mcp.bootstrap._components = None
    brain_mcp.server._tool_defs = None
    brain_mcp.server._handlers = None
    yield
    brain_mcp.bootstrap._components = None


@pytest.fixture
def components(rho_env):
    """Real components resolved from the isolated ~/.rho."""
    return brain_mcp.bootstrap.get_components()
