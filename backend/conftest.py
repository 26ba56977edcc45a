"""
Root conftest.py for all backend tests.

This file makes fixtures available to all test files across all apps.
"""
import pytest
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer


# ============================================================================
# AUTO-USE FIXTURES (Run automatically for every test)
# ============================================================================

@pytest.fixture(autouse=True)
def flush_channel_layer():
    """
    Flush the in-memory channel layer after each test.

    Real-time messages published by one test must never be received by
    another test's group.
    """
    yield  # Run the test

    layer = get_channel_layer()
    if layer is not None and hasattr(layer, 'flush'):
        async_to_sync(layer.flush)()


# ============================================================================
# REAL-TIME FIXTURES
# ============================================================================

@pytest.fixture
def channel_layer():
    """
    Provide the configured channel layer (in-memory for tests).

    Usage:
        def test_fanout(channel_layer):
            channel = async_to_sync(channel_layer.new_channel)()
            async_to_sync(channel_layer.group_add)('restaurant_x', channel)
    """
    return get_channel_layer()


# Import all shared fixtures
from core_backend.tests.fixtures import *  # noqa: F401,F403,E402
