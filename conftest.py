"""
Pytest configuration for mutil tests.

Provides:
- @pytest.mark.unix_socket marker for tests that talk to a real unix socket
- Auto-skip of those tests when the platform has no AF_UNIX support
"""

import socket

import pytest

UNIX_SOCKETS_AVAILABLE = hasattr(socket, "AF_UNIX")


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unix_socket: marks tests as requiring unix sockets (skipped if unavailable)"
    )


def pytest_collection_modifyitems(config, items):
    """Auto-skip unix socket tests when AF_UNIX is unavailable."""
    if UNIX_SOCKETS_AVAILABLE:
        return

    skip_unix = pytest.mark.skip(reason="unix sockets not available on this platform")
    for item in items:
        if "unix_socket" in item.keywords:
            item.add_marker(skip_unix)
