"""
Shared fixtures for the relay tests.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from app import app
from backend import SessionRegistry
from room import GameRole, Room


@pytest.fixture
def registry():
    """A fresh registry with its own telemetry."""
    return SessionRegistry()


@pytest.fixture
def reporter():
    """Stand-in for the registry when a room is tested on its own."""
    return MagicMock()


@pytest.fixture
def room(reporter):
    """A room with a presenter and one player."""
    game_room = Room("QZVK", "Lexible", "presenter-id", "presenter-secret", reporter)
    game_room.add_endpoint("alice-id", "alice-secret", "Alice", GameRole.CLIENT)
    return game_room


@pytest.fixture
def make_socket():
    """Factory for fake websockets with async send_text/close."""

    def _make():
        socket = MagicMock()
        socket.send_text = AsyncMock()
        socket.close = AsyncMock()
        return socket

    return _make


@pytest.fixture
def client():
    """Test client with the lifespan (and so a fresh registry) running."""
    with TestClient(app) as test_client:
        yield test_client
