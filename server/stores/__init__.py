"""Stores package for Scramble tracker persistence."""

from .gateway import PersistenceGateway, RemoteError
from .game_store import GameStore, get_game_store, close_game_store
from .outbox import PendingCompletion, SyncOutbox

__all__ = [
    # Gateway contract
    "PersistenceGateway",
    "RemoteError",
    # PostgreSQL store
    "GameStore",
    "get_game_store",
    "close_game_store",
    # Sync outbox
    "PendingCompletion",
    "SyncOutbox",
]
