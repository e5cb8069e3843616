"""
Redis-backed outbox for completed games that failed to sync.

When the final write of a completed game fails, the session is still
closed locally. The pending write is parked here and retried later, so a
completed game is not lost because the database was briefly unreachable.
A game whose header never reached the database carries its header and
roster too, and is created first on retry.

Key patterns:
- scramble:outbox  -> Hash (game_id -> JSON pending completion)
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as redis

from models.rows import GameHeader, GamePlayerRow, GameStatusUpdate, HoleScoreRow
from stores.gateway import PersistenceGateway, RemoteError

logger = logging.getLogger(__name__)


@dataclass
class PendingCompletion:
    """
    A completion write waiting to be retried.

    Attributes:
        game_id: Game the write belongs to (local id if never created).
        holes: Hole rows to upsert.
        status: Completion fields to write.
        header: Game header, set only when the game was never created remotely.
        players: Roster rows that go with the header.
        attempts: Failed attempts so far.
        last_error: Message of the most recent failure.
    """

    game_id: str
    holes: list[HoleScoreRow] = field(default_factory=list)
    status: Optional[GameStatusUpdate] = None
    header: Optional[GameHeader] = None
    players: list[GamePlayerRow] = field(default_factory=list)
    attempts: int = 0
    last_error: Optional[str] = None

    def to_json(self) -> str:
        return json.dumps({
            "game_id": self.game_id,
            "holes": [h.to_dict() for h in self.holes],
            "status": self.status.to_dict() if self.status else None,
            "header": self.header.to_dict() if self.header else None,
            "players": [p.to_dict() for p in self.players],
            "attempts": self.attempts,
            "last_error": self.last_error,
        })

    @classmethod
    def from_json(cls, raw: str) -> "PendingCompletion":
        d = json.loads(raw)
        return cls(
            game_id=d["game_id"],
            holes=[HoleScoreRow.from_dict(h) for h in d.get("holes", [])],
            status=GameStatusUpdate.from_dict(d["status"]) if d.get("status") else None,
            header=GameHeader.from_dict(d["header"]) if d.get("header") else None,
            players=[GamePlayerRow.from_dict(p) for p in d.get("players", [])],
            attempts=d.get("attempts", 0),
            last_error=d.get("last_error"),
        )


class SyncOutbox:
    """
    Redis-backed queue of pending completion writes.

    Redis failures are raised as RemoteError.
    """

    OUTBOX_KEY = "scramble:outbox"

    def __init__(self, redis_client: redis.Redis, max_attempts: int = 5):
        """
        Initialize the outbox.

        Args:
            redis_client: Async Redis client.
            max_attempts: Failed attempts after which an entry is dropped.
        """
        self.redis = redis_client
        self.max_attempts = max_attempts

    @classmethod
    async def create(cls, redis_url: str, max_attempts: int = 5) -> "SyncOutbox":
        """
        Create an outbox with a new Redis connection.

        Args:
            redis_url: Redis connection URL.
            max_attempts: Failed attempts after which an entry is dropped.

        Returns:
            Configured SyncOutbox instance.
        """
        client = redis.from_url(redis_url, decode_responses=False)
        await client.ping()
        logger.info("SyncOutbox connected to Redis")
        return cls(client, max_attempts)

    async def close(self) -> None:
        """Close the Redis connection."""
        await self.redis.close()

    async def enqueue(self, entry: PendingCompletion) -> None:
        """Park a completion write, replacing any older entry for the game."""
        try:
            await self.redis.hset(self.OUTBOX_KEY, entry.game_id, entry.to_json())
        except redis.RedisError as e:
            raise RemoteError(f"Outbox write failed: {e}") from e
        logger.info(f"Queued completion of game {entry.game_id} for retry")

    async def pending(self) -> list[PendingCompletion]:
        """All parked completion writes."""
        try:
            data = await self.redis.hgetall(self.OUTBOX_KEY)
        except redis.RedisError as e:
            raise RemoteError(f"Outbox read failed: {e}") from e

        entries = []
        for field_name, raw in data.items():
            if isinstance(field_name, bytes):
                field_name = field_name.decode(errors="replace")
            try:
                if isinstance(raw, bytes):
                    raw = raw.decode()
                entries.append(PendingCompletion.from_json(raw))
            except (ValueError, KeyError, TypeError) as e:
                # Left in place for inspection
                logger.error(f"Skipping unreadable outbox entry {field_name}: {e}")
        return entries

    async def remove(self, game_id: str) -> None:
        try:
            await self.redis.hdel(self.OUTBOX_KEY, game_id)
        except redis.RedisError as e:
            raise RemoteError(f"Outbox delete failed: {e}") from e

    async def _write(self, gateway: PersistenceGateway, entry: PendingCompletion) -> str:
        """Write one entry through the gateway. Returns the remote game id."""
        game_id = entry.game_id
        if entry.header is not None:
            game_id = await gateway.create_game(entry.header, entry.players)
            # Created now; a later retry must not create it twice
            entry.game_id = game_id
            entry.header = None
            entry.players = []
        await gateway.upsert_hole_scores(game_id, entry.holes)
        if entry.status is not None:
            await gateway.update_game_status(game_id, entry.status)
        return game_id

    async def flush(self, gateway: PersistenceGateway) -> int:
        """
        Retry every parked write.

        Successful entries are removed. Failed entries are kept with their
        attempt count raised, and dropped once max_attempts is reached.

        Args:
            gateway: Gateway to write through.

        Returns:
            Number of entries written successfully.
        """
        flushed = 0
        for entry in await self.pending():
            local_id = entry.game_id
            try:
                game_id = await self._write(gateway, entry)
            except RemoteError as e:
                entry.attempts += 1
                entry.last_error = e.message
                if entry.attempts >= self.max_attempts:
                    logger.error(
                        f"Dropping completion of game {local_id} after "
                        f"{entry.attempts} attempts: {e.message}",
                        extra={"game_id": local_id},
                    )
                    await self.remove(local_id)
                else:
                    if entry.game_id != local_id:
                        await self.remove(local_id)
                    await self.enqueue(entry)
                continue

            await self.remove(local_id)
            flushed += 1
            logger.info(
                f"Synced queued completion of game {game_id}",
                extra={"game_id": game_id},
            )
        return flushed
