"""
PostgreSQL-backed game store for the Scramble tracker.

Implements the persistence gateway on asyncpg. Games, rosters and hole
scores live in three tables; strokes are kept as JSON on the hole row so
a hole is always written in one statement. Course lookups are delegated
to the course API client.

Features:
- Upsert of hole rows keyed by (game_id, hole_number)
- Cascading delete of a game's roster and holes
- One draft game per user
"""

import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

import asyncpg

from models.course import CourseCandidate, CourseDetails
from models.rows import (
    GAME_STATUS_ACTIVE,
    GAME_STATUS_COMPLETED,
    GameHeader,
    GamePlayerRow,
    GameRow,
    GameStatusUpdate,
    HoleScoreRow,
    StoredGame,
)
from stores.gateway import PersistenceGateway, RemoteError

if TYPE_CHECKING:
    from services.course_api import CourseApiClient

logger = logging.getLogger(__name__)


# SQL schema for the game store
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS games (
    id UUID PRIMARY KEY,
    user_id TEXT,
    course_name VARCHAR(200) NOT NULL,
    course_par INT,
    hole_pars INT[],
    hole_count INT NOT NULL DEFAULT 18,
    status VARCHAR(20) NOT NULL DEFAULT 'active',  -- active, completed
    total_score INT,
    user_contribution DOUBLE PRECISION,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    completed_at TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS game_players (
    id TEXT NOT NULL,
    game_id UUID NOT NULL REFERENCES games(id) ON DELETE CASCADE,
    user_id TEXT,
    name VARCHAR(100) NOT NULL,
    kind VARCHAR(20) NOT NULL DEFAULT 'guest',
    PRIMARY KEY (game_id, id)
);

CREATE TABLE IF NOT EXISTS hole_scores (
    id BIGSERIAL PRIMARY KEY,
    game_id UUID NOT NULL REFERENCES games(id) ON DELETE CASCADE,
    hole_number INT NOT NULL,
    par INT,
    total_strokes INT NOT NULL DEFAULT 0,
    strokes_json JSONB NOT NULL DEFAULT '[]',
    UNIQUE(game_id, hole_number)
);

CREATE TABLE IF NOT EXISTS draft_games (
    user_id TEXT PRIMARY KEY,
    game_data JSONB NOT NULL,
    last_updated TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

-- Added after the first release
ALTER TABLE games ADD COLUMN IF NOT EXISTS hole_pars INT[];

CREATE INDEX IF NOT EXISTS idx_games_user_created ON games(user_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_games_completed ON games(user_id) WHERE completed_at IS NOT NULL;
CREATE INDEX IF NOT EXISTS idx_hole_scores_game ON hole_scores(game_id, hole_number);
"""

_GAME_COLUMNS = """
    id, user_id, course_name, course_par, hole_pars, hole_count, status,
    total_score, user_contribution, created_at, completed_at
"""


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


class GameStore(PersistenceGateway):
    """
    PostgreSQL-backed persistence gateway.

    Every driver failure is raised as RemoteError.
    """

    def __init__(self, pool: asyncpg.Pool, course_client: Optional["CourseApiClient"] = None):
        """
        Initialize game store with connection pool.

        Args:
            pool: asyncpg connection pool.
            course_client: Client used for course lookups.
        """
        self.pool = pool
        self.course_client = course_client

    @classmethod
    async def create(
        cls,
        postgres_url: str,
        course_client: Optional["CourseApiClient"] = None,
    ) -> "GameStore":
        """
        Create a GameStore with a new connection pool.

        Args:
            postgres_url: PostgreSQL connection URL.
            course_client: Client used for course lookups.

        Returns:
            Configured GameStore instance.
        """
        pool = await asyncpg.create_pool(postgres_url, min_size=2, max_size=10)
        store = cls(pool, course_client)
        await store.initialize_schema()
        return store

    async def initialize_schema(self) -> None:
        """Create database tables if they don't exist."""
        async with self._connection() as conn:
            await conn.execute(SCHEMA_SQL)
        logger.info("Game store schema initialized")

    async def close(self) -> None:
        """Close the connection pool."""
        await self.pool.close()

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection, translating driver errors to RemoteError."""
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.warning(f"Database call failed: {e}")
            raise RemoteError(str(e)) from e

    # -------------------------------------------------------------------------
    # Game Writes
    # -------------------------------------------------------------------------

    async def create_game(self, header: GameHeader, players: list[GamePlayerRow]) -> str:
        """
        Insert a game header and its roster in one transaction.

        Args:
            header: Game header values.
            players: Roster rows (their game_id is replaced by the new id).

        Returns:
            The new game id.
        """
        game_id = str(uuid.uuid4())
        async with self._connection() as conn:
            async with conn.transaction():
                await conn.execute(
                    """
                    INSERT INTO games (
                        id, user_id, course_name, course_par, hole_count, status, created_at, hole_pars
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                    """,
                    game_id,
                    header.user_id,
                    header.course_name,
                    header.course_par,
                    header.hole_count,
                    GAME_STATUS_ACTIVE,
                    header.created_at,
                    header.hole_pars or None,
                )
                await conn.executemany(
                    """
                    INSERT INTO game_players (id, game_id, user_id, name, kind)
                    VALUES ($1, $2, $3, $4, $5)
                    """,
                    [(p.id, game_id, p.user_id, p.name, p.kind) for p in players],
                )
        logger.debug(f"Created game {game_id} with {len(players)} players")
        return game_id

    async def upsert_hole_scores(self, game_id: str, rows: list[HoleScoreRow]) -> None:
        """
        Insert or replace hole rows.

        Args:
            game_id: Game UUID.
            rows: Hole rows to write.
        """
        if not rows:
            return

        async with self._connection() as conn:
            async with conn.transaction():
                await conn.executemany(
                    """
                    INSERT INTO hole_scores (game_id, hole_number, par, total_strokes, strokes_json)
                    VALUES ($1, $2, $3, $4, $5::jsonb)
                    ON CONFLICT (game_id, hole_number) DO UPDATE
                    SET par = EXCLUDED.par,
                        total_strokes = EXCLUDED.total_strokes,
                        strokes_json = EXCLUDED.strokes_json
                    """,
                    [
                        (game_id, r.hole_number, r.par, r.total_strokes, json.dumps(r.strokes_json))
                        for r in rows
                    ],
                )

    async def update_game_status(self, game_id: str, update: GameStatusUpdate) -> None:
        """
        Write completion fields for a game.

        Raises:
            RemoteError: If the game does not exist or the write fails.
        """
        async with self._connection() as conn:
            result = await conn.execute(
                """
                UPDATE games
                SET status = $2, total_score = $3, completed_at = $4, user_contribution = $5
                WHERE id = $1
                """,
                game_id,
                update.status,
                update.total_score,
                update.completed_at,
                update.user_contribution_pct,
            )
        if result.endswith(" 0"):
            raise RemoteError(f"Game {game_id} not found")

    async def delete_game(self, game_id: str) -> None:
        """Delete a game; roster and hole rows go with it."""
        if not _is_uuid(game_id):
            return
        async with self._connection() as conn:
            await conn.execute("DELETE FROM games WHERE id = $1", game_id)

    # -------------------------------------------------------------------------
    # Game Reads
    # -------------------------------------------------------------------------

    async def list_completed_games(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[StoredGame]:
        """
        Get a user's completed games, newest first.

        Args:
            user_id: Owner of the games.
            limit: Maximum games to return (None for all).

        Returns:
            Stored games with rosters and hole rows.
        """
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_GAME_COLUMNS}
                FROM games
                WHERE user_id = $1 AND completed_at IS NOT NULL
                ORDER BY created_at DESC
                LIMIT $2
                """,
                user_id,
                limit,
            )
            games = [GameRow.from_record(row) for row in rows]
            return await self._load_children(conn, games)

    async def get_game(self, game_id: str) -> Optional[StoredGame]:
        """Get one game with roster and hole rows."""
        if not _is_uuid(game_id):
            return None
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"SELECT {_GAME_COLUMNS} FROM games WHERE id = $1",
                game_id,
            )
            if not row:
                return None
            stored = await self._load_children(conn, [GameRow.from_record(row)])
            return stored[0]

    async def get_active_game(self, user_id: str) -> Optional[StoredGame]:
        """Get the user's most recent incomplete game."""
        async with self._connection() as conn:
            row = await conn.fetchrow(
                f"""
                SELECT {_GAME_COLUMNS}
                FROM games
                WHERE user_id = $1 AND completed_at IS NULL AND status <> $2
                ORDER BY created_at DESC
                LIMIT 1
                """,
                user_id,
                GAME_STATUS_COMPLETED,
            )
            if not row:
                return None
            stored = await self._load_children(conn, [GameRow.from_record(row)])
            return stored[0]

    async def _load_children(
        self,
        conn: asyncpg.Connection,
        games: list[GameRow],
    ) -> list[StoredGame]:
        """Attach roster and hole rows to game rows."""
        if not games:
            return []

        ids = [g.id for g in games]
        player_rows = await conn.fetch(
            """
            SELECT id, game_id, user_id, name, kind
            FROM game_players
            WHERE game_id = ANY($1::uuid[])
            """,
            ids,
        )
        hole_rows = await conn.fetch(
            """
            SELECT game_id, hole_number, par, total_strokes, strokes_json
            FROM hole_scores
            WHERE game_id = ANY($1::uuid[])
            ORDER BY hole_number
            """,
            ids,
        )

        stored = {g.id: StoredGame(game=g) for g in games}
        for row in player_rows:
            player = GamePlayerRow.from_record(row)
            stored[player.game_id].players.append(player)
        for row in hole_rows:
            hole = HoleScoreRow.from_record(row)
            stored[hole.game_id].holes.append(hole)
        return [stored[g.id] for g in games]

    # -------------------------------------------------------------------------
    # Drafts
    # -------------------------------------------------------------------------

    async def save_draft(self, user_id: str, data: dict) -> None:
        async with self._connection() as conn:
            await conn.execute(
                """
                INSERT INTO draft_games (user_id, game_data, last_updated)
                VALUES ($1, $2::jsonb, NOW())
                ON CONFLICT (user_id) DO UPDATE
                SET game_data = EXCLUDED.game_data, last_updated = NOW()
                """,
                user_id,
                json.dumps(data),
            )

    async def get_draft(self, user_id: str) -> Optional[dict]:
        async with self._connection() as conn:
            row = await conn.fetchrow(
                "SELECT game_data FROM draft_games WHERE user_id = $1",
                user_id,
            )
        if not row:
            return None
        data = row["game_data"]
        return json.loads(data) if isinstance(data, str) else data

    async def clear_draft(self, user_id: str) -> None:
        async with self._connection() as conn:
            await conn.execute("DELETE FROM draft_games WHERE user_id = $1", user_id)

    # -------------------------------------------------------------------------
    # Courses
    # -------------------------------------------------------------------------

    async def search_courses(self, query: str) -> list[CourseCandidate]:
        if self.course_client is None:
            raise RemoteError("Course lookup is not configured")
        return await self.course_client.search(query)

    async def get_course_holes(self, course_id: str) -> Optional[CourseDetails]:
        if self.course_client is None:
            raise RemoteError("Course lookup is not configured")
        return await self.course_client.get_details(course_id)


# Global game store instance (initialized on first use)
_game_store: Optional[GameStore] = None


async def get_game_store(
    postgres_url: str,
    course_client: Optional["CourseApiClient"] = None,
) -> GameStore:
    """
    Get or create the global game store instance.

    Args:
        postgres_url: PostgreSQL connection URL.
        course_client: Client used for course lookups.

    Returns:
        GameStore instance.
    """
    global _game_store
    if _game_store is None:
        _game_store = await GameStore.create(postgres_url, course_client)
    return _game_store


async def close_game_store() -> None:
    """Close the global game store connection pool."""
    global _game_store
    if _game_store is not None:
        await _game_store.close()
        _game_store = None
