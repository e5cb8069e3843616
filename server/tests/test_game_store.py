"""
Tests for the PostgreSQL game store.

The asyncpg pool and connection are mocked; these tests check the
statements issued and the translation of driver errors.
"""

import json
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import asyncpg
import pytest

from models.rows import GameHeader, GamePlayerRow, GameStatusUpdate, HoleScoreRow
from stores.game_store import GameStore
from stores.gateway import RemoteError


# =============================================================================
# Fixtures
# =============================================================================

class FakeContext:
    """Async context manager returning a fixed value."""

    def __init__(self, value=None):
        self.value = value

    async def __aenter__(self):
        return self.value

    async def __aexit__(self, *exc):
        return False


@pytest.fixture
def conn():
    conn = AsyncMock()
    conn.transaction = MagicMock(return_value=FakeContext())
    return conn


@pytest.fixture
def pool(conn):
    pool = MagicMock()
    pool.acquire = MagicMock(return_value=FakeContext(conn))
    return pool


@pytest.fixture
def store(pool):
    return GameStore(pool)


def game_record(game_id, **overrides):
    record = {
        "id": uuid.UUID(game_id),
        "user_id": "user-1",
        "course_name": "Pine",
        "course_par": 8,
        "hole_count": 2,
        "status": "completed",
        "total_score": 5,
        "user_contribution": 60.0,
        "created_at": datetime(2026, 4, 1, tzinfo=timezone.utc),
        "completed_at": datetime(2026, 4, 1, 3, tzinfo=timezone.utc),
    }
    record.update(overrides)
    return record


# =============================================================================
# Write Tests
# =============================================================================

class TestGameStoreWrites:

    @pytest.mark.asyncio
    async def test_create_game_inserts_header_and_roster(self, store, conn):
        header = GameHeader(
            user_id="user-1", course_name="Pine", hole_count=2, course_par=8, hole_pars=[4, 4],
        )
        players = [
            GamePlayerRow(id="a", game_id="local", name="Alice", kind="host", user_id="user-1"),
            GamePlayerRow(id="b", game_id="local", name="Bob"),
        ]

        game_id = await store.create_game(header, players)

        uuid.UUID(game_id)
        insert_args = conn.execute.await_args.args
        assert "INSERT INTO games" in insert_args[0]
        assert insert_args[1:6] == (game_id, "user-1", "Pine", 8, 2)
        assert insert_args[-1] == [4, 4]
        roster = conn.executemany.await_args.args[1]
        assert roster == [
            ("a", game_id, "user-1", "Alice", "host"),
            ("b", game_id, None, "Bob", "guest"),
        ]

    @pytest.mark.asyncio
    async def test_upsert_serializes_strokes(self, store, conn):
        row = HoleScoreRow(
            game_id="g", hole_number=1, par=4, total_strokes=1,
            strokes_json=[{"sequence_number": 1, "player_id": "a"}],
        )
        game_id = str(uuid.uuid4())

        await store.upsert_hole_scores(game_id, [row])

        sql, values = conn.executemany.await_args.args
        assert "ON CONFLICT (game_id, hole_number) DO UPDATE" in sql
        assert values[0][:4] == (game_id, 1, 4, 1)
        assert json.loads(values[0][4]) == row.strokes_json

    @pytest.mark.asyncio
    async def test_upsert_nothing_skips_database(self, store, pool):
        await store.upsert_hole_scores(str(uuid.uuid4()), [])
        pool.acquire.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_status_of_missing_game(self, store, conn):
        conn.execute.return_value = "UPDATE 0"
        update = GameStatusUpdate(
            status="completed",
            total_score=5,
            completed_at=datetime.now(timezone.utc),
        )
        with pytest.raises(RemoteError):
            await store.update_game_status(str(uuid.uuid4()), update)

    @pytest.mark.asyncio
    async def test_update_status(self, store, conn):
        conn.execute.return_value = "UPDATE 1"
        update = GameStatusUpdate(
            status="completed",
            total_score=5,
            completed_at=datetime.now(timezone.utc),
            user_contribution_pct=60.0,
        )
        await store.update_game_status("g", update)
        assert conn.execute.await_args.args[2:] == ("completed", 5, update.completed_at, 60.0)

    @pytest.mark.asyncio
    async def test_driver_errors_become_remote_errors(self, store, conn):
        conn.execute.side_effect = OSError("connection refused")
        with pytest.raises(RemoteError) as exc_info:
            await store.delete_game(str(uuid.uuid4()))
        assert "connection refused" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_interface_errors_become_remote_errors(self, store, pool):
        pool.acquire = MagicMock(side_effect=asyncpg.InterfaceError("pool is closed"))
        with pytest.raises(RemoteError):
            await store.clear_draft("user-1")


# =============================================================================
# Read Tests
# =============================================================================

class TestGameStoreReads:

    @pytest.mark.asyncio
    async def test_list_completed_games_attaches_children(self, store, conn):
        first, second = str(uuid.uuid4()), str(uuid.uuid4())
        conn.fetch.side_effect = [
            [game_record(first), game_record(second)],
            [{"id": "a", "game_id": uuid.UUID(first), "user_id": "user-1",
              "name": "Alice", "kind": "host"}],
            [{"game_id": uuid.UUID(second), "hole_number": 1, "par": 4,
              "total_strokes": 2, "strokes_json": "[]"}],
        ]

        games = await store.list_completed_games("user-1", 10)

        assert [g.game.id for g in games] == [first, second]
        assert games[0].players[0].name == "Alice"
        assert games[1].holes[0].total_strokes == 2
        assert conn.fetch.await_args_list[0].args[1:] == ("user-1", 10)

    @pytest.mark.asyncio
    async def test_empty_history_skips_children(self, store, conn):
        conn.fetch.return_value = []
        assert await store.list_completed_games("user-1") == []
        assert conn.fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_get_game_not_found(self, store, conn):
        conn.fetchrow.return_value = None
        assert await store.get_game(str(uuid.uuid4())) is None

    @pytest.mark.asyncio
    async def test_non_uuid_game_id_skips_database(self, store, pool):
        assert await store.get_game("local-id") is None
        await store.delete_game("local-id")
        pool.acquire.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_draft_decodes_json(self, store, conn):
        conn.fetchrow.return_value = {"game_data": '{"course_name": "Pine"}'}
        assert await store.get_draft("user-1") == {"course_name": "Pine"}

    @pytest.mark.asyncio
    async def test_courses_without_client(self, store):
        with pytest.raises(RemoteError):
            await store.search_courses("pine")
        with pytest.raises(RemoteError):
            await store.get_course_holes("1")

    @pytest.mark.asyncio
    async def test_courses_delegate_to_client(self, pool):
        client = AsyncMock()
        client.search.return_value = ["course"]
        store = GameStore(pool, course_client=client)
        assert await store.search_courses("pine") == ["course"]
        client.search.assert_awaited_once_with("pine")
