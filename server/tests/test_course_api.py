"""
Tests for the course API client.

Requests are served by httpx.MockTransport, so no network is used.
"""

from unittest.mock import AsyncMock

import httpx
import pytest

from services.course_api import CourseApiClient, parse_course_details, pick_tee
from session import GameSessionController
from stores.game_store import GameStore
from stores.gateway import RemoteError


def tee(name, holes, pars=None, par_total=None):
    pars = pars or [4] * holes
    return {
        "tee_name": name,
        "number_of_holes": holes,
        "par_total": par_total if par_total is not None else sum(pars),
        "holes": [{"par": p, "yardage": 400} for p in pars],
    }


def make_client(handler):
    return CourseApiClient(
        "https://courses.test/v1/",
        "secret-key",
        transport=httpx.MockTransport(handler),
    )


# =============================================================================
# Tee Selection
# =============================================================================

class TestPickTee:

    def test_prefers_first_18_hole_male_tee(self):
        course = {"tees": {
            "male": [tee("Short", 9), tee("Blue", 18), tee("White", 18)],
            "female": [tee("Red", 18)],
        }}
        assert pick_tee(course)["tee_name"] == "Blue"

    def test_falls_back_to_female_18_hole_tee(self):
        course = {"tees": {
            "male": [tee("Short", 9)],
            "female": [tee("Red", 18)],
        }}
        assert pick_tee(course)["tee_name"] == "Red"

    def test_falls_back_to_first_tee(self):
        course = {"tees": {"male": [tee("Front", 9), tee("Back", 9)]}}
        assert pick_tee(course)["tee_name"] == "Front"

    def test_no_tees(self):
        assert pick_tee({"tees": {}}) is None
        assert pick_tee({}) is None


class TestParseCourseDetails:

    def test_builds_hole_pars(self):
        data = {"course": {
            "id": 77,
            "course_name": "Links",
            "tees": {"male": [tee("Blue", 18, pars=[4, 5, 3] * 6)]},
        }}

        details = parse_course_details(data)

        assert details.id == "77"
        assert details.course_name == "Links"
        assert details.tee_name == "Blue"
        assert details.par == 72
        assert [h.number for h in details.holes] == list(range(1, 19))
        assert details.hole_pars[:3] == [4, 5, 3]

    def test_tee_without_holes(self):
        data = {"course": {"id": 1, "tees": {"male": [{"tee_name": "Blue", "holes": []}]}}}
        assert parse_course_details(data) is None

    def test_missing_course(self):
        assert parse_course_details({}) is None

    def test_null_par_means_no_course(self):
        bad_tee = dict(tee("Blue", 18), holes=[{"par": None}] * 18)
        data = {"course": {"id": 1, "tees": {"male": [bad_tee]}}}
        assert parse_course_details(data) is None

    def test_non_numeric_par_means_no_course(self):
        bad_tee = tee("Blue", 3, pars=[4, 4, 4])
        bad_tee["holes"][1]["par"] = "four"
        data = {"course": {"id": 1, "tees": {"male": [bad_tee]}}}
        assert parse_course_details(data) is None

    def test_par_total_falls_back_to_hole_sum(self):
        blue = tee("Blue", 3, pars=[4, 3, 5])
        blue["par_total"] = None
        details = parse_course_details({"course": {"id": 1, "tees": {"male": [blue]}}})
        assert details.par == 12


# =============================================================================
# HTTP Client
# =============================================================================

class TestCourseApiClient:

    @pytest.mark.asyncio
    async def test_search_sends_query_and_key(self):
        seen = {}

        def handler(request):
            seen["url"] = request.url
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"courses": [
                {"id": 1, "course_name": "Pebble Beach",
                 "location": {"city": "Pebble Beach", "state": "CA"}},
                {"course_name": "No id"},
            ]})

        client = make_client(handler)
        results = await client.search("pebble")
        await client.close()

        assert seen["url"].path == "/v1/search"
        assert seen["url"].params["search_query"] == "pebble"
        assert seen["auth"] == "Key secret-key"
        assert len(results) == 1
        assert results[0].id == "1"
        assert results[0].location == "Pebble Beach, CA"

    @pytest.mark.asyncio
    async def test_get_details(self):
        def handler(request):
            assert request.url.path == "/v1/courses/42"
            return httpx.Response(200, json={"course": {
                "id": 42,
                "course_name": "Nine",
                "tees": {"male": [tee("Yellow", 9, pars=[3] * 9)]},
            }})

        client = make_client(handler)
        details = await client.get_details("42")
        await client.close()

        assert details.par == 27
        assert len(details.holes) == 9

    @pytest.mark.asyncio
    async def test_details_without_tees(self):
        client = make_client(lambda request: httpx.Response(200, json={"course": {"id": 1, "tees": {}}}))
        assert await client.get_details("1") is None
        await client.close()

    @pytest.mark.asyncio
    async def test_http_error_raises_remote_error(self):
        client = make_client(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(RemoteError) as exc_info:
            await client.search("pebble")
        await client.close()
        assert "500" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_error_raises_remote_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(RemoteError):
            await client.get_details("1")
        await client.close()

    @pytest.mark.asyncio
    async def test_invalid_json_raises_remote_error(self):
        client = make_client(lambda request: httpx.Response(200, text="not json"))
        with pytest.raises(RemoteError):
            await client.search("pebble")
        await client.close()

    @pytest.mark.asyncio
    async def test_null_par_course_is_not_selected(self):
        bad_tee = dict(tee("Blue", 18), holes=[{"par": None}] * 18)
        client = make_client(lambda request: httpx.Response(200, json={
            "course": {"id": 1, "course_name": "Broken", "tees": {"male": [bad_tee]}},
        }))
        controller = GameSessionController(GameStore(AsyncMock(), course_client=client), user_id="user-1")

        assert await controller.get_course("1") is None
        await client.close()
