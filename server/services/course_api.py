"""
Client for the third-party golf course API.

Provides course search by name and course details with per-hole par.
The API groups tee sets by gender; a standard 18-hole male tee is
preferred, falling back to the first tee set that has hole data.

Usage:
    client = CourseApiClient(base_url, api_key)
    candidates = await client.search("pebble")
    details = await client.get_details(candidates[0].id)
"""

import logging
from typing import Optional

import httpx

from constants import PREFERRED_TEE_HOLES, TEE_GROUPS
from models.course import CourseCandidate, CourseDetails, HolePar
from stores.gateway import RemoteError

logger = logging.getLogger(__name__)


def pick_tee(course: dict) -> Optional[dict]:
    """
    Choose the tee set to take hole data from.

    Args:
        course: The "course" object from a details response.

    Returns:
        The first 18-hole tee across male then female tees, else the first
        tee overall; None if the course has no tees.
    """
    tees = course.get("tees") or {}
    all_tees: list[dict] = []
    for group in TEE_GROUPS:
        all_tees.extend(tees.get(group) or [])

    if not all_tees:
        return None

    for tee in all_tees:
        if tee.get("number_of_holes") == PREFERRED_TEE_HOLES:
            return tee
    return all_tees[0]


def _hole_par(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        par = int(value)
    except (TypeError, ValueError):
        return None
    return par if par > 0 else None


def parse_course_details(data: dict) -> Optional[CourseDetails]:
    """
    Build CourseDetails from a details response body.

    Returns None when no tee set carries hole data, or when any hole of the
    chosen tee lacks a usable par.
    """
    course = data.get("course") if isinstance(data, dict) else None
    if not course:
        return None

    tee = pick_tee(course)
    if not tee or not tee.get("holes"):
        return None

    pars = [
        _hole_par(hole.get("par")) if isinstance(hole, dict) else None
        for hole in tee["holes"]
    ]
    if None in pars:
        logger.warning(f"Tee {tee.get('tee_name')} has holes without a valid par")
        return None

    holes = [HolePar(number=index, par=par) for index, par in enumerate(pars, start=1)]
    return CourseDetails(
        id=str(course.get("id", "")),
        course_name=course.get("course_name") or course.get("club_name") or "",
        par=_hole_par(tee.get("par_total")) or sum(pars),
        tee_name=tee.get("tee_name"),
        holes=holes,
    )


class CourseApiClient:
    """
    Async HTTP client for the course API.

    HTTP and transport failures are raised as RemoteError.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the course API client.

        Args:
            base_url: API root, e.g. https://api.golfcourseapi.com/v1.
            api_key: API key sent as "Authorization: Key <key>".
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={
                "Authorization": f"Key {api_key}",
                "Content-Type": "application/json",
            },
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Course API error {e.response.status_code}: {e.response.text[:200]}")
            raise RemoteError(f"Course API returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Course API request failed: {e}")
            raise RemoteError(f"Course API request failed: {e}") from e
        except ValueError as e:
            raise RemoteError("Course API returned invalid JSON") from e

    async def search(self, query: str) -> list[CourseCandidate]:
        """
        Search courses by name.

        Args:
            query: Search text.

        Returns:
            Matching courses (possibly empty).
        """
        data = await self._get("/search", params={"search_query": query})
        courses = (data.get("courses") if isinstance(data, dict) else None) or []
        return [CourseCandidate.from_api(c) for c in courses if isinstance(c, dict) and "id" in c]

    async def get_details(self, course_id: str) -> Optional[CourseDetails]:
        """
        Get course details with per-hole par.

        Args:
            course_id: Course id from a search result.

        Returns:
            CourseDetails, or None if no tee set has hole data.
        """
        data = await self._get(f"/courses/{course_id}")
        details = parse_course_details(data)
        if details is None:
            logger.warning(f"Course {course_id} has no tee with hole data")
        return details
