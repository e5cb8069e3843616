"""
Courses API router.

Course search and per-hole par lookup. Lookups degrade quietly: a failed
or too-short search returns no results, a failed detail lookup is a 404.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from routers.deps import get_controller_dep
from session import GameSessionController

router = APIRouter(prefix="/api/courses", tags=["courses"])


@router.get("/search")
async def search_courses(
    q: str = Query(""),
    controller: GameSessionController = Depends(get_controller_dep),
):
    """Courses matching a name query."""
    candidates = await controller.search_courses(q)
    return {"courses": [c.to_dict() for c in candidates]}


@router.get("/{course_id}")
async def get_course(
    course_id: str,
    controller: GameSessionController = Depends(get_controller_dep),
):
    """Course details with per-hole par from the preferred tee."""
    details = await controller.get_course(course_id)
    if details is None:
        raise HTTPException(status_code=404, detail="Course details unavailable")
    return {"course": details.to_dict()}
