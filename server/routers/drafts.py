"""
Drafts API router.

A draft is the caller's unfinished game setup form. Draft storage is best
effort: failures are logged and reported as saved=false, never as errors.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends

from routers.deps import get_controller_dep
from session import GameSessionController

router = APIRouter(prefix="/api/drafts", tags=["drafts"])


@router.get("")
async def get_draft(controller: GameSessionController = Depends(get_controller_dep)):
    return {"draft": await controller.load_draft()}


@router.put("")
async def save_draft(
    data: dict[str, Any] = Body(...),
    controller: GameSessionController = Depends(get_controller_dep),
):
    return {"saved": await controller.save_draft(data)}


@router.delete("")
async def clear_draft(controller: GameSessionController = Depends(get_controller_dep)):
    return {"cleared": await controller.clear_draft()}
