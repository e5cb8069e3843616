"""
Games API router.

Drives the caller's active scramble game (setup, strokes, par, hole
advance, completion) and serves completed-game history.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from constants import DEFAULT_HOLE_COUNT
from game import InvalidStateError, Player, PlayerKind, ValidationError
from routers.deps import get_controller_dep, raise_http_error
from session import GameSessionController, PersistenceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/games", tags=["games"])


# =============================================================================
# Request Models
# =============================================================================


class PlayerRequest(BaseModel):
    """A team member in a new game."""
    id: Optional[str] = None
    name: str
    kind: PlayerKind = PlayerKind.GUEST
    user_id: Optional[str] = None


class CreateGameRequest(BaseModel):
    """New game setup."""
    course_name: str
    total_holes: int = DEFAULT_HOLE_COUNT
    players: list[PlayerRequest]
    per_hole_par: Optional[list[int]] = None
    course_id: Optional[str] = None


class StrokeRequest(BaseModel):
    """Credit a stroke to a player."""
    player_id: str
    contributor_user_id: Optional[str] = None


class ParRequest(BaseModel):
    par: int


class AdvanceRequest(BaseModel):
    par: Optional[int] = None


# =============================================================================
# Helpers
# =============================================================================


async def _course_pars(
    controller: GameSessionController,
    course_id: str,
    total_holes: int,
) -> Optional[list[int]]:
    """Per-hole par from a selected course, trimmed to the holes being played."""
    details = await controller.get_course(course_id)
    if details is None:
        return None
    pars = details.hole_pars
    if len(pars) < total_holes:
        logger.info(f"Course {course_id} has {len(pars)} holes, need {total_holes}")
        return None
    return pars[:total_holes]


# =============================================================================
# Active Game
# =============================================================================


@router.post("", status_code=201)
async def create_game(
    request: CreateGameRequest,
    controller: GameSessionController = Depends(get_controller_dep),
):
    """Start a new game for the caller."""
    players = [
        Player(
            id=p.id or str(uuid.uuid4()),
            name=p.name,
            kind=p.kind,
            owner_user_id=p.user_id,
        )
        for p in request.players
    ]

    per_hole_par = request.per_hole_par
    if per_hole_par is None and request.course_id:
        per_hole_par = await _course_pars(controller, request.course_id, request.total_holes)

    try:
        session = await controller.create_session(
            course_name=request.course_name,
            total_holes=request.total_holes,
            players=players,
            per_hole_par=per_hole_par,
        )
    except (ValidationError, InvalidStateError, PersistenceError) as e:
        raise_http_error(e)
    return {"game": session.to_dict()}


@router.get("/active")
async def get_active_game(controller: GameSessionController = Depends(get_controller_dep)):
    """The caller's game in progress, if any."""
    session = controller.session
    return {"game": session.to_dict() if session else None}


@router.post("/resume")
async def resume_game(controller: GameSessionController = Depends(get_controller_dep)):
    """Load the caller's most recent unfinished game from storage."""
    try:
        session = await controller.resume_active()
    except PersistenceError as e:
        raise_http_error(e)
    if session is None:
        raise HTTPException(status_code=404, detail="No unfinished game to resume")
    return {"game": session.to_dict()}


@router.post("/active/strokes")
async def record_stroke(
    request: StrokeRequest,
    controller: GameSessionController = Depends(get_controller_dep),
):
    """Credit the next stroke on the current hole."""
    try:
        stroke = controller.record_stroke(request.player_id, request.contributor_user_id)
    except (ValidationError, InvalidStateError) as e:
        raise_http_error(e)
    return {"stroke": stroke.to_dict(), "game": controller.session.to_dict()}


@router.delete("/active/strokes/last")
async def undo_stroke(controller: GameSessionController = Depends(get_controller_dep)):
    """Remove the most recent stroke on the current hole."""
    try:
        stroke = controller.undo_last_stroke()
    except InvalidStateError as e:
        raise_http_error(e)
    return {
        "stroke": stroke.to_dict() if stroke else None,
        "game": controller.session.to_dict(),
    }


@router.put("/active/par")
async def set_par(
    request: ParRequest,
    controller: GameSessionController = Depends(get_controller_dep),
):
    try:
        hole = controller.set_par(request.par)
    except (ValidationError, InvalidStateError) as e:
        raise_http_error(e)
    return {"hole": hole.to_dict(), "game": controller.session.to_dict()}


@router.post("/active/advance")
async def advance_hole(
    request: Optional[AdvanceRequest] = None,
    controller: GameSessionController = Depends(get_controller_dep),
):
    """
    Finalize the current hole.

    When the last hole is finalized the response includes a summary
    preview; the game is committed by /active/complete.
    """
    par = request.par if request else None
    try:
        result = await controller.advance_hole(par)
    except (ValidationError, InvalidStateError) as e:
        raise_http_error(e)

    session = controller.session
    response = result.to_dict()
    response["game"] = session.to_dict()
    if result.finished:
        response["summary"] = session.summarize().to_dict()
    return response


@router.post("/active/complete")
async def complete_game(controller: GameSessionController = Depends(get_controller_dep)):
    """Commit the finished game and close it."""
    try:
        summary = await controller.complete_session()
    except (InvalidStateError, PersistenceError) as e:
        raise_http_error(e)
    return {"summary": summary.to_dict()}


# =============================================================================
# History
# =============================================================================


@router.get("/history")
async def get_history(
    limit: Optional[int] = Query(None, ge=1, le=100),
    controller: GameSessionController = Depends(get_controller_dep),
):
    """The caller's completed games, most recent first."""
    try:
        summaries = await controller.fetch_history(limit=limit)
    except PersistenceError as e:
        raise_http_error(e)
    return {"games": [s.to_dict() for s in summaries]}


@router.get("/{game_id}")
async def get_game(
    game_id: str,
    controller: GameSessionController = Depends(get_controller_dep),
):
    """One stored game with holes and contributions."""
    try:
        summary = await controller.get_game_details(game_id)
    except PersistenceError as e:
        raise_http_error(e)
    if summary is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return {"game": summary.to_dict()}


@router.delete("/{game_id}")
async def delete_game(
    game_id: str,
    controller: GameSessionController = Depends(get_controller_dep),
):
    try:
        deleted = await controller.delete_session(game_id)
    except PersistenceError as e:
        raise_http_error(e)
    if not deleted:
        raise HTTPException(status_code=404, detail="Game not found")
    return {"status": "deleted", "game_id": game_id}
