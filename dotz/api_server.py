"""
FastAPI server for Dotz.fit puzzle play.

This module exposes the puzzle core over HTTP: storing and editing puzzle
definitions, starting attempts, applying domino moves and recording
achievements when an attempt completes. Storage is in memory.
"""

import logging
import os
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator

from .achievements import Achievement, build_achievement, completion_seconds, cookie_trifecta_status
from .attempt_store import (
    AchievementRepository,
    Attempt,
    AttemptRepository,
    PuzzleRepository,
    RecordNotFoundError,
    decode_board_state,
    encode_board_state,
)
from .conditions import describe
from .game_config import GRID_MAX_SIZE, GRID_MIN_SIZE, DifficultyLevel
from .puzzle import Orientation, Puzzle, PuzzleDefinitionError, puzzle_from_records
from .puzzle_state import MoveResult, PuzzleStateTracker
from .solver import solve

load_dotenv()

logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("DOTZ_CORS_ORIGINS", "*").split(",") if o.strip()]


# =============================================================================
# Pydantic Models for Puzzles
# =============================================================================

class CreatePuzzleRequest(BaseModel):
    """Puzzle definition in the stored row layout."""
    title: str = Field(min_length=1, description="Puzzle title")
    description: Optional[str] = Field(default=None, description="Optional description")
    creator_id: Optional[int] = Field(default=None, description="Creator user id, null for system puzzles")
    difficulty_level: DifficultyLevel
    grid_width: int = Field(ge=GRID_MIN_SIZE, le=GRID_MAX_SIZE)
    grid_height: int = Field(ge=GRID_MIN_SIZE, le=GRID_MAX_SIZE)
    board_data: Union[str, Dict[str, Any]] = Field(description="Region id -> {color, cells}")
    dominoes_data: Union[str, List[Any]] = Field(description="List of {id, values: [a, b]}")
    conditions_data: Union[str, Dict[str, Any]] = Field(description="Region id -> {type, value}")
    is_published: bool = False
    is_daily_puzzle: bool = False
    daily_puzzle_date: Optional[date] = None

    @field_validator("board_data", "dominoes_data", "conditions_data")
    @classmethod
    def validate_not_empty(cls, v):
        if isinstance(v, str) and not v.strip():
            raise ValueError("must not be empty")
        return v


class UpdatePuzzleRequest(BaseModel):
    """Partial edit of a stored puzzle; omitted fields keep their values."""
    creator_id: int = Field(description="Must match the puzzle's creator")
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    difficulty_level: Optional[DifficultyLevel] = None
    grid_width: Optional[int] = Field(default=None, ge=GRID_MIN_SIZE, le=GRID_MAX_SIZE)
    grid_height: Optional[int] = Field(default=None, ge=GRID_MIN_SIZE, le=GRID_MAX_SIZE)
    board_data: Optional[Union[str, Dict[str, Any]]] = None
    dominoes_data: Optional[Union[str, List[Any]]] = None
    conditions_data: Optional[Union[str, Dict[str, Any]]] = None
    solution_data: Optional[Union[str, Dict[str, Any]]] = None
    is_published: Optional[bool] = None
    is_daily_puzzle: Optional[bool] = None
    daily_puzzle_date: Optional[date] = None

    @field_validator("board_data", "dominoes_data", "conditions_data")
    @classmethod
    def validate_not_empty(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValueError("must not be empty")
        return v


class DeletePuzzleResponse(BaseModel):
    success: bool
    error: Optional[str] = None


class RegionContent(BaseModel):
    id: str
    color: Optional[str] = None
    cells: List[int]
    condition: Dict[str, Any]
    condition_text: str


class PuzzleContent(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    creator_id: Optional[int] = None
    difficulty_level: str
    grid_width: int
    grid_height: int
    regions: List[RegionContent]
    dominoes: List[Dict[str, Any]]
    is_published: bool
    is_daily_puzzle: bool
    daily_puzzle_date: Optional[date] = None
    has_solution: bool = False


class SolveResponse(BaseModel):
    success: bool
    solved: bool = False
    placements: Optional[Dict[str, Dict[str, Any]]] = None
    error: Optional[str] = None


# =============================================================================
# Pydantic Models for Attempts
# =============================================================================

class CreateAttemptRequest(BaseModel):
    puzzle_id: int
    user_id: Optional[int] = Field(default=None, description="Null for guest attempts")


class PlaceRequest(BaseModel):
    domino_id: str
    cell: int = Field(ge=0, description="Anchor cell index (row * width + col)")
    orientation: Optional[Orientation] = None


class DominoRequest(BaseModel):
    domino_id: str


class BoardStatusContent(BaseModel):
    filled_regions: List[str]
    violated_regions: List[str]
    complete: bool


class AttemptContent(BaseModel):
    id: int
    puzzle_id: int
    user_id: Optional[int] = None
    phase: str
    board: Dict[str, Dict[str, Any]]
    orientations: Dict[str, str]
    is_completed: bool
    completion_time: Optional[int] = None
    started_at: datetime
    completed_at: Optional[datetime] = None


class AchievementContent(BaseModel):
    id: int
    user_id: int
    puzzle_id: int
    attempt_id: Optional[int] = None
    difficulty_level: str
    completion_time: int
    is_cookie_trifecta: bool
    achieved_at: datetime


class AttemptResponse(BaseModel):
    attempt: AttemptContent
    status: BoardStatusContent


class MoveResponse(BaseModel):
    """Response model for place/remove/rotate."""
    success: bool = Field(description="Whether the move was applied")
    error: Optional[str] = Field(default=None, description="Placement error code if rejected")
    message: Optional[str] = Field(default=None, description="User-facing explanation of the error")
    status: BoardStatusContent
    attempt: AttemptContent
    achievement: Optional[AchievementContent] = None


class CookieTrifectaResponse(BaseModel):
    easy: bool
    medium: bool
    hard: bool


# =============================================================================
# Storage
# =============================================================================

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GameStore:
    """Repositories plus the clock used to time attempts."""

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self.puzzles = PuzzleRepository()
        self.attempts = AttemptRepository()
        self.achievements = AchievementRepository()
        self.clock = clock


store = GameStore()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Dotz.fit API",
    description="Puzzle definitions, attempts and achievements for Dotz.fit",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
async def health_check():
    """Health check endpoint for service monitoring."""
    return {"status": "healthy", "service": "dotz"}


def _puzzle_content(puzzle: Puzzle) -> PuzzleContent:
    return PuzzleContent(
        id=puzzle.puzzle_id,
        title=puzzle.title,
        description=puzzle.description,
        creator_id=puzzle.creator_id,
        difficulty_level=puzzle.difficulty,
        grid_width=puzzle.grid.width,
        grid_height=puzzle.grid.height,
        regions=[
            RegionContent(
                id=r.id,
                color=r.color,
                cells=list(r.cells),
                condition=r.condition.to_dict(),
                condition_text=describe(r.condition),
            )
            for r in puzzle.regions
        ],
        dominoes=[{"id": d.id, "values": list(d.values)} for d in puzzle.dominoes],
        is_published=puzzle.is_published,
        is_daily_puzzle=puzzle.is_daily_puzzle,
        daily_puzzle_date=puzzle.daily_puzzle_date,
        has_solution=puzzle.solution_data is not None,
    )


def _get_puzzle(puzzle_id: int) -> Puzzle:
    try:
        return store.puzzles.get(puzzle_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.args[0])


def _status_content(tracker: PuzzleStateTracker) -> BoardStatusContent:
    status = tracker.status()
    return BoardStatusContent(
        filled_regions=sorted(status.filled_regions),
        violated_regions=sorted(status.violated_regions),
        complete=status.complete,
    )


def _attempt_content(attempt: Attempt, tracker: PuzzleStateTracker) -> AttemptContent:
    snapshot = tracker.snapshot()
    return AttemptContent(
        **attempt.to_dict(),
        phase=snapshot["phase"],
        board=snapshot["board"],
        orientations=snapshot["orientations"],
    )


def _achievement_content(achievement: Achievement) -> AchievementContent:
    return AchievementContent(**achievement.to_dict())


# =============================================================================
# Puzzle Endpoints
# =============================================================================

@app.post("/puzzles", response_model=PuzzleContent)
async def create_puzzle(request: CreatePuzzleRequest) -> PuzzleContent:
    try:
        puzzle = puzzle_from_records(**request.model_dump())
    except PuzzleDefinitionError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _puzzle_content(store.puzzles.add(puzzle))


@app.get("/puzzles", response_model=List[PuzzleContent])
async def list_published_puzzles(difficulty: Optional[DifficultyLevel] = None):
    return [_puzzle_content(p) for p in store.puzzles.published(difficulty)]


@app.get("/puzzles/daily", response_model=PuzzleContent)
async def get_daily_puzzle(day: Optional[date] = None) -> PuzzleContent:
    day = day or store.clock().date()
    for puzzle in store.puzzles.published():
        if puzzle.is_daily_puzzle and puzzle.daily_puzzle_date == day:
            return _puzzle_content(puzzle)
    raise HTTPException(status_code=404, detail=f"No daily puzzle for {day.isoformat()}")


@app.get("/puzzles/{puzzle_id}", response_model=PuzzleContent)
async def get_puzzle(puzzle_id: int) -> PuzzleContent:
    return _puzzle_content(_get_puzzle(puzzle_id))


@app.post("/puzzles/{puzzle_id}/solve", response_model=SolveResponse)
async def solve_puzzle(puzzle_id: int) -> SolveResponse:
    """Run the solver and store the solution on the puzzle when one is found."""
    puzzle = _get_puzzle(puzzle_id)
    try:
        result = solve(puzzle)
    except ValueError as e:
        return SolveResponse(success=False, error=str(e))

    if not result.solved:
        return SolveResponse(success=True, solved=False, error="No solution found for this domino set")

    solution = result.to_solution_data()
    store.puzzles.update(puzzle_id, solution_data=solution)
    return SolveResponse(success=True, solved=True, placements=solution)


@app.patch("/puzzles/{puzzle_id}", response_model=PuzzleContent)
async def update_puzzle(puzzle_id: int, request: UpdatePuzzleRequest) -> PuzzleContent:
    """
    Edit a puzzle owned by the requesting creator.

    The edited puzzle is rebuilt from its stored rows, so board, domino and
    condition changes go through the same validation as a new puzzle.
    """
    puzzle = _get_puzzle(puzzle_id)
    if puzzle.creator_id != request.creator_id:
        raise HTTPException(
            status_code=403,
            detail=f"Puzzle {puzzle_id} does not belong to creator {request.creator_id}",
        )

    changes = request.model_dump(exclude_unset=True, exclude={"creator_id"})
    try:
        revised = puzzle.with_records(**changes)
    except PuzzleDefinitionError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return _puzzle_content(store.puzzles.save(revised))


@app.delete("/puzzles/{puzzle_id}", response_model=DeletePuzzleResponse)
async def delete_puzzle(puzzle_id: int, creator_id: int) -> DeletePuzzleResponse:
    """Delete a puzzle if ``creator_id`` owns it and nobody has played it yet."""
    if store.attempts.for_puzzle(puzzle_id):
        return DeletePuzzleResponse(
            success=False,
            error=f"Puzzle {puzzle_id} has attempts and cannot be deleted",
        )
    if not store.puzzles.delete(puzzle_id, creator_id):
        return DeletePuzzleResponse(
            success=False,
            error=f"Puzzle {puzzle_id} not found for creator {creator_id}",
        )
    return DeletePuzzleResponse(success=True)


# =============================================================================
# Attempt Endpoints
# =============================================================================

@app.post("/attempts", response_model=AttemptResponse)
async def create_attempt(request: CreateAttemptRequest) -> AttemptResponse:
    puzzle = _get_puzzle(request.puzzle_id)
    attempt = store.attempts.create(puzzle, request.user_id, started_at=store.clock())
    tracker = decode_board_state(puzzle, attempt.attempt_data)
    return AttemptResponse(attempt=_attempt_content(attempt, tracker), status=_status_content(tracker))


@app.get("/attempts/{attempt_id}", response_model=AttemptResponse)
async def get_attempt(attempt_id: int) -> AttemptResponse:
    try:
        attempt = store.attempts.get(attempt_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.args[0])
    tracker = decode_board_state(_get_puzzle(attempt.puzzle_id), attempt.attempt_data)
    return AttemptResponse(attempt=_attempt_content(attempt, tracker), status=_status_content(tracker))


def _apply_move(attempt_id: int, move: Callable[[PuzzleStateTracker], MoveResult]) -> MoveResponse:
    """
    Load the attempt, apply one move and save it, holding the attempt's lock.

    The move that completes the puzzle stamps the completion fields and, for
    signed-in players, records the achievement.
    """
    try:
        lock = store.attempts.lock_for(attempt_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.args[0])

    with lock:
        attempt = store.attempts.get(attempt_id)
        puzzle = _get_puzzle(attempt.puzzle_id)
        tracker = decode_board_state(puzzle, attempt.attempt_data)

        result = move(tracker)
        if not result.success:
            return MoveResponse(
                success=False,
                error=result.error.value,
                message=result.message,
                status=_status_content(tracker),
                attempt=_attempt_content(attempt, tracker),
            )

        changes: Dict[str, Any] = {"attempt_data": encode_board_state(tracker)}
        achievement = None
        if result.just_completed:
            completed_at = store.clock()
            seconds = completion_seconds(attempt.started_at, completed_at)
            changes.update(is_completed=True, completion_time_seconds=seconds, completed_at=completed_at)
            if attempt.user_id is not None:
                achievement = store.achievements.add(build_achievement(
                    user_id=attempt.user_id,
                    puzzle_id=puzzle.puzzle_id,
                    difficulty=puzzle.difficulty,
                    completion_time_seconds=seconds,
                    achieved_at=completed_at,
                    attempt_id=attempt.attempt_id,
                ))
            logger.info(f"Attempt {attempt_id} completed in {seconds}s")

        attempt = store.attempts.save(attempt, **changes)

    return MoveResponse(
        success=True,
        status=_status_content(tracker),
        attempt=_attempt_content(attempt, tracker),
        achievement=_achievement_content(achievement) if achievement else None,
    )


@app.post("/attempts/{attempt_id}/place", response_model=MoveResponse)
async def place_domino(attempt_id: int, request: PlaceRequest) -> MoveResponse:
    return _apply_move(attempt_id, lambda t: t.place(request.domino_id, request.cell, request.orientation))


@app.post("/attempts/{attempt_id}/remove", response_model=MoveResponse)
async def remove_domino(attempt_id: int, request: DominoRequest) -> MoveResponse:
    return _apply_move(attempt_id, lambda t: t.remove(request.domino_id))


@app.post("/attempts/{attempt_id}/rotate", response_model=MoveResponse)
async def rotate_domino(attempt_id: int, request: DominoRequest) -> MoveResponse:
    return _apply_move(attempt_id, lambda t: t.rotate(request.domino_id))


# =============================================================================
# User Endpoints
# =============================================================================

@app.get("/users/{user_id}/puzzles", response_model=List[PuzzleContent])
async def get_user_puzzles(user_id: int):
    return [_puzzle_content(p) for p in store.puzzles.by_creator(user_id)]


@app.get("/users/{user_id}/attempts", response_model=List[AttemptContent])
async def get_user_attempts(user_id: int):
    out = []
    for attempt in store.attempts.for_user(user_id):
        tracker = decode_board_state(_get_puzzle(attempt.puzzle_id), attempt.attempt_data)
        out.append(_attempt_content(attempt, tracker))
    return out


@app.get("/users/{user_id}/achievements", response_model=List[AchievementContent])
async def get_user_achievements(user_id: int, difficulty: Optional[DifficultyLevel] = None):
    return [_achievement_content(a) for a in store.achievements.for_user(user_id, difficulty)]


@app.get("/users/{user_id}/cookie-trifecta", response_model=CookieTrifectaResponse)
async def get_cookie_trifecta_status(user_id: int) -> CookieTrifectaResponse:
    return CookieTrifectaResponse(**cookie_trifecta_status(store.achievements.for_user(user_id)))


def main():
    import uvicorn
    logging.basicConfig(level=os.getenv("DOTZ_LOG_LEVEL", "INFO").upper())
    uvicorn.run(app, host=os.getenv("DOTZ_HOST", "0.0.0.0"), port=int(os.getenv("DOTZ_PORT", "8080")))


if __name__ == "__main__":
    main()
