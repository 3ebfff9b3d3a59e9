from contextlib import asynccontextmanager
from datetime import date as Date
import logging
import hashlib
import time

import httpx
from google.auth import jwt
from fastapi import FastAPI, Depends, HTTPException, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dailypuzzle.db import engine, get_db, settings
from dailypuzzle.cache import AnalyticsCache
from dailypuzzle.difficulty import get_adaptive_difficulty
from dailypuzzle.generators import (
    PuzzleValidationError,
    check_matrix_answer,
    check_sequence_answer,
    compute_score,
    count_correct_cells,
    generate_puzzle,
    validate_date,
)
from dailypuzzle.hints import compute_hint_budget, get_hint_text, get_hints_used, use_hint
from dailypuzzle.migrations import needs_resync, run_migrations
from dailypuzzle.schemas import (
    DifficultyDecision,
    HintRequest,
    HintResponse,
    InsightsSnapshot,
    LeaderboardEntry,
    Puzzle,
    PublicPuzzle,
    RetentionSnapshot,
    SubmitRequest,
    SubmitResponse,
    SyncResponse,
)
from dailypuzzle.store import ActivityStore, HintUsageStore
from dailypuzzle import sync

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    applied = await run_migrations(engine)
    if needs_resync(applied):
        logger.warning("Activity table was reset; history will be restored on next sync")
        app.state.resync_required = True
    yield


app = FastAPI(title="Daily Puzzle API", lifespan=lifespan)
app.state.analytics_cache = AnalyticsCache()
app.state.resync_required = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Cache verified tokens (token_hash -> (uid, name, expiry))
_token_cache: dict[str, tuple[str, str, float]] = {}


def _verify_google_token(token: str) -> dict | None:
    """Decode Google ID token (skip verification - token from OAuth flow)."""
    try:
        claims = jwt.decode(token, verify=False)
        if claims.get("aud") != settings.google_client_id:
            logger.warning(f"Token audience mismatch: got {claims.get('aud')}, expected {settings.google_client_id}")
            return None
        return {"sub": claims["sub"], "name": claims.get("name", "")}
    except Exception as e:
        logger.warning(f"Token decode failed: {e}")
        return None


def get_current_player(authorization: str | None = Header(None)) -> dict:
    """Player uid and display name from a Google ID token; anonymous players get ""."""
    if not authorization or not authorization.startswith("Bearer ") or not settings.google_client_id:
        return {"uid": "", "name": ""}

    token = authorization.removeprefix("Bearer ")
    token_hash = hashlib.sha256(token.encode()).hexdigest()[:16]
    if token_hash in _token_cache:
        uid, name, expiry = _token_cache[token_hash]
        if time.time() < expiry:
            return {"uid": uid, "name": name}
        del _token_cache[token_hash]

    idinfo = _verify_google_token(token)
    if not idinfo:
        return {"uid": "", "name": ""}

    # Cache for 55 min
    _token_cache[token_hash] = (idinfo["sub"], idinfo["name"], time.time() + 3300)
    return {"uid": idinfo["sub"], "name": idinfo["name"]}


def get_current_uid(player: dict = Depends(get_current_player)) -> str:
    return player["uid"]


def require_player(player: dict = Depends(get_current_player)) -> dict:
    if not player["uid"]:
        raise HTTPException(status_code=401, detail="Valid Authorization header required")
    return player


def get_activity_store(request: Request, db: AsyncSession = Depends(get_db)) -> ActivityStore:
    return ActivityStore(db, cache=request.app.state.analytics_cache)


def get_hint_store(db: AsyncSession = Depends(get_db)) -> HintUsageStore:
    return HintUsageStore(db)


def _checked_date(date: str) -> str:
    try:
        return validate_date(date)
    except PuzzleValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))


async def _history_before(store: ActivityStore, date: str):
    try:
        return [a for a in await store.get_all() if a.date < date]
    except SQLAlchemyError as e:
        logger.warning(f"Activity store unavailable: {e}")
        return []


async def _puzzle_for(store: ActivityStore, date: str) -> Puzzle:
    """The day's puzzle, decided from history before that day only."""
    decision = await get_adaptive_difficulty(store, before=date)
    return generate_puzzle(date, decision.difficulty, decision.puzzle_type)


# Health check
@app.get("/health")
async def health():
    return {"status": "ok"}


# Puzzles
@app.get("/puzzles/today", response_model=PublicPuzzle)
async def get_today_puzzle(
    date: str | None = None,
    store: ActivityStore = Depends(get_activity_store),
):
    """Get the adaptive puzzle for today (or the given date)."""
    day = _checked_date(date or Date.today().isoformat())
    puzzle = await _puzzle_for(store, day)
    return puzzle.public()


@app.post("/puzzles/{date}/submit", response_model=SubmitResponse)
async def submit_answer(
    date: str,
    request: SubmitRequest,
    uid: str = Depends(get_current_uid),
    store: ActivityStore = Depends(get_activity_store),
):
    """Check an answer and record the attempt."""
    day = _checked_date(date)
    puzzle = await _puzzle_for(store, day)

    existing = await store.get_by_date(day)
    # One database holds one player's history
    if existing and uid and existing.uid and existing.uid != uid:
        raise HTTPException(status_code=403, detail="Activity for this date belongs to another player")
    if existing and existing.solved:
        raise HTTPException(status_code=409, detail="Puzzle already solved")

    errors: list[tuple[int, int]] = []
    if puzzle.type == "sequence":
        correct = check_sequence_answer(puzzle, request.answer)
    else:
        if request.grid is None:
            raise HTTPException(status_code=422, detail="Matrix puzzles need a grid")
        try:
            correct, errors = check_matrix_answer(puzzle, request.grid)
        except PuzzleValidationError as e:
            raise HTTPException(status_code=422, detail=str(e))

    attempts = existing.attempts + 1 if existing else 1

    if correct:
        score = compute_score(request.time_taken)
        record = await store.upsert(
            day,
            uid=uid or None,
            score=score,
            time_taken=request.time_taken,
            difficulty=puzzle.difficulty,
            solved=True,
            attempts=attempts,
            puzzle_seed=day,
            synced=0,
        )
        logger.info(f"Solved {day} ({puzzle.difficulty}) in {request.time_taken}s, score {score}")
    elif existing:
        record = await store.increment_attempts(day)
    else:
        record = await store.upsert(
            day,
            uid=uid or None,
            difficulty=puzzle.difficulty,
            solved=False,
            attempts=1,
            puzzle_seed=day,
            synced=0,
        )

    return SubmitResponse(
        date=day,
        correct=correct,
        attempts=record.attempts,
        score=record.score if correct else None,
        errors=errors,
    )


@app.post("/puzzles/{date}/hints", response_model=HintResponse)
async def request_hint(
    date: str,
    request: HintRequest,
    store: ActivityStore = Depends(get_activity_store),
    hint_store: HintUsageStore = Depends(get_hint_store),
):
    """Unlock the next hint level for the day's puzzle, within budget."""
    day = _checked_date(date)
    puzzle = await _puzzle_for(store, day)
    budget = compute_hint_budget(puzzle.difficulty, await _history_before(store, day))

    before = await get_hints_used(hint_store, day)
    used = await use_hint(hint_store, day, puzzle.difficulty, budget)

    text = None
    if used > before:
        correct_count = blanks = 0
        if puzzle.type == "matrix":
            blanks = sum(1 for cell in puzzle.grid if cell is None)
            correct_count = count_correct_cells(puzzle, request.grid)
        text = get_hint_text(
            level=used,
            puzzle_type=puzzle.type,
            pattern_key=puzzle.pattern_key,
            user_answer=request.user_answer,
            answer=puzzle.answer,
            correct_count=correct_count,
            blank_count=blanks,
        )

    return HintResponse(
        date=day,
        level=used,
        text=text,
        hints_used=used,
        budget=budget,
        remaining=max(0, budget - used),
    )


# Adaptive engine and analytics
@app.get("/difficulty", response_model=DifficultyDecision)
async def get_difficulty(store: ActivityStore = Depends(get_activity_store)):
    return await get_adaptive_difficulty(store)


@app.get("/analytics/retention", response_model=RetentionSnapshot)
async def get_retention(request: Request, store: ActivityStore = Depends(get_activity_store)):
    return await request.app.state.analytics_cache.retention(store)


@app.get("/analytics/insights", response_model=InsightsSnapshot)
async def get_insights(request: Request, store: ActivityStore = Depends(get_activity_store)):
    return await request.app.state.analytics_cache.insights(store)


# Remote sync
@app.post("/sync", response_model=SyncResponse)
async def sync_now(
    request: Request,
    player: dict = Depends(require_player),
    store: ActivityStore = Depends(get_activity_store),
):
    """Push unsynced activity for the signed-in player."""
    uid = player["uid"]
    if request.app.state.resync_required and sync.is_enabled():
        try:
            await sync.restore_from_remote(store, uid)
            request.app.state.resync_required = False
        except httpx.HTTPError as e:
            # Retried on the next sync; local records still get pushed
            logger.warning(f"History restore failed for {uid}: {e}")

    synced = await sync.sync_activities(store, uid)

    best = max((a.score for a in await store.get_all() if a.solved), default=0)
    if best:
        try:
            await sync.update_leaderboard(uid, player["name"], best)
        except httpx.HTTPError as e:
            logger.warning(f"Leaderboard update failed: {e}")

    pending = len(await store.get_unsynced())
    return SyncResponse(synced=synced, pending=pending)


@app.get("/leaderboard", response_model=list[LeaderboardEntry])
async def get_leaderboard():
    try:
        rows = await sync.fetch_leaderboard()
    except httpx.HTTPError as e:
        logger.error(f"Error fetching leaderboard: {e}")
        return []
    return [
        LeaderboardEntry(uid=r["uid"], name=r.get("name") or "Anonymous", score=r.get("score", 0))
        for r in rows
    ]
