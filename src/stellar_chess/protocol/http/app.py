from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, Field

from .error import (
    exception_handler,
    http_exception_handler,
    request_validation_exception_handler,
)
from .logging_middleware import RequestIDLoggingMiddleware
from .session import InMemorySessionStore
from ... import __version__
from ...engine.move import MoveOutcome, MoveRecord, square_to_str, str_to_square
from ...engine.perft import perft as perft_nodes
from ...engine.state import STARTPOS_FEN, GameState
from ...game import Game


logger = logging.getLogger(__name__)

Mode = Literal["ai", "local"]
Color = Literal["white", "black"]
Difficulty = Literal["easy", "medium", "hard"]


class CreateGameRequest(BaseModel):
    mode: Mode = "ai"
    player_color: Color = "white"
    difficulty: Difficulty = "medium"
    seed: Optional[int] = Field(default=None, description="Seed for the AI's random choices")
    fen: Optional[str] = Field(default=None, description="Start from this FEN instead")


class CreateGameResponse(BaseModel):
    game_id: str
    fen: str


class MoveRequest(BaseModel):
    move: str = Field(..., description="UCI move string, e.g., e2e4 or e7e8q")


class SearchRequest(BaseModel):
    depth: Optional[int] = Field(default=None, ge=1, le=4)


class PerftRequest(BaseModel):
    fen: str = STARTPOS_FEN
    depth: int = Field(default=1, ge=0, le=4)


class CandidateView(BaseModel):
    to: str
    kind: str


class SquareMoves(BaseModel):
    square: str
    moves: List[CandidateView]


class GameStateView(BaseModel):
    game_id: str
    fen: str
    turn: str
    mode: str
    player_color: str
    difficulty: str
    legal_moves: List[str]
    in_check: bool
    checkmate: bool
    stalemate: bool
    game_over: bool
    result: str
    captured: Dict[str, List[str]]
    last_move: Optional[str]
    move_history: List[str]


class MoveResponse(BaseModel):
    move: str
    is_check: bool
    is_checkmate: bool
    is_stalemate: bool
    state: GameStateView


def create_app() -> FastAPI:
    app = FastAPI(title="Stellar Chess API", version=__version__)

    logging.basicConfig(level=logging.INFO)

    app.add_middleware(RequestIDLoggingMiddleware)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(Exception, exception_handler)

    store = InMemorySessionStore()

    @app.get("/healthz")
    async def healthz() -> Dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/games", response_model=CreateGameResponse)
    async def create_game(req: Optional[CreateGameRequest] = None) -> CreateGameResponse:
        req = req or CreateGameRequest()
        try:
            game = Game.new(
                mode=req.mode,
                player_color=req.player_color,
                difficulty=req.difficulty,
                seed=req.seed,
                fen=req.fen,
            )
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid FEN")
        game_id = store.create(game)
        logger.info("game created", extra={"game_id": game_id, "mode": req.mode})
        return CreateGameResponse(game_id=game_id, fen=game.state.to_fen())

    @app.get("/api/games/{game_id}/state", response_model=GameStateView)
    async def get_state(game_id: str) -> GameStateView:
        game = _require_game(store, game_id)
        with game.lock:
            return _state_view(game_id, game)

    @app.get("/api/games/{game_id}/moves/{square}", response_model=SquareMoves)
    async def square_moves(game_id: str, square: str) -> SquareMoves:
        game = _require_game(store, game_id)
        try:
            sq = str_to_square(square)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        with game.lock:
            cands = [
                CandidateView(to=square_to_str(c.to_sq), kind=c.kind)
                for c in game.state.legal_moves(sq)
            ]
        return SquareMoves(square=square, moves=cands)

    @app.post("/api/games/{game_id}/move", response_model=MoveResponse)
    async def make_move(game_id: str, req: MoveRequest) -> MoveResponse:
        game = _require_game(store, game_id)
        try:
            outcome = game.play_uci(req.move)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        if not outcome.success or outcome.record is None:
            raise HTTPException(status_code=400, detail="illegal move")
        return _move_response(game_id, game, outcome.record, outcome)

    @app.post("/api/games/{game_id}/ai-move", response_model=MoveResponse)
    def ai_move(game_id: str) -> MoveResponse:
        game = _require_game(store, game_id)
        with game.lock:
            if not game.is_ai_turn():
                raise HTTPException(status_code=409, detail="not the AI's turn")
        # Sync handler; FastAPI runs it in the threadpool
        _, outcome = game.ai_move()
        if not outcome.success or outcome.record is None:
            raise HTTPException(status_code=409, detail="AI could not move")
        return _move_response(game_id, game, outcome.record, outcome)

    @app.post("/api/games/{game_id}/search")
    def search(game_id: str, req: Optional[SearchRequest] = None) -> Dict[str, Any]:
        game = _require_game(store, game_id)
        depth = req.depth if req is not None else None
        res = game.search(depth)
        return {
            "best_move": res.best_move.to_uci() if res.best_move else None,
            "score": res.score,
            "random_pick": res.random_pick,
            "nodes": res.nodes,
            "depth": res.depth,
            "time_ms": res.time_ms,
        }

    @app.post("/api/games/{game_id}/undo", response_model=GameStateView)
    async def undo(game_id: str) -> GameStateView:
        game = _require_game(store, game_id)
        with game.lock:
            if game.undo() == 0:
                raise HTTPException(status_code=400, detail="no moves to undo")
            return _state_view(game_id, game)

    @app.post("/api/games/{game_id}/resign", response_model=GameStateView)
    async def resign(game_id: str) -> GameStateView:
        game = _require_game(store, game_id)
        with game.lock:
            if game.state.game_over:
                raise HTTPException(status_code=409, detail="game is already over")
            game.resign()
            return _state_view(game_id, game)

    @app.post("/api/games/{game_id}/reset", response_model=GameStateView)
    async def reset(game_id: str) -> GameStateView:
        game = _require_game(store, game_id)
        with game.lock:
            game.reset()
            return _state_view(game_id, game)

    @app.delete("/api/games/{game_id}")
    async def delete_game(game_id: str) -> Dict[str, bool]:
        if not store.delete(game_id):
            raise HTTPException(status_code=404, detail="game not found")
        return {"deleted": True}

    @app.post("/api/perft")
    def perft(req: PerftRequest) -> Dict[str, int]:
        try:
            state = GameState.from_fen(req.fen)
        except ValueError:
            raise HTTPException(status_code=400, detail="invalid FEN")
        return {"nodes": perft_nodes(state, req.depth)}

    return app


def _require_game(store: InMemorySessionStore, game_id: str) -> Game:
    game = store.get(game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="game not found")
    return game


def _state_view(game_id: str, game: Game) -> GameStateView:
    state = game.state
    history = [rec.to_uci() for rec in state.history]
    return GameStateView(
        game_id=game_id,
        fen=state.to_fen(),
        turn=state.turn,
        mode=game.mode,
        player_color=game.player_color,
        difficulty=game.ai.difficulty,
        legal_moves=[] if state.game_over else [m.to_uci() for m in state.all_legal_moves()],
        in_check=state.is_in_check(state.turn),
        checkmate=state.is_checkmate(),
        stalemate=state.is_stalemate(),
        game_over=state.game_over,
        result=state.result,
        captured={color: [p.symbol for p in pieces] for color, pieces in state.captured.items()},
        last_move=history[-1] if history else None,
        move_history=history,
    )


def _move_response(
    game_id: str, game: Game, record: MoveRecord, outcome: MoveOutcome
) -> MoveResponse:
    with game.lock:
        view = _state_view(game_id, game)
    return MoveResponse(
        move=record.to_uci(),
        is_check=outcome.is_check,
        is_checkmate=outcome.is_checkmate,
        is_stalemate=outcome.is_stalemate,
        state=view,
    )


# Default app for non-factory servers
app = create_app()
