from __future__ import annotations

import logging
import math
import random
import time
from dataclasses import dataclass
from typing import Dict, Final, Optional

from stellar_chess.engine.move import BLACK, WHITE, FullMove
from stellar_chess.engine.state import GameState


logger = logging.getLogger(__name__)

EASY: Final = "easy"
MEDIUM: Final = "medium"
HARD: Final = "hard"
DIFFICULTY_DEPTHS: Final[Dict[str, int]] = {EASY: 1, MEDIUM: 2, HARD: 3}

# Probability that the easy tier skips the search and plays any legal move
EASY_RANDOM_MOVE_PROBABILITY: Final = 0.3

MATE_SCORE: Final = 50_000
MOBILITY_WEIGHT: Final = 10
CHECK_BONUS: Final = 50
INF: Final = math.inf


def position_score(state: GameState) -> int:
    """Leaf score: material/PSQT + mobility + check bonus, white-positive."""
    score = state.evaluate_material()
    white_moves = len(state.all_legal_moves(WHITE))
    black_moves = len(state.all_legal_moves(BLACK))
    score += MOBILITY_WEIGHT * (white_moves - black_moves)
    if state.is_in_check(BLACK):
        score += CHECK_BONUS
    if state.is_in_check(WHITE):
        score -= CHECK_BONUS
    return score


@dataclass
class SearchResult:
    best_move: Optional[FullMove]
    score: Optional[float]
    nodes: int
    depth: int
    time_ms: int
    random_pick: bool = False


class SearchService:
    """Fixed-depth minimax with alpha-beta pruning over cloned states.

    The caller's state is only read; every explored node works on its own
    clone. Randomness comes from the injected ``rng`` so a seeded
    ``random.Random`` gives reproducible move selection.
    """

    def __init__(self, difficulty: str = MEDIUM, rng: Optional[random.Random] = None) -> None:
        self.set_difficulty(difficulty)
        self.rng = rng if rng is not None else random.Random()
        self.nodes = 0

    def set_difficulty(self, difficulty: str) -> None:
        if difficulty not in DIFFICULTY_DEPTHS:
            raise ValueError(f"unknown difficulty: {difficulty!r}")
        self.difficulty = difficulty

    @property
    def depth(self) -> int:
        return DIFFICULTY_DEPTHS[self.difficulty]

    def choose_move(self, state: GameState) -> Optional[FullMove]:
        """Pick a move for the side to move, or None when it has none."""
        return self.search(state).best_move

    def search(self, state: GameState, depth: Optional[int] = None) -> SearchResult:
        """Search the side to move's options and report the chosen move.

        Args:
            state (GameState): Position to search; never mutated.
            depth (Optional[int]): Plies to search; defaults to the
                difficulty tier's depth.

        Returns:
            SearchResult: ``best_move`` is None only when there are no legal
                moves (checkmate or stalemate).
        """
        start = time.perf_counter()
        self.nodes = 0
        depth = self.depth if depth is None else max(1, depth)
        maximizing = state.turn == WHITE

        moves = state.all_legal_moves()
        if not moves:
            return SearchResult(None, None, 0, depth, _elapsed_ms(start))

        if self.difficulty == EASY and self.rng.random() < EASY_RANDOM_MOVE_PROBABILITY:
            pick = self.rng.choice(moves)
            logger.debug("random pick %s", pick.to_uci())
            return SearchResult(pick, None, 0, depth, _elapsed_ms(start), random_pick=True)

        # Shuffle so equal scores do not always favour the same squares
        self.rng.shuffle(moves)

        best_move: Optional[FullMove] = None
        best_score = -INF if maximizing else INF
        for move in moves:
            child = state.clone()
            child.apply_move(move.from_sq, move.to_sq)
            score = self.minimax(child, depth - 1, -INF, INF, not maximizing)
            if (maximizing and score > best_score) or (not maximizing and score < best_score):
                best_score = score
                best_move = move

        elapsed = _elapsed_ms(start)
        logger.debug(
            "search depth=%d nodes=%d best=%s score=%s time_ms=%d",
            depth,
            self.nodes,
            best_move.to_uci() if best_move else None,
            best_score,
            elapsed,
        )
        return SearchResult(best_move, best_score, self.nodes, depth, elapsed)

    def minimax(
        self, state: GameState, depth: int, alpha: float, beta: float, maximizing: bool
    ) -> float:
        """Alpha-beta minimax; white maximizes, black minimizes."""
        self.nodes += 1
        if depth <= 0 or state.game_over:
            return position_score(state)

        color = WHITE if maximizing else BLACK
        moves = state.all_legal_moves(color)
        if not moves:
            if state.is_in_check(color):
                return -MATE_SCORE if maximizing else MATE_SCORE
            return 0

        if maximizing:
            best = -INF
            for move in moves:
                child = state.clone()
                child.apply_move(move.from_sq, move.to_sq)
                score = self.minimax(child, depth - 1, alpha, beta, False)
                best = max(best, score)
                alpha = max(alpha, score)
                if beta <= alpha:
                    break
            return best

        best = INF
        for move in moves:
            child = state.clone()
            child.apply_move(move.from_sq, move.to_sq)
            score = self.minimax(child, depth - 1, alpha, beta, True)
            best = min(best, score)
            beta = min(beta, score)
            if beta <= alpha:
                break
        return best


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
