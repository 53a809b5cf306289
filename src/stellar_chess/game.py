from __future__ import annotations

import logging
import random
import threading
from dataclasses import dataclass, field
from typing import Final, Optional, Tuple

from .engine.move import (
    BLACK,
    BLACK_WINS,
    COLORS,
    FAILED,
    WHITE,
    WHITE_WINS,
    FullMove,
    MoveOutcome,
    Square,
    opposite,
    parse_uci,
)
from .engine.state import GameState
from .search.service import MEDIUM, SearchResult, SearchService


logger = logging.getLogger(__name__)

AI_MODE: Final = "ai"
LOCAL_MODE: Final = "local"
MODES: Final = (AI_MODE, LOCAL_MODE)


@dataclass
class Game:
    """A game session: engine state plus who plays which side.

    Responsibility: gate moves by mode and turn, drive the AI on its turn,
    undo (a move pair against the AI), resign and reset.

    Readers and writers of ``state`` from other threads hold ``lock``. The
    AI searches a clone taken under the lock, so the lock is never held
    while it thinks.
    """

    state: GameState
    mode: str = AI_MODE
    player_color: str = WHITE
    ai: SearchService = field(default_factory=SearchService)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)
    _thinking: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    @classmethod
    def new(
        cls,
        mode: str = AI_MODE,
        player_color: str = WHITE,
        difficulty: str = MEDIUM,
        seed: Optional[int] = None,
        fen: Optional[str] = None,
    ) -> "Game":
        if mode not in MODES:
            raise ValueError(f"unknown mode: {mode!r}")
        if player_color not in COLORS:
            raise ValueError(f"unknown color: {player_color!r}")
        state = GameState.from_fen(fen) if fen else GameState.new()
        ai = SearchService(difficulty, random.Random(seed))
        return cls(state=state, mode=mode, player_color=player_color, ai=ai)

    @property
    def ai_color(self) -> Optional[str]:
        return opposite(self.player_color) if self.mode == AI_MODE else None

    def is_ai_turn(self) -> bool:
        return (
            self.mode == AI_MODE
            and not self.state.game_over
            and self.state.turn == self.ai_color
        )

    def play(
        self, from_sq: Square, to_sq: Square, promotion: Optional[str] = None
    ) -> MoveOutcome:
        """Apply a human move; refused once the game is over or off-turn."""
        with self.lock:
            if self.state.game_over:
                return FAILED
            if self.mode == AI_MODE and self.state.turn != self.player_color:
                return FAILED
            return self.state.apply_move(from_sq, to_sq, promotion)

    def play_uci(self, uci: str) -> MoveOutcome:
        """Parse and play a UCI move string.

        Raises:
            ValueError: If ``uci`` is not a well-formed move string.
        """
        from_sq, to_sq, promotion = parse_uci(uci)
        return self.play(from_sq, to_sq, promotion)

    def search(self, depth: Optional[int] = None) -> SearchResult:
        """Search a snapshot of the current position without applying anything."""
        with self.lock:
            snapshot = self.state.clone()
        with self._thinking:
            return self.ai.search(snapshot, depth)

    def ai_move(self) -> Tuple[Optional[FullMove], MoveOutcome]:
        """Let the AI choose and apply its move when it is its turn.

        The move is applied only if the position is still the one the AI
        searched; a move, undo or reset in the meantime makes this fail.
        """
        with self.lock:
            if not self.is_ai_turn():
                return None, FAILED
            root = self.state
            fen = root.to_fen()
            snapshot = root.clone()
        with self._thinking:
            move = self.ai.choose_move(snapshot)
        if move is None:
            return None, FAILED
        with self.lock:
            if self.state is not root or root.to_fen() != fen or not self.is_ai_turn():
                logger.info("position changed while searching; dropping %s", move.to_uci())
                return None, FAILED
            outcome = root.apply_move(move.from_sq, move.to_sq)
        logger.debug("ai played %s (%s)", move.to_uci(), self.ai.difficulty)
        return move, outcome

    def undo(self) -> int:
        """Undo the last ply, or the last two against the AI.

        Returns:
            int: Number of plies taken back (0 when the history is empty).
        """
        with self.lock:
            if not self.state.undo_move():
                return 0
            if self.mode == AI_MODE and self.state.undo_move():
                return 2
            return 1

    def resign(self) -> str:
        """End the game in favour of the human's (or side to move's) opponent."""
        with self.lock:
            loser = self.player_color if self.mode == AI_MODE else self.state.turn
            self.state.game_over = True
            self.state.result = WHITE_WINS if loser == BLACK else BLACK_WINS
            return self.state.result

    def reset(self) -> None:
        with self.lock:
            self.state = GameState.new()
