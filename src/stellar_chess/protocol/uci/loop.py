from __future__ import annotations

import logging
import random
import sys
import threading
from typing import Callable, List, Optional, TextIO

from ... import __version__
from ...engine.move import BLACK
from ...engine.state import GameState
from ...game import LOCAL_MODE, Game
from ...search.service import DIFFICULTY_DEPTHS, MEDIUM, SearchResult


logger = logging.getLogger(__name__)

Writer = Callable[[str], None]


class UCIEngine:
    """UCI protocol adapter around the rules engine and search.

    Notes:
    - Core remains pure; I/O is isolated here.
    - Command set: uci, isready, ucinewgame, position, setoption, go [depth N],
      stop, quit.
    - Search runs on a daemon thread so the command loop keeps reading
      input. The search itself cannot be interrupted, so ``stop`` waits for
      it to finish.
    """

    def __init__(self) -> None:
        self.difficulty: str = MEDIUM
        self.seed: Optional[int] = None
        self.game: Game = self._new_game()
        self._search_thread: Optional[threading.Thread] = None

    def _new_game(self) -> Game:
        return Game.new(mode=LOCAL_MODE, difficulty=self.difficulty, seed=self.seed)

    # ---- Command handlers ----
    def cmd_uci(self, write: Writer) -> None:
        write(f"id name stellar_chess {__version__}")
        write("id author stellar_chess developers")
        write("option name Difficulty type combo default medium var easy var medium var hard")
        write("option name Seed type spin default 0 min 0 max 2147483647")
        write("uciok")

    def cmd_isready(self, write: Writer) -> None:
        write("readyok")

    def cmd_ucinewgame(self) -> None:
        self.wait()
        self.game = self._new_game()

    def cmd_position(self, args: List[str]) -> None:
        # position [startpos | fen <FEN> ] [moves m1 m2 ...]
        if not args:
            return
        self.wait()
        idx = 0
        if args[idx] == "startpos":
            self.game.state = GameState.new()
            idx += 1
        elif args[idx] == "fen":
            idx += 1
            fen_tokens: List[str] = []
            while idx < len(args) and args[idx] != "moves":
                fen_tokens.append(args[idx])
                idx += 1
            try:
                self.game.state = GameState.from_fen(" ".join(fen_tokens))
            except ValueError:
                logger.warning("ignoring invalid FEN: %s", " ".join(fen_tokens))
                return
        if idx < len(args) and args[idx] == "moves":
            for u in args[idx + 1 :]:
                try:
                    outcome = self.game.play_uci(u)
                except ValueError:
                    outcome = None
                if outcome is None or not outcome.success:
                    # Stop at the first bad move, as GUIs expect
                    logger.warning("ignoring illegal move %s and the rest", u)
                    break

    def cmd_setoption(self, args: List[str]) -> None:
        # setoption name <name> [value <value>]
        if not args:
            return
        # Options must not change under a running search
        self.wait()
        i = 1 if args[0] == "name" else 0
        name_tokens: List[str] = []
        while i < len(args) and args[i] != "value":
            name_tokens.append(args[i])
            i += 1
        value = " ".join(args[i + 1 :]).strip().lower() if i < len(args) else ""
        name = " ".join(name_tokens).strip().lower()
        if name == "difficulty" and value in DIFFICULTY_DEPTHS:
            self.difficulty = value
            self.game.ai.set_difficulty(value)
        elif name == "seed":
            try:
                self.seed = int(value)
            except ValueError:
                return
            self.game.ai.rng = random.Random(self.seed)

    def cmd_go(self, args: List[str], write: Writer) -> None:
        depth = self._parse_depth(args)
        self.wait()
        snapshot = self.game.state.clone()

        def worker() -> None:
            res = self.game.ai.search(snapshot, depth)
            self._emit_info(res, snapshot.turn, write)
            best = res.best_move.to_uci() if res.best_move else "(none)"
            write(f"bestmove {best}")

        self._search_thread = threading.Thread(target=worker, name="uci-search", daemon=True)
        self._search_thread.start()

    def cmd_stop(self) -> None:
        # The search has no cancellation point; let it finish and report
        self.wait()

    def wait(self, timeout: Optional[float] = None) -> None:
        thread = self._search_thread
        if thread is not None and thread.is_alive():
            thread.join(timeout)

    # ---- Utilities ----
    def _parse_depth(self, args: List[str]) -> Optional[int]:
        i = 0
        while i < len(args):
            if args[i] == "depth" and i + 1 < len(args):
                try:
                    return max(1, int(args[i + 1]))
                except ValueError:
                    return None
            # Time controls are not supported; skip their values
            i += 1
        return None

    def _emit_info(self, res: SearchResult, turn: str, write: Writer) -> None:
        time_ms = max(0, res.time_ms)
        nps = int(res.nodes * 1000 / max(1, time_ms))
        cp = int(res.score) if res.score is not None else 0
        pv = res.best_move.to_uci() if res.best_move else ""
        # Scores are white-relative internally; UCI wants side-to-move relative
        if res.score is not None and turn == BLACK:
            cp = -cp
        write(
            f"info depth {res.depth} time {time_ms} nodes {res.nodes} nps {nps} "
            f"score cp {cp} pv {pv}".rstrip()
        )


def _default_writer(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


def run_uci(stream: Optional[TextIO] = None, write: Writer = _default_writer) -> None:
    eng = UCIEngine()
    for raw in stream if stream is not None else sys.stdin:
        line = raw.strip()
        if not line:
            continue
        parts = line.split()
        cmd, args = parts[0], parts[1:]

        if cmd == "uci":
            eng.cmd_uci(write)
        elif cmd == "isready":
            eng.cmd_isready(write)
        elif cmd == "setoption":
            eng.cmd_setoption(args)
        elif cmd == "ucinewgame":
            eng.cmd_ucinewgame()
        elif cmd == "position":
            eng.cmd_position(args)
        elif cmd == "go":
            eng.cmd_go(args, write)
        elif cmd == "stop":
            eng.cmd_stop()
        elif cmd == "quit":
            eng.wait()
            break
        # Ignore unknown commands per UCI convention
