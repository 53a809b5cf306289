from __future__ import annotations

import io
from typing import Callable, List

from stellar_chess.engine.state import GameState
from stellar_chess.protocol.uci.loop import UCIEngine, run_uci


def capture_writer(buf: List[str]) -> Callable[[str], None]:
    def _w(line: str) -> None:
        buf.append(line)

    return _w


def _legal(fen: str) -> List[str]:
    return [m.to_uci() for m in GameState.from_fen(fen).all_legal_moves()]


def test_basic_handshake() -> None:
    eng = UCIEngine()
    out: List[str] = []
    eng.cmd_uci(capture_writer(out))
    assert any(line.startswith("id name ") for line in out)
    assert any(line.startswith("option name Difficulty type combo") for line in out)
    assert out[-1] == "uciok"


def test_isready() -> None:
    eng = UCIEngine()
    out: List[str] = []
    eng.cmd_isready(capture_writer(out))
    assert out == ["readyok"]


def test_position_and_go_depth() -> None:
    eng = UCIEngine()
    # Starting position and two opening moves
    eng.cmd_position(["startpos", "moves", "e2e4", "e7e5"])
    assert len(eng.game.state.history) == 2
    fen = eng.game.state.to_fen()

    out: List[str] = []
    eng.cmd_go(["depth", "1"], capture_writer(out))
    eng.wait(timeout=30)

    assert any(line.startswith("info depth 1 ") for line in out)
    best = [line for line in out if line.startswith("bestmove ")]
    assert len(best) == 1
    assert best[0].split()[1] in _legal(fen)
    # Searching never plays the move on the engine's own game
    assert eng.game.state.to_fen() == fen


def test_position_fen_with_moves() -> None:
    eng = UCIEngine()
    fen = "4k3/8/8/8/8/8/4P3/4K3 w - - 0 1"
    eng.cmd_position(["fen", *fen.split(), "moves", "e2e4", "e8d7"])
    assert [r.to_uci() for r in eng.game.state.history] == ["e2e4", "e8d7"]


def test_illegal_move_stops_the_move_list() -> None:
    eng = UCIEngine()
    eng.cmd_position(["startpos", "moves", "e2e4", "e2e4", "e7e5"])
    assert [r.to_uci() for r in eng.game.state.history] == ["e2e4"]
    eng.cmd_position(["startpos", "moves", "e2e4", "zz99"])
    assert [r.to_uci() for r in eng.game.state.history] == ["e2e4"]


def test_invalid_fen_keeps_previous_position() -> None:
    eng = UCIEngine()
    eng.cmd_position(["startpos", "moves", "d2d4"])
    fen = eng.game.state.to_fen()
    eng.cmd_position(["fen", "garbage"])
    assert eng.game.state.to_fen() == fen


def test_no_legal_moves_reports_none() -> None:
    eng = UCIEngine()
    fen = "7k/6Q1/6K1/8/8/8/8/8 b - - 0 1"
    eng.cmd_position(["fen", *fen.split()])
    out: List[str] = []
    eng.cmd_go([], capture_writer(out))
    eng.cmd_stop()
    assert out[-1] == "bestmove (none)"


def test_setoption_difficulty_and_seed() -> None:
    eng = UCIEngine()
    eng.cmd_setoption(["name", "Difficulty", "value", "hard"])
    assert eng.game.ai.difficulty == "hard"
    eng.cmd_setoption(["name", "Difficulty", "value", "impossible"])
    assert eng.game.ai.difficulty == "hard"
    eng.cmd_setoption(["name", "Seed", "value", "7"])
    assert eng.seed == 7

    eng.cmd_ucinewgame()
    assert eng.game.ai.difficulty == "hard"
    assert eng.game.state.history == []


def test_seeded_engines_agree() -> None:
    results = []
    for _ in range(2):
        eng = UCIEngine()
        eng.cmd_setoption(["name", "Seed", "value", "99"])
        eng.cmd_position(["startpos"])
        out: List[str] = []
        eng.cmd_go(["depth", "1"], capture_writer(out))
        eng.wait(timeout=30)
        results.append(out[-1])
    assert results[0] == results[1]


def test_run_uci_script() -> None:
    script = io.StringIO("uci\nisready\nposition startpos moves e2e4\ngo depth 1\nquit\n")
    out: List[str] = []
    run_uci(script, capture_writer(out))
    assert "uciok" in out
    assert "readyok" in out
    assert out[-1].startswith("bestmove ")


def test_setoption_waits_for_running_search() -> None:
    eng = UCIEngine()
    out: List[str] = []
    eng.cmd_position(["startpos"])
    eng.cmd_go(["depth", "2"], capture_writer(out))
    eng.cmd_setoption(["name", "Seed", "value", "7"])
    assert out[-1].startswith("bestmove ")
    assert eng.seed == 7
