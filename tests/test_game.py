from __future__ import annotations

import random
import threading
import time

import pytest

from stellar_chess.engine.move import (
    BLACK,
    BLACK_WINS,
    FAILED,
    WHITE,
    WHITE_WINS,
    str_to_square,
)
from stellar_chess.engine.state import STARTPOS_FEN
from stellar_chess.game import AI_MODE, LOCAL_MODE, Game
from stellar_chess.search.service import EASY, SearchService


def _placement_and_turn(game: Game):
    return game.state.to_fen().split()[:2]


def test_new_game_defaults() -> None:
    g = Game.new()
    assert g.mode == AI_MODE
    assert g.player_color == WHITE
    assert g.ai_color == BLACK
    assert g.state.to_fen() == STARTPOS_FEN
    assert not g.is_ai_turn()


def test_new_game_rejects_bad_settings() -> None:
    with pytest.raises(ValueError):
        Game.new(mode="online")
    with pytest.raises(ValueError):
        Game.new(player_color="green")
    with pytest.raises(ValueError):
        Game.new(difficulty="brutal")
    with pytest.raises(ValueError):
        Game.new(fen="not a fen")


def test_ai_mode_gates_moves_by_turn() -> None:
    g = Game.new(difficulty=EASY, seed=1)
    assert g.play_uci("e2e4").success
    assert g.is_ai_turn()
    # Black belongs to the AI
    assert g.play_uci("e7e5") == FAILED

    move, outcome = g.ai_move()
    assert move is not None
    assert outcome.success
    assert g.state.turn == WHITE
    assert len(g.state.history) == 2


def test_ai_move_refused_on_human_turn() -> None:
    g = Game.new()
    assert g.ai_move() == (None, FAILED)
    assert g.state.history == []


def test_ai_plays_white_when_human_is_black() -> None:
    g = Game.new(player_color=BLACK, difficulty=EASY, seed=3)
    assert g.ai_color == WHITE
    assert g.is_ai_turn()
    assert g.play_uci("e2e4") == FAILED
    move, outcome = g.ai_move()
    assert move is not None and outcome.success
    assert g.state.turn == BLACK


def test_local_mode_both_sides_play() -> None:
    g = Game.new(mode=LOCAL_MODE)
    assert g.ai_color is None
    assert g.play_uci("e2e4").success
    assert not g.is_ai_turn()
    assert g.play_uci("e7e5").success
    assert g.ai_move() == (None, FAILED)


def test_play_uci_rejects_malformed_input() -> None:
    g = Game.new(mode=LOCAL_MODE)
    with pytest.raises(ValueError):
        g.play_uci("e2")
    assert not g.play(str_to_square("e2"), str_to_square("e5")).success


def test_undo_takes_back_a_pair_against_the_ai() -> None:
    g = Game.new(difficulty=EASY, seed=5)
    start = _placement_and_turn(g)
    assert g.play_uci("d2d4").success
    g.ai_move()
    assert g.undo() == 2
    assert _placement_and_turn(g) == start
    assert g.state.history == []
    assert g.undo() == 0


def test_undo_single_ply_when_only_one_was_played() -> None:
    g = Game.new(player_color=BLACK, difficulty=EASY, seed=2)
    g.ai_move()
    assert g.undo() == 1
    assert g.state.turn == WHITE


def test_undo_in_local_mode_is_one_ply() -> None:
    g = Game.new(mode=LOCAL_MODE)
    g.play_uci("e2e4")
    g.play_uci("e7e5")
    assert g.undo() == 1
    assert g.state.turn == BLACK
    assert len(g.state.history) == 1


def test_resign_against_ai_loses_for_human() -> None:
    g = Game.new(player_color=WHITE)
    assert g.resign() == BLACK_WINS
    assert g.state.game_over
    assert g.play_uci("e2e4") == FAILED


def test_resign_in_local_mode_loses_for_side_to_move() -> None:
    g = Game.new(mode=LOCAL_MODE)
    g.play_uci("e2e4")
    assert g.resign() == WHITE_WINS


def test_checkmate_ends_the_game() -> None:
    g = Game.new(mode=LOCAL_MODE)
    for u in ("f2f3", "e7e5", "g2g4", "d8h4"):
        assert g.play_uci(u).success
    assert g.state.game_over
    assert g.state.result == BLACK_WINS
    assert g.play_uci("e2e4") == FAILED


def test_reset_keeps_settings() -> None:
    g = Game.new(mode=LOCAL_MODE, player_color=BLACK, difficulty=EASY)
    g.play_uci("e2e4")
    g.reset()
    assert g.state.to_fen() == STARTPOS_FEN
    assert g.mode == LOCAL_MODE
    assert g.player_color == BLACK
    assert g.ai.difficulty == EASY


def test_game_from_fen() -> None:
    fen = "4k3/8/8/8/8/8/8/4K2R b K - 3 20"
    g = Game.new(mode=LOCAL_MODE, fen=fen)
    assert g.state.to_fen() == fen


def test_search_leaves_the_live_position_alone() -> None:
    g = Game.new(mode=LOCAL_MODE, seed=1)
    done = threading.Event()

    def think() -> None:
        try:
            for _ in range(5):
                g.search(depth=1)
        finally:
            done.set()

    t = threading.Thread(target=think)
    t.start()
    seen = set()
    while True:
        finished = done.is_set()
        with g.lock:
            seen.add(g.state.to_fen())
            assert len(g.state.all_legal_moves()) == 20
        if finished:
            break
        time.sleep(0.001)
    t.join()
    assert seen == {STARTPOS_FEN}
    assert g.state.captured == {WHITE: [], BLACK: []}


class _InterruptedService(SearchService):
    """Runs ``meanwhile`` after choosing, as another request would."""

    def __init__(self, meanwhile) -> None:
        super().__init__(EASY, random.Random(1))
        self.meanwhile = meanwhile

    def choose_move(self, state):
        move = super().choose_move(state)
        self.meanwhile()
        return move


def test_ai_move_dropped_after_reset_while_thinking() -> None:
    g = Game.new(player_color=BLACK)
    g.ai = _InterruptedService(g.reset)
    assert g.ai_move() == (None, FAILED)
    assert g.state.history == []


def test_ai_move_dropped_after_undo_while_thinking() -> None:
    g = Game.new()
    assert g.play_uci("e2e4").success
    g.ai = _InterruptedService(g.undo)
    assert g.ai_move() == (None, FAILED)
    assert g.state.to_fen() == STARTPOS_FEN
