from __future__ import annotations

from stellar_chess.engine.move import (
    BLACK,
    BLACK_WINS,
    CAPTURE,
    DRAW,
    IN_PROGRESS,
    WHITE,
    WHITE_WINS,
    MoveOutcome,
    parse_uci,
)
from stellar_chess.engine.state import GameState


def play(s: GameState, *ucis: str) -> MoveOutcome:
    out = None
    for u in ucis:
        from_sq, to_sq, promo = parse_uci(u)
        out = s.apply_move(from_sq, to_sq, promo)
        assert out.success, u
    assert out is not None
    return out


def test_scholars_mate() -> None:
    s = GameState.new()
    out = play(s, "e2e4", "e7e5", "f1c4", "b8c6", "d1h5", "g8f6", "h5f7")
    assert out.record is not None and out.record.kind == CAPTURE
    assert out.is_check
    assert out.is_checkmate
    assert not out.is_stalemate
    assert s.game_over
    assert s.result == WHITE_WINS
    assert s.is_checkmate()
    assert s.all_legal_moves() == []


def test_fools_mate_black_wins() -> None:
    s = GameState.new()
    out = play(s, "f2f3", "e7e5", "g2g4", "d8h4")
    assert out.is_checkmate
    assert s.result == BLACK_WINS


def test_king_and_pawn_stalemate() -> None:
    s = GameState.from_fen("7k/8/6KP/8/8/8/8/8 w - - 0 1")
    out = play(s, "h6h7")
    assert out.is_stalemate
    assert not out.is_check
    assert not out.is_checkmate
    assert s.game_over
    assert s.result == DRAW
    assert s.is_stalemate()


def test_stalemate_position_from_fen() -> None:
    s = GameState.from_fen("7k/7P/6K1/8/8/8/8/8 b - - 0 1")
    assert not s.is_in_check(BLACK)
    assert not s.has_legal_moves(BLACK)
    assert s.is_stalemate()
    assert not s.is_checkmate()


def test_check_that_is_not_mate() -> None:
    s = GameState.new()
    out = play(s, "e2e4", "f7f6", "d1h5")
    assert out.is_check
    assert not out.is_checkmate
    assert not s.game_over
    assert s.result == IN_PROGRESS
    assert s.is_in_check(BLACK)
    assert not s.is_in_check(WHITE)
