from __future__ import annotations

import pytest

from stellar_chess.engine.move import (
    BLACK,
    KING,
    ROOK,
    WHITE,
    Piece,
    square_to_str,
    str_to_square,
)
from stellar_chess.engine.state import STARTPOS_FEN, GameState


KIWIPETE = "r3k2r/p1ppqpb1/bn2pnp1/3PN3/1p2P3/2N2Q1p/PPPBBPPP/R3K2R w KQkq - 0 1"


def test_startpos_roundtrip() -> None:
    s = GameState.new()
    assert s.to_fen() == STARTPOS_FEN
    assert s.turn == WHITE
    assert s.kings == {WHITE: (7, 4), BLACK: (0, 4)}
    assert s.ep_target is None


@pytest.mark.parametrize(
    "fen",
    [
        KIWIPETE,
        "8/2p5/3p4/KP5r/1R3p1k/8/4P1P1/8 w - - 0 1",
        "rnbqkbnr/pppp1ppp/8/4p3/4P3/8/PPPP1PPP/RNBQKBNR w KQkq e6 0 2",
        "4k3/8/8/8/8/8/8/4K3 b - - 17 42",
    ],
)
def test_fen_roundtrip(fen: str) -> None:
    assert GameState.from_fen(fen).to_fen() == fen


def test_castling_letters_are_normalised() -> None:
    s = GameState.from_fen("r3k2r/8/8/8/8/8/8/R3K2R w qkQK - 0 1")
    assert s.to_fen().split()[2] == "KQkq"


def test_pieces_land_on_expected_squares() -> None:
    s = GameState.from_fen(KIWIPETE)
    assert s.piece_at(str_to_square("a1")) == Piece(ROOK, WHITE)
    assert s.piece_at(str_to_square("e8")) == Piece(KING, BLACK)
    assert s.piece_at(str_to_square("e4")) is not None
    assert s.piece_at(str_to_square("e3")) is None


def test_piece_at_off_board_is_empty() -> None:
    s = GameState.new()
    assert s.piece_at((8, 0)) is None
    assert s.piece_at((-1, 3)) is None
    assert s.piece_at((0, 9)) is None


@pytest.mark.parametrize(
    "fen",
    [
        "",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq -",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP w KQkq - 0 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNX w KQkq - 0 1",
        "rnbqkbnr/pppppppp/9/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBN w KQkq - 0 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR x KQkq - 0 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KX - 0 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq e5 0 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq z3 0 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - -1 1",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 0",
        "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - x 1",
        "8/8/8/8/8/8/8/K7 w - - 0 1",
        "k7/8/8/8/8/8/8/K6K w - - 0 1",
    ],
)
def test_invalid_fen_raises(fen: str) -> None:
    with pytest.raises(ValueError):
        GameState.from_fen(fen)


def test_square_helpers() -> None:
    assert str_to_square("e4") == (4, 4)
    assert str_to_square("a8") == (0, 0)
    assert str_to_square("h1") == (7, 7)
    assert square_to_str((7, 0)) == "a1"
    assert square_to_str((0, 7)) == "h8"
    for bad in ("i1", "a9", "a0", "e", "e44"):
        with pytest.raises(ValueError):
            str_to_square(bad)
