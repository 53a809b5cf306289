"""Static evaluation: material plus piece-square bonuses.

Pure, deterministic, and side-effect free. Scores are in centipawns from
white's point of view (positive favours white).
"""

from __future__ import annotations

from typing import Dict, Final, Optional, Sequence

from stellar_chess.engine.move import (
    BISHOP,
    KING,
    KNIGHT,
    PAWN,
    QUEEN,
    ROOK,
    WHITE,
    Piece,
)


PIECE_VALUES: Final[Dict[str, int]] = {
    PAWN: 100,
    KNIGHT: 320,
    BISHOP: 330,
    ROOK: 500,
    QUEEN: 900,
    KING: 20000,
}

# Piece-square tables indexed [row][col] from white's side of the board
# (row 0 is the promotion rank). Black looks up the mirrored row.
PSQT_P: Final = (
    (0, 0, 0, 0, 0, 0, 0, 0),
    (50, 50, 50, 50, 50, 50, 50, 50),
    (10, 10, 20, 30, 30, 20, 10, 10),
    (5, 5, 10, 25, 25, 10, 5, 5),
    (0, 0, 0, 20, 20, 0, 0, 0),
    (5, -5, -10, 0, 0, -10, -5, 5),
    (5, 10, 10, -20, -20, 10, 10, 5),
    (0, 0, 0, 0, 0, 0, 0, 0),
)

PSQT_N: Final = (
    (-50, -40, -30, -30, -30, -30, -40, -50),
    (-40, -20, 0, 0, 0, 0, -20, -40),
    (-30, 0, 10, 15, 15, 10, 0, -30),
    (-30, 5, 15, 20, 20, 15, 5, -30),
    (-30, 0, 15, 20, 20, 15, 0, -30),
    (-30, 5, 10, 15, 15, 10, 5, -30),
    (-40, -20, 0, 5, 5, 0, -20, -40),
    (-50, -40, -30, -30, -30, -30, -40, -50),
)

PSQT: Final = {PAWN: PSQT_P, KNIGHT: PSQT_N}


def piece_square_bonus(piece: Piece, row: int, col: int) -> int:
    table = PSQT.get(piece.kind)
    if table is None:
        return 0
    r = row if piece.color == WHITE else 7 - row
    return table[r][col]


def evaluate_material(board: Sequence[Sequence[Optional[Piece]]]) -> int:
    """Sum material and piece-square bonuses over the whole board.

    Args:
        board: 8x8 grid of optional pieces, row 0 being rank 8.

    Returns:
        int: Signed score, positive favouring white.
    """
    score = 0
    for row, rank in enumerate(board):
        for col, piece in enumerate(rank):
            if piece is None:
                continue
            value = PIECE_VALUES[piece.kind] + piece_square_bonus(piece, row, col)
            score += value if piece.color == WHITE else -value
    return score

