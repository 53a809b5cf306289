from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Final, Optional, Tuple


# A square is (row, col); row 0 is rank 8 (black's home), row 7 is rank 1.
Square = Tuple[int, int]

WHITE: Final = "white"
BLACK: Final = "black"
COLORS: Final = (WHITE, BLACK)

PAWN: Final = "pawn"
KNIGHT: Final = "knight"
BISHOP: Final = "bishop"
ROOK: Final = "rook"
QUEEN: Final = "queen"
KING: Final = "king"
PIECE_KINDS: Final = (PAWN, KNIGHT, BISHOP, ROOK, QUEEN, KING)
PROMOTION_KINDS: Final = (QUEEN, ROOK, BISHOP, KNIGHT)

# Candidate move kinds (produced by move generation)
MOVE: Final = "move"
CAPTURE: Final = "capture"
EN_PASSANT: Final = "en-passant"
CASTLE_KINGSIDE: Final = "castle-kingside"
CASTLE_QUEENSIDE: Final = "castle-queenside"

# Move record kinds; a quiet candidate becomes a "normal" record
NORMAL: Final = "normal"

IN_PROGRESS: Final = "in-progress"
WHITE_WINS: Final = "white-wins"
BLACK_WINS: Final = "black-wins"
DRAW: Final = "draw"

KIND_TO_LETTER: Final[Dict[str, str]] = {
    PAWN: "p",
    KNIGHT: "n",
    BISHOP: "b",
    ROOK: "r",
    QUEEN: "q",
    KING: "k",
}
LETTER_TO_KIND: Final[Dict[str, str]] = {v: k for k, v in KIND_TO_LETTER.items()}


def opposite(color: str) -> str:
    return BLACK if color == WHITE else WHITE


def on_board(square: Square) -> bool:
    row, col = square
    return 0 <= row < 8 and 0 <= col < 8


@dataclass(frozen=True)
class Piece:
    """Immutable chess piece value.

    Attributes:
        kind (str): One of ``PIECE_KINDS``.
        color (str): ``"white"`` or ``"black"``.
    """

    kind: str
    color: str

    @property
    def symbol(self) -> str:
        """FEN letter: uppercase for white, lowercase for black."""
        ch = KIND_TO_LETTER[self.kind]
        return ch.upper() if self.color == WHITE else ch

    @classmethod
    def from_symbol(cls, ch: str) -> "Piece":
        kind = LETTER_TO_KIND.get(ch.lower())
        if kind is None:
            raise ValueError(f"invalid piece symbol: {ch!r}")
        return cls(kind, WHITE if ch.isupper() else BLACK)


@dataclass(frozen=True)
class CandidateMove:
    """Destination produced by move generation for a single origin square."""

    to_sq: Square
    kind: str


@dataclass(frozen=True)
class FullMove:
    """A move with its origin, as enumerated across the whole board.

    Attributes:
        from_sq (Square): Origin square.
        to_sq (Square): Destination square.
        kind (str): Candidate kind (``"move"``, ``"capture"``, ...).
        promotion (Optional[str]): Requested promotion kind, if any.
    """

    from_sq: Square
    to_sq: Square
    kind: str = MOVE
    promotion: Optional[str] = None

    def to_uci(self) -> str:
        """Serialize the move into long algebraic UCI form.

        Returns:
            str: Move encoded like ``"e2e4"`` or ``"e7e8q"``.
        """
        promo = KIND_TO_LETTER[self.promotion] if self.promotion else ""
        return square_to_str(self.from_sq) + square_to_str(self.to_sq) + promo


@dataclass(frozen=True)
class MoveRecord:
    """Everything needed to reverse an applied move.

    ``rook_squares`` is set iff the move is a castle; ``ep_capture_sq`` iff it
    is an en-passant capture; ``promotion`` iff a pawn reached the last rank.
    """

    from_sq: Square
    to_sq: Square
    piece: Piece
    captured: Optional[Piece]
    kind: str
    rook_squares: Optional[Tuple[Square, Square]] = None
    ep_capture_sq: Optional[Square] = None
    promotion: Optional[str] = None

    def to_uci(self) -> str:
        promo = KIND_TO_LETTER[self.promotion] if self.promotion else ""
        return square_to_str(self.from_sq) + square_to_str(self.to_sq) + promo


@dataclass(frozen=True)
class MoveOutcome:
    """Result of ``GameState.apply_move``."""

    success: bool
    record: Optional[MoveRecord] = None
    is_check: bool = False
    is_checkmate: bool = False
    is_stalemate: bool = False


FAILED: Final = MoveOutcome(success=False)


def parse_uci(uci: str) -> Tuple[Square, Square, Optional[str]]:
    """Parse a UCI move string.

    Args:
        uci (str): Move encoded in long algebraic notation (e.g. ``"e2e4"``).

    Returns:
        Tuple[Square, Square, Optional[str]]: Origin, destination and the
            promotion piece kind (``None`` when absent).

    Raises:
        ValueError: If the string has an invalid length, squares, or promotion
            piece.
    """
    if len(uci) not in (4, 5):
        raise ValueError(f"invalid UCI move length: {uci!r}")
    from_sq = str_to_square(uci[0:2])
    to_sq = str_to_square(uci[2:4])
    promo: Optional[str] = None
    if len(uci) == 5:
        promo = LETTER_TO_KIND.get(uci[4].lower())
        if promo not in PROMOTION_KINDS:
            raise ValueError(f"invalid promotion piece: {uci[4]!r}")
    return from_sq, to_sq, promo


def str_to_square(s: str) -> Square:
    """Convert algebraic notation into a (row, col) square.

    Args:
        s (str): Square name such as ``"e4"``.

    Returns:
        Square: ``(row, col)`` with row 0 on rank 8.

    Raises:
        ValueError: If ``s`` is not a valid square.
    """
    if len(s) != 2 or s[0] < "a" or s[0] > "h" or s[1] < "1" or s[1] > "8":
        raise ValueError(f"invalid square: {s!r}")
    col = ord(s[0]) - ord("a")
    row = 8 - int(s[1])
    return row, col


def square_to_str(square: Square) -> str:
    """Convert a (row, col) square into algebraic notation.

    Raises:
        ValueError: If ``square`` is off the board.
    """
    if not on_board(square):
        raise ValueError(f"invalid square: {square!r}")
    row, col = square
    return chr(ord("a") + col) + str(8 - row)
