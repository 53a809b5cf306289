from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Final, List, Optional, Tuple

from stellar_chess.eval import evaluate_material

from .move import (
    BISHOP,
    BLACK,
    BLACK_WINS,
    CAPTURE,
    CASTLE_KINGSIDE,
    CASTLE_QUEENSIDE,
    COLORS,
    DRAW,
    EN_PASSANT,
    FAILED,
    IN_PROGRESS,
    KING,
    KNIGHT,
    MOVE,
    NORMAL,
    PAWN,
    PROMOTION_KINDS,
    QUEEN,
    ROOK,
    WHITE,
    WHITE_WINS,
    CandidateMove,
    FullMove,
    MoveOutcome,
    MoveRecord,
    Piece,
    Square,
    on_board,
    opposite,
    square_to_str,
    str_to_square,
)


STARTPOS_FEN: Final = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

KNIGHT_OFFSETS: Final = ((-2, -1), (-2, 1), (-1, -2), (-1, 2), (1, -2), (1, 2), (2, -1), (2, 1))
KING_OFFSETS: Final = ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, -1), (1, 0), (1, 1))
ORTHOGONAL: Final = ((0, 1), (0, -1), (1, 0), (-1, 0))
DIAGONAL: Final = ((1, 1), (1, -1), (-1, 1), (-1, -1))

HOME_ROW: Final = {WHITE: 7, BLACK: 0}
PAWN_DIRECTION: Final = {WHITE: -1, BLACK: 1}
PAWN_START_ROW: Final = {WHITE: 6, BLACK: 1}
KING_HOME_COL: Final = 4

# castle kind -> (king destination col, rook home col, rook destination col,
#                 cols that must be empty, cols the king crosses or lands on)
CASTLE_LAYOUT: Final[Dict[str, Tuple[int, int, int, Tuple[int, ...], Tuple[int, ...]]]] = {
    CASTLE_KINGSIDE: (6, 7, 5, (5, 6), (5, 6)),
    CASTLE_QUEENSIDE: (2, 0, 3, (1, 2, 3), (3, 2)),
}
ROOK_HOME_COLS: Final = {CASTLE_KINGSIDE: 7, CASTLE_QUEENSIDE: 0}

Board = List[List[Optional[Piece]]]


@dataclass
class CastlingRights:
    """Four independent castling flags; they only ever go from True to False."""

    white_kingside: bool = True
    white_queenside: bool = True
    black_kingside: bool = True
    black_queenside: bool = True

    def allows(self, color: str, kind: str) -> bool:
        return getattr(self, _flag_name(color, kind))

    def revoke(self, color: str, kind: Optional[str] = None) -> None:
        kinds = (CASTLE_KINGSIDE, CASTLE_QUEENSIDE) if kind is None else (kind,)
        for k in kinds:
            setattr(self, _flag_name(color, k), False)

    def copy(self) -> "CastlingRights":
        return CastlingRights(
            self.white_kingside, self.white_queenside, self.black_kingside, self.black_queenside
        )

    def to_fen(self) -> str:
        s = ""
        s += "K" if self.white_kingside else ""
        s += "Q" if self.white_queenside else ""
        s += "k" if self.black_kingside else ""
        s += "q" if self.black_queenside else ""
        return s or "-"

    @classmethod
    def from_fen(cls, field_: str) -> "CastlingRights":
        if field_ == "-":
            return cls(False, False, False, False)
        if not field_ or any(ch not in "KQkq" for ch in field_):
            raise ValueError("invalid castling rights")
        return cls("K" in field_, "Q" in field_, "k" in field_, "q" in field_)


def _flag_name(color: str, kind: str) -> str:
    side = "kingside" if kind == CASTLE_KINGSIDE else "queenside"
    return f"{color}_{side}"


@dataclass
class GameState:
    """Rules engine: board state, legal moves, move application and undo.

    Notes:
    - Squares are ``(row, col)``; row 0 is rank 8, row 7 is rank 1.
    - Every operation reports its outcome by return value; only the
      parsing helpers raise (``ValueError``).
    - ``clone`` gives an independent copy for search; history is not copied.
    """

    board: Board
    turn: str = WHITE
    castling: CastlingRights = field(default_factory=CastlingRights)
    ep_target: Optional[Square] = None
    kings: Dict[str, Square] = field(default_factory=dict)
    history: List[MoveRecord] = field(default_factory=list, repr=False)
    captured: Dict[str, List[Piece]] = field(
        default_factory=lambda: {WHITE: [], BLACK: []}, repr=False
    )
    game_over: bool = False
    result: str = IN_PROGRESS
    halfmove_clock: int = 0
    fullmove_number: int = 1

    def __post_init__(self) -> None:
        if not self.kings:
            for row, rank in enumerate(self.board):
                for col, piece in enumerate(rank):
                    if piece is not None and piece.kind == KING:
                        self.kings[piece.color] = (row, col)

    @classmethod
    def new(cls) -> "GameState":
        """Create a state initialized to the standard chess starting position."""
        return cls.from_fen(STARTPOS_FEN)

    @classmethod
    def from_fen(cls, fen: str) -> "GameState":
        """Create a state from a Forsyth-Edwards Notation (FEN) string.

        Args:
            fen (str): FEN string describing the position to load.

        Returns:
            GameState: State initialized with the position encoded in ``fen``.

        Raises:
            ValueError: If ``fen`` is empty, has the wrong number of fields,
                contains invalid piece placement, castling rights, en passant
                square or move counters, or does not hold exactly one king
                per colour.
        """
        if not fen or not isinstance(fen, str):
            raise ValueError("FEN must be a non-empty string")
        parts = fen.strip().split()
        if len(parts) != 6:
            raise ValueError("FEN must have 6 fields")
        placement, stm, castling, ep, halfmove, fullmove = parts

        ranks = placement.split("/")
        if len(ranks) != 8:
            raise ValueError("FEN board must have 8 ranks")
        board: Board = []
        kings: Dict[str, Square] = {}
        for row, rank in enumerate(ranks):
            cells: List[Optional[Piece]] = []
            for ch in rank:
                if ch.isdigit():
                    n = int(ch)
                    if n < 1 or n > 8:
                        raise ValueError("invalid empty count in FEN rank")
                    cells.extend([None] * n)
                else:
                    piece = Piece.from_symbol(ch)
                    if piece.kind == KING:
                        if piece.color in kings:
                            raise ValueError(f"more than one {piece.color} king in FEN")
                        kings[piece.color] = (row, len(cells))
                    cells.append(piece)
                if len(cells) > 8:
                    raise ValueError("too many squares in FEN rank")
            if len(cells) != 8:
                raise ValueError("rank does not sum to 8 squares in FEN")
            board.append(cells)

        if stm not in ("w", "b"):
            raise ValueError("side to move must be 'w' or 'b'")
        rights = CastlingRights.from_fen(castling)

        ep_target: Optional[Square]
        if ep == "-":
            ep_target = None
        else:
            try:
                ep_target = str_to_square(ep)
            except ValueError as e:
                raise ValueError("invalid en passant square") from e
            # ranks 3 and 6 only
            if ep_target[0] not in (2, 5):
                raise ValueError("invalid en passant square rank")

        try:
            halfmove_clock = int(halfmove)
            fullmove_number = int(fullmove)
        except ValueError as e:
            raise ValueError("invalid move counters in FEN") from e
        if halfmove_clock < 0 or fullmove_number <= 0:
            raise ValueError("invalid move counters in FEN")

        for color in COLORS:
            if color not in kings:
                raise ValueError(f"FEN has no {color} king")

        return cls(
            board=board,
            turn=WHITE if stm == "w" else BLACK,
            castling=rights,
            ep_target=ep_target,
            kings=kings,
            halfmove_clock=halfmove_clock,
            fullmove_number=fullmove_number,
        )

    def to_fen(self) -> str:
        """Serialize the current position into a normalized FEN string."""
        ranks_str: List[str] = []
        for rank in self.board:
            run = 0
            row: List[str] = []
            for piece in rank:
                if piece is None:
                    run += 1
                    continue
                if run > 0:
                    row.append(str(run))
                    run = 0
                row.append(piece.symbol)
            if run > 0:
                row.append(str(run))
            ranks_str.append("".join(row))
        placement = "/".join(ranks_str)
        stm = "w" if self.turn == WHITE else "b"
        ep = square_to_str(self.ep_target) if self.ep_target is not None else "-"
        return (
            f"{placement} {stm} {self.castling.to_fen()} {ep} "
            f"{self.halfmove_clock} {self.fullmove_number}"
        )

    def piece_at(self, square: Square) -> Optional[Piece]:
        """Return the piece on ``square``; off-board squares read as empty."""
        if not on_board(square):
            return None
        return self.board[square[0]][square[1]]

    # --- Move generation ---
    def legal_moves(self, square: Square) -> List[CandidateMove]:
        """Return the legal destinations for the piece on ``square``.

        Pseudo-legal candidates are generated per piece kind and any that
        would leave the mover's own king attacked are dropped. The query
        never changes observable state.
        """
        piece = self.piece_at(square)
        if piece is None:
            return []
        return [
            cand
            for cand in self._pseudo_moves(square, piece, with_castling=True)
            if not self._leaves_king_attacked(square, cand)
        ]

    def all_legal_moves(self, color: Optional[str] = None) -> List[FullMove]:
        """Return every legal move for ``color`` (default: side to move)."""
        color = self.turn if color is None else color
        moves: List[FullMove] = []
        for row, rank in enumerate(self.board):
            for col, piece in enumerate(rank):
                if piece is None or piece.color != color:
                    continue
                for cand in self.legal_moves((row, col)):
                    moves.append(FullMove((row, col), cand.to_sq, cand.kind))
        return moves

    def has_legal_moves(self, color: str) -> bool:
        for row, rank in enumerate(self.board):
            for col, piece in enumerate(rank):
                if piece is not None and piece.color == color and self.legal_moves((row, col)):
                    return True
        return False

    def _pseudo_moves(
        self, square: Square, piece: Piece, *, with_castling: bool
    ) -> List[CandidateMove]:
        if piece.kind == PAWN:
            return self._pawn_moves(square, piece.color)
        if piece.kind == KNIGHT:
            return self._step_moves(square, piece.color, KNIGHT_OFFSETS)
        if piece.kind == BISHOP:
            return self._slide_moves(square, piece.color, DIAGONAL)
        if piece.kind == ROOK:
            return self._slide_moves(square, piece.color, ORTHOGONAL)
        if piece.kind == QUEEN:
            return self._slide_moves(square, piece.color, ORTHOGONAL + DIAGONAL)
        moves = self._step_moves(square, piece.color, KING_OFFSETS)
        if with_castling:
            moves.extend(self._castling_moves(square, piece.color))
        return moves

    def _pawn_moves(self, square: Square, color: str) -> List[CandidateMove]:
        row, col = square
        d = PAWN_DIRECTION[color]
        moves: List[CandidateMove] = []

        one = (row + d, col)
        if on_board(one) and self.piece_at(one) is None:
            moves.append(CandidateMove(one, MOVE))
            two = (row + 2 * d, col)
            if row == PAWN_START_ROW[color] and self.piece_at(two) is None:
                moves.append(CandidateMove(two, MOVE))

        for dc in (-1, 1):
            target = (row + d, col + dc)
            if not on_board(target):
                continue
            victim = self.piece_at(target)
            if victim is not None and victim.color != color:
                moves.append(CandidateMove(target, CAPTURE))
            if target == self.ep_target:
                # the pawn that just advanced two squares sits beside us
                passed = self.piece_at((row, col + dc))
                if passed is not None and passed.kind == PAWN and passed.color != color:
                    moves.append(CandidateMove(target, EN_PASSANT))
        return moves

    def _slide_moves(
        self, square: Square, color: str, directions: Tuple[Tuple[int, int], ...]
    ) -> List[CandidateMove]:
        row, col = square
        moves: List[CandidateMove] = []
        for dr, dc in directions:
            r, c = row + dr, col + dc
            while 0 <= r < 8 and 0 <= c < 8:
                target = self.board[r][c]
                if target is None:
                    moves.append(CandidateMove((r, c), MOVE))
                else:
                    if target.color != color:
                        moves.append(CandidateMove((r, c), CAPTURE))
                    break
                r += dr
                c += dc
        return moves

    def _step_moves(
        self, square: Square, color: str, offsets: Tuple[Tuple[int, int], ...]
    ) -> List[CandidateMove]:
        row, col = square
        moves: List[CandidateMove] = []
        for dr, dc in offsets:
            r, c = row + dr, col + dc
            if not (0 <= r < 8 and 0 <= c < 8):
                continue
            target = self.board[r][c]
            if target is None:
                moves.append(CandidateMove((r, c), MOVE))
            elif target.color != color:
                moves.append(CandidateMove((r, c), CAPTURE))
        return moves

    def _castling_moves(self, square: Square, color: str) -> List[CandidateMove]:
        home = HOME_ROW[color]
        if square != (home, KING_HOME_COL) or self.is_in_check(color):
            return []
        enemy = opposite(color)
        rook = Piece(ROOK, color)
        moves: List[CandidateMove] = []
        for kind, (king_col, rook_col, _, between, path) in CASTLE_LAYOUT.items():
            if not self.castling.allows(color, kind):
                continue
            if self.board[home][rook_col] != rook:
                continue
            if any(self.board[home][c] is not None for c in between):
                continue
            if any(self.is_attacked((home, c), enemy) for c in path):
                continue
            moves.append(CandidateMove((home, king_col), kind))
        return moves

    # --- Attack detection ---
    def is_attacked(self, square: Square, by_color: str) -> bool:
        """Return True if any piece of ``by_color`` attacks ``square``.

        Looks outward from ``square``: pawn diagonals, knight and king
        offsets, and the first blocker along each ray. Castling and the
        check-safety filter play no part, so this never recurses.
        """
        row, col = square

        # A pawn of by_color attacks from one step behind its own direction
        d = PAWN_DIRECTION[by_color]
        for dc in (-1, 1):
            p = self.piece_at((row - d, col + dc))
            if p is not None and p.kind == PAWN and p.color == by_color:
                return True

        for dr, dc in KNIGHT_OFFSETS:
            p = self.piece_at((row + dr, col + dc))
            if p is not None and p.kind == KNIGHT and p.color == by_color:
                return True

        for dr, dc in KING_OFFSETS:
            p = self.piece_at((row + dr, col + dc))
            if p is not None and p.kind == KING and p.color == by_color:
                return True

        for directions, slider in ((ORTHOGONAL, ROOK), (DIAGONAL, BISHOP)):
            for dr, dc in directions:
                r, c = row + dr, col + dc
                while 0 <= r < 8 and 0 <= c < 8:
                    p = self.board[r][c]
                    if p is not None:
                        if p.color == by_color and p.kind in (slider, QUEEN):
                            return True
                        break
                    r += dr
                    c += dc
        return False

    def is_in_check(self, color: str) -> bool:
        king = self.kings.get(color)
        if king is None:
            return False
        return self.is_attacked(king, opposite(color))

    def is_checkmate(self) -> bool:
        return self.is_in_check(self.turn) and not self.has_legal_moves(self.turn)

    def is_stalemate(self) -> bool:
        return not self.is_in_check(self.turn) and not self.has_legal_moves(self.turn)

    def _leaves_king_attacked(self, from_sq: Square, cand: CandidateMove) -> bool:
        """Simulate ``cand`` with the real move machinery, test, then revert."""
        record = self._push(from_sq, cand, None)
        try:
            color = record.piece.color
            return self.is_attacked(self.kings[color], opposite(color))
        finally:
            self._pop(record)

    # --- Make / unmake ---
    def apply_move(
        self, from_sq: Square, to_sq: Square, promotion: Optional[str] = None
    ) -> MoveOutcome:
        """Apply a move for the side to move.

        Args:
            from_sq (Square): Origin square.
            to_sq (Square): Destination square.
            promotion (Optional[str]): Piece kind for a promoting pawn;
                defaults to queen.

        Returns:
            MoveOutcome: ``success=False`` with no state change when the move
                is not legal; otherwise the move record and check, checkmate
                and stalemate flags for the new side to move.
        """
        if not (on_board(from_sq) and on_board(to_sq)):
            return FAILED
        piece = self.piece_at(from_sq)
        if piece is None or piece.color != self.turn:
            return FAILED
        if promotion is not None and promotion not in PROMOTION_KINDS:
            return FAILED
        cand = next((c for c in self.legal_moves(from_sq) if c.to_sq == to_sq), None)
        if cand is None:
            return FAILED

        record = self._push(from_sq, cand, promotion)
        self._update_castling_rights(record)

        # Clear en passant by default; set only on double pawn pushes
        self.ep_target = None
        if piece.kind == PAWN and abs(to_sq[0] - from_sq[0]) == 2:
            self.ep_target = ((from_sq[0] + to_sq[0]) // 2, from_sq[1])

        if piece.kind == PAWN or record.captured is not None:
            self.halfmove_clock = 0
        else:
            self.halfmove_clock += 1
        if piece.color == BLACK:
            self.fullmove_number += 1

        self.history.append(record)
        self.turn = opposite(piece.color)
        return self._settle(record)

    def undo_move(self) -> bool:
        """Take back the last move.

        Restores placement, captured lists, king cache and turn, and clears
        the terminal flags. Castling rights, the en-passant target and the
        halfmove clock keep their current values.

        Returns:
            bool: False when there is no move to undo.
        """
        if not self.history:
            return False
        record = self.history.pop()
        self._pop(record)
        self.turn = record.piece.color
        if record.piece.color == BLACK and self.fullmove_number > 1:
            self.fullmove_number -= 1
        self.game_over = False
        self.result = IN_PROGRESS
        return True

    def _push(
        self, from_sq: Square, cand: CandidateMove, promotion: Optional[str]
    ) -> MoveRecord:
        """Move pieces for ``cand`` and return the record that reverses it.

        Touches placement, the captured lists and the king cache only.
        """
        fr, fc = from_sq
        tr, tc = cand.to_sq
        piece = self.board[fr][fc]
        if piece is None:
            raise ValueError(f"no piece on {square_to_str(from_sq)}")

        captured: Optional[Piece] = None
        ep_capture_sq: Optional[Square] = None
        rook_squares: Optional[Tuple[Square, Square]] = None
        promoted: Optional[str] = None

        if cand.kind == EN_PASSANT:
            ep_capture_sq = (tr - PAWN_DIRECTION[piece.color], tc)
            captured = self.board[ep_capture_sq[0]][ep_capture_sq[1]]
            self.board[ep_capture_sq[0]][ep_capture_sq[1]] = None
        elif cand.kind == CAPTURE:
            captured = self.board[tr][tc]
        if captured is not None:
            self.captured[piece.color].append(captured)

        self.board[tr][tc] = piece
        self.board[fr][fc] = None

        if cand.kind in CASTLE_LAYOUT:
            _, rook_col, rook_to_col, _, _ = CASTLE_LAYOUT[cand.kind]
            rook_squares = ((tr, rook_col), (tr, rook_to_col))
            self.board[tr][rook_to_col] = self.board[tr][rook_col]
            self.board[tr][rook_col] = None

        if piece.kind == KING:
            self.kings[piece.color] = (tr, tc)

        if piece.kind == PAWN and tr == HOME_ROW[opposite(piece.color)]:
            promoted = promotion or QUEEN
            self.board[tr][tc] = Piece(promoted, piece.color)

        return MoveRecord(
            from_sq=from_sq,
            to_sq=cand.to_sq,
            piece=piece,
            captured=captured,
            kind=NORMAL if cand.kind == MOVE else cand.kind,
            rook_squares=rook_squares,
            ep_capture_sq=ep_capture_sq,
            promotion=promoted,
        )

    def _pop(self, record: MoveRecord) -> None:
        """Reverse the placement changes of ``record``."""
        fr, fc = record.from_sq
        tr, tc = record.to_sq
        # record.piece is the pre-move snapshot, so a promoted piece reverts to a pawn
        self.board[fr][fc] = record.piece
        self.board[tr][tc] = None

        if record.captured is not None:
            cr, cc = record.ep_capture_sq if record.ep_capture_sq is not None else record.to_sq
            self.board[cr][cc] = record.captured
            self.captured[record.piece.color].pop()

        if record.rook_squares is not None:
            (rr, rook_col), (_, rook_to_col) = record.rook_squares
            self.board[rr][rook_col] = self.board[rr][rook_to_col]
            self.board[rr][rook_to_col] = None

        if record.piece.kind == KING:
            self.kings[record.piece.color] = record.from_sq

    def _update_castling_rights(self, record: MoveRecord) -> None:
        """Revoke rights when a king moves or a rook leaves/loses its corner."""
        piece = record.piece
        if piece.kind == KING:
            self.castling.revoke(piece.color)
        elif piece.kind == ROOK:
            for kind, col in ROOK_HOME_COLS.items():
                if record.from_sq == (HOME_ROW[piece.color], col):
                    self.castling.revoke(piece.color, kind)
        victim = record.captured
        if victim is not None and victim.kind == ROOK:
            for kind, col in ROOK_HOME_COLS.items():
                if record.to_sq == (HOME_ROW[victim.color], col):
                    self.castling.revoke(victim.color, kind)

    def _settle(self, record: MoveRecord) -> MoveOutcome:
        """Compute the terminal state for the side now to move."""
        side = self.turn
        in_check = self.is_in_check(side)
        has_moves = self.has_legal_moves(side)
        checkmate = in_check and not has_moves
        stalemate = not in_check and not has_moves
        if checkmate:
            self.game_over = True
            self.result = WHITE_WINS if record.piece.color == WHITE else BLACK_WINS
        elif stalemate:
            self.game_over = True
            self.result = DRAW
        return MoveOutcome(
            success=True,
            record=record,
            is_check=in_check,
            is_checkmate=checkmate,
            is_stalemate=stalemate,
        )

    # --- Evaluation and copies ---
    def evaluate_material(self) -> int:
        """Material plus piece-square score, positive favouring white."""
        return evaluate_material(self.board)

    def clone(self) -> "GameState":
        """Return an independent copy for search.

        Move history and the game-over flag are not copied; the copy starts
        in progress so search always explores it.
        """
        # Pieces are immutable, so copying each rank list is a full copy
        return GameState(
            board=[list(rank) for rank in self.board],
            turn=self.turn,
            castling=self.castling.copy(),
            ep_target=self.ep_target,
            kings=dict(self.kings),
            captured={color: list(pieces) for color, pieces in self.captured.items()},
            halfmove_clock=self.halfmove_clock,
            fullmove_number=self.fullmove_number,
        )
