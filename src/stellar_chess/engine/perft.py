from __future__ import annotations

from typing import Dict

from .state import GameState


def perft(state: GameState, depth: int) -> int:
    """Compute perft node count for ``state`` at ``depth``.

    Definition:
    - depth == 0 returns 1 (the current node).
    - depth > 0 returns the sum over all legal child positions' perft(depth-1).

    Children are produced the same way the search produces them: clone, then
    ``apply_move``. A promotion is a single move here (the piece kind is
    chosen at application), so positions with promotions count fewer nodes
    than the usual published tables.
    """
    if depth < 0:
        raise ValueError("depth must be >= 0")
    if depth == 0:
        return 1

    moves = state.all_legal_moves()
    if depth == 1:
        return len(moves)

    nodes = 0
    for m in moves:
        child = state.clone()
        child.apply_move(m.from_sq, m.to_sq)
        nodes += perft(child, depth - 1)
    return nodes


def divide(state: GameState, depth: int) -> Dict[str, int]:
    """Return perft counts split by root move (UCI string -> nodes)."""
    if depth < 1:
        raise ValueError("depth must be >= 1")
    out: Dict[str, int] = {}
    for m in state.all_legal_moves():
        child = state.clone()
        child.apply_move(m.from_sq, m.to_sq)
        out[m.to_uci()] = perft(child, depth - 1)
    return out
