from __future__ import annotations

import argparse
import logging
import time
from typing import List, Optional

import uvicorn

from ..engine.perft import divide, perft
from ..engine.state import STARTPOS_FEN, GameState
from ..protocol.uci.loop import run_uci


def _serve(args: argparse.Namespace) -> None:
    uvicorn.run(
        "stellar_chess.protocol.http.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level=args.log_level,
    )


def _uci(args: argparse.Namespace) -> None:
    logging.basicConfig(level=args.log_level.upper())
    run_uci()


def _perft(args: argparse.Namespace) -> None:
    state = GameState.from_fen(args.fen)
    start = time.perf_counter()
    if args.divide:
        counts = divide(state, args.depth)
        for uci in sorted(counts):
            print(f"{uci}: {counts[uci]}")
        nodes = sum(counts.values())
    else:
        nodes = perft(state, args.depth)
    dt = time.perf_counter() - start
    print(f"nodes={nodes} depth={args.depth} time_ms={int(dt*1000)} nps={int(nodes/max(dt,1e-9))}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="stellar-chess", description="Chess engine and AI")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument(
        "--log-level", default="info", choices=["critical", "error", "warning", "info", "debug"]
    )
    serve.set_defaults(func=_serve)

    uci = sub.add_parser("uci", help="Speak UCI on stdin/stdout")
    uci.add_argument(
        "--log-level", default="warning", choices=["critical", "error", "warning", "info", "debug"]
    )
    uci.set_defaults(func=_uci)

    p = sub.add_parser("perft", help="Count leaf nodes of the legal move tree")
    p.add_argument("--fen", type=str, default=STARTPOS_FEN, help="FEN string (default: startpos)")
    p.add_argument("--depth", type=int, default=3, help="Perft depth (default: 3)")
    p.add_argument("--divide", action="store_true", help="Print per-move counts at the root")
    p.set_defaults(func=_perft)
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    try:
        args.func(args)
    except ValueError as e:
        raise SystemExit(f"error: {e}")


if __name__ == "__main__":
    main()
