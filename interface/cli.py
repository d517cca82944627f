"""Play Connect Four against the engine in the terminal."""

import argparse
import logging

from connect4.config import CONFIG, configure_logging
from connect4.errors import IllegalMoveError
from connect4.main import Engine

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Play Connect Four against the engine.")
    parser.add_argument("--depth", type=int, default=None, help="search depth (default from config)")
    parser.add_argument("--accelerator", action="store_true", default=None,
                        help="score leaf batches on the accelerator")
    parser.add_argument("--link", choices=["simulated", "socket"], default=None)
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--timeout-ms", type=int, default=None)
    parser.add_argument("--ai-first", action="store_true", help="let the engine open the game")
    parser.add_argument("--log-level", default=None)
    return parser


def apply_args(args, cfg=CONFIG):
    if args.link:
        cfg.accelerator.link = args.link
    if args.host:
        cfg.accelerator.host = args.host
    if args.port:
        cfg.accelerator.port = args.port
    if args.timeout_ms:
        cfg.accelerator.timeout_ms = args.timeout_ms
    if args.log_level:
        cfg.log_level = args.log_level
    return cfg.validate()


def play(engine: Engine, input_fn=input, output_fn=print):
    while not engine.is_game_over():
        output_fn(engine.board.pretty())
        output_fn("----------------------------")

        if engine.status() == "human_turn":
            raw = input_fn(f"Your move (column 0-{engine.board.cols - 1}): ").strip()
            if raw in ("q", "quit"):
                return None
            try:
                column = int(raw)
            except ValueError:
                output_fn("Please enter a column number.")
                continue
            try:
                engine.play(column)
            except IllegalMoveError as e:
                output_fn(f"Illegal move: {e}")
            continue

        result = engine.ai_move()
        output_fn(f"Engine plays: {result.column} | Eval: {result.score} | Nodes: {result.nodes}")

    output_fn(engine.board.pretty())
    outcome = {
        "human_wins": "You win!",
        "ai_wins": "Engine wins!",
        "draw": "It's a tie!",
    }[engine.status()]
    output_fn(outcome)
    return engine.status()


def main(argv=None):
    args = build_parser().parse_args(argv)
    cfg = apply_args(args)
    configure_logging(cfg.log_level)
    engine = Engine(cfg, use_accelerator=args.accelerator, depth=args.depth)
    engine.reset(ai_first=args.ai_first)
    logger.info(f"Search depth {engine.search.max_depth}, accelerator {'on' if engine.use_accelerator else 'off'}")
    play(engine)


if __name__ == "__main__":
    main()
