#!/usr/bin/env python3
"""
CLI for Blunderfish.

Commands:
- play: Play an engine personality in the terminal
- autoplay: Let a random mover play the personality and summarize the games
- analyze: Evaluate a single position
"""

import argparse
import asyncio
import logging
import os
import random
import sys
from typing import Optional

import chess
import yaml

from engines.base_engine import BaseEngine
from engines.blindfish import BlindfishEngine
from engines.blunderfish import BlunderfishEngine
from engines.rampfish import RampfishEngine
from engines.stockfish_engine import StockfishEngine
from game.game_runner import GameSession
from game.models import AppConfig, GameMode
from game.rules import ChessRules
from uci.errors import EngineError
from utils import format_eval_label, format_ramp_target, score_for_color, score_to_white_percent

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config/blunderfish.yaml"
EVAL_BAR_WIDTH = 30


def load_config(config_path: str) -> AppConfig:
    """Load and validate configuration from a YAML file."""
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}
    return AppConfig.model_validate(data)


def apply_overrides(config: AppConfig, args) -> AppConfig:
    """Fold command-line flags (and STOCKFISH_PATH) into the loaded config."""
    stockfish_path = getattr(args, "stockfish_path", None)
    if stockfish_path:
        config.engine.path = stockfish_path
    elif not config.engine.path and os.environ.get("STOCKFISH_PATH"):
        config.engine.path = os.environ["STOCKFISH_PATH"]

    if getattr(args, "seed", None) is not None:
        config.seed = args.seed
    if getattr(args, "movetime", None) is not None:
        config.engine.movetime_ms = args.movetime
    if getattr(args, "no_eval", False):
        config.analysis.enabled = False
    if getattr(args, "blunder_percent", None) is not None:
        config.blunderfish.blunder_percent = args.blunder_percent
    if getattr(args, "blunder_bag", False):
        config.blunderfish.decision = "bag"
    if getattr(args, "blindness", None) is not None:
        config.blindfish.blindness_count = args.blindness
    if getattr(args, "orthodox", False):
        config.blindfish.orthodox = True
    if getattr(args, "final_move", None) is not None:
        config.rampfish.final_move = args.final_move
    if getattr(args, "direction", None):
        config.rampfish.direction = args.direction

    # Re-validate so flag values get the same checks as file values
    return AppConfig.model_validate(config.model_dump())


def create_personality(mode: GameMode, engine: StockfishEngine, config: AppConfig) -> BaseEngine:
    """Build the personality for a game mode from config."""
    common = {
        "skill_level": config.engine.skill_level,
        "movetime_ms": config.engine.movetime_ms,
        "seed": config.seed,
    }

    if mode == GameMode.BLUNDERFISH:
        section = config.blunderfish
        return BlunderfishEngine(
            engine,
            blunder_percent=section.blunder_percent,
            decision=section.decision,
            window_size=section.window_size,
            multi_pv=section.multi_pv,
            min_loss_cp=section.min_loss_cp,
            **common,
        )
    if mode == GameMode.BLINDFISH:
        section = config.blindfish
        return BlindfishEngine(
            engine,
            player_id="blindfish-orthodox" if section.orthodox else "blindfish",
            blindness_count=section.blindness_count,
            max_retries=section.max_retries,
            multi_pv=section.multi_pv,
            include_white=section.include_white,
            include_black=section.include_black,
            exclude_last_moved=section.exclude_last_moved,
            orthodox=section.orthodox,
            **common,
        )

    common.pop("seed")
    return RampfishEngine(
        engine,
        final_move=config.rampfish.final_move,
        direction=config.rampfish.direction,
        **common,
    )


def resolve_color(choice: str, rng: random.Random) -> chess.Color:
    if choice == "w":
        return chess.WHITE
    if choice == "b":
        return chess.BLACK
    return rng.choice([chess.WHITE, chess.BLACK])


def eval_bar_text(session: GameSession) -> str:
    """One-line eval bar, White on the left."""
    if session.white_score is None:
        return "Eval: ..."
    percent = score_to_white_percent(session.white_score)
    filled = round(EVAL_BAR_WIDTH * percent / 100)
    bar = "#" * filled + "-" * (EVAL_BAR_WIDTH - filled)
    return f"Eval: [{bar}] {format_eval_label(session.white_score)}"


def print_position(session: GameSession) -> None:
    board = session.rules.board
    if session.human_color == chess.BLACK:
        # Rotate 180 degrees so the human's pieces are at the bottom
        board = board.transform(chess.flip_vertical).transform(chess.flip_horizontal)
    print()
    print(board)
    print(eval_bar_text(session))
    if session.decisions:
        last = session.decisions[-1]
        if last.blind_squares:
            print(f"Engine could not see: {', '.join(last.blind_squares)}")
        if last.target_cp is not None:
            print(f"Ramp target: {format_ramp_target(last.target_cp, session.engine_color)}")
    if session.status_text:
        print(session.status_text)


async def prompt(text: str) -> Optional[str]:
    """Read a line without blocking the event loop; None on EOF."""
    try:
        return await asyncio.to_thread(input, text)
    except EOFError:
        return None


async def ask_promotion(move: chess.Move) -> Optional[chess.Move]:
    while True:
        answer = await prompt("Promote to (q/r/b/n): ")
        if answer is None:
            return None
        answer = answer.strip().lower()
        if answer in ("q", "r", "b", "n"):
            piece_type = chess.Piece.from_symbol(answer).piece_type
            return chess.Move(move.from_square, move.to_square, promotion=piece_type)
        print("Choose one of q, r, b, n.")


async def open_engine(config: AppConfig) -> StockfishEngine:
    engine = await StockfishEngine.popen(config.engine.path, timeout=config.engine.timeout)
    try:
        await engine.init()
    except EngineError:
        await engine.aclose()
        raise
    return engine


async def run_play(args) -> int:
    config = apply_overrides(load_config(args.config), args)
    mode = GameMode(args.mode)
    rng = random.Random(config.seed)

    engine = await open_engine(config)
    async with engine:
        personality = create_personality(mode, engine, config)
        session = GameSession(
            engine,
            personality,
            mode,
            analysis_enabled=config.analysis.enabled,
            analysis_movetime_ms=config.analysis.movetime_ms,
        )
        await session.start_new_game(resolve_color(args.color, rng))
        print(f"Playing {personality.player_id} as {color_label(session.human_color)}.")
        print("Enter moves in SAN or UCI. 'q' forfeits, 'new' starts over, 'exit' quits.")

        while True:
            print_position(session)
            status = session.status()

            if status.over:
                result = session.result()
                print(f"\nResult: {result.winner} ({result.termination}), {result.moves} plies, "
                      f"{result.blunders} blunders")
                print(session.pgn())
                answer = await prompt("Type 'new' for another game or anything else to quit: ")
                if answer is None or answer.strip().lower() != "new":
                    session.return_to_menu()
                    return 0
                await session.start_new_game(resolve_color(args.color, rng))
                continue

            if not session.is_human_turn():
                decision = await session.play_engine_turn()
                if decision is None and session.last_error:
                    answer = await prompt("Engine failed. 'retry', 'new' or 'q': ")
                    if answer is None or answer.strip().lower() == "q":
                        session.forfeit()
                    elif answer.strip().lower() == "new":
                        await session.start_new_game(resolve_color(args.color, rng))
                    else:
                        session.last_error = None
                continue

            text = await prompt("Your move: ")
            if text is None or text.strip().lower() == "exit":
                session.return_to_menu()
                return 0
            command = text.strip().lower()
            if command == "q":
                session.forfeit()
                continue
            if command == "new":
                await session.start_new_game(resolve_color(args.color, rng))
                continue

            move = session.rules.parse_move(text)
            if move is None:
                print(f"Could not read move: {text.strip()}")
                continue

            outcome = session.submit_human_move(move)
            if outcome.needs_promotion:
                move = await ask_promotion(move)
                if move is None:
                    continue
                outcome = session.submit_human_move(move)
            if not outcome.ok:
                print(f"Illegal move: {text.strip()}")


def color_label(color: chess.Color) -> str:
    return "White" if color == chess.WHITE else "Black"


def random_human_move(rules: ChessRules, rng: random.Random) -> chess.Move:
    """Stand-in human: a uniformly random legal move."""
    moves = rules.all_legal_moves()
    return moves[int(rng.random() * len(moves))]


async def run_autoplay(args) -> int:
    config = apply_overrides(load_config(args.config), args)
    mode = GameMode(args.mode)
    rng = random.Random(config.seed)

    engine = await open_engine(config)
    async with engine:
        personality = create_personality(mode, engine, config)
        session = GameSession(
            engine,
            personality,
            mode,
            analysis_enabled=config.analysis.enabled,
            analysis_movetime_ms=config.analysis.movetime_ms,
        )

        results = []
        engine_moves = 0
        for game_num in range(args.games):
            human_color = chess.WHITE if game_num % 2 == 0 else chess.BLACK
            await session.start_new_game(human_color)

            while not session.status().over and len(session.rules.board.move_stack) < args.max_moves:
                if session.is_human_turn():
                    session.submit_human_move(random_human_move(session.rules, rng))
                    continue
                decision = await session.play_engine_turn()
                if decision is None:
                    if session.last_error:
                        print(f"  Game {game_num + 1}: {session.status_text}")
                    break
                engine_moves += 1
                if args.verbose:
                    print(f"  {decision.move.uci()} ({decision.kind})")

            await session.wait_for_evaluation()
            result = session.result()
            results.append(result)
            print(f"Game {game_num + 1}: engine {color_label(session.engine_color)}, "
                  f"winner {result.winner} ({result.termination}), {result.moves} plies, "
                  f"{result.blunders} blunders")

        session.return_to_menu()

    total_blunders = sum(r.blunders for r in results)
    engine_wins = sum(1 for r in results if r.winner not in ("draw", r.human_color))
    print(f"\n{len(results)} games, engine won {engine_wins}")
    if mode == GameMode.BLUNDERFISH and engine_moves:
        print(f"Blunder rate: {total_blunders}/{engine_moves} = {100 * total_blunders / engine_moves:.1f}%")
    return 0


async def run_analyze(args) -> int:
    try:
        board = chess.Board(args.fen)
    except ValueError as e:
        print(f"Invalid FEN: {e}")
        return 1

    config = apply_overrides(load_config(args.config), args)
    engine = await open_engine(config)
    async with engine:
        score = await engine.analyze_position(board.fen(), args.movetime or config.engine.movetime_ms)

    white_score = score_for_color(score, board.turn, chess.WHITE)
    print(f"Evaluation (White): {format_eval_label(white_score)}")
    print(f"Eval bar: {score_to_white_percent(white_score):.1f}% White")
    return 0


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default=DEFAULT_CONFIG_PATH,
        help="Path to config file",
    )
    parser.add_argument(
        "--stockfish-path",
        help="Path to the Stockfish binary (default: config, STOCKFISH_PATH, then PATH)",
    )
    parser.add_argument(
        "--movetime",
        type=int,
        help="Engine search time per move in milliseconds",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for reproducible personalities",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Debug logging (engine I/O and move decisions)",
    )


def add_personality_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--mode",
        choices=[m.value for m in GameMode],
        default=GameMode.BLUNDERFISH.value,
        help="Engine personality",
    )
    parser.add_argument(
        "--blunder-percent",
        type=float,
        help="Blunderfish: percentage of engine moves that blunder",
    )
    parser.add_argument(
        "--blunder-bag",
        action="store_true",
        help="Blunderfish: exact blunder count per window instead of smoothing",
    )
    parser.add_argument(
        "--blindness",
        type=int,
        help="Blindfish: pieces hidden per search",
    )
    parser.add_argument(
        "--orthodox",
        action="store_true",
        help="Blindfish: hide exactly your bishops",
    )
    parser.add_argument(
        "--final-move",
        type=int,
        help="Rampfish: engine move at which the comeback completes",
    )
    parser.add_argument(
        "--direction",
        choices=["up", "down"],
        help="Rampfish: ramp direction",
    )
    parser.add_argument(
        "--no-eval",
        action="store_true",
        help="Disable background evaluation",
    )


def main():
    parser = argparse.ArgumentParser(description="Blunderfish: play chess against a flawed Stockfish")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    play_parser = subparsers.add_parser("play", help="Play in the terminal")
    add_common_arguments(play_parser)
    add_personality_arguments(play_parser)
    play_parser.add_argument(
        "--color",
        choices=["w", "b", "random"],
        default="w",
        help="Your color",
    )

    autoplay_parser = subparsers.add_parser("autoplay", help="Random mover vs. a personality")
    add_common_arguments(autoplay_parser)
    add_personality_arguments(autoplay_parser)
    autoplay_parser.add_argument(
        "--games",
        type=int,
        default=1,
        help="Number of games to play (alternates colors)",
    )
    autoplay_parser.add_argument(
        "--max-moves",
        type=int,
        default=200,
        help="Maximum half-moves per game",
    )

    analyze_parser = subparsers.add_parser("analyze", help="Evaluate a position")
    analyze_parser.add_argument("fen", help="Position to evaluate")
    add_common_arguments(analyze_parser)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {"play": run_play, "autoplay": run_autoplay, "analyze": run_analyze}
    try:
        return asyncio.run(commands[args.command](args))
    except FileNotFoundError as e:
        print(f"Error: {e}")
        return 1
    except yaml.YAMLError as e:
        print(f"Error: invalid YAML in {args.config}: {e}")
        return 1
    except ValueError as e:
        print(f"Error: invalid configuration: {e}")
        return 1
    except EngineError as e:
        print(f"Engine error: {e}")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
