"""
Game session for a human playing an engine personality.

Handles:
- Turn order between the human and the personality
- Search tokens that invalidate superseded engine work
- Background evaluation for the eval bar
- Engine failures surfaced as status text instead of crashes
- Result summary and PGN generation
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

import chess
import chess.pgn

from engines.base_engine import BaseEngine, MoveDecision
from engines.stockfish_engine import StockfishEngine
from uci.errors import EngineError, EngineTaskCanceledError
from uci.models import ScoreReport
from utils import score_for_color

from .models import GameMode, GameResult, GameStatus, MoveOutcome
from .rules import ChessRules

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS_MOVETIME_MS = 300


def color_name(color: chess.Color) -> str:
    return "white" if color == chess.WHITE else "black"


class GameSession:
    """
    One game between a human and a personality over a shared facade.

    The session owns the rules adapter and the search token; the facade and
    personality are passed in and outlive individual games.
    """

    def __init__(
        self,
        engine: StockfishEngine,
        personality: BaseEngine,
        mode: GameMode,
        rules: Optional[ChessRules] = None,
        analysis_enabled: bool = True,
        analysis_movetime_ms: int = DEFAULT_ANALYSIS_MOVETIME_MS,
    ):
        """
        Initialize the session.

        Args:
            engine: Facade shared by the personality and the eval bar
            personality: Engine personality the human plays against
            mode: Personality kind, recorded in the result
            rules: Rules adapter (a fresh one by default)
            analysis_enabled: Evaluate positions in the background
            analysis_movetime_ms: Search time per background evaluation
        """
        self.engine = engine
        self.personality = personality
        self.mode = GameMode(mode)
        self.rules = rules if rules is not None else ChessRules()
        self.analysis_enabled = analysis_enabled
        self.analysis_movetime_ms = analysis_movetime_ms

        self.human_color: chess.Color = chess.WHITE
        self.search_token = 0
        self._eval_generation = 0
        self._eval_task: Optional[asyncio.Future] = None

        self.game_id = str(uuid.uuid4())
        self.white_score: Optional[ScoreReport] = None
        self.decisions: List[MoveDecision] = []
        self.blunders = 0
        self.engine_errors = 0
        self.last_error: Optional[str] = None
        self.status_text = ""
        self.forfeited = False
        self.started_at = datetime.now(timezone.utc)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def engine_color(self) -> chess.Color:
        return not self.human_color

    def _bump_search_token(self) -> None:
        self.search_token += 1

    def _bump_eval_generation(self) -> None:
        self._eval_generation += 1

    async def start_new_game(self, human_color: chess.Color = chess.WHITE, fen: Optional[str] = None) -> None:
        """
        Reset everything for a new game.

        Engine failures while resetting are recorded as status; the session
        stays usable.
        """
        self._bump_search_token()
        self._bump_eval_generation()
        self.engine.flush_analysis("start_new_game")

        self.rules.new_game(fen)
        self.human_color = human_color
        self.game_id = str(uuid.uuid4())
        self.white_score = None
        self.decisions = []
        self.blunders = 0
        self.engine_errors = 0
        self.last_error = None
        self.forfeited = False
        self.started_at = datetime.now(timezone.utc)
        self.status_text = "Your move" if self.is_human_turn() else "Engine thinking..."

        try:
            await self.engine.new_game()
            await self.personality.new_game()
        except EngineError as e:
            self._record_error(e)
            return

        self.request_evaluation()

    def forfeit(self) -> None:
        """Human resigns; in-flight engine work is abandoned."""
        if self.status().over:
            return
        self._bump_search_token()
        self._bump_eval_generation()
        self.engine.flush_analysis("forfeit")
        self.forfeited = True
        self.status_text = "You forfeited"

    def return_to_menu(self) -> None:
        self._bump_search_token()
        self._bump_eval_generation()
        self.engine.flush_analysis("main_menu")

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    def status(self) -> GameStatus:
        if self.forfeited:
            return GameStatus(over=True, result=color_name(self.engine_color), reason="forfeit")
        return self.rules.game_status()

    def is_human_turn(self) -> bool:
        return not self.status().over and self.rules.turn == self.human_color

    def submit_human_move(self, move: chess.Move) -> MoveOutcome:
        """
        Apply the human's move.

        Returns:
            MoveOutcome; needs_promotion asks the caller for a piece
        """
        if not self.is_human_turn():
            return MoveOutcome(ok=False, reason="not_your_turn")

        outcome = self.rules.apply_move(move)
        if outcome.ok:
            self._bump_search_token()
            self._after_move()
        return outcome

    async def play_engine_turn(self) -> Optional[MoveDecision]:
        """
        Let the personality move.

        Returns:
            The applied MoveDecision, or None if no move was played (game
            over, turn superseded, or engine failure recorded in last_error)
        """
        if self.status().over or self.rules.turn != self.engine_color:
            return None

        token = self.search_token

        def should_continue() -> bool:
            return self.search_token == token

        self.status_text = "Engine thinking..."
        try:
            decision = await self.personality.select_move(self.rules, should_continue)
        except EngineTaskCanceledError as e:
            if not should_continue():
                logger.debug(f"Superseded engine turn canceled: {e.reason}")
                return None
            self._record_error(e)
            return None
        except EngineError as e:
            self._record_error(e)
            return None

        if decision is None or not should_continue():
            return None

        outcome = self.rules.apply_move(decision.move)
        if not outcome.ok:
            self._record_error(EngineError(f"Engine chose an illegal move: {decision.move.uci()}"))
            return None

        self.decisions.append(decision)
        if decision.kind == "blunder":
            self.blunders += 1
        logger.debug(f"Engine played {outcome.san} ({decision.kind})")
        self._after_move()
        return decision

    def _after_move(self) -> None:
        self._bump_eval_generation()
        status = self.status()
        if status.over:
            self.status_text = f"Game over: {status.reason}"
        else:
            self.status_text = "Your move" if self.rules.turn == self.human_color else "Engine thinking..."
        self.request_evaluation()

    def _record_error(self, error: Exception) -> None:
        self.engine_errors += 1
        self.last_error = str(error)
        self.status_text = f"Engine error: {error}"
        logger.warning(f"Engine error during game {self.game_id}: {error}")

    # ------------------------------------------------------------------
    # Background evaluation
    # ------------------------------------------------------------------

    def request_evaluation(self) -> Optional[asyncio.Future]:
        """Queue an evaluation of the current position on the analysis worker."""
        if not self.analysis_enabled:
            return None

        generation = self._eval_generation
        side_to_move = self.rules.turn
        pending = self.engine.analyze_position(self.rules.fen(), self.analysis_movetime_ms)
        self._eval_task = asyncio.ensure_future(self._apply_evaluation(pending, generation, side_to_move))
        return self._eval_task

    async def _apply_evaluation(self, pending: asyncio.Future, generation: int, side_to_move: chess.Color) -> None:
        try:
            score = await pending
        except EngineTaskCanceledError as e:
            logger.debug(f"Evaluation dropped: {e.reason}")
            return
        except EngineError as e:
            logger.warning(f"Evaluation failed: {e}")
            return

        if generation != self._eval_generation:
            logger.debug("Ignoring evaluation of a superseded position")
            return
        self.white_score = score_for_color(score, side_to_move, chess.WHITE)

    async def wait_for_evaluation(self) -> None:
        """Wait until the latest requested evaluation settled."""
        if self._eval_task is not None:
            await self._eval_task

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def result(self) -> GameResult:
        status = self.status()
        return GameResult(
            game_id=self.game_id,
            mode=self.mode,
            human_color=color_name(self.human_color),
            winner=status.result or "draw",
            termination=status.reason or "unfinished",
            moves=len(self.rules.board.move_stack),
            blunders=self.blunders,
            engine_errors=self.engine_errors,
            created_at=self.started_at.isoformat(),
        )

    def pgn(self) -> str:
        """PGN of the game so far, for display."""
        pgn_game = chess.pgn.Game.from_board(self.rules.board)
        pgn_game.headers["Event"] = f"Blunderfish ({self.mode.value})"
        pgn_game.headers["Site"] = "Local"
        pgn_game.headers["Date"] = self.started_at.strftime("%Y.%m.%d")
        pgn_game.headers["Round"] = "1"

        human, machine = "Human", self.personality.player_id
        pgn_game.headers["White"] = human if self.human_color == chess.WHITE else machine
        pgn_game.headers["Black"] = machine if self.human_color == chess.WHITE else human

        status = self.status()
        if status.over:
            pgn_result_map = {"white": "1-0", "black": "0-1", "draw": "1/2-1/2"}
            pgn_game.headers["Result"] = pgn_result_map.get(status.result, "*")
            pgn_game.headers["Termination"] = status.reason
        else:
            pgn_game.headers["Result"] = "*"
        return str(pgn_game)
