"""
Blindfish: Stockfish that cannot see some of the pieces.

Strategy:
1. Hide a few randomly chosen pieces (never kings, never the piece that
   just moved) and search the resulting position
2. Play the first candidate that is legal on the real board
3. Retry with a fresh selection when nothing fits; after the last retry,
   play a random legal move

The orthodox variant always hides exactly the human player's bishops.
"""

import logging
import random
from typing import Awaitable, Callable, List, Optional

import chess

from .base_engine import BaseEngine, MoveDecision, ShouldContinue, still_wanted
from .stockfish_engine import StockfishEngine

logger = logging.getLogger(__name__)

DEFAULT_BLINDNESS_COUNT = 2
DEFAULT_MAX_RETRIES = 3
DEFAULT_MULTI_PV = 10

GetRankedMoves = Callable[..., Awaitable[List[chess.Move]]]


def _always_safe(fen: str) -> bool:
    return True


def _ignore_selection(squares: List[str]) -> None:
    return None


def pick_first_legal_move(
    ranked_moves: List[chess.Move],
    is_legal_move: Callable[[chess.Move], bool],
) -> Optional[chess.Move]:
    """First move of the ranking that is legal on the real board."""
    for move in ranked_moves:
        if is_legal_move(move):
            return move
    return None


async def choose_blindfish_move_with_retries(
    *,
    blindness_count: int,
    max_retries: int,
    movetime_ms: int,
    multi_pv: int,
    select_blind_squares: Callable[[int], List[str]],
    build_blind_fen: Callable[[List[str]], str],
    get_ranked_moves: GetRankedMoves,
    is_legal_move: Callable[[chess.Move], bool],
    get_all_legal_moves: Callable[[], List[chess.Move]],
    is_blind_fen_search_safe: Callable[[str], bool] = _always_safe,
    on_blind_selection: Callable[[List[str]], None] = _ignore_selection,
    should_continue: Optional[ShouldContinue] = None,
    rng=None,
) -> Optional[chess.Move]:
    """
    Search blinded positions until one yields a move legal in the real game.

    Runs at most max_retries + 1 attempts. An attempt whose blind FEN is
    unsafe is skipped without searching. The selection is reported through
    on_blind_selection before that check, so callers can show what was hidden.

    Args:
        blindness_count: Pieces to hide per attempt
        max_retries: Extra attempts after the first
        movetime_ms: Search time per attempt
        multi_pv: Candidates requested per attempt
        select_blind_squares: count -> squares to hide
        build_blind_fen: squares -> FEN of the real position without them
        get_ranked_moves: (fen, movetime_ms=, multi_pv=) -> awaitable ranked moves
        is_legal_move: Legality on the real board
        get_all_legal_moves: Legal moves on the real board
        is_blind_fen_search_safe: Rejects blind FENs not worth searching
        on_blind_selection: Receives every selection
        should_continue: Returns False once the turn was superseded
        rng: Object with random(); used for the final fallback

    Returns:
        The chosen move, or None for a terminal position or an abandoned turn
    """
    if not get_all_legal_moves():
        return None

    for attempt in range(max_retries + 1):
        if not still_wanted(should_continue):
            return None

        squares = select_blind_squares(blindness_count)
        on_blind_selection(squares)

        blind_fen = build_blind_fen(squares)
        if not is_blind_fen_search_safe(blind_fen):
            logger.debug(f"Attempt {attempt}: unsafe blind position, hiding {squares}")
            continue

        ranked_moves = await get_ranked_moves(blind_fen, movetime_ms=movetime_ms, multi_pv=multi_pv)
        if not still_wanted(should_continue):
            return None

        candidate = pick_first_legal_move(ranked_moves, is_legal_move)
        if candidate is not None:
            return candidate
        logger.debug(f"Attempt {attempt}: no legal candidate among {len(ranked_moves)}")

    fallback_moves = get_all_legal_moves()
    if not fallback_moves:
        return None

    rng = rng if rng is not None else random
    return fallback_moves[int(rng.random() * len(fallback_moves))]


def select_human_bishop_squares(position: chess.Board, human_color: chess.Color) -> List[str]:
    """Squares of the human player's bishops, in a1..h8 order."""
    return [chess.square_name(sq) for sq in position.pieces(chess.BISHOP, human_color)]


async def choose_orthodox_blindfish_move(
    *,
    human_color: chess.Color,
    movetime_ms: int,
    multi_pv: int,
    get_position: Callable[[], chess.Board],
    get_best_move: Callable[[], Awaitable[chess.Move]],
    build_blind_fen: Callable[[List[str]], str],
    get_ranked_moves: GetRankedMoves,
    is_legal_move: Callable[[chess.Move], bool],
    get_all_legal_moves: Callable[[], List[chess.Move]],
    is_blind_fen_search_safe: Callable[[str], bool] = _always_safe,
    on_blind_selection: Callable[[List[str]], None] = _ignore_selection,
) -> Optional[chess.Move]:
    """
    Search with the human's bishops removed; single attempt.

    No bishops to hide, an unsafe blind FEN, or no legal ranked candidate
    all fall back to the plain best move.
    """
    if not get_all_legal_moves():
        return None

    squares = select_human_bishop_squares(get_position(), human_color)
    if not squares:
        return await get_best_move()

    on_blind_selection(squares)
    blind_fen = build_blind_fen(squares)
    if not is_blind_fen_search_safe(blind_fen):
        return await get_best_move()

    ranked_moves = await get_ranked_moves(blind_fen, movetime_ms=movetime_ms, multi_pv=multi_pv)
    candidate = pick_first_legal_move(ranked_moves, is_legal_move)
    if candidate is not None:
        return candidate
    return await get_best_move()


class BlindfishEngine(BaseEngine):
    """Personality wiring the blindfish selectors to a game and the facade."""

    def __init__(
        self,
        engine: StockfishEngine,
        player_id: str = "blindfish",
        blindness_count: int = DEFAULT_BLINDNESS_COUNT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        multi_pv: int = DEFAULT_MULTI_PV,
        include_white: bool = True,
        include_black: bool = True,
        exclude_last_moved: bool = True,
        orthodox: bool = False,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
        on_blind_selection: Optional[Callable[[List[str]], None]] = None,
        **kwargs,
    ):
        """
        Initialize blindfish.

        Args:
            engine: Facade used for searches
            player_id: Name shown in results
            blindness_count: Pieces hidden per attempt
            max_retries: Extra attempts before the random fallback
            multi_pv: Candidates requested per attempt
            include_white: Allow hiding white pieces
            include_black: Allow hiding black pieces
            exclude_last_moved: Keep the piece that just moved visible
            orthodox: Hide exactly the human's bishops instead
            seed: Random seed for reproducibility
            rng: Explicit random source (overrides seed)
            on_blind_selection: Extra observer for every selection
        """
        super().__init__(player_id, engine, **kwargs)
        self.blindness_count = blindness_count
        self.max_retries = max_retries
        self.multi_pv = multi_pv
        self.include_white = include_white
        self.include_black = include_black
        self.exclude_last_moved = exclude_last_moved
        self.orthodox = orthodox
        self._rng = rng if rng is not None else random.Random(seed)
        self._observer = on_blind_selection
        self.last_blind_squares: List[str] = []

    def _record_selection(self, squares: List[str]) -> None:
        self.last_blind_squares = list(squares)
        if self._observer is not None:
            self._observer(list(squares))

    def _excluded_squares(self, rules) -> List[str]:
        last_move = rules.last_move
        if self.exclude_last_moved and last_move is not None:
            return [chess.square_name(last_move.to_square)]
        return []

    async def select_move(
        self,
        rules,
        should_continue: Optional[ShouldContinue] = None,
    ) -> Optional[MoveDecision]:
        self.last_blind_squares = []
        fen = rules.fen()

        def get_best_move():
            return self.engine.get_best_move(fen, self.movetime_ms)

        searched = set()

        async def get_ranked_moves(blind_fen, **options):
            moves = await self.engine.get_ranked_moves(blind_fen, **options)
            searched.update(moves)
            return moves

        if self.orthodox:
            move = await choose_orthodox_blindfish_move(
                human_color=not rules.turn,
                movetime_ms=self.movetime_ms,
                multi_pv=self.multi_pv,
                get_position=rules.position,
                get_best_move=get_best_move,
                build_blind_fen=rules.build_blind_fen,
                get_ranked_moves=get_ranked_moves,
                is_legal_move=rules.is_legal_move,
                get_all_legal_moves=rules.all_legal_moves,
                is_blind_fen_search_safe=rules.is_blind_fen_search_safe,
                on_blind_selection=self._record_selection,
            )
            if move is None or not still_wanted(should_continue):
                return None
            # Only a legal ranked hit counts as blind; every other path is the best move
            kind = "blind" if move in searched else "best"
            return MoveDecision(move=move, kind=kind, blind_squares=self.last_blind_squares)

        if not rules.all_legal_moves():
            return None

        exclude = self._excluded_squares(rules)
        eligible = rules.eligible_blind_squares(self.include_white, self.include_black, exclude)
        if self.blindness_count <= 0 or not eligible:
            # Nothing to hide: this is an ordinary search, not an attempt
            move = await get_best_move()
            if not still_wanted(should_continue):
                return None
            return MoveDecision(move=move, kind="best")

        move = await choose_blindfish_move_with_retries(
            blindness_count=self.blindness_count,
            max_retries=self.max_retries,
            movetime_ms=self.movetime_ms,
            multi_pv=self.multi_pv,
            select_blind_squares=lambda count: rules.select_blind_squares(
                count, self._rng, self.include_white, self.include_black, exclude
            ),
            build_blind_fen=rules.build_blind_fen,
            get_ranked_moves=get_ranked_moves,
            is_legal_move=rules.is_legal_move,
            get_all_legal_moves=rules.all_legal_moves,
            is_blind_fen_search_safe=rules.is_blind_fen_search_safe,
            on_blind_selection=self._record_selection,
            should_continue=should_continue,
            rng=self._rng,
        )
        if move is None:
            return None

        # Any legal hit from a search ends the loop early, so a move outside
        # every searched ranking came from the random fallback
        kind = "blind" if move in searched else "random_fallback"
        logger.debug(f"Blindfish hid {self.last_blind_squares}, playing {move.uci()} ({kind})")
        return MoveDecision(move=move, kind=kind, blind_squares=self.last_blind_squares)
