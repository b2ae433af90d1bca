"""
UCI client for a single engine worker.

Every public query enqueues exactly one task on the worker's queue and
returns the future of that task, so submission order is fixed at call time.
"""

import asyncio
import logging
import math
from typing import List, Optional

import chess

from .correlator import DEFAULT_TIMEOUT
from .errors import ProtocolParseError, ResponseTimeoutError
from .models import (
    DEFAULT_MOVETIME_MS,
    LegacySearch,
    RankedCandidate,
    ScoreReport,
    positive_int,
    normalize_search,
    round_half_up,
)
from .parser import (
    BESTMOVE_PREFIX,
    parse_best_move,
    parse_multipv_rank,
    parse_ranked_candidate,
    parse_score,
    rank_and_dedupe,
)
from .task_queue import WorkerTaskQueue
from .worker import BaseWorker

logger = logging.getLogger(__name__)

MIN_SKILL_LEVEL = 0
MAX_SKILL_LEVEL = 20
DEFAULT_MULTI_PV = 8


def clamp_skill_level(level) -> int:
    """Round half up and clamp to 0-20; anything non-numeric means full strength."""
    try:
        number = float(level)
    except (TypeError, ValueError):
        return MAX_SKILL_LEVEL
    if not math.isfinite(number):
        return MAX_SKILL_LEVEL
    return max(MIN_SKILL_LEVEL, min(MAX_SKILL_LEVEL, round_half_up(number)))


def _multi_pv_count(value) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 1
    if not math.isfinite(number):
        return 1
    return max(1, math.floor(number))


def _is_best_move_line(line: str) -> bool:
    return line.startswith(BESTMOVE_PREFIX)


class UCIWorkerClient:
    """
    Typed UCI operations over one WorkerTaskQueue.

    Handles:
    - handshake and readiness barriers
    - skill level changes (skipped when unchanged)
    - best-move, MultiPV and score-only searches
    """

    def __init__(self, worker: BaseWorker, name: str = "worker", timeout: float = DEFAULT_TIMEOUT):
        """
        Initialize the client.

        Args:
            worker: Worker handle, owned by the client's queue
            name: Label used in log output
            timeout: Seconds to wait for each engine response
        """
        self.name = name
        self.queue = WorkerTaskQueue(worker, name=name, timeout=timeout)
        self.applied_skill_level: Optional[int] = None

    def _send(self, command: str) -> None:
        self.queue.send(command)

    async def _await_ready(self) -> None:
        self._send("isready")
        await self.queue.wait_for_line(lambda line: line == "readyok")

    async def _await_best_move(self, on_line=None) -> str:
        """Wait for the search's bestmove; a timed-out search is stopped first."""
        try:
            return await self.queue.wait_for_line(_is_best_move_line, on_line=on_line)
        except ResponseTimeoutError:
            await self._drain_abandoned_search()
            raise

    async def _drain_abandoned_search(self) -> None:
        # The engine still owes a bestmove; consume it so the next search
        # on this worker does not take it as its own answer
        self._send("stop")
        try:
            await self.queue.wait_for_line(_is_best_move_line)
        except ResponseTimeoutError:
            logger.warning(f"[{self.name}] no bestmove after stop, a late one may still arrive")

    def init(self) -> asyncio.Future:
        """Run the uci / isready handshake."""
        async def operation():
            self._send("uci")
            await self.queue.wait_for_line(lambda line: line == "uciok")
            await self._await_ready()

        return self.queue.enqueue(operation)

    def set_skill_level(self, level=MAX_SKILL_LEVEL) -> asyncio.Future:
        """Apply a Skill Level option unless it is already in effect."""
        async def operation():
            clamped = clamp_skill_level(level)
            if self.applied_skill_level == clamped:
                return
            self._send(f"setoption name Skill Level value {clamped}")
            await self._await_ready()
            self.applied_skill_level = clamped

        return self.queue.enqueue(operation)

    def new_game(self) -> asyncio.Future:
        """Reset the engine's game state."""
        async def operation():
            self._send("ucinewgame")
            await self._await_ready()

        return self.queue.enqueue(operation)

    def get_best_move(self, fen: str, search=DEFAULT_MOVETIME_MS) -> asyncio.Future:
        """
        Search a position and return the engine's best move.

        Args:
            fen: Position to search
            search: Milliseconds (legacy `go movetime`), or a mapping /
                SearchBudget with movetime_ms and optional depth

        Returns:
            Future resolving to a chess.Move

        Raises:
            ProtocolParseError: If the bestmove line carries no move
        """
        budget = normalize_search(search)

        async def operation():
            self._send(f"position fen {fen}")
            if isinstance(budget, LegacySearch) or budget.depth is None:
                self._send(f"go movetime {budget.movetime_ms}")
            else:
                self._send(f"go depth {budget.depth} movetime {budget.movetime_ms}")

            line = await self._await_best_move()
            move = parse_best_move(line)
            if move is None:
                raise ProtocolParseError(f"Unable to parse engine best move: {line}", line=line)
            return move

        return self.queue.enqueue(operation)

    def get_ranked_moves_with_scores(
        self,
        fen: str,
        movetime_ms: int = DEFAULT_MOVETIME_MS,
        multi_pv: int = DEFAULT_MULTI_PV,
        depth: Optional[int] = None,
    ) -> asyncio.Future:
        """
        Run a MultiPV search and return the ranked candidates.

        Every `info ... multipv N ... pv <move>` line seen before bestmove is
        kept by rank (later lines overwrite earlier ones). If rank 1 never
        showed up, the bestmove itself becomes rank 1 without a score.

        Returns:
            Future resolving to a list of RankedCandidate, sorted and deduped
        """
        requested_multi_pv = _multi_pv_count(multi_pv)
        requested_depth = positive_int(depth)
        movetime = positive_int(movetime_ms) or DEFAULT_MOVETIME_MS

        async def operation():
            ranked_by_slot = {}

            def harvest(line: str) -> None:
                candidate = parse_ranked_candidate(line)
                if candidate is not None:
                    ranked_by_slot[candidate.rank] = candidate

            self._send(f"setoption name MultiPV value {requested_multi_pv}")
            self._send(f"position fen {fen}")
            if requested_depth is not None:
                self._send(f"go depth {requested_depth} movetime {movetime}")
            else:
                self._send(f"go movetime {movetime}")

            line = await self._await_best_move(on_line=harvest)

            best_move = parse_best_move(line)
            if best_move is not None and 1 not in ranked_by_slot:
                ranked_by_slot[1] = RankedCandidate(rank=1, move=best_move, score=None)

            return rank_and_dedupe(ranked_by_slot.values())

        return self.queue.enqueue(operation)

    def get_ranked_moves(self, fen: str, **options) -> asyncio.Future:
        """Like get_ranked_moves_with_scores, moves only."""
        ranked = self.get_ranked_moves_with_scores(fen, **options)
        return asyncio.ensure_future(_moves_only(ranked))

    def analyze_position(self, fen: str, movetime_ms: int = DEFAULT_MOVETIME_MS) -> asyncio.Future:
        """
        Evaluate a position.

        Keeps the last score reported for the primary line (no multipv
        field, or multipv 1) before bestmove arrives.

        Returns:
            Future resolving to a ScoreReport from the side to move's view
        """
        movetime = positive_int(movetime_ms) or DEFAULT_MOVETIME_MS

        async def operation():
            latest: Optional[ScoreReport] = None

            def harvest(line: str) -> None:
                nonlocal latest
                score = parse_score(line)
                if score is None:
                    return
                rank = parse_multipv_rank(line)
                if rank is None or rank == 1:
                    latest = score

            self._send(f"position fen {fen}")
            self._send(f"go movetime {movetime}")
            line = await self._await_best_move(on_line=harvest)

            if latest is None:
                raise ProtocolParseError("Unable to parse engine score from analysis", line=line)
            return latest

        return self.queue.enqueue(operation)

    def flush(self, reason: str = "flushed") -> int:
        return self.queue.flush(reason)

    def terminate(self) -> None:
        self.queue.terminate()

    async def wait_closed(self) -> None:
        await self.queue.wait_closed()


async def _moves_only(ranked: "asyncio.Future[List[RankedCandidate]]") -> List[chess.Move]:
    return [entry.move for entry in await ranked]
