"""
Stockfish facade over two independent UCI workers.

The "play" worker answers move requests for the side the engine plays; the
"analysis" worker evaluates positions in the background for the eval bar.
Each worker has its own task queue, so the two streams never block each
other.
"""

import asyncio
import logging
from typing import Optional

from uci.client import MAX_SKILL_LEVEL, UCIWorkerClient
from uci.correlator import DEFAULT_TIMEOUT
from uci.models import DEFAULT_MOVETIME_MS
from uci.worker import BaseWorker, SubprocessWorker, find_stockfish

logger = logging.getLogger(__name__)


def _ignore_failure(future: asyncio.Future) -> None:
    """Done-callback for fire-and-forget engine tasks."""
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.debug(f"Background engine task failed: {error}")


class StockfishEngine:
    """
    Two-worker Stockfish facade.

    Can be configured through:
    - Skill Level (0-20), applied to both workers
    - per-request movetime / depth / MultiPV budgets
    """

    def __init__(
        self,
        play_worker: BaseWorker,
        analysis_worker: BaseWorker,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the facade.

        Args:
            play_worker: Worker answering move requests
            analysis_worker: Worker answering background evaluations
            timeout: Seconds to wait for each engine response
        """
        self.play = UCIWorkerClient(play_worker, name="play", timeout=timeout)
        self.analysis = UCIWorkerClient(analysis_worker, name="analysis", timeout=timeout)

    @classmethod
    async def popen(cls, engine_path: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT) -> "StockfishEngine":
        """
        Spawn two Stockfish processes and wrap them.

        Args:
            engine_path: Path to the stockfish binary (discovered if omitted)
            timeout: Seconds to wait for each engine response

        Raises:
            FileNotFoundError: If no Stockfish binary can be found
        """
        path = find_stockfish(engine_path)
        play_worker = await SubprocessWorker.spawn(path, name="play")
        try:
            analysis_worker = await SubprocessWorker.spawn(path, name="analysis")
        except OSError:
            play_worker.terminate()
            raise
        return cls(play_worker, analysis_worker, timeout=timeout)

    async def init(self) -> None:
        """Handshake with both workers in parallel."""
        await asyncio.gather(self.play.init(), self.analysis.init())

    async def set_skill_level(self, level=MAX_SKILL_LEVEL) -> None:
        await asyncio.gather(self.play.set_skill_level(level), self.analysis.set_skill_level(level))

    async def new_game(self) -> None:
        """
        Reset both workers for a new game.

        Stale analysis requests are flushed first. The analysis reset is not
        awaited; only the play worker gates the caller.
        """
        self.analysis.flush("new_game")
        self.analysis.new_game().add_done_callback(_ignore_failure)
        await self.play.new_game()

    def get_best_move(self, fen: str, search=DEFAULT_MOVETIME_MS) -> asyncio.Future:
        return self.play.get_best_move(fen, search)

    def get_ranked_moves_with_scores(self, fen: str, **options) -> asyncio.Future:
        return self.play.get_ranked_moves_with_scores(fen, **options)

    def get_ranked_moves(self, fen: str, **options) -> asyncio.Future:
        return self.play.get_ranked_moves(fen, **options)

    def analyze_position(self, fen: str, movetime_ms: int = DEFAULT_MOVETIME_MS) -> asyncio.Future:
        return self.analysis.analyze_position(fen, movetime_ms)

    def flush_analysis(self, reason: str = "flushed") -> int:
        """Reject queued analysis requests so stale results are never applied."""
        return self.analysis.flush(reason)

    def terminate(self) -> None:
        """Stop both workers."""
        self.play.terminate()
        self.analysis.terminate()

    async def aclose(self) -> None:
        """Stop both workers and wait for their processes to exit."""
        self.terminate()
        await asyncio.gather(self.play.wait_closed(), self.analysis.wait_closed())

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False
