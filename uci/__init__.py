# UCI protocol layer
from .client import UCIWorkerClient, clamp_skill_level
from .errors import EngineError, EngineTaskCanceledError, ProtocolParseError, ResponseTimeoutError
from .models import BudgetedSearch, LegacySearch, RankedCandidate, ScoreReport, normalize_search
from .task_queue import WorkerTaskQueue
from .worker import BaseWorker, SubprocessWorker, find_stockfish

__all__ = [
    "UCIWorkerClient",
    "clamp_skill_level",
    "EngineError",
    "EngineTaskCanceledError",
    "ProtocolParseError",
    "ResponseTimeoutError",
    "BudgetedSearch",
    "LegacySearch",
    "RankedCandidate",
    "ScoreReport",
    "normalize_search",
    "WorkerTaskQueue",
    "BaseWorker",
    "SubprocessWorker",
    "find_stockfish",
]
