"""
Worker handles: the line-oriented transport under a task queue.
"""

import abc
import asyncio
import logging
import os
import shutil
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

QUIT_GRACE_PERIOD = 1.0  # seconds an engine gets to exit after "quit"

# Stockfish search paths in priority order
_STOCKFISH_PATHS = [
    "/opt/homebrew/bin/stockfish",
    "/usr/local/bin/stockfish",
    "/usr/bin/stockfish",
    "/usr/games/stockfish",
]


def find_stockfish(explicit_path: Optional[str] = None) -> str:
    """
    Locate the Stockfish binary.

    Checks the explicit path, then STOCKFISH_PATH, then known install
    paths, then PATH.

    Raises:
        FileNotFoundError: If Stockfish is not found anywhere.
    """
    for candidate in (explicit_path, os.environ.get("STOCKFISH_PATH")):
        if not candidate:
            continue
        if Path(candidate).is_file():
            return candidate
        which_result = shutil.which(candidate)
        if which_result is not None:
            return which_result

    for path_str in _STOCKFISH_PATHS:
        if Path(path_str).is_file():
            return path_str

    which_result = shutil.which("stockfish")
    if which_result is not None:
        return which_result

    raise FileNotFoundError(
        "Stockfish not found. Install it or pass its path via --stockfish-path / STOCKFISH_PATH."
    )


class BaseWorker(abc.ABC):
    """
    A long-running engine process seen as two line streams.

    Commands go in through post_message(); every output line is delivered,
    in order, to the registered listeners.
    """

    def __init__(self):
        self._listeners: List[Callable[[str], None]] = []

    def add_listener(self, listener: Callable[[str], None]) -> None:
        """Register a callback for every output line."""
        self._listeners.append(listener)

    def _emit(self, line: str) -> None:
        for listener in list(self._listeners):
            listener(line)

    @abc.abstractmethod
    def post_message(self, command: str) -> None:
        """Write one command line."""
        ...

    @abc.abstractmethod
    def terminate(self) -> None:
        """Stop the worker and release its resources."""
        ...

    async def wait_closed(self) -> None:
        """Wait until the worker is fully gone after terminate()."""
        return None


class SubprocessWorker(BaseWorker):
    """Engine binary driven over stdin/stdout with asyncio."""

    def __init__(self, process: asyncio.subprocess.Process, name: str = "worker"):
        super().__init__()
        self.name = name
        self._process = process
        self._terminated = False
        self._kill_handle: Optional[asyncio.TimerHandle] = None
        self._reader = asyncio.ensure_future(self._read_loop())

    @classmethod
    async def spawn(cls, command: Union[str, Sequence[str]], name: str = "worker") -> "SubprocessWorker":
        """
        Start an engine process.

        Args:
            command: Binary path, or argv list
            name: Label used in log output
        """
        argv = [command] if isinstance(command, str) else list(command)
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
        logger.debug(f"[{name}] started {argv[0]} (pid {process.pid})")
        return cls(process, name=name)

    async def _read_loop(self) -> None:
        """Forward stdout lines to listeners until EOF."""
        stdout = self._process.stdout
        while True:
            raw = await stdout.readline()
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").strip()
            if not line:
                continue
            logger.debug(f"[{self.name}] << {line}")
            self._emit(line)

        if not self._terminated:
            logger.warning(f"[{self.name}] engine process exited (code {self._process.returncode})")

    def post_message(self, command: str) -> None:
        if self._terminated or self._process.stdin is None:
            return
        try:
            self._process.stdin.write(f"{command}\n".encode("utf-8"))
        except (BrokenPipeError, ConnectionResetError) as e:
            logger.warning(f"[{self.name}] could not write to engine: {e}")

    def terminate(self) -> None:
        if self._terminated:
            return
        self._terminated = True

        self._reader.cancel()
        if self._process.returncode is None:
            try:
                self._process.stdin.write(b"quit\n")
                self._process.stdin.close()
            except (BrokenPipeError, ConnectionResetError, AttributeError):
                pass
            # Killed only if it ignores quit for the whole grace period
            self._kill_handle = asyncio.get_running_loop().call_later(QUIT_GRACE_PERIOD, self._kill_if_alive)
        logger.debug(f"[{self.name}] terminated")

    def _kill_if_alive(self) -> None:
        self._kill_handle = None
        if self._process.returncode is not None:
            return
        logger.warning(f"[{self.name}] engine ignored quit, killing pid {self._process.pid}")
        try:
            self._process.kill()
        except ProcessLookupError:
            pass

    async def wait_closed(self) -> None:
        await self._process.wait()
        if self._kill_handle is not None:
            self._kill_handle.cancel()
            self._kill_handle = None
