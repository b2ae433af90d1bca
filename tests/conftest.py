"""Shared fixtures: scripted in-memory engine workers and the --e2e switch.

Usage:
    pytest tests/            # In-memory workers only
    pytest tests/ --e2e      # Also run against a real Stockfish binary
"""

import asyncio
from typing import Callable, Iterable, List, Optional

import pytest

from uci.worker import BaseWorker

Responder = Callable[[str], Iterable[str]]


def pytest_addoption(parser):
    parser.addoption(
        "--e2e",
        action="store_true",
        default=False,
        help="Run end-to-end tests that start a real Stockfish process",
    )


def pytest_configure(config):
    config.addinivalue_line("markers", "e2e: needs a real Stockfish binary (run with --e2e)")


def pytest_collection_modifyitems(config, items):
    if config.getoption("--e2e"):
        return
    skip_e2e = pytest.mark.skip(reason="needs --e2e and a Stockfish binary")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


class FakeWorker(BaseWorker):
    """
    In-memory worker.

    Records every command in `messages`. When a responder is given, the lines
    it returns for a command are emitted on the next loop iterations, the way
    a real process answers after the command was written.
    """

    def __init__(self, responder: Optional[Responder] = None):
        super().__init__()
        self.messages: List[str] = []
        self.responder = responder
        self.terminated = False

    def post_message(self, command: str) -> None:
        self.messages.append(command)
        if self.responder is None:
            return
        loop = asyncio.get_running_loop()
        for line in self.responder(command) or ():
            loop.call_soon(self.emit, line)

    def emit(self, line: str) -> None:
        self._emit(line)

    def terminate(self) -> None:
        self.terminated = True


def stockfish_responder(bestmove: str = "e2e4", info_lines: Iterable[str] = ()) -> Responder:
    """Answer the handshake, readiness checks and searches like a cooperative Stockfish."""
    info_lines = list(info_lines)

    def respond(command: str) -> List[str]:
        if command == "uci":
            return ["id name FakeFish", "uciok"]
        if command == "isready":
            return ["readyok"]
        if command.startswith("go "):
            return info_lines + [f"bestmove {bestmove}"]
        return []

    return respond


@pytest.fixture
def make_worker():
    """Factory for FakeWorker instances."""
    def factory(responder: Optional[Responder] = None) -> FakeWorker:
        return FakeWorker(responder)
    return factory


@pytest.fixture
def stockfish_like():
    """Factory for cooperative Stockfish responders."""
    return stockfish_responder
