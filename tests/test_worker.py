"""Tests for Stockfish discovery and the subprocess worker."""

import asyncio
import sys
from unittest.mock import patch

import chess
import pytest

from uci.client import UCIWorkerClient
from uci.models import ScoreReport
from uci.worker import SubprocessWorker, find_stockfish

# Minimal line-based engine used to exercise the real pipe handling
FAKE_ENGINE = r"""
import sys
for raw in sys.stdin:
    cmd = raw.strip()
    if cmd == "uci":
        print("id name PipeFish")
        print("uciok", flush=True)
    elif cmd == "isready":
        print("readyok", flush=True)
    elif cmd.startswith("go"):
        print("info depth 1 score cp 12 pv e2e4")
        print("bestmove e2e4", flush=True)
    elif cmd == "quit":
        break
"""

# Never reads stdin, so it can only be stopped by a kill
STUBBORN_ENGINE = "import time; time.sleep(60)"


class TestFindStockfish:
    def test_explicit_path_wins(self, monkeypatch):
        monkeypatch.setenv("STOCKFISH_PATH", "/env/stockfish")
        with patch("uci.worker.Path.is_file", return_value=True):
            assert find_stockfish("/custom/stockfish") == "/custom/stockfish"

    def test_environment_variable(self, monkeypatch):
        monkeypatch.setenv("STOCKFISH_PATH", "/env/stockfish")
        with patch("uci.worker.Path.is_file", return_value=True):
            assert find_stockfish() == "/env/stockfish"

    def test_falls_back_to_path_lookup(self, monkeypatch):
        monkeypatch.delenv("STOCKFISH_PATH", raising=False)
        with patch("uci.worker.Path.is_file", return_value=False), \
                patch("uci.worker.shutil.which", return_value="/some/bin/stockfish"):
            assert find_stockfish() == "/some/bin/stockfish"

    def test_not_found(self, monkeypatch):
        monkeypatch.delenv("STOCKFISH_PATH", raising=False)
        with patch("uci.worker.Path.is_file", return_value=False), \
                patch("uci.worker.shutil.which", return_value=None):
            with pytest.raises(FileNotFoundError, match="Stockfish not found"):
                find_stockfish()


class TestSubprocessWorker:
    def test_client_over_real_pipes(self):
        async def scenario():
            worker = await SubprocessWorker.spawn([sys.executable, "-c", FAKE_ENGINE], name="pipe")
            client = UCIWorkerClient(worker, name="pipe", timeout=10.0)
            try:
                await client.init()
                assert await client.get_best_move(chess.STARTING_FEN, 50) == chess.Move.from_uci("e2e4")
                assert await client.analyze_position(chess.STARTING_FEN, 50) == ScoreReport(type="cp", value=12)
            finally:
                client.terminate()
                await client.wait_closed()

        asyncio.run(scenario())

    def test_listeners_see_every_output_line(self):
        async def scenario():
            worker = await SubprocessWorker.spawn([sys.executable, "-c", FAKE_ENGINE])
            lines = []
            done = asyncio.get_running_loop().create_future()

            def listener(line):
                lines.append(line)
                if line == "uciok" and not done.done():
                    done.set_result(None)

            worker.add_listener(listener)
            worker.post_message("uci")
            await asyncio.wait_for(done, timeout=10.0)
            worker.terminate()
            await worker.wait_closed()

            assert lines == ["id name PipeFish", "uciok"]

        asyncio.run(scenario())

    def test_engine_exits_on_quit_without_kill(self):
        async def scenario():
            worker = await SubprocessWorker.spawn([sys.executable, "-c", FAKE_ENGINE])
            worker.terminate()
            await asyncio.wait_for(worker.wait_closed(), timeout=10.0)
            return worker._process.returncode

        assert asyncio.run(scenario()) == 0

    def test_engine_ignoring_quit_is_killed(self, monkeypatch):
        monkeypatch.setattr("uci.worker.QUIT_GRACE_PERIOD", 0.1)

        async def scenario():
            worker = await SubprocessWorker.spawn([sys.executable, "-c", STUBBORN_ENGINE])
            worker.terminate()
            assert worker._process.returncode is None
            await asyncio.wait_for(worker.wait_closed(), timeout=10.0)
            return worker._process.returncode

        assert asyncio.run(scenario()) != 0
