"""Tests for the SUT bootstrapper. These start real sockets and subprocesses."""

import asyncio
import shlex
import socket
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from scenario_harness.errors import BootProcessError, BootTimeoutError
from scenario_harness.models.config import RunConfiguration
from scenario_harness.server import ensure_running, port_is_open

pytestmark = pytest.mark.integration

PYTHON = shlex.quote(sys.executable)


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def _config(tmp_path: Path, port: int, command: str, reuse: bool, timeout_ms: int = 10000) -> RunConfiguration:
    return RunConfiguration.load({
        "base_url": f"http://127.0.0.1:{port}",
        "artifacts_dir": str(tmp_path),
        "boot": {
            "command": command,
            "ready_port": port,
            "boot_timeout_ms": timeout_ms,
            "reuse_if_running": reuse,
        },
    })


async def _listen(port: int) -> asyncio.AbstractServer:
    async def _noop(reader, writer):
        writer.close()

    return await asyncio.start_server(_noop, "127.0.0.1", port)


class TestPortIsOpen:
    @pytest.mark.asyncio
    async def test_open_port(self):
        port = _free_port()
        server = await _listen(port)
        try:
            assert await port_is_open("127.0.0.1", port) is True
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_closed_port(self):
        assert await port_is_open("127.0.0.1", _free_port()) is False


class TestEnsureRunning:
    @pytest.mark.asyncio
    async def test_reuses_running_server(self, tmp_path):
        port = _free_port()
        server = await _listen(port)
        try:
            config = _config(tmp_path, port, "command-that-must-not-run", reuse=True)
            async with ensure_running(config) as process:
                assert process is None
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_port_taken_without_reuse(self, tmp_path):
        port = _free_port()
        server = await _listen(port)
        try:
            config = _config(tmp_path, port, "command-that-must-not-run", reuse=False)
            with pytest.raises(BootProcessError, match="already in use"):
                async with ensure_running(config):
                    pass
        finally:
            server.close()
            await server.wait_closed()

    @pytest.mark.asyncio
    async def test_starts_and_stops_server(self, tmp_path):
        port = _free_port()
        command = f"{PYTHON} -m http.server {port} --bind 127.0.0.1"
        config = _config(tmp_path, port, command, reuse=False)
        async with ensure_running(config) as process:
            assert process is not None
            assert await port_is_open("127.0.0.1", port)
        assert process.returncode is not None
        assert not await port_is_open("127.0.0.1", port)

    @pytest.mark.asyncio
    async def test_server_stopped_when_block_raises(self, tmp_path):
        port = _free_port()
        command = f"{PYTHON} -m http.server {port} --bind 127.0.0.1"
        config = _config(tmp_path, port, command, reuse=False)
        started = None
        with pytest.raises(RuntimeError):
            async with ensure_running(config) as process:
                started = process
                raise RuntimeError("scenario run blew up")
        assert started.returncode is not None

    @pytest.mark.asyncio
    async def test_process_exits_early(self, tmp_path):
        port = _free_port()
        command = f"{PYTHON} -c \"import sys; print('bad flag'); sys.exit(3)\""
        config = _config(tmp_path, port, command, reuse=False)
        with pytest.raises(BootProcessError) as exc_info:
            async with ensure_running(config):
                pass
        assert exc_info.value.returncode == 3
        assert "bad flag" in exc_info.value.stderr

    @pytest.mark.asyncio
    async def test_boot_timeout_kills_process(self, tmp_path):
        port = _free_port()
        command = f"{PYTHON} -c \"import time; time.sleep(30)\""
        config = _config(tmp_path, port, command, reuse=False, timeout_ms=300)
        spawned = []
        real_exec = asyncio.create_subprocess_exec

        async def _tracking_exec(*args, **kwargs):
            process = await real_exec(*args, **kwargs)
            spawned.append(process)
            return process

        with patch("scenario_harness.server.asyncio.create_subprocess_exec", new=_tracking_exec):
            with pytest.raises(BootTimeoutError, match="300ms"):
                async with ensure_running(config):
                    pass
        assert len(spawned) == 1
        assert spawned[0].returncode is not None

    @pytest.mark.asyncio
    async def test_missing_executable(self, tmp_path):
        config = _config(tmp_path, _free_port(), "definitely-not-a-real-binary-xyz", reuse=False)
        with pytest.raises(BootProcessError, match="Could not start"):
            async with ensure_running(config):
                pass
