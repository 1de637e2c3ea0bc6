"""SUT bootstrapper — make sure the page under test is being served.

``ensure_running`` is an async context manager: a server process it starts is
terminated when the block exits, however it exits.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shlex
import time
from pathlib import Path
from typing import AsyncIterator, Optional

from scenario_harness.errors import BootProcessError, BootTimeoutError
from scenario_harness.models.config import RunConfiguration
from scenario_harness.url_utils import host_from_url

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.1
CONNECT_TIMEOUT_SECONDS = 1.0
TERMINATE_GRACE_SECONDS = 5.0


async def port_is_open(host: str, port: int, timeout: float = CONNECT_TIMEOUT_SECONDS) -> bool:
    """Return True if a TCP connection to ``host:port`` succeeds."""
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=timeout)
    except (OSError, asyncio.TimeoutError):
        return False
    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()
    return True


async def _wait_until_ready(
    process: asyncio.subprocess.Process, host: str, port: int, timeout_ms: int, log_path: Path,
) -> None:
    deadline = time.monotonic() + timeout_ms / 1000
    while True:
        if process.returncode is not None:
            stderr = log_path.read_text(errors="replace").strip() if log_path.exists() else ""
            raise BootProcessError(
                f"Server process exited with code {process.returncode} before "
                f"port {port} was ready" + (f": {stderr[-500:]}" if stderr else ""),
                returncode=process.returncode,
                stderr=stderr,
            )
        if await port_is_open(host, port):
            return
        if time.monotonic() >= deadline:
            raise BootTimeoutError(f"Port {port} not ready after {timeout_ms}ms")
        await asyncio.sleep(POLL_INTERVAL_SECONDS)


async def stop_process(process: asyncio.subprocess.Process) -> None:
    """Terminate, then kill if the process ignores the request."""
    if process.returncode is not None:
        return
    logger.debug("Stopping server process %d", process.pid)
    with contextlib.suppress(ProcessLookupError):
        process.terminate()
    try:
        await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("Server process %d ignored SIGTERM, killing", process.pid)
        with contextlib.suppress(ProcessLookupError):
            process.kill()
        await process.wait()


@contextlib.asynccontextmanager
async def ensure_running(config: RunConfiguration) -> AsyncIterator[Optional[asyncio.subprocess.Process]]:
    """Yield once the SUT accepts connections.

    Yields the process started by this call, or None if an already-running
    instance was reused.

    Raises:
        BootTimeoutError: the port never became ready.
        BootProcessError: the process exited before the port became ready.
    """
    boot = config.boot
    host = host_from_url(config.base_url)

    if await port_is_open(host, boot.ready_port):
        if not boot.reuse_if_running:
            raise BootProcessError(
                f"{host}:{boot.ready_port} is already in use; stop the other server "
                "or enable boot.reuse_if_running"
            )
        logger.info("Reusing server already listening on %s:%d", host, boot.ready_port)
        yield None
        return

    log_path = Path(config.artifacts_dir) / "server.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Starting server: %s (output in %s)", boot.command, log_path)
    with open(log_path, "wb") as log_file:
        try:
            process = await asyncio.create_subprocess_exec(
                *shlex.split(boot.command),
                cwd=boot.cwd,
                stdout=log_file,
                stderr=asyncio.subprocess.STDOUT,
            )
        except OSError as e:
            raise BootProcessError(f"Could not start server command {boot.command!r}: {e}") from e
    try:
        await _wait_until_ready(process, host, boot.ready_port, boot.boot_timeout_ms, log_path)
        logger.info("Server ready on %s:%d (pid %d)", host, boot.ready_port, process.pid)
        yield process
    finally:
        await stop_process(process)
