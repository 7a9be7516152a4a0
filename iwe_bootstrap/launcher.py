"""
Language server process management.

The provisioning core only returns a path; the host integration layer
owns the running process through a LanguageServerProcess instance.

Usage:
    path = await ensure_language_server()
    server = LanguageServerProcess(path, on_restart=client.reconnect)
    await server.start()
    # ... speak LSP over server.stdin / server.stdout ...
    await server.stop()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence, Union

from iwe_bootstrap._core.version import BINARY_NAME
from iwe_bootstrap.errors import IweBootstrapError

logger = logging.getLogger(__name__)

RestartCallback = Callable[
    [asyncio.subprocess.Process],
    Union[None, Awaitable[None]],
]


class LanguageServerStartError(IweBootstrapError):
    """Raised when the language server process cannot be spawned."""
    pass


async def start_language_server(
    binary_path: Path,
    args: Sequence[str] = (),
    capture_stderr: bool = False,
) -> asyncio.subprocess.Process:
    """
    Start the iwes language server speaking LSP over stdin/stdout.

    Args:
        binary_path: Path to the binary
        args: Extra command line arguments
        capture_stderr: Pipe stderr instead of inheriting it. The caller
            must then read it continuously or the server will block once
            the pipe buffer is full.

    Returns:
        The asyncio subprocess

    Raises:
        LanguageServerStartError: If the process fails to start
    """
    try:
        process = await asyncio.create_subprocess_exec(
            str(binary_path),
            *args,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE if capture_stderr else None,
        )
    except OSError as e:
        raise LanguageServerStartError(f"Failed to start {binary_path}: {e}") from e

    logger.debug(f"Started {BINARY_NAME} (PID: {process.pid}) from {binary_path}")
    return process


class LanguageServerProcess:
    """
    Runs the provisioned iwes binary as an LSP server over stdio.

    The server's stderr is forwarded line by line to this module's logger
    at debug level. After an unexpected exit the server is restarted up to
    max_restarts times, waiting restart_delay seconds before the first
    attempt and twice as long before each further one.

    Every restart brings new stdin/stdout streams and a server that has
    not seen the LSP initialize handshake. on_restart is called with the
    new process (and awaited if it returns an awaitable) so the client can
    rebind its streams and initialize again.
    """

    def __init__(
        self,
        binary_path: Path,
        args: Sequence[str] = (),
        max_restarts: int = 3,
        restart_delay: float = 1.0,
        stop_timeout: float = 5.0,
        on_restart: Optional[RestartCallback] = None,
    ):
        self.binary_path = binary_path
        self.args = tuple(args)
        self.max_restarts = max_restarts
        self.restart_delay = restart_delay
        self.stop_timeout = stop_timeout
        self.on_restart = on_restart

        self._process: Optional[asyncio.subprocess.Process] = None
        self._restarts = 0
        self._exit_code: Optional[int] = None
        self._wanted = False
        self._watcher: Optional[asyncio.Task] = None
        self._stderr_forwarder: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """
        Spawn the server and begin watching it for unexpected exits.

        Raises:
            LanguageServerStartError: If the first spawn fails
        """
        self._restarts = 0
        self._exit_code = None
        await self._spawn()
        self._wanted = True
        self._watcher = asyncio.create_task(self._watch())

    async def stop(self) -> None:
        """Stop the server, killing it if it ignores termination."""
        self._wanted = False

        if self._watcher is not None:
            self._watcher.cancel()
            try:
                await self._watcher
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(f"{BINARY_NAME} watcher ended with an error: {e}")
            self._watcher = None

        process, self._process = self._process, None
        if process is not None and process.returncode is None:
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=self.stop_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"{BINARY_NAME} ignored terminate, killing it")
                process.kill()
                await process.wait()

        if self._stderr_forwarder is not None:
            self._stderr_forwarder.cancel()
            try:
                await self._stderr_forwarder
            except asyncio.CancelledError:
                pass
            self._stderr_forwarder = None

    async def _spawn(self) -> None:
        process = await start_language_server(
            self.binary_path, self.args, capture_stderr=True
        )
        self._process = process
        if process.stderr is not None:
            self._stderr_forwarder = asyncio.create_task(self._forward_stderr(process))

    async def _forward_stderr(self, process: asyncio.subprocess.Process) -> None:
        while True:
            line = await process.stderr.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace").rstrip()
            logger.debug(f"{BINARY_NAME}[{process.pid}]: {text}")

    def restart_delay_for(self, attempt: int) -> float:
        """Seconds to wait before restart number attempt (1-based)."""
        return self.restart_delay * (2 ** (attempt - 1))

    async def _watch(self) -> None:
        """Restart the server after unexpected exits until the budget runs out."""
        while self._wanted and self._process is not None:
            self._exit_code = await self._process.wait()
            if not self._wanted:
                break

            if self._restarts >= self.max_restarts:
                logger.error(
                    f"{BINARY_NAME} exited with code {self._exit_code}; "
                    f"giving up after {self._restarts} restarts"
                )
                break

            self._restarts += 1
            delay = self.restart_delay_for(self._restarts)
            logger.warning(
                f"{BINARY_NAME} exited with code {self._exit_code}, restarting in "
                f"{delay:.1f}s (attempt {self._restarts}/{self.max_restarts})"
            )
            await asyncio.sleep(delay)

            try:
                await self._spawn()
            except LanguageServerStartError as e:
                logger.error(f"{BINARY_NAME} restart failed: {e}")
                break

            await self._notify_restart()

        self._wanted = False

    async def _notify_restart(self) -> None:
        if self.on_restart is None or self._process is None:
            return
        try:
            result = self.on_restart(self._process)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"on_restart callback failed: {e}")

    @property
    def is_running(self) -> bool:
        """Check if the server process is alive."""
        return self._process is not None and self._process.returncode is None

    @property
    def restart_count(self) -> int:
        return self._restarts

    @property
    def exit_code(self) -> Optional[int]:
        """Exit code of the most recent unexpected exit, if any."""
        return self._exit_code

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def stdin(self) -> Optional[asyncio.StreamWriter]:
        return self._process.stdin if self._process else None

    @property
    def stdout(self) -> Optional[asyncio.StreamReader]:
        return self._process.stdout if self._process else None

    async def __aenter__(self) -> "LanguageServerProcess":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
