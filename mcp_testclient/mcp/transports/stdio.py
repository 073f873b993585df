"""MCP stdio transport: spawn a worker and exchange newline-delimited JSON-RPC over its pipes."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Any

from mcp_testclient.config.settings import ClientSettings, get_settings
from mcp_testclient.mcp.errors import ConnectionClosedError, SpawnError, TransportError
from mcp_testclient.mcp.transports.base import CloseHandler, MessageHandler

logger = logging.getLogger(__name__)


class StdioTransport:
    """Owns one worker subprocess and frames JSON-RPC messages over its stdin/stdout."""

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        *,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        settings: ClientSettings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._argv: list[str] = [command, *[str(a) for a in (args or [])]]
        if isinstance(env, dict):
            self._env: dict[str, str] | None = dict(os.environ)
            for k, v in env.items():
                if k and v is not None:
                    self._env[str(k)] = str(v)
        else:
            self._env = None
        self._cwd = cwd
        self._grace = settings.close_grace_seconds
        self._limit = settings.max_message_bytes
        self._process: asyncio.subprocess.Process | None = None
        self._reader_task: asyncio.Task | None = None
        self._stderr_task: asyncio.Task | None = None
        self._message_handler: MessageHandler | None = None
        self._close_handler: CloseHandler | None = None
        self._closing = False
        self._released = asyncio.Event()

    @property
    def argv(self) -> list[str]:
        return list(self._argv)

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def is_open(self) -> bool:
        return self._process is not None and not self._closing

    def on_message(self, handler: MessageHandler) -> None:
        self._message_handler = handler

    def on_close(self, handler: CloseHandler) -> None:
        self._close_handler = handler

    async def open(self) -> None:
        """Spawn the worker; returns once its pipes are available."""
        if self._process is not None:
            raise TransportError("Transport is already open")
        try:
            process = await asyncio.create_subprocess_exec(
                *self._argv,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._env,
                cwd=self._cwd,
                limit=self._limit,
            )
        except OSError as exc:
            raise SpawnError(self._argv, str(exc)) from exc
        self._process = process
        self._closing = False
        self._released = asyncio.Event()
        if process.stdin is None or process.stdout is None:
            await self.close()
            raise TransportError("Subprocess stdin/stdout not available")
        self._reader_task = asyncio.create_task(self._read_stdout(process))
        self._stderr_task = asyncio.create_task(self._drain_stderr(process))
        logger.debug("Spawned worker pid=%s argv=%s", process.pid, self._argv)

    async def write(self, message: dict[str, Any]) -> None:
        process = self._process
        if process is None or self._closing or process.stdin is None:
            raise ConnectionClosedError("Worker transport is not open")
        line = json.dumps(message, separators=(",", ":"), ensure_ascii=False)
        logger.debug("-> %s", line)
        try:
            process.stdin.write(line.encode("utf-8") + b"\n")
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as exc:
            raise TransportError(f"Failed to write to worker: {exc}") from exc

    async def close(self) -> None:
        """Close stdin, give the worker a grace period, then terminate or kill it."""
        process = self._process
        if process is None:
            return
        if self._closing:
            # Another close or an exit being handled owns the teardown
            await self._released.wait()
            return
        self._closing = True
        try:
            if process.stdin is not None and not process.stdin.is_closing():
                process.stdin.close()
            try:
                await asyncio.wait_for(process.wait(), timeout=self._grace)
            except asyncio.TimeoutError:
                await self._terminate(process)
        finally:
            await self._release()
            self._closing = False
        logger.debug("Worker pid=%s exited with code %s", process.pid, process.returncode)

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=self._grace)
        except (asyncio.TimeoutError, ProcessLookupError):
            logger.warning("Worker pid=%s did not exit after SIGTERM; killing", process.pid)
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()

    async def _release(self) -> None:
        current = asyncio.current_task()
        tasks = {
            t
            for t in (self._reader_task, self._stderr_task)
            if t is not None and t is not current
        }
        if tasks:
            # Pipes hit EOF once the worker is gone; bound the wait anyway
            _, pending = await asyncio.wait(tasks, timeout=self._grace)
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.wait(pending)
        self._reader_task = None
        self._stderr_task = None
        self._process = None
        self._released.set()

    def _dispatch(self, message: dict[str, Any]) -> None:
        handler = self._message_handler
        if handler is None:
            logger.warning("No message handler registered; dropping %s", message)
            return
        try:
            handler(message)
        except Exception:
            logger.exception("Message handler failed for %s", message.get("method") or message.get("id"))

    async def _read_stdout(self, process: asyncio.subprocess.Process) -> None:
        assert process.stdout is not None
        error: Exception | None = None
        while True:
            try:
                raw = await process.stdout.readline()
            except ValueError:
                error = TransportError(f"Worker message exceeded {self._limit} bytes")
                break
            except OSError as exc:
                error = TransportError(f"Failed to read from worker: {exc}")
                break
            if not raw:
                break
            line = raw.strip()
            if not line:
                continue
            try:
                message = json.loads(line.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                logger.warning("Discarding non-JSON line from worker: %.200r", line)
                continue
            if not isinstance(message, dict):
                logger.warning("Discarding non-object message from worker: %.200r", line)
                continue
            logger.debug("<- %s", line.decode("utf-8"))
            self._dispatch(message)

        if self._closing:
            return
        await self._connection_lost(process, error)

    async def _connection_lost(
        self, process: asyncio.subprocess.Process, error: Exception | None
    ) -> None:
        self._closing = True
        try:
            try:
                await asyncio.wait_for(process.wait(), timeout=self._grace)
            except asyncio.TimeoutError:
                await self._terminate(process)
        finally:
            await self._release()
            self._closing = False
        if error is None:
            error = ConnectionClosedError(
                f"Worker process exited unexpectedly (code {process.returncode})"
            )
        else:
            logger.warning("Worker pid=%s read side failed: %s", process.pid, error)
        handler = self._close_handler
        if handler is not None:
            handler(error)

    async def _drain_stderr(self, process: asyncio.subprocess.Process) -> None:
        if process.stderr is None:
            return
        while True:
            try:
                raw = await process.stderr.readline()
            except ValueError:
                # Over-long line; the reader already dropped it
                continue
            if not raw:
                return
            text = raw.decode("utf-8", errors="replace").rstrip()
            if text:
                logger.debug("worker[%s] %s", process.pid, text)
