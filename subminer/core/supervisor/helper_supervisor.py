"""Supervisor for the mpv-subtitleminer helper process.

Launches the helper on the first free candidate port, confirms it stayed up,
and turns its exit output into notices. Only a port conflict triggers an
automatic retry; every other failure waits for the user.
"""

import asyncio
import contextlib
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Awaitable, Callable, Deque, List, Optional, Sequence

from subminer.core.asyncio_utils import call_later_task, create_logged_task
from subminer.core.constants import (
    AUTO_START_DELAY,
    CONFIRMATION_DELAY,
    NOTICE_LONG,
    NOTICE_MEDIUM,
    NOTICE_SHORT,
    NOTICE_ERROR,
)
from subminer.core.logging_utils import get_module_logger
from subminer.core.notices import Notifier

from .endpoint import HelperInstallation
from .failure import HelperFailure, classify_exit, mentions_marker

Spawner = Callable[..., Awaitable[asyncio.subprocess.Process]]

# Tail of helper stderr kept for exit classification; marker lines are kept separately
STDERR_TAIL_LINES = 200


class SupervisorState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    CONFIRMED = "confirmed"
    PORT_EXHAUSTED = "port_exhausted"
    IDENTITY_MISMATCH = "identity_mismatch"
    UNREACHABLE = "unreachable"


@dataclass
class SupervisedProcess:
    """The single helper instance currently owned by the supervisor."""
    binary_path: Path
    control_endpoint: str
    attempt_index: int
    port: int
    process: Optional[asyncio.subprocess.Process] = None
    confirmed_running: bool = False
    args: List[str] = field(default_factory=list)


class HelperSupervisor:

    def __init__(
        self,
        installation: HelperInstallation,
        ports: Sequence[int],
        notifier: Optional[Notifier] = None,
        host_pid: Optional[int] = None,
        spawner: Optional[Spawner] = None,
        confirmation_delay: float = CONFIRMATION_DELAY,
    ):
        if not ports:
            raise ValueError("at least one candidate port is required")

        self.installation = installation
        self.ports = list(ports)
        self.notifier = notifier or Notifier()
        self.host_pid = host_pid
        self.confirmation_delay = confirmation_delay
        self._spawn = spawner or asyncio.create_subprocess_exec

        self.logger = get_module_logger("HelperSupervisor")

        self.state = SupervisorState.IDLE
        self._current: Optional[SupervisedProcess] = None
        self._attempted_ports: List[int] = []

        self._confirm_task: Optional[asyncio.Task] = None
        self._auto_start_task: Optional[asyncio.Task] = None
        self._exit_tasks: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Queries

    @property
    def current(self) -> Optional[SupervisedProcess]:
        return self._current

    @property
    def current_port(self) -> Optional[int]:
        return self._current.port if self._current else None

    @property
    def attempted_ports(self) -> List[int]:
        return list(self._attempted_ports)

    def is_active(self) -> bool:
        return self._current is not None

    def is_confirmed(self) -> bool:
        return self._current is not None and self._current.confirmed_running

    # ------------------------------------------------------------------
    # Host-facing controls

    async def start(self) -> bool:
        if self._current is not None:
            self.notifier.notify(
                f"Server already running on port {self._current.port}", NOTICE_SHORT
            )
            return False

        self.logger.info("Starting mpv-subtitleminer server...")
        self.notifier.notify("Starting server...", NOTICE_SHORT)
        self._attempted_ports = []
        return await self._attempt(0)

    def stop(self) -> bool:
        """Terminate the helper without waiting for it to exit."""
        current = self._current
        if current is None:
            self.notifier.notify("Server not running", NOTICE_SHORT)
            return False

        self.logger.info("Stopping mpv-subtitleminer server...")
        self.notifier.notify("Stopping server...", NOTICE_SHORT)

        self._cancel_confirmation()
        self._current = None
        self.state = SupervisorState.IDLE
        current.confirmed_running = False
        self._terminate(current)
        return True

    async def toggle(self) -> bool:
        if self._current is not None:
            return self.stop()
        return await self.start()

    def schedule_auto_start(self, delay: float = AUTO_START_DELAY) -> asyncio.Task:
        self._auto_start_task = call_later_task(
            delay, self.start, logger=self.logger, context="helper-auto-start"
        )
        return self._auto_start_task

    def teardown(self) -> None:
        """Host shutdown hook: drop timers and kill whatever is running."""
        self._cancel_confirmation()
        if self._auto_start_task is not None and not self._auto_start_task.done():
            self._auto_start_task.cancel()
        self._auto_start_task = None

        current = self._current
        self._current = None
        self.state = SupervisorState.IDLE
        if current is not None and current.process is not None:
            self.logger.info("Shutting down server on mpv exit...")
            self._terminate(current)

    async def wait_closed(self, timeout: float = 5.0) -> None:
        """Wait for exit watchers of terminated helpers to finish."""
        if not self._exit_tasks:
            return
        _, pending = await asyncio.wait(list(self._exit_tasks), timeout=timeout)
        for task in pending:
            task.cancel()

    # ------------------------------------------------------------------
    # Launch / probe

    def _build_args(self, port: int) -> List[str]:
        args = [
            str(self.installation.binary_path),
            self.installation.control_endpoint,
            str(port),
            self.installation.transcoder_path,
        ]
        if self.host_pid:
            args.extend(["--expected-mpv-pid", str(self.host_pid)])
        else:
            self.logger.warning("Could not determine mpv PID; instance validation disabled")
        return args

    async def _attempt(self, index: int) -> bool:
        if index >= len(self.ports):
            self.logger.error("Failed to start server on any port")
            self.notifier.error("Failed to start server on any port", NOTICE_LONG)
            self._current = None
            self.state = SupervisorState.PORT_EXHAUSTED
            return False

        port = self.ports[index]
        self.logger.info("Trying to start server on port %d...", port)
        self._attempted_ports.append(port)

        current = SupervisedProcess(
            binary_path=self.installation.binary_path,
            control_endpoint=self.installation.control_endpoint,
            attempt_index=index,
            port=port,
            args=self._build_args(port),
        )
        self._current = current
        self.state = SupervisorState.STARTING

        try:
            process = await self._spawn(
                *current.args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            self.logger.error("Failed to start server process: %s", e)
            self.notifier.error("Failed to start server", NOTICE_MEDIUM)
            if self._current is current:
                self._current = None
                self.state = SupervisorState.IDLE
            return False

        current.process = process
        create_logged_task(
            self._watch_exit(current),
            logger=self.logger,
            context=f"helper-exit-{port}",
            pending=self._exit_tasks,
        )

        if self._current is not current:
            # stop() or teardown() ran while we were spawning
            self._terminate(current)
            return False

        self.logger.debug("Helper started with PID %s on port %d", process.pid, port)

        self._cancel_confirmation()
        self._confirm_task = call_later_task(
            self.confirmation_delay,
            lambda: self._confirm(current),
            logger=self.logger,
            context=f"helper-confirm-{port}",
        )
        return True

    def _confirm(self, current: SupervisedProcess) -> None:
        self._confirm_task = None
        if self._current is not current or current.process is None:
            return

        current.confirmed_running = True
        self.state = SupervisorState.CONFIRMED
        self.logger.info("Server confirmed running on port %d", current.port)
        self.notifier.notify(f"server started on port {current.port}", NOTICE_MEDIUM)

    # ------------------------------------------------------------------
    # Exit handling

    async def _watch_exit(self, current: SupervisedProcess) -> None:
        process = current.process
        if process is None:
            return

        stderr_tail: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        marker_lines: Deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        await asyncio.gather(
            self._read_lines(process.stdout, self.logger.info),
            self._read_lines(process.stderr, self.logger.warning, stderr_tail, marker_lines),
        )
        returncode = await process.wait()
        stderr_text = "\n".join([*marker_lines, *stderr_tail])
        await self._on_exit(current, returncode, stderr_text)

    async def _read_lines(
        self,
        stream: Optional[asyncio.StreamReader],
        log: Callable[..., None],
        tail: Optional[Deque[str]] = None,
        markers: Optional[Deque[str]] = None,
    ) -> None:
        if stream is None:
            return
        while True:
            try:
                line = await stream.readline()
            except ValueError:
                self.logger.debug("Skipped an overlong line of helper output")
                continue
            if not line:
                break

            text = line.decode(errors="replace").rstrip()
            if not text:
                continue
            log("%s", text)
            if tail is not None:
                tail.append(text)
            if markers is not None and mentions_marker(text):
                markers.append(text)

    async def _on_exit(
        self,
        current: SupervisedProcess,
        returncode: Optional[int],
        stderr_text: str,
    ) -> None:
        was_confirmed = current.confirmed_running
        current.confirmed_running = False
        current.process = None

        if self._current is not current:
            # Already stopped by the user or by teardown
            return

        self._cancel_confirmation()
        failure = classify_exit(returncode, stderr_text)

        if failure.is_terminal:
            self._report_terminal(failure)
            self._current = None
            return

        if failure.is_retryable:
            self.logger.info("Port %d in use, trying next...", current.port)
            await self._attempt(current.attempt_index + 1)
            return

        if was_confirmed:
            if failure is HelperFailure.UNEXPECTED_EXIT:
                self.logger.error("Server exited with error: status %s", returncode)
                self.notifier.error("server stopped (error)", NOTICE_MEDIUM)
            else:
                self.logger.info("Server exited with status: %s", returncode)
                self.notifier.notify("server stopped", NOTICE_SHORT)

        self._current = None
        self.state = SupervisorState.IDLE

    def _report_terminal(self, failure: HelperFailure) -> None:
        if failure is HelperFailure.IDENTITY_MISMATCH:
            self.logger.error("mpv IPC socket belongs to a different mpv instance (shared input-ipc-server)")
            self.notifier.error(
                "IPC socket is in use by another mpv instance\n"
                "Set a unique input-ipc-server per instance",
                NOTICE_ERROR,
            )
            self.state = SupervisorState.IDENTITY_MISMATCH
            return

        endpoint = self.installation.control_endpoint
        self.logger.error("Could not connect to mpv IPC socket at: %s", endpoint)
        self.notifier.error(f"can't connect to mpv IPC socket\n{endpoint}", NOTICE_ERROR)
        self.state = SupervisorState.UNREACHABLE

    # ------------------------------------------------------------------
    # Helpers

    def _cancel_confirmation(self) -> None:
        if self._confirm_task is not None and not self._confirm_task.done():
            self._confirm_task.cancel()
        self._confirm_task = None

    def _terminate(self, current: SupervisedProcess) -> None:
        process = current.process
        if process is None or process.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
