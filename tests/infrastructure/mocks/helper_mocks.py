"""Fakes for the helper process and the WebSocket send path.

Lets the supervisor, correlator and miner be exercised without spawning the
real helper binary or opening sockets.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from subminer.core.connection.protocol import (
    AudioRangeMessage,
    MediaBlob,
    MediaKind,
    MediaMessage,
    SubtitleMessage,
)

PORT_IN_USE_STDERR = b"Error: Address already in use (os error 98)\n"
IDENTITY_STDERR = b"MPV_IPC_PID_MISMATCH: expected 100, got 200\n"
UNREACHABLE_STDERR = b"Failed to connect to mpv socket: No such file or directory\n"


class FakeProcess:
    """Stands in for ``asyncio.subprocess.Process``."""

    def __init__(self, pid: int = 4242):
        self.pid = pid
        self.returncode: Optional[int] = None
        self.terminated = False
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self._exit: asyncio.Future = asyncio.get_running_loop().create_future()

    def emit(self, stdout: bytes = b"", stderr: bytes = b"") -> None:
        """Write output while the process keeps running."""
        if stdout:
            self.stdout.feed_data(stdout)
        if stderr:
            self.stderr.feed_data(stderr)

    def finish(self, returncode: int, stderr: bytes = b"", stdout: bytes = b"") -> None:
        if self._exit.done():
            return
        self.emit(stdout, stderr)
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self.returncode = returncode
        self._exit.set_result(returncode)

    def terminate(self) -> None:
        self.terminated = True
        self.finish(-15)

    async def wait(self) -> int:
        return await self._exit


@dataclass
class ScriptedExit:
    """How a spawned fake should end. ``None`` in a script means it keeps running."""
    returncode: int
    stderr: bytes = b""
    stdout: bytes = b""


class FakeSpawner:
    """Async callable matching ``asyncio.create_subprocess_exec``.

    Each call consumes the next entry of ``script``. Calls past the end of the
    script produce processes that keep running.
    """

    def __init__(self, script: Sequence[Optional[ScriptedExit]] = (), error: Optional[Exception] = None):
        self.script = list(script)
        self.error = error
        self.calls: List[Tuple[str, ...]] = []
        self.processes: List[FakeProcess] = []

    async def __call__(self, *args: str, **kwargs: Any) -> FakeProcess:
        self.calls.append(tuple(args))
        if self.error is not None:
            raise self.error

        process = FakeProcess(pid=1000 + len(self.calls))
        self.processes.append(process)

        outcome = self.script.pop(0) if self.script else None
        if outcome is not None:
            process.finish(outcome.returncode, outcome.stderr, outcome.stdout)
        return process

    @property
    def ports(self) -> List[int]:
        return [int(call[2]) for call in self.calls]


@dataclass
class FakeSender:
    """Records outbound payloads instead of writing them to a socket."""
    connected_ports: set = field(default_factory=lambda: {61777})
    sent: List[Tuple[int, Dict[str, Any]]] = field(default_factory=list)

    def send(self, payload: Dict[str, Any], port: int) -> bool:
        if port not in self.connected_ports:
            return False
        self.sent.append((port, payload))
        return True


def subtitle(item_id: int, text: str = "", start: float = 0.0, end: float = 1.0,
             time_pos: Optional[float] = None) -> SubtitleMessage:
    return SubtitleMessage(
        id=item_id,
        text=text or f"line {item_id}",
        sub_start=start,
        sub_end=end,
        time_pos=time_pos,
    )


def blob(data: str = "aGVsbG8=", ext: str = "webp") -> MediaBlob:
    return MediaBlob(data=data, ext=ext)


def media_reply(kind: MediaKind, item_id: int, data: Optional[MediaBlob]) -> MediaMessage:
    return MediaMessage(kind=kind, id=item_id, blob=data)


def range_reply(start_id: int, end_id: int, data: Optional[MediaBlob]) -> AudioRangeMessage:
    return AudioRangeMessage(start_id=start_id, end_id=end_id, blob=data)
