"""
Connection Manager - one WebSocket per helper port.

Each configured port gets its own task that connects, reads frames until the
socket closes, waits a fixed delay and connects again, until disconnect() is
called. Inbound frames are decoded and handed to the handler registered for
their type. Outbound frames go through a per-port queue drained by a writer
task, so send() never blocks the caller.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

import aiohttp

from subminer.core.asyncio_utils import cancel_task, create_logged_task
from subminer.core.constants import DEFAULT_HOST, NOTICE_SHORT, RECONNECT_DELAY
from subminer.core.logging_utils import get_module_logger
from subminer.core.notices import Notifier

from .protocol import (
    SUBTITLE_TYPE,
    AudioRangeMessage,
    InboundMessage,
    MediaKind,
    MediaMessage,
    SubtitleMessage,
    decode_message,
    encode_request,
)

logger = get_module_logger("ConnectionManager")


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass
class ServerInstance:
    """Connection bookkeeping for a single helper port."""
    port: int
    state: ConnectionState = ConnectionState.DISCONNECTED
    last_activity_time: float = 0.0
    ws: Optional[aiohttp.ClientWebSocketResponse] = None
    task: Optional[asyncio.Task] = None
    writer_task: Optional[asyncio.Task] = None
    outbox: asyncio.Queue = field(default_factory=asyncio.Queue)

    def touch(self) -> None:
        self.last_activity_time = time.time()


MessageHandler = Callable[[int, Any], None]
StatusListener = Callable[[int, ConnectionState], None]


def message_type(message: InboundMessage) -> str:
    if isinstance(message, SubtitleMessage):
        return SUBTITLE_TYPE
    if isinstance(message, MediaMessage):
        return message.kind.value
    if isinstance(message, AudioRangeMessage):
        return MediaKind.AUDIO_RANGE.value
    raise TypeError(f"Unknown message {message!r}")


class ConnectionManager:

    def __init__(
        self,
        ports: Sequence[int],
        host: str = DEFAULT_HOST,
        notifier: Optional[Notifier] = None,
        reconnect_delay: float = RECONNECT_DELAY,
        connect_timeout: float = 5.0,
    ):
        self.host = host
        self.ports = list(dict.fromkeys(ports))
        self.notifier = notifier or Notifier()
        self.reconnect_delay = reconnect_delay
        self.connect_timeout = connect_timeout

        self._instances: Dict[int, ServerInstance] = {}
        self._handlers: Dict[str, MessageHandler] = {}
        self._status_listeners: List[StatusListener] = []
        self._session: Optional[aiohttp.ClientSession] = None
        self._closing = False

    # ------------------------------------------------------------------
    # Registration

    def register_handler(self, message_type_name: str, handler: MessageHandler) -> None:
        """Route decoded frames of ``message_type_name`` to ``handler(port, message)``."""
        self._handlers[message_type_name] = handler

    def add_status_listener(self, listener: StatusListener) -> None:
        self._status_listeners.append(listener)

    # ------------------------------------------------------------------
    # Queries

    @property
    def instances(self) -> Dict[int, ServerInstance]:
        return dict(self._instances)

    @property
    def connected_ports(self) -> List[int]:
        return [
            port for port, instance in self._instances.items()
            if instance.state == ConnectionState.CONNECTED
        ]

    @property
    def status(self) -> ConnectionState:
        states = [instance.state for instance in self._instances.values()]
        if ConnectionState.CONNECTED in states:
            return ConnectionState.CONNECTED
        if ConnectionState.CONNECTING in states:
            return ConnectionState.CONNECTING
        return ConnectionState.DISCONNECTED

    def url_for(self, port: int) -> str:
        return f"ws://{self.host}:{port}"

    # ------------------------------------------------------------------
    # Lifecycle

    async def connect(self) -> None:
        if self._instances:
            logger.debug("Already connected or connecting")
            return

        self._closing = False
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=self.connect_timeout)
            )

        self.notifier.notify("Connecting...", NOTICE_SHORT)
        for port in self.ports:
            instance = ServerInstance(port=port)
            self._instances[port] = instance
            instance.task = create_logged_task(
                self._run(instance),
                logger=logger,
                context=f"ws-{port}",
            )

    async def disconnect(self) -> None:
        self._closing = True
        instances = list(self._instances.values())
        self._instances.clear()

        for instance in instances:
            await cancel_task(instance.writer_task)
            await cancel_task(instance.task)
            if instance.ws is not None and not instance.ws.closed:
                with contextlib.suppress(Exception):
                    await instance.ws.close()
            instance.ws = None
            instance.state = ConnectionState.DISCONNECTED

        if self._session is not None:
            await self._session.close()
            self._session = None

        if instances:
            self.notifier.notify("Disconnected", NOTICE_SHORT)
            logger.info("Disconnected from %d server(s)", len(instances))

    def send(self, payload: Dict[str, Any], port: int) -> bool:
        """Queue ``payload`` for ``port``. Returns False if that port is not connected."""
        instance = self._instances.get(port)
        if instance is None or instance.state != ConnectionState.CONNECTED:
            logger.debug("Cannot send to port %d - not connected", port)
            return False

        instance.outbox.put_nowait(encode_request(payload))
        return True

    # ------------------------------------------------------------------
    # Per-port loop

    async def _run(self, instance: ServerInstance) -> None:
        url = self.url_for(instance.port)
        while not self._closing:
            self._set_state(instance, ConnectionState.CONNECTING)
            was_connected = False
            try:
                async with self._session.ws_connect(url) as ws:
                    instance.ws = ws
                    instance.touch()
                    was_connected = True
                    self._set_state(instance, ConnectionState.CONNECTED)
                    logger.info("Connected to %s", url)
                    self.notifier.notify(f"Connected to server on port {instance.port}", NOTICE_SHORT)

                    instance.writer_task = create_logged_task(
                        self._writer(instance, ws),
                        logger=logger,
                        context=f"ws-writer-{instance.port}",
                    )
                    await self._reader(instance, ws)
                self._set_state(instance, ConnectionState.DISCONNECTED)
            except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
                logger.debug("Connection to %s failed: %s", url, e)
                self._set_state(instance, ConnectionState.ERROR)
            finally:
                instance.ws = None
                await cancel_task(instance.writer_task)
                instance.writer_task = None
                _drain(instance.outbox)

            if was_connected and not self._closing:
                logger.info("Connection to %s lost, reconnecting", url)
                self.notifier.warn(f"Disconnected from server on port {instance.port}", NOTICE_SHORT)

            if self._closing:
                break
            await asyncio.sleep(self.reconnect_delay)

    async def _reader(self, instance: ServerInstance, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                instance.touch()
                self._dispatch(instance.port, msg.data)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                logger.debug("WebSocket error on port %d: %s", instance.port, ws.exception())
                break

    async def _writer(self, instance: ServerInstance, ws: aiohttp.ClientWebSocketResponse) -> None:
        while True:
            text = await instance.outbox.get()
            try:
                await ws.send_str(text)
            except (aiohttp.ClientError, ConnectionResetError, RuntimeError) as e:
                logger.warning("Failed to send to port %d: %s", instance.port, e)
                return

    def _dispatch(self, port: int, raw: Any) -> None:
        message = decode_message(raw)
        if message is None:
            logger.debug("Dropping unrecognized frame from port %d", port)
            return

        handler = self._handlers.get(message_type(message))
        if handler is None:
            return

        try:
            handler(port, message)
        except Exception as e:
            logger.error("Handler for %s failed: %s", message_type(message), e, exc_info=True)

    def _set_state(self, instance: ServerInstance, state: ConnectionState) -> None:
        if instance.state == state:
            return
        instance.state = state
        for listener in self._status_listeners:
            try:
                listener(instance.port, state)
            except Exception as e:
                logger.error("Status listener failed: %s", e)


def _drain(queue: asyncio.Queue) -> None:
    while not queue.empty():
        queue.get_nowait()
