"""
App context - owns the store, connections, correlator and supervisor.

Built once per application lifetime. ``init()`` wires inbound handlers and
starts connecting; ``teardown()`` stops the helper, wakes every pending media
request and closes all sockets.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from .connection.connection_manager import ConnectionManager
from .connection.protocol import SUBTITLE_TYPE, MediaKind
from .connection.request_correlator import RequestCorrelator
from .constants import AUTO_START_DELAY
from .logging_utils import get_module_logger
from .mining import SelectionMiner
from .notices import Notifier
from .settings import ClientSettings
from .store.item_store import ItemStore
from .store.selection import SelectionStateMachine
from .supervisor.helper_supervisor import HelperSupervisor, Spawner
from .supervisor.endpoint import HelperInstallation


class AppContext:

    def __init__(
        self,
        settings: Optional[ClientSettings] = None,
        notifier: Optional[Notifier] = None,
        installation: Optional[HelperInstallation] = None,
        helper_ports: Optional[list[int]] = None,
        host_pid: Optional[int] = None,
        spawner: Optional[Spawner] = None,
        store: Optional[ItemStore] = None,
        manager: Optional[ConnectionManager] = None,
    ):
        self.logger = get_module_logger("AppContext")
        self.settings = settings or ClientSettings()
        self.notifier = notifier or Notifier()

        self.store = store or ItemStore()
        self.selection = SelectionStateMachine(self.store)
        self.manager = manager or ConnectionManager(
            self.settings.ports,
            host=self.settings.host,
            notifier=self.notifier,
        )
        self.correlator = RequestCorrelator(self.manager, self.store, self.settings.media)
        self.miner = SelectionMiner(self.selection, self.correlator, self.notifier)

        self.supervisor: Optional[HelperSupervisor] = None
        if installation is not None:
            self.supervisor = HelperSupervisor(
                installation,
                helper_ports or self.settings.ports,
                notifier=self.notifier,
                host_pid=host_pid,
                spawner=spawner,
            )

        self.shutdown_event = asyncio.Event()
        self._initialized = False
        self._torn_down = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _register_handlers(self) -> None:
        self.manager.register_handler(SUBTITLE_TYPE, self.store.add_subtitle)
        self.manager.register_handler(MediaKind.THUMBNAIL.value, self.store.attach_media)
        self.manager.register_handler(MediaKind.AUDIO.value, self.store.attach_media)
        self.manager.register_handler(MediaKind.AUDIO_RANGE.value, self.store.set_range_result)

    async def init(
        self,
        connect: bool = True,
        auto_start: bool = False,
        auto_start_delay: float = AUTO_START_DELAY,
    ) -> None:
        if self._initialized:
            return
        self._initialized = True
        self._register_handlers()

        if auto_start and self.supervisor is not None:
            self.supervisor.schedule_auto_start(auto_start_delay)
        if connect:
            await self.manager.connect()
        self.logger.debug("Context initialized (ports: %s)", self.settings.ports)

    async def teardown(self) -> None:
        if self._torn_down:
            return
        self._torn_down = True
        self.shutdown_event.set()

        if self.supervisor is not None:
            self.supervisor.teardown()
        self.correlator.cancel_all()
        await self.manager.disconnect()
        if self.supervisor is not None:
            await self.supervisor.wait_closed()

        self._initialized = False
        self.logger.info("Context torn down")

    def request_shutdown(self) -> None:
        """Signal-safe: wake whoever is waiting in ``wait_for_shutdown``."""
        self.shutdown_event.set()

    async def wait_for_shutdown(self) -> None:
        await self.shutdown_event.wait()
