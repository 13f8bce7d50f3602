"""Unit tests for ConnectionManager against a local aiohttp WebSocket server."""

import asyncio
import contextlib
import json

import pytest
from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer

from subminer.core.connection import ConnectionManager, ConnectionState, MediaKind
from subminer.core.context import AppContext
from subminer.core.notices import Notifier, RecordingNoticeSink
from subminer.core.settings import ClientSettings


def subtitle_frame(item_id, text):
    return json.dumps({"type": "subtitle", "id": item_id, "subtitle": text, "sub_start": 0.0, "sub_end": 1.0})


def make_app(greeting=()):
    app = web.Application()
    app["sockets"] = []
    app["received"] = []

    async def handler(request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        request.app["sockets"].append(ws)

        for frame in greeting:
            await ws.send_str(frame)

        async for msg in ws:
            if msg.type != WSMsgType.TEXT:
                continue
            payload = json.loads(msg.data)
            request.app["received"].append(payload)
            if payload.get("request") == "thumbnail":
                await ws.send_str(json.dumps({
                    "type": "thumbnail",
                    "id": payload["id"],
                    "data": "aGk=",
                    "ext": "webp",
                }))
        return ws

    app.router.add_get("/", handler)
    return app


@contextlib.asynccontextmanager
async def running_server(app):
    server = TestServer(app)
    await server.start_server()
    try:
        yield server
    finally:
        await server.close()


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class TestSend:

    def test_send_to_unknown_port_returns_false(self):
        manager = ConnectionManager([61777])
        assert manager.send({"request": "thumbnail", "id": 1}, 61777) is False

    def test_url_and_initial_status(self):
        manager = ConnectionManager([61777, 61777, 61778], host="localhost")
        assert manager.ports == [61777, 61778]
        assert manager.url_for(61778) == "ws://localhost:61778"
        assert manager.status == ConnectionState.DISCONNECTED


class TestRoundTrip:

    @pytest.mark.asyncio
    async def test_subtitles_populate_store_and_thumbnail_resolves(self):
        app = make_app(greeting=[
            "garbage",
            json.dumps({"type": "subtitle", "id": "bad"}),
            subtitle_frame(1, "hello"),
        ])
        async with running_server(app) as server:
            sink = RecordingNoticeSink()
            context = AppContext(
                settings=ClientSettings(host=server.host, ports=[server.port]),
                notifier=Notifier(sink),
            )
            await context.init()
            try:
                await wait_until(lambda: len(context.store) == 1)
                assert context.store.get(server.port, 1).text == "hello"

                thumbnail = await context.correlator.request_thumbnail(server.port, 1)

                assert thumbnail is not None
                assert thumbnail.ext == "webp"
                assert context.store.get(server.port, 1).media(MediaKind.THUMBNAIL) == thumbnail
                assert app["received"][0]["request"] == "thumbnail"
                assert app["received"][0]["id"] == 1
                assert f"Connected to server on port {server.port}" in sink.texts
                assert context.manager.connected_ports == [server.port]
            finally:
                await context.teardown()

            assert context.manager.status == ConnectionState.DISCONNECTED
            assert sink.texts[-1] == "Disconnected"

    @pytest.mark.asyncio
    async def test_reconnects_after_server_closes_socket(self):
        app = make_app()
        async with running_server(app) as server:
            sink = RecordingNoticeSink()
            manager = ConnectionManager(
                [server.port],
                host=server.host,
                notifier=Notifier(sink),
                reconnect_delay=0.05,
            )
            states = []
            manager.add_status_listener(lambda port, state: states.append(state))

            await manager.connect()
            try:
                await wait_until(lambda: len(app["sockets"]) == 1)
                await app["sockets"][0].close()

                await wait_until(lambda: len(app["sockets"]) == 2)
                await wait_until(lambda: manager.connected_ports == [server.port])
            finally:
                await manager.disconnect()

            assert f"Disconnected from server on port {server.port}" in sink.texts
            assert states.count(ConnectionState.CONNECTED) == 2

    @pytest.mark.asyncio
    async def test_unreachable_port_keeps_retrying_until_disconnect(self):
        app = make_app()
        async with running_server(app) as server:
            free_port = server.port
        manager = ConnectionManager([free_port], host="127.0.0.1", reconnect_delay=0.02)
        states = []
        manager.add_status_listener(lambda port, state: states.append(state))

        await manager.connect()
        await wait_until(lambda: states.count(ConnectionState.ERROR) >= 2)
        await manager.disconnect()

        assert ConnectionState.CONNECTED not in states
        assert manager.send({"request": "audio", "id": 1}, free_port) is False

    @pytest.mark.asyncio
    async def test_handler_errors_do_not_drop_connection(self):
        app = make_app(greeting=[subtitle_frame(1, "a"), subtitle_frame(2, "b")])
        async with running_server(app) as server:
            manager = ConnectionManager([server.port], host=server.host)
            seen = []

            def handler(port, message):
                seen.append(message.id)
                if message.id == 1:
                    raise RuntimeError("boom")

            manager.register_handler("subtitle", handler)
            await manager.connect()
            try:
                await wait_until(lambda: seen == [1, 2])
                assert manager.connected_ports == [server.port]
            finally:
                await manager.disconnect()
