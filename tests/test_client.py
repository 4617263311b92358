import asyncio
import logging

import pytest
from aiohttp import test_utils, web

from comfygraph.client import ComfyApiClient
from comfygraph.errors import ComfyApiError
from comfygraph.settings import ComfySettings

STATUS = {"type": "status", "data": {"status": {"exec_info": {"queue_remaining": 0}}, "sid": "server-sid"}}

def _app(*frames, hang_up=False, prompt_status=200, prompt_body='{"prompt_id": "p1", "number": 3}',
         object_info=None):
    async def ws(request):
        socket = web.WebSocketResponse()
        await socket.prepare(request)
        for frame in frames:
            await socket.send_json(frame)
        if not hang_up:
            async for _ in socket:
                pass
        await socket.close()
        return socket

    async def prompt(request):
        return web.Response(status=prompt_status, text=prompt_body, content_type="application/json")

    async def info(request):
        if object_info is None:
            return web.Response(status=500, text="object info unavailable")
        return web.json_response(object_info)

    app = web.Application()
    app.router.add_get("/ws", ws)
    app.router.add_post("/prompt", prompt)
    app.router.add_get("/object_info", info)
    return app

def _client(server: test_utils.TestServer) -> ComfyApiClient:
    return ComfyApiClient(settings=ComfySettings(host=f"{server.host}:{server.port}"), client_id="abc")

def test_queue_prompt_returns_response():
    async def run():
        async with test_utils.TestServer(_app()) as server:
            response = await _client(server).queue_prompt({})
        assert (response.prompt_id, response.number) == ("p1", 3)
    asyncio.run(run())

def test_rejected_prompt_raises_with_body():
    async def run():
        async with test_utils.TestServer(_app(prompt_status=400, prompt_body="invalid prompt: no outputs")) as server:
            with pytest.raises(ComfyApiError, match="enqueue prompt: 400: invalid prompt: no outputs"):
                await _client(server).queue_prompt({})
    asyncio.run(run())

def test_object_info_failure_raises_with_body():
    async def run():
        async with test_utils.TestServer(_app()) as server:
            with pytest.raises(ComfyApiError, match="get object info: 500: object info unavailable"):
                await _client(server).get_object_info()
    asyncio.run(run())

def test_object_info_is_parsed(object_info_raw):
    async def run():
        async with test_utils.TestServer(_app(object_info=object_info_raw)) as server:
            return await _client(server).get_object_info()
    schemas = asyncio.run(run())
    assert schemas["KSampler"].category == "sampling"

def test_unreachable_server():
    client = ComfyApiClient(settings=ComfySettings(host="127.0.0.1:1", timeout=2), client_id="abc")
    with pytest.raises(ComfyApiError, match="get object info"):
        asyncio.run(client.get_object_info_raw())

def test_status_handshake_over_websocket():
    async def run():
        async with test_utils.TestServer(_app(STATUS)) as server:
            async with _client(server) as client:
                await asyncio.wait_for(client.wait_ready(), 5)
                return client.client_id, client.ready
    assert asyncio.run(run()) == ("server-sid", True)

def test_malformed_frame_fails_wait_ready(caplog):
    async def run():
        async with test_utils.TestServer(_app({"type": "status", "data": {}})) as server:
            async with _client(server) as client:
                with pytest.raises(ComfyApiError, match="Websocket reader failed"):
                    await asyncio.wait_for(client.wait_ready(), 5)
                await asyncio.wait_for(client.wait_closed(), 5)
    with caplog.at_level(logging.ERROR):
        asyncio.run(run())
    assert "Reading from 127.0.0.1" in caplog.text

def test_hang_up_before_status_fails_wait_ready():
    async def run():
        async with test_utils.TestServer(_app(hang_up=True)) as server:
            async with _client(server) as client:
                with pytest.raises(ComfyApiError, match="Connection closed before the server was ready"):
                    await asyncio.wait_for(client.wait_ready(), 5)
                await asyncio.wait_for(client.wait_closed(), 5)
    asyncio.run(run())

def test_wait_closed_requires_connection():
    with pytest.raises(ComfyApiError, match="not connected"):
        asyncio.run(ComfyApiClient(settings=ComfySettings(), client_id="abc").wait_closed())
