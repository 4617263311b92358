from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import aiohttp
from aiohttp import ClientResponse, WSMessage
from pydantic import BaseModel, Field

from .errors import ComfyApiError
from .events import EVENT_TYPES, ComfyEvent, StatusEvent, parse_binary_message, parse_message
from .graph import Graph
from .schema import NodeTypeSchema, parse_schema_response
from .settings import ComfySettings, get_settings

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class PromptResponse(BaseModel):
    prompt_id: str
    number: int = 0
    node_errors: Dict[str, Any] = Field(default_factory=dict)


class ComfyApiClient:
    """
    Asynchronous client for a remote prompt server.

    HTTP calls (`queue_prompt`, `get_object_info`) work on their own; events
    are only delivered between `connect()` and `close()`. Listeners are plain
    callables registered per event type and called in arrival order.

    ```
    async with ComfyApiClient("127.0.0.1:8188") as client:
        await client.wait_ready()
        client.add_event_listener("progress", lambda ev: print(ev.progress, ev.progress_max))
        await client.queue_prompt(graph)
    ```
    """

    def __init__(self, host: Optional[str] = None, client_id: Optional[str] = None,
                 secure: Optional[bool] = None, timeout: Optional[float] = None,
                 settings: Optional[ComfySettings] = None):
        settings = settings or get_settings()
        self.settings = settings.model_copy(update={
            k: v for k, v in {"host": host, "secure": secure, "timeout": timeout}.items() if v is not None
        })
        self.client_id = client_id or settings.client_id or str(uuid.uuid4())
        self.ready = False

        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._session: Optional[aiohttp.ClientSession] = None
        self._ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader: Optional[asyncio.Task] = None
        self._ready: Optional[asyncio.Future] = None
        self._closed: Optional[asyncio.Event] = None

    @property
    def host(self) -> str:
        return self.settings.host

    async def __aenter__(self) -> ComfyApiClient:
        await self.connect()
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()

    async def connect(self) -> None:
        if self._ws is not None:
            return
        self._session = aiohttp.ClientSession()
        self._ready = asyncio.get_running_loop().create_future()
        self._closed = asyncio.Event()
        url = f"{self.settings.ws_url}?clientId={self.client_id}"
        logger.debug("Connecting to %s", url)
        self._ws = await self._session.ws_connect(url)
        self._reader = asyncio.create_task(self._read_messages())

    async def wait_ready(self) -> None:
        """Wait for the first status message carrying the session id."""
        if self._ready is None:
            raise ComfyApiError("Client is not connected")
        await self._ready

    async def wait_closed(self) -> None:
        """Wait until the websocket reader has stopped."""
        if self._closed is None:
            raise ComfyApiError("Client is not connected")
        await self._closed.wait()

    async def close(self) -> None:
        if self._ready is not None and not self._ready.done():
            self._ready.cancel()
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def queue_prompt(self, prompt: Union[Graph, Mapping[str, Any]]) -> PromptResponse:
        if isinstance(prompt, Graph):
            prompt = prompt.to_api_prompt()
        body = {"prompt": prompt, "client_id": self.client_id}
        data = await self._request("POST", "/prompt", json=body, action="enqueue prompt")
        response = PromptResponse(**data)
        logger.info("Queued prompt %s (#%d)", response.prompt_id, response.number)
        return response

    async def get_object_info_raw(self) -> Dict[str, Any]:
        return await self._request("GET", "/object_info", action="get object info")

    async def get_object_info(self) -> Dict[str, NodeTypeSchema]:
        return parse_schema_response(await self.get_object_info_raw())

    async def _request(self, method: str, path: str, action: str, **kwargs) -> Any:
        url = self.settings.http_url + path
        timeout = aiohttp.ClientTimeout(total=self.settings.timeout)
        session = self._session or aiohttp.ClientSession()
        try:
            response: ClientResponse
            async with session.request(method, url, timeout=timeout, **kwargs) as response:
                if not 200 <= response.status < 300:
                    raise ComfyApiError(f"Failed to {action}: {response.status}: {await response.text()}")
                return await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ComfyApiError(f"Failed to {action}: {e!r}") from e
        finally:
            if session is not self._session:
                await session.close()

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown event type '{event_type}'")
        self._listeners[event_type].append(listener)

    def remove_event_listener(self, event_type: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_type)
        if listeners and listener in listeners:
            listeners.remove(listener)

    async def _read_messages(self) -> None:
        msg: WSMessage
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    event = parse_message(msg.json())
                elif msg.type == aiohttp.WSMsgType.BINARY:
                    event = parse_binary_message(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.error("Websocket error: %s", self._ws.exception())
                    break
                else:
                    continue
                if event is not None:
                    self.process_event(event)
        except Exception as e:
            logger.exception("Reading from %s failed", self.host)
            if not self._ready.done():
                error = ComfyApiError(f"Websocket reader failed: {e!r}")
                error.__cause__ = e
                self._ready.set_exception(error)
        finally:
            if not self._ready.done():
                self._ready.set_exception(ComfyApiError("Connection closed before the server was ready"))
            self._closed.set()

    def process_event(self, event: ComfyEvent) -> None:
        if isinstance(event, StatusEvent) and event.client_id is not None:
            self.client_id = event.client_id
            if not self.ready:
                self.ready = True
                if self._ready is not None and not self._ready.done():
                    self._ready.set_result(None)
        self.fire_event(event)

    def fire_event(self, event: ComfyEvent) -> None:
        # snapshot, so listeners may unsubscribe while being called
        for listener in list(self._listeners.get(event.type, ())):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener for %s events failed", event.type)
