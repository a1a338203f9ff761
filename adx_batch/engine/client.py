"""
HTTP/WebSocket client for a worker engine running as a separate local process.
"""

import asyncio
import json
import logging
import time
from typing import Any, Optional

import aiohttp
from pydantic import ValidationError

from adx_batch.exceptions import IOFailure, ValidationFailure
from adx_batch.models import EventEnvelope, ManifestDescriptor, Task, TaskRequest

from .base import ErrorHandler, EventHandler

log = logging.getLogger(__name__)

TASK_EVENT = "task_event"


class HttpTaskEngine:
    """
    Async client for the worker engine's command and event endpoints.

    Commands are sent as `POST /invoke/<command>` with a JSON body of
    camelCase arguments; task events arrive over the `/events` WebSocket as
    `{"event": "task_event", "payload": {...}}` frames.
    """

    def __init__(self, base_url: str):
        """
        Initializes the engine client.

        Args:
            base_url: Base URL of the worker engine, e.g. http://127.0.0.1:7830.
        """
        self.base_url = base_url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept": "application/json"},
                # Only connecting is bounded; a slow command is the engine's business.
                timeout=aiohttp.ClientTimeout(total=None, sock_connect=15),
            )

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "HttpTaskEngine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def invoke(self, command: str, **arguments: Any) -> Any:
        """
        Sends one command to the engine and returns its decoded JSON result.

        Raises:
            ValidationFailure: The engine rejected the input (HTTP 400/422).
            IOFailure: Any other rejection, transport error or malformed reply.
        """
        await self._initialize_session()
        url = f"{self.base_url}/invoke/{command}"
        start_time = time.monotonic()

        try:
            async with self._session.post(url, json=arguments) as r:
                duration_ms = (time.monotonic() - start_time) * 1000
                log.debug(f"Engine command {command} -> {r.status} ({duration_ms:.0f} ms)")

                if r.status >= 400:
                    detail = await self._error_detail(r)
                    if r.status in (400, 422):
                        raise ValidationFailure(detail)
                    raise IOFailure(f"{command} failed ({r.status}): {detail}")

                body = await r.text()
                if not body.strip():
                    return None
                return json.loads(body)
        except (ValidationFailure, IOFailure):
            raise
        except json.JSONDecodeError as e:
            raise IOFailure(f"{command} returned malformed JSON") from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.debug(f"Engine command {command} failed: {e}")
            raise IOFailure(f"{command} failed: {e}") from e

    @staticmethod
    async def _error_detail(response: aiohttp.ClientResponse) -> str:
        text = await response.text()
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            return text.strip() or response.reason or "unknown error"
        if isinstance(data, dict) and data.get("error"):
            return str(data["error"])
        return text.strip()

    # Public API Methods
    async def list_catalog(self) -> list[ManifestDescriptor]:
        result = await self.invoke("list_builtin_collections")
        try:
            return [ManifestDescriptor.model_validate(item) for item in result or []]
        except (ValidationError, TypeError) as e:
            raise IOFailure(f"Engine returned a malformed catalog: {e}") from e

    async def refresh_catalog(self, directory: str) -> None:
        directory = directory.strip()
        if not directory:
            raise ValidationFailure("Catalog directory is required.")
        await self.invoke("refresh_collections_from_dir", dir=directory)

    async def start_task(self, request: TaskRequest) -> str:
        result = await self.invoke("start_download_task", input=request.to_wire())
        task_id = result.get("taskId") if isinstance(result, dict) else None
        if not task_id:
            raise IOFailure("Engine did not return a task id.")
        return str(task_id)

    async def cancel_task(self, task_id: str) -> None:
        await self.invoke("cancel_task", taskId=task_id)

    async def fetch_task_state(self, task_id: str) -> Optional[Task]:
        result = await self.invoke("get_task_state", taskId=task_id)
        if result is None:
            return None
        try:
            return Task.model_validate(result)
        except ValidationError as e:
            raise IOFailure(f"Engine returned a malformed task state: {e}") from e

    async def subscribe(
        self, handler: EventHandler, on_error: Optional[ErrorHandler] = None
    ) -> "EventStream":
        await self._initialize_session()
        stream = EventStream(
            self._session, f"{self.base_url}/events", handler, on_error
        )
        stream.start()
        return stream


class EventStream:
    """A WebSocket subscription to the engine's task events."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        url: str,
        handler: EventHandler,
        on_error: Optional[ErrorHandler] = None,
    ):
        self._session = session
        self._url = url
        self._handler = handler
        self._on_error = on_error
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    def start(self) -> None:
        self._task = asyncio.create_task(self._run())

    async def close(self) -> None:
        self._closed = True
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _run(self) -> None:
        try:
            async with self._session.ws_connect(self._url, heartbeat=30) as ws:
                log.debug(f"Subscribed to engine events at {self._url}")
                async for msg in ws:
                    if msg.type == aiohttp.WSMsgType.TEXT:
                        self._dispatch(msg.data)
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        raise IOFailure(f"Event stream error: {ws.exception()}")
            if not self._closed:
                self._report(IOFailure("Event stream closed by the engine."))
        except IOFailure as e:
            self._report(e)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self._report(IOFailure(f"Event stream unavailable: {e}"))

    def _dispatch(self, raw: str) -> None:
        try:
            frame = json.loads(raw)
        except json.JSONDecodeError:
            log.warning(f"Ignoring malformed event frame: {raw[:120]!r}")
            return
        if not isinstance(frame, dict) or frame.get("event") != TASK_EVENT:
            return
        try:
            envelope = EventEnvelope.model_validate(frame.get("payload"))
        except ValidationError as e:
            log.warning(f"Ignoring malformed task event: {e}")
            return
        self._handler(envelope)

    def _report(self, error: IOFailure) -> None:
        if self._closed:
            return
        log.debug(f"Event subscription ended: {error}")
        if self._on_error:
            self._on_error(error)
