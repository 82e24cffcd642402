"""
Transport layer abstraction for MCP tool communication.

Implements:
  - StdioTransport: JSON-RPC over stdin/stdout pipes of a subprocess (local)
  - SseTransport: JSON-RPC POSTed over HTTP, replies pushed back over
    server-sent events (remote)

Both variants share the Transport base: a request id sequence, a map of
pending requests keyed by id, and an inbox queue drained by one dispatcher
task. Readers only decode frames and put them on the inbox; the dispatcher
resolves pending requests, hands notifications to registered handlers, and
processes loss of the peer in arrival order.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import logging
import os
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Union
from urllib.parse import urljoin

import httpx

from toolservers.config import ServerConfig
from toolservers.errors import (
    ProtocolError,
    ProtocolTimeout,
    RemoteError,
    TransportClosedError,
    TransportConnectError,
    TransportError,
)
from toolservers.protocol import (
    METHOD_NOT_FOUND,
    InboundMessage,
    JsonRpcError,
    JsonRpcErrorResponse,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    OutboundMessage,
    parse_message,
)

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30.0
READ_CHUNK_SIZE = 64 * 1024
MAX_LINE_LENGTH = 16 * 1024 * 1024

NotificationHandler = Callable[[JsonRpcNotification], Any]
DisconnectHandler = Callable[[TransportError], None]


@dataclass
class RequestIdSequence:
    """Monotonic request ids for one transport instance."""
    last: int = 0

    def next(self) -> int:
        self.last += 1
        return self.last


@dataclass
class _ConnectionLost:
    error: TransportError


_InboxItem = Union[InboundMessage, _ConnectionLost]


class LineBuffer:
    """
    Splits a byte stream into lines.

    Chunks may end mid-line (or mid UTF-8 sequence); the unterminated tail
    is kept until the next feed() completes it. A line longer than
    max_line_length is dropped with a warning, up to its terminating newline.
    """

    def __init__(self, max_line_length: int = MAX_LINE_LENGTH) -> None:
        self.max_line_length = max_line_length
        self._buffer = bytearray()
        self._discarding = False

    def feed(self, chunk: bytes) -> list[str]:
        lines: list[str] = []
        start = 0
        while True:
            end = chunk.find(b"\n", start)
            if end < 0:
                break
            self._append(chunk[start:end])
            if self._discarding:
                self._discarding = False
            else:
                text = self._decode(self._buffer)
                if text:
                    lines.append(text)
            self._buffer = bytearray()
            start = end + 1
        self._append(chunk[start:])
        return lines

    def flush(self) -> list[str]:
        text = "" if self._discarding else self._decode(self._buffer)
        self._buffer = bytearray()
        self._discarding = False
        return [text] if text else []

    def _append(self, piece: bytes) -> None:
        if self._discarding:
            return
        if len(self._buffer) + len(piece) > self.max_line_length:
            logger.warning(f"Dropping inbound line longer than {self.max_line_length} bytes")
            self._buffer = bytearray()
            self._discarding = True
            return
        self._buffer.extend(piece)

    @staticmethod
    def _decode(line: bytes | bytearray) -> str:
        return bytes(line).decode("utf-8", errors="replace").strip()


class Transport(ABC):
    """Abstract transport layer for MCP communication."""

    def __init__(self, request_timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.request_timeout = request_timeout
        self._ids = RequestIdSequence()
        self._pending: dict[int | str, asyncio.Future] = {}
        self._inbox: asyncio.Queue[_InboxItem] | None = None
        self._dispatcher: asyncio.Task | None = None
        self._notification_handlers: list[NotificationHandler] = []
        self._disconnect_handlers: list[DisconnectHandler] = []
        self._closing = False

    # ── Subclass contract ──

    @abstractmethod
    async def _open(self) -> None:
        """Open the underlying channel and start its readers."""
        ...

    @abstractmethod
    async def _close(self) -> None:
        """Stop readers and release the underlying channel."""
        ...

    @abstractmethod
    async def send(self, message: OutboundMessage) -> None:
        """Write one envelope to the peer."""
        ...

    @abstractmethod
    def is_alive(self) -> bool:
        """Check if the transport is active."""
        ...

    # ── Lifecycle ──

    async def connect(self) -> None:
        if self.is_alive():
            logger.warning("Transport already running, stopping first")
            await self.disconnect()

        self._closing = False
        self._inbox = asyncio.Queue()
        self._dispatcher = asyncio.create_task(self._dispatch_loop(self._inbox))
        try:
            await self._open()
        except BaseException:
            self._closing = True
            await self._stop_dispatcher()
            raise

    async def disconnect(self) -> None:
        self._closing = True
        try:
            await self._close()
        finally:
            await self._stop_dispatcher()
            self._fail_pending(TransportClosedError("Transport disconnected"))

    async def _stop_dispatcher(self) -> None:
        task, self._dispatcher = self._dispatcher, None
        self._inbox = None
        if task is None or task.done():
            return
        task.cancel()
        if task is not asyncio.current_task():
            with contextlib.suppress(asyncio.CancelledError):
                await task

    # ── Handlers ──

    def on_notification(self, handler: NotificationHandler) -> None:
        """Register a handler for server notifications (sync or async)."""
        self._notification_handlers.append(handler)

    def on_disconnect(self, handler: DisconnectHandler) -> None:
        """Register a handler fired once when the peer goes away unexpectedly."""
        self._disconnect_handlers.append(handler)

    # ── Outbound ──

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and wait for the correlated response's result.

        Raises ProtocolTimeout when no response arrives in time, RemoteError
        when the server answers with an error object, TransportClosedError
        when the transport goes away first.
        """
        if self._closing or not self.is_alive():
            raise TransportClosedError("Transport not running. Call connect() first.")

        request_id = self._ids.next()
        bound = self.request_timeout if timeout is None else timeout
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self.send(JsonRpcRequest(method=method, params=params, id=request_id))
            return await asyncio.wait_for(future, bound)
        except asyncio.TimeoutError:
            logger.warning(f"Request {method} (id={request_id}) timed out after {bound:g}s")
            raise ProtocolTimeout(method, request_id, bound) from None
        finally:
            self._pending.pop(request_id, None)

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        await self.send(JsonRpcNotification(method=method, params=params))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ── Inbound ──

    def _deliver(self, raw: str) -> None:
        """Decode one inbound frame and queue it; malformed frames are skipped."""
        try:
            payload = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Skipping malformed frame ({e}): {raw[:200]!r}")
            return
        self._deliver_payload(payload, raw)

    def _deliver_payload(self, payload: Any, raw: str = "") -> None:
        try:
            message = parse_message(payload)
        except ProtocolError as e:
            logger.warning(f"Skipping invalid envelope ({e}): {(raw or str(payload))[:200]!r}")
            return
        if self._inbox is None:
            logger.debug(f"Dropping frame received while not connected: {message}")
            return
        self._inbox.put_nowait(message)

    def _connection_lost(self, error: TransportError) -> None:
        """Called by readers when the peer closed; processed after queued frames."""
        if self._inbox is not None and not self._closing:
            self._inbox.put_nowait(_ConnectionLost(error))

    async def _dispatch_loop(self, inbox: asyncio.Queue[_InboxItem]) -> None:
        while True:
            item = await inbox.get()
            try:
                await self._dispatch(item)
            except Exception:
                logger.exception("Failed to dispatch inbound message")

    async def _dispatch(self, item: _InboxItem) -> None:
        if isinstance(item, JsonRpcResponse):
            self._settle(item.id, result=item.result)
        elif isinstance(item, JsonRpcErrorResponse):
            error = RemoteError(item.error.code, item.error.message, item.error.data)
            if item.id is None:
                logger.warning(f"Server reported an uncorrelated error: {error}")
            else:
                self._settle(item.id, error=error)
        elif isinstance(item, JsonRpcNotification):
            await self._emit_notification(item)
        elif isinstance(item, JsonRpcRequest):
            await self._answer_server_request(item)
        elif isinstance(item, _ConnectionLost):
            self._handle_connection_lost(item.error)

    def _settle(self, msg_id: int | str, result: Any = None, error: Exception | None = None) -> None:
        future = self._pending.pop(msg_id, None)
        if future is None:
            logger.debug(f"Dropping response for unknown request id {msg_id!r}")
            return
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    async def _emit_notification(self, notification: JsonRpcNotification) -> None:
        if not self._notification_handlers:
            logger.debug(f"Notification {notification.method} (no handlers)")
            return
        for handler in list(self._notification_handlers):
            try:
                outcome = handler(notification)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(f"Notification handler failed for {notification.method}: {e}")

    async def _answer_server_request(self, request: JsonRpcRequest) -> None:
        if request.method == "ping":
            reply: OutboundMessage = JsonRpcResponse(id=request.id, result={})
        else:
            reply = JsonRpcErrorResponse(
                id=request.id,
                error=JsonRpcError(METHOD_NOT_FOUND, f"Method not found: {request.method}"),
            )
        try:
            await self.send(reply)
        except TransportError as e:
            logger.warning(f"Could not answer server request {request.method}: {e}")

    def _handle_connection_lost(self, error: TransportError) -> None:
        if self._closing:
            return
        self._closing = True
        logger.warning(f"Transport lost: {error}")
        self._fail_pending(error)
        for handler in list(self._disconnect_handlers):
            try:
                handler(error)
            except Exception as e:
                logger.error(f"Disconnect handler failed: {e}")

    def _fail_pending(self, error: TransportError) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(error)


class StdioTransport(Transport):
    """
    JSON-RPC over stdin/stdout pipes to a subprocess.

    This is MCP's native local transport. The tool server runs as
    a child process. We write JSON-RPC messages to its stdin and
    read messages from its stdout. One line = one message. Whatever
    the server writes to stderr is only logged.
    """

    def __init__(
        self,
        command: str,
        args: list[str] | None = None,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ):
        """
        Args:
            command: Executable that launches the tool server.
            args: Arguments for the executable.
                  e.g., command=sys.executable, args=["-m", "toolservers.servers.echo"]
            env: Variables overlaid on the current environment.
            cwd: Working directory for the subprocess.
            request_timeout: Seconds to wait for each response.
        """
        super().__init__(request_timeout)
        self.command = command
        self.args = list(args or [])
        self.env = dict(env or {})
        self.cwd = cwd
        self._process: asyncio.subprocess.Process | None = None
        self._readers: list[asyncio.Task] = []
        self._write_lock = asyncio.Lock()
        self._stderr_tail: deque[str] = deque(maxlen=20)

    @property
    def command_line(self) -> str:
        return " ".join([self.command, *self.args])

    async def _open(self) -> None:
        """Launch the tool server subprocess."""
        logger.info(f"Starting stdio transport: {self.command_line}")
        try:
            self._process = await asyncio.create_subprocess_exec(
                self.command,
                *self.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, **self.env},
                cwd=self.cwd,
            )
        except OSError as e:
            raise TransportConnectError(f"Failed to start '{self.command_line}': {e}") from e

        self._stderr_tail.clear()
        self._readers = [
            asyncio.create_task(self._read_stdout(self._process.stdout)),
            asyncio.create_task(self._read_stderr(self._process.stderr)),
        ]

    async def _close(self) -> None:
        """Terminate the tool server subprocess."""
        process, self._process = self._process, None
        readers, self._readers = self._readers, []

        if process is not None and process.returncode is None:
            if process.stdin is not None:
                process.stdin.close()
            with contextlib.suppress(ProcessLookupError):
                process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=5)
            except asyncio.TimeoutError:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()

        for task in readers:
            task.cancel()
        for task in readers:
            with contextlib.suppress(asyncio.CancelledError):
                await task

        if process is not None:
            logger.info(f"Stdio transport stopped: {self.command_line}")

    def is_alive(self) -> bool:
        """Check if the subprocess is running."""
        return self._process is not None and self._process.returncode is None

    async def send(self, message: OutboundMessage) -> None:
        """Write one JSON-RPC message as a line on the server's stdin."""
        if not self.is_alive() or self._process.stdin is None:
            raise TransportClosedError("Transport not running. Call connect() first.")

        line = message.to_json() + "\n"
        async with self._write_lock:
            try:
                self._process.stdin.write(line.encode("utf-8"))
                await self._process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError) as e:
                raise TransportClosedError(f"Tool server stdin closed: {e}") from e

    async def _read_stdout(self, stream: asyncio.StreamReader) -> None:
        buffer = LineBuffer()
        try:
            while True:
                chunk = await stream.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                for line in buffer.feed(chunk):
                    self._deliver(line)
            for line in buffer.flush():
                self._deliver(line)
        except (ConnectionResetError, BrokenPipeError) as e:
            logger.error(f"Error reading from {self.command_line}: {e}")

        returncode = self._process.returncode if self._process else None
        stderr = " | ".join(self._stderr_tail)
        self._connection_lost(TransportClosedError(
            f"Tool server process exited (code {returncode}). stderr: {stderr[:500]}"
        ))

    async def _read_stderr(self, stream: asyncio.StreamReader) -> None:
        buffer = LineBuffer()
        while True:
            chunk = await stream.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            for line in buffer.feed(chunk):
                self._stderr_tail.append(line)
                logger.debug(f"[{self.command}] stderr: {line}")


@dataclass
class SseEvent:
    event: str = "message"
    data: str = ""
    id: str | None = None


class SseDecoder:
    """Incremental server-sent events decoder fed one line at a time."""

    def __init__(self) -> None:
        self._event: str | None = None
        self._data: list[str] = []
        self._id: str | None = None

    def decode(self, line: str) -> SseEvent | None:
        line = line.rstrip("\r\n")
        if not line:
            if not self._data and self._event is None:
                return None
            event = SseEvent(event=self._event or "message", data="\n".join(self._data), id=self._id)
            self._event, self._data, self._id = None, [], None
            return event
        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            self._id = value
        return None


class SseTransport(Transport):
    """
    JSON-RPC over HTTP with server-sent events.

    Inbound messages arrive on a long-lived GET <url>/sse stream. Outbound
    requests and notifications are independent POSTs to <url>/message (or
    the endpoint the server announces). The first message that carries a
    sessionId sets the session token, which is sent on every POST as the
    X-Session-Id header.
    """

    SESSION_HEADER = "X-Session-Id"

    def __init__(
        self,
        url: str,
        headers: dict[str, str] | None = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            url: Base URL of the tool server.
            headers: Extra headers sent on the stream and on every POST.
            request_timeout: Seconds to wait for each response.
            http_transport: Optional httpx transport (e.g. httpx.MockTransport).
        """
        super().__init__(request_timeout)
        self.url = url.rstrip("/")
        self.headers = dict(headers or {})
        self.session_id: str | None = None
        self.endpoint = f"{self.url}/message"
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None
        self._stream: httpx.Response | None = None
        self._reader: asyncio.Task | None = None

    async def _open(self) -> None:
        """Open the event stream."""
        sse_url = f"{self.url}/sse"
        logger.info(f"Opening SSE transport: {sse_url}")
        self._client = httpx.AsyncClient(
            headers=self.headers,
            timeout=httpx.Timeout(self.request_timeout, read=None),
            transport=self._http_transport,
        )
        request = self._client.build_request("GET", sse_url, headers={"Accept": "text/event-stream"})
        try:
            response = await self._client.send(request, stream=True)
        except httpx.HTTPError as e:
            await self._release_client()
            raise TransportConnectError(f"Failed to open SSE stream at {sse_url}: {e}") from e

        if response.status_code >= 400:
            await response.aclose()
            await self._release_client()
            raise TransportConnectError(
                f"SSE stream at {sse_url} returned HTTP {response.status_code}"
            )

        self._stream = response
        self._reader = asyncio.create_task(self._read_events(response))
        logger.debug("MCP SSE connection opened")

    async def _close(self) -> None:
        reader, self._reader = self._reader, None
        if reader is not None:
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        stream, self._stream = self._stream, None
        if stream is not None:
            await stream.aclose()
        await self._release_client()
        self.session_id = None
        self.endpoint = f"{self.url}/message"

    async def _release_client(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            await client.aclose()

    def is_alive(self) -> bool:
        return self._client is not None and self._reader is not None and not self._reader.done()

    async def send(self, message: OutboundMessage) -> None:
        """POST one JSON-RPC message; replies come back on the event stream."""
        if self._client is None:
            raise TransportClosedError("Transport not running. Call connect() first.")

        headers = {"Content-Type": "application/json"}
        if self.session_id:
            headers[self.SESSION_HEADER] = self.session_id
        try:
            response = await self._client.post(self.endpoint, content=message.to_json(), headers=headers)
        except httpx.HTTPError as e:
            raise TransportError(f"POST {self.endpoint} failed: {e}") from e

        if response.is_error:
            raise TransportError(f"HTTP {response.status_code}: {response.reason_phrase}")

        # Some servers answer inline instead of over the stream.
        if response.content and response.headers.get("content-type", "").startswith("application/json"):
            self._deliver(response.text)

    async def _read_events(self, response: httpx.Response) -> None:
        decoder = SseDecoder()
        try:
            async for line in response.aiter_lines():
                event = decoder.decode(line)
                if event is not None:
                    self._handle_event(event)
        except httpx.HTTPError as e:
            self._connection_lost(TransportClosedError(f"SSE stream failed: {e}"))
            return
        self._connection_lost(TransportClosedError("SSE stream closed by server"))

    def _handle_event(self, event: SseEvent) -> None:
        if event.event == "endpoint":
            self.endpoint = urljoin(self.url + "/", event.data.strip())
            logger.debug(f"SSE endpoint announced: {self.endpoint}")
            return
        if not event.data:
            return

        try:
            payload = json.loads(event.data)
        except ValueError as e:
            logger.warning(f"Skipping malformed SSE frame ({e}): {event.data[:200]!r}")
            return

        if isinstance(payload, dict) and payload.get("sessionId") and self.session_id is None:
            self.session_id = str(payload["sessionId"])
            logger.debug(f"SSE session established: {self.session_id}")
            if "jsonrpc" not in payload:
                return

        self._deliver_payload(payload, event.data)


def create_transport(
    config: ServerConfig,
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> Transport:
    """Build the transport variant a server config asks for."""
    if config.transport == "stdio":
        return StdioTransport(
            config.command,
            config.args,
            env=config.env,
            cwd=config.cwd,
            request_timeout=request_timeout,
        )
    if config.transport == "http":
        return SseTransport(config.url, headers=config.headers, request_timeout=request_timeout)
    raise ValueError(f"Unsupported transport: {config.transport}")
