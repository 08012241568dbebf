# core/streaming.py
import asyncio
import json
import logging
from enum import Enum
from typing import AsyncContextManager, AsyncIterator, Awaitable, Callable, Final, Mapping
from starlette.background import BackgroundTask
from starlette.responses import Response
from starlette.types import Receive, Scope, Send
from util.enums import ErrorMessage
from util.errors import AppError, TransportError

LINE_SEP: Final[str] = "\n"
EVENT_STREAM_HEADERS: Final[Mapping[str, str]] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
logger = logging.getLogger(__name__)

ChunkSource = Callable[[], AsyncContextManager[AsyncIterator[bytes]]]
SendChunk = Callable[[bytes], Awaitable[None]]
WaitDisconnect = Callable[[], Awaitable[None]]


def sse_error_frame(message: str) -> bytes:
    data = json.dumps({"error": message}, ensure_ascii=False, separators=(",", ":"))
    return f"event: error{LINE_SEP}data: {data}{LINE_SEP}{LINE_SEP}".encode("utf-8")


class RelayState(str, Enum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    UPSTREAM_FAILED = "upstream_failed"
    CLIENT_DISCONNECTED = "client_disconnected"


def _failure_message(exc: BaseException) -> str:
    if isinstance(exc, AppError):
        return exc.message
    if isinstance(exc, TransportError):
        return exc.message
    return ErrorMessage.INTERNAL_ERROR.value.message


class StreamRelay:
    """
    Pipes one upstream event stream into one downstream connection.

    Two tasks run side by side: the pump (open upstream, forward each chunk
    as soon as it arrives) and the disconnect watcher. Whichever finishes
    first cancels the other, and both are awaited before run() returns, so
    neither connection outlives the relay.
    """

    def __init__(self, open_upstream: ChunkSource, label: str = "") -> None:
        self._open_upstream = open_upstream
        self.label = label
        self.state = RelayState.CONNECTING
        self.chunks = 0
        self.bytes = 0

    async def _pump(self, send: SendChunk) -> None:
        async with self._open_upstream() as chunks:
            self.state = RelayState.STREAMING
            async for chunk in chunks:
                self.chunks += 1
                self.bytes += len(chunk)
                await send(chunk)

    async def run(self, send: SendChunk, wait_disconnect: WaitDisconnect) -> RelayState:
        logger.info("stream.start handle=%s", self.label)
        pump = asyncio.create_task(self._pump(send))
        watcher = asyncio.create_task(wait_disconnect())
        try:
            done, _ = await asyncio.wait(
                {pump, watcher}, return_when=asyncio.FIRST_COMPLETED
            )
            if watcher in done:
                pump.cancel()
                self.state = RelayState.CLIENT_DISCONNECTED
            else:
                error = pump.exception()
                if error is None:
                    self.state = RelayState.COMPLETED
                else:
                    if isinstance(error, (AppError, TransportError)):
                        logger.warning(
                            "stream.upstream.error handle=%s err=%s",
                            self.label,
                            _failure_message(error),
                        )
                    else:
                        logger.error(
                            "stream.unexpected.error handle=%s",
                            self.label,
                            exc_info=error,
                        )
                    self.state = RelayState.UPSTREAM_FAILED
                    await send(sse_error_frame(_failure_message(error)))
        finally:
            for task in (pump, watcher):
                if not task.done():
                    task.cancel()
            await asyncio.gather(pump, watcher, return_exceptions=True)

        logger.info(
            "stream.end handle=%s state=%s chunks=%d bytes=%d",
            self.label,
            self.state.value,
            self.chunks,
            self.bytes,
        )
        return self.state


class EventStreamResponse(Response):
    """
    text/event-stream response driven by a StreamRelay.

    Headers go out before the relay touches upstream, so upstream failures
    can only be reported in-band as an `event: error` frame.
    """

    media_type = "text/event-stream"

    def __init__(
        self,
        relay: StreamRelay,
        headers: Mapping[str, str] | None = None,
        background: BackgroundTask | None = None,
    ) -> None:
        self.relay = relay
        self.status_code = 200
        self.background = background
        self.init_headers({**EVENT_STREAM_HEADERS, **(headers or {})})

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        await send(
            {
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.raw_headers,
            }
        )

        async def send_chunk(chunk: bytes) -> None:
            await send({"type": "http.response.body", "body": chunk, "more_body": True})

        async def wait_disconnect() -> None:
            while True:
                message = await receive()
                if message["type"] == "http.disconnect":
                    return

        state = await self.relay.run(send_chunk, wait_disconnect)
        if state is not RelayState.CLIENT_DISCONNECTED:
            await send({"type": "http.response.body", "body": b"", "more_body": False})
        if self.background is not None:
            await self.background()
