# service/stream_relay_service.py
from urllib.parse import quote
from core.streaming import EventStreamResponse, StreamRelay
from core.upstream_client import UpstreamClient


class StreamRelayService:
    def __init__(self, client: UpstreamClient, resource_path: str) -> None:
        self._client = client
        self._resource = resource_path.rstrip("/")

    def stream_path(self, handle: str) -> str:
        return f"{self._resource}/{quote(handle, safe='')}/stream"

    def relay(self, handle: str) -> StreamRelay:
        path = self.stream_path(handle)
        return StreamRelay(lambda: self._client.open_stream(path), label=handle)

    def response(self, handle: str) -> EventStreamResponse:
        # The upstream is only contacted once the response starts sending.
        return EventStreamResponse(self.relay(handle))
