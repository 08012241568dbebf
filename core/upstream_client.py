# core/upstream_client.py
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Tuple
import httpx
import logging
from config.upstreams import UpstreamConfig
from core.asset_store import StagedUpload
from util.enums import UpstreamFamily
from util.errors import TransportError, UpstreamError, UpstreamMisconfigured
from util.timing import timed

logger = logging.getLogger(__name__)


@dataclass
class UpstreamResponse:
    status_code: int
    body: Any


def _parse_body(res: httpx.Response) -> Any:
    """
    Parsed JSON when the upstream sent JSON, else the text (None when empty).
    """
    try:
        return res.json()
    except ValueError:
        return res.text or None


def _error_message(body: Any, status_code: int, family: str) -> str:
    if isinstance(body, Mapping):
        for key in ("error", "message"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, Mapping) and isinstance(value.get("message"), str):
                return value["message"]
    if isinstance(body, str) and body.strip():
        return body.strip()[:300]
    return f"{family} upstream responded with status {status_code}"


class UpstreamClient:
    """
    Thin async wrapper around one upstream job API family.

    Every call injects the family's bearer credential; without one the call
    fails with UpstreamMisconfigured before any connection is attempted.
    Non-2xx answers and unreachable upstreams both surface as UpstreamError.
    """

    def __init__(
        self,
        config: UpstreamConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport

    @property
    def family(self) -> UpstreamFamily:
        return self._config.family

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        if not self._config.api_key:
            logger.error("upstream.misconfigured family=%s", self.family.value)
            raise UpstreamMisconfigured(self.family.value)
        headers = {"Authorization": f"Bearer {self._config.api_key}"}
        if extra:
            headers.update(extra)
        return headers

    def _client(self, *, streaming: bool = False) -> httpx.AsyncClient:
        timeout = httpx.Timeout(
            self._config.timeout,
            connect=self._config.connect_timeout,
            read=None if streaming else self._config.timeout,
        )
        return httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=timeout,
            transport=self._transport,
        )

    def ensure_configured(self) -> None:
        """Fail fast, before any local work, when the credential is missing."""
        self._headers()

    def _failure(self, res: httpx.Response) -> UpstreamError:
        body = _parse_body(res)
        message = _error_message(body, res.status_code, self.family.value)
        logger.warning(
            "upstream.failure family=%s status=%d", self.family.value, res.status_code
        )
        return UpstreamError(res.status_code, message, body)

    async def _send(
        self,
        method: str,
        path: str,
        headers: Dict[str, str],
        **kwargs: Any,
    ) -> UpstreamResponse:
        with timed(
            logger,
            "upstream.request",
            family=self.family.value,
            method=method,
            path=path,
        ) as fields:
            try:
                async with self._client() as client:
                    res = await client.request(method, path, headers=headers, **kwargs)
            except httpx.RequestError as e:
                fields["status"] = "unreachable"
                logger.error(
                    "upstream.request_error family=%s err=%s",
                    self.family.value,
                    type(e).__name__,
                )
                raise UpstreamError(None, str(e) or type(e).__name__) from e
            fields["status"] = res.status_code

        if not 200 <= res.status_code < 300:
            raise self._failure(res)
        return UpstreamResponse(status_code=res.status_code, body=_parse_body(res))

    async def submit_json(self, path: str, payload: Mapping[str, Any]) -> UpstreamResponse:
        headers = self._headers({"Content-Type": "application/json"})
        return await self._send("POST", path, headers, json=dict(payload))

    async def submit_multipart(
        self,
        path: str,
        fields: Mapping[str, Any],
        files: Sequence[Tuple[str, StagedUpload]],
    ) -> UpstreamResponse:
        """
        POST multipart form data. Staged files are handed to httpx as open
        handles so their bytes are streamed in chunks, not buffered whole.
        """
        headers = self._headers()
        data = {k: str(v) for k, v in fields.items() if v is not None}
        handles = []
        try:
            parts: List[Tuple[str, Tuple[str, Any, str]]] = []
            for field, upload in files:
                fh = upload.open()
                handles.append(fh)
                parts.append((field, (upload.original_name, fh, upload.media_type)))
            return await self._send("POST", path, headers, data=data, files=parts)
        finally:
            for fh in handles:
                fh.close()

    async def get(
        self, path: str, query: Optional[Mapping[str, Any]] = None
    ) -> UpstreamResponse:
        headers = self._headers()
        return await self._send("GET", path, headers, params=dict(query or {}))

    async def delete(self, path: str) -> UpstreamResponse:
        headers = self._headers()
        return await self._send("DELETE", path, headers)

    @asynccontextmanager
    async def open_stream(
        self, path: str, query: Optional[Mapping[str, Any]] = None
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        """
        Usage:
          async with client.open_stream("/x/stream") as chunks:
              async for chunk in chunks:
                  ...
        Leaving the block, by any route including cancellation, closes the
        upstream connection. Reads have no timeout: the stream is long-lived.
        """
        headers = self._headers({"Accept": "text/event-stream"})
        async with self._client(streaming=True) as client:
            try:
                async with client.stream(
                    "GET", path, headers=headers, params=dict(query or {})
                ) as res:
                    if not 200 <= res.status_code < 300:
                        await res.aread()
                        raise self._failure(res)
                    logger.info(
                        "upstream.stream.open family=%s path=%s", self.family.value, path
                    )
                    try:
                        yield self._chunks(res)
                    finally:
                        logger.info(
                            "upstream.stream.close family=%s path=%s",
                            self.family.value,
                            path,
                        )
            except httpx.RequestError as e:
                logger.error(
                    "upstream.stream.connect_error family=%s err=%s",
                    self.family.value,
                    type(e).__name__,
                )
                raise UpstreamError(None, str(e) or type(e).__name__) from e

    @staticmethod
    async def _chunks(res: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for chunk in res.aiter_bytes():
                if chunk:
                    yield chunk
        except httpx.TransportError as e:
            raise TransportError(str(e) or type(e).__name__) from e
