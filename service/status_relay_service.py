# service/status_relay_service.py
import logging
from typing import Any
from urllib.parse import quote
from core.upstream_client import UpstreamClient
from model.job import normalize_status
from util.constants import DEFAULT_LIST_LIMIT, DEFAULT_LIST_OFFSET

logger = logging.getLogger(__name__)


class StatusRelayService:
    """
    Status, listing and cancellation passthrough for one upstream resource.

    One round trip per call: no cache, no retry. Upstream failures reach the
    caller as-is so the caller decides whether to retry.
    """

    def __init__(self, client: UpstreamClient, resource_path: str) -> None:
        self._client = client
        self._resource = resource_path.rstrip("/")

    def _item(self, handle: str) -> str:
        # Handles are opaque: escape so "?" or "#" stay inside the path segment
        return f"{self._resource}/{quote(handle, safe='')}"

    async def query_status(self, handle: str) -> Any:
        res = await self._client.get(self._item(handle))
        status = normalize_status(handle, res.body)
        logger.info(
            "status.ok family=%s handle=%s state=%s progress=%s",
            self._client.family.value,
            handle,
            status.state,
            status.progress,
        )
        return res.body

    async def list_jobs(
        self,
        limit: int | str = DEFAULT_LIST_LIMIT,
        offset: int | str = DEFAULT_LIST_OFFSET,
    ) -> Any:
        res = await self._client.get(self._resource, {"limit": limit, "offset": offset})
        logger.info(
            "status.list family=%s limit=%s offset=%s",
            self._client.family.value,
            limit,
            offset,
        )
        return res.body

    async def cancel(self, handle: str) -> Any:
        res = await self._client.delete(self._item(handle))
        logger.info("status.cancel family=%s handle=%s", self._client.family.value, handle)
        return res.body
