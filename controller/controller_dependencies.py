from typing import Dict, Optional
import httpx
from fastapi import Depends
from config.upstreams import GatewayConfig, get_gateway_config
from core.asset_store import TemporaryAssetStore
from core.upstream_client import UpstreamClient
from service.job_proxy_service import JobProxyService
from service.status_relay_service import StatusRelayService
from service.stream_relay_service import StreamRelayService
from util.constants import ExternalURIs
from util.enums import UpstreamFamily

UpstreamClients = Dict[UpstreamFamily, UpstreamClient]


def get_gateway() -> GatewayConfig:
    return get_gateway_config()


def get_upstream_transport() -> Optional[httpx.AsyncBaseTransport]:
    # None -> httpx default network transport
    return None


def get_upstream_clients(
    config: GatewayConfig = Depends(get_gateway),
    transport: Optional[httpx.AsyncBaseTransport] = Depends(get_upstream_transport),
) -> UpstreamClients:
    return {
        family: UpstreamClient(upstream, transport=transport)
        for family, upstream in config.upstreams.items()
    }


def get_asset_store(config: GatewayConfig = Depends(get_gateway)) -> TemporaryAssetStore:
    return TemporaryAssetStore(config.uploads)


def get_job_proxy_service(
    clients: UpstreamClients = Depends(get_upstream_clients),
    store: TemporaryAssetStore = Depends(get_asset_store),
) -> JobProxyService:
    return JobProxyService(clients, store)


def get_tripo_status_service(
    clients: UpstreamClients = Depends(get_upstream_clients),
) -> StatusRelayService:
    return StatusRelayService(clients[UpstreamFamily.TRIPO], ExternalURIs.TRIPO_TASK)


def get_meshy_status_service(
    clients: UpstreamClients = Depends(get_upstream_clients),
) -> StatusRelayService:
    return StatusRelayService(clients[UpstreamFamily.MESHY], ExternalURIs.MESHY_RIGGING)


def get_meshy_stream_service(
    clients: UpstreamClients = Depends(get_upstream_clients),
) -> StreamRelayService:
    return StreamRelayService(clients[UpstreamFamily.MESHY], ExternalURIs.MESHY_RIGGING)
