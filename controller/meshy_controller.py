# controller/meshy_controller.py
from typing import Optional
from fastapi import APIRouter, Body, Depends
from model.api import ErrorResponse
from service.job_proxy_service import JobProxyService
from service.status_relay_service import StatusRelayService
from service.stream_relay_service import StreamRelayService
from util.constants import InternalURIs
from controller.controller_dependencies import (
    get_job_proxy_service,
    get_meshy_status_service,
    get_meshy_stream_service,
)

meshy_router = APIRouter(
    prefix=InternalURIs.MESHY,
    tags=["meshy"],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)


@meshy_router.post(InternalURIs.RIG)
async def rig(
    payload: Optional[dict] = Body(None),
    service: JobProxyService = Depends(get_job_proxy_service),
):
    return await service.rig(payload or {})


@meshy_router.get(InternalURIs.RIG_STATUS)
async def rig_status(
    task_id: str,
    service: StatusRelayService = Depends(get_meshy_status_service),
):
    return await service.query_status(task_id)


@meshy_router.get(InternalURIs.RIG_STREAM)
async def rig_stream(
    task_id: str,
    service: StreamRelayService = Depends(get_meshy_stream_service),
):
    return service.response(task_id)
