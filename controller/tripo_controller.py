# controller/tripo_controller.py
from typing import List, Optional
from fastapi import APIRouter, Body, Depends, File, Form, Query, UploadFile
from model.api import ErrorResponse, TestUploadResponse
from service.job_proxy_service import JobProxyService
from service.status_relay_service import StatusRelayService
from util.constants import DEFAULT_LIST_LIMIT, DEFAULT_LIST_OFFSET, InternalURIs
from controller.controller_dependencies import (
    get_job_proxy_service,
    get_tripo_status_service,
)

tripo_router = APIRouter(
    prefix=InternalURIs.TRIPO,
    tags=["tripo"],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)


@tripo_router.post(InternalURIs.TEST_UPLOAD, response_model=TestUploadResponse)
async def test_upload(
    file: Optional[List[UploadFile]] = File(None),
    service: JobProxyService = Depends(get_job_proxy_service),
) -> TestUploadResponse:
    return await service.describe_upload(file or [])


@tripo_router.post(InternalURIs.TEXT_TO_MODEL)
async def text_to_model(
    payload: Optional[dict] = Body(None),
    service: JobProxyService = Depends(get_job_proxy_service),
):
    return await service.text_to_model(payload or {})


@tripo_router.post(InternalURIs.CREATE_TASK)
async def create_task(
    payload: Optional[dict] = Body(None),
    service: JobProxyService = Depends(get_job_proxy_service),
):
    return await service.create_task(payload or {})


@tripo_router.post(InternalURIs.MULTIVIEW_TO_MODEL)
async def multiview_to_model(
    images: Optional[List[UploadFile]] = File(None),
    prompt: Optional[str] = Form(None),
    service: JobProxyService = Depends(get_job_proxy_service),
):
    return await service.multiview_from_uploads(images or [], prompt)


@tripo_router.post(InternalURIs.MULTIVIEW_WITH_TOKENS)
async def multiview_with_tokens(
    payload: Optional[dict] = Body(None),
    service: JobProxyService = Depends(get_job_proxy_service),
):
    return await service.multiview_with_tokens(payload or {})


@tripo_router.get(InternalURIs.TASK_STATUS)
async def task_status(
    task_id: str,
    service: StatusRelayService = Depends(get_tripo_status_service),
):
    return await service.query_status(task_id)


@tripo_router.get(InternalURIs.TASKS)
async def list_tasks(
    # Forwarded verbatim; upstream owns pagination validation
    limit: str = Query(str(DEFAULT_LIST_LIMIT)),
    offset: str = Query(str(DEFAULT_LIST_OFFSET)),
    service: StatusRelayService = Depends(get_tripo_status_service),
):
    return await service.list_jobs(limit=limit, offset=offset)


@tripo_router.delete(InternalURIs.TASK)
async def cancel_task(
    task_id: str,
    service: StatusRelayService = Depends(get_tripo_status_service),
):
    return await service.cancel(task_id)


@tripo_router.post(InternalURIs.UPLOAD_STS)
async def upload_sts(
    file: Optional[List[UploadFile]] = File(None),
    service: JobProxyService = Depends(get_job_proxy_service),
):
    return await service.upload_file(file or [])


@tripo_router.post(InternalURIs.GENERATE_TEXTURE)
async def generate_texture(
    payload: Optional[dict] = Body(None),
    service: JobProxyService = Depends(get_job_proxy_service),
):
    return await service.generate_texture(payload or {})
