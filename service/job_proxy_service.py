# service/job_proxy_service.py
import logging
from typing import Any, List, Mapping, Optional, Sequence
from core.asset_store import TemporaryAssetStore, UploadSource
from core.upstream_client import UpstreamClient
from model.api import TestUploadResponse, UploadedFileInfo
from model.job import KIND_SPECS, JobKind
from util.constants import DEFAULT_RIG_HEIGHT_METERS, ExternalURIs
from util.enums import UpstreamFamily
from util.errors import InvalidRequest
from util.functions import (
    as_file_ref,
    build_upstream_payload,
    file_ref_complete,
    split_options,
)
from util.types import FileRef, JSONObject

logger = logging.getLogger(__name__)


def _handle_of(body: Any) -> Optional[str]:
    if not isinstance(body, Mapping):
        return None
    data = body.get("data")
    if isinstance(data, Mapping) and data.get("task_id"):
        return str(data["task_id"])
    result = body.get("result")
    return str(result) if isinstance(result, str) else None


class JobProxyService:
    """
    Validates job-creation requests, stages uploads, and submits them to the
    upstream owning the job kind. Upstream bodies are returned unmodified.
    """

    def __init__(
        self,
        clients: Mapping[UpstreamFamily, UpstreamClient],
        store: TemporaryAssetStore,
    ) -> None:
        self._clients = clients
        self._store = store

    def _client(self, family: UpstreamFamily) -> UpstreamClient:
        return self._clients[family]

    # ---------------- Validation & payload building ----------------

    @staticmethod
    def resolve_kind(body: Mapping[str, Any], expected: JobKind | None = None) -> JobKind:
        raw = body.get("type", body.get("kind"))
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            raise InvalidRequest("Missing type parameter")
        kind = JobKind.parse(raw)
        if kind is None:
            raise InvalidRequest(f"Unrecognized task type: {raw}", {"type": raw})
        if expected is not None and kind is not expected:
            raise InvalidRequest(f"type must be {expected.value}", {"type": raw})
        return kind

    @staticmethod
    def _resolve_file(ref: Any) -> FileRef:
        if not file_ref_complete(ref):
            raise InvalidRequest("Missing file parameter or file.file_token/file.type")
        return as_file_ref(ref)

    @staticmethod
    def _resolve_files(refs: Any) -> List[FileRef]:
        if not isinstance(refs, list) or not refs:
            raise InvalidRequest("Missing files parameter or files is not an array")
        for i, ref in enumerate(refs):
            if not file_ref_complete(ref):
                raise InvalidRequest(
                    f"File {i} is missing file_token or type", {"index": i}
                )
        return [as_file_ref(ref) for ref in refs]

    def build_job_payload(self, kind: JobKind, body: Mapping[str, Any]) -> JSONObject:
        spec = KIND_SPECS[kind]
        structural: JSONObject = {}
        if spec.sends_type:
            structural["type"] = kind.value
        for field in spec.required:
            value = body.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise InvalidRequest(f"Missing {field} parameter", {"field": field})
            structural[field] = value
        if spec.file_input == "file":
            structural["file"] = self._resolve_file(body.get("file"))
        elif spec.file_input == "files":
            structural["files"] = self._resolve_files(body.get("files"))

        options = split_options(body, ["type", *structural])
        return build_upstream_payload(structural, options)

    async def _submit(self, kind: JobKind, body: Mapping[str, Any]) -> Any:
        # Local validation completes before the client is touched.
        payload = self.build_job_payload(kind, body)
        spec = KIND_SPECS[kind]
        logger.info(
            "job.submit kind=%s family=%s keys=%d",
            kind.value,
            spec.family.value,
            len(payload),
        )
        res = await self._client(spec.family).submit_json(spec.path, payload)
        logger.info("job.submit.ok kind=%s handle=%s", kind.value, _handle_of(res.body))
        return res.body

    # ---------------- JSON submissions ----------------

    async def create_task(self, body: Mapping[str, Any]) -> Any:
        kind = self.resolve_kind(body)
        if KIND_SPECS[kind].family is not UpstreamFamily.TRIPO:
            raise InvalidRequest(
                f"Unsupported task type for tripo: {kind.value}", {"type": kind.value}
            )
        return await self._submit(kind, body)

    async def text_to_model(self, body: Mapping[str, Any]) -> Any:
        return await self._submit(JobKind.text_to_model, body)

    async def multiview_with_tokens(self, body: Mapping[str, Any]) -> Any:
        kind = self.resolve_kind(body, expected=JobKind.multiview_to_model)
        return await self._submit(kind, body)

    async def generate_texture(self, body: Mapping[str, Any]) -> Any:
        kind = self.resolve_kind(body, expected=JobKind.texture_model)
        return await self._submit(kind, body)

    async def rig(self, body: Mapping[str, Any]) -> Any:
        if body.get("height_meters") is None:
            body = {**body, "height_meters": DEFAULT_RIG_HEIGHT_METERS}
        return await self._submit(JobKind.rigging, body)

    # ---------------- Raw uploads ----------------

    async def multiview_from_uploads(
        self, files: Sequence[UploadSource], prompt: str | None = None
    ) -> Any:
        client = self._client(UpstreamFamily.TRIPO)
        client.ensure_configured()
        max_files = self._store.limits.max_multiview_files
        async with self._store.staged(files, max_files=max_files) as uploads:
            logger.info("job.submit.multipart kind=multiview_to_model files=%d", len(uploads))
            res = await client.submit_multipart(
                ExternalURIs.TRIPO_TASK,
                {"type": JobKind.multiview_to_model.value, "prompt": prompt or None},
                [("images", upload) for upload in uploads],
            )
        logger.info("job.submit.ok kind=multiview_to_model handle=%s", _handle_of(res.body))
        return res.body

    async def upload_file(self, files: Sequence[UploadSource]) -> Any:
        """Stage one image and exchange it for an upstream file token."""
        client = self._client(UpstreamFamily.TRIPO)
        client.ensure_configured()
        async with self._store.staged(files, max_files=self._store.limits.max_files) as uploads:
            upload = uploads[0]
            res = await client.submit_multipart(
                ExternalURIs.TRIPO_UPLOAD_STS, {}, [("file", upload)]
            )
        logger.info("upload.sts.ok bytes=%d", upload.size)
        return res.body

    async def describe_upload(self, files: Sequence[UploadSource]) -> TestUploadResponse:
        async with self._store.staged(files, max_files=self._store.limits.max_files) as uploads:
            upload = uploads[0]
            return TestUploadResponse(
                success=True,
                message="File upload test succeeded",
                file=UploadedFileInfo(
                    originalname=upload.original_name,
                    mimetype=upload.media_type,
                    size=upload.size,
                    stagedName=upload.name,
                ),
            )
