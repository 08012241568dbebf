# core/asset_store.py
import re
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator, BinaryIO, List, Optional, Protocol, Sequence, Union
import logging
import aiofiles
import aiofiles.os
from config.upstreams import UploadLimits
from util.constants import CHUNK_SIZE
from util.enums import ErrorMessage
from util.errors import InvalidMediaType, InvalidRequest, TooLarge, TooManyFiles

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class UploadSource(Protocol):
    """The subset of starlette's UploadFile the store relies on."""

    filename: Optional[str]
    content_type: Optional[str]

    async def read(self, size: int = -1) -> bytes: ...


@dataclass
class StagedUpload:
    name: str
    path: Path
    size: int
    media_type: str
    original_name: str
    released: bool = False

    def open(self) -> BinaryIO:
        return self.path.open("rb")


def _safe_name(original_name: str | None) -> str:
    base = Path(original_name or "upload").name
    cleaned = _UNSAFE_CHARS.sub("_", base).strip("._") or "upload"
    return cleaned[-100:]


def _normalize_media_type(media_type: str | None) -> str:
    return (media_type or "").split(";", 1)[0].strip().lower()


class TemporaryAssetStore:
    """
    On-disk staging for uploaded payloads awaiting forwarding upstream.

    Every upload staged through `staged()` is released on every exit path;
    `stage()`/`release()` are the primitives underneath it.
    """

    def __init__(self, limits: UploadLimits) -> None:
        self._limits = limits

    @property
    def limits(self) -> UploadLimits:
        return self._limits

    def _directory(self) -> Path:
        path = self._limits.upload_dir.resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def media_type_allowed(self, media_type: str | None) -> bool:
        mt = _normalize_media_type(media_type)
        if not mt:
            return False
        for allowed in self._limits.allowed_media_types:
            if allowed.endswith("/*"):
                if mt.startswith(allowed[:-1]):
                    return True
            elif mt == allowed:
                return True
        return False

    async def stage(
        self,
        source: Union[bytes, UploadSource],
        media_type: str | None,
        original_name: str | None,
    ) -> StagedUpload:
        """
        Write `source` into the upload directory under a generated unique name.
        Raises InvalidMediaType / TooLarge; a partial file never survives a failure.
        """
        if not self.media_type_allowed(media_type):
            logger.warning("upload.rejected.media type=%s", media_type)
            raise InvalidMediaType(media_type)

        max_bytes = self._limits.max_bytes
        if isinstance(source, (bytes, bytearray)) and len(source) > max_bytes:
            logger.warning("upload.rejected.size bytes=%d max=%d", len(source), max_bytes)
            raise TooLarge(max_bytes)

        safe = _safe_name(original_name)
        name = f"{uuid.uuid4().hex}-{safe}"
        path = self._directory() / name
        upload = StagedUpload(
            name=name,
            path=path,
            size=0,
            media_type=_normalize_media_type(media_type),
            original_name=original_name or safe,
        )

        try:
            async with aiofiles.open(path, "wb") as out:
                if isinstance(source, (bytes, bytearray)):
                    await out.write(source)
                    upload.size = len(source)
                else:
                    while True:
                        chunk = await source.read(CHUNK_SIZE)
                        if not chunk:
                            break
                        upload.size += len(chunk)
                        if upload.size > max_bytes:
                            raise TooLarge(max_bytes)
                        await out.write(chunk)
        except BaseException:
            await self.release(upload)
            if upload.size > max_bytes:
                logger.warning("upload.rejected.size bytes>%d", max_bytes)
            raise

        logger.info(
            "upload.staged name=%s bytes=%d type=%s", name, upload.size, upload.media_type
        )
        return upload

    async def stage_upload(self, file: UploadSource) -> StagedUpload:
        return await self.stage(file, file.content_type, file.filename)

    async def release(self, upload: StagedUpload | None) -> None:
        """Delete the staged file. Safe on never-created or already-released entries."""
        if upload is None or upload.released:
            return
        upload.released = True
        try:
            await aiofiles.os.remove(upload.path)
        except FileNotFoundError:
            return
        except OSError:
            logger.error("upload.release.error name=%s", upload.name, exc_info=True)
            return
        logger.info("upload.released name=%s", upload.name)

    @asynccontextmanager
    async def staged(
        self, files: Sequence[UploadSource], max_files: int
    ) -> AsyncIterator[List[StagedUpload]]:
        """
        Usage:
          async with store.staged(files, max_files=6) as uploads:
              ...
        Count is checked before anything is written; everything staged here
        is released exactly once when the block exits, however it exits.
        """
        if not files:
            info = ErrorMessage.NO_FILE.value
            raise InvalidRequest(info.message)
        if len(files) > max_files:
            logger.warning("upload.rejected.count n=%d max=%d", len(files), max_files)
            raise TooManyFiles(len(files), max_files)

        uploads: List[StagedUpload] = []
        try:
            for file in files:
                uploads.append(await self.stage_upload(file))
            yield uploads
        finally:
            for upload in uploads:
                await self.release(upload)
