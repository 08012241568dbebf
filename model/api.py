from pydantic import BaseModel
from typing import Any, Dict


class UploadedFileInfo(BaseModel):
    originalname: str
    mimetype: str
    size: int
    stagedName: str


class TestUploadResponse(BaseModel):
    success: bool
    message: str
    file: UploadedFileInfo


class HealthResponse(BaseModel):
    ok: bool
    environment: str
    apis: Dict[str, bool]


class ErrorResponse(BaseModel):
    error: str
    details: Any | None = None
