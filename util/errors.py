# util/errors.py
from typing import Any
from fastapi import HTTPException, status
from util.enums import ErrorMessage


class AppError(HTTPException):
    # Flow: raise AppError to short-circuit with a typed status & message.
    # Rendered by main.py as {"error": message, "details": details?}.
    def __init__(
        self,
        message: str,
        http_status: int = status.HTTP_400_BAD_REQUEST,
        details: Any = None,
    ) -> None:
        super().__init__(status_code=http_status, detail=message)
        self.message = message
        self.details = details

    def to_body(self) -> dict:
        body: dict = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class InvalidRequest(AppError):
    """Caller payload failed local validation; never forwarded upstream."""

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST, details)


class InvalidMediaType(AppError):
    def __init__(self, media_type: str | None) -> None:
        info = ErrorMessage.UNSUPPORTED_MEDIA.value
        super().__init__(info.message, info.http_status, {"mediaType": media_type})


class TooLarge(AppError):
    def __init__(self, max_bytes: int) -> None:
        info = ErrorMessage.FILE_TOO_LARGE.value
        super().__init__(
            f"{info.message} ({max_bytes // (1024 * 1024)}MB)", info.http_status
        )
        self.max_bytes = max_bytes


class TooManyFiles(AppError):
    def __init__(self, received: int, max_files: int) -> None:
        info = ErrorMessage.TOO_MANY_FILES.value
        super().__init__(
            f"{info.message} (max {max_files})",
            info.http_status,
            {"received": received, "max": max_files},
        )


class UpstreamMisconfigured(AppError):
    def __init__(self, family: str) -> None:
        info = ErrorMessage.MISCONFIGURED.value
        super().__init__(f"{info.message}: {family}", info.http_status)
        self.family = family


class UpstreamError(AppError):
    """Upstream answered non-2xx or could not be reached (status defaults to 500)."""

    def __init__(
        self, status_code: int | None, message: str, raw_body: Any = None
    ) -> None:
        super().__init__(
            message,
            status_code or status.HTTP_500_INTERNAL_SERVER_ERROR,
            raw_body,
        )
        self.raw_body = raw_body


class TransportError(Exception):
    # Mid-stream failure; headers are already committed so it only travels in-band.
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
