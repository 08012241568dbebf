from enum import Enum
from typing import NamedTuple
from fastapi import status


class Color(str, Enum):
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    BOLD = "\033[1m"

    def __str__(self):
        return self.value


class Environment(str, Enum):
    DEV = "dev"
    PROD = "prod"


class UpstreamFamily(str, Enum):
    TRIPO = "tripo"
    MESHY = "meshy"


class ErrorInfo(NamedTuple):
    message: str
    http_status: int


class ErrorMessage(Enum):
    NO_FILE = ErrorInfo("No file uploaded", status.HTTP_400_BAD_REQUEST)
    FILE_TOO_LARGE = ErrorInfo(
        "File exceeds the upload size limit",
        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    )
    TOO_MANY_FILES = ErrorInfo("Too many files uploaded", status.HTTP_400_BAD_REQUEST)
    UNSUPPORTED_MEDIA = ErrorInfo(
        "Only image files can be uploaded", status.HTTP_400_BAD_REQUEST
    )
    MISCONFIGURED = ErrorInfo(
        "Upstream credential is not configured",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    INTERNAL_ERROR = ErrorInfo(
        "Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR
    )
