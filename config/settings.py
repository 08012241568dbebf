# config/settings.py
import os
import sys
from dotenv import load_dotenv
from pydantic import ValidationError, Field
from pydantic_settings import BaseSettings
from util.enums import Environment


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()



class Settings(BaseSettings):
    # App
    APP_ENV: str = Field(default=Environment.DEV.value, validation_alias="APP_ENV")
    HOST: str = Field(default="127.0.0.1", validation_alias="HOST")
    PORT: int = Field(default=3000, validation_alias="PORT")

    # CORS
    ALLOWED_ORIGIN: str = Field(default="*", validation_alias="ALLOWED_ORIGIN")

    # Upstream credentials (absent credential disables that family)
    TRIPO_API_KEY: str | None = Field(default=None, validation_alias="TRIPO_API_KEY")
    MESHY_API_KEY: str | None = Field(default=None, validation_alias="MESHY_API_KEY")

    # External URLS:
    TRIPO_BASE_URL: str = "https://api.tripo3d.ai/v2/openapi"
    MESHY_BASE_URL: str = "https://api.meshy.ai"
    UPSTREAM_TIMEOUT_SECONDS: float = Field(
        default=60.0, validation_alias="UPSTREAM_TIMEOUT_SECONDS"
    )
    UPSTREAM_CONNECT_TIMEOUT_SECONDS: float = Field(
        default=10.0, validation_alias="UPSTREAM_CONNECT_TIMEOUT_SECONDS"
    )

    # Upload staging
    UPLOAD_DIR: str = Field(default="uploads", validation_alias="UPLOAD_DIR")
    MAX_UPLOAD_BYTES: int = Field(
        default=5 * 1024 * 1024, validation_alias="MAX_UPLOAD_BYTES"
    )
    MAX_MULTIVIEW_FILES: int = Field(default=6, validation_alias="MAX_MULTIVIEW_FILES")
    # Comma separated; "image/*" admits every image subtype
    ALLOWED_MEDIA_TYPES: str = Field(
        default="image/*", validation_alias="ALLOWED_MEDIA_TYPES"
    )

    # Logging knobs
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="app.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Missing/invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
