# config/upstreams.py
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, Tuple
import logging
from config.settings import Settings, settings
from util.enums import UpstreamFamily

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpstreamConfig:
    family: UpstreamFamily
    base_url: str
    api_key: str | None
    timeout: float = 60.0
    connect_timeout: float = 10.0

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class UploadLimits:
    upload_dir: Path
    max_bytes: int = 5 * 1024 * 1024
    max_files: int = 1
    max_multiview_files: int = 6
    allowed_media_types: Tuple[str, ...] = ("image/*",)


@dataclass(frozen=True)
class GatewayConfig:
    upstreams: Dict[UpstreamFamily, UpstreamConfig]
    uploads: UploadLimits

    def upstream(self, family: UpstreamFamily) -> UpstreamConfig:
        return self.upstreams[family]


def build_gateway_config(source: Settings) -> GatewayConfig:
    """
    Snapshot settings into immutable values. Credentials are resolved here
    once; nothing downstream reads the environment again.
    """

    def _upstream(family: UpstreamFamily, base_url: str, key: str | None):
        return UpstreamConfig(
            family=family,
            base_url=base_url.rstrip("/"),
            api_key=(key or "").strip() or None,
            timeout=source.UPSTREAM_TIMEOUT_SECONDS,
            connect_timeout=source.UPSTREAM_CONNECT_TIMEOUT_SECONDS,
        )

    media = tuple(
        m.strip().lower() for m in source.ALLOWED_MEDIA_TYPES.split(",") if m.strip()
    )
    return GatewayConfig(
        upstreams={
            UpstreamFamily.TRIPO: _upstream(
                UpstreamFamily.TRIPO, source.TRIPO_BASE_URL, source.TRIPO_API_KEY
            ),
            UpstreamFamily.MESHY: _upstream(
                UpstreamFamily.MESHY, source.MESHY_BASE_URL, source.MESHY_API_KEY
            ),
        },
        uploads=UploadLimits(
            upload_dir=Path(source.UPLOAD_DIR),
            max_bytes=source.MAX_UPLOAD_BYTES,
            max_multiview_files=source.MAX_MULTIVIEW_FILES,
            allowed_media_types=media or ("image/*",),
        ),
    )


@lru_cache(maxsize=1)
def get_gateway_config() -> GatewayConfig:
    return build_gateway_config(settings)


def warn_missing_credentials(config: GatewayConfig) -> None:
    for family, upstream in config.upstreams.items():
        if not upstream.configured:
            _log.warning(
                "config.credential.missing family=%s requests will fail", family.value
            )
