"""Shared fixtures: in-memory upstreams, temp upload dirs and an app wired to them."""

import io
from pathlib import Path
from typing import Callable, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from config.upstreams import GatewayConfig, UploadLimits, UpstreamConfig
from controller.controller_dependencies import get_gateway, get_upstream_transport
from core.asset_store import TemporaryAssetStore
from main import app
from util.constants import MIB
from util.enums import UpstreamFamily

TRIPO_BASE = "https://tripo.test/v2/openapi"
MESHY_BASE = "https://meshy.test"


class FakeUpload:
    """Minimal stand-in for starlette's UploadFile."""

    def __init__(self, data: bytes, filename: str = "view.png", content_type: str = "image/png"):
        self.filename = filename
        self.content_type = content_type
        self._buf = io.BytesIO(data)

    async def read(self, size: int = -1) -> bytes:
        return self._buf.read(size)


class RecordingUpstream:
    """httpx.MockTransport handler that records every request it sees."""

    def __init__(self, respond: Optional[Callable[[httpx.Request], httpx.Response]] = None):
        self.requests: List[httpx.Request] = []
        self.bodies: List[bytes] = []
        self.respond = respond or (lambda request: httpx.Response(200, json={"code": 0}))

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.bodies.append(await request.aread())
        return self.respond(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def make_upstream(
    family: UpstreamFamily, api_key: Optional[str] = "test-key"
) -> UpstreamConfig:
    base = TRIPO_BASE if family is UpstreamFamily.TRIPO else MESHY_BASE
    return UpstreamConfig(family=family, base_url=base, api_key=api_key)


def make_gateway(
    upload_dir: Path,
    tripo_key: Optional[str] = "tripo-key",
    meshy_key: Optional[str] = "meshy-key",
) -> GatewayConfig:
    return GatewayConfig(
        upstreams={
            UpstreamFamily.TRIPO: make_upstream(UpstreamFamily.TRIPO, tripo_key),
            UpstreamFamily.MESHY: make_upstream(UpstreamFamily.MESHY, meshy_key),
        },
        uploads=UploadLimits(upload_dir=upload_dir, max_bytes=5 * MIB),
    )


@pytest.fixture
def upload_dir(tmp_path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def store(upload_dir) -> TemporaryAssetStore:
    return TemporaryAssetStore(UploadLimits(upload_dir=upload_dir, max_bytes=5 * MIB))


@pytest.fixture
def upstream() -> RecordingUpstream:
    return RecordingUpstream()


@pytest.fixture
def gateway(upload_dir) -> GatewayConfig:
    return make_gateway(upload_dir)


@pytest.fixture
def client(gateway, upstream):
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_upstream_transport] = upstream.transport
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def staged_files(upload_dir: Path) -> List[Path]:
    if not upload_dir.exists():
        return []
    return sorted(upload_dir.iterdir())
