"""End-to-end tests through the FastAPI app with in-memory upstreams."""

import json
import logging

import httpx
from fastapi.testclient import TestClient

from conftest import RecordingUpstream, make_gateway, staged_files
from controller.controller_dependencies import get_gateway, get_upstream_transport
from core.streaming import sse_error_frame
from main import app


def _png(name="view.png", data=b"\x89PNG-bytes"):
    return (name, data, "image/png")


def test_healthz_reports_configured_apis(upload_dir):
    app.dependency_overrides[get_gateway] = lambda: make_gateway(upload_dir, meshy_key=None)
    try:
        res = TestClient(app).get("/healthz")
    finally:
        app.dependency_overrides.clear()

    assert res.status_code == 200
    assert res.json()["ok"] is True
    assert res.json()["apis"] == {"tripo": True, "meshy": False}


def test_unknown_route_lists_available_endpoints(client):
    res = client.get("/api/unknown")

    assert res.status_code == 404
    assert res.json()["error"] == "Resource not found"
    assert res.json()["availableEndpoints"] == ["/api/tripo", "/api/meshy", "/healthz"]


def test_wrong_method_uses_error_shape(client):
    res = client.put("/api/tripo/text-to-model", json={})

    assert res.status_code == 405
    assert res.json() == {"error": "Method Not Allowed"}
    assert "POST" in res.headers["allow"]


def test_every_request_is_logged_once(client, caplog):
    caplog.set_level(logging.INFO, logger="main")

    client.get("/healthz", headers={"Origin": "https://app.example"})

    lines = [m for m in caplog.messages if m.startswith("http.request.done")]
    assert len(lines) == 1
    assert "method=GET path=/healthz origin=https://app.example status=200" in lines[0]


# ---------------- Job proxy ----------------


def test_create_task_without_type_is_rejected_locally(client, upstream):
    res = client.post("/api/tripo/create-task", json={"prompt": "a cat"})

    assert res.status_code == 400
    assert res.json() == {"error": "Missing type parameter"}
    assert upstream.calls == 0


def test_create_task_refuses_kinds_owned_by_meshy(client, upstream):
    res = client.post(
        "/api/tripo/create-task",
        json={"type": "rigging", "model_url": "https://x/m.glb"},
    )

    assert res.status_code == 400
    assert res.json() == {
        "error": "Unsupported task type for tripo: rigging",
        "details": {"type": "rigging"},
    }
    assert upstream.calls == 0


def test_create_task_forwards_structural_fields_last(client, upstream):
    upstream.respond = lambda request: httpx.Response(
        200, json={"code": 0, "data": {"task_id": "t-1"}}
    )
    res = client.post(
        "/api/tripo/create-task",
        json={
            "type": "image_to_model",
            "file": {"type": "jpg", "file_token": "tok"},
            "texture": True,
            "options": {"type": "text_to_model", "pbr": False},
        },
    )

    assert res.status_code == 200
    assert res.json() == {"code": 0, "data": {"task_id": "t-1"}}
    sent = json.loads(upstream.bodies[0])
    assert sent == {
        "type": "image_to_model",
        "file": {"type": "jpg", "file_token": "tok"},
        "texture": True,
        "pbr": False,
    }
    assert str(upstream.requests[0].url) == "https://tripo.test/v2/openapi/task"
    assert upstream.requests[0].headers["authorization"] == "Bearer tripo-key"


def test_text_to_model_sets_type(client, upstream):
    res = client.post("/api/tripo/text-to-model", json={"prompt": "a robot"})

    assert res.status_code == 200
    assert json.loads(upstream.bodies[0]) == {"type": "text_to_model", "prompt": "a robot"}


def test_multiview_with_tokens_reports_bad_file_index(client, upstream):
    res = client.post(
        "/api/tripo/multiview-to-model-with-tokens",
        json={
            "type": "multiview_to_model",
            "files": [{"type": "jpg", "file_token": "a"}, {"type": "jpg"}],
        },
    )

    assert res.status_code == 400
    assert res.json() == {
        "error": "File 1 is missing file_token or type",
        "details": {"index": 1},
    }
    assert upstream.calls == 0


def test_generate_texture_requires_texture_type(client, upstream):
    res = client.post(
        "/api/tripo/generate-texture",
        json={"type": "text_to_model", "original_model_task_id": "t-1"},
    )

    assert res.status_code == 400
    assert res.json()["error"] == "type must be texture_model"
    assert upstream.calls == 0


def test_upstream_error_is_relayed_with_its_status(client, upstream):
    body = {"code": 2010, "message": "You don't have enough credit"}
    upstream.respond = lambda request: httpx.Response(403, json=body)

    res = client.post("/api/tripo/text-to-model", json={"prompt": "a robot"})

    assert res.status_code == 403
    assert res.json() == {"error": "You don't have enough credit", "details": body}


def test_unreachable_upstream_is_500(client, upstream):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    upstream.respond = refuse
    res = client.post("/api/tripo/text-to-model", json={"prompt": "a robot"})

    assert res.status_code == 500
    assert res.json() == {"error": "connection refused"}


def test_rig_defaults_height_and_uses_meshy_credential(client, upstream):
    upstream.respond = lambda request: httpx.Response(200, json={"result": "r-1"})

    res = client.post("/api/meshy/rig", json={"model_url": "https://x/m.glb"})

    assert res.json() == {"result": "r-1"}
    request = upstream.requests[0]
    assert str(request.url) == "https://meshy.test/openapi/v1/rigging"
    assert request.headers["authorization"] == "Bearer meshy-key"
    assert json.loads(upstream.bodies[0]) == {
        "model_url": "https://x/m.glb",
        "height_meters": 1.8,
    }


def test_missing_meshy_credential_never_reaches_network(upload_dir):
    upstream = RecordingUpstream()
    app.dependency_overrides[get_gateway] = lambda: make_gateway(upload_dir, meshy_key=None)
    app.dependency_overrides[get_upstream_transport] = upstream.transport
    try:
        res = TestClient(app).post("/api/meshy/rig", json={"model_url": "https://x/m.glb"})
    finally:
        app.dependency_overrides.clear()

    assert res.status_code == 500
    assert res.json() == {"error": "Upstream credential is not configured: meshy"}
    assert upstream.calls == 0


# ---------------- Uploads ----------------


def test_multiview_upload_sends_images_and_cleans_up(client, upstream, upload_dir):
    res = client.post(
        "/api/tripo/multiview-to-model",
        files=[("images", _png("front.png", b"front")), ("images", _png("side.png", b"side"))],
        data={"prompt": "a chair"},
    )

    assert res.status_code == 200
    body = upstream.bodies[0]
    assert body.count(b'name="images"') == 2
    assert b"a chair" in body
    assert b"multiview_to_model" in body
    assert staged_files(upload_dir) == []


def test_multiview_upload_cleans_up_when_upstream_fails(client, upstream, upload_dir):
    upstream.respond = lambda request: httpx.Response(502, text="bad gateway")

    res = client.post("/api/tripo/multiview-to-model", files=[("images", _png())])

    assert res.status_code == 502
    assert res.json()["error"] == "bad gateway"
    assert staged_files(upload_dir) == []


def test_multiview_upload_rejects_seven_images(client, upstream, upload_dir):
    files = [("images", _png(f"{i}.png")) for i in range(7)]

    res = client.post("/api/tripo/multiview-to-model", files=files)

    assert res.status_code == 400
    assert res.json()["details"] == {"received": 7, "max": 6}
    assert upstream.calls == 0
    assert staged_files(upload_dir) == []


def test_multiview_upload_without_images(client, upstream):
    res = client.post("/api/tripo/multiview-to-model", data={"prompt": "x"})

    assert res.status_code == 400
    assert res.json() == {"error": "No file uploaded"}
    assert upstream.calls == 0


def test_upload_sts_relays_token_and_cleans_up(client, upstream, upload_dir):
    upstream.respond = lambda request: httpx.Response(
        200, json={"code": 0, "data": {"image_token": "img-tok"}}
    )

    res = client.post("/api/tripo/upload/sts", files={"file": _png()})

    assert res.json() == {"code": 0, "data": {"image_token": "img-tok"}}
    assert str(upstream.requests[0].url) == "https://tripo.test/v2/openapi/upload/sts"
    assert b'name="file"' in upstream.bodies[0]
    assert staged_files(upload_dir) == []


def test_upload_sts_rejects_oversized_file(client, upstream, upload_dir):
    big = b"x" * (5 * 1024 * 1024 + 1)

    res = client.post("/api/tripo/upload/sts", files={"file": _png("big.png", big)})

    assert res.status_code == 413
    assert upstream.calls == 0
    assert staged_files(upload_dir) == []


def test_test_upload_describes_and_releases(client, upstream, upload_dir):
    res = client.post("/api/tripo/test-upload", files={"file": _png("cat.png", b"meow")})

    assert res.status_code == 200
    payload = res.json()
    assert payload["success"] is True
    assert payload["file"]["originalname"] == "cat.png"
    assert payload["file"]["mimetype"] == "image/png"
    assert payload["file"]["size"] == 4
    assert upstream.calls == 0
    assert staged_files(upload_dir) == []


def test_test_upload_rejects_non_image(client, upload_dir):
    res = client.post(
        "/api/tripo/test-upload", files={"file": ("notes.txt", b"hi", "text/plain")}
    )

    assert res.status_code == 400
    assert res.json()["details"] == {"mediaType": "text/plain"}
    assert staged_files(upload_dir) == []


# ---------------- Status relay ----------------


def test_status_is_fetched_fresh_every_time(client, upstream):
    answers = iter(
        [
            {"code": 0, "data": {"task_id": "t-1", "status": "running", "progress": 10}},
            {"code": 0, "data": {"task_id": "t-1", "status": "running", "progress": 55}},
        ]
    )
    upstream.respond = lambda request: httpx.Response(200, json=next(answers))

    first = client.get("/api/tripo/status/t-1")
    second = client.get("/api/tripo/status/t-1")

    assert first.json()["data"]["progress"] == 10
    assert second.json()["data"]["progress"] == 55
    assert upstream.calls == 2
    assert str(upstream.requests[0].url) == "https://tripo.test/v2/openapi/task/t-1"


def test_list_tasks_passes_pagination(client, upstream):
    client.get("/api/tripo/task", params={"limit": 5, "offset": 10})
    client.get("/api/tripo/task")

    assert upstream.requests[0].url.params["limit"] == "5"
    assert upstream.requests[0].url.params["offset"] == "10"
    assert upstream.requests[1].url.params["limit"] == "20"
    assert upstream.requests[1].url.params["offset"] == "0"


def test_list_tasks_forwards_pagination_verbatim(client, upstream):
    res = client.get("/api/tripo/task", params={"limit": "many", "offset": "-1"})

    assert res.status_code == 200
    assert upstream.requests[0].url.params["limit"] == "many"
    assert upstream.requests[0].url.params["offset"] == "-1"


def test_non_object_json_body_is_rejected_locally(client, upstream):
    res = client.post("/api/tripo/text-to-model", json=["a robot"])

    assert res.status_code == 400
    assert res.json()["error"] == "Invalid request parameters"
    assert upstream.calls == 0


def test_status_handle_is_escaped_into_one_path_segment(client, upstream):
    client.get("/api/tripo/status/t-1%3Flimit%3D999")
    client.delete("/api/tripo/task/t-1%23frag")

    status_url, cancel_url = (r.url for r in upstream.requests)
    assert status_url.raw_path == b"/v2/openapi/task/t-1%3Flimit%3D999"
    assert not status_url.params
    assert cancel_url.raw_path == b"/v2/openapi/task/t-1%23frag"
    assert upstream.requests[1].method == "DELETE"


def test_cancel_task_issues_delete(client, upstream):
    res = client.delete("/api/tripo/task/t-9")

    assert res.status_code == 200
    assert upstream.requests[0].method == "DELETE"
    assert str(upstream.requests[0].url) == "https://tripo.test/v2/openapi/task/t-9"


def test_rig_status_relays_meshy_body(client, upstream):
    upstream.respond = lambda request: httpx.Response(
        200, json={"id": "r-1", "status": "SUCCEEDED", "progress": 100}
    )

    res = client.get("/api/meshy/rig/status/r-1")

    assert res.json() == {"id": "r-1", "status": "SUCCEEDED", "progress": 100}
    assert str(upstream.requests[0].url) == "https://meshy.test/openapi/v1/rigging/r-1"


def test_status_not_found_is_relayed(client, upstream):
    upstream.respond = lambda request: httpx.Response(404, json={"message": "Task not found"})

    res = client.get("/api/meshy/rig/status/missing")

    assert res.status_code == 404
    assert res.json()["error"] == "Task not found"


# ---------------- Stream relay ----------------


def test_rig_stream_relays_events_then_completes(client, upstream):
    async def events():
        yield b"data: E1\n\n"
        yield b"data: E2\n\n"

    upstream.respond = lambda request: httpx.Response(
        200, headers={"content-type": "text/event-stream"}, content=events()
    )

    res = client.get("/api/meshy/rig/stream/r-1")

    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/event-stream")
    assert res.headers["cache-control"] == "no-cache"
    assert res.content == b"data: E1\n\ndata: E2\n\n"
    assert str(upstream.requests[0].url) == "https://meshy.test/openapi/v1/rigging/r-1/stream"


def test_rig_stream_handle_is_escaped(client, upstream):
    upstream.respond = lambda request: httpx.Response(200, content=b"data: E1\n\n")

    res = client.get("/api/meshy/rig/stream/r-1%3Fx%3D1")

    assert res.status_code == 200
    url = upstream.requests[0].url
    assert url.raw_path == b"/openapi/v1/rigging/r-1%3Fx%3D1/stream"
    assert not url.params


def test_rig_stream_reports_connect_failure_in_band(client, upstream):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    upstream.respond = refuse

    res = client.get("/api/meshy/rig/stream/r-1")

    assert res.status_code == 200
    assert res.content == sse_error_frame("connection refused")


def test_rig_stream_reports_upstream_status_in_band(client, upstream):
    upstream.respond = lambda request: httpx.Response(404, json={"message": "Task not found"})

    res = client.get("/api/meshy/rig/stream/r-1")

    assert res.status_code == 200
    assert res.content == b'event: error\ndata: {"error":"Task not found"}\n\n'


def test_rig_stream_missing_credential_is_in_band(upload_dir):
    upstream = RecordingUpstream()
    app.dependency_overrides[get_gateway] = lambda: make_gateway(upload_dir, meshy_key=None)
    app.dependency_overrides[get_upstream_transport] = upstream.transport
    try:
        res = TestClient(app).get("/api/meshy/rig/stream/r-1")
    finally:
        app.dependency_overrides.clear()

    assert res.status_code == 200
    assert res.content == sse_error_frame("Upstream credential is not configured: meshy")
    assert upstream.calls == 0
