from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Literal, Mapping, Optional, Tuple
from pydantic import BaseModel
from util.constants import ExternalURIs
from util.enums import UpstreamFamily
from util.types import FileInput


class JobKind(str, Enum):
    text_to_model = "text_to_model"
    image_to_model = "image_to_model"
    multiview_to_model = "multiview_to_model"
    texture_model = "texture_model"
    rigging = "rigging"

    @classmethod
    def parse(cls, raw: Any) -> Optional["JobKind"]:
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip())
        except ValueError:
            return None


@dataclass(frozen=True)
class KindSpec:
    family: UpstreamFamily
    path: str
    required: Tuple[str, ...] = ()
    file_input: Optional[FileInput] = None
    # meshy endpoints are typed by URL, not by a "type" body field
    sends_type: bool = True


KIND_SPECS: Dict[JobKind, KindSpec] = {
    JobKind.text_to_model: KindSpec(
        UpstreamFamily.TRIPO, ExternalURIs.TRIPO_TASK, required=("prompt",)
    ),
    JobKind.image_to_model: KindSpec(
        UpstreamFamily.TRIPO, ExternalURIs.TRIPO_TASK, file_input="file"
    ),
    JobKind.multiview_to_model: KindSpec(
        UpstreamFamily.TRIPO, ExternalURIs.TRIPO_TASK, file_input="files"
    ),
    JobKind.texture_model: KindSpec(
        UpstreamFamily.TRIPO,
        ExternalURIs.TRIPO_TASK,
        required=("original_model_task_id",),
    ),
    JobKind.rigging: KindSpec(
        UpstreamFamily.MESHY,
        ExternalURIs.MESHY_RIGGING,
        required=("model_url",),
        sends_type=False,
    ),
}


JobState = Literal[
    "pending",
    "running",
    "succeeded",
    "failed",
    "cancelled",
    "unknown",
]

_STATE_ALIASES: Dict[str, JobState] = {
    "queued": "pending",
    "pending": "pending",
    "running": "running",
    "in_progress": "running",
    "success": "succeeded",
    "succeeded": "succeeded",
    "failed": "failed",
    "banned": "failed",
    "expired": "failed",
    "cancelled": "cancelled",
    "canceled": "cancelled",
}


class JobStatus(BaseModel):
    """Normalized view of one upstream status answer. Recomputed per query."""

    handle: str
    state: JobState
    progress: Optional[int] = None
    result: Optional[Any] = None
    error: Optional[str] = None


def normalize_status(handle: str, body: Any) -> JobStatus:
    """
    Fold tripo ({"code", "data": {...}}) and meshy (flat object) status
    shapes into a JobStatus.
    """
    node: Mapping[str, Any] = {}
    if isinstance(body, Mapping):
        data = body.get("data")
        node = data if isinstance(data, Mapping) else body

    raw_state = str(node.get("status") or "").strip().lower()
    state: JobState = _STATE_ALIASES.get(raw_state, "unknown")

    progress = node.get("progress")
    if not isinstance(progress, (int, float)) or isinstance(progress, bool):
        progress = None

    result = node.get("output") or node.get("result")

    error = None
    task_error = node.get("task_error") or node.get("error")
    if isinstance(task_error, Mapping):
        error = task_error.get("message") or None
    elif isinstance(task_error, str):
        error = task_error or None

    return JobStatus(
        handle=handle,
        state=state,
        progress=int(progress) if progress is not None else None,
        result=result,
        error=error,
    )
