from typing import Final

MIB: Final[int] = 1024 * 1024
CHUNK_SIZE: Final[int] = MIB
DEFAULT_LIST_LIMIT: Final[int] = 20
DEFAULT_LIST_OFFSET: Final[int] = 0
DEFAULT_RIG_HEIGHT_METERS: Final[float] = 1.8


class InternalURIs:
    API = "/api"
    HEALTH = "/healthz"

    TRIPO = API + "/tripo"
    TEST_UPLOAD = "/test-upload"
    TEXT_TO_MODEL = "/text-to-model"
    CREATE_TASK = "/create-task"
    MULTIVIEW_TO_MODEL = "/multiview-to-model"
    MULTIVIEW_WITH_TOKENS = "/multiview-to-model-with-tokens"
    TASK_STATUS = "/status/{task_id}"
    TASKS = "/task"
    TASK = "/task/{task_id}"
    UPLOAD_STS = "/upload/sts"
    GENERATE_TEXTURE = "/generate-texture"

    MESHY = API + "/meshy"
    RIG = "/rig"
    RIG_STATUS = "/rig/status/{task_id}"
    RIG_STREAM = "/rig/stream/{task_id}"


class ExternalURIs:
    # Paths relative to each family's base URL
    TRIPO_TASK = "/task"
    TRIPO_UPLOAD_STS = "/upload/sts"
    MESHY_RIGGING = "/openapi/v1/rigging"
