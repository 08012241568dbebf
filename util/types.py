from typing import Any, Dict, Literal, TypedDict


# Flow: Narrow types for payload fragments exchanged with upstream.
JSONObject = Dict[str, Any]
FileInput = Literal["file", "files"]


class FileRef(TypedDict):
    type: str
    file_token: str
