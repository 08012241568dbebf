# util/functions.py
from typing import Any, Iterable, Mapping
from util.types import FileRef, JSONObject


def split_options(body: Mapping[str, Any], consumed: Iterable[str]) -> JSONObject:
    """
    - Collect caller options: every top-level key not in `consumed`.
    - A nested "options" mapping is flattened in (nested keys win over top-level).
    """
    skip = set(consumed) | {"options", "kind"}
    options: JSONObject = {k: v for k, v in body.items() if k not in skip}
    nested = body.get("options")
    if isinstance(nested, Mapping):
        options.update(nested)
    return options


def build_upstream_payload(
    structural: Mapping[str, Any], options: Mapping[str, Any]
) -> JSONObject:
    """
    Precedence rule: caller options are copied first, structural fields are
    written last. A caller can never override `type`, file references or any
    other structural key.
    """
    payload: JSONObject = dict(options)
    payload.update(structural)
    return payload


def file_ref_complete(ref: Any) -> bool:
    return (
        isinstance(ref, Mapping)
        and bool(ref.get("file_token"))
        and bool(ref.get("type"))
    )


def as_file_ref(ref: Mapping[str, Any]) -> FileRef:
    return {"type": str(ref["type"]), "file_token": str(ref["file_token"])}
