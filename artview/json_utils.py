"""JSON serialization helpers using optional orjson."""

from __future__ import annotations

try:
    import orjson  # type: ignore[import-not-found]
except ImportError:  # pragma: no cover - optional dependency
    orjson = None  # type: ignore[assignment]

import json
from enum import Enum
from typing import Any

import attrs


def _serialize_value(
    instance: Any, attribute: Any, value: Any  # noqa: ANN401
) -> Any:  # noqa: ANN401
    if isinstance(value, Enum):
        return value.value
    return value


def _keep_field(attribute: attrs.Attribute, value: object) -> bool:
    # The parsed document is runtime state, not data.
    return attribute.name != "document"


def to_data(obj: object) -> Any:  # noqa: ANN401
    """Convert articles, blocks and lists of them to plain data.

    Args:
        obj: An attrs instance, a list of them or plain data.

    Returns:
        Dictionaries, lists and scalars ready for JSON or YAML output.
    """

    if isinstance(obj, (list, tuple)):
        return [to_data(item) for item in obj]
    if attrs.has(type(obj)):
        return attrs.asdict(
            obj,  # type: ignore[arg-type]
            filter=_keep_field,
            value_serializer=_serialize_value,
        )
    if isinstance(obj, Enum):
        return obj.value
    return obj


def json_dumps(data: object) -> str:
    """Serialize data to a JSON string.

    Args:
        data: Data structure to serialize.

    Returns:
        JSON representation of ``data``.
    """

    if orjson is not None:
        return orjson.dumps(data).decode()
    return json.dumps(data, ensure_ascii=False)


def json_loads(data: str | bytes) -> object:
    """Deserialize JSON data from a string or bytes.

    Args:
        data: JSON content as ``str`` or ``bytes``.

    Returns:
        Parsed JSON object.
    """

    if orjson is not None:
        return orjson.loads(data)
    if isinstance(data, (bytes, bytearray)):
        return json.loads(data.decode())
    return json.loads(data)
