import copy
import json
import logging
import math
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Protocol, Union, runtime_checkable

from jobrow.errors import ValidationError


logger = logging.getLogger(__name__)


JsonValue = Union[
    dict[str, "JsonValue"],
    list["JsonValue"],
    str,
    int,
    float,
    bool,
    None,
]


@runtime_checkable
class JobArgsLike(Protocol):
    """Anything that can be inserted as job args.

    An args class only needs a ``kind`` naming the handler that works it and
    a ``to_json()`` method returning the JSON object to persist.
    """

    kind: str

    def to_json(self) -> str: ...


def _validate_value(value: Any, path: str) -> None:
    if value is None or isinstance(value, (str, bool, int)):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError("args", f"Non-finite number at {path}")
        return
    if isinstance(value, list):
        for index, item in enumerate(value):
            _validate_value(item, f"{path}[{index}]")
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValidationError(
                    "args", f"Object key {key!r} at {path} must be a string"
                )
            _validate_value(item, f"{path}.{key}")
        return
    raise ValidationError(
        "args",
        f"Unsupported value of type {type(value).__name__} at {path}",
    )


def validate_kind(kind: Any) -> str:
    if not kind or not isinstance(kind, str):
        raise ValidationError("kind", "Kind must be a non-empty string")
    return kind


def validate_payload(payload: Any) -> dict[str, JsonValue]:
    if payload is None:
        raise ValidationError("args", "Payload must not be None")
    if not isinstance(payload, Mapping):
        raise ValidationError("args", "Payload must be a mapping")
    payload = dict(payload)
    _validate_value(payload, "$")
    return copy.deepcopy(payload)


def freeze(value: JsonValue) -> Any:
    """Read-only view of a decoded payload.

    Objects become mapping proxies and arrays become tuples.
    """
    if isinstance(value, Mapping):
        return MappingProxyType(
            {key: freeze(item) for key, item in value.items()}
        )
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> JsonValue:
    """Mutable copy of a frozen payload, the inverse of ``freeze()``."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(item) for item in value]
    return value


class JobArgs:
    """Job args built from a plain mapping.

    Provides a way of inserting a job without defining a dedicated args
    class. The ``kind`` identifies the job in storage and selects the
    handler; the payload is encoded to JSON.
    """

    def __init__(self, kind: str, payload: Mapping[str, JsonValue]) -> None:
        self._kind = validate_kind(kind)
        self._payload = validate_payload(payload)

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def payload(self) -> dict[str, JsonValue]:
        return self._payload

    def to_json(self) -> str:
        return json.dumps(
            self._payload,
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            allow_nan=False,
        )

    def encode(self) -> bytes:
        return self.to_json().encode("utf-8")

    def __repr__(self) -> str:
        return f"JobArgs(kind={self._kind!r}, payload={self._payload!r})"


def encode(kind: str, payload: Mapping[str, JsonValue]) -> bytes:
    """Validate ``kind`` and ``payload`` and serialize the payload."""
    return JobArgs(kind, payload).encode()


def encode_args(args: JobArgsLike) -> tuple[str, str]:
    """Return the kind and JSON text of any args object."""
    kind = validate_kind(getattr(args, "kind", None))
    try:
        serialized = args.to_json()
    except (TypeError, ValueError) as exc:
        raise ValidationError("args", f"Failed to encode args: {exc}") from exc
    if not isinstance(serialized, str):
        raise ValidationError("args", "to_json() must return a string")

    # Args classes are free to build their own JSON, but it must still
    # be an object that the model can decode back.
    decoded = decode(serialized)
    if not isinstance(decoded, dict):
        raise ValidationError("args", "Args must encode to a JSON object")
    return kind, serialized


def decode(data: bytes | str) -> JsonValue:
    if isinstance(data, bytes):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValidationError("args", f"Args are not valid UTF-8: {exc}") from exc
    if not isinstance(data, str):
        raise ValidationError("args", "Encoded args must be bytes or str")

    try:
        return json.loads(data)
    except json.JSONDecodeError as exc:
        logger.debug(f"Failed to deserialize args using JSON: {data}")
        raise ValidationError("args", f"Args are not valid JSON: {exc}") from exc
