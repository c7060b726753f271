import json

import pytest

from jobrow import JobArgs, ValidationError
from jobrow.models.job_args import decode, encode, encode_args


def test_encode_decode_structured_payload():
    payload = {
        "to": "user@example.com",
        "count": 3,
        "ratio": 0.25,
        "urgent": True,
        "cc": None,
        "attachments": [{"name": "a.pdf", "size": 1024}, "inline", 7, False],
        "meta": {"nested": {"deeper": ["x", {"y": None}]}},
        "unicode": "héllo ✓",
    }

    assert decode(encode("send_email", payload)) == payload


def test_encode_is_deterministic():
    first = encode("send_email", {"b": 1, "a": {"d": 2, "c": 3}})
    second = encode("send_email", {"a": {"c": 3, "d": 2}, "b": 1})

    assert first == second
    assert first == b'{"a":{"c":3,"d":2},"b":1}'


def test_encode_empty_payload():
    assert decode(encode("noop", {})) == {}


@pytest.mark.parametrize("kind", ["", None, 42])
def test_invalid_kind(kind):
    with pytest.raises(ValidationError) as exc_info:
        encode(kind, {"foo": "bar"})
    assert exc_info.value.field == "kind"


def test_missing_payload():
    with pytest.raises(ValidationError) as exc_info:
        JobArgs("send_email", None)
    assert exc_info.value.field == "args"


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "a", "mapping"],
        "string",
        {"when": object()},
        {"values": (1, 2)},
        {1: "non-string key"},
        {"nan": float("nan")},
        {"inf": [float("inf")]},
    ],
)
def test_unsupported_payload(payload):
    with pytest.raises(ValidationError) as exc_info:
        JobArgs("send_email", payload)
    assert exc_info.value.field == "args"


def test_job_args_properties():
    args = JobArgs("send_email", {"to": "user@example.com"})

    assert args.kind == "send_email"
    assert args.payload == {"to": "user@example.com"}
    assert json.loads(args.to_json()) == {"to": "user@example.com"}
    assert args.encode() == args.to_json().encode("utf-8")


def test_job_args_copies_payload():
    payload = {"to": "user@example.com"}
    args = JobArgs("send_email", payload)
    payload["to"] = "other@example.com"

    assert args.payload == {"to": "user@example.com"}


def test_encode_args_accepts_custom_args_class():
    class ResizeImageArgs:
        kind = "resize_image"

        def __init__(self, path: str, width: int) -> None:
            self.path = path
            self.width = width

        def to_json(self) -> str:
            return json.dumps({"path": self.path, "width": self.width})

    kind, serialized = encode_args(ResizeImageArgs("/tmp/a.png", 640))

    assert kind == "resize_image"
    assert decode(serialized) == {"path": "/tmp/a.png", "width": 640}


def test_encode_args_rejects_non_object_json():
    class ListArgs:
        kind = "list"

        def to_json(self) -> str:
            return "[1, 2, 3]"

    with pytest.raises(ValidationError) as exc_info:
        encode_args(ListArgs())
    assert exc_info.value.field == "args"


@pytest.mark.parametrize("data", [b"{not json", "", b"\xff\xfe"])
def test_decode_invalid(data):
    with pytest.raises(ValidationError) as exc_info:
        decode(data)
    assert exc_info.value.field == "args"


def test_decode_accepts_text():
    assert decode('{"foo": "bar"}') == {"foo": "bar"}
