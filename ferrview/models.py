"""Wire types shared by the node agent and the collector, and request validation."""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, fields
from typing import Any

_MAX_REQUEST_SIZE = 10 * 1024 * 1024


def _dumps(obj: Any) -> str:
    return json.dumps(obj, separators=(",", ":"), ensure_ascii=False)


@dataclass
class ProbeDataPoint:
    """One measurement taken by a probe on a node."""

    node_id: str
    timestamp: str
    probe_type: str
    probe_name: str
    probe_value: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ProbeDataPoint:
        """Build a point from a mapping; raise ValueError if a field is missing or not a string."""
        if not isinstance(data, Mapping):
            raise ValueError("probe data point must be an object")
        values = {}
        for f in fields(cls):
            if f.name not in data:
                raise ValueError(f"missing field `{f.name}`")
            value = data[f.name]
            if not isinstance(value, str):
                raise ValueError(f"field `{f.name}` must be a string")
            values[f.name] = value
        return cls(**values)

    def to_json(self) -> str:
        return _dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str | bytes) -> ProbeDataPoint:
        return cls.from_dict(json.loads(text))


@dataclass
class ProbeDataBatch:
    """Request payload for probe data submission."""

    data: list[ProbeDataPoint] = field(default_factory=list)

    @classmethod
    def from_json(cls, raw: str | bytes) -> ProbeDataBatch:
        """Parse a batch; raise ValueError on malformed JSON or structure."""
        payload = json.loads(raw)
        if not isinstance(payload, dict):
            raise ValueError("batch must be an object")
        if "data" not in payload:
            raise ValueError("missing field `data`")
        items = payload["data"]
        if not isinstance(items, list):
            raise ValueError("field `data` must be an array")
        return cls([ProbeDataPoint.from_dict(item) for item in items])

    def to_json(self) -> str:
        return _dumps({"data": [point.to_dict() for point in self.data]})


@dataclass
class SuccessResponse:
    """Standard success response."""

    status: str

    def to_json(self) -> str:
        return _dumps(asdict(self))


@dataclass
class HealthResponse:
    """Health check response."""

    status: str
    version: str
    max_request_size_bytes: int

    def to_json(self) -> str:
        return _dumps(asdict(self))


class RequestTooLargeError(ValueError):
    """A request body exceeds the maximum allowed size."""

    def __init__(self, size: int, max_size: int) -> None:
        self.size = size
        self.max = max_size
        super().__init__(f"Request too large: {size} bytes (max: {max_size})")


def validate_request_size(body_size: int) -> None:
    """Raise RequestTooLargeError if body_size exceeds the maximum request size."""
    if body_size > _MAX_REQUEST_SIZE:
        raise RequestTooLargeError(body_size, _MAX_REQUEST_SIZE)


def max_request_size() -> int:
    """Maximum allowed request size in bytes."""
    return _MAX_REQUEST_SIZE