"""Message types exchanged with the open-vocabulary worker process.

Requests and responses travel over a ``multiprocessing`` pipe as plain dicts.

Request:  ``{"id": 7, "type": "inference", "payload": {"text": "..."}}``
Response: ``{"id": 7, "ok": true, "result": {"detections": [...]}}``
          ``{"id": 7, "ok": false, "error": "RuntimeError: ..."}``
"""

from __future__ import annotations

from typing import Any, Literal, TypedDict

RequestType = Literal["initialize", "warmup", "inference"]


class WorkerRequest(TypedDict):
    id: int
    type: RequestType
    payload: dict[str, Any]


class _WorkerResponseRequired(TypedDict):
    id: int
    ok: bool


class WorkerResponse(_WorkerResponseRequired, total=False):
    result: Any
    error: str


class WorkerConfig(TypedDict):
    """Spawn-time worker configuration. Sent once, never per request."""

    model: str
    loader: str
    labels: list[str]
    label_map: dict[str, str]
    label_thresholds: dict[str, float]
    threshold: float
    timeout_ms: int
    max_width: int
    multi_label: bool
    torch_threads: int


class Detection(TypedDict):
    text: str
    label: str
    role: str
    score: float
    confidence: float
    start: int
    end: int


def make_request(request_id: int, request_type: RequestType, payload: dict[str, Any] | None = None) -> WorkerRequest:
    return {"id": request_id, "type": request_type, "payload": payload or {}}


def ok_response(request_id: int, result: Any) -> WorkerResponse:
    return {"id": request_id, "ok": True, "result": result}


def error_response(request_id: int, error: str) -> WorkerResponse:
    return {"id": request_id, "ok": False, "error": error}
