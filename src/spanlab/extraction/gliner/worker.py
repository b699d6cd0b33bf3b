"""Worker process hosting the open-vocabulary model.

The worker owns the model for its whole lifetime. It reads requests from its
end of the pipe, answers each one with a response carrying the same id, and
exits when the pipe closes or it receives ``None``.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from spanlab.extraction.gliner.model import WARMUP_TEXT, load_model, predict
from spanlab.extraction.gliner.protocol import (
    WorkerConfig,
    WorkerRequest,
    WorkerResponse,
    error_response,
    ok_response,
)

logger = logging.getLogger(__name__)


class _WorkerState:
    def __init__(self, config: WorkerConfig):
        self.config = config
        self.model: Any = None

    def ensure_model(self) -> Any:
        if self.model is None:
            self.model = load_model(self.config)
        return self.model

    def infer(self, text: str, threshold: float | None = None) -> list[dict]:
        config = self.config
        return predict(
            self.ensure_model(),
            text,
            config["labels"],
            config["label_map"],
            threshold if threshold is not None else config["threshold"],
            config["label_thresholds"],
            config["multi_label"],
        )

    def handle(self, request: WorkerRequest) -> WorkerResponse:
        request_id = request.get("id", -1)
        request_type = request.get("type")
        payload = request.get("payload") or {}

        try:
            if request_type == "initialize":
                self.ensure_model()
                return ok_response(request_id, True)
            if request_type == "warmup":
                detections = self.infer(WARMUP_TEXT)
                return ok_response(request_id, {"detections": len(detections)})
            if request_type == "inference":
                text = payload.get("text", "")
                if not isinstance(text, str):
                    return error_response(request_id, "payload.text must be a string")
                detections = self.infer(text, payload.get("threshold"))
                return ok_response(request_id, {"detections": detections})
            return error_response(request_id, f"unknown request type {request_type!r}")
        except Exception as e:
            logger.exception(f"[GlinerWorker] Request {request_id} ({request_type}) failed")
            return error_response(request_id, f"{type(e).__name__}: {e}")


def run_worker(conn, config: WorkerConfig) -> None:
    """Process entry point: serve requests until the pipe closes."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"[GlinerWorker] Started (pid={os.getpid()}, model={config['model']})")
    state = _WorkerState(config)

    while True:
        try:
            request = conn.recv()
        except (EOFError, OSError):
            break
        if request is None:
            break
        response = state.handle(request)
        try:
            conn.send(response)
        except (BrokenPipeError, OSError):
            break

    logger.info("[GlinerWorker] Exiting")
    conn.close()
