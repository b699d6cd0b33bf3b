"""Tier 2: open-vocabulary spans from the GLiNER model.

Failures never reach the caller: a timeout, a crashed worker or a model that
will not load all yield zero candidates and a warning.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Protocol

from spanlab.extraction.config import GlinerConfig
from spanlab.extraction.errors import (
    OpenVocabularyError,
    WorkerRequestError,
    WorkerTimeoutError,
    WorkerUnavailableError,
)
from spanlab.extraction.gliner.client import GlinerWorkerClient
from spanlab.extraction.gliner.model import WARMUP_TEXT, load_model, predict
from spanlab.extraction.gliner.protocol import Detection, WorkerConfig
from spanlab.extraction.types import CandidateSpan

logger = logging.getLogger(__name__)


class OpenVocabularyBackend(Protocol):
    @property
    def is_ready(self) -> bool:
        ...

    def ensure_ready(self) -> bool:
        ...

    def infer(self, text: str, timeout_ms: int | None = None) -> list[Detection]:
        ...

    def warmup(self) -> bool:
        ...

    def close(self) -> None:
        ...


class InProcessGliner:
    """Backend that runs the model in this process.

    Inference runs on a single background thread so the per-request timeout
    still applies; a timed-out inference keeps running until it finishes.
    """

    def __init__(self, config: WorkerConfig):
        self.config = config
        self._lock = threading.Lock()
        self._model: Any = None
        self._init_failed = False
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="spanlab-gliner")

    @property
    def is_ready(self) -> bool:
        return self._model is not None

    def ensure_ready(self) -> bool:
        with self._lock:
            if self._model is not None:
                return True
            if self._init_failed:
                return False
            try:
                self._model = load_model(self.config)
            except Exception as e:
                self._init_failed = True
                logger.error(f"[InProcessGliner] Model load failed: {e}")
                return False
            return True

    def _predict(self, text: str) -> list[Detection]:
        c = self.config
        return predict(
            self._model, text, c["labels"], c["label_map"], c["threshold"],
            c["label_thresholds"], c["multi_label"],
        )

    def infer(self, text: str, timeout_ms: int | None = None) -> list[Detection]:
        if not self.ensure_ready():
            raise WorkerUnavailableError("model is not loaded")
        timeout_ms = timeout_ms if timeout_ms is not None else self.config["timeout_ms"]
        future = self._executor.submit(self._predict, text)
        try:
            return future.result(timeout=timeout_ms / 1000 if timeout_ms and timeout_ms > 0 else None)
        except FutureTimeoutError:
            future.cancel()
            raise WorkerTimeoutError(0, "inference", timeout_ms) from None
        except Exception as e:
            raise WorkerRequestError(f"{type(e).__name__}: {e}") from e

    def warmup(self) -> bool:
        if not self.ensure_ready():
            return False
        try:
            self._predict(WARMUP_TEXT)
        except Exception as e:
            logger.warning(f"[InProcessGliner] Warmup inference failed: {e}")
        return True

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


class OpenVocabularyExtractor:
    """Turn model detections into candidate spans.

    Args:
        config: Tier 2 settings.
        backend: Optional backend override; by default a worker process
            client, or an in-process model when ``use_worker`` is off.
    """

    def __init__(self, config: GlinerConfig | None = None, backend: OpenVocabularyBackend | None = None):
        self.config = config or GlinerConfig()
        if backend is None:
            worker_config = self.config.to_worker_config()
            if self.config.use_worker:
                backend = GlinerWorkerClient(worker_config, init_timeout_ms=self.config.effective_init_timeout_ms)
            else:
                backend = InProcessGliner(worker_config)
        self.backend = backend

    @property
    def is_ready(self) -> bool:
        return self.backend.is_ready

    def warmup(self) -> bool:
        try:
            return self.backend.warmup()
        except OpenVocabularyError as e:
            logger.warning(f"[OpenVocab] Warmup failed: {e}")
            return False

    def extract(self, text: str, timeout_ms: int | None = None) -> list[CandidateSpan]:
        if not text or not text.strip():
            return []

        try:
            detections = self.backend.infer(text, timeout_ms if timeout_ms is not None else self.config.timeout_ms)
        except OpenVocabularyError as e:
            logger.warning(f"[OpenVocab] Skipping open-vocabulary extraction: {e}")
            return []

        spans: list[CandidateSpan] = []
        for d in detections:
            start, end = int(d["start"]), int(d["end"])
            if start < 0 or end <= start or end > len(text):
                logger.debug(f"[OpenVocab] Dropping out-of-range detection {d!r}")
                continue
            spans.append(
                CandidateSpan(
                    text=text[start:end],
                    role=d["role"],
                    confidence=float(d["confidence"]),
                    start=start,
                    end=end,
                    source="open-vocab",
                )
            )
        logger.debug(f"[OpenVocab] {len(spans)} detections")
        return spans

    def close(self) -> None:
        self.backend.close()
