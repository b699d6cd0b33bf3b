"""Client side of the open-vocabulary worker RPC.

One worker process per client. Requests carry a monotonically increasing id;
a reader thread routes each response to the ``Future`` registered under that
id. A request that times out is forgotten (a late response for it is
ignored) but the worker keeps running. If the worker exits or its pipe
breaks, every pending request fails with ``WorkerCrashedError`` and the
handle is cleared so the next call starts a fresh worker.
"""

from __future__ import annotations

import itertools
import logging
import multiprocessing
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from multiprocessing.connection import wait
from typing import Any

from spanlab.extraction.errors import (
    OpenVocabularyError,
    WorkerCrashedError,
    WorkerRequestError,
    WorkerTimeoutError,
    WorkerUnavailableError,
)
from spanlab.extraction.gliner.protocol import Detection, RequestType, WorkerConfig, make_request
from spanlab.extraction.gliner.worker import run_worker

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_S = 2.0


class GlinerWorkerClient:
    """RPC client for a GLiNER worker process.

    Args:
        config: Spawn-time worker configuration.
        init_timeout_ms: Timeout for the ``initialize`` request (model load).
        start_method: ``multiprocessing`` start method. ``spawn`` keeps torch
            state out of the parent.
    """

    def __init__(self, config: WorkerConfig, init_timeout_ms: int = 60000, start_method: str = "spawn"):
        self.config = config
        self.init_timeout_ms = init_timeout_ms
        self._ctx = multiprocessing.get_context(start_method)
        self._lock = threading.RLock()
        self._send_lock = threading.Lock()
        self._ids = itertools.count(1)
        self._pending: dict[int, Future] = {}
        self._process = None
        self._conn = None
        self._reader: threading.Thread | None = None
        self._init_future: Future | None = None
        self._ready = False
        self._init_failed = False
        self._closing = False

    @property
    def is_ready(self) -> bool:
        return self._ready and not self._init_failed

    @property
    def init_failed(self) -> bool:
        return self._init_failed

    @property
    def pid(self) -> int | None:
        process = self._process
        return process.pid if process is not None else None

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    # -- process lifecycle -------------------------------------------------

    def _start(self):
        with self._lock:
            if self._process is not None and self._process.is_alive():
                return self._conn
            try:
                parent_conn, child_conn = self._ctx.Pipe(duplex=True)
                process = self._ctx.Process(
                    target=run_worker,
                    args=(child_conn, self.config),
                    name="spanlab-gliner-worker",
                    daemon=True,
                )
                process.start()
                child_conn.close()
            except Exception as e:
                logger.error(f"[GlinerClient] Failed to start worker: {e}")
                raise WorkerUnavailableError(f"failed to start worker: {e}") from e

            self._process = process
            self._conn = parent_conn
            self._reader = threading.Thread(
                target=self._read_loop,
                args=(process, parent_conn),
                name="spanlab-gliner-reader",
                daemon=True,
            )
            self._reader.start()
            logger.info(f"[GlinerClient] Started worker pid={process.pid}")
            return parent_conn

    def _read_loop(self, process, conn) -> None:
        reason = "worker channel closed"
        try:
            while True:
                ready = wait([conn, process.sentinel])
                if conn in ready:
                    self._dispatch(conn.recv())
                elif process.sentinel in ready:
                    process.join(0.1)
                    reason = f"worker exited with code {process.exitcode}"
                    break
        except (EOFError, OSError) as e:
            if process.exitcode is not None:
                reason = f"worker exited with code {process.exitcode}"
            elif not isinstance(e, EOFError):
                reason = f"worker channel error: {e}"
        finally:
            self._handle_exit(process, reason)

    def _dispatch(self, response: Any) -> None:
        if not isinstance(response, dict):
            logger.warning(f"[GlinerClient] Ignoring malformed response: {response!r}")
            return
        with self._lock:
            future = self._pending.pop(response.get("id"), None)
        if future is None:
            logger.debug(f"[GlinerClient] Ignoring response for unknown request {response.get('id')}")
            return
        if response.get("ok"):
            future.set_result(response.get("result"))
        else:
            future.set_exception(WorkerRequestError(response.get("error") or "worker request failed"))

    def _handle_exit(self, process, reason: str) -> None:
        with self._lock:
            if self._process is not process:
                return
            self._process = None
            self._conn = None
            self._ready = False
            self._init_future = None
            pending = list(self._pending.values())
            self._pending.clear()
            closing = self._closing

        if closing:
            logger.debug(f"[GlinerClient] Worker stopped ({reason})")
        else:
            logger.warning(f"[GlinerClient] {reason}; failing {len(pending)} pending requests")
        for future in pending:
            if not future.done():
                future.set_exception(WorkerCrashedError(reason))

    # -- requests ----------------------------------------------------------

    def request(self, request_type: RequestType, payload: dict[str, Any] | None = None, timeout_ms: int | None = None) -> Any:
        """Send one request and block for its response.

        Raises:
            WorkerTimeoutError: No response within ``timeout_ms``.
            WorkerCrashedError: The worker died before answering.
            WorkerRequestError: The worker answered with ``ok: false``.
            WorkerUnavailableError: The worker could not be started.
        """
        conn = self._start()
        future: Future = Future()
        with self._lock:
            request_id = next(self._ids)
            self._pending[request_id] = future

        try:
            with self._send_lock:
                conn.send(make_request(request_id, request_type, payload))
        except (OSError, ValueError) as e:
            with self._lock:
                self._pending.pop(request_id, None)
            raise WorkerCrashedError(f"failed to send {request_type} request: {e}") from e

        timeout = timeout_ms / 1000 if timeout_ms and timeout_ms > 0 else None
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            with self._lock:
                self._pending.pop(request_id, None)
            raise WorkerTimeoutError(request_id, request_type, timeout_ms) from None

    def ensure_ready(self) -> bool:
        """Initialize the worker once; concurrent callers share one attempt.

        A failed initialization is remembered until ``reset()``.
        """
        with self._lock:
            if self._ready:
                return True
            if self._init_failed:
                return False
            future = self._init_future
            owner = future is None
            if owner:
                future = self._init_future = Future()

        if not owner:
            return future.result()

        ok = False
        start = time.perf_counter()
        try:
            ok = bool(self.request("initialize", {}, self.init_timeout_ms))
        except OpenVocabularyError as e:
            logger.error(f"[GlinerClient] Worker initialization failed: {e}")
        finally:
            with self._lock:
                self._ready = ok
                self._init_failed = not ok
            future.set_result(ok)

        if ok:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.info(f"[GlinerClient] Worker initialized in {elapsed_ms:.0f}ms")
        return ok

    def infer(self, text: str, timeout_ms: int | None = None) -> list[Detection]:
        if not self.ensure_ready():
            raise WorkerUnavailableError("worker is not ready")
        timeout = timeout_ms if timeout_ms is not None else self.config["timeout_ms"]
        result = self.request("inference", {"text": text}, timeout)
        return list(result["detections"])

    def warmup(self) -> bool:
        if not self.ensure_ready():
            return False
        try:
            self.request("warmup", {}, self.init_timeout_ms)
        except OpenVocabularyError as e:
            logger.warning(f"[GlinerClient] Warmup inference failed: {e}")
        return self.is_ready

    def close(self) -> None:
        """Stop the worker. Pending requests fail with ``WorkerCrashedError``."""
        with self._lock:
            process, conn, reader = self._process, self._conn, self._reader
            self._closing = True

        try:
            if conn is not None:
                try:
                    with self._send_lock:
                        conn.send(None)
                except (OSError, ValueError) as e:
                    logger.debug(f"[GlinerClient] Shutdown message not delivered: {e}")
            if process is not None:
                process.join(SHUTDOWN_TIMEOUT_S)
                if process.is_alive():
                    logger.warning(f"[GlinerClient] Terminating worker pid={process.pid}")
                    process.terminate()
                    process.join(SHUTDOWN_TIMEOUT_S)
                self._handle_exit(process, "worker closed")
            if reader is not None and reader is not threading.current_thread():
                reader.join(SHUTDOWN_TIMEOUT_S)
        finally:
            with self._lock:
                self._closing = False

    def reset(self) -> None:
        """Stop the worker and forget any remembered initialization failure."""
        self.close()
        with self._lock:
            self._ready = False
            self._init_failed = False
            self._init_future = None

    def __enter__(self) -> GlinerWorkerClient:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()
