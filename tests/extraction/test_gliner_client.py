"""Tests for the worker-process RPC client.

These spawn real worker processes hosting the fake model from
``fake_models``, so they take a few seconds each.
"""
import threading

import pytest

from conftest import FAKE_LOADER
from spanlab.extraction.config import GlinerConfig
from spanlab.extraction.errors import WorkerCrashedError, WorkerTimeoutError, WorkerUnavailableError
from spanlab.extraction.gliner.client import GlinerWorkerClient

pytestmark = pytest.mark.slow

INIT_TIMEOUT_MS = 60000


def make_client(loader=FAKE_LOADER, timeout_ms=5000):
    config = GlinerConfig(enabled=True, loader=loader, timeout_ms=timeout_ms).to_worker_config()
    return GlinerWorkerClient(config, init_timeout_ms=INIT_TIMEOUT_MS)


@pytest.fixture
def client():
    c = make_client()
    yield c
    c.close()


class TestLifecycle:
    def test_initialize_and_infer(self, client):
        assert client.ensure_ready()
        assert client.is_ready
        detections = client.infer("a woman in a red coat")
        assert [(d["text"], d["role"]) for d in detections] == [
            ("woman", "subject.identity"),
            ("red coat", "subject.wardrobe"),
        ]
        assert client.pending_count == 0

    def test_concurrent_init_shares_one_worker(self, client):
        results = []
        pids = []

        def init():
            results.append(client.ensure_ready())
            pids.append(client.pid)

        threads = [threading.Thread(target=init) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert results == [True] * 4
        assert len(set(pids)) == 1

    def test_warmup(self, client):
        assert client.warmup()
        assert client.is_ready

    def test_close_stops_worker(self):
        c = make_client()
        assert c.ensure_ready()
        c.close()
        assert c.pid is None
        assert not c.is_ready


class TestFailures:
    def test_timeout_does_not_poison_worker(self, client):
        assert client.ensure_ready()
        pid = client.pid
        with pytest.raises(WorkerTimeoutError):
            client.infer("[slow] woman", timeout_ms=200)
        assert client.pending_count == 0

        detections = client.infer("a woman")
        assert [d["text"] for d in detections] == ["woman"]
        assert client.pid == pid

    def test_crash_fails_pending_then_restarts(self, client):
        assert client.ensure_ready()
        first_pid = client.pid
        with pytest.raises(WorkerCrashedError):
            client.infer("[crash] woman")
        assert client.pending_count == 0

        detections = client.infer("a woman")
        assert [d["text"] for d in detections] == ["woman"]
        assert client.pid is not None
        assert client.pid != first_pid

    def test_failed_init_is_remembered(self):
        c = make_client(loader="fake_models:load_failing")
        try:
            assert not c.ensure_ready()
            assert c.init_failed
            assert not c.is_ready
            with pytest.raises(WorkerUnavailableError):
                c.infer("a woman")
        finally:
            c.close()

    def test_reset_allows_retry(self):
        c = make_client(loader="fake_models:load_failing")
        try:
            assert not c.ensure_ready()
            c.reset()
            assert not c.init_failed
            c.config["loader"] = FAKE_LOADER
            assert c.ensure_ready()
        finally:
            c.close()
