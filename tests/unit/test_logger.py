"""Tests for the run logger used by the CLI."""
import logging

from spanlab.extraction.types import Span
from spanlab.shared.logger import PipelineLogger, _BridgeHandler


class TestPipelineLogger:
    def test_files_and_levels(self, tmp_path):
        log_file = tmp_path / "run.log"
        trace_file = tmp_path / "logs" / "run.trace"
        with PipelineLogger(log_file=log_file, trace_file=trace_file, console=False) as log:
            log.info("hello")
            log.trace("detail")
            log.metric("prompts", 3)
            log.spans([Span("35mm", "camera.lens", 1.0, 0, 4)])

        info = log_file.read_text()
        trace = trace_file.read_text()
        assert "SpanLab Log" in info
        assert "hello" in info
        assert "prompts = 3" in info
        assert "detail" not in info
        assert "camera.lens" not in info
        assert "SpanLab Trace" in trace
        assert "detail" in trace
        assert "camera.lens" in trace and "'35mm'" in trace

    def test_console_gate(self, capsys):
        log = PipelineLogger(console=True, min_level="WARN")
        log.info("quiet")
        log.warn("loud")
        out = capsys.readouterr().out
        assert "quiet" not in out
        assert "loud" in out

    def test_counters_and_timers_in_summary(self, tmp_path):
        log_file = tmp_path / "run.log"
        log = PipelineLogger(log_file=log_file, console=False)
        log.count("spans", 4)
        log.count("spans", 2)
        log.count("needs_fallback")
        with log.timer("extract") as entry:
            pass
        assert entry.end is not None
        log.summary()
        log.close()

        text = log_file.read_text()
        assert "RUN SUMMARY" in text
        assert "spans" in text and " 6" in text
        assert "needs_fallback" in text
        assert "timer:extract" in text

    def test_stdlib_bridge_installed_and_removed(self, tmp_path):
        log_file = tmp_path / "run.log"
        log = PipelineLogger(log_file=log_file, console=False)
        log.install_stdlib_bridge(root_logger="spanlab.bridge_test", level=logging.DEBUG)
        target = logging.getLogger("spanlab.bridge_test")
        target.warning("[Test] routed")
        log.close()

        assert "[spanlab.bridge_test] [Test] routed" in log_file.read_text()
        assert not any(isinstance(h, _BridgeHandler) for h in target.handlers)
