"""Run logger for command-line extraction jobs.

Every line goes to up to three sinks, each with its own level gate:

- console    : ``min_level`` and above (human-readable progress)
- info file  : INFO and above
- trace file : everything, including one TRACE line per extracted span

Library modules keep using ``logging.getLogger(__name__)``; a CLI run calls
``install_stdlib_bridge()`` so those records land in the same sinks.

Example:
    >>> with PipelineLogger(log_file="run.log", console=False) as log:
    ...     with log.timer("extract"):
    ...         log.spans(result.spans)
    ...     log.summary()
"""

from __future__ import annotations

import logging
import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Iterator, TextIO

TRACE, DEBUG, INFO, WARN, ERROR = range(-1, 4)

LEVEL_NAMES: dict[str, int] = {
    "TRACE": TRACE,
    "DEBUG": DEBUG,
    "INFO": INFO,
    "PROG": INFO,
    "METRIC": INFO,
    "WARN": WARN,
    "ERROR": ERROR,
}

RULE = "=" * 80


@dataclass
class _Sink:
    path: Path
    handle: TextIO
    min_level: int

    def write(self, level: int, line: str) -> None:
        if level >= self.min_level:
            self.handle.write(line + "\n")


@dataclass
class _Timer:
    name: str
    start: float
    end: float | None = None

    @property
    def elapsed(self) -> float:
        return (self.end or time.perf_counter()) - self.start


class PipelineLogger:
    """Console plus optional info/trace files, with counters and timers.

    Args:
        log_file: INFO+ log file. Parent directories are created.
        trace_file: TRACE+ log file.
        console: Print lines at or above ``min_level`` to stdout.
        min_level: Console gate, one of ``LEVEL_NAMES``.
    """

    def __init__(
        self,
        log_file: str | Path | None = None,
        trace_file: str | Path | None = None,
        console: bool = True,
        min_level: str = "INFO",
    ) -> None:
        self.console = console
        self.min_level = LEVEL_NAMES.get(min_level.upper(), INFO)
        self._sinks: dict[str, _Sink] = {}
        self._counters: Counter[str] = Counter()
        self._roles: Counter[str] = Counter()
        self._timers: dict[str, list[_Timer]] = {}
        self._bridges: list[tuple[logging.Logger, logging.Handler]] = []
        self._t0 = time.perf_counter()

        if log_file:
            self._sinks["info"] = self._open(log_file, "SpanLab Log", INFO)
        if trace_file:
            self._sinks["trace"] = self._open(trace_file, "SpanLab Trace", TRACE)

    @property
    def log_path(self) -> Path | None:
        sink = self._sinks.get("info")
        return sink.path if sink else None

    @property
    def trace_path(self) -> Path | None:
        sink = self._sinks.get("trace")
        return sink.path if sink else None

    @staticmethod
    def _open(path: str | Path, title: str, min_level: int) -> _Sink:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(path, "w", encoding="utf-8", buffering=1)
        handle.write(f"{RULE}\n{title} - {time.strftime('%Y-%m-%d %H:%M:%S')}\n{RULE}\n\n")
        return _Sink(path=path, handle=handle, min_level=min_level)

    def _line(self, level: int, line: str, console_level: int | None = None) -> None:
        if self.console and (console_level if console_level is not None else level) >= self.min_level:
            print(line, flush=True)
        for sink in self._sinks.values():
            sink.write(level, line)

    def _emit(self, tag: str, msg: str) -> None:
        level = LEVEL_NAMES.get(tag, INFO)
        stamp = f"[{time.strftime('%H:%M:%S')}] [{time.perf_counter() - self._t0:7.2f}s]"
        self._line(level, f"{stamp} {tag:6} | {msg}")

    def trace(self, msg: str) -> None:
        self._emit("TRACE", msg)

    def debug(self, msg: str) -> None:
        self._emit("DEBUG", msg)

    def info(self, msg: str) -> None:
        self._emit("INFO", msg)

    def warn(self, msg: str) -> None:
        self._emit("WARN", msg)

    def error(self, msg: str) -> None:
        self._emit("ERROR", msg)

    def section(self, title: str) -> None:
        for line in ("", RULE, f"  {title}", RULE):
            self._line(INFO, line, console_level=ERROR)

    def progress(self, current: int, total: int, label: str = "") -> None:
        pct = current / total * 100 if total else 0.0
        self._emit("PROG", f"[{current:>4}/{total}] {pct:5.1f}%" + (f"  {label}" if label else ""))

    def count(self, name: str, amount: int = 1) -> None:
        self._counters[name] += amount

    def metric(self, name: str, value: Any, unit: str = "") -> None:
        shown = f"{value:.3f}" if isinstance(value, float) else str(value)
        self._emit("METRIC", f"{name} = {shown}{' ' + unit if unit else ''}")

    def spans(self, spans: Iterable[Any]) -> None:
        """One TRACE line per span; roles are tallied for the summary."""
        for span in spans:
            self._roles[span.role] += 1
            self.trace(
                f"  [{span.start:>5},{span.end:>5}) {span.role:<28} "
                f"{span.confidence:.2f}  {span.text!r}"
            )

    @contextmanager
    def timer(self, name: str) -> Iterator[_Timer]:
        entry = _Timer(name=name, start=time.perf_counter())
        self._timers.setdefault(name, []).append(entry)
        try:
            yield entry
        finally:
            entry.end = time.perf_counter()
            self._emit("METRIC", f"timer:{name} = {entry.elapsed:.3f}s")

    def summary(self) -> None:
        self.section("RUN SUMMARY")
        self.info(f"Total wall time: {time.perf_counter() - self._t0:.2f}s")
        for name, value in sorted(self._counters.items()):
            self.info(f"  {name:<40} {value:>8}")

        totals = [
            (name, sum(t.elapsed for t in runs if t.end), len(runs))
            for name, runs in self._timers.items()
        ]
        for name, seconds, runs in sorted(totals, key=lambda item: -item[1])[:20]:
            self.info(f"  {name:<40} {seconds:>8.3f}s  x{runs}")

        if self._roles:
            self.info("Spans by role:")
            for role, n in self._roles.most_common():
                self.info(f"  {role:<40} {n:>8}")

        for label, path in (("Info log ", self.log_path), ("Trace log", self.trace_path)):
            if path:
                self.info(f"{label}: {path}")

    def install_stdlib_bridge(self, root_logger: str = "", level: int = logging.INFO) -> None:
        """Route stdlib ``logging`` records at ``level`` and above into this logger."""
        target = logging.getLogger(root_logger)
        if any(isinstance(h, _BridgeHandler) for h in target.handlers):
            return
        handler = _BridgeHandler(self)
        handler.setLevel(level)
        target.setLevel(min(target.level or logging.DEBUG, level))
        target.addHandler(handler)
        self._bridges.append((target, handler))

    def close(self) -> None:
        """Detach stdlib bridges and close the files. Safe to call twice."""
        for target, handler in self._bridges:
            target.removeHandler(handler)
        self._bridges.clear()
        for sink in self._sinks.values():
            sink.handle.close()
        self._sinks.clear()

    def __enter__(self) -> PipelineLogger:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()


class _BridgeHandler(logging.Handler):
    def __init__(self, run_logger: PipelineLogger) -> None:
        super().__init__()
        self._run = run_logger

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = f"[{record.name}] {self.format(record)}"
            if record.levelno >= logging.ERROR:
                self._run.error(msg)
            elif record.levelno >= logging.WARNING:
                self._run.warn(msg)
            elif record.levelno >= logging.INFO:
                self._run.info(msg)
            else:
                self._run.debug(msg)
        except Exception:
            self.handleError(record)


_default: PipelineLogger | None = None


def get_logger() -> PipelineLogger:
    """Process-wide logger for code that has no run logger passed in."""
    global _default
    if _default is None:
        _default = PipelineLogger()
    return _default


def set_logger(run_logger: PipelineLogger) -> None:
    global _default
    _default = run_logger
