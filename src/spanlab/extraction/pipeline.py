"""Multi-tier span extraction service.

Usage:
    from spanlab.extraction import SpanExtractor, ExtractionOptions

    extractor = SpanExtractor()
    result = extractor.extract_spans("35mm lens, golden hour light, 24fps")
    for span in result.spans:
        print(span.role, span.text, span.confidence)

Tiers:
    1    closed vocabulary (Aho-Corasick) and technical patterns
    1.5a action phrases around verb anchors
    1.5b lighting phrases around light nouns
    2    open-vocabulary model in a worker process (optional)

All candidates go through ``merge.resolve_overlaps``. The extractor is built
once and shared; each call only allocates local state.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from typing import Any, Callable

from spanlab.extraction.config import ExtractionConfig
from spanlab.extraction.coverage import CoverageAssessment, CoverageConfig, assess_coverage, coverage_percent
from spanlab.extraction.fast.closed_vocab import ClosedVocabularyMatcher
from spanlab.extraction.fast.patterns import TechnicalPatternMatcher
from spanlab.extraction.gliner.extractor import OpenVocabularyExtractor
from spanlab.extraction.gliner.labels import ALL_GLINER_LABELS
from spanlab.extraction.merge import merge_spans
from spanlab.extraction.semantic.embedder import EmbeddingEncoder, TextEncoder
from spanlab.extraction.semantic.lighting import LightingExtractor
from spanlab.extraction.semantic.verbs import ActionExtractor
from spanlab.extraction.types import CandidateSpan, ExtractionResult, ExtractionStats, Span
from spanlab.extraction.vocabulary import VocabularyStore
from spanlab.shared.taxonomy import TAXONOMY_VERSION

logger = logging.getLogger(__name__)

TIER2_THREADS = 8


@dataclass
class ExtractionOptions:
    """Per-call tier switches. ``None`` means "use the configured default"."""

    use_open_vocabulary: bool | None = None
    use_action_heuristics: bool | None = None
    use_lighting: bool | None = None
    use_patterns: bool | None = None


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 3)


class SpanExtractor:
    """Run every extraction tier and merge the results.

    Args:
        config: Extraction settings. Defaults to ``ExtractionConfig.from_env()``.
        vocabulary: Preloaded vocabulary; loaded from ``config.vocab_path``
            (or the packaged file) when omitted.
        encoder: Embedding encoder for the heuristic tiers. Built from
            ``config.embedding_model`` when omitted and embeddings are enabled.
        open_vocab: Tier 2 extractor override. Built lazily on first use.
    """

    def __init__(
        self,
        config: ExtractionConfig | None = None,
        vocabulary: VocabularyStore | None = None,
        encoder: TextEncoder | None = None,
        open_vocab: OpenVocabularyExtractor | None = None,
    ):
        self.config = config or ExtractionConfig.from_env()
        self.vocabulary = vocabulary if vocabulary is not None else VocabularyStore.load(self.config.vocab_path)
        if encoder is None and self.config.use_embeddings:
            encoder = EmbeddingEncoder(self.config.embedding_model)
        self.encoder = encoder

        self.closed_vocab = ClosedVocabularyMatcher(self.vocabulary)
        self.patterns = TechnicalPatternMatcher()
        self.actions = ActionExtractor(encoder, self.config.actions)
        self.lighting = LightingExtractor(encoder, self.config.lighting)

        self._open_vocab = open_vocab
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=TIER2_THREADS, thread_name_prefix="spanlab-tier2")

        logger.info(
            f"[SpanExtractor] Ready: {len(self.vocabulary)} vocabulary terms, "
            f"embeddings={'on' if encoder is not None else 'off'}, "
            f"open_vocab={'on' if self.config.gliner.enabled else 'off'}"
        )

    @property
    def open_vocab(self) -> OpenVocabularyExtractor:
        if self._open_vocab is None:
            with self._lock:
                if self._open_vocab is None:
                    self._open_vocab = OpenVocabularyExtractor(self.config.gliner)
        return self._open_vocab

    @property
    def open_vocab_ready(self) -> bool:
        return self._open_vocab is not None and self._open_vocab.is_ready

    def _resolve(self, options: ExtractionOptions | None) -> ExtractionOptions:
        options = options or ExtractionOptions()
        pick = lambda value, default: default if value is None else value  # noqa: E731
        return ExtractionOptions(
            use_open_vocabulary=pick(options.use_open_vocabulary, self.config.gliner.enabled),
            use_action_heuristics=pick(options.use_action_heuristics, self.config.actions.enabled),
            use_lighting=pick(options.use_lighting, self.config.lighting.enabled),
            use_patterns=pick(options.use_patterns, self.config.use_patterns),
        )

    def _open_vocab_deadline(self, start: float) -> float | None:
        """Latest ``perf_counter`` time a call may wait for Tier 2.

        A cold model also gets the init timeout; once it is loaded only
        ``timeout_ms`` applies. ``timeout_ms <= 0`` waits indefinitely.
        """
        gliner = self.config.gliner
        if gliner.timeout_ms <= 0:
            return None
        budget = gliner.timeout_ms / 1000
        if not self.open_vocab_ready:
            budget += gliner.effective_init_timeout_ms / 1000
        return start + budget

    def _collect_open_vocab(self, future, deadline: float | None) -> list[CandidateSpan]:
        remaining = None if deadline is None else max(0.0, deadline - time.perf_counter())
        try:
            return future.result(timeout=remaining)
        except FutureTimeoutError:
            future.cancel()
            logger.warning("[SpanExtractor] Open vocabulary missed its deadline; continuing without it")
            return []

    @staticmethod
    def _run_required(name: str, fn: Callable[[str], list[CandidateSpan]], text: str) -> list[CandidateSpan]:
        try:
            return fn(text)
        except Exception:
            logger.exception(f"[SpanExtractor] {name} failed")
            raise

    @staticmethod
    def _run_optional(name: str, fn: Callable[[str], list[CandidateSpan]], text: str) -> list[CandidateSpan]:
        try:
            return fn(text)
        except Exception:
            logger.exception(f"[SpanExtractor] {name} failed; continuing without it")
            return []

    def _timed(self, stats: ExtractionStats, key: str, runner, name: str, fn, text: str) -> list[CandidateSpan]:
        start = time.perf_counter()
        spans = runner(name, fn, text)
        stats.latency_ms[key] = _elapsed_ms(start)
        stats.tiers.append(key)
        return spans

    def extract_spans(self, text: str, options: ExtractionOptions | None = None) -> ExtractionResult:
        """Extract, merge and return labeled spans for ``text``.

        Raises:
            Exception: Only if the closed-vocabulary or pattern scan itself
                fails. Heuristic and open-vocabulary failures are logged and
                contribute no spans.
        """
        t0 = time.perf_counter()
        if not text or not text.strip():
            return ExtractionResult(spans=[], stats=ExtractionStats(phase="empty-input"))

        opts = self._resolve(options)
        stats = ExtractionStats()

        open_future = None
        if opts.use_open_vocabulary:
            open_start = time.perf_counter()
            open_deadline = self._open_vocab_deadline(open_start)
            open_future = self._executor.submit(self._run_optional, "open vocabulary", self.open_vocab.extract, text)

        closed = self._timed(stats, "closed_vocab", self._run_required, "closed vocabulary", self.closed_vocab.extract, text)
        stats.closed_vocab_spans = len(closed)
        candidates = list(closed)

        if opts.use_patterns:
            found = self._timed(stats, "patterns", self._run_required, "technical patterns", self.patterns.extract, text)
            stats.pattern_spans = len(found)
            candidates.extend(found)

        if opts.use_action_heuristics:
            found = self._timed(stats, "actions", self._run_optional, "action heuristics", self.actions.extract, text)
            stats.action_spans = len(found)
            candidates.extend(found)

        if opts.use_lighting:
            found = self._timed(stats, "lighting", self._run_optional, "lighting heuristics", self.lighting.extract, text)
            stats.lighting_spans = len(found)
            candidates.extend(found)

        if open_future is not None:
            found = self._collect_open_vocab(open_future, open_deadline)
            stats.latency_ms["open_vocab"] = _elapsed_ms(open_start)
            stats.tiers.append("open_vocab")
            stats.open_vocab_spans = len(found)
            candidates.extend(found)

        merge_start = time.perf_counter()
        spans = merge_spans(candidates, text, self.config.merge)
        stats.latency_ms["merge"] = _elapsed_ms(merge_start)
        stats.merged_spans = len(spans)
        stats.total_latency_ms = _elapsed_ms(t0)

        logger.debug(
            f"[SpanExtractor] {len(spans)} spans from {stats.candidate_spans} candidates "
            f"in {stats.total_latency_ms:.1f}ms (tiers={stats.tiers})"
        )
        return ExtractionResult(spans=spans, stats=stats)

    def extract_known_spans(self, text: str) -> list[Span]:
        """Closed vocabulary and technical patterns only; no models involved."""
        if not text or not text.strip():
            return []
        candidates = self.closed_vocab.extract(text) + self.patterns.extract(text)
        return merge_spans(candidates, text, self.config.merge)

    def estimate_coverage(self, text: str) -> float:
        """Percentage (0-100) of words covered by known spans."""
        if not text or not text.strip():
            return 0.0
        return round(min(100.0, coverage_percent(self.extract_known_spans(text), text)), 2)

    def assess(self, text: str, spans: list[Span], config: CoverageConfig | None = None) -> CoverageAssessment:
        return assess_coverage(
            spans,
            text,
            config,
            open_vocab_enabled=self.config.gliner.enabled,
            open_vocab_ready=self.open_vocab_ready,
        )

    def get_vocab_stats(self) -> dict[str, Any]:
        stats = self.vocabulary.stats()
        stats["taxonomy_version"] = TAXONOMY_VERSION
        stats["gliner_labels"] = len(ALL_GLINER_LABELS)
        stats["gliner_ready"] = self.open_vocab_ready
        return stats

    def warmup(self) -> dict[str, bool]:
        """Load models ahead of the first request. Never raises."""
        status = {"embeddings": False, "open_vocab": False}
        if self.encoder is not None:
            try:
                self.actions.warmup()
                self.lighting.warmup()
                status["embeddings"] = True
            except Exception:
                logger.exception("[SpanExtractor] Embedding warmup failed")
        if self.config.gliner.enabled:
            status["open_vocab"] = self.open_vocab.warmup()
        logger.info(f"[SpanExtractor] Warmup complete: {status}")
        return status

    def close(self) -> None:
        if self._open_vocab is not None:
            self._open_vocab.close()
        self._executor.shutdown(wait=False, cancel_futures=True)


_extractor: SpanExtractor | None = None
_extractor_lock = threading.Lock()


def get_extractor() -> SpanExtractor:
    """Get or create the process-wide extractor (configured from the environment)."""
    global _extractor
    if _extractor is None:
        with _extractor_lock:
            if _extractor is None:
                _extractor = SpanExtractor()
    return _extractor


def set_extractor(extractor: SpanExtractor | None) -> None:
    global _extractor
    with _extractor_lock:
        _extractor = extractor


def reset_extractor() -> None:
    """Close and drop the process-wide extractor (for testing)."""
    global _extractor
    with _extractor_lock:
        if _extractor is not None:
            _extractor.close()
        _extractor = None


def extract_spans(text: str, **options: bool | None) -> ExtractionResult:
    return get_extractor().extract_spans(text, ExtractionOptions(**options))


def extract_known_spans(text: str) -> list[Span]:
    return get_extractor().extract_known_spans(text)


def estimate_coverage(text: str) -> float:
    return get_extractor().estimate_coverage(text)


def get_vocab_stats() -> dict[str, Any]:
    return get_extractor().get_vocab_stats()


def warmup() -> dict[str, bool]:
    return get_extractor().warmup()
