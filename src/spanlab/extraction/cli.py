from __future__ import annotations

import argparse
import json
import sys
import time
from pathlib import Path

from spanlab.extraction.config import CONFIG_PRESETS, ExtractionConfig, get_preset
from spanlab.extraction.errors import VocabularyLoadError
from spanlab.extraction.pipeline import ExtractionOptions, SpanExtractor
from spanlab.extraction.vocabulary import VocabularyStore
from spanlab.shared.logger import PipelineLogger


def _collect_texts(args: argparse.Namespace, log: PipelineLogger) -> tuple[list[tuple[str, str]], int]:
    """Return ``(name, text)`` pairs from --text or --input, plus the number of unreadable files."""
    if args.text is not None:
        return [("<text>", args.text)], 0

    if args.input.is_file():
        files = [args.input]
    else:
        patterns = [p.strip() for p in args.pattern.split(",") if p.strip()]
        files = sorted({f for pattern in patterns for f in args.input.glob(pattern) if f.is_file()})

    texts = []
    unreadable = 0
    for path in files:
        try:
            content = path.read_text(encoding="utf-8")
        except (UnicodeDecodeError, OSError) as e:
            log.error(f"SKIPPED {path}: {type(e).__name__}: {e}")
            unreadable += 1
            continue
        if args.per_line:
            texts.extend(
                (f"{path.name}:{n}", line)
                for n, line in enumerate(content.splitlines(), 1)
                if line.strip()
            )
        else:
            texts.append((str(path), content))
    return texts, unreadable


def _build_config(args: argparse.Namespace) -> ExtractionConfig:
    config = ExtractionConfig.from_env(get_preset(args.preset))
    if args.vocab:
        config.vocab_path = args.vocab
    if args.no_embeddings:
        config.use_embeddings = False
    return config


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Extract labeled taxonomy spans from video prompts.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", type=str, help="Prompt text to process")
    source.add_argument("--input", type=Path, help="Prompt file or directory of prompt files")
    parser.add_argument("--pattern", type=str, default="**/*.txt,**/*.md",
                        help="Comma-separated glob patterns when --input is a directory")
    parser.add_argument("--per-line", action="store_true",
                        help="Treat every non-empty line of an input file as a separate prompt")
    parser.add_argument("--output", type=Path, default=None,
                        help="Write results as JSON here (default: stdout)")
    parser.add_argument("--preset", choices=sorted(CONFIG_PRESETS), default="default")
    parser.add_argument("--vocab", type=Path, default=None, help="Vocabulary JSON file")
    parser.add_argument("--strict-vocab", action="store_true",
                        help="Fail instead of running with an empty vocabulary")
    parser.add_argument("--no-open-vocab", action="store_true")
    parser.add_argument("--no-actions", action="store_true")
    parser.add_argument("--no-lighting", action="store_true")
    parser.add_argument("--no-embeddings", action="store_true",
                        help="Classify heuristic phrases lexically instead of with the encoder")
    parser.add_argument("--log-file", type=Path, default=None,
                        help="INFO+ log file (readable summary)")
    parser.add_argument("--trace-file", type=Path, default=None,
                        help="TRACE+ log file (every span of every prompt)")

    args = parser.parse_args(argv)

    if args.input is not None and not args.input.exists():
        print(f"Error: Input does not exist: {args.input}", file=sys.stderr)
        return 1

    # With --output, stdout is free for console logging.
    log = PipelineLogger(
        log_file=args.log_file,
        trace_file=args.trace_file,
        console=args.output is not None,
        min_level="INFO",
    )
    log.install_stdlib_bridge(root_logger="spanlab", level=10)
    log.install_stdlib_bridge(root_logger="", level=30)

    try:
        config = _build_config(args)
        vocabulary = VocabularyStore.load(config.vocab_path, strict=args.strict_vocab)
    except (ValueError, VocabularyLoadError) as e:
        log.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        log.close()
        return 1

    log.section("SpanLab Extraction")
    log.info(f"Preset:      {config.name}")
    log.info(f"Vocabulary:  {config.vocab_path or 'packaged'} ({len(vocabulary)} terms)")
    log.info(f"Embeddings:  {'on' if config.use_embeddings else 'off'}")
    log.info(f"Open vocab:  {'on' if config.gliner.enabled and not args.no_open_vocab else 'off'}")

    texts, unreadable = _collect_texts(args, log)
    if not texts:
        log.warn("No prompts found")
        log.close()
        return 1 if unreadable else 0
    log.metric("prompts_found", len(texts))
    if unreadable:
        log.metric("files_unreadable", unreadable)

    options = ExtractionOptions(
        use_open_vocabulary=False if args.no_open_vocab else None,
        use_action_heuristics=False if args.no_actions else None,
        use_lighting=False if args.no_lighting else None,
    )

    extractor = SpanExtractor(config=config, vocabulary=vocabulary)
    results: list[dict] = []
    errors = unreadable
    t0 = time.perf_counter()
    try:
        with log.timer("total_extraction"):
            for i, (name, text) in enumerate(texts, 1):
                try:
                    result = extractor.extract_spans(text, options)
                except Exception as e:
                    log.error(f"[{i}/{len(texts)}] FAILED {name}: {type(e).__name__}: {e}")
                    errors += 1
                    continue

                assessment = extractor.assess(text, result.spans)
                log.progress(i, len(texts), f"{name} spans={len(result.spans)}")
                log.spans(result.spans)
                log.count("spans", len(result.spans))
                log.count("candidates", result.stats.candidate_spans)
                if assessment.needs_fallback:
                    log.count("needs_fallback")

                results.append({
                    "name": name,
                    "text": text,
                    "spans": [s.to_dict() for s in result.spans],
                    "stats": result.stats.to_dict(),
                    "coverage": assessment.to_dict(),
                })
    finally:
        extractor.close()

    payload = json.dumps(results[0] if args.text is not None and results else results, indent=2)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(payload + "\n", encoding="utf-8")
        log.info(f"Wrote {len(results)} results to {args.output}")
    else:
        print(payload)

    log.metric("prompts_processed", len(results))
    log.metric("prompts_errored", errors)
    if results:
        log.metric("avg_prompt_ms", round((time.perf_counter() - t0) * 1000 / len(texts), 3), "ms")
    log.summary()
    log.close()
    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(main())
