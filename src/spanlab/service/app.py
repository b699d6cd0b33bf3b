"""FastAPI application exposing span extraction over HTTP.

Endpoints:
- POST /spans - Extract labeled spans from a prompt
- GET /health - Service health and open-vocabulary readiness
- GET /vocab  - Vocabulary statistics

Environment variables:
- SPANLAB_PRESET: Extraction preset (default: default)
- SPANLAB_MAX_TEXT_CHARS: Longest accepted prompt (default: 20000)
- SPANLAB_WARMUP: Load models on startup (default: true)
- SPANLAB_*: Extraction settings, see ``spanlab.extraction.config``

Usage:
    uvicorn spanlab.service.app:app --port 8000
"""

from __future__ import annotations

import logging
import os
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from spanlab.extraction.config import ExtractionConfig, get_preset
from spanlab.extraction.pipeline import ExtractionOptions, SpanExtractor

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

PRESET = os.environ.get("SPANLAB_PRESET", "default")
MAX_TEXT_CHARS = int(os.environ.get("SPANLAB_MAX_TEXT_CHARS", "20000"))
WARMUP = os.environ.get("SPANLAB_WARMUP", "true").lower() == "true"


class SpanRequest(BaseModel):
    """Request body for /spans endpoint."""
    text: str = Field(..., description="Prompt text")
    use_open_vocabulary: bool | None = Field(default=None, description="Override the open-vocabulary tier")
    use_action_heuristics: bool | None = Field(default=None, description="Override the action tier")
    use_lighting: bool | None = Field(default=None, description="Override the lighting tier")


class SpanModel(BaseModel):
    text: str
    role: str
    confidence: float
    start: int
    end: int


class SpanResponse(BaseModel):
    """Response body for /spans endpoint."""
    spans: list[SpanModel]
    stats: dict[str, Any]
    needs_fallback: bool
    coverage: dict[str, Any]
    elapsed_ms: float


class HealthResponse(BaseModel):
    status: str = Field(..., description="'ready' or 'starting'")
    open_vocab_ready: bool


def create_app(extractor: SpanExtractor | None = None, warmup: bool = WARMUP) -> FastAPI:
    """Build the app. Tests pass their own extractor and ``warmup=False``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if extractor is None:
            config: ExtractionConfig = ExtractionConfig.from_env(get_preset(PRESET))
            app.state.extractor = SpanExtractor(config=config)
        else:
            app.state.extractor = extractor
        logger.info(f"[Service] Starting with preset={PRESET}, max_text_chars={MAX_TEXT_CHARS}")

        if warmup:
            app.state.extractor.warmup()
        app.state.startup_time = time.time()
        logger.info("[Service] Ready")

        yield

        logger.info("[Service] Shutting down")
        app.state.extractor.close()

    app = FastAPI(
        title="SpanLab",
        description="Taxonomy span extraction for video prompts",
        lifespan=lifespan,
    )

    @app.post("/spans", response_model=SpanResponse)
    def extract(body: SpanRequest, request: Request) -> SpanResponse:
        if len(body.text) > MAX_TEXT_CHARS:
            raise HTTPException(
                status_code=422,
                detail=f"text is {len(body.text)} characters; the limit is {MAX_TEXT_CHARS}",
            )
        extractor: SpanExtractor = request.app.state.extractor
        options = ExtractionOptions(
            use_open_vocabulary=body.use_open_vocabulary,
            use_action_heuristics=body.use_action_heuristics,
            use_lighting=body.use_lighting,
        )

        t0 = time.perf_counter()
        try:
            result = extractor.extract_spans(body.text, options)
        except Exception as e:
            logger.exception("[Service] Extraction failed")
            raise HTTPException(status_code=500, detail=f"extraction failed: {type(e).__name__}") from e
        assessment = extractor.assess(body.text, result.spans)
        elapsed_ms = (time.perf_counter() - t0) * 1000

        return SpanResponse(
            spans=[SpanModel(**s.to_dict()) for s in result.spans],
            stats=result.stats.to_dict(),
            needs_fallback=assessment.needs_fallback,
            coverage=assessment.to_dict(),
            elapsed_ms=round(elapsed_ms, 2),
        )

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        extractor = getattr(request.app.state, "extractor", None)
        return HealthResponse(
            status="ready" if extractor is not None else "starting",
            open_vocab_ready=extractor.open_vocab_ready if extractor is not None else False,
        )

    @app.get("/vocab")
    async def vocab(request: Request) -> dict[str, Any]:
        return request.app.state.extractor.get_vocab_stats()

    return app


app = create_app()
