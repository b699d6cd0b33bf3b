"""Tier 2: open-vocabulary extraction with GLiNER.

The model runs in a worker process (``worker.run_worker``) driven by
``client.GlinerWorkerClient``; ``extractor.OpenVocabularyExtractor`` is the
entry point used by the pipeline. Submodules are imported directly, since
``extractor`` depends on ``spanlab.extraction.config`` which in turn reads
the label tables defined here.
"""
