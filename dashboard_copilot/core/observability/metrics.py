from __future__ import annotations

from prometheus_client import Counter

SEMANTIC_MODELS_TOTAL = Counter(
    "copilot_semantic_models_total",
    "Semantic models built from a data sample",
)

SPEC_SYNTHESES_TOTAL = Counter(
    "copilot_spec_syntheses_total",
    "Dashboard specs synthesized, by candidate source",
    ["source"],
)

SPEC_REGENERATIONS_TOTAL = Counter(
    "copilot_spec_regenerations_total",
    "Candidate specs discarded and rebuilt from the column list",
)

PATCHES_TOTAL = Counter(
    "copilot_patches_total",
    "Patch requests by outcome",
    ["outcome"],
)

EXTERNAL_GENERATION_FAILURES_TOTAL = Counter(
    "copilot_external_generation_failures_total",
    "External spec generation attempts that produced no usable candidate",
    ["reason"],
)
