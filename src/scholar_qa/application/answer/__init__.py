"""
Answer application services.

- citation_builder: citation keys, prompt blocks, citation mapping
- ResearchPipeline: the evaluate → retrieve → filter → analyze → answer state machine
"""

from .citation_builder import build_keys, citation_key, citation_mapping, render_block, render_blocks
from .orchestrator import (
    EvaluationDecision,
    PipelineConfig,
    ResearchPipeline,
    new_request_id,
    parse_evaluation,
)

__all__ = [
    "EvaluationDecision",
    "PipelineConfig",
    "ResearchPipeline",
    "build_keys",
    "citation_key",
    "citation_mapping",
    "new_request_id",
    "parse_evaluation",
    "render_block",
    "render_blocks",
]
