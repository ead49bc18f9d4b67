"""Pipeline orchestration and artefact storage."""

from podarc.pipeline.ledger import ErrorLedger
from podarc.pipeline.orchestrator import (
    ForceSelection,
    PipelineOptions,
    PipelineOrchestrator,
    PipelineReport,
    parse_force_llm,
    rebuild_slugs,
)
from podarc.pipeline.store import ArtifactStore

__all__ = [
    "ArtifactStore",
    "ErrorLedger",
    "ForceSelection",
    "PipelineOptions",
    "PipelineOrchestrator",
    "PipelineReport",
    "parse_force_llm",
    "rebuild_slugs",
]
