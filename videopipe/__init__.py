"""Queue-driven enrichment pipeline for short-form video URLs."""

from .stage import StageDefinition, StageResult, StageWorker

__all__ = ["StageDefinition", "StageResult", "StageWorker"]
