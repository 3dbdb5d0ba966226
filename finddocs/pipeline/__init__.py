"""Ingestion progress tracking."""

from finddocs.pipeline.progress_tracker import ProgressListener, ProgressTracker

__all__ = ["ProgressListener", "ProgressTracker"]
