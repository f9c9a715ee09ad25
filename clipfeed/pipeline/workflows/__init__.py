"""Workflow modules for pipeline orchestration."""

from clipfeed.pipeline.workflows.batch_ingestion import BatchIngestionWorkflow
from clipfeed.pipeline.workflows.video_analysis import VideoAnalysisWorkflow

__all__ = ["BatchIngestionWorkflow", "VideoAnalysisWorkflow"]
