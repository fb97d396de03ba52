"""Logging and metrics."""

from .observability import PipelineMetrics, TimedSection, configure_logging, get_logger

__all__ = ["PipelineMetrics", "TimedSection", "configure_logging", "get_logger"]
