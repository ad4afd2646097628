"""Flipbook - turn a text prompt into a short looping image sequence."""

__version__ = "0.1.0"

from flipbook.core.config import FlipbookConfig, PipelineSettings, config
from flipbook.core.pipeline import FramePipeline

__all__ = [
    "FlipbookConfig",
    "FramePipeline",
    "PipelineSettings",
    "config",
]
