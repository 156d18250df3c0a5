"""Application settings and the validated pipeline configuration."""

from .pipeline import PipelineConfig, validate_chunk_window
from .settings import Settings, get_settings, settings

__all__ = [
    "PipelineConfig",
    "Settings",
    "get_settings",
    "settings",
    "validate_chunk_window",
]
