"""
Configuration module for the iModel report exporter.
"""

from .settings import (
    Config,
    ConfigurationError,
    GeometryConfig,
    PipelineLogger,
    ProcessingConfig,
)

__all__ = [
    'Config',
    'ConfigurationError',
    'GeometryConfig',
    'PipelineLogger',
    'ProcessingConfig',
]
