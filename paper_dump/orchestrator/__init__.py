"""
Orchestration package for the export run.

Sequences: load registry -> export docs concurrently -> persist registry.
"""

from .doc_registry import DocRegistry
from .export_pipeline import ExportPipeline

__all__ = [
    'DocRegistry',
    'ExportPipeline'
]
