"""
Pipeline Module for the Bill Extraction System.

This module provides:
    - ExtractionContext: input of one run
    - ExtractionOrchestrator: the state machine driving a run
    - Field schema providers and the result cache
"""

from .context import ExtractionContext
from .cache import ResultCache
from .providers import FieldSchemaProvider, StaticSchemaProvider, YamlSchemaProvider
from .orchestrator import ExtractionOrchestrator, PipelineSettings, PipelineState

__all__ = [
    'ExtractionContext',
    'ResultCache',
    'FieldSchemaProvider',
    'StaticSchemaProvider',
    'YamlSchemaProvider',
    'ExtractionOrchestrator',
    'PipelineSettings',
    'PipelineState',
]
