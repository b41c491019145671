"""
Bill Extraction System - Source Package.

This package turns PDF bills and email bodies into structured,
confidence-scored bill records for English and Hungarian documents.
Each module has a single responsibility and depends only on the
modules listed below it.

Modules:
    - pipeline: Orchestrator state machine, context, schema providers
    - reconciliation: Schema mapping, merging, confidence and strategies
    - extraction: Pattern banks, categories and the field extractor
    - postprocessor: Amount/date parsing, normalization and validation
    - language: Hungarian normalization, stemming, mojibake repair
    - layout: Reading-order reconstruction of positioned text
    - input_handler: Binary normalization and PDF decoding
    - utils: Logging, exceptions and helpers

Architecture:
    Bytes → Decode → Layout → Normalize → Extract → Reconcile → Result
"""

__version__ = "1.0.0"
__author__ = "ML Engineering Team"

__all__ = [
    'pipeline',
    'reconciliation',
    'extraction',
    'postprocessor',
    'language',
    'layout',
    'input_handler',
    'utils'
]
