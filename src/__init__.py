# src/__init__.py
from src.pipeline import ClassificationPipeline
from src.types import ClassificationMode, ClassificationResult

__all__ = [
    'ClassificationPipeline',
    'ClassificationMode',
    'ClassificationResult'
]
