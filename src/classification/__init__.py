"""Classification subsystem - ensemble inference, scoring model and scheduling."""
from src.classification.ClassNames import ClassNameTable
from src.classification.EnsembleClassifier import EnsembleClassifier
from src.classification.ClassificationWorker import ClassificationWorker
from src.classification.ModelManager import ModelManager

__all__ = [
    'ClassNameTable',
    'EnsembleClassifier',
    'ClassificationWorker',
    'ModelManager'
]
