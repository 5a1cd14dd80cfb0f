"""
Analysis layer.

- classifier: Classifier protocol and CompletionClassifier
- dispatcher: sequential / bounded-concurrent dispatch
- report: claim summary reports
"""

from claim_detection.analysis.classifier import Classifier, CompletionClassifier
from claim_detection.analysis.dispatcher import AnalysisDispatcher, AnalysisItem, AnalysisOutcome
from claim_detection.analysis.report import ClaimReportGenerator

__all__ = [
    "AnalysisDispatcher",
    "AnalysisItem",
    "AnalysisOutcome",
    "ClaimReportGenerator",
    "Classifier",
    "CompletionClassifier",
]
