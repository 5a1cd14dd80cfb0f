"""
Response validation.

ResponseNormalizer turns untrusted model text into a fully-populated
ClassificationResult without ever raising.
"""

from claim_detection.validation.normalizer import ResponseNormalizer

__all__ = ["ResponseNormalizer"]
