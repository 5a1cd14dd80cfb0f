"""Pre-analysis exclusion rules."""

from claim_detection.filtering.exclusion import ExclusionFilter, ExclusionRule, load_exclusion_rule

__all__ = ["ExclusionFilter", "ExclusionRule", "load_exclusion_rule"]
