# codelens/infrastructure/adapters/ai/functionality/confidence_scorer.py

"""Confidence Scorer - completeness heuristic for model output"""

from typing import Any, Mapping


class ConfidenceScorer:
    """
    Heuristic completeness proxy, not a statistical confidence.

    Base 0.5, +0.2 for non-empty issues, +0.2 for non-empty suggestions,
    +0.1 for metrics with at least one key, capped at 1.0.
    """

    # Weights in tenths so the full score sums to exactly 1.0
    BASE = 5
    ISSUES_WEIGHT = 2
    SUGGESTIONS_WEIGHT = 2
    METRICS_WEIGHT = 1
    SCALE = 10

    @classmethod
    def score(cls, payload: Mapping[str, Any]) -> float:
        """Score a decoded model payload"""
        tenths = cls.BASE

        if payload.get('issues'):
            tenths += cls.ISSUES_WEIGHT
        if payload.get('suggestions'):
            tenths += cls.SUGGESTIONS_WEIGHT

        metrics = payload.get('metrics')
        if isinstance(metrics, Mapping) and len(metrics) > 0:
            tenths += cls.METRICS_WEIGHT

        return min(tenths / cls.SCALE, 1.0)
