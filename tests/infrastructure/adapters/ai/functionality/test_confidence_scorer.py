# tests/infrastructure/adapters/ai/functionality/test_confidence_scorer.py

import pytest

from codelens.infrastructure.adapters.ai.functionality import ConfidenceScorer


class TestConfidenceScorer:

    def test_complete_analysis_scores_one(self):
        payload = {
            'issues': [{'severity': 'high', 'message': 'Issue'}],
            'suggestions': [{'type': 'improvement', 'description': 'Suggestion'}],
            'metrics': {'complexity': 5}
        }
        assert ConfidenceScorer.score(payload) == 1.0

    def test_empty_analysis_scores_base(self):
        assert ConfidenceScorer.score({'issues': [], 'suggestions': [], 'metrics': {}}) == 0.5

    @pytest.mark.parametrize("issues, suggestions, metrics, expected", [
        ([1], [], {}, 0.7),
        ([], [1], {}, 0.7),
        ([], [], {'a': 1}, 0.6),
        ([1], [1], {}, 0.9),
        ([1], [], {'a': 1}, 0.8),
        ([], [1], {'a': 1}, 0.8),
    ])
    def test_additive_rule(self, issues, suggestions, metrics, expected):
        payload = {'issues': issues, 'suggestions': suggestions, 'metrics': metrics}
        assert ConfidenceScorer.score(payload) == expected

    def test_missing_keys_score_base(self):
        assert ConfidenceScorer.score({}) == 0.5

    def test_pure(self):
        payload = {'issues': [1], 'suggestions': [], 'metrics': {}}
        assert ConfidenceScorer.score(payload) == ConfidenceScorer.score(payload)
        assert payload == {'issues': [1], 'suggestions': [], 'metrics': {}}
