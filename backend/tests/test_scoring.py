"""Tests for hybrid scoring."""

import math

import numpy as np
import pytest

from ragdesk.search.scoring import ScoringWeights, min_max_normalize, query_terms, rank, text_relevance


class TestTextRelevance:
    """Tests for the lexical relevance score."""

    def test_formula(self) -> None:
        """Score is (m/n) * ln(1 + n/m) per matching term."""
        score = text_relevance(["pricing"], "pricing pricing other words")
        assert score == pytest.approx(0.5 * math.log(3))

    def test_terms_add_up(self) -> None:
        """Each query term contributes independently."""
        text = "pricing strategy for teams"
        expected = 2 * 0.25 * math.log(5)
        assert text_relevance(["pricing", "strategy"], text) == pytest.approx(expected)

    def test_substring_matching(self) -> None:
        """A chunk word matches when it contains the term."""
        assert text_relevance(["pricing"], "Repricing, again") > 0
        assert text_relevance(["retention"], "retentions") > 0

    def test_no_match_or_empty(self) -> None:
        """No matching words or an empty chunk score zero."""
        assert text_relevance(["pricing"], "sales calls") == 0.0
        assert text_relevance(["pricing"], "   ") == 0.0

    def test_query_terms(self) -> None:
        """Terms are lowercased and short ones dropped."""
        assert query_terms("What is our Pricing strategy") == ["what", "our", "pricing", "strategy"]
        assert query_terms("a an of", min_length=3) == []


class TestRank:
    """Tests for blending and ordering."""

    def test_min_max_normalize(self) -> None:
        """Scores map onto [0, 1); equal scores map to 0."""
        out = min_max_normalize(np.array([1.0, 2.0, 3.0]))
        assert out[0] == 0.0
        assert out[2] == pytest.approx(1.0)
        assert min_max_normalize(np.array([5.0, 5.0])).tolist() == [0.0, 0.0]

    def test_blend(self) -> None:
        """Combined score is 0.7 * vector + 0.3 * text after normalization."""
        ranked = rank(np.array([0.9, 0.1, 0.5]), np.array([0.0, 1.0, 0.5]), k=3)
        positions = [i for i, _ in ranked]
        assert positions == [0, 2, 1]
        assert ranked[0][1] == pytest.approx(1 - 0.7, abs=1e-6)
        assert ranked[1][1] == pytest.approx(1 - 0.5, abs=1e-6)
        assert ranked[2][1] == pytest.approx(1 - 0.3, abs=1e-6)

    def test_text_score_can_reorder(self) -> None:
        """A strong lexical match lifts a slightly weaker vector match."""
        weights = ScoringWeights(vector_weight=0.5, text_weight=0.5)
        ranked = rank(np.array([0.80, 0.79, 0.1]), np.array([0.0, 2.0, 0.0]), k=2, weights=weights)
        assert [i for i, _ in ranked] == [1, 0]

    def test_ties_keep_index_order(self) -> None:
        """Equal combined scores keep their input order."""
        ranked = rank(np.array([0.5, 0.5, 0.5, 0.9]), np.zeros(4), k=4)
        assert [i for i, _ in ranked] == [3, 0, 1, 2]

    def test_distances_non_decreasing(self) -> None:
        """Results come back best first."""
        rng = np.random.default_rng(7)
        ranked = rank(rng.uniform(-1, 1, 50), rng.uniform(0, 2, 50), k=20)
        distances = [d for _, d in ranked]
        assert len(ranked) == 20
        assert distances == sorted(distances)

    def test_single_candidate_uses_raw_vector_score(self) -> None:
        """Blending is skipped for a single candidate."""
        assert rank(np.array([0.4]), np.array([3.0]), k=5) == [(0, pytest.approx(0.6))]

    def test_degenerate_k(self) -> None:
        """k <= 0 or no candidates give no results."""
        assert rank(np.array([0.4, 0.2]), np.zeros(2), k=0) == []
        assert rank(np.array([]), np.array([]), k=3) == []

    def test_weights_from_config(self, cfg) -> None:
        """Weights come from the search section of the config."""
        cfg["search"]["vector_weight"] = 0.6
        cfg["search"]["text_weight"] = 0.4
        weights = ScoringWeights.from_config(cfg)
        assert weights == ScoringWeights(vector_weight=0.6, text_weight=0.4, min_term_length=3, epsilon=1e-9)
        assert ScoringWeights.from_config({}) == ScoringWeights()
