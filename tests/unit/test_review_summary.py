"""Review summary classification."""

from types import SimpleNamespace

from vapor.catalog.summary import (
    MOSTLY_NEGATIVE,
    MOSTLY_POSITIVE,
    NEUTRAL,
    classify,
    summarize_reviews,
)


class TestClassify:
    def test_more_recommended_is_positive(self):
        assert classify(3, 1) == MOSTLY_POSITIVE

    def test_more_not_recommended_is_negative(self):
        assert classify(1, 4) == MOSTLY_NEGATIVE

    def test_equal_counts_is_neutral(self):
        assert classify(2, 2) == NEUTRAL

    def test_no_reviews_is_neutral(self):
        assert classify(0, 0) == NEUTRAL


class TestSummarizeReviews:
    def test_three_to_one(self):
        summary = summarize_reviews([True, True, True, False])
        assert summary.recommended == 3
        assert summary.not_recommended == 1
        assert summary.total == 4
        assert summary.label == "Mostly Positive"

    def test_accepts_dicts_and_objects(self):
        reviews = [
            {"is_recommended": False},
            SimpleNamespace(is_recommended=False),
            {"is_recommended": True},
        ]
        summary = summarize_reviews(reviews)
        assert summary.not_recommended == 2
        assert summary.label == "Mostly Negative"

    def test_empty(self):
        summary = summarize_reviews([])
        assert summary.total == 0
        assert summary.label == "Neutral"
