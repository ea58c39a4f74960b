import pytest

from prep_tracker.config import DEFAULT_REVIEW_INTERVALS, parse_review_intervals


def test_review_intervals_default_when_unset():
    assert parse_review_intervals(None) == DEFAULT_REVIEW_INTERVALS
    assert parse_review_intervals("  ") == DEFAULT_REVIEW_INTERVALS


def test_review_intervals_parsed_from_csv():
    assert parse_review_intervals("2, 4,8") == [2, 4, 8]


def test_review_intervals_must_be_positive():
    with pytest.raises(ValueError):
        parse_review_intervals("1,0,3")
