import pytest

from crowdbot.classifier import (
    classify,
    confidence_level,
    filter_by_category,
    filter_high_confidence,
    filter_trending,
    filter_uncertain,
    market_views,
    shorten_question,
)
from crowdbot.models import ConfidenceLabel, MarketSnapshot, OutcomeSide


def _market(p=0.5, volume=0.0, category="", question="Will it happen?"):
    return MarketSnapshot(question=question, yes_probability=p, volume_24h=volume, category=category)


@pytest.mark.parametrize("p", [i / 100 for i in range(101)])
def test_confidence_level_is_symmetric(p):
    assert confidence_level(p) == confidence_level(1 - p)


@pytest.mark.parametrize(
    "p, expected",
    [
        (1.0, ConfidenceLabel.VERY_HIGH),
        (0.85, ConfidenceLabel.VERY_HIGH),
        (0.15, ConfidenceLabel.VERY_HIGH),
        (0.0, ConfidenceLabel.VERY_HIGH),
        (0.84, ConfidenceLabel.HIGH),
        (0.70, ConfidenceLabel.HIGH),
        (0.30, ConfidenceLabel.HIGH),
        (0.69, ConfidenceLabel.MODERATE),
        (0.60, ConfidenceLabel.MODERATE),
        (0.40, ConfidenceLabel.MODERATE),
        (0.59, ConfidenceLabel.LOW),
        (0.50, ConfidenceLabel.LOW),
    ],
)
def test_confidence_level_thresholds(p, expected):
    assert confidence_level(p) == expected


def test_filter_trending_excludes_low_volume_and_keeps_source_order():
    markets = [
        _market(volume=9000, question="A"),
        _market(volume=5000, question="at threshold"),
        _market(volume=4999, question="below"),
        _market(volume=20000, question="B"),
    ]

    result = filter_trending(markets)

    assert [m.market.question for m in result] == ["A", "B"]


def test_filter_trending_truncates_to_limit():
    markets = [_market(volume=10000 + i, question=str(i)) for i in range(15)]

    result = filter_trending(markets, limit=10)

    assert [m.market.question for m in result] == [str(i) for i in range(10)]


def test_filter_trending_labels_by_probability():
    result = filter_trending([_market(p=0.9, volume=6000), _market(p=0.5, volume=6000)])

    assert [m.confidence for m in result] == [ConfidenceLabel.VERY_HIGH, ConfidenceLabel.LOW]


def test_filter_by_category_is_case_insensitive_substring():
    markets = [
        _market(category="Politics", question="p1"),
        _market(category="US-politics", question="p2"),
        _market(category="Crypto", question="c1"),
        _market(category="", question="none"),
    ]

    result = filter_by_category(markets, "POLITIC")

    assert [m.market.question for m in result] == ["p1", "p2"]


def test_filter_by_category_empty_category_never_errors():
    markets = [_market(category="", question="none")]

    assert filter_by_category(markets, "sports") == []
    assert len(filter_by_category(markets, "")) == 1


def test_filter_by_category_limit():
    markets = [_market(category="Sports", question=str(i)) for i in range(12)]

    assert len(filter_by_category(markets, "sports", limit=10)) == 10


@pytest.mark.parametrize("p", [0.20, 0.50, 0.80])
def test_filter_high_confidence_excludes_middle(p):
    assert filter_high_confidence([_market(p=p, volume=10000)]) == []


def test_filter_high_confidence_includes_edges_and_sides():
    result = filter_high_confidence([_market(p=0.81, volume=100), _market(p=0.19, volume=50)])

    assert [m.market.yes_probability for m in result] == [0.81, 0.19]
    assert [m.outcome_side for m in result] == [OutcomeSide.YES, OutcomeSide.NO]
    assert all(m.confidence == ConfidenceLabel.VERY_HIGH for m in result)


def test_filter_high_confidence_sorts_by_volume_with_stable_ties():
    markets = [
        _market(p=0.9, volume=100, question="first-100"),
        _market(p=0.1, volume=500, question="500"),
        _market(p=0.95, volume=100, question="second-100"),
        _market(p=0.05, volume=0, question="no volume"),
    ]

    result = filter_high_confidence(markets)

    assert [m.market.question for m in result] == ["500", "first-100", "second-100", "no volume"]


def test_filter_high_confidence_limit():
    markets = [_market(p=0.9, volume=i) for i in range(20)]

    assert len(filter_high_confidence(markets)) == 8


def test_filter_uncertain_volume_floor():
    included = _market(p=0.50, volume=4000, question="in")
    excluded = _market(p=0.50, volume=2000, question="out")

    result = filter_uncertain([included, excluded])

    assert [m.market.question for m in result] == ["in"]
    assert result[0].confidence == ConfidenceLabel.LOW


def test_filter_uncertain_band_is_inclusive():
    markets = [
        _market(p=0.45, volume=5000, question="low edge"),
        _market(p=0.55, volume=6000, question="high edge"),
        _market(p=0.44, volume=9000, question="too low"),
        _market(p=0.56, volume=9000, question="too high"),
    ]

    result = filter_uncertain(markets)

    assert [m.market.question for m in result] == ["high edge", "low edge"]


def test_shorten_question_long_ascii():
    result = shorten_question("a" * 100, 80)

    assert len(result) == 80
    assert result.endswith("...")
    assert result == "a" * 77 + "..."


@pytest.mark.parametrize("text", ["short", "b" * 80, ""])
def test_shorten_question_unchanged(text):
    assert shorten_question(text, 80) == text


def test_shorten_question_keeps_combining_mark_with_base():
    text = "a" * 76 + "e\u0301" + "b" * 30

    result = shorten_question(text, 80)

    assert result == "a" * 76 + "..."


def test_shorten_question_keeps_zwj_sequence_whole():
    text = "a" * 75 + "\U0001F469\u200d\U0001F4BB" + "x" * 10

    result = shorten_question(text, 80)

    assert result == "a" * 75 + "..."


def test_shorten_question_keeps_flag_pairs():
    flag = "\U0001F1FA\U0001F1F8"
    text = "a" * 76 + flag + "z" * 10

    result = shorten_question(text, 80)

    assert result == "a" * 76 + "..."


def test_classify_shortens_and_labels():
    market = _market(p=0.72, question="q" * 120)

    result = classify(market)

    assert result.confidence == ConfidenceLabel.HIGH
    assert result.outcome_side == OutcomeSide.YES
    assert len(result.short_question) == 80
    assert result.probability_pct == 72


def test_outcome_side_at_even_odds_is_no():
    assert classify(_market(p=0.5)).outcome_side == OutcomeSide.NO


def test_classifier_is_idempotent():
    markets = [
        _market(p=0.9, volume=9000, category="Politics", question="one"),
        _market(p=0.5, volume=4000, category="Crypto", question="two"),
        _market(p=0.1, volume=7000, category="Sports", question="three"),
    ]

    first = market_views(markets, markets, "crypto")
    second = market_views(markets, markets, "crypto")

    assert first == second
    assert set(first) == {"trending", "high_confidence", "uncertain", "category"}
    assert [m.market.question for m in first["category"]] == ["two"]


def test_shorten_question_keeps_hangul_jamo_together():
    syllable = "\u1100\u1161\u11a8"
    text = "a" * 75 + syllable + "b" * 20

    result = shorten_question(text, 80)

    assert result == "a" * 75 + "..."


def test_shorten_question_keeps_crlf_together():
    text = "a" * 76 + "\r\n" + "b" * 20

    result = shorten_question(text, 80)

    assert result == "a" * 76 + "..."
