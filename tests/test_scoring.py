import pytest

from aeo_visibility.models import Citation, Opportunity, Sentiment, round_half_up
from aeo_visibility.registry import JourneyStage, Platform
from aeo_visibility.scoring import (
    MAX_RECOMMENDATIONS,
    aeo_score,
    build_recommendations,
    competitor_comparison,
    gap_analysis,
    journey_breakdown,
    result_score,
    summarize_citations,
)

from conftest import make_result

pytestmark = pytest.mark.unit


def own_citation(path="/"):
    return Citation(
        url=f"https://acme.com{path}", domain="acme.com", is_own_site=True, context="acme"
    )


def test_result_score_is_capped():
    result = make_result(
        position=1,
        sentiment=Sentiment.POSITIVE,
        citations=[own_citation("/a"), own_citation("/b")],
    )
    assert result_score(result) == 25
    assert result_score(make_result(position=4)) == 18
    assert result_score(make_result(mentioned=False)) == 0


def test_aeo_score_bounds():
    assert aeo_score([]) == 0
    full = make_result(position=1, sentiment=Sentiment.POSITIVE, citations=[own_citation()])
    assert aeo_score([full]) == 100
    assert aeo_score([full, make_result(mentioned=False)]) == 50


def test_journey_breakdown_always_has_every_stage():
    breakdown = journey_breakdown([])
    assert set(breakdown) == set(JourneyStage)
    assert all(entry.score == 0 and entry.platforms == 0 for entry in breakdown.values())

    breakdown = journey_breakdown(
        [
            make_result(stage=JourneyStage.DECISION),
            make_result(Platform.CLAUDE, stage=JourneyStage.DECISION, mentioned=False),
        ]
    )
    assert breakdown[JourneyStage.DECISION].score == 50
    assert breakdown[JourneyStage.DECISION].platforms == 1


def test_gap_analysis_ranks_by_opportunity():
    results = [
        make_result(
            Platform.CLAUDE,
            mentioned=False,
            stage=JourneyStage.CONSIDERATION,
            raw_response="Globex is good.",
            competitors=["Globex"],
        ),
        make_result(
            mentioned=False,
            raw_response="1. Globex\n2. Initech",
            competitors=["Globex", "Initech"],
        ),
        make_result(
            Platform.GEMINI,
            mentioned=False,
            stage=JourneyStage.BRANDED,
            raw_response="Globex and Initech.",
            competitors=["Globex", "Initech"],
        ),
    ]
    gaps = gap_analysis(results, "Acme", ["Globex", "Initech"])
    assert [gap.opportunity for gap in gaps] == [Opportunity.HIGH, Opportunity.MEDIUM]
    top = gaps[0]
    assert top.platform is Platform.CHATGPT
    assert [(c.name, c.position) for c in top.competitors] == [("Globex", 1), ("Initech", 2)]
    assert top.your_brand.mentioned is False
    assert gaps[1].mentioned_competitors == ["Globex"]


def test_gap_skipped_when_brand_seen_in_group():
    results = [
        make_result(mentioned=False, raw_response="Globex", competitors=["Globex"]),
        make_result(raw_response="Acme and Globex", competitors=["Globex"], query="other"),
    ]
    assert gap_analysis(results, "Acme", ["Globex"]) == []


def test_competitor_comparison_counts_presence():
    results = [
        make_result(raw_response="1. Globex\n2. Acme"),
        make_result(Platform.CLAUDE, raw_response="Acme only"),
    ]
    (globex,) = competitor_comparison(results, ["Globex"])
    assert globex.mention_rate == 50
    assert globex.avg_position == 1.0
    assert globex.sentiment_counts == {"positive": 0, "neutral": 1, "negative": 0}


def test_citation_summary_lists_top_domains():
    other = Citation(url="https://g2.com/x", domain="g2.com", is_own_site=False, context="")
    summary = summarize_citations(
        [make_result(citations=[own_citation(), other]), make_result(citations=[other])]
    )
    assert summary.total == 3
    assert summary.own_site == 1
    assert summary.top_cited[0] == "g2.com"


def test_recommendations_for_invisible_brand():
    results = [
        make_result(mentioned=False, raw_response="Globex", competitors=["Globex"]),
        make_result(
            Platform.CLAUDE,
            mentioned=False,
            stage=JourneyStage.DECISION,
            raw_response="Initech",
            competitors=["Initech"],
        ),
    ]
    gaps = gap_analysis(results, "Acme", ["Globex"])
    recommendations = build_recommendations(results, "Acme", gaps=gaps, domain="acme.com")
    assert len(recommendations) <= MAX_RECOMMENDATIONS
    assert recommendations[0].startswith("Improve visibility on ChatGPT, Claude")
    assert any("llms.txt" in text for text in recommendations)
    assert any("JSON-LD" in text for text in recommendations)
    assert any("acme.com" in text for text in recommendations)
    assert gaps[0].recommendation in recommendations
    assert recommendations[-1].startswith("Competitors mentioned alongside your brand: Globex, Initech")


def test_branded_only_visibility_is_called_out():
    results = [
        make_result(mentioned=False, stage=JourneyStage.AWARENESS),
        make_result(mentioned=False, stage=JourneyStage.CONSIDERATION),
        make_result(stage=JourneyStage.BRANDED, citations=[own_citation()]),
    ]
    recommendations = build_recommendations(results, "Acme")
    assert any("only appears when users already know it" in r for r in recommendations)


def test_recommendations_fall_back_to_positive_message():
    results = [make_result(position=1, sentiment=Sentiment.POSITIVE, citations=[own_citation()])]
    assert build_recommendations(results, "Acme") == [
        "Your brand has good AI visibility! Continue creating quality content to maintain your position."
    ]


def test_single_mention_never_scores_zero():
    results = [make_result(mentioned=False) for _ in range(122)]
    results.append(make_result(sentiment=Sentiment.NEGATIVE))
    assert result_score(results[-1]) == 15
    assert aeo_score(results) == 1


def test_stage_percentages_round_ties_up():
    results = [make_result(stage=JourneyStage.DECISION)]
    results += [make_result(stage=JourneyStage.DECISION, mentioned=False) for _ in range(7)]
    assert journey_breakdown(results)[JourneyStage.DECISION].score == 13


def test_round_half_up():
    assert round_half_up(12.5) == 13
    assert round_half_up(0.5) == 1
    assert round_half_up(-2.5) == -2
    assert round_half_up(1.25, 1) == 1.3
