import pytest

from aeo_visibility.config import EngineSettings
from aeo_visibility.errors import (
    InvalidInputError,
    UnknownPlatformError,
    UnknownRegionError,
)
from aeo_visibility.models import CheckRequest
from aeo_visibility.queries import generate_queries, templates_for
from aeo_visibility.registry import (
    DEFAULT_PLATFORMS,
    JourneyStage,
    Platform,
    Region,
    Tier,
    platforms_for_tier,
)

pytestmark = pytest.mark.unit


def test_platform_lookups():
    assert Platform.parse(" ChatGPT ") is Platform.CHATGPT
    assert Platform.GOOGLE_AI.display_name == "Google AI Overviews"
    assert Platform.CHATGPT.market_share == 0.35
    with pytest.raises(UnknownPlatformError):
        Platform.parse("altavista")
    assert issubclass(UnknownPlatformError, ValueError)


def test_tier_ceiling_selects_platforms():
    assert platforms_for_tier() == list(DEFAULT_PLATFORMS)
    assert Platform.GROK not in platforms_for_tier(Tier.EXTENDED)
    assert len(platforms_for_tier("premium")) == len(Platform)


def test_region_parse():
    assert Region.parse(None) is Region.GLOBAL
    assert Region.parse("FR").market_context == "in France"
    with pytest.raises(UnknownRegionError):
        Region.parse("mars")


def test_journey_stage_tables():
    assert [stage.base_ctr for stage in JourneyStage] == [0.05, 0.12, 0.25, 0.45]
    assert sum(stage.funnel_weight for stage in JourneyStage) == pytest.approx(1.0)
    with pytest.raises(InvalidInputError):
        JourneyStage.parse("retention")


def test_one_query_per_stage_by_default():
    queries = generate_queries("Acme", "project management")
    assert [q.stage for q in queries] == list(JourneyStage)
    assert queries[0].prompt == "What are the best project management brands worldwide?"
    assert all("{" not in q.prompt for q in queries)


def test_queries_fall_back_and_localize():
    queries = generate_queries("Acme", None, "fr", stages=["decision"], prompts_per_stage=2)
    assert len(queries) == 2
    assert queries[1].prompt == "Is Acme worth it for products and services in France?"


def test_prompts_per_stage_is_bounded_by_templates():
    queries = generate_queries("Acme", "saas", prompts_per_stage=10)
    assert len(queries) == sum(len(templates_for(stage)) for stage in JourneyStage)


def test_overview_platform_gets_extra_prompts():
    plain = generate_queries("Acme", "saas", platform="chatgpt")
    overview = generate_queries("Acme", "saas", platform=Platform.GOOGLE_AI)
    assert len(overview) == len(plain) + 2
    assert all(q.stage is JourneyStage.AWARENESS for q in overview[len(plain):])


@pytest.mark.parametrize("brand", ["", "   ", None])
def test_blank_brand_is_rejected(brand):
    with pytest.raises(InvalidInputError, match="Brand name is required"):
        generate_queries(brand)


def test_check_request_validation():
    with pytest.raises(InvalidInputError):
        CheckRequest(brand="Acme", platforms=["grok"]).validate()
    with pytest.raises(UnknownRegionError):
        CheckRequest(brand="Acme", region="mars").validate()
    request = CheckRequest(
        brand="Acme",
        tier_ceiling="premium",
        platforms=["grok", "GROK", "claude"],
        competitors=["Globex", " globex ", ""],
    )
    request.validate()
    assert request.resolved_platforms() == [Platform.GROK, Platform.CLAUDE]
    assert request.competitor_names() == ["Globex"]


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("AEO_MAX_CONCURRENCY", "8")
    monkeypatch.setenv("AEO_CALL_TIMEOUT", "12.5")
    monkeypatch.delenv("OPENROUTER_BASE_URL", raising=False)
    settings = EngineSettings.from_env()
    assert settings.max_concurrency == 8
    assert settings.call_timeout == 12.5
    assert settings.requests_per_minute == 60

    monkeypatch.setenv("AEO_MAX_CONCURRENCY", "many")
    with pytest.raises(InvalidInputError):
        EngineSettings.from_env()
    with pytest.raises(InvalidInputError):
        EngineSettings(max_concurrency=0)
