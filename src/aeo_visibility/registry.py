"""Static catalogue of AI platforms, regions and buyer-journey stages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List

from .errors import InvalidInputError, UnknownPlatformError, UnknownRegionError


class Tier(str, Enum):
    CORE = "core"
    EXTENDED = "extended"
    PREMIUM = "premium"

    @property
    def rank(self) -> int:
        return {Tier.CORE: 1, Tier.EXTENDED: 2, Tier.PREMIUM: 3}[self]

    @classmethod
    def parse(cls, key: "str | Tier") -> "Tier":
        try:
            return cls(str(getattr(key, "value", key)).strip().lower())
        except ValueError:
            raise InvalidInputError(f"Unknown platform tier '{key}'") from None


@dataclass(frozen=True)
class PlatformSpec:
    model_id: str
    display_name: str
    tier: Tier
    icon: str
    market_share: float


class Platform(str, Enum):
    CHATGPT = "chatgpt"
    CLAUDE = "claude"
    PERPLEXITY = "perplexity"
    GEMINI = "gemini"
    GOOGLE_AI = "google-ai"
    COPILOT = "copilot"
    DEEPSEEK = "deepseek"
    LLAMA = "llama"
    MISTRAL = "mistral"
    GROK = "grok"
    META_AI = "meta-ai"

    @property
    def spec(self) -> PlatformSpec:
        return _PLATFORM_TABLE[self]

    @property
    def model_id(self) -> str:
        return self.spec.model_id

    @property
    def display_name(self) -> str:
        return self.spec.display_name

    @property
    def tier(self) -> Tier:
        return self.spec.tier

    @property
    def icon(self) -> str:
        return self.spec.icon

    @property
    def market_share(self) -> float:
        """Assumed fraction of AI-driven search traffic served by the platform."""
        return self.spec.market_share

    @classmethod
    def parse(cls, key: "str | Platform") -> "Platform":
        try:
            return cls(str(getattr(key, "value", key)).strip().lower())
        except ValueError:
            raise UnknownPlatformError(f"Unknown platform '{key}'") from None


# 2025 market-share estimates; shares need not sum to 1.
_PLATFORM_TABLE: Dict[Platform, PlatformSpec] = {
    Platform.CHATGPT: PlatformSpec("openai/gpt-4o-mini", "ChatGPT", Tier.CORE, "🤖", 0.35),
    Platform.CLAUDE: PlatformSpec("anthropic/claude-3.5-haiku", "Claude", Tier.CORE, "🟠", 0.08),
    Platform.PERPLEXITY: PlatformSpec("perplexity/sonar", "Perplexity", Tier.CORE, "🔮", 0.15),
    Platform.GEMINI: PlatformSpec("google/gemini-2.0-flash-001", "Gemini", Tier.CORE, "💎", 0.18),
    Platform.GOOGLE_AI: PlatformSpec(
        "google/gemini-2.0-flash-001", "Google AI Overviews", Tier.EXTENDED, "🔍", 0.12
    ),
    Platform.COPILOT: PlatformSpec("openai/gpt-4o", "Microsoft Copilot", Tier.EXTENDED, "🪁", 0.07),
    Platform.DEEPSEEK: PlatformSpec("deepseek/deepseek-chat", "DeepSeek", Tier.EXTENDED, "🐋", 0.02),
    Platform.LLAMA: PlatformSpec(
        "meta-llama/llama-3.3-70b-instruct", "Llama 3.3", Tier.EXTENDED, "🦙", 0.01
    ),
    Platform.MISTRAL: PlatformSpec("mistralai/mistral-small", "Mistral", Tier.EXTENDED, "🌬️", 0.01),
    Platform.GROK: PlatformSpec("x-ai/grok-2-1212", "Grok", Tier.PREMIUM, "✖️", 0.02),
    Platform.META_AI: PlatformSpec(
        "meta-llama/llama-3.1-405b-instruct", "Meta AI", Tier.PREMIUM, "Ⓜ️", 0.01
    ),
}

_missing = [platform.value for platform in Platform if platform not in _PLATFORM_TABLE]
if _missing:
    raise RuntimeError(f"Platform registry incomplete: {', '.join(_missing)}")

DEFAULT_PLATFORMS = (Platform.CHATGPT, Platform.CLAUDE, Platform.PERPLEXITY, Platform.GEMINI)


def platforms_for_tier(ceiling: "str | Tier" = Tier.CORE) -> List[Platform]:
    limit = Tier.parse(ceiling).rank
    return [platform for platform in Platform if platform.tier.rank <= limit]


class Region(str, Enum):
    GLOBAL = "global"
    US = "us"
    UK = "uk"
    EU = "eu"
    FR = "fr"
    DE = "de"
    ES = "es"
    JP = "jp"
    CN = "cn"
    IN = "in"
    BR = "br"
    AU = "au"

    @property
    def display_name(self) -> str:
        return _REGION_TABLE[self][0]

    @property
    def language(self) -> str:
        return _REGION_TABLE[self][1]

    @property
    def market_context(self) -> str:
        return _REGION_TABLE[self][2]

    @classmethod
    def parse(cls, key: "str | Region | None") -> "Region":
        if key is None:
            return cls.GLOBAL
        try:
            return cls(str(getattr(key, "value", key)).strip().lower())
        except ValueError:
            raise UnknownRegionError(f"Unknown region '{key}'") from None


_REGION_TABLE: Dict[Region, tuple] = {
    Region.GLOBAL: ("Global", "en", "worldwide"),
    Region.US: ("United States", "en-US", "in the United States"),
    Region.UK: ("United Kingdom", "en-GB", "in the United Kingdom"),
    Region.EU: ("European Union", "en", "in Europe"),
    Region.FR: ("France", "fr-FR", "in France"),
    Region.DE: ("Germany", "de-DE", "in Germany"),
    Region.ES: ("Spain", "es-ES", "in Spain"),
    Region.JP: ("Japan", "ja-JP", "in Japan"),
    Region.CN: ("China", "zh-CN", "in China"),
    Region.IN: ("India", "en-IN", "in India"),
    Region.BR: ("Brazil", "pt-BR", "in Brazil"),
    Region.AU: ("Australia", "en-AU", "in Australia"),
}


class JourneyStage(str, Enum):
    AWARENESS = "awareness"
    CONSIDERATION = "consideration"
    DECISION = "decision"
    BRANDED = "branded"

    @property
    def base_ctr(self) -> float:
        return {
            JourneyStage.AWARENESS: 0.05,
            JourneyStage.CONSIDERATION: 0.12,
            JourneyStage.DECISION: 0.25,
            JourneyStage.BRANDED: 0.45,
        }[self]

    @property
    def funnel_weight(self) -> float:
        return {
            JourneyStage.AWARENESS: 0.20,
            JourneyStage.CONSIDERATION: 0.30,
            JourneyStage.DECISION: 0.35,
            JourneyStage.BRANDED: 0.15,
        }[self]

    @property
    def conversion_potential(self) -> str:
        return {
            JourneyStage.AWARENESS: "low",
            JourneyStage.CONSIDERATION: "medium",
            JourneyStage.DECISION: "high",
            JourneyStage.BRANDED: "high",
        }[self]

    @classmethod
    def parse(cls, key: "str | JourneyStage") -> "JourneyStage":
        try:
            return cls(str(getattr(key, "value", key)).strip().lower())
        except ValueError:
            raise InvalidInputError(f"Unknown journey stage '{key}'") from None


ALL_STAGES = tuple(JourneyStage)
