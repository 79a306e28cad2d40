"""Heuristic extraction of visibility signals from free-form model answers.

Everything here is a pure function of its inputs. Sentiment is a lexical
word-count heuristic, not a model-based classifier: it only counts fixed
positive and negative words in the whole answer, so tests should treat it
as approximate and feed it unambiguous text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple
from urllib.parse import urlparse

from .models import Citation, Sentiment

POSITIVE_WORDS: Tuple[str, ...] = (
    "excellent",
    "great",
    "recommend",
    "best",
    "quality",
    "trusted",
    "popular",
    "leading",
    "top",
    "premium",
    "outstanding",
    "innovative",
    "highly rated",
    "reliable",
)
NEGATIVE_WORDS: Tuple[str, ...] = (
    "avoid",
    "poor",
    "bad",
    "issue",
    "problem",
    "complaint",
    "expensive",
    "overpriced",
    "disappointing",
    "unreliable",
    "scam",
    "worst",
)

# Marketplaces and SEO/marketing tools that routinely show up in answers.
KNOWN_BRANDS: Tuple[str, ...] = (
    "amazon",
    "ebay",
    "walmart",
    "etsy",
    "alibaba",
    "aliexpress",
    "shopify",
    "wayfair",
    "best buy",
    "bigcommerce",
    "woocommerce",
    "wix",
    "squarespace",
    "semrush",
    "ahrefs",
    "similarweb",
    "hubspot",
    "salesforce",
    "mailchimp",
    "canva",
    "stripe",
)

SNIPPET_BEFORE = 50
SNIPPET_AFTER = 200
CITATION_CONTEXT = 100
MIN_VARIANT_LENGTH = 3

_LIST_LINE_RE = re.compile(r"^(?:\d+[.)]\s|[-*•]\s|\*\*\d+[.)])")
_INLINE_MARKER_RE = re.compile(r"(?<!\S)(\d+)[.)]\s+")
_URL_RE = re.compile(r"https?://[^\s<>\"'()\[\]]+", re.IGNORECASE)
_MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\((https?://[^)\s]+)\)", re.IGNORECASE)
_SOURCE_RE = re.compile(
    r"\b(?:sources?|from|via)\s*:?\s+"
    r"((?:www\.)?[a-z0-9](?:[a-z0-9-]*[a-z0-9])?(?:\.[a-z0-9-]+)*\.[a-z]{2,})\b",
    re.IGNORECASE,
)
_TRAILING_PUNCTUATION = ".,;:!?'\""


class SentimentClassifier(Protocol):
    def classify(self, text: str) -> Sentiment:
        ...


class LexicalSentimentClassifier:
    """Counts fixed positive/negative words; a margin above one decides."""

    def __init__(
        self,
        positive_words: Sequence[str] = POSITIVE_WORDS,
        negative_words: Sequence[str] = NEGATIVE_WORDS,
    ) -> None:
        self._positive = [_word_pattern(word) for word in positive_words]
        self._negative = [_word_pattern(word) for word in negative_words]

    def classify(self, text: str) -> Sentiment:
        lowered = text.lower()
        positive = sum(len(pattern.findall(lowered)) for pattern in self._positive)
        negative = sum(len(pattern.findall(lowered)) for pattern in self._negative)
        if positive - negative > 1:
            return Sentiment.POSITIVE
        if negative - positive > 1:
            return Sentiment.NEGATIVE
        return Sentiment.NEUTRAL


def _word_pattern(word: str) -> "re.Pattern[str]":
    return re.compile(r"\b" + re.escape(word.lower()) + r"(?:s|es|ed|ing)?\b")


@dataclass(frozen=True)
class ResponseAnalysis:
    mentioned: bool
    position: Optional[int]
    sentiment: Sentiment
    snippet: str
    competitors: Tuple[str, ...]
    citations: Tuple[Citation, ...]


def brand_variants(brand: str) -> List[str]:
    lowered = brand.strip().lower()
    variants: List[str] = []
    for candidate in (
        lowered,
        re.sub(r"\s+", "", lowered),
        re.sub(r"\s+", "-", lowered),
        re.sub(r"\s+", "_", lowered),
    ):
        if candidate and candidate not in variants:
            variants.append(candidate)
    return variants


def _usable_variants(name: str) -> List[str]:
    return [v for v in brand_variants(name) if len(v) >= MIN_VARIANT_LENGTH]


def detect_mention(text: str, brand: str) -> bool:
    lowered = text.lower()
    return any(variant in lowered for variant in _usable_variants(brand))


def extract_position(text: str, brand: str) -> Optional[int]:
    """Return the 1-based list slot holding the brand, or None if unlisted."""
    variants = _usable_variants(brand)
    if not variants:
        return None
    list_lines = 0
    for line in text.splitlines():
        stripped = line.strip()
        if not _LIST_LINE_RE.match(stripped):
            continue
        list_lines += 1
        lowered = stripped.lower()
        if any(variant in lowered for variant in variants):
            return list_lines
    if list_lines:
        return None
    return _inline_position(text, variants)


def _inline_position(text: str, variants: Sequence[str]) -> Optional[int]:
    # Handles answers like "1. Foo 2. Bar 3. Baz" written on one line.
    markers = []
    expected = 1
    for match in _INLINE_MARKER_RE.finditer(text):
        if int(match.group(1)) == expected:
            markers.append(match)
            expected += 1
    if len(markers) < 2:
        return None
    lowered = text.lower()
    for index, marker in enumerate(markers):
        end = markers[index + 1].start() if index + 1 < len(markers) else len(text)
        segment = lowered[marker.end():end]
        if any(variant in segment for variant in variants):
            return index + 1
    return None


def extract_snippet(text: str, brand: str) -> str:
    lowered = text.lower()
    hits = [lowered.find(v) for v in _usable_variants(brand)]
    hits = [idx for idx in hits if idx != -1]
    if not hits:
        return ""
    idx = min(hits)
    start = max(0, idx - SNIPPET_BEFORE)
    end = min(len(text), idx + SNIPPET_AFTER)
    snippet = text[start:end].strip()
    if start > 0:
        snippet = "..." + snippet
    if end < len(text):
        snippet = snippet + "..."
    return snippet


def extract_competitors(
    text: str,
    brand: str,
    competitors: Iterable[str] = (),
    *,
    known_brands: Sequence[str] = KNOWN_BRANDS,
) -> List[str]:
    lowered = text.lower()
    excluded = set(brand_variants(brand))
    seen = set()
    found: List[str] = []
    for candidate in list(known_brands) + [c for c in competitors if c]:
        name = candidate.strip()
        key = name.lower()
        if not key or key in seen:
            continue
        seen.add(key)
        if key in excluded or set(brand_variants(name)) & excluded:
            continue
        if key in lowered:
            found.append(name)
    return found


def normalize_domain(domain: Optional[str]) -> Optional[str]:
    if not domain or not domain.strip():
        return None
    value = domain.strip().lower()
    if "://" in value:
        try:
            value = urlparse(value).hostname or ""
        except ValueError:
            return None
    value = value.split("/", 1)[0]
    if value.startswith("www."):
        value = value[4:]
    return value or None


def _domain_of(url: str) -> Optional[str]:
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    if not host or "." not in host:
        return None
    return host[4:] if host.startswith("www.") else host


def extract_citations(text: str, own_domain: Optional[str] = None) -> List[Citation]:
    own = normalize_domain(own_domain)
    candidates: List[Tuple[str, int, int]] = []
    for match in _URL_RE.finditer(text):
        url = match.group(0).rstrip(_TRAILING_PUNCTUATION)
        candidates.append((url, match.start(), match.start() + len(url)))
    for match in _MARKDOWN_LINK_RE.finditer(text):
        candidates.append((match.group(2), match.start(), match.end()))
    for match in _SOURCE_RE.finditer(text):
        candidates.append((f"https://{match.group(1).lower()}", match.start(), match.end()))

    seen = set()
    citations: List[Citation] = []
    for url, start, end in candidates:
        if url in seen:
            continue
        domain = _domain_of(url)
        if domain is None:
            continue
        seen.add(url)
        context = text[max(0, start - CITATION_CONTEXT):min(len(text), end + CITATION_CONTEXT)]
        citations.append(
            Citation(
                url=url,
                domain=domain,
                is_own_site=bool(own) and own in domain,
                context=context.strip(),
            )
        )
    return citations


class ResponseAnalyzer:
    """Bundles the extraction helpers behind swappable strategies."""

    def __init__(
        self,
        *,
        sentiment_classifier: Optional[SentimentClassifier] = None,
        known_brands: Sequence[str] = KNOWN_BRANDS,
    ) -> None:
        self.sentiment_classifier = sentiment_classifier or LexicalSentimentClassifier()
        self.known_brands = tuple(known_brands)

    def analyze(
        self,
        text: str,
        brand: str,
        domain: Optional[str] = None,
        competitors: Iterable[str] = (),
    ) -> ResponseAnalysis:
        mentioned = detect_mention(text, brand)
        position: Optional[int] = None
        snippet = ""
        sentiment = Sentiment.NEUTRAL
        if mentioned:
            position = extract_position(text, brand)
            snippet = extract_snippet(text, brand)
            sentiment = self.sentiment_classifier.classify(text)
        return ResponseAnalysis(
            mentioned=mentioned,
            position=position,
            sentiment=sentiment,
            snippet=snippet,
            competitors=tuple(
                extract_competitors(
                    text, brand, competitors, known_brands=self.known_brands
                )
            ),
            citations=tuple(extract_citations(text, domain)),
        )
