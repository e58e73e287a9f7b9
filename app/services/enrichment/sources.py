"""Fail-soft adapters over the search, research, and contact-verification providers.

Every adapter returns an empty result instead of raising when its provider is
unconfigured, unreachable, or returns something unusable. Failures are logged
at WARNING and counted, and never reach the caller.
"""

from __future__ import annotations

import concurrent.futures
import html
import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Final, Protocol

from app.clients.apollo import ApolloClient, ApolloError, ApolloPerson
from app.clients.exa import ExaError
from app.clients.perplexity import PerplexityError, ResearchAnswer
from app.config import settings
from app.models.lead import PriorityItem
from app.observability.metrics import metrics
from app.services.decoding import decode_json_array
from app.services.enrichment.contacts import domain_from_website, parse_url
from app.services.errors import ModelOutputError

logger = logging.getLogger(__name__)

SOCIAL_DOMAINS: Final[frozenset[str]] = frozenset({"twitter.com", "x.com", "linkedin.com"})
_TWITTER_DOMAINS: Final[list[str]] = ["twitter.com", "x.com"]
_DIRECTORY_DOMAINS: Final[list[str]] = [
    "linkedin.com",
    "crunchbase.com",
    "wikipedia.org",
    "twitter.com",
    "x.com",
    "facebook.com",
    "bloomberg.com",
    "pitchbook.com",
]
_INDEX_SEGMENTS: Final[frozenset[str]] = frozenset(
    {
        "news",
        "blog",
        "blogs",
        "press",
        "newsroom",
        "media",
        "insights",
        "articles",
        "press-releases",
        "updates",
        "resources",
    }
)
_LOCALE_SEGMENT = re.compile(r"^[a-z]{2}(?:[-_][a-z]{2})?$")
_BRACKET_TOKEN = re.compile(r"\[[^\]]{1,40}\]")
_SHORT_HEADING = re.compile(r"^#{1,3}\s")
_CITATION_MARKER = re.compile(r"\[(\d+)\]")
_CANDIDATE_NAME = re.compile(r"\b[A-Z][a-z]+(?:[-'][A-Z][a-z]+)?(?:\s+[A-Z][a-z]+(?:[-'][A-Z][a-z]+)?){1,2}\b")
_NAME_STOPWORDS: Final[frozenset[str]] = frozenset(
    {
        "the",
        "and",
        "our",
        "about",
        "team",
        "leadership",
        "meet",
        "head",
        "chief",
        "officer",
        "vice",
        "president",
        "director",
        "manager",
        "founder",
        "partner",
        "partners",
        "partnerships",
        "payments",
        "payment",
        "product",
        "products",
        "business",
        "development",
        "global",
        "linkedin",
        "twitter",
        "news",
        "press",
        "read",
        "more",
        "contact",
        "us",
        "inc",
        "ltd",
        "group",
        "company",
        "crypto",
        "digital",
        "assets",
        "financial",
        "services",
        "executive",
        "board",
        "senior",
        "north",
        "south",
        "america",
        "europe",
        "united",
        "states",
        "kingdom",
    }
)
MAX_CANDIDATE_NAMES: Final[int] = 3
SOCIAL_SNIPPET_LIMIT: Final[int] = 220


class SearchClient(Protocol):
    def search(
        self,
        query: str,
        *,
        num_results: int = 3,
        start_published_date: datetime | None = None,
        include_domains: Sequence[str] | None = None,
        exclude_domains: Sequence[str] | None = None,
        max_characters: int = 500,
        use_autoprompt: bool = True,
    ) -> list[dict[str, Any]]:
        ...


class ResearchClient(Protocol):
    def ask(self, *, system_prompt: str, user_prompt: str, max_tokens: int = 400) -> ResearchAnswer:
        ...


@dataclass(frozen=True)
class NewsItem:
    title: str
    excerpt: str
    url: str


@dataclass(frozen=True)
class NewsResult:
    items: list[NewsItem] = field(default_factory=list)
    text: str = ""

    @property
    def excerpt(self) -> str:
        """The first excerpt, used by the short classification prompt."""
        return self.items[0].excerpt if self.items else ""


@dataclass(frozen=True)
class DecisionMakerResult:
    text: str = ""
    candidate_names: list[str] = field(default_factory=list)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _record_failure(source: str, exc: Exception) -> None:
    logger.warning(
        "enrichment.source.failed",
        extra={"source": source, "code": getattr(exc, "code", type(exc).__name__), "error": str(exc)},
    )
    metrics.increment("enrichment.source.errors", tags={"source": source})


def _host(url: str) -> str:
    parsed = parse_url(url)
    host = ((parsed.hostname if parsed else None) or "").lower()
    return host[4:] if host.startswith("www.") else host


def is_generic_url(url: str) -> bool:
    """True for root domains and index pages (``/news``, ``/en/blog``) rather than articles."""
    parsed = parse_url(url if "://" in url else f"https://{url}")
    if parsed is None:
        return True
    segments = [segment.lower() for segment in parsed.path.split("/") if segment]
    if not segments:
        return True
    return all(segment in _INDEX_SEGMENTS or _LOCALE_SEGMENT.match(segment) for segment in segments)


def is_social_url(url: str) -> bool:
    return _host(url) in SOCIAL_DOMAINS


def clean_social_text(raw: str, title: str, url: str) -> str | None:
    """Reduce a social search hit to a short readable snippet, or None when unusable."""
    usable_title = title if title and len(title) > 10 else None
    if "linkedin.com" in url and (
        raw.startswith("Agree & Join") or "Sign in to view" in raw or "Skip to main content" in raw
    ):
        return usable_title

    kept: list[str] = []
    for line in html.unescape(raw).split("\n"):
        stripped = line.strip()
        if not stripped:
            continue
        words = len(stripped.split())
        brackets = len(_BRACKET_TOKEN.findall(stripped))
        if brackets > 3 and brackets / words > 0.4:
            continue
        if _SHORT_HEADING.match(stripped) and words < 6:
            continue
        kept.append(stripped)
    text = re.sub(r"\s+", " ", " ".join(kept)).strip()

    if len(_BRACKET_TOKEN.findall(text[:300])) > 5 or "`` ``" in text:
        return usable_title
    if len(text) > SOCIAL_SNIPPET_LIMIT:
        text = re.sub(r"\s+\S*$", "", text[:SOCIAL_SNIPPET_LIMIT]) + "…"
    return text if len(text) > 20 else usable_title


def extract_candidate_names(text: str, company: str, *, exclude: Iterable[str] = ()) -> list[str]:
    """Pull capitalized two- or three-word sequences that look like personal names."""
    blocked = set(_NAME_STOPWORDS)
    blocked.update(token.lower() for token in re.findall(r"[A-Za-z]+", company))
    for phrase in exclude:
        blocked.update(token.lower() for token in re.findall(r"[A-Za-z]+", phrase))

    names: list[str] = []
    for match in _CANDIDATE_NAME.finditer(text):
        candidate = match.group(0)
        if any(token.lower() in blocked for token in re.split(r"[\s\-']+", candidate)):
            continue
        if candidate not in names:
            names.append(candidate)
        if len(names) >= MAX_CANDIDATE_NAMES:
            break
    return names


class _SearchAdapter:
    source = "exa"

    def __init__(self, client: SearchClient | None) -> None:
        self._client = client

    def _search(self, query: str, **options: Any) -> list[dict[str, Any]]:
        if self._client is None:
            return []
        try:
            results = self._client.search(query, **options)
        except ExaError as exc:
            _record_failure(self.source, exc)
            return []
        usable = [result for result in results if parse_url(result.get("url")) is not None]
        if len(usable) < len(results):
            logger.warning(
                "enrichment.source.malformed_results",
                extra={"source": self.source, "dropped": len(results) - len(usable)},
            )
        return usable


class NewsAdapter(_SearchAdapter):
    """Recent payments-relevant coverage of a company, article pages only."""

    source = "news"

    def __init__(
        self,
        client: SearchClient | None,
        *,
        window_days: int | None = None,
        max_results: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(client)
        self._window_days = window_days or settings.news_window_days
        self._max_results = max_results or settings.news_max_results
        self._clock = clock

    def search(self, company: str, website: str | None = None) -> NewsResult:
        query = f"{company} payments partnerships funding product launch crypto"
        if website:
            query = f'{query} "{company}" {domain_from_website(website) or website}'
        results = self._search(
            query,
            num_results=self._max_results * 3,
            start_published_date=self._clock() - timedelta(days=self._window_days),
        )

        items: list[NewsItem] = []
        seen: set[str] = set()
        for result in results:
            url = result.get("url") or ""
            if not url or url in seen or is_generic_url(url):
                continue
            seen.add(url)
            items.append(
                NewsItem(
                    title=(result.get("title") or url).strip(),
                    excerpt=(result.get("text") or "")[:200].strip(),
                    url=url,
                )
            )
            if len(items) >= self._max_results:
                break
        text = "\n".join(f"- {item.title}: {item.excerpt}" for item in items)
        return NewsResult(items=items, text=text)


class DecisionMakerAdapter(_SearchAdapter):
    """Two-pass search: by role first, then by names leaked in the first pass."""

    source = "decision_makers"

    def search(self, company: str, website: str | None, titles: Sequence[str]) -> DecisionMakerResult:
        if self._client is None:
            return DecisionMakerResult()
        domain = domain_from_website(website)
        title_query = " OR ".join(titles[:5])
        first_pass: list[tuple[str, dict[str, Any]]] = []
        if domain:
            first_pass.append(
                (
                    "team about leadership people executives",
                    {"include_domains": [domain], "use_autoprompt": False, "max_characters": 1000},
                )
            )
        first_pass.append((f'"{company}" ({title_query}) name email contact', {"max_characters": 800}))
        first_pass.append(
            (f'"{company}" {title_query}', {"include_domains": ["linkedin.com"], "max_characters": 600})
        )

        results = self._run_parallel(first_pass)
        first_text = " ".join(f"{item.get('title') or ''} {item.get('text') or ''}" for item in results)
        names = extract_candidate_names(first_text, company, exclude=titles)
        if names:
            results = _dedupe(
                results
                + self._run_parallel(
                    [
                        (f'"{name}" {company}', {"include_domains": ["linkedin.com"], "max_characters": 600})
                        for name in names
                    ]
                )
            )

        text = "\n\n".join(
            f"[{item.get('title') or ''}] ({item.get('url')})\n{item.get('text') or ''}".strip() for item in results
        )
        logger.debug(
            "enrichment.decision_makers.searched",
            extra={"company": company, "results": len(results), "candidates": names},
        )
        return DecisionMakerResult(text=text, candidate_names=names)

    def _run_parallel(self, queries: list[tuple[str, dict[str, Any]]]) -> list[dict[str, Any]]:
        with concurrent.futures.ThreadPoolExecutor(max_workers=max(len(queries), 1)) as executor:
            futures = [executor.submit(self._search, query, num_results=3, **options) for query, options in queries]
            batches = [future.result() for future in futures]
        return _dedupe(result for batch in batches for result in batch)


def _dedupe(results: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
    seen: set[str] = set()
    unique: list[dict[str, Any]] = []
    for result in results:
        url = result.get("url")
        if not url or url in seen:
            continue
        seen.add(url)
        unique.append(result)
    return unique


PRIORITIES_SYSTEM_PROMPT: Final[str] = (
    "You are a concise business analyst. Return ONLY a JSON array of strings, no markdown, no explanation."
)


class PrioritiesAdapter:
    """Cited strategic priorities from the research provider."""

    source = "priorities"

    def __init__(self, client: ResearchClient | None, *, max_items: int = 5) -> None:
        self._client = client
        self._max_items = max_items

    def search(self, company: str, website: str | None = None) -> list[PriorityItem]:
        if self._client is None:
            return []
        subject = f"{company} ({website})" if website else company
        prompt = (
            f"What are the top 3-5 specific strategic priorities of {subject} related to payments, fintech, "
            "digital transformation, crypto, or blockchain? Return a JSON array of concise bullet-point strings. "
            'Example: ["Expanding stablecoin payment rails in Europe", "Launched crypto checkout for enterprise '
            'merchants"]. If you cannot find specific information, return an empty array [].'
        )
        try:
            answer = self._client.ask(system_prompt=PRIORITIES_SYSTEM_PROMPT, user_prompt=prompt)
            entries = decode_json_array(answer.content)
        except (PerplexityError, ModelOutputError) as exc:
            _record_failure(self.source, exc)
            return []

        items: list[PriorityItem] = []
        for entry in entries:
            if not isinstance(entry, str) or not entry.strip():
                continue
            items.append(_cited_item(entry, answer.citations))
            if len(items) >= self._max_items:
                break
        return items


def _cited_item(entry: str, citations: Sequence[str]) -> PriorityItem:
    url = None
    for marker in _CITATION_MARKER.findall(entry):
        index = int(marker) - 1
        if 0 <= index < len(citations):
            url = citations[index]
            break
    text = re.sub(r"\s+", " ", _CITATION_MARKER.sub("", entry)).strip()
    return PriorityItem(text=text, url=url)


class SocialAdapter(_SearchAdapter):
    """Recent posts on X/Twitter and LinkedIn mentioning the company or its contacts."""

    source = "social"

    def __init__(
        self,
        client: SearchClient | None,
        *,
        window_days: int | None = None,
        max_results: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(client)
        self._window_days = window_days or settings.news_window_days
        self._max_results = max_results or settings.social_max_results
        self._clock = clock

    def search(
        self,
        company: str,
        contact_name: str | None = None,
        secondary_contact_name: str | None = None,
    ) -> list[PriorityItem]:
        if self._client is None:
            return []
        since = self._clock() - timedelta(days=self._window_days)
        topic = "payments crypto stablecoin blockchain digital assets"
        queries: list[tuple[str, list[str]]] = [
            (f'"{company}" {topic}', _TWITTER_DOMAINS),
            (f'"{company}" {topic}', ["linkedin.com"]),
        ]
        for name in (contact_name, secondary_contact_name):
            if name:
                queries.append((f'"{name}" payments crypto blockchain', sorted(SOCIAL_DOMAINS)))

        with concurrent.futures.ThreadPoolExecutor(max_workers=len(queries)) as executor:
            futures = [
                executor.submit(
                    self._search,
                    query,
                    num_results=3,
                    start_published_date=since,
                    include_domains=domains,
                    max_characters=600,
                    use_autoprompt=False,
                )
                for query, domains in queries
            ]
            batches = [future.result() for future in futures]

        items: list[PriorityItem] = []
        for result in _dedupe(result for batch in batches for result in batch):
            url = result["url"]
            if not is_social_url(url):
                continue
            cleaned = clean_social_text(result.get("text") or "", result.get("title") or "", url)
            if cleaned:
                items.append(PriorityItem(text=cleaned, url=url))
            if len(items) >= self._max_results:
                break
        return items


class WebsiteResolver(_SearchAdapter):
    """Find a company's canonical root URL when none is recorded."""

    source = "website"

    def resolve(self, company: str) -> str | None:
        results = self._search(
            f"{company} official company website",
            num_results=3,
            exclude_domains=_DIRECTORY_DOMAINS,
            max_characters=200,
            use_autoprompt=False,
        )
        for result in results:
            parsed = parse_url(result.get("url"))
            if parsed and parsed.scheme in {"http", "https"} and parsed.hostname:
                return f"{parsed.scheme}://{parsed.hostname}"
        return None


class ContactLookup:
    """Verified-email lookup backed by Apollo; implements ``VerifiedContactLookup``."""

    source = "apollo"

    def __init__(self, client: ApolloClient | None) -> None:
        self._client = client

    def lookup(
        self,
        *,
        name: str,
        company: str,
        domain: str | None,
        linkedin_url: str | None,
    ) -> ApolloPerson | None:
        if self._client is None:
            return None
        try:
            person = self._client.match_person(name=name, company=company, domain=domain, linkedin_url=linkedin_url)
        except ApolloError as exc:
            _record_failure(self.source, exc)
            return None
        metrics.increment("enrichment.contact_lookup", tags={"matched": person is not None})
        return person
