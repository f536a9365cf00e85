import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.config import settings
from app.services.analyzer import SeoIssue
from app.services.completion import is_rate_limited
from app.services.extractor import CrawledPage
from app.services.retry import RetryPolicy, constant_backoff, exponential_backoff

logger = logging.getLogger(__name__)

TITLE_LIMIT = 60
DESCRIPTION_LIMIT = 160


class TextCompleter(Protocol):
    async def complete(self, prompt: str, *, max_tokens: int, force_json: bool = False) -> str: ...


@dataclass
class AiFix:
    page_url: str
    optimized_title: str
    optimized_meta_description: str
    improved_h1: str
    json_ld_schema: dict[str, Any]
    suggested_internal_linking_text: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class FixResult:
    fixes: list[AiFix] = field(default_factory=list)
    total_fixes_generated: int = 0


class FixSuggestion(BaseModel):
    """Typed view of the model's JSON answer.

    Every field is optional; a field that is missing, blank or of the wrong
    type decodes to None and is later replaced by the fallback value.
    """

    model_config = ConfigDict(extra="ignore")

    optimized_title: str | None = Field(default=None, alias="optimizedTitle")
    optimized_meta_description: str | None = Field(
        default=None, alias="optimizedMetaDescription"
    )
    improved_h1: str | None = Field(default=None, alias="improvedH1")
    json_ld_schema: dict[str, Any] | None = Field(default=None, alias="jsonLdSchema")
    suggested_internal_linking_text: str | None = Field(
        default=None, alias="suggestedInternalLinkingText"
    )

    @field_validator("*", mode="wrap")
    @classmethod
    def _drop_invalid(cls, value, handler):
        try:
            value = handler(value)
        except ValidationError:
            return None
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, dict) and not value:
            return None
        return value


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _site_name(url: str) -> str:
    host = urlparse(url).hostname or ""
    if host.startswith("www."):
        host = host[4:]
    return host or "website"


def fallback_fix(page: CrawledPage) -> AiFix:
    """Deterministic fix built only from the page's own data."""
    site = _site_name(page.url)
    title = page.title or f"{site} - Homepage"
    description = (
        page.meta_description
        or f"Visit {site} for more information about our products and services."
    )
    h1 = page.h1[0] if page.h1 else f"Welcome to {site}"

    return AiFix(
        page_url=page.url,
        optimized_title=_truncate(title, TITLE_LIMIT),
        optimized_meta_description=_truncate(description, DESCRIPTION_LIMIT),
        improved_h1=h1,
        json_ld_schema={
            "@context": "https://schema.org",
            "@type": "WebPage",
            "name": title,
            "description": description,
            "url": page.url,
        },
        suggested_internal_linking_text=(
            f"Learn more about {site}. Explore our content and resources. "
            "Visit related pages for additional information."
        ),
    )


def build_prompt(page: CrawledPage, issues: list[SeoIssue]) -> str:
    relevant = [
        f"- [{issue.severity}] {issue.issue_type}: {issue.explanation}"
        for issue in issues
        if issue.page_url is None or issue.page_url == page.url
    ]
    issue_text = "\n".join(relevant) or "No specific issues detected."

    return f"""You are an expert SEO consultant. Analyze this page and generate optimized SEO fixes.

PAGE DATA:
- URL: {page.url}
- Current Title: {page.title or "(missing)"}
- Current Meta Description: {page.meta_description or "(missing)"}
- Current H1: {", ".join(page.h1) or "(missing)"}
- Word Count: {page.word_count}
- Internal Links: {page.internal_links}
- External Links: {page.external_links}
- Images: {len(page.images)} ({len(page.images_missing_alt)} missing alt)
- Schema Markup: {"present" if page.schema_scripts else "none"}
- Canonical: {page.canonical or "(not set)"}
- H2 Tags: {", ".join(page.headings.get("h2", [])[:5]) or "(none)"}

DETECTED ISSUES:
{issue_text}

Generate fixes as a JSON object with this exact structure:
{{
  "optimizedTitle": "<SEO-optimized title, 50-60 chars, include primary keyword>",
  "optimizedMetaDescription": "<compelling meta description, 120-160 chars, include call to action>",
  "improvedH1": "<clear, keyword-rich H1 heading>",
  "jsonLdSchema": {{ <valid JSON-LD WebPage schema object with @context, @type, name, description, url> }},
  "suggestedInternalLinkingText": "<2-3 sentences of anchor text suggestions for linking to/from this page>"
}}

Return ONLY valid JSON. Base suggestions on the actual page data above."""


def merge_suggestion(page: CrawledPage, suggestion: FixSuggestion) -> AiFix:
    fallback = fallback_fix(page)
    return AiFix(
        page_url=page.url,
        optimized_title=suggestion.optimized_title or fallback.optimized_title,
        optimized_meta_description=(
            suggestion.optimized_meta_description or fallback.optimized_meta_description
        ),
        improved_h1=suggestion.improved_h1 or fallback.improved_h1,
        json_ld_schema=suggestion.json_ld_schema or fallback.json_ld_schema,
        suggested_internal_linking_text=(
            suggestion.suggested_internal_linking_text
            or fallback.suggested_internal_linking_text
        ),
    )


def completion_backoff(base_delay: float, attempt: int, error: BaseException) -> float:
    if is_rate_limited(error):
        return exponential_backoff(base_delay, attempt, error)
    return constant_backoff(base_delay, attempt, error)


class AiFixer:
    """Per-page fix suggestions from a text-completion model.

    Pages are processed one after another.  Any failure for a page (after
    retries) falls back to ``fallback_fix``, so the result always holds
    exactly one fix per input page.  With no completer every page uses the
    fallback.
    """

    def __init__(
        self,
        completer: TextCompleter | None,
        retry_policy: RetryPolicy | None = None,
        max_tokens: int = settings.ai_max_tokens,
    ):
        self.completer = completer
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=settings.ai_max_retries,
            base_delay=settings.ai_retry_delay_seconds,
            backoff=completion_backoff,
        )
        self.max_tokens = max_tokens

    async def generate_fixes(
        self, pages: list[CrawledPage], issues: list[SeoIssue]
    ) -> FixResult:
        fixes = [await self._fix_page(page, issues) for page in pages]
        return FixResult(fixes=fixes, total_fixes_generated=len(fixes))

    async def _fix_page(self, page: CrawledPage, issues: list[SeoIssue]) -> AiFix:
        if self.completer is None:
            return fallback_fix(page)

        try:
            prompt = build_prompt(page, issues)
            raw = await self.retry_policy.call(
                lambda: self.completer.complete(
                    prompt, max_tokens=self.max_tokens, force_json=True
                ),
                label=f"completion for {page.url}",
            )
            suggestion = FixSuggestion.model_validate_json(raw or "{}")
        except Exception as exc:
            logger.warning("AI fix failed for %s, using fallback: %s", page.url, exc)
            return fallback_fix(page)

        return merge_suggestion(page, suggestion)
