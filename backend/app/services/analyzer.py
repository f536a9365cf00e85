"""Deterministic SEO rules over a finished crawl.

Per-page rules each add at most one issue per page; site-wide rules
(duplicate titles, orphan pages) run once after them.  No I/O.
"""

from dataclasses import dataclass, field
from urllib.parse import urlparse

from app.services.crawler import CrawlResult
from app.services.extractor import THIN_CONTENT_WORDS, CrawledPage


@dataclass
class SeoIssue:
    issue_type: str
    severity: str
    explanation: str
    recommended_fix: str
    page_url: str | None = None


@dataclass
class AnalysisMeta:
    pages_analyzed: int = 0
    total_issues: int = 0
    critical: int = 0
    warnings: int = 0
    info: int = 0


@dataclass
class AnalysisResult:
    issues: list[SeoIssue] = field(default_factory=list)
    meta: AnalysisMeta = field(default_factory=AnalysisMeta)


def analyze(crawl: CrawlResult) -> AnalysisResult:
    issues: list[SeoIssue] = []

    for page in crawl.pages:
        _check_missing_meta_description(page, issues)
        _check_missing_h1(page, issues)
        _check_multiple_h1(page, issues)
        _check_thin_content(page, issues)
        _check_missing_alt_tags(page, issues)
        _check_no_schema(page, issues)

    _check_duplicate_titles(crawl.pages, issues)
    _check_orphan_pages(crawl.pages, issues)

    meta = AnalysisMeta(
        pages_analyzed=len(crawl.pages),
        total_issues=len(issues),
        critical=sum(1 for i in issues if i.severity == "critical"),
        warnings=sum(1 for i in issues if i.severity == "warning"),
        info=sum(1 for i in issues if i.severity == "info"),
    )
    return AnalysisResult(issues=issues, meta=meta)


def _check_missing_meta_description(page: CrawledPage, issues: list[SeoIssue]) -> None:
    if page.meta_description.strip():
        return
    issues.append(
        SeoIssue(
            issue_type="missing_meta_description",
            severity="critical",
            explanation=(
                f'The page "{page.url}" has no meta description. Search engines display '
                "the meta description in search results, and its absence reduces "
                "click-through rates."
            ),
            recommended_fix=(
                'Add a <meta name="description" content="..."> tag with a concise summary '
                "(120-160 characters) of the page content."
            ),
            page_url=page.url,
        )
    )


def _check_missing_h1(page: CrawledPage, issues: list[SeoIssue]) -> None:
    if page.h1:
        return
    issues.append(
        SeoIssue(
            issue_type="missing_h1",
            severity="critical",
            explanation=(
                f'The page "{page.url}" has no H1 heading. The H1 tag is a strong ranking '
                "signal that tells search engines the primary topic of the page."
            ),
            recommended_fix=(
                "Add a single, descriptive <h1> tag that clearly communicates the main "
                "topic of the page. Place it near the top of the visible content."
            ),
            page_url=page.url,
        )
    )


def _check_multiple_h1(page: CrawledPage, issues: list[SeoIssue]) -> None:
    if len(page.h1) <= 1:
        return
    listed = ", ".join(f'"{heading}"' for heading in page.h1)
    issues.append(
        SeoIssue(
            issue_type="multiple_h1",
            severity="warning",
            explanation=(
                f'The page "{page.url}" has {len(page.h1)} H1 tags ({listed}). Multiple '
                "H1 tags dilute the primary topic signal for search engines."
            ),
            recommended_fix=(
                "Keep only one H1 per page. Convert the extra H1 tags to H2 or lower-level "
                "headings that support the main topic."
            ),
            page_url=page.url,
        )
    )


def _check_thin_content(page: CrawledPage, issues: list[SeoIssue]) -> None:
    if page.word_count >= THIN_CONTENT_WORDS:
        return
    issues.append(
        SeoIssue(
            issue_type="thin_content",
            severity="warning",
            explanation=(
                f'The page "{page.url}" has only {page.word_count} words. Pages with fewer '
                f"than {THIN_CONTENT_WORDS} words are considered thin content by search "
                "engines and are less likely to rank."
            ),
            recommended_fix=(
                f"Expand the page content to at least {THIN_CONTENT_WORDS} words with "
                "relevant, high-quality information. If the page serves a utility purpose "
                "(e.g., contact form), consider adding supporting text or FAQ sections."
            ),
            page_url=page.url,
        )
    )


def _check_missing_alt_tags(page: CrawledPage, issues: list[SeoIssue]) -> None:
    missing = page.images_missing_alt
    if not missing:
        return
    issues.append(
        SeoIssue(
            issue_type="missing_alt_tags",
            severity="warning",
            explanation=(
                f'The page "{page.url}" has {len(missing)} image(s) without alt text out '
                f"of {len(page.images)} total. Missing alt text hurts accessibility and "
                "prevents search engines from understanding image content."
            ),
            recommended_fix=(
                "Add descriptive alt attributes to every <img> tag. Each alt text should "
                'concisely describe the image content (e.g., alt="Team meeting in '
                'conference room").'
            ),
            page_url=page.url,
        )
    )


def _check_no_schema(page: CrawledPage, issues: list[SeoIssue]) -> None:
    if page.schema_scripts:
        return
    issues.append(
        SeoIssue(
            issue_type="no_schema",
            severity="info",
            explanation=(
                f'The page "{page.url}" has no structured data (JSON-LD schema markup). '
                "Schema markup helps search engines understand page content and can "
                "enable rich snippets in search results."
            ),
            recommended_fix=(
                "Add JSON-LD structured data relevant to the page type. Common schemas "
                "include Organization, WebPage, Article, Product, FAQ, and BreadcrumbList. "
                "Validate the markup with Google's Rich Results Test."
            ),
            page_url=page.url,
        )
    )


def _check_duplicate_titles(pages: list[CrawledPage], issues: list[SeoIssue]) -> None:
    by_title: dict[str, list[str]] = {}
    for page in pages:
        key = page.title.strip().lower()
        if not key:
            continue
        by_title.setdefault(key, []).append(page.url)

    for title, urls in by_title.items():
        if len(urls) < 2:
            continue
        issues.append(
            SeoIssue(
                issue_type="duplicate_titles",
                severity="warning",
                explanation=(
                    f'{len(urls)} pages share the identical title "{title}": '
                    f"{', '.join(urls)}. Duplicate titles confuse search engines about "
                    "which page to rank and reduce the unique signal of each page."
                ),
                recommended_fix=(
                    "Give each page a unique, descriptive title that accurately reflects "
                    "its specific content. Include primary keywords and differentiate by "
                    "topic or intent."
                ),
            )
        )


def _check_orphan_pages(pages: list[CrawledPage], issues: list[SeoIssue]) -> None:
    if len(pages) < 2:
        return

    reported: set[str] = set()
    for page in pages[1:]:
        if page.internal_links == 0:
            reported.add(page.url)
            issues.append(
                SeoIssue(
                    issue_type="orphan_page",
                    severity="warning",
                    explanation=(
                        f'The page "{page.url}" has zero internal links pointing outward '
                        "and may also lack inbound links from other crawled pages. Orphan "
                        "pages are difficult for search engines to discover and rank."
                    ),
                    recommended_fix=(
                        "Add internal links from relevant pages to this page and from this "
                        "page to other related content. Ensure the page is reachable from "
                        "the site's main navigation or sitemap."
                    ),
                    page_url=page.url,
                )
            )

    linked_to = {
        _comparison_key(link) for page in pages for link in page.outbound_links
    }
    for page in pages[1:]:
        if page.url in reported or _comparison_key(page.url) in linked_to:
            continue
        reported.add(page.url)
        issues.append(
            SeoIssue(
                issue_type="orphan_page",
                severity="warning",
                explanation=(
                    f'The page "{page.url}" was not linked to by any other crawled page. '
                    "It may be an orphan page that search engines struggle to find."
                ),
                recommended_fix=(
                    "Add internal links from your key pages to this page. Include it in "
                    "navigation menus, sitemaps, or contextual link sections."
                ),
                page_url=page.url,
            )
        )


def _comparison_key(url: str) -> str:
    parsed = urlparse(url)
    path = parsed.path.rstrip("/") or "/"
    return f"{(parsed.hostname or '').lower()}{path}".lower()
