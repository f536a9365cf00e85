"""Results payload stored on a completed audit."""

from app.services.ai_fixer import FixResult
from app.services.analyzer import AnalysisResult
from app.services.crawler import CrawlResult
from app.services.extractor import THIN_CONTENT_WORDS, CrawledPage
from app.services.scoring import CategoryScores, round_half_up


def issue_title(issue_type: str) -> str:
    return issue_type.replace("_", " ").title()


def build_results(
    crawl: CrawlResult, analysis: AnalysisResult, fix_result: FixResult
) -> dict:
    issues = [
        {
            "severity": issue.severity,
            "title": issue_title(issue.issue_type),
            "description": issue.explanation,
            "recommended_fix": issue.recommended_fix,
            "page_url": issue.page_url,
        }
        for issue in analysis.issues
    ]
    recommendations = [
        issue.recommended_fix
        for issue in analysis.issues
        if issue.severity in ("critical", "warning")
    ]
    return {
        "issues": issues,
        "recommendations": recommendations,
        "fixes": [fix.to_dict() for fix in fix_result.fixes],
        "details": build_details(crawl.pages),
    }


def build_details(pages: list[CrawledPage]) -> dict:
    return {
        "meta": _meta_details(pages),
        "content": _content_details(pages),
        "performance": _performance_details(pages),
        "technical": _technical_details(pages),
    }


def _average(total: int, count: int) -> int:
    return round_half_up(total / count) if count else 0


def _meta_details(pages: list[CrawledPage]) -> dict:
    total = len(pages)
    with_title = sum(1 for p in pages if p.title)
    with_desc = sum(1 for p in pages if p.meta_description)
    with_canonical = sum(1 for p in pages if p.canonical)
    return {
        "title": f"{with_title}/{total} pages have title tags",
        "description": f"{with_desc}/{total} pages have meta descriptions",
        "canonical": f"{with_canonical}/{total} pages have canonical URLs",
    }


def _content_details(pages: list[CrawledPage]) -> dict:
    total = len(pages)
    avg_words = _average(sum(p.word_count for p in pages), total)
    single_h1 = sum(1 for p in pages if len(p.h1) == 1)
    return {
        "headings": f"{single_h1}/{total} pages have exactly one H1",
        "word_count": f"Average word count: {avg_words}",
        "readability": (
            "Content length is adequate"
            if avg_words >= THIN_CONTENT_WORDS
            else "Content may be too thin for ranking"
        ),
    }


def _performance_details(pages: list[CrawledPage]) -> dict:
    total_images = sum(len(p.images) for p in pages)
    missing_alt = sum(len(p.images_missing_alt) for p in pages)
    avg_links = _average(sum(p.internal_links for p in pages), len(pages))
    return {
        "images": f"{total_images} images found, {missing_alt} missing alt text",
        "links": f"Average {avg_links} internal links per page",
        "mobile": "Requires manual testing with Google Mobile-Friendly Test",
    }


def _technical_details(pages: list[CrawledPage]) -> dict:
    total = len(pages)
    with_schema = sum(1 for p in pages if p.schema_scripts)
    https = sum(1 for p in pages if p.url.startswith("https://"))
    return {
        "schema": f"{with_schema}/{total} pages have structured data",
        "https": f"{https}/{total} pages use HTTPS",
        "url_structure": "URLs analyzed for crawlability and structure",
    }


def build_summary(
    crawl: CrawlResult, analysis: AnalysisResult, scores: CategoryScores
) -> str:
    meta = analysis.meta
    return (
        f"Crawled {crawl.pages_crawled} pages on {crawl.domain}. "
        f"Overall score: {scores.overall}/100. "
        f"Found {meta.total_issues} issues ({meta.critical} critical, "
        f"{meta.warnings} warnings, {meta.info} informational). "
        f"Key areas: Meta {scores.meta}/100, Content {scores.content}/100, "
        f"Performance {scores.performance}/100, Technical {scores.technical}/100."
    )
