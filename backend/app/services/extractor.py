import json
import logging
from dataclasses import dataclass, field
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

HEADING_LEVELS = ("h1", "h2", "h3", "h4", "h5", "h6")
IGNORED_LINK_PREFIXES = ("javascript:", "mailto:", "tel:")

TITLE_MAX_LENGTH = 60
DESCRIPTION_MAX_LENGTH = 160
THIN_CONTENT_WORDS = 300


@dataclass(frozen=True)
class ImageRef:
    src: str
    alt: str


@dataclass
class CrawledPage:
    url: str
    title: str
    meta_description: str
    headings: dict[str, list[str]]
    word_count: int
    internal_links: int
    external_links: int
    images: list[ImageRef]
    canonical: str | None
    schema_scripts: list
    issues: list[dict] = field(default_factory=list)
    # Same-host links found on the page, fragment stripped, in document order.
    outbound_links: list[str] = field(default_factory=list)

    @property
    def h1(self) -> list[str]:
        return self.headings.get("h1", [])

    @property
    def images_missing_alt(self) -> list[ImageRef]:
        return [img for img in self.images if not img.alt.strip()]


def extract_page(url: str, html: str) -> CrawledPage:
    """Parse rendered HTML into a CrawledPage.

    Links and images are resolved against ``url``; a link is internal when
    its hostname equals the page's hostname.
    """
    soup = BeautifulSoup(html, "lxml")
    host = (urlparse(url).hostname or "").lower()

    title = _extract_title(soup)
    meta_description = _extract_description(soup)
    headings = _extract_headings(soup)
    images = _extract_images(soup, url)
    canonical = _extract_canonical(soup, url)
    schema_scripts = _extract_schema_scripts(soup)
    internal, external, outbound = _extract_links(soup, url, host)
    # Must run last: strips script/style tags from the tree.
    word_count = _count_words(soup)

    page = CrawledPage(
        url=url,
        title=title,
        meta_description=meta_description,
        headings=headings,
        word_count=word_count,
        internal_links=internal,
        external_links=external,
        images=images,
        canonical=canonical,
        schema_scripts=schema_scripts,
        outbound_links=outbound,
    )
    page.issues = detect_page_issues(page)
    return page


def detect_page_issues(page: CrawledPage) -> list[dict]:
    issues: list[dict] = []

    if not page.title:
        issues.append(_issue("critical", "Missing title tag", "Page has no <title> element."))
    elif len(page.title) > TITLE_MAX_LENGTH:
        issues.append(
            _issue(
                "warning",
                "Title too long",
                f"Title is {len(page.title)} chars (recommended: <{TITLE_MAX_LENGTH}).",
            )
        )

    if not page.meta_description:
        issues.append(
            _issue("critical", "Missing meta description", "No meta description found.")
        )
    elif len(page.meta_description) > DESCRIPTION_MAX_LENGTH:
        issues.append(
            _issue(
                "warning",
                "Meta description too long",
                f"Meta description is {len(page.meta_description)} chars "
                f"(recommended: <{DESCRIPTION_MAX_LENGTH}).",
            )
        )

    if not page.h1:
        issues.append(_issue("critical", "Missing H1", "Page has no H1 heading."))
    elif len(page.h1) > 1:
        issues.append(
            _issue(
                "warning",
                "Multiple H1 tags",
                f"Found {len(page.h1)} H1 tags (recommended: 1).",
            )
        )

    missing_alt = page.images_missing_alt
    if missing_alt:
        issues.append(
            _issue(
                "warning",
                "Images missing alt text",
                f"{len(missing_alt)} of {len(page.images)} images have no alt attribute.",
            )
        )

    if not page.canonical:
        issues.append(
            _issue("info", "No canonical URL", "Consider adding a canonical link element.")
        )

    if page.word_count < THIN_CONTENT_WORDS:
        issues.append(
            _issue(
                "warning",
                "Thin content",
                f"Page has only {page.word_count} words "
                f"(recommended: {THIN_CONTENT_WORDS}+).",
            )
        )

    return issues


def _issue(severity: str, title: str, description: str) -> dict:
    return {"severity": severity, "title": title, "description": description}


def _extract_title(soup: BeautifulSoup) -> str:
    if soup.title is None:
        return ""
    return soup.title.get_text().strip()


def _extract_description(soup: BeautifulSoup) -> str:
    meta_desc = soup.find("meta", attrs={"name": "description"})
    if meta_desc is None:
        return ""
    return (meta_desc.get("content") or "").strip()


def _extract_headings(soup: BeautifulSoup) -> dict[str, list[str]]:
    return {
        level: [tag.get_text(" ", strip=True) for tag in soup.find_all(level)]
        for level in HEADING_LEVELS
    }


def _resolve(base_url: str, ref: str) -> str:
    """Absolute form of ``ref``; a malformed reference is kept as written."""
    if not ref:
        return ""
    try:
        return urljoin(base_url, ref)
    except ValueError:
        return ref


def _extract_images(soup: BeautifulSoup, base_url: str) -> list[ImageRef]:
    images = []
    for img in soup.find_all("img"):
        src = img.get("src") or ""
        images.append(ImageRef(src=_resolve(base_url, src), alt=img.get("alt") or ""))
    return images


def _extract_canonical(soup: BeautifulSoup, base_url: str) -> str | None:
    canonical = soup.find("link", rel=lambda value: value and "canonical" in value)
    if not canonical or not canonical.get("href"):
        return None
    return _resolve(base_url, canonical["href"].strip())


def _extract_schema_scripts(soup: BeautifulSoup) -> list:
    scripts = []
    for tag in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = tag.string or tag.get_text() or ""
        try:
            scripts.append(json.loads(raw))
        except ValueError:
            logger.debug("Skipping unparseable JSON-LD block")
    return scripts


def _extract_links(
    soup: BeautifulSoup, base_url: str, host: str
) -> tuple[int, int, list[str]]:
    internal = 0
    external = 0
    outbound: list[str] = []
    seen: set[str] = set()

    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if not href or href.lower().startswith(IGNORED_LINK_PREFIXES):
            continue
        try:
            absolute, _fragment = urldefrag(urljoin(base_url, href))
            parsed = urlparse(absolute)
        except ValueError:
            logger.debug("Skipping malformed link %r on %s", href, base_url)
            continue
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            continue

        if parsed.hostname.lower() == host:
            internal += 1
            if absolute not in seen:
                seen.add(absolute)
                outbound.append(absolute)
        else:
            external += 1

    return internal, external, outbound


def _count_words(soup: BeautifulSoup) -> int:
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    body = soup.body or soup
    return len(body.get_text(" ", strip=True).split())
