import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlparse

import httpx
from robotexclusionrulesparser import RobotExclusionRulesParser

from app.config import settings
from app.services.browser import HeadlessBrowser
from app.services.extractor import CrawledPage, extract_page
from app.services.retry import RetryPolicy, linear_backoff

logger = logging.getLogger(__name__)

# Suppress per-request httpx logging (INFO:httpx:HTTP Request: GET ...)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

SKIP_EXTENSIONS = {
    ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico", ".webp",
    ".pdf", ".zip", ".tar", ".gz", ".mp4", ".mp3", ".wav",
    ".css", ".js", ".woff", ".woff2", ".ttf", ".eot",
}


@dataclass
class CrawlResult:
    domain: str
    pages_crawled: int = 0
    pages: list[CrawledPage] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def normalize_url(url: str, base: str | None = None) -> str | None:
    """Canonical form used for dedup: no fragment, no query, no trailing slash.

    Returns None for anything that is not an absolute http(s) URL.
    """
    try:
        if base is not None:
            url = urljoin(base, url)
        parsed = urlparse(url)
    except ValueError:
        return None
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return None
    path = parsed.path.rstrip("/") or "/"
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}{path}"


def is_asset_url(url: str) -> bool:
    path = urlparse(url).path.lower()
    return any(path.endswith(ext) for ext in SKIP_EXTENSIONS)


class Crawler:
    """Bounded breadth-first crawl of a single host.

    Pages are fetched one at a time in BFS order through a headless browser.
    Each fetch is retried per ``retry_policy``; a page that still fails is
    recorded in ``CrawlResult.errors`` and the traversal moves on.
    """

    def __init__(
        self,
        start_url: str,
        max_pages: int = settings.crawl_max_pages,
        browser_factory: Callable[[], HeadlessBrowser] = HeadlessBrowser,
        retry_policy: RetryPolicy | None = None,
        robots_timeout: float = settings.robots_timeout_seconds,
        user_agent: str = settings.crawl_user_agent,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.start_url = start_url
        self.max_pages = max_pages
        self.browser_factory = browser_factory
        self.retry_policy = retry_policy or RetryPolicy(
            max_retries=settings.crawl_max_retries,
            base_delay=settings.crawl_retry_delay_seconds,
            backoff=linear_backoff,
        )
        self.robots_timeout = robots_timeout
        self.user_agent = user_agent
        self._transport = transport

        self.visited: set[str] = set()
        self.enqueued: set[str] = set()
        self.robot_parser: RobotExclusionRulesParser | None = None

    async def crawl(self) -> CrawlResult:
        start = normalize_url(self.start_url)
        if start is None:
            return CrawlResult(
                domain=self.start_url, errors=[f"Invalid URL: {self.start_url}"]
            )

        parsed = urlparse(start)
        host = parsed.hostname
        result = CrawlResult(domain=host)
        await self._load_robots(f"{parsed.scheme}://{parsed.netloc}")

        browser = self.browser_factory()
        try:
            await browser.start()
        except Exception as exc:
            logger.exception("Browser launch failed for %s", host)
            try:
                await browser.close()
            except Exception:
                logger.debug("Cleanup after failed launch also failed", exc_info=True)
            result.errors.append(f"Browser launch failed: {exc}")
            return result

        logger.info("Crawling %s (max_pages=%d)", host, self.max_pages)
        try:
            await self._traverse(browser, start, host, result)
        finally:
            await browser.close()

        result.pages_crawled = len(result.pages)
        logger.info(
            "Finished crawl of %s: %d pages, %d errors",
            host,
            result.pages_crawled,
            len(result.errors),
        )
        return result

    async def _traverse(
        self, browser: HeadlessBrowser, start: str, host: str, result: CrawlResult
    ) -> None:
        frontier: deque[str] = deque([start])
        self.enqueued.add(start)

        while frontier and len(result.pages) < self.max_pages:
            url = frontier.popleft()
            if url in self.visited:
                continue
            self.visited.add(url)

            if (urlparse(url).hostname or "").lower() != host:
                continue
            if is_asset_url(url):
                continue
            if not self._is_allowed(url):
                result.errors.append(f"Blocked by robots.txt: {url}")
                continue

            logger.info(
                "Crawling (%d/%d): %s", len(result.pages) + 1, self.max_pages, url
            )
            page = await self._fetch_with_retry(browser, url)
            if page is None:
                result.errors.append(f"Failed to crawl: {url}")
                continue

            result.pages.append(page)
            for link in page.outbound_links:
                norm = normalize_url(link)
                if norm is None or norm in self.visited or norm in self.enqueued:
                    continue
                if (urlparse(norm).hostname or "").lower() != host:
                    continue
                self.enqueued.add(norm)
                frontier.append(norm)

    async def _fetch_with_retry(
        self, browser: HeadlessBrowser, url: str
    ) -> CrawledPage | None:
        async def attempt() -> CrawledPage:
            html = await browser.render(url)
            return extract_page(url, html)

        try:
            return await self.retry_policy.call(attempt, label=url)
        except Exception as exc:
            logger.error(
                "Failed after %d attempts for %s: %s",
                self.retry_policy.max_retries + 1,
                url,
                exc,
            )
            return None

    def _is_allowed(self, url: str) -> bool:
        if self.robot_parser is None:
            return True
        return self.robot_parser.is_allowed(self.user_agent, url)

    async def _load_robots(self, origin: str) -> None:
        robots_url = f"{origin}/robots.txt"
        try:
            async with httpx.AsyncClient(
                timeout=self.robots_timeout,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent},
                transport=self._transport,
            ) as client:
                resp = await client.get(robots_url)
            if resp.status_code != 200:
                logger.info("No robots.txt at %s (HTTP %s)", robots_url, resp.status_code)
                return
            parser = RobotExclusionRulesParser()
            parser.parse(resp.text)
            self.robot_parser = parser
        except Exception as exc:
            logger.info("robots.txt unavailable for %s, crawling unrestricted: %s", origin, exc)
            self.robot_parser = None
