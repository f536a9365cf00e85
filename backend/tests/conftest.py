"""
Pytest configuration and shared fixtures for the site audit tests.

Network, browser and LLM access are always faked: crawls run against
``FakeBrowser`` and a mocked robots.txt transport, the pipeline writes to
``FakeStore`` (or an in-memory SQLite database for the store tests).
"""
from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import get_db
from app.models import Base, UserProfile
from app.services.extractor import CrawledPage, ImageRef
from app.services.retry import RetryPolicy

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


async def no_sleep(delay: float) -> None:
    return None


# ============================================================================
# HTML / page builders
# ============================================================================

def build_html(
    *,
    title: str | None = None,
    description: str | None = None,
    h1s: tuple[str, ...] = ("Welcome",),
    words: int = 0,
    images: tuple[tuple[str, str | None], ...] = (),
    links: tuple[str, ...] = (),
    schema: str | None = None,
    canonical: str | None = None,
) -> str:
    """Small rendered document.  ``words`` filler words go in one paragraph."""
    head = []
    if title is not None:
        head.append(f"<title>{title}</title>")
    if description is not None:
        head.append(f'<meta name="description" content="{description}">')
    if canonical is not None:
        head.append(f'<link rel="canonical" href="{canonical}">')
    if schema is not None:
        head.append(f'<script type="application/ld+json">{schema}</script>')

    body = [f"<h1>{text}</h1>" for text in h1s]
    if words:
        body.append("<p>" + " ".join(["lorem"] * words) + "</p>")
    for src, alt in images:
        if alt is None:
            body.append(f'<img src="{src}">')
        else:
            body.append(f'<img src="{src}" alt="{alt}">')
    for href in links:
        body.append(f'<a href="{href}">link</a>')

    return (
        "<!DOCTYPE html><html><head>"
        + "".join(head)
        + "</head><body>"
        + "".join(body)
        + "</body></html>"
    )


def build_page(url: str = "https://example.com/", **overrides) -> CrawledPage:
    """A CrawledPage that passes every analyzer rule unless overridden."""
    fields = dict(
        url=url,
        title="Example page",
        meta_description="A page used in tests.",
        headings={"h1": ["Example"], "h2": [], "h3": [], "h4": [], "h5": [], "h6": []},
        word_count=500,
        internal_links=1,
        external_links=0,
        images=[ImageRef(src="https://example.com/a.png", alt="A picture")],
        canonical=url,
        schema_scripts=[{"@type": "WebPage"}],
    )
    if "h1" in overrides:
        fields["headings"] = {**fields["headings"], "h1": list(overrides.pop("h1"))}
    fields.update(overrides)
    return CrawledPage(**fields)


@pytest.fixture
def make_html():
    return build_html


@pytest.fixture
def make_page():
    return build_page


# ============================================================================
# Fakes for the browser, robots.txt and persistence
# ============================================================================

class FakeBrowser:
    """Serves canned HTML by URL.

    ``failures`` maps a URL to the number of renders that raise before it
    succeeds; -1 means it never succeeds.
    """

    def __init__(
        self,
        pages: dict[str, str],
        failures: dict[str, int] | None = None,
        fail_start: bool = False,
    ):
        self.pages = pages
        self.failures = dict(failures or {})
        self.fail_start = fail_start
        self.rendered: list[str] = []
        self.started = False
        self.closed = False

    async def start(self) -> None:
        if self.fail_start:
            raise RuntimeError("Executable doesn't exist")
        self.started = True

    async def render(self, url: str) -> str:
        self.rendered.append(url)
        remaining = self.failures.get(url, 0)
        if remaining:
            if remaining > 0:
                self.failures[url] = remaining - 1
            raise RuntimeError(f"net::ERR_CONNECTION_RESET at {url}")
        if url not in self.pages:
            raise RuntimeError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        return self.pages[url]

    async def close(self) -> None:
        self.closed = True


def robots_transport(body: str | None = None) -> httpx.MockTransport:
    """robots.txt served with ``body``, or a 404 when ``body`` is None."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/robots.txt" and body is not None:
            return httpx.Response(200, text=body)
        return httpx.Response(404)

    return httpx.MockTransport(handler)


class FakeStore:
    """In-memory stand-in for SqlAuditStore that records every call."""

    def __init__(self):
        self.audits: dict[int, dict] = {}
        self.status_history: dict[int, list[str]] = {}
        self.pages: dict[int, list[dict]] = {}
        self.profiles: dict[str, UserProfile] = {}
        self.audit_counts: dict[str, int] = {}
        self.transactions: list[dict] = []
        self.fail_updates_with_status: set[str] = set()
        self.fail_refund = False

    def add_profile(self, user_id: str, credits: int) -> UserProfile:
        profile = UserProfile(user_id=user_id, credits=credits, total_audits=0)
        self.profiles[user_id] = profile
        return profile

    async def create_audit_pages(self, audit_id: int, records: list[dict]) -> None:
        self.pages.setdefault(audit_id, []).extend(records)

    async def update_audit(self, audit_id: int, **fields) -> None:
        status = fields.get("status")
        if status in self.fail_updates_with_status:
            raise RuntimeError(f"database unavailable while saving status {status}")
        self.audits.setdefault(audit_id, {}).update(fields)
        if status:
            self.status_history.setdefault(audit_id, []).append(status)

    async def increment_audit_count(self, user_id: str) -> None:
        self.audit_counts[user_id] = self.audit_counts.get(user_id, 0) + 1

    async def add_credits(self, user_id: str, amount: int) -> bool:
        if self.fail_refund:
            raise RuntimeError("credit update failed")
        profile = self.profiles.get(user_id)
        if profile is None:
            return False
        profile.credits += amount
        return True

    async def record_credit_transaction(
        self,
        user_id: str,
        amount: int,
        type: str,
        description: str,
        audit_id: int | None = None,
    ) -> None:
        self.transactions.append(
            {
                "user_id": user_id,
                "amount": amount,
                "type": type,
                "description": description,
                "audit_id": audit_id,
            }
        )


@pytest.fixture
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def make_browser():
    return FakeBrowser


@pytest.fixture
def make_robots_transport():
    return robots_transport


@pytest.fixture
def fast_retry() -> RetryPolicy:
    """Two retries, no waiting."""
    return RetryPolicy(max_retries=2, base_delay=0, sleep=no_sleep)


# ============================================================================
# Database fixtures
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ============================================================================
# FastAPI App Fixtures
# ============================================================================

@pytest.fixture(scope="function")
def app(session_factory) -> FastAPI:
    """The application with its database pointed at the test engine."""
    from app.main import app as main_app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    main_app.dependency_overrides[get_db] = override_get_db

    yield main_app

    main_app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> dict:
    return {"X-User-Id": "user-1"}
