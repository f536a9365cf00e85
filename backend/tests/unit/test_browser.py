"""
Unit tests for the headless browser wrapper (Playwright mocked).
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.services.browser import HeadlessBrowser


def _playwright(browser):
    pw = MagicMock()
    pw.chromium.launch = AsyncMock(return_value=browser)
    pw.stop = AsyncMock()
    starter = MagicMock()
    starter.start = AsyncMock(return_value=pw)
    return pw, starter


def _browser_with_page(page):
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()
    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()
    return browser, context


class TestHeadlessBrowser:
    @pytest.mark.asyncio
    async def test_render_uses_fresh_context(self):
        page = MagicMock()
        page.goto = AsyncMock()
        page.wait_for_timeout = AsyncMock()
        page.content = AsyncMock(return_value="<html></html>")
        chromium, context = _browser_with_page(page)
        pw, starter = _playwright(chromium)

        with patch("app.services.browser.async_playwright", return_value=starter):
            browser = HeadlessBrowser(user_agent="TestBot", navigation_timeout_ms=1000, settle_ms=10)
            await browser.start()
            html = await browser.render("https://example.com/")
            await browser.close()

        assert html == "<html></html>"
        assert chromium.new_context.await_args.kwargs["user_agent"] == "TestBot"
        page.goto.assert_awaited_once_with(
            "https://example.com/", wait_until="domcontentloaded", timeout=1000
        )
        page.wait_for_timeout.assert_awaited_once_with(10)
        context.close.assert_awaited_once()
        chromium.close.assert_awaited_once()
        pw.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_context_closed_when_navigation_fails(self):
        page = MagicMock()
        page.goto = AsyncMock(side_effect=TimeoutError("Navigation timeout"))
        chromium, context = _browser_with_page(page)
        pw, starter = _playwright(chromium)

        with patch("app.services.browser.async_playwright", return_value=starter):
            browser = HeadlessBrowser()
            await browser.start()
            with pytest.raises(TimeoutError):
                await browser.render("https://example.com/slow")

        context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_launch_failure_stops_playwright(self):
        pw, starter = _playwright(None)
        pw.chromium.launch = AsyncMock(side_effect=RuntimeError("Executable doesn't exist"))

        with patch("app.services.browser.async_playwright", return_value=starter):
            browser = HeadlessBrowser()
            with pytest.raises(RuntimeError):
                await browser.start()

        pw.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_render_before_start(self):
        with pytest.raises(RuntimeError, match="not started"):
            await HeadlessBrowser().render("https://example.com/")
