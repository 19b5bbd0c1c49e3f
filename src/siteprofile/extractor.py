"""Content extractor: load a live page in the browser and parse it.

Every failure mode (validation, navigation error, timeout, browser crash) is
absorbed into a ``ScrapedContent`` with ``error`` set; ``extract`` never
raises for them. Cancellation is the exception: it tears the browser down
and propagates so an abandoned call does not keep holding the session.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import structlog

from siteprofile.errors import ErrorCode, SiteProfileError
from siteprofile.models.content import ScrapedContent, TechnicalInfo
from siteprofile.models.options import ScrapeOptions
from siteprofile.parser import has_viewport_meta, parse_html
from siteprofile.validator import validate_url

if TYPE_CHECKING:
    from siteprofile.config import Settings
    from siteprofile.protocols import BrowserPoolProtocol, PageProtocol, ResponseProtocol

# Headroom on top of navigation + settle time for content capture and parsing
ATTEMPT_MARGIN_SECONDS = 10.0
MAX_REDIRECT_CHAIN = 20

# Best-effort: stylesheets the page may not read (cross-origin) count as
# having no media rules.
MEDIA_RULE_PROBE = """() => {
    for (const sheet of Array.from(document.styleSheets)) {
        try {
            for (const rule of Array.from(sheet.cssRules || [])) {
                if (rule.type === CSSRule.MEDIA_RULE) {
                    return true;
                }
            }
        } catch (e) {}
    }
    return false;
}"""


def count_redirects(response: ResponseProtocol) -> int:
    """Walk the ``redirected_from`` chain of the final request."""
    count = 0
    request = response.request.redirected_from
    while request is not None and count < MAX_REDIRECT_CHAIN:
        count += 1
        request = request.redirected_from
    return count


def _describe(exc: BaseException, timeout_ms: int) -> str:
    if isinstance(exc, TimeoutError):
        return f"Timed out after {timeout_ms}ms"
    if isinstance(exc, SiteProfileError):
        return exc.message
    return str(exc).strip().splitlines()[0] if str(exc).strip() else type(exc).__name__


class ContentExtractor:
    """Fetches and parses a single page with bounded, linearly backed-off retries."""

    def __init__(self, pool: BrowserPoolProtocol, settings: Settings) -> None:
        self._pool = pool
        self._settings = settings

    async def extract(self, url: str, options: ScrapeOptions | None = None) -> ScrapedContent:
        opts = options or ScrapeOptions()
        timeout_ms = opts.timeout_ms or self._settings.security.timeout_ms
        max_retries = opts.max_retries or self._settings.scraper.max_retries
        retry_delay = self._settings.scraper.retry_delay_ms / 1000
        started = time.monotonic()
        log = structlog.get_logger().bind(url=url)

        validation = validate_url(url, self._settings.security)
        if not validation.ok:
            log.warning("scrape_rejected", reason=validation.reason)
            return ScrapedContent.failed(url, validation.reason or "Invalid URL")

        last_error = "Unknown error"
        attempts = 0
        for attempt in range(1, max_retries + 1):
            attempts = attempt
            log.info("scrape_attempt_started", attempt=attempt, max_retries=max_retries)
            try:
                async with asyncio.timeout(self._attempt_budget(timeout_ms, opts)):
                    content = await self._attempt(url, opts, timeout_ms, started)
            except asyncio.CancelledError:
                log.info("scrape_cancelled", attempt=attempt)
                await self._pool.reset()
                raise
            except Exception as exc:
                last_error = _describe(exc, timeout_ms)
                log.warning(
                    "scrape_attempt_failed",
                    attempt=attempt,
                    max_retries=max_retries,
                    error=last_error,
                    error_type=type(exc).__name__,
                )
                await self._pool.reset()
                if isinstance(exc, SiteProfileError) and not exc.recoverable:
                    break
                if attempt < max_retries:
                    await asyncio.sleep(attempt * retry_delay)
                continue

            await self._pool.reset()
            log.info(
                "scrape_complete",
                attempt=attempt,
                status_code=content.technical_info.status_code,
                load_time_ms=content.technical_info.load_time_ms,
                content_length=len(content.content),
            )
            return content

        elapsed_ms = int((time.monotonic() - started) * 1000)
        log.error("scrape_failed", attempts=attempts, error=last_error)
        noun = "attempt" if attempts == 1 else "attempts"
        return ScrapedContent.failed(
            url,
            f"Failed after {attempts} {noun}. Last error: {last_error}",
            load_time_ms=elapsed_ms,
        )

    def _attempt_budget(self, timeout_ms: int, opts: ScrapeOptions) -> float:
        settle_ms = self._settings.scraper.settle_delay_ms if opts.wait_for_load else 0
        return (timeout_ms + settle_ms) / 1000 + ATTEMPT_MARGIN_SECONDS

    async def _attempt(
        self, url: str, opts: ScrapeOptions, timeout_ms: int, started: float
    ) -> ScrapedContent:
        async with self._pool.page() as page:
            response = await page.goto(
                url,
                wait_until="networkidle" if opts.wait_for_load else "domcontentloaded",
                timeout=timeout_ms,
            )
            if response is None:
                raise SiteProfileError(
                    code=ErrorCode.EXTRACTION_FAILED,
                    message="Failed to load page",
                    suggestion="The site returned no navigable response.",
                    recoverable=True,
                )

            landed = validate_url(response.url, self._settings.security)
            if not landed.ok:
                raise SiteProfileError(
                    code=ErrorCode.EXTRACTION_FAILED,
                    message=f"Redirected to a disallowed URL: {landed.reason}",
                    suggestion="Only public, allow-listed destinations are loaded.",
                    recoverable=False,
                )

            redirects = count_redirects(response)
            if redirects and not opts.follow_redirects:
                raise SiteProfileError(
                    code=ErrorCode.EXTRACTION_FAILED,
                    message=f"Redirect not followed ({redirects} redirect(s))",
                    suggestion="Retry with follow_redirects enabled or use the final URL.",
                    recoverable=False,
                )

            if opts.wait_for_load and self._settings.scraper.settle_delay_ms:
                await page.wait_for_timeout(self._settings.scraper.settle_delay_ms)

            html = await page.content()
            title = await page.title()
            parsed = parse_html(
                html,
                url,
                extract_images=opts.extract_images,
                extract_links=opts.extract_links,
                page_title=title,
            )
            responsive = has_viewport_meta(parsed.metadata.viewport) or await _has_media_rules(
                page
            )

        technical_info = TechnicalInfo(
            load_time_ms=int((time.monotonic() - started) * 1000),
            status_code=response.status,
            redirects=redirects,
            has_ssl=url.lower().startswith("https://"),
            responsive=responsive,
        )
        return parsed.model_copy(update={"technical_info": technical_info})


async def _has_media_rules(page: PageProtocol) -> bool:
    try:
        return bool(await page.evaluate(MEDIA_RULE_PROBE))
    except Exception:
        structlog.get_logger().debug("media_rule_probe_failed", exc_info=True)
        return False
