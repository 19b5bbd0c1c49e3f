"""Protocol interfaces for swappable components.

The pipeline and AppState reference these protocols, not the concrete
implementations. This allows:
- Tests to drive the extractor with an in-memory fake browser
- Another automation engine or completion backend to be swapped in without
  changing pipeline code
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager

    from siteprofile.models.analysis import BusinessAnalysis
    from siteprofile.models.content import ScrapedContent
    from siteprofile.models.options import AnalysisOptions, ScrapeOptions


class RequestProtocol(Protocol):
    @property
    def redirected_from(self) -> RequestProtocol | None: ...


class ResponseProtocol(Protocol):
    @property
    def status(self) -> int: ...

    @property
    def url(self) -> str: ...

    @property
    def request(self) -> RequestProtocol: ...


class PageProtocol(Protocol):
    """The subset of a browser page the extractor relies on."""

    async def goto(
        self, url: str, *, wait_until: str, timeout: float
    ) -> ResponseProtocol | None: ...

    async def wait_for_timeout(self, timeout: float) -> None: ...

    async def content(self) -> str: ...

    async def title(self) -> str: ...

    async def evaluate(self, expression: str) -> Any: ...

    async def close(self) -> None: ...


class BrowserPoolProtocol(Protocol):
    """Owner of the headless browser session."""

    def page(self) -> AbstractAsyncContextManager[PageProtocol]: ...

    async def reset(self) -> None: ...

    async def close(self) -> None: ...


class ExtractorProtocol(Protocol):
    async def extract(self, url: str, options: ScrapeOptions | None = None) -> ScrapedContent: ...


class AnalyzerProtocol(Protocol):
    async def analyze(
        self, content: ScrapedContent, options: AnalysisOptions | None = None
    ) -> BusinessAnalysis: ...

    async def test_connection(self) -> bool: ...
