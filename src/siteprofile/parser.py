"""HTML parser for rendered pages.

Turns the markup captured from the browser into a ``ScrapedContent`` record.
Pure and synchronous: no network access, no browser handles. Business-info
selectors and headings run on the full document; main content and the
contact regexes run on the document after navigation, chrome and scripts
have been stripped.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

from siteprofile.models.content import (
    BusinessInfo,
    ContactInfo,
    PageMetadata,
    ScrapedContent,
    SocialLinks,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

PARSER = "html.parser"

STRIP_SELECTORS = "script, style, noscript, nav, header, footer, aside, .menu, .navigation, .sidebar"

MAIN_CONTENT_SELECTORS = [
    "main",
    '[role="main"]',
    ".main-content",
    ".content",
    ".page-content",
    ".post-content",
    ".entry-content",
    "article",
    ".article",
]

OPENING_HOURS_SELECTORS = [
    ".opening-hours",
    ".hours",
    ".openingstijden",
    '[class*="hours"]',
    '[class*="opening"]',
]
SERVICE_SELECTORS = [".services", ".diensten", ".service-list", ".what-we-do"]
PRODUCT_SELECTORS = [".products", ".product", ".producten", ".product-list"]
ABOUT_SELECTORS = [".about", ".over-ons", ".about-us", ".company-info", ".bedrijfsinfo"]

# platform → host fragments; "x.com" is matched as a host suffix only
SOCIAL_HOSTS: dict[str, tuple[str, ...]] = {
    "facebook": ("facebook.com",),
    "twitter": ("twitter.com",),
    "instagram": ("instagram.com",),
    "linkedin": ("linkedin.com",),
    "youtube": ("youtube.com", "youtu.be"),
}

_SKIPPED_LINK_PREFIXES = ("#", "mailto:", "tel:", "javascript:", "data:")

EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_RE = re.compile(r"(?<![\d+])(?:\+31|0)[\s\-]?(?:\d[\s\-]?){8,9}\d(?!\d)")
# Dutch postcode followed by a capitalised place name: "1012 AB Amsterdam", "2511 CV Den Haag"
ADDRESS_RE = re.compile(r"\b\d{4}\s?[A-Z]{2}\s+[A-Z][a-z'\-]+(?:[ \-][A-Z][a-z'\-]+)*\b")
KVK_RE = re.compile(
    r"\b(?:kvk|k\.v\.k\.?|kamer van koophandel|chamber of commerce)"
    r"(?:[\s\-]*(?:nummer|number|nr\.?|no\.?))?[\s:.#\-]*(\d{8})\b",
    re.IGNORECASE,
)
_WS_RE = re.compile(r"\s+")

_MIN_ITEM_CHARS = 4
_MAX_ITEM_CHARS = 99


def _text(node: Tag) -> str:
    return _WS_RE.sub(" ", node.get_text(" ", strip=True)).strip()


def _dedupe(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def _meta(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    if isinstance(tag, Tag):
        value = tag.get("content")
        if isinstance(value, str):
            return value.strip()
    return ""


def _absolute(base_url: str, ref: str) -> str | None:
    try:
        resolved = urljoin(base_url, ref.strip())
    except ValueError:
        return None
    if urlsplit(resolved).scheme not in ("http", "https"):
        return None
    return resolved


def _first_text(soup: BeautifulSoup, selectors: list[str]) -> str:
    for selector in selectors:
        elements = soup.select(selector)
        if elements:
            return " ".join(_text(el) for el in elements).strip()
    return ""


def _item_texts(soup: BeautifulSoup, selectors: list[str], item_selector: str) -> list[str]:
    items: list[str] = []
    for selector in selectors:
        for container in soup.select(selector):
            for el in container.select(item_selector):
                text = _text(el)
                if _MIN_ITEM_CHARS <= len(text) <= _MAX_ITEM_CHARS:
                    items.append(text)
    return _dedupe(items)


def extract_emails(text: str) -> list[str]:
    return _dedupe(EMAIL_RE.findall(text))


def extract_phones(text: str) -> list[str]:
    return _dedupe(m.group(0).strip() for m in PHONE_RE.finditer(text))


def extract_addresses(text: str) -> list[str]:
    return _dedupe(m.group(0).strip() for m in ADDRESS_RE.finditer(text))


def extract_registration_number(text: str) -> str | None:
    """Return the first Chamber of Commerce (KvK) number mentioned in ``text``."""
    match = KVK_RE.search(text)
    return match.group(1) if match else None


def has_viewport_meta(viewport: str) -> bool:
    return "width=device-width" in viewport.replace(" ", "").lower()


def _social_links(soup: BeautifulSoup) -> SocialLinks:
    found: dict[str, str] = {}
    for anchor in soup.select("a[href]"):
        href = anchor.get("href")
        if not isinstance(href, str):
            continue
        try:
            host = (urlsplit(href.strip()).hostname or "").lower()
        except ValueError:
            continue
        if not host:
            continue
        for platform, fragments in SOCIAL_HOSTS.items():
            if platform in found:
                continue
            if any(fragment in host for fragment in fragments) or (
                platform == "twitter" and (host == "x.com" or host.endswith(".x.com"))
            ):
                found[platform] = href.strip()
    return SocialLinks(**found)


def _link_targets(soup: BeautifulSoup, scheme: str) -> list[str]:
    targets = []
    for anchor in soup.select(f'a[href^="{scheme}"]'):
        href = anchor.get("href")
        if isinstance(href, str):
            target = href[len(scheme) :].split("?", 1)[0].strip()
            if target:
                targets.append(target)
    return targets


def parse_html(
    html: str,
    url: str,
    *,
    extract_images: bool = True,
    extract_links: bool = True,
    page_title: str | None = None,
) -> ScrapedContent:
    """Parse rendered markup into a populated ``ScrapedContent``.

    ``technical_info`` is left at its defaults; the extractor fills it in from
    the navigation response.
    """
    soup = BeautifulSoup(html, PARSER)

    title = (page_title or "").strip()
    if not title and soup.title is not None:
        title = _text(soup.title)

    description = _meta(soup, name="description") or _meta(soup, property="og:description")

    headings = [
        text
        for el in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])
        if (text := _text(el))
    ]

    images: list[str] = []
    if extract_images:
        for img in soup.select("img[src]"):
            src = img.get("src")
            if isinstance(src, str) and (absolute := _absolute(url, src)):
                images.append(absolute)

    links: list[str] = []
    if extract_links:
        for anchor in soup.select("a[href]"):
            href = anchor.get("href")
            if not isinstance(href, str) or href.strip().lower().startswith(_SKIPPED_LINK_PREFIXES):
                continue
            if absolute := _absolute(url, href):
                links.append(absolute)

    html_tag = soup.find("html")
    lang = html_tag.get("lang") if isinstance(html_tag, Tag) else None
    charset_tag = soup.find("meta", attrs={"charset": True})
    charset = charset_tag.get("charset") if isinstance(charset_tag, Tag) else None
    keywords_raw = _meta(soup, name="keywords")
    metadata = PageMetadata(
        lang=lang.strip() if isinstance(lang, str) else "",
        charset=charset.strip() if isinstance(charset, str) else "",
        viewport=_meta(soup, name="viewport"),
        robots=_meta(soup, name="robots"),
        author=_meta(soup, name="author"),
        keywords=[k.strip() for k in keywords_raw.split(",") if k.strip()],
    )

    social_media = _social_links(soup)

    business_info = BusinessInfo(
        opening_hours=_first_text(soup, OPENING_HOURS_SELECTORS),
        services=_item_texts(soup, SERVICE_SELECTORS, "li, p, div"),
        products=_item_texts(soup, PRODUCT_SELECTORS, "li, .product-name, .product-title"),
        about_text=_first_text(soup, ABOUT_SELECTORS),
    )

    mailto = _link_targets(soup, "mailto:")
    tel = _link_targets(soup, "tel:")

    for el in soup.select(STRIP_SELECTORS):
        el.decompose()

    content = _first_text(soup, MAIN_CONTENT_SELECTORS)
    if not content and soup.body is not None:
        content = _text(soup.body)
    if not content:
        content = _text(soup)

    contact_info = ContactInfo(
        emails=_dedupe([*extract_emails(content), *mailto]),
        phones=_dedupe([*extract_phones(content), *tel]),
        addresses=extract_addresses(content),
    )

    return ScrapedContent(
        url=url,
        title=title,
        description=description,
        headings=headings,
        content=content,
        images=_dedupe(images),
        links=_dedupe(links),
        metadata=metadata,
        social_media=social_media,
        contact_info=contact_info,
        business_info=business_info,
    )
