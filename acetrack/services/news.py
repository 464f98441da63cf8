"""Campus news: scrape, cache in MongoDB, fall back to stale cache on failure."""
from __future__ import annotations

import hashlib
import html as html_lib
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urljoin

import httpx

from acetrack.config import settings
from acetrack.models.news import NewsItem, NewsOut, NewsResponse

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; AceTrack-NewsBot/1.0)"
DEFAULT_AUTHOR = "DOrSU-PIO"

_ARTICLE_RE = re.compile(r"<article\b[^>]*>(.*?)</article>", re.IGNORECASE | re.DOTALL)
_CLASS_BLOCK_RE = re.compile(
    r"<(div|li|section)\b[^>]*class=[\"'][^\"']*(?:news|post)[^\"']*[\"'][^>]*>(.*?)</\1>",
    re.IGNORECASE | re.DOTALL,
)
_HEADING_RE = re.compile(r"<h[1-4]\b[^>]*>(.*?)</h[1-4]>", re.IGNORECASE | re.DOTALL)
_IMG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
_DATA_SRC_RE = re.compile(r"\bdata-src=[\"']([^\"']+)[\"']", re.IGNORECASE)
_SRC_RE = re.compile(r"(?<![-\w])src=[\"']([^\"']+)[\"']", re.IGNORECASE)
_TIME_RE = re.compile(r"<time\b([^>]*)>(.*?)</time>", re.IGNORECASE | re.DOTALL)
_DATETIME_ATTR_RE = re.compile(r"\bdatetime=[\"']([^\"']+)[\"']", re.IGNORECASE)
_AUTHOR_RE = re.compile(
    r"<(\w+)\b[^>]*class=[\"'][^\"']*author[^\"']*[\"'][^>]*>(.*?)</\1>",
    re.IGNORECASE | re.DOTALL,
)
_LINK_RE = re.compile(r"<a\b[^>]*href=[\"']([^\"']+)[\"']", re.IGNORECASE)
_SUMMARY_RE = re.compile(r"<p\b[^>]*>(.*?)</p>", re.IGNORECASE | re.DOTALL)
_HTML_TAG_RE = re.compile(r"<[^>]+>")
_MULTISPACE_RE = re.compile(r"\s+")
_PLACEHOLDER_MARKERS = ("placeholder", "loading.gif", "1x1.", "blank.")
_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp", ".gif")


class NewsUnavailable(Exception):
    """Fetching failed and nothing is cached."""

    reason = "news_unavailable"
    status_code = 502


@dataclass
class ScrapedNews:
    news_id: str
    title: str
    summary: str
    image_url: Optional[str]
    date: str
    author: str
    read_more_url: str


def plain_text(fragment: str) -> str:
    text = _HTML_TAG_RE.sub(" ", fragment or "")
    return _MULTISPACE_RE.sub(" ", html_lib.unescape(text)).strip()


def news_id_for(title: str, date: str) -> str:
    return hashlib.sha256(f"{title}|{date}".encode("utf-8")).hexdigest()[:24]


def _image_url(block: str, base_url: str) -> Optional[str]:
    tag = _IMG_RE.search(block)
    if not tag:
        return None
    candidates = [m.group(1) for m in (_DATA_SRC_RE.search(tag.group(0)), _SRC_RE.search(tag.group(0))) if m]
    for raw in candidates:
        if raw.startswith("data:"):
            continue
        url = urljoin(base_url + "/", raw)
        lowered = url.lower()
        if any(marker in lowered for marker in _PLACEHOLDER_MARKERS) or lowered.endswith(".svg"):
            continue
        if "wp-content/uploads" not in lowered and not any(ext in lowered for ext in _IMAGE_EXTENSIONS):
            continue
        return url
    return None


def _date_text(block: str) -> str:
    match = _TIME_RE.search(block)
    if not match:
        return ""
    attr = _DATETIME_ATTR_RE.search(match.group(1))
    return attr.group(1).strip() if attr else plain_text(match.group(2))


def _parse_block(block: str, base_url: str) -> Optional[ScrapedNews]:
    heading = _HEADING_RE.search(block)
    title = plain_text(heading.group(1)) if heading else ""
    if not title:
        return None
    date = _date_text(block)
    author_match = _AUTHOR_RE.search(block)
    author = plain_text(author_match.group(2)) if author_match else ""
    author = re.sub(r"^by\s+", "", author, flags=re.IGNORECASE) or DEFAULT_AUTHOR
    link = _LINK_RE.search(block)
    summary = _SUMMARY_RE.search(block)
    return ScrapedNews(
        news_id=news_id_for(title, date),
        title=title,
        summary=plain_text(summary.group(1)) if summary else "",
        image_url=_image_url(block, base_url),
        date=date,
        author=author,
        read_more_url=urljoin(base_url + "/", link.group(1)) if link else base_url,
    )


def parse_news_html(page: str, base_url: str, *, limit: int = 10) -> list[ScrapedNews]:
    """Extract news cards: <article> blocks first, else news/post class blocks."""
    blocks = _ARTICLE_RE.findall(page)
    if not blocks:
        blocks = [m.group(2) for m in _CLASS_BLOCK_RE.finditer(page)]

    items: list[ScrapedNews] = []
    seen_titles: set[str] = set()
    for block in blocks:
        item = _parse_block(block, base_url)
        if item is None or item.title in seen_titles:
            continue
        seen_titles.add(item.title)
        items.append(item)
        if len(items) >= limit:
            break
    return items


async def scrape_news(transport: Optional[httpx.AsyncBaseTransport] = None) -> list[ScrapedNews]:
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.5",
    }
    async with httpx.AsyncClient(
        transport=transport,
        timeout=settings.news_fetch_timeout_seconds,
        follow_redirects=True,
        headers=headers,
    ) as client:
        response = await client.get(settings.news_source_url)
        response.raise_for_status()
    return parse_news_html(response.text, settings.news_source_url.rstrip("/"), limit=settings.news_max_items)


async def save_news_items(items: list[ScrapedNews], *, now: datetime) -> tuple[list[NewsItem], int, int]:
    """Upsert by news_id; return (documents, inserted, updated)."""
    saved: list[NewsItem] = []
    inserted = updated = 0
    for item in items:
        doc = await NewsItem.find_one(NewsItem.news_id == item.news_id)
        if doc:
            doc.title = item.title
            doc.summary = item.summary
            doc.image_url = item.image_url
            doc.author = item.author
            doc.read_more_url = item.read_more_url
            doc.scraped_at = now
            doc.is_active = True
            await doc.save()
            updated += 1
        else:
            doc = NewsItem(
                news_id=item.news_id,
                title=item.title,
                summary=item.summary,
                image_url=item.image_url,
                date=item.date,
                author=item.author,
                read_more_url=item.read_more_url,
                scraped_at=now,
            )
            await doc.insert()
            inserted += 1
        saved.append(doc)
    return saved, inserted, updated


async def last_scraped_at() -> Optional[datetime]:
    latest = await NewsItem.find(NewsItem.is_active == True).sort("-scraped_at").first_or_none()
    return latest.scraped_at if latest else None


async def cached_news(limit: Optional[int] = None) -> list[NewsItem]:
    return (
        await NewsItem.find(NewsItem.is_active == True)
        .sort("-scraped_at", "_id")
        .limit(limit or settings.news_max_items)
        .to_list()
    )


def _out(doc: NewsItem) -> NewsOut:
    return NewsOut(
        id=doc.news_id,
        title=doc.title,
        summary=doc.summary,
        image_url=doc.image_url,
        date=doc.date,
        author=doc.author,
        read_more_url=doc.read_more_url,
        scraped_at=doc.scraped_at,
    )


def _age_seconds(last: Optional[datetime], now: datetime) -> Optional[int]:
    return round((now - last).total_seconds()) if last else None


async def refresh_news(
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    now: Optional[datetime] = None,
) -> NewsResponse:
    """Scrape now; raise NewsUnavailable when the source fails or yields nothing."""
    now = now or datetime.utcnow()
    try:
        scraped = await scrape_news(transport)
    except httpx.HTTPError as exc:
        raise NewsUnavailable(f"Failed to fetch news: {exc.__class__.__name__}: {exc}") from exc
    if not scraped:
        raise NewsUnavailable("No news items found on the source page")

    saved, inserted, updated = await save_news_items(scraped, now=now)
    logger.info("News refreshed: %d new, %d updated", inserted, updated)
    return NewsResponse(
        data=[_out(d) for d in saved],
        cached=False,
        last_updated=now,
        cache_age=0,
        inserted=inserted,
        updated=updated,
    )


async def get_news(
    refresh: bool = False,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    now: Optional[datetime] = None,
) -> NewsResponse:
    """Serve fresh cache, else scrape; on failure serve the last known items flagged stale."""
    now = now or datetime.utcnow()
    if not refresh:
        last = await last_scraped_at()
        if last and now - last < timedelta(minutes=settings.news_cache_minutes):
            items = await cached_news()
            if items:
                return NewsResponse(
                    data=[_out(d) for d in items],
                    cached=True,
                    last_updated=last,
                    cache_age=_age_seconds(last, now),
                )

    try:
        return await refresh_news(transport=transport, now=now)
    except NewsUnavailable as exc:
        logger.warning("News fetch failed, trying stale cache: %s", exc)
        items = await cached_news()
        if not items:
            raise
        last = await last_scraped_at()
        return NewsResponse(
            data=[_out(d) for d in items],
            cached=True,
            stale=True,
            last_updated=last,
            cache_age=_age_seconds(last, now),
            fetch_error=str(exc),
        )
