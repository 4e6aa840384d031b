"""Filmweb title metadata scraper."""

from __future__ import annotations

import json
import logging

from bs4 import BeautifulSoup

from vod_sync.http.fetcher import AsyncHttpFetcher
from vod_sync.reconcile.contracts import FetchError
from vod_sync.reconcile.models import SubscriptionEntry

logger = logging.getLogger(__name__)

VOD_ITEM_SELECTOR = "li.filmVodSection__item"
VOD_BADGE_SELECTOR = ".filmVodSection__badge"
BROADCASTS_SELECTOR = 'script[data-source="broadcastsData"]'


class FilmwebMetadataProvider:
    """Reads VOD offers from ``<url>/vod`` and TV broadcasts from ``<url>/tv``."""

    def __init__(self, fetcher: AsyncHttpFetcher) -> None:
        self.fetcher = fetcher

    async def fetch_subscription_entries(self, url: str) -> list[SubscriptionEntry]:
        html = await self._fetch_page(f"{url}/vod")
        return parse_vod_entries(html)

    async def fetch_broadcast_schedule(self, url: str) -> list[str]:
        html = await self._fetch_page(f"{url}/tv")
        try:
            return parse_broadcast_schedule(html)
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError) as error:
            raise FetchError(
                message=f"Malformed broadcast data at {url}: {error!r}",
                url=url,
            ) from error

    async def _fetch_page(self, url: str) -> str:
        result = await self.fetcher.fetch(url)
        if not result.is_success:
            raise FetchError(message=f"Cannot fetch {url}: {result.error}", url=url)
        return result.content


def parse_vod_entries(html: str) -> list[SubscriptionEntry]:
    """Extract ``(badge, provider)`` pairs from a title's VOD page."""

    soup = BeautifulSoup(html, "html.parser")
    entries: list[SubscriptionEntry] = []
    for item in soup.select(VOD_ITEM_SELECTOR):
        badge = item.select_one(VOD_BADGE_SELECTOR)
        heading = item.find("h3")
        provider_name = heading.get("title") if heading is not None else None
        if not provider_name:
            continue
        entries.append(
            SubscriptionEntry(
                type=badge.get_text(strip=True) if badge is not None else "",
                provider_name=str(provider_name),
            ),
        )
    return entries


def parse_broadcast_schedule(html: str) -> list[str]:
    """Flatten the embedded broadcasts JSON into ``"<date>: <times> @ <channel>"`` lines.

    The payload maps date -> broadcast id -> ``{"details": {"name"}, "seances":
    {index: {"time"}}}``. Repeated lines are dropped, first occurrence kept.
    """

    soup = BeautifulSoup(html, "html.parser")
    script = soup.select_one(BROADCASTS_SELECTOR)
    if script is None or not script.string:
        logger.debug("No broadcast data on page")
        return []

    data = json.loads(script.string)
    lines: dict[str, None] = {}
    for day, broadcasts in data.items():
        for broadcast in broadcasts.values():
            channel = broadcast["details"]["name"]
            times = ",".join(seance["time"] for seance in broadcast["seances"].values())
            lines[f"{day}: {times} @ {channel}"] = None
    return list(lines)
