"""Discovery client for the ScrapeCreators TikTok API.

Supports the two monitoring target kinds:
- hashtag: GET /v1/tiktok/search/hashtag?hashtag=<tag>&region=US
- username: GET /v3/tiktok/profile/videos?handle=<handle>&sort_by=latest

Both endpoints return an `aweme_list`, which is parsed into RawContentItem.
Entries without an `aweme_id` are dropped.
"""

from typing import Any

from pydantic import ValidationError

from funnel.clients.base import BaseAPIClient
from funnel.exceptions import ExternalServiceError
from funnel.models import TargetType
from funnel.schemas.content import RawContentItem
from funnel.utils.logging import get_logger

log = get_logger(__name__)


def _first_url(block: dict[str, Any] | None) -> str | None:
    if not block:
        return None
    urls = block.get("url_list") or []
    return urls[0] if urls else None


def parse_aweme(entry: dict[str, Any], default_author: str) -> RawContentItem | None:
    """Parse one `aweme_list` entry.

    Args:
        entry: Raw entry from the discovery API
        default_author: Author handle to use when the entry has none

    Returns:
        RawContentItem, or None if the entry is unusable
    """
    external_id = entry.get("aweme_id")
    if not external_id:
        return None

    stats = entry.get("statistics") or {}
    video = entry.get("video") or {}
    author = entry.get("author") or {}

    try:
        return RawContentItem(
            external_id=str(external_id),
            description=entry.get("desc") or "",
            author_handle=author.get("unique_id") or default_author,
            cover_url=_first_url(video.get("cover")),
            play_url=_first_url(video.get("play_addr")),
            posted_at=entry.get("create_time"),
            digg_count=stats.get("digg_count") or 0,
            comment_count=stats.get("comment_count") or 0,
            play_count=stats.get("play_count") or 0,
            share_count=stats.get("share_count") or 0,
        )
    except ValidationError as e:
        log.warning("discovery_entry_invalid", external_id=external_id, error=str(e))
        return None


class ScrapeCreatorsClient(BaseAPIClient):
    """Fetches recent videos for a hashtag or account handle.

    Usage:
        client = ScrapeCreatorsClient(api_key)
        items = await client.discover(TargetType.HASHTAG, "skincare", limit=10)
    """

    service_name = "scrape_creators"

    def __init__(self, api_key: str, base_url: str = "https://api.scrapecreators.com"):
        super().__init__(timeout=30.0)
        self.api_key = api_key
        self.base_url = base_url

    def _get_headers(self) -> dict[str, str]:
        return {"x-api-key": self.api_key}

    async def discover(
        self, target_type: TargetType, value: str, limit: int
    ) -> list[RawContentItem]:
        """Fetch up to `limit` videos for one monitored target.

        Raises:
            ExternalServiceError: On HTTP failure or malformed response
        """
        if target_type == TargetType.HASHTAG:
            url = f"{self.base_url}/v1/tiktok/search/hashtag"
            params = {"hashtag": value.lstrip("#"), "region": "US"}
            default_author = "unknown"
        else:
            url = f"{self.base_url}/v3/tiktok/profile/videos"
            params = {"handle": value.lstrip("@"), "sort_by": "latest"}
            default_author = value.lstrip("@")

        response = await self._request("GET", url, params=params, headers=self._get_headers())
        data = self._json(response)
        if not isinstance(data, dict):
            raise ExternalServiceError(self.service_name, "Unexpected response shape")

        items: list[RawContentItem] = []
        for entry in data.get("aweme_list") or []:
            parsed = parse_aweme(entry, default_author)
            if parsed is not None:
                items.append(parsed)
            if len(items) >= limit:
                break

        log.info(
            "discovery_fetched",
            target_type=target_type.value,
            value=value,
            count=len(items),
        )
        return items
