"""
Social platform metrics client (YouTube Data API, Instagram Graph API).

Reads cumulative view/like/comment counts for a creator's posted content.
Missing credentials or unrecognised URLs yield ``None`` so the view sync
simply skips that post; transport failures raise so the sync can log them.
"""

import re
from dataclasses import dataclass
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.ledger_service.errors import ProviderTimeout, ProviderUnavailable
from services.ledger_service.models.enums import Platform

logger = get_logger(__name__)

YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"
INSTAGRAM_API_BASE = "https://graph.instagram.com/v18.0"

YOUTUBE_ID_PATTERNS = (
    re.compile(r"youtube\.com/watch\?v=([A-Za-z0-9_-]{11})"),
    re.compile(r"youtu\.be/([A-Za-z0-9_-]{11})"),
    re.compile(r"youtube\.com/shorts/([A-Za-z0-9_-]{11})"),
    re.compile(r"youtube\.com/embed/([A-Za-z0-9_-]{11})"),
)
INSTAGRAM_ID_PATTERN = re.compile(r"instagram\.com/(?:p|reel)/([A-Za-z0-9_-]+)")


@dataclass
class ContentMetrics:
    views: int
    likes: int
    comments: int


def detect_platform(url: str) -> Platform:
    if "instagram.com" in url:
        return Platform.INSTAGRAM
    if "youtube.com" in url or "youtu.be" in url:
        return Platform.YOUTUBE
    return Platform.OTHER


def extract_youtube_id(url: str) -> Optional[str]:
    for pattern in YOUTUBE_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def extract_instagram_id(url: str) -> Optional[str]:
    match = INSTAGRAM_ID_PATTERN.search(url)
    return match.group(1) if match else None


class SocialMetricsClient:
    """Async reader for public content metrics."""

    def __init__(
        self,
        youtube_api_key: Optional[str] = None,
        instagram_access_token: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.youtube_api_key = youtube_api_key or settings.YOUTUBE_API_KEY
        self.instagram_access_token = (
            instagram_access_token or settings.INSTAGRAM_ACCESS_TOKEN
        )
        self.timeout = timeout or settings.METRICS_PROVIDER_TIMEOUT_SECONDS
        self._transport = transport

    async def _get(self, url: str, params: dict) -> Optional[dict]:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.get(url, params=params)
        except httpx.TimeoutException as exc:
            raise ProviderTimeout(f"Metrics provider timed out: {url}") from exc
        except httpx.TransportError as exc:
            raise ProviderUnavailable(f"Metrics provider unreachable: {exc}") from exc

        if not response.is_success:
            logger.error("Metrics API error: %s for %s", response.status_code, url)
            return None
        return response.json()

    async def get_metrics(self, post_url: str) -> Optional[ContentMetrics]:
        platform = detect_platform(post_url)
        if platform == Platform.YOUTUBE:
            return await self.get_youtube_metrics(post_url)
        if platform == Platform.INSTAGRAM:
            return await self.get_instagram_metrics(post_url)
        return None

    async def get_youtube_metrics(self, video_url: str) -> Optional[ContentMetrics]:
        if not self.youtube_api_key:
            logger.warning("No YouTube API key configured")
            return None
        video_id = extract_youtube_id(video_url)
        if not video_id:
            return None

        data = await self._get(
            f"{YOUTUBE_API_BASE}/videos",
            {"part": "statistics", "id": video_id, "key": self.youtube_api_key},
        )
        items = (data or {}).get("items") or []
        if not items:
            return None
        stats = items[0].get("statistics", {})
        return ContentMetrics(
            views=int(stats.get("viewCount", 0)),
            likes=int(stats.get("likeCount", 0)),
            comments=int(stats.get("commentCount", 0)),
        )

    async def get_instagram_metrics(self, post_url: str) -> Optional[ContentMetrics]:
        if not self.instagram_access_token:
            logger.warning("No Instagram access token configured")
            return None
        media_id = extract_instagram_id(post_url)
        if not media_id:
            return None

        data = await self._get(
            f"{INSTAGRAM_API_BASE}/{media_id}/insights",
            {
                "metric": "impressions,reach,video_views,likes,comments",
                "access_token": self.instagram_access_token,
            },
        )
        if data is None:
            return None

        values: dict[str, int] = {}
        for metric in data.get("data", []):
            metric_values = metric.get("values") or [{}]
            values[metric.get("name")] = int(metric_values[0].get("value", 0) or 0)
        return ContentMetrics(
            views=values.get("video_views") or values.get("impressions", 0),
            likes=values.get("likes", 0),
            comments=values.get("comments", 0),
        )


def get_social_metrics_client() -> SocialMetricsClient:
    return SocialMetricsClient()
