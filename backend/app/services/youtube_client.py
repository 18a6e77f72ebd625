import logging
import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any

import requests

from ..errors import ChannelResolutionError, QuotaExceededError, UpstreamError
from ..models import ChannelRecord, ChannelRef, ChannelRefKind
from .metrics import counter_value

logger = logging.getLogger(__name__)

YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"
YOUTUBE_CHANNELS_LIST = f"{YOUTUBE_API_BASE}/channels"
YOUTUBE_PLAYLIST_ITEMS_LIST = f"{YOUTUBE_API_BASE}/playlistItems"
YOUTUBE_VIDEOS_LIST = f"{YOUTUBE_API_BASE}/videos"

CHANNEL_ID_RE = re.compile(r"(UC[a-zA-Z0-9_-]{20,})")
HANDLE_URL_RE = re.compile(r"youtube\.com/@([^/?]+)", re.IGNORECASE)
PAGE_SIZE = 50
DETAILS_BATCH_SIZE = 50


def chunked(lst, n):
    for i in range(0, len(lst), n):
        yield lst[i:i + n]


def parse_channel_input(raw: str) -> ChannelRef:
    """
    Accepts a channel id (UC...), an @handle, a channel URL containing /@handle,
    or any other text, which is tried as a handle.
    """
    text = (raw or "").strip()

    match = CHANNEL_ID_RE.search(text)
    if match:
        return ChannelRef(ChannelRefKind.ID, match.group(1))

    match = HANDLE_URL_RE.search(text)
    if match:
        return ChannelRef(ChannelRefKind.HANDLE, f"@{match.group(1)}")

    return ChannelRef(ChannelRefKind.HANDLE, text)


class YouTubeClient:
    """Thin YouTube Data API v3 client covering the calls the analyzer needs."""

    def __init__(
        self,
        api_key: str,
        timeout: int = 15,
        detail_workers: int = 1,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        self.timeout = timeout
        self.detail_workers = max(1, int(detail_workers))
        self.session = session or requests.Session()

    def api_get(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        query = {key: value for key, value in params.items() if value is not None}
        query["key"] = self.api_key
        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("YouTube request to %s failed: %s", url, exc)
            raise UpstreamError("YouTube is temporarily unavailable. Please try again.") from exc

        if response.status_code == 200:
            try:
                return response.json()
            except ValueError as exc:
                raise UpstreamError("YouTube returned an unreadable response.") from exc

        lowered = response.text.lower()
        if response.status_code in {403, 429} and (
            "quotaexceeded" in lowered or "quota exceeded" in lowered or "youtube.quota" in lowered
        ):
            logger.warning("YouTube API quota exceeded")
            raise QuotaExceededError("YouTube API quota is currently exhausted.")

        logger.warning("YouTube returned HTTP %s for %s", response.status_code, url)
        raise UpstreamError("Could not fetch YouTube data right now.")

    def resolve_channel(self, ref: ChannelRef) -> ChannelRecord:
        params: dict[str, Any] = {
            "part": "id,snippet,contentDetails,statistics",
            "maxResults": 1,
        }
        if ref.kind == ChannelRefKind.ID:
            params["id"] = ref.value
        else:
            params["forHandle"] = ref.value

        payload = self.api_get(YOUTUBE_CHANNELS_LIST, params)
        items = payload.get("items") or []
        if not items:
            raise ChannelResolutionError(f"Channel not found: {ref.value}", channel_input=ref.value)

        item = items[0]
        snippet = item.get("snippet") or {}
        statistics = item.get("statistics") or {}
        uploads = ((item.get("contentDetails") or {}).get("relatedPlaylists") or {}).get("uploads")
        return ChannelRecord(
            channel_id=item.get("id") or ref.value,
            title=snippet.get("title") or "",
            uploads_source_id=uploads,
            subscribers=counter_value(statistics, "subscriberCount"),
            total_views=counter_value(statistics, "viewCount"),
            video_count=counter_value(statistics, "videoCount"),
        )

    def list_video_ids(self, playlist_id: str, max_items: int) -> list[str]:
        # pages must be walked in order; each request needs the previous nextPageToken
        ids: list[str] = []
        page_token = None
        while len(ids) < max_items:
            payload = self.api_get(
                YOUTUBE_PLAYLIST_ITEMS_LIST,
                {
                    "part": "contentDetails",
                    "playlistId": playlist_id,
                    "maxResults": min(PAGE_SIZE, max_items - len(ids)),
                    "pageToken": page_token,
                },
            )
            items = payload.get("items") or []
            for item in items:
                video_id = (item.get("contentDetails") or {}).get("videoId")
                if video_id:
                    ids.append(video_id)

            page_token = payload.get("nextPageToken")
            if not page_token or not items:
                break

        return ids[:max_items]

    def _fetch_video_batch(self, batch: list[str]) -> list[dict[str, Any]]:
        payload = self.api_get(
            YOUTUBE_VIDEOS_LIST,
            {
                "part": "snippet,statistics,contentDetails",
                "id": ",".join(batch),
                "maxResults": DETAILS_BATCH_SIZE,
            },
        )
        return payload.get("items") or []

    def fetch_videos(self, video_ids: list[str]) -> list[dict[str, Any]]:
        batches = list(chunked(video_ids, DETAILS_BATCH_SIZE))
        if self.detail_workers == 1 or len(batches) < 2:
            results = [self._fetch_video_batch(batch) for batch in batches]
        else:
            with ThreadPoolExecutor(max_workers=min(self.detail_workers, len(batches))) as pool:
                results = list(pool.map(self._fetch_video_batch, batches))

        hydrated: list[dict[str, Any]] = []
        for items in results:
            hydrated.extend(items)
        return hydrated
