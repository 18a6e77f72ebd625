"""
Multi-channel analysis with a memoized per-channel fetch.

A bundle is built once per (channel reference, window, item limit) key and
served from the cache until it expires or is evicted. Channels are processed
one after another in input order; the upstream API is quota limited, so there
is no fan-out across channels.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Protocol

from ..errors import ChannelResolutionError
from ..models import ChannelBundle, ChannelRecord, ChannelRef, VideoRecord
from .aggregate import rank_global, summarize_channels, top_by_velocity, top_by_views_per_day
from .cache import BundleCache
from .hooks import HOOK_RULES_VERSION
from .metrics import build_video_records
from .patterns import extract_ngrams
from .youtube_client import parse_channel_input

logger = logging.getLogger(__name__)


class ChannelProvider(Protocol):
    def resolve_channel(self, ref: ChannelRef) -> ChannelRecord: ...

    def list_video_ids(self, playlist_id: str, max_items: int) -> list[str]: ...

    def fetch_videos(self, video_ids: list[str]) -> list[dict[str, Any]]: ...


def bundle_cache_key(ref: ChannelRef, days: int, max_videos: int) -> str:
    payload = {"kind": ref.kind.value, "value": ref.value, "days": days, "maxVideos": max_videos}
    return f"analyze:{HOOK_RULES_VERSION}:{json.dumps(payload, sort_keys=True, ensure_ascii=False)}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChannelAnalyzer:
    """Process-scoped analyzer; one instance shares its cache and in-flight locks across requests.

    ``provider`` is a default; callers may pass their own per call instead.
    """

    def __init__(
        self,
        provider: ChannelProvider | None = None,
        cache: BundleCache | None = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.provider = provider
        self.cache = cache if cache is not None else BundleCache()
        self._now = now
        # key -> [lock, number of callers holding or waiting on it]
        self._key_locks: dict[str, list] = {}
        self._key_locks_guard = threading.Lock()

    def _acquire_key_lock(self, key: str) -> threading.Lock:
        with self._key_locks_guard:
            entry = self._key_locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._key_locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _release_key_lock(self, key: str) -> None:
        with self._key_locks_guard:
            entry = self._key_locks.get(key)
            if entry is None:
                return
            entry[1] -= 1
            if entry[1] <= 0:
                del self._key_locks[key]

    def _provider_for(self, provider: ChannelProvider | None) -> ChannelProvider:
        chosen = provider if provider is not None else self.provider
        if chosen is None:
            raise ValueError("ChannelAnalyzer needs a provider")
        return chosen

    def fetch_channel_bundle(
        self,
        ref: ChannelRef,
        days: int,
        max_videos: int,
        provider: ChannelProvider | None = None,
    ) -> ChannelBundle:
        key = bundle_cache_key(ref, days, max_videos)
        bundle = self.cache.get(key)
        if bundle is not None:
            logger.debug("Cache hit for %s (fetched at %s)", key, bundle.fetched_at)
            return bundle

        lock = self._acquire_key_lock(key)
        try:
            with lock:
                # another request may have populated the key while this one waited
                bundle = self.cache.get(key)
                if bundle is not None:
                    logger.debug("Cache hit after wait for %s (fetched at %s)", key, bundle.fetched_at)
                    return bundle
                bundle = self.build_bundle(ref, days, max_videos, provider)
                self.cache.put(key, bundle)
                return bundle
        finally:
            self._release_key_lock(key)

    def build_bundle(
        self,
        ref: ChannelRef,
        days: int,
        max_videos: int,
        provider: ChannelProvider | None = None,
    ) -> ChannelBundle:
        provider = self._provider_for(provider)
        logger.info("Fetching channel %s (%s days, up to %s videos)", ref.value, days, max_videos)
        channel = provider.resolve_channel(ref)
        if not channel.uploads_source_id:
            raise ChannelResolutionError(
                f"Channel {channel.title or channel.channel_id} has no uploads playlist",
                channel_input=ref.value,
            )

        video_ids = provider.list_video_ids(channel.uploads_source_id, max_videos)
        videos = provider.fetch_videos(video_ids)
        now = self._now()
        rows = build_video_records(videos, channel, now, days)

        logger.info(
            "Channel %s: %s of %s videos inside the %s day window",
            channel.channel_id, len(rows), len(videos), days,
        )
        return ChannelBundle(
            channel=channel,
            rows=tuple(rows),
            patterns=tuple(extract_ngrams(row.title for row in rows)),
            top_by_velocity=tuple(top_by_velocity(rows)),
            top_by_views_per_day=tuple(top_by_views_per_day(rows)),
            fetched_at=now.isoformat(),
        )

    def analyze(
        self,
        inputs: Iterable[str],
        days: int,
        max_videos: int,
        provider: ChannelProvider | None = None,
    ) -> dict[str, Any]:
        """Builds the response for every input, in input order.

        ``channels`` and ``rows`` hold each distinct channel once: when two
        inputs resolve to the same channel id, the later one is skipped so its
        videos are not counted twice in summaries and rankings.
        """
        channels: list[ChannelRecord] = []
        rows: list[VideoRecord] = []
        seen_channel_ids: set[str] = set()

        for raw in inputs:
            ref = parse_channel_input(raw)
            bundle = self.fetch_channel_bundle(ref, days, max_videos, provider)
            if bundle.channel.channel_id in seen_channel_ids:
                logger.info("Skipping duplicate input %r for channel %s", raw, bundle.channel.channel_id)
                continue
            seen_channel_ids.add(bundle.channel.channel_id)
            channels.append(bundle.channel)
            rows.extend(bundle.rows)

        summaries = summarize_channels(rows, channels)
        global_by_velocity, global_by_vpd, global_patterns = rank_global(rows)

        return {
            "days": days,
            "maxVideos": max_videos,
            "channels": [channel.to_dict() for channel in channels],
            "channelSummary": [summary.to_dict() for summary in summaries],
            "globalTopByVelocity": [row.to_dict() for row in global_by_velocity],
            "globalTopByViewsPerDay": [row.to_dict() for row in global_by_vpd],
            "globalPatterns": [entry.to_dict() for entry in global_patterns],
            "rows": [row.to_dict() for row in rows],
        }
