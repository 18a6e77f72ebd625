import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from ..models import ChannelRecord, VideoRecord
from .hooks import classify_hook

logger = logging.getLogger(__name__)

DURATION_RE = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")
SECONDS_PER_DAY = 24 * 60 * 60
WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


def iso8601_duration_to_seconds(duration: str) -> int:
    match = DURATION_RE.search(duration or "")
    if not match:
        logger.debug("Unrecognised duration %r, using 0 seconds", duration)
        return 0
    hours = int(match.group(1) or 0)
    minutes = int(match.group(2) or 0)
    seconds = int(match.group(3) or 0)
    return hours * 3600 + minutes * 60 + seconds


def parse_iso8601_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def age_in_days(published_at: datetime, now: datetime) -> int:
    """Whole days since publication, never below 1.

    The floor of 1 only exists so the rate metrics below never divide by zero;
    a video published an hour ago counts as one day old.
    """
    elapsed_days = (now - published_at).total_seconds() / SECONDS_PER_DAY
    return max(1, math.floor(elapsed_days))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def views_per_day(views: int, age_days: int) -> int:
    return round_half_up(views / max(1, age_days))


def compute_velocity(views: int, likes: int, age_days: int) -> int:
    """Buzz score: view pace scaled by log10(likes + 10).

    The +10 keeps the log positive when a video has no likes and damps
    like-count outliers relative to raw view pace.
    """
    pace = views / max(1, age_days)
    return round_half_up(pace * math.log10(likes + 10))


def counter_value(statistics: dict[str, Any], name: str) -> int:
    raw = statistics.get(name)
    if raw in (None, ""):
        return 0
    try:
        return max(0, int(raw))
    except (TypeError, ValueError):
        logger.debug("Unparseable counter %s=%r, using 0", name, raw)
        return 0


def build_video_record(video: dict[str, Any], channel: ChannelRecord, now: datetime) -> VideoRecord | None:
    snippet = video.get("snippet") or {}
    statistics = video.get("statistics") or {}
    details = video.get("contentDetails") or {}

    published_raw = snippet.get("publishedAt")
    published_at = parse_iso8601_datetime(published_raw)
    if published_at is None:
        logger.debug("Dropping video %s without a usable publishedAt", video.get("id"))
        return None

    views = counter_value(statistics, "viewCount")
    likes = counter_value(statistics, "likeCount")
    age_days = age_in_days(published_at, now)
    title = snippet.get("title") or ""

    return VideoRecord(
        channel_id=channel.channel_id,
        channel_title=channel.title,
        video_id=video.get("id") or "",
        title=title,
        published_at=published_raw,
        duration_sec=iso8601_duration_to_seconds(details.get("duration") or "PT0S"),
        views=views,
        likes=likes,
        comments=counter_value(statistics, "commentCount"),
        age_days=age_days,
        views_per_day=views_per_day(views, age_days),
        velocity=compute_velocity(views, likes, age_days),
        hook_tag=classify_hook(title),
        url=WATCH_URL.format(video_id=video.get("id") or ""),
    )


def is_within_window(record: VideoRecord, now: datetime, window_days: int) -> bool:
    published_at = parse_iso8601_datetime(record.published_at)
    if published_at is None:
        return False
    return published_at > now - timedelta(days=window_days)


def build_video_records(
    videos: Iterable[dict[str, Any]],
    channel: ChannelRecord,
    now: datetime,
    window_days: int,
) -> list[VideoRecord]:
    records = []
    for video in videos:
        record = build_video_record(video, channel, now)
        if record is None:
            continue
        if not is_within_window(record, now, window_days):
            continue
        records.append(record)
    return records
