from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ChannelRefKind(str, Enum):
    ID = "id"
    HANDLE = "handle"


@dataclass(frozen=True)
class ChannelRef:
    kind: ChannelRefKind
    value: str

    def __post_init__(self):
        if not self.value:
            raise ValueError("channel reference value must not be empty")


@dataclass(frozen=True)
class ChannelRecord:
    channel_id: str
    title: str
    uploads_source_id: str | None
    subscribers: int = 0
    total_views: int = 0
    video_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "channelId": self.channel_id,
            "title": self.title,
            "uploadsSourceId": self.uploads_source_id,
            "subscribers": self.subscribers,
            "totalViews": self.total_views,
            "videoCount": self.video_count,
        }


@dataclass(frozen=True)
class VideoRecord:
    """One analysed video. Built only through metrics.build_video_record."""

    channel_id: str
    channel_title: str
    video_id: str
    title: str
    published_at: str
    duration_sec: int
    views: int
    likes: int
    comments: int
    age_days: int
    views_per_day: int
    velocity: int
    hook_tag: str
    url: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "channelId": self.channel_id,
            "channelTitle": self.channel_title,
            "videoId": self.video_id,
            "title": self.title,
            "publishedAt": self.published_at,
            "durationSec": self.duration_sec,
            "views": self.views,
            "likes": self.likes,
            "comments": self.comments,
            "ageDays": self.age_days,
            "viewsPerDay": self.views_per_day,
            "velocity": self.velocity,
            "hookTag": self.hook_tag,
            "url": self.url,
        }


@dataclass(frozen=True)
class HookMixEntry:
    tag: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"tag": self.tag, "count": self.count}


@dataclass(frozen=True)
class PatternEntry:
    phrase: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"phrase": self.phrase, "count": self.count}


@dataclass(frozen=True)
class ChannelSummary:
    channel_id: str
    channel_title: str
    videos_in_window: int
    avg_duration_sec: int
    avg_views_per_day: int
    avg_velocity: int
    hook_mix: tuple[HookMixEntry, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "channelId": self.channel_id,
            "channelTitle": self.channel_title,
            "videosInWindow": self.videos_in_window,
            "avgDurationSec": self.avg_duration_sec,
            "avgViewsPerDay": self.avg_views_per_day,
            "avgVelocity": self.avg_velocity,
            "hookMix": [entry.to_dict() for entry in self.hook_mix],
        }


@dataclass(frozen=True)
class ChannelBundle:
    """Cached unit of work for one (channel, window, limit) request."""

    channel: ChannelRecord
    rows: tuple[VideoRecord, ...] = ()
    patterns: tuple[PatternEntry, ...] = ()
    top_by_velocity: tuple[VideoRecord, ...] = ()
    top_by_views_per_day: tuple[VideoRecord, ...] = ()
    fetched_at: str = field(default="", compare=False)
