from datetime import datetime, timedelta, timezone

from starlette.requests import Request

from backend.app.errors import ChannelResolutionError
from backend.app.models import ChannelRecord, VideoRecord

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_request(ip: str = "127.0.0.1") -> Request:
    return Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/",
            "headers": [],
            "client": (ip, 8000),
            "query_string": b"",
            "server": ("test", 80),
            "scheme": "http",
            "http_version": "1.1",
        }
    )


def iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def make_video(video_id, days_ago, views, duration="PT3M", likes=0, title=None, comments=0, now=None):
    published_at = iso((now or datetime.now(timezone.utc)) - timedelta(days=days_ago))
    return {
        "id": video_id,
        "snippet": {
            "title": title if title is not None else f"Video {video_id}",
            "publishedAt": published_at,
        },
        "statistics": {
            "viewCount": str(views),
            "likeCount": str(likes),
            "commentCount": str(comments),
        },
        "contentDetails": {"duration": duration},
    }


def make_channel(channel_id="UC_TEST", title="Test Channel", uploads="UU_TEST") -> ChannelRecord:
    return ChannelRecord(
        channel_id=channel_id,
        title=title,
        uploads_source_id=uploads,
        subscribers=1000,
        total_views=50000,
        video_count=42,
    )


def make_record(
    video_id,
    channel_id="UC_TEST",
    channel_title="Test Channel",
    velocity=0,
    views_per_day=0,
    duration_sec=0,
    hook_tag="Khác",
    title=None,
) -> VideoRecord:
    return VideoRecord(
        channel_id=channel_id,
        channel_title=channel_title,
        video_id=video_id,
        title=title if title is not None else f"Video {video_id}",
        published_at="2026-02-20T00:00:00Z",
        duration_sec=duration_sec,
        views=views_per_day,
        likes=0,
        comments=0,
        age_days=1,
        views_per_day=views_per_day,
        velocity=velocity,
        hook_tag=hook_tag,
        url=f"https://www.youtube.com/watch?v={video_id}",
    )


class StubProvider:
    """Stands in for YouTubeClient; counts calls per method."""

    def __init__(self, channels=None, videos=None, video_ids=None):
        # channels: ref value -> ChannelRecord, videos: channel id -> raw items
        self.channels = channels or {}
        self.videos = videos or {}
        self.video_ids = video_ids or {}
        self.calls = {"resolve_channel": 0, "list_video_ids": 0, "fetch_videos": 0}
        self._uploads_to_channel = {}

    def resolve_channel(self, ref):
        self.calls["resolve_channel"] += 1
        channel = self.channels.get(ref.value)
        if channel is None:
            raise ChannelResolutionError(f"Channel not found: {ref.value}", channel_input=ref.value)
        self._uploads_to_channel[channel.uploads_source_id] = channel.channel_id
        return channel

    def list_video_ids(self, playlist_id, max_items):
        self.calls["list_video_ids"] += 1
        channel_id = self._uploads_to_channel.get(playlist_id)
        ids = self.video_ids.get(channel_id)
        if ids is None:
            ids = [video["id"] for video in self.videos.get(channel_id, [])]
        return ids[:max_items]

    def fetch_videos(self, video_ids):
        self.calls["fetch_videos"] += 1
        wanted = set(video_ids)
        return [
            video
            for items in self.videos.values()
            for video in items
            if video["id"] in wanted
        ]
