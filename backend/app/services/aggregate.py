from collections import Counter
from typing import Iterable, Sequence

from ..models import ChannelRecord, ChannelSummary, HookMixEntry, PatternEntry, VideoRecord
from .metrics import round_half_up
from .patterns import extract_ngrams

HOOK_MIX_LIMIT = 8
TOP_VIDEOS_LIMIT = 20


def _mean(values: list[int]) -> int:
    return round_half_up(sum(values) / max(1, len(values)))


def hook_mix(rows: Sequence[VideoRecord], limit: int = HOOK_MIX_LIMIT) -> tuple[HookMixEntry, ...]:
    counts = Counter(row.hook_tag for row in rows)
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return tuple(HookMixEntry(tag=tag, count=count) for tag, count in ranked[:limit])


def summarize_channel(channel_id: str, channel_title: str, rows: Sequence[VideoRecord]) -> ChannelSummary:
    return ChannelSummary(
        channel_id=channel_id,
        channel_title=channel_title,
        videos_in_window=len(rows),
        avg_duration_sec=_mean([row.duration_sec for row in rows]),
        avg_views_per_day=_mean([row.views_per_day for row in rows]),
        avg_velocity=_mean([row.velocity for row in rows]),
        hook_mix=hook_mix(rows),
    )


def summarize_channels(
    rows: Iterable[VideoRecord],
    channels: Iterable[ChannelRecord] = (),
) -> list[ChannelSummary]:
    """Per-channel averages, best average velocity first.

    Channels passed in ``channels`` are reported even when none of their
    videos made it into the window.
    """
    grouped: dict[str, list[VideoRecord]] = {}
    titles: dict[str, str] = {}
    for channel in channels:
        grouped.setdefault(channel.channel_id, [])
        titles.setdefault(channel.channel_id, channel.title)
    for row in rows:
        grouped.setdefault(row.channel_id, []).append(row)
        titles.setdefault(row.channel_id, row.channel_title)

    summaries = [
        summarize_channel(channel_id, titles.get(channel_id) or channel_id, channel_rows)
        for channel_id, channel_rows in grouped.items()
    ]
    return sorted(summaries, key=lambda summary: summary.avg_velocity, reverse=True)


def top_by_velocity(rows: Iterable[VideoRecord], limit: int = TOP_VIDEOS_LIMIT) -> list[VideoRecord]:
    return sorted(rows, key=lambda row: row.velocity, reverse=True)[:limit]


def top_by_views_per_day(rows: Iterable[VideoRecord], limit: int = TOP_VIDEOS_LIMIT) -> list[VideoRecord]:
    return sorted(rows, key=lambda row: row.views_per_day, reverse=True)[:limit]


def rank_global(rows: Sequence[VideoRecord]) -> tuple[list[VideoRecord], list[VideoRecord], list[PatternEntry]]:
    """Returns (top by velocity, top by views/day, title patterns) over every channel's rows."""
    return (
        top_by_velocity(rows),
        top_by_views_per_day(rows),
        extract_ngrams(row.title for row in rows),
    )
