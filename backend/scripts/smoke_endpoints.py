from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

from starlette.requests import Request

ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import backend.main as main_module
from backend.app.errors import ChannelResolutionError
from backend.app.models import ChannelRecord, ChannelRefKind


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


def make_video(video_id: str, days_ago: int, views: int, likes: int, title: str) -> dict:
    published_at = (datetime.now(timezone.utc) - timedelta(days=days_ago)).isoformat().replace("+00:00", "Z")
    return {
        "id": video_id,
        "snippet": {"title": title, "publishedAt": published_at},
        "statistics": {"viewCount": str(views), "likeCount": str(likes), "commentCount": "3"},
        "contentDetails": {"duration": "PT9M30S"},
    }


SMOKE_VIDEOS = [
    make_video("s1", 2, 40000, 800, "Trùng sinh về làm tổng tài"),
    make_video("s2", 6, 22000, 150, "Hệ thống tu tiên siêu cấp"),
    make_video("s3", 14, 9000, 60, "Hệ thống tu tiên phần 2"),
    make_video("s4", 50, 120000, 2000, "Xuyên không về cổ đại"),
]


class SmokeProvider:
    def __init__(self):
        self.calls = 0

    def resolve_channel(self, ref):
        self.calls += 1
        if ref.kind == ChannelRefKind.HANDLE and ref.value == "@smoke":
            return ChannelRecord("UC_SMOKE", "Smoke Channel", "UU_SMOKE", 5000, 900000, 120)
        raise ChannelResolutionError(f"Channel not found: {ref.value}", channel_input=ref.value)

    def list_video_ids(self, playlist_id: str, max_items: int) -> list[str]:
        return [video["id"] for video in SMOKE_VIDEOS][:max_items]

    def fetch_videos(self, video_ids: list[str]) -> list[dict]:
        return [video for video in SMOKE_VIDEOS if video["id"] in set(video_ids)]


def assert_true(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def reset_state() -> None:
    main_module.BUNDLE_CACHE.clear()
    main_module.API_RATE_LIMIT_BUCKETS.clear()


def test_health() -> None:
    payload = main_module.health()
    assert_true(payload.get("ok") is True, "/health should return ok=true")


def test_analyze_shape_and_cache() -> None:
    reset_state()
    provider = SmokeProvider()
    body = main_module.AnalyzeRequest(inputs=["https://www.youtube.com/@smoke"], days=30, maxVideos=20)

    with patch.object(main_module, "build_provider", return_value=provider):
        payload_1 = main_module.analyze(body, make_request())
        payload_2 = main_module.analyze(body, make_request())

    required_keys = {
        "days",
        "maxVideos",
        "channels",
        "channelSummary",
        "globalTopByVelocity",
        "globalTopByViewsPerDay",
        "globalPatterns",
        "rows",
    }
    assert_true(required_keys.issubset(payload_1.keys()), "/analyze response is missing keys")
    assert_true(len(payload_1["rows"]) == 3, "/analyze should drop videos outside the window")
    assert_true(payload_1 == payload_2, "/analyze cached response should be identical")
    assert_true(provider.calls == 1, "/analyze should hit the provider once then cache")


def test_analyze_unknown_channel() -> None:
    reset_state()
    body = main_module.AnalyzeRequest(inputs=["@smoke", "@missing"], days=30, maxVideos=20)
    with patch.object(main_module, "build_provider", return_value=SmokeProvider()):
        try:
            main_module.analyze(body, make_request())
        except ChannelResolutionError as exc:
            assert_true("@missing" in str(exc), "resolution error should name the input")
            return
    raise AssertionError("/analyze should fail when a channel cannot be resolved")


def test_export_csv() -> None:
    reset_state()
    body = main_module.AnalyzeRequest(inputs=["@smoke"], days=30, maxVideos=20)
    with patch.object(main_module, "build_provider", return_value=SmokeProvider()):
        response = main_module.analyze_export(body, make_request())
    lines = response.body.decode("utf-8").split("\n")
    assert_true(lines[0].startswith("channelTitle,title"), "/analyze/export should start with the header row")
    assert_true(len(lines) == 4, "/analyze/export should contain one line per row")


def run() -> int:
    checks = [
        ("health", test_health),
        ("analyze shape + cache", test_analyze_shape_and_cache),
        ("analyze unknown channel", test_analyze_unknown_channel),
        ("export csv", test_export_csv),
    ]
    failures = []

    for check_name, check_fn in checks:
        try:
            check_fn()
            print(f"[PASS] {check_name}")
        except Exception as exc:  # pragma: no cover - smoke script output path
            failures.append((check_name, str(exc)))
            print(f"[FAIL] {check_name}: {exc}")

    if failures:
        print(f"\nSmoke checks failed: {len(failures)}")
        for check_name, message in failures:
            print(f"- {check_name}: {message}")
        return 1

    print("\nAll smoke checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(run())
