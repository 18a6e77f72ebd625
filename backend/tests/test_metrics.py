from datetime import timedelta

from backend.app.services.metrics import (
    age_in_days,
    build_video_record,
    build_video_records,
    compute_velocity,
    iso8601_duration_to_seconds,
    parse_iso8601_datetime,
    views_per_day,
)
from backend.tests.factories import NOW, iso, make_channel, make_video


def test_iso8601_duration_to_seconds():
    assert iso8601_duration_to_seconds("PT1H2M3S") == 3723
    assert iso8601_duration_to_seconds("PT45S") == 45
    assert iso8601_duration_to_seconds("PT5M") == 300
    assert iso8601_duration_to_seconds("PT2H") == 7200
    assert iso8601_duration_to_seconds("PT1H30S") == 3630
    assert iso8601_duration_to_seconds("PT") == 0


def test_malformed_duration_degrades_to_zero():
    assert iso8601_duration_to_seconds("P1D") == 0
    assert iso8601_duration_to_seconds("garbage") == 0
    assert iso8601_duration_to_seconds("") == 0
    assert iso8601_duration_to_seconds(None) == 0


def test_age_in_days_has_floor_of_one():
    assert age_in_days(NOW - timedelta(hours=3), NOW) == 1
    assert age_in_days(NOW + timedelta(days=2), NOW) == 1
    assert age_in_days(NOW - timedelta(days=10, hours=23), NOW) == 10
    assert age_in_days(NOW - timedelta(days=45), NOW) == 45


def test_views_per_day_rounds_half_up():
    assert views_per_day(1000, 3) == 333
    assert views_per_day(5, 2) == 3
    assert views_per_day(0, 7) == 0
    assert views_per_day(10, 0) == 10


def test_velocity_formula():
    # log10(0 + 10) == 1, log10(90 + 10) == 2
    assert compute_velocity(1000, 0, 1) == 1000
    assert compute_velocity(1000, 90, 1) == 2000
    assert compute_velocity(1000, 90, 4) == 500
    assert compute_velocity(0, 500, 3) == 0


def test_velocity_is_monotonic_in_views_and_likes():
    by_views = [compute_velocity(views, 40, 6) for views in range(0, 5000, 137)]
    assert by_views == sorted(by_views)
    by_likes = [compute_velocity(2500, likes, 6) for likes in range(0, 5000, 137)]
    assert by_likes == sorted(by_likes)


def test_parse_iso8601_datetime():
    parsed = parse_iso8601_datetime("2026-02-01T10:00:00Z")
    assert parsed is not None
    assert parsed.tzinfo is not None
    assert parse_iso8601_datetime("not a date") is None
    assert parse_iso8601_datetime(None) is None


def test_build_video_record_fields():
    channel = make_channel()
    video = make_video("abc", 10, 20000, "PT4M10S", likes=90, comments=7, title="Hệ thống tu tiên", now=NOW)
    record = build_video_record(video, channel, NOW)

    assert record.channel_id == "UC_TEST"
    assert record.channel_title == "Test Channel"
    assert record.video_id == "abc"
    assert record.duration_sec == 250
    assert record.age_days == 10
    assert record.views_per_day == 2000
    assert record.velocity == 4000
    assert record.comments == 7
    assert record.hook_tag == "Hệ thống"
    assert record.url == "https://www.youtube.com/watch?v=abc"


def test_build_video_record_degrades_missing_fields():
    channel = make_channel()
    video = {
        "id": "bare",
        "snippet": {"publishedAt": iso(NOW - timedelta(days=2))},
        "contentDetails": {"duration": "weird"},
    }
    record = build_video_record(video, channel, NOW)

    assert record.views == 0
    assert record.likes == 0
    assert record.comments == 0
    assert record.duration_sec == 0
    assert record.title == ""
    assert record.hook_tag == "Khác"


def test_build_video_record_drops_unparseable_publish_date():
    channel = make_channel()
    assert build_video_record({"id": "x", "snippet": {}}, channel, NOW) is None
    assert build_video_record({"id": "y", "snippet": {"publishedAt": "soon"}}, channel, NOW) is None


def test_window_filter_is_strictly_after_cutoff():
    channel = make_channel()
    at_cutoff = make_video("edge", 30, 100, now=NOW)
    just_inside = make_video("inside", 0, 100, now=NOW)
    just_inside["snippet"]["publishedAt"] = iso(NOW - timedelta(days=30) + timedelta(seconds=1))
    old = make_video("old", 45, 100, now=NOW)

    records = build_video_records([at_cutoff, just_inside, old], channel, NOW, window_days=30)

    assert [record.video_id for record in records] == ["inside"]
