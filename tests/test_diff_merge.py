from datetime import timedelta

import pytest

from content.application.usecase.diff_merge_usecase import DiffMergeUseCase, diff, merge
from content.domain.collection_policy import CollectionPolicy, SnapshotKind
from helpers import T0, make_channel, make_video


def test_merge_inserts_and_keeps_all_identities():
    existing = {"v1": make_video("v1", views=100), "v2": make_video("v2", views=10)}
    merged = merge(existing, [make_video("v3", views=5)])
    assert set(merged) == {"v1", "v2", "v3"}
    assert set(existing) == {"v1", "v2"}


def test_merge_later_fetch_wins():
    older = make_video("v1", views=500, fetched_at=T0)
    newer = make_video("v1", views=400, fetched_at=T0 + timedelta(hours=1))
    assert merge({"v1": older}, [newer])["v1"] is newer
    assert merge({"v1": newer}, [older])["v1"] is newer


def test_merge_without_timestamps_falls_back_to_views():
    low = make_video("v1", views=100, fetched_at=None)
    high = make_video("v1", views=200, fetched_at=None)
    assert merge({"v1": low}, [high])["v1"] is high
    assert merge({"v1": high}, [low])["v1"] is high


def test_merge_tie_keeps_existing():
    existing = make_video("v1", views=100, fetched_at=T0)
    incoming = make_video("v1", views=999, fetched_at=T0)
    assert merge({"v1": existing}, [incoming])["v1"] is existing


def test_merge_is_idempotent():
    baseline = {"v1": make_video("v1", views=100)}
    batch = [make_video("v1", views=150, fetched_at=T0 + timedelta(hours=1)), make_video("v2")]
    once = merge(baseline, batch)
    twice = merge(once, batch)
    assert once == twice


def test_merge_is_idempotent_with_mixed_timestamps_in_one_batch():
    batch = [
        make_video("a", views=2000, fetched_at=None),
        make_video("a", views=1000, fetched_at=T0 + timedelta(hours=1)),
        make_video("a", views=3000, fetched_at=T0),
    ]
    once = merge({}, batch)
    twice = merge(once, batch)
    assert once["a"].view_count == 1000
    assert twice["a"] is once["a"]


def test_merge_timestamped_record_beats_untimestamped():
    stamped = make_video("v1", views=10, fetched_at=T0)
    bare = make_video("v1", views=9999, fetched_at=None)
    assert merge({"v1": stamped}, [bare])["v1"] is stamped
    assert merge({"v1": bare}, [stamped])["v1"] is stamped


def test_diff_against_absent_baseline_is_new():
    current = make_video("v1", views=100)
    record = diff(current, 100, None, None, T0)
    assert record.is_new
    assert record.absolute_delta == 0
    assert record.rate == 0


def test_diff_rate_uses_elapsed_since_baseline():
    baseline = make_video("v1", views=100, fetched_at=T0)
    current = make_video("v1", views=150, fetched_at=T0 + timedelta(hours=1))
    record = diff(current, 150, baseline, 100, T0 + timedelta(hours=2))
    assert record.absolute_delta == 50
    assert record.rate == pytest.approx(25.0)
    assert record.percent_growth == pytest.approx(50.0)
    assert record.elapsed_hours == pytest.approx(2.0)


def test_diff_zero_elapsed_is_floored_to_one_hour():
    baseline = make_video("v1", views=100, fetched_at=T0)
    record = diff(baseline, 130, baseline, 100, T0)
    assert record.elapsed_hours == 1
    assert record.rate == 30


def test_diff_missing_baseline_timestamp_uses_floor():
    baseline = make_video("v1", views=100, fetched_at=None)
    record = diff(baseline, 160, baseline, 100, T0)
    assert record.elapsed_hours == 1
    assert record.rate == 60


def test_diff_zero_previous_has_no_percent():
    baseline = make_video("v1", views=0, fetched_at=T0)
    record = diff(baseline, 10, baseline, 0, T0 + timedelta(hours=5))
    assert record.percent_growth == 0
    assert record.rate == 2


def test_diff_all_channels_covers_subscribers():
    engine = DiffMergeUseCase()
    baseline = {"UC1": make_channel("UC1", views=1000, subscribers=10, fetched_at=T0)}
    current = {
        "UC1": make_channel("UC1", views=1600, subscribers=13, fetched_at=T0 + timedelta(hours=3)),
        "UC2": make_channel("UC2"),
    }
    deltas = engine.diff_all(SnapshotKind.CHANNELS, current, baseline, T0 + timedelta(hours=3))
    assert deltas["UC1"].views.rate == pytest.approx(200)
    assert deltas["UC1"].subscribers.absolute_delta == 3
    assert deltas["UC2"].is_new


def test_diff_video_reports_views_per_hour():
    engine = DiffMergeUseCase()
    video = make_video("v1", views=1000, published_at=T0 - timedelta(hours=4))
    delta = engine.diff_video(video, None, T0)
    assert delta.views_per_hour == pytest.approx(250)


def test_detect_spikes_filters_and_orders():
    engine = DiffMergeUseCase(CollectionPolicy(spike_min_delta=5000, spike_window_hours=48))
    now = T0 + timedelta(hours=2)
    baseline = {
        "fast": make_video("fast", views=1000, published_at=T0 - timedelta(hours=5)),
        "slow": make_video("slow", views=1000, published_at=T0 - timedelta(hours=5)),
        "old": make_video("old", views=1000, published_at=T0 - timedelta(days=5)),
        "small": make_video("small", views=1000, published_at=T0 - timedelta(hours=5)),
    }
    current = {
        "fast": make_video("fast", views=21000, published_at=T0 - timedelta(hours=5), fetched_at=now),
        "slow": make_video("slow", views=8000, published_at=T0 - timedelta(hours=5), fetched_at=now),
        "old": make_video("old", views=90000, published_at=T0 - timedelta(days=5), fetched_at=now),
        "small": make_video("small", views=5000, published_at=T0 - timedelta(hours=5), fetched_at=now),
    }
    deltas = engine.diff_all(SnapshotKind.VIDEOS, current, baseline, now)
    spikes = engine.detect_spikes(current, deltas, now)

    assert [s.video_id for s in spikes] == ["fast", "slow"]
    assert spikes[0].spike_ratio == pytest.approx(20.0)
    assert spikes[0].hours_since_published == pytest.approx(7.0)


def test_detect_spikes_ties_break_by_identity():
    engine = DiffMergeUseCase()
    now = T0 + timedelta(hours=1)
    baseline = {i: make_video(i, views=0, published_at=T0) for i in ("b", "a")}
    current = {i: make_video(i, views=6000, published_at=T0, fetched_at=now) for i in ("b", "a")}
    deltas = engine.diff_all(SnapshotKind.VIDEOS, current, baseline, now)
    assert [s.video_id for s in engine.detect_spikes(current, deltas, now)] == ["a", "b"]


def test_detect_above_average_leave_one_out():
    engine = DiffMergeUseCase()
    videos = {
        f"v{views}": make_video(f"v{views}", channel_id="UC1", views=views)
        for views in (100, 200, 300, 400, 500, 700)
    }
    entries = engine.detect_above_average(videos)
    assert [e.video_id for e in entries] == ["v700"]
    assert entries[0].uplift == pytest.approx(2.33, abs=0.01)
    assert entries[0].channel_mean == pytest.approx(300)
    assert entries[0].sample_size == 5


def test_detect_above_average_requires_sample():
    engine = DiffMergeUseCase()
    videos = {f"v{i}": make_video(f"v{i}", views=views) for i, views in enumerate((100, 100, 100, 100, 5000))}
    assert engine.detect_above_average(videos) == []


def test_detect_above_average_respects_floor():
    engine = DiffMergeUseCase()
    videos = {f"v{i}": make_video(f"v{i}", views=views) for i, views in enumerate((10, 10, 10, 10, 10, 400))}
    assert engine.detect_above_average(videos) == []
