import asyncio
import threading
from datetime import datetime, timedelta, timezone

import pytest

from content.application.usecase.collection_usecase import CollectionUseCase
from content.domain.collection_policy import CollectionPolicy, SnapshotKind, TierConfig, mode_for_hour, resolve_mode
from content.domain.exceptions import PoolExhaustedError, ProviderError, QuotaExceededError
from content.infrastructure.client.key_pool import KeyPool
from content.infrastructure.repository.json_snapshot_store import JsonSnapshotStore
from helpers import T0, FakeProvider, make_channel, make_fetcher, make_video


def build_usecase(tmp_path, provider, pool=None, tiers=None, **policy_kwargs):
    policy = CollectionPolicy(tiers=tiers or TierConfig(tier1=["UC1", "UC2"], tier2=["UC3"]), **policy_kwargs)
    pool = pool or KeyPool(["key-a", "key-b"])
    fetcher = make_fetcher(pool, provider, batch_size=policy.batch_size)
    store = JsonSnapshotStore(tmp_path)
    return CollectionUseCase(fetcher, store, policy), store, pool


def seeded_provider(now):
    channels = [make_channel(f"UC{i}", views=1000 * i, fetched_at=now, uploads=f"UU{i}") for i in (1, 2, 3)]
    videos = [
        make_video("v1", channel_id="UC1", views=150, duration=40, fetched_at=now),
        make_video("v2", channel_id="UC1", views=900, duration=300, fetched_at=now),
        make_video("v3", channel_id="UC2", views=50, duration=20, fetched_at=now),
        make_video("v4", channel_id="UC3", views=70, duration=20, fetched_at=now),
        make_video("s1", channel_id="UC9", views=10, duration=15, fetched_at=now),
    ]
    playlists = {"UU1": ["v1", "v2"], "UU2": ["v3"], "UU3": ["v4"]}
    return FakeProvider(channels=channels, videos=videos, playlists=playlists, search_results={"정치 shorts": ["s1"]})


def test_mode_policy_by_hour():
    assert mode_for_hour(23).name == "full"
    assert mode_for_hour(19).name == "medium"
    assert mode_for_hour(11).name == "light"
    assert resolve_mode("auto", hour=23).include_search
    with pytest.raises(ValueError):
        resolve_mode("extreme")


def test_first_cycle_marks_everything_new_and_persists(tmp_path):
    now = T0 + timedelta(hours=2)
    usecase, store, _ = build_usecase(tmp_path, seeded_provider(now))

    result = asyncio.run(usecase.run_collection_cycle(mode="light", now=now))

    assert result.ok
    assert result.mode == "light"
    assert set(result.channels) == {"UC1", "UC2"}
    assert set(result.videos) == {"v1", "v2", "v3"}
    assert all(delta.is_new for delta in result.video_deltas.values())
    assert result.channels_succeeded == 2 and result.channels_failed == 0
    assert result.videos_succeeded == 3
    assert result.summary.total_shorts == 2
    assert result.summary.quota_used == 4
    assert set(store.load(SnapshotKind.VIDEOS)) == {"v1", "v2", "v3"}


def test_second_cycle_computes_deltas_against_baseline(tmp_path):
    store = JsonSnapshotStore(tmp_path)
    store.save(SnapshotKind.VIDEOS, {"v1": make_video("v1", channel_id="UC1", views=100, duration=40, fetched_at=T0)})
    now = T0 + timedelta(hours=2)
    usecase, _, _ = build_usecase(tmp_path, seeded_provider(now))

    result = asyncio.run(usecase.run_collection_cycle(mode="light", now=now))

    delta = result.video_deltas["v1"]
    assert delta.views.absolute_delta == 50
    assert delta.views.rate == pytest.approx(25)
    assert not delta.is_new


def test_medium_mode_includes_tier_two(tmp_path):
    now = T0 + timedelta(hours=2)
    usecase, _, _ = build_usecase(tmp_path, seeded_provider(now))
    result = asyncio.run(usecase.run_collection_cycle(mode="medium", now=now))
    assert set(result.channels) == {"UC1", "UC2", "UC3"}
    assert "v4" in result.videos


def test_full_mode_runs_search_and_ignores_cache(tmp_path):
    now = T0 + timedelta(hours=2)
    provider = seeded_provider(now)
    usecase, store, _ = build_usecase(tmp_path, provider, search_queries=["정치 shorts"])
    store.save(SnapshotKind.CHANNELS, {"UC1": make_channel("UC1", fetched_at=now - timedelta(minutes=5))})

    result = asyncio.run(usecase.run_collection_cycle(mode="full", now=now))

    assert result.cache_hits == 0
    assert "s1" in result.videos
    assert len(provider.calls_for("search")) == 1
    assert result.summary.quota_used == 100 + 1 + 3 + 1


def test_light_mode_reuses_fresh_cached_channels(tmp_path):
    now = T0 + timedelta(hours=2)
    provider = seeded_provider(now)
    usecase, store, _ = build_usecase(tmp_path, provider)
    cached = make_channel("UC1", views=1, fetched_at=now - timedelta(hours=1))
    store.save(SnapshotKind.CHANNELS, {"UC1": cached})

    result = asyncio.run(usecase.run_collection_cycle(mode="light", now=now))

    assert result.cache_hits == 1
    assert provider.calls_for("channels")[0][2] == ("UC2",)
    assert result.channels["UC1"].view_count == 1
    assert "UC1" not in result.channel_deltas


def test_explicit_targets_override_tiers(tmp_path):
    now = T0 + timedelta(hours=2)
    usecase, _, _ = build_usecase(tmp_path, seeded_provider(now))
    result = asyncio.run(usecase.run_collection_cycle(target_identities=["UC3"], mode="light", now=now))
    assert set(result.channels) == {"UC3"}
    assert set(result.videos) == {"v4"}


def test_failed_channel_is_omitted_and_counted(tmp_path):
    now = T0 + timedelta(hours=2)
    provider = seeded_provider(now)
    provider.id_failures["UU2"] = ProviderError("playlist not found", status=404, reason="playlistNotFound")
    provider.id_failures["v2"] = ProviderError("bad request", status=400)
    usecase, _, _ = build_usecase(tmp_path, provider, batch_size=1)

    result = asyncio.run(usecase.run_collection_cycle(mode="light", now=now))

    assert result.ok
    assert set(result.videos) == {"v1"}
    assert result.videos_failed == 1
    assert any("UC2" in warning for warning in result.warnings)


def test_pool_exhaustion_propagates_and_skips_persist(tmp_path):
    now = T0 + timedelta(hours=2)
    provider = seeded_provider(now)
    pool = KeyPool(["key-a"])
    provider.key_failures["key-a"] = [QuotaExceededError("quota", status=403, reason="quotaExceeded")]
    usecase, store, _ = build_usecase(tmp_path, provider, pool=pool)

    with pytest.raises(PoolExhaustedError):
        asyncio.run(usecase.run_collection_cycle(mode="light", now=now))
    assert store.load(SnapshotKind.CHANNELS) == {}


def test_persist_false_leaves_baseline_untouched(tmp_path):
    now = T0 + timedelta(hours=2)
    usecase, store, _ = build_usecase(tmp_path, seeded_provider(now))
    asyncio.run(usecase.run_collection_cycle(mode="light", persist=False, now=now))
    assert store.load(SnapshotKind.VIDEOS) == {}


def test_auto_mode_uses_korean_hour(tmp_path):
    now = datetime(2025, 3, 1, 14, 0, tzinfo=timezone.utc)
    usecase, _, _ = build_usecase(tmp_path, seeded_provider(now))
    result = asyncio.run(usecase.run_collection_cycle(mode="auto", now=now))
    assert result.mode == "full"


def test_overlapping_cycles_keep_each_others_channels(tmp_path):
    now = T0 + timedelta(hours=2)
    usecase, store, _ = build_usecase(tmp_path, seeded_provider(now))

    async def run_both():
        return await asyncio.gather(
            usecase.run_collection_cycle(target_identities=["UC1"], mode="light", now=now),
            usecase.run_collection_cycle(target_identities=["UC2"], mode="light", now=now),
        )

    first, second = asyncio.run(run_both())

    assert set(store.load(SnapshotKind.CHANNELS)) == {"UC1", "UC2"}
    assert set(second.channels) == {"UC1", "UC2"}
    assert set(first.channels) == {"UC1"}


class ThreadRecordingStore(JsonSnapshotStore):
    def __init__(self, directory):
        super().__init__(directory)
        self.on_loop_thread: list[bool] = []

    def load(self, kind):
        self.on_loop_thread.append(threading.current_thread() is threading.main_thread())
        return super().load(kind)

    def save(self, kind, snapshots):
        self.on_loop_thread.append(threading.current_thread() is threading.main_thread())
        super().save(kind, snapshots)


def test_baseline_io_runs_off_the_event_loop_thread(tmp_path):
    now = T0 + timedelta(hours=2)
    store = ThreadRecordingStore(tmp_path)
    policy = CollectionPolicy(tiers=TierConfig(tier1=["UC1"]))
    pool = KeyPool(["key-a"])
    usecase = CollectionUseCase(make_fetcher(pool, seeded_provider(now)), store, policy)

    asyncio.run(usecase.run_collection_cycle(mode="light", now=now))

    assert len(store.on_loop_thread) == 4
    assert not any(store.on_loop_thread)
