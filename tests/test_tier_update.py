import json

from content.application.usecase.diff_merge_usecase import DiffMergeUseCase
from content.application.usecase.tier_update_usecase import TierUpdateUseCase, tier_score
from content.domain.collection_policy import CollectionPolicy, SnapshotKind, TierConfig
from content.infrastructure.repository.tier_config_store import TierConfigStore
from helpers import T0, make_channel


def test_tier_score_weights():
    channel = make_channel("UC1", views=1000, subscribers=100)
    assert tier_score(channel, None) == 1000 * 0.5 + 100 * 0.3


def test_update_splits_twenty_thirty_rest(tmp_path):
    store = TierConfigStore(tmp_path / "channels-tiered.json")
    store.save(TierConfig(tier1=["UC0", "UC-gone"], metadata={"source": "manual"}))
    channels = {f"UC{i}": make_channel(f"UC{i}", views=1000 * (60 - i), subscribers=0) for i in range(60)}
    policy = CollectionPolicy()

    report = TierUpdateUseCase(store, policy).update(channels, now=T0)

    saved = store.load()
    assert len(saved.tier1) == 20 and len(saved.tier2) == 30
    assert saved.tier1[0] == "UC0"
    assert saved.tier3[-1] == "UC-gone"
    assert saved.metadata["source"] == "manual"
    assert saved.metadata["lastUpdated"] == "2025-03-01"
    assert report["demoted"] == ["UC-gone"]
    assert "UC19" in report["promoted"]
    assert policy.tiers.tier1 == saved.tier1


def test_view_growth_outweighs_size(tmp_path):
    store = TierConfigStore(tmp_path / "tiers.json")
    engine = DiffMergeUseCase()
    baseline = {"big": make_channel("big", views=10000), "rising": make_channel("rising", views=1000)}
    current = {"big": make_channel("big", views=10000), "rising": make_channel("rising", views=5000)}
    deltas = engine.diff_all(SnapshotKind.CHANNELS, current, baseline, T0)

    TierUpdateUseCase(store).update(current, deltas, now=T0)
    assert store.load().tier1 == ["rising", "big"]


def test_legacy_flat_list_config_is_split(tmp_path):
    path = tmp_path / "channels.json"
    path.write_text(json.dumps([f"UC{i}" for i in range(55)]), encoding="utf-8")
    tiers = TierConfigStore(path).load()
    assert (len(tiers.tier1), len(tiers.tier2), len(tiers.tier3)) == (20, 30, 5)


def test_missing_config_tracks_nothing(tmp_path):
    assert TierConfigStore(tmp_path / "absent.json").load().tier1 == []
