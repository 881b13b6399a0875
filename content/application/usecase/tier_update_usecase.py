import logging
from datetime import datetime
from typing import Dict

from content.domain.channel import ChannelSnapshot
from content.domain.collection_policy import CollectionPolicy, TierConfig
from content.domain.delta_record import EntityDelta
from content.domain.time_utils import utcnow

logger = logging.getLogger(__name__)

TIER1_SIZE = 20
TIER2_SIZE = 30


def tier_score(channel: ChannelSnapshot, delta: EntityDelta | None) -> float:
    view_delta = delta.views.absolute_delta if delta is not None else 0
    return channel.view_count * 0.5 + view_delta * 2 + channel.subscriber_count * 0.3


class TierUpdateUseCase:
    """
    채널 성과 점수(조회수 0.5 + 조회수 증가 2 + 구독자 0.3)로 수집 계층을 다시 나눈다.
    상위 20개 tier1, 다음 30개 tier2, 나머지 tier3.
    """

    def __init__(self, tier_store, policy: CollectionPolicy | None = None):
        self.tier_store = tier_store
        self.policy = policy

    def update(
        self,
        channels: Dict[str, ChannelSnapshot],
        deltas: Dict[str, EntityDelta] | None = None,
        now: datetime | None = None,
    ) -> dict:
        now = now or utcnow()
        deltas = deltas or {}
        previous = self.tier_store.load()

        ranked = sorted(
            channels.values(),
            key=lambda channel: (-tier_score(channel, deltas.get(channel.identity)), channel.identity),
        )
        ranked_ids = [channel.identity for channel in ranked]
        # 설정에는 있지만 이번에 데이터가 없는 채널은 버리지 않고 맨 뒤에 붙인다.
        for tier in (previous.tier1, previous.tier2, previous.tier3):
            for channel_id in tier:
                if channel_id not in ranked_ids:
                    ranked_ids.append(channel_id)

        updated = TierConfig(
            tier1=ranked_ids[:TIER1_SIZE],
            tier2=ranked_ids[TIER1_SIZE: TIER1_SIZE + TIER2_SIZE],
            tier3=ranked_ids[TIER1_SIZE + TIER2_SIZE:],
            metadata={**previous.metadata, "lastUpdated": now.date().isoformat(), "autoUpdated": True},
        )
        promoted = [channel_id for channel_id in updated.tier1 if channel_id not in previous.tier1]
        demoted = [channel_id for channel_id in previous.tier1 if channel_id not in updated.tier1]

        self.tier_store.save(updated)
        if self.policy is not None:
            self.policy.tiers = updated
        logger.info("[COLLECT] tiers updated: promoted=%s demoted=%s", len(promoted), len(demoted))
        return {
            "tier1": len(updated.tier1),
            "tier2": len(updated.tier2),
            "tier3": len(updated.tier3),
            "promoted": promoted,
            "demoted": demoted,
        }
