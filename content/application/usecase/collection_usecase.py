import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from content.application.port.platform_client_port import SearchOptions
from content.application.port.snapshot_store_port import SnapshotStorePort
from content.application.usecase.diff_merge_usecase import DiffMergeUseCase
from content.application.usecase.summary_aggregation_usecase import SummaryAggregationUseCase
from content.domain.channel import ChannelSnapshot
from content.domain.collection_policy import CollectionMode, CollectionPolicy, SnapshotKind, resolve_mode
from content.domain.collection_summary import CollectionResult
from content.domain.exceptions import ProviderError
from content.domain.time_utils import hours_between, kst_hour, utcnow

logger = logging.getLogger(__name__)


class CollectionUseCase:
    """
    한 번의 수집 사이클을 수행한다.

    기준 스냅샷 로드 → 채널 조회(50개 단위) → 채널별 최근 업로드 목록(동시 10개 이하)
    → (full 모드) 최근 숏츠 검색 → 영상 상세 조회 → 병합 → 변화량 계산 → 요약 → 저장

    분류된 제공자 오류는 해당 채널/영상만 제외하고 실패로 집계한다.
    PoolExhaustedError 와 분류되지 않은 오류는 호출자에게 전파된다.
    """

    def __init__(
        self,
        fetcher,
        store: SnapshotStorePort,
        policy: CollectionPolicy | None = None,
        diff_merge: DiffMergeUseCase | None = None,
        aggregator: SummaryAggregationUseCase | None = None,
        region_code: str | None = "KR",
        relevance_language: str | None = "ko",
    ):
        self.fetcher = fetcher
        self.store = store
        self.policy = policy or CollectionPolicy()
        self.diff_merge = diff_merge or DiffMergeUseCase(self.policy)
        self.aggregator = aggregator or SummaryAggregationUseCase(self.policy, self.diff_merge)
        self.region_code = region_code
        self.relevance_language = relevance_language
        # 사이클은 기준 스냅샷을 읽고 통째로 덮어쓰므로 한 번에 하나만 돈다.
        self._cycle_lock = asyncio.Lock()

    async def run_collection_cycle(
        self,
        target_identities: Optional[Iterable[str]] = None,
        mode: str | CollectionMode = "light",
        persist: bool = True,
        now: datetime | None = None,
    ) -> CollectionResult:
        """
        스케줄러와 수동 실행이 겹치면 뒤에 온 호출은 앞 사이클이 저장을 마칠 때까지 기다린 뒤
        그 결과를 기준으로 시작한다.
        """
        async with self._cycle_lock:
            return await self._run_cycle(target_identities, mode, persist, now)

    async def _run_cycle(
        self,
        target_identities: Optional[Iterable[str]],
        mode: str | CollectionMode,
        persist: bool,
        now: datetime | None,
    ) -> CollectionResult:
        now = now or utcnow()
        resolved = resolve_mode(mode, hour=kst_hour(now))
        result = CollectionResult(mode=resolved.name, started_at=now)
        usage_before = self._total_usage()

        baseline_channels: Dict[str, ChannelSnapshot] = await asyncio.to_thread(
            self.store.load, SnapshotKind.CHANNELS
        )
        baseline_videos = await asyncio.to_thread(self.store.load, SnapshotKind.VIDEOS)

        explicit = target_identities is not None
        channel_ids = list(dict.fromkeys(target_identities)) if explicit else self.policy.tiers.channels_for(resolved)
        to_fetch = self._channels_to_fetch(channel_ids, baseline_channels, resolved, now, explicit, result)
        logger.info(
            "[COLLECT] cycle started mode=%s channels=%s (fetch=%s, cached=%s)",
            resolved.name,
            len(channel_ids),
            len(to_fetch),
            result.cache_hits,
        )

        channel_outcome = await self.fetcher.fetch_channels(to_fetch)
        fetched_channels = {channel.identity: channel for channel in channel_outcome.items}
        result.channels_succeeded = len(fetched_channels)
        result.channels_failed = len(channel_outcome.failed_ids) + len(channel_outcome.missing_ids)
        result.warnings.extend(channel_outcome.errors)
        if channel_outcome.missing_ids:
            result.warnings.append(f"channels not found: {', '.join(channel_outcome.missing_ids)}")

        video_ids = await self._list_recent_uploads(fetched_channels.values(), resolved, result)
        if resolved.include_search:
            video_ids.extend(await self._search_recent_shorts(now, result))
        video_ids = list(dict.fromkeys(video_ids))

        video_outcome = await self.fetcher.fetch_videos(video_ids)
        fetched_videos = {video.identity: video for video in video_outcome.items}
        result.videos_succeeded = len(fetched_videos)
        result.videos_failed = len(video_outcome.failed_ids) + len(video_outcome.missing_ids)
        result.warnings.extend(video_outcome.errors)

        merged_channels = self.diff_merge.merge(baseline_channels, fetched_channels)
        merged_videos = self.diff_merge.merge(baseline_videos, fetched_videos)

        result.channels = merged_channels
        result.videos = merged_videos
        result.channel_deltas = self.diff_merge.diff_all(
            SnapshotKind.CHANNELS,
            {identity: merged_channels[identity] for identity in fetched_channels},
            baseline_channels,
            now,
        )
        result.video_deltas = self.diff_merge.diff_all(
            SnapshotKind.VIDEOS,
            {identity: merged_videos[identity] for identity in fetched_videos},
            baseline_videos,
            now,
        )
        result.summary = self.aggregator.summarize(
            merged_channels, merged_videos, result.channel_deltas, result.video_deltas, now
        )
        result.summary.quota_used = max(0, self._total_usage() - usage_before)

        if persist:
            await asyncio.to_thread(self.store.save, SnapshotKind.CHANNELS, merged_channels)
            await asyncio.to_thread(self.store.save, SnapshotKind.VIDEOS, merged_videos)

        result.quota_status = self.fetcher.pool.status()
        result.finished_at = utcnow()
        logger.info(
            "[COLLECT] cycle finished mode=%s channels ok=%s failed=%s videos ok=%s failed=%s quota_used=%s",
            resolved.name,
            result.channels_succeeded,
            result.channels_failed,
            result.videos_succeeded,
            result.videos_failed,
            result.summary.quota_used,
        )
        return result

    def _total_usage(self) -> int:
        return self.fetcher.pool.status()["total_usage"]

    def _channels_to_fetch(
        self,
        channel_ids: List[str],
        baseline: Dict[str, ChannelSnapshot],
        mode: CollectionMode,
        now: datetime,
        explicit: bool,
        result: CollectionResult,
    ) -> List[str]:
        # 명시적으로 지정된 채널과 full 모드는 캐시를 무시한다.
        if explicit or not mode.use_cache:
            return channel_ids

        to_fetch: List[str] = []
        for channel_id in channel_ids:
            cached = baseline.get(channel_id)
            window = self.policy.refresh_hours.get(self.policy.tiers.tier_of(channel_id), 24)
            if cached is not None and cached.last_fetched is not None and hours_between(now, cached.last_fetched) < window:
                result.cache_hits += 1
                continue
            to_fetch.append(channel_id)
        return to_fetch

    async def _list_recent_uploads(
        self, channels: Iterable[ChannelSnapshot], mode: CollectionMode, result: CollectionResult
    ) -> List[str]:
        semaphore = asyncio.Semaphore(self.policy.max_concurrency)
        targets = [channel for channel in channels if channel.uploads_playlist_id]

        async def list_one(channel: ChannelSnapshot) -> List[str]:
            async with semaphore:
                try:
                    return await self.fetcher.fetch_playlist_items(channel.uploads_playlist_id, mode.videos_per_channel)
                except ProviderError as exc:
                    logger.warning("[COLLECT] uploads of %s skipped: %s", channel.channel_id, exc)
                    result.warnings.append(f"uploads of {channel.channel_id}: {exc}")
                    return []

        batches = await asyncio.gather(*(list_one(channel) for channel in targets))
        return [video_id for batch in batches for video_id in batch]

    async def _search_recent_shorts(self, now: datetime, result: CollectionResult) -> List[str]:
        options = SearchOptions(
            max_results=self.policy.search_max_results,
            published_after=now - timedelta(hours=self.policy.search_recent_hours),
            region_code=self.region_code,
            relevance_language=self.relevance_language,
        )
        found: List[str] = []
        for query in self.policy.search_queries:
            try:
                found.extend(await self.fetcher.search(query, options))
            except ProviderError as exc:
                logger.warning("[COLLECT] search %r skipped: %s", query, exc)
                result.warnings.append(f"search {query!r}: {exc}")
        return found
