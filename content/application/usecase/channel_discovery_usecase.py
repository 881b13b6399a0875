import asyncio
import logging
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Set

from content.application.port.platform_client_port import SearchOptions
from content.domain.channel_discovery import DiscoveryReport, looks_political, parse_channel_reference
from content.domain.collection_policy import CollectionPolicy, TierConfig
from content.domain.exceptions import ProviderError
from content.domain.time_utils import utcnow

logger = logging.getLogger(__name__)


class ChannelDiscoveryUseCase:
    """
    추적 대상 채널을 늘린다.

    1) 등록된 @handle/URL/채널 ID 를 채널 ID 로 해석한다 (handle 당 channels.list 1 unit).
    2) 검색어별 최근 숏츠 검색으로 영상을 올린 채널을 모으고, 제목/설명에
       정치 키워드가 있는 채널만 남긴다.
    새 채널은 tier3 끝에 붙여 channels-tiered.json 에 저장한다. 기존 티어 배치는 건드리지 않는다.
    """

    def __init__(
        self,
        fetcher,
        tier_store,
        policy: CollectionPolicy | None = None,
        region_code: str | None = "KR",
        relevance_language: str | None = "ko",
    ):
        self.fetcher = fetcher
        self.tier_store = tier_store
        self.policy = policy or CollectionPolicy()
        self.region_code = region_code
        self.relevance_language = relevance_language
        self._lock = asyncio.Lock()

    async def discover(
        self,
        handles: Optional[Iterable[str]] = None,
        queries: Optional[Iterable[str]] = None,
        persist: bool = True,
        now: datetime | None = None,
    ) -> DiscoveryReport:
        now = now or utcnow()
        handles = list(self.policy.discovery_handles if handles is None else handles)
        queries = list(self.policy.discovery_queries if queries is None else queries)
        report = DiscoveryReport()
        usage_before = self._total_usage()

        async with self._lock:
            tiers = await asyncio.to_thread(self.tier_store.load)
            known = set(tiers.tier1) | set(tiers.tier2) | set(tiers.tier3)

            resolved_ids = await self._resolve_references(handles, report)
            discovered_ids = await self._discover_by_search(queries, known | set(resolved_ids), now, report)

            report.added = [
                channel_id
                for channel_id in dict.fromkeys(resolved_ids + discovered_ids)
                if channel_id not in known
            ]
            if report.added and persist:
                updated = TierConfig(
                    tier1=list(tiers.tier1),
                    tier2=list(tiers.tier2),
                    tier3=list(tiers.tier3) + report.added,
                    metadata={**tiers.metadata, "lastDiscovered": now.date().isoformat()},
                )
                await asyncio.to_thread(self.tier_store.save, updated)
                self.policy.tiers = updated

        report.quota_used = max(0, self._total_usage() - usage_before)
        logger.info(
            "[DISCOVER] resolved=%s unresolved=%s discovered=%s rejected=%s added=%s quota_used=%s",
            len(report.resolved),
            len(report.unresolved),
            len(report.discovered),
            len(report.rejected),
            len(report.added),
            report.quota_used,
        )
        return report

    def _total_usage(self) -> int:
        return self.fetcher.pool.status()["total_usage"]

    async def _resolve_references(self, references: List[str], report: DiscoveryReport) -> List[str]:
        semaphore = asyncio.Semaphore(self.policy.max_concurrency)

        async def resolve_one(text: str) -> Optional[str]:
            reference = parse_channel_reference(text)
            if reference is None:
                return None
            if reference.channel_id:
                return reference.channel_id
            async with semaphore:
                try:
                    channel = await self.fetcher.fetch_channel_by_handle(reference.handle)
                except ProviderError as exc:
                    logger.warning("[DISCOVER] handle %s skipped: %s", reference.handle, exc)
                    report.warnings.append(f"handle {reference.handle}: {exc}")
                    return None
            return channel.channel_id if channel is not None else None

        texts = [text for text in dict.fromkeys(references) if text and text.strip()]
        results = await asyncio.gather(*(resolve_one(text) for text in texts))

        resolved: List[str] = []
        for text, channel_id in zip(texts, results):
            if channel_id is None:
                report.unresolved.append(text)
                continue
            report.resolved[text] = channel_id
            resolved.append(channel_id)
        return resolved

    async def _discover_by_search(
        self, queries: List[str], known: Set[str], now: datetime, report: DiscoveryReport
    ) -> List[str]:
        if not queries:
            return []
        options = SearchOptions(
            max_results=self.policy.discovery_max_results,
            published_after=now - timedelta(days=self.policy.discovery_recent_days),
            region_code=self.region_code,
            relevance_language=self.relevance_language,
            video_duration="short",
            order="viewCount",
        )

        candidates: List[str] = []
        # 검색은 호출당 100 unit 이라 검색어는 하나씩 순서대로 돈다.
        for query in queries:
            try:
                channel_ids = await self.fetcher.search_channels(query, options)
            except ProviderError as exc:
                logger.warning("[DISCOVER] search %r skipped: %s", query, exc)
                report.warnings.append(f"search {query!r}: {exc}")
                continue
            candidates.extend(cid for cid in channel_ids if cid not in known and cid not in candidates)

        if not candidates:
            return []
        outcome = await self.fetcher.fetch_channels(candidates)
        report.warnings.extend(outcome.errors)
        channels = {channel.identity: channel for channel in outcome.items}
        for channel_id in candidates:
            channel = channels.get(channel_id)
            if channel is None:
                continue
            if looks_political(channel.title, channel.description, self.policy.discovery_keywords):
                report.discovered.append(channel_id)
            else:
                report.rejected.append(channel_id)
        return list(report.discovered)
