import asyncio
import logging
import sys
from dataclasses import dataclass

from config.database.session import create_session_factory, init_db_schema
from config.logging_config import configure_logging
from config.settings import (
    BatchSettings,
    CollectionSettings,
    StorageSettings,
    YouTubeSettings,
)
from content.application.usecase.channel_discovery_usecase import ChannelDiscoveryUseCase
from content.application.usecase.collection_usecase import CollectionUseCase
from content.application.usecase.tier_update_usecase import TierUpdateUseCase
from content.domain.collection_policy import CollectionPolicy
from content.domain.collection_summary import CollectionResult
from content.domain.exceptions import PoolExhaustedError
from content.domain.short_form_classifier import ShortFormRules
from content.domain.time_utils import utcnow
from content.infrastructure.client.key_pool import KeyPool
from content.infrastructure.client.rate_limited_fetcher import RateLimitedFetcher
from content.infrastructure.client.rate_limiter import IntervalGate
from content.infrastructure.client.youtube_client import youtube_client_factory
from content.infrastructure.repository.dashboard_exporter import DashboardExporter
from content.infrastructure.repository.json_snapshot_store import JsonSnapshotStore
from content.infrastructure.repository.sql_snapshot_store import SqlSnapshotStore
from content.infrastructure.repository.tier_config_store import TierConfigStore

logger = logging.getLogger(__name__)


@dataclass
class CollectionContainer:
    pool: KeyPool
    usecase: CollectionUseCase
    tier_update: TierUpdateUseCase
    exporter: DashboardExporter
    storage: StorageSettings
    batch: BatchSettings
    discovery: ChannelDiscoveryUseCase | None = None


def build_policy(collection: CollectionSettings, tier_store: TierConfigStore) -> CollectionPolicy:
    return CollectionPolicy(
        batch_size=collection.batch_size,
        max_concurrency=collection.max_concurrency,
        short_form=ShortFormRules(
            max_short_seconds=collection.shorts_max_seconds,
            marker_max_seconds=collection.shorts_marker_max_seconds,
            portrait_ratio=collection.shorts_portrait_ratio,
            markers=tuple(collection.shorts_markers),
        ),
        spike_window_hours=collection.spike_window_hours,
        spike_min_delta=collection.spike_min_delta,
        above_average_multiplier=collection.above_average_multiplier,
        above_average_min_sample=collection.above_average_min_sample,
        above_average_min_views=collection.above_average_min_views,
        summary_top_n=collection.summary_top_n,
        search_queries=list(collection.search_queries),
        search_recent_hours=collection.search_recent_hours,
        search_max_results=collection.search_max_results,
        discovery_handles=list(collection.discovery_handles),
        discovery_queries=list(collection.discovery_queries),
        discovery_keywords=list(collection.discovery_keywords),
        discovery_recent_days=collection.discovery_recent_days,
        discovery_max_results=collection.discovery_max_results,
        tiers=tier_store.load(),
    )


def build_collection_container(
    youtube: YouTubeSettings | None = None,
    collection: CollectionSettings | None = None,
    storage: StorageSettings | None = None,
    batch: BatchSettings | None = None,
) -> CollectionContainer:
    """
    조립 루트. 키 풀은 여기서 한 번만 만들어 수집 유스케이스와 HTTP 라우터에 같이 주입한다.
    """
    youtube = youtube or YouTubeSettings()
    collection = collection or CollectionSettings()
    storage = storage or StorageSettings()
    batch = batch or BatchSettings()

    tier_store = TierConfigStore(storage.tiers_path)
    policy = build_policy(collection, tier_store)

    pool = KeyPool(
        youtube.key_source,
        quota_limit=youtube.daily_quota_limit,
        error_threshold=youtube.key_error_threshold,
    )
    fetcher = RateLimitedFetcher(
        pool,
        youtube_client_factory(youtube, policy.short_form),
        gate=IntervalGate(collection.chunk_delay_seconds),
        batch_size=collection.batch_size,
        max_concurrency=collection.max_concurrency,
        transient_attempts=collection.transient_attempts,
        transient_wait_seconds=collection.transient_wait_seconds,
        quota_costs=policy.quota_costs,
    )

    if storage.backend == "sql":
        session_factory, engine = create_session_factory()
        init_db_schema(engine)
        store = SqlSnapshotStore(session_factory, policy.short_form)
    else:
        store = JsonSnapshotStore(storage.snapshot_dir, policy.short_form)

    usecase = CollectionUseCase(
        fetcher,
        store,
        policy,
        region_code=youtube.region_code,
        relevance_language=youtube.relevance_language,
    )
    return CollectionContainer(
        pool=pool,
        usecase=usecase,
        tier_update=TierUpdateUseCase(tier_store, policy),
        exporter=DashboardExporter(storage.dashboard_dir),
        storage=storage,
        batch=batch,
        discovery=ChannelDiscoveryUseCase(
            fetcher,
            tier_store,
            policy,
            region_code=youtube.region_code,
            relevance_language=youtube.relevance_language,
        ),
    )


async def run_collection_batch_once(
    container: CollectionContainer,
    mode: str | None = None,
    export_dashboard: bool | None = None,
) -> CollectionResult:
    """
    수집 사이클 1회 실행. 키 풀 고갈이나 예기치 못한 오류는 실패 결과로 감싸서 돌려준다.
    """
    mode = mode or container.batch.mode
    started_at = utcnow()
    try:
        result = await container.usecase.run_collection_cycle(mode=mode)
    except PoolExhaustedError as exc:
        logger.error("[COLLECT-BATCH] key pool exhausted: %s", exc)
        return CollectionResult.failed(mode, started_at, utcnow(), exc, container.pool.status())
    except Exception as exc:
        logger.exception("[COLLECT-BATCH] cycle failed")
        return CollectionResult.failed(mode, started_at, utcnow(), exc, container.pool.status())

    should_export = container.batch.export_dashboard if export_dashboard is None else export_dashboard
    if should_export:
        await asyncio.to_thread(container.exporter.export, result)
        await asyncio.to_thread(container.exporter.cleanup, container.storage.dashboard_retention_days)
    return result


async def start_collection_scheduler(container: CollectionContainer):
    """
    - ENABLE_COLLECTION_BATCH=true 일 때만 동작
    - COLLECTION_BATCH_INTERVAL_MINUTES (기본 240) 간격으로 COLLECTION_BATCH_MODE 수집
    - UTC 날짜가 바뀌면 키 풀 일일 할당량을 초기화
    """
    if not container.batch.enabled:
        return

    interval_minutes = container.batch.interval_minutes
    last_reset_date = utcnow().date()
    try:
        while True:
            today = utcnow().date()
            if today != last_reset_date:
                container.pool.reset_daily()
                last_reset_date = today
            logger.info("[COLLECT-BATCH] run started (mode=%s)", container.batch.mode)
            result = await run_collection_batch_once(container)
            if result.ok:
                logger.info("[COLLECT-BATCH] run finished: %s", result.to_dict()["counts"])
            else:
                logger.error("[COLLECT-BATCH] run failed: %s", result.error)
            await asyncio.sleep(interval_minutes * 60)
    except asyncio.CancelledError:
        logger.info("[COLLECT-BATCH] scheduler stopped")
        raise


async def run_discovery_batch_once(container: CollectionContainer) -> int:
    """설정된 handle/검색어로 채널을 발굴해 티어 설정에 추가한다. 키 풀이 고갈되면 1."""
    try:
        report = await container.discovery.discover()
    except PoolExhaustedError as exc:
        logger.error("[COLLECT-BATCH] key pool exhausted during discovery: %s", exc)
        return 1
    logger.info("[COLLECT-BATCH] discovery: %s", report.to_dict())
    return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    argv = sys.argv[1:] if argv is None else argv
    container = build_collection_container()
    if argv and argv[0] == "discover":
        return asyncio.run(run_discovery_batch_once(container))
    result = asyncio.run(run_collection_batch_once(container))
    logger.info("[COLLECT-BATCH] result: %s", result.to_dict())
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
