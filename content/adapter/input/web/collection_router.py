import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from content.adapter.input.web.request.collect_requests import DiscoverChannelsRequest, RunCollectionRequest
from content.domain.collection_policy import SnapshotKind
from content.domain.collection_summary import CollectionResult
from content.domain.exceptions import PoolExhaustedError
from content.domain.time_utils import utcnow

logger = logging.getLogger(__name__)

collection_router = APIRouter(tags=["collection"])


def get_container(request: Request):
    """lifespan 에서 app.state.collection 에 주입한 조립 결과를 꺼낸다."""
    container = getattr(request.app.state, "collection", None)
    if container is None:
        raise HTTPException(status_code=503, detail="수집기가 아직 초기화되지 않았습니다.")
    return container


@collection_router.post("/run")
async def run_collection(request: Request, body: RunCollectionRequest):
    """
    수집 사이클을 즉시 1회 실행한다.
    - 키 풀이 고갈되면 503 과 함께 실패 결과를 돌려준다.
    """
    container = get_container(request)
    started_at = utcnow()
    try:
        result = await container.usecase.run_collection_cycle(
            target_identities=body.channel_ids,
            mode=body.mode,
            persist=body.persist,
        )
    except PoolExhaustedError as exc:
        failed = CollectionResult.failed(body.mode, started_at, utcnow(), exc, container.pool.status())
        return JSONResponse(failed.to_dict(), status_code=503)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        logger.exception("[COLLECT] manual run failed")
        raise HTTPException(status_code=500, detail=str(exc))

    request.app.state.last_result = result
    if body.export_dashboard:
        await asyncio.to_thread(container.exporter.export, result)
    return JSONResponse(result.to_dict(include_entities=body.include_entities))


@collection_router.get("/quota")
async def get_quota_status(request: Request):
    """키별 사용량/예약/오류/가용 여부. 키 원문은 노출하지 않는다."""
    return get_container(request).pool.status()


@collection_router.post("/quota/reset")
async def reset_quota(request: Request):
    container = get_container(request)
    container.pool.reset_daily()
    return container.pool.status()


@collection_router.post("/tiers/update")
async def update_tiers(request: Request):
    """
    저장된 채널 기준 스냅샷과 마지막 수집 결과의 증가량으로 티어를 재계산한다.
    """
    container = get_container(request)
    last_result = getattr(request.app.state, "last_result", None)
    channels = await asyncio.to_thread(container.usecase.store.load, SnapshotKind.CHANNELS)
    deltas = last_result.channel_deltas if last_result is not None else {}
    return await asyncio.to_thread(container.tier_update.update, channels, deltas)


@collection_router.post("/channels/discover")
async def discover_channels(request: Request, body: DiscoverChannelsRequest):
    """
    @handle/URL 을 채널 ID 로 해석하고 검색으로 새 정치 채널을 찾아 tier3 에 추가한다.
    - 검색은 검색어당 100 unit 을 쓴다.
    """
    container = get_container(request)
    try:
        report = await container.discovery.discover(
            handles=body.handles,
            queries=body.queries,
            persist=body.persist,
        )
    except PoolExhaustedError as exc:
        payload = {"error": f"{type(exc).__name__}: {exc}", "quota": container.pool.status()}
        return JSONResponse(payload, status_code=503)
    except Exception as exc:
        logger.exception("[DISCOVER] manual discovery failed")
        raise HTTPException(status_code=500, detail=str(exc))
    return report.to_dict()

# 참고:
# 1) 수집 실행: POST http://localhost:8000/collection/run  {"mode": "light"}
# 2) 할당량 조회: GET  http://localhost:8000/collection/quota
# 3) 일일 초기화: POST http://localhost:8000/collection/quota/reset
# 4) 티어 갱신: POST http://localhost:8000/collection/tiers/update
# 5) 채널 발굴: POST http://localhost:8000/collection/channels/discover  {"handles": ["@ytnnews24"], "queries": []}
