import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Sequence, TypeVar

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from content.application.port.platform_client_port import PlatformClientPort, SearchOptions
from content.domain.channel import ChannelSnapshot
from content.domain.credential import Credential
from content.domain.exceptions import AuthError, ProviderError, QuotaExceededError, TransientProviderError
from content.infrastructure.client.key_pool import KeyPool
from content.infrastructure.client.rate_limiter import IntervalGate

logger = logging.getLogger(__name__)

T = TypeVar("T")
ClientFactory = Callable[[Credential], PlatformClientPort]


def chunked(items: Sequence[str], size: int) -> List[List[str]]:
    size = max(1, size)
    return [list(items[idx: idx + size]) for idx in range(0, len(items), size)]


@dataclass
class BatchOutcome:
    items: list = field(default_factory=list)
    failed_ids: List[str] = field(default_factory=list)
    missing_ids: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class RateLimitedFetcher:
    """
    키 풀과 호출 간격 게이트를 거쳐 데이터 제공자 호출을 실행한다.

    - 할당량/인증 오류: 키를 소진 처리하고 다음 키로 회전해 재시도한다.
    - 일시 오류: 같은 키로 짧게 재시도(tenacity)한 뒤 기록하고 전파한다.
    - 그 외 오류: 예약만 해제하고 그대로 전파한다.
    """

    def __init__(
        self,
        pool: KeyPool,
        client_factory: ClientFactory,
        gate: IntervalGate | None = None,
        batch_size: int = 50,
        max_concurrency: int = 10,
        transient_attempts: int = 2,
        transient_wait_seconds: float = 1.0,
        quota_costs: dict | None = None,
    ):
        self.pool = pool
        self.client_factory = client_factory
        self.gate = gate or IntervalGate(0.5)
        self.batch_size = batch_size
        self.max_concurrency = max(1, max_concurrency)
        self.transient_attempts = max(1, transient_attempts)
        self.transient_wait_seconds = transient_wait_seconds
        self.quota_costs = quota_costs or {"channels": 1, "videos": 1, "playlist_items": 1, "search": 100}

    def cost_of(self, operation: str) -> int:
        return int(self.quota_costs.get(operation, 1))

    async def execute(self, operation: Callable[[PlatformClientPort], T], cost: int = 1, retries: int | None = None) -> T:
        rotations = len(self.pool) if retries is None else max(0, retries)
        last_error: ProviderError | None = None

        for attempt in range(rotations + 1):
            credential = self.pool.acquire(cost)
            try:
                result = await self._run_on_credential(credential, operation)
            except (QuotaExceededError, AuthError) as exc:
                self.pool.record_failure(credential, exc, cost)
                last_error = exc
                logger.warning(
                    "[FETCH] %s failed on %s (%s), rotation %s/%s",
                    type(exc).__name__,
                    credential.identifier,
                    exc.reason or exc.status,
                    attempt + 1,
                    rotations,
                )
                continue
            except TransientProviderError as exc:
                self.pool.record_failure(credential, exc, cost)
                logger.warning("[FETCH] transient failure on %s gave up: %s", credential.identifier, exc)
                raise
            except Exception:
                self.pool.release(credential, cost)
                raise

            self.pool.record_success(credential, cost)
            return result

        raise last_error

    async def _run_on_credential(self, credential: Credential, operation: Callable[[PlatformClientPort], T]) -> T:
        def _on_retry(retry_state) -> None:
            # 중간 실패도 연속 오류로 센다. 예약은 마지막 결과에서 한 번만 정산한다.
            self.pool.record_failure(credential, retry_state.outcome.exception(), cost=0)
            logger.info(
                "[FETCH] transient failure on %s, retrying (attempt %s)",
                credential.identifier,
                retry_state.attempt_number,
            )

        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(TransientProviderError),
            stop=stop_after_attempt(self.transient_attempts),
            wait=wait_fixed(self.transient_wait_seconds),
            before_sleep=_on_retry,
            reraise=True,
        ):
            with attempt:
                await self.gate.wait()
                # httplib2 는 스레드 안전하지 않으므로 작업 단위마다 클라이언트를 새로 만든다.
                return await asyncio.to_thread(lambda: operation(self.client_factory(credential)))

    async def fetch_channels(self, channel_ids: Sequence[str]) -> BatchOutcome:
        return await self._fetch_in_chunks(
            channel_ids,
            self.cost_of("channels"),
            lambda chunk: (lambda client: client.fetch_channels(chunk)),
            label="channels",
        )

    async def fetch_videos(self, video_ids: Sequence[str]) -> BatchOutcome:
        return await self._fetch_in_chunks(
            video_ids,
            self.cost_of("videos"),
            lambda chunk: (lambda client: client.fetch_videos(chunk)),
            label="videos",
        )

    async def fetch_playlist_items(self, playlist_id: str, max_results: int = 10) -> List[str]:
        return await self.execute(
            lambda client: client.fetch_playlist_items(playlist_id, max_results),
            cost=self.cost_of("playlist_items"),
        )

    async def search(self, query: str, options: SearchOptions | None = None) -> List[str]:
        options = options or SearchOptions()
        return await self.execute(lambda client: client.search(query, options), cost=self.cost_of("search"))

    async def search_channels(self, query: str, options: SearchOptions | None = None) -> List[str]:
        options = options or SearchOptions()
        return await self.execute(lambda client: client.search_channels(query, options), cost=self.cost_of("search"))

    async def fetch_channel_by_handle(self, handle: str) -> ChannelSnapshot | None:
        return await self.execute(lambda client: client.fetch_channel_by_handle(handle), cost=self.cost_of("channels"))

    async def _fetch_in_chunks(self, ids: Sequence[str], cost: int, make_operation, label: str) -> BatchOutcome:
        unique_ids = list(dict.fromkeys(i for i in ids if i))
        outcome = BatchOutcome()
        if not unique_ids:
            return outcome

        chunks = chunked(unique_ids, self.batch_size)
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def run_chunk(chunk: List[str]):
            async with semaphore:
                return await self.execute(make_operation(chunk), cost=cost)

        results = await asyncio.gather(*(run_chunk(chunk) for chunk in chunks), return_exceptions=True)

        fatal: BaseException | None = None
        for chunk, result in zip(chunks, results):
            if isinstance(result, ProviderError):
                logger.warning("[FETCH] %s chunk of %s ids failed: %s", label, len(chunk), result)
                outcome.failed_ids.extend(chunk)
                outcome.errors.append(f"{type(result).__name__}: {result}")
                continue
            if isinstance(result, BaseException):
                fatal = fatal or result
                continue
            returned = {item.identity for item in result}
            outcome.items.extend(result)
            outcome.missing_ids.extend(i for i in chunk if i not in returned)

        if fatal is not None:
            raise fatal
        logger.info(
            "[FETCH] %s: %s fetched, %s failed, %s missing",
            label,
            len(outcome.items),
            len(outcome.failed_ids),
            len(outcome.missing_ids),
        )
        return outcome
