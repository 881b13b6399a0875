import logging
from typing import Callable, Iterable

from content.domain.credential import Credential, credential_identifier
from content.domain.exceptions import AuthError, PoolExhaustedError, QuotaExceededError

logger = logging.getLogger(__name__)

LOW_PRIORITY_RATIO = 0.9


class KeyPool:
    """
    여러 YouTube API 키의 할당량/오류 상태를 관리하는 키 풀.

    - acquire(cost): 라운드로빈으로 비용을 감당할 수 있는 키를 고르고 비용만큼 예약한다.
      사용률 90% 이상(low_priority) 키는 다른 키가 없을 때만 내준다.
    - record_success / record_failure / release: 예약을 사용량으로 확정하거나 해제한다.
    - 모든 상태 변경은 await 없이 동기적으로 수행되어 이벤트 루프 위 태스크끼리 끼어들지 않는다.
    """

    def __init__(
        self,
        key_source: Callable[[], Iterable[str]] | Iterable[str],
        quota_limit: int = 10000,
        error_threshold: int = 5,
    ):
        if callable(key_source):
            self._key_source = key_source
        else:
            static_keys = list(key_source)
            self._key_source = lambda: static_keys
        self.quota_limit = quota_limit
        self.error_threshold = error_threshold
        self._manual_keys: list[str] = []
        self._removed: set[str] = set()
        self._credentials: dict[str, Credential] = {}
        self._cursor = 0
        self.sync()

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def credentials(self) -> list[Credential]:
        return list(self._credentials.values())

    def sync(self) -> None:
        """
        키 소스를 다시 읽어 새 키는 추가하고 사라진 키는 제거한다. 기존 키의 카운터는 유지된다.
        """
        keys: list[str] = []
        for key in list(self._key_source()) + self._manual_keys:
            key = (key or "").strip()
            if key and key not in keys and key not in self._removed:
                keys.append(key)

        current: dict[str, Credential] = {}
        for key in keys:
            identifier = credential_identifier(key)
            existing = self._credentials.get(identifier)
            if existing is None:
                existing = Credential.from_api_key(key, quota_limit=self.quota_limit)
                logger.info("[KEY-POOL] key added: %s", identifier)
            current[identifier] = existing

        for identifier in self._credentials.keys() - current.keys():
            logger.info("[KEY-POOL] key removed: %s", identifier)
        self._credentials = current

    def add_key(self, api_key: str) -> Credential:
        api_key = api_key.strip()
        self._removed.discard(api_key)
        if api_key not in self._manual_keys:
            self._manual_keys.append(api_key)
        self.sync()
        return self._credentials[credential_identifier(api_key)]

    def remove_key(self, api_key_or_identifier: str) -> bool:
        target = None
        for credential in self._credentials.values():
            if api_key_or_identifier in (credential.api_key, credential.identifier):
                target = credential
                break
        if target is None:
            return False
        self._removed.add(target.api_key)
        if target.api_key in self._manual_keys:
            self._manual_keys.remove(target.api_key)
        self.sync()
        return True

    def acquire(self, cost: int = 1) -> Credential:
        self.sync()
        ordered = list(self._credentials.values())
        if not ordered:
            raise PoolExhaustedError("No API keys configured", available_keys=0, status=self.status())

        rotation = ordered[self._cursor % len(ordered):] + ordered[: self._cursor % len(ordered)]
        affordable = [c for c in rotation if c.can_afford(cost)]
        if not affordable:
            status = self.status()
            logger.error("[KEY-POOL] no key can afford cost=%s (available=%s)", cost, status["available_keys"])
            raise PoolExhaustedError(
                f"All API keys are exhausted for cost={cost}",
                available_keys=status["available_keys"],
                status=status,
            )

        preferred = next((c for c in affordable if not c.low_priority), affordable[0])
        self._cursor = ordered.index(preferred) + 1
        preferred.quota_reserved += cost
        logger.debug(
            "[KEY-POOL] acquired %s (used=%s reserved=%s/%s)",
            preferred.identifier,
            preferred.quota_used,
            preferred.quota_reserved,
            preferred.quota_limit,
        )
        return preferred

    def release(self, credential: Credential, cost: int = 1) -> None:
        credential.quota_reserved = max(0, credential.quota_reserved - cost)

    def record_success(self, credential: Credential, cost: int = 1) -> None:
        self.release(credential, cost)
        credential.quota_used += cost
        credential.error_count = 0
        if not credential.low_priority and credential.quota_used >= credential.quota_limit * LOW_PRIORITY_RATIO:
            credential.low_priority = True
            logger.info("[KEY-POOL] %s crossed %d%% of its quota", credential.identifier, int(LOW_PRIORITY_RATIO * 100))
        if credential.quota_used >= credential.quota_limit:
            credential.exhausted = True
            logger.warning("[KEY-POOL] %s reached its daily quota", credential.identifier)

    def record_failure(self, credential: Credential, cause: BaseException, cost: int = 1) -> None:
        self.release(credential, cost)
        if isinstance(cause, AuthError):
            credential.exhausted = True
            credential.revoked = True
            logger.error("[KEY-POOL] %s rejected by provider, revoked: %s", credential.identifier, cause)
            return
        if isinstance(cause, QuotaExceededError):
            credential.exhausted = True
            logger.warning("[KEY-POOL] %s quota exceeded, rotating", credential.identifier)
            return

        credential.error_count += 1
        if credential.error_count >= self.error_threshold:
            credential.exhausted = True
            logger.warning(
                "[KEY-POOL] %s disabled after %s consecutive errors", credential.identifier, credential.error_count
            )

    def reset_daily(self) -> None:
        """일일 할당량 롤오버. 폐기(revoked)된 키는 되살리지 않는다."""
        for credential in self._credentials.values():
            credential.quota_used = 0
            credential.quota_reserved = 0
            credential.error_count = 0
            credential.low_priority = False
            credential.exhausted = credential.revoked
        logger.info("[KEY-POOL] daily quota reset for %s keys", len(self._credentials))

    def available_count(self) -> int:
        return sum(1 for c in self._credentials.values() if not c.exhausted)

    def status(self) -> dict:
        keys = {c.identifier: c.to_status() for c in self._credentials.values()}
        return {
            "total_keys": len(keys),
            "available_keys": self.available_count(),
            "total_usage": sum(c.quota_used for c in self._credentials.values()),
            "keys": keys,
        }
