class CollectorError(Exception):
    """수집기에서 발생하는 모든 분류된 오류의 기반 클래스."""


class ProviderError(CollectorError):
    """
    데이터 제공자(YouTube API) 호출이 실패했고 원인이 분류된 경우.
    수집 사이클은 이 오류를 흡수하고 해당 채널/영상만 결과에서 제외한다.
    """

    def __init__(self, message: str, status: int | None = None, reason: str | None = None):
        super().__init__(message)
        self.status = status
        self.reason = reason


class TransientProviderError(ProviderError):
    """네트워크 순단, 5xx 등. 같은 키로 한 번 더 시도하며 키를 회전하지 않는다."""


class QuotaExceededError(ProviderError):
    """키의 일일 할당량 초과. 즉시 해당 키를 소진 처리하고 다음 키로 회전한다."""


class AuthError(ProviderError):
    """유효하지 않은 키. 프로세스 수명 동안 영구적으로 사용 불가 처리한다."""


class PoolExhaustedError(CollectorError):
    """사용 가능한 키가 하나도 없을 때. 현재 수집 사이클에 치명적이며 호출자에게 전파된다."""

    def __init__(self, message: str, available_keys: int = 0, status: dict | None = None):
        super().__init__(message)
        self.available_keys = available_keys
        self.status = status or {}


class MalformedBaselineError(CollectorError):
    """저장된 기준 스냅샷이 손상된 경우. 저장소에서 경고 후 빈 기준으로 복구한다."""


class ClassificationInputError(CollectorError):
    """duration 문자열을 해석할 수 없는 경우. 분류기는 0초(비숏츠)로 처리한다."""
