import asyncio
import time


class IntervalGate:
    """
    모든 동시 태스크가 공유하는 호출 간격 게이트.
    연속된 두 호출 사이에 최소 min_interval 초가 지나도록 대기시킨다.
    """

    def __init__(self, min_interval: float = 0.5):
        self.min_interval = max(0.0, min_interval)
        self._lock = asyncio.Lock()
        self._last_call: float | None = None

    async def wait(self) -> None:
        if self.min_interval <= 0:
            return
        async with self._lock:
            now = time.monotonic()
            if self._last_call is not None:
                remaining = self.min_interval - (now - self._last_call)
                if remaining > 0:
                    await asyncio.sleep(remaining)
            self._last_call = time.monotonic()
