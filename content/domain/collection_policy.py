from dataclasses import dataclass, field
from enum import Enum

from content.domain.short_form_classifier import ShortFormRules


class SnapshotKind(str, Enum):
    CHANNELS = "channels"
    VIDEOS = "videos"


@dataclass(frozen=True)
class CollectionMode:
    """
    수집 깊이/범위 티어. light/medium/full 은 같은 흐름을 쓰고 정책 값만 다르다.
    """
    name: str
    tiers: tuple[str, ...]
    videos_per_channel: int
    include_search: bool = False
    use_cache: bool = True


LIGHT = CollectionMode(name="light", tiers=("tier1",), videos_per_channel=10)
MEDIUM = CollectionMode(name="medium", tiers=("tier1", "tier2"), videos_per_channel=20)
FULL = CollectionMode(
    name="full",
    tiers=("tier1", "tier2", "tier3"),
    videos_per_channel=30,
    include_search=True,
    use_cache=False,
)
MODES = {mode.name: mode for mode in (LIGHT, MEDIUM, FULL)}


def resolve_mode(name: str | CollectionMode, hour: int | None = None) -> CollectionMode:
    if isinstance(name, CollectionMode):
        return name
    key = (name or "light").lower()
    if key == "auto":
        return mode_for_hour(hour if hour is not None else 0)
    if key not in MODES:
        raise ValueError(f"Unknown collection mode: {name}")
    return MODES[key]


def mode_for_hour(hour: int) -> CollectionMode:
    # 23시 전체 수집, 19시 중간 수집, 나머지는 가벼운 수집
    if hour == 23:
        return FULL
    if hour == 19:
        return MEDIUM
    return LIGHT


@dataclass
class TierConfig:
    tier1: list[str] = field(default_factory=list)
    tier2: list[str] = field(default_factory=list)
    tier3: list[str] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)

    def channels_for(self, mode: CollectionMode) -> list[str]:
        ordered: list[str] = []
        for tier in mode.tiers:
            for channel_id in getattr(self, tier):
                if channel_id not in ordered:
                    ordered.append(channel_id)
        return ordered

    def tier_of(self, channel_id: str) -> str:
        for tier in ("tier1", "tier2", "tier3"):
            if channel_id in getattr(self, tier):
                return tier
        return "tier3"

    @classmethod
    def from_record(cls, payload) -> "TierConfig":
        # 예전 설정 파일은 채널 ID 배열만 담고 있어 20/30/나머지로 자동 분할한다.
        if isinstance(payload, list):
            ids = [str(item) for item in payload]
            return cls(tier1=ids[:20], tier2=ids[20:50], tier3=ids[50:])
        return cls(
            tier1=list(payload.get("tier1") or []),
            tier2=list(payload.get("tier2") or []),
            tier3=list(payload.get("tier3") or []),
            metadata=dict(payload.get("metadata") or {}),
        )

    def to_record(self) -> dict:
        return {"tier1": self.tier1, "tier2": self.tier2, "tier3": self.tier3, "metadata": self.metadata}


@dataclass
class CollectionPolicy:
    batch_size: int = 50
    max_concurrency: int = 10
    quota_costs: dict = field(
        default_factory=lambda: {"channels": 1, "videos": 1, "playlist_items": 1, "search": 100}
    )
    short_form: ShortFormRules = field(default_factory=ShortFormRules)

    spike_window_hours: int = 48
    spike_min_delta: int = 5000
    above_average_multiplier: float = 1.5
    above_average_min_sample: int = 5
    above_average_min_views: int = 500
    summary_top_n: int = 10

    # 티어별 캐시 유효 시간(시간). 이 시간 안에 수집된 채널은 기준 스냅샷을 재사용한다.
    refresh_hours: dict = field(default_factory=lambda: {"tier1": 4, "tier2": 12, "tier3": 24})

    search_queries: list[str] = field(default_factory=list)
    search_recent_hours: int = 24
    search_max_results: int = 20

    # 채널 발굴: 등록할 @handle/URL 목록과 검색어, 정치 채널 판별 키워드
    discovery_handles: list[str] = field(default_factory=list)
    discovery_queries: list[str] = field(default_factory=list)
    discovery_keywords: list[str] = field(
        default_factory=lambda: ["정치", "뉴스", "시사", "국회", "대통령", "정당"]
    )
    discovery_recent_days: int = 7
    discovery_max_results: int = 50

    tiers: TierConfig = field(default_factory=TierConfig)

    def cost_of(self, operation: str) -> int:
        return int(self.quota_costs.get(operation, 1))
