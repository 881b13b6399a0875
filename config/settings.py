import os
from dataclasses import dataclass, field
from typing import Callable
from dotenv import load_dotenv

load_dotenv()

MAX_NUMBERED_KEYS = 10


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def _env_list(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_api_keys_from_env() -> list[str]:
    """
    YOUTUBE_API_KEYS(콤마 구분) → YOUTUBE_API_KEY_1..N → YOUTUBE_API_KEY 순으로 읽어
    중복을 제거한 키 목록을 돌려준다. 호출할 때마다 환경변수를 다시 읽으므로
    키 풀은 재시작 없이 키 추가/삭제를 반영할 수 있다.
    """
    keys: list[str] = []
    keys.extend(_env_list("YOUTUBE_API_KEYS"))
    for idx in range(1, MAX_NUMBERED_KEYS + 1):
        value = (os.getenv(f"YOUTUBE_API_KEY_{idx}") or "").strip()
        if value:
            keys.append(value)
    single = (os.getenv("YOUTUBE_API_KEY") or "").strip()
    if single:
        keys.append(single)

    unique: list[str] = []
    for key in keys:
        if key not in unique:
            unique.append(key)
    return unique


@dataclass
class YouTubeSettings:
    # 키 풀이 acquire 때마다 다시 읽는 키 공급자. .env 를 고치면 재시작 없이 반영된다.
    key_source: Callable[[], list[str]] = load_api_keys_from_env
    daily_quota_limit: int = field(default_factory=lambda: _env_int("YOUTUBE_DAILY_QUOTA_LIMIT", 10000))
    key_error_threshold: int = field(default_factory=lambda: _env_int("YOUTUBE_KEY_ERROR_THRESHOLD", 5))
    quota_user: str | None = field(default_factory=lambda: os.getenv("YOUTUBE_QUOTA_USER"))
    region_code: str = field(default_factory=lambda: os.getenv("YOUTUBE_REGION_CODE", "KR"))
    relevance_language: str = field(default_factory=lambda: os.getenv("YOUTUBE_RELEVANCE_LANGUAGE", "ko"))


@dataclass
class CollectionSettings:
    # 수집 정책 상수. 모든 임계치는 환경변수로 조정한다.
    batch_size: int = field(default_factory=lambda: _env_int("COLLECTION_BATCH_SIZE", 50))
    chunk_delay_seconds: float = field(default_factory=lambda: _env_float("COLLECTION_CHUNK_DELAY_SECONDS", 0.5))
    max_concurrency: int = field(default_factory=lambda: _env_int("COLLECTION_MAX_CONCURRENCY", 10))
    transient_attempts: int = field(default_factory=lambda: _env_int("COLLECTION_TRANSIENT_ATTEMPTS", 2))
    transient_wait_seconds: float = field(default_factory=lambda: _env_float("COLLECTION_TRANSIENT_WAIT_SECONDS", 1.0))

    shorts_max_seconds: int = field(default_factory=lambda: _env_int("SHORTS_MAX_SECONDS", 60))
    shorts_marker_max_seconds: int = field(default_factory=lambda: _env_int("SHORTS_MARKER_MAX_SECONDS", 90))
    shorts_portrait_ratio: float = field(default_factory=lambda: _env_float("SHORTS_PORTRAIT_RATIO", 0.6))
    shorts_markers: list[str] = field(
        default_factory=lambda: _env_list("SHORTS_MARKERS", "shorts,#shorts,숏츠,쇼츠")
    )

    spike_window_hours: int = field(default_factory=lambda: _env_int("SPIKE_WINDOW_HOURS", 48))
    spike_min_delta: int = field(default_factory=lambda: _env_int("SPIKE_MIN_DELTA", 5000))
    above_average_multiplier: float = field(default_factory=lambda: _env_float("ABOVE_AVERAGE_MULTIPLIER", 1.5))
    above_average_min_sample: int = field(default_factory=lambda: _env_int("ABOVE_AVERAGE_MIN_SAMPLE", 5))
    above_average_min_views: int = field(default_factory=lambda: _env_int("ABOVE_AVERAGE_MIN_VIEWS", 500))
    summary_top_n: int = field(default_factory=lambda: _env_int("SUMMARY_TOP_N", 10))

    search_queries: list[str] = field(
        default_factory=lambda: _env_list(
            "COLLECTION_SEARCH_QUERIES", "정치 shorts,국회 shorts,뉴스 shorts"
        )
    )
    search_recent_hours: int = field(default_factory=lambda: _env_int("COLLECTION_SEARCH_RECENT_HOURS", 24))
    search_max_results: int = field(default_factory=lambda: _env_int("COLLECTION_SEARCH_MAX_RESULTS", 20))

    discovery_handles: list[str] = field(default_factory=lambda: _env_list("DISCOVERY_HANDLES"))
    discovery_queries: list[str] = field(
        default_factory=lambda: _env_list(
            "DISCOVERY_QUERIES", "정치,국회,대통령,여당,야당,국민의힘,민주당,시사,정치분석,국정감사,선거"
        )
    )
    discovery_keywords: list[str] = field(
        default_factory=lambda: _env_list("DISCOVERY_KEYWORDS", "정치,뉴스,시사,국회,대통령,정당")
    )
    discovery_recent_days: int = field(default_factory=lambda: _env_int("DISCOVERY_RECENT_DAYS", 7))
    discovery_max_results: int = field(default_factory=lambda: _env_int("DISCOVERY_MAX_RESULTS", 50))


@dataclass
class StorageSettings:
    backend: str = field(default_factory=lambda: os.getenv("SNAPSHOT_BACKEND", "json").lower())
    snapshot_dir: str = field(default_factory=lambda: os.getenv("SNAPSHOT_DIR", "data"))
    dashboard_dir: str = field(default_factory=lambda: os.getenv("DASHBOARD_DIR", "data"))
    tiers_path: str = field(default_factory=lambda: os.getenv("TIERS_CONFIG_PATH", "config/channels-tiered.json"))
    dashboard_retention_days: int = field(default_factory=lambda: _env_int("DASHBOARD_RETENTION_DAYS", 7))


@dataclass
class BatchSettings:
    enabled: bool = field(default_factory=lambda: os.getenv("ENABLE_COLLECTION_BATCH", "false").lower() == "true")
    interval_minutes: int = field(default_factory=lambda: _env_int("COLLECTION_BATCH_INTERVAL_MINUTES", 240))
    mode: str = field(default_factory=lambda: os.getenv("COLLECTION_BATCH_MODE", "auto").lower())
    export_dashboard: bool = field(
        default_factory=lambda: os.getenv("COLLECTION_EXPORT_DASHBOARD", "true").lower() == "true"
    )
