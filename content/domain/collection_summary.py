from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

from content.domain.channel import ChannelSnapshot
from content.domain.delta_record import EntityDelta
from content.domain.time_utils import format_datetime
from content.domain.video import VideoSnapshot


@dataclass
class SpikeEntry:
    video_id: str
    channel_id: str
    title: str
    view_count: int
    absolute_delta: int
    rate: float
    views_per_hour: float
    hours_since_published: float
    spike_ratio: Optional[float] = None


@dataclass
class AboveAverageEntry:
    video_id: str
    channel_id: str
    title: str
    view_count: int
    channel_mean: float
    uplift: float
    sample_size: int


@dataclass
class RankedEntry:
    identity: str
    title: str
    value: float
    secondary: Optional[float] = None


@dataclass
class Summary:
    total_channels: int = 0
    total_videos: int = 0
    total_shorts: int = 0
    total_long_form: int = 0
    total_channel_views: int = 0
    total_video_views: int = 0
    total_likes: int = 0
    total_comments: int = 0
    total_subscribers: int = 0
    total_view_growth: int = 0
    avg_views_per_short: float = 0.0
    avg_views_per_channel: float = 0.0
    top_channels: list[RankedEntry] = field(default_factory=list)
    top_videos_by_views: list[RankedEntry] = field(default_factory=list)
    top_videos_by_growth: list[RankedEntry] = field(default_factory=list)
    spikes: list[SpikeEntry] = field(default_factory=list)
    above_average: list[AboveAverageEntry] = field(default_factory=list)
    quota_used: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CollectionResult:
    mode: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    ok: bool = True
    error: Optional[str] = None
    channels: dict[str, ChannelSnapshot] = field(default_factory=dict)
    videos: dict[str, VideoSnapshot] = field(default_factory=dict)
    channel_deltas: dict[str, EntityDelta] = field(default_factory=dict)
    video_deltas: dict[str, EntityDelta] = field(default_factory=dict)
    summary: Summary = field(default_factory=Summary)
    channels_succeeded: int = 0
    channels_failed: int = 0
    videos_succeeded: int = 0
    videos_failed: int = 0
    cache_hits: int = 0
    quota_status: dict = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    @classmethod
    def failed(cls, mode: str, started_at: datetime, finished_at: datetime, cause: Exception, quota_status: dict):
        return cls(
            mode=mode,
            started_at=started_at,
            finished_at=finished_at,
            ok=False,
            error=f"{type(cause).__name__}: {cause}",
            quota_status=quota_status,
        )

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def to_dict(self, include_entities: bool = False) -> dict:
        payload = {
            "mode": self.mode,
            "started_at": format_datetime(self.started_at),
            "finished_at": format_datetime(self.finished_at),
            "ok": self.ok,
            "error": self.error,
            "counts": {
                "channels_succeeded": self.channels_succeeded,
                "channels_failed": self.channels_failed,
                "videos_succeeded": self.videos_succeeded,
                "videos_failed": self.videos_failed,
                "cache_hits": self.cache_hits,
            },
            "summary": self.summary.to_dict(),
            "quota": self.quota_status,
            "warnings": self.warnings,
        }
        if include_entities:
            payload["channels"] = [c.to_record() for c in self.channels.values()]
            payload["videos"] = [v.to_record() for v in self.videos.values()]
            payload["channel_deltas"] = [d.to_dict() for d in self.channel_deltas.values()]
            payload["video_deltas"] = [d.to_dict() for d in self.video_deltas.values()]
        return payload
