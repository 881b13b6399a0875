import logging
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import List

from content.domain.collection_summary import CollectionResult
from content.domain.time_utils import KST, format_datetime, to_utc, utcnow
from content.infrastructure.repository.json_file import atomic_write_json

logger = logging.getLogger(__name__)

DATED_EXPORT_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2})-integrated\.json$")

TOP_CHANNELS = 100
TOP_VIDEOS = 500
TOP_SPIKES = 30
TOP_ABOVE_AVERAGE = 20


class DashboardExporter:
    """
    수집 결과를 대시보드가 읽는 JSON 으로 내보낸다.
    - dashboard-data.json: 조회수 상위 채널 100, 증가량 상위 영상 500, 급상승 30, 평균 초과 20
    - YYYY-MM-DD-integrated.json: 그날의 병합 결과 전체 (보존 기간이 지나면 cleanup 으로 삭제)
    """

    def __init__(self, directory: str | Path = "data"):
        self.directory = Path(directory)

    def export(self, result: CollectionResult, now: datetime | None = None) -> dict:
        now = now or result.finished_at or utcnow()
        date_label = to_utc(now).astimezone(KST).date().isoformat()

        channels = sorted(result.channels.values(), key=lambda c: (-c.view_count, c.channel_id))[:TOP_CHANNELS]

        def video_growth(video) -> int:
            delta = result.video_deltas.get(video.identity)
            return delta.views.absolute_delta if delta is not None else 0

        videos = sorted(result.videos.values(), key=lambda v: (-video_growth(v), v.video_id))[:TOP_VIDEOS]
        summary = result.summary.to_dict()

        dashboard = {
            "lastUpdated": format_datetime(now),
            "mode": result.mode,
            "channels": [
                {
                    **channel.to_record(),
                    "view_delta": result.channel_deltas[channel.identity].views.absolute_delta
                    if channel.identity in result.channel_deltas
                    else 0,
                }
                for channel in channels
            ],
            "videos": [{**video.to_record(), "view_delta": video_growth(video)} for video in videos],
            "spikes": summary["spikes"][:TOP_SPIKES],
            "aboveAverage": summary["above_average"][:TOP_ABOVE_AVERAGE],
            "statistics": {
                "totalChannels": summary["total_channels"],
                "totalVideos": summary["total_videos"],
                "totalShorts": summary["total_shorts"],
                "totalViews": summary["total_channel_views"],
                "totalViewGrowth": summary["total_view_growth"],
                "avgViewsPerChannel": summary["avg_views_per_channel"],
                "avgViewsPerShort": summary["avg_views_per_short"],
                "quotaUsed": summary["quota_used"],
                "cacheHits": result.cache_hits,
            },
        }
        dashboard_path = self.directory / "dashboard-data.json"
        dated_path = self.directory / f"{date_label}-integrated.json"
        atomic_write_json(dashboard_path, dashboard)
        atomic_write_json(dated_path, result.to_dict(include_entities=True))
        logger.info("[COLLECT] dashboard exported to %s and %s", dashboard_path, dated_path)
        return {"dashboard": str(dashboard_path), "integrated": str(dated_path)}

    def cleanup(self, retention_days: int = 7, now: datetime | None = None) -> List[str]:
        """파일명 날짜 기준으로 보존 기간보다 오래된 dated export 를 삭제한다."""
        if not self.directory.exists():
            return []
        today = to_utc(now or utcnow()).astimezone(KST).date()
        cutoff = today - timedelta(days=retention_days)
        removed: List[str] = []
        for path in sorted(self.directory.iterdir()):
            match = DATED_EXPORT_PATTERN.match(path.name)
            if not match:
                continue
            try:
                file_date = datetime.strptime(match.group(1), "%Y-%m-%d").date()
            except ValueError:
                continue
            if file_date < cutoff:
                path.unlink()
                removed.append(path.name)
        if removed:
            logger.info("[COLLECT] removed %s dashboard exports older than %s days", len(removed), retention_days)
        return removed
