from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from content.domain.channel import as_int, first_present
from content.domain.short_form_classifier import ShortFormRules, classify_video, parse_duration
from content.domain.time_utils import format_datetime, parse_datetime


@dataclass
class VideoSnapshot:
    video_id: str
    channel_id: str
    title: str
    description: Optional[str] = None
    published_at: Optional[datetime] = None
    duration_seconds: int = 0
    view_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    thumbnail_url: Optional[str] = None
    thumbnail_width: Optional[int] = None
    thumbnail_height: Optional[int] = None
    is_short: bool = False
    last_fetched: Optional[datetime] = None

    @property
    def identity(self) -> str:
        return self.video_id

    def reclassify(self, rules: ShortFormRules | None = None) -> "VideoSnapshot":
        # 숏츠 여부는 항상 duration/텍스트/비율로부터 다시 계산한다.
        result = classify_video(self, rules)
        self.duration_seconds = result.duration_seconds
        self.is_short = result.is_short
        return self

    @classmethod
    def from_record(cls, payload: dict, rules: ShortFormRules | None = None) -> "VideoSnapshot":
        """
        저장된 레코드를 엄격한 스키마로 정규화한다. 저장된 isShorts 값은 신뢰하지 않고
        분류기를 다시 돌려 재계산한다.
        """
        video_id = first_present(payload, "video_id", "videoId", "id")
        if not video_id:
            raise ValueError("video record without identity")
        duration = first_present(payload, "duration_seconds", "durationSeconds", "durationInSeconds", "duration")
        video = cls(
            video_id=str(video_id),
            channel_id=str(first_present(payload, "channel_id", "channelId") or ""),
            title=first_present(payload, "title") or "",
            description=first_present(payload, "description"),
            published_at=parse_datetime(first_present(payload, "published_at", "publishedAt", "published")),
            duration_seconds=parse_duration(duration),
            view_count=as_int(first_present(payload, "view_count", "viewCount", "views")),
            like_count=as_int(first_present(payload, "like_count", "likeCount")),
            comment_count=as_int(first_present(payload, "comment_count", "commentCount")),
            thumbnail_url=first_present(payload, "thumbnail_url", "thumbnail"),
            thumbnail_width=first_present(payload, "thumbnail_width", "thumbnailWidth"),
            thumbnail_height=first_present(payload, "thumbnail_height", "thumbnailHeight"),
            last_fetched=parse_datetime(first_present(payload, "last_fetched", "lastFetched", "crawled_at")),
        )
        return video.reclassify(rules)

    def to_record(self) -> dict:
        return {
            "video_id": self.video_id,
            "channel_id": self.channel_id,
            "title": self.title,
            "description": self.description,
            "published_at": format_datetime(self.published_at),
            "duration_seconds": self.duration_seconds,
            "view_count": self.view_count,
            "like_count": self.like_count,
            "comment_count": self.comment_count,
            "thumbnail_url": self.thumbnail_url,
            "thumbnail_width": self.thumbnail_width,
            "thumbnail_height": self.thumbnail_height,
            "is_short": self.is_short,
            "last_fetched": format_datetime(self.last_fetched),
        }
