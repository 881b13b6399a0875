from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from content.domain.time_utils import format_datetime, parse_datetime


def first_present(payload: dict, *names):
    for name in names:
        value = payload.get(name)
        if value is not None and value != "":
            return value
    return None


def as_int(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass
class ChannelSnapshot:
    channel_id: str
    title: str
    subscriber_count: int = 0
    view_count: int = 0
    video_count: int = 0
    thumbnail_url: Optional[str] = None
    uploads_playlist_id: Optional[str] = None
    last_fetched: Optional[datetime] = None
    description: Optional[str] = None

    @property
    def identity(self) -> str:
        return self.channel_id

    @classmethod
    def from_record(cls, payload: dict) -> "ChannelSnapshot":
        """
        저장된 레코드나 예전 스크립트가 남긴 JSON 을 엄격한 스키마로 정규화한다.
        (id/channelId, viewCount/views, lastFetched 등 필드명 차이를 여기서만 흡수한다.)
        """
        channel_id = first_present(payload, "channel_id", "channelId", "id")
        if not channel_id:
            raise ValueError("channel record without identity")
        return cls(
            channel_id=str(channel_id),
            title=first_present(payload, "title", "channelTitle") or "",
            subscriber_count=as_int(first_present(payload, "subscriber_count", "subscriberCount")),
            view_count=as_int(first_present(payload, "view_count", "viewCount", "views")),
            video_count=as_int(first_present(payload, "video_count", "videoCount")),
            thumbnail_url=first_present(payload, "thumbnail_url", "thumbnail"),
            uploads_playlist_id=first_present(payload, "uploads_playlist_id", "uploadsPlaylistId"),
            last_fetched=parse_datetime(first_present(payload, "last_fetched", "lastFetched", "crawled_at")),
            description=first_present(payload, "description"),
        )

    def to_record(self) -> dict:
        return {
            "channel_id": self.channel_id,
            "title": self.title,
            "subscriber_count": self.subscriber_count,
            "view_count": self.view_count,
            "video_count": self.video_count,
            "thumbnail_url": self.thumbnail_url,
            "uploads_playlist_id": self.uploads_playlist_id,
            "last_fetched": format_datetime(self.last_fetched),
            "description": self.description,
        }
