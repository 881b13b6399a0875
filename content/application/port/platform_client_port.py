from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from content.domain.channel import ChannelSnapshot
from content.domain.video import VideoSnapshot


@dataclass
class SearchOptions:
    max_results: int = 20
    published_after: Optional[datetime] = None
    region_code: Optional[str] = "KR"
    relevance_language: Optional[str] = "ko"
    video_duration: Optional[str] = "short"
    order: str = "date"


class PlatformClientPort(ABC):
    """
    한 개의 API 키에 묶인 데이터 제공자 클라이언트.
    모든 메서드는 블로킹 호출이며, 실패 시 분류된 ProviderError 계열 예외를 던진다.
    """
    platform: str

    @abstractmethod
    def fetch_channels(self, channel_ids: List[str]) -> List[ChannelSnapshot]:
        raise NotImplementedError

    @abstractmethod
    def fetch_videos(self, video_ids: List[str]) -> List[VideoSnapshot]:
        raise NotImplementedError

    @abstractmethod
    def fetch_playlist_items(self, playlist_id: str, max_results: int = 10) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def search(self, query: str, options: SearchOptions) -> List[str]:
        raise NotImplementedError

    @abstractmethod
    def fetch_channel_by_handle(self, handle: str) -> Optional[ChannelSnapshot]:
        """@handle 하나를 채널로 해석한다. 없으면 None."""
        raise NotImplementedError

    @abstractmethod
    def search_channels(self, query: str, options: SearchOptions) -> List[str]:
        """영상 검색 결과를 올린 채널 ID 목록(중복 제거, 등장 순서 유지)."""
        raise NotImplementedError
