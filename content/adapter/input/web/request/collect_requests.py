from typing import List, Optional

from pydantic import BaseModel, Field


class RunCollectionRequest(BaseModel):
    mode: str = Field(default="auto", pattern="^(light|medium|full|auto)$", description="수집 모드")
    channel_ids: Optional[List[str]] = Field(default=None, description="지정 시 티어 대신 이 채널들만 수집")
    persist: bool = Field(default=True, description="기준 스냅샷 저장 여부")
    export_dashboard: bool = Field(default=True, description="dashboard-data.json 내보내기 여부")
    include_entities: bool = Field(default=False, description="응답에 채널/영상 전체 포함 여부")


class DiscoverChannelsRequest(BaseModel):
    handles: Optional[List[str]] = Field(
        default=None, description="@handle, 채널 URL 또는 채널 ID. 생략 시 DISCOVERY_HANDLES"
    )
    queries: Optional[List[str]] = Field(
        default=None, description="발굴 검색어. 생략 시 DISCOVERY_QUERIES, 빈 배열이면 검색 생략"
    )
    persist: bool = Field(default=True, description="새 채널을 channels-tiered.json 에 저장할지 여부")
