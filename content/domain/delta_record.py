from dataclasses import asdict, dataclass
from typing import Optional


@dataclass
class DeltaRecord:
    """
    기준 스냅샷 대비 현재 지표의 변화량입니다.
    매 병합 사이클마다 새로 계산되며 단독으로 저장되지 않습니다.
    """
    current: int
    previous: int
    absolute_delta: int
    rate: float
    percent_growth: float
    elapsed_hours: float
    is_new: bool = False

    @classmethod
    def new_entity(cls, current: int) -> "DeltaRecord":
        return cls(
            current=current,
            previous=0,
            absolute_delta=0,
            rate=0.0,
            percent_growth=0.0,
            elapsed_hours=0.0,
            is_new=True,
        )


@dataclass
class EntityDelta:
    identity: str
    kind: str
    views: DeltaRecord
    subscribers: Optional[DeltaRecord] = None
    video_count: Optional[DeltaRecord] = None
    views_per_hour: Optional[float] = None

    @property
    def is_new(self) -> bool:
        return self.views.is_new

    def to_dict(self) -> dict:
        return asdict(self)
