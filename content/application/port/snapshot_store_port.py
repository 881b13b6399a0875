from abc import ABC, abstractmethod
from typing import Dict

from content.domain.collection_policy import SnapshotKind


class SnapshotStorePort(ABC):
    """
    직전 사이클의 기준 스냅샷 저장소.
    load 는 기준이 없으면 빈 dict 를 돌려주고, save 는 해당 kind 전체를 덮어쓴다.
    """

    @abstractmethod
    def load(self, kind: SnapshotKind) -> Dict[str, object]:
        raise NotImplementedError

    @abstractmethod
    def save(self, kind: SnapshotKind, snapshots: Dict[str, object]) -> None:
        raise NotImplementedError
