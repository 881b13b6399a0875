import logging
from pathlib import Path
from typing import Dict

from content.application.port.snapshot_store_port import SnapshotStorePort
from content.domain.channel import ChannelSnapshot
from content.domain.collection_policy import SnapshotKind
from content.domain.exceptions import MalformedBaselineError
from content.domain.short_form_classifier import ShortFormRules
from content.domain.time_utils import format_datetime, utcnow
from content.domain.video import VideoSnapshot
from content.infrastructure.repository.json_file import atomic_write_json, read_json

logger = logging.getLogger(__name__)


class JsonSnapshotStore(SnapshotStorePort):
    """
    data/{kind}-snapshot.json 파일에 기준 스냅샷을 보관한다.
    예전 스크립트의 integrated-latest.json 처럼 {channels: [...], videos: [...]} 형태나
    레코드 배열만 있는 파일도 읽을 수 있다.
    """

    def __init__(self, directory: str | Path = "data", rules: ShortFormRules | None = None):
        self.directory = Path(directory)
        self.rules = rules

    def path_for(self, kind: SnapshotKind) -> Path:
        return self.directory / f"{SnapshotKind(kind).value}-snapshot.json"

    def load(self, kind: SnapshotKind) -> Dict[str, object]:
        kind = SnapshotKind(kind)
        path = self.path_for(kind)
        if not path.exists():
            logger.info("[SNAPSHOT] no %s baseline at %s, starting fresh", kind.value, path)
            return {}
        try:
            records = self._read_records(path, kind)
        except MalformedBaselineError as exc:
            logger.warning("[SNAPSHOT] %s baseline is corrupt, starting fresh: %s", kind.value, exc)
            return {}

        snapshots: Dict[str, object] = {}
        for record in records:
            try:
                snapshot = self._from_record(kind, record)
            except (ValueError, TypeError, AttributeError) as exc:
                logger.warning("[SNAPSHOT] skipped malformed %s record: %s", kind.value, exc)
                continue
            snapshots[snapshot.identity] = snapshot
        logger.info("[SNAPSHOT] loaded %s %s from %s", len(snapshots), kind.value, path)
        return snapshots

    def save(self, kind: SnapshotKind, snapshots: Dict[str, object]) -> None:
        kind = SnapshotKind(kind)
        payload = {
            "kind": kind.value,
            "saved_at": format_datetime(utcnow()),
            "items": [snapshot.to_record() for snapshot in snapshots.values()],
        }
        atomic_write_json(self.path_for(kind), payload)
        logger.info("[SNAPSHOT] saved %s %s", len(snapshots), kind.value)

    @staticmethod
    def _read_records(path: Path, kind: SnapshotKind) -> list:
        try:
            payload = read_json(path)
        except (ValueError, UnicodeDecodeError) as exc:
            raise MalformedBaselineError(f"{path}: {exc}") from exc

        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            for key in ("items", kind.value):
                if isinstance(payload.get(key), list):
                    return payload[key]
        raise MalformedBaselineError(f"{path}: unexpected baseline shape")

    def _from_record(self, kind: SnapshotKind, record):
        if not isinstance(record, dict):
            raise ValueError(f"record is not an object: {record!r}")
        if kind == SnapshotKind.CHANNELS:
            return ChannelSnapshot.from_record(record)
        return VideoSnapshot.from_record(record, self.rules)
