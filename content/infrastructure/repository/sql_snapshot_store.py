import logging
from typing import Dict

from sqlalchemy.exc import SQLAlchemyError

from content.application.port.snapshot_store_port import SnapshotStorePort
from content.domain.channel import ChannelSnapshot
from content.domain.collection_policy import SnapshotKind
from content.domain.exceptions import MalformedBaselineError
from content.domain.short_form_classifier import ShortFormRules
from content.domain.time_utils import to_utc
from content.domain.video import VideoSnapshot
from content.infrastructure.orm.models import ChannelSnapshotORM, VideoSnapshotORM

logger = logging.getLogger(__name__)


def _naive_utc(value):
    # 한국어 주석: SQLite/PostgreSQL timestamp 컬럼에는 UTC naive 값으로 저장합니다.
    return to_utc(value).replace(tzinfo=None) if value is not None else None


class SqlSnapshotStore(SnapshotStorePort):
    def __init__(self, session_factory, rules: ShortFormRules | None = None):
        self.session_factory = session_factory
        self.rules = rules

    def load(self, kind: SnapshotKind) -> Dict[str, object]:
        kind = SnapshotKind(kind)
        try:
            snapshots = self._load(kind)
        except MalformedBaselineError as exc:
            logger.warning("[SNAPSHOT] %s baseline unreadable, starting fresh: %s", kind.value, exc)
            return {}
        logger.info("[SNAPSHOT] loaded %s %s from database", len(snapshots), kind.value)
        return snapshots

    def _load(self, kind: SnapshotKind) -> Dict[str, object]:
        snapshots: Dict[str, object] = {}
        try:
            with self.session_factory() as db:
                if kind == SnapshotKind.CHANNELS:
                    for row in db.query(ChannelSnapshotORM).all():
                        snapshot = self._to_channel(row)
                        snapshots[snapshot.identity] = snapshot
                else:
                    for row in db.query(VideoSnapshotORM).all():
                        snapshot = self._to_video(row)
                        snapshots[snapshot.identity] = snapshot
        except SQLAlchemyError as exc:
            raise MalformedBaselineError(str(exc)) from exc
        return snapshots

    def save(self, kind: SnapshotKind, snapshots: Dict[str, object]) -> None:
        kind = SnapshotKind(kind)
        model = ChannelSnapshotORM if kind == SnapshotKind.CHANNELS else VideoSnapshotORM
        to_row = self._channel_row if kind == SnapshotKind.CHANNELS else self._video_row
        with self.session_factory() as db:
            try:
                # 한국어 주석: 전체 덮어쓰기. 삭제와 삽입을 한 트랜잭션으로 묶습니다.
                db.query(model).delete()
                db.add_all([to_row(snapshot) for snapshot in snapshots.values()])
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise
        logger.info("[SNAPSHOT] saved %s %s to database", len(snapshots), kind.value)

    @staticmethod
    def _to_channel(row: ChannelSnapshotORM) -> ChannelSnapshot:
        return ChannelSnapshot(
            channel_id=row.channel_id,
            title=row.title or "",
            subscriber_count=row.subscriber_count or 0,
            view_count=row.view_count or 0,
            video_count=row.video_count or 0,
            thumbnail_url=row.thumbnail_url,
            uploads_playlist_id=row.uploads_playlist_id,
            last_fetched=to_utc(row.last_fetched),
            description=row.description,
        )

    def _to_video(self, row: VideoSnapshotORM) -> VideoSnapshot:
        video = VideoSnapshot(
            video_id=row.video_id,
            channel_id=row.channel_id or "",
            title=row.title or "",
            description=row.description,
            published_at=to_utc(row.published_at),
            duration_seconds=row.duration_seconds or 0,
            view_count=row.view_count or 0,
            like_count=row.like_count or 0,
            comment_count=row.comment_count or 0,
            thumbnail_url=row.thumbnail_url,
            thumbnail_width=row.thumbnail_width,
            thumbnail_height=row.thumbnail_height,
            last_fetched=to_utc(row.last_fetched),
        )
        return video.reclassify(self.rules)

    @staticmethod
    def _channel_row(channel: ChannelSnapshot) -> ChannelSnapshotORM:
        return ChannelSnapshotORM(
            channel_id=channel.channel_id,
            title=channel.title,
            subscriber_count=channel.subscriber_count,
            view_count=channel.view_count,
            video_count=channel.video_count,
            thumbnail_url=channel.thumbnail_url,
            uploads_playlist_id=channel.uploads_playlist_id,
            last_fetched=_naive_utc(channel.last_fetched),
            description=channel.description,
        )

    @staticmethod
    def _video_row(video: VideoSnapshot) -> VideoSnapshotORM:
        return VideoSnapshotORM(
            video_id=video.video_id,
            channel_id=video.channel_id,
            title=video.title,
            description=video.description,
            published_at=_naive_utc(video.published_at),
            duration_seconds=video.duration_seconds,
            view_count=video.view_count,
            like_count=video.like_count,
            comment_count=video.comment_count,
            thumbnail_url=video.thumbnail_url,
            thumbnail_width=video.thumbnail_width,
            thumbnail_height=video.thumbnail_height,
            is_short=video.is_short,
            last_fetched=_naive_utc(video.last_fetched),
        )
