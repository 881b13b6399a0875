from datetime import datetime
from sqlalchemy import Boolean, Column, String, Text, BigInteger, Integer, DateTime

from config.database.session import Base


class ChannelSnapshotORM(Base):
    __tablename__ = "channel_snapshot"

    channel_id = Column(String(100), primary_key=True)
    title = Column(String(255))
    subscriber_count = Column(BigInteger, default=0)
    view_count = Column(BigInteger, default=0)
    video_count = Column(Integer, default=0)
    thumbnail_url = Column(String(500))
    uploads_playlist_id = Column(String(100))
    description = Column(Text)
    last_fetched = Column(DateTime)
    saved_at = Column(DateTime, default=datetime.utcnow)


class VideoSnapshotORM(Base):
    __tablename__ = "video_snapshot"

    video_id = Column(String(100), primary_key=True)
    channel_id = Column(String(100), index=True)
    title = Column(String(500))
    description = Column(Text)
    published_at = Column(DateTime)
    duration_seconds = Column(Integer, default=0)
    view_count = Column(BigInteger, default=0)
    like_count = Column(BigInteger, default=0)
    comment_count = Column(BigInteger, default=0)
    thumbnail_url = Column(String(500))
    thumbnail_width = Column(Integer)
    thumbnail_height = Column(Integer)
    # 참고용으로만 저장하며, 로드 시에는 분류기로 다시 계산한다.
    is_short = Column(Boolean, default=False)
    last_fetched = Column(DateTime)
    saved_at = Column(DateTime, default=datetime.utcnow)
