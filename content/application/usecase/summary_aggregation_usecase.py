from datetime import datetime
from typing import Dict

from content.application.usecase.diff_merge_usecase import DiffMergeUseCase
from content.domain.channel import ChannelSnapshot
from content.domain.collection_policy import CollectionPolicy
from content.domain.collection_summary import RankedEntry, Summary
from content.domain.delta_record import EntityDelta
from content.domain.time_utils import utcnow
from content.domain.video import VideoSnapshot


def _ranked(entries: list[RankedEntry], top_n: int) -> list[RankedEntry]:
    # 동률은 identity 오름차순으로 고정한다.
    return sorted(entries, key=lambda e: (-e.value, e.identity))[:top_n]


class SummaryAggregationUseCase:
    def __init__(self, policy: CollectionPolicy | None = None, diff_merge: DiffMergeUseCase | None = None):
        self.policy = policy or CollectionPolicy()
        self.diff_merge = diff_merge or DiffMergeUseCase(self.policy)

    def summarize(
        self,
        channels: Dict[str, ChannelSnapshot],
        videos: Dict[str, VideoSnapshot],
        channel_deltas: Dict[str, EntityDelta],
        video_deltas: Dict[str, EntityDelta],
        now: datetime | None = None,
    ) -> Summary:
        """
        대시보드용 요약 통계.
        - 합계/평균: 채널 조회수, 영상 조회수, 좋아요, 댓글, 구독자, 조회수 증가량
        - 순위: 조회수 증가 상위 채널, 조회수/증가량 상위 영상
        - 급상승 영상, 채널 평균 초과 영상
        """
        now = now or utcnow()
        top_n = self.policy.summary_top_n

        shorts = [v for v in videos.values() if v.is_short]
        total_channel_views = sum(c.view_count for c in channels.values())
        total_short_views = sum(v.view_count for v in shorts)

        top_channels = _ranked(
            [
                RankedEntry(
                    identity=identity,
                    title=channel.title,
                    value=channel_deltas[identity].views.absolute_delta if identity in channel_deltas else 0,
                    secondary=channel.view_count,
                )
                for identity, channel in channels.items()
            ],
            top_n,
        )
        top_videos_by_views = _ranked(
            [
                RankedEntry(identity=identity, title=video.title, value=video.view_count)
                for identity, video in videos.items()
            ],
            top_n,
        )
        top_videos_by_growth = _ranked(
            [
                RankedEntry(
                    identity=identity,
                    title=video.title,
                    value=video_deltas[identity].views.absolute_delta,
                    secondary=video_deltas[identity].views.rate,
                )
                for identity, video in videos.items()
                if identity in video_deltas
            ],
            top_n,
        )

        return Summary(
            total_channels=len(channels),
            total_videos=len(videos),
            total_shorts=len(shorts),
            total_long_form=len(videos) - len(shorts),
            total_channel_views=total_channel_views,
            total_video_views=sum(v.view_count for v in videos.values()),
            total_likes=sum(v.like_count for v in videos.values()),
            total_comments=sum(v.comment_count for v in videos.values()),
            total_subscribers=sum(c.subscriber_count for c in channels.values()),
            total_view_growth=sum(d.views.absolute_delta for d in video_deltas.values()),
            avg_views_per_short=round(total_short_views / len(shorts), 2) if shorts else 0.0,
            avg_views_per_channel=round(total_channel_views / len(channels), 2) if channels else 0.0,
            top_channels=top_channels,
            top_videos_by_views=top_videos_by_views,
            top_videos_by_growth=top_videos_by_growth,
            spikes=self.diff_merge.detect_spikes(videos, video_deltas, now),
            above_average=self.diff_merge.detect_above_average(videos),
        )
