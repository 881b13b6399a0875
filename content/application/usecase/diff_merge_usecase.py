import logging
from collections import defaultdict
from datetime import datetime
from functools import cmp_to_key
from typing import Dict, Iterable, Optional

from content.domain.channel import ChannelSnapshot
from content.domain.collection_policy import CollectionPolicy, SnapshotKind
from content.domain.collection_summary import AboveAverageEntry, SpikeEntry
from content.domain.delta_record import DeltaRecord, EntityDelta
from content.domain.time_utils import hours_between, utcnow
from content.domain.video import VideoSnapshot

logger = logging.getLogger(__name__)


def freshness_key(record) -> tuple:
    """
    병합 우선순위. 수집 시각이 있는 레코드가 없는 레코드보다 앞선다.
    둘 다 있으면 더 늦은 수집 시각, 둘 다 없으면 더 큰 조회수가 이긴다.
    """
    fetched = record.last_fetched
    if fetched is not None:
        return (1, fetched.timestamp(), 0)
    return (0, 0.0, record.view_count)


def _is_fresher(incoming, existing) -> bool:
    return freshness_key(incoming) > freshness_key(existing)


def merge(existing: Dict[str, object], incoming: Iterable | Dict[str, object]) -> Dict[str, object]:
    """
    identity 기준 병합. 기존 dict 는 건드리지 않고 새 dict 를 돌려준다.
    - 없는 identity 는 추가
    - freshness_key 가 엄격히 큰 쪽만 교체한다 (동률이면 기존 유지)
    우선순위가 전순서라서 같은 배치를 다시 병합해도 결과가 바뀌지 않는다.
    """
    merged = dict(existing)
    records = incoming.values() if isinstance(incoming, dict) else incoming
    for record in records:
        current = merged.get(record.identity)
        if current is None or _is_fresher(record, current):
            merged[record.identity] = record
    return merged


def elapsed_hours(baseline_fetched_at: Optional[datetime], now: datetime) -> float:
    if baseline_fetched_at is None:
        return 1.0
    return max(1.0, hours_between(now, baseline_fetched_at))


def diff(current, current_value: int, baseline, baseline_value: Optional[int], now: datetime) -> DeltaRecord:
    if baseline is None or baseline_value is None:
        return DeltaRecord.new_entity(current_value)

    elapsed = elapsed_hours(baseline.last_fetched, now)
    delta = current_value - baseline_value
    percent = (delta / baseline_value * 100) if baseline_value > 0 else 0.0
    return DeltaRecord(
        current=current_value,
        previous=baseline_value,
        absolute_delta=delta,
        rate=delta / elapsed,
        percent_growth=percent,
        elapsed_hours=elapsed,
    )


def views_per_hour(video: VideoSnapshot, now: datetime) -> float:
    if video.published_at is None:
        return float(video.view_count)
    return video.view_count / max(1.0, hours_between(now, video.published_at))


class DiffMergeUseCase:
    """
    직전 사이클 기준 스냅샷과 이번 수집분을 병합하고 변화량/급상승/평균 초과 영상을 계산한다.
    """

    def __init__(self, policy: CollectionPolicy | None = None):
        self.policy = policy or CollectionPolicy()

    def merge(self, existing: Dict[str, object], incoming) -> Dict[str, object]:
        return merge(existing, incoming)

    def diff_channel(
        self, current: ChannelSnapshot, baseline: Optional[ChannelSnapshot], now: datetime | None = None
    ) -> EntityDelta:
        now = now or utcnow()
        return EntityDelta(
            identity=current.identity,
            kind=SnapshotKind.CHANNELS.value,
            views=diff(current, current.view_count, baseline, baseline.view_count if baseline else None, now),
            subscribers=diff(
                current,
                current.subscriber_count,
                baseline,
                baseline.subscriber_count if baseline else None,
                now,
            ),
            video_count=diff(current, current.video_count, baseline, baseline.video_count if baseline else None, now),
        )

    def diff_video(
        self, current: VideoSnapshot, baseline: Optional[VideoSnapshot], now: datetime | None = None
    ) -> EntityDelta:
        now = now or utcnow()
        return EntityDelta(
            identity=current.identity,
            kind=SnapshotKind.VIDEOS.value,
            views=diff(current, current.view_count, baseline, baseline.view_count if baseline else None, now),
            views_per_hour=views_per_hour(current, now),
        )

    def diff_all(
        self,
        kind: SnapshotKind,
        current: Dict[str, object],
        baseline: Dict[str, object],
        now: datetime | None = None,
    ) -> Dict[str, EntityDelta]:
        now = now or utcnow()
        differ = self.diff_channel if SnapshotKind(kind) == SnapshotKind.CHANNELS else self.diff_video
        deltas = {identity: differ(entity, baseline.get(identity), now) for identity, entity in current.items()}
        new_count = sum(1 for delta in deltas.values() if delta.is_new)
        logger.info("[COLLECT] %s diff: %s entities (%s new)", SnapshotKind(kind).value, len(deltas), new_count)
        return deltas

    def detect_spikes(
        self,
        videos: Dict[str, VideoSnapshot],
        deltas: Dict[str, EntityDelta],
        now: datetime | None = None,
    ) -> list[SpikeEntry]:
        """
        업로드 후 spike_window_hours 이내이고 조회수 증가량이 spike_min_delta 를 넘는 영상.
        증가 속도(rate) 내림차순, 두 영상 모두 rate 가 0 이하면 시간당 조회수로 비교한다.
        """
        now = now or utcnow()
        entries: list[SpikeEntry] = []
        for identity, video in videos.items():
            delta = deltas.get(identity)
            if delta is None or video.published_at is None:
                continue
            age_hours = hours_between(now, video.published_at)
            if age_hours > self.policy.spike_window_hours:
                continue
            if delta.views.absolute_delta <= self.policy.spike_min_delta:
                continue
            previous = delta.views.previous
            entries.append(
                SpikeEntry(
                    video_id=video.video_id,
                    channel_id=video.channel_id,
                    title=video.title,
                    view_count=video.view_count,
                    absolute_delta=delta.views.absolute_delta,
                    rate=delta.views.rate,
                    views_per_hour=delta.views_per_hour if delta.views_per_hour is not None else views_per_hour(video, now),
                    hours_since_published=round(max(0.0, age_hours), 2),
                    spike_ratio=(delta.views.absolute_delta / previous) if previous > 0 else None,
                )
            )
        return sorted(entries, key=cmp_to_key(_compare_spikes))

    def detect_above_average(self, videos: Dict[str, VideoSnapshot] | Iterable[VideoSnapshot]) -> list[AboveAverageEntry]:
        """
        같은 채널의 '다른' 영상 평균(자기 자신 제외) 대비 multiplier 배를 넘는 영상.
        비교 대상이 above_average_min_sample 개 미만인 채널은 판단하지 않는다.
        """
        records = list(videos.values()) if isinstance(videos, dict) else list(videos)
        by_channel: dict[str, list[VideoSnapshot]] = defaultdict(list)
        for video in records:
            by_channel[video.channel_id].append(video)

        entries: list[AboveAverageEntry] = []
        for channel_videos in by_channel.values():
            others_count = len(channel_videos) - 1
            if others_count < self.policy.above_average_min_sample:
                continue
            total = sum(v.view_count for v in channel_videos)
            for video in channel_videos:
                mean = (total - video.view_count) / others_count
                if mean <= 0:
                    continue
                if video.view_count <= self.policy.above_average_min_views:
                    continue
                if video.view_count <= self.policy.above_average_multiplier * mean:
                    continue
                entries.append(
                    AboveAverageEntry(
                        video_id=video.video_id,
                        channel_id=video.channel_id,
                        title=video.title,
                        view_count=video.view_count,
                        channel_mean=round(mean, 2),
                        uplift=round(video.view_count / mean, 2),
                        sample_size=others_count,
                    )
                )
        return sorted(entries, key=lambda e: (-e.uplift, e.video_id))


def _compare_spikes(left: SpikeEntry, right: SpikeEntry) -> int:
    if left.rate <= 0 and right.rate <= 0:
        primary = right.views_per_hour - left.views_per_hour
    else:
        primary = right.rate - left.rate
    if primary > 0:
        return 1
    if primary < 0:
        return -1
    return (left.video_id > right.video_id) - (left.video_id < right.video_id)
