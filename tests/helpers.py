from datetime import datetime, timedelta, timezone

from content.application.port.platform_client_port import PlatformClientPort
from content.domain.channel import ChannelSnapshot
from content.domain.video import VideoSnapshot
from content.infrastructure.client.rate_limited_fetcher import RateLimitedFetcher
from content.infrastructure.client.rate_limiter import IntervalGate

T0 = datetime(2025, 3, 1, 3, 0, tzinfo=timezone.utc)


class FakeClient(PlatformClientPort):
    platform = "fake"

    def __init__(self, provider: "FakeProvider", credential):
        self.provider = provider
        self.credential = credential

    def _maybe_fail(self, method: str, ids=()):
        self.provider.calls.append((method, self.credential.api_key, tuple(ids)))
        queued = self.provider.key_failures.get(self.credential.api_key)
        if queued:
            raise queued.pop(0)
        for item_id in ids:
            if item_id in self.provider.id_failures:
                raise self.provider.id_failures[item_id]

    def fetch_channels(self, channel_ids):
        self._maybe_fail("channels", channel_ids)
        return [self.provider.channels[i] for i in channel_ids if i in self.provider.channels]

    def fetch_videos(self, video_ids):
        self._maybe_fail("videos", video_ids)
        return [self.provider.videos[i] for i in video_ids if i in self.provider.videos]

    def fetch_playlist_items(self, playlist_id, max_results=10):
        self._maybe_fail("playlist_items", [playlist_id])
        return list(self.provider.playlists.get(playlist_id, []))[:max_results]

    def search(self, query, options):
        self._maybe_fail("search", [query])
        return list(self.provider.search_results.get(query, []))

    def fetch_channel_by_handle(self, handle):
        self._maybe_fail("handle", [handle])
        channel_id = self.provider.handles.get(handle.lstrip("@"))
        return self.provider.channels.get(channel_id) if channel_id else None

    def search_channels(self, query, options):
        self._maybe_fail("search_channels", [query])
        return list(self.provider.channel_search_results.get(query, []))


class FakeProvider:
    """키별 FakeClient 를 만들어 주는 client_factory. 호출 기록과 실패 주입을 공유한다."""

    def __init__(
        self,
        channels=None,
        videos=None,
        playlists=None,
        search_results=None,
        handles=None,
        channel_search_results=None,
    ):
        self.channels = {c.identity: c for c in (channels or [])}
        self.videos = {v.identity: v for v in (videos or [])}
        self.playlists = playlists or {}
        self.search_results = search_results or {}
        self.handles = handles or {}
        self.channel_search_results = channel_search_results or {}
        self.key_failures: dict[str, list[Exception]] = {}
        self.id_failures: dict[str, Exception] = {}
        self.calls: list[tuple] = []

    def __call__(self, credential) -> FakeClient:
        return FakeClient(self, credential)

    def calls_for(self, method: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == method]


def make_channel(
    channel_id, views=1000, subscribers=100, videos=10, fetched_at=T0, uploads=None, title=None, description=None
):
    return ChannelSnapshot(
        channel_id=channel_id,
        title=title or f"Channel {channel_id}",
        subscriber_count=subscribers,
        view_count=views,
        video_count=videos,
        uploads_playlist_id=uploads,
        last_fetched=fetched_at,
        description=description,
    )


def make_video(video_id, channel_id="UC1", views=100, duration=45, fetched_at=T0, published_at=None, title=None):
    video = VideoSnapshot(
        video_id=video_id,
        channel_id=channel_id,
        title=title or f"Video {video_id}",
        published_at=published_at or (T0 - timedelta(hours=10)),
        duration_seconds=duration,
        view_count=views,
        last_fetched=fetched_at,
    )
    return video.reclassify()


def make_fetcher(pool, provider, **kwargs):
    kwargs.setdefault("gate", IntervalGate(0))
    kwargs.setdefault("transient_wait_seconds", 0)
    return RateLimitedFetcher(pool, provider, **kwargs)


