import json
import logging
from typing import List, Optional

import httplib2
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from config.settings import YouTubeSettings
from content.application.port.platform_client_port import PlatformClientPort, SearchOptions
from content.domain.channel import ChannelSnapshot, as_int
from content.domain.credential import Credential
from content.domain.exceptions import AuthError, ProviderError, QuotaExceededError, TransientProviderError
from content.domain.short_form_classifier import ShortFormRules, parse_duration
from content.domain.time_utils import format_datetime, parse_datetime, utcnow
from content.domain.video import VideoSnapshot

logger = logging.getLogger(__name__)

QUOTA_REASONS = {"quotaExceeded", "rateLimitExceeded", "dailyLimitExceeded", "userRateLimitExceeded"}
AUTH_REASONS = {"keyInvalid", "keyExpired", "forbidden", "accessNotConfigured", "ipRefererBlocked", "API_KEY_INVALID"}
THUMBNAIL_PREFERENCE = ("maxres", "standard", "high", "medium", "default")


def parse_http_error_reason(exc: HttpError) -> str | None:
    """HttpError 본문의 error.errors[0].reason 을 꺼낸다. 본문이 JSON 이 아니면 None."""
    try:
        payload = json.loads(exc.content.decode("utf-8") if isinstance(exc.content, bytes) else exc.content)
        error = payload.get("error", {})
        errors = error.get("errors") or []
        if errors:
            return errors[0].get("reason")
        details = error.get("details") or []
        if details:
            return details[0].get("reason")
    except (ValueError, AttributeError, TypeError):
        return None
    return None


def classify_http_error(exc: HttpError) -> ProviderError:
    status = int(getattr(exc.resp, "status", 0) or 0)
    reason = parse_http_error_reason(exc)
    message = f"YouTube API error {status} ({reason or 'unknown'})"

    if status in (403, 429) and (reason in QUOTA_REASONS or status == 429):
        return QuotaExceededError(message, status=status, reason=reason)
    if status == 401 or (status in (400, 403) and reason in AUTH_REASONS):
        return AuthError(message, status=status, reason=reason)
    if status >= 500:
        return TransientProviderError(message, status=status, reason=reason)
    return ProviderError(message, status=status, reason=reason)


class YouTubeClient(PlatformClientPort):
    """
    하나의 API 키에 묶인 YouTube Data API v3 클라이언트.
    응답은 이 경계에서 한 번만 엄격한 스냅샷 스키마로 정규화된다.
    """
    platform = "youtube"

    def __init__(
        self,
        api_key: str,
        settings: YouTubeSettings | None = None,
        rules: ShortFormRules | None = None,
        service=None,
    ):
        self.settings = settings or YouTubeSettings()
        self.rules = rules
        self.service = service or build(
            "youtube",
            "v3",
            developerKey=api_key,
            cache_discovery=False,
        )

    def _execute(self, request) -> dict:
        try:
            return request.execute()
        except HttpError as exc:
            error = classify_http_error(exc)
            logger.debug("[FETCH] YouTube HttpError classified as %s: %s", type(error).__name__, error)
            raise error from exc
        except (TimeoutError, ConnectionError, httplib2.HttpLib2Error) as exc:
            raise TransientProviderError(f"YouTube API unreachable: {exc}") from exc

    def _common_params(self) -> dict:
        if self.settings.quota_user:
            return {"quotaUser": self.settings.quota_user}
        return {}

    def fetch_channels(self, channel_ids: List[str]) -> List[ChannelSnapshot]:
        if not channel_ids:
            return []
        response = self._execute(
            self.service.channels().list(
                part="snippet,statistics,contentDetails",
                id=",".join(channel_ids),
                maxResults=50,
                **self._common_params(),
            )
        )
        fetched_at = utcnow()
        return [self._to_channel(item, fetched_at) for item in response.get("items", [])]

    def fetch_videos(self, video_ids: List[str]) -> List[VideoSnapshot]:
        if not video_ids:
            return []
        response = self._execute(
            self.service.videos().list(
                part="snippet,contentDetails,statistics",
                id=",".join(video_ids),
                maxResults=50,
                **self._common_params(),
            )
        )
        fetched_at = utcnow()
        return [self._to_video(item, fetched_at) for item in response.get("items", [])]

    def fetch_playlist_items(self, playlist_id: str, max_results: int = 10) -> List[str]:
        response = self._execute(
            self.service.playlistItems().list(
                part="contentDetails",
                playlistId=playlist_id,
                maxResults=min(max(1, max_results), 50),
                **self._common_params(),
            )
        )
        ids: List[str] = []
        for item in response.get("items", []):
            video_id = (item.get("contentDetails") or {}).get("videoId")
            if video_id:
                ids.append(video_id)
        return ids

    def _search_params(self, query: str, options: SearchOptions, part: str) -> dict:
        params = {
            "part": part,
            "q": query,
            "type": "video",
            "order": options.order,
            "maxResults": min(max(1, options.max_results), 50),
        }
        if options.region_code:
            params["regionCode"] = options.region_code
        if options.relevance_language:
            params["relevanceLanguage"] = options.relevance_language
        if options.video_duration:
            params["videoDuration"] = options.video_duration
        if options.published_after:
            params["publishedAfter"] = format_datetime(options.published_after.replace(microsecond=0))
        params.update(self._common_params())
        return params

    def search(self, query: str, options: SearchOptions) -> List[str]:
        response = self._execute(self.service.search().list(**self._search_params(query, options, "id")))
        ids: List[str] = []
        for item in response.get("items", []):
            ident = item.get("id") or {}
            if ident.get("kind") == "youtube#video" and ident.get("videoId"):
                ids.append(ident["videoId"])
        return ids

    def search_channels(self, query: str, options: SearchOptions) -> List[str]:
        # channelId 는 snippet 에만 있다. 비용은 search 와 같다.
        response = self._execute(self.service.search().list(**self._search_params(query, options, "snippet")))
        ids: List[str] = []
        for item in response.get("items", []):
            channel_id = (item.get("snippet") or {}).get("channelId")
            if channel_id and channel_id not in ids:
                ids.append(channel_id)
        return ids

    def fetch_channel_by_handle(self, handle: str) -> Optional[ChannelSnapshot]:
        response = self._execute(
            self.service.channels().list(
                part="snippet,statistics,contentDetails",
                forHandle=handle if handle.startswith("@") else f"@{handle}",
                **self._common_params(),
            )
        )
        items = response.get("items", [])
        if not items:
            return None
        return self._to_channel(items[0], utcnow())

    @staticmethod
    def _to_channel(item: dict, fetched_at) -> ChannelSnapshot:
        snippet = item.get("snippet", {})
        stats = item.get("statistics", {})
        related = (item.get("contentDetails") or {}).get("relatedPlaylists") or {}
        return ChannelSnapshot(
            channel_id=item["id"],
            title=snippet.get("title", ""),
            subscriber_count=as_int(stats.get("subscriberCount")),
            view_count=as_int(stats.get("viewCount")),
            video_count=as_int(stats.get("videoCount")),
            thumbnail_url=_pick_thumbnail(snippet.get("thumbnails")).get("url"),
            uploads_playlist_id=related.get("uploads"),
            last_fetched=fetched_at,
            description=snippet.get("description"),
        )

    def _to_video(self, item: dict, fetched_at) -> VideoSnapshot:
        snippet = item.get("snippet", {})
        stats = item.get("statistics", {})
        content = item.get("contentDetails", {})
        thumbnail = _pick_thumbnail(snippet.get("thumbnails"))
        video = VideoSnapshot(
            video_id=item["id"],
            channel_id=snippet.get("channelId", ""),
            title=snippet.get("title", ""),
            description=snippet.get("description"),
            published_at=parse_datetime(snippet.get("publishedAt")),
            duration_seconds=parse_duration(content.get("duration")),
            view_count=as_int(stats.get("viewCount")),
            like_count=as_int(stats.get("likeCount")),
            comment_count=as_int(stats.get("commentCount")),
            thumbnail_url=thumbnail.get("url"),
            thumbnail_width=thumbnail.get("width"),
            thumbnail_height=thumbnail.get("height"),
            last_fetched=fetched_at,
        )
        return video.reclassify(self.rules)


def _pick_thumbnail(thumbnails: dict | None) -> dict:
    thumbnails = thumbnails or {}
    for name in THUMBNAIL_PREFERENCE:
        if thumbnails.get(name):
            return thumbnails[name]
    return {}


def youtube_client_factory(settings: YouTubeSettings | None = None, rules: ShortFormRules | None = None):
    settings = settings or YouTubeSettings()

    def factory(credential: Credential) -> YouTubeClient:
        return YouTubeClient(credential.api_key, settings=settings, rules=rules)

    return factory
