import json
from unittest.mock import MagicMock

import httplib2
import pytest
from googleapiclient.errors import HttpError

from config.settings import YouTubeSettings
from content.application.port.platform_client_port import SearchOptions
from content.domain.exceptions import AuthError, ProviderError, QuotaExceededError, TransientProviderError
from content.infrastructure.client.youtube_client import YouTubeClient, classify_http_error
from helpers import T0


def http_error(status: int, reason: str | None = None) -> HttpError:
    body = {"error": {"code": status, "message": "error", "errors": [{"reason": reason}] if reason else []}}
    return HttpError(httplib2.Response({"status": status}), json.dumps(body).encode("utf-8"))


@pytest.mark.parametrize(
    "status,reason,expected",
    [
        (403, "quotaExceeded", QuotaExceededError),
        (403, "dailyLimitExceeded", QuotaExceededError),
        (429, None, QuotaExceededError),
        (403, "rateLimitExceeded", QuotaExceededError),
        (400, "keyInvalid", AuthError),
        (401, None, AuthError),
        (403, "forbidden", AuthError),
        (500, "backendError", TransientProviderError),
        (503, None, TransientProviderError),
        (404, "videoNotFound", ProviderError),
        (400, "badRequest", ProviderError),
    ],
)
def test_classify_http_error(status, reason, expected):
    error = classify_http_error(http_error(status, reason))
    assert type(error) is expected
    assert error.status == status
    assert error.reason == reason


def test_non_json_error_body_has_no_reason():
    error = classify_http_error(HttpError(httplib2.Response({"status": 502}), b"<html>bad gateway</html>"))
    assert isinstance(error, TransientProviderError)
    assert error.reason is None


def make_client(service) -> YouTubeClient:
    settings = YouTubeSettings(key_source=lambda: ["test-key"], quota_user=None)
    return YouTubeClient("test-key", settings=settings, service=service)


def test_fetch_videos_normalizes_and_classifies():
    service = MagicMock()
    service.videos.return_value.list.return_value.execute.return_value = {
        "items": [
            {
                "id": "v1",
                "snippet": {
                    "channelId": "UC1",
                    "title": "국회 현장 #shorts",
                    "publishedAt": "2025-03-01T01:00:00Z",
                    "thumbnails": {"high": {"url": "https://img/v1.jpg", "width": 480, "height": 360}},
                },
                "statistics": {"viewCount": "1200", "likeCount": "30"},
                "contentDetails": {"duration": "PT1M15S"},
            }
        ]
    }
    [video] = make_client(service).fetch_videos(["v1"])

    assert video.duration_seconds == 75
    assert video.is_short
    assert video.view_count == 1200
    assert video.comment_count == 0
    assert video.thumbnail_width == 480
    assert video.last_fetched is not None


def test_fetch_channels_reads_uploads_playlist():
    service = MagicMock()
    service.channels.return_value.list.return_value.execute.return_value = {
        "items": [
            {
                "id": "UC1",
                "snippet": {"title": "정치 채널"},
                "statistics": {"subscriberCount": "10", "viewCount": "999", "videoCount": "3"},
                "contentDetails": {"relatedPlaylists": {"uploads": "UU1"}},
            }
        ]
    }
    [channel] = make_client(service).fetch_channels(["UC1"])
    assert channel.uploads_playlist_id == "UU1"
    assert channel.view_count == 999


def test_search_passes_korean_region_options():
    service = MagicMock()
    service.search.return_value.list.return_value.execute.return_value = {
        "items": [
            {"id": {"kind": "youtube#video", "videoId": "v1"}},
            {"id": {"kind": "youtube#channel", "channelId": "UC1"}},
        ]
    }
    options = SearchOptions(max_results=80, published_after=T0)
    assert make_client(service).search("정치 shorts", options) == ["v1"]

    kwargs = service.search.return_value.list.call_args.kwargs
    assert kwargs["regionCode"] == "KR"
    assert kwargs["relevanceLanguage"] == "ko"
    assert kwargs["maxResults"] == 50
    assert kwargs["publishedAfter"] == "2025-03-01T03:00:00Z"


def test_http_error_is_raised_as_provider_error():
    service = MagicMock()
    service.playlistItems.return_value.list.return_value.execute.side_effect = http_error(403, "quotaExceeded")
    with pytest.raises(QuotaExceededError):
        make_client(service).fetch_playlist_items("UU1")


def test_connection_error_is_transient():
    service = MagicMock()
    service.videos.return_value.list.return_value.execute.side_effect = ConnectionError("reset")
    with pytest.raises(TransientProviderError):
        make_client(service).fetch_videos(["v1"])


def test_fetch_channel_by_handle_uses_for_handle():
    service = MagicMock()
    service.channels.return_value.list.return_value.execute.return_value = {
        "items": [
            {
                "id": "UC7",
                "snippet": {"title": "정치랑", "description": "매일 정치 뉴스"},
                "statistics": {"subscriberCount": "5", "viewCount": "50", "videoCount": "1"},
            }
        ]
    }
    channel = make_client(service).fetch_channel_by_handle("정치랑")

    assert channel.channel_id == "UC7"
    assert channel.description == "매일 정치 뉴스"
    assert service.channels.return_value.list.call_args.kwargs["forHandle"] == "@정치랑"


def test_fetch_channel_by_unknown_handle_returns_none():
    service = MagicMock()
    service.channels.return_value.list.return_value.execute.return_value = {"pageInfo": {"totalResults": 0}}
    assert make_client(service).fetch_channel_by_handle("@없는채널") is None


def test_search_channels_returns_unique_uploaders():
    service = MagicMock()
    service.search.return_value.list.return_value.execute.return_value = {
        "items": [
            {"id": {"kind": "youtube#video", "videoId": "v1"}, "snippet": {"channelId": "UC1"}},
            {"id": {"kind": "youtube#video", "videoId": "v2"}, "snippet": {"channelId": "UC2"}},
            {"id": {"kind": "youtube#video", "videoId": "v3"}, "snippet": {"channelId": "UC1"}},
        ]
    }
    options = SearchOptions(order="viewCount")
    assert make_client(service).search_channels("국회", options) == ["UC1", "UC2"]

    kwargs = service.search.return_value.list.call_args.kwargs
    assert kwargs["part"] == "snippet"
    assert kwargs["type"] == "video"
    assert kwargs["order"] == "viewCount"
