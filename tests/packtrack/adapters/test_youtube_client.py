"""Tests for the YouTube Data API client."""

import pytest
import requests

from packtrack.adapters import youtube_client as yt
from packtrack.core.errors import QuotaExceededError


class _Response:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = text

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


@pytest.fixture
def client():
    return yt.YouTubeClient(api_key="test-key", base_url="https://yt.example.com/v3/", timeout=2)


def test_fetch_videos_maps_snippet_and_statistics(monkeypatch, client):
    calls = []

    def fake_get(url, params, timeout):
        calls.append((url, params, timeout))
        return _Response(
            payload={
                "items": [
                    {
                        "id": "abc123",
                        "snippet": {
                            "title": "How to tile a floor",
                            "channelTitle": "Tiler",
                            "thumbnails": {
                                "default": {"url": "https://i.example.com/d.jpg"},
                                "high": {"url": "https://i.example.com/h.jpg"},
                            },
                        },
                        "statistics": {"viewCount": "1200", "likeCount": "87"},
                    }
                ]
            }
        )

    monkeypatch.setattr(yt.requests, "get", fake_get)

    result = client.fetch_videos(["abc123", "abc123", "missing"])

    url, params, timeout = calls[0]
    assert url == "https://yt.example.com/v3/videos"
    assert params["id"] == "abc123,missing"
    assert params["part"] == "snippet,statistics"
    assert timeout == 2
    meta = result["abc123"]
    assert meta.view_count == 1200
    assert meta.like_count == 87
    assert meta.channel_title == "Tiler"
    assert meta.thumbnail_url == "https://i.example.com/h.jpg"
    assert "missing" not in result


def test_fetch_videos_with_no_ids_skips_request(monkeypatch, client):
    monkeypatch.setattr(yt.requests, "get", lambda *a, **kw: pytest.fail("unexpected request"))
    assert client.fetch_videos([]) == {}


def test_quota_error_is_raised(monkeypatch, client):
    monkeypatch.setattr(
        yt.requests,
        "get",
        lambda *a, **kw: _Response(status_code=403, text='{"error": {"errors": [{"reason": "quotaExceeded"}]}}'),
    )
    with pytest.raises(QuotaExceededError):
        client.fetch_videos(["abc123"])


def test_other_http_errors_propagate(monkeypatch, client):
    monkeypatch.setattr(
        yt.requests, "get", lambda *a, **kw: _Response(status_code=500, text="backend error")
    )
    with pytest.raises(requests.HTTPError):
        client.fetch_videos(["abc123"])
