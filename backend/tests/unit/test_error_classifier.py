"""
Unit Tests for ErrorClassifier
"""

import httpx

from render_worker.services.error_classifier import ErrorClassifier
from render_worker.services.media_fetcher import FetchError
from render_worker.services.storage_publisher import PublishError
from render_worker.services.video_renderer import FFmpegError


def _request():
    return httpx.Request("GET", "https://cdn.example.com/a.jpg")


def _chained(error, cause):
    try:
        raise error from cause
    except Exception as e:
        return e


def test_classify_fetch_timeout():
    classifier = ErrorClassifier()
    error = _chained(
        FetchError("Download failed: ReadTimeout: timeout", "https://cdn.example.com/a.jpg"),
        httpx.ReadTimeout("timeout", request=_request()),
    )

    result = classifier.classify(error)

    assert result["code"] == classifier.ERROR_NETWORK_TIMEOUT
    assert result["retryable"] is True
    assert result["message"] == "Download failed: ReadTimeout: timeout"


def test_classify_fetch_network_error():
    classifier = ErrorClassifier()
    error = _chained(
        FetchError("Download failed: ConnectError: refused", "https://cdn.example.com/a.jpg"),
        httpx.ConnectError("refused", request=_request()),
    )

    result = classifier.classify(error)

    assert result["code"] == classifier.ERROR_NETWORK_ERROR
    assert result["classification"] == "retryable"


def test_classify_fetch_status_codes():
    classifier = ErrorClassifier()
    url = "https://cdn.example.com/a.jpg"

    result_404 = classifier.classify(FetchError("Download failed: HTTP 404", url, 404))
    assert result_404["code"] == classifier.ERROR_SOURCE_NOT_FOUND
    assert result_404["retryable"] is False

    result_503 = classifier.classify(FetchError("Download failed: HTTP 503", url, 503))
    assert result_503["code"] == classifier.ERROR_SOURCE_HTTP
    assert result_503["retryable"] is True

    result_403 = classifier.classify(FetchError("Download failed: HTTP 403", url, 403))
    assert result_403["code"] == classifier.ERROR_SOURCE_HTTP
    assert result_403["retryable"] is False


def test_classify_too_many_redirects():
    classifier = ErrorClassifier()

    result = classifier.classify(FetchError("Too many redirects (max 5)", "https://x", 302))

    assert result["code"] == classifier.ERROR_TOO_MANY_REDIRECTS
    assert result["retryable"] is False


def test_classify_ffmpeg_error_keeps_code():
    classifier = ErrorClassifier()
    error = FFmpegError("FFmpeg exited with code 1: bad input", "RENDER_FAILED")

    result = classifier.classify(error)

    assert result["code"] == "RENDER_FAILED"
    assert result["message"] == "FFmpeg exited with code 1: bad input"
    assert result["classification"] == "non_retryable"


def test_classify_publish_errors():
    classifier = ErrorClassifier()

    auth = classifier.classify(PublishError("Upload failed: 403 - denied", status_code=403))
    assert auth["code"] == classifier.ERROR_STORAGE_AUTH
    assert auth["retryable"] is False

    unavailable = classifier.classify(PublishError("Upload failed: 502 - bad gateway", status_code=502))
    assert unavailable["code"] == classifier.ERROR_STORAGE_UNAVAILABLE
    assert unavailable["retryable"] is True

    rejected = classifier.classify(PublishError("Upload failed: 413 - too large", status_code=413))
    assert rejected["code"] == classifier.ERROR_STORAGE_REJECTED


def test_classify_raw_httpx_errors():
    classifier = ErrorClassifier()

    timeout = classifier.classify(httpx.ConnectTimeout("timeout", request=_request()))
    assert timeout["code"] == classifier.ERROR_NETWORK_TIMEOUT

    network = classifier.classify(httpx.NetworkError("network", request=_request()))
    assert network["code"] == classifier.ERROR_NETWORK_ERROR


def test_classify_unknown_error():
    classifier = ErrorClassifier()

    result = classifier.classify(ValueError("Unexpected error"))

    assert result["code"] == classifier.ERROR_UNKNOWN
    assert "ValueError: Unexpected error" in result["message"]
    assert result["retryable"] is False
