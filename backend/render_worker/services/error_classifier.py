"""
Error Classifier - Classify pipeline errors for failure reports and logs
"""

from typing import Any, Dict

import httpx

from render_worker.services.media_fetcher import FetchError
from render_worker.services.storage_publisher import PublishError
from render_worker.services.video_renderer import FFmpegError


class ErrorClassifier:
    """
    Classify errors into a code, a human-readable message and a retry hint

    The worker never retries; the hint only tells whoever re-queues failed
    jobs whether trying again could help.
    """

    # Error codes
    ERROR_NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    ERROR_NETWORK_ERROR = "NETWORK_ERROR"
    ERROR_SOURCE_NOT_FOUND = "SOURCE_NOT_FOUND"
    ERROR_SOURCE_HTTP = "SOURCE_HTTP_ERROR"
    ERROR_TOO_MANY_REDIRECTS = "TOO_MANY_REDIRECTS"
    ERROR_STORAGE_AUTH = "STORAGE_AUTH"
    ERROR_STORAGE_REJECTED = "STORAGE_REJECTED"
    ERROR_STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    ERROR_UNKNOWN = "UNKNOWN_ERROR"

    def classify(self, error: Exception) -> Dict[str, Any]:
        """
        Classify error

        Args:
            error: Exception raised by a pipeline stage

        Returns:
            Dict with code, message, classification, retryable
        """
        cause = error.__cause__ if isinstance(error.__cause__, Exception) else None

        if isinstance(error, FetchError):
            if isinstance(cause, httpx.TimeoutException):
                return self._result(self.ERROR_NETWORK_TIMEOUT, error.message, True)
            if isinstance(cause, httpx.HTTPError):
                return self._result(self.ERROR_NETWORK_ERROR, error.message, True)
            if error.message.startswith("Too many redirects"):
                return self._result(self.ERROR_TOO_MANY_REDIRECTS, error.message, False)
            if error.status_code in (404, 410):
                return self._result(self.ERROR_SOURCE_NOT_FOUND, error.message, False)
            if error.status_code is not None and error.status_code >= 500:
                return self._result(self.ERROR_SOURCE_HTTP, error.message, True)
            return self._result(self.ERROR_SOURCE_HTTP, error.message, False)

        if isinstance(error, FFmpegError):
            return self._result(error.code, error.message, False)

        if isinstance(error, PublishError):
            status = error.status_code
            if isinstance(cause, httpx.HTTPError):
                return self._result(self.ERROR_NETWORK_ERROR, error.message, True)
            if status in (401, 403):
                return self._result(self.ERROR_STORAGE_AUTH, error.message, False)
            if status is not None and status >= 500:
                return self._result(self.ERROR_STORAGE_UNAVAILABLE, error.message, True)
            return self._result(self.ERROR_STORAGE_REJECTED, error.message, False)

        if isinstance(error, httpx.TimeoutException):
            return self._result(self.ERROR_NETWORK_TIMEOUT, f"Network timeout: {error}", True)

        if isinstance(error, httpx.HTTPError):
            return self._result(self.ERROR_NETWORK_ERROR, f"Network error: {error}", True)

        # Default - unknown error
        return self._result(
            self.ERROR_UNKNOWN,
            f"An unexpected error occurred: {type(error).__name__}: {error}",
            False,
        )

    @staticmethod
    def _result(code: str, message: str, retryable: bool) -> Dict[str, Any]:
        return {
            "code": code,
            "message": message,
            "classification": "retryable" if retryable else "non_retryable",
            "retryable": retryable,
        }
