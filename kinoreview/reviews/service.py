"""Review service collaborator: the contract and its HTTP adapter."""

from __future__ import annotations

from typing import Protocol

from kinoreview.common.errors import ReviewRejectedError, ReviewUnauthorizedError
from kinoreview.common.http import HttpClient, HttpRequestError, InvalidPayloadError, RetryableHttpError
from kinoreview.common.models import ReviewRef, ReviewRequest


class ReviewService(Protocol):
    def create_review(self, request: ReviewRequest) -> ReviewRef:
        """Store one review; raise a ReviewServiceError or TransportError on failure."""


class HttpReviewService:
    """Posts reviews to the media-tracker review API.

    The service owns the one-review-per-author-per-media constraint; a
    duplicate comes back as a 4xx and is reported like any other rejection.
    """

    def __init__(self, http_client: HttpClient, base_url: str, *, token: str | None = None) -> None:
        self.http = http_client
        self.base_url = base_url.rstrip("/")
        self.token = token

    def _headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def create_review(self, request: ReviewRequest) -> ReviewRef:
        url = f"{self.base_url}/api/review/create"
        try:
            payload = self.http.post_json(url, request.to_payload(), headers=self._headers())
        except HttpRequestError as exc:
            if isinstance(exc, RetryableHttpError) or exc.status_code is None or exc.status_code < 400:
                raise
            if exc.status_code in (401, 403):
                raise ReviewUnauthorizedError(f"Review service refused credentials: HTTP {exc.status_code}") from exc
            detail = (exc.body or "").strip()[:200]
            message = f"Review service rejected review: HTTP {exc.status_code}"
            raise ReviewRejectedError(f"{message} {detail}".strip()) from exc
        except InvalidPayloadError:
            # stored, but the body is unreadable; echo the request back
            payload = {}
        return ReviewRef.from_payload(payload if isinstance(payload, dict) else {}, request)
