from __future__ import annotations

import pytest

from kinoreview.common.errors import ReviewRejectedError, ReviewUnauthorizedError, TransportError
from kinoreview.common.http import HttpRequestError, InvalidPayloadError, RetryableHttpError
from kinoreview.common.models import MediaKind, ReviewRequest
from kinoreview.reviews.service import HttpReviewService

REQUEST = ReviewRequest(
    author_id="user-1",
    author_name="Ann",
    content="Imported from Kinopoisk",
    rating=8,
    reference_id="55",
    reference_type=MediaKind.MOVIE,
)


class FakeHttpClient:
    def __init__(self, outcome):
        self.outcome = outcome
        self.calls: list[tuple[str, dict, dict]] = []

    def post_json(self, url: str, payload, **kwargs):
        self.calls.append((url, payload, kwargs))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_create_review_posts_payload_with_bearer_token():
    http = FakeHttpClient({"authorId": "user-1", "content": "Imported from Kinopoisk", "rating": 8, "referenceId": "55", "referenceType": "Movie"})
    service = HttpReviewService(http, "https://reviews.test/", token="t0k")

    ref = service.create_review(REQUEST)

    url, payload, kwargs = http.calls[0]
    assert url == "https://reviews.test/api/review/create"
    assert payload["referenceType"] == "Movie"
    assert kwargs["headers"] == {"Authorization": "Bearer t0k"}
    assert ref.reference_id == "55"
    assert ref.reference_type is MediaKind.MOVIE


def test_create_review_maps_auth_failures():
    service = HttpReviewService(FakeHttpClient(HttpRequestError("nope", status_code=401)), "https://reviews.test")

    with pytest.raises(ReviewUnauthorizedError):
        service.create_review(REQUEST)


def test_create_review_maps_duplicate_to_rejection():
    error = HttpRequestError("bad", status_code=400, body='["Review already exists"]')
    service = HttpReviewService(FakeHttpClient(error), "https://reviews.test")

    with pytest.raises(ReviewRejectedError) as exc_info:
        service.create_review(REQUEST)

    assert "Review already exists" in str(exc_info.value)


def test_create_review_leaves_transport_errors_alone():
    service = HttpReviewService(FakeHttpClient(RetryableHttpError("down", status_code=503)), "https://reviews.test")

    with pytest.raises(TransportError):
        service.create_review(REQUEST)


def test_create_review_with_unreadable_success_body_counts_as_created():
    service = HttpReviewService(FakeHttpClient(InvalidPayloadError("empty body", status_code=201)), "https://reviews.test")

    ref = service.create_review(REQUEST)

    assert ref.reference_id == "55"
    assert ref.reference_type is MediaKind.MOVIE
    assert ref.author_id == "user-1"
