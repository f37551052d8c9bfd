"""Kinopoisk (source catalog) client: user votes and title details."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kinoreview.common.constants import SOURCE_CATALOG
from kinoreview.common.errors import NotFoundError, RemoteError, TransportError
from kinoreview.common.http import HttpClient, HttpRequestError, RetryableHttpError
from kinoreview.common.logging import get_logger, log_event
from kinoreview.common.models import CatalogRecord, RawRating


@dataclass(frozen=True)
class RatingsPage:
    items: list[RawRating]
    total_pages: int


def _parse_total_pages(payload: dict) -> int:
    value = payload.get("totalPages")
    if value is None:
        return 1
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise RemoteError(f"Invalid totalPages in votes envelope: {value!r}") from exc


class KinopoiskClient:
    def __init__(self, http_client: HttpClient, base_url: str, *, logger: logging.Logger | None = None) -> None:
        self.http = http_client
        self.base_url = base_url.rstrip("/")
        self.logger = logger or get_logger(SOURCE_CATALOG)

    def fetch_ratings_page(self, user_id: str, page: int) -> RatingsPage:
        url = f"{self.base_url}/api/v1/kp_users/{user_id}/votes"
        try:
            payload = self.http.get_json(url, params={"page": page})
        except TransportError as exc:
            raise RemoteError(f"Failed to fetch votes page {page} for user {user_id}: {exc}") from exc

        if not isinstance(payload, dict) or not isinstance(payload.get("items"), list):
            raise RemoteError(f"Unexpected votes envelope for user {user_id}, page {page}")

        items: list[RawRating] = []
        for entry in payload["items"]:
            try:
                items.append(RawRating.from_payload(entry))
            except (ValueError, AttributeError):
                log_event(
                    self.logger,
                    f"skipping malformed vote entry on page {page}",
                    level=logging.WARNING,
                    source=SOURCE_CATALOG,
                    event="VOTE_SKIPPED",
                    status="warning",
                )
        return RatingsPage(items=items, total_pages=_parse_total_pages(payload))

    def fetch_rating_detail(self, source_id: int) -> CatalogRecord:
        url = f"{self.base_url}/api/v2.2/films/{source_id}"
        try:
            payload = self.http.get_json(url)
        except HttpRequestError as exc:
            if not isinstance(exc, RetryableHttpError) and exc.status_code is not None and 400 <= exc.status_code < 500:
                raise NotFoundError(f"Kinopoisk title {source_id} not available: HTTP {exc.status_code}") from exc
            raise
        if not isinstance(payload, dict):
            raise RemoteError(f"Unexpected detail payload for Kinopoisk title {source_id}")
        return CatalogRecord.from_payload(source_id, payload)
