"""TMDb (canonical catalog) client: external-id lookup and title search."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from kinoreview.common.errors import RemoteError
from kinoreview.common.http import HttpClient
from kinoreview.common.models import CanonicalMedia, MediaKind


@dataclass(frozen=True)
class FindResult:
    movie: CanonicalMedia | None = None
    series: CanonicalMedia | None = None

    @property
    def empty(self) -> bool:
        return self.movie is None and self.series is None


def _first(results: Any) -> dict | None:
    if not isinstance(results, list) or not results:
        return None
    head = results[0]
    return head if isinstance(head, dict) and "id" in head else None


class TmdbClient:
    def __init__(
        self,
        http_client: HttpClient,
        base_url: str,
        api_key: str,
        *,
        language: str | None = None,
    ) -> None:
        self.http = http_client
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.language = language

    def _params(self, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {"api_key": self.api_key}
        if self.language:
            params["language"] = self.language
        if extra:
            params.update({k: v for k, v in extra.items() if v is not None})
        return params

    def _get(self, path: str, params: dict[str, Any] | None = None) -> dict:
        payload = self.http.get_json(f"{self.base_url}{path}", params=self._params(params))
        if not isinstance(payload, dict):
            raise RemoteError(f"Unexpected TMDb payload for {path}")
        return payload

    def find_by_external_id(self, cross_ref_id: str) -> FindResult:
        payload = self._get(f"/find/{cross_ref_id}", {"external_source": "imdb_id"})
        movie = _first(payload.get("movie_results"))
        series = _first(payload.get("tv_results"))
        return FindResult(
            movie=CanonicalMedia.from_tmdb(movie, MediaKind.MOVIE, cross_ref_id=cross_ref_id) if movie else None,
            series=CanonicalMedia.from_tmdb(series, MediaKind.TV, cross_ref_id=cross_ref_id) if series else None,
        )

    def search_title(self, title: str, year: int | None, kind: MediaKind) -> list[CanonicalMedia]:
        if kind is MediaKind.MOVIE:
            payload = self._get("/search/movie", {"query": title, "year": year})
        else:
            payload = self._get("/search/tv", {"query": title, "first_air_date_year": year})
        results = payload.get("results") or []
        return [CanonicalMedia.from_tmdb(item, kind) for item in results if isinstance(item, dict) and "id" in item]
