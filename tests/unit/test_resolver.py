from __future__ import annotations

import pytest

from kinoreview.catalogs.tmdb import FindResult
from kinoreview.common.errors import NoMatchError, NotFoundError, TransportError
from kinoreview.common.http import RetryableHttpError
from kinoreview.common.models import CanonicalMedia, CatalogRecord, MediaKind
from kinoreview.pipeline.resolver import MediaResolver, Step, find_media_by_source_id


def _media(canonical_id: int, kind: MediaKind = MediaKind.MOVIE, title: str = "X") -> CanonicalMedia:
    return CanonicalMedia(canonical_id=canonical_id, kind=kind, title=title, original_title=title)


class FakeKinopoisk:
    def __init__(self, records: dict[int, object]):
        self.records = records
        self.detail_calls: list[int] = []

    def fetch_rating_detail(self, source_id: int) -> CatalogRecord:
        self.detail_calls.append(source_id)
        outcome = self.records[source_id]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeTmdb:
    def __init__(self, found: dict[str, object] | None = None, search: dict[str, object] | None = None):
        self.found = found or {}
        self.search = search or {}
        self.find_calls: list[str] = []
        self.search_calls: list[tuple[str, int | None, MediaKind]] = []

    def find_by_external_id(self, cross_ref_id: str) -> FindResult:
        self.find_calls.append(cross_ref_id)
        outcome = self.found.get(cross_ref_id, FindResult())
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def search_title(self, title: str, year: int | None, kind: MediaKind) -> list[CanonicalMedia]:
        self.search_calls.append((title, year, kind))
        outcome = self.search.get(title, [])
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _record(source_id, cross_ref_id=None, title=None, original_title=None, year=None, type_tag="FILM"):
    return CatalogRecord(
        source_id=source_id,
        cross_ref_id=cross_ref_id,
        title=title,
        original_title=original_title,
        year=year,
        type_tag=type_tag,
    )


def test_direct_lookup_returns_match_without_search():
    kinopoisk = FakeKinopoisk({100: _record(100, "tt0100", title="X", year=2001)})
    tmdb = FakeTmdb(found={"tt0100": FindResult(movie=_media(55))})

    resolution = MediaResolver(kinopoisk, tmdb).resolve(100)

    assert resolution.ok
    assert resolution.media.canonical_id == 55
    assert resolution.media.kind is MediaKind.MOVIE
    assert resolution.media.source_id == 100
    assert resolution.media.cross_ref_id == "tt0100"
    assert resolution.steps == (Step.CROSS_REF, Step.DIRECT_LOOKUP)
    assert tmdb.search_calls == []


def test_movie_slot_wins_when_both_slots_populated():
    kinopoisk = FakeKinopoisk({1: _record(1, "tt1", title="Both")})
    tmdb = FakeTmdb(found={"tt1": FindResult(movie=_media(10), series=_media(20, MediaKind.TV))})

    media = MediaResolver(kinopoisk, tmdb).resolve(1).media

    assert media.canonical_id == 10
    assert media.kind is MediaKind.MOVIE


def test_series_slot_used_when_only_series_present():
    kinopoisk = FakeKinopoisk({1: _record(1, "tt1", title="Show", type_tag="TV_SERIES")})
    tmdb = FakeTmdb(found={"tt1": FindResult(series=_media(20, MediaKind.TV))})

    media = MediaResolver(kinopoisk, tmdb).resolve(1).media

    assert media.kind is MediaKind.TV


def test_missing_cross_reference_skips_find_and_searches_original_title():
    kinopoisk = FakeKinopoisk({2: _record(2, title="Игрек", original_title="Y", year=1999, type_tag="FILM")})
    tmdb = FakeTmdb(search={"Y": [_media(77, title="Y"), _media(88, title="Y")]})

    resolution = MediaResolver(kinopoisk, tmdb).resolve(2)

    assert tmdb.find_calls == []
    assert tmdb.search_calls == [("Y", 1999, MediaKind.MOVIE)]
    assert resolution.media.canonical_id == 77
    assert resolution.fallback_trigger == "NO_CROSS_REFERENCE"
    assert resolution.steps == (Step.CROSS_REF, Step.FALLBACK)


def test_fallback_uses_localized_title_when_original_absent():
    kinopoisk = FakeKinopoisk({3: _record(3, title="Брат", original_title=None, year=1997, type_tag="TV_SERIES")})
    tmdb = FakeTmdb(search={"Брат": [_media(9, MediaKind.TV, "Brother")]})

    resolution = MediaResolver(kinopoisk, tmdb).resolve(3)

    assert tmdb.search_calls == [("Брат", 1997, MediaKind.TV)]
    assert resolution.media.kind is MediaKind.TV


def test_direct_lookup_miss_falls_back_to_search():
    kinopoisk = FakeKinopoisk({4: _record(4, "tt-stale", original_title="Z", year=2010)})
    tmdb = FakeTmdb(search={"Z": [_media(31, title="Z")]})

    resolution = MediaResolver(kinopoisk, tmdb).resolve(4)

    assert tmdb.find_calls == ["tt-stale"]
    assert resolution.media.canonical_id == 31
    assert resolution.fallback_trigger == "NO_DIRECT_MATCH"
    assert resolution.steps == (Step.CROSS_REF, Step.DIRECT_LOOKUP, Step.FALLBACK)
    assert kinopoisk.detail_calls == [4]


def test_detail_transport_failure_is_terminal():
    kinopoisk = FakeKinopoisk({5: RetryableHttpError("down", status_code=503)})
    tmdb = FakeTmdb()

    resolution = MediaResolver(kinopoisk, tmdb).resolve(5)

    assert not resolution.ok
    assert isinstance(resolution.error, TransportError)
    assert tmdb.find_calls == []
    assert tmdb.search_calls == []


def test_detail_not_found_is_reported_as_transport_failure():
    kinopoisk = FakeKinopoisk({6: NotFoundError("gone")})

    resolution = MediaResolver(kinopoisk, FakeTmdb()).resolve(6)

    assert resolution.error_code == TransportError.error_code
    assert "NOT_FOUND" in resolution.reason


def test_find_transport_failure_does_not_fall_back():
    kinopoisk = FakeKinopoisk({7: _record(7, "tt7", original_title="Seven")})
    tmdb = FakeTmdb(found={"tt7": RetryableHttpError("down", status_code=502)}, search={"Seven": [_media(1)]})

    resolution = MediaResolver(kinopoisk, tmdb).resolve(7)

    assert not resolution.ok
    assert tmdb.search_calls == []


def test_no_usable_title_is_no_match():
    kinopoisk = FakeKinopoisk({8: _record(8)})

    resolution = MediaResolver(kinopoisk, FakeTmdb()).resolve(8)

    assert resolution.error_code == NoMatchError.error_code


def test_empty_search_is_no_match_with_title():
    kinopoisk = FakeKinopoisk({9: _record(9, original_title="Nothing", year=2020)})

    resolution = MediaResolver(kinopoisk, FakeTmdb()).resolve(9)

    assert resolution.error_code == NoMatchError.error_code
    assert resolution.error.title == "Nothing"
    assert resolution.error.source_id == 9
    assert "Nothing" in resolution.reason


def test_resolution_is_idempotent_for_unchanged_remote():
    kinopoisk = FakeKinopoisk({2: _record(2, original_title="Y", year=1999)})
    tmdb = FakeTmdb(search={"Y": [_media(77), _media(88)]})
    resolver = MediaResolver(kinopoisk, tmdb)

    first = resolver.resolve(2)
    second = resolver.resolve(2)

    assert first.media.canonical_id == second.media.canonical_id == 77
    assert first.media is not second.media


def test_find_media_by_source_id_raises_typed_failure():
    kinopoisk = FakeKinopoisk({9: _record(9, original_title="Nothing")})

    with pytest.raises(NoMatchError):
        find_media_by_source_id(MediaResolver(kinopoisk, FakeTmdb()), 9)
