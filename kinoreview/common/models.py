"""Data models used across the import pipeline."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

MOVIE_TYPE_TAGS = frozenset({"film", "movie"})


class MediaKind(str, Enum):
    MOVIE = "movie"
    TV = "tv"

    @classmethod
    def from_type_tag(cls, type_tag: str | None) -> "MediaKind":
        if type_tag and type_tag.strip().lower() in MOVIE_TYPE_TAGS:
            return cls.MOVIE
        return cls.TV


def _clean_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _safe_int(value: object) -> int | None:
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _safe_float(value: object) -> float | None:
    if value in (None, ""):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class RawRating:
    source_id: int
    cross_ref_id: str | None
    title: str | None
    title_en: str | None
    original_title: str | None
    source_score: float | None
    secondary_score: float | None
    year: int | None
    type_tag: str | None
    user_score: float
    poster_url: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "RawRating":
        source_id = _safe_int(payload.get("kinopoiskId"))
        if source_id is None:
            raise ValueError(f"Rating entry without kinopoiskId: {payload!r}")
        return cls(
            source_id=source_id,
            cross_ref_id=_clean_str(payload.get("imdbId")),
            title=_clean_str(payload.get("nameRu")),
            title_en=_clean_str(payload.get("nameEn")),
            original_title=_clean_str(payload.get("nameOriginal")),
            source_score=_safe_float(payload.get("ratingKinopoisk")),
            # The upstream API spells this field "ratingImbd".
            secondary_score=_safe_float(payload.get("ratingImbd", payload.get("ratingImdb"))),
            year=_safe_int(payload.get("year")),
            type_tag=_clean_str(payload.get("type")),
            user_score=_safe_float(payload.get("userRating")) or 0.0,
            poster_url=_clean_str(payload.get("posterUrl")),
        )

    @property
    def display_title(self) -> str:
        return self.original_title or self.title_en or self.title or f"Kinopoisk #{self.source_id}"


@dataclass(frozen=True)
class CatalogRecord:
    """Detail record of a single source-catalog title."""

    source_id: int
    cross_ref_id: str | None
    title: str | None
    original_title: str | None
    year: int | None
    type_tag: str | None

    @classmethod
    def from_payload(cls, source_id: int, payload: dict[str, Any]) -> "CatalogRecord":
        return cls(
            source_id=_safe_int(payload.get("kinopoiskId")) or source_id,
            cross_ref_id=_clean_str(payload.get("imdbId")),
            title=_clean_str(payload.get("nameRu")),
            original_title=_clean_str(payload.get("nameOriginal")),
            year=_safe_int(payload.get("year")),
            type_tag=_clean_str(payload.get("type")),
        )

    @property
    def search_title(self) -> str | None:
        return self.original_title or self.title

    @property
    def kind(self) -> MediaKind:
        return MediaKind.from_type_tag(self.type_tag)


@dataclass(frozen=True)
class CanonicalMedia:
    canonical_id: int
    kind: MediaKind
    title: str
    original_title: str
    cross_ref_id: str | None = None
    source_id: int | None = None
    release_date: str | None = None
    overview: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    vote_average: float = 0.0
    vote_count: int = 0

    @classmethod
    def from_tmdb(
        cls,
        payload: dict[str, Any],
        kind: MediaKind,
        *,
        cross_ref_id: str | None = None,
        source_id: int | None = None,
    ) -> "CanonicalMedia":
        if kind is MediaKind.MOVIE:
            title = payload.get("title")
            original_title = payload.get("original_title")
            release_date = payload.get("release_date")
        else:
            title = payload.get("name")
            original_title = payload.get("original_name")
            release_date = payload.get("first_air_date")
        return cls(
            canonical_id=int(payload["id"]),
            kind=kind,
            title=title or "",
            original_title=original_title or "",
            cross_ref_id=cross_ref_id,
            source_id=source_id,
            release_date=_clean_str(release_date),
            overview=_clean_str(payload.get("overview")),
            poster_path=_clean_str(payload.get("poster_path")),
            backdrop_path=_clean_str(payload.get("backdrop_path")),
            vote_average=_safe_float(payload.get("vote_average")) or 0.0,
            vote_count=_safe_int(payload.get("vote_count")) or 0,
        )

    @property
    def release_year(self) -> str | None:
        if not self.release_date:
            return None
        return self.release_date.split("-")[0]

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["kind"] = self.kind.value
        return out


@dataclass(frozen=True)
class AppUser:
    id: str
    name: str


@dataclass(frozen=True)
class ReviewRequest:
    author_id: str
    author_name: str
    content: str
    rating: float
    reference_id: str
    reference_type: MediaKind

    def to_payload(self) -> dict[str, Any]:
        return {
            "authorId": self.author_id,
            "authorName": self.author_name,
            "content": self.content,
            "rating": self.rating,
            "referenceId": self.reference_id,
            "referenceType": "Movie" if self.reference_type is MediaKind.MOVIE else "TV",
        }


@dataclass(frozen=True)
class ReviewRef:
    author_id: str
    content: str
    rating: float
    reference_id: str
    reference_type: MediaKind
    likes: int = 0
    dislikes: int = 0
    review_id: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any], request: ReviewRequest) -> "ReviewRef":
        reference_type = request.reference_type
        raw_type = _clean_str(payload.get("referenceType"))
        if raw_type is not None:
            reference_type = MediaKind.MOVIE if raw_type.lower() == "movie" else MediaKind.TV
        review_id = _clean_str(payload.get("id") or payload.get("reviewId"))
        return cls(
            author_id=str(payload.get("authorId") or request.author_id),
            content=payload.get("content") or request.content,
            rating=_safe_float(payload.get("rating")) or request.rating,
            reference_id=str(payload.get("referenceId") or request.reference_id),
            reference_type=reference_type,
            likes=_safe_int(payload.get("likes")) or 0,
            dislikes=_safe_int(payload.get("dislikes")) or 0,
            review_id=review_id,
        )

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["reference_type"] = self.reference_type.value
        return out


@dataclass(frozen=True)
class FailureDetail:
    stage: str
    source_id: int
    title: str
    error_code: str
    reason: str

    def describe(self) -> str:
        return f"Kinopoisk ID {self.source_id} ({self.title}): {self.reason}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ConversionResult:
    created: list[ReviewRef] = field(default_factory=list)
    failures: list[FailureDetail] = field(default_factory=list)
    cancelled: bool = False

    @property
    def converted(self) -> int:
        return len(self.created)

    @property
    def failed(self) -> int:
        return len(self.failures)


@dataclass(frozen=True)
class ImportReport:
    user_id: str
    imported: int
    converted: int
    reviews: list[ReviewRef]
    failures: list[FailureDetail]
    status: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "status": self.status,
            "total_imported": self.imported,
            "total_converted": self.converted,
            "failed": len(self.failures),
            "reviews": [review.to_dict() for review in self.reviews],
            "failures": [failure.to_dict() for failure in self.failures],
        }
