"""Batch conversion of imported ratings into reviews."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable

from kinoreview.common.constants import MAX_ERROR_MESSAGE_CHARS
from kinoreview.common.errors import BatchConversionError, ReviewServiceError
from kinoreview.common.logging import get_logger, log_event
from kinoreview.common.models import (
    AppUser,
    CanonicalMedia,
    ConversionResult,
    FailureDetail,
    RawRating,
    ReviewRef,
    ReviewRequest,
)
from kinoreview.pipeline.resolver import MediaResolver
from kinoreview.reviews.service import ReviewService

REVIEW_TRANSPORT = "REVIEW_TRANSPORT"


def _format_score(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{value:g}"


def build_review_content(rating: RawRating, media: CanonicalMedia) -> str:
    lines = [
        "Imported from Kinopoisk",
        "",
        f"**{media.title}** ({media.release_year or ''})",
        "",
    ]
    if media.overview:
        lines.extend([media.overview, ""])

    lines.append(f"My Rating: {_format_score(rating.user_score)}/10")
    lines.append(f"Kinopoisk Rating: {_format_score(rating.source_score)}/10")
    if rating.cross_ref_id and rating.secondary_score and rating.secondary_score > 0:
        lines.append(f"IMDb Rating: {_format_score(rating.secondary_score)}/10")

    lines.extend(["", "---", f"*Originally rated on Kinopoisk (ID: {rating.source_id})*"])
    return "\n".join(lines)


def summarise_failures(failures: list[FailureDetail], limit: int = MAX_ERROR_MESSAGE_CHARS) -> str:
    parts: list[str] = []
    used = 0
    for idx, failure in enumerate(failures):
        text = failure.describe()
        if parts and used + len(text) + 2 > limit:
            return "; ".join(parts) + f" (+{len(failures) - idx} more)"
        parts.append(text)
        used += len(text) + 2
    return "; ".join(parts)


class BatchConverter:
    def __init__(
        self,
        resolver: MediaResolver,
        review_service: ReviewService,
        *,
        max_workers: int = 1,
        logger: logging.Logger | None = None,
    ) -> None:
        self.resolver = resolver
        self.review_service = review_service
        self.max_workers = max(1, max_workers)
        self.logger = logger or get_logger("converter")

    def convert_one(self, rating: RawRating, user: AppUser) -> ReviewRef | FailureDetail:
        try:
            resolution = self.resolver.resolve(rating.source_id)
        except Exception as exc:
            return FailureDetail(
                stage="resolve",
                source_id=rating.source_id,
                title=rating.display_title,
                error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
                reason=str(exc),
            )

        if not resolution.ok:
            return FailureDetail(
                stage="resolve",
                source_id=rating.source_id,
                title=rating.display_title,
                error_code=resolution.error_code or "RESOLUTION_ERROR",
                reason=resolution.reason or "unresolved",
            )

        media = resolution.media
        request = ReviewRequest(
            author_id=user.id,
            author_name=user.name,
            content=build_review_content(rating, media),
            rating=rating.user_score,
            reference_id=str(media.canonical_id),
            reference_type=media.kind,
        )
        try:
            review = self.review_service.create_review(request)
        except Exception as exc:
            error_code = exc.error_code if isinstance(exc, ReviewServiceError) else REVIEW_TRANSPORT
            log_event(
                self.logger,
                f"failed to create review for {media.title}: {exc}",
                level=logging.WARNING,
                stage="review",
                event="REVIEW_FAIL",
                status="error",
                source_id=rating.source_id,
                error_code=error_code,
            )
            return FailureDetail(
                stage="review",
                source_id=rating.source_id,
                title=media.title,
                error_code=error_code,
                reason=str(exc),
            )

        log_event(
            self.logger,
            f"created review for {media.title} (TMDb: {media.canonical_id}, Kinopoisk: {rating.source_id})",
            stage="review",
            event="REVIEW_CREATED",
            status="ok",
            source_id=rating.source_id,
        )
        return review

    def _run_sequential(
        self,
        ratings: list[RawRating],
        user: AppUser,
        result: ConversionResult,
        cancel: threading.Event | None,
    ) -> None:
        for rating in ratings:
            if cancel is not None and cancel.is_set():
                result.cancelled = True
                return
            self._collect(result, self.convert_one(rating, user))

    def _run_pooled(
        self,
        ratings: list[RawRating],
        user: AppUser,
        result: ConversionResult,
        cancel: threading.Event | None,
    ) -> None:
        def _guarded(rating: RawRating) -> ReviewRef | FailureDetail | None:
            if cancel is not None and cancel.is_set():
                return None
            return self.convert_one(rating, user)

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            for outcome in pool.map(_guarded, ratings):
                if outcome is None:
                    result.cancelled = True
                    continue
                self._collect(result, outcome)

    @staticmethod
    def _collect(result: ConversionResult, outcome: ReviewRef | FailureDetail) -> None:
        if isinstance(outcome, FailureDetail):
            result.failures.append(outcome)
        else:
            result.created.append(outcome)

    def convert_ratings(
        self,
        ratings: Iterable[RawRating],
        user: AppUser,
        *,
        cancel: threading.Event | None = None,
    ) -> ConversionResult:
        """Resolve and store each rating; one failure never stops the others.

        Raises BatchConversionError when a non-empty, uncancelled batch
        produced no reviews at all.
        """
        ratings = list(ratings)
        result = ConversionResult()
        log_event(
            self.logger,
            f"converting {len(ratings)} Kinopoisk ratings to reviews for user {user.id}",
            stage="convert",
            event="CONVERT_START",
            status="ok",
            items_in=len(ratings),
        )

        if self.max_workers > 1 and len(ratings) > 1:
            self._run_pooled(ratings, user, result, cancel)
        else:
            self._run_sequential(ratings, user, result, cancel)

        log_event(
            self.logger,
            f"converted {result.converted}/{len(ratings)} ratings to reviews, {result.failed} errors",
            stage="convert",
            event="CONVERT_END",
            status="ok" if not result.failures else "partial",
            items_in=len(ratings),
            items_out=result.converted,
        )

        if ratings and not result.created and not result.cancelled:
            raise BatchConversionError(
                f"Failed to convert any ratings. Errors: {summarise_failures(result.failures)}",
                result,
            )
        return result
