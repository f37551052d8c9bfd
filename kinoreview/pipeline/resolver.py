"""Kinopoisk id -> TMDb media resolution.

Resolution runs as a small state machine:

    CROSS_REF      fetch the Kinopoisk detail record (IMDb id, titles, year, type)
    DIRECT_LOOKUP  TMDb /find by IMDb id; movie slot wins over tv slot
    FALLBACK       TMDb title search; the first candidate is accepted as is

Transport failures end resolution at the step where they happen. Only
missing data (no IMDb id, no /find match) moves resolution on to FALLBACK.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum

from kinoreview.catalogs.kinopoisk import KinopoiskClient
from kinoreview.catalogs.tmdb import TmdbClient
from kinoreview.common.errors import (
    ImportPipelineError,
    NoCrossReferenceError,
    NoMatchError,
    RemoteError,
    TransportError,
)
from kinoreview.common.logging import get_logger, log_event
from kinoreview.common.models import CanonicalMedia, CatalogRecord


class Step(str, Enum):
    CROSS_REF = "cross_ref"
    DIRECT_LOOKUP = "direct_lookup"
    FALLBACK = "fallback"
    DONE = "done"


NO_DIRECT_MATCH = "NO_DIRECT_MATCH"


@dataclass(frozen=True)
class Resolution:
    source_id: int
    media: CanonicalMedia | None = None
    error: ImportPipelineError | None = None
    title: str | None = None
    fallback_trigger: str | None = None
    steps: tuple[Step, ...] = ()

    @property
    def ok(self) -> bool:
        return self.media is not None

    @property
    def error_code(self) -> str | None:
        return self.error.error_code if self.error is not None else None

    @property
    def reason(self) -> str | None:
        return str(self.error) if self.error is not None else None

    def unwrap(self) -> CanonicalMedia:
        if self.media is None:
            raise self.error or NoMatchError(f"No media resolved for Kinopoisk ID {self.source_id}")
        return self.media


@dataclass
class _Run:
    source_id: int
    record: CatalogRecord | None = None
    media: CanonicalMedia | None = None
    error: ImportPipelineError | None = None
    fallback_trigger: str | None = None
    steps: list[Step] = field(default_factory=list)

    def fail(self, error: ImportPipelineError) -> Step:
        self.error = error
        return Step.DONE

    def result(self) -> Resolution:
        title = self.media.title if self.media else (self.record.search_title if self.record else None)
        return Resolution(
            source_id=self.source_id,
            media=self.media,
            error=None if self.media else self.error,
            title=title,
            fallback_trigger=self.fallback_trigger,
            steps=tuple(self.steps),
        )


def _as_transport_error(exc: RemoteError) -> TransportError:
    if isinstance(exc, TransportError):
        return exc
    wrapped = TransportError(f"{exc.error_code}: {exc}")
    wrapped.__cause__ = exc
    return wrapped


class MediaResolver:
    def __init__(
        self,
        source: KinopoiskClient,
        canonical: TmdbClient,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.source = source
        self.canonical = canonical
        self.logger = logger or get_logger("resolver")
        self._handlers = {
            Step.CROSS_REF: self._cross_ref,
            Step.DIRECT_LOOKUP: self._direct_lookup,
            Step.FALLBACK: self._fallback,
        }

    def resolve(self, source_id: int) -> Resolution:
        run = _Run(source_id=source_id)
        step = Step.CROSS_REF
        while step is not Step.DONE:
            run.steps.append(step)
            step = self._handlers[step](run)

        resolution = run.result()
        if resolution.ok:
            log_event(
                self.logger,
                f"resolved Kinopoisk ID {source_id} to TMDb {resolution.media.kind.value} {resolution.media.canonical_id}",
                stage=run.steps[-1].value,
                event="RESOLVE_OK",
                status="ok",
                source_id=source_id,
            )
        else:
            log_event(
                self.logger,
                f"could not resolve Kinopoisk ID {source_id}: {resolution.reason}",
                level=logging.WARNING,
                stage=run.steps[-1].value,
                event="RESOLVE_FAIL",
                status="error",
                source_id=source_id,
                error_code=resolution.error_code,
            )
        return resolution

    def _cross_ref(self, run: _Run) -> Step:
        try:
            run.record = self.source.fetch_rating_detail(run.source_id)
        except RemoteError as exc:
            return run.fail(_as_transport_error(exc))

        if run.record.cross_ref_id:
            return Step.DIRECT_LOOKUP

        run.fallback_trigger = NoCrossReferenceError.error_code
        log_event(
            self.logger,
            f"no IMDb id for Kinopoisk ID {run.source_id}, falling back to title search",
            stage=Step.CROSS_REF.value,
            event="NO_CROSS_REFERENCE",
            status="fallback",
            source_id=run.source_id,
        )
        return Step.FALLBACK

    def _direct_lookup(self, run: _Run) -> Step:
        cross_ref_id = run.record.cross_ref_id
        try:
            found = self.canonical.find_by_external_id(cross_ref_id)
        except RemoteError as exc:
            return run.fail(_as_transport_error(exc))

        match = found.movie or found.series
        if match is not None:
            run.media = replace(match, cross_ref_id=cross_ref_id, source_id=run.source_id)
            return Step.DONE

        run.fallback_trigger = NO_DIRECT_MATCH
        log_event(
            self.logger,
            f"no TMDb match for IMDb id {cross_ref_id}, falling back to title search",
            stage=Step.DIRECT_LOOKUP.value,
            event="NO_DIRECT_MATCH",
            status="fallback",
            source_id=run.source_id,
        )
        return Step.FALLBACK

    def _fallback(self, run: _Run) -> Step:
        record = run.record
        title = record.search_title
        if not title:
            return run.fail(
                NoMatchError(f"No title found for Kinopoisk ID {run.source_id}", source_id=run.source_id)
            )

        try:
            candidates = self.canonical.search_title(title, record.year, record.kind)
        except RemoteError as exc:
            return run.fail(_as_transport_error(exc))

        if not candidates:
            return run.fail(
                NoMatchError(
                    f"No TMDb match found for: {title} ({record.year or 'unknown year'})",
                    source_id=run.source_id,
                    title=title,
                )
            )

        run.media = replace(candidates[0], source_id=run.source_id)
        return Step.DONE


def find_media_by_source_id(resolver: MediaResolver, source_id: int) -> CanonicalMedia:
    """Resolve one Kinopoisk id, raising the typed failure instead of returning it."""
    return resolver.resolve(source_id).unwrap()
