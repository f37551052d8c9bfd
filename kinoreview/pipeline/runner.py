"""Pipeline wiring and the import-then-convert flow."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from kinoreview.catalogs.kinopoisk import KinopoiskClient
from kinoreview.catalogs.tmdb import TmdbClient
from kinoreview.common.config_loader import ResilienceSettings, Settings
from kinoreview.common.constants import CANONICAL_CATALOG, REVIEW_SERVICE, SOURCE_CATALOG
from kinoreview.common.errors import BatchConversionError
from kinoreview.common.http import BreakerConfig, CircuitBreaker, HttpClient, RetryConfig, TimeoutConfig
from kinoreview.common.logging import get_logger, log_event
from kinoreview.common.models import AppUser, ImportReport
from kinoreview.pipeline.converter import BatchConverter
from kinoreview.pipeline.importer import import_all_ratings
from kinoreview.pipeline.resolver import MediaResolver
from kinoreview.reviews.service import HttpReviewService, ReviewService


def build_http_client(
    name: str,
    resilience: ResilienceSettings,
    *,
    default_headers: dict[str, str] | None = None,
    logger: logging.Logger | None = None,
) -> HttpClient:
    logger = logger or get_logger("http")
    breaker = CircuitBreaker(
        name,
        BreakerConfig(
            failure_threshold=resilience.breaker_failure_threshold,
            reset_timeout=resilience.breaker_reset_seconds,
        ),
        logger=logger,
    )
    return HttpClient(
        name,
        timeout=TimeoutConfig(connect=resilience.timeout_seconds, read=resilience.timeout_seconds),
        retry=RetryConfig(
            max_retries=resilience.max_retries,
            multiplier=resilience.backoff_multiplier,
            max_wait=resilience.max_backoff_seconds,
        ),
        breaker=breaker,
        default_headers=default_headers,
        logger=logger,
    )


@dataclass
class Pipeline:
    """One long-lived client per remote dependency, shared by every stage."""

    kinopoisk: KinopoiskClient
    tmdb: TmdbClient
    resolver: MediaResolver
    converter: BatchConverter
    http_clients: tuple[HttpClient, ...] = ()

    def close(self) -> None:
        for client in self.http_clients:
            client.close()

    def __enter__(self) -> "Pipeline":
        return self

    def __exit__(self, *_exc) -> None:
        self.close()


def build_pipeline(settings: Settings, *, review_service: ReviewService | None = None) -> Pipeline:
    kp_http = build_http_client(
        SOURCE_CATALOG,
        settings.resilience,
        default_headers={"X-API-KEY": settings.kinopoisk.api_key},
    )
    tmdb_http = build_http_client(CANONICAL_CATALOG, settings.resilience)
    clients = [kp_http, tmdb_http]

    if review_service is None:
        reviews_http = build_http_client(REVIEW_SERVICE, settings.resilience)
        clients.append(reviews_http)
        review_service = HttpReviewService(reviews_http, settings.reviews.base_url, token=settings.reviews.token)

    kinopoisk = KinopoiskClient(kp_http, settings.kinopoisk.base_url)
    tmdb = TmdbClient(tmdb_http, settings.tmdb.base_url, settings.tmdb.api_key, language=settings.tmdb.language)
    resolver = MediaResolver(kinopoisk, tmdb)
    converter = BatchConverter(resolver, review_service, max_workers=settings.max_workers)
    return Pipeline(
        kinopoisk=kinopoisk,
        tmdb=tmdb,
        resolver=resolver,
        converter=converter,
        http_clients=tuple(clients),
    )


def run_import_and_convert(
    pipeline: Pipeline,
    user_id: str,
    user: AppUser,
    *,
    cancel: threading.Event | None = None,
    logger: logging.Logger | None = None,
) -> ImportReport:
    """Import a Kinopoisk user's votes and republish them as reviews.

    Raises BatchConversionError when ratings were imported but none could
    be converted.
    """
    logger = logger or get_logger("runner")
    ratings = import_all_ratings(pipeline.kinopoisk, user_id, cancel=cancel)
    log_event(
        logger,
        f"importing ratings of Kinopoisk user {user_id} as reviews for user {user.id}",
        stage="import",
        event="STAGE_END",
        status="ok",
        items_out=len(ratings),
    )

    try:
        result = pipeline.converter.convert_ratings(ratings, user, cancel=cancel)
    except BatchConversionError:
        log_event(
            logger,
            f"no ratings of Kinopoisk user {user_id} could be converted",
            level=logging.ERROR,
            stage="convert",
            event="STAGE_FAIL",
            status="error",
            error_code=BatchConversionError.error_code,
        )
        raise

    if result.cancelled or (cancel is not None and cancel.is_set()):
        status = "cancelled"
    elif result.failures:
        status = "partial"
    else:
        status = "success"

    return ImportReport(
        user_id=user_id,
        imported=len(ratings),
        converted=result.converted,
        reviews=list(result.created),
        failures=list(result.failures),
        status=status,
    )
