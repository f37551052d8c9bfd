"""Rating import with fail-soft pagination."""

from __future__ import annotations

import logging
import threading

from kinoreview.catalogs.kinopoisk import KinopoiskClient
from kinoreview.common.constants import SOURCE_CATALOG
from kinoreview.common.logging import get_logger, log_event
from kinoreview.common.models import RawRating


def import_all_ratings(
    client: KinopoiskClient,
    user_id: str,
    *,
    cancel: threading.Event | None = None,
    logger: logging.Logger | None = None,
) -> list[RawRating]:
    """Fetch every votes page for ``user_id``.

    A failing page ends the import but keeps what earlier pages returned.
    An empty list, including a failure on page 1, is a valid result.
    """
    logger = logger or get_logger("importer")
    ratings: list[RawRating] = []
    page = 1
    total_pages = 1

    try:
        while page <= total_pages:
            if cancel is not None and cancel.is_set():
                log_event(
                    logger,
                    f"import for user {user_id} cancelled before page {page}",
                    stage="import",
                    source=SOURCE_CATALOG,
                    event="IMPORT_CANCELLED",
                    status="cancelled",
                    items_out=len(ratings),
                )
                break

            result = client.fetch_ratings_page(user_id, page)
            if page == 1:
                total_pages = result.total_pages
            if not result.items:
                break
            ratings.extend(result.items)
            page += 1
    except Exception as exc:
        log_event(
            logger,
            f"error importing Kinopoisk ratings for user {user_id} on page {page}: {exc}",
            level=logging.ERROR,
            stage="import",
            source=SOURCE_CATALOG,
            event="IMPORT_PAGE_FAIL",
            status="error",
            items_out=len(ratings),
            error_code=getattr(exc, "error_code", "UNEXPECTED_ERROR"),
        )

    log_event(
        logger,
        f"imported {len(ratings)} ratings for Kinopoisk user {user_id}",
        stage="import",
        source=SOURCE_CATALOG,
        event="IMPORT_END",
        status="ok",
        items_out=len(ratings),
    )
    return ratings
