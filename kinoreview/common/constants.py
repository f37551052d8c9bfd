"""Application constants."""

USER_AGENT = "kinoreview/0.3 (+rating-import)"
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})
SOURCE_CATALOG = "kinopoisk"
CANONICAL_CATALOG = "tmdb"
REVIEW_SERVICE = "reviews"
COMMANDS = ("import-ratings", "find-media")
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
MAX_ERROR_MESSAGE_CHARS = 2000
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "source",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "source_id",
    "items_in",
    "items_out",
    "error_code",
    "message",
)
