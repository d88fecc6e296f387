"""Application constants."""

USER_AGENT = "tract-rates/0.3 (+research; contact: configured-email)"
COMMANDS = (
    "fetch",
    "run",
)
UNASSIGNED_KEY = "__unassigned__"
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "region_type",
    "source",
    "event",
    "status",
    "attempt",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)
