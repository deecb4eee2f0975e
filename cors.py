"""CORS headers attached by every adapter."""

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

JSON_HEADERS = {"Content-Type": "application/json"}


def with_cors(headers: dict[str, str] | None = None) -> dict[str, str]:
    """Return a copy of ``headers`` with the CORS headers set."""
    merged = dict(headers or {})
    merged.update(CORS_HEADERS)
    return merged

