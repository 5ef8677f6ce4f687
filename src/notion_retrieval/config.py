"""Configuration constants for notion-retrieval."""

import os
from pathlib import Path

# API token location, used when NOTION_API_KEY is not set. First file found is used.
API_TOKEN_FILES: list[Path] = [
    Path("~/.config/notion-retrieval-token.txt").expanduser(),
    Path("~/.config/secret/notion-retrieval-token.txt").expanduser(),
]

API_BASE_URL: str = "https://api.notion.com/v1"
API_VERSION: str = "2022-06-28"
API_TIMEOUT_SECONDS: float = 30.0

# Notion caps page_size at 100.
PAGE_SIZE: int = 100
# Pause between paginated requests to stay under the rate limit (3 req/s average).
PAGE_DELAY_SECONDS: float = 0.5

# Content tree depth bounds.
LOAD_MAX_DEPTH: int = 5
DETAIL_MAX_DEPTH: int = 3
PREVIEW_MAX_DEPTH: int = 1

PREVIEW_CHARS: int = 500
CANDIDATE_TARGET: int = 5
RELATED_LIMIT: int = 3
SEARCH_MAX_RESULTS: int = 10

REFRESH_INTERVAL_SECONDS: int = 60 * 60


def resolve_api_token() -> str | None:
    """Return the Notion integration token, or None if none is configured."""
    token = os.environ.get("NOTION_API_KEY", "").strip()
    if token:
        return token
    for token_path in API_TOKEN_FILES:
        try:
            token = token_path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            continue
        if token:
            return token
    return None


def format_notion_id(raw_id: str) -> str:
    """Insert dashes into a bare 32-character Notion id."""
    raw_id = raw_id.strip()
    if len(raw_id) == 32 and "-" not in raw_id:
        return f"{raw_id[:8]}-{raw_id[8:12]}-{raw_id[12:16]}-{raw_id[16:20]}-{raw_id[20:]}"
    return raw_id


def resolve_collection_ids() -> list[str]:
    """Known collection (database) ids from NOTION_DATABASE_IDS, comma separated."""
    raw = os.environ.get("NOTION_DATABASE_IDS", "")
    return [format_notion_id(part) for part in raw.split(",") if part.strip()]


def resolve_refresh_interval() -> int:
    raw = os.environ.get("NOTION_REFRESH_INTERVAL", "").strip()
    if not raw:
        return REFRESH_INTERVAL_SECONDS
    try:
        return max(60, int(raw))
    except ValueError:
        return REFRESH_INTERVAL_SECONDS
