"""Full-text note search."""
import logging
from typing import List

from sqlalchemy import text

from notekeeper.config import MAX_SEARCH_RESULTS
from notekeeper.exceptions import ErrorCode
from notekeeper.models.schema import Note
from notekeeper.storage.note_repository import note_from_row
from notekeeper.storage.store import StoreHandle

logger = logging.getLogger(__name__)

_SEARCH_SQL = text("""
    SELECT n.id, n.title, n.content, n.folder_id, n.is_pinned,
           n.pinned_at, n.font, n.updated_at, n.created_at
    FROM notes AS n
    JOIN (
        SELECT id, rank FROM notes_fts WHERE notes_fts MATCH :query
    ) AS hits ON hits.id = n.id
    ORDER BY hits.rank
    LIMIT :limit
""")


def sanitize_query(query: str) -> str:
    """Turn free text into a safe FTS5 prefix-phrase matcher.

    Everything except alphanumerics and whitespace is dropped, so callers
    cannot inject FTS5 operators, column filters or quotes. The remaining
    words become one quoted phrase whose last word matches as a prefix.

    Examples:
        "foo bar" -> '"foo bar"*'
        "title:secret OR x" -> '"titlesecret OR x"*'
        "***" -> ""

    Returns:
        The matcher, or an empty string when nothing searchable remains.
    """
    cleaned = "".join(c for c in query if c.isalnum() or c.isspace())
    words = cleaned.split()
    if not words:
        return ""
    return f'"{" ".join(words)}"*'


class SearchService:
    """Ranked full-text lookup over notes.

    Args:
        store: The store handle all access goes through.
        limit: Maximum results per query, capped at MAX_SEARCH_RESULTS.
    """

    def __init__(self, store: StoreHandle, limit: int = MAX_SEARCH_RESULTS):
        self.store = store
        self.limit = min(max(limit, 1), MAX_SEARCH_RESULTS)

    def search(self, query: str) -> List[Note]:
        """Search note titles and content, best match first.

        Blank queries, and queries with nothing searchable left after
        sanitizing, return an empty list without touching the store.
        """
        if not query or not query.strip():
            return []

        matcher = sanitize_query(query)
        if not matcher:
            logger.debug(f"Query '{query[:50]}' has no searchable characters")
            return []

        with self.store.access(
            "search_notes", code=ErrorCode.SEARCH_FAILED
        ) as session:
            rows = session.execute(
                _SEARCH_SQL, {"query": matcher, "limit": self.limit}
            ).mappings().all()
            results = [note_from_row(row) for row in rows]

        logger.debug(f"Search {matcher} returned {len(results)} results")
        return results
