"""Title, content, and embedding search over the knowledge base."""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Union

from .entities import Document, Moc
from .errors import NotFoundError, ValidationError
from .schemas import MEMORY_KIND, MOC_KIND, CatalogEntry, CatalogQuery

if TYPE_CHECKING:
    from .context import KnowledgeContext

logger = logging.getLogger(__name__)

_LIKE_METACHARACTERS = re.compile(r"[%_\\]")


def sanitize_query(query: str) -> str:
    """Strip characters that carry meaning inside a SQL ``LIKE`` pattern."""

    return _LIKE_METACHARACTERS.sub("", query)


def _require_query(query: str) -> None:
    if not query or not query.strip():
        raise ValidationError("Search query cannot be empty", ["query: must not be empty"])


@dataclass
class SearchMatch:
    """A search result tagged with what it is, so callers never type-inspect."""

    kind: str  # "document" | "moc"
    value: Union[Document, Moc]

    @property
    def id(self) -> str:
        return self.value.id

    @property
    def title(self) -> str:
        return self.value.title

    @classmethod
    def of(cls, entity: Union[Document, Moc]) -> "SearchMatch":
        return cls(kind="moc" if entity.kind == MOC_KIND else "document", value=entity)

    def to_payload(self) -> Mapping[str, Any]:
        return {"kind": self.kind, "id": self.id, "title": self.title}


class SearchIndex:
    """Answers title, content, and contextual queries and fuses the first two."""

    def __init__(self, context: KnowledgeContext) -> None:
        self.context = context

    def _resolve(self, entry: CatalogEntry) -> SearchMatch:
        if entry.kind == MOC_KIND:
            return SearchMatch.of(Moc.load_by_id(self.context, entry.id))
        return SearchMatch.of(Document.load(self.context, entry.id))

    def search_by_title(self, query: str) -> List[SearchMatch]:
        _require_query(query)
        needle = sanitize_query(query)
        if not needle.strip():
            return []
        entries = self.context.store.search(CatalogQuery(name_contains=needle))
        return [self._resolve(entry) for entry in entries]

    def search_by_content(self, query: str, limit: int = 10, offset: int = 0) -> List[SearchMatch]:
        """Documents whose content contains every whitespace-separated query token.

        Reads every document on each call.
        """

        _require_query(query)
        tokens = sanitize_query(query).lower().split()
        if not tokens:
            return []

        matches: List[SearchMatch] = []
        for entry in self.context.store.search(CatalogQuery(kind=MEMORY_KIND)):
            document = Document.load(self.context, entry.id)
            content = document.content.lower()
            if all(token in content for token in tokens):
                matches.append(SearchMatch.of(document))
        return matches[offset : offset + limit]

    def contextual_search(self, query: str, limit: int = 5) -> List[SearchMatch]:
        _require_query(query)
        vector = self.context.embed(query)
        results: List[SearchMatch] = []
        for hit in self.context.store.query_vectors(vector, top_k=limit):
            try:
                if hit.metadata.get("kind") == MOC_KIND:
                    results.append(SearchMatch.of(Moc.load_by_id(self.context, hit.id)))
                else:
                    results.append(SearchMatch.of(Document.load(self.context, hit.id)))
            except NotFoundError:
                logger.warning("Vector index entry %s has no catalog row; skipping", hit.id)
        return results

    def search_all(self, query: str, limit: int = 10, offset: int = 0) -> List[SearchMatch]:
        """Union of title and content matches, deduplicated by id (first wins)."""

        _require_query(query)
        with ThreadPoolExecutor(max_workers=2) as pool:
            title_future = pool.submit(self.search_by_title, query)
            content_future = pool.submit(self.search_by_content, query, limit, offset)
            combined = title_future.result() + content_future.result()

        unique: Dict[str, SearchMatch] = {}
        for match in combined:
            unique.setdefault(match.id, match)
        return list(unique.values())


__all__ = ["SearchIndex", "SearchMatch", "sanitize_query"]
