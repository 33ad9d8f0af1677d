"""Per-knowledge-base context threaded into the store, search, and tools."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Protocol

from .errors import UpstreamServiceError
from .reference import WikipediaClient
from .search import SearchIndex
from .storage import KnowledgeStore, VectorIndex

logger = logging.getLogger(__name__)


class EmbeddingClient(Protocol):
    def embed(self, texts: Iterable[str]) -> List[List[float]]:
        ...


@dataclass
class KnowledgeContext:
    """Everything a component needs to touch one knowledge base root.

    Construct one per root; tests build isolated instances under a temporary
    directory.
    """

    root: Path
    embedding_client: EmbeddingClient
    workspace_root: Path = field(default_factory=Path.cwd)
    reference_client: Optional[WikipediaClient] = None

    def __post_init__(self) -> None:
        self.root = Path(self.root).expanduser().resolve()
        self.workspace_root = Path(self.workspace_root).expanduser().resolve()
        self.documents_dir.mkdir(parents=True, exist_ok=True)
        self.mocs_dir.mkdir(parents=True, exist_ok=True)

        vector_index = VectorIndex(str(self.root / "vector_index" / "index.db"))
        self.store = KnowledgeStore(str(self.root / "db" / "lumina.db"), vector_index=vector_index)
        self.search = SearchIndex(self)
        logger.debug("Knowledge base opened at %s", self.root)

    @property
    def documents_dir(self) -> Path:
        return self.root / "documents"

    @property
    def mocs_dir(self) -> Path:
        return self.root / "mocs"

    def embed(self, text: str) -> List[float]:
        vectors = self.embedding_client.embed([text])
        if not vectors:
            raise UpstreamServiceError("Embedding service returned no vector")
        return vectors[0]

    def close(self) -> None:
        self.store.close()
        if self.reference_client is not None:
            self.reference_client.close()


__all__ = ["EmbeddingClient", "KnowledgeContext"]
