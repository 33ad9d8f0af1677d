"""Read-only view of the knowledge base for the HTTP/UI layer."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Mapping

from .entities import Document
from .errors import ContentUnreadable, NotFoundError

if TYPE_CHECKING:
    from .context import KnowledgeContext

logger = logging.getLogger(__name__)


class KnowledgeBrowser:
    """Lists and fetches Mocs and Documents by scanning the persisted directories."""

    def __init__(self, context: KnowledgeContext) -> None:
        self.context = context

    def _read_mirror(self, moc_id: str) -> Dict[str, Any]:
        if not moc_id or "/" in moc_id or "\\" in moc_id or moc_id.startswith("."):
            raise NotFoundError(f"MOC {moc_id} not found")
        path = self.context.mocs_dir / f"{moc_id}.json"
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise NotFoundError(f"MOC {moc_id} not found") from exc
        except (OSError, ValueError) as exc:
            raise ContentUnreadable(f"MOC file {path} cannot be read: {exc}") from exc

    def list_mocs(self) -> List[Mapping[str, str]]:
        mocs: List[Mapping[str, str]] = []
        for path in sorted(self.context.mocs_dir.glob("*.json")):
            data = self._read_mirror(path.stem)
            mocs.append({"id": path.stem, "name": data.get("name", "")})
        return mocs

    def list_documents(self) -> List[Mapping[str, str]]:
        documents: List[Mapping[str, str]] = []
        for path in sorted(self.context.documents_dir.glob("*.txt")):
            try:
                document = Document.load(self.context, path.stem)
            except NotFoundError:
                logger.warning("Content file %s has no catalog row; skipping", path)
                continue
            documents.append({"id": document.id, "name": document.title})
        return documents

    def get_moc(self, moc_id: str) -> Mapping[str, Any]:
        data = self._read_mirror(moc_id)
        return {"name": data.get("name", ""), "documents": list(data.get("documents", []))}

    def get_document(self, document_id: str) -> Mapping[str, str]:
        document = Document.load(self.context, document_id)
        return {"id": document.id, "name": document.title, "content": document.content}


__all__ = ["KnowledgeBrowser"]
