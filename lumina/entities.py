"""Documents and maps of contents (Mocs), the nodes of the knowledge graph."""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Tuple, Union

from .errors import ContentUnreadable, NotFoundError, PartialSaveError
from .schemas import MEMORY_KIND, MOC_KIND, CatalogEntry

if TYPE_CHECKING:
    from .context import KnowledgeContext

logger = logging.getLogger(__name__)

SaveStep = Tuple[str, Callable[[], None]]


def _run_save_steps(entity_id: str, steps: Sequence[SaveStep]) -> None:
    """Run ``steps`` in order, stopping at the first failure.

    Nothing is rolled back. A failure after at least one step succeeded leaves
    the storage surfaces inconsistent and is raised as :class:`PartialSaveError`.
    """

    completed: List[str] = []
    for label, step in steps:
        try:
            step()
        except Exception as exc:
            if not completed:
                raise
            logger.error(
                "Partial save of %s: %s written, %s failed (%s); surfaces are now inconsistent",
                entity_id,
                ", ".join(completed),
                label,
                exc,
            )
            raise PartialSaveError(entity_id, completed, label) from exc
        completed.append(label)


class Document:
    """A titled piece of stored text; content lives in ``documents/<id>.txt``."""

    kind = MEMORY_KIND

    def __init__(
        self,
        *,
        context: KnowledgeContext,
        id: str,
        title: str,
        content: str,
        storage_location: Path,
        created_at: Optional[int] = None,
    ) -> None:
        self.context = context
        self.id = id
        self.title = title
        self.content = content
        self.storage_location = Path(storage_location)
        self._created_at = created_at

    @classmethod
    def create(cls, context: KnowledgeContext, title: str, content: str) -> "Document":
        doc_id = str(uuid.uuid4())
        return cls(
            context=context,
            id=doc_id,
            title=title,
            content=content,
            storage_location=context.documents_dir / f"{doc_id}.txt",
        )

    @classmethod
    def load(cls, context: KnowledgeContext, doc_id: str) -> "Document":
        entry = context.store.find_by_id(doc_id)
        if entry is None or entry.kind != MEMORY_KIND:
            raise NotFoundError(f"Document with id {doc_id} not found")
        location = Path(entry.content_location)
        try:
            content = location.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ContentUnreadable(
                f"Catalog lists document {doc_id} at {location} but the file cannot be read: {exc}"
            ) from exc
        return cls(
            context=context,
            id=entry.id,
            title=entry.name,
            content=content,
            storage_location=location,
            created_at=entry.created_at,
        )

    def _catalog_entry(self) -> CatalogEntry:
        entry = CatalogEntry(
            id=self.id,
            kind=MEMORY_KIND,
            name=self.title,
            content_location=str(self.storage_location),
        )
        if self._created_at is not None:
            entry.created_at = self._created_at
        return entry

    def _write_file(self) -> None:
        self.storage_location.parent.mkdir(parents=True, exist_ok=True)
        self.storage_location.write_text(self.content, encoding="utf-8")

    def _write_vector(self) -> None:
        vector = self.context.embed(f"{self.title} {self.content}")
        self.context.store.upsert_vector(
            self.id,
            vector,
            {"kind": MEMORY_KIND, "title": self.title, "storage_location": str(self.storage_location)},
        )

    def save(self) -> None:
        _run_save_steps(
            self.id,
            [
                ("content file", self._write_file),
                ("catalog row", lambda: self.context.store.upsert_catalog_entry(self._catalog_entry())),
                ("vector entry", self._write_vector),
            ],
        )

    def mocs(self) -> List["Moc"]:
        """Mocs that link this document as a child."""

        return [Moc.load_by_id(self.context, moc_id) for moc_id in self.context.store.parent_ids_of(self.id)]

    def __repr__(self) -> str:
        return f"Document(id={self.id!r}, title={self.title!r})"


class Moc:
    """Map of contents: a named node listing child Documents or Mocs.

    The catalog and link table are authoritative; ``mocs/<id>.json`` is a
    mirror for the read API.
    """

    kind = MOC_KIND

    def __init__(
        self,
        *,
        context: KnowledgeContext,
        id: str,
        name: str,
        children: Optional[List[str]] = None,
        created_at: Optional[int] = None,
    ) -> None:
        self.context = context
        self.id = id
        self.name = name
        self.children: List[str] = list(children or [])
        self._created_at = created_at

    @property
    def title(self) -> str:
        return self.name

    @property
    def mirror_path(self) -> Path:
        return self.context.mocs_dir / f"{self.id}.json"

    @classmethod
    def create(cls, context: KnowledgeContext, name: str) -> "Moc":
        return cls(context=context, id=str(uuid.uuid4()), name=name)

    @classmethod
    def _from_entry(cls, context: KnowledgeContext, entry: CatalogEntry) -> "Moc":
        return cls(
            context=context,
            id=entry.id,
            name=entry.name,
            children=context.store.child_ids_of(entry.id),
            created_at=entry.created_at,
        )

    @classmethod
    def load_by_name(cls, context: KnowledgeContext, name: str) -> Optional["Moc"]:
        entry = context.store.find_by_name_and_kind(name, MOC_KIND)
        if entry is None:
            return None
        return cls._from_entry(context, entry)

    @classmethod
    def load_by_id(cls, context: KnowledgeContext, moc_id: str) -> "Moc":
        entry = context.store.find_by_id(moc_id)
        if entry is None or entry.kind != MOC_KIND:
            raise NotFoundError(f"MOC with id {moc_id} not found")
        return cls._from_entry(context, entry)

    def _catalog_entry(self) -> CatalogEntry:
        entry = CatalogEntry(id=self.id, kind=MOC_KIND, name=self.name, content_location="")
        if self._created_at is not None:
            entry.created_at = self._created_at
        return entry

    def _write_mirror(self) -> None:
        self.mirror_path.parent.mkdir(parents=True, exist_ok=True)
        self.mirror_path.write_text(
            json.dumps({"name": self.name, "documents": self.children}, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

    def _write_vector(self) -> None:
        vector = self.context.embed(self.name)
        self.context.store.upsert_vector(self.id, vector, {"kind": MOC_KIND, "title": self.name})

    def save(self) -> None:
        _run_save_steps(
            self.id,
            [
                ("mirror file", self._write_mirror),
                ("catalog row", lambda: self.context.store.upsert_catalog_entry(self._catalog_entry())),
                ("vector entry", self._write_vector),
            ],
        )

    def add_child(self, entity: Union[Document, "Moc"]) -> None:
        """Persist ``entity`` and link it under this Moc.

        This Moc is saved before the edge is written so the link table never
        references a row that does not exist yet, then saved again so the
        mirror reflects the link table.
        """

        entity.save()
        self.save()
        if entity.id not in self.children:
            self.children.append(entity.id)
        self.context.store.add_edge(self.id, entity.id)
        logger.info("Linked %s %s under MOC %s", entity.kind, entity.id, self.id)
        self.children = self.context.store.child_ids_of(self.id)
        self.save()

    def __repr__(self) -> str:
        return f"Moc(id={self.id!r}, name={self.name!r}, children={len(self.children)})"


Entity = Union[Document, Moc]


__all__ = ["Document", "Entity", "Moc"]
