"""Typed records passed between the knowledge store, search, and dispatcher."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

MEMORY_KIND = "memory"
MOC_KIND = "moc"
CATALOG_KINDS = (MEMORY_KIND, MOC_KIND)


def now_millis() -> int:
    return int(time.time() * 1000)


@dataclass
class CatalogEntry:
    """One row of the ``documents`` catalog table, shared by memories and Mocs."""

    id: str
    kind: str
    name: str
    content_location: str = ""
    created_at: int = field(default_factory=now_millis)

    def to_payload(self) -> Mapping[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "content_location": self.content_location,
            "created_at": self.created_at,
        }


@dataclass
class CatalogQuery:
    """Criteria for :meth:`KnowledgeStore.search`.

    ``name_contains`` must already be stripped of ``LIKE`` metacharacters.
    """

    name_contains: Optional[str] = None
    kind: Optional[str] = None
    limit: Optional[int] = None
    offset: int = 0


@dataclass
class VectorHit:
    id: str
    score: float
    metadata: MutableMapping[str, Any] = field(default_factory=dict)


@dataclass
class ToolOutcome:
    """Tagged result of a dispatched tool call.

    Exactly one of ``value`` (on success) or ``error_kind``/``error`` (on
    failure) is meaningful.
    """

    tool: str
    ok: bool
    value: Any = None
    error_kind: Optional[str] = None
    error: Optional[str] = None
    details: List[str] = field(default_factory=list)
    cause: Optional[str] = None

    @classmethod
    def success(cls, tool: str, value: Any) -> "ToolOutcome":
        return cls(tool=tool, ok=True, value=value)

    @classmethod
    def failure(
        cls,
        tool: str,
        kind: str,
        message: str,
        *,
        details: Optional[List[str]] = None,
        cause: Optional[str] = None,
    ) -> "ToolOutcome":
        return cls(
            tool=tool,
            ok=False,
            error_kind=kind,
            error=message,
            details=list(details or []),
            cause=cause,
        )

    def to_payload(self) -> Mapping[str, Any]:
        if self.ok:
            return {"ok": True, "result": self.value}
        error: Dict[str, Any] = {"kind": self.error_kind, "message": self.error}
        if self.details:
            error["details"] = list(self.details)
        if self.cause:
            error["cause"] = self.cause
        return {"ok": False, "error": error}


def dumps_payload(data: Any) -> str:
    """Render ``data`` as compact JSON for a tool-role message."""

    return json.dumps(data, ensure_ascii=False, default=str)


__all__ = [
    "CATALOG_KINDS",
    "CatalogEntry",
    "CatalogQuery",
    "MEMORY_KIND",
    "MOC_KIND",
    "ToolOutcome",
    "VectorHit",
    "dumps_payload",
    "now_millis",
]
