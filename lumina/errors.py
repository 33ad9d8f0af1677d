"""Error taxonomy shared by the knowledge store, the tools, and the agent loop."""

from __future__ import annotations

from typing import Iterable, List, Sequence


class KnowledgeBaseError(Exception):
    """Base for all lumina errors."""

    pass


class NotFoundError(KnowledgeBaseError):
    """Raised when an id or name lookup misses."""

    pass


class ValidationError(KnowledgeBaseError):
    """Raised when input does not match the expected shape.

    ``errors`` holds one human readable message per offending field so that
    the caller (usually the model) can fix every problem in a single retry.
    """

    def __init__(self, message: str, errors: Iterable[str] | None = None) -> None:
        super().__init__(message)
        self.errors: List[str] = list(errors or [])


class ReferentialIntegrityViolation(KnowledgeBaseError):
    """Raised when an edge or reference points at an id the catalog does not know.

    Almost always means a child was linked before it was saved.
    """

    pass


class ContentUnreadable(KnowledgeBaseError):
    """Raised when the catalog has a row but the content file cannot be read."""

    pass


class PartialSaveError(KnowledgeBaseError):
    """Raised when a save stopped after some storage surfaces were already written.

    The catalog, content file and vector index are then out of step and need
    operator attention; nothing is rolled back.
    """

    def __init__(self, entity_id: str, completed: Sequence[str], failed_step: str) -> None:
        super().__init__(
            f"Save of {entity_id} failed at '{failed_step}' after completing {', '.join(completed)}"
        )
        self.entity_id = entity_id
        self.completed = list(completed)
        self.failed_step = failed_step


class ToolExecutionError(KnowledgeBaseError):
    """Raised for failures inside a tool body that have no more specific type."""

    pass


class UpstreamServiceError(KnowledgeBaseError):
    """Raised when the chat, embedding, or reference service fails."""

    pass


class AccessDenied(KnowledgeBaseError):
    """Raised when a filesystem path escapes the sandbox root."""

    pass


class UnknownTool(KnowledgeBaseError):
    """Raised when the model asks for a tool that is not registered."""

    pass


class LoopBudgetExceeded(KnowledgeBaseError):
    """Raised when the agent loop runs out of iterations or wall-clock time."""

    def __init__(self, message: str, iterations: int) -> None:
        super().__init__(message)
        self.iterations = iterations


__all__ = [
    "AccessDenied",
    "ContentUnreadable",
    "KnowledgeBaseError",
    "LoopBudgetExceeded",
    "NotFoundError",
    "PartialSaveError",
    "ReferentialIntegrityViolation",
    "ToolExecutionError",
    "UnknownTool",
    "UpstreamServiceError",
    "ValidationError",
]
