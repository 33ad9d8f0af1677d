"""Lumina: an LLM agent that curates a long-term knowledge graph.

The package wires together

* a knowledge store holding documents, maps of contents (Mocs) and their links,
* a search index offering title, content, and embedding based lookups,
* a tool registry that validates and dispatches model-requested calls, and
* a conversation controller running the tool-calling loop with a token budget.
"""

from .browser import KnowledgeBrowser
from .clients import LLMClient
from .context import KnowledgeContext
from .entities import Document, Entity, Moc
from .errors import (
    AccessDenied,
    ContentUnreadable,
    KnowledgeBaseError,
    LoopBudgetExceeded,
    NotFoundError,
    PartialSaveError,
    ReferentialIntegrityViolation,
    ToolExecutionError,
    UnknownTool,
    UpstreamServiceError,
    ValidationError,
)
from .manager import ConversationController
from .prompts import PLAN_REFRESH_PROMPT, ROOT_MOC_NAME, SYSTEM_PROMPT
from .reference import ReferencePage, WikipediaClient
from .registry import FieldDescription, Tool, ToolRegistry
from .runtime import AgentRuntime, main as runtime_main
from .schemas import CatalogEntry, CatalogQuery, ToolOutcome
from .search import SearchIndex, SearchMatch
from .storage import KnowledgeStore, VectorIndex
from .tools import default_tools

__all__ = [
    "AccessDenied",
    "AgentRuntime",
    "CatalogEntry",
    "CatalogQuery",
    "ContentUnreadable",
    "ConversationController",
    "Document",
    "Entity",
    "FieldDescription",
    "KnowledgeBaseError",
    "KnowledgeBrowser",
    "KnowledgeContext",
    "KnowledgeStore",
    "LLMClient",
    "LoopBudgetExceeded",
    "Moc",
    "NotFoundError",
    "PLAN_REFRESH_PROMPT",
    "PartialSaveError",
    "ROOT_MOC_NAME",
    "ReferencePage",
    "ReferentialIntegrityViolation",
    "SYSTEM_PROMPT",
    "SearchIndex",
    "SearchMatch",
    "Tool",
    "ToolExecutionError",
    "ToolOutcome",
    "ToolRegistry",
    "UnknownTool",
    "UpstreamServiceError",
    "ValidationError",
    "VectorIndex",
    "WikipediaClient",
    "default_tools",
    "runtime_main",
]
