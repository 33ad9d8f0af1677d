"""Concrete tools the agent uses to grow, search, and read its knowledge base."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Union

from pydantic import BaseModel, Field

from .entities import Document, Moc
from .errors import AccessDenied, NotFoundError, ToolExecutionError
from .reference import WikipediaClient
from .registry import FieldDescription, Tool

if TYPE_CHECKING:
    from .context import KnowledgeContext

logger = logging.getLogger(__name__)

WIKIPEDIA_PAGE_SIZE = 1000

PROCESS_DESCRIPTION = FieldDescription(
    name="process_description",
    type="string",
    description=(
        "Use this field to tell the user what you are doing, for example that you are "
        "searching the knowledge base for relevant information."
    ),
    required=False,
)


class _ToolInput(BaseModel):
    process_description: Optional[str] = None


# ----------------------------------------------------------------------
# Knowledge base tools
# ----------------------------------------------------------------------
class CreateMemoryInput(_ToolInput):
    title: str
    content: str
    moc_id: str


class CreateMemoryTool(Tool):
    name = "create_memory"
    description = (
        "Creates a new memory in the specified map of contents (MOC). All memories must be "
        "associated with a MOC. Use a search tool to find the MOC id, or create one with create_moc."
    )
    fields = (
        FieldDescription("title", "string", "The title of the memory"),
        FieldDescription("content", "string", "The content of the memory"),
        FieldDescription(
            "moc_id",
            "string",
            "The id of the MOC this memory belongs to. All memories must be associated with a MOC.",
        ),
        PROCESS_DESCRIPTION,
    )
    input_model = CreateMemoryInput

    def invoke(self, data: CreateMemoryInput, context: KnowledgeContext) -> Mapping[str, Any]:
        moc = Moc.load_by_id(context, data.moc_id)
        document = Document.create(context, data.title, data.content)
        moc.add_child(document)
        return {"document_id": document.id}


class CreateMocInput(_ToolInput):
    title: str
    parent_moc_id: Optional[str] = None


class CreateMocTool(Tool):
    name = "create_moc"
    description = (
        "Creates a new Map of Contents (MOC) with the specified title, optionally listed "
        "inside an existing parent MOC."
    )
    fields = (
        FieldDescription("title", "string", "The title of the MOC to create"),
        FieldDescription(
            "parent_moc_id",
            "string",
            "Optional id of an existing MOC to list the new MOC in. Never link a MOC under one of its own children.",
            required=False,
        ),
        PROCESS_DESCRIPTION,
    )
    input_model = CreateMocInput

    def invoke(self, data: CreateMocInput, context: KnowledgeContext) -> Mapping[str, Any]:
        parent = Moc.load_by_id(context, data.parent_moc_id) if data.parent_moc_id else None
        moc = Moc.create(context, data.title)
        moc.save()
        if parent is not None:
            parent.add_child(moc)
        return {"moc_id": moc.id}


class EditMemoryInput(_ToolInput):
    id: str
    new_content: str


class EditMemoryTool(Tool):
    name = "edit_memory"
    description = (
        "Replaces the content of an existing memory. Find the memory id with a search tool first."
    )
    fields = (
        FieldDescription("id", "string", "The id of the memory to edit"),
        FieldDescription("new_content", "string", "The content that replaces the existing content"),
        PROCESS_DESCRIPTION,
    )
    input_model = EditMemoryInput

    def invoke(self, data: EditMemoryInput, context: KnowledgeContext) -> Mapping[str, Any]:
        document = Document.load(context, data.id)
        document.content = data.new_content
        document.save()
        return {"document_id": document.id}


class ReadMemoryInput(_ToolInput):
    document_id: str


class ReadMemoryTool(Tool):
    name = "read_memory"
    description = "Reads the title and content of a memory by its id."
    fields = (
        FieldDescription("document_id", "string", "The id of the memory to read"),
        PROCESS_DESCRIPTION,
    )
    input_model = ReadMemoryInput

    def invoke(self, data: ReadMemoryInput, context: KnowledgeContext) -> Mapping[str, Any]:
        document = Document.load(context, data.document_id)
        return {"document_id": document.id, "title": document.title, "content": document.content}


class QueryInput(_ToolInput):
    query: str


class MocSearchTool(Tool):
    name = "moc_search"
    description = "Searches for MOCs whose title contains the query."
    fields = (
        FieldDescription("query", "string", "Text to look for in MOC titles"),
        PROCESS_DESCRIPTION,
    )
    input_model = QueryInput

    def invoke(self, data: QueryInput, context: KnowledgeContext) -> Mapping[str, Any]:
        matches = context.search.search_by_title(data.query)
        return {
            "mocs": [{"id": match.id, "name": match.title} for match in matches if match.kind == "moc"]
        }


class SearchMemoriesInput(_ToolInput):
    query: str
    limit: int = Field(10, gt=0)
    offset: int = Field(0, ge=0)


class SearchMemoriesTool(Tool):
    name = "search_memories"
    description = (
        "Finds memories and MOCs whose title contains the query, or memories whose content "
        "contains every word of the query."
    )
    fields = (
        FieldDescription("query", "string", "Words to look for"),
        FieldDescription("limit", "number", "Maximum number of content matches (default: 10)", required=False),
        FieldDescription("offset", "number", "Number of content matches to skip (default: 0)", required=False),
        PROCESS_DESCRIPTION,
    )
    input_model = SearchMemoriesInput

    def invoke(self, data: SearchMemoriesInput, context: KnowledgeContext) -> Mapping[str, Any]:
        matches = context.search.search_all(data.query, limit=data.limit, offset=data.offset)
        return {"results": [match.to_payload() for match in matches]}


class ContextualSearchInput(_ToolInput):
    query: str
    limit: int = Field(5, gt=0)


class ContextualSearchTool(Tool):
    name = "contextual_search"
    description = (
        "Finds the memories and MOCs most related in meaning to the query using vector embeddings."
    )
    fields = (
        FieldDescription("query", "string", "The search query to find relevant memories"),
        FieldDescription("limit", "number", "The maximum number of results to return (default: 5)", required=False),
        PROCESS_DESCRIPTION,
    )
    input_model = ContextualSearchInput

    def invoke(self, data: ContextualSearchInput, context: KnowledgeContext) -> Mapping[str, Any]:
        matches = context.search.contextual_search(data.query, limit=data.limit)
        return {
            "document_ids": [match.id for match in matches if match.kind == "document"],
            "moc_ids": [match.id for match in matches if match.kind == "moc"],
        }


# ----------------------------------------------------------------------
# Sandboxed filesystem tools
# ----------------------------------------------------------------------
def resolve_in_workspace(context: KnowledgeContext, requested: str) -> Path:
    """Resolve ``requested`` against the workspace root, refusing anything outside it."""

    base = context.workspace_root
    resolved = (base / requested).resolve()
    if resolved != base and base not in resolved.parents:
        raise AccessDenied(f"Access denied: cannot access paths outside of {base}")
    return resolved


class ListDirectoryInput(_ToolInput):
    directory: str


class ListDirectoryTool(Tool):
    name = "list_directory"
    description = "Lists the files and directories in a directory of the environment you run in."
    fields = (
        FieldDescription(
            "directory",
            "string",
            "The directory to list, relative to the root of the environment you have access to.",
        ),
        PROCESS_DESCRIPTION,
    )
    input_model = ListDirectoryInput

    def invoke(self, data: ListDirectoryInput, context: KnowledgeContext) -> Mapping[str, Any]:
        path = resolve_in_workspace(context, data.directory)
        if not path.exists():
            raise NotFoundError(f"Directory does not exist: {data.directory}")
        if not path.is_dir():
            raise ToolExecutionError(f"Not a directory: {data.directory}")
        entries = sorted(child.name for child in path.iterdir())
        return {"file_paths": [str(Path(data.directory) / entry) for entry in entries]}


class ReadFileInput(_ToolInput):
    file_path: str


class ReadFileTool(Tool):
    name = "read_file"
    description = (
        "Reads a text file from the machine you run on. Do not use this for your memories; "
        "use read_memory instead."
    )
    fields = (
        FieldDescription(
            "file_path",
            "string",
            "The file to read, relative to the root of the environment you have access to.",
        ),
        PROCESS_DESCRIPTION,
    )
    input_model = ReadFileInput

    def invoke(self, data: ReadFileInput, context: KnowledgeContext) -> Mapping[str, Any]:
        path = resolve_in_workspace(context, data.file_path)
        if not path.exists():
            raise NotFoundError(f"File does not exist: {data.file_path}")
        if not path.is_file():
            raise ToolExecutionError(f"Not a file: {data.file_path}")
        return {"content": path.read_text(encoding="utf-8", errors="replace")}


# ----------------------------------------------------------------------
# Reference service tools
# ----------------------------------------------------------------------
def _reference_client(context: KnowledgeContext) -> WikipediaClient:
    if context.reference_client is None:
        raise ToolExecutionError("No reference service is configured")
    return context.reference_client


class WikipediaSearchTool(Tool):
    name = "wikipedia_search"
    description = "Searches Wikipedia and returns the top pages with their summaries."
    fields = (
        FieldDescription("query", "string", "The search query to find information on Wikipedia."),
        PROCESS_DESCRIPTION,
    )
    input_model = QueryInput

    def invoke(self, data: QueryInput, context: KnowledgeContext) -> Mapping[str, Any]:
        pages = _reference_client(context).search(data.query, limit=3)
        if not pages:
            raise NotFoundError("No results found for the given query.")
        return {"results": [page.to_payload() for page in pages]}


class WikipediaPageContentInput(_ToolInput):
    page_id: Union[int, str]
    page: int = Field(0, ge=0)


class WikipediaPageContentTool(Tool):
    name = "wikipedia_page_content"
    description = (
        "Fetches the text of a Wikipedia page by id, in chunks. Find the id with wikipedia_search."
    )
    fields = (
        FieldDescription("page_id", "string", "The Wikipedia page id to fetch."),
        FieldDescription(
            "page",
            "number",
            "Which chunk of the page to read (default: 0). If has_more is true there is more to fetch.",
            required=False,
        ),
        PROCESS_DESCRIPTION,
    )
    input_model = WikipediaPageContentInput

    def invoke(self, data: WikipediaPageContentInput, context: KnowledgeContext) -> Mapping[str, Any]:
        title, content = _reference_client(context).page_content(data.page_id)
        start = data.page * WIKIPEDIA_PAGE_SIZE
        end = start + WIKIPEDIA_PAGE_SIZE
        return {"title": title, "content": content[start:end], "has_more": end < len(content)}


def default_tools() -> List[Tool]:
    return [
        CreateMemoryTool(),
        CreateMocTool(),
        EditMemoryTool(),
        ReadMemoryTool(),
        MocSearchTool(),
        SearchMemoriesTool(),
        ContextualSearchTool(),
        ListDirectoryTool(),
        ReadFileTool(),
        WikipediaSearchTool(),
        WikipediaPageContentTool(),
    ]


__all__ = [
    "ContextualSearchTool",
    "CreateMemoryTool",
    "CreateMocTool",
    "EditMemoryTool",
    "ListDirectoryTool",
    "MocSearchTool",
    "ReadFileTool",
    "ReadMemoryTool",
    "SearchMemoriesTool",
    "WIKIPEDIA_PAGE_SIZE",
    "WikipediaPageContentTool",
    "WikipediaSearchTool",
    "default_tools",
    "resolve_in_workspace",
]
