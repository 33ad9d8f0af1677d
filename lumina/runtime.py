"""Runtime wiring and command line entry point for the knowledge base agent."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, TextIO

from .browser import KnowledgeBrowser
from .clients import LLMClient
from .context import EmbeddingClient, KnowledgeContext
from .entities import Moc
from .manager import ChatClient, ConversationController
from .prompts import ROOT_MOC_NAME, SYSTEM_PROMPT, render_system_prompt
from .reference import WikipediaClient
from .registry import ToolRegistry
from .tools import default_tools

logger = logging.getLogger(__name__)


@dataclass
class AgentRuntime:
    """High level runtime that opens a knowledge base and wires the agent to it."""

    root: str = "lumina_knowledge"
    workspace_root: str = "."
    llm_url: Optional[str] = None
    llm_model: str = "gpt-4o-mini"
    llm_provider: str = "openai"
    embed_url: Optional[str] = None
    embed_model: str = "text-embedding-ada-002"
    embed_provider: str = "openai"
    system_prompt_path: Optional[str] = None
    max_tokens: int = 15000
    tokens_per_char: float = 0.25
    max_iterations: Optional[int] = 25
    enable_reference: bool = True
    llm_client: Optional[ChatClient] = None
    embedding_client: Optional[EmbeddingClient] = None

    def __post_init__(self) -> None:
        if self.llm_client is None:
            self.llm_client = LLMClient(
                base_url=self.llm_url,
                model=self.llm_model,
                provider=self.llm_provider,
            )
        if self.embedding_client is None:
            self.embedding_client = LLMClient(
                base_url=self.embed_url,
                model=self.embed_model,
                provider=self.embed_provider,
                default_extra_body={},
            )

        self.context = KnowledgeContext(
            root=Path(self.root),
            embedding_client=self.embedding_client,
            workspace_root=Path(self.workspace_root),
            reference_client=WikipediaClient() if self.enable_reference else None,
        )
        self.registry = ToolRegistry(self.context)
        for tool in default_tools():
            self.registry.register(tool)

        self.root_moc = self._ensure_root_moc()
        template = (
            Path(self.system_prompt_path).read_text(encoding="utf-8")
            if self.system_prompt_path
            else SYSTEM_PROMPT
        )
        self.controller = ConversationController(
            llm_client=self.llm_client,
            registry=self.registry,
            system_prompt=render_system_prompt(template, self.root_moc.id),
            max_tokens=self.max_tokens,
            tokens_per_char=self.tokens_per_char,
            max_iterations=self.max_iterations,
        )
        self.browser = KnowledgeBrowser(self.context)

    def _ensure_root_moc(self) -> Moc:
        moc = Moc.load_by_name(self.context, ROOT_MOC_NAME)
        if moc is not None:
            logger.info("Root MOC loaded: %s", moc.id)
            return moc
        moc = Moc.create(self.context, ROOT_MOC_NAME)
        moc.save()
        logger.info("Root MOC created: %s", moc.id)
        return moc

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def chat(self, message: str) -> str:
        return self.controller.chat(message)

    def close(self) -> None:
        self.context.close()


def _run_repl(runtime: AgentRuntime, stream: TextIO, out: TextIO) -> None:
    out.write("Reply to Lumina (type 'exit' to quit):\n")
    out.flush()
    for raw_line in stream:
        line = raw_line.strip()
        if not line:
            continue
        if line.lower() == "exit":
            break
        out.write(f"Lumina: {runtime.chat(line)}\n")
        out.flush()


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Run the Lumina knowledge base agent")
    parser.add_argument("--root", default="lumina_knowledge", help="Knowledge base folder")
    parser.add_argument(
        "--workspace",
        default=".",
        help="Directory the file tools may read; paths outside it are refused",
    )
    parser.add_argument("--llm-url", default=None, help="Base URL of an OpenAI-compatible chat server")
    parser.add_argument("--llm-model", default="gpt-4o-mini", help="Chat model name")
    parser.add_argument(
        "--llm-provider",
        choices=["vllm", "deepseek", "openai"],
        default="openai",
        help="Chat provider type",
    )
    parser.add_argument("--embed-url", default=None, help="Base URL of the embedding server")
    parser.add_argument("--embed-model", default="text-embedding-ada-002", help="Embedding model name")
    parser.add_argument(
        "--embed-provider",
        choices=["vllm", "deepseek", "openai"],
        default="openai",
        help="Embedding provider type",
    )
    parser.add_argument("--system-prompt", type=Path, help="Optional system prompt template file")
    parser.add_argument("--max-tokens", type=int, default=15000, help="History token budget")
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=25,
        help="Model round-trips allowed per user message before giving up",
    )
    parser.add_argument("--no-wikipedia", action="store_true", help="Disable the Wikipedia tools")
    parser.add_argument("--message", help="Send one message, print the answer, and exit")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging to trace prompt/response payloads.",
    )

    args = parser.parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    runtime = AgentRuntime(
        root=args.root,
        workspace_root=args.workspace,
        llm_url=args.llm_url,
        llm_model=args.llm_model,
        llm_provider=args.llm_provider,
        embed_url=args.embed_url,
        embed_model=args.embed_model,
        embed_provider=args.embed_provider,
        system_prompt_path=str(args.system_prompt) if args.system_prompt else None,
        max_tokens=args.max_tokens,
        max_iterations=args.max_iterations,
        enable_reference=not args.no_wikipedia,
    )
    try:
        if args.message:
            print(runtime.chat(args.message))
        else:
            _run_repl(runtime, sys.stdin, sys.stdout)
    finally:
        runtime.close()
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
