from __future__ import annotations

import json
import string
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pytest

from lumina.context import KnowledgeContext
from lumina.registry import ToolRegistry
from lumina.tools import default_tools


class FakeEmbeddingClient:
    """Letter-frequency vectors: texts sharing words land close together."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []

    def embed(self, texts: Iterable[str]) -> List[List[float]]:
        batch = list(texts)
        self.calls.append(batch)
        vectors: List[List[float]] = []
        for text in batch:
            lowered = text.lower()
            vectors.append([float(lowered.count(letter)) for letter in string.ascii_lowercase])
        return vectors


class FakeLLMClient:
    """Replays queued replies and records every request."""

    def __init__(self, replies: Sequence[Mapping[str, Any]], plan: str = "<plan></plan>") -> None:
        self.replies = [dict(reply) for reply in replies]
        self.plan = plan
        self.calls: List[Dict[str, Any]] = []

    def complete(
        self,
        messages: Sequence[Mapping[str, Any]],
        *,
        tools: Optional[Sequence[Mapping[str, Any]]] = None,
        tool_choice: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.calls.append(
            {"messages": [dict(m) for m in messages], "tools": tools, "tool_choice": tool_choice}
        )
        if tool_choice == "none":
            return {"role": "assistant", "content": self.plan}
        if not self.replies:
            raise AssertionError("No reply queued for the model")
        return self.replies.pop(0)

    @property
    def answer_calls(self) -> List[Dict[str, Any]]:
        return [call for call in self.calls if call["tool_choice"] != "none"]


def tool_call(call_id: str, name: str, arguments: Any) -> Dict[str, Any]:
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return {"id": call_id, "type": "function", "function": {"name": name, "arguments": raw}}


def assistant(content: str = "", calls: Sequence[Mapping[str, Any]] = ()) -> Dict[str, Any]:
    message: Dict[str, Any] = {"role": "assistant", "content": content}
    if calls:
        message["tool_calls"] = list(calls)
    return message


@pytest.fixture
def embedder() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    root = tmp_path / "workspace"
    (root / "notes").mkdir(parents=True)
    (root / "notes" / "a.txt").write_text("alpha", encoding="utf-8")
    (root / "notes" / "b.txt").write_text("beta", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("hidden", encoding="utf-8")
    return root


@pytest.fixture
def context(tmp_path: Path, embedder: FakeEmbeddingClient, workspace: Path):
    ctx = KnowledgeContext(root=tmp_path / "kb", embedding_client=embedder, workspace_root=workspace)
    yield ctx
    ctx.close()


@pytest.fixture
def registry(context: KnowledgeContext) -> ToolRegistry:
    reg = ToolRegistry(context)
    for tool in default_tools():
        reg.register(tool)
    return reg
