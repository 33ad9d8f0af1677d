"""Tool-augmented conversation loop driving the knowledge base agent."""

from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from .errors import LoopBudgetExceeded
from .prompts import PLAN_REFRESH_PROMPT
from .registry import ToolRegistry
from .schemas import dumps_payload

logger = logging.getLogger(__name__)

Message = Dict[str, Any]


class ChatClient(Protocol):
    def complete(
        self,
        messages: Sequence[Mapping[str, Any]],
        *,
        tools: Optional[Sequence[Mapping[str, Any]]] = None,
        tool_choice: Optional[str] = None,
    ) -> Dict[str, Any]:
        ...


@dataclass
class ConversationController:
    """Runs one user turn at a time until the model answers without tool calls.

    ``history`` persists across :meth:`chat` calls, so one controller holds one
    conversation. Every iteration spends an extra model round-trip on the plan
    refresh when ``plan_refresh`` is on.
    """

    llm_client: ChatClient
    registry: ToolRegistry
    system_prompt: str
    max_tokens: int = 15000
    tokens_per_char: float = 0.25
    max_iterations: Optional[int] = 25
    max_seconds: Optional[float] = None
    plan_refresh: bool = True
    history: List[Message] = field(default_factory=list)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def chat(self, user_message: str) -> str:
        if not self.history:
            self.history.append({"role": "system", "content": self.system_prompt})
        self.history.append({"role": "user", "content": user_message})

        started = time.monotonic()
        iterations = 0
        while True:
            self._check_budget(iterations, started)
            iterations += 1

            if self.plan_refresh:
                self._refresh_plan()
            self.history[:] = self.truncate_messages(self.history)

            reply = self.llm_client.complete(self.history, tools=self.registry.to_schema())
            tool_calls = reply.get("tool_calls") or []
            self.history.append(reply)
            if not tool_calls:
                content = reply.get("content") or ""
                logger.info("Assistant: %s", content)
                return content

            self._run_tool_calls(tool_calls)

    # ------------------------------------------------------------------
    # Loop steps
    # ------------------------------------------------------------------
    def _check_budget(self, iterations: int, started: float) -> None:
        if self.max_iterations is not None and iterations >= self.max_iterations:
            raise LoopBudgetExceeded(
                f"Agent loop stopped after {iterations} iterations without a final answer",
                iterations,
            )
        if self.max_seconds is not None and time.monotonic() - started >= self.max_seconds:
            raise LoopBudgetExceeded(
                f"Agent loop exceeded {self.max_seconds}s without a final answer",
                iterations,
            )

    def _refresh_plan(self) -> None:
        self.history.append({"role": "system", "content": PLAN_REFRESH_PROMPT})
        plan = self.llm_client.complete(
            self.history, tools=self.registry.to_schema(), tool_choice="none"
        )
        logger.debug("Updated plan: %s", plan.get("content"))
        # Content only: history must never hold an unanswered tool call.
        self.history.append({"role": "assistant", "content": plan.get("content") or ""})

    def _run_tool_calls(self, tool_calls: Sequence[Mapping[str, Any]]) -> None:
        for call in tool_calls:
            function = call.get("function") or {}
            name = str(function.get("name") or "")
            arguments = function.get("arguments") or ""
            logger.info("Tool call %s: %s(%s)", call.get("id"), name, arguments)
            try:
                outcome = self.registry.dispatch(name, arguments)
                content = dumps_payload(outcome.to_payload())
            except Exception as exc:
                logger.exception("Tool call %s could not be answered normally", call.get("id"))
                content = dumps_payload(
                    {"ok": False, "error": {"kind": "tool_execution_error", "message": str(exc)}}
                )
            self.history.append(
                {
                    "role": "tool",
                    "tool_call_id": call.get("id"),
                    "name": name,
                    "content": content,
                }
            )

    # ------------------------------------------------------------------
    # Token budget
    # ------------------------------------------------------------------
    def estimate_tokens(self, text: str) -> int:
        return math.ceil(len(text) * self.tokens_per_char)

    def _message_tokens(self, message: Mapping[str, Any]) -> int:
        return self.estimate_tokens(json.dumps(message, ensure_ascii=False))

    def truncate_messages(self, messages: Sequence[Message]) -> List[Message]:
        """Keep the system prompt, then messages in order while they fit ``max_tokens``.

        The first message that does not fit is kept with its text cut to the
        remaining budget; everything after it is dropped.
        """

        if not messages:
            return []
        kept: List[Message] = [messages[0]]
        total = self._message_tokens(messages[0])
        for message in messages[1:]:
            tokens = self._message_tokens(message)
            if total + tokens <= self.max_tokens:
                kept.append(message)
                total += tokens
                continue
            remaining = max(self.max_tokens - total, 0)
            kept.append(self._truncate_content(message, remaining))
            logger.debug("Truncated history to %s messages", len(kept))
            break
        return kept

    def _truncate_content(self, message: Message, max_tokens: int) -> Message:
        content = message.get("content")
        if not isinstance(content, str):
            return dict(message)
        max_chars = math.floor(max_tokens / self.tokens_per_char)
        return {**message, "content": content[:max_chars]}


__all__ = ["ChatClient", "ConversationController"]
