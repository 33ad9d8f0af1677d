"""OpenAI-compatible clients for tool-calling chat completions and embeddings."""

from __future__ import annotations

import logging
import os
from copy import deepcopy
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence

from openai import OpenAI, OpenAIError

from .errors import UpstreamServiceError

logger = logging.getLogger(__name__)


DEFAULT_EXTRA_BODY: Mapping[str, Any] = {
    "extra_body": {"chat_template_kwargs": {"enable_thinking": False}}
}


class LLMClient:
    """Thin wrapper over :class:`openai.OpenAI` with provider defaults."""

    def __init__(
        self,
        *,
        model: str,
        base_url: str | None = None,
        provider: str = "openai",
        api_key: str | None = None,
        api_key_env: str | None = None,
        default_extra_body: Mapping[str, Any] | None = None,
    ) -> None:
        provider_key = provider.lower()
        if provider_key not in {"vllm", "deepseek", "openai"}:
            raise ValueError(f"Unsupported provider '{provider}'")

        if api_key is None:
            env_name = api_key_env or (
                "DEEPSEEK_API_KEY" if provider_key == "deepseek" else "OPENAI_API_KEY"
            )
            api_key = os.environ.get(env_name) or ""

        extra = default_extra_body
        if extra is None and provider_key == "vllm":
            extra = DEFAULT_EXTRA_BODY

        self._client = OpenAI(base_url=base_url, api_key=api_key)
        self.model = model
        self.provider = provider_key
        self.default_extra_body = dict(extra or {})

    # ------------------------------------------------------------------
    # Chat completions
    # ------------------------------------------------------------------
    def complete(
        self,
        messages: Sequence[Mapping[str, Any]],
        *,
        tools: Optional[Sequence[Mapping[str, Any]]] = None,
        tool_choice: Optional[str] = None,
        extra_body: Mapping[str, Any] | None = None,
    ) -> Dict[str, Any]:
        """Request one completion and return the assistant message as a plain dict."""

        payload: MutableMapping[str, Any] = {"model": self.model, "messages": list(messages)}
        if tools:
            payload["tools"] = list(tools)
            if tool_choice is not None:
                payload["tool_choice"] = tool_choice
        merged = self._merge_extra(extra_body)
        if merged:
            payload.update(merged)

        logger.debug("Dispatching chat request: %s", payload)
        try:
            response = self._client.chat.completions.create(**payload)
        except OpenAIError as exc:
            raise UpstreamServiceError(f"Chat completion failed: {exc}") from exc
        logger.debug("Chat raw response: %s", response)
        if not response.choices:
            raise UpstreamServiceError("Chat completion returned no choices")
        return self._message_to_dict(response.choices[0].message)

    @staticmethod
    def _message_to_dict(message: Any) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "role": "assistant",
            "content": getattr(message, "content", None),
        }
        tool_calls = getattr(message, "tool_calls", None) or []
        if tool_calls:
            result["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.function.name,
                        "arguments": call.function.arguments or "",
                    },
                }
                for call in tool_calls
            ]
        return result

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------
    def embed(self, texts: Iterable[str]) -> List[List[float]]:
        items = list(texts)
        if not items:
            return []

        payload: MutableMapping[str, Any] = {"model": self.model, "input": items}
        logger.debug("Dispatching embedding request for %s texts", len(items))
        try:
            response = self._client.embeddings.create(**payload)
        except OpenAIError as exc:
            raise UpstreamServiceError(f"Embedding request failed: {exc}") from exc
        vectors: List[List[float]] = []
        for entry in response.data:
            vector = getattr(entry, "embedding", None)
            if vector is None:
                continue
            vectors.append([float(x) for x in vector])
        if len(vectors) != len(items):
            raise UpstreamServiceError(
                f"Embedding count mismatch: expected {len(items)}, received {len(vectors)}"
            )
        return vectors

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _merge_extra(
        self, extra_body: Mapping[str, Any] | None
    ) -> MutableMapping[str, Any] | None:
        if not self.default_extra_body and not extra_body:
            return None
        merged: MutableMapping[str, Any] = deepcopy(self.default_extra_body)
        if extra_body:
            for key, value in extra_body.items():
                if (
                    key in merged
                    and isinstance(merged[key], MutableMapping)
                    and isinstance(value, Mapping)
                ):
                    merged[key].update(value)  # type: ignore[arg-type]
                else:
                    merged[key] = deepcopy(value) if isinstance(value, Mapping) else value
        return merged


__all__ = ["LLMClient"]
