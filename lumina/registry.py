"""Tool descriptors, function-calling schema generation, and safe dispatch."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import KnowledgeBaseError, UnknownTool, ValidationError
from .schemas import ToolOutcome

if TYPE_CHECKING:
    from .context import KnowledgeContext

logger = logging.getLogger(__name__)

FIELD_TYPES = ("string", "number", "boolean", "object", "array", "null")


@dataclass
class FieldDescription:
    """One named input of a tool as shown to the model."""

    name: str
    type: str
    description: str
    values: Optional[List[str]] = None
    required: bool = True

    def __post_init__(self) -> None:
        if self.type not in FIELD_TYPES:
            raise ValueError(f"Unsupported field type '{self.type}' for '{self.name}'")

    def to_property(self) -> Dict[str, Any]:
        prop: Dict[str, Any] = {"type": self.type, "description": self.description}
        if self.values:
            prop["enum"] = list(self.values)
        if self.type == "array":
            prop["items"] = {"type": "string"}
        return prop


class Tool:
    """Base class for capabilities the model may call.

    Subclasses set ``name``, ``description``, ``fields`` and ``input_model``
    and implement :meth:`invoke`.
    """

    name: ClassVar[str]
    description: ClassVar[str]
    fields: ClassVar[Sequence[FieldDescription]] = ()
    input_model: ClassVar[Type[BaseModel]]

    def validate(self, raw: str) -> BaseModel:
        try:
            data = json.loads(raw) if raw and raw.strip() else {}
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Invalid JSON input: {exc}", [f"arguments: {exc.msg}"]) from exc
        if not isinstance(data, dict):
            raise ValidationError(
                "Tool input must be a JSON object",
                [f"arguments: expected object, got {type(data).__name__}"],
            )
        try:
            return self.input_model.model_validate(data)
        except PydanticValidationError as exc:
            errors = [
                f"{'.'.join(str(part) for part in err['loc']) or 'arguments'}: {err['msg']}"
                for err in exc.errors()
            ]
            raise ValidationError(f"Invalid input for {self.name}", errors) from exc

    def invoke(self, data: Any, context: KnowledgeContext) -> Mapping[str, Any]:
        raise NotImplementedError

    def to_schema(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {field.name: field.to_property() for field in self.fields},
                    "required": [field.name for field in self.fields if field.required],
                },
            },
        }


class ToolRegistry:
    """Holds the registered tools and mediates every model-requested side effect."""

    def __init__(self, context: KnowledgeContext) -> None:
        self.context = context
        self.tools: Dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        if tool.name in self.tools:
            logger.warning("Replacing already registered tool %s", tool.name)
        self.tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        try:
            return self.tools[name]
        except KeyError:
            raise UnknownTool(f"Tool {name} not found") from None

    def to_schema(self) -> List[Dict[str, Any]]:
        return [tool.to_schema() for tool in self.tools.values()]

    def dispatch(self, name: str, raw_args: str) -> ToolOutcome:
        """Validate and run one tool call. Never raises."""

        try:
            tool = self.get(name)
        except UnknownTool as exc:
            logger.warning("Model requested unknown tool %s", name)
            return ToolOutcome.failure(name, "unknown_tool", str(exc))

        try:
            data = tool.validate(raw_args)
        except ValidationError as exc:
            logger.warning("Invalid arguments for %s: %s (%s)", name, raw_args, exc.errors)
            return ToolOutcome.failure(name, "invalid_arguments", str(exc), details=exc.errors)
        except Exception as exc:
            logger.warning("Could not parse arguments for %s: %r", name, raw_args)
            return ToolOutcome.failure(
                name, "invalid_arguments", f"Invalid input for {name}: {exc}", details=[f"arguments: {exc}"]
            )

        progress = getattr(data, "process_description", None)
        if progress:
            logger.info("%s", progress)

        try:
            result = tool.invoke(data, self.context)
        except KnowledgeBaseError as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            return ToolOutcome.failure(
                name, "tool_execution_error", f"Error invoking tool {name}: {exc}", cause=type(exc).__name__
            )
        except Exception as exc:
            logger.exception("Unexpected error in tool %s", name)
            return ToolOutcome.failure(
                name, "tool_execution_error", f"Error invoking tool {name}: {exc}", cause=type(exc).__name__
            )

        logger.debug("Tool %s returned %s", name, result)
        return ToolOutcome.success(name, result)


__all__ = ["FIELD_TYPES", "FieldDescription", "Tool", "ToolRegistry"]
