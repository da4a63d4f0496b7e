"""Concrete implementations for tool handlers."""

import asyncio
import inspect
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .models import ToolCall, ToolResult
from .skills import SkillRegistry, ToolContext

logger = logging.getLogger(__name__)


class Tool(ABC):
    """Interface for executing agentic tools."""

    @abstractmethod
    def get_tools(self) -> List[Dict[str, Any]]:
        """Returns a list of tool specifications for the LLM."""
        return []

    @abstractmethod
    def execute_tool_call(
        self, tool_call: ToolCall, context: Optional[ToolContext] = None
    ) -> ToolResult:
        """Executes a tool call; implementations must never raise."""
        pass


class NoTool(Tool):
    """Default handler that provides no tools and does nothing."""

    def get_tools(self) -> List[Dict[str, Any]]:
        return []

    def execute_tool_call(
        self, tool_call: ToolCall, context: Optional[ToolContext] = None
    ) -> ToolResult:
        return ToolResult(
            tool_call_id=tool_call.id,
            function_name=tool_call.function_name,
            content=f"Tool {tool_call.function_name} not found (NoTool handler is active)",
            is_error=True,
        )


class SkillTool(Tool):
    """Dispatches tool calls to the handlers of a SkillRegistry.

    Lookup, argument validation, invocation and result rendering all happen
    here, and every failure is turned into an error ToolResult so the
    orchestration loop only ever sees text.
    """

    def __init__(self, registry: SkillRegistry):
        self.registry = registry

    def get_tools(self) -> List[Dict[str, Any]]:
        return self.registry.get_tools()

    def execute_tool_call(
        self, tool_call: ToolCall, context: Optional[ToolContext] = None
    ) -> ToolResult:
        name = tool_call.function_name
        spec = self.registry.get(name)
        if spec is None:
            logger.warning("Model requested unknown tool %s", name)
            return self._error(tool_call, f"Tool {name} not found")

        try:
            raw_args = json.loads(tool_call.function_args or "{}")
        except json.JSONDecodeError as e:
            return self._error(tool_call, f"Failed to parse arguments for {name}: {e}")
        if not isinstance(raw_args, dict):
            return self._error(
                tool_call, f"Failed to parse arguments for {name}: expected an object"
            )

        try:
            args = spec.args_model.model_validate(raw_args)
        except ValidationError as e:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in e.errors()
            )
            return self._error(tool_call, f"Invalid arguments for {name}: {problems}")

        started = time.perf_counter()
        try:
            result = spec.handler(args, context)
            if inspect.iscoroutine(result):
                result = asyncio.run(result)
        except Exception as e:
            logger.warning("Tool %s failed: %s", name, e, exc_info=True)
            return self._error(tool_call, f"Error executing {name}: {e}")

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info("Tool %s finished in %d ms", name, elapsed_ms)
        return ToolResult(
            tool_call_id=tool_call.id,
            function_name=name,
            content=_to_text(result),
        )

    @staticmethod
    def _error(tool_call: ToolCall, message: str) -> ToolResult:
        return ToolResult(
            tool_call_id=tool_call.id,
            function_name=tool_call.function_name,
            content=message,
            is_error=True,
        )


def _to_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    if result is None:
        return ""
    try:
        return json.dumps(result)
    except (TypeError, ValueError):
        return str(result)
