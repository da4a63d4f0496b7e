"""The skill contract: named bundles of tools plus their handlers."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel, ConfigDict

from ..models import ChatMessage

if TYPE_CHECKING:
    from ..config import Settings
    from ..github import GitHub
    from ..store import Store
    from ..web import WebFetcher

logger = logging.getLogger(__name__)


class DuplicateToolError(ValueError):
    """Raised when a skill or tool name is registered twice."""


class NoArgs(BaseModel):
    """Argument model for tools that take no parameters."""

    model_config = ConfigDict(extra="ignore")


@dataclass
class ToolContext:
    """Capabilities handed to every tool handler for one inbound message.

    ``reset_requested`` is the only field a handler is expected to write:
    it tells the engine to drop the loaded history before saving.
    """

    chat_id: str
    settings: "Settings"
    store: "Store"
    github: Optional["GitHub"] = None
    web: Optional["WebFetcher"] = None
    history: List[ChatMessage] = field(default_factory=list)
    reset_requested: bool = False


Handler = Callable[[Any, ToolContext], Any]


@dataclass(frozen=True)
class ToolSpec:
    """One model-invokable tool: its declared schema and its handler."""

    name: str
    description: str
    handler: Handler
    args_model: Type[BaseModel] = NoArgs

    def schema(self) -> Dict[str, Any]:
        """Renders the OpenAI function-calling schema from ``args_model``."""
        parameters = self.args_model.model_json_schema()
        parameters.pop("title", None)
        parameters.pop("description", None)
        parameters.setdefault("properties", {})
        parameters["type"] = "object"
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters,
            },
        }


@dataclass(frozen=True)
class Skill:
    name: str
    description: str
    tools: List[ToolSpec]


class SkillRegistry:
    """Aggregates skills into one flat tool catalog and one name to handler mapping.

    Tool names must be unique across every registered skill; a clash raises
    ``DuplicateToolError`` at registration time instead of silently replacing
    the earlier handler.
    """

    def __init__(self, skills: Iterable[Skill] = ()):
        self._skills: Dict[str, Skill] = {}
        self._tools: Dict[str, ToolSpec] = {}
        self._owners: Dict[str, str] = {}
        for skill in skills:
            self.register(skill)

    def register(self, skill: Skill) -> None:
        if skill.name in self._skills:
            raise DuplicateToolError(f"Skill '{skill.name}' is already registered")

        seen = set()
        for tool in skill.tools:
            if tool.name in self._tools:
                raise DuplicateToolError(
                    f"Tool '{tool.name}' of skill '{skill.name}' is already "
                    f"registered by skill '{self._owners[tool.name]}'"
                )
            if tool.name in seen:
                raise DuplicateToolError(
                    f"Tool '{tool.name}' is declared twice in skill '{skill.name}'"
                )
            seen.add(tool.name)

        self._skills[skill.name] = skill
        for tool in skill.tools:
            self._tools[tool.name] = tool
            self._owners[tool.name] = skill.name
        logger.debug("Registered skill %s (%d tools)", skill.name, len(skill.tools))

    def get(self, tool_name: str) -> Optional[ToolSpec]:
        return self._tools.get(tool_name)

    def get_tools(self) -> List[Dict[str, Any]]:
        return [tool.schema() for tool in self._tools.values()]

    @property
    def skills(self) -> List[Skill]:
        return list(self._skills.values())

    def __len__(self) -> int:
        return len(self._tools)
