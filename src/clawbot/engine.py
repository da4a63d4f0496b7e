"""The engine drives one inbound message through the tool-calling loop.

Each turn consults the model once. If it asks for tools, every requested
tool runs, the outcomes are folded into the next prompt together with the
original request, and the model is consulted again. The tool catalog is
withheld on the last permitted turn, so a run makes at most ``max_turns``
model calls and always ends with text.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .models import ASSISTANT_ROLE, USER_ROLE, ChatMessage, LLMReply, ToolCall, ToolResult
from .prompts import build_messages
from .skills import ToolContext

logger = logging.getLogger(__name__)

FALLBACK_REPLY = (
    "🌀 I went around in circles with my tools and couldn't settle on an answer. "
    "Could you rephrase or narrow down the request?"
)


@dataclass
class OrchestrationState:
    """Per-request loop state; never persisted."""

    original_text: str
    current_text: str
    current_context: Optional[Dict[str, Any]] = None
    image_url: Optional[str] = None
    turn: int = 0
    tool_results_text: str = ""
    final_reply: Optional[str] = None


@dataclass
class OrchestrationResult:
    reply: str
    turns: int
    converged: bool
    is_error: bool = False
    tool_results: List[ToolResult] = field(default_factory=list)


def format_tool_results(results: List[ToolResult]) -> str:
    """One line per outcome, attributed to the tool that produced it."""
    return "\n".join(f"[{r.function_name}] {r.content}" for r in results)


def follow_up_prompt(original_text: str, tool_results_text: str, final: bool) -> str:
    """Restates the original request with the tool outcomes gathered so far."""
    if final:
        instruction = "Answer the user's original request now, using these results."
    else:
        instruction = (
            "If you need more information, call another tool. "
            "Otherwise, answer the user's original request."
        )
    return (
        f'The user originally asked: "{original_text}"\n\n'
        f"Tool results so far:\n{tool_results_text}\n\n{instruction}"
    )


class Engine(ABC):
    """Interface for turning one user message into one reply."""

    def __init__(self, app=None):
        self.app = app

    @abstractmethod
    def handle_message(
        self,
        chat_id: str,
        user_text: str,
        context: Optional[Dict[str, Any]] = None,
        image_url: Optional[str] = None,
        reset: bool = False,
    ) -> OrchestrationResult:
        """Loads history, produces a reply and persists the exchange."""
        pass


class Synchronous(Engine):
    """Runs the loop in the calling thread.

    Tools of one round run one after another unless ``tool_workers`` > 1, in
    which case they fan out to a thread pool. Either way all outcomes are
    collected, in the order the model requested them, before the next turn.
    """

    MAX_AGENTIC_TURNS = 3

    def __init__(self, app=None, max_turns: Optional[int] = None, tool_workers: int = 1):
        super().__init__(app)
        self.max_turns = self.MAX_AGENTIC_TURNS if max_turns is None else max_turns
        self.tool_workers = tool_workers

    def handle_message(
        self,
        chat_id: str,
        user_text: str,
        context: Optional[Dict[str, Any]] = None,
        image_url: Optional[str] = None,
        reset: bool = False,
    ) -> OrchestrationResult:
        history = [] if reset else self.app.store.load_history(chat_id)
        logger.info("Chat %s: loaded %d history messages", chat_id, len(history))

        tool_context = self.app.build_tool_context(chat_id, history)
        result = self.run(user_text, context, history, tool_context, image_url=image_url)

        if tool_context.reset_requested:
            history = []
        updated = history + [
            ChatMessage(role=USER_ROLE, content=user_text),
            ChatMessage(role=ASSISTANT_ROLE, content=result.reply),
        ]
        self._before_save(chat_id, updated)
        saved = self.app.store.save_history(chat_id, updated)
        logger.info("Chat %s: saved %d history messages", chat_id, len(saved))
        return result

    def run(
        self,
        user_text: str,
        context: Optional[Dict[str, Any]],
        history: List[ChatMessage],
        tool_context: ToolContext,
        image_url: Optional[str] = None,
    ) -> OrchestrationResult:
        """The tool-calling loop itself; reads nothing from and writes nothing to the store."""
        state = OrchestrationState(
            original_text=user_text,
            current_text=user_text,
            current_context=context,
            image_url=image_url,
        )
        catalog = self.app.tools.get_tools() or []
        all_results: List[ToolResult] = []
        is_error = False

        while state.turn < self.max_turns:
            state.turn += 1
            offered = catalog if state.turn < self.max_turns else None

            messages = build_messages(
                state.current_text, state.current_context, history, image_url=state.image_url
            )
            self._before_llm_call(state, messages)
            logger.info(
                "Turn %d/%d: consulting model (%s)",
                state.turn,
                self.max_turns,
                f"{len(offered)} tools offered" if offered else "no tools",
            )
            reply = self.app.llm.complete(messages, tools=offered)
            self._after_llm_call(state, reply)

            if reply.is_error:
                state.final_reply = reply.content
                is_error = True
                break
            if not reply.wants_tools:
                state.final_reply = reply.content
                break
            if offered is None:
                # Tools never run on the final turn
                logger.warning(
                    "Model requested %d tool(s) on the final turn, not executing: %s",
                    len(reply.tool_calls),
                    ", ".join(call.function_name for call in reply.tool_calls),
                )
                break

            results = self._execute_tools(reply.tool_calls, tool_context)
            all_results.extend(results)
            block = format_tool_results(results)
            state.tool_results_text = "\n".join(
                part for part in (state.tool_results_text, block) if part
            )
            state.current_context = {"type": "tool_result", "content": block}
            state.current_text = follow_up_prompt(
                state.original_text,
                state.tool_results_text,
                final=state.turn + 1 >= self.max_turns,
            )

        converged = state.final_reply is not None
        if not converged:
            logger.warning("No final answer after %d turns, using fallback", state.turn)
        return OrchestrationResult(
            reply=state.final_reply if converged else FALLBACK_REPLY,
            turns=state.turn,
            converged=converged,
            is_error=is_error,
            tool_results=all_results,
        )

    def _execute_tools(
        self, tool_calls: List[ToolCall], tool_context: ToolContext
    ) -> List[ToolResult]:
        if self.tool_workers > 1 and len(tool_calls) > 1:
            workers = min(self.tool_workers, len(tool_calls))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="clawbot-tool") as pool:
                return list(pool.map(lambda call: self._execute_one(call, tool_context), tool_calls))
        return [self._execute_one(call, tool_context) for call in tool_calls]

    def _execute_one(self, tool_call: ToolCall, tool_context: ToolContext) -> ToolResult:
        try:
            result = self.app.tools.execute_tool_call(tool_call, tool_context)
        except Exception as e:
            # Tool pillars must not raise; keep the round going if one does anyway
            logger.error("Tool pillar raised for %s: %s", tool_call.function_name, e, exc_info=True)
            result = ToolResult(
                tool_call_id=tool_call.id,
                function_name=tool_call.function_name,
                content=f"Error executing {tool_call.function_name}: {e}",
                is_error=True,
            )
        logger.info(
            "Tool %s %s", tool_call.function_name, "failed" if result.is_error else "succeeded"
        )
        return result

    # Hooks for subclasses; no-ops by default
    def _before_llm_call(self, state: OrchestrationState, messages: List[Dict[str, Any]]):
        pass

    def _after_llm_call(self, state: OrchestrationState, reply: LLMReply):
        pass

    def _before_save(self, chat_id: str, messages: List[ChatMessage]):
        pass
