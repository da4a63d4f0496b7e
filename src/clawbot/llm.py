"""Concrete implementations for LLM providers."""

import json
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import LLMReply, ToolCall

logger = logging.getLogger(__name__)

EMPTY_REPLY = "⚠️ I couldn't think of anything to say."


class TranscriptionUnavailableError(RuntimeError):
    """The provider cannot transcribe audio."""


class LLM(ABC):
    """Abstract Base Class for all LLM providers."""

    @abstractmethod
    def generate_response(
        self,
        messages: List[Dict[str, Any]],
        model: Optional[str] = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> Any:
        """Generates a response from the LLM provider.

        This method should return the provider's native, rich response object
        directly from their SDK.

        Parameters
        ----------
        messages : List[Dict[str, Any]]
            A list of message dictionaries, conforming to the provider's
            expected format.
        model : str, optional
            The specific model to use for the generation. Defaults to the
            provider's default model.
        tools : List[Dict[str, Any]], optional
            Tool catalog in OpenAI function-calling format. ``None`` or an
            empty list means no tools are offered for this call.
        **kwargs : Any
            Provider-specific parameters (e.g., temperature) to be
            passed directly to the SDK.

        Returns
        -------
        Any
            The provider's native, rich response object.
        """
        pass

    @abstractmethod
    def extract_content(self, response: Any) -> Optional[str]:
        """Extracts the text content from the provider's native response object."""
        pass

    @abstractmethod
    def parse_tool_calls(self, response: Any) -> List[ToolCall]:
        """Extracts the requested tool invocations, in the order the model returned them."""
        pass

    def transcribe(self, audio: bytes, filename: str = "voice.ogg") -> str:
        """Transcribes a voice note. Providers without speech-to-text raise
        ``TranscriptionUnavailableError``."""
        raise TranscriptionUnavailableError(
            f"{type(self).__name__} does not offer audio transcription"
        )

    def complete(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        **kwargs: Any,
    ) -> LLMReply:
        """Consults the model and normalizes its answer; never raises.

        Backend failures (network, auth, quota, malformed responses) come back
        as an ``LLMReply`` with ``is_error=True`` and an apology as content.
        """
        try:
            response = self.generate_response(messages, tools=tools or None, **kwargs)
            tool_calls = self.parse_tool_calls(response) or []
            content = self.extract_content(response)
        except Exception as e:
            logger.error("LLM request failed: %s", e, exc_info=True)
            return LLMReply(content=f"⚠️ My brain hurts. Model error: {e}", is_error=True)

        if not tool_calls and not content:
            content = EMPTY_REPLY
        return LLMReply(content=content, tool_calls=tool_calls)


class OpenAI(LLM):
    def __init__(
        self,
        default_model: str = "gpt-4o",
        api_key: Optional[str] = None,
        temperature: float = 0.8,
        timeout: float = 60.0,
        **client_kwargs: Any,
    ):
        from openai import OpenAI

        self.client = OpenAI(api_key=api_key, timeout=timeout, **client_kwargs)
        self.model = default_model
        self.temperature = temperature

    def generate_response(self, messages, model=None, tools=None, **kwargs):
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
        kwargs.setdefault("temperature", self.temperature)
        return self.client.chat.completions.create(
            messages=messages, model=model or self.model, **kwargs
        )

    def extract_content(self, response: Any) -> Optional[str]:
        return response.choices[0].message.content

    def parse_tool_calls(self, response: Any) -> List[ToolCall]:
        calls = response.choices[0].message.tool_calls or []
        return [
            ToolCall(
                id=call.id,
                function_name=call.function.name,
                function_args=call.function.arguments or "{}",
            )
            for call in calls
        ]

    def transcribe(self, audio: bytes, filename: str = "voice.ogg") -> str:
        """Transcribes a voice note with Whisper."""
        result = self.client.audio.transcriptions.create(
            model="whisper-1", file=(filename, audio)
        )
        return result.text


class OpenRouter(OpenAI):
    def __init__(self, default_model: str = "openai/gpt-4o-mini", **kwargs: Any):
        super().__init__(
            default_model=default_model,
            api_key=kwargs.pop("api_key", None) or os.environ["OPENROUTER_API_KEY"],
            base_url="https://openrouter.ai/api/v1",
            default_headers={"X-Title": "ClawBot"},
            **kwargs,
        )

    # OpenRouter has no Whisper endpoint
    transcribe = LLM.transcribe


class Ollama(LLM):
    def __init__(self, default_model: str = "llama3.1", host: Optional[str] = None):
        from ollama import Client

        self.client = Client(host=host)
        self.model = default_model

    def generate_response(self, messages, model=None, tools=None, **kwargs):
        if tools:
            kwargs["tools"] = tools
        return self.client.chat(model=model or self.model, messages=messages, **kwargs)

    def extract_content(self, response: Any) -> Optional[str]:
        return response["message"]["content"]

    def parse_tool_calls(self, response: Any) -> List[ToolCall]:
        calls = response["message"].get("tool_calls") or []
        parsed = []
        for index, call in enumerate(calls):
            arguments = call["function"].get("arguments") or {}
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            parsed.append(
                ToolCall(
                    id=f"call_{index}",
                    function_name=call["function"]["name"],
                    function_args=arguments,
                )
            )
        return parsed


class Echo(LLM):
    """Offline provider that repeats the prompt back; never requests tools."""

    def __init__(self, default_model: str = "echo-v1"):
        self.model = default_model

    def generate_response(self, messages, model=None, tools=None, **kwargs):
        user_prompt = messages[-1]["content"] if messages else "No message provided"
        if isinstance(user_prompt, list):
            user_prompt = " ".join(
                part.get("text", "") for part in user_prompt if part.get("type") == "text"
            )
        content = f"**Echo LLM - static response for testing**\n\n_Your prompt:_\n\n{user_prompt}"

        return {
            "content": content,
            "raw_response": "Echo LLM - static response for testing",
        }

    def extract_content(self, response: Any) -> Optional[str]:
        if isinstance(response, dict) and "content" in response:
            return response["content"]
        return str(response)

    def parse_tool_calls(self, response: Any) -> List[ToolCall]:
        return []
