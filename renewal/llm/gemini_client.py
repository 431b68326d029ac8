# Role: Minimal wrapper around the Gemini API. Centralizes model name, temperature, function-calling config and
# error handling, so the rest of the code calls a single method: generate_chat(system_instruction, contents).

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from google import genai
from google.genai import types

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_TEMPERATURE = 0.7


class GeminiError(RuntimeError):
    """Any failure of the model collaborator: missing key, SDK/network error, empty reply."""


@dataclass(frozen=True)
class FunctionCallRequest:
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChatReply:
    text: Optional[str]
    function_calls: List[FunctionCallRequest]
    # Model turn exactly as returned; appended back to contents when functions are resolved.
    content: Optional[types.Content] = None


def _temperature_from_env() -> float:
    try:
        return float(os.getenv("GEMINI_TEMPERATURE", str(DEFAULT_TEMPERATURE)))
    except ValueError:
        return DEFAULT_TEMPERATURE


class GeminiClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> None:
        # Key lines:
        # - Reads secrets from env (no secrets in code).
        # - Model and temperature are configurable for experiments.
        self.api_key = api_key or os.getenv("GEMINI_API_KEY")
        if not self.api_key:
            raise GeminiError("Missing GEMINI_API_KEY in environment or .env")

        self.model_name = model or os.getenv("GEMINI_MODEL", DEFAULT_MODEL)
        self.temperature = temperature if temperature is not None else _temperature_from_env()

        self.client = genai.Client(api_key=self.api_key)

    def _config(
        self,
        system_instruction: str,
        function_declarations: Optional[Sequence[Dict[str, Any]]],
    ) -> types.GenerateContentConfig:
        tools = None
        if function_declarations:
            tools = [
                types.Tool(function_declarations=[types.FunctionDeclaration(**d) for d in function_declarations])
            ]
        return types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=self.temperature,
            tools=tools,
            # Function calls are resolved by ResponseGenerator, never by the SDK.
            automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True),
        )

    def generate_chat(
        self,
        *,
        system_instruction: str,
        contents: List[types.Content],
        function_declarations: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> ChatReply:
        # 1) Validate input
        # 2) Call Gemini (one model turn; may be text or function calls)
        # 3) Validate non-empty response
        if not contents:
            raise ValueError("contents must be non-empty.")

        try:
            resp = self.client.models.generate_content(
                model=self.model_name,
                contents=contents,
                config=self._config(system_instruction, function_declarations),
            )
        except Exception as e:
            raise GeminiError(f"Gemini API call failed: {e}") from e

        calls = [
            FunctionCallRequest(name=fc.name or "", args=dict(fc.args or {}))
            for fc in (resp.function_calls or [])
        ]
        content = resp.candidates[0].content if resp.candidates else None

        if calls:
            return ChatReply(text=None, function_calls=calls, content=content)

        text = getattr(resp, "text", None)
        if not text or not text.strip():
            raise GeminiError("Gemini returned an empty response.")

        return ChatReply(text=text.strip(), function_calls=[], content=content)
