# Role: Produces the final assistant text. Builds the Gemini request (base prompt + this turn's fragments +
# chat history), resolves model function calls against the fixed function table, then cleans the output.

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from google.genai import types

import renewal.config as config
from renewal.llm.gemini_client import GeminiClient, GeminiError
from renewal.tools.ai_functions import FUNCTION_DECLARATIONS, execute_function
from renewal.utils.flow_guards import role_and_content

MAX_TOOL_ITERATIONS = 5


class ResponseGenerator:
    def __init__(self, client: Optional[GeminiClient] = None) -> None:
        # Key line: the client is created on first use, so building the app never requires an API key.
        self._client = client

    @property
    def client(self) -> GeminiClient:
        if self._client is None:
            self._client = GeminiClient()
        return self._client

    def _clean_llm_output(self, text: str) -> str:
        # Role: remove common filler/preambles without changing actual content.
        if not text:
            return text

        lines = [ln.rstrip() for ln in text.strip().splitlines()]

        always_drop_prefixes = (
            "the user",
            "my plan",
            "i will",
            "i am going to",
            "here's my plan",
            "system instruction",
        )

        cleaned: list[str] = []
        skipping = True

        for ln in lines:
            low_norm = ln.strip().lower().rstrip(":,.-! ")

            if skipping:
                if not low_norm:
                    continue
                if any(low_norm.startswith(p) for p in always_drop_prefixes):
                    continue

            skipping = False
            cleaned.append(ln)

        out = "\n".join(cleaned).strip()
        return out if out else text.strip()

    def _system_instruction(self, system_prompt: str, fragments: Sequence[str]) -> str:
        if not fragments:
            return system_prompt
        turn = "\n\n".join(f"[{i}] {f}" for i, f in enumerate(fragments, start=1))
        return f"{system_prompt}\n\nINSTRUCTIONS FOR THIS TURN (follow all, in order):\n\n{turn}"

    def _contents(self, messages: Sequence[Any]) -> List[types.Content]:
        contents: List[types.Content] = []
        for message in messages or []:
            role, text = role_and_content(message)
            if role not in {"user", "assistant"} or not text.strip():
                continue
            contents.append(
                types.Content(
                    role="model" if role == "assistant" else "user",
                    parts=[types.Part.from_text(text=text)],
                )
            )
        return contents

    def generate(
        self,
        *,
        system_prompt: str,
        fragments: Sequence[str],
        messages: Sequence[Any],
        owner_id_type: Any = None,
    ) -> str:
        # 1) Build system instruction + contents
        # 2) Loop: model turn -> resolve function calls -> feed results back (bounded)
        # 3) Clean the final text
        system_instruction = self._system_instruction(system_prompt, fragments)
        contents = self._contents(messages)
        if not contents:
            raise GeminiError("No user/assistant messages to send.")

        if config.DEBUG:
            print("\n--- RESPONSE GENERATOR ---")
            print("FRAGMENTS:", len(fragments))
            print("HISTORY TURNS:", len(contents))
            print("-------------------------")

        for iteration in range(MAX_TOOL_ITERATIONS):
            reply = self.client.generate_chat(
                system_instruction=system_instruction,
                contents=contents,
                function_declarations=FUNCTION_DECLARATIONS,
            )

            if not reply.function_calls:
                response = self._clean_llm_output(reply.text or "")
                if config.DEBUG:
                    print("CLEANED RESPONSE:\n", response)
                    print("-------------------------\n")
                return response

            contents.append(
                reply.content
                or types.Content(
                    role="model",
                    parts=[types.Part.from_function_call(name=c.name, args=c.args) for c in reply.function_calls],
                )
            )

            results: List[types.Part] = []
            for call in reply.function_calls:
                result = execute_function(call.name, call.args, owner_id_type=owner_id_type)
                if config.DEBUG:
                    print(f"TOOL CALL #{iteration + 1}: {call.name} -> {str(result)[:200]}")
                payload: Dict[str, Any] = result if isinstance(result, dict) else {"result": result}
                results.append(types.Part.from_function_response(name=call.name, response=payload))
            contents.append(types.Content(role="user", parts=results))

        raise GeminiError(f"No text response after {MAX_TOOL_ITERATIONS} function-call rounds.")
