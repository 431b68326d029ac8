# Role: Post-processing safety filter for model text. Removes leaked tool-call code and inserts the expected
# "Step N of 5" indicator when the model dropped it at a stage transition.

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from renewal.models.intent import Intent
from renewal.models.state import ConversationState
from renewal.tools.ai_functions import FUNCTION_DECLARATIONS
from renewal.utils.step_line import ensure_step_line, expected_step_line, has_step_line

_FUNCTION_NAMES = tuple(d["name"] for d in FUNCTION_DECLARATIONS)
_TOOL_CALL_LINE = re.compile(rf"^\s*(?:print\()?\s*(?:{'|'.join(_FUNCTION_NAMES)})\s*\(.*\)\s*\)?\s*$", re.MULTILINE)


@dataclass(frozen=True)
class TrustResult:
    text: str
    flagged: bool
    reasons: List[str]


class TrustLayer:
    def apply(
        self,
        *,
        intent: Intent,
        assistant_text: str,
        state: ConversationState,
        history: Sequence[Any] = (),
        step_line: Optional[str] = None,
    ) -> TrustResult:
        # 1) Remove any leaked tool-code fences / pseudo-calls
        # 2) Insert the expected step indicator if the model omitted it
        # Prices are not rewritten here: they are enforced up front through the injected blocks.

        text = (assistant_text or "").strip()
        if not text:
            return TrustResult(text=text, flagged=False, reasons=[])

        reasons: List[str] = []

        if self._looks_like_tool_code(text):
            reasons.append("tool_code_leak")
            text = self._strip_tool_code(text)

        expected = step_line if step_line is not None else expected_step_line(intent, state, history)
        if expected and not has_step_line(text):
            reasons.append("missing_step_line")
            text = ensure_step_line(text, expected)

        return TrustResult(text=text, flagged=bool(reasons), reasons=reasons)

    def _looks_like_tool_code(self, text: str) -> bool:
        low = text.lower()
        return "```tool_code" in low or bool(_TOOL_CALL_LINE.search(text))

    def _strip_tool_code(self, text: str) -> str:
        cleaned = _TOOL_CALL_LINE.sub("", text)
        cleaned = cleaned.replace("```tool_code", "").replace("```", "")
        # Key line: collapse the blank runs left behind by removed lines.
        return re.sub(r"\n{3,}", "\n\n", cleaned).strip()
