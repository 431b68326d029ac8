# Role: Small typed contract for routing. Decision is the output of DecisionLogic and drives the FlowController:
# the ordered system-instruction fragments appended after the base prompt, plus what is still missing.

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class Decision(BaseModel):
    fragments: List[str] = Field(default_factory=list)
    missing_info: List[str] = Field(default_factory=list)
    notes: List[str] = Field(default_factory=list)
    summary_injected: bool = False

    @field_validator("fragments")
    @classmethod
    def _drop_blank_fragments(cls, value: List[str]) -> List[str]:
        # Empty fragments would reach the model as empty system turns.
        return [f.strip() for f in value if f and f.strip()]

    @property
    def note(self) -> Optional[str]:
        return "; ".join(self.notes) if self.notes else None
