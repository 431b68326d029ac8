# Role: Read-only transparency endpoint for the UI.
# Does NOT change any flow logic. Normalizes a client-held state blob (or the chat history) into a snapshot.

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from renewal.models.message import Message
from renewal.models.state import ConversationState, PersonalDetails
from renewal.prompts.content_blocks import compute_order_total
from renewal.utils.history_extractors import reconstruct_state
from renewal.utils.step_line import current_stage_step_line

router = APIRouter(tags=["state"])


class StateRequest(BaseModel):
    state: Optional[Dict[str, Any]] = None
    messages: List[Message] = Field(default_factory=list)


class StateSnapshot(BaseModel):
    source: str
    state: Dict[str, Any]
    missing_identification: List[str]
    missing_details: List[str]
    order_total: float
    step_line: Optional[str] = None


@router.post("/state", response_model=StateSnapshot)
def get_state(req: StateRequest) -> StateSnapshot:
    state = ConversationState.from_client(req.state)
    source = "client"
    if state is None:
        # Key line: the snapshot reads the whole history (there is no pending user message to exclude).
        state = reconstruct_state(req.messages)
        source = "history"

    return StateSnapshot(
        source=source,
        state=state.to_client(),
        missing_identification=state.get_missing_identification(),
        missing_details=(state.personal_details or PersonalDetails()).missing(),
        order_total=compute_order_total(state).total,
        step_line=current_stage_step_line(state),
    )
