# Role: Thin HTTP adapter for the chat endpoint. Validates request/response shapes and delegates the entire
# conversation turn to FlowController (business logic lives in core, not in the API layer).

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from renewal.api.deps import get_flow_controller
from renewal.core.flow_controller import FlowController, TurnInputError, intent_payload
from renewal.models.message import Message

router = APIRouter(tags=["chat"])


class ChatRequest(BaseModel):
    messages: List[Message] = Field(default_factory=list)
    state: Optional[Dict[str, Any]] = None
    payment_id: Optional[str] = None


class ChatResponse(BaseModel):
    assistant_message: str
    state: Dict[str, Any]
    intent: Dict[str, Any]
    error: Optional[str] = None


@router.post("/chat", response_model=ChatResponse)
def chat(req: ChatRequest, flow: FlowController = Depends(get_flow_controller)) -> ChatResponse:
    # 1) Forward (messages, client state, payment id) to the orchestrator
    # 2) Return the assistant text plus the state the client must send back next turn
    try:
        result = flow.handle_turn(req.messages, client_state=req.state, payment_id=req.payment_id)
    except TurnInputError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return ChatResponse(
        assistant_message=result.assistant_message,
        state=result.state,
        intent=intent_payload(result.intent),
        error=result.error,
    )
