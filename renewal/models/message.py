# Role: Single chat message schema for the round-tripped conversation history.
# Assistant messages may carry structured metadata (selected quote, add-ons, road tax) from earlier turns.

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel

Role = Literal["user", "assistant", "system"]


class Message(BaseModel):
    role: Role
    content: str = ""
    metadata: Optional[Dict[str, Any]] = None
