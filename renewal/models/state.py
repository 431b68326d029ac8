# Role: Per-conversation state container for the renewal flow. Holds vehicle identity, selections and
# progress flags, exposes the mutators the orchestrator calls, and derives the current step from facts.
# The caller round-trips this object as camelCase JSON; there is no server-side session store.

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel

QUOTE_VALIDITY = timedelta(minutes=30)


class FlowStep(str, Enum):
    START = "start"
    VEHICLE_LOOKUP = "vehicle_lookup"
    VEHICLE_CONFIRMED = "vehicle_confirmed"
    QUOTES = "quotes"
    ADDONS = "addons"
    ROADTAX = "roadtax"
    PERSONAL_DETAILS = "personal_details"
    OTP = "otp"
    PAYMENT = "payment"
    SUCCESS = "success"


class OwnerIdType(str, Enum):
    NRIC = "nric"
    FOREIGN_ID = "foreign_id"
    ARMY_IC = "army_ic"
    POLICE_IC = "police_ic"
    COMPANY_REG = "company_reg"
    OTHER_ID = "other_id"


OWNER_ID_LABELS = {
    OwnerIdType.NRIC: "NRIC",
    OwnerIdType.FOREIGN_ID: "Foreign ID",
    OwnerIdType.ARMY_IC: "Army IC",
    OwnerIdType.POLICE_IC: "Police IC",
    OwnerIdType.COMPANY_REG: "Company Reg",
    OwnerIdType.OTHER_ID: "Owner ID",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SelectedQuote(_WireModel):
    insurer: str
    price_after: int = Field(ge=0)
    insurer_key: Optional[str] = None


class SelectedAddOn(_WireModel):
    id: Optional[str] = None
    name: str
    price: int = Field(default=0, ge=0)


class SelectedRoadTax(_WireModel):
    id: Optional[str] = None
    name: str
    price: int = Field(default=0, ge=0)
    delivered: bool = False


class PersonalDetails(_WireModel):
    """Presence flags only; the raw values stay in the chat transcript."""

    email: bool = False
    phone: bool = False
    address: bool = False

    @property
    def is_complete(self) -> bool:
        return self.email and self.phone and self.address

    @property
    def has_any(self) -> bool:
        return self.email or self.phone or self.address

    def missing(self) -> List[str]:
        return [name for name in ("email", "phone", "address") if not getattr(self, name)]

    def merged(self, *, email: bool = False, phone: bool = False, address: bool = False) -> "PersonalDetails":
        return PersonalDetails(
            email=self.email or email,
            phone=self.phone or phone,
            address=self.address or address,
        )


class PendingAction(_WireModel):
    type: Literal["confirm_quote_change"] = "confirm_quote_change"
    new_insurer: Optional[str] = None


def derive_step(state: "ConversationState") -> FlowStep:
    """
    Ground truth for the flow position. Strict waterfall, latest milestone first.
    Only confirmed add-ons move the flow to road tax; a pre-selection never does.
    """
    details = state.personal_details
    if state.payment_method:
        return FlowStep.SUCCESS
    if state.otp_verified:
        return FlowStep.PAYMENT
    if details is not None and details.is_complete:
        return FlowStep.OTP
    if state.selected_road_tax is not None:
        return FlowStep.PERSONAL_DETAILS
    if state.add_ons_confirmed:
        return FlowStep.ROADTAX
    if state.selected_quote is not None:
        return FlowStep.ADDONS
    if state.plate_number and state.owner_id_value:
        return FlowStep.QUOTES
    if state.plate_number or state.owner_id_value:
        return FlowStep.VEHICLE_LOOKUP
    return FlowStep.START


class ConversationState(_WireModel):
    step: FlowStep = FlowStep.START

    plate_number: Optional[str] = None
    owner_id_value: Optional[str] = None
    owner_id_type: Optional[OwnerIdType] = None
    vehicle_info: Optional[Dict[str, Any]] = None

    selected_quote: Optional[SelectedQuote] = None
    quote_generated_at: Optional[datetime] = None
    quote_valid_until: Optional[datetime] = None

    selected_add_ons: List[SelectedAddOn] = Field(default_factory=list)
    add_ons_confirmed: bool = False
    selected_road_tax: Optional[SelectedRoadTax] = None
    personal_details: Optional[PersonalDetails] = None
    otp_verified: bool = False
    payment_method: Optional[str] = None

    # Key line: single-slot guard for a destructive transition; scoped to exactly one turn.
    pending_action: Optional[PendingAction] = None

    @model_validator(mode="before")
    @classmethod
    def _accept_legacy_owner_id(cls, data: Any) -> Any:
        # Older clients send the owner ID as nricNumber and may omit its type.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if not data.get("ownerIdValue") and not data.get("owner_id_value") and data.get("nricNumber"):
            data["ownerIdValue"] = data.pop("nricNumber")
        value = data.get("ownerIdValue") or data.get("owner_id_value")
        if value and not (data.get("ownerIdType") or data.get("owner_id_type")):
            text = str(value)
            data["ownerIdType"] = "nric" if text.isdigit() and len(text) == 12 else "other_id"
        return data

    @field_validator("quote_generated_at", "quote_valid_until")
    @classmethod
    def _force_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _derive_cached_step(self) -> "ConversationState":
        self.step = derive_step(self)
        return self

    def has_progress_past_quotes(self) -> bool:
        return bool(
            self.selected_quote is not None
            or self.add_ons_confirmed
            or self.selected_road_tax is not None
            or (self.personal_details is not None and self.personal_details.has_any)
            or self.otp_verified
            or self.payment_method
        )

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    @computed_field(alias="quoteExpired")
    @property
    def quote_expired(self) -> bool:
        return self.is_quote_expired()

    @computed_field(alias="quoteTimeRemaining")
    @property
    def quote_time_remaining(self) -> int:
        return self.get_quote_time_remaining()

    def _determine_step(self) -> FlowStep:
        return derive_step(self)

    def _refresh_step(self) -> "ConversationState":
        self.step = derive_step(self)
        return self

    def has_complete_vehicle_identification(self) -> bool:
        return bool(self.plate_number and self.owner_id_value)

    def get_missing_identification(self) -> List[str]:
        missing: List[str] = []
        if not self.plate_number:
            missing.append("plate_number")
        if not self.owner_id_value:
            missing.append("owner_id")
        return missing

    def is_quote_expired(self, now: Optional[datetime] = None) -> bool:
        # No quote yet means nothing can expire.
        if self.quote_valid_until is None:
            return False
        return (now or _utcnow()) > self.quote_valid_until

    def get_quote_time_remaining(self, now: Optional[datetime] = None) -> int:
        """Whole minutes left on the quote (rounded up), 0 when expired or absent."""
        if self.quote_valid_until is None:
            return 0
        remaining = (self.quote_valid_until - (now or _utcnow())).total_seconds()
        return max(0, math.ceil(remaining / 60))

    def masked_owner_id(self) -> Optional[str]:
        if not self.owner_id_value:
            return None
        value = self.owner_id_value
        visible = min(6, len(value))
        return value[:visible] + "*" * max(4, len(value) - visible)

    # ------------------------------------------------------------------
    # Mutators (each returns self so calls can be chained)
    # ------------------------------------------------------------------

    def set_vehicle_identification(
        self,
        *,
        plate_number: Optional[str] = None,
        owner_id_value: Optional[str] = None,
        owner_id_type: Optional[OwnerIdType] = None,
    ) -> "ConversationState":
        if plate_number:
            self.plate_number = plate_number
        if owner_id_value:
            self.owner_id_value = owner_id_value
            self.owner_id_type = owner_id_type
        return self._refresh_step()

    def set_quote_timestamps(self, now: Optional[datetime] = None) -> "ConversationState":
        generated = now or _utcnow()
        self.quote_generated_at = generated
        self.quote_valid_until = generated + QUOTE_VALIDITY
        return self

    def refresh_quote_timestamps(self, now: Optional[datetime] = None) -> "ConversationState":
        # Same prices, new validity window.
        return self.set_quote_timestamps(now)

    def select_quote(self, quote: SelectedQuote, now: Optional[datetime] = None) -> "ConversationState":
        self.selected_quote = quote
        self.set_quote_timestamps(now)
        self.pending_action = None
        return self._refresh_step()

    def pre_select_add_ons(self, add_ons: List[SelectedAddOn]) -> "ConversationState":
        self.selected_add_ons = list(add_ons)
        self.add_ons_confirmed = False
        self.pending_action = None
        return self._refresh_step()

    def select_add_ons(self, add_ons: List[SelectedAddOn]) -> "ConversationState":
        self.selected_add_ons = list(add_ons)
        self.add_ons_confirmed = True
        self.pending_action = None
        return self._refresh_step()

    def select_road_tax(self, road_tax: SelectedRoadTax) -> "ConversationState":
        self.selected_road_tax = road_tax
        self.pending_action = None
        return self._refresh_step()

    def reset_to_quotes(self) -> "ConversationState":
        """Drop every selection after vehicle identification; plate, owner ID and vehicle profile stay."""
        self.selected_quote = None
        self.quote_generated_at = None
        self.quote_valid_until = None
        self.selected_add_ons = []
        self.add_ons_confirmed = False
        self.selected_road_tax = None
        self.personal_details = None
        self.otp_verified = False
        self.payment_method = None
        self.pending_action = None
        return self._refresh_step()

    def set_personal_details(self, details: Optional[PersonalDetails]) -> "ConversationState":
        self.personal_details = details
        self.pending_action = None
        return self._refresh_step()

    def verify_otp(self) -> "ConversationState":
        self.otp_verified = True
        self.pending_action = None
        return self._refresh_step()

    def set_payment_method(self, method: str) -> "ConversationState":
        self.payment_method = method
        self.pending_action = None
        return self._refresh_step()

    def set_pending_action(self, action: Optional[PendingAction]) -> "ConversationState":
        self.pending_action = action
        return self

    # ------------------------------------------------------------------
    # Serialization boundary
    # ------------------------------------------------------------------

    def to_client(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_client(cls, blob: Any) -> Optional["ConversationState"]:
        # 1) Reject anything that is not a JSON object
        # 2) Validate against the schema (bad data -> None, caller falls back to history)
        # 3) Progress past quotes without both identifiers cannot be reached; treat it as malformed
        # 4) Re-derive step; the client's cached value is never trusted
        if not isinstance(blob, dict) or not blob:
            return None
        try:
            state = cls.model_validate(blob)
        except ValidationError:
            return None
        if state.has_progress_past_quotes() and not state.has_complete_vehicle_identification():
            return None
        return state._refresh_step()

    def ai_context(self, now: Optional[datetime] = None) -> str:
        parts = [f"Current Step: {self.step.value}"]

        if self.plate_number:
            parts.append(f"Vehicle Plate: {self.plate_number}")
        if self.owner_id_value:
            label = OWNER_ID_LABELS.get(self.owner_id_type, "Owner ID") if self.owner_id_type else "Owner ID"
            parts.append(f"{label}: {self.masked_owner_id()}")
        if self.vehicle_info:
            info = self.vehicle_info
            parts.append(f"Vehicle: {info.get('make', '')} {info.get('model', '')} {info.get('year', '')}".rstrip())
        if self.selected_quote is not None:
            parts.append(f"Selected Quote: {self.selected_quote.insurer} - RM {self.selected_quote.price_after}")
            if self.is_quote_expired(now):
                parts.append("QUOTE EXPIRED - needs refresh before payment")
            else:
                mins = self.get_quote_time_remaining(now)
                parts.append(f"Quote valid for: {mins} minute{'s' if mins != 1 else ''}")
        if self.selected_add_ons:
            status = "Confirmed" if self.add_ons_confirmed else "Pre-selected (waiting for confirmation)"
            parts.append(f"Add-ons ({status}): {', '.join(a.name for a in self.selected_add_ons)}")
        if self.selected_road_tax is not None:
            parts.append(f"Road Tax: {self.selected_road_tax.name}")
        if self.personal_details is not None:
            collected = 3 - len(self.personal_details.missing())
            parts.append(f"Personal details collected: {collected}/3")

        return "\n".join(parts)
