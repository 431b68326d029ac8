# Role: Static product catalog (insurers + quotes, add-ons, road tax options, payment methods) and the mock
# vehicle lookup. Single source of truth for every price the assistant is allowed to show.

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

NCD_PERCENT = 20


@dataclass(frozen=True)
class Insurer:
    key: str
    id: str
    name: str
    type: str
    features: Tuple[str, ...]
    rating: float


@dataclass(frozen=True)
class Quote:
    insurer: Insurer
    sum_insured: int
    base_premium: int
    ncd_percent: int
    final_premium: int
    tag: str
    recommendation: str
    cover_type: str = "Comprehensive"

    @property
    def ncd_discount(self) -> int:
        return self.base_premium - self.final_premium


@dataclass(frozen=True)
class AddOn:
    id: str
    name: str
    short_name: str
    description: str
    price: int
    benefits: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class RoadTaxOption:
    id: str
    name: str
    duration_months: Optional[int]
    delivery: Optional[str]
    base_price: int
    delivery_fee: int

    @property
    def total_price(self) -> int:
        return self.base_price + self.delivery_fee

    @property
    def delivered(self) -> bool:
        return self.delivery == "physical"


@dataclass(frozen=True)
class PaymentMethod:
    id: str
    name: str
    description: str = ""


INSURERS: Dict[str, Insurer] = {
    "takaful": Insurer(
        key="takaful",
        id="takaful-ikhlas",
        name="Takaful Ikhlas",
        type="takaful",
        features=("Shariah-compliant (Islamic insurance)", "Fast claim payout", "Great value for money"),
        rating=4.5,
    ),
    "etiqa": Insurer(
        key="etiqa",
        id="etiqa",
        name="Etiqa Insurance",
        type="conventional",
        features=("Free towing service up to 200km", "Good customer service", "Well-established local insurer"),
        rating=4.3,
    ),
    "allianz": Insurer(
        key="allianz",
        id="allianz",
        name="Allianz Insurance",
        type="conventional",
        features=("Premium service quality", "Excellent claims network", "Best customer service ratings"),
        rating=4.7,
    ),
}

# Words that identify an insurer in chat (used for exact and typo-tolerant matching).
INSURER_VARIANTS: Dict[str, Tuple[str, ...]] = {
    "takaful": ("takaful", "ikhlas"),
    "etiqa": ("etiqa",),
    "allianz": ("allianz",),
}

_QUOTES: Tuple[Quote, ...] = (
    Quote(
        insurer=INSURERS["takaful"],
        sum_insured=34000,
        base_premium=995,
        ncd_percent=NCD_PERCENT,
        final_premium=796,
        tag="CHEAPEST",
        recommendation="Best for budget-conscious drivers seeking Shariah-compliant coverage",
    ),
    Quote(
        insurer=INSURERS["etiqa"],
        sum_insured=35000,
        base_premium=1090,
        ncd_percent=NCD_PERCENT,
        final_premium=872,
        tag="BALANCED",
        recommendation="Best for drivers who travel frequently and want roadside assistance",
    ),
    Quote(
        insurer=INSURERS["allianz"],
        sum_insured=36000,
        base_premium=1150,
        ncd_percent=NCD_PERCENT,
        final_premium=920,
        tag="PREMIUM",
        recommendation="Best for drivers who prioritize premium service and maximum coverage",
    ),
)

ADD_ONS: Dict[str, AddOn] = {
    "windscreen": AddOn(
        id="windscreen",
        name="Windscreen",
        short_name="Windscreen",
        description="Cover windscreen damage without affecting NCD",
        price=100,
        benefits=("Covers windscreen cracks and chips", "No effect on your NCD if claimed"),
    ),
    "flood": AddOn(
        id="flood",
        name="Special Perils (Flood)",
        short_name="Special Perils",
        description="Protection against flood, landslide, and natural disasters",
        price=50,
        benefits=("Covers flood damage to vehicle", "Essential during monsoon season (Nov-Feb)"),
    ),
    "ehailing": AddOn(
        id="ehailing",
        name="E-hailing Cover",
        short_name="E-hailing",
        description="Required coverage for Grab, inDrive, and other ride-sharing drivers",
        price=500,
        benefits=("Legal requirement for e-hailing drivers", "Covers passengers during commercial trips"),
    ),
}

ROAD_TAX_OPTIONS: Dict[str, RoadTaxOption] = {
    "6month-digital": RoadTaxOption("6month-digital", "6-Month (Digital Only)", 6, "digital", 45, 0),
    "6month-deliver": RoadTaxOption("6month-deliver", "6-Month (Deliver to Me)", 6, "physical", 45, 10),
    "12month-digital": RoadTaxOption("12month-digital", "12-Month (Digital Only)", 12, "digital", 90, 0),
    "12month-deliver": RoadTaxOption("12month-deliver", "12-Month (Deliver to Me)", 12, "physical", 90, 10),
    "none": RoadTaxOption("none", "No Road Tax Renewal", None, None, 0, 0),
}

PAYMENT_METHODS: Dict[str, PaymentMethod] = {
    "card": PaymentMethod("card", "Credit/Debit Card"),
    "fpx": PaymentMethod("fpx", "Online Banking (FPX)"),
    "ewallet": PaymentMethod("ewallet", "E-Wallet", "Touch n Go, GrabPay, Boost"),
    "bnpl": PaymentMethod("bnpl", "Pay Later (0% Instalment)", "Atome, ShopBack PayLater"),
}


def get_quotes() -> List[Quote]:
    """All quotes, cheapest first."""
    return sorted(_QUOTES, key=lambda q: q.final_premium)


def get_quote(insurer_key: str) -> Optional[Quote]:
    for quote in _QUOTES:
        if quote.insurer.key == insurer_key:
            return quote
    return None


def find_quote_by_name(text: str) -> Optional[Quote]:
    """Loose lookup by any insurer name or variant contained in the text ("Takaful Ikhlas", "allianz", ...)."""
    lowered = (text or "").lower()
    for key, variants in INSURER_VARIANTS.items():
        if any(v in lowered for v in variants):
            return get_quote(key)
    return None


def get_add_on(add_on_id: str) -> Optional[AddOn]:
    return ADD_ONS.get(add_on_id)


def add_ons_total(add_on_ids: Sequence[str]) -> int:
    return sum(ADD_ONS[i].price for i in add_on_ids if i in ADD_ONS)


def get_road_tax(option_id: str) -> Optional[RoadTaxOption]:
    return ROAD_TAX_OPTIONS.get(option_id)


def get_vehicle_profile(plate_number: str, owner_id: str) -> Dict[str, object]:
    # Mock registry lookup; every plate resolves to the same vehicle.
    return {
        "plate_number": plate_number,
        "make": "Perodua",
        "model": "Myvi 1.5L",
        "year": 2019,
        "engine_cc": 1496,
        "market_value_min": 51000,
        "market_value_max": 68000,
        "cover_type": "Comprehensive (1st Party)",
        "current_insurer": "Takaful Ikhlas",
        "ncd_percent": NCD_PERCENT,
        "postcode": "47000",
        "city": "Shah Alam",
        "state": "Selangor",
    }
