# Role: Fixed set of model-callable lookup/calculation functions. Declarations are handed to Gemini as
# function-calling tools; execute_function resolves a call deterministically against the catalog + FAQ.

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

import renewal.config as config
from renewal.tools.insurance_catalog import ADD_ONS, ROAD_TAX_OPTIONS, get_quotes
from renewal.tools.knowledge_base import search_knowledge_base
from renewal.utils.flow_guards import can_use_delivered_road_tax

_NCD_LEVELS = {0: 0.0, 1: 25.0, 2: 30.0, 3: 38.33, 4: 45.0, 5: 55.0}
_FLOOD_PRONE = ("selangor", "penang", "kelantan", "johor", "terengganu", "pahang")
_PLATE_FORMAT = re.compile(r"^(?:[A-Z]{1,3}\s?\d{1,4}(?:\s?[A-Z]{1,3})?|\d[A-Z]{3}\s?\d{1,4})$", re.IGNORECASE)

FUNCTION_DECLARATIONS: List[Dict[str, Any]] = [
    {
        "name": "search_insurance_knowledge",
        "description": (
            "Search the Malaysian car insurance knowledge base (NCD, coverage types, claims, road tax, add-ons). "
            "Use for 'what is', 'how does' or 'explain' questions."
        ),
        "parameters": {
            "type": "OBJECT",
            "properties": {"query": {"type": "STRING", "description": "The user's question"}},
            "required": ["query"],
        },
    },
    {
        "name": "explain_insurance_term",
        "description": "Explain one insurance term such as NCD, sum insured, takaful, betterment or special perils.",
        "parameters": {
            "type": "OBJECT",
            "properties": {"term": {"type": "STRING", "description": "Term to explain"}},
            "required": ["term"],
        },
    },
    {
        "name": "get_insurance_quotes",
        "description": "Return the available insurer quotes with exact prices after NCD.",
    },
    {
        "name": "get_available_addons",
        "description": "Return the optional add-ons (windscreen, special perils, e-hailing) with prices.",
    },
    {
        "name": "get_roadtax_options",
        "description": "Return the road tax renewal options the current owner is eligible for.",
    },
    {
        "name": "calculate_total_premium",
        "description": "Add the insurance premium, add-on prices and road tax into a total.",
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "basePremium": {"type": "NUMBER", "description": "Insurance premium after NCD"},
                "addOns": {
                    "type": "ARRAY",
                    "items": {"type": "NUMBER"},
                    "description": "Selected add-on prices",
                },
                "roadTax": {"type": "NUMBER", "description": "Road tax price (optional)"},
            },
            "required": ["basePremium"],
        },
    },
    {
        "name": "calculate_ncd_entitlement",
        "description": "NCD percentage for a number of consecutive claim-free years.",
        "parameters": {
            "type": "OBJECT",
            "properties": {"yearsNoClaims": {"type": "INTEGER", "description": "Claim-free years"}},
            "required": ["yearsNoClaims"],
        },
    },
    {
        "name": "validate_registration_number",
        "description": "Check whether a Malaysian vehicle registration number is well-formed.",
        "parameters": {
            "type": "OBJECT",
            "properties": {"registrationNumber": {"type": "STRING", "description": "Plate number"}},
            "required": ["registrationNumber"],
        },
    },
    {
        "name": "recommend_coverage",
        "description": "Suggest coverage and add-ons from car value, location and usage.",
        "parameters": {
            "type": "OBJECT",
            "properties": {
                "carValue": {"type": "NUMBER", "description": "Car market value in RM"},
                "location": {"type": "STRING", "description": "Area or state, for flood risk"},
                "usage": {
                    "type": "STRING",
                    "description": "How the car is used",
                    "enum": ["daily commute", "occasional", "business", "family", "e-hailing"],
                },
            },
            "required": ["carValue"],
        },
    },
]


def _number(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _search(args: Dict[str, Any]) -> Dict[str, Any]:
    hits = search_knowledge_base(str(args.get("query") or ""))
    if not hits:
        return {"found": False, "message": "No specific information found"}
    return {
        "found": True,
        "results": [{"question": h.entry.question, "answer": h.entry.answer} for h in hits],
    }


def _explain(args: Dict[str, Any]) -> Dict[str, Any]:
    term = str(args.get("term") or "")
    hits = search_knowledge_base(term, limit=1)
    if not hits:
        return {"term": term, "explanation": f"No stored explanation for {term}."}
    return {"term": term, "explanation": hits[0].entry.answer}


def _quotes(_: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {
            "insurer": q.insurer.name,
            "priceAfter": q.final_premium,
            "priceBefore": q.base_premium,
            "ncdPercent": q.ncd_percent,
            "sumInsured": q.sum_insured,
        }
        for q in get_quotes()
    ]


def _add_ons(_: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "addons": [
            {"id": a.id, "name": a.name, "price": a.price, "description": a.description} for a in ADD_ONS.values()
        ]
    }


def _road_tax(_: Dict[str, Any], owner_id_type: Any = None) -> Dict[str, Any]:
    allow_delivery = can_use_delivered_road_tax(owner_id_type)
    options = [
        {"id": o.id, "name": o.name, "price": o.total_price}
        for o in ROAD_TAX_OPTIONS.values()
        if allow_delivery or not o.delivered
    ]
    return {"options": options, "deliveryAvailable": allow_delivery}


def _total(args: Dict[str, Any]) -> Dict[str, Any]:
    base = _number(args.get("basePremium"))
    add_ons = sum(_number(p) for p in (args.get("addOns") or []))
    road_tax = _number(args.get("roadTax"))
    return {"basePremium": base, "addOns": add_ons, "roadTax": road_tax, "total": base + add_ons + road_tax}


def _ncd(args: Dict[str, Any]) -> Dict[str, Any]:
    years = max(0, int(_number(args.get("yearsNoClaims"))))
    return {"yearsNoClaims": years, "ncdEntitlement": _NCD_LEVELS[min(years, 5)], "maxNCD": 55.0}


def _validate_plate(args: Dict[str, Any]) -> Dict[str, Any]:
    plate = str(args.get("registrationNumber") or "").strip()
    valid = bool(_PLATE_FORMAT.match(plate))
    return {
        "registrationNumber": plate.replace(" ", "").upper(),
        "isValid": valid,
        "error": None if valid else "Invalid Malaysian plate format",
    }


def _recommend(args: Dict[str, Any]) -> Dict[str, Any]:
    recommendations: List[Dict[str, str]] = []
    if _number(args.get("carValue")) > 30000:
        recommendations.append({"type": "Comprehensive", "priority": "Essential"})
    location = str(args.get("location") or "").lower()
    if any(area in location for area in _FLOOD_PRONE):
        recommendations.append({"type": "Special Perils (Flood)", "priority": "Highly Recommended"})
    usage = str(args.get("usage") or "").lower()
    if usage == "daily commute":
        recommendations.append({"type": "Windscreen", "priority": "Recommended"})
    if usage == "e-hailing":
        recommendations.append({"type": "E-hailing Cover", "priority": "Required"})
    return {"recommendations": recommendations}


def execute_function(name: str, args: Optional[Dict[str, Any]] = None, owner_id_type: Any = None) -> Any:
    # Unknown names go back to the model as an error payload instead of raising.
    args = args or {}

    if config.DEBUG:
        print(f"[AI FUNCTION] {name} {args}")

    if name == "search_insurance_knowledge":
        return _search(args)
    if name == "explain_insurance_term":
        return _explain(args)
    if name == "get_insurance_quotes":
        return _quotes(args)
    if name == "get_available_addons":
        return _add_ons(args)
    if name == "get_roadtax_options":
        return _road_tax(args, owner_id_type)
    if name == "calculate_total_premium":
        return _total(args)
    if name == "calculate_ncd_entitlement":
        return _ncd(args)
    if name == "validate_registration_number":
        return _validate_plate(args)
    if name == "recommend_coverage":
        return _recommend(args)
    return {"error": f"Unknown function: {name}"}
